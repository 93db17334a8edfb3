"""
Task subsystem.

Components:
- task_models.py: data structures (TaskDefinition, ControlOverride, EmotionalContext, TaskContext)
- task_registry.py: normalization + id-keyed registry
- task_scheduler.py: gating and single-pass execution (timeouts, retries, fallback)
- heartbeat.py: periodic liveness monitor
"""
