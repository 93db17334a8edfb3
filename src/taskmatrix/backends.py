# src/taskmatrix/backends.py

"""
Simulated memory and trading backends.

Both are in-process stand-ins used by the CLI demo and tests. Nothing here
is persisted and no real orders are placed.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Key/value memory backend (MemoryBackend port)."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


@dataclass(slots=True)
class PaperOrder:
    id: int
    symbol: str
    side: str
    amount: float
    price: float
    created_at: float


@dataclass
class PaperTradingBackend:
    """
    Paper trading backend (TradingBackend port).

    Prices follow a bounded random walk per symbol; orders settle instantly
    against the cash balance.
    """

    balance: float = 10_000.0
    allowed_symbols: tuple[str, ...] = ("BTC/USD", "ETH/USD")
    seed: int | None = None
    positions: dict[str, float] = field(default_factory=dict)
    orders: list[PaperOrder] = field(default_factory=list)
    _prices: dict[str, float] = field(default_factory=dict)
    _rng: random.Random = field(init=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)
        for symbol in self.allowed_symbols:
            self._prices.setdefault(symbol, 100.0)

    def _check_symbol(self, symbol: str) -> None:
        if symbol not in self.allowed_symbols:
            raise ValueError(f"Instrument not allowed: {symbol}")

    def _tick_price(self, symbol: str) -> float:
        price = self._prices[symbol]
        price = max(0.01, price * (1.0 + self._rng.uniform(-0.01, 0.01)))
        self._prices[symbol] = price
        return price

    async def get_balance(self) -> float:
        return self.balance

    async def get_market_data(self, symbol: str) -> dict[str, Any]:
        self._check_symbol(symbol)
        return {"symbol": symbol, "price": self._tick_price(symbol), "timestamp": time.time()}

    async def place_order(self, *, symbol: str, side: str, amount: float) -> dict[str, Any]:
        self._check_symbol(symbol)
        side = side.lower().strip()
        if side not in ("buy", "sell"):
            raise ValueError(f"Unknown order side: {side}")
        if amount <= 0:
            raise ValueError("Order amount must be positive")

        price = self._prices[symbol]
        held = self.positions.get(symbol, 0.0)
        cost = price * amount
        if side == "buy":
            if cost > self.balance:
                raise ValueError("Insufficient balance")
            self.balance -= cost
            self.positions[symbol] = held + amount
        else:
            if amount > held:
                raise ValueError("Insufficient position")
            self.balance += cost
            self.positions[symbol] = held - amount

        order = PaperOrder(
            id=len(self.orders) + 1,
            symbol=symbol,
            side=side,
            amount=amount,
            price=price,
            created_at=time.time(),
        )
        self.orders.append(order)
        logger.info("Paper order #%d %s %s x%.4f @ %.2f", order.id, side, symbol, amount, price)
        return {"id": order.id, "symbol": symbol, "side": side, "amount": amount, "price": price}
