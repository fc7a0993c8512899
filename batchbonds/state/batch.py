"""
Batches and orders.

A batch accumulates one bond's orders for ``batch_blocks`` cycles. Orders are
appended in arrival order and never reordered; the only mutation an order
ever sees is being cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ..core.coins import Coin, Coins, DecCoins, normalize


@dataclass
class BaseOrder:
    address: str
    amount: Coin
    cancelled: bool = False
    cancel_reason: str = ""

    def is_cancelled(self) -> bool:
        return self.cancelled

    def cancel(self, reason: str) -> None:
        if self.cancelled:
            raise ValueError(f"order from {self.address} for {self.amount} is already cancelled")
        self.cancelled = True
        self.cancel_reason = reason


@dataclass
class BuyOrder(BaseOrder):
    """Buy ``amount`` bond tokens paying at most ``max_prices`` (escrowed on admission)."""
    max_prices: Coins = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.max_prices = normalize(self.max_prices)


@dataclass
class SellOrder(BaseOrder):
    """Sell ``amount`` bond tokens (burned on admission)."""


@dataclass
class SwapOrder(BaseOrder):
    """Swap the reserve coin ``amount`` for ``to_token`` (escrowed on admission)."""
    to_token: str = ""


def new_buy_order(address: str, amount: Coin, max_prices: Coins) -> BuyOrder:
    return BuyOrder(address=address, amount=amount, max_prices=max_prices)


def new_sell_order(address: str, amount: Coin) -> SellOrder:
    return SellOrder(address=address, amount=amount)


def new_swap_order(address: str, amount: Coin, to_token: str) -> SwapOrder:
    return SwapOrder(address=address, amount=amount, to_token=to_token)


@dataclass
class Batch:
    """
    Pending orders for one bond.

    ``total_buy_amount`` and ``total_sell_amount`` always equal the summed
    amounts of the uncancelled buys and sells.
    """
    token: str
    blocks_remaining: int
    total_buy_amount: int = 0
    total_sell_amount: int = 0
    buy_prices: DecCoins = field(default_factory=dict)
    sell_prices: DecCoins = field(default_factory=dict)
    buys: List[BuyOrder] = field(default_factory=list)
    sells: List[SellOrder] = field(default_factory=list)
    swaps: List[SwapOrder] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.blocks_remaining, int) or self.blocks_remaining < 0:
            raise ValueError(f"blocks_remaining must be a non-negative int: {self.blocks_remaining}")

    @classmethod
    def new(cls, token: str, batch_blocks: int) -> "Batch":
        return cls(token=token, blocks_remaining=batch_blocks)

    def more_buys_than_sells(self) -> bool:
        return self.total_buy_amount > self.total_sell_amount

    def more_sells_than_buys(self) -> bool:
        return self.total_sell_amount > self.total_buy_amount

    def equal_buys_and_sells(self) -> bool:
        return self.total_buy_amount == self.total_sell_amount

    def add_buy_order(self, order: BuyOrder, buy_prices: DecCoins, sell_prices: DecCoins) -> None:
        self.total_buy_amount += order.amount.amount
        self.buy_prices = buy_prices
        self.sell_prices = sell_prices
        self.buys.append(order)

    def add_sell_order(self, order: SellOrder, buy_prices: DecCoins, sell_prices: DecCoins) -> None:
        self.total_sell_amount += order.amount.amount
        self.buy_prices = buy_prices
        self.sell_prices = sell_prices
        self.sells.append(order)

    def add_swap_order(self, order: SwapOrder) -> None:
        self.swaps.append(order)

    def cancel_buy(self, index: int, reason: str) -> BuyOrder:
        order = self.buys[index]
        order.cancel(reason)
        self.total_buy_amount -= order.amount.amount
        return order

    def open_buys(self) -> List[BuyOrder]:
        return [o for o in self.buys if not o.cancelled]

    def open_sells(self) -> List[SellOrder]:
        return [o for o in self.sells if not o.cancelled]

    def open_swaps(self) -> List[SwapOrder]:
        return [o for o in self.swaps if not o.cancelled]

    def has_open_orders(self) -> bool:
        return bool(self.open_buys() or self.open_sells() or self.open_swaps())

    def check_invariants(self) -> List[str]:
        violations = []
        if self.total_buy_amount != sum(o.amount.amount for o in self.open_buys()):
            violations.append("total_buy_amount out of sync with uncancelled buys")
        if self.total_sell_amount != sum(o.amount.amount for o in self.open_sells()):
            violations.append("total_sell_amount out of sync with uncancelled sells")
        if self.total_buy_amount < 0 or self.total_sell_amount < 0:
            violations.append("negative batch total")
        return violations
