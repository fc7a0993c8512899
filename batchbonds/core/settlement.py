"""
Settlement records for batch clearing.

A settlement is the outcome of finalizing one bond's batch: the prices it
cleared at, what happened to each order, and whether the bond changed phase.
Records are plain data; nothing here touches balances.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .coins import Coins, DecCoins


class OrderType(Enum):
    BUY = "buy"
    SELL = "sell"
    SWAP = "swap"


class FillAction(Enum):
    """Action taken on an order."""
    FILL = "FILL"
    CANCEL = "CANCEL"


@dataclass
class OrderOutcome:
    """
    What happened to one order.

    Attributes:
        order_type: BUY, SELL or SWAP
        action: FILL or CANCEL
        address: Order owner
        amount: Bond tokens bought/sold, or the swap input
        reason: Cancellation reason (CANCEL only)
        charged_prices: Reserve paid by a buyer (rounded up)
        charged_fees: Fees sent to the fee address
        returned: Coins sent back to the owner (refund, sale proceeds, swap output)
        funding: Hatch-phase share of a buy routed to the fee address
    """
    order_type: OrderType
    action: FillAction
    address: str
    amount: Coins
    reason: Optional[str] = None
    charged_prices: Coins = field(default_factory=dict)
    charged_fees: Coins = field(default_factory=dict)
    returned: Coins = field(default_factory=dict)
    funding: Coins = field(default_factory=dict)


@dataclass
class Settlement:
    """
    Finalized batch for a single bond.

    Attributes:
        token: Bond token
        buy_prices: Per-token buy clearing price for each reserve token
        sell_prices: Per-token sell clearing price for each reserve token
        outcomes: Outcomes in execution order (buys, sells, swaps), plus
            cancellations from the pre-execution pass
        new_state: Lifecycle state entered at this batch close, if any
    """
    token: str
    buy_prices: DecCoins
    sell_prices: DecCoins
    outcomes: List[OrderOutcome] = field(default_factory=list)
    new_state: Optional[str] = None

    def fills(self) -> List[OrderOutcome]:
        return [o for o in self.outcomes if o.action == FillAction.FILL]

    def cancellations(self) -> List[OrderOutcome]:
        return [o for o in self.outcomes if o.action == FillAction.CANCEL]

    def total_fees(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for o in self.fills():
            for denom, amount in o.charged_fees.items():
                totals[denom] = totals.get(denom, 0) + amount
        return totals
