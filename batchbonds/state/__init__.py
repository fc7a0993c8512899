"""
Bond state: bonds, batches, balances and storage.
"""

from .balances import InMemoryLedger, Ledger
from .batch import Batch, BuyOrder, SellOrder, SwapOrder
from .bonds import Bond, BondState
from .requests import (
    DO_NOT_MODIFY,
    BuyRequest,
    CreateBondRequest,
    EditBondRequest,
    OutcomePaymentRequest,
    SellRequest,
    SwapRequest,
    WithdrawShareRequest,
)
from .store import BondStore

__all__ = [
    "InMemoryLedger",
    "Ledger",
    "Batch",
    "BuyOrder",
    "SellOrder",
    "SwapOrder",
    "Bond",
    "BondState",
    "DO_NOT_MODIFY",
    "BuyRequest",
    "CreateBondRequest",
    "EditBondRequest",
    "OutcomePaymentRequest",
    "SellRequest",
    "SwapRequest",
    "WithdrawShareRequest",
    "BondStore",
]
