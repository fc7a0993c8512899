"""
Core pricing algorithms: fixed-point math, bonding curves, swap math.
"""

from .dec import Dec, ONE, ZERO, dec
from .coins import Coin, Coins, DecCoins
from .curves import (
    FunctionType,
    PowerCurve,
    SigmoidCurve,
    AugmentedCurve,
    curve_for,
    validate_function_params,
)
from .errors import (
    AdmissionError,
    BondsError,
    ErrorCode,
    FatalError,
    FatalInvariantError,
    InsufficientFundsError,
    MissingRecordError,
    NumericConvergenceError,
)
from .settlement import FillAction, OrderOutcome, OrderType, Settlement

__all__ = [
    "Dec",
    "ONE",
    "ZERO",
    "dec",
    "Coin",
    "Coins",
    "DecCoins",
    "FunctionType",
    "PowerCurve",
    "SigmoidCurve",
    "AugmentedCurve",
    "curve_for",
    "validate_function_params",
    "AdmissionError",
    "BondsError",
    "ErrorCode",
    "FatalError",
    "FatalInvariantError",
    "InsufficientFundsError",
    "MissingRecordError",
    "NumericConvergenceError",
    "FillAction",
    "OrderOutcome",
    "OrderType",
    "Settlement",
]
