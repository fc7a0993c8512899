"""Exception types for the bonds engine.

Two families:

- ``BondsError`` and its subclasses are recoverable. They are reported back to
  whoever submitted a request and leave engine state untouched.
- ``FatalError`` and its subclasses mean a pricing or bookkeeping defect. The
  engine never catches them; the caller must abort the whole step.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """Closed set of recoverable failure codes."""

    # Lookup
    BOND_DOES_NOT_EXIST = "BondDoesNotExist"
    BOND_ALREADY_EXISTS = "BondAlreadyExists"

    # Request validation
    ARGUMENT_CANNOT_BE_EMPTY = "ArgumentCannotBeEmpty"
    ARGUMENT_MUST_BE_POSITIVE = "ArgumentMustBePositive"
    ARGUMENT_CANNOT_BE_NEGATIVE = "ArgumentCannotBeNegative"
    ARGUMENT_MISSING_OR_NON_DECIMAL = "ArgumentMissingOrNonDecimal"
    INVALID_COIN_DENOMINATION = "InvalidCoinDenomination"
    UNRECOGNIZED_FUNCTION_TYPE = "UnrecognizedFunctionType"
    INVALID_FUNCTION_PARAMETER = "InvalidFunctionParameter"
    INCORRECT_NUMBER_OF_RESERVE_TOKENS = "IncorrectNumberOfReserveTokens"
    DUPLICATE_RESERVE_TOKEN = "DuplicateReserveToken"
    BOND_TOKEN_CANNOT_ALSO_BE_RESERVE_TOKEN = "BondTokenCannotAlsoBeReserveToken"
    MAX_SUPPLY_DENOM_DOES_NOT_MATCH_TOKEN_DENOM = "MaxSupplyDenomDoesNotMatchTokenDenom"
    FEES_CANNOT_BE_OR_EXCEED_100_PERCENT = "FeesCannotBeOrExceed100Percent"
    DID_NOT_EDIT_ANYTHING = "DidNotEditAnything"
    SIGNERS_MISMATCH = "SignersMismatch"
    FROM_AND_TO_CANNOT_BE_THE_SAME_TOKEN = "FromAndToCannotBeTheSameToken"

    # Admission
    RESERVE_DENOMS_MISMATCH = "ReserveDenomsMismatch"
    ORDER_QUANTITY_LIMIT_EXCEEDED = "OrderQuantityLimitExceeded"
    CANNOT_MINT_MORE_THAN_MAX_SUPPLY = "CannotMintMoreThanMaxSupply"
    CANNOT_BURN_MORE_THAN_SUPPLY = "CannotBurnMoreThanSupply"
    EXCEEDS_HATCH_SUPPLY = "ExceedsHatchSupply"
    MAX_PRICE_EXCEEDED = "MaxPriceExceeded"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INSUFFICIENT_RESERVE_TO_BUY = "InsufficientReserveToBuy"
    BOND_DOES_NOT_ALLOW_SELLING = "BondDoesNotAllowSelling"
    VALUES_VIOLATE_SANITY_RATE = "ValuesViolateSanityRate"

    # Curve and swap
    CURVE_UNAVAILABLE = "CurveUnavailable"
    FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE = "FunctionNotAvailableForFunctionType"
    TOKEN_IS_NOT_A_VALID_RESERVE_TOKEN = "TokenIsNotAValidReserveToken"
    SWAP_AMOUNT_TOO_SMALL_TO_GIVE_ANY_RETURN = "SwapAmountTooSmallToGiveAnyReturn"
    SWAP_AMOUNT_CAUSES_RESERVE_DEPLETION = "SwapAmountCausesReserveDepletion"

    # Lifecycle
    INVALID_STATE_FOR_ACTION = "InvalidStateForAction"
    CANNOT_MAKE_ZERO_OUTCOME_PAYMENT = "CannotMakeZeroOutcomePayment"
    NO_BOND_TOKENS_OWNED = "NoBondTokensOwned"


class BondsError(Exception):
    """Base class for recoverable engine errors."""


class AdmissionError(BondsError):
    """A request or order was rejected. Carries a closed ``code`` and free-form ``detail``."""

    def __init__(self, code: ErrorCode, detail: Optional[str] = None) -> None:
        if not isinstance(code, ErrorCode):
            raise TypeError("code must be an ErrorCode")
        self.code = code
        self.detail = detail
        msg = code.value if not detail else f"{code.value}: {detail}"
        super().__init__(msg)


class InsufficientFundsError(AdmissionError):
    """Raised by a ledger when an account cannot cover a debit."""

    def __init__(self, account: str, denom: str, balance: int, amount: int) -> None:
        self.account = account
        self.denom = denom
        self.balance = balance
        self.amount = amount
        super().__init__(
            ErrorCode.INSUFFICIENT_FUNDS,
            f"{account} has {balance}{denom}, needs {amount}{denom}",
        )


class FatalError(Exception):
    """Base class for defects that must abort processing."""


class FatalInvariantError(FatalError):
    """Raised when state reached a point the pricing logic should have prevented."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


class MissingRecordError(FatalError):
    """Raised by "must exist" store accessors."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found for {key}")


class NumericConvergenceError(FatalError):
    """Raised when an iterative numeric routine fails to converge."""
