"""
Request data models.

Requests are what callers submit to the engine. ``validate_basic`` performs
the stateless checks; anything needing the store (bond existence, reserve
denoms, prices) happens in the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.coins import Coin, Coins, is_valid_denom
from ..core.curves import (
    RESERVE_TOKEN_COUNT,
    FunctionParams,
    FunctionType,
    parse_function_type,
    validate_function_params,
)
from ..core.dec import Dec, ZERO
from ..core.errors import AdmissionError, ErrorCode


# Marks an edit field that should keep its current value.
DO_NOT_MODIFY = "[do-not-modify]"

HUNDRED = Dec.from_int(100)


def _require(value: str, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise AdmissionError(ErrorCode.ARGUMENT_CANNOT_BE_EMPTY, name)


def _require_denom(denom: str) -> None:
    if not is_valid_denom(denom):
        raise AdmissionError(ErrorCode.INVALID_COIN_DENOMINATION, repr(denom))


def _require_non_negative(value: Dec, name: str) -> None:
    if value.is_negative():
        raise AdmissionError(ErrorCode.ARGUMENT_CANNOT_BE_NEGATIVE, name)


def _require_positive(amount: int, name: str) -> None:
    if amount <= 0:
        raise AdmissionError(ErrorCode.ARGUMENT_MUST_BE_POSITIVE, name)


@dataclass(frozen=True)
class CreateBondRequest:
    token: str
    name: str
    description: str
    creator: str
    function_type: FunctionType
    function_parameters: FunctionParams
    reserve_tokens: List[str]
    tx_fee_percentage: Dec
    exit_fee_percentage: Dec
    fee_address: str
    max_supply: Coin
    order_quantity_limits: Coins = field(default_factory=dict)
    sanity_rate: Dec = ZERO
    sanity_margin_percentage: Dec = ZERO
    allow_sells: bool = True
    signers: List[str] = field(default_factory=list)
    # None uses the engine default.
    batch_blocks: Optional[int] = None
    outcome_payment: Coins = field(default_factory=dict)

    def validate_basic(self) -> None:
        _require(self.token, "token")
        _require(self.name, "name")
        _require(self.description, "description")
        _require(self.creator, "creator")
        if not self.reserve_tokens:
            raise AdmissionError(ErrorCode.ARGUMENT_CANNOT_BE_EMPTY, "reserve tokens")
        _require(self.fee_address, "fee address")

        _require_denom(self.token)
        function_type = parse_function_type(self.function_type)
        validate_function_params(function_type, self.function_parameters)

        seen = set()
        for r in self.reserve_tokens:
            if r == self.token:
                raise AdmissionError(ErrorCode.BOND_TOKEN_CANNOT_ALSO_BE_RESERVE_TOKEN, r)
            if r in seen:
                raise AdmissionError(ErrorCode.DUPLICATE_RESERVE_TOKEN, r)
            seen.add(r)
            _require_denom(r)
        expected = RESERVE_TOKEN_COUNT[function_type]
        if len(self.reserve_tokens) != expected:
            raise AdmissionError(
                ErrorCode.INCORRECT_NUMBER_OF_RESERVE_TOKENS,
                f"{function_type.value} requires {expected}",
            )

        if self.max_supply.denom != self.token:
            raise AdmissionError(ErrorCode.MAX_SUPPLY_DENOM_DOES_NOT_MATCH_TOKEN_DENOM)
        _require_non_negative(self.sanity_rate, "sanity rate")
        _require_non_negative(self.sanity_margin_percentage, "sanity margin percentage")
        _require_non_negative(self.tx_fee_percentage, "tx fee percentage")
        _require_non_negative(self.exit_fee_percentage, "exit fee percentage")
        if self.tx_fee_percentage + self.exit_fee_percentage >= HUNDRED:
            raise AdmissionError(ErrorCode.FEES_CANNOT_BE_OR_EXCEED_100_PERCENT)
        if self.batch_blocks is not None:
            _require_positive(self.batch_blocks, "batch blocks")
        _require_positive(self.max_supply.amount, "max supply")
        if not self.signers:
            raise AdmissionError(ErrorCode.ARGUMENT_CANNOT_BE_EMPTY, "signers")


@dataclass(frozen=True)
class EditBondRequest:
    """Fields left as DO_NOT_MODIFY keep their value. An empty sanity rate clears both sanity fields."""
    token: str
    editor: str
    signers: List[str]
    name: str = DO_NOT_MODIFY
    description: str = DO_NOT_MODIFY
    order_quantity_limits: str = DO_NOT_MODIFY
    sanity_rate: str = DO_NOT_MODIFY
    sanity_margin_percentage: str = DO_NOT_MODIFY

    def validate_basic(self, do_not_modify: str = DO_NOT_MODIFY) -> None:
        _require(self.token, "token")
        _require(self.name, "name")
        _require(self.description, "description")
        _require(self.editor, "editor")
        if self.sanity_rate != "" and self.sanity_rate != do_not_modify:
            _require(self.sanity_margin_percentage, "sanity margin percentage")
        edits = (
            self.name,
            self.description,
            self.order_quantity_limits,
            self.sanity_rate,
            self.sanity_margin_percentage,
        )
        if all(e == do_not_modify for e in edits):
            raise AdmissionError(ErrorCode.DID_NOT_EDIT_ANYTHING)


@dataclass(frozen=True)
class BuyRequest:
    buyer: str
    amount: Coin
    max_prices: Coins

    def validate_basic(self) -> None:
        _require(self.buyer, "buyer")
        _require_positive(self.amount.amount, "amount")
        for denom in self.max_prices:
            _require_denom(denom)


@dataclass(frozen=True)
class SellRequest:
    seller: str
    amount: Coin

    def validate_basic(self) -> None:
        _require(self.seller, "seller")
        _require_positive(self.amount.amount, "amount")


@dataclass(frozen=True)
class SwapRequest:
    swapper: str
    bond_token: str
    from_coin: Coin
    to_token: str

    def validate_basic(self) -> None:
        _require(self.swapper, "swapper")
        _require(self.bond_token, "bond token")
        _require(self.to_token, "to token")
        _require_denom(self.to_token)
        if self.from_coin.denom == self.to_token:
            raise AdmissionError(ErrorCode.FROM_AND_TO_CANNOT_BE_THE_SAME_TOKEN)
        _require_positive(self.from_coin.amount, "from amount")


@dataclass(frozen=True)
class OutcomePaymentRequest:
    sender: str
    bond_token: str

    def validate_basic(self) -> None:
        _require(self.sender, "sender")
        _require(self.bond_token, "bond token")


@dataclass(frozen=True)
class WithdrawShareRequest:
    recipient: str
    bond_token: str

    def validate_basic(self) -> None:
        _require(self.recipient, "recipient")
        _require(self.bond_token, "bond token")


def parse_decimal(text: str, name: str) -> Dec:
    try:
        return Dec.from_str(text)
    except ValueError:
        raise AdmissionError(ErrorCode.ARGUMENT_MISSING_OR_NON_DECIMAL, name) from None


def decimal_params(values: Dict[str, str]) -> FunctionParams:
    """Build curve parameters from decimal strings, e.g. {"m": "12", "n": "2", "c": "100"}."""
    return {k: parse_decimal(v, k) for k, v in values.items()}
