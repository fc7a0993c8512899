"""
Bond configuration and market state.

One Bond exists per bond-token denom. Curve type, parameters and reserve
tokens are fixed at creation; supply, reserve, lifecycle state and the
editable fields change afterwards.

Bond-level pricing evaluates the curve against the *actual* reserve balances,
so any reserve surplus or deficit relative to the curve is absorbed by the
next mint or burn.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple

from ..core import swapper
from ..core.coins import (
    Amount,
    Coin,
    Coins,
    DecCoins,
    Denom,
    dec_coins_for,
    exceeds_limits,
    normalize,
)
from ..core.curves import (
    AUGMENTED_DERIVED_PARAMS,
    Curve,
    FunctionParams,
    FunctionType,
    curve_for,
)
from ..core.dec import Dec, ZERO
from ..core.errors import AdmissionError, ErrorCode
from ..core.rounding import fees_for


class BondState(Enum):
    HATCH = "HATCH"
    OPEN = "OPEN"
    SETTLE = "SETTLE"


def reserve_account_for(token: str) -> str:
    """Escrow account holding a bond's reserve."""
    return f"bonds/{token}/reserveAddress"


@dataclass
class Bond:
    """
    State of a single bond.

    Attributes:
        token: Bond token denom (unique key)
        name, description: Free text, editable
        creator: Creator account
        function_type: Curve family
        function_parameters: Curve parameters (Augmented also carries R0, S0, V0)
        reserve_tokens: Reserve denoms, in creation order
        tx_fee_percentage: Fee on buys, sells and swaps, in percent
        exit_fee_percentage: Extra fee on sells, in percent
        fee_address: Receives fees (and Hatch-phase funding)
        max_supply: Upper bound on current_supply
        reserve_address: Escrow account holding the reserve
        order_quantity_limits: Per-order cap by denom; missing or zero means unlimited
        sanity_rate: Swapper reserve-ratio anchor; zero disables the check
        sanity_margin_percentage: Allowed deviation from sanity_rate, in percent
        allow_sells: Whether sell orders are admitted
        signers: Accounts allowed to edit the bond, in order
        batch_blocks: Cycles per batch
        outcome_payment: Reserve deposit required to enter SETTLE
        state: Lifecycle state
        current_supply: Bond tokens in circulation
        current_reserve: Reserve balances held in reserve_address
    """
    token: str
    name: str
    description: str
    creator: str
    function_type: FunctionType
    function_parameters: FunctionParams
    reserve_tokens: List[Denom]
    tx_fee_percentage: Dec
    exit_fee_percentage: Dec
    fee_address: str
    max_supply: Amount
    reserve_address: str = ""
    order_quantity_limits: Coins = field(default_factory=dict)
    sanity_rate: Dec = ZERO
    sanity_margin_percentage: Dec = ZERO
    allow_sells: bool = True
    signers: List[str] = field(default_factory=list)
    batch_blocks: int = 1
    outcome_payment: Coins = field(default_factory=dict)
    state: BondState = BondState.OPEN
    current_supply: Amount = 0
    current_reserve: Coins = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.reserve_address:
            self.reserve_address = reserve_account_for(self.token)
        self.order_quantity_limits = normalize(self.order_quantity_limits)
        self.outcome_payment = normalize(self.outcome_payment)
        self.current_reserve = normalize(self.current_reserve)
        violations = self.check_invariants()
        if violations:
            raise ValueError(f"invalid bond {self.token}: {', '.join(violations)}")

    # --- invariants -----------------------------------------------------

    def check_invariants(self) -> List[str]:
        """Return a list of violated invariants (empty if the bond is consistent)."""
        violations = []
        if self.current_supply < 0:
            violations.append("current_supply < 0")
        if self.current_supply > self.max_supply:
            violations.append("current_supply > max_supply")
        if any(v < 0 for v in self.current_reserve.values()):
            violations.append("current_reserve has a negative entry")
        if self.is_augmented() and self.state == BondState.HATCH:
            if self.allow_sells:
                violations.append("allow_sells during HATCH")
            if self.current_supply > self.hatch_supply_limit():
                violations.append("current_supply > ceil(S0) during HATCH")
        return violations

    # --- curve access ---------------------------------------------------

    def is_augmented(self) -> bool:
        return self.function_type == FunctionType.AUGMENTED

    def is_swapper(self) -> bool:
        return self.function_type == FunctionType.SWAPPER

    def is_augmented_hatch(self) -> bool:
        return self.is_augmented() and self.state == BondState.HATCH

    def curve(self) -> Curve:
        return curve_for(self.function_type, self.function_parameters)

    def hatch_supply_limit(self) -> int:
        """ceil(S0): the supply at which an Augmented bond leaves HATCH."""
        return self.function_parameters["S0"].ceil_int()

    def curve_parameters(self) -> FunctionParams:
        """Creation parameters without derived constants."""
        return {
            k: v for k, v in self.function_parameters.items() if k not in AUGMENTED_DERIVED_PARAMS
        }

    # --- pricing --------------------------------------------------------

    def _reserve(self, reserve: Optional[Mapping[Denom, Amount]]) -> Mapping[Denom, Amount]:
        return self.current_reserve if reserve is None else reserve

    def new_reserve_dec_coins(self, amount: Dec) -> DecCoins:
        """``amount`` for every reserve token."""
        return dec_coins_for(self.reserve_tokens, amount)

    def prices_at_supply(self, supply: Amount) -> DecCoins:
        if self.is_swapper():
            raise AdmissionError(
                ErrorCode.FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE,
                "swapper bonds have no price at an arbitrary supply",
            )
        if self.is_augmented_hatch():
            return self.new_reserve_dec_coins(self.function_parameters["p0"])
        return self.new_reserve_dec_coins(self.curve().price_at(supply))

    def current_prices_pt(self, reserve: Optional[Mapping[Denom, Amount]] = None) -> DecCoins:
        """Current price per token for each reserve token."""
        if self.is_swapper():
            return swapper.prices_per_token(self._reserve(reserve), self.reserve_tokens, self.current_supply)
        return self.prices_at_supply(self.current_supply)

    def reserve_at_supply(self, supply: Amount) -> Dec:
        return self.curve().reserve_at(supply)

    def prices_to_mint(self, amount: Amount, reserve: Optional[Mapping[Denom, Amount]] = None) -> DecCoins:
        """Reserve required to mint ``amount`` more tokens, per reserve token."""
        balances = self._reserve(reserve)
        if self.is_swapper():
            return swapper.reserve_delta_for_liquidity_delta(
                balances, self.reserve_tokens, amount, self.current_supply
            )
        if self.is_augmented_hatch():
            return self.new_reserve_dec_coins(self.function_parameters["p0"] * amount)
        target = self.reserve_at_supply(self.current_supply + amount)
        out: DecCoins = {}
        for d in sorted(self.reserve_tokens):
            price = target - balances.get(d, 0)
            out[d] = price if price > ZERO else ZERO
        return out

    def returns_for_burn(self, amount: Amount, reserve: Optional[Mapping[Denom, Amount]] = None) -> DecCoins:
        """Reserve released by burning ``amount`` tokens, per reserve token."""
        balances = self._reserve(reserve)
        if self.is_swapper():
            return swapper.reserve_delta_for_liquidity_delta(
                balances, self.reserve_tokens, amount, self.current_supply
            )
        if amount > self.current_supply:
            raise AdmissionError(ErrorCode.CANNOT_BURN_MORE_THAN_SUPPLY, f"{amount}{self.token}")
        target = self.reserve_at_supply(self.current_supply - amount)
        out: DecCoins = {}
        for d in sorted(self.reserve_tokens):
            ret = Dec.from_int(balances.get(d, 0)) - target
            out[d] = ret if ret > ZERO else ZERO
        return out

    def returns_for_swap(
        self, from_coin: Coin, to_denom: Denom, reserve: Optional[Mapping[Denom, Amount]] = None
    ) -> Tuple[Coin, Coin]:
        """(output coin, fee coin) for swapping ``from_coin`` into ``to_denom``."""
        if not self.is_swapper():
            raise AdmissionError(ErrorCode.FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE, self.function_type.value)
        for denom in (from_coin.denom, to_denom):
            if denom not in self.reserve_tokens:
                raise AdmissionError(ErrorCode.TOKEN_IS_NOT_A_VALID_RESERVE_TOKEN, denom)
        balances = self._reserve(reserve)
        amount_out, fee, _ = swapper.swap_exact_in(
            balances.get(from_coin.denom, 0),
            balances.get(to_denom, 0),
            from_coin.amount,
            self.tx_fee_percentage,
        )
        return Coin(to_denom, amount_out), Coin(from_coin.denom, fee)

    # --- fees -----------------------------------------------------------

    def tx_fees(self, amounts: Mapping[Denom, Dec]) -> Coins:
        return fees_for(amounts, self.tx_fee_percentage)

    def exit_fees(self, amounts: Mapping[Denom, Dec]) -> Coins:
        return fees_for(amounts, self.exit_fee_percentage)

    # --- checks ---------------------------------------------------------

    def reserves_violate_sanity_rate(self, reserve: Mapping[Denom, Amount]) -> bool:
        return swapper.reserves_violate_sanity_rate(
            reserve, sorted(self.reserve_tokens), self.sanity_rate, self.sanity_margin_percentage
        )

    def reserve_denoms_equal_to(self, denoms: Sequence[Denom]) -> bool:
        """Same set of denoms as the reserve tokens, in any order."""
        return len(denoms) == len(self.reserve_tokens) and set(denoms) == set(self.reserve_tokens)

    def any_order_quantity_limits_exceeded(self, coins: Mapping[Denom, Amount]) -> bool:
        return exceeds_limits(coins, self.order_quantity_limits)

    def signers_equal_to(self, signers: Sequence[str]) -> bool:
        return list(signers) == list(self.signers)

    def __repr__(self) -> str:
        return (
            f"Bond(token={self.token}, type={self.function_type.value}, "
            f"state={self.state.value}, supply={self.current_supply}/{self.max_supply}, "
            f"reserve={self.current_reserve})"
        )
