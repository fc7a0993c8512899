"""
Constant-product pricing for Swapper bonds.

A Swapper bond holds exactly two reserve tokens. Bond tokens act as liquidity
shares: minting or burning `amount` moves each reserve by
reserve * amount / supply. Swaps between the two reserves follow x*y = k.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Deterministic Rounding
- Time Complexity: O(1) per swap operation
- Invariant: fee is taken from the input before pricing, output is floored,
  so (reserve_in + net_in) * (reserve_out - amount_out) >= k
"""

from __future__ import annotations

from typing import Mapping, Sequence, Tuple

from .coins import Amount, Coins, DecCoins, Denom
from .dec import Dec, ONE, ZERO
from .errors import AdmissionError, ErrorCode
from .rounding import HUNDRED, fee_for


def _require_supply(supply: int) -> None:
    if supply <= 0:
        raise AdmissionError(
            ErrorCode.CURVE_UNAVAILABLE,
            "swapper pricing requires a nonzero current supply",
        )


def prices_per_token(reserves: Mapping[Denom, Amount], denoms: Sequence[Denom], supply: int) -> DecCoins:
    """reserve / supply for each reserve token."""
    _require_supply(supply)
    return {d: Dec.from_ratio(reserves.get(d, 0), supply) for d in sorted(denoms)}


def reserve_delta_for_liquidity_delta(
    reserves: Mapping[Denom, Amount], denoms: Sequence[Denom], amount: int, supply: int
) -> DecCoins:
    """reserve * amount / supply for each reserve token (cost to mint, return on burn)."""
    _require_supply(supply)
    return {d: Dec.from_ratio(reserves.get(d, 0) * amount, supply) for d in sorted(denoms)}


def swap_exact_in(
    reserve_in: Amount,
    reserve_out: Amount,
    amount_in: Amount,
    fee_percentage: Dec,
) -> Tuple[Amount, Amount, Tuple[Amount, Amount]]:
    """
    Compute output for an exact-in swap.

        fee = ceil(amount_in * fee_percentage / 100)
        net_in = amount_in - fee
        amount_out = floor(reserve_out - reserve_in * reserve_out / (reserve_in + net_in))

    Post-swap reserves:
        new_reserve_in = reserve_in + net_in   (fee leaves the pool)
        new_reserve_out = reserve_out - amount_out

    Returns:
        (amount_out, fee, (new_reserve_in, new_reserve_out))

    Raises:
        AdmissionError: SwapAmountTooSmallToGiveAnyReturn if nothing would be
            paid out, SwapAmountCausesReserveDepletion if the output reserve
            would be emptied.
    """
    if reserve_in < 0 or reserve_out < 0:
        raise ValueError(f"Reserves must be non-negative: ({reserve_in}, {reserve_out})")
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative: {amount_in}")

    fee = fee_for(Dec.from_int(amount_in), fee_percentage)
    net_in = amount_in - fee
    if net_in <= 0:
        raise AdmissionError(ErrorCode.SWAP_AMOUNT_TOO_SMALL_TO_GIVE_ANY_RETURN, f"input {amount_in}")

    k = reserve_in * reserve_out
    # floor(out - k/d) == out - ceil(k/d)
    d = reserve_in + net_in
    amount_out = reserve_out - (k + d - 1) // d
    if amount_out <= 0:
        raise AdmissionError(ErrorCode.SWAP_AMOUNT_TOO_SMALL_TO_GIVE_ANY_RETURN, f"input {amount_in}")
    if amount_out >= reserve_out:
        raise AdmissionError(ErrorCode.SWAP_AMOUNT_CAUSES_RESERVE_DEPLETION, f"output {amount_out}")

    new_reserve_in = reserve_in + net_in
    new_reserve_out = reserve_out - amount_out
    if new_reserve_in * new_reserve_out < k:
        raise ValueError(f"Invariant violation: new_k ({new_reserve_in * new_reserve_out}) < old_k ({k})")
    return amount_out, fee, (new_reserve_in, new_reserve_out)


def reserves_violate_sanity_rate(
    reserves: Mapping[Denom, Amount],
    denoms: Sequence[Denom],
    sanity_rate: Dec,
    sanity_margin_percentage: Dec,
) -> bool:
    """
    True if reserve[denoms[0]] / reserve[denoms[1]] falls outside
    [rate * (1 - m/100), rate * (1 + m/100)]. The lower bound is clamped at
    zero. A zero sanity rate disables the check.
    """
    if sanity_rate.is_zero():
        return False
    first, second = denoms[0], denoms[1]
    r2 = reserves.get(second, 0)
    if r2 == 0:
        return True
    current = Dec.from_ratio(reserves.get(first, 0), r2)
    margin = sanity_margin_percentage / HUNDRED
    upper = sanity_rate * (ONE + margin)
    lower = sanity_rate * (ONE - margin)
    if lower < ZERO:
        lower = ZERO
    return current < lower or current > upper


def apply_swap(reserves: Mapping[Denom, Amount], from_denom: Denom, net_in: Amount, to_denom: Denom, amount_out: Amount) -> Coins:
    """Reserves after a swap, used for the sanity check before any transfer."""
    out = dict(reserves)
    out[from_denom] = out.get(from_denom, 0) + net_in
    out[to_denom] = out.get(to_denom, 0) - amount_out
    if out[to_denom] < 0:
        raise ValueError(f"reserve of {to_denom} would go negative")
    return {d: out[d] for d in sorted(out) if out[d]}
