"""
Rounding and fee helpers (deterministic, direction-explicit).

Direction rules used across settlement:
- anything the protocol receives (reserve prices, fees) rounds up
- anything the protocol pays out (reserve returns) rounds down

So a fee on a nonzero amount at a nonzero percentage is never zero, and the
reserve never ends up owing fractional dust to a user.
"""

from __future__ import annotations

from typing import Mapping

from .coins import Coins, Denom, normalize
from .dec import SCALE, Dec, ZERO

HUNDRED = Dec.from_int(100)


def round_reserve_price(value: Dec) -> int:
    return value.ceil_int()


def round_reserve_return(value: Dec) -> int:
    return value.floor_int()


def round_fee(value: Dec) -> int:
    return value.ceil_int()


def round_reserve_prices(values: Mapping[Denom, Dec]) -> Coins:
    return normalize({d: round_reserve_price(v) for d, v in values.items()})


def round_reserve_returns(values: Mapping[Denom, Dec]) -> Coins:
    return normalize({d: round_reserve_return(v) for d, v in values.items()})


def fee_for(amount: Dec, percentage: Dec) -> int:
    """ceil(amount * percentage / 100)."""
    if percentage.is_negative():
        raise ValueError(f"fee percentage must be non-negative: {percentage}")
    if amount.is_negative():
        raise ValueError(f"fee base must be non-negative: {amount}")
    # Exact on raw values; a tiny percentage must not round to a zero rate first.
    return -(-(amount.raw * percentage.raw) // (100 * SCALE * SCALE))


def fees_for(amounts: Mapping[Denom, Dec], percentage: Dec) -> Coins:
    return normalize({d: fee_for(v, percentage) for d, v in amounts.items()})


def adjust_fees(fees: Mapping[Denom, int], max_fees: Mapping[Denom, int]) -> Coins:
    """
    Cap each fee at the amount available for it.

    A denom missing from ``max_fees`` caps to 0; denoms absent from ``fees``
    are not introduced.
    """
    return normalize({d: min(f, max_fees.get(d, 0)) for d, f in fees.items()})


def percentage_of(value: Dec, percentage: Dec) -> Dec:
    if percentage.is_zero():
        return ZERO
    return value * (percentage / HUNDRED)
