"""
Augmented bonding curve value function.

For a state (R, S) the curve keeps V0 = S^kappa / R constant. These helpers
answer the usual questions about that invariant. Fractional exponents go
through ``Dec.approx_root`` (Newton iteration) so results are deterministic.
"""

from __future__ import annotations

from typing import Tuple

from .dec import MAX_APPROX_ROOT_ITERATIONS, Dec


def invariant(reserve: Dec, supply: Dec, kappa: int) -> Dec:
    """V = S^kappa / R."""
    return supply.power(kappa) / reserve


def supply(reserve: Dec, kappa: int, v0: Dec, max_iterations: int = MAX_APPROX_ROOT_ITERATIONS) -> Dec:
    """S(R) = (V0 * R)^(1/kappa)."""
    return (v0 * reserve).approx_root(kappa, max_iterations)


def reserve(supply_: Dec, kappa: int, v0: Dec) -> Dec:
    """R(S) = S^kappa / V0."""
    return supply_.power(kappa) / v0


def spot_price(reserve_: Dec, kappa: int, v0: Dec, max_iterations: int = MAX_APPROX_ROOT_ITERATIONS) -> Dec:
    """P(R) = kappa * R^((kappa-1)/kappa) / V0^(1/kappa)."""
    numerator = reserve_.power(kappa - 1).approx_root(kappa, max_iterations) * kappa
    return numerator / v0.approx_root(kappa, max_iterations)


def mint(
    delta_r: Dec,
    reserve_: Dec,
    supply_: Dec,
    kappa: int,
    v0: Dec,
    max_iterations: int = MAX_APPROX_ROOT_ITERATIONS,
) -> Tuple[Dec, Dec]:
    """Deposit delta_r. Returns (delta_s minted, realized price delta_r/delta_s)."""
    delta_s = supply(reserve_ + delta_r, kappa, v0, max_iterations) - supply_
    return delta_s, delta_r / delta_s


def mint_alt(delta_s: Dec, reserve_: Dec, supply_: Dec, kappa: int, v0: Dec) -> Tuple[Dec, Dec]:
    """Mint delta_s. Returns (delta_r required, realized price)."""
    delta_r = reserve(supply_ + delta_s, kappa, v0) - reserve_
    return delta_r, delta_r / delta_s


def withdraw(delta_s: Dec, reserve_: Dec, supply_: Dec, kappa: int, v0: Dec) -> Tuple[Dec, Dec]:
    """Burn delta_s. Returns (delta_r withdrawn, realized price)."""
    delta_r = reserve_ - reserve(supply_ - delta_s, kappa, v0)
    return delta_r, delta_r / delta_s
