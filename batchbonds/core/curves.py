"""
Bonding curve pricing.

Each curve maps circulating supply S to a price per token and to the reserve
that backs S (the integral of price from 0 to S):

  Power      price = m*S^n + c
             reserve = m/(n+1) * S^(n+1) + c*S
  Sigmoid    price = a * ((S-b) / sqrt((S-b)^2 + c) + 1)
             reserve = a * (sqrt((S-b)^2 + c) - sqrt(b^2 + c) + S)
  Augmented  reserve = S^kappa / V0,  price = kappa * S^(kappa-1) / V0
             with R0 = d0*(1-theta), S0 = d0/p0, V0 = S0^kappa / R0

The Swapper type has no supply curve; its pricing lives in ``swapper.py``.

Curves are pure: no state, no side effects, all arithmetic in ``Dec``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict, Mapping, Tuple, Union

from .dec import Dec, ONE, ZERO
from .errors import AdmissionError, ErrorCode


@unique
class FunctionType(Enum):
    POWER = "power_function"
    SIGMOID = "sigmoid_function"
    AUGMENTED = "augmented_function"
    SWAPPER = "swapper_function"


FunctionParams = Dict[str, Dec]

REQUIRED_PARAMS: Dict[FunctionType, Tuple[str, ...]] = {
    FunctionType.POWER: ("m", "n", "c"),
    FunctionType.SIGMOID: ("a", "b", "c"),
    FunctionType.AUGMENTED: ("d0", "p0", "theta", "kappa"),
    FunctionType.SWAPPER: (),
}

# Derived constants appended to Augmented parameters at bond creation.
AUGMENTED_DERIVED_PARAMS = ("R0", "S0", "V0")

RESERVE_TOKEN_COUNT: Dict[FunctionType, int] = {
    FunctionType.POWER: 1,
    FunctionType.SIGMOID: 1,
    FunctionType.AUGMENTED: 1,
    FunctionType.SWAPPER: 2,
}


def parse_function_type(value: Union[FunctionType, str]) -> FunctionType:
    if isinstance(value, FunctionType):
        return value
    try:
        return FunctionType(value)
    except ValueError:
        raise AdmissionError(ErrorCode.UNRECOGNIZED_FUNCTION_TYPE, str(value)) from None


def _invalid(detail: str) -> AdmissionError:
    return AdmissionError(ErrorCode.INVALID_FUNCTION_PARAMETER, detail)


def validate_function_params(function_type: FunctionType, params: Mapping[str, Dec]) -> None:
    """
    Check a creation request's parameters.

    Exactly the required names must be present, every value is non-negative,
    and each curve adds its own restrictions.
    """
    required = REQUIRED_PARAMS[function_type]
    if sorted(params) != sorted(required):
        raise _invalid(f"{function_type.value} expects parameters {', '.join(required) or 'none'}")
    for name, value in params.items():
        if not isinstance(value, Dec):
            raise TypeError(f"parameter {name} must be a Dec")
        if value.is_negative():
            raise _invalid(f"{name} cannot be negative")

    if function_type is FunctionType.POWER:
        if not params["n"].is_integer():
            raise _invalid("n must be an integer")
    elif function_type is FunctionType.SIGMOID:
        if params["c"].is_zero():
            raise _invalid("c cannot be zero")
    elif function_type is FunctionType.AUGMENTED:
        if params["d0"].is_zero() or not params["d0"].is_integer():
            raise _invalid("d0 must be a positive integer")
        if params["p0"].is_zero():
            raise _invalid("p0 must be positive")
        if params["theta"] >= ONE:
            raise _invalid("theta must be in [0, 1)")
        if params["kappa"].is_zero() or not params["kappa"].is_integer():
            raise _invalid("kappa must be a positive integer")


@dataclass(frozen=True)
class PowerCurve:
    m: Dec
    n: int
    c: Dec

    def price_at(self, supply: int) -> Dec:
        s = Dec.from_int(supply)
        return self.m * s.power(self.n) + self.c

    def reserve_at(self, supply: int) -> Dec:
        s = Dec.from_int(supply)
        # Multiply before dividing by (n+1) to keep integer results exact.
        return (self.m * s.power(self.n + 1)) / (self.n + 1) + self.c * s

    def mint_cost(self, amount: int, from_supply: int) -> Dec:
        return mint_cost(self, amount, from_supply)

    def burn_return(self, amount: int, from_supply: int) -> Dec:
        return burn_return(self, amount, from_supply)


@dataclass(frozen=True)
class SigmoidCurve:
    a: Dec
    b: Dec
    c: Dec

    def __post_init__(self) -> None:
        if self.c.is_zero():
            raise ValueError("sigmoid c cannot be zero")

    def price_at(self, supply: int) -> Dec:
        x = Dec.from_int(supply) - self.b
        root = (x * x + self.c).approx_sqrt()
        return self.a * (x / root + ONE)

    def reserve_at(self, supply: int) -> Dec:
        s = Dec.from_int(supply)
        x = s - self.b
        first = (x * x + self.c).approx_sqrt()
        constant = (self.b * self.b + self.c).approx_sqrt()
        return self.a * (first - constant + s)

    def mint_cost(self, amount: int, from_supply: int) -> Dec:
        return mint_cost(self, amount, from_supply)

    def burn_return(self, amount: int, from_supply: int) -> Dec:
        return burn_return(self, amount, from_supply)


@dataclass(frozen=True)
class AugmentedCurve:
    """Open-phase curve. Hatch pricing (flat ``p0``) is handled at bond level."""

    d0: Dec
    p0: Dec
    theta: Dec
    kappa: int
    r0: Dec
    s0: Dec
    v0: Dec

    @classmethod
    def from_params(cls, params: Mapping[str, Dec]) -> "AugmentedCurve":
        derived = params if "V0" in params else {**params, **augmented_derived_params(params)}
        return cls(
            d0=params["d0"],
            p0=params["p0"],
            theta=params["theta"],
            kappa=params["kappa"].truncate_int(),
            r0=derived["R0"],
            s0=derived["S0"],
            v0=derived["V0"],
        )

    def price_at(self, supply: int) -> Dec:
        s = Dec.from_int(supply)
        return (s.power(self.kappa - 1) * self.kappa) / self.v0

    def reserve_at(self, supply: int) -> Dec:
        return Dec.from_int(supply).power(self.kappa) / self.v0

    def mint_cost(self, amount: int, from_supply: int) -> Dec:
        return mint_cost(self, amount, from_supply)

    def burn_return(self, amount: int, from_supply: int) -> Dec:
        return burn_return(self, amount, from_supply)


Curve = Union[PowerCurve, SigmoidCurve, AugmentedCurve]


def augmented_derived_params(params: Mapping[str, Dec]) -> FunctionParams:
    """R0 = d0*(1-theta), S0 = d0/p0, V0 = S0^kappa / R0."""
    d0, p0, theta = params["d0"], params["p0"], params["theta"]
    kappa = params["kappa"].truncate_int()
    r0 = d0 * (ONE - theta)
    s0 = d0 / p0
    v0 = s0.power(kappa) / r0
    return {"R0": r0, "S0": s0, "V0": v0}


def curve_for(function_type: FunctionType, params: Mapping[str, Dec]) -> Curve:
    if function_type is FunctionType.POWER:
        return PowerCurve(m=params["m"], n=params["n"].truncate_int(), c=params["c"])
    if function_type is FunctionType.SIGMOID:
        return SigmoidCurve(a=params["a"], b=params["b"], c=params["c"])
    if function_type is FunctionType.AUGMENTED:
        return AugmentedCurve.from_params(params)
    raise AdmissionError(
        ErrorCode.FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE,
        f"{function_type.value} has no supply curve",
    )


def mint_cost(curve: Curve, amount: int, from_supply: int) -> Dec:
    """reserveAt(from_supply + amount) - reserveAt(from_supply)."""
    if amount < 0 or from_supply < 0:
        raise ValueError(f"amount and supply must be non-negative: ({amount}, {from_supply})")
    if amount == 0:
        return ZERO
    return curve.reserve_at(from_supply + amount) - curve.reserve_at(from_supply)


def burn_return(curve: Curve, amount: int, from_supply: int) -> Dec:
    """reserveAt(from_supply) - reserveAt(from_supply - amount)."""
    if amount < 0:
        raise ValueError(f"amount must be non-negative: {amount}")
    if amount > from_supply:
        raise ValueError(f"cannot burn {amount} from supply {from_supply}")
    if amount == 0:
        return ZERO
    return curve.reserve_at(from_supply) - curve.reserve_at(from_supply - amount)
