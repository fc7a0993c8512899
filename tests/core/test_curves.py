# [TESTER] v1

from __future__ import annotations

import pytest

from batchbonds.core.curves import (
    AugmentedCurve,
    FunctionType,
    PowerCurve,
    SigmoidCurve,
    augmented_derived_params,
    burn_return,
    curve_for,
    mint_cost,
    parse_function_type,
    validate_function_params,
)
from batchbonds.core.dec import Dec, dec
from batchbonds.core.errors import AdmissionError, ErrorCode

_TOL = Dec.from_str("0.000000000001")


def _near(actual: Dec, expected: str, tol: Dec = _TOL) -> bool:
    return abs(actual - Dec.from_str(expected)) <= tol


def _power() -> PowerCurve:
    return PowerCurve(m=dec(12), n=2, c=dec(100))


def _augmented_params() -> dict:
    return {"d0": dec(500), "p0": Dec.from_str("0.01"), "theta": Dec.from_str("0.4"), "kappa": dec(3)}


@pytest.mark.parametrize("supply,price", [(0, 100), (10, 1300), (100, 120100), (1000, 12000100)])
def test_power_price(supply: int, price: int) -> None:
    assert _power().price_at(supply) == price


def test_power_reserve_and_mint_cost() -> None:
    curve = _power()
    assert curve.reserve_at(100) == 4010000
    assert curve.reserve_at(0) == 0
    assert curve.mint_cost(10, 0) == 5000
    assert curve.mint_cost(0, 50) == 0


def test_mint_then_burn_returns_the_same_reserve() -> None:
    curve = _power()
    cost = mint_cost(curve, 7, 13)
    assert burn_return(curve, 7, 20) == cost


def test_burn_more_than_supply_is_rejected() -> None:
    with pytest.raises(ValueError):
        burn_return(_power(), 3, 2)
    with pytest.raises(ValueError):
        mint_cost(_power(), -1, 0)


def test_sigmoid_price_and_reserve() -> None:
    curve = SigmoidCurve(a=dec(3), b=dec(5), c=dec(1))
    assert _near(curve.price_at(100), "5.999833808824623900")
    assert _near(curve.price_at(1000), "5.999998484887893066")
    assert _near(curve.reserve_at(100), "569.718730495548543525")
    assert curve.reserve_at(0) == 0


def test_sigmoid_rejects_zero_c() -> None:
    with pytest.raises(ValueError):
        SigmoidCurve(a=dec(3), b=dec(5), c=dec(0))


def test_augmented_derived_params() -> None:
    derived = augmented_derived_params(_augmented_params())
    assert derived["R0"] == 300
    assert derived["S0"] == 50000
    assert _near(derived["V0"], "416666666666.666666666666666667", Dec.from_str("0.000001"))


def test_augmented_open_prices() -> None:
    curve = AugmentedCurve.from_params(_augmented_params())
    assert curve.kappa == 3
    assert _near(curve.price_at(50000), "0.018")
    assert _near(curve.price_at(100000), "0.072")
    assert _near(curve.price_at(10_000_000), "720", Dec.from_str("0.000001"))


def test_augmented_reserve() -> None:
    curve = AugmentedCurve.from_params(_augmented_params())
    assert _near(curve.reserve_at(1), "0.0000000000024")
    assert _near(curve.reserve_at(50000), "300")


def test_curve_for_dispatches_on_type() -> None:
    power = curve_for(FunctionType.POWER, {"m": dec(12), "n": dec(2), "c": dec(100)})
    assert power == _power()
    with pytest.raises(AdmissionError) as exc:
        curve_for(FunctionType.SWAPPER, {})
    assert exc.value.code == ErrorCode.FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE


def test_parse_function_type() -> None:
    assert parse_function_type("power_function") is FunctionType.POWER
    assert parse_function_type(FunctionType.SWAPPER) is FunctionType.SWAPPER
    with pytest.raises(AdmissionError) as exc:
        parse_function_type("linear_function")
    assert exc.value.code == ErrorCode.UNRECOGNIZED_FUNCTION_TYPE


@pytest.mark.parametrize(
    "function_type,params",
    [
        (FunctionType.POWER, {"m": dec(1), "n": dec(2)}),
        (FunctionType.POWER, {"m": dec(1), "n": Dec.from_str("1.5"), "c": dec(0)}),
        (FunctionType.POWER, {"m": dec(-1), "n": dec(2), "c": dec(0)}),
        (FunctionType.SIGMOID, {"a": dec(1), "b": dec(2), "c": dec(0)}),
        (FunctionType.AUGMENTED, {"d0": dec(500), "p0": dec(0), "theta": dec(0), "kappa": dec(3)}),
        (FunctionType.AUGMENTED, {"d0": dec(500), "p0": dec(1), "theta": dec(1), "kappa": dec(3)}),
        (FunctionType.AUGMENTED, {"d0": dec(500), "p0": dec(1), "theta": dec(0), "kappa": dec(0)}),
        (FunctionType.SWAPPER, {"m": dec(1)}),
    ],
)
def test_invalid_function_params(function_type: FunctionType, params: dict) -> None:
    with pytest.raises(AdmissionError) as exc:
        validate_function_params(function_type, params)
    assert exc.value.code == ErrorCode.INVALID_FUNCTION_PARAMETER


def test_valid_function_params() -> None:
    validate_function_params(FunctionType.POWER, {"m": dec(12), "n": dec(2), "c": dec(100)})
    validate_function_params(FunctionType.AUGMENTED, _augmented_params())
    validate_function_params(FunctionType.SWAPPER, {})
