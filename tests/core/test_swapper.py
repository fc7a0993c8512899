# [TESTER] v1

from __future__ import annotations

import pytest

from batchbonds.core.dec import Dec, dec
from batchbonds.core.errors import AdmissionError, ErrorCode
from batchbonds.core.swapper import (
    apply_swap,
    prices_per_token,
    reserve_delta_for_liquidity_delta,
    reserves_violate_sanity_rate,
    swap_exact_in,
)

_DENOMS = ["res", "rez"]
_TENTH = Dec.from_str("0.1")


def test_prices_per_token() -> None:
    prices = prices_per_token({"res": 10000, "rez": 10000}, _DENOMS, 100)
    assert prices == {"res": dec(100), "rez": dec(100)}


def test_reserve_delta_for_liquidity_delta() -> None:
    deltas = reserve_delta_for_liquidity_delta({"res": 10000, "rez": 10000}, _DENOMS, 10, 2)
    assert deltas == {"res": dec(50000), "rez": dec(50000)}


def test_pricing_without_supply_is_unavailable() -> None:
    with pytest.raises(AdmissionError) as exc:
        prices_per_token({"res": 1, "rez": 1}, _DENOMS, 0)
    assert exc.value.code == ErrorCode.CURVE_UNAVAILABLE


def test_swap_with_fee() -> None:
    out, fee, (new_in, new_out) = swap_exact_in(10000, 10000, 3, _TENTH)
    assert (out, fee) == (1, 1)
    assert (new_in, new_out) == (10002, 9999)


@pytest.mark.parametrize("amount_in", [2, 1, 0])
def test_swap_too_small(amount_in: int) -> None:
    with pytest.raises(AdmissionError) as exc:
        swap_exact_in(10000, 10000, amount_in, _TENTH)
    assert exc.value.code == ErrorCode.SWAP_AMOUNT_TOO_SMALL_TO_GIVE_ANY_RETURN


def test_swap_without_fee() -> None:
    out, fee, reserves = swap_exact_in(200, 300, 100, dec(0))
    assert (out, fee) == (100, 0)
    assert reserves == (300, 200)


def test_swap_that_empties_output_reserve_is_rejected() -> None:
    with pytest.raises(AdmissionError) as exc:
        swap_exact_in(0, 100, 10, dec(0))
    assert exc.value.code == ErrorCode.SWAP_AMOUNT_CAUSES_RESERVE_DEPLETION


def test_swap_never_decreases_k() -> None:
    for amount_in in (3, 17, 999, 123456):
        _, _, (new_in, new_out) = swap_exact_in(10007, 99991, amount_in, _TENTH)
        assert new_in * new_out >= 10007 * 99991


@pytest.mark.parametrize(
    "res,rez,margin,violates",
    [
        (100, 1000, "79", True),
        (100, 1000, "80", False),
        (100, 1000, "81", False),
        (100, 1000, "101", False),
        (1000, 1000, "80", True),
    ],
)
def test_sanity_rate(res: int, rez: int, margin: str, violates: bool) -> None:
    reserves = {"res": res, "rez": rez}
    got = reserves_violate_sanity_rate(reserves, _DENOMS, Dec.from_str("0.5"), Dec.from_str(margin))
    assert got is violates


def test_zero_sanity_rate_disables_check() -> None:
    assert not reserves_violate_sanity_rate({"res": 1, "rez": 10**9}, _DENOMS, dec(0), dec(0))


def test_empty_second_reserve_violates() -> None:
    assert reserves_violate_sanity_rate({"res": 10}, _DENOMS, dec(1), dec(50))


def test_apply_swap() -> None:
    after = apply_swap({"res": 10000, "rez": 10000}, "res", 2, "rez", 1)
    assert after == {"res": 10002, "rez": 9999}
    with pytest.raises(ValueError):
        apply_swap({"res": 1, "rez": 1}, "res", 1, "rez", 2)
