# [TESTER] v1

from __future__ import annotations

import pytest

from batchbonds.core.coins import Coin
from batchbonds.core.dec import Dec, dec
from batchbonds.core.errors import AdmissionError, ErrorCode
from batchbonds.integration.engine import BondsEngine
from batchbonds.state.bonds import BondState
from batchbonds.state.requests import (
    BuyRequest,
    CreateBondRequest,
    EditBondRequest,
    OutcomePaymentRequest,
    SellRequest,
    WithdrawShareRequest,
    decimal_params,
)

_START = 1_000_000


def _augmented_engine() -> BondsEngine:
    engine = BondsEngine()
    engine.create_bond(
        CreateBondRequest(
            token="abc",
            name="Augmented",
            description="augmented bond",
            creator="creator",
            function_type="augmented_function",
            function_parameters=decimal_params({"d0": "500", "p0": "0.01", "theta": "0.4", "kappa": "3"}),
            reserve_tokens=["res"],
            tx_fee_percentage=dec(0),
            exit_fee_percentage=dec(0),
            fee_address="fees",
            max_supply=Coin("abc", 1_000_000),
            signers=["creator"],
            batch_blocks=1,
        )
    )
    engine.ledger.mint("alice", {"res": _START})
    return engine


def _outcome_engine(outcome_payment=None) -> BondsEngine:
    engine = BondsEngine()
    engine.create_bond(
        CreateBondRequest(
            token="abc",
            name="Outcome",
            description="power bond with an outcome",
            creator="creator",
            function_type="power_function",
            function_parameters=decimal_params({"m": "12", "n": "2", "c": "100"}),
            reserve_tokens=["res"],
            tx_fee_percentage=Dec.from_str("0.5"),
            exit_fee_percentage=dec(0),
            fee_address="fees",
            max_supply=Coin("abc", 1_000_000),
            signers=["creator"],
            batch_blocks=1,
            outcome_payment={"res": 99592} if outcome_payment is None else outcome_payment,
        )
    )
    for account in ("alice", "bob", "payer"):
        engine.ledger.mint(account, {"res": _START})
    return engine


def _buy(engine: BondsEngine, who: str, amount: int, max_res: int = 10**5) -> None:
    engine.submit_buy(BuyRequest(who, Coin("abc", amount), {"res": max_res}))


def _code(fn, *args) -> ErrorCode:
    with pytest.raises(AdmissionError) as exc:
        fn(*args)
    return exc.value.code


# --- HATCH -> OPEN ------------------------------------------------------


def test_augmented_bond_starts_in_hatch() -> None:
    engine = _augmented_engine()
    bond = engine.store.must_get_bond("abc")
    assert bond.state == BondState.HATCH
    assert not bond.allow_sells
    assert bond.function_parameters["S0"] == 50000
    assert bond.function_parameters["R0"] == 300
    assert engine.spot_price_from_reserve("abc") == Dec.from_str("0.01")


def test_hatch_buy_splits_payment_between_reserve_and_funding() -> None:
    engine = _augmented_engine()
    _buy(engine, "alice", 20000)
    (settlement,) = engine.end_cycle()

    assert settlement.buy_prices == {"res": Dec.from_str("0.01")}
    (outcome,) = settlement.fills()
    assert outcome.charged_prices == {"res": 200}
    assert outcome.funding == {"res": 80}
    assert engine.current_reserve("abc") == {"res": 120}
    assert engine.ledger.balance_of("fees", "res") == 80
    assert settlement.new_state is None
    assert engine.store.must_get_bond("abc").state == BondState.HATCH


def test_hatch_buy_cannot_cross_s0() -> None:
    engine = _augmented_engine()
    assert _code(_buy, engine, "alice", 50001) == ErrorCode.EXCEEDS_HATCH_SUPPLY
    _buy(engine, "alice", 40000)
    assert _code(_buy, engine, "alice", 10001) == ErrorCode.EXCEEDS_HATCH_SUPPLY


def test_hatch_disallows_selling() -> None:
    engine = _augmented_engine()
    _buy(engine, "alice", 100)
    engine.end_cycle()
    code = _code(engine.submit_sell, SellRequest("alice", Coin("abc", 1)))
    assert code == ErrorCode.BOND_DOES_NOT_ALLOW_SELLING


def test_reaching_s0_opens_the_bond() -> None:
    engine = _augmented_engine()
    _buy(engine, "alice", 50000)
    (settlement,) = engine.end_cycle()

    assert settlement.new_state == "OPEN"
    bond = engine.store.must_get_bond("abc")
    assert bond.state == BondState.OPEN
    assert bond.allow_sells
    assert engine.current_reserve("abc") == {"res": 300}
    assert engine.ledger.balance_of("fees", "res") == 200

    spot = engine.spot_price_from_reserve("abc")
    # kappa * R / S0 = 3 * 300 / 50000, within one unit in the last place.
    assert abs(spot - Dec.from_str("0.018")) <= Dec(1)
    current = engine.current_prices("abc")["res"]
    assert abs(current - Dec.from_str("0.018")) <= Dec.from_str("0.000000000001")



def test_spot_price_with_kappa_five() -> None:
    engine = BondsEngine()
    engine.create_bond(
        CreateBondRequest(
            token="aug",
            name="Augmented",
            description="small augmented bond",
            creator="creator",
            function_type="augmented_function",
            function_parameters=decimal_params({"d0": "1", "p0": "10", "theta": "0.5", "kappa": "5"}),
            reserve_tokens=["res"],
            tx_fee_percentage=dec(0),
            exit_fee_percentage=dec(0),
            fee_address="fees",
            max_supply=Coin("aug", 1000),
            signers=["creator"],
            batch_blocks=1,
        )
    )
    engine.ledger.mint("alice", {"res": 100})
    engine.submit_buy(BuyRequest("alice", Coin("aug", 1), {"res": 100}))
    (settlement,) = engine.end_cycle()
    assert settlement.new_state == "OPEN"
    assert engine.current_reserve("aug") == {"res": 5}

    # V0 = 0.1^5 / 0.5, so P^5 = 5^5 * 5^4 / V0 = 25^5 * 10^4.
    spot = engine.spot_price_from_reserve("aug")
    expected = dec(10000).approx_root(5) * 25
    assert abs(spot - expected) <= Dec.from_str("0.000000000000001")


def test_open_augmented_bond_sells_along_the_curve() -> None:
    engine = _augmented_engine()
    _buy(engine, "alice", 50000)
    engine.end_cycle()

    engine.submit_sell(SellRequest("alice", Coin("abc", 10000)))
    (settlement,) = engine.end_cycle()
    (outcome,) = settlement.fills()
    # reserveAt(40000) = 153.6, so 300 - 153.6 = 146.4 is returned, rounded down.
    assert outcome.returned == {"res": 146}
    assert engine.current_reserve("abc") == {"res": 154}
    assert engine.store.must_get_bond("abc").current_supply == 40000


# --- OPEN -> SETTLE -----------------------------------------------------


def _settled_engine() -> BondsEngine:
    engine = _outcome_engine()
    _buy(engine, "alice", 2)
    _buy(engine, "bob", 1)
    engine.end_cycle()
    assert engine.current_reserve("abc") == {"res": 408}
    engine.make_outcome_payment(OutcomePaymentRequest("payer", "abc"))
    return engine


def test_outcome_payment_moves_bond_to_settle() -> None:
    engine = _settled_engine()
    bond = engine.store.must_get_bond("abc")
    assert bond.state == BondState.SETTLE
    assert engine.current_reserve("abc") == {"res": 100000}
    assert bond.current_reserve == {"res": 100000}
    assert engine.ledger.balance_of("payer", "res") == _START - 99592


def test_withdraw_share_is_pro_rata_and_last_holder_takes_the_dust() -> None:
    engine = _settled_engine()

    paid = engine.withdraw_share(WithdrawShareRequest("alice", "abc"))
    assert paid == {"res": 66666}
    assert engine.ledger.balance_of("alice", "abc") == 0
    assert engine.store.must_get_bond("abc").current_supply == 1
    assert engine.current_reserve("abc") == {"res": 33334}

    paid = engine.withdraw_share(WithdrawShareRequest("bob", "abc"))
    assert paid == {"res": 33334}
    assert engine.current_reserve("abc") == {}
    assert engine.store.must_get_bond("abc").current_supply == 0
    assert engine.ledger.total_supply("abc") == 0


def test_settled_bond_rejects_trading() -> None:
    engine = _settled_engine()
    assert _code(_buy, engine, "alice", 1) == ErrorCode.INVALID_STATE_FOR_ACTION
    code = _code(engine.submit_sell, SellRequest("alice", Coin("abc", 1)))
    assert code == ErrorCode.INVALID_STATE_FOR_ACTION
    code = _code(engine.make_outcome_payment, OutcomePaymentRequest("payer", "abc"))
    assert code == ErrorCode.INVALID_STATE_FOR_ACTION


def test_withdraw_errors() -> None:
    engine = _outcome_engine()
    _buy(engine, "alice", 2)
    engine.end_cycle()
    code = _code(engine.withdraw_share, WithdrawShareRequest("alice", "abc"))
    assert code == ErrorCode.INVALID_STATE_FOR_ACTION

    engine.make_outcome_payment(OutcomePaymentRequest("payer", "abc"))
    code = _code(engine.withdraw_share, WithdrawShareRequest("carol", "abc"))
    assert code == ErrorCode.NO_BOND_TOKENS_OWNED
    code = _code(engine.withdraw_share, WithdrawShareRequest("alice", "nope"))
    assert code == ErrorCode.BOND_DOES_NOT_EXIST


def test_outcome_payment_errors() -> None:
    engine = _outcome_engine(outcome_payment={})
    code = _code(engine.make_outcome_payment, OutcomePaymentRequest("payer", "abc"))
    assert code == ErrorCode.CANNOT_MAKE_ZERO_OUTCOME_PAYMENT

    engine = _outcome_engine()
    _buy(engine, "alice", 2)
    code = _code(engine.make_outcome_payment, OutcomePaymentRequest("payer", "abc"))
    assert code == ErrorCode.INVALID_STATE_FOR_ACTION

    engine = _augmented_engine()
    code = _code(engine.make_outcome_payment, OutcomePaymentRequest("alice", "abc"))
    assert code == ErrorCode.INVALID_STATE_FOR_ACTION


# --- create / edit ------------------------------------------------------


def test_create_bond_twice_is_rejected() -> None:
    engine = _outcome_engine()
    bond = engine.store.must_get_bond("abc")
    request = CreateBondRequest(
        token="abc",
        name="again",
        description="again",
        creator="creator",
        function_type="power_function",
        function_parameters=bond.curve_parameters(),
        reserve_tokens=["res"],
        tx_fee_percentage=dec(0),
        exit_fee_percentage=dec(0),
        fee_address="fees",
        max_supply=Coin("abc", 10),
        signers=["creator"],
    )
    assert _code(engine.create_bond, request) == ErrorCode.BOND_ALREADY_EXISTS


def test_edit_bond() -> None:
    engine = _outcome_engine()
    engine.edit_bond(
        EditBondRequest(
            token="abc",
            editor="creator",
            signers=["creator"],
            name="Renamed",
            order_quantity_limits="10abc",
            sanity_rate="0.5",
            sanity_margin_percentage="20",
        )
    )
    bond = engine.store.must_get_bond("abc")
    assert bond.name == "Renamed"
    assert bond.description == "power bond with an outcome"
    assert bond.order_quantity_limits == {"abc": 10}
    assert bond.sanity_rate == Dec.from_str("0.5")
    assert bond.sanity_margin_percentage == dec(20)

    engine.edit_bond(EditBondRequest(token="abc", editor="creator", signers=["creator"], sanity_rate=""))
    assert bond.sanity_rate == 0
    assert bond.sanity_margin_percentage == 0


def test_edit_bond_errors_leave_bond_untouched() -> None:
    engine = _outcome_engine()
    bond = engine.store.must_get_bond("abc")

    request = EditBondRequest(token="abc", editor="mallory", signers=["mallory"], name="Stolen")
    assert _code(engine.edit_bond, request) == ErrorCode.SIGNERS_MISMATCH

    request = EditBondRequest(
        token="abc", editor="creator", signers=["creator"], name="Renamed", order_quantity_limits="ten"
    )
    assert _code(engine.edit_bond, request) == ErrorCode.INVALID_COIN_DENOMINATION

    request = EditBondRequest(
        token="abc",
        editor="creator",
        signers=["creator"],
        name="Renamed",
        sanity_rate="half",
        sanity_margin_percentage="20",
    )
    assert _code(engine.edit_bond, request) == ErrorCode.ARGUMENT_MISSING_OR_NON_DECIMAL
    assert bond.name == "Outcome"

    request = EditBondRequest(token="nope", editor="creator", signers=["creator"], name="x")
    assert _code(engine.edit_bond, request) == ErrorCode.BOND_DOES_NOT_EXIST
