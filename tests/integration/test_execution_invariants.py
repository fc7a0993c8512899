# [TESTER] v1

from __future__ import annotations

import pytest

from batchbonds.core.coins import Coin
from batchbonds.core.dec import Dec, dec
from batchbonds.core.errors import ErrorCode, FatalInvariantError
from batchbonds.integration.engine import BondsEngine
from batchbonds.state.requests import BuyRequest, CreateBondRequest, decimal_params


def _engine(function_type: str, params: dict, tx: str = "0.5") -> BondsEngine:
    engine = BondsEngine()
    engine.create_bond(
        CreateBondRequest(
            token="abc",
            name="A B C",
            description="execution checks",
            creator="creator",
            function_type=function_type,
            function_parameters=decimal_params(params),
            reserve_tokens=["res"],
            tx_fee_percentage=Dec.from_str(tx),
            exit_fee_percentage=dec(0),
            fee_address="fees",
            max_supply=Coin("abc", 1_000_000),
            signers=["creator"],
            batch_blocks=1,
        )
    )
    engine.ledger.mint("alice", {"res": 1_000_000})
    return engine


def test_buy_above_its_max_price_at_execution_is_fatal() -> None:
    engine = _engine("power_function", {"m": "12", "n": "2", "c": "100"})
    engine.submit_buy(BuyRequest("alice", Coin("abc", 10), {"res": 10000}))
    order = engine.batch("abc").buys[0]
    escrow = engine.config.batches_intermediary_account

    # 10 at 1000 costs 10000 plus a fee of 50.
    with pytest.raises(FatalInvariantError) as exc:
        engine.clearing.perform_buy("abc", order, {"res": dec(1000)})
    assert "max prices" in str(exc.value)
    assert engine.ledger.balance_of(escrow, "res") == 10000
    assert engine.ledger.balance_of("alice", "abc") == 0


def test_hatch_reserve_above_its_target_is_fatal() -> None:
    params = {"d0": "500", "p0": "0.01", "theta": "0.4", "kappa": "3"}
    engine = _engine("augmented_function", params, tx="0")
    engine.submit_buy(BuyRequest("alice", Coin("abc", 100), {"res": 100}))
    # The hatch target after this buy is ceil(0.01 * 100 * 0.6) = 1.
    reserve_account = engine.store.must_get_bond("abc").reserve_address
    engine.ledger.mint(reserve_account, {"res": 10})

    with pytest.raises(FatalInvariantError) as exc:
        engine.end_cycle()
    assert ErrorCode.INSUFFICIENT_RESERVE_TO_BUY.value in str(exc.value)
