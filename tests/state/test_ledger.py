# [TESTER] v1

from __future__ import annotations

import pytest

from batchbonds.core.errors import ErrorCode, InsufficientFundsError
from batchbonds.state.balances import InMemoryLedger, Ledger


def test_mint_transfer_burn() -> None:
    ledger = InMemoryLedger()
    ledger.mint("alice", {"res": 100, "rez": 5})
    ledger.transfer("alice", "bob", {"res": 40})
    ledger.burn("bob", {"res": 10})

    assert ledger.balances("alice") == {"res": 60, "rez": 5}
    assert ledger.balance_of("bob", "res") == 30
    assert ledger.total_supply("res") == 90
    assert ledger.verify_non_negative()


def test_transfer_is_all_or_nothing() -> None:
    ledger = InMemoryLedger()
    ledger.mint("alice", {"res": 100, "rez": 5})
    with pytest.raises(InsufficientFundsError) as exc:
        ledger.transfer("alice", "bob", {"res": 50, "rez": 6})
    assert exc.value.code == ErrorCode.INSUFFICIENT_FUNDS
    assert exc.value.denom == "rez"
    assert ledger.balances("alice") == {"res": 100, "rez": 5}
    assert ledger.balances("bob") == {}


def test_burn_requires_balance() -> None:
    ledger = InMemoryLedger()
    with pytest.raises(InsufficientFundsError):
        ledger.burn("alice", {"res": 1})


def test_zero_balances_are_dropped() -> None:
    ledger = InMemoryLedger()
    ledger.mint("alice", {"res": 3})
    ledger.transfer("alice", "bob", {"res": 3})
    assert ledger.balances("alice") == {}
    assert ledger.balance_of("alice", "res") == 0
    assert "1 entries" in repr(ledger)


def test_empty_operations_are_no_ops() -> None:
    ledger = InMemoryLedger()
    ledger.transfer("alice", "bob", {})
    ledger.mint("alice", {"res": 0})
    assert ledger.balances("alice") == {}


def test_in_memory_ledger_is_a_ledger() -> None:
    assert isinstance(InMemoryLedger(), Ledger)
    assert not isinstance(object(), Ledger)
