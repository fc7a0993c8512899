"""
Bond lifecycle: HATCH -> OPEN -> SETTLE.

Augmented bonds start in HATCH with sells disabled and a flat price p0.
They move to OPEN at the batch close where supply first reaches ceil(S0).
Any bond in OPEN moves to SETTLE once its outcome payment is deposited into
the reserve; from then on holders can only withdraw their pro-rata share.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.coins import Coins, coins_to_str, normalize
from ..core.errors import AdmissionError, ErrorCode
from ..state.balances import Ledger
from ..state.bonds import BondState
from ..state.requests import OutcomePaymentRequest, WithdrawShareRequest
from ..state.store import BondStore
from .clearing import ClearingEngine, must_succeed
from .config import EngineConfig

logger = logging.getLogger(__name__)


class LifecycleController:
    def __init__(self, store: BondStore, ledger: Ledger, clearing: ClearingEngine, config: EngineConfig) -> None:
        self.store = store
        self.ledger = ledger
        self.clearing = clearing
        self.config = config

    def maybe_open(self, token: str) -> Optional[BondState]:
        """HATCH -> OPEN once supply reaches ceil(S0). Returns the new state if it changed."""
        bond = self.store.must_get_bond(token)
        if not bond.is_augmented_hatch():
            return None
        if bond.current_supply < bond.hatch_supply_limit():
            return None
        bond.state = BondState.OPEN
        bond.allow_sells = True
        logger.info("bond %s moved from HATCH to OPEN at supply %d", token, bond.current_supply)
        return bond.state

    def make_outcome_payment(self, request: OutcomePaymentRequest) -> Coins:
        """Deposit the bond's outcome payment into its reserve and move it to SETTLE."""
        request.validate_basic()
        bond = self.store.get_bond(request.bond_token)
        if bond is None:
            raise AdmissionError(ErrorCode.BOND_DOES_NOT_EXIST, request.bond_token)
        if bond.state != BondState.OPEN:
            raise AdmissionError(ErrorCode.INVALID_STATE_FOR_ACTION, f"{bond.token} is {bond.state.value}")
        payment = normalize(bond.outcome_payment)
        if not payment:
            raise AdmissionError(ErrorCode.CANNOT_MAKE_ZERO_OUTCOME_PAYMENT, bond.token)
        if self.store.must_get_batch(bond.token).has_open_orders():
            raise AdmissionError(ErrorCode.INVALID_STATE_FOR_ACTION, f"{bond.token} has orders pending in its batch")

        # Raises InsufficientFundsError without moving anything.
        self.ledger.transfer(request.sender, bond.reserve_address, payment)

        bond.state = BondState.SETTLE
        self.clearing.sync_reserve(bond)
        logger.info(
            "outcome payment of %s made to bond %s by %s", coins_to_str(payment), bond.token, request.sender
        )
        return payment

    def withdraw_share(self, request: WithdrawShareRequest) -> Coins:
        """
        Burn all of the recipient's bond tokens and pay out
        floor(reserve * held / supply) of each reserve token.

        The remainder stays in the reserve, so the last holder to withdraw
        collects any dust.
        """
        request.validate_basic()
        bond = self.store.get_bond(request.bond_token)
        if bond is None:
            raise AdmissionError(ErrorCode.BOND_DOES_NOT_EXIST, request.bond_token)
        if bond.state != BondState.SETTLE:
            raise AdmissionError(ErrorCode.INVALID_STATE_FOR_ACTION, f"{bond.token} is {bond.state.value}")

        held = self.ledger.balance_of(request.recipient, bond.token)
        if held == 0:
            raise AdmissionError(ErrorCode.NO_BOND_TOKENS_OWNED, request.recipient)

        reserve = self.clearing.reserve_balances(bond)
        owed = normalize({d: amount * held // bond.current_supply for d, amount in reserve.items()})

        burned = {bond.token: held}
        self.ledger.transfer(request.recipient, self.config.mint_burn_account, burned)
        must_succeed("burn withdrawn tokens", self.ledger.burn, self.config.mint_burn_account, burned)
        must_succeed(
            "pay withdrawn share", self.ledger.transfer, bond.reserve_address, request.recipient, owed
        )

        self.store.set_current_supply(bond.token, bond.current_supply - held)
        self.clearing.sync_reserve(bond)
        logger.info(
            "%s withdrew %s from bond %s for %d tokens", request.recipient, coins_to_str(owed), bond.token, held
        )
        return owed
