"""
Bonds engine: the request-handling surface.

Wires the store, the ledger and the clearing/lifecycle components together.
Every submission is checked in full before the first ledger call, so a
rejected request never leaves funds half-moved:
- stateless checks (``validate_basic``)
- bond lookup, state and denom checks
- balance and price checks
- escrow transfer, then the order is added to the batch

``on_cycle_elapsed`` is the only entry point that executes orders.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Tuple

from ..core import augmented
from ..core.coins import Coin, Coins, DecCoins, Denom, coins_to_str, normalize, parse_coins
from ..core.curves import FunctionType, augmented_derived_params, parse_function_type
from ..core.dec import ZERO, Dec
from ..core.errors import AdmissionError, ErrorCode, InsufficientFundsError
from ..core.settlement import Settlement
from ..state.balances import InMemoryLedger, Ledger
from ..state.batch import Batch, BuyOrder, SellOrder, SwapOrder, new_buy_order, new_sell_order, new_swap_order
from ..state.bonds import Bond, BondState
from ..state.requests import (
    BuyRequest,
    CreateBondRequest,
    EditBondRequest,
    OutcomePaymentRequest,
    SellRequest,
    SwapRequest,
    WithdrawShareRequest,
    parse_decimal,
)
from ..state.store import BondStore
from .clearing import ClearingEngine, must_succeed
from .config import EngineConfig
from .lifecycle import LifecycleController

logger = logging.getLogger(__name__)


class BondsEngine:
    """
    Entry points for creating bonds, submitting orders and closing batches.

    Args:
        store: Bond and batch storage (a fresh ``BondStore`` if omitted)
        ledger: Any ``Ledger`` (a fresh ``InMemoryLedger`` if omitted)
        config: Account names and tunables
    """

    def __init__(
        self,
        store: Optional[BondStore] = None,
        ledger: Optional[Ledger] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.store = store if store is not None else BondStore()
        self.ledger = ledger if ledger is not None else InMemoryLedger()
        self.config = config if config is not None else EngineConfig()
        self.clearing = ClearingEngine(self.store, self.ledger, self.config)
        self.lifecycle = LifecycleController(self.store, self.ledger, self.clearing, self.config)

    # --- helpers --------------------------------------------------------

    def _bond(self, token: str) -> Bond:
        bond = self.store.get_bond(token)
        if bond is None:
            raise AdmissionError(ErrorCode.BOND_DOES_NOT_EXIST, token)
        return bond

    def _require_funds(self, account: str, coins: Mapping[Denom, int]) -> None:
        for denom, amount in coins.items():
            have = self.ledger.balance_of(account, denom)
            if have < amount:
                raise InsufficientFundsError(account, denom, have, amount)

    @staticmethod
    def _require_trading(bond: Bond) -> None:
        if bond.state == BondState.SETTLE:
            raise AdmissionError(ErrorCode.INVALID_STATE_FOR_ACTION, f"{bond.token} is settled")

    # --- bonds ----------------------------------------------------------

    def create_bond(self, request: CreateBondRequest) -> Bond:
        request.validate_basic()
        if self.store.bond_exists(request.token):
            raise AdmissionError(ErrorCode.BOND_ALREADY_EXISTS, request.token)

        function_type = parse_function_type(request.function_type)
        batch_blocks = request.batch_blocks
        if batch_blocks is None:
            batch_blocks = self.config.default_batch_blocks
        params = dict(request.function_parameters)
        state = BondState.OPEN
        allow_sells = request.allow_sells
        # Augmented bonds carry R0, S0 and V0 and start in HATCH with sells off.
        if function_type == FunctionType.AUGMENTED:
            params.update(augmented_derived_params(params))
            state = BondState.HATCH
            allow_sells = False

        bond = Bond(
            token=request.token,
            name=request.name,
            description=request.description,
            creator=request.creator,
            function_type=function_type,
            function_parameters=params,
            reserve_tokens=list(request.reserve_tokens),
            tx_fee_percentage=request.tx_fee_percentage,
            exit_fee_percentage=request.exit_fee_percentage,
            fee_address=request.fee_address,
            max_supply=request.max_supply.amount,
            order_quantity_limits=dict(request.order_quantity_limits),
            sanity_rate=request.sanity_rate,
            sanity_margin_percentage=request.sanity_margin_percentage,
            allow_sells=allow_sells,
            signers=list(request.signers),
            batch_blocks=batch_blocks,
            outcome_payment=dict(request.outcome_payment),
            state=state,
        )
        self.store.set_bond(bond)
        self.store.set_batch(bond.token, Batch.new(bond.token, bond.batch_blocks))
        logger.info(
            "bond %s with reserve(s) [%s] created by %s",
            bond.token,
            ",".join(bond.reserve_tokens),
            request.creator,
        )
        return bond

    def edit_bond(self, request: EditBondRequest) -> Bond:
        sentinel = self.config.do_not_modify
        request.validate_basic(sentinel)
        bond = self._bond(request.token)
        if not bond.signers_equal_to(request.signers):
            raise AdmissionError(ErrorCode.SIGNERS_MISMATCH, "list of signers does not match the one in the bond")

        # Parse everything first so a bad field leaves the bond untouched.
        name = bond.name if request.name == sentinel else request.name
        description = bond.description if request.description == sentinel else request.description

        limits = bond.order_quantity_limits
        if request.order_quantity_limits != sentinel:
            try:
                limits = parse_coins(request.order_quantity_limits)
            except ValueError as err:
                raise AdmissionError(ErrorCode.INVALID_COIN_DENOMINATION, str(err)) from None

        rate, margin = bond.sanity_rate, bond.sanity_margin_percentage
        if request.sanity_rate != sentinel:
            if request.sanity_rate == "":
                rate, margin = ZERO, ZERO
            else:
                rate = parse_decimal(request.sanity_rate, "sanity rate")
                if rate.is_negative():
                    raise AdmissionError(ErrorCode.ARGUMENT_CANNOT_BE_NEGATIVE, "sanity rate")
                margin = parse_decimal(request.sanity_margin_percentage, "sanity margin percentage")
                if margin.is_negative():
                    raise AdmissionError(ErrorCode.ARGUMENT_CANNOT_BE_NEGATIVE, "sanity margin percentage")

        bond.name = name
        bond.description = description
        bond.order_quantity_limits = limits
        bond.sanity_rate = rate
        bond.sanity_margin_percentage = margin
        logger.info("bond %s edited by %s", bond.token, request.editor)
        return bond

    # --- orders ---------------------------------------------------------

    def submit_buy(self, request: BuyRequest) -> BuyOrder:
        """
        Admit a buy into the current batch, escrowing ``max_prices``.

        The first buy into a Swapper bond with zero supply is executed at once:
        ``max_prices`` becomes the initial reserve and ``amount`` is minted.
        """
        request.validate_basic()
        token = request.amount.denom
        bond = self._bond(token)
        self._require_trading(bond)

        max_prices = normalize(request.max_prices)
        if not bond.reserve_denoms_equal_to(list(max_prices)):
            raise AdmissionError(
                ErrorCode.RESERVE_DENOMS_MISMATCH,
                f"{','.join(max_prices)} not equal to reserve tokens {','.join(bond.reserve_tokens)}",
            )
        if bond.any_order_quantity_limits_exceeded(request.amount.as_coins()):
            raise AdmissionError(ErrorCode.ORDER_QUANTITY_LIMIT_EXCEEDED, str(request.amount))

        order = new_buy_order(request.buyer, request.amount, max_prices)
        if bond.is_swapper() and bond.current_supply == 0:
            self._first_swapper_buy(bond, order)
            return order

        self._require_funds(request.buyer, max_prices)
        buy_prices, sell_prices = self.clearing.updated_prices_after_buy(token, order)

        self.ledger.transfer(request.buyer, self.config.batches_intermediary_account, max_prices)
        self.clearing.add_buy_order(token, order, buy_prices, sell_prices)
        self.clearing.cancel_unfulfillable_orders(token)
        return order

    def _first_swapper_buy(self, bond: Bond, order: BuyOrder) -> None:
        if bond.reserves_violate_sanity_rate(order.max_prices):
            raise AdmissionError(ErrorCode.VALUES_VIOLATE_SANITY_RATE, coins_to_str(order.max_prices))
        if order.amount.amount > bond.max_supply:
            raise AdmissionError(ErrorCode.CANNOT_MINT_MORE_THAN_MAX_SUPPLY, f"{bond.max_supply}{bond.token}")

        # Raises InsufficientFundsError without moving anything.
        self.ledger.transfer(order.address, bond.reserve_address, order.max_prices)

        minted = order.amount.as_coins()
        must_succeed("mint bond tokens", self.ledger.mint, self.config.mint_burn_account, minted)
        must_succeed("send bond tokens", self.ledger.transfer, self.config.mint_burn_account, order.address, minted)
        self.store.set_current_supply(bond.token, bond.current_supply + order.amount.amount)
        self.clearing.sync_reserve(bond)
        logger.info(
            "initialised swapper bond %s with %s from %s", bond.token, bond.current_reserve, order.address
        )

    def submit_sell(self, request: SellRequest) -> SellOrder:
        """Admit a sell into the current batch. The sold tokens are burned immediately."""
        request.validate_basic()
        token = request.amount.denom
        bond = self._bond(token)
        self._require_trading(bond)
        if not bond.allow_sells:
            raise AdmissionError(ErrorCode.BOND_DOES_NOT_ALLOW_SELLING, token)
        if bond.any_order_quantity_limits_exceeded(request.amount.as_coins()):
            raise AdmissionError(ErrorCode.ORDER_QUANTITY_LIMIT_EXCEEDED, str(request.amount))

        sold = request.amount.as_coins()
        self._require_funds(request.seller, sold)
        order = new_sell_order(request.seller, request.amount)
        buy_prices, sell_prices = self.clearing.updated_prices_after_sell(token, order)

        self.ledger.transfer(request.seller, self.config.mint_burn_account, sold)
        must_succeed("burn sold tokens", self.ledger.burn, self.config.mint_burn_account, sold)
        self.clearing.add_sell_order(token, order, buy_prices, sell_prices)
        return order

    def submit_swap(self, request: SwapRequest) -> SwapOrder:
        """Admit a swap between the two reserve tokens of a Swapper bond, escrowing the input."""
        request.validate_basic()
        bond = self._bond(request.bond_token)
        if not bond.is_swapper():
            raise AdmissionError(ErrorCode.FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE, bond.function_type.value)
        self._require_trading(bond)
        if not bond.reserve_denoms_equal_to([request.from_coin.denom, request.to_token]):
            raise AdmissionError(
                ErrorCode.RESERVE_DENOMS_MISMATCH,
                f"{request.from_coin.denom},{request.to_token} not equal to reserve tokens {','.join(bond.reserve_tokens)}",
            )
        if bond.any_order_quantity_limits_exceeded(request.from_coin.as_coins()):
            raise AdmissionError(ErrorCode.ORDER_QUANTITY_LIMIT_EXCEEDED, str(request.from_coin))
        if bond.current_supply == 0:
            raise AdmissionError(ErrorCode.CURVE_UNAVAILABLE, "swapper bond has not been initialised by a first buy")

        # Raises InsufficientFundsError without moving anything.
        self.ledger.transfer(request.swapper, self.config.batches_intermediary_account, request.from_coin.as_coins())

        order = new_swap_order(request.swapper, request.from_coin, request.to_token)
        self.clearing.add_swap_order(bond.token, order)
        return order

    # --- lifecycle ------------------------------------------------------

    def make_outcome_payment(self, request: OutcomePaymentRequest) -> Coins:
        return self.lifecycle.make_outcome_payment(request)

    def withdraw_share(self, request: WithdrawShareRequest) -> Coins:
        return self.lifecycle.withdraw_share(request)

    # --- batch close ----------------------------------------------------

    def on_cycle_elapsed(self, token: str) -> Optional[Settlement]:
        """
        Count down one cycle for ``token``'s batch. When it reaches zero the
        batch is executed, the bond may leave HATCH, the batch is stored as the
        last batch and a fresh batch is started.

        Returns:
            The settlement if the batch closed, otherwise None
        """
        bond = self.store.must_get_bond(token)
        batch = self.store.must_get_batch(token)

        if batch.blocks_remaining > 0:
            batch.blocks_remaining -= 1
        if batch.blocks_remaining > 0:
            return None

        settlement = self.clearing.finalize(token)
        new_state = self.lifecycle.maybe_open(token)
        if new_state is not None:
            settlement.new_state = new_state.value

        self.store.set_last_batch(token, batch)
        self.store.set_batch(token, Batch.new(token, bond.batch_blocks))
        return settlement

    def end_cycle(self) -> List[Settlement]:
        """One cycle for every bond, in sorted token order."""
        settlements: List[Settlement] = []
        for bond in list(self.store.iter_bonds()):
            settlement = self.on_cycle_elapsed(bond.token)
            if settlement is not None:
                settlements.append(settlement)
        return settlements

    # --- queries --------------------------------------------------------

    def current_prices(self, token: str) -> DecCoins:
        bond = self._bond(token)
        return bond.current_prices_pt(self.clearing.reserve_balances(bond))

    def current_reserve(self, token: str) -> Coins:
        bond = self._bond(token)
        return {d: a for d, a in self.clearing.reserve_balances(bond).items() if a}

    def prices_to_mint(self, token: str, amount: int) -> DecCoins:
        bond = self._bond(token)
        return bond.prices_to_mint(amount, self.clearing.reserve_balances(bond))

    def returns_for_burn(self, token: str, amount: int) -> DecCoins:
        bond = self._bond(token)
        return bond.returns_for_burn(amount, self.clearing.reserve_balances(bond))

    def returns_for_swap(self, token: str, from_coin: Coin, to_denom: Denom) -> Tuple[Coin, Coin]:
        bond = self._bond(token)
        return bond.returns_for_swap(from_coin, to_denom, self.clearing.reserve_balances(bond))

    def spot_price_from_reserve(self, token: str) -> Dec:
        """
        Augmented spot price implied by the reserve alone,
        kappa * R^((kappa-1)/kappa) / V0^(1/kappa). Flat p0 during HATCH.
        """
        bond = self._bond(token)
        if not bond.is_augmented():
            raise AdmissionError(ErrorCode.FUNCTION_NOT_AVAILABLE_FOR_FUNCTION_TYPE, bond.function_type.value)
        params = bond.function_parameters
        if bond.is_augmented_hatch():
            return params["p0"]
        denom = bond.reserve_tokens[0]
        reserve = Dec.from_int(self.clearing.reserve_balances(bond).get(denom, 0))
        return augmented.spot_price(
            reserve,
            params["kappa"].truncate_int(),
            params["V0"],
            self.config.max_approx_root_iterations,
        )

    def batch(self, token: str) -> Batch:
        return self.store.must_get_batch(token)

    def last_batch(self, token: str) -> Batch:
        return self.store.must_get_last_batch(token)
