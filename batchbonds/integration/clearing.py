"""
Batch clearing for bonding-curve bonds.

Each bond has one open batch. Orders are priced as a whole: the side with
the smaller total is matched against the other side at the current spot
price, and only the unmatched excess moves along the curve.

Algorithm Design:
- Type: Uniform-Price Batch Auction / Curve-Integral Excess Pricing
- Time Complexity: O(n) per batch close (n = orders), O(1) curve evaluations
  per price computation
- Invariant: every transfer for an order is issued only after its price,
  fees and refund have been computed and checked; a ledger failure after
  that point is a defect and aborts processing.

Rounding:
- reserve paid by buyers rounds up, fees round up
- reserve returned to sellers rounds down, fees are capped at the return
"""

from __future__ import annotations

import logging
from typing import Callable, List, Mapping, Tuple

from ..core import swapper
from ..core.coins import (
    Coins,
    DecCoins,
    Denom,
    add_coins,
    add_dec_coins,
    coins_to_str,
    div_dec_coins,
    is_any_gt,
    mul_dec_coins,
    sub_coins,
)
from ..core.dec import ONE, Dec
from ..core.errors import AdmissionError, BondsError, ErrorCode, FatalInvariantError
from ..core.rounding import adjust_fees, round_reserve_prices, round_reserve_returns
from ..core.settlement import FillAction, OrderOutcome, OrderType, Settlement
from ..state.balances import Ledger
from ..state.batch import Batch, BuyOrder, SellOrder, SwapOrder
from ..state.bonds import Bond
from ..state.store import BondStore
from .config import EngineConfig

logger = logging.getLogger(__name__)


def must_succeed(action: str, fn: Callable[..., None], *args) -> None:
    """Run a ledger call whose preconditions were already checked; failure is fatal."""
    try:
        fn(*args)
    except BondsError as err:
        raise FatalInvariantError([f"{action} failed: {err}"]) from err


def clearing_prices(
    bond: Bond,
    reserve: Mapping[Denom, int],
    total_buy: int,
    total_sell: int,
) -> Tuple[DecCoins, DecCoins]:
    """
    Per-token (buy price, sell price) for a batch with the given totals.

    Equal totals clear both sides at the spot price. Otherwise the smaller
    side clears at spot and the larger side pays (or receives) the blended
    average of spot for the matched amount plus the curve cost of the excess.
    """
    current = bond.current_prices_pt(reserve)
    if total_buy == total_sell:
        return current, current

    if total_buy > total_sell:
        matched = total_sell
        curved = bond.prices_to_mint(total_buy - total_sell, reserve)
    else:
        matched = total_buy
        curved = bond.returns_for_burn(total_sell - total_buy, reserve)

    total_values = add_dec_coins(mul_dec_coins(current, matched), curved)
    if total_buy > total_sell:
        return div_dec_coins(total_values, total_buy), current
    return current, div_dec_coins(total_values, total_sell)


def buy_cost(bond: Bond, amount: int, prices: Mapping[Denom, Dec]) -> Tuple[Coins, Coins, Coins]:
    """(reserve owed rounded up, tx fees, total) for buying ``amount`` at ``prices``."""
    reserve_prices = mul_dec_coins(prices, amount)
    rounded = round_reserve_prices(reserve_prices)
    # Fees are taken on the unrounded reserve value, not on ``rounded``.
    fees = bond.tx_fees(reserve_prices)
    return rounded, fees, add_coins(rounded, fees)


def sell_proceeds(bond: Bond, amount: int, prices: Mapping[Denom, Dec]) -> Tuple[Coins, Coins]:
    """(net return to seller, fees) for selling ``amount`` at ``prices``."""
    reserve_returns = mul_dec_coins(prices, amount)
    rounded = round_reserve_returns(reserve_returns)
    fees = add_coins(bond.tx_fees(reserve_returns), bond.exit_fees(reserve_returns))
    total_fees = adjust_fees(fees, rounded)
    return sub_coins(rounded, total_fees), total_fees


class ClearingEngine:
    """
    Prices, admits, cancels and executes orders for the bonds in ``store``.

    Reserve balances live in the ledger under each bond's reserve account;
    ``Bond.current_reserve`` mirrors them after every change.
    """

    def __init__(self, store: BondStore, ledger: Ledger, config: EngineConfig) -> None:
        self.store = store
        self.ledger = ledger
        self.config = config

    # --- reserve --------------------------------------------------------

    def reserve_balances(self, bond: Bond) -> Coins:
        return {d: self.ledger.balance_of(bond.reserve_address, d) for d in sorted(bond.reserve_tokens)}

    def sync_reserve(self, bond: Bond) -> None:
        bond.current_reserve = {d: a for d, a in self.reserve_balances(bond).items() if a}

    def _deposit_reserve(self, bond: Bond, sender: str, coins: Coins) -> None:
        if coins:
            must_succeed("deposit to reserve", self.ledger.transfer, sender, bond.reserve_address, coins)

    def _withdraw_reserve(self, bond: Bond, recipient: str, coins: Coins) -> None:
        if coins:
            must_succeed("withdraw from reserve", self.ledger.transfer, bond.reserve_address, recipient, coins)

    def _from_escrow(self, recipient: str, coins: Coins) -> None:
        if coins:
            must_succeed(
                "release from escrow",
                self.ledger.transfer,
                self.config.batches_intermediary_account,
                recipient,
                coins,
            )

    # --- price discovery ------------------------------------------------

    def batch_prices(self, token: str, batch: Batch) -> Tuple[DecCoins, DecCoins]:
        bond = self.store.must_get_bond(token)
        return clearing_prices(bond, self.reserve_balances(bond), batch.total_buy_amount, batch.total_sell_amount)

    def updated_prices_after_buy(self, token: str, order: BuyOrder) -> Tuple[DecCoins, DecCoins]:
        """
        Batch prices with ``order`` included.

        Raises:
            AdmissionError: max supply or the Hatch limit would be exceeded,
                or the order cannot afford the resulting buy price
        """
        bond = self.store.must_get_bond(token)
        batch = self.store.must_get_batch(token)

        adjusted_with_buy = self.store.supply_adjusted_for_buy(token) + order.amount.amount
        if adjusted_with_buy > bond.max_supply:
            raise AdmissionError(ErrorCode.CANNOT_MINT_MORE_THAN_MAX_SUPPLY, f"{bond.max_supply}{token}")

        # A batch may not cross from HATCH into OPEN.
        if bond.is_augmented_hatch() and adjusted_with_buy > bond.hatch_supply_limit():
            raise AdmissionError(
                ErrorCode.EXCEEDS_HATCH_SUPPLY,
                f"buy exceeds initial supply S0 ({bond.hatch_supply_limit()}); consider buying fewer tokens",
            )

        buy_prices, sell_prices = clearing_prices(
            bond,
            self.reserve_balances(bond),
            batch.total_buy_amount + order.amount.amount,
            batch.total_sell_amount,
        )
        self.check_buy_fulfillable(bond, order, buy_prices)
        return buy_prices, sell_prices

    def updated_prices_after_sell(self, token: str, order: SellOrder) -> Tuple[DecCoins, DecCoins]:
        bond = self.store.must_get_bond(token)
        batch = self.store.must_get_batch(token)

        if self.store.supply_adjusted_for_sell(token) < order.amount.amount:
            raise AdmissionError(ErrorCode.CANNOT_BURN_MORE_THAN_SUPPLY, str(order.amount))

        return clearing_prices(
            bond,
            self.reserve_balances(bond),
            batch.total_buy_amount,
            batch.total_sell_amount + order.amount.amount,
        )

    def check_buy_fulfillable(self, bond: Bond, order: BuyOrder, prices: Mapping[Denom, Dec]) -> None:
        _, _, total = buy_cost(bond, order.amount.amount, prices)
        if is_any_gt(total, order.max_prices):
            raise AdmissionError(
                ErrorCode.MAX_PRICE_EXCEEDED,
                f"actual prices {coins_to_str(total)} exceed max prices {coins_to_str(order.max_prices)}",
            )

    # --- batch bookkeeping ----------------------------------------------

    def add_buy_order(self, token: str, order: BuyOrder, buy_prices: DecCoins, sell_prices: DecCoins) -> None:
        self.store.must_get_batch(token).add_buy_order(order, buy_prices, sell_prices)
        logger.info("added buy order for %s from %s", order.amount, order.address)

    def add_sell_order(self, token: str, order: SellOrder, buy_prices: DecCoins, sell_prices: DecCoins) -> None:
        self.store.must_get_batch(token).add_sell_order(order, buy_prices, sell_prices)
        logger.info("added sell order for %s from %s", order.amount, order.address)

    def add_swap_order(self, token: str, order: SwapOrder) -> None:
        self.store.must_get_batch(token).add_swap_order(order)
        logger.info("added swap order for %s to %s from %s", order.amount, order.to_token, order.address)

    def cancel_unfulfillable_buys(self, token: str) -> List[OrderOutcome]:
        """Cancel open buys that cannot afford the batch buy price and refund their escrow."""
        bond = self.store.must_get_bond(token)
        batch = self.store.must_get_batch(token)

        cancelled: List[OrderOutcome] = []
        for i, order in enumerate(batch.buys):
            if order.is_cancelled():
                continue
            try:
                self.check_buy_fulfillable(bond, order, batch.buy_prices)
            except AdmissionError as err:
                batch.cancel_buy(i, str(err))
                logger.info("cancelled buy order for %s from %s", order.amount, order.address)
                logger.info("cancellation reason: %s", err)
                self._from_escrow(order.address, order.max_prices)
                cancelled.append(buy_cancellation(order))
        return cancelled

    def cancel_unfulfillable_orders(self, token: str) -> List[OrderOutcome]:
        """
        Sells are always fulfillable and swaps are only cancelled while being
        performed, so only buys are checked. Prices are recomputed once if
        anything was cancelled.
        """
        cancelled = self.cancel_unfulfillable_buys(token)
        if cancelled:
            batch = self.store.must_get_batch(token)
            try:
                batch.buy_prices, batch.sell_prices = self.batch_prices(token, batch)
            except AdmissionError as err:
                raise FatalInvariantError([f"repricing batch for {token} failed: {err}"]) from err
        return cancelled

    # --- execution ------------------------------------------------------

    def perform_buy(self, token: str, order: BuyOrder, prices: DecCoins) -> OrderOutcome:
        bond = self.store.must_get_bond(token)
        rounded, fees, total = buy_cost(bond, order.amount.amount, prices)
        if is_any_gt(total, order.max_prices):
            raise FatalInvariantError(
                [f"buy from {order.address} costs {coins_to_str(total)} > max prices {coins_to_str(order.max_prices)}"]
            )
        refund = sub_coins(order.max_prices, total)

        to_reserve = rounded
        funding: Coins = {}
        if bond.is_augmented_hatch():
            to_reserve, funding = self._split_hatch_payment(bond, order, rounded)

        bought = order.amount.as_coins()
        must_succeed("mint bond tokens", self.ledger.mint, self.config.mint_burn_account, bought)
        must_succeed("send bond tokens", self.ledger.transfer, self.config.mint_burn_account, order.address, bought)
        self._deposit_reserve(bond, self.config.batches_intermediary_account, to_reserve)
        self._from_escrow(bond.fee_address, funding)
        self._from_escrow(bond.fee_address, fees)
        self._from_escrow(order.address, refund)

        self.store.set_current_supply(token, bond.current_supply + order.amount.amount)
        self.sync_reserve(bond)
        logger.info("performed buy order for %s from %s", order.amount, order.address)
        return OrderOutcome(
            order_type=OrderType.BUY,
            action=FillAction.FILL,
            address=order.address,
            amount=bought,
            charged_prices=rounded,
            charged_fees=fees,
            returned=refund,
            funding=funding,
        )

    def _split_hatch_payment(self, bond: Bond, order: BuyOrder, rounded: Coins) -> Tuple[Coins, Coins]:
        """
        During HATCH the reserve tracks (1 - theta) of the total raise p0 * supply;
        the rest of the payment funds the bond through the fee address.
        """
        params = bond.function_parameters
        denom = sorted(bond.reserve_tokens)[0]
        current_reserve = self.reserve_balances(bond).get(denom, 0)
        new_supply = bond.current_supply + order.amount.amount
        new_reserve = (params["p0"] * new_supply * (ONE - params["theta"])).ceil_int()
        to_initial_reserve = new_reserve - current_reserve
        paid = rounded.get(denom, 0)
        if to_initial_reserve < 0 or paid < to_initial_reserve:
            raise FatalInvariantError(
                [f"{ErrorCode.INSUFFICIENT_RESERVE_TO_BUY.value}: {paid}{denom} paid, {to_initial_reserve}{denom} owed to reserve"]
            )
        to_reserve = {d: to_initial_reserve for d in bond.reserve_tokens if to_initial_reserve}
        return to_reserve, sub_coins(rounded, to_reserve)

    def perform_sell(self, token: str, order: SellOrder, prices: DecCoins) -> OrderOutcome:
        bond = self.store.must_get_bond(token)
        returns, fees = sell_proceeds(bond, order.amount.amount, prices)

        self._withdraw_reserve(bond, order.address, returns)
        self._withdraw_reserve(bond, bond.fee_address, fees)

        self.store.set_current_supply(token, bond.current_supply - order.amount.amount)
        self.sync_reserve(bond)
        logger.info("performed sell order for %s from %s", order.amount, order.address)
        return OrderOutcome(
            order_type=OrderType.SELL,
            action=FillAction.FILL,
            address=order.address,
            amount=order.amount.as_coins(),
            charged_fees=fees,
            returned=returns,
        )

    def perform_swap(self, token: str, order: SwapOrder) -> OrderOutcome:
        """
        Execute one swap. Anything that fails before the first transfer
        cancels the order and refunds the input; failures after that are fatal.
        """
        bond = self.store.must_get_bond(token)
        reserve = self.reserve_balances(bond)
        try:
            out, fee = bond.returns_for_swap(order.amount, order.to_token, reserve)
            net_in = order.amount.amount - fee.amount
            new_reserve = swapper.apply_swap(reserve, order.amount.denom, net_in, order.to_token, out.amount)
            if bond.reserves_violate_sanity_rate(new_reserve):
                raise AdmissionError(ErrorCode.VALUES_VIOLATE_SANITY_RATE, coins_to_str(new_reserve))
        except AdmissionError as err:
            order.cancel(str(err))
            logger.info(
                "cancelled swap order for %s to %s from %s", order.amount, order.to_token, order.address
            )
            logger.info("cancellation reason: %s", err)
            self._from_escrow(order.address, order.amount.as_coins())
            return OrderOutcome(
                order_type=OrderType.SWAP,
                action=FillAction.CANCEL,
                address=order.address,
                amount=order.amount.as_coins(),
                reason=order.cancel_reason,
                returned=order.amount.as_coins(),
            )

        self._withdraw_reserve(bond, order.address, out.as_coins())
        self._deposit_reserve(bond, self.config.batches_intermediary_account, {order.amount.denom: net_in})
        self._from_escrow(bond.fee_address, fee.as_coins())

        self.sync_reserve(bond)
        logger.info("performed swap order for %s to %s from %s", order.amount, out, order.address)
        return OrderOutcome(
            order_type=OrderType.SWAP,
            action=FillAction.FILL,
            address=order.address,
            amount=order.amount.as_coins(),
            charged_fees=fee.as_coins(),
            returned=out.as_coins(),
        )

    def perform_orders(self, token: str) -> List[OrderOutcome]:
        """Buys, then sells, then swaps, each in arrival order."""
        batch = self.store.must_get_batch(token)
        outcomes: List[OrderOutcome] = []
        for order in batch.buys:
            if not order.is_cancelled():
                outcomes.append(self.perform_buy(token, order, batch.buy_prices))
        for order in batch.sells:
            if not order.is_cancelled():
                outcomes.append(self.perform_sell(token, order, batch.sell_prices))
        for order in batch.swaps:
            if not order.is_cancelled():
                outcomes.append(self.perform_swap(token, order))
        return outcomes

    def finalize(self, token: str) -> Settlement:
        """Re-check buys against the final price, then execute the batch."""
        self.cancel_unfulfillable_orders(token)
        batch = self.store.must_get_batch(token)
        cancelled = [buy_cancellation(o) for o in batch.buys if o.is_cancelled()]
        outcomes = self.perform_orders(token)

        violations = self.store.must_get_bond(token).check_invariants() + batch.check_invariants()
        if violations:
            raise FatalInvariantError(violations)

        return Settlement(
            token=token,
            buy_prices=dict(batch.buy_prices),
            sell_prices=dict(batch.sell_prices),
            outcomes=cancelled + outcomes,
        )


def buy_cancellation(order: BuyOrder) -> OrderOutcome:
    return OrderOutcome(
        order_type=OrderType.BUY,
        action=FillAction.CANCEL,
        address=order.address,
        amount=order.amount.as_coins(),
        reason=order.cancel_reason,
        returned=dict(order.max_prices),
    )


def total_escrow(batch: Batch) -> Coins:
    """Coins held in escrow for the batch's open buys and swaps."""
    total: Coins = {}
    for order in batch.open_buys():
        total = add_coins(total, order.max_prices)
    for order in batch.open_swaps():
        total = add_coins(total, order.amount.as_coins())
    return total

