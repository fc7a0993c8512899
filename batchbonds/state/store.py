"""
Key-value storage for bonds and batches, keyed by bond token.

The engine receives a store explicitly and keeps no state of its own. Each
token has one Bond, one current Batch and (after its first settlement) one
last Batch.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional

from ..core.errors import FatalInvariantError, MissingRecordError
from .batch import Batch
from .bonds import Bond


class BondStore:
    def __init__(self) -> None:
        self._bonds: Dict[str, Bond] = {}
        self._batches: Dict[str, Batch] = {}
        self._last_batches: Dict[str, Batch] = {}

    # --- bonds ----------------------------------------------------------

    def bond_exists(self, token: str) -> bool:
        return token in self._bonds

    def get_bond(self, token: str) -> Optional[Bond]:
        return self._bonds.get(token)

    def must_get_bond(self, token: str) -> Bond:
        bond = self._bonds.get(token)
        if bond is None:
            raise MissingRecordError("bond", token)
        return bond

    def set_bond(self, bond: Bond) -> None:
        self._bonds[bond.token] = bond

    def iter_bonds(self) -> Iterator[Bond]:
        """Bonds in sorted token order."""
        for token in sorted(self._bonds):
            yield self._bonds[token]

    def set_current_supply(self, token: str, supply: int) -> None:
        if supply < 0:
            raise FatalInvariantError([f"current supply of {token} would be negative ({supply})"])
        self.must_get_bond(token).current_supply = supply

    # --- batches --------------------------------------------------------

    def batch_exists(self, token: str) -> bool:
        return token in self._batches

    def must_get_batch(self, token: str) -> Batch:
        batch = self._batches.get(token)
        if batch is None:
            raise MissingRecordError("batch", token)
        return batch

    def set_batch(self, token: str, batch: Batch) -> None:
        self._batches[token] = batch

    def last_batch_exists(self, token: str) -> bool:
        return token in self._last_batches

    def must_get_last_batch(self, token: str) -> Batch:
        batch = self._last_batches.get(token)
        if batch is None:
            raise MissingRecordError("last batch", token)
        return batch

    def set_last_batch(self, token: str, batch: Batch) -> None:
        self._last_batches[token] = batch

    # --- derived --------------------------------------------------------

    def supply_adjusted_for_buy(self, token: str) -> int:
        """Current supply plus pending buys."""
        return self.must_get_bond(token).current_supply + self.must_get_batch(token).total_buy_amount

    def supply_adjusted_for_sell(self, token: str) -> int:
        """Current supply minus pending sells."""
        return self.must_get_bond(token).current_supply - self.must_get_batch(token).total_sell_amount

    def __repr__(self) -> str:
        return f"BondStore({len(self._bonds)} bonds)"
