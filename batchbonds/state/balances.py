"""
Account balances.

The engine talks to its ledger only through the ``Ledger`` methods
``mint``, ``burn``, ``transfer`` and ``balance_of`` / ``balances``. Any object
with those methods can be passed in; ``InMemoryLedger`` is the reference
implementation used by tests and embedders that keep balances in process.

Each call is all-or-nothing: a multi-denom transfer that cannot be covered
in full moves nothing.
"""

from typing import Dict, Mapping, Protocol, Tuple, runtime_checkable

from ..core.coins import Amount, Coins, Denom, normalize
from ..core.errors import InsufficientFundsError


Account = str


@runtime_checkable
class Ledger(Protocol):
    """Balance store the engine moves coins through."""

    def balance_of(self, account: Account, denom: Denom) -> Amount: ...

    def balances(self, account: Account) -> Coins: ...

    def mint(self, account: Account, coins: Mapping[Denom, Amount]) -> None: ...

    def burn(self, account: Account, coins: Mapping[Denom, Amount]) -> None: ...

    def transfer(self, sender: Account, recipient: Account, coins: Mapping[Denom, Amount]) -> None: ...


class InMemoryLedger:
    """
    Sparse table mapping (account, denom) -> amount.

    Note: balances live in a plain dict. Anything order-sensitive (reports,
    snapshots) should sort keys explicitly.
    """

    def __init__(self):
        self._balances: Dict[Tuple[Account, Denom], Amount] = {}
        self._supply: Dict[Denom, Amount] = {}

    def balance_of(self, account: Account, denom: Denom) -> Amount:
        """Balance for (account, denom). Returns 0 if not found."""
        return self._balances.get((account, denom), 0)

    def balances(self, account: Account) -> Coins:
        """All non-zero balances of ``account``, sorted by denom."""
        return normalize({d: a for (acc, d), a in self._balances.items() if acc == account})

    def total_supply(self, denom: Denom) -> Amount:
        return self._supply.get(denom, 0)

    def _set(self, account: Account, denom: Denom, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            # Remove zero balances to keep table sparse
            self._balances.pop((account, denom), None)
        else:
            self._balances[(account, denom)] = amount

    def _check_covered(self, account: Account, coins: Mapping[Denom, Amount]) -> None:
        for denom, amount in coins.items():
            have = self.balance_of(account, denom)
            if have < amount:
                raise InsufficientFundsError(account, denom, have, amount)

    def mint(self, account: Account, coins: Mapping[Denom, Amount]) -> None:
        """Create ``coins`` in ``account``."""
        coins = normalize(coins)
        for denom, amount in coins.items():
            self._set(account, denom, self.balance_of(account, denom) + amount)
            self._supply[denom] = self._supply.get(denom, 0) + amount

    def burn(self, account: Account, coins: Mapping[Denom, Amount]) -> None:
        """
        Destroy ``coins`` held by ``account``.

        Raises:
            InsufficientFundsError: If the account cannot cover every denom
        """
        coins = normalize(coins)
        self._check_covered(account, coins)
        for denom, amount in coins.items():
            self._set(account, denom, self.balance_of(account, denom) - amount)
            self._supply[denom] -= amount

    def transfer(self, sender: Account, recipient: Account, coins: Mapping[Denom, Amount]) -> None:
        """
        Move ``coins`` from ``sender`` to ``recipient``.

        Raises:
            InsufficientFundsError: If the sender cannot cover every denom
        """
        coins = normalize(coins)
        self._check_covered(sender, coins)
        for denom, amount in coins.items():
            self._set(sender, denom, self.balance_of(sender, denom) - amount)
            self._set(recipient, denom, self.balance_of(recipient, denom) + amount)

    def verify_non_negative(self) -> bool:
        return all(amount >= 0 for amount in self._balances.values())

    def __repr__(self) -> str:
        return f"InMemoryLedger({len(self._balances)} entries)"
