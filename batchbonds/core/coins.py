"""
Multi-denomination amounts.

``Coins`` maps a denom to a non-negative integer amount; ``DecCoins`` maps a
denom to a ``Dec``. Both are plain dicts. Helpers never mutate their inputs
and drop zero entries so two equal amounts compare equal as dicts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Tuple

from .dec import Dec, DecLike, ZERO, dec


Denom = str
Amount = int  # Non-negative integer (arbitrary precision)
Coins = Dict[Denom, Amount]
DecCoins = Dict[Denom, Dec]


_DENOM_RE = re.compile(r"^[a-z][a-z0-9/]{2,63}$")
_COIN_RE = re.compile(r"^([0-9]+)([a-z][a-z0-9/]{2,63})$")


@dataclass(frozen=True)
class Coin:
    """A single-denom amount."""

    denom: Denom
    amount: Amount

    def __post_init__(self) -> None:
        if not isinstance(self.denom, str) or not self.denom:
            raise ValueError("denom must be a non-empty string")
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError("amount must be an int")
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative: {self.amount}")

    def as_coins(self) -> "Coins":
        return normalize({self.denom: self.amount})

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


def is_valid_denom(denom: str) -> bool:
    return isinstance(denom, str) and bool(_DENOM_RE.match(denom))


def normalize(coins: Mapping[Denom, Amount]) -> Coins:
    """Validate amounts and return a sorted copy without zero entries."""
    out: Coins = {}
    for denom in sorted(coins):
        amount = coins[denom]
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TypeError(f"amount for {denom} must be an int")
        if amount < 0:
            raise ValueError(f"amount for {denom} must be non-negative: {amount}")
        if amount:
            out[denom] = amount
    return out


def add_coins(a: Mapping[Denom, Amount], b: Mapping[Denom, Amount]) -> Coins:
    out = dict(a)
    for denom, amount in b.items():
        out[denom] = out.get(denom, 0) + amount
    return normalize(out)


def sub_coins(a: Mapping[Denom, Amount], b: Mapping[Denom, Amount]) -> Coins:
    """a - b. Raises ValueError if any denom would go negative."""
    out = dict(a)
    for denom, amount in b.items():
        remaining = out.get(denom, 0) - amount
        if remaining < 0:
            raise ValueError(f"negative coin amount for {denom}: {remaining}")
        out[denom] = remaining
    return normalize(out)


def is_any_gt(a: Mapping[Denom, Amount], b: Mapping[Denom, Amount]) -> bool:
    """True if some denom in ``a`` exceeds its amount in ``b`` (missing counts as 0)."""
    return any(amount > b.get(denom, 0) for denom, amount in a.items())


def is_zero(coins: Mapping[Denom, object]) -> bool:
    return all(not amount for amount in coins.values())


def amount_of(coins: Mapping[Denom, Amount], denom: Denom) -> Amount:
    return coins.get(denom, 0)


def exceeds_limits(coins: Mapping[Denom, Amount], limits: Mapping[Denom, Amount]) -> bool:
    """
    Order quantity check: a coin exceeds its limit only if a limit is set for
    its denom and the amount is strictly greater. Unlisted denoms are unlimited.
    """
    for denom, amount in coins.items():
        limit = limits.get(denom)
        if limit and amount > limit:
            return True
    return False


def coins_to_str(coins: Mapping[Denom, object]) -> str:
    return ",".join(f"{coins[d]}{d}" for d in sorted(coins))


def parse_coins(text: str) -> Coins:
    """Parse ``"10res,5rez"``. An empty string yields no coins."""
    out: Coins = {}
    s = text.strip()
    if not s:
        return out
    for part in s.split(","):
        m = _COIN_RE.match(part.strip())
        if m is None:
            raise ValueError(f"invalid coin expression: {part!r}")
        denom = m.group(2)
        if denom in out:
            raise ValueError(f"duplicate denom in coins: {denom}")
        out[denom] = int(m.group(1))
    return normalize(out)


# --- DecCoins --------------------------------------------------------------


def dec_coins_for(denoms: Iterable[Denom], value: DecLike) -> DecCoins:
    """Same ``value`` for every denom, e.g. one price per reserve token."""
    v = dec(value)
    return {d: v for d in sorted(denoms)}


def add_dec_coins(a: Mapping[Denom, Dec], b: Mapping[Denom, Dec]) -> DecCoins:
    out: DecCoins = dict(a)
    for denom, amount in b.items():
        out[denom] = out.get(denom, ZERO) + amount
    return {d: out[d] for d in sorted(out)}


def mul_dec_coins(coins: Mapping[Denom, Dec], factor: DecLike) -> DecCoins:
    return {d: coins[d] * factor for d in sorted(coins)}


def div_dec_coins(coins: Mapping[Denom, Dec], divisor: DecLike) -> DecCoins:
    return {d: coins[d] / divisor for d in sorted(coins)}


def truncate_dec_coins(coins: Mapping[Denom, Dec]) -> Tuple[Coins, DecCoins]:
    """Split into integer parts and the leftover fractional change."""
    whole: Coins = {}
    change: DecCoins = {}
    for d in sorted(coins):
        amount = coins[d]
        if amount.is_negative():
            raise ValueError(f"negative dec coin amount for {d}: {amount}")
        w = amount.truncate_int()
        if w:
            whole[d] = w
        rest = amount - w
        if rest:
            change[d] = rest
    return whole, change
