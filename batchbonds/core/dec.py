"""
Signed fixed-point decimal with 18 fractional digits.

Values are stored as a Python int scaled by ``10**18``. Every price, fee
percentage and curve parameter in the engine is a ``Dec``; token amounts stay
plain ints and are converted at the boundary.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Deterministic Rounding
- Time Complexity: O(1) per add/sub/mul/quo, O(log n) for power(n)
- Invariant: Mul and quo round the dropped digits half-to-even, so repeated
  evaluation of the same expression always yields the same raw value.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import isqrt
from typing import Optional, Union

from .errors import NumericConvergenceError


PRECISION = 18
SCALE = 10**PRECISION

# Default iteration cap for approx_root
MAX_APPROX_ROOT_ITERATIONS = 300


def _div_round_half_even(num: int, den: int) -> int:
    """Exact num/den rounded to the nearest int, ties to even."""
    if den == 0:
        raise ZeroDivisionError("division by zero")
    negative = (num < 0) != (den < 0)
    num, den = abs(num), abs(den)
    quo, rem = divmod(num, den)
    twice = rem * 2
    if twice > den or (twice == den and quo % 2 == 1):
        quo += 1
    return -quo if negative else quo


@dataclass(frozen=True)
class Dec:
    raw: int

    def __post_init__(self) -> None:
        if not isinstance(self.raw, int) or isinstance(self.raw, bool):
            raise TypeError("Dec.raw must be an int")

    # --- construction ---------------------------------------------------

    @classmethod
    def from_int(cls, value: int) -> "Dec":
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"expected int, got {type(value).__name__}")
        return cls(value * SCALE)

    @classmethod
    def from_str(cls, text: str) -> "Dec":
        """Parse ``"12"``, ``"-0.5"`` or ``"1.000000000000000001"``."""
        if not isinstance(text, str):
            raise TypeError("expected str")
        s = text.strip()
        if not s:
            raise ValueError("empty decimal string")
        negative = s.startswith("-")
        if negative:
            s = s[1:]
        if not s:
            raise ValueError(f"invalid decimal string: {text!r}")
        whole, _, frac = s.partition(".")
        if not whole:
            whole = "0"
        if not whole.isdigit() or (frac and not frac.isdigit()):
            raise ValueError(f"invalid decimal string: {text!r}")
        if len(frac) > PRECISION:
            raise ValueError(f"too many decimal places in {text!r} (max {PRECISION})")
        raw = int(whole) * SCALE + int(frac.ljust(PRECISION, "0") or "0")
        return cls(-raw if negative else raw)

    @classmethod
    def from_ratio(cls, num: int, den: int) -> "Dec":
        return cls(_div_round_half_even(num * SCALE, den))

    # --- arithmetic -----------------------------------------------------

    def __add__(self, other: DecLike) -> "Dec":
        return Dec(self.raw + _coerce(other).raw)

    __radd__ = __add__

    def __sub__(self, other: DecLike) -> "Dec":
        return Dec(self.raw - _coerce(other).raw)

    def __rsub__(self, other: DecLike) -> "Dec":
        return Dec(_coerce(other).raw - self.raw)

    def __mul__(self, other: DecLike) -> "Dec":
        if isinstance(other, int) and not isinstance(other, bool):
            return Dec(self.raw * other)
        return Dec(_div_round_half_even(self.raw * _coerce(other).raw, SCALE))

    __rmul__ = __mul__

    def __truediv__(self, other: DecLike) -> "Dec":
        if isinstance(other, int) and not isinstance(other, bool):
            return Dec(_div_round_half_even(self.raw, other))
        return Dec(_div_round_half_even(self.raw * SCALE, _coerce(other).raw))

    def __rtruediv__(self, other: DecLike) -> "Dec":
        return _coerce(other) / self

    def __neg__(self) -> "Dec":
        return Dec(-self.raw)

    def __abs__(self) -> "Dec":
        return Dec(abs(self.raw))

    def __bool__(self) -> bool:
        return self.raw != 0

    # Comparisons with plain ints are convenient at call sites.
    def __eq__(self, other: object) -> bool:
        if isinstance(other, Dec):
            return self.raw == other.raw
        if isinstance(other, int) and not isinstance(other, bool):
            return self.raw == other * SCALE
        return NotImplemented

    def __hash__(self) -> int:
        # Integral values hash like the int they compare equal to.
        whole, frac = divmod(self.raw, SCALE)
        return hash(whole) if frac == 0 else hash(self.raw)

    def __lt__(self, other: DecLike) -> bool:
        return self.raw < _coerce(other).raw

    def __le__(self, other: DecLike) -> bool:
        return self.raw <= _coerce(other).raw

    def __gt__(self, other: DecLike) -> bool:
        return self.raw > _coerce(other).raw

    def __ge__(self, other: DecLike) -> bool:
        return self.raw >= _coerce(other).raw

    # --- predicates and rounding ---------------------------------------

    def is_zero(self) -> bool:
        return self.raw == 0

    def is_negative(self) -> bool:
        return self.raw < 0

    def is_positive(self) -> bool:
        return self.raw > 0

    def is_integer(self) -> bool:
        return self.raw % SCALE == 0

    def floor(self) -> "Dec":
        return Dec((self.raw // SCALE) * SCALE)

    def ceil(self) -> "Dec":
        return Dec(-((-self.raw) // SCALE) * SCALE)

    def truncate_int(self) -> int:
        """Integer part, rounding toward zero."""
        q = abs(self.raw) // SCALE
        return -q if self.raw < 0 else q

    def floor_int(self) -> int:
        return self.raw // SCALE

    def ceil_int(self) -> int:
        return -((-self.raw) // SCALE)

    def round_int(self) -> int:
        """Nearest integer, ties to even."""
        return _div_round_half_even(self.raw, SCALE)

    # --- powers and roots ----------------------------------------------

    def power(self, n: int) -> "Dec":
        """Raise to a non-negative integer power by repeated squaring."""
        if not isinstance(n, int) or isinstance(n, bool) or n < 0:
            raise ValueError(f"exponent must be a non-negative int: {n!r}")
        result = ONE
        base = self
        while n:
            if n & 1:
                result = result * base
            n >>= 1
            if n:
                base = base * base
        return result

    def approx_root(self, root: int, max_iterations: int = MAX_APPROX_ROOT_ITERATIONS) -> "Dec":
        """
        ``root``-th root rounded to the nearest representable value.

        Works on the raw integer: the result's raw value is the integer
        ``root``-th root of ``raw * SCALE**(root-1)``, found by integer Newton
        descent and then rounded half-up. Raises NumericConvergenceError if
        ``max_iterations`` steps do not reach the floor root.
        """
        if not isinstance(root, int) or isinstance(root, bool) or root < 0:
            raise ValueError(f"root must be a non-negative int: {root!r}")
        if self.raw < 0:
            return -((-self).approx_root(root, max_iterations))
        if root == 1 or self.raw == 0 or self.raw == SCALE:
            return self
        if root == 0:
            return ONE

        n = self.raw * SCALE ** (root - 1)
        r = _integer_root(n, root, max_iterations)
        if r is None:
            raise NumericConvergenceError(
                f"approx_root({self}, {root}) did not converge in {max_iterations} iterations"
            )
        # Round up when (r + 1/2)^root < n; an exact tie cannot occur.
        if (2 * r + 1) ** root < n << root:
            r += 1
        return Dec(r)

    def approx_sqrt(self) -> "Dec":
        """Square root rounded to the nearest representable value."""
        if self.raw < 0:
            raise ValueError(f"cannot take square root of negative value {self}")
        n = self.raw * SCALE
        r = isqrt(n)
        # (r + 1/2)^2 = r^2 + r + 1/4, so n > r^2 + r means round up.
        if n - r * r > r:
            r += 1
        return Dec(r)

    # --- formatting -----------------------------------------------------

    def __str__(self) -> str:
        sign = "-" if self.raw < 0 else ""
        whole, frac = divmod(abs(self.raw), SCALE)
        return f"{sign}{whole}.{frac:0{PRECISION}d}"

    def __repr__(self) -> str:
        return f"Dec('{self}')"


DecLike = Union[Dec, int]


def _coerce(value: DecLike) -> Dec:
    if isinstance(value, Dec):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Dec(value * SCALE)
    raise TypeError(f"cannot use {type(value).__name__} as Dec")


def _integer_root(n: int, root: int, max_iterations: int) -> Optional[int]:
    """floor(n ** (1/root)) for n >= 0, or None if the iteration cap is hit."""
    if n < 2:
        return n
    # 2^ceil(bits/root) is at or above the root, so Newton descends monotonically
    # and the first step that fails to decrease lands on the floor.
    x = 1 << -(-n.bit_length() // root)
    for _ in range(max_iterations):
        y = ((root - 1) * x + n // x ** (root - 1)) // root
        if y >= x:
            return x
        x = y
    return None


ZERO = Dec(0)
ONE = Dec(SCALE)


def dec(value: Union[Dec, int, str]) -> Dec:
    """Convenience constructor accepting Dec, int or decimal string."""
    if isinstance(value, Dec):
        return value
    if isinstance(value, str):
        return Dec.from_str(value)
    return Dec.from_int(value)
