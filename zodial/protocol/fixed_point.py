"""Unsigned Q60 fixed-point arithmetic (68 integer bits, 60 fractional bits).

Values are stored as plain 128-bit integers ("bits"). ``Fixed`` wraps the
bits for arithmetic; every operation either saturates at the representable
maximum or raises, it never wraps.

Token amounts are whole atomic units and must fit the 68-bit integer part
of the format.
"""

from dataclasses import dataclass

from zodial.data.constants import U128_MAX
from zodial.errors import DivisionByZero, MathOverflow, MathUnderflow

FRAC_BITS = 60
ONE_BITS = 1 << FRAC_BITS
MAX_BITS = U128_MAX
AMOUNT_MAX = MAX_BITS >> FRAC_BITS


@dataclass(frozen=True, order=True)
class Fixed:
    """A non-negative rational with 60 fractional bits."""

    bits: int

    def __post_init__(self) -> None:
        if self.bits < 0:
            raise MathUnderflow(f"negative fixed-point bits {self.bits}")
        if self.bits > MAX_BITS:
            raise MathOverflow(f"fixed-point bits exceed 128 bits: {self.bits}")

    @classmethod
    def from_int(cls, value: int) -> "Fixed":
        if value < 0:
            raise MathUnderflow(f"negative integer {value}")
        if value > AMOUNT_MAX:
            raise MathOverflow(f"{value} does not fit the integer part")
        return cls(value << FRAC_BITS)

    @classmethod
    def from_ratio(cls, numerator: int, denominator: int) -> "Fixed":
        """Exact ``numerator / denominator`` rounded toward zero."""
        return cls.from_int(numerator).checked_div(cls.from_int(denominator))

    @property
    def is_zero(self) -> bool:
        return self.bits == 0

    def saturating_add(self, other: "Fixed") -> "Fixed":
        return Fixed(min(self.bits + other.bits, MAX_BITS))

    def checked_add(self, other: "Fixed") -> "Fixed":
        return Fixed(checked_add_bits(self.bits, other.bits))

    def checked_sub(self, other: "Fixed") -> "Fixed":
        return Fixed(checked_sub_bits(self.bits, other.bits))

    def saturating_mul(self, other: "Fixed") -> "Fixed":
        return Fixed(min((self.bits * other.bits) >> FRAC_BITS, MAX_BITS))

    def checked_mul(self, other: "Fixed") -> "Fixed":
        product = (self.bits * other.bits) >> FRAC_BITS
        if product > MAX_BITS:
            raise MathOverflow("fixed-point multiplication")
        return Fixed(product)

    def saturating_div(self, other: "Fixed") -> "Fixed":
        if other.bits == 0:
            raise DivisionByZero("fixed-point division")
        return Fixed(min((self.bits << FRAC_BITS) // other.bits, MAX_BITS))

    def checked_div(self, other: "Fixed") -> "Fixed":
        if other.bits == 0:
            raise DivisionByZero("fixed-point division")
        quotient = (self.bits << FRAC_BITS) // other.bits
        if quotient > MAX_BITS:
            raise MathOverflow("fixed-point division")
        return Fixed(quotient)

    def to_int(self) -> int:
        """Integer part, rounded toward zero."""
        return self.bits >> FRAC_BITS

    def to_float(self) -> float:
        """Lossy conversion for display and logging only."""
        return self.bits / ONE_BITS


FIXED_ONE = Fixed(ONE_BITS)
FIXED_ZERO = Fixed(0)


def pack(value: Fixed) -> int:
    """Storage representation of a fixed value (identity on the bits)."""
    return value.bits


def unpack(bits: int) -> Fixed:
    return Fixed(bits)


def checked_add_bits(a: int, b: int) -> int:
    total = a + b
    if total > MAX_BITS:
        raise MathOverflow("128-bit addition")
    return total


def checked_sub_bits(a: int, b: int) -> int:
    if b > a:
        raise MathUnderflow(f"{a} - {b}")
    return a - b


def mul_amount_by_index(amount: int, index: Fixed) -> int:
    """amount * index -> atomic amount, rounded toward zero."""
    return Fixed.from_int(amount).checked_mul(index).to_int()


def div_amount_by_index(amount: int, index: Fixed) -> int:
    """amount / index -> shares as raw Q60 bits."""
    return Fixed.from_int(amount).checked_div(index).bits


def mul_shares_by_index(shares_q60: int, index: Fixed) -> int:
    """shares (Q60 bits) * index -> atomic amount, rounded toward zero.

    Raises ``MathOverflow`` when the product leaves the Q60 range, so the
    result always fits the 68-bit integer part.
    """
    return Fixed(shares_q60).checked_mul(index).to_int()


def mul_shares_by_index_ceil(shares_q60: int, index: Fixed) -> int:
    """shares (Q60 bits) * index -> atomic amount, rounded up."""
    product = shares_q60 * index.bits
    if product >> FRAC_BITS > MAX_BITS:
        raise MathOverflow("shares * index")
    return -(-product >> (2 * FRAC_BITS))


def amount_to_usd_q60(amount: int, decimals: int, price_q60: int) -> int:
    """USD value of an atomic amount: (amount / 10**decimals) * price."""
    units = Fixed.from_int(amount).saturating_div(Fixed.from_int(10**decimals))
    return units.saturating_mul(Fixed(price_q60)).bits


def usd_to_amount(value_q60: int, decimals: int, price_q60: int) -> int:
    """Atomic amount worth ``value_q60`` USD: (value / price) * 10**decimals."""
    units = Fixed(value_q60).checked_div(Fixed(price_q60))
    return units.checked_mul(Fixed.from_int(10**decimals)).to_int()


def saturating_mul_div(value: int, numerator: int, denominator: int) -> int:
    """value * numerator / denominator on raw integers.

    The product saturates at 128 bits before the division, matching the
    integer semantics used throughout the health and accrual math.
    """
    if denominator == 0:
        raise DivisionByZero("integer division")
    return min(value * numerator, MAX_BITS) // denominator
