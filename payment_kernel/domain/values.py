"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Provides the Money value type used for every expected and extracted
    payment amount.  Amounts cross the persistence boundary as integer minor
    units (``amount_minor``) paired with the currency's decimal places.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic; float is rejected at construction.
    - Rounding to the smallest currency unit uses ROUND_HALF_UP.
    - Currency codes are three upper-case letters.

Failure modes:
    - TypeError on float amounts.
    - ValueError on malformed currency codes or negative decimal places.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Largest amount_minor a signed 64-bit BIGINT column holds
MAX_AMOUNT_MINOR = 2**63 - 1


def quantize_amount(amount: Decimal, decimal_places: int) -> Decimal:
    """Round ``amount`` to ``decimal_places`` with ROUND_HALF_UP."""
    return amount.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, decimal_places: int) -> int:
    """Convert a major-unit Decimal to integer minor units (ROUND_HALF_UP)."""
    return int(quantize_amount(amount, decimal_places).scaleb(decimal_places))


def from_minor_units(amount_minor: int, decimal_places: int) -> Decimal:
    """Convert integer minor units back to a fixed-point Decimal."""
    return quantize_amount(Decimal(amount_minor).scaleb(-decimal_places), decimal_places)


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount paired with its currency.

    Contract:
        ``amount`` is always a Decimal rounded to ``decimal_places``.

    Guarantees:
        - Immutable and hashable.
        - Equality is exact: two Money values are equal only when amount,
          currency and decimal places agree.
    """

    amount: Decimal
    currency: str
    decimal_places: int = 2

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise TypeError("Money amount must not be float")
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e

        code = (self.currency or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {self.currency!r}")
        object.__setattr__(self, "currency", code)

        if self.decimal_places < 0:
            raise ValueError(f"decimal_places must be >= 0, got {self.decimal_places}")

        object.__setattr__(
            self, "amount", quantize_amount(self.amount, self.decimal_places)
        )

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str, decimal_places: int = 2) -> Money:
        """Factory accepting str/int amounts (never float)."""
        if isinstance(amount, (str, int)):
            amount = Decimal(str(amount))
        return cls(amount=amount, currency=currency, decimal_places=decimal_places)

    @classmethod
    def from_minor(cls, amount_minor: int, currency: str, decimal_places: int) -> Money:
        return cls(
            amount=from_minor_units(amount_minor, decimal_places),
            currency=currency,
            decimal_places=decimal_places,
        )

    @property
    def minor_units(self) -> int:
        """Amount as integer minor units."""
        return to_minor_units(self.amount, self.decimal_places)

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
