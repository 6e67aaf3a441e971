from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

D = Decimal

# No fractional minor units in this domain (VND)
CURRENCY_UNIT = D("1")
ZERO = D("0")
HUNDRED = D("100")


def to_decimal(value: Any, *, field: str = "value") -> D:
    """
    Deterministic Decimal parsing: go through str() so floats from YAML/JSON
    keep their printed value (0.1 -> Decimal('0.1'), not the binary expansion).
    """
    if isinstance(value, D):
        return value
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field}: expected a number, got {value!r}")
    try:
        d = D(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{field}: not a number: {value!r}") from e
    if not d.is_finite():
        raise ValueError(f"{field}: must be finite, got {value!r}")
    return d


def round_money(amount: D) -> D:
    """Round half-up to whole currency units. Apply once per computation."""
    return amount.quantize(CURRENCY_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    currency: str
    amount: D

    def quantized(self) -> "Money":
        return Money(self.currency, round_money(self.amount))

    @staticmethod
    def zero(currency: str) -> "Money":
        return Money(currency, ZERO)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        if other.currency != self.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")
        return Money(self.currency, self.amount + other.amount)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        if other.currency != self.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")
        return Money(self.currency, self.amount - other.amount)
