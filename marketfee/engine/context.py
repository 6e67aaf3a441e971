from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..domain.money import Money
from ..rule_types.base import RateType

D = Decimal


# -----------------------------
# Input (request context)
# -----------------------------


@dataclass(frozen=True)
class OrderContext:
    """
    Everything one settlement needs. Scope refs drive resolution; amounts and
    weight drive evaluation; `as_of` pins the clock (None = call time).
    """

    total_amount: D
    shop_ref: Optional[str] = None
    category_ref: Optional[str] = None
    weight_kg: Optional[D] = None
    payment_method: Optional[str] = None
    is_cod: bool = False
    cod_amount: Optional[D] = None
    shipping_zone: Optional[str] = None
    shipping_method: Optional[str] = None
    order_ref: Optional[str] = None
    as_of: Optional[datetime] = None


@dataclass(frozen=True)
class ScopeContext:
    """The part of a request the Scope Resolver looks at."""

    shop_ref: Optional[str] = None
    category_ref: Optional[str] = None

    @staticmethod
    def of(order: OrderContext) -> "ScopeContext":
        return ScopeContext(shop_ref=order.shop_ref, category_ref=order.category_ref)


# -----------------------------
# Output models
# -----------------------------


@dataclass(frozen=True)
class MonetaryResult:
    """
    Result of evaluating one rule against one input.
    `amount` is rounded exactly once; the other fields are for audit.
    """

    rule_id: str
    input: D
    amount: Money
    rate: Optional[D] = None
    rate_type: Optional[RateType] = None
    tier_index: Optional[int] = None
    raw_amount: D = D("0")
    floor_applied: bool = False
    cap_applied: bool = False
    free_shipping: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)


class LineKind(str, Enum):
    COMMISSION = "COMMISSION"
    FEE = "FEE"
    SHIPPING = "SHIPPING"
    COD = "COD"


# platform deductions reduce what the seller receives; the rest is charged to the buyer
PLATFORM_DEDUCTIONS = (LineKind.COMMISSION, LineKind.FEE)
BUYER_CHARGES = (LineKind.SHIPPING, LineKind.COD)


@dataclass(frozen=True)
class SettlementLine:
    kind: LineKind
    rule_id: Optional[str]
    rate: Optional[D]
    computed_amount: Money
    rate_type: Optional[RateType] = None
    no_rule_matched: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Settlement:
    currency: str
    as_of: datetime
    gross_amount: Money
    lines: Tuple[SettlementLine, ...]
    total: Money
    platform_deductions: Money
    net_payable: Money
    buyer_charges: Money
    order_ref: Optional[str] = None

    def line(self, kind: LineKind) -> Optional[SettlementLine]:
        for ln in self.lines:
            if ln.kind == kind:
                return ln
        return None

    @property
    def unmatched(self) -> List[LineKind]:
        return [ln.kind for ln in self.lines if ln.no_rule_matched]
