from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..domain.money import to_decimal
from .base import PricingRule, RateType, RuleKind, Tier, register

# feeType values of flat (non-tiered) platform fee documents
_FLAT_FEE_TYPES = {
    "PERCENTAGE": ("percentageRate", RateType.PERCENTAGE),
    "FIXED": ("fixedAmount", RateType.FIXED),
}


@register
@dataclass(frozen=True)
class FeeRule(PricingRule):
    """Marketplace / payment fee: tiered percentage plus optional fixed fee, floor and cap."""

    kind = RuleKind.FEE
    waive_zero_value = True

    @classmethod
    def _tiers_from_dict(cls, d: Dict[str, Any]) -> Tuple[Tier, ...]:
        fee_type = str(d.get("feeType") or "").strip().upper()
        if fee_type in _FLAT_FEE_TYPES and not d.get("tiers"):
            key, rate_type = _FLAT_FEE_TYPES[fee_type]
            return (
                Tier(
                    min=to_decimal(0),
                    max=None,
                    rate=to_decimal(d.get(key), field=key),
                    rate_type=rate_type,
                ),
            )
        return super()._tiers_from_dict(d)
