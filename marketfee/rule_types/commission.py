from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..domain.money import to_decimal
from .base import PricingRule, RateType, RuleKind, Tier, register


@register
@dataclass(frozen=True)
class CommissionRule(PricingRule):
    """
    Marketplace commission on the order amount.

    Documents either list `tiers` or carry a single `value: {type, rate}`
    (percentage or fixed), which becomes one tier covering [0, ∞).
    """

    kind = RuleKind.COMMISSION

    @classmethod
    def _tiers_from_dict(cls, d: Dict[str, Any]) -> Tuple[Tier, ...]:
        value = d.get("value")
        if value and not d.get("tiers"):
            return (
                Tier(
                    min=to_decimal(0),
                    max=None,
                    rate=to_decimal(value.get("rate"), field="value.rate"),
                    rate_type=RateType.parse(value.get("type")),
                ),
            )
        return super()._tiers_from_dict(d)
