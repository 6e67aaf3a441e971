from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..domain.money import ZERO, to_decimal
from .base import DEFAULT_CURRENCY, Boundary, PricingRule, RateType, RuleKind, Tier, register

D = Decimal

SHIPPING_METHODS = ("STANDARD", "EXPRESS", "SAME_DAY")


@dataclass(frozen=True)
class CodFeeRule:
    """Cash-on-delivery fee: fixed amount or percentage of the COD amount, with a floor."""

    type: RateType
    rate: D
    min_amount: D = ZERO

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CodFeeRule":
        return CodFeeRule(
            type=RateType.parse(d.get("type")),
            rate=to_decimal(d.get("rate"), field="codFee.rate"),
            min_amount=to_decimal(d.get("minAmount", 0), field="codFee.minAmount"),
        )


def brackets_to_tiers(brackets: List[Dict[str, Any]]) -> Tuple[Tier, ...]:
    """
    Convert `{maxKg, surcharge}` weight brackets into contiguous tiers.

    Each bracket starts where the previous one ends; the first starts at 0.
    Layout errors (unsorted, unbounded in the middle) are left for validation.
    """
    tiers: List[Tier] = []
    lower = ZERO
    for i, b in enumerate(brackets):
        raw_max = b.get("maxKg")
        upper = None if raw_max is None else to_decimal(raw_max, field=f"brackets[{i}].maxKg")
        tiers.append(
            Tier(
                min=lower,
                max=upper,
                rate=to_decimal(b.get("surcharge"), field=f"brackets[{i}].surcharge"),
                rate_type=RateType.FIXED,
            )
        )
        # an unbounded bracket in the middle keeps its min; validation rejects it
        lower = upper if upper is not None else lower
    return tuple(tiers)


@register
@dataclass(frozen=True)
class ShippingTariff(PricingRule):
    """
    Shipping tariff for one zone/method.

    fee = base_rate + bracket surcharge + handling_surcharge, unless the order
    value reaches free_shipping_threshold. Weight brackets include their upper
    bound ("up to and including maxKg").
    """

    base_rate: D = ZERO
    handling_surcharge: D = ZERO
    cod_fee: Optional[CodFeeRule] = None
    free_shipping_threshold: Optional[D] = None
    zone_code: Optional[str] = None
    method_code: Optional[str] = None

    kind = RuleKind.SHIPPING
    boundary = Boundary.UPPER_INCLUSIVE

    def non_negative_fields(self) -> List[Tuple[str, Optional[D]]]:
        out = super().non_negative_fields()
        out.append(("baseRate", self.base_rate))
        out.append(("handlingSurcharge", self.handling_surcharge))
        out.append(("freeShippingThreshold", self.free_shipping_threshold))
        if self.cod_fee is not None:
            out.append(("codFee.rate", self.cod_fee.rate))
            out.append(("codFee.minAmount", self.cod_fee.min_amount))
        return out

    def percentage_fields(self) -> List[Tuple[str, Optional[D]]]:
        out = super().percentage_fields()
        if self.cod_fee is not None and self.cod_fee.type == RateType.PERCENTAGE:
            out.append(("codFee.rate", self.cod_fee.rate))
        return out

    @classmethod
    def _tiers_from_dict(cls, d: Dict[str, Any]) -> Tuple[Tier, ...]:
        if d.get("brackets") is not None:
            return brackets_to_tiers(list(d["brackets"]))
        default_type = RateType.parse(d.get("rateType") or RateType.FIXED.value)
        return tuple(Tier.from_dict(t, default_type) for t in d.get("tiers") or [])

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, currency: str = DEFAULT_CURRENCY) -> "ShippingTariff":
        base_rate = d.get("baseRate", 0)
        if isinstance(base_rate, dict):
            base_rate = base_rate.get("amount", 0)
        threshold = d.get("freeShippingThreshold")
        cod_raw = d.get("codFee")
        zone = d.get("zoneCode")
        method = d.get("methodCode")
        return cls(
            tiers=cls._tiers_from_dict(d),
            base_rate=to_decimal(base_rate, field="baseRate"),
            handling_surcharge=to_decimal(d.get("handlingSurcharge", 0), field="handlingSurcharge"),
            cod_fee=CodFeeRule.from_dict(cod_raw) if cod_raw else None,
            free_shipping_threshold=(
                None if threshold is None else to_decimal(threshold, field="freeShippingThreshold")
            ),
            zone_code=str(zone).strip().upper() if zone else None,
            method_code=str(method).strip().upper() if method else None,
            **cls._common_kwargs(d, currency),
        )
