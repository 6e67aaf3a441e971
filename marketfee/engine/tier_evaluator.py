from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Tuple

from ..config import get_settings
from ..domain.money import HUNDRED, ZERO, Money, round_money, to_decimal
from ..errors import (
    Expired,
    InactiveRule,
    InvalidInput,
    NoApplicableTier,
    NotYetEffective,
)
from ..rule_types.base import PricingRule, RateType, RuleKind, Tier
from ..rule_types.shipping import ShippingTariff
from .context import MonetaryResult

D = Decimal


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _input(value: Any, field: str) -> D:
    try:
        return to_decimal(value, field=field)
    except ValueError as e:
        raise InvalidInput(str(e), meta={"field": field}) from e


def check_applicable(rule: PricingRule, as_of: datetime) -> None:
    """
    Activation re-check. The resolver already filters on the same predicate,
    so a failure here means resolver and evaluator disagree (or the caller
    bypassed the resolver).
    """
    meta = {"ruleId": rule.id, "asOf": as_of.isoformat()}
    if not rule.is_active:
        raise InactiveRule(f"Rule {rule.id} is not active", meta=meta)
    if rule.effective_from > as_of:
        raise NotYetEffective(
            f"Rule {rule.id} is not yet effective (from {rule.effective_from.isoformat()})",
            meta=meta,
        )
    if rule.effective_to is not None and rule.effective_to < as_of:
        raise Expired(
            f"Rule {rule.id} has expired (to {rule.effective_to.isoformat()})",
            meta=meta,
        )


def find_tier(rule: PricingRule, value: D) -> Tuple[int, Tier]:
    """Scan tiers ascending; the rule's boundary decides which edge is inclusive."""
    for i, tier in enumerate(rule.tiers):
        if tier.contains(value, rule.boundary, first=(i == 0)):
            return i, tier
    raise NoApplicableTier(
        f"No applicable tier in rule {rule.id} for input {value}",
        meta={"ruleId": rule.id, "input": str(value)},
    )


def _tier_amount(tier: Tier, value: D) -> D:
    if tier.rate_type == RateType.PERCENTAGE:
        return value * tier.rate / HUNDRED
    return tier.rate


def evaluate(
    rule: PricingRule,
    value: Any,
    as_of: Optional[datetime] = None,
    *,
    order_value: Any = None,
) -> MonetaryResult:
    """
    Compute the monetary result of `rule` for `value` (order amount, or weight
    for shipping tariffs). Safe to call without the resolver: activation and
    window are re-checked here.

    percentage: value * rate / 100, fixed: rate; then + fixed component,
    floor (minimum_amount), cap (maximum_amount), and a single half-up round.
    Rules with `waive_zero_value` (fee rules) charge nothing on a zero amount.
    """
    if rule.kind == RuleKind.SHIPPING:
        return evaluate_shipping(rule, value, order_value or 0, as_of)

    as_of = as_of or _now()
    check_applicable(rule, as_of)

    x = _input(value, "value")
    index, tier = find_tier(rule, x)

    if x == ZERO and rule.waive_zero_value:
        return MonetaryResult(
            rule_id=rule.id,
            input=x,
            amount=Money.zero(rule.currency),
            rate=tier.rate,
            rate_type=tier.rate_type,
            tier_index=index,
            meta={"reason": "zero_order_value"},
        )

    raw = _tier_amount(tier, x)
    fixed = ZERO
    if rule.fixed_component is not None:
        fixed = rule.fixed_component.amount
        raw += fixed

    floor_applied = cap_applied = False
    if rule.minimum_amount is not None and raw < rule.minimum_amount:
        raw = rule.minimum_amount
        floor_applied = True
    if rule.maximum_amount is not None and raw > rule.maximum_amount:
        raw = rule.maximum_amount
        cap_applied = True

    return MonetaryResult(
        rule_id=rule.id,
        input=x,
        amount=Money(rule.currency, round_money(raw)),
        rate=tier.rate,
        rate_type=tier.rate_type,
        tier_index=index,
        raw_amount=raw,
        floor_applied=floor_applied,
        cap_applied=cap_applied,
        meta={"fixedComponent": str(fixed)} if rule.fixed_component is not None else {},
    )


def evaluate_shipping(
    tariff: ShippingTariff,
    weight_kg: Any,
    order_value: Any = 0,
    as_of: Optional[datetime] = None,
    *,
    allow_zero_weight: Optional[bool] = None,
) -> MonetaryResult:
    """
    fee = base_rate + bracket surcharge + handling_surcharge.

    The free-shipping override is checked before the bracket lookup: an order
    value at or above the threshold ships for 0 regardless of weight.
    """
    as_of = as_of or _now()
    check_applicable(tariff, as_of)

    order_val = _input(order_value or 0, "order_value")
    threshold = tariff.free_shipping_threshold
    if threshold is not None and order_val >= threshold:
        return MonetaryResult(
            rule_id=tariff.id,
            input=_input(weight_kg, "weight_kg") if weight_kg is not None else ZERO,
            amount=Money.zero(tariff.currency),
            free_shipping=True,
            meta={"freeShippingThreshold": str(threshold), "orderValue": str(order_val)},
        )

    if allow_zero_weight is None:
        allow_zero_weight = get_settings().allow_zero_weight

    w = _input(weight_kg, "weight_kg")
    if w < ZERO or (w == ZERO and not allow_zero_weight):
        raise InvalidInput(
            f"Shipment weight must be positive (got {w} kg)",
            meta={"ruleId": tariff.id, "weightKg": str(w)},
        )

    index, bracket = find_tier(tariff, w)
    raw = tariff.base_rate + bracket.rate + tariff.handling_surcharge

    return MonetaryResult(
        rule_id=tariff.id,
        input=w,
        amount=Money(tariff.currency, round_money(raw)),
        rate=bracket.rate,
        rate_type=RateType.FIXED,
        tier_index=index,
        raw_amount=raw,
        meta={
            "baseRate": str(tariff.base_rate),
            "surcharge": str(bracket.rate),
            "handlingSurcharge": str(tariff.handling_surcharge),
        },
    )


def evaluate_cod(
    tariff: ShippingTariff,
    cod_amount: Any,
    as_of: Optional[datetime] = None,
) -> MonetaryResult:
    """
    COD fee: percentage of the collected amount or a fixed charge, floored at
    min_amount. Independent of the free-shipping override.
    """
    as_of = as_of or _now()
    check_applicable(tariff, as_of)

    amount = _input(cod_amount, "cod_amount")
    if amount < ZERO:
        raise InvalidInput(f"COD amount must be non-negative (got {amount})", meta={"ruleId": tariff.id})

    cod = tariff.cod_fee
    if cod is None:
        return MonetaryResult(
            rule_id=tariff.id,
            input=amount,
            amount=Money.zero(tariff.currency),
            meta={"reason": "no_cod_fee_configured"},
        )

    if cod.type == RateType.PERCENTAGE:
        raw = amount * cod.rate / HUNDRED
    else:
        raw = cod.rate

    floor_applied = raw < cod.min_amount
    if floor_applied:
        raw = cod.min_amount

    return MonetaryResult(
        rule_id=tariff.id,
        input=amount,
        amount=Money(tariff.currency, round_money(raw)),
        rate=cod.rate,
        rate_type=cod.type,
        raw_amount=raw,
        floor_applied=floor_applied,
        meta={"minAmount": str(cod.min_amount)},
    )
