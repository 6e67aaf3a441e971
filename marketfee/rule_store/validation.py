from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

from ..domain.money import HUNDRED, ZERO
from ..domain.scope import CategoryScope, GlobalScope, ShopScope
from ..errors import StructuralInvalid

if TYPE_CHECKING:
    from ..rule_types.base import PricingRule


@dataclass(frozen=True)
class ValidationError:
    ruleId: Optional[str]
    field: Optional[str]  # None = rule-level error
    errorCode: str
    message: str


@dataclass
class ValidationResult:
    ok: bool
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def error(self) -> Optional[ValidationError]:
        return self.errors[0] if self.errors else None


def _err(rule: "PricingRule", field_name: Optional[str], code: str, message: str) -> ValidationError:
    return ValidationError(getattr(rule, "id", None), field_name, code, message)


# -----------------------------
# Checks (run in this order, first violation wins)
# -----------------------------


def _check_scope(rule: "PricingRule") -> Optional[ValidationError]:
    if not str(getattr(rule, "id", "") or "").strip():
        return _err(rule, "id", "MISSING_ID", "Rule id is required.")

    if not str(getattr(rule, "currency", "") or "").strip():
        return _err(rule, "currency", "MISSING_CURRENCY", "Currency is required.")

    scope = rule.scope
    if isinstance(scope, ShopScope):
        if not scope.shop_ref:
            return _err(rule, "shopRef", "MISSING_SHOP_REF", "Shop reference is required for SHOP scope.")
    elif isinstance(scope, CategoryScope):
        if not scope.category_ref:
            return _err(
                rule, "categoryRef", "MISSING_CATEGORY_REF", "Category reference is required for CATEGORY scope."
            )
    elif not isinstance(scope, GlobalScope):
        return _err(rule, "scope", "INVALID_SCOPE", f"Unsupported scope: {scope!r}")
    return None


def _check_tiers(rule: "PricingRule") -> Optional[ValidationError]:
    tiers = rule.tiers
    if not tiers:
        return _err(rule, "tiers", "NO_TIERS", "At least one tier is required.")

    if tiers[0].min != ZERO:
        return _err(
            rule, "tiers[0].min", "COVERAGE_GAP", f"First tier must start at 0 (got {tiers[0].min})."
        )

    last = len(tiers) - 1
    for i, t in enumerate(tiers):
        if t.max is not None and t.max <= t.min:
            return _err(
                rule, f"tiers[{i}].max", "INVALID_RANGE", f"Tier max ({t.max}) must be greater than min ({t.min})."
            )

        if i == last:
            if t.max is not None:
                return _err(rule, f"tiers[{i}].max", "LAST_TIER_BOUNDED", "Last tier must be unbounded.")
            break

        nxt = tiers[i + 1]
        if nxt.min <= t.min:
            return _err(
                rule, f"tiers[{i + 1}].min", "NOT_SORTED", "Tiers must be sorted ascending by min."
            )
        if t.max is None:
            return _err(
                rule, f"tiers[{i}].max", "UNBOUNDED_NOT_LAST", "Only the last tier may be unbounded."
            )
        if nxt.min < t.max:
            return _err(
                rule,
                f"tiers[{i + 1}].min",
                "OVERLAP",
                f"Tiers overlap: previous ends at {t.max}, next starts at {nxt.min}.",
            )
        if nxt.min > t.max:
            return _err(
                rule,
                f"tiers[{i + 1}].min",
                "COVERAGE_GAP",
                f"Gap found: previous ends at {t.max}, next starts at {nxt.min}.",
            )
    return None


def _check_numbers(rule: "PricingRule") -> Optional[ValidationError]:
    for name, value in rule.non_negative_fields():
        if value is not None and value < ZERO:
            return _err(rule, name, "NEGATIVE_VALUE", f"{name} must be non-negative (got {value}).")

    for name, value in rule.percentage_fields():
        if value is not None and value > HUNDRED:
            return _err(rule, name, "OUT_OF_RANGE", f"{name} cannot exceed 100% (got {value}).")

    floor, cap = rule.minimum_amount, rule.maximum_amount
    if floor is not None and cap is not None and cap < floor:
        return _err(
            rule, "maximumAmount", "INVALID_RANGE", f"Maximum amount ({cap}) is below minimum amount ({floor})."
        )

    fixed = rule.fixed_component
    if fixed is not None and fixed.currency != rule.currency:
        return _err(
            rule,
            "fixedComponent.currency",
            "CURRENCY_MISMATCH",
            f"Fixed component currency {fixed.currency} differs from rule currency {rule.currency}.",
        )
    return None


def _is_aware(dt: datetime) -> bool:
    return dt.tzinfo is not None and dt.tzinfo.utcoffset(dt) is not None


def _check_window(rule: "PricingRule") -> Optional[ValidationError]:
    start, end = rule.effective_from, rule.effective_to
    if start is None:
        return _err(rule, "effectiveFrom", "MISSING_EFFECTIVE_FROM", "Effective from date is required.")

    for name, value in (("effectiveFrom", start), ("effectiveTo", end), ("updatedAt", rule.updated_at)):
        if value is not None and not _is_aware(value):
            return _err(rule, name, "NAIVE_DATETIME", f"{name} must be timezone-aware.")

    if end is not None and start >= end:
        return _err(
            rule, "effectiveTo", "INVALID_WINDOW", "Effective from date must be before effective to date."
        )
    return None


_CHECKS: List[Callable[["PricingRule"], Optional[ValidationError]]] = [
    _check_scope,
    _check_tiers,
    _check_numbers,
    _check_window,
]


def validate(rule: "PricingRule") -> ValidationResult:
    """
    Structural validation of a single rule. Pure: never mutates the rule.

    Order: scope/reference consistency, tier contiguity and ordering,
    non-negative numeric fields, time window. Stops at the first violation.
    """
    for check in _CHECKS:
        error = check(rule)
        if error is not None:
            return ValidationResult(ok=False, errors=[error])
    return ValidationResult(ok=True)


def ensure_valid(rule: "PricingRule") -> None:
    result = validate(rule)
    if result.ok:
        return
    e = result.error
    raise StructuralInvalid(e.message, code=e.errorCode, field=e.field, rule_id=e.ruleId)
