from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from ..domain.money import to_decimal
from ..domain.scope import RuleScope, ScopeKind, scope_from_dict

D = Decimal

DEFAULT_CURRENCY = "VND"


class RuleKind(str, Enum):
    COMMISSION = "COMMISSION"
    FEE = "FEE"
    SHIPPING = "SHIPPING"


class RateType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"

    @classmethod
    def parse(cls, raw: Any) -> "RateType":
        return cls(str(raw or cls.PERCENTAGE.value).strip().upper())


class Boundary(str, Enum):
    """
    Which edge of a tier is inclusive.

    LOWER_INCLUSIVE: [min, max)   (amount tiers)
    UPPER_INCLUSIVE: (min, max]   (weight brackets: "up to and including maxKg");
                     the first tier is also closed at its min.
    """

    LOWER_INCLUSIVE = "LOWER_INCLUSIVE"
    UPPER_INCLUSIVE = "UPPER_INCLUSIVE"


@dataclass(frozen=True)
class Tier:
    min: D
    max: Optional[D]  # None = unbounded
    rate: D
    rate_type: RateType = RateType.PERCENTAGE

    @property
    def unbounded(self) -> bool:
        return self.max is None

    def contains(self, value: D, boundary: Boundary, *, first: bool = False) -> bool:
        if boundary == Boundary.UPPER_INCLUSIVE:
            above_min = value > self.min or (first and value == self.min)
            below_max = self.max is None or value <= self.max
        else:
            above_min = value >= self.min
            below_max = self.max is None or value < self.max
        return above_min and below_max

    @staticmethod
    def from_dict(d: Dict[str, Any], default_type: RateType) -> "Tier":
        raw_max = d.get("max", d.get("maxAmount"))
        rate_raw = d.get("rate", d.get("ratePercent"))
        rate_type = default_type
        if rate_raw is None and d.get("fixedAmount") is not None:
            # PlatformFee tiers carry either percentageRate or fixedAmount
            rate_raw = d["fixedAmount"]
            rate_type = RateType.FIXED
        elif rate_raw is None:
            rate_raw = d.get("percentageRate")
        if d.get("type") is not None:
            rate_type = RateType.parse(d["type"])
        return Tier(
            min=to_decimal(d.get("min", d.get("minAmount", 0)), field="tier.min"),
            max=None if raw_max is None else to_decimal(raw_max, field="tier.max"),
            rate=to_decimal(rate_raw, field="tier.rate"),
            rate_type=rate_type,
        )


@dataclass(frozen=True)
class FixedComponent:
    currency: str
    amount: D

    @staticmethod
    def from_dict(d: Dict[str, Any], currency: str) -> "FixedComponent":
        return FixedComponent(
            currency=str(d.get("currency") or currency),
            amount=to_decimal(d.get("amount", 0), field="fixedComponent.amount"),
        )


def parse_datetime(value: Any, *, field: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"{field}: not an ISO-8601 datetime: {value!r}") from e


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PricingRule:
    """
    Scoped, time-bounded, tiered pricing rule.

    Instances are immutable snapshots and are validated once, at construction:
    a structurally invalid rule cannot exist. Subclasses set `kind` and may add
    fields; all of them share tier layout, window and scope semantics.
    """

    id: str
    scope: RuleScope
    tiers: Tuple[Tier, ...]
    effective_from: datetime
    effective_to: Optional[datetime] = None
    is_active: bool = True
    name: str = ""
    description: str = ""
    currency: str = DEFAULT_CURRENCY
    fixed_component: Optional[FixedComponent] = None
    minimum_amount: Optional[D] = None
    maximum_amount: Optional[D] = None
    updated_at: datetime = field(default=_EPOCH)

    kind = None  # set by subclasses
    boundary = Boundary.LOWER_INCLUSIVE
    # True: a zero input is charged nothing (no fixed component, no floor)
    waive_zero_value = False

    def __post_init__(self) -> None:
        # tuples only: callers may hand in lists
        if not isinstance(self.tiers, tuple):
            object.__setattr__(self, "tiers", tuple(self.tiers))

        from ..rule_store.validation import ensure_valid

        ensure_valid(self)

    # --- scope surface (flat view used by resolver/index) ---

    @property
    def scope_kind(self) -> ScopeKind:
        return self.scope.kind

    @property
    def scope_ref(self) -> Optional[str]:
        return self.scope.ref

    @property
    def shop_ref(self) -> Optional[str]:
        return self.scope.ref if self.scope.kind == ScopeKind.SHOP else None

    @property
    def category_ref(self) -> Optional[str]:
        return self.scope.ref if self.scope.kind == ScopeKind.CATEGORY else None

    # --- validation hooks (subclasses extend) ---

    def non_negative_fields(self) -> List[Tuple[str, Optional[D]]]:
        out: List[Tuple[str, Optional[D]]] = [
            (f"tiers[{i}].rate", t.rate) for i, t in enumerate(self.tiers)
        ]
        if self.fixed_component is not None:
            out.append(("fixedComponent.amount", self.fixed_component.amount))
        out.append(("minimumAmount", self.minimum_amount))
        out.append(("maximumAmount", self.maximum_amount))
        return out

    def percentage_fields(self) -> List[Tuple[str, Optional[D]]]:
        return [
            (f"tiers[{i}].rate", t.rate)
            for i, t in enumerate(self.tiers)
            if t.rate_type == RateType.PERCENTAGE
        ]

    # --- window ---

    def is_effective_at(self, as_of: datetime) -> bool:
        if self.effective_from > as_of:
            return False
        if self.effective_to is not None and self.effective_to < as_of:
            return False
        return True

    def is_applicable_at(self, as_of: datetime) -> bool:
        return self.is_active and self.is_effective_at(as_of)

    # --- documents ---

    @classmethod
    def _common_kwargs(cls, d: Dict[str, Any], currency: str) -> Dict[str, Any]:
        rule_id = str(d.get("id") or "").strip()
        currency = str(d.get("currency") or currency)
        fixed_raw = d.get("fixedComponent", d.get("fixedFee"))
        min_raw = d.get("minimumAmount", d.get("minimumFee"))
        max_raw = d.get("maximumAmount", d.get("maximumFee"))
        return dict(
            id=rule_id,
            scope=scope_from_dict(d),
            effective_from=parse_datetime(d.get("effectiveFrom"), field="effectiveFrom"),
            effective_to=parse_datetime(d.get("effectiveTo"), field="effectiveTo"),
            is_active=bool(d.get("isActive", True)),
            name=str(d.get("name") or d.get("feeName") or rule_id),
            description=str(d.get("description") or ""),
            currency=currency,
            fixed_component=(
                FixedComponent.from_dict(fixed_raw, currency) if fixed_raw else None
            ),
            minimum_amount=None if min_raw is None else to_decimal(min_raw, field="minimumAmount"),
            maximum_amount=None if max_raw is None else to_decimal(max_raw, field="maximumAmount"),
            updated_at=parse_datetime(d.get("updatedAt"), field="updatedAt") or _EPOCH,
        )

    @classmethod
    def _tiers_from_dict(cls, d: Dict[str, Any]) -> Tuple[Tier, ...]:
        default_type = RateType.parse(d.get("rateType"))
        return tuple(Tier.from_dict(t, default_type) for t in d.get("tiers") or [])

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, currency: str = DEFAULT_CURRENCY) -> "PricingRule":
        return cls(tiers=cls._tiers_from_dict(d), **cls._common_kwargs(d, currency))


# Registry: rule kind -> rule class
rule_registry: Dict[RuleKind, Type[PricingRule]] = {}


def register(rule_cls: Type[PricingRule]) -> Type[PricingRule]:
    """
    Decorator to register a rule class by its kind.
    Fails fast on duplicate registrations (useful during dev/reload).
    """
    key = getattr(rule_cls, "kind", None)
    if not key:
        raise ValueError(f"Rule class {rule_cls.__name__} has no kind")

    if key in rule_registry and rule_registry[key] is not rule_cls:
        raise ValueError(
            f"Duplicate rule registration for kind '{key.value}': "
            f"{rule_registry[key].__name__} vs {rule_cls.__name__}"
        )

    rule_registry[key] = rule_cls
    return rule_cls


def rule_from_dict(d: Dict[str, Any], *, currency: str = DEFAULT_CURRENCY) -> PricingRule:
    """Dispatch a catalog document to the registered rule class for its kind."""
    raw_kind = str(d.get("kind") or "").strip().upper()
    try:
        kind = RuleKind(raw_kind)
    except ValueError:
        raise ValueError(f"Unknown rule kind: {d.get('kind')!r}") from None

    rule_cls = rule_registry.get(kind)
    if rule_cls is None:
        raise ValueError(f"No rule class registered for kind '{kind.value}'")
    return rule_cls.from_dict(d, currency=currency)
