from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..domain.scope import ScopeKind
from ..errors import CatalogError
from ..rule_types.base import DEFAULT_CURRENCY, PricingRule, RuleKind, rule_from_dict

IndexKey = Tuple[ScopeKind, Optional[str]]


def _recency_key(rule: PricingRule):
    # most recently modified first; id keeps equal timestamps deterministic
    return (-rule.updated_at.timestamp(), rule.id)


class RuleIndex:
    """
    Candidate rules of one kind keyed by (scope, reference), each bucket sorted
    most-recently-modified first. Built once per snapshot; read-only after.
    """

    def __init__(self, rules: Iterable[PricingRule]):
        buckets: Dict[IndexKey, List[PricingRule]] = {}
        count = 0
        for rule in rules:
            buckets.setdefault((rule.scope_kind, rule.scope_ref), []).append(rule)
            count += 1
        self._buckets: Dict[IndexKey, Tuple[PricingRule, ...]] = {
            key: tuple(sorted(bucket, key=_recency_key)) for key, bucket in buckets.items()
        }
        self._count = count

    def candidates(self, scope: ScopeKind, ref: Optional[str] = None) -> Tuple[PricingRule, ...]:
        if scope == ScopeKind.GLOBAL:
            ref = None
        return self._buckets.get((scope, ref), ())

    def __len__(self) -> int:
        return self._count


@dataclass(frozen=True)
class RuleCatalog:
    """
    Immutable snapshot of all pricing rules.

    Evaluation only ever reads a snapshot; a new catalog version replaces the
    whole object (see CatalogLoader), it is never mutated in place.
    """

    rules: Tuple[PricingRule, ...]
    version: str = "v1"
    currency: str = DEFAULT_CURRENCY
    _indexes: Dict[RuleKind, RuleIndex] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.rules, tuple):
            object.__setattr__(self, "rules", tuple(self.rules))

        ids = [r.id for r in self.rules]
        if len(ids) != len(set(ids)):
            seen, dups = set(), []
            for rid in ids:
                if rid in seen and rid not in dups:
                    dups.append(rid)
                seen.add(rid)
            raise CatalogError(f"Duplicate rule ids in catalog: {dups}", meta={"duplicates": dups})

        foreign = [r.id for r in self.rules if r.currency != self.currency]
        if foreign:
            raise CatalogError(
                f"Rules priced in another currency than the catalog ({self.currency}): {foreign}",
                meta={"currency": self.currency, "ruleIds": foreign},
            )

        indexes = {kind: RuleIndex(self.of_kind(kind)) for kind in RuleKind}
        object.__setattr__(self, "_indexes", indexes)

    def of_kind(self, kind: RuleKind) -> Tuple[PricingRule, ...]:
        return tuple(r for r in self.rules if r.kind == kind)

    def index(self, kind: RuleKind) -> RuleIndex:
        return self._indexes[kind]

    def query(
        self,
        kind: RuleKind,
        scope: Optional[ScopeKind] = None,
        ref: Optional[str] = None,
    ) -> Tuple[PricingRule, ...]:
        """All rules of a kind matching an optional scope filter (inactive/expired included)."""
        out = []
        for r in self.of_kind(kind):
            if scope is not None and r.scope_kind != scope:
                continue
            if ref is not None and r.scope_ref != ref:
                continue
            out.append(r)
        return tuple(out)

    def get(self, rule_id: str) -> Optional[PricingRule]:
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None

    def __len__(self) -> int:
        return len(self.rules)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RuleCatalog":
        """
        Build a catalog from a parsed document. Any structural problem in any
        rule rejects the whole catalog: never partially accept.
        """
        currency = str(d.get("currency") or DEFAULT_CURRENCY)
        version = str(d.get("catalogVersion") or d.get("version") or "v1")

        rules: List[PricingRule] = []
        for i, raw in enumerate(d.get("rules") or []):
            try:
                rules.append(rule_from_dict(raw, currency=currency))
            except (ValueError, TypeError) as e:
                # StructuralInvalid is a ValueError too
                raise CatalogError(
                    f"rules[{i}] ({raw.get('id', '?')}): {e}",
                    meta={"index": i, "ruleId": raw.get("id")},
                ) from e

        return RuleCatalog(rules=tuple(rules), version=version, currency=currency)
