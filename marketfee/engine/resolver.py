from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from ..domain.scope import SCOPE_PRECEDENCE, ScopeKind
from ..errors import RuleNotFound
from ..logging_config import get_logger
from ..rule_store.catalog import RuleIndex
from ..rule_types.base import PricingRule
from .context import ScopeContext

logger = get_logger(__name__)

RuleSource = Union[RuleIndex, Iterable[PricingRule]]


def _as_index(rules: RuleSource) -> RuleIndex:
    if isinstance(rules, RuleIndex):
        return rules
    return RuleIndex(rules)


def _first_applicable(index: RuleIndex, scope: ScopeKind, ref: Optional[str], as_of: datetime):
    # buckets are already sorted most-recently-modified first
    for rule in index.candidates(scope, ref):
        if rule.is_applicable_at(as_of):
            return rule
    return None


def find(
    context: ScopeContext,
    rules: RuleSource,
    as_of: Optional[datetime] = None,
) -> Optional[PricingRule]:
    """
    Priority fallback search, first match wins:

    1. SHOP rule for context.shop_ref
    2. CATEGORY rule for context.category_ref
    3. GLOBAL rule

    Within a level only active rules whose window contains `as_of` qualify;
    the most recently modified wins. An inactive or expired specific rule never
    blocks fallback to a broader scope.
    """
    if as_of is None:
        as_of = datetime.now(timezone.utc)
    index = _as_index(rules)

    refs = {
        ScopeKind.SHOP: context.shop_ref,
        ScopeKind.CATEGORY: context.category_ref,
        ScopeKind.GLOBAL: None,
    }
    for scope in SCOPE_PRECEDENCE:
        ref = refs[scope]
        if scope != ScopeKind.GLOBAL and not ref:
            continue
        rule = _first_applicable(index, scope, ref, as_of)
        if rule is not None:
            logger.debug("resolved {} rule {} at {} level", rule.kind.value, rule.id, scope.value)
            return rule
    return None


def resolve(
    context: ScopeContext,
    rules: RuleSource,
    as_of: Optional[datetime] = None,
) -> PricingRule:
    """Like find(), but a miss is a typed RuleNotFound instead of None."""
    if as_of is None:
        as_of = datetime.now(timezone.utc)
    rule = find(context, rules, as_of)
    if rule is None:
        raise RuleNotFound(
            "No active rule matches shop/category/global scope",
            meta={
                "shopRef": context.shop_ref,
                "categoryRef": context.category_ref,
                "asOf": as_of.isoformat(),
            },
        )
    return rule
