from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from marketfee.domain.scope import CategoryScope, ShopScope
from marketfee.engine import resolver
from marketfee.engine.context import ScopeContext
from marketfee.errors import RuleNotFound
from marketfee.rule_store.catalog import RuleIndex


@pytest.fixture
def layered(make_commission):
    return [
        make_commission("c-global", rate="5"),
        make_commission("c-cat", scope=CategoryScope(category_ref="cat-1"), rate="4"),
        make_commission("c-shop", scope=ShopScope(shop_ref="shop-1"), rate="3"),
    ]


@pytest.mark.parametrize(
    "shop, category, expected",
    [
        ("shop-1", "cat-1", "c-shop"),
        ("shop-2", "cat-1", "c-cat"),
        (None, "cat-1", "c-cat"),
        ("shop-2", "cat-2", "c-global"),
        (None, None, "c-global"),
    ],
)
def test_scope_precedence(layered, fixed_now, shop, category, expected):
    rule = resolver.resolve(ScopeContext(shop_ref=shop, category_ref=category), layered, fixed_now)
    assert rule.id == expected


def test_accepts_prebuilt_index(layered, fixed_now):
    index = RuleIndex(layered)
    rule = resolver.resolve(ScopeContext(shop_ref="shop-1"), index, fixed_now)
    assert rule.id == "c-shop"


def test_expired_shop_rule_falls_back(make_commission, fixed_now):
    rules = [
        make_commission("c-global"),
        make_commission("c-cat", scope=CategoryScope(category_ref="cat-1")),
        make_commission(
            "c-shop",
            scope=ShopScope(shop_ref="shop-1"),
            effective_to=fixed_now - timedelta(days=1),
        ),
    ]

    ctx = ScopeContext(shop_ref="shop-1", category_ref="cat-1")
    assert resolver.resolve(ctx, rules, fixed_now).id == "c-cat"

    ctx = ScopeContext(shop_ref="shop-1")
    assert resolver.resolve(ctx, rules, fixed_now).id == "c-global"


def test_inactive_and_future_rules_do_not_block_fallback(make_commission, fixed_now):
    rules = [
        make_commission("c-global"),
        make_commission("c-shop-off", scope=ShopScope(shop_ref="shop-1"), is_active=False),
        make_commission(
            "c-shop-next",
            scope=ShopScope(shop_ref="shop-1"),
            effective_from=fixed_now + timedelta(days=1),
        ),
    ]
    assert resolver.resolve(ScopeContext(shop_ref="shop-1"), rules, fixed_now).id == "c-global"


def test_window_end_is_inclusive(make_commission, fixed_now):
    rules = [
        make_commission("c-global"),
        make_commission("c-shop", scope=ShopScope(shop_ref="shop-1"), effective_to=fixed_now),
    ]
    ctx = ScopeContext(shop_ref="shop-1")

    assert resolver.resolve(ctx, rules, fixed_now).id == "c-shop"
    assert resolver.resolve(ctx, rules, fixed_now + timedelta(seconds=1)).id == "c-global"


def test_window_start_is_inclusive(make_commission, fixed_now):
    rules = [make_commission("c-shop", scope=ShopScope(shop_ref="shop-1"), effective_from=fixed_now)]
    ctx = ScopeContext(shop_ref="shop-1")

    assert resolver.resolve(ctx, rules, fixed_now).id == "c-shop"
    assert resolver.find(ctx, rules, fixed_now - timedelta(seconds=1)) is None


def test_most_recently_modified_wins_within_level(make_commission, fixed_now):
    rules = [
        make_commission(
            "c-shop-old",
            scope=ShopScope(shop_ref="shop-1"),
            updated_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
        ),
        make_commission(
            "c-shop-new",
            scope=ShopScope(shop_ref="shop-1"),
            updated_at=datetime(2024, 9, 1, tzinfo=timezone.utc),
        ),
    ]
    assert resolver.resolve(ScopeContext(shop_ref="shop-1"), rules, fixed_now).id == "c-shop-new"
    assert resolver.resolve(ScopeContext(shop_ref="shop-1"), list(reversed(rules)), fixed_now).id == "c-shop-new"


def test_not_found_is_typed(make_commission, fixed_now):
    rules = [make_commission("c-shop", scope=ShopScope(shop_ref="shop-1"))]

    with pytest.raises(RuleNotFound) as exc:
        resolver.resolve(ScopeContext(shop_ref="shop-2", category_ref="cat-9"), rules, fixed_now)

    assert exc.value.code == "NOT_FOUND"
    assert exc.value.meta["shopRef"] == "shop-2"
    assert exc.value.meta["categoryRef"] == "cat-9"
    assert resolver.find(ScopeContext(shop_ref="shop-2"), rules, fixed_now) is None


def test_empty_rule_set(fixed_now):
    with pytest.raises(RuleNotFound):
        resolver.resolve(ScopeContext(), [], fixed_now)


def test_as_of_defaults_to_now(make_commission):
    rules = [
        make_commission("c-global"),
        make_commission(
            "c-shop",
            scope=ShopScope(shop_ref="shop-1"),
            effective_to=datetime(2024, 6, 1, tzinfo=timezone.utc),
        ),
    ]
    # the shop rule ended in the past, so "now" must fall back
    assert resolver.resolve(ScopeContext(shop_ref="shop-1"), rules).id == "c-global"
