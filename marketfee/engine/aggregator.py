from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from ..config import Settings, get_settings
from ..domain.money import ZERO, Money, to_decimal
from ..errors import InvalidInput, RuleEvaluationError, RuleNotFound
from ..logging_config import get_logger, log_context
from ..rule_store.catalog import RuleCatalog
from ..rule_store.loader import CatalogLoader
from ..rule_types.base import PricingRule, RuleKind
from ..rule_types.shipping import ShippingTariff
from . import resolver, tier_evaluator
from .context import (
    BUYER_CHARGES,
    PLATFORM_DEDUCTIONS,
    LineKind,
    MonetaryResult,
    OrderContext,
    ScopeContext,
    Settlement,
    SettlementLine,
)

D = Decimal

logger = get_logger(__name__)

CatalogSource = Union[RuleCatalog, CatalogLoader]


class FeeAggregator:
    """
    Prices one order against one catalog snapshot.

    Commission, marketplace fee, shipping and COD are independent
    sub-computations (no shared mutable state). A missing rule degrades to a
    zero line flagged `no_rule_matched`; evaluator failures are logged as
    anomalies and propagate.
    """

    def __init__(self, catalog: CatalogSource, settings: Optional[Settings] = None):
        self._source = catalog
        self.settings = settings or get_settings()

    def _snapshot(self) -> RuleCatalog:
        if isinstance(self._source, CatalogLoader):
            return self._source.catalog
        return self._source

    # -----------------
    # public
    # -----------------

    def compute_settlement(self, order: OrderContext) -> Settlement:
        catalog = self._snapshot()
        as_of = order.as_of or datetime.now(timezone.utc)

        with log_context(order_id=order.order_ref, shop_id=order.shop_ref):
            gross = self._amount(order.total_amount, "total_amount")
            scope = ScopeContext.of(order)

            lines: List[SettlementLine] = [
                self._priced_line(
                    LineKind.COMMISSION, catalog, catalog.index(RuleKind.COMMISSION), scope, gross, as_of
                ),
                self._priced_line(LineKind.FEE, catalog, catalog.index(RuleKind.FEE), scope, gross, as_of),
            ]

            is_cod = self.is_cod(order)
            if order.weight_kg is not None or is_cod:
                lines.extend(self._shipping_lines(catalog, order, scope, gross, as_of, is_cod))

            settlement = self._build(catalog.currency, order, gross, lines, as_of)
            logger.debug(
                "settled gross={} deductions={} net={} buyer_charges={} unmatched={}",
                settlement.gross_amount.amount,
                settlement.platform_deductions.amount,
                settlement.net_payable.amount,
                settlement.buyer_charges.amount,
                [k.value for k in settlement.unmatched],
            )
            return settlement

    def settle_many(self, orders: Iterable[OrderContext], max_workers: Optional[int] = None) -> List[Settlement]:
        """Price many orders in parallel; output keeps input order."""
        workers = max_workers or self.settings.settle_max_workers
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self.compute_settlement, orders))

    def is_cod(self, order: OrderContext) -> bool:
        if order.is_cod:
            return True
        method = (order.payment_method or "").strip().upper()
        return method in {m.upper() for m in self.settings.cod_payment_methods}

    # -----------------
    # internals
    # -----------------

    @staticmethod
    def _amount(value, field: str) -> D:
        try:
            amount = to_decimal(value, field=field)
        except ValueError as e:
            raise InvalidInput(str(e), meta={"field": field}) from e
        if amount < ZERO:
            raise InvalidInput(f"{field} must be non-negative (got {amount})", meta={"field": field})
        return amount

    def _priced_line(self, kind, catalog, candidates, scope, value, as_of) -> SettlementLine:
        try:
            rule = resolver.resolve(scope, candidates, as_of)
        except RuleNotFound as e:
            return self._unmatched(kind, catalog.currency, e)

        result = self._evaluate(kind, rule, lambda: tier_evaluator.evaluate(rule, value, as_of))
        return self._line(kind, rule, result)

    def _shipping_lines(self, catalog, order, scope, gross, as_of, is_cod) -> List[SettlementLine]:
        candidates = self._shipping_candidates(catalog, order)
        try:
            tariff = resolver.resolve(scope, candidates, as_of)
        except RuleNotFound as e:
            out = []
            if order.weight_kg is not None:
                out.append(self._unmatched(LineKind.SHIPPING, catalog.currency, e))
            if is_cod:
                out.append(self._unmatched(LineKind.COD, catalog.currency, e))
            return out

        out = []
        if order.weight_kg is not None:
            result = self._evaluate(
                LineKind.SHIPPING,
                tariff,
                lambda: tier_evaluator.evaluate_shipping(
                    tariff,
                    order.weight_kg,
                    gross,
                    as_of,
                    allow_zero_weight=self.settings.allow_zero_weight,
                ),
            )
            out.append(self._line(LineKind.SHIPPING, tariff, result))

        if is_cod:
            cod_amount = gross if order.cod_amount is None else self._amount(order.cod_amount, "cod_amount")
            result = self._evaluate(
                LineKind.COD, tariff, lambda: tier_evaluator.evaluate_cod(tariff, cod_amount, as_of)
            )
            line = self._line(LineKind.COD, tariff, result)
            if tariff.cod_fee is None:
                line = SettlementLine(
                    kind=line.kind,
                    rule_id=line.rule_id,
                    rate=None,
                    computed_amount=line.computed_amount,
                    no_rule_matched=True,
                    meta=line.meta,
                )
            out.append(line)
        return out

    @staticmethod
    def _shipping_candidates(catalog: RuleCatalog, order: OrderContext):
        zone = (order.shipping_zone or "").strip().upper() or None
        method = (order.shipping_method or "").strip().upper() or None
        if zone is None and method is None:
            return catalog.index(RuleKind.SHIPPING)

        def matches(t: ShippingTariff) -> bool:
            # a tariff without zone/method applies to all of them
            if zone and t.zone_code and t.zone_code != zone:
                return False
            if method and t.method_code and t.method_code != method:
                return False
            return True

        return [t for t in catalog.of_kind(RuleKind.SHIPPING) if matches(t)]

    @staticmethod
    def _evaluate(kind: LineKind, rule: PricingRule, compute) -> MonetaryResult:
        try:
            return compute()
        except RuleEvaluationError as e:
            # resolver selected it, evaluator rejects it: never expected in steady state
            logger.error("{} anomaly on rule {}: {} ({})", kind.value, rule.id, e.message, e.code)
            raise

    @staticmethod
    def _unmatched(kind: LineKind, currency: str, e: RuleNotFound) -> SettlementLine:
        logger.warning("no {} rule matched: {}", kind.value, e.meta)
        return SettlementLine(
            kind=kind,
            rule_id=None,
            rate=None,
            computed_amount=Money.zero(currency),
            no_rule_matched=True,
            meta={"reason": "no_rule_matched", **e.meta},
        )

    @staticmethod
    def _line(kind: LineKind, rule: PricingRule, result: MonetaryResult) -> SettlementLine:
        meta = {
            "ruleName": rule.name,
            "scope": rule.scope_kind.value,
            "input": str(result.input),
            **result.meta,
        }
        if result.tier_index is not None:
            meta["tierIndex"] = result.tier_index
        if result.floor_applied:
            meta["floorApplied"] = True
        if result.cap_applied:
            meta["capApplied"] = True
        if result.free_shipping:
            meta["freeShipping"] = True
        return SettlementLine(
            kind=kind,
            rule_id=rule.id,
            rate=result.rate,
            rate_type=result.rate_type,
            computed_amount=result.amount,
            meta=meta,
        )

    @staticmethod
    def _build(currency, order, gross, lines, as_of) -> Settlement:
        def total(kinds=None) -> Money:
            acc = Money.zero(currency)
            for ln in lines:
                if kinds is None or ln.kind in kinds:
                    acc = acc + ln.computed_amount
            return acc

        gross_money = Money(currency, gross)
        deductions = total(PLATFORM_DEDUCTIONS)
        return Settlement(
            currency=currency,
            as_of=as_of,
            gross_amount=gross_money,
            lines=tuple(lines),
            total=total(),
            platform_deductions=deductions,
            net_payable=gross_money - deductions,
            buyer_charges=total(BUYER_CHARGES),
            order_ref=order.order_ref,
        )


def compute_settlement(
    order: OrderContext,
    catalog: CatalogSource,
    settings: Optional[Settings] = None,
) -> Settlement:
    return FeeAggregator(catalog, settings=settings).compute_settlement(order)
