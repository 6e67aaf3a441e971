from .aggregator import FeeAggregator, compute_settlement  # noqa
from .context import (  # noqa
    LineKind,
    MonetaryResult,
    OrderContext,
    ScopeContext,
    Settlement,
    SettlementLine,
)
from .resolver import find, resolve  # noqa
from .tier_evaluator import evaluate, evaluate_cod, evaluate_shipping  # noqa
