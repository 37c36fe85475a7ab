"""
Domain package for the count reconciler.

Exports the topology, rule, request and result models shared by connectors,
the engine and the CLI. Keep this package focused on data definitions and
validation concerns.
"""

from reconciler.domain.models import (
    DEFAULT_TRADE_DATE_FIELD,
    AdHocRequest,
    BatchReport,
    DataSourceDescriptor,
    DataSourceType,
    EntityType,
    FilterQuery,
    QueryTemplate,
    ReconciliationConfig,
    ReconciliationResult,
    ReconciliationRule,
    RuleFailure,
    SourceSystem,
    TextQuery,
)

__all__ = [
    "DEFAULT_TRADE_DATE_FIELD",
    "AdHocRequest",
    "BatchReport",
    "DataSourceDescriptor",
    "DataSourceType",
    "EntityType",
    "FilterQuery",
    "QueryTemplate",
    "ReconciliationConfig",
    "ReconciliationResult",
    "ReconciliationRule",
    "RuleFailure",
    "SourceSystem",
    "TextQuery",
]
