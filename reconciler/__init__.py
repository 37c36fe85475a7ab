"""
Count Reconciler - record-count reconciliation across heterogeneous data stores.

For a given trade date, the reconciler counts the records of one entity type
(orders, quotes, ...) in two source systems that are expected to hold the
same data, and reports whether the counts match. Supported backends:

- Relational databases (PostgreSQL, SQL count statements)
- Document stores (MongoDB, structured count filters)
- Analytic query engines (Couchbase, N1QL count statements)

Comparisons run from persistent rules, as one-off ad-hoc requests, or as a
batch over every configured rule.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from reconciler.config import Settings, get_settings
from reconciler.connectors.abstract import AbstractConnector, Connector
from reconciler.domain.models import (
    AdHocRequest,
    BatchReport,
    DataSourceDescriptor,
    DataSourceType,
    EntityType,
    FilterQuery,
    ReconciliationResult,
    ReconciliationRule,
    SourceSystem,
    TextQuery,
)
from reconciler.engine import ReconciliationEngine
from reconciler.errors import (
    ConfigurationError,
    ConnectorError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from reconciler.infrastructure.registry import ConnectorRegistry
from reconciler.query_resolver import QueryResolver
from reconciler.rule_store import InMemoryRuleStore, load_config
from reconciler.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    "load_config",
    # Engine
    "ReconciliationEngine",
    "ConnectorRegistry",
    "QueryResolver",
    "InMemoryRuleStore",
    # Connector abstractions
    "Connector",
    "AbstractConnector",
    # Domain
    "AdHocRequest",
    "BatchReport",
    "DataSourceDescriptor",
    "DataSourceType",
    "EntityType",
    "FilterQuery",
    "ReconciliationResult",
    "ReconciliationRule",
    "SourceSystem",
    "TextQuery",
    # Errors
    "ReconciliationError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationError",
    "ConnectorError",
    # Logging
    "configure_logging",
    "get_logger",
]
