"""
Infrastructure package for the count reconciler.

Centralizes backend connectivity concerns (connector factories, pooling and
the connector cache). Keep this layer focused on I/O and resource
management, decoupled from rule and engine logic.
"""

from reconciler.infrastructure.factories import (
    ConnectorFactory,
    CouchbaseConnectorFactory,
    MongoConnectorFactory,
    PostgresConnectorFactory,
    default_factories,
)
from reconciler.infrastructure.registry import ConnectorRegistry

__all__ = [
    "ConnectorFactory",
    "ConnectorRegistry",
    "CouchbaseConnectorFactory",
    "MongoConnectorFactory",
    "PostgresConnectorFactory",
    "default_factories",
]
