"""
Connector factories for the count reconciler.

One factory per backend kind. Each factory validates the connection
attributes a data source must declare, then builds a connector around a
pooled client created under a fixed pool policy (sizes, idle and lifetime
limits, timeouts). Pool policy is not tunable per data source or per call.
"""

from __future__ import annotations

import abc
from datetime import timedelta
from typing import Any, Dict, List, Tuple

from psycopg_pool import ConnectionPool
from pymongo import MongoClient

from reconciler.connectors.abstract import Connector
from reconciler.connectors.analytic import AnalyticConnector
from reconciler.connectors.document import DocumentConnector
from reconciler.connectors.relational import RelationalConnector
from reconciler.domain.models import DataSourceDescriptor, DataSourceType
from reconciler.errors import ConfigurationError, ConnectorError, ReconciliationError
from reconciler.utils.logging import get_logger

log = get_logger(__name__)

# Pool policy
POOL_MIN_SIZE = 2
POOL_MAX_SIZE = 10
ACQUIRE_TIMEOUT_SECONDS = 30.0
MAX_IDLE_SECONDS = 600.0
MAX_LIFETIME_SECONDS = 1800.0
KV_TIMEOUT = timedelta(seconds=10)
QUERY_TIMEOUT = timedelta(seconds=30)
READY_TIMEOUT = timedelta(seconds=10)


class ConnectorFactory(abc.ABC):
    """
    Builds connectors for a single backend kind.

    Subclasses set ``kind`` and ``required_attributes`` and implement
    ``_build``; :meth:`create` validates first and turns backend errors
    raised while building into ConnectorError.
    """

    kind: DataSourceType
    required_attributes: Tuple[str, ...] = ()

    def supports(self, kind: DataSourceType) -> bool:
        return kind == self.kind

    def validate(self, descriptor: DataSourceDescriptor) -> None:
        """
        Check that every required connection attribute is present.

        Raises
        ------
        ConfigurationError
            Naming the first missing attribute, in declared order.
        """
        if not self.supports(descriptor.kind):
            raise ConfigurationError(
                f"{type(self).__name__} cannot build data source '{descriptor.name}' "
                f"of type {descriptor.kind.value}"
            )
        config = descriptor.connection_config
        for attribute in self.required_attributes:
            if config.get(attribute) in (None, "", [], ()):
                raise ConfigurationError(
                    f"Data source '{descriptor.name}' is missing connection attribute '{attribute}'"
                )

    def create(self, descriptor: DataSourceDescriptor) -> Connector:
        self.validate(descriptor)
        log.info(
            f"[CONNECTOR BUILD] {descriptor.name}",
            extra={"data_source": descriptor.name, "kind": descriptor.kind.value},
        )
        try:
            return self._build(descriptor)
        except ReconciliationError:
            raise
        except Exception as exc:
            raise ConnectorError(
                f"Could not build connector for data source '{descriptor.name}': {exc}",
                data_source=descriptor.name,
            ) from exc

    @abc.abstractmethod
    def _build(self, descriptor: DataSourceDescriptor) -> Connector:  # pragma: no cover
        raise NotImplementedError


class PostgresConnectorFactory(ConnectorFactory):
    """Relational connectors backed by a psycopg_pool ConnectionPool."""

    kind = DataSourceType.POSTGRES
    required_attributes = ("url", "username", "password")

    def _build(self, descriptor: DataSourceDescriptor) -> Connector:
        config = descriptor.connection_config
        pool = ConnectionPool(
            conninfo=str(config["url"]),
            kwargs={"user": str(config["username"]), "password": str(config["password"])},
            min_size=POOL_MIN_SIZE,
            max_size=POOL_MAX_SIZE,
            timeout=ACQUIRE_TIMEOUT_SECONDS,
            max_idle=MAX_IDLE_SECONDS,
            max_lifetime=MAX_LIFETIME_SECONDS,
            name=descriptor.name,
            open=True,
        )
        return RelationalConnector(descriptor.name, pool)


class MongoConnectorFactory(ConnectorFactory):
    """Document connectors backed by a pymongo MongoClient (which pools internally)."""

    kind = DataSourceType.MONGODB
    required_attributes = ("uri", "database")

    def _build(self, descriptor: DataSourceDescriptor) -> Connector:
        config = descriptor.connection_config
        timeout_ms = int(ACQUIRE_TIMEOUT_SECONDS * 1000)
        client: MongoClient = MongoClient(
            str(config["uri"]),
            minPoolSize=POOL_MIN_SIZE,
            maxPoolSize=POOL_MAX_SIZE,
            maxIdleTimeMS=int(MAX_IDLE_SECONDS * 1000),
            serverSelectionTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
            connect=False,
        )
        return DocumentConnector(
            descriptor.name,
            client,
            str(config["database"]),
            collection_map(descriptor),
        )


def collection_map(descriptor: DataSourceDescriptor) -> Dict[str, str]:
    """
    Map each declared entity type to its collection.

    Lookup order: ``<entity>_collection`` attribute, then a shared
    ``collection`` attribute, then the lower-cased entity name.
    """
    config = descriptor.connection_config
    mapping: Dict[str, str] = {}
    for entity_type in descriptor.entity_types:
        key = f"{entity_type.value.lower()}_collection"
        mapping[entity_type.value] = str(
            config.get(key) or config.get("collection") or entity_type.value.lower()
        )
    return mapping


def couchbase_connection_string(hosts: Any) -> str:
    if isinstance(hosts, str):
        hosts = [host.strip() for host in hosts.split(",") if host.strip()]
    joined = ",".join(str(host) for host in hosts)
    if joined.startswith(("couchbase://", "couchbases://")):
        return joined
    return f"couchbase://{joined}"


class CouchbaseConnectorFactory(ConnectorFactory):
    """Analytic connectors backed by a Couchbase Cluster handle."""

    kind = DataSourceType.COUCHBASE
    required_attributes = ("hosts", "bucket", "username", "password")

    def _build(self, descriptor: DataSourceDescriptor) -> Connector:
        # Native SDK; loaded only when a Couchbase source is configured.
        from couchbase.auth import PasswordAuthenticator
        from couchbase.cluster import Cluster
        from couchbase.options import ClusterOptions, ClusterTimeoutOptions

        config = descriptor.connection_config
        options = ClusterOptions(
            PasswordAuthenticator(str(config["username"]), str(config["password"])),
            timeout_options=ClusterTimeoutOptions(kv_timeout=KV_TIMEOUT, query_timeout=QUERY_TIMEOUT),
        )
        cluster = Cluster(couchbase_connection_string(config["hosts"]), options)
        bucket = str(config["bucket"])
        cluster.bucket(bucket)
        cluster.wait_until_ready(READY_TIMEOUT)
        return AnalyticConnector(descriptor.name, cluster, bucket)


def default_factories() -> List[ConnectorFactory]:
    """Factories for every built-in backend kind."""
    return [
        PostgresConnectorFactory(),
        MongoConnectorFactory(),
        CouchbaseConnectorFactory(),
    ]


__all__ = [
    "ConnectorFactory",
    "PostgresConnectorFactory",
    "MongoConnectorFactory",
    "CouchbaseConnectorFactory",
    "collection_map",
    "couchbase_connection_string",
    "default_factories",
]
