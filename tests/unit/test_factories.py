from __future__ import annotations

from typing import Any, Dict, List

import pytest

from reconciler.connectors.document import DocumentConnector
from reconciler.connectors.relational import RelationalConnector
from reconciler.domain.models import DataSourceDescriptor, DataSourceType
from reconciler.errors import ConfigurationError, ConnectorError
from reconciler.infrastructure import factories as factories_module
from reconciler.infrastructure.factories import (
    CouchbaseConnectorFactory,
    MongoConnectorFactory,
    PostgresConnectorFactory,
    collection_map,
    couchbase_connection_string,
    default_factories,
)


class _Recorder:
    """Stands in for a pooled client class and records constructor arguments."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, *args: Any, **kwargs: Any) -> "_Recorder":
        self.calls.append({"args": args, "kwargs": kwargs})
        return self

    def close(self) -> None:
        pass


def _descriptor(kind: str, config: Dict[str, Any], entity_types=("ORDER",)) -> DataSourceDescriptor:
    return DataSourceDescriptor.model_validate(
        {"type": kind, "name": "ds", "connectionConfig": config, "entityTypes": list(entity_types)}
    )


def test_postgres_factory_builds_pool_with_fixed_policy(monkeypatch) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(factories_module, "ConnectionPool", recorder)
    descriptor = _descriptor(
        "POSTGRES", {"url": "postgresql://db:5432/trading", "username": "svc", "password": "pw"}
    )

    connector = PostgresConnectorFactory().create(descriptor)

    assert isinstance(connector, RelationalConnector)
    assert connector.name == "ds"
    kwargs = recorder.calls[0]["kwargs"]
    assert kwargs["conninfo"] == "postgresql://db:5432/trading"
    assert kwargs["kwargs"] == {"user": "svc", "password": "pw"}
    assert kwargs["min_size"] == factories_module.POOL_MIN_SIZE
    assert kwargs["max_size"] == factories_module.POOL_MAX_SIZE
    assert kwargs["timeout"] == factories_module.ACQUIRE_TIMEOUT_SECONDS
    assert kwargs["max_idle"] == factories_module.MAX_IDLE_SECONDS
    assert kwargs["max_lifetime"] == factories_module.MAX_LIFETIME_SECONDS


@pytest.mark.parametrize(
    ("config", "missing"),
    [
        ({}, "url"),
        ({"url": "postgresql://h/db"}, "username"),
        ({"url": "postgresql://h/db", "username": "u", "password": ""}, "password"),
    ],
)
def test_postgres_factory_names_first_missing_attribute(monkeypatch, config, missing) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(factories_module, "ConnectionPool", recorder)

    with pytest.raises(ConfigurationError, match=f"missing connection attribute '{missing}'"):
        PostgresConnectorFactory().create(_descriptor("POSTGRES", config))
    assert recorder.calls == []


def test_build_failure_is_wrapped_as_connector_error(monkeypatch) -> None:
    def _refuse(**kwargs: Any) -> None:
        raise OSError("connection refused")

    monkeypatch.setattr(factories_module, "ConnectionPool", _refuse)
    descriptor = _descriptor("POSTGRES", {"url": "postgresql://h/db", "username": "u", "password": "p"})

    with pytest.raises(ConnectorError, match="connection refused") as info:
        PostgresConnectorFactory().create(descriptor)

    assert info.value.data_source == "ds"


def test_factory_rejects_foreign_kind() -> None:
    with pytest.raises(ConfigurationError, match="cannot build data source 'ds'"):
        PostgresConnectorFactory().validate(_descriptor("MONGODB", {"uri": "mongodb://h"}))


def test_mongo_factory_builds_lazy_client(monkeypatch) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(factories_module, "MongoClient", recorder)
    descriptor = _descriptor(
        "MONGODB",
        {"uri": "mongodb://h:27017", "database": "archive", "order_collection": "orders_v2"},
        entity_types=("ORDER", "QUOTE"),
    )

    connector = MongoConnectorFactory().create(descriptor)

    assert isinstance(connector, DocumentConnector)
    call = recorder.calls[0]
    assert call["args"] == ("mongodb://h:27017",)
    assert call["kwargs"]["connect"] is False
    assert call["kwargs"]["minPoolSize"] == factories_module.POOL_MIN_SIZE
    assert call["kwargs"]["maxPoolSize"] == factories_module.POOL_MAX_SIZE


def test_mongo_factory_requires_database() -> None:
    with pytest.raises(ConfigurationError, match="'database'"):
        MongoConnectorFactory().validate(_descriptor("MONGODB", {"uri": "mongodb://h"}))


def test_collection_map_lookup_order() -> None:
    descriptor = _descriptor(
        "MONGODB",
        {"uri": "mongodb://h", "database": "d", "order_collection": "orders_v2", "collection": "shared"},
        entity_types=("ORDER", "QUOTE"),
    )
    bare = _descriptor("MONGODB", {"uri": "mongodb://h", "database": "d"}, entity_types=("TRADE",))

    assert collection_map(descriptor) == {"ORDER": "orders_v2", "QUOTE": "shared"}
    assert collection_map(bare) == {"TRADE": "trade"}


@pytest.mark.parametrize(
    ("hosts", "expected"),
    [
        (["cb1", "cb2"], "couchbase://cb1,cb2"),
        ("cb1, cb2", "couchbase://cb1,cb2"),
        ("couchbases://secure-host", "couchbases://secure-host"),
    ],
)
def test_couchbase_connection_string(hosts, expected) -> None:
    assert couchbase_connection_string(hosts) == expected


def test_couchbase_factory_validates_before_loading_sdk() -> None:
    descriptor = _descriptor("COUCHBASE", {"hosts": ["cb1"], "bucket": "market", "username": "u"})

    with pytest.raises(ConfigurationError, match="'password'"):
        CouchbaseConnectorFactory().create(descriptor)


def test_default_factories_cover_every_kind() -> None:
    factories = default_factories()

    for kind in DataSourceType:
        assert sum(1 for factory in factories if factory.supports(kind)) == 1
