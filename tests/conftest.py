"""
Pytest configuration for the count reconciler.

Provides fixtures for:
- A two-system topology with relational, document and analytic data sources
- A fake connector factory whose per-data-source counts tests can steer
- A wired engine with an in-memory rule store and collecting sink
- Database connection management for integration tests
"""

from __future__ import annotations

import os
from datetime import date
from typing import Dict, Generator, List

import psycopg
import pytest

from reconciler.domain.models import EntityType, ReconciliationRule, SourceSystem
from reconciler.engine import ReconciliationEngine
from reconciler.infrastructure.registry import ConnectorRegistry
from reconciler.rule_store import InMemoryRuleStore
from reconciler.sink import CollectingResultSink

from tests.fakes import TOPOLOGY, FakeFactory, Outcome

TRADE_DATE = date(2024, 1, 15)


@pytest.fixture
def trade_date() -> date:
    return TRADE_DATE


@pytest.fixture
def source_systems() -> List[SourceSystem]:
    return [SourceSystem.model_validate(system) for system in TOPOLOGY]


@pytest.fixture
def rules() -> List[ReconciliationRule]:
    return [
        ReconciliationRule(
            name="orders-daily",
            source_system_a="system-a",
            source_system_b="system-b",
            entity_type=EntityType.ORDER,
        )
    ]


@pytest.fixture
def outcomes() -> Dict[str, Outcome]:
    return {"a-pg": 500, "a-pg-replica": 500, "b-mongo": 500, "b-cb": 500}


@pytest.fixture
def fake_factory(outcomes: Dict[str, Outcome]) -> FakeFactory:
    return FakeFactory(outcomes)


@pytest.fixture
def registry(fake_factory: FakeFactory) -> ConnectorRegistry:
    return ConnectorRegistry([fake_factory])


@pytest.fixture
def store(
    source_systems: List[SourceSystem], rules: List[ReconciliationRule]
) -> InMemoryRuleStore:
    return InMemoryRuleStore(source_systems, rules)


@pytest.fixture
def sink() -> CollectingResultSink:
    return CollectingResultSink()


@pytest.fixture
def engine(
    store: InMemoryRuleStore, registry: ConnectorRegistry, sink: CollectingResultSink
) -> ReconciliationEngine:
    return ReconciliationEngine(store, registry, sink=sink)


# ----------------------------------------------------------------------
# Integration fixtures (real PostgreSQL)
# ----------------------------------------------------------------------
@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}"
        f"/{os.getenv('DB_NAME', 'reconciler')}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()
