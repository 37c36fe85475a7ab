"""
Connector registry: routes backend kinds to factories and caches connectors.

Connectors are built lazily, once per data-source name, and reused for the
process lifetime. Construction is single-flight: concurrent first requests
for the same name share one build and receive the same connector instance.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from reconciler.connectors.abstract import Connector
from reconciler.domain.models import DataSourceDescriptor, DataSourceType
from reconciler.errors import ConfigurationError
from reconciler.infrastructure.factories import ConnectorFactory, default_factories
from reconciler.utils.logging import get_logger

log = get_logger(__name__)


class ConnectorRegistry:
    """
    Thread-safe get-or-create cache of connectors keyed by data-source name.

    Reads of an already populated entry take no lock. A miss takes the lock
    dedicated to that name and checks the cache again before invoking the
    factory, so each name is built at most once until :meth:`clear_cache`.
    """

    def __init__(self, factories: Optional[Iterable[ConnectorFactory]] = None) -> None:
        factory_list: List[ConnectorFactory] = (
            list(factories) if factories is not None else default_factories()
        )
        if not factory_list:
            raise ConfigurationError("No connector factories registered")
        self._factories: Dict[DataSourceType, ConnectorFactory] = {}
        for factory in factory_list:
            for kind in DataSourceType:
                if factory.supports(kind):
                    self._factories[kind] = factory
        self._cache: Dict[str, Connector] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def supported_kinds(self) -> List[DataSourceType]:
        return sorted(self._factories, key=lambda kind: kind.value)

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def create_connector(self, descriptor: DataSourceDescriptor) -> Connector:
        """
        Return the cached connector for ``descriptor.name``, building it on first use.

        Connection attributes are read only on the first build; later calls
        with the same name return the cached instance unchanged.

        Raises
        ------
        ConfigurationError
            If no factory is registered for the descriptor's backend kind or
            the factory rejects its connection attributes.
        """
        cached = self._cache.get(descriptor.name)
        if cached is not None:
            return cached

        with self._lock_for(descriptor.name):
            cache = self._cache
            cached = cache.get(descriptor.name)
            if cached is not None:
                return cached
            factory = self._factories.get(descriptor.kind)
            if factory is None:
                raise ConfigurationError(
                    f"No connector factory registered for data source type {descriptor.kind.value}"
                )
            connector = factory.create(descriptor)
            with self._locks_guard:
                # Cleared mid-build: hand the connector out but leave the new cache empty.
                if self._cache is not cache:
                    return connector
                cache[descriptor.name] = connector
            log.info(
                f"[CONNECTOR CACHED] {descriptor.name}",
                extra={"data_source": descriptor.name, "kind": descriptor.kind.value},
            )
            return connector

    def cached_names(self) -> List[str]:
        return list(self._cache)

    def clear_cache(self) -> None:
        """
        Forget every cached connector; the next request for a name rebuilds it.

        A build already in flight when the cache is cleared still returns its
        connector to that caller but is not cached. Pools held by connectors
        already handed out are left open.
        """
        with self._locks_guard:
            self._cache = {}
        log.info("[CONNECTOR CACHE CLEARED]")

    def close_all(self) -> None:
        """Close and forget every cached connector. Intended for process shutdown."""
        with self._locks_guard:
            connectors, self._cache = self._cache, {}
        for name, connector in connectors.items():
            try:
                connector.close()
            except Exception:  # noqa: BLE001
                log.warning(f"[CONNECTOR CLOSE FAILED] {name}", exc_info=True)


__all__ = ["ConnectorRegistry"]
