"""
Connector interfaces for the count reconciler.

A connector executes one count query against one physical backend instance.
Concrete connectors (relational, document-store, analytic-query) implement
the Connector protocol; class-based implementations usually derive from
AbstractConnector, which checks the template variant and normalizes backend
failures into ConnectorError so the engine only ever sees the error taxonomy
from ``reconciler.errors``.
"""

from __future__ import annotations

import abc
from datetime import date
from typing import Protocol, Tuple, Type, runtime_checkable

from reconciler.domain.models import DataSourceType, EntityType, QueryTemplate
from reconciler.errors import ConfigurationError, ConnectorError, ReconciliationError


@runtime_checkable
class Connector(Protocol):
    """
    Common interface all connectors must implement.

    Attributes
    ----------
    name : str
        Name of the data source the connector was built for.
    kind : DataSourceType
        Backend kind served by the connector.
    """

    name: str
    kind: DataSourceType

    def count(self, entity_type: EntityType, as_of_date: date, template: QueryTemplate) -> int:
        """
        Run the count query for ``entity_type`` on ``as_of_date``.

        Parameters
        ----------
        entity_type : EntityType
            Entity whose records are counted.
        as_of_date : date
            Business date substituted into the template.
        template : QueryTemplate
            Count query definition for the entity type.

        Returns
        -------
        int
            Non-negative record count.
        """
        ...

    def close(self) -> None:
        """Release pooled backend resources."""
        ...


class AbstractConnector(abc.ABC):
    """
    ABC helper for class-based connectors.

    Subclasses set ``kind`` and ``template_type`` and implement ``_count``.
    One call to :meth:`count` issues exactly one backend query.
    """

    kind: DataSourceType
    template_type: Tuple[Type, ...]

    def __init__(self, name: str) -> None:
        self.name = name

    def count(self, entity_type: EntityType, as_of_date: date, template: QueryTemplate) -> int:
        if not isinstance(template, self.template_type):
            raise ConfigurationError(
                f"Data source '{self.name}' ({self.kind.value}) cannot run a "
                f"'{getattr(template, 'kind', type(template).__name__)}' query template"
            )
        try:
            value = self._count(entity_type, as_of_date, template)
        except ReconciliationError:
            raise
        except Exception as exc:
            raise ConnectorError(
                f"Count query failed on data source '{self.name}': {exc}",
                data_source=self.name,
            ) from exc
        if value < 0:
            raise ConnectorError(
                f"Data source '{self.name}' returned a negative count ({value})",
                data_source=self.name,
            )
        return value

    @abc.abstractmethod
    def _count(
        self, entity_type: EntityType, as_of_date: date, template: QueryTemplate
    ) -> int:  # pragma: no cover - interface only
        """Execute the backend query and return the raw count."""
        raise NotImplementedError

    def close(self) -> None:
        """Release pooled resources; no-op unless a subclass owns a pool."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = [
    "Connector",
    "AbstractConnector",
]
