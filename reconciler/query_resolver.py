from __future__ import annotations

from reconciler.domain.models import DataSourceDescriptor, EntityType, QueryTemplate
from reconciler.errors import ConfigurationError


class QueryResolver:
    """Looks up the count query template a data source declares for an entity type."""

    def resolve(self, descriptor: DataSourceDescriptor, entity_type: EntityType) -> QueryTemplate:
        if not descriptor.queries:
            raise ConfigurationError(f"No queries defined for data source: {descriptor.name}")
        template = descriptor.queries.get(entity_type.value)
        if template is None:
            raise ConfigurationError(
                f"No count query found for entity type {entity_type.value} "
                f"in data source {descriptor.name}"
            )
        return template


__all__ = ["QueryResolver"]
