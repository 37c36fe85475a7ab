"""
Document-store connector: MongoDB ``count_documents`` with structured filters.

Filter templates mark the trade date with the ``?tradeDate`` sentinel. A value
equal to the sentinel is replaced by the formatted date; a string merely
containing it has the sentinel replaced in place.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Mapping

from pymongo import MongoClient

from reconciler.connectors.abstract import AbstractConnector
from reconciler.domain.models import DataSourceType, EntityType, FilterQuery
from reconciler.utils.logging import get_logger

log = get_logger(__name__)

TRADE_DATE_SENTINEL = "?tradeDate"
DEFAULT_DATE_FORMAT = "%Y-%m-%d"


def substitute_trade_date(value: Any, formatted_date: str) -> Any:
    """
    Return a copy of ``value`` with every trade-date sentinel replaced.

    Mappings and lists are walked recursively; other scalars pass through.
    The input is never mutated, so a structure without sentinels comes back
    equal to the original.
    """
    if isinstance(value, Mapping):
        return {key: substitute_trade_date(item, formatted_date) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_trade_date(item, formatted_date) for item in value]
    if isinstance(value, tuple):
        return tuple(substitute_trade_date(item, formatted_date) for item in value)
    if isinstance(value, str):
        if value == TRADE_DATE_SENTINEL:
            return formatted_date
        if TRADE_DATE_SENTINEL in value:
            return value.replace(TRADE_DATE_SENTINEL, formatted_date)
    return value


class DocumentConnector(AbstractConnector):
    """Count documents matching a filter in the collection mapped to an entity type."""

    kind = DataSourceType.MONGODB
    template_type = (FilterQuery,)

    def __init__(
        self,
        name: str,
        client: MongoClient,
        database: str,
        collections: Dict[str, str],
    ) -> None:
        super().__init__(name)
        self._client = client
        self._database = database
        self._collections = dict(collections)

    def collection_for(self, entity_type: EntityType, template: FilterQuery) -> str:
        override = template.parameters.get("collection")
        if override:
            return override
        return self._collections.get(entity_type.value, entity_type.value.lower())

    def _count(self, entity_type: EntityType, as_of_date: date, template: FilterQuery) -> int:
        date_format = template.parameters.get("dateFormat", DEFAULT_DATE_FORMAT)
        query_filter = substitute_trade_date(template.count, as_of_date.strftime(date_format))
        collection = self.collection_for(entity_type, template)
        log.debug(
            "Executing document count",
            extra={"data_source": self.name, "collection": collection, "filter": query_filter},
        )
        return int(self._client[self._database][collection].count_documents(query_filter))

    def close(self) -> None:
        self._client.close()


__all__ = [
    "DEFAULT_DATE_FORMAT",
    "TRADE_DATE_SENTINEL",
    "DocumentConnector",
    "substitute_trade_date",
]
