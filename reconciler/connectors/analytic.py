"""
Analytic-query connector: N1QL count statements on a Couchbase cluster.

The cluster handle comes from the Couchbase factory; this module only relies
on ``cluster.query(statement).rows()`` so it carries no SDK import itself.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from reconciler.connectors.abstract import AbstractConnector
from reconciler.domain.models import DataSourceType, EntityType, TextQuery
from reconciler.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_COUNT_FIELD = "count"

# ``$1`` must not swallow ``$10``; named forms must match whole identifiers.
_DATE_PLACEHOLDER = re.compile(r"\$1(?!\d)|\$(?:tradeDate|trade_date)\b")


def render_statement(statement: str, as_of_date: date) -> str:
    """Replace every recognised date placeholder with a quoted ISO-8601 literal."""
    literal = f"'{as_of_date.isoformat()}'"
    return _DATE_PLACEHOLDER.sub(lambda _: literal, statement)


def coerce_count(value: Any) -> int:
    """
    Read a count that may arrive as a number or a numeric string.

    Anything that does not parse as an integer counts as zero.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


class AnalyticConnector(AbstractConnector):
    """Count with a templated N1QL statement and read an aliased count field."""

    kind = DataSourceType.COUCHBASE
    template_type = (TextQuery,)

    def __init__(self, name: str, cluster: Any, bucket: str) -> None:
        super().__init__(name)
        self._cluster = cluster
        self._bucket = bucket

    def _count(self, entity_type: EntityType, as_of_date: date, template: TextQuery) -> int:
        statement = render_statement(template.count, as_of_date)
        count_field = template.parameters.get("countField", DEFAULT_COUNT_FIELD)
        log.debug(
            "Executing analytic count",
            extra={"data_source": self.name, "bucket": self._bucket, "statement": statement},
        )
        result = self._cluster.query(statement)
        first = next(iter(result.rows()), None)
        if first is None:
            return 0
        if isinstance(first, dict):
            return coerce_count(first.get(count_field))
        return coerce_count(first)

    def close(self) -> None:
        self._cluster.close()


__all__ = ["AnalyticConnector", "coerce_count", "render_statement"]
