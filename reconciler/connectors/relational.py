"""
Relational connector: SQL count queries over a psycopg connection pool.

Templates use named date placeholders (``:tradeDate`` or ``:trade_date``);
they are rewritten to psycopg's positional ``%s`` marker and the trade date
is bound once per occurrence.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Tuple

from psycopg_pool import ConnectionPool

from reconciler.connectors.abstract import AbstractConnector
from reconciler.domain.models import DataSourceType, EntityType, TextQuery
from reconciler.utils.logging import get_logger

log = get_logger(__name__)

# ``::date`` casts must survive the rewrite, hence the lookbehind.
_NAMED_DATE_PLACEHOLDER = re.compile(r"(?<!:):(?:tradeDate|trade_date)\b")


def to_positional(sql: str) -> Tuple[str, int]:
    """
    Rewrite named date placeholders to positional markers.

    Returns the rewritten statement and the number of placeholders found.
    Literal percent signs are doubled so psycopg does not read them as markers.
    """
    escaped = sql.replace("%", "%%")
    return _NAMED_DATE_PLACEHOLDER.subn("%s", escaped)


class RelationalConnector(AbstractConnector):
    """
    Count rows with a SQL statement on a pooled PostgreSQL connection.

    The first column of the first returned row is the count; an empty result
    or a NULL value counts as zero.
    """

    kind = DataSourceType.POSTGRES
    template_type = (TextQuery,)

    def __init__(self, name: str, pool: ConnectionPool) -> None:
        super().__init__(name)
        self._pool = pool

    def _count(self, entity_type: EntityType, as_of_date: date, template: TextQuery) -> int:
        sql, placeholders = to_positional(template.count)
        params = (as_of_date,) * placeholders
        log.debug(
            "Executing relational count",
            extra={"data_source": self.name, "entity_type": entity_type.value, "sql": sql},
        )
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
        if not row or row[0] is None:
            return 0
        return int(row[0])

    def close(self) -> None:
        self._pool.close()


__all__ = ["RelationalConnector", "to_positional"]
