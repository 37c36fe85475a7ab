"""
Result sinks: where finished reconciliation results are recorded for audit.
"""

from __future__ import annotations

import logging
from typing import List, Protocol

from reconciler.domain.models import ReconciliationResult
from reconciler.utils.logging import get_logger

RESULT_EVENT = "reconciliation_result"


class ResultSink(Protocol):
    def record(self, result: ReconciliationResult) -> None: ...


class LoggingResultSink:
    """
    Emit each result as one structured log event.

    Every result field is attached through ``extra=`` under its wire name, so
    the JSON formatter renders a flat ``reconciliation_result`` record.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or get_logger("reconciler.audit")

    def record(self, result: ReconciliationResult) -> None:
        payload = {"event": RESULT_EVENT, **result.to_dict()}
        level = logging.INFO if result.match else logging.WARNING
        self._log.log(
            level,
            f"[RESULT] {result.rule_name} match={result.match} difference={result.difference}",
            extra=payload,
        )


class CollectingResultSink:
    """Keeps results in memory; handy for embedding and tests."""

    def __init__(self) -> None:
        self.results: List[ReconciliationResult] = []

    def record(self, result: ReconciliationResult) -> None:
        self.results.append(result)


__all__ = ["RESULT_EVENT", "ResultSink", "LoggingResultSink", "CollectingResultSink"]
