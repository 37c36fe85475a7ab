"""
Error taxonomy for the reconciliation engine.

Every failure raised by engine logic derives from ReconciliationError and
carries a short machine-friendly ``kind`` so batch runs can report failures
without inspecting exception types.
"""

from __future__ import annotations

from typing import Optional


class ReconciliationError(Exception):
    """Base class for all reconciliation failures."""

    kind: str = "reconciliation"


class ConfigurationError(ReconciliationError):
    """
    Missing or inconsistent configuration.

    Raised for unknown rules/systems/data sources, missing query templates or
    connection attributes, duplicate rule names and unregistered backend kinds.
    """

    kind = "configuration"


class NotFoundError(ConfigurationError):
    """A referenced rule, source system or default data source does not exist."""

    kind = "not_found"


class ValidationError(ReconciliationError):
    """Caller input references an unknown or unsupported combination."""

    kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ConnectorError(ReconciliationError):
    """A backend query failed or returned an unexpected shape."""

    kind = "connector"

    def __init__(self, message: str, data_source: Optional[str] = None) -> None:
        super().__init__(message)
        self.data_source = data_source


__all__ = [
    "ReconciliationError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationError",
    "ConnectorError",
]
