"""
Connectors package for the count reconciler.

Re-exports the connector interfaces and the concrete backend connectors so
downstream code can import from `reconciler.connectors` directly.
"""

from reconciler.connectors.abstract import AbstractConnector, Connector
from reconciler.connectors.analytic import AnalyticConnector
from reconciler.connectors.document import DocumentConnector
from reconciler.connectors.relational import RelationalConnector

__all__ = [
    # Abstracts
    "AbstractConnector",
    "Connector",
    # Concrete connectors
    "AnalyticConnector",
    "DocumentConnector",
    "RelationalConnector",
]
