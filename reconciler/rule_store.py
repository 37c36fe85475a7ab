"""
Rule store and topology loader.

The topology file is JSON (see ``config/reconciliation-config.example.json``)
holding the source systems and the initial rule set. ``${NAME}`` placeholders
anywhere in the file are replaced by environment variables before parsing so
credentials stay out of the file; an unset variable becomes an empty string.

Usage:
    from reconciler.rule_store import InMemoryRuleStore, load_config

    store = InMemoryRuleStore.from_config(load_config("reconciliation-config.json"))
    rule = store.get_rule("orders-daily")
"""

from __future__ import annotations

import json
import os
import re
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

import pydantic

from reconciler.domain.models import ReconciliationConfig, ReconciliationRule, SourceSystem
from reconciler.errors import ConfigurationError
from reconciler.utils.logging import get_logger

log = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


class RuleStore(Protocol):
    """Source of rule definitions and source-system topology."""

    def get_rule(self, name: str) -> Optional[ReconciliationRule]: ...

    def get_source_system(self, name: str) -> Optional[SourceSystem]: ...

    def get_all_source_systems(self) -> List[SourceSystem]: ...

    def get_all_rules(self) -> List[ReconciliationRule]: ...

    def add_rule(self, rule: ReconciliationRule) -> None: ...

    def remove_rule(self, name: str) -> bool: ...


def resolve_placeholders(text: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Replace ``${NAME}`` with the value of ``NAME`` from ``environ`` (default: os.environ)."""
    env = os.environ if environ is None else environ
    return _PLACEHOLDER.sub(lambda match: env.get(match.group(1).strip(), ""), text)


def parse_config(raw: str, environ: Optional[Mapping[str, str]] = None) -> ReconciliationConfig:
    """Parse topology JSON text after placeholder substitution."""
    try:
        payload = json.loads(resolve_placeholders(raw, environ))
        return ReconciliationConfig.model_validate(payload)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Reconciliation config is not valid JSON: {exc}") from exc
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Reconciliation config is invalid: {exc}") from exc


def load_config(
    path: Path | str, environ: Optional[Mapping[str, str]] = None
) -> ReconciliationConfig:
    """
    Load and validate the topology file at ``path``.

    Raises
    ------
    ConfigurationError
        If the file cannot be read, is not JSON, or violates the schema.
    """
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to load reconciliation config from {config_path}: {exc}"
        ) from exc
    config = parse_config(raw, environ)
    log.info(
        "Reconciliation config loaded",
        extra={
            "path": str(config_path),
            "systems": len(config.source_systems),
            "rules": len(config.reconciliation_rules),
        },
    )
    return config


class InMemoryRuleStore:
    """
    Rule map and immutable topology held in memory.

    Rules keep insertion order. All rule-map operations are guarded by one
    lock; adding a name that already exists fails and leaves the existing
    rule untouched.
    """

    def __init__(
        self,
        source_systems: Iterable[SourceSystem],
        rules: Iterable[ReconciliationRule] = (),
    ) -> None:
        self._systems: Dict[str, SourceSystem] = {system.name: system for system in source_systems}
        self._rules: Dict[str, ReconciliationRule] = {}
        self._lock = threading.Lock()
        for rule in rules:
            self.add_rule(rule)

    @classmethod
    def from_config(cls, config: ReconciliationConfig) -> "InMemoryRuleStore":
        if not config.source_systems:
            raise ConfigurationError("Reconciliation config defines no source systems")
        return cls(config.source_systems, config.reconciliation_rules)

    def get_rule(self, name: str) -> Optional[ReconciliationRule]:
        with self._lock:
            return self._rules.get(name)

    def get_source_system(self, name: str) -> Optional[SourceSystem]:
        return self._systems.get(name)

    def get_all_source_systems(self) -> List[SourceSystem]:
        return list(self._systems.values())

    def get_all_rules(self) -> List[ReconciliationRule]:
        with self._lock:
            return list(self._rules.values())

    def add_rule(self, rule: ReconciliationRule) -> None:
        with self._lock:
            if rule.name in self._rules:
                raise ConfigurationError(f"Rule with name '{rule.name}' already exists")
            self._rules[rule.name] = rule
        log.info(f"[RULE ADDED] {rule.name}", extra={"rule": rule.name})

    def remove_rule(self, name: str) -> bool:
        with self._lock:
            removed = self._rules.pop(name, None) is not None
        if removed:
            log.info(f"[RULE REMOVED] {name}", extra={"rule": name})
        return removed


__all__ = [
    "RuleStore",
    "InMemoryRuleStore",
    "load_config",
    "parse_config",
    "resolve_placeholders",
]
