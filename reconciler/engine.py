"""
Reconciliation engine: rule-based, ad-hoc and batch count comparisons.

Usage (example from CLI):
    from reconciler.engine import ReconciliationEngine

    engine = ReconciliationEngine(rule_store, ConnectorRegistry())
    result = engine.execute_by_rule("orders-daily", date(2024, 1, 15))
    report = engine.run_batch(date(2024, 1, 15))

Each call is one synchronous pass over the collaborators: look up the rule
and both source systems, pick a data source per side, resolve its count
template, obtain the cached connector, count, and hand the result to the sink.
"""

from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import List, Optional, Set, Tuple, Union

from reconciler.domain.models import (
    AdHocRequest,
    BatchReport,
    DataSourceDescriptor,
    EntityType,
    ReconciliationResult,
    ReconciliationRule,
    RuleFailure,
    SourceSystem,
)
from reconciler.errors import ConfigurationError, NotFoundError, ReconciliationError, ValidationError
from reconciler.infrastructure.registry import ConnectorRegistry
from reconciler.query_resolver import QueryResolver
from reconciler.rule_store import RuleStore
from reconciler.sink import LoggingResultSink, ResultSink
from reconciler.utils.logging import get_logger

log = get_logger(__name__)

ADHOC_PREFIX = "adhoc-"


def generate_rule_name() -> str:
    return f"{ADHOC_PREFIX}{uuid.uuid4()}"


class ReconciliationEngine:
    """
    Orchestrates count comparisons between pairs of source systems.

    Parameters
    ----------
    rule_store : RuleStore
        Supplies rules and topology; receives persisted ad-hoc rules.
    registry : ConnectorRegistry
        Builds and caches connectors per data-source name.
    resolver : QueryResolver, optional
        Template lookup; a default resolver is used when omitted.
    sink : ResultSink, optional
        Receives every finished result; defaults to the structured log sink.
    max_workers : int
        Rules executed concurrently by batch runs. 1 (default) is sequential.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        registry: ConnectorRegistry,
        resolver: Optional[QueryResolver] = None,
        sink: Optional[ResultSink] = None,
        max_workers: int = 1,
    ) -> None:
        self.rule_store = rule_store
        self.registry = registry
        self.resolver = resolver or QueryResolver()
        self.sink = sink or LoggingResultSink()
        self.max_workers = max(1, max_workers)
        self._pending_names: Set[str] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Rule-based execution
    # ------------------------------------------------------------------
    def execute_by_rule(self, rule_name: str, trade_date: date) -> ReconciliationResult:
        rule = self.rule_store.get_rule(rule_name)
        if rule is None:
            raise NotFoundError(f"Rule not found: {rule_name}")
        return self._execute(rule, trade_date)

    # ------------------------------------------------------------------
    # Ad-hoc execution
    # ------------------------------------------------------------------
    def execute_adhoc(self, request: AdHocRequest) -> ReconciliationResult:
        """
        Compare two explicitly chosen data sources without a registered rule.

        The request is validated before any connector is built. With
        ``persist_rule`` the executed rule is added to the rule store under
        the name the result carries (generated when ``rule_name`` is blank).
        """
        self._validate_adhoc(request)
        rule = ReconciliationRule(
            name=request.rule_name if request.rule_name.strip() else generate_rule_name(),
            source_system_a=request.source_system_a,
            source_system_b=request.source_system_b,
            entity_type=request.entity_type,
            trade_date_field=request.trade_date_field,
        )
        if not request.persist_rule:
            return self._execute(
                rule,
                request.trade_date,
                data_source_a=request.data_source_a,
                data_source_b=request.data_source_b,
            )

        self._reserve_name(rule.name)
        try:
            result = self._execute(
                rule,
                request.trade_date,
                data_source_a=request.data_source_a,
                data_source_b=request.data_source_b,
            )
            self.rule_store.add_rule(rule.model_copy(update={"name": result.rule_name}))
        finally:
            with self._pending_lock:
                self._pending_names.discard(rule.name)
        return result

    def _reserve_name(self, name: str) -> None:
        """Claim ``name`` for a persisting ad-hoc run; one claim per name at a time."""
        with self._pending_lock:
            if name in self._pending_names or self.rule_store.get_rule(name) is not None:
                raise ConfigurationError(f"Rule with name '{name}' already exists")
            self._pending_names.add(name)

    def _validate_adhoc(self, request: AdHocRequest) -> None:
        system_a = self.rule_store.get_source_system(request.source_system_a)
        if system_a is None:
            raise ValidationError(
                f"Source system A not found: {request.source_system_a}", field="sourceSystemA"
            )
        system_b = self.rule_store.get_source_system(request.source_system_b)
        if system_b is None:
            raise ValidationError(
                f"Source system B not found: {request.source_system_b}", field="sourceSystemB"
            )
        for label, system, ds_name, field in (
            ("A", system_a, request.data_source_a, "dataSourceA"),
            ("B", system_b, request.data_source_b, "dataSourceB"),
        ):
            descriptor = system.find_data_source(ds_name)
            if descriptor is None:
                raise ValidationError(f"DataSource {label} not found: {ds_name}", field=field)
            if not descriptor.supports(request.entity_type):
                raise ValidationError(
                    f"DataSource {label} '{ds_name}' doesn't support {request.entity_type.value}",
                    field=field,
                )

    # ------------------------------------------------------------------
    # Rule management
    # ------------------------------------------------------------------
    def create_rule(self, rule: ReconciliationRule) -> ReconciliationRule:
        """Validate that both systems can serve the rule's entity type, then store it."""
        for label, system_name, field in (
            ("A", rule.source_system_a, "sourceSystemA"),
            ("B", rule.source_system_b, "sourceSystemB"),
        ):
            system = self.rule_store.get_source_system(system_name)
            if system is None:
                raise ValidationError(f"Source system {label} not found: {system_name}", field=field)
            if not any(ds.supports(rule.entity_type) for ds in system.data_sources):
                raise ValidationError(
                    f"System {system_name} has no data source supporting {rule.entity_type.value}",
                    field="entityType",
                )
        self.rule_store.add_rule(rule)
        return rule

    def delete_rule(self, rule_name: str) -> bool:
        return self.rule_store.remove_rule(rule_name)

    # ------------------------------------------------------------------
    # Shared execution path
    # ------------------------------------------------------------------
    def _execute(
        self,
        rule: ReconciliationRule,
        trade_date: date,
        data_source_a: Optional[str] = None,
        data_source_b: Optional[str] = None,
    ) -> ReconciliationResult:
        system_a = self._source_system(rule.source_system_a)
        system_b = self._source_system(rule.source_system_b)
        descriptor_a = select_data_source(system_a, rule.entity_type, data_source_a)
        descriptor_b = select_data_source(system_b, rule.entity_type, data_source_b)

        count_a = self._count(descriptor_a, rule.entity_type, trade_date)
        count_b = self._count(descriptor_b, rule.entity_type, trade_date)

        result = ReconciliationResult.build(
            rule,
            trade_date,
            count_a=count_a,
            count_b=count_b,
            data_source_a=descriptor_a.name,
            data_source_b=descriptor_b.name,
        )
        self._record(result)
        return result

    def _source_system(self, name: str) -> SourceSystem:
        system = self.rule_store.get_source_system(name)
        if system is None:
            raise NotFoundError(f"Source system not found: {name}")
        return system

    def _count(
        self, descriptor: DataSourceDescriptor, entity_type: EntityType, trade_date: date
    ) -> int:
        template = self.resolver.resolve(descriptor, entity_type)
        connector = self.registry.create_connector(descriptor)
        start = time.perf_counter()
        count = connector.count(entity_type, trade_date, template)
        log.debug(
            f"[COUNT] {descriptor.name}",
            extra={
                "data_source": descriptor.name,
                "entity_type": entity_type.value,
                "trade_date": trade_date.isoformat(),
                "count": count,
                "duration_seconds": round(time.perf_counter() - start, 3),
            },
        )
        return count

    def _record(self, result: ReconciliationResult) -> None:
        try:
            self.sink.record(result)
        except Exception:  # noqa: BLE001
            log.exception(f"[SINK FAILED] {result.rule_name}", extra={"rule": result.rule_name})

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------
    def _run_rule(
        self, rule_name: str, trade_date: date
    ) -> Union[ReconciliationResult, RuleFailure]:
        log.info(f"[RULE START] {rule_name}", extra={"rule": rule_name})
        try:
            result = self.execute_by_rule(rule_name, trade_date)
        except ReconciliationError as exc:
            log.exception(
                f"[RULE FAILED] {rule_name}", extra={"rule": rule_name, "error_kind": exc.kind}
            )
            return RuleFailure(rule_name=rule_name, error_kind=exc.kind, message=str(exc))
        except Exception as exc:  # noqa: BLE001
            log.exception(
                f"[RULE FAILED] {rule_name}", extra={"rule": rule_name, "error_kind": "unexpected"}
            )
            return RuleFailure(rule_name=rule_name, error_kind="unexpected", message=str(exc))
        log.info(
            f"[RULE SUCCESS] {rule_name}",
            extra={"rule": rule_name, "match": result.match, "difference": result.difference},
        )
        return result

    def run_batch(self, trade_date: date) -> BatchReport:
        """
        Execute every stored rule for ``trade_date``.

        Rules run in stored order (or concurrently when ``max_workers > 1``);
        either way results keep the relative order of the rules that produced
        them, and a failing rule is reported without affecting the others.
        """
        rule_names = [rule.name for rule in self.rule_store.get_all_rules()]
        log.info(
            f"Executing {len(rule_names)} reconciliation rules for trade date: {trade_date}",
            extra={"rules": len(rule_names), "trade_date": trade_date.isoformat()},
        )

        outcomes: List[Union[ReconciliationResult, RuleFailure]]
        if self.max_workers > 1 and len(rule_names) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(lambda name: self._run_rule(name, trade_date), rule_names))
        else:
            outcomes = [self._run_rule(name, trade_date) for name in rule_names]

        results, failures = _partition(outcomes)
        log.info(
            f"[BATCH COMPLETE] {len(results)} succeeded, {len(failures)} failed",
            extra={"succeeded": len(results), "failed": len(failures)},
        )
        return BatchReport(trade_date=trade_date, results=results, failures=failures)

    def execute_all(self, trade_date: date) -> List[ReconciliationResult]:
        return list(self.run_batch(trade_date).results)


def select_data_source(
    system: SourceSystem, entity_type: EntityType, preferred: Optional[str] = None
) -> DataSourceDescriptor:
    """
    Pick the data source serving ``entity_type`` in ``system``.

    An explicit ``preferred`` name must exist and support the entity type.
    Without one, the first data source in declared order that supports the
    entity type wins.
    """
    candidates = [ds for ds in system.data_sources if ds.supports(entity_type)]
    if preferred is not None:
        for descriptor in candidates:
            if descriptor.name == preferred:
                return descriptor
        raise ValidationError(
            f"DataSource '{preferred}' not found or doesn't support {entity_type.value}",
            field="dataSource",
        )
    if not candidates:
        raise NotFoundError(
            f"No data source found for {entity_type.value} in system {system.name}"
        )
    return candidates[0]


def _partition(
    outcomes: List[Union[ReconciliationResult, RuleFailure]],
) -> Tuple[List[ReconciliationResult], List[RuleFailure]]:
    results = [item for item in outcomes if isinstance(item, ReconciliationResult)]
    failures = [item for item in outcomes if isinstance(item, RuleFailure)]
    return results, failures


__all__ = [
    "ADHOC_PREFIX",
    "ReconciliationEngine",
    "generate_rule_name",
    "select_data_source",
]
