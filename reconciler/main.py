from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Optional

import typer

from reconciler.catalog import available_reconciliations, describe_systems
from reconciler.config import Settings, get_settings
from reconciler.domain.models import AdHocRequest, EntityType
from reconciler.engine import ReconciliationEngine
from reconciler.errors import ReconciliationError, ValidationError
from reconciler.infrastructure.registry import ConnectorRegistry
from reconciler.reporter import print_results
from reconciler.rule_store import InMemoryRuleStore, load_config
from reconciler.utils.logging import configure_logging

app = typer.Typer(help="Count reconciler CLI.")

EXIT_ERROR = 1
EXIT_MISMATCH = 2

_DATE_OPTION = typer.Option(..., "--date", "-d", formats=["%Y-%m-%d"], help="Trade date (YYYY-MM-DD).")
_JSON_OPTION = typer.Option(False, "--json", help="Print JSON instead of a table.")


def build_engine(settings: Settings) -> ReconciliationEngine:
    """Load the topology and wire the engine with the built-in connector factories."""
    store = InMemoryRuleStore.from_config(load_config(settings.config_path))
    return ReconciliationEngine(store, ConnectorRegistry(), max_workers=settings.batch_max_workers)


@contextmanager
def _engine() -> Iterator[ReconciliationEngine]:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        engine = build_engine(settings)
    except ReconciliationError as exc:
        _fail(exc)
    try:
        yield engine
    except ReconciliationError as exc:
        _fail(exc)
    finally:
        engine.registry.close_all()


def _fail(exc: ReconciliationError) -> None:
    detail = f" (field: {exc.field})" if isinstance(exc, ValidationError) and exc.field else ""
    typer.echo(f"Error [{exc.kind}]: {exc}{detail}", err=True)
    raise typer.Exit(code=EXIT_ERROR)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _as_date(value: datetime) -> date:
    return value.date()


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"config={settings.config_path} | env={settings.app_env} | "
        f"log_level={settings.log_level} json_logs={settings.log_json} | "
        f"batch_workers={settings.batch_max_workers}"
    )


@app.command()
def rules() -> None:
    """List the configured reconciliation rules."""
    with _engine() as engine:
        _echo_json([rule.to_dict() for rule in engine.rule_store.get_all_rules()])


@app.command()
def systems() -> None:
    """List source systems and their data sources."""
    with _engine() as engine:
        _echo_json(describe_systems(engine.rule_store))


@app.command()
def available() -> None:
    """List system pairs that share entity types, with candidate data-source pairs."""
    with _engine() as engine:
        _echo_json(available_reconciliations(engine.rule_store))


@app.command()
def run(
    rule_name: str = typer.Argument(..., help="Name of the rule to execute."),
    trade_date: datetime = _DATE_OPTION,
    as_json: bool = _JSON_OPTION,
) -> None:
    """
    Execute a single rule for a trade date.
    """
    with _engine() as engine:
        result = engine.execute_by_rule(rule_name, _as_date(trade_date))
    if as_json:
        _echo_json(result.to_dict())
    else:
        print_results([result])


@app.command("run-all")
def run_all(
    trade_date: datetime = _DATE_OPTION,
    as_json: bool = _JSON_OPTION,
    fail_on_mismatch: bool = typer.Option(
        False,
        "--fail-on-mismatch",
        help="Exit with code 2 if any rule fails or any counts differ.",
    ),
) -> None:
    """
    Execute every configured rule for a trade date; failing rules are reported, not fatal.
    """
    with _engine() as engine:
        report = engine.run_batch(_as_date(trade_date))
    if as_json:
        _echo_json(report.to_dict())
    else:
        print_results(list(report.results), report.failures)
    if fail_on_mismatch and (report.failures or any(not r.match for r in report.results)):
        raise typer.Exit(code=EXIT_MISMATCH)


@app.command()
def adhoc(
    system_a: str = typer.Option(..., "--system-a", help="Source system A."),
    source_a: str = typer.Option(..., "--source-a", help="Data source within system A."),
    system_b: str = typer.Option(..., "--system-b", help="Source system B."),
    source_b: str = typer.Option(..., "--source-b", help="Data source within system B."),
    entity_type: EntityType = typer.Option(..., "--entity-type", "-e", help="Entity type to count."),
    trade_date: datetime = _DATE_OPTION,
    name: Optional[str] = typer.Option(None, "--name", help="Rule name (generated when omitted)."),
    as_json: bool = _JSON_OPTION,
) -> None:
    """
    Compare two explicitly chosen data sources without a registered rule.
    """
    request = AdHocRequest(
        rule_name=name or "",
        source_system_a=system_a,
        data_source_a=source_a,
        source_system_b=system_b,
        data_source_b=source_b,
        entity_type=entity_type,
        trade_date=_as_date(trade_date),
    )
    with _engine() as engine:
        result = engine.execute_adhoc(request)
    if as_json:
        _echo_json(result.to_dict())
    else:
        print_results([result])


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
