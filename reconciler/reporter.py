from __future__ import annotations

from typing import Iterable, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from reconciler.domain.models import ReconciliationResult, RuleFailure


def print_results(
    results: Sequence[ReconciliationResult],
    failures: Iterable[RuleFailure] = (),
    console: Console | None = None,
) -> None:
    """
    Render reconciliation results (and batch failures, if any) as rich tables.

    Matching rows are green, mismatches red; rules keep their execution order.
    """
    console = console or Console()
    failures = list(failures)

    if not results and not failures:
        console.print("[yellow]No results to display.[/yellow]")
        return

    if results:
        matched = sum(1 for result in results if result.match)
        table = Table(
            title=f"Reconciliation Results ({results[0].trade_date.isoformat()})",
            box=box.ROUNDED,
            caption=f"{matched}/{len(results)} matched",
        )
        table.add_column("Rule", style="cyan", no_wrap=True)
        table.add_column("Entity", style="magenta")
        table.add_column("System A / Source")
        table.add_column("Count A", justify="right")
        table.add_column("System B / Source")
        table.add_column("Count B", justify="right")
        table.add_column("Difference", justify="right")
        table.add_column("Match", justify="center")

        for result in results:
            style = "green" if result.match else "bold red"
            table.add_row(
                result.rule_name,
                result.entity_type.value,
                f"{result.source_system_a} / {result.data_source_a}",
                f"{result.count_a:,}",
                f"{result.source_system_b} / {result.data_source_b}",
                f"{result.count_b:,}",
                f"{result.difference:,}",
                "yes" if result.match else "no",
                style=style,
            )
        console.print(table)

    if failures:
        failed = Table(title="Failed Rules", box=box.ROUNDED)
        failed.add_column("Rule", style="cyan", no_wrap=True)
        failed.add_column("Error", style="red")
        failed.add_column("Message")
        for failure in failures:
            failed.add_row(failure.rule_name, failure.error_kind, failure.message)
        console.print(failed)


__all__ = ["print_results"]
