"""Rendering helpers for command output."""

from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from forge_deploy.health.aggregator import CHECK_LABELS
from forge_deploy.health.models import HealthReport
from forge_deploy.pipeline.controller import PipelineOutcome, PipelineSummary
from forge_deploy.pipeline.steps import Step
from forge_deploy.snapshots.models import Snapshot
from forge_deploy.snapshots.rollback import format_size
from forge_deploy.state.models import PipelineState

OUTCOME_STYLES = {
    PipelineOutcome.COMPLETED_FULLY: ("green", "✓ Deployment complete"),
    PipelineOutcome.COMPLETED_PARTIALLY: ("cyan", "✓ Requested steps complete"),
    PipelineOutcome.ABORTED_BY_OPERATOR: ("yellow", "⚠ Deployment cancelled"),
    PipelineOutcome.FAILED: ("red", "✗ Deployment failed"),
}


def health_table(report: HealthReport) -> Table:
    table = Table(title=f"Health check: {report.target}", show_header=True, header_style="bold")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Detail")

    for result in report.results:
        status = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
        table.add_row(CHECK_LABELS.get(result.name, result.name), status, result.detail)

    return table


def print_health_report(console: Console, report: HealthReport) -> None:
    console.print(health_table(report))
    style = "green" if report.healthy else "red"
    console.print(f"[{style}]{report.pass_count} passed, {report.fail_count} failed[/{style}]")


def snapshot_table(snapshots: List[Snapshot], title: str = "Backups", numbered: bool = True) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    if numbered:
        table.add_column("#", justify="right")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Created")
    table.add_column("Expires")
    table.add_column("Size", justify="right")

    for index, snapshot in enumerate(snapshots, 1):
        row = [
            snapshot.filename,
            snapshot.created_at.strftime('%Y-%m-%d %H:%M:%S'),
            snapshot.expires_at.strftime('%Y-%m-%d') if snapshot.expires_at else "-",
            format_size(snapshot.size),
        ]
        if numbered:
            row.insert(0, str(index))
        table.add_row(*row)

    return table


def print_summary(console: Console, summary: PipelineSummary, state: Optional[PipelineState]) -> None:
    """Final pipeline summary: per-phase status and, when known, how to reach the app."""
    style, headline = OUTCOME_STYLES[summary.outcome]

    table = Table(show_header=True, header_style="bold")
    table.add_column("Step", justify="right")
    table.add_column("Phase", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    rows = {int(r.step): (r.status.value, r.detail) for r in summary.results}
    for step in summary.skipped:
        rows[int(step)] = ("skipped", "outside requested range")
    for step in summary.not_run:
        rows[int(step)] = ("not run", "")
    for number in sorted(rows):
        status, detail = rows[number]
        table.add_row(str(number), Step(number).title, status, detail)

    lines = [
        f"[{style}]{headline}[/{style}]",
        "",
        f"Requested: {summary.step_range}",
        f"Last completed step: {summary.last_completed_step}",
        f"Duration: {summary.duration:.2f}s",
    ]
    if state is not None and summary.outcome != PipelineOutcome.ABORTED_BY_OPERATOR:
        lines.append(f"Application URL: {state.app_url}")
        if state.ssh_command:
            lines.append(f"SSH: {state.ssh_command}")
    if summary.outcome == PipelineOutcome.FAILED and summary.failed_step is not None:
        lines.append(
            f"Resume with: forge-deploy deploy --start {int(summary.failed_step)}"
        )

    console.print(table)
    console.print(Panel.fit("\n".join(lines), title="Deployment Summary", border_style=style))

    if summary.health_report is not None:
        print_health_report(console, summary.health_report)


def state_outputs(state: PipelineState) -> Dict[str, str]:
    outputs = state.outputs()
    outputs["last_completed_step"] = str(state.last_completed_step)
    return outputs


def output_table(console: Console, outputs: Dict[str, str], title: str) -> None:
    """Output in table format."""
    console.print(Panel(title, style="bold blue"))
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Output Name", style="cyan")
    table.add_column("Value", style="white")

    for name, value in sorted(outputs.items()):
        table.add_row(name, value)

    console.print(table)


def output_json(console: Console, outputs: Dict[str, str]) -> None:
    console.print_json(data=outputs)


def output_env(console: Console, outputs: Dict[str, str]) -> None:
    """Output in environment variable format."""
    for name, value in sorted(outputs.items()):
        env_name = name.upper().replace('-', '_').replace('.', '_')
        console.print(f'export {env_name}="{value}"', markup=False, highlight=False)
