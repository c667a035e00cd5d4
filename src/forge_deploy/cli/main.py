"""Main CLI entry point."""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel

from forge_deploy.cli.output import (
    output_env,
    output_json,
    output_table,
    print_health_report,
    print_summary,
    snapshot_table,
    state_outputs,
)
from forge_deploy.cli.services import Services
from forge_deploy.config.parser import Config, ConfigValidationError
from forge_deploy.pipeline.steps import StepRange
from forge_deploy.prompts import AutoApprovePrompter, ClickPrompter
from forge_deploy.utils.errors import (
    DegradedRestore,
    DeploymentError,
    InvalidSelection,
    OperatorAbort,
)
from forge_deploy.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

RECENT_SNAPSHOTS = 5


@click.group()
@click.option('--config', 'config_path', default='forge.yaml', help='Path to configuration file')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.pass_context
def cli(ctx, config_path, log_level):
    """Provision, configure, deploy and verify a single-host application."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['log_level'] = log_level


def load_config(config_path: str = "forge.yaml") -> Config:
    """Load and validate configuration file."""
    try:
        return Config(config_path).load()
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e), markup=False)
        sys.exit(1)


def get_services(ctx) -> Services:
    """Services for this invocation; a pre-built instance in ctx.obj wins."""
    services = ctx.obj.get('services')
    if services is not None:
        return services

    cfg = load_config(ctx.obj['config_path'])
    setup_logging(ctx.obj['log_level'], cfg.resolve(cfg.settings.paths.log_dir))
    services = Services(cfg)
    ctx.obj['services'] = services
    return services


def report_error(error: DeploymentError) -> None:
    console.print(error.to_user_message(), style="red", markup=False, highlight=False)


def fail_unexpected(action: str, error: Exception) -> None:
    logger.exception(f"Unexpected error during {action}")
    console.print(f"[red]Unexpected error:[/red] {error}", highlight=False)
    sys.exit(1)


@cli.command()
@click.option('--start', help='First step to run (1-4)')
@click.option('--end', help='Last step to run (1-4)')
@click.option('--step', help='Run a single step (same as --start N --end N)')
@click.option('--yes', '-y', is_flag=True, help='Skip the provisioning confirmation')
@click.pass_context
def deploy(ctx, start, end, step, yes):
    """Run the pipeline: 1 provision, 2 configure, 3 deploy, 4 verify."""
    try:
        step_range = StepRange.from_options(start=start, end=end, step=step)
    except InvalidSelection as e:
        console.print(f"[red]Error:[/red] {e.message}", highlight=False)
        console.print("Usage: forge-deploy deploy [--start N] [--end N] [--step N]   (N in 1-4)")
        sys.exit(1)

    services = get_services(ctx)
    cfg = services.config

    prompter = ClickPrompter()
    if yes:
        prompter = AutoApprovePrompter(prompter)

    console.print(Panel.fit(
        f"[bold]Deploying {cfg.project.app_name}[/bold]\n"
        f"Project: {cfg.project.name}\n"
        f"Steps: {step_range}",
        title="Deployment Configuration",
        border_style="cyan"
    ))

    try:
        summary = services.controller(prompter).run(step_range)
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        fail_unexpected("deployment", e)

    print_summary(console, summary, services.state_manager.load_optional())
    if summary.error is not None:
        report_error(summary.error)
    if summary.exit_code:
        sys.exit(summary.exit_code)


@cli.command()
@click.pass_context
def health(ctx):
    """Run every health check against the deployed target."""
    services = get_services(ctx)
    try:
        state = services.state_manager.load()
        report = services.health().run(state)
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        fail_unexpected("health check", e)

    print_health_report(console, report)
    if not report.healthy:
        sys.exit(1)


@cli.command()
@click.pass_context
def backup(ctx):
    """Snapshot the application tree to object storage."""
    services = get_services(ctx)
    backups = services.backups()
    try:
        result = backups.create_backup()
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        fail_unexpected("backup", e)

    console.print(Panel.fit(
        f"[green]✓ Backup complete[/green]\n\n"
        f"Snapshot: {result.snapshot.id}\n"
        f"Location: {result.snapshot.url}",
        title="Backup",
        border_style="green"
    ))
    for leftover in result.leftovers:
        console.print(f"[yellow]Transient copy left behind:[/yellow] {leftover}", highlight=False)

    try:
        listed = backups.list_snapshots()
    except DeploymentError as e:
        console.print(f"[yellow]Could not list recent backups:[/yellow] {e.message}", highlight=False)
        return

    recent = list(reversed(listed[-RECENT_SNAPSHOTS:]))
    console.print(snapshot_table(recent, title="Recent backups", numbered=False))


@cli.command()
@click.pass_context
def snapshots(ctx):
    """List available snapshots."""
    services = get_services(ctx)
    try:
        items = services.backups().list_snapshots()
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        fail_unexpected("snapshot listing", e)

    if not items:
        console.print("[dim]No backups found[/dim]")
        return
    console.print(snapshot_table(items))


@cli.command()
@click.pass_context
def rollback(ctx):
    """Restore the application from a chosen snapshot."""
    services = get_services(ctx)
    try:
        result = services.rollback().run_interactive(ClickPrompter())
    except OperatorAbort as e:
        console.print(f"[yellow]{e}[/yellow]")
        return
    except DegradedRestore as e:
        report_error(e)
        if e.report is not None:
            print_health_report(console, e.report)
        sys.exit(1)
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        fail_unexpected("rollback", e)

    lines = [
        "[green]✓ Rollback complete[/green]",
        "",
        f"Restored: {result.snapshot.filename}",
    ]
    if result.archived is not None:
        lines.append(f"Previous version kept at: {result.archived.archive_path}")
    lines.append(f"Duration: {result.duration:.2f}s")
    console.print(Panel.fit("\n".join(lines), title="Rollback", border_style="green"))
    print_health_report(console, result.report)


@cli.command()
@click.option('--format', 'output_format', type=click.Choice(['table', 'json', 'env']), default='table',
              help='Output format')
@click.pass_context
def status(ctx, output_format):
    """Show the recorded deployment: address, progress and outputs."""
    services = get_services(ctx)
    try:
        state = services.state_manager.load()
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)

    outputs = state_outputs(state)
    if output_format == 'table':
        output_table(console, outputs, f"Deployment: {services.config.project.app_name}")
    elif output_format == 'json':
        output_json(console, outputs)
    elif output_format == 'env':
        output_env(console, outputs)


@cli.command()
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def teardown(ctx, yes):
    """Destroy the provisioned infrastructure and forget the pipeline state."""
    services = get_services(ctx)
    state = services.state_manager.load_optional()
    target = state.target_address if state else "unknown (no pipeline state)"

    console.print(Panel.fit(
        f"[bold red]⚠ WARNING: This will destroy the provisioned infrastructure[/bold red]\n\n"
        f"Project: {services.config.project.name}\n"
        f"Target: {target}\n",
        title="Teardown",
        border_style="red"
    ))

    if not yes:
        confirm = click.confirm("Are you sure you want to destroy these resources?", default=False)
        if not confirm:
            console.print("[yellow]Teardown cancelled[/yellow]")
            return

    try:
        services.provisioner().destroy()
    except DeploymentError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        fail_unexpected("teardown", e)

    services.state_manager.clear()
    inventory = Path(services.config.inventory_path)
    if inventory.exists():
        inventory.unlink()
    console.print("[green]✓ Infrastructure destroyed and pipeline state cleared[/green]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
