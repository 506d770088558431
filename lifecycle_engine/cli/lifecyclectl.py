#!/usr/bin/env python3
"""
Lifecycle Control CLI - Command Line Interface for the Lifecycle Engine.

Provides commands for creating lifecycles, progressing tasks and checklist
items, and reporting on running and overdue processes.
"""

import logging
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import load_config
from ..engine.checklist import checklist_progress
from ..exceptions import LifecycleEngineError
from ..models import Lifecycle, RequesterContext, TaskStatus
from ..service import LifecycleService

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

STATUS_STYLES = {
    "Completed": "green",
    "In Progress": "blue",
    "Initiated": "cyan",
    "Overdue": "red",
    "Cancelled": "dim",
    "On Hold": "yellow",
    "Pending": "white",
}

OPERATOR = RequesterContext(user_id="lifecyclectl", role_level=1000, display_name="lifecyclectl")


class LifecycleController:
    """Main controller for CLI operations."""

    def __init__(self, config_path: Optional[str] = None, mock_mode: bool = True):
        self.config = load_config(config_path)
        self.config.mock_mode = mock_mode
        self.service = LifecycleService.from_config(self.config)
        logger.debug(f"Lifecycle service ready (mock_mode={mock_mode}, state_file={self.config.state_file})")


def styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def display_lifecycle(lifecycle: Lifecycle, now):
    """Render a lifecycle with its tasks and checklist."""
    console.print(Panel.fit(
        f"[bold blue]{lifecycle.type.value} - {lifecycle.employee_id}[/bold blue]\n{lifecycle.id}"
    ))
    console.print(f"Status: {styled(lifecycle.status.value)}")
    console.print(f"Department: {lifecycle.department_id}")
    console.print(f"Assigned HR: {lifecycle.assigned_hr}")
    console.print(f"Progress: {lifecycle.progress}%")
    console.print(f"Target: {lifecycle.target_completion_date.strftime('%Y-%m-%d')} "
                  f"({lifecycle.days_remaining(now)} days remaining)")
    if lifecycle.notes:
        console.print(f"Notes: {lifecycle.notes}")

    table = Table(title="Tasks")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Priority")
    table.add_column("Due")
    table.add_column("Status")
    for task in lifecycle.tasks:
        table.add_row(
            task.id,
            task.title,
            task.priority.value,
            task.due_date.strftime('%Y-%m-%d'),
            styled(task.status.value),
        )
    console.print(table)

    if lifecycle.checklist:
        checklist = Table(title=f"Checklist ({checklist_progress(lifecycle)}% complete)")
        checklist.add_column("#", justify="right")
        checklist.add_column("Item")
        checklist.add_column("Done")
        for index, item in enumerate(lifecycle.checklist):
            checklist.add_row(str(index), item.item, "[green]✓[/green]" if item.is_completed else "")
        console.print(checklist)

    if lifecycle.final_payroll_data:
        console.print("[bold]Final payroll calculated[/bold]")


def lifecycles_table(title: str, lifecycles, now) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Employee")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Days Left", justify="right")
    for lc in lifecycles:
        table.add_row(
            lc.id,
            lc.employee_id,
            lc.type.value,
            styled(lc.status.value),
            f"{lc.progress}%",
            str(lc.days_remaining(now)),
        )
    return table


@click.group()
@click.option('--config', '-c', help='Path to configuration file (YAML or JSON)')
@click.option('--mock/--real', default=True, help='Use mock payroll (default) or the configured payroll service')
@click.pass_context
def cli(ctx, config, mock):
    """Lifecycle Engine Control CLI - Employee Onboarding and Offboarding"""
    ctx.ensure_object(dict)
    ctx.obj['controller'] = LifecycleController(config, mock)


@cli.command()
@click.argument('employee_id')
@click.option('--type', 'lifecycle_type', required=True,
              type=click.Choice(['Onboarding', 'Offboarding']), help='Lifecycle type')
@click.option('--department', required=True, help='Department ID')
@click.option('--hr', 'assigned_hr', required=True, help='HR user responsible for the tasks')
@click.option('--role', help='Role ID')
@click.option('--notes', help='Notes for the lifecycle')
@click.pass_context
def create(ctx, employee_id, lifecycle_type, department, assigned_hr, role, notes):
    """Create a standard lifecycle for an employee."""
    service = ctx.obj['controller'].service
    try:
        lifecycle = service.create_lifecycle(
            employee_id, lifecycle_type, department, assigned_hr, OPERATOR.user_id,
            role_id=role, notes=notes,
        )
    except LifecycleEngineError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise SystemExit(1)

    console.print(f"[green]✓ Created {lifecycle_type} lifecycle {lifecycle.id}[/green]")
    display_lifecycle(lifecycle, service.clock())


@cli.command()
@click.argument('lifecycle_id')
@click.pass_context
def show(ctx, lifecycle_id):
    """Show a lifecycle with its tasks and checklist."""
    service = ctx.obj['controller'].service
    try:
        lifecycle = service.get_lifecycle(lifecycle_id)
    except LifecycleEngineError as e:
        console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1)

    display_lifecycle(lifecycle, service.clock())


@cli.command('list')
@click.option('--status', help='Filter by status')
@click.option('--type', 'lifecycle_type', help='Filter by lifecycle type')
@click.option('--department', help='Filter by department ID')
@click.option('--page', default=1, help='Page number')
@click.option('--limit', default=10, help='Page size')
@click.pass_context
def list_lifecycles(ctx, status, lifecycle_type, department, page, limit):
    """List lifecycles."""
    from ..models import LifecycleFilters

    service = ctx.obj['controller'].service
    try:
        filters = LifecycleFilters(status=status, type=lifecycle_type, department_id=department)
        result = service.queries.list_lifecycles(OPERATOR, filters, page, limit)
    except (LifecycleEngineError, ValueError) as e:
        console.print(f"[red]Error listing lifecycles: {e}[/red]")
        raise SystemExit(1)

    if not result.docs:
        console.print("[yellow]No lifecycles found[/yellow]")
        return

    console.print(lifecycles_table(
        f"Lifecycles (page {result.page}/{result.totalPages}, {result.totalDocs} total)",
        result.docs, service.clock(),
    ))


def _apply_task_action(ctx, lifecycle_id: str, task_id: str, action: str, notes: Optional[str]):
    service = ctx.obj['controller'].service
    try:
        lifecycle = service.update_task_status(lifecycle_id, task_id, action, OPERATOR.user_id, notes)
    except LifecycleEngineError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise SystemExit(1)

    task = lifecycle.get_task(task_id)
    console.print(f"[green]✓ Task \"{task.title}\" is now {task.status.value}[/green]")
    console.print(f"Lifecycle {lifecycle.id}: {styled(lifecycle.status.value)} ({lifecycle.progress}%)")
    if task.status == TaskStatus.COMPLETED and lifecycle.final_payroll_data:
        console.print("[bold]Final payroll calculated[/bold]")


@cli.command('start-task')
@click.argument('lifecycle_id')
@click.argument('task_id')
@click.pass_context
def start_task(ctx, lifecycle_id, task_id):
    """Start a task."""
    _apply_task_action(ctx, lifecycle_id, task_id, "start", None)


@cli.command('complete-task')
@click.argument('lifecycle_id')
@click.argument('task_id')
@click.option('--notes', help='Completion notes')
@click.pass_context
def complete_task(ctx, lifecycle_id, task_id, notes):
    """Complete a task."""
    _apply_task_action(ctx, lifecycle_id, task_id, "complete", notes)


@cli.command('complete-item')
@click.argument('lifecycle_id')
@click.argument('index', type=int)
@click.option('--notes', default='', help='Completion notes')
@click.pass_context
def complete_item(ctx, lifecycle_id, index, notes):
    """Complete a checklist item by index."""
    service = ctx.obj['controller'].service
    try:
        lifecycle = service.complete_checklist_item(lifecycle_id, index, OPERATOR.user_id, notes)
    except LifecycleEngineError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise SystemExit(1)

    console.print(f"[green]✓ Completed: {lifecycle.checklist[index].item}[/green]")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show lifecycle statistics."""
    service = ctx.obj['controller'].service
    summary = service.queries.get_stats(OPERATOR)

    console.print("[bold blue]Lifecycle Statistics[/bold blue]")
    console.print(f"Total: {summary.total}")
    console.print(f"Active: {summary.active}")
    console.print(f"Completed: {summary.completed}")
    console.print(f"Overdue: {summary.overdue}")
    console.print(f"Onboarding: {summary.onboarding}")
    console.print(f"Offboarding: {summary.offboarding}")
    console.print(f"Completion Rate: {summary.completionRate}%")


@cli.command()
@click.option('--mark', is_flag=True, help='Label overdue tasks as Overdue')
@click.pass_context
def overdue(ctx, mark):
    """List active lifecycles past their target completion date."""
    service = ctx.obj['controller'].service
    now = service.clock()

    if mark:
        count = service.mark_overdue_tasks(now)
        console.print(f"[blue]Labelled {count} task(s) as Overdue[/blue]")

    lifecycles = service.queries.find_overdue(now)
    if not lifecycles:
        console.print("[green]No overdue lifecycles[/green]")
        return

    console.print(lifecycles_table(f"Overdue Lifecycles ({len(lifecycles)})", lifecycles, now))


@cli.command()
@click.option('--port', default=8000, help='Port to run the API server on')
@click.option('--host', default='127.0.0.1', help='Host to bind the API server to')
def serve(port, host):
    """Start the REST API server."""
    from ..api.server import start_server

    console.print(f"[green]Starting Lifecycle Engine API server on {host}:{port}[/green]")
    console.print("[blue]Press Ctrl+C to stop[/blue]")
    try:
        start_server(host=host, port=port)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped[/yellow]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
