import logging
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Annotated, ParamSpec

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from hydrant._api import load_condition, simulate_query, validate_job
from hydrant._cycle import run_cycle
from hydrant._errors import HydrantError
from hydrant._eval_engine import EvaluationEnv, apply_update_functions, evaluate_condition, hydrate_variables
from hydrant._io import JobFile, export_job_to_toml, load_job_file
from hydrant._migration import migrate_legacy_variables
from hydrant._models import Variable, dump_variables
from hydrant._settings import EngineSettings
from hydrant._templates import substitute

from .config import ConfigError, get_config

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()

JobPath = Annotated[Path, typer.Argument(help="Path to the job TOML file")]
OutputOption = Annotated[
    Path | None,
    typer.Option("-o", "--output", help="Write the job with the new variables to this TOML file"),
]
ExecutionOption = Annotated[int, typer.Option("--execution", "-e", help="Index of the execution to use")]


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Hydrant CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


P = ParamSpec("P")


def _reports_errors(command: Callable[P, None]) -> Callable[P, None]:
    """Print engine and configuration errors in red and exit with status 1."""

    @wraps(command)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> None:
        try:
            command(*args, **kwargs)
        except HydrantError as e:
            err_console.print(f"[red]✗ {e.code}:[/red] {escape(str(e))}")
            raise typer.Exit(code=1) from e
        except ConfigError as e:
            err_console.print(f"[red]✗ Configuration error:[/red] {escape(str(e))}")
            raise typer.Exit(code=1) from e

    return wrapper


def _settings() -> EngineSettings:
    return get_config().to_settings()


def _load(path: Path) -> JobFile:
    err_console.print(f"[cyan]Loading job from:[/cyan] {path}")
    return load_job_file(path)


def _resolved(job_file: JobFile, settings: EngineSettings) -> list[Variable]:
    return hydrate_variables(
        job_file.job.vars,
        job_file.inputs,
        context=job_file.context,
        queries=job_file.queries,
        settings=settings,
    )


def _pick_execution(job_file: JobFile, index: int) -> int:
    if not 0 <= index < len(job_file.job.executions):
        err_console.print(f"[red]Error: Job has no execution {index}[/red]")
        raise typer.Exit(code=1)
    return index


@app.command()
@_reports_errors
def validate(path: JobPath) -> None:
    """Check a job definition for internal consistency."""
    settings = _settings()
    job = _load(path).job
    validate_job(job, settings)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Variable", style="bold")
    table.add_column("Source")
    table.add_column("Kind", style="yellow")
    for variable in job.vars:
        table.add_row(escape(variable.name), variable.source, str(variable.kind))
    err_console.print(
        Panel(
            table,
            title=f"[bold]Job: {escape(job.name)}[/bold]",
            subtitle=f"[dim]{len(job.executions)} executions[/dim]",
            border_style="cyan",
        ),
    )
    err_console.print("[green]✓ Job is valid[/green]")


@app.command("hydrate-vars")
@_reports_errors
def hydrate_vars(path: JobPath, *, output: OutputOption = None) -> None:
    """Resolve the job's variables and print them."""
    settings = _settings()
    job_file = _load(path)
    variables = _resolved(job_file, settings)
    out_console.print_json(dump_variables(variables))
    if output is not None:
        export_job_to_toml(job_file.job.with_vars(variables), output)
        err_console.print(f"[green]✓ Wrote resolved job to[/green] {output}")


@app.command()
@_reports_errors
def resolve(
    path: JobPath,
    *,
    execution: ExecutionOption = 0,
    terminate: Annotated[bool, typer.Option("--terminate", help="Evaluate the terminate condition")] = False,
    encoded: Annotated[bool, typer.Option("--encoded", help="Compare encoded variables by their encoded text")] = False,
) -> None:
    """Resolve variables and evaluate a condition of the job."""
    settings = _settings()
    job_file = _load(path)
    if terminate:
        if job_file.job.terminate_condition is None:
            err_console.print("[red]Error: Job has no terminate condition[/red]")
            raise typer.Exit(code=1)
        text = job_file.job.terminate_condition
    else:
        text = job_file.job.executions[_pick_execution(job_file, execution)].condition

    variables = _resolved(job_file, settings)
    env = EvaluationEnv(
        variables={variable.name: variable for variable in variables},
        context=job_file.context,
        settings=settings,
        apply_encoding=encoded,
    )
    result = evaluate_condition(load_condition(text, settings), env)
    out_console.print("true" if result else "false")


@app.command("hydrate-msgs")
@_reports_errors
def hydrate_msgs(path: JobPath, *, execution: ExecutionOption = 0) -> None:
    """Resolve variables and print the hydrated instructions of an execution."""
    settings = _settings()
    job_file = _load(path)
    msgs = job_file.job.executions[_pick_execution(job_file, execution)].msgs
    variables = _resolved(job_file, settings)
    out_console.print_json(substitute(msgs, {variable.name: variable for variable in variables}, settings))


@app.command()
@_reports_errors
def apply(
    path: JobPath,
    status: Annotated[str, typer.Argument(help="Final status of the execution: executed or failed")],
    *,
    output: OutputOption = None,
) -> None:
    """Apply the variables' update expressions for an execution's final status."""
    settings = _settings()
    job_file = _load(path)
    variables = apply_update_functions(
        job_file.job.vars,
        status,
        context=job_file.context,
        settings=settings,
    )
    out_console.print_json(dump_variables(variables))
    if output is not None:
        export_job_to_toml(job_file.job.with_vars(variables), output)
        err_console.print(f"[green]✓ Wrote updated job to[/green] {output}")


@app.command()
@_reports_errors
def cycle(path: JobPath, *, output: OutputOption = None) -> None:
    """Run one cycle: resolve, check termination, pick an execution and hydrate it."""
    settings = _settings()
    job_file = _load(path)
    outcome = run_cycle(
        job_file.job,
        context=job_file.context,
        queries=job_file.queries,
        external_inputs=job_file.inputs,
        settings=settings,
    )

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Variable", style="dim")
    table.add_column("Value")
    for variable in outcome.variables:
        table.add_row(escape(variable.name), escape(variable.value or ""))
    err_console.print(Panel(table, title="[bold]Resolved variables[/bold]", border_style="cyan"))

    if outcome.terminated:
        err_console.print("[yellow]Terminate condition holds; the job is finished[/yellow]")
    elif outcome.msgs is not None:
        err_console.print(f"[green]✓ Execution {outcome.execution_index} triggered[/green]")
        out_console.print_json(outcome.msgs)
    else:
        err_console.print("[dim]No execution is ready[/dim]")

    if output is not None:
        export_job_to_toml(job_file.job.with_vars(outcome.variables), output)
        err_console.print(f"[green]✓ Wrote resolved job to[/green] {output}")


@app.command()
@_reports_errors
def simulate(
    path: JobPath,
    query: Annotated[str, typer.Argument(help="Query request as JSON")],
    *,
    selector: Annotated[str | None, typer.Option("--selector", "-s", help="Selector applied to the response")] = None,
) -> None:
    """Answer a query from the job file's recorded responses."""
    job_file = _load(path)
    out_console.print_json(simulate_query(query, job_file.queries, selector))


@app.command("migrate-vars")
@_reports_errors
def migrate_vars(
    path: Annotated[Path, typer.Argument(help="Path to a JSON file with legacy variables")],
    *,
    output: Annotated[Path | None, typer.Option("-o", "--output", help="Write migrated variables here")] = None,
) -> None:
    """Convert legacy variable definitions to the current format."""
    migrated = migrate_legacy_variables(path.read_text(encoding="utf-8"))
    if output is None:
        out_console.print_json(migrated)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(migrated, encoding="utf-8")
    err_console.print(f"[green]✓ Wrote migrated variables to[/green] {output}")


def main() -> None:
    app()
