"""
workload-arbiter CLI.

Commands:
    workload-arbiter recipes                    List the recipe catalog
    workload-arbiter match PROCESS...           Show which recipes match
    workload-arbiter apply NAME [--actuator-url] Apply a recipe now
    workload-arbiter revert NAME [--actuator-url] Revert a recipe
    workload-arbiter serve                      Run the HTTP API

Without --actuator-url, apply and revert run against the in-memory
actuator: a dry run that still records to the apply log.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from workload_arbiter.config import EngineConfig
from workload_arbiter.configuration.actuator import Actuator, InMemoryActuator
from workload_arbiter.configuration.http_actuator import HttpActuator
from workload_arbiter.configuration.models import ChangeStatus, ConfigurationResult
from workload_arbiter.errors import WorkloadArbiterError
from workload_arbiter.engine import WorkloadEngine, build_engine
from workload_arbiter.logging_config import configure_logging
from workload_arbiter.recipes import RecipeCatalog, default_catalog, load_catalog
from workload_arbiter.security import ValidationError

app = typer.Typer(help="Match running workloads to recipes and arbitrate system configuration")
console = Console()

_STATUS_STYLE = {
    ChangeStatus.APPLIED: "[green]applied[/green]",
    ChangeStatus.REVERTED: "[green]reverted[/green]",
    ChangeStatus.SKIPPED: "[yellow]skipped[/yellow]",
    ChangeStatus.FAILED: "[red]failed[/red]",
}


def _config(db_path: Path | None, catalog: Path | None) -> EngineConfig:
    config = EngineConfig.from_env()
    if db_path is not None:
        config.db_path = db_path
    if catalog is not None:
        config.catalog_path = catalog
    return config


def _load_catalog(catalog: Path | None) -> RecipeCatalog:
    path = catalog or EngineConfig.from_env().catalog_path
    try:
        return load_catalog(path) if path else default_catalog()
    except WorkloadArbiterError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _print_result(result: ConfigurationResult) -> None:
    table = Table(title=f"{result.recipe_name}: {result.message}")
    table.add_column("Change", style="bold")
    table.add_column("Value")
    table.add_column("Status")
    table.add_column("Details")
    for outcome in result.changes:
        table.add_row(
            outcome.change.action_name,
            repr(outcome.change.value),
            _STATUS_STYLE[outcome.status],
            outcome.reason,
        )
    console.print(table)


async def _run(engine: WorkloadEngine, actuator: Actuator, operation: str, name: str):
    try:
        if operation == "apply":
            return await engine.apply_recipe_by_name(name)
        return await engine.revert(name)
    finally:
        if isinstance(actuator, HttpActuator):
            await actuator.aclose()


def _execute(
    operation: str,
    name: str,
    actuator_url: str | None,
    api_key: str,
    db_path: Path | None,
    catalog: Path | None,
) -> None:
    try:
        actuator = HttpActuator(actuator_url, api_key=api_key) if actuator_url else InMemoryActuator()
    except ValidationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    if not actuator_url:
        console.print("[dim]No --actuator-url given: dry run against the in-memory actuator[/dim]")

    try:
        engine = build_engine(_config(db_path, catalog), actuator=actuator)
    except WorkloadArbiterError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    result = asyncio.run(_run(engine, actuator, operation, name))
    _print_result(result)
    if not result.success:
        raise typer.Exit(1)


# =============================================================================
# CATALOG
# =============================================================================


@app.command()
def recipes(
    catalog: Path = typer.Option(None, help="Recipe catalog JSON (default: built-in)"),
    category: str = typer.Option(None, help="Only list recipes in this category"),
):
    """List recipes in registration order."""
    recipe_catalog = _load_catalog(catalog)
    selected = recipe_catalog.by_category(category) if category else list(recipe_catalog)
    if not selected:
        console.print(f"[yellow]No recipes in category '{category}'[/yellow]")
        return
    table = Table(title="Recipe Catalog")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Triggers")
    table.add_column("Specificity", justify="right")
    table.add_column("Changes", justify="right")
    for recipe in selected:
        table.add_row(
            recipe.name,
            recipe.category,
            ", ".join(sorted(recipe.triggers)) or "[dim](always)[/dim]",
            str(recipe.specificity),
            str(len(recipe.to_changes())),
        )
    console.print(table)


@app.command()
def match(
    processes: list[str] = typer.Argument(..., help="Running process names"),
    catalog: Path = typer.Option(None, help="Recipe catalog JSON (default: built-in)"),
):
    """Show every recipe matching the given processes and the best one."""
    recipe_catalog = _load_catalog(catalog)
    matches = recipe_catalog.match(processes)
    if not matches:
        console.print("[yellow]No matching recipe[/yellow]")
        return
    best = recipe_catalog.select_best(matches)
    for recipe in matches:
        marker = "[bold green]*[/bold green]" if recipe is best else " "
        console.print(f"{marker} {recipe.name} (specificity {recipe.specificity})")


# =============================================================================
# APPLY / REVERT
# =============================================================================


@app.command()
def apply(
    name: str = typer.Argument(..., help="Recipe name"),
    actuator_url: str = typer.Option(None, help="Actuator service base URL"),
    api_key: str = typer.Option("", envvar="WORKLOAD_ARBITER_ACTUATOR_KEY", help="Actuator bearer key"),
    db_path: Path = typer.Option(None, help="SQLite database path"),
    catalog: Path = typer.Option(None, help="Recipe catalog JSON (default: built-in)"),
):
    """Apply a recipe now (manual override)."""
    _execute("apply", name, actuator_url, api_key, db_path, catalog)


@app.command()
def revert(
    name: str = typer.Argument(..., help="Recipe or plan name"),
    actuator_url: str = typer.Option(None, help="Actuator service base URL"),
    api_key: str = typer.Option("", envvar="WORKLOAD_ARBITER_ACTUATOR_KEY", help="Actuator bearer key"),
    db_path: Path = typer.Option(None, help="SQLite database path"),
    catalog: Path = typer.Option(None, help="Recipe catalog JSON (default: built-in)"),
):
    """Revert every change still pending under NAME, newest first."""
    _execute("revert", name, actuator_url, api_key, db_path, catalog)


# =============================================================================
# SERVE
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
    log_level: str = typer.Option("INFO", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    configure_logging(log_level, json_output=json_logs)
    console.print(f"\n[bold blue]workload-arbiter serve[/bold blue] on http://{host}:{port}\n")
    uvicorn.run(
        "workload_arbiter.api.gateway:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    app()
