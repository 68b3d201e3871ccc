"""Command line interface for taskpilot."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import typer
import uvicorn
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .agents.orchestrator import Orchestrator
from .config import CONFIG_ENV_VAR, ConfigError, ProjectConfig
from .errors import TaskpilotError
from .log import configure_logging
from .tasks.base import ProgressEvent, SubTask

app = typer.Typer(help="Multi-agent task orchestrator")
console = Console()

STATUS_STYLES = {
    "pending": "[yellow]pending",
    "started": "[cyan]working...",
    "completed": "[green]completed",
    "failed": "[red]failed",
}


def _load_config(config_path: Optional[Path]) -> ProjectConfig:
    if config_path is None:
        return ProjectConfig.from_env()
    return ProjectConfig.from_file(config_path)


def _build(config_path: Optional[Path]) -> Tuple[ProjectConfig, Orchestrator]:
    try:
        config = _load_config(config_path)
        return config, Orchestrator(config)
    except ConfigError as exc:
        console.print(f"[bold red]Invalid configuration:[/] {exc}")
        raise typer.Exit(code=2) from exc


def _render_plan(sub_tasks: list[SubTask], title: str = "Execution Plan") -> None:
    plan = Table(title=title, show_lines=True)
    plan.add_column("#")
    plan.add_column("Sub-task")
    plan.add_column("Agent")
    plan.add_column("Priority")
    plan.add_column("Depends on")
    for index, sub_task in enumerate(sub_tasks, start=1):
        plan.add_row(
            str(index),
            sub_task.title,
            sub_task.agent_name,
            str(sub_task.priority),
            ", ".join(sub_task.dependencies) or "-",
        )
    console.print(plan)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def run(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Argument(..., help="What the task should achieve"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration"),
    timeout: Optional[float] = typer.Option(None, help="Time budget in seconds (overrides config)"),
    show_artifacts: bool = False,
) -> None:
    """Decompose and execute a task, showing live sub-task progress."""

    config, orchestrator = _build(config_path)
    task = orchestrator.new_task(title, description)
    console.print(f"[bold green]Running task[/] {task.id}: {title}")

    progress = Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("{task.fields[status]}"),
        transient=False,
    )
    rows: Dict[str, int] = {}

    def on_progress(event: ProgressEvent) -> None:
        sub_task = event.sub_task
        if sub_task.id not in rows:
            rows[sub_task.id] = progress.add_task(
                f"{sub_task.title} ({sub_task.agent_name})", status=STATUS_STYLES["pending"]
            )
        progress.update(rows[sub_task.id], status=STATUS_STYLES[event.status])

    budget = timeout if timeout is not None else config.execution.timeout
    try:
        with progress:
            asyncio.run(orchestrator.execute_task(task, on_progress, timeout=budget))
    except TaskpilotError as exc:
        console.print(f"[bold red]Task failed:[/] {exc}")
        raise typer.Exit(code=1) from exc

    table = Table(title="Sub-task outputs", show_lines=True)
    table.add_column("Sub-task")
    table.add_column("Status")
    table.add_column("Output")
    for sub_task in task.sub_tasks:
        output = sub_task.result if sub_task.result is not None else (sub_task.error or "")
        table.add_row(sub_task.title, sub_task.status.value, output)
    console.print(table)
    console.rule("Final result")
    console.print(task.result or "")

    if show_artifacts:
        for artifact in task.artifacts:
            console.rule(f"{artifact.kind.value}: {artifact.title}")
            console.print(artifact.content)


@app.command()
def plan(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Argument(..., help="What the task should achieve"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration"),
) -> None:
    """Preview the scheduled sub-tasks without executing them."""

    _, orchestrator = _build(config_path)
    task = orchestrator.new_task(title, description)
    try:
        sub_tasks = asyncio.run(orchestrator.decompose_task(task))
    except TaskpilotError as exc:
        console.print(f"[bold red]Decomposition failed:[/] {exc}")
        raise typer.Exit(code=1) from exc
    _render_plan(sub_tasks)


@app.command()
def inspect(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config to inspect"),
) -> None:
    """Print the agents and tools defined by a configuration."""

    config, orchestrator = _build(config_path)
    console.print(f"[bold]Project:[/] {config.name}\n{config.description or ''}")
    console.print("[bold]Agents[/]")
    for kind, agent in orchestrator.agents.items():
        spec = config.agents[kind]
        console.print(
            f"- {kind.value} ({agent.name}, engine={spec.engine}, steps={spec.max_steps}): "
            f"tools={sorted(agent.tools)}"
        )
    console.print(f"[bold]Time budget:[/] {config.execution.timeout}s")


@app.command()
def serve(
    host: str = "127.0.0.1",
    port: int = 8000,
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration"),
) -> None:
    """Run the HTTP server."""

    if config_path is not None:
        os.environ[CONFIG_ENV_VAR] = str(config_path)
    configure_logging(logging.INFO)
    uvicorn.run("taskpilot.web.server:app", host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    app()
