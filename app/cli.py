from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress
from rich.table import Table

from adapters.filesystem.genealogy_repository import FileSystemGenealogyRepository
from adapters.filesystem.visual_document_repository import FileSystemVisualDocumentRepository
from app.config import load_settings
from app.pipeline_wiring import build_layout_pipeline
from domain.errors import PipelineInputError, UnknownStageError
from domain.models import GenealogyDocument
from domain.services.layout_pipeline import PipelineResult, ProgressEvent
from domain.services.stage_registry import DEFAULT_STAGE_REGISTRY

app = typer.Typer(no_args_is_help=True)
console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_raw(input_path: Path) -> dict:
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)
    try:
        return FileSystemGenealogyRepository().load_raw(input_path)
    except ValueError as exc:
        console.print(f"[red]Cannot read genealogy JSON:[/] {exc}")
        raise typer.Exit(code=1) from exc


def _report_table(result: PipelineResult) -> Table:
    table = Table(title="Stages")
    table.add_column("#", justify="right")
    table.add_column("Stage")
    table.add_column("Instance")
    table.add_column("Time, ms", justify="right")
    table.add_column("Status")
    for position, report in enumerate(result.reports, start=1):
        status = "[green]ok[/]" if report.success else f"[red]failed[/] {report.error}"
        table.add_row(
            str(position),
            report.stage_name,
            report.stage_id,
            f"{report.duration_ms:.1f}",
            status,
        )
    return table


@app.command("layout")
def layout(
    input_path: Path = typer.Argument(..., help="Genealogy JSON file."),
    output_path: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Where to write the visual document JSON.",
    ),
    stages: Optional[List[str]] = typer.Option(
        None, "--stage", "-s", help="Stage to run, in order. Repeat for several stages.",
    ),
    canvas_width: Optional[float] = typer.Option(None, help="Canvas width in pixels."),
    canvas_height: Optional[float] = typer.Option(None, help="Canvas height in pixels."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    settings = load_settings(config_path)
    _configure_logging(settings.log_level)
    try:
        pipeline_config = settings.to_pipeline_config(
            stages=stages, canvas_width=canvas_width, canvas_height=canvas_height
        )
    except (UnknownStageError, ValidationError) as exc:
        console.print(f"[red]Invalid pipeline:[/] {exc}")
        raise typer.Exit(code=1) from exc

    raw = _load_raw(input_path)
    pipeline = build_layout_pipeline()
    try:
        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Layout", total=len(pipeline_config.stages))

            def _on_progress(event: ProgressEvent) -> None:
                progress.update(task, completed=event.current, description=event.stage_name)

            result = pipeline.run(raw, pipeline_config, on_progress=_on_progress)
    except PipelineInputError as exc:
        console.print(f"[red]Validation failed:[/] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(_report_table(result))
    target_path = output_path or input_path.with_name(f"{input_path.stem}.layout.json")
    FileSystemVisualDocumentRepository().save(result.document, target_path)
    console.print(f"[green]Wrote[/] {target_path}")
    if not result.succeeded:
        console.print("[yellow]Some stages failed; the document holds the remaining stages.[/]")


@app.command("validate")
def validate(input_path: Path = typer.Argument(..., help="Genealogy JSON file to validate.")) -> None:
    raw = _load_raw(input_path)
    try:
        document = GenealogyDocument.model_validate(raw)
    except ValidationError as exc:
        console.print(f"[red]Validation failed:[/] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[green]Valid genealogy file:[/] {input_path} "
        f"({len(document.individuals)} individuals, {len(document.families)} families, "
        f"{len(document.edges)} edges)"
    )


@app.command("stages")
def list_stages() -> None:
    table = Table(title="Available stages")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Dimensions")
    table.add_column("Parameters")
    for kind, definition in DEFAULT_STAGE_REGISTRY.items():
        table.add_row(
            kind.value,
            definition.name,
            ", ".join(definition.available_dimensions),
            ", ".join(
                f"{parameter.name}={parameter.default}" for parameter in definition.visual_parameters
            ),
        )
    console.print(table)


if __name__ == "__main__":
    app()
