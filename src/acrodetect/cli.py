"""Form field detection CLI."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from acrodetect.config import settings
from acrodetect.models import DetectionReport, Err, ProcessingStatus
from acrodetect.pipeline import MODEL_REGISTRY, PipelineOrchestrator, ensure_valid_pdf

app = typer.Typer(
    name="acrodetect",
    help="Detect form fields in flat PDFs and add fillable widgets",
    add_completion=False,
)
console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _read_pdf(pdf_path: Path) -> bytes:
    if not pdf_path.is_file():
        console.print(f"[bold red]File not found:[/bold red] {pdf_path}")
        raise typer.Exit(code=1)
    return pdf_path.read_bytes()


def _fail(error: Err) -> None:
    console.print(f"[bold red]Error ({error.code.value}):[/bold red] {error.message}")
    raise typer.Exit(code=1)


def _detection_table(report: DetectionReport) -> Table:
    table = Table(title="Detected Fields")
    table.add_column("Page", justify="right")
    table.add_column("Type")
    table.add_column("Confidence", justify="right")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    table.add_column("w", justify="right")
    table.add_column("h", justify="right")
    for page in report.pages:
        for det in page.detections:
            table.add_row(
                str(page.page_index + 1),
                det.label,
                f"{det.confidence:.0%}",
                *(f"{v:.3f}" for v in det.bbox.as_tuple()),
            )
    return table


def _type_summary(report: DetectionReport) -> str:
    counts = report.counts_by_type()
    return ", ".join(f"{label}: {count}" for label, count in sorted(counts.items())) or "none"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    _configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def process(
    pdf_path: Path = typer.Argument(..., help="Path to PDF file to process"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output PDF (default: <name>_fields.pdf)"
    ),
    model: Optional[str] = typer.Option(None, help="Model alias, .onnx path or URL"),
    confidence: Optional[float] = typer.Option(
        None, min=0.1, max=1.0, help="Confidence threshold"
    ),
    strip_existing: Optional[bool] = typer.Option(
        None,
        "--strip-existing/--keep-existing",
        help="Flatten existing form fields before adding new ones",
    ),
    preview_dir: Optional[Path] = typer.Option(
        None, help="Write a PNG preview of each page's detections here"
    ),
    report: Optional[Path] = typer.Option(None, help="Write the detection report as JSON"),
) -> None:
    """Detect form fields and write a fillable copy of the PDF."""
    pdf_bytes = _read_pdf(pdf_path)
    output = output or pdf_path.with_name(f"{pdf_path.stem}_fields.pdf")
    console.print(f"[bold blue]Processing:[/bold blue] {pdf_path}")

    with console.status("Starting...") as status:

        def on_status(stage: ProcessingStatus, page_index: Optional[int], page_count: Optional[int]):
            if page_index is None:
                status.update(stage.value.capitalize())
            else:
                status.update(f"{stage.value.capitalize()} page {page_index + 1}/{page_count}")

        orchestrator = PipelineOrchestrator(
            model_path=model,
            confidence_threshold=confidence,
            strip_existing=strip_existing,
            render_previews=True if preview_dir else None,
            on_status=on_status,
        )
        result = orchestrator.run(pdf_bytes)

    if not result.ok:
        _fail(result)
    outcome = result.data

    if outcome.validation.has_existing_fields:
        console.print(
            f"[yellow]Source already had {outcome.validation.warning.fields_count} form fields"
            f"{' (flattened)' if outcome.synthesis.flattened_existing else ''}[/yellow]"
        )

    output.write_bytes(outcome.synthesis.pdf_bytes)

    if preview_dir:
        preview_dir.mkdir(parents=True, exist_ok=True)
        for page in outcome.detection.pages:
            if page.rendered_preview_image:
                (preview_dir / f"page_{page.page_index + 1}.png").write_bytes(
                    page.rendered_preview_image
                )
        console.print(f"[dim]Previews: {preview_dir}[/dim]")

    if report:
        report.write_text(
            outcome.detection.model_dump_json(
                indent=2, exclude={"pages": {"__all__": {"rendered_preview_image"}}}
            )
        )
        console.print(f"[dim]Report: {report}[/dim]")

    if outcome.synthesis.skipped:
        console.print(f"[yellow]Skipped unsupported types:[/yellow] {', '.join(outcome.synthesis.skipped)}")
    console.print(outcome.detection.model_info, style="dim")
    console.print(f"[dim]By type: {_type_summary(outcome.detection)}[/dim]")
    console.print(
        f"[bold green]Wrote {len(outcome.synthesis.fields)} fields to[/bold green] {output}"
    )


@app.command()
def detect(
    pdf_path: Path = typer.Argument(..., help="Path to PDF file"),
    model: Optional[str] = typer.Option(None, help="Model alias, .onnx path or URL"),
    confidence: Optional[float] = typer.Option(
        None, min=0.1, max=1.0, help="Confidence threshold"
    ),
) -> None:
    """Detect form fields and print them without modifying the PDF."""
    pdf_bytes = _read_pdf(pdf_path)
    orchestrator = PipelineOrchestrator(
        model_path=model, confidence_threshold=confidence, render_previews=False
    )
    with console.status("Detecting..."):
        result = orchestrator.detect(pdf_bytes)
    if not result.ok:
        _fail(result)

    console.print(_detection_table(result.data))
    console.print(result.data.model_info, style="dim")
    console.print(f"[dim]By type: {_type_summary(result.data)}[/dim]")


@app.command()
def validate(
    pdf_path: Path = typer.Argument(..., help="Path to PDF file"),
) -> None:
    """Check that a PDF can be processed."""
    result = ensure_valid_pdf(_read_pdf(pdf_path))
    if not result.ok:
        _fail(result)

    console.print(f"[bold green]OK[/bold green] {pdf_path} ({result.data.page_count} pages)")
    if result.data.warning:
        console.print(
            f"[yellow]Warning ({result.data.warning.code}):[/yellow] "
            f"{result.data.warning.fields_count} existing form fields"
        )


@app.command()
def models() -> None:
    """List the built-in detection models."""
    table = Table(title="Detection Models")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Source")
    for spec in MODEL_REGISTRY.values():
        name = f"{spec.name} (default)" if spec.name == settings.model_path else spec.name
        table.add_row(name, spec.description, spec.source)
    console.print(table)


if __name__ == "__main__":
    app()
