"""
CLI Interface
=============
Command-line interface for the MCQ OCR extractor.

Usage:
    python -m mcq_ocr extract <directory> [output_file] [options]
    python -m mcq_ocr parse <text_file> [--source-name NAME]
    python -m mcq_ocr ocr <image_path>
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import __version__
from .engine import ExtractionEngine, ExtractorConfig
from .formatter import build_json_document
from .models import DiagnosticSeverity, ImageStatus
from .ocr import OCRError, TesseractOCR
from .text_parser import MCQTextParser

console = Console()

DEFAULT_OUTPUT_FILE = "extracted-questions-ocr.txt"


@click.group()
@click.version_option(version=__version__, prog_name="mcq-ocr")
def cli():
    """MCQ OCR Extractor: multiple-choice questions from PNG screenshots."""
    pass


@cli.command()
@click.argument("directory")
@click.argument("output_file", default=DEFAULT_OUTPUT_FILE)
@click.option("--lang", default="eng", help="Tesseract recognition language")
@click.option(
    "--oem",
    default=1,
    type=int,
    help="Tesseract OCR engine mode (1 = LSTM only)",
)
@click.option(
    "--psm",
    default=3,
    type=int,
    help="Tesseract page segmentation mode (3 = fully automatic)",
)
@click.option(
    "--timeout",
    default=60.0,
    type=float,
    help="Seconds to wait for Tesseract per image",
)
@click.option(
    "--min-options",
    default=1,
    type=int,
    help="Drop questions with fewer options than this",
)
@click.option(
    "--no-raw-text",
    is_flag=True,
    default=False,
    help="Skip writing the raw OCR dump",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Print only the JSON document to stdout (no files written)",
)
def extract(
    directory: str,
    output_file: str,
    lang: str,
    oem: int,
    psm: int,
    timeout: float,
    min_options: int,
    no_raw_text: bool,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Extract questions from every PNG file in DIRECTORY."""

    if not os.path.exists(directory):
        console.print(f'[red]Error:[/] Directory "{directory}" does not exist.')
        sys.exit(1)

    if json_output:
        # Keep stdout clean for the JSON document
        log_level = "ERROR"

    config = ExtractorConfig(
        lang=lang,
        oem=oem,
        psm=psm,
        ocr_timeout=timeout,
        min_options=min_options,
        save_raw_text=not no_raw_text,
        log_level=log_level,
        log_file=log_file,
    )

    try:
        engine = ExtractionEngine(config)

        if json_output:
            result = engine.process_directory(directory)
            print(json.dumps(
                build_json_document(result.questions),
                indent=2,
                ensure_ascii=False,
            ))
            return

        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]MCQ OCR Extractor v{__version__}[/]\n"
                f"[dim]Processing PNG files in: {directory}[/]",
                border_style="cyan",
            )
        )
        console.print()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Running OCR...", total=None)

            def on_progress(done: int, total: int, name: str):
                progress.update(
                    task,
                    total=total,
                    completed=done,
                    description=f"OCR: {name}",
                )

            result = engine.process_directory(
                directory, progress_callback=on_progress
            )

        _display_batch_summary(result)

        paths = engine.save_outputs(result, output_file)
        if paths:
            console.print(
                f"[green]✓[/] Successfully extracted "
                f"{len(result.questions)} questions using OCR"
            )
            for kind, path in paths.items():
                console.print(f"[green]✓[/] {kind.title()} output saved to: {path}")
        else:
            console.print("[yellow]No questions were successfully extracted.[/]")
        console.print()

    except (FileNotFoundError, NotADirectoryError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument("text_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--source-name", "-s",
    default=None,
    help="Source image name (defaults to the text file name with .png)",
)
def parse(text_file: str, source_name: str):
    """Parse previously saved OCR text without running OCR."""

    raw_text = Path(text_file).read_text(encoding="utf-8")
    source_name = source_name or f"{Path(text_file).stem}.png"

    outcome = MCQTextParser().parse(raw_text, source_name)
    question = outcome.question

    console.print()
    table = Table(title=f"Question {question.question_id}", border_style="cyan")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Source", question.source_name)
    table.add_row(
        "Body strategy",
        outcome.body_strategy.value if outcome.body_strategy else "(none)",
    )
    table.add_row("Question", escape(question.question_body) or "[red](empty)[/]")
    for option in question.options:
        table.add_row(f"Option {option.id}", escape(option.text))
    console.print(table)

    _display_diagnostics(outcome.diagnostics)


@cli.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--lang", default="eng", help="Tesseract recognition language")
@click.option("--psm", default=3, type=int, help="Page segmentation mode")
def ocr(image_path: str, lang: str, psm: int):
    """Print the raw OCR text of a single image."""

    engine = TesseractOCR(
        lang=lang,
        psm=psm,
        tesseract_cmd=os.environ.get("TESSERACT_CMD"),
    )
    try:
        text = engine.recognize(image_path)
    except OCRError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    print(text)


# ─── Display Helpers ──────────────────────────────────────────────────────────


_SEVERITY_STYLES = {
    DiagnosticSeverity.INFO: "dim",
    DiagnosticSeverity.WARNING: "yellow",
    DiagnosticSeverity.ERROR: "red",
}

_STATUS_ICONS = {
    ImageStatus.EXTRACTED: "[green]✓[/]",
    ImageStatus.FILTERED: "[yellow]⚠ filtered[/]",
    ImageStatus.OCR_FAILED: "[red]✗ OCR[/]",
    ImageStatus.PARSE_FAILED: "[red]✗ parse[/]",
}


def _display_diagnostics(diagnostics):
    """Display diagnostics as a rich table."""
    if not diagnostics:
        console.print("[green]No diagnostics.[/]")
        console.print()
        return

    table = Table(title="Diagnostics", border_style="yellow")
    table.add_column("Severity", style="bold")
    table.add_column("Type")
    table.add_column("Message")
    for d in diagnostics:
        style = _SEVERITY_STYLES[d.severity]
        table.add_row(f"[{style}]{d.severity.value}[/]", d.type.value, escape(d.message))
    console.print(table)
    console.print()


def _display_batch_summary(result):
    """Display batch processing summary."""
    console.print()

    if not result.images:
        console.print(f"[yellow]No PNG files found in: {result.directory}[/]")
        console.print()
        return

    table = Table(title="Batch Processing Summary", border_style="cyan")
    table.add_column("Image", style="bold")
    table.add_column("Question ID")
    table.add_column("Options", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Status", justify="center")

    for image in result.images:
        question = image.question
        warnings = sum(
            1 for d in image.diagnostics
            if d.severity != DiagnosticSeverity.INFO
        )
        table.add_row(
            image.source_name,
            question.question_id if question else "-",
            ", ".join(question.option_ids) if question else "-",
            str(warnings),
            _STATUS_ICONS[image.status],
        )

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {result.extracted_count} questions from "
        f"{result.total_images} images, {result.failed_count} failures"
    )
    console.print()
