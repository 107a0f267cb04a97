#!/usr/bin/env python3
"""
Extract job metadata from DSX exports.

Accepts .dsx files, .zip archives of them, and directories (searched
recursively for both). Prints per-document status and validator issues,
then a success/failure summary.

Usage:
    python scripts/extract_jobs.py exports/LOAD_SALES.dsx
    python scripts/extract_jobs.py exports/ --parallel 4 --output outs/models.zip
"""

import os
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv

from dsxmeta.contexts.batching.documents import (
    ARCHIVE_EXTENSION,
    DOCUMENT_EXTENSION,
    SourceDocument,
)
from dsxmeta.contexts.batching.export import write_export_archive
from dsxmeta.contexts.batching.logger import setup_batch_logger
from dsxmeta.contexts.batching.orchestrator import (
    ProcessingProgress,
    process_documents,
    process_documents_parallel,
)
from dsxmeta.utils.timestamp import now

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))

app = typer.Typer(
    help="Extract job metadata from DSX exports.",
    add_completion=False,
)


def collect_documents(paths: List[Path]) -> List[SourceDocument]:
    """Expand paths into input documents, in sorted order per directory."""
    documents = []
    for path in paths:
        if path.is_dir():
            for candidate in sorted(path.rglob("*")):
                if candidate.is_file() and candidate.suffix.lower() in (DOCUMENT_EXTENSION, ARCHIVE_EXTENSION):
                    documents.append(SourceDocument.from_path(candidate))
        elif path.is_file():
            documents.append(SourceDocument.from_path(path))
        else:
            typer.echo(f"WARNING: Skipping missing path: {path}", err=True)
    return documents


def show_progress(progress: ProcessingProgress) -> None:
    typer.echo(f"[{progress.processed}/{progress.total}] {progress.current_document}")


@app.command()
def main(
    paths: List[Path] = typer.Argument(..., help="DSX files, zip archives or directories"),
    parallel: Optional[int] = typer.Option(
        None, "--parallel", "-p", help="Process with N workers instead of sequentially"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write a zip bundle of JSON models"
    ),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Log directory (default: LOGS_PATH/extract_<timestamp>)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo DEBUG log lines to the console"),
):
    """Run extraction over all inputs and report the outcome."""
    documents = collect_documents(paths)
    if not documents:
        typer.echo("ERROR: No DSX documents found", err=True)
        raise typer.Exit(1)

    log_dir = log_dir or LOGS_PATH / f"extract_{now()}"
    setup_batch_logger(
        log_dir,
        extra_provenance={"Inputs": len(documents), "Parallel": parallel or "no"},
        console_level="DEBUG" if verbose else None,
    )

    if parallel:
        batch = process_documents_parallel(documents, max_concurrent=parallel)
    else:
        batch = process_documents(documents, on_progress=show_progress)

    typer.echo("\n=== Documents ===")
    for result in batch.results:
        if not result.success:
            typer.secho(f"  ✗ {result.document_name}: {result.error}", fg=typer.colors.RED)
            continue
        typer.secho(f"  ✓ {result.document_name} ({result.model.name})", fg=typer.colors.GREEN)
        for issue in result.validation.issues:
            typer.echo(f"      ! {issue}")

    if output:
        write_export_archive(batch.results, output)
        typer.echo(f"\nExported models to {output}")

    typer.echo(f"\n{batch.successful}/{batch.total} succeeded, {batch.failed} failed")
    typer.echo(f"Log: {log_dir}")

    if batch.failed:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
