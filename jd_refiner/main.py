"""CLI interface for the job-description refiner."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
import typer

# Load environment variables from .env file
load_dotenv()
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from jd_refiner.llm import LLMConfig, ProviderType
from jd_refiner.refinement import (
    RefinementConfig,
    RefinementEngine,
    RefinementError,
    RefinementHistory,
    RefinementPolicy,
    RefinementRequest,
    RefinementResult,
    reviewable_sections,
)
from jd_refiner.refinement.sections import section_display_name

app = typer.Typer(
    name="jd-refine",
    help="Refine job-description packages from per-section feedback",
    add_completion=False,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Set up logging with rich formatting."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_json(path: Path, what: str):
    if not path.exists():
        console.print(f"[red]{what} not found: {path}[/red]")
        sys.exit(1)
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Failed to load {what.lower()}: {e}[/red]")
        sys.exit(1)


@app.command()
def refine(
    document_file: str = typer.Argument(..., help="Job-description JSON file"),
    feedback_file: str = typer.Argument(
        ..., help='Feedback JSON: {"<section>": {"satisfied": false, "feedback": "..."}}'
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Where to write the refined JSON (default: <document>.refined.json)"
    ),
    chat_file: Optional[str] = typer.Option(
        None, "--chat", "-c", help='Prior conversation JSON: [{"role": "user", "content": "..."}]'
    ),
    provider: str = typer.Option(
        "openai", "--provider", help="LLM provider: openai, anthropic or gemini"
    ),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model override"),
    strict: bool = typer.Option(
        False, "--strict", help="Reject feedback with no section marked unsatisfied"
    ),
    timeout: float = typer.Option(90.0, "--timeout", help="Overall completion timeout (seconds)"),
    track_history: bool = typer.Option(
        True, "--history/--no-history", help="Record the refinement in <document>.history.json"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Refine a job description using per-section feedback.

    Example:
        jd-refine refine jd.json feedback.json --output jd.v2.json
    """
    setup_logging(verbose)

    document_path = Path(document_file)
    document = _load_json(document_path, "Document file")
    refinements = _load_json(Path(feedback_file), "Feedback file")
    chat_history = _load_json(Path(chat_file), "Chat file") if chat_file else []

    try:
        provider_type = ProviderType(provider.lower())
    except ValueError:
        console.print(f"[red]Unknown provider: {provider}[/red]")
        sys.exit(1)

    config = RefinementConfig(
        llm=LLMConfig(provider=provider_type, model=model),
        policy=RefinementPolicy.STRICT_GATE if strict else RefinementPolicy.LENIENT_ECHO,
        request_timeout_seconds=timeout,
    )

    history = None
    if track_history:
        history = RefinementHistory.load_for_document(document_path) or RefinementHistory.create(
            analysis_id=document_path.stem,
            title=document_path.stem,
            document_path=document_path,
        )

    console.print(Panel.fit(
        f"[bold blue]JD Refinement[/bold blue]\n"
        f"Document: {document_file}\n"
        f"Provider: {provider_type.value} ({config.llm.get_model_name()})\n"
        f"Policy: {config.policy.value}",
        title="JD Refiner",
    ))

    async def run_refinement() -> RefinementResult:
        request = RefinementRequest.model_validate(
            {"currentJD": document, "refinements": refinements, "chatHistory": chat_history}
        )
        async with RefinementEngine(config) as engine:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Refining...", total=None)
                result = await engine.refine(request, history=history)
                progress.update(task, completed=True)
        return result

    try:
        result = asyncio.run(run_refinement())
    except RefinementError as e:
        console.print(f"\n[red]{e.message}[/red]")
        if e.details:
            console.print(f"[dim]{e.details}[/dim]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[red]Refinement failed: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)

    output_path = Path(output) if output else document_path.with_suffix(".refined.json")
    with open(output_path, "w") as f:
        json.dump(result.updated_document, f, indent=2, ensure_ascii=False)

    if history is not None and history.entries:
        history.save()

    display_refinement_result(result)
    console.print(f"\n[green]Refined document saved to: {output_path}[/green]")


def display_refinement_result(result: RefinementResult) -> None:
    if result.changed_sections:
        table = Table(title="Changed Sections")
        table.add_column("Section", style="cyan")
        table.add_column("Path", style="white")
        table.add_column("Feedback", style="green")
        for change in result.changed_sections:
            table.add_row(
                section_display_name(change.refinement_key), change.section, change.feedback
            )
        console.print(table)

    console.print(Panel(result.summary, title="Summary"))
    console.print(
        f"[dim]Tokens: {result.tokens_used:,} | Cost: ${result.cost_usd:.4f} | "
        f"Time: {result.latency_ms / 1000:.1f}s[/dim]"
    )


@app.command()
def sections(
    document_file: str = typer.Argument(..., help="Job-description JSON file"),
) -> None:
    """List the sections a document offers for review."""
    document = _load_json(Path(document_file), "Document file")

    table = Table(title="Reviewable Sections")
    table.add_column("Key", style="cyan")
    table.add_column("Title", style="white")
    for key in reviewable_sections(document):
        table.add_row(key, section_display_name(key))
    console.print(table)


@app.command()
def export_pdf(
    document_file: str = typer.Argument(..., help="Job-description JSON file"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output PDF file path"),
    page_size: str = typer.Option("letter", "--page-size", "-p", help="Page size: letter or a4"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Export a job description to PDF.

    Example:
        jd-refine export-pdf jd.json --output jd.pdf --page-size a4
    """
    setup_logging(verbose)

    from jd_refiner.export import ExportError, PDFConfig, PDFExporter

    document_path = Path(document_file)
    document = _load_json(document_path, "Document file")
    output_path = Path(output) if output else document_path.with_suffix(".pdf")

    try:
        PDFExporter(PDFConfig(page_size=page_size.lower())).export_to_file(document, output_path)
    except ExportError as e:
        console.print(f"\n[red]Export failed: {e}[/red]")
        sys.exit(1)

    size_kb = output_path.stat().st_size / 1024
    console.print(f"[green]PDF saved to: {output_path}[/green] ({size_kb:.1f} KB)")


@app.command("list")
def list_analyses(
    owner: str = typer.Argument(..., help="Owner (user id) whose analyses to list"),
    store_dir: str = typer.Option("data/analyses", "--store", "-s", help="Analysis store directory"),
    search: Optional[str] = typer.Option(None, "--search", help="Filter by title"),
    finalized: Optional[bool] = typer.Option(
        None, "--finalized/--drafts", help="Only finalized analyses, or only drafts"
    ),
    page: int = typer.Option(1, "--page", min=1),
    limit: int = typer.Option(10, "--limit", min=1, max=100),
) -> None:
    """
    List saved analyses, newest first.

    Example:
        jd-refine list user-1 --search assistant
    """
    from jd_refiner.storage import AnalysisFilters, JsonFileAnalysisStore

    if not Path(store_dir).exists():
        console.print("[yellow]No analyses found. Store directory doesn't exist.[/yellow]")
        return

    store = JsonFileAnalysisStore(store_dir)
    result = store.list_by_owner(
        owner, AnalysisFilters(search=search, finalized=finalized, page=page, limit=limit)
    )
    if not result.items:
        console.print("[yellow]No analyses found.[/yellow]")
        return

    table = Table(title=f"Saved Analyses (page {result.page}/{result.total_pages})")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Role", style="white")
    table.add_column("Version", justify="right")
    table.add_column("Refinements", justify="right")
    table.add_column("Final", justify="center")
    table.add_column("Created", style="green")

    for analysis in result.items:
        table.add_row(
            analysis.id[:12],
            analysis.title or "-",
            str(analysis.preview()["recommended_role"]),
            str(analysis.version),
            str(analysis.refinement_count),
            "yes" if analysis.finalized else "",
            analysis.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)

    if result.has_more:
        console.print(f"\n[dim]... {result.total} total, use --page {result.page + 1} for more[/dim]")


@app.command()
def history(
    document_file: str = typer.Argument(..., help="Job-description JSON file"),
    undo: bool = typer.Option(False, "--undo", help="Restore the document to before the last refinement"),
    redo: bool = typer.Option(False, "--redo", help="Re-apply the last undone refinement"),
) -> None:
    """
    Show, undo or redo the refinements recorded for a document.

    Example:
        jd-refine history jd.json
        jd-refine history jd.json --undo
    """
    document_path = Path(document_file)
    record = RefinementHistory.load_for_document(document_path)
    if record is None or not record.entries:
        console.print("[yellow]No refinement history for this document.[/yellow]")
        return

    if undo or redo:
        document = record.undo() if undo else record.redo()
        if document is None:
            console.print(f"[yellow]Nothing to {'undo' if undo else 'redo'}.[/yellow]")
            return
        with open(document_path, "w") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        record.save()
        console.print(f"[green]{'Undone' if undo else 'Redone'}; document written to {document_path}[/green]")

    table = Table(title="Refinement History")
    table.add_column("#", justify="right")
    table.add_column("Entry", style="white")
    for index, line in enumerate(record.list_entries()):
        marker = "[bold cyan]>[/bold cyan] " if index == record.current_index else "  "
        table.add_row(str(index + 1), f"{marker}{line}")
    console.print(table)

    summary = record.get_summary()
    console.print(
        f"[dim]{summary['active_entries']} active, {summary['undone_entries']} undone | "
        f"Tokens: {summary['total_tokens']:,} | Cost: ${summary['total_cost_usd']:.4f}[/dim]"
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Run the HTTP API."""
    setup_logging(verbose)

    import uvicorn

    from jd_refiner.api import create_app

    uvicorn.run(create_app(), host=host, port=port)


@app.callback()
def main():
    """
    JD Refiner

    Turn reviewer feedback on individual sections of a job-description
    package into a refined package, reporting exactly what changed.
    """
    pass


if __name__ == "__main__":
    app()
