"""Command-line interface for EventScout."""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from eventscout.config.settings import Settings, get_settings, load_pipeline_config
from eventscout.models.events import PublishedEvent
from eventscout.models.pipeline import PipelineResult
from eventscout.pipeline import EventPipeline, EventSearchService
from eventscout.providers import (
    CachedDiscoveryProvider,
    CSEProvider,
    CuratedListProvider,
    DiscoveryProvider,
    FirecrawlProvider,
    HttpPageFetcher,
    InMemoryCache,
)

# .env in the working directory is visible to every settings class
load_dotenv()

# Configure structlog for CLI
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

app = typer.Typer(
    name="eventscout",
    help="EventScout - Discover, qualify and extract industry events",
    add_completion=False,
)
console = Console()


def build_providers(settings: Settings, use_cache: bool = True) -> list[DiscoveryProvider]:
    """Providers for which credentials (or a seed file) are configured."""
    providers: list[DiscoveryProvider] = []
    if settings.cse_api_key and settings.cse_engine_id:
        providers.append(CSEProvider(settings.cse_api_key, settings.cse_engine_id))
    if settings.firecrawl_api_key:
        providers.append(FirecrawlProvider(settings.firecrawl_api_key))
    if settings.curated_seed_file:
        providers.append(CuratedListProvider.from_file(settings.curated_seed_file))

    if use_cache:
        cache = InMemoryCache()
        providers = [
            CachedDiscoveryProvider(p, cache, ttl_seconds=settings.discovery_cache_ttl_seconds)
            for p in providers
        ]
    return providers


@app.command()
def search(
    query: str = typer.Argument(..., help="What to look for, e.g. 'legal compliance summit'"),
    country: Optional[str] = typer.Option(None, "--country", "-c", help="Target country (ISO2 code, name or EU)"),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=["%Y-%m-%d"], help="Window start"),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=["%Y-%m-%d"], help="Window end"),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path for the JSON result (default: events.json)",
    ),
    pretty: bool = typer.Option(
        True,
        "--pretty/--compact",
        help="Pretty-print JSON output",
    ),
    no_llm: bool = typer.Option(False, "--no-llm", help="Use heuristic scoring and deterministic parsing only"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Run the discovery-to-publish pipeline for one query."""
    settings = get_settings()
    logging.basicConfig(level=logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO))

    console.print(
        Panel.fit(
            "[bold blue]EventScout[/bold blue]\n"
            f"Searching for: {query}",
            border_style="blue",
        )
    )

    output = output or Path("events.json")
    console.print(f"[dim]Output:[/dim] {output}\n")

    try:
        config = load_pipeline_config()
        if settings.curated_seed_file and not config.sources.curated:
            config = config.model_copy(update={"sources": config.sources.model_copy(update={"curated": True})})
        providers = build_providers(settings)
        if not providers:
            console.print("[red]Error:[/red] no discovery provider configured (set CSE_API_KEY, FIRECRAWL_API_KEY or CURATED_SEED_FILE)")
            sys.exit(1)

        llm = None
        if not no_llm:
            from eventscout.llm.client import OllamaLanguageModel

            llm = OllamaLanguageModel()

        service = EventSearchService(EventPipeline(providers, llm, HttpPageFetcher(settings)), config)
        result = asyncio.run(
            service.search(
                query,
                country=country,
                date_from=date_from.date() if date_from else None,
                date_to=date_to.date() if date_to else None,
            )
        )

        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json", exclude={"candidates"}), f, indent=2 if pretty else None, ensure_ascii=False)

        _display_summary(result)
        console.print(f"\n[green]Result saved to:[/green] {output}")

    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def validate(
    result_path: Path = typer.Argument(
        ...,
        help="Path to a JSON result written by 'eventscout search'",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Validate the published events in a result file against the event JSON schema."""
    import jsonschema

    try:
        with open(result_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        events = data.get("published_events", []) if isinstance(data, dict) else data
        schema = PublishedEvent.model_json_schema()
        for index, event in enumerate(events):
            try:
                jsonschema.validate(event, schema)
            except jsonschema.ValidationError as e:
                console.print(f"[red]Validation failed:[/red] event {index}: {e.message}")
                console.print(f"[dim]Path:[/dim] {' -> '.join(str(p) for p in e.absolute_path)}")
                sys.exit(1)

        console.print(f"[green]Validation successful![/green] {len(events)} event(s) conform to schema.")

    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@app.command()
def info() -> None:
    """Display system information and configuration."""
    from eventscout import __version__
    from eventscout.llm.client import get_llm_settings

    settings = get_settings()
    llm_settings = get_llm_settings()
    config = load_pipeline_config()

    console.print(
        Panel.fit(
            "[bold blue]EventScout[/bold blue]",
            border_style="blue",
        )
    )

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Version", __version__)
    table.add_row("LLM Model", llm_settings.model_name)
    table.add_row("Ollama URL", llm_settings.ollama_base_url)
    table.add_row("Sources", ", ".join(config.sources.enabled()))
    table.add_row("CSE configured", str(bool(settings.cse_api_key and settings.cse_engine_id)))
    table.add_row("Firecrawl configured", str(bool(settings.firecrawl_api_key)))
    table.add_row("Curated seeds", settings.curated_seed_file or "-")
    table.add_row("Prioritization threshold", str(config.thresholds.prioritization))
    table.add_row("Confidence threshold", str(config.thresholds.confidence))
    table.add_row("Max candidates", str(config.limits.max_candidates))
    table.add_row("Max extractions", str(config.limits.max_extractions))
    table.add_row(
        "Early termination",
        f"{config.early_termination.count} @ {config.early_termination.min_confidence}",
    )

    console.print(table)


def _display_summary(result: PipelineResult) -> None:
    """Display a summary of the run.

    Args:
        result: The pipeline result.
    """
    metrics = result.metrics
    console.print("\n[bold]Search Summary[/bold]")
    console.print("-" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Count", justify="right")

    table.add_row("Discovered", str(metrics.total_candidates))
    table.add_row("Prioritized", str(metrics.prioritized_candidates))
    table.add_row("Parsed", str(metrics.parsed_candidates))
    table.add_row("Extracted", str(metrics.extracted_candidates))
    table.add_row("Published", str(metrics.published_candidates))
    table.add_row("Rejected", str(metrics.rejected_candidates))
    table.add_row("Failed", str(metrics.failed_candidates))
    console.print(table)

    if result.published_events:
        events = Table(title="Published Events")
        events.add_column("Date", style="cyan")
        events.add_column("Title")
        events.add_column("Location")
        events.add_column("Confidence", justify="right")
        for event in result.published_events:
            events.add_row(event.starts_at or "-", event.title, event.location or "-", f"{event.confidence:.2f}")
        console.print(events)

    if result.errors:
        console.print(f"\n[yellow]Errors:[/yellow] {len(result.errors)}")
        for error in result.errors:
            console.print(f"  - {error.get('error')}")

    console.print(f"\n[dim]Processed in {metrics.total_duration_ms / 1000:.1f}s[/dim]")


if __name__ == "__main__":
    app()
