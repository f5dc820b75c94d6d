"""
Command-line interface for gov-ai.
"""

import logging
import sys
from typing import Any, Optional

import click
import structlog

from gov_ai.config import get_settings

logger = structlog.get_logger(__name__)


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """gov-ai: LLM risk reports for DAO governance proposals.

    Without a command, analyzes the URL in PROPOSAL_URL.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    settings = get_settings()
    if debug or settings.debug:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )

    if ctx.invoked_subcommand is None:
        url = settings.proposal_url
        if not url:
            click.echo("PROPOSAL_URL is not set in .env", err=True)
            sys.exit(1)
        _run_analysis(url)


def _load_principles_or_exit() -> Any:
    """Check the API key and principles file the way every analysis needs them."""
    from gov_ai.exceptions import ConfigurationError
    from gov_ai.pipeline.orchestrator import load_principles

    settings = get_settings()
    if not settings.ambient_api_key:
        click.echo("AMBIENT_API_KEY is not set. Put it into .env file.", err=True)
        sys.exit(1)

    try:
        return load_principles()
    except ConfigurationError:
        click.echo(f"{settings.principles_path} not found. Run: gov-ai init", err=True)
        sys.exit(1)


PROGRESS_MESSAGES = {
    "fetching": "Fetching and extracting proposal...",
    "analyzing": "Sending to LLM...",
}


def _echo_progress(status: Any) -> None:
    message = PROGRESS_MESSAGES.get(status.value)
    if message:
        click.echo(message)


def _run_analysis(url: str) -> None:
    from gov_ai.pipeline.orchestrator import AnalysisPipeline

    principles = _load_principles_or_exit()

    click.echo(f"Analyzing: {url}")
    pipeline = AnalysisPipeline()
    pipeline.set_progress_callback(_echo_progress)
    result = pipeline.analyze_and_save(url, principles)

    if not result.ok:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"Saved {result.path.name}")

    refusal = result.report.get("__refusal") or {}
    if refusal.get("detected"):
        click.echo(f"Warning: model refusal detected ({refusal.get('matched')})", err=True)


# =========================================================================
# Analysis Commands
# =========================================================================


@cli.command()
def init() -> None:
    """Create principles.json from the bundled example."""
    from gov_ai.pipeline.orchestrator import init_principles

    path = get_settings().principles_path
    if init_principles(path):
        click.echo(f"Created {path}")
    else:
        click.echo(f"{path} already exists")


@cli.command()
@click.argument("url", type=str)
def analyze(url: str) -> None:
    """Analyze a proposal URL and save the report."""
    _run_analysis(url)


@cli.command()
@click.argument("url", type=str, required=False)
@click.option("--runs", type=int, help="Runs per provider (default BENCH_RUNS)")
@click.option("--retries", type=int, help="Retries per run (default BENCH_RETRIES)")
def bench(url: Optional[str], runs: Optional[int], retries: Optional[int]) -> None:
    """Compare latency and cost of Ambient and Nous on one proposal."""
    import requests

    from gov_ai.exceptions import GovAIError
    from gov_ai.pipeline.bench import BenchRunner

    settings = get_settings()
    url = url or settings.proposal_url
    if not url:
        click.echo("Usage: gov-ai bench <proposal_url>", err=True)
        click.echo("Or set PROPOSAL_URL in .env", err=True)
        sys.exit(1)

    if not settings.nous_api_key:
        click.echo("NOUS_API_KEY is not set in .env", err=True)
        sys.exit(1)
    principles = _load_principles_or_exit()

    if runs is not None:
        settings.bench_runs = runs
    if retries is not None:
        settings.bench_retries = retries

    click.echo(f"Bench URL: {url}")
    click.echo("Fetching and extracting once...")
    try:
        outcome = BenchRunner().run(url, principles)
    except (GovAIError, requests.RequestException) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("")
    click.echo(outcome["summary_text"])
    click.echo("")
    click.echo(f"Saved JSON: {outcome['json_path']}")
    click.echo(f"Saved TXT : {outcome['txt_path']}")


# =========================================================================
# Server Commands
# =========================================================================


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default API_HOST)")
@click.option("--port", default=None, type=int, help="Port to bind to (default PORT)")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Start the job API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.port

    click.echo(f"gov-ai API server listening on http://{host}:{port}")
    click.echo("POST  /analyze   { url, principles? }")
    click.echo("GET   /job/:id")
    click.echo(f"Queue concurrency: {settings.max_concurrent_jobs}")

    uvicorn.run(
        "gov_ai.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default API_HOST)")
@click.option("--port", default=None, type=int, help="Port to bind to (default PAGE_PORT)")
def viewer(host: Optional[str], port: Optional[int]) -> None:
    """Start the HTML report viewer."""
    import uvicorn

    from gov_ai.services.report_store import ReportStore
    from gov_ai.viewer.app import create_viewer_app

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.page_port

    click.echo(f"Report viewer running on http://{host}:{port}")
    click.echo(f"Serving reports from: {settings.reports_dir.resolve()}")
    click.echo(f"Available reports: {len(ReportStore(settings.reports_dir).list())}")

    uvicorn.run(create_viewer_app(), host=host, port=port)


@cli.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    def configured(value: str) -> str:
        return "set" if value else "not set"

    click.echo("\n=== gov-ai Configuration ===\n")
    click.echo(f"Debug: {settings.debug}")
    click.echo(f"\nAmbient: {settings.ambient_api_url}")
    click.echo(f"  API key: {configured(settings.ambient_api_key)}")
    click.echo(f"  Model: {settings.ambient_model or 'not_set'} (tier {settings.ambient_tier})")
    click.echo(f"  Streaming: {settings.llm_stream}")
    click.echo(f"Nous: {settings.nous_api_url}")
    click.echo(f"  API key: {configured(settings.nous_api_key)}")
    click.echo(f"  Model: {settings.nous_model}")
    click.echo(f"\nTally API key: {configured(settings.tally_api_key)}")
    click.echo(f"\nPrinciples: {settings.principles_path}")
    click.echo(f"Reports: {settings.reports_dir}")
    click.echo(f"API reports: {settings.api_reports_dir}")
    click.echo(f"Bench results: {settings.bench_results_dir}")
    click.echo(f"\nAPI port: {settings.port}")
    click.echo(f"Viewer port: {settings.page_port}")


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
