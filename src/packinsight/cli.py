"""CLI entry point for packinsight."""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from packinsight import __version__
from packinsight.adapters import get_adapter
from packinsight.analyzers.insights import InsightsGenerator
from packinsight.analyzers.pipeline import ScanPipeline
from packinsight.config import Settings
from packinsight.models.schemas import (
    Ecosystem,
    PackageAnalysis,
    PackageIdentifier,
    ReportSummary,
    Severity,
    SummaryStyle,
)
from packinsight.parsers import ManifestParseError, parse, resolve_format
from packinsight.report import build_report, summarize_report

app = typer.Typer(help="Package trust scoring and vulnerability scanner.")

console = Console()

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


def configure_logging(verbose: bool) -> None:
    """Send log records through rich when verbose, otherwise warnings only."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
            force=True,
        )
    else:
        logging.basicConfig(level=logging.WARNING, force=True)


def detect_manifest_type(path: Path) -> Ecosystem:
    """Guess the manifest type from its file name.

    Raises:
        ValueError: If the file name is not a known manifest.
    """
    name = path.name.lower()
    if name.startswith("dockerfile"):
        return Ecosystem.DOCKER
    if name.endswith(".txt") and "requirements" in name:
        return Ecosystem.PYTHON
    return resolve_format(name)


def _score_style(score: int) -> str:
    return "green" if score >= 80 else "yellow" if score >= 60 else "red"


def _write_json(output: Path, data: dict | list) -> None:
    output.write_text(json.dumps(data, indent=2, default=str))
    console.print(f"\n[green]Saved to {output}[/green]")


@app.command()
def scan(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Manifest file to scan"),
    scan_type: str | None = typer.Option(
        None, "--type", "-t", help="Manifest type (npm, python, docker). Guessed from the file name if omitted."
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip LLM descriptions"),
    summary: SummaryStyle | None = typer.Option(None, "--summary", "-s", help="Print a plain-language summary"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Scan a package.json, requirements.txt or Dockerfile."""
    configure_logging(verbose)
    asyncio.run(_scan(file, scan_type, output, no_ai, summary))


async def _scan(
    file: Path,
    scan_type: str | None,
    output: Path | None,
    no_ai: bool,
    summary: SummaryStyle | None = None,
) -> None:
    """Async implementation of scan."""
    try:
        ecosystem = resolve_format(scan_type) if scan_type else detect_manifest_type(file)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        packages = parse(file.read_text(), ecosystem)
    except ManifestParseError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not packages:
        console.print("[red]No packages found in file[/red]")
        raise typer.Exit(1)

    settings = Settings.from_env()
    if no_ai:
        settings = replace(settings, llm_api_key=None)

    console.print(f"[bold]Scanning {len(packages)} {ecosystem.value} packages from {file.name}...[/bold]")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Analyzing...", total=len(packages))

        def on_progress(current: int, total: int, package: PackageIdentifier) -> None:
            progress.update(task, description=f"Analyzing {package.name}...", completed=current - 1)

        async with ScanPipeline(settings) as pipeline:
            results = await pipeline.scan(packages, progress_callback=on_progress)
        progress.update(task, completed=len(packages))

    report = build_report(ecosystem, file.name, results)

    table = Table(title=f"Scan {report.scan_id}")
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="dim")
    table.add_column("Trust", justify="right")
    table.add_column("Vulns", justify="right")
    table.add_column("Worst", justify="left")

    for analysis in results:
        worst = _worst_severity(analysis)
        style = _score_style(analysis.trust_score)
        table.add_row(
            analysis.package.name,
            analysis.package.version,
            f"[{style}]{analysis.trust_score}[/{style}]",
            str(len(analysis.vulnerabilities)),
            f"[{SEVERITY_STYLES[worst]}]{worst.value}[/{SEVERITY_STYLES[worst]}]" if worst else "-",
        )

    console.print(table)
    console.print()
    console.print(
        f"[bold]{report.total_packages}[/bold] packages, "
        f"[bold]{report.vulnerable_packages}[/bold] vulnerable, "
        f"[bold red]{report.critical_count}[/bold red] critical, "
        f"[red]{report.high_count}[/red] high, "
        f"[yellow]{report.medium_count}[/yellow] medium, "
        f"[dim]{report.low_count}[/dim] low"
    )

    if summary:
        _print_summary(summarize_report(report, summary))

    if output:
        _write_json(output, report.model_dump(mode="json"))


def _print_summary(summary: ReportSummary) -> None:
    console.print()
    console.print(summary.overview)
    console.print()
    console.print(summary.critical)
    console.print()
    for recommendation in summary.recommendations:
        console.print(f"  - {recommendation}")
    for notice in summary.low_trust:
        console.print(f"[yellow]{notice.package}[/yellow]: {notice.suggestion}")


def _worst_severity(analysis: PackageAnalysis) -> Severity | None:
    order = list(SEVERITY_STYLES)
    severities = [v.severity for v in analysis.vulnerabilities]
    return min(severities, key=order.index) if severities else None


@app.command()
def scan_package(
    name: str = typer.Argument(..., help="Package name"),
    ecosystem: Ecosystem = typer.Option(Ecosystem.NPM, "--ecosystem", "-e", help="Package ecosystem"),
    version: str = typer.Option("latest", "--version", "-V", help="Package version"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Analyze a single package and show its trust score."""
    asyncio.run(_scan_package(name, ecosystem, version, output))


async def _scan_package(name: str, ecosystem: Ecosystem, version: str, output: Path | None) -> None:
    """Async implementation of scan-package."""
    package = PackageIdentifier(name=name, version=version, ecosystem=ecosystem)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task(f"Analyzing {name}...", total=None)
        async with ScanPipeline(Settings.from_env()) as pipeline:
            [analysis] = await pipeline.scan([package])

    metadata = analysis.metadata
    console.print()
    console.print(f"[bold cyan]{name}[/bold cyan] {metadata.current_version or version}")
    if analysis.ai_description:
        console.print(f"[dim]{analysis.ai_description}[/dim]")
    console.print()

    style = _score_style(analysis.trust_score)
    console.print(f"Trust score: [bold {style}]{analysis.trust_score}[/bold {style}] / 100")
    console.print()

    breakdown = analysis.trust_score_breakdown
    scores_table = Table(title="Score Breakdown", show_header=False, box=None)
    scores_table.add_column("Component", style="bold")
    scores_table.add_column("Score", justify="right")
    scores_table.add_row("Security", str(breakdown.security))
    scores_table.add_row("Maintenance", str(breakdown.maintenance))
    scores_table.add_row("Popularity", str(breakdown.popularity))
    scores_table.add_row("Dependencies", str(breakdown.dependencies))
    console.print(scores_table)

    info_table = Table(show_header=False, box=None)
    info_table.add_column("Key", style="bold")
    info_table.add_column("Value")
    info_table.add_row("License", metadata.license or "-")
    info_table.add_row("Repository", metadata.repository or "-")
    info_table.add_row("Last publish", metadata.last_publish or "-")
    if analysis.github_stats:
        info_table.add_row("Stars", f"{analysis.github_stats.stars:,}")
        info_table.add_row("Contributors", str(analysis.github_stats.contributors))
    if analysis.download_stats and analysis.download_stats.last_month is not None:
        info_table.add_row("Downloads (30d)", f"{analysis.download_stats.last_month:,}")
    console.print()
    console.print(info_table)

    if analysis.vulnerabilities:
        vuln_table = Table(title="Vulnerabilities")
        vuln_table.add_column("ID", style="cyan")
        vuln_table.add_column("Severity")
        vuln_table.add_column("Title", max_width=60)
        vuln_table.add_column("Fixed in", style="green")
        for vuln in analysis.vulnerabilities:
            style = SEVERITY_STYLES[vuln.severity]
            vuln_table.add_row(vuln.id, f"[{style}]{vuln.severity.value}[/{style}]", vuln.title, vuln.fixed_in or "-")
        console.print()
        console.print(vuln_table)

    if output:
        _write_json(output, analysis.model_dump(mode="json"))


@app.command()
def insights(
    name: str = typer.Argument(..., help="Package name"),
    ecosystem: Ecosystem = typer.Option(Ecosystem.NPM, "--ecosystem", "-e", help="Package ecosystem"),
    version: str = typer.Option("latest", "--version", "-V", help="Package version"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Use rule-based insights only"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Suggest versions, alternatives and next steps for a package."""
    asyncio.run(_insights(name, ecosystem, version, no_ai, output))


async def _insights(name: str, ecosystem: Ecosystem, version: str, no_ai: bool, output: Path | None) -> None:
    """Async implementation of insights."""
    package = PackageIdentifier(name=name, version=version, ecosystem=ecosystem)
    settings = Settings.from_env()
    if no_ai:
        settings = replace(settings, llm_api_key=None)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task(f"Analyzing {name}...", total=None)
        async with ScanPipeline(settings) as pipeline:
            [analysis] = await pipeline.scan([package])
            generator = InsightsGenerator(adapters=pipeline.adapters, llm=pipeline.describer)
            result = await generator.generate(analysis, use_llm=not no_ai)

    style = _score_style(analysis.trust_score)
    console.print()
    console.print(
        f"[bold cyan]{name}[/bold cyan] {analysis.metadata.current_version or version} "
        f"(trust [{style}]{analysis.trust_score}[/{style}])"
    )
    console.print()
    console.print(result.version_recommendation)
    if result.issues_found:
        console.print(f"[red]{result.issues_found}[/red]")
    if result.safe_version:
        console.print(f"Safe version: [green]{result.safe_version}[/green]")
    if result.recent_versions:
        console.print(f"[dim]Recent versions: {', '.join(result.recent_versions)}[/dim]")

    console.print()
    console.print("[bold]Recommendations[/bold]")
    for recommendation in result.recommendations:
        console.print(f"  - {recommendation}")

    if result.alternatives:
        table = Table(title="Alternatives")
        table.add_column("Package", style="cyan")
        table.add_column("Downloads (30d)", justify="right")
        table.add_column("Why", max_width=60)
        for alternative in result.alternatives:
            downloads = f"{alternative.downloads:,}" if alternative.downloads is not None else "-"
            table.add_row(alternative.name, downloads, alternative.reason)
        console.print()
        console.print(table)

    if output:
        _write_json(output, {"analysis": analysis.model_dump(mode="json"), "insights": result.model_dump(mode="json")})


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text"),
    ecosystem: Ecosystem = typer.Option(Ecosystem.NPM, "--ecosystem", "-e", help="Package ecosystem"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum number of results"),
) -> None:
    """Search a registry for packages."""
    asyncio.run(_search(query, ecosystem, limit))


async def _search(query: str, ecosystem: Ecosystem, limit: int) -> None:
    """Async implementation of search."""
    adapter = get_adapter(ecosystem)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Searching...", total=None)
        suggestions = await adapter.search(query, limit=limit)

    if not suggestions:
        console.print(f"[yellow]No {ecosystem.value} packages match '{query}'[/yellow]")
        return

    table = Table(title=f"{ecosystem.value} packages matching '{query}'")
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="dim")
    table.add_column("Description", max_width=60)
    for suggestion in suggestions:
        table.add_row(suggestion.name, suggestion.version or "-", suggestion.description or "")
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"packinsight v{__version__}")


if __name__ == "__main__":
    app()
