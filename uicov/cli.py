"""CLI entry point for uicov."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from uicov.coverage.aggregator import CoverageAggregator
from uicov.coverage.analyzer import analyze_selector_mismatches
from uicov.coverage.calculator import calculate_coverage
from uicov.coverage.recommendations import generate_recommendations
from uicov.models.config import CoverageConfig
from uicov.models.element import ElementDescriptor
from uicov.models.selector import RawSelector
from uicov.selectors.classifier import classify_selector
from uicov.selectors.normalizer import normalize_for_display

console = Console()

DEFAULT_CONFIG = "uicov.config.json"
PRIORITY_STYLES = {"high": "red", "medium": "yellow", "low": "dim"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> CoverageConfig:
    """Load the config file, or defaults when it does not exist."""
    if not Path(path).exists():
        return CoverageConfig()
    try:
        return CoverageConfig.load(path)
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid config file {path}:[/red] {escape(str(e))}")
        sys.exit(1)


def _read_json_list(path: str, what: str) -> list:
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read {what} from {path}:[/red] {escape(str(e))}")
        sys.exit(1)
    if not isinstance(data, list):
        console.print(f"[red]{path} must contain a JSON list of {what}[/red]")
        sys.exit(1)
    return data


def _load_elements(path: str) -> list[ElementDescriptor]:
    try:
        return [ElementDescriptor(**item) for item in _read_json_list(path, "elements")]
    except ValidationError as e:
        console.print(f"[red]Invalid element in {path}:[/red] {escape(str(e))}")
        sys.exit(1)


def _load_selectors(path: str) -> list[RawSelector]:
    """Selectors as RawSelector objects, or bare strings to classify here."""
    selectors = []
    try:
        for item in _read_json_list(path, "selectors"):
            if isinstance(item, str):
                kind, _ = classify_selector(item)
                selectors.append(RawSelector(raw=item, kind=kind))
            else:
                selectors.append(RawSelector(**item))
    except (TypeError, ValidationError) as e:
        console.print(f"[red]Invalid selector in {path}:[/red] {escape(str(e))}")
        sys.exit(1)
    return selectors


def _aggregator(config: str, data_dir: str | None) -> CoverageAggregator:
    cfg = _load_config(config)
    if data_dir:
        cfg.output_path = data_dir
    return CoverageAggregator(config=cfg)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """UI selector coverage for end-to-end test suites"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--data-dir", "-d", default=None, help="Directory holding the coverage data file")
def summary(config: str, data_dir: str | None) -> None:
    """Show aggregated coverage across all recorded test runs."""
    aggregator = _aggregator(config, data_dir)
    coverage = aggregator.generate_aggregated_coverage()

    table = Table(title="Coverage Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Elements", str(coverage.total_elements))
    table.add_row("Covered", f"[green]{coverage.covered_elements}[/green]")
    table.add_row("Uncovered", f"[red]{len(coverage.uncovered_elements)}[/red]")
    table.add_row("Coverage", f"{coverage.coverage_percentage}%")
    table.add_row("Test files", str(len(coverage.test_files)))
    console.print(table)

    if coverage.coverage_by_type:
        by_type = Table(title="By Element Type")
        by_type.add_column("Type", style="bold")
        by_type.add_column("Covered", justify="right")
        by_type.add_column("Total", justify="right")
        by_type.add_column("Coverage", justify="right")
        for element_type, stats in sorted(coverage.coverage_by_type.items()):
            by_type.add_row(element_type, str(stats.covered), str(stats.total), f"{stats.percentage}%")
        console.print(by_type)

    if coverage.coverage_by_page:
        by_page = Table(title="By Page")
        by_page.add_column("URL", style="blue")
        by_page.add_column("Covered", justify="right")
        by_page.add_column("Total", justify="right")
        for url, page in coverage.coverage_by_page.items():
            by_page.add_row(escape(url), str(page.covered), str(page.total))
        console.print(by_page)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--data-dir", "-d", default=None, help="Directory holding the coverage data file")
def cleanup(config: str, data_dir: str | None) -> None:
    """Merge records that refer to the same element."""
    aggregator = _aggregator(config, data_dir)
    folded = aggregator.cleanup_duplicates()
    if folded:
        console.print(f"[green]Merged {folded} duplicate records[/green]")
    else:
        console.print("No duplicate records found")


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--data-dir", "-d", default=None, help="Directory holding the coverage data file")
@click.confirmation_option(prompt="Delete all recorded coverage data?")
def reset(config: str, data_dir: str | None) -> None:
    """Delete all recorded coverage data."""
    aggregator = _aggregator(config, data_dir)
    aggregator.clear_all_data()
    console.print("[green]Coverage data reset[/green]")


@cli.command()
@click.option("--elements", "-e", "elements_file", required=True, help="JSON list of discovered elements")
@click.option("--selectors", "-s", "selectors_file", required=True, help="JSON list of test selectors")
@click.option("--page-url", "-u", default=None, help="URL of the page the elements came from")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def calculate(elements_file: str, selectors_file: str, page_url: str | None, config: str, as_json: bool) -> None:
    """Compute coverage of one page's elements by a set of selectors."""
    cfg = _load_config(config)
    elements = _load_elements(elements_file)
    selectors = _load_selectors(selectors_file)

    result = calculate_coverage(elements, selectors, page_url=page_url, config=cfg)
    recommendations = generate_recommendations(result)

    if as_json:
        payload = result.model_dump(mode="json")
        payload["recommendations"] = recommendations
        click.echo(json.dumps(payload, indent=2))
    else:
        table = Table(title=f"Coverage{f' for {page_url}' if page_url else ''}")
        table.add_column("Type", style="bold")
        table.add_column("Elements", justify="right")
        table.add_column("Coverage", justify="right")
        for element_type, pct in result.coverage_by_type.items():
            table.add_row(element_type, str(result.type_totals.get(element_type, 0)), f"{pct}%")
        console.print(table)
        console.print(
            f"[bold]{result.covered_elements}/{result.total_elements}[/bold] elements covered "
            f"([bold]{result.coverage_percentage}%[/bold])"
        )
        for selector in result.unmatched_selectors:
            console.print(f"  [yellow]unmatched[/yellow] {escape(normalize_for_display(selector.raw))}")
        for line in recommendations:
            console.print(f"  - {escape(line)}")

    if result.coverage_percentage < cfg.coverage_threshold:
        if not as_json:
            console.print(
                f"[red]Coverage {result.coverage_percentage}% is below the threshold "
                f"of {cfg.coverage_threshold}%[/red]"
            )
        sys.exit(2)


@cli.command()
@click.option("--elements", "-e", "elements_file", required=True, help="JSON list of discovered elements")
@click.option("--selectors", "-s", "selectors_file", required=True, help="JSON list of test selectors")
def analyze(elements_file: str, selectors_file: str) -> None:
    """Explain why selectors do not match any discovered element."""
    report = analyze_selector_mismatches(_load_selectors(selectors_file), _load_elements(elements_file))
    console.print(
        f"[bold]{report.matched_selectors}/{report.total_selectors}[/bold] selectors matched"
    )
    for mismatch in report.mismatches:
        console.print(f"\n[yellow]{escape(normalize_for_display(mismatch.selector.raw))}[/yellow] ({escape(mismatch.selector.kind)})")
        console.print(f"  {escape(mismatch.reason)}")
        for element in mismatch.possible_matches:
            console.print(f"  possible match: {escape(normalize_for_display(element.selector))}")
    for line in report.recommendations:
        console.print(f"  - {escape(line)}")


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--data-dir", "-d", default=None, help="Directory holding the coverage data file")
@click.option("--limit", "-n", default=20, help="Maximum number of elements to list")
def uncovered(config: str, data_dir: str | None, limit: int) -> None:
    """List uncovered elements, highest priority first."""
    aggregator = _aggregator(config, data_dir)
    recommendations = aggregator.get_uncovered_elements_with_recommendations()
    if not recommendations:
        console.print("[green]Every recorded element is covered[/green]")
        return

    table = Table(title=f"Uncovered Elements ({len(recommendations)})")
    table.add_column("Priority")
    table.add_column("Type", style="bold")
    table.add_column("Selector")
    table.add_column("Recommendation")
    for item in recommendations[:limit]:
        style = PRIORITY_STYLES[item.priority]
        table.add_row(
            f"[{style}]{item.priority}[/{style}]",
            item.record.element_type,
            escape(normalize_for_display(item.record.selector)),
            escape(item.recommendation),
        )
    console.print(table)
    if len(recommendations) > limit:
        console.print(f"... and {len(recommendations) - limit} more")


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--output-path", "-o", default="./coverage-report", help="Directory for coverage data")
@click.option("--threshold", "-t", default=80, type=click.IntRange(0, 100), help="Minimum coverage percentage")
def init(config: str, output_path: str, threshold: int) -> None:
    """Create a default config file."""
    config_path = Path(config)
    if config_path.exists():
        console.print(f"[yellow]{config_path} already exists[/yellow]")
        sys.exit(1)
    CoverageConfig(output_path=output_path, coverage_threshold=threshold).save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]uicov summary[/blue]")


if __name__ == "__main__":
    cli()
