"""CLI command implementations for the API PII analyser."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, override

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from waivern_api_pii.analyser import PiiDetector
from waivern_api_pii.batch import BatchOutcome, PiiBatchProcessor
from waivern_api_pii.compliance import ComplianceReport, ComplianceStatus
from waivern_api_pii.config import ApiPiiConfig, MongoTrafficStoreConfig
from waivern_api_pii.errors import ApiPiiError
from waivern_api_pii.logging import setup_logging
from waivern_api_pii.patterns import PatternStore
from waivern_api_pii.sources import LogStreamIngestor, extract_records, parse_har
from waivern_api_pii.store import InMemoryTrafficStore, MongoTrafficStore, TrafficStore

logger = logging.getLogger(__name__)
console = Console()


class CLIError(Exception):
    """Exception for CLI-related errors with command context."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialise CLI error with context.

        Args:
            message: Human-readable error message describing what went wrong
            command: Name of the CLI command that failed (e.g., "analyse-har")
            original_error: The underlying exception that caused this CLI error

        """
        super().__init__(message)
        self.command = command
        self.original_error = original_error

    @override
    def __str__(self) -> str:
        """Return formatted error message with CLI context."""
        base_message = super().__str__()
        if self.command:
            return f"CLI command '{self.command}' failed: {base_message}"
        return base_message


@contextmanager
def cli_error_handler(command: str, title: str) -> Iterator[None]:
    """Render analyser errors as an error panel and exit with status 1."""
    try:
        yield
    except (ApiPiiError, OSError) as e:
        logger.error("%s: %s", title, e)
        cli_error = CLIError(str(e), command=command, original_error=e)
        error_panel = Panel(
            f"[red]{cli_error}[/red]", title=f"❌ {title}", border_style="red"
        )
        console.print(error_panel)
        raise typer.Exit(1) from cli_error


class _OutputFormatter:
    """Handles formatting CLI output for different commands."""

    _STATUS_STYLES = {
        ComplianceStatus.COMPLIANT.value: "green",
        ComplianceStatus.PARTIALLY_COMPLIANT.value: "yellow",
        ComplianceStatus.NON_COMPLIANT.value: "red",
    }

    def format_batch_outcome(self, outcome: BatchOutcome, source: str) -> None:
        """Print the counters of a processed batch."""
        content = (
            f"[bold]Source:[/bold] {source}\n"
            f"[bold]Records:[/bold] {outcome.total}\n"
            f"[bold]Processed:[/bold] {outcome.processed}\n"
            f"[bold]With PII:[/bold] {outcome.with_pii}\n"
            f"[bold]Skipped:[/bold] {outcome.skipped}\n"
            f"[bold]Failed:[/bold] {outcome.failed}"
        )
        style = "red" if outcome.failed else "green"
        console.print(Panel(content, title="📥 Traffic processed", border_style=style))

    def format_report(self, report: ComplianceReport) -> None:
        """Print a compliance report."""
        style = self._STATUS_STYLES.get(str(report.compliance_status), "white")
        summary = (
            f"[bold]Status:[/bold] [{style}]{report.compliance_status}[/{style}]\n"
            f"[bold]Compliance:[/bold] {report.compliance_percentage:.1f}%\n"
            f"[bold]Records analysed:[/bold] {report.total_analyzed}\n"
            f"[bold]Records with PII:[/bold] {report.with_pii}\n"
            f"[bold]Findings:[/bold] {report.total_findings}"
        )
        console.print(
            Panel(summary, title="📋 PII Compliance Report", border_style=style)
        )

        breakdown = Table(
            title="📊 Findings Breakdown", show_header=True, header_style="bold magenta"
        )
        breakdown.add_column("Dimension", style="cyan", no_wrap=True)
        breakdown.add_column("Value", style="white")
        breakdown.add_column("Findings", style="blue", justify="right")
        for dimension, counts in (
            ("Risk level", report.risk_level_breakdown),
            ("Category", report.category_breakdown),
            ("Detection mode", report.detection_mode_breakdown),
        ):
            for value, count in sorted(counts.items()):
                breakdown.add_row(dimension, value, str(count))
        console.print(breakdown)

        if report.top_risky_endpoints:
            risky = Table(
                title="⚠️  Top Risky Endpoints",
                show_header=True,
                header_style="bold magenta",
            )
            risky.add_column("Method", style="cyan", no_wrap=True)
            risky.add_column("Endpoint", style="white")
            risky.add_column("Risk score", style="red", justify="right")
            risky.add_column("PII count", style="blue", justify="right")
            risky.add_column("Highest risk", style="yellow")
            for endpoint in report.top_risky_endpoints:
                risky.add_row(
                    endpoint.method,
                    endpoint.api_endpoint,
                    str(endpoint.risk_score),
                    str(endpoint.pii_count),
                    endpoint.highest_risk,
                )
            console.print(risky)

    def format_patterns(self, patterns: PatternStore) -> None:
        """Print the loaded detection patterns."""
        table = Table(
            title="🔧 Detection Patterns", show_header=True, header_style="bold magenta"
        )
        table.add_column("Mode", style="cyan", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Risk level", style="yellow")
        table.add_column("Category", style="blue")
        table.add_column("Tags", style="dim")
        for (mode, name), pattern in patterns.compiled.by_key.items():
            table.add_row(
                mode.value,
                name,
                pattern.risk_level,
                pattern.category,
                ", ".join(pattern.tags),
            )
        console.print(table)

        stats = patterns.describe()
        levels = ", ".join(f"{k}={v}" for k, v in stats.risk_levels.items())
        console.print(
            Panel(
                f"[bold]Compiled patterns:[/bold] {stats.total_patterns_loaded}\n"
                f"[bold]Risk levels:[/bold] {levels}\n"
                f"[bold]Categories:[/bold] {', '.join(stats.supported_categories)}",
                title="📋 Pattern Configuration",
                border_style="green",
            )
        )

    def show_file_save_success(self, output_path: Path) -> None:
        """Show a file save confirmation."""
        console.print(f"\n[green]✅ Results saved to: {output_path}[/green]")


def _load_config(patterns_path: Path | None) -> ApiPiiConfig:
    properties: dict[str, Any] = {}
    if patterns_path is not None:
        properties["patterns_path"] = patterns_path
    return ApiPiiConfig.from_properties(properties)


def _build_processor(
    patterns_path: Path | None, store: TrafficStore
) -> PiiBatchProcessor:
    config = _load_config(patterns_path)
    detector = PiiDetector(PatternStore.load(config.patterns_path))
    return PiiBatchProcessor(detector, store, config)


def _export_results(
    output: Path, store: TrafficStore, report: ComplianceReport
) -> None:
    content = {
        "records": [
            document.model_dump(mode="json") for document in store.find_with_pii()
        ],
        "report": report.model_dump(mode="json"),
    }
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(content, indent=2), encoding="utf-8")
    logger.info("Results written to %s", output)


def analyse_har_command(
    har_path: Path,
    patterns_path: Path | None = None,
    output: Path | None = None,
    log_level: str = "INFO",
) -> None:
    """CLI command implementation for analysing a HAR capture.

    Args:
        har_path: HAR file to analyse
        patterns_path: Optional pattern document replacing the bundled one
        output: Optional JSON file receiving records with PII and the report
        log_level: Logging level

    """
    setup_logging(level=log_level)
    formatter = _OutputFormatter()

    with cli_error_handler("analyse-har", "HAR analysis failed"):
        store = InMemoryTrafficStore()
        processor = _build_processor(patterns_path, store)
        records = extract_records(parse_har(har_path))
        outcome = processor.ingest(records)
        report = processor.generate_report()

        formatter.format_batch_outcome(outcome, str(har_path))
        formatter.format_report(report)
        if output is not None:
            _export_results(output, store, report)
            formatter.show_file_save_success(output)


def analyse_logs_command(
    log_path: Path,
    patterns_path: Path | None = None,
    output: Path | None = None,
    log_level: str = "INFO",
) -> None:
    """CLI command implementation for analysing access log messages.

    Args:
        log_path: File with one JSON log message per line
        patterns_path: Optional pattern document replacing the bundled one
        output: Optional JSON file receiving records with PII and the report
        log_level: Logging level

    """
    setup_logging(level=log_level)
    formatter = _OutputFormatter()

    with cli_error_handler("analyse-logs", "Log analysis failed"):
        store = InMemoryTrafficStore()
        processor = _build_processor(patterns_path, store)
        ingestor = LogStreamIngestor(processor.detector, store)
        with open(log_path, encoding="utf-8") as f:
            outcome = ingestor.process_many(line for line in f if line.strip())
        report = processor.generate_report()

        formatter.format_batch_outcome(outcome, str(log_path))
        formatter.format_report(report)
        if output is not None:
            _export_results(output, store, report)
            formatter.show_file_save_success(output)


def report_command(
    mongodb_uri: str | None = None,
    database: str | None = None,
    patterns_path: Path | None = None,
    log_level: str = "INFO",
) -> None:
    """CLI command implementation for re-scanning MongoDB and reporting.

    Args:
        mongodb_uri: Connection URI, MONGODB_URI when omitted
        database: Database name, MONGODB_DATABASE or the default when omitted
        patterns_path: Optional pattern document replacing the bundled one
        log_level: Logging level

    """
    setup_logging(level=log_level)
    formatter = _OutputFormatter()

    with cli_error_handler("report", "Report generation failed"):
        properties: dict[str, Any] = {}
        if mongodb_uri is not None:
            properties["uri"] = mongodb_uri
        if database is not None:
            properties["database"] = database
        store = MongoTrafficStore.from_config(
            MongoTrafficStoreConfig.from_properties(properties)
        )
        processor = _build_processor(patterns_path, store)
        outcome = processor.rescan_existing()
        report = processor.generate_report()

        formatter.format_batch_outcome(outcome, "MongoDB")
        formatter.format_report(report)


def list_patterns_command(
    patterns_path: Path | None = None, log_level: str = "INFO"
) -> None:
    """CLI command implementation for listing detection patterns.

    Args:
        patterns_path: Optional pattern document replacing the bundled one
        log_level: Logging level

    """
    setup_logging(level=log_level)

    with cli_error_handler("ls-patterns", "Failed to load patterns"):
        patterns = PatternStore.load(_load_config(patterns_path).patterns_path)
        _OutputFormatter().format_patterns(patterns)
