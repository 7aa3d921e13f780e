"""Main entry point for the API PII analyser.

This module provides the command-line interface, including commands for:
- Analysing HAR captures and access log messages for PII
- Re-scanning stored traffic and generating compliance reports
- Listing the loaded detection patterns
"""

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from waivern_api_pii.cli import (
    analyse_har_command,
    analyse_logs_command,
    list_patterns_command,
    report_command,
)

# Load environment variables from .env file if it exists
_ = load_dotenv()

app = typer.Typer(name="waivern-api-pii")

PatternsOption = Annotated[
    Path | None,
    typer.Option(
        "--patterns",
        help="Pattern document (YAML or JSON) replacing the bundled patterns",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]
OutputOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Save records with PII and the compliance report to a JSON file",
        file_okay=True,
        dir_okay=False,
        writable=True,
        rich_help_panel="Output",
    ),
]
LogLevelOption = Annotated[
    str,
    typer.Option(
        "--log-level",
        help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        case_sensitive=False,
    ),
]


@app.command(name="analyse-har")
def analyse_har(
    har_file: Annotated[
        Path,
        typer.Argument(
            help="Path to the HAR capture",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    patterns: PatternsOption = None,
    output: OutputOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Analyse the API calls of a HAR capture for PII.

    Example:
        waivern-api-pii analyse-har session.har --output findings.json

    """
    analyse_har_command(har_file, patterns, output, log_level)


@app.command(name="analyse-logs")
def analyse_logs(
    log_file: Annotated[
        Path,
        typer.Argument(
            help="File with one JSON access log message per line",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    patterns: PatternsOption = None,
    output: OutputOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Analyse streamed access log messages for PII."""
    analyse_logs_command(log_file, patterns, output, log_level)


@app.command()
def report(
    mongodb_uri: Annotated[
        str | None,
        typer.Option(
            "--mongodb-uri", help="MongoDB connection URI (defaults to MONGODB_URI)"
        ),
    ] = None,
    database: Annotated[
        str | None,
        typer.Option("--database", help="MongoDB database (defaults to MONGODB_DATABASE)"),
    ] = None,
    patterns: PatternsOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Re-scan stored traffic and generate a compliance report."""
    report_command(mongodb_uri, database, patterns, log_level)


@app.command(name="ls-patterns")
def list_patterns(
    patterns: PatternsOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """List the loaded detection patterns."""
    list_patterns_command(patterns, log_level)


if __name__ == "__main__":
    app()
