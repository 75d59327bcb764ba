# src/otelconfig/cli.py
"""otelconfig Command Line Interface.

Commands:
    validate FILE   Parse the document, build the SDK, report every problem
    render FILE     Print the document after substitution and normalisation

Exit codes:
    0  success
    1  the document could not be decoded or built
    2  bad command line usage
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Literal

import structlog
import typer

from otelconfig import __version__
from otelconfig.errors import ConfigurationError, ConfigurationErrors, DecodeError, ShutdownError
from otelconfig.loader import dump, load_file
from otelconfig.model import OpenTelemetryConfiguration
from otelconfig.sdk import create_sdk

__all__ = ["app"]

logger = structlog.get_logger(__name__)

SHUTDOWN_TIMEOUT_MILLIS = 5000
SIGNALS: tuple[str, ...] = ("traces", "metrics", "logs")

app = typer.Typer(
    name="otelconfig",
    help="Declarative OpenTelemetry SDK configuration.",
    no_args_is_help=True,
)


def _sdk_version() -> str:
    try:
        return version("opentelemetry-sdk")
    except PackageNotFoundError:
        return "unknown"


def version_callback(value: bool) -> None:
    """Print the otelconfig and OpenTelemetry SDK versions and exit."""
    if value:
        typer.echo(f"otelconfig version {__version__} (opentelemetry-sdk {_sdk_version()})")
        raise typer.Exit()


def _load_env_file(env_file: Path | None) -> Path | None:
    """Export variables from a .env file so ``${NAME}`` references can use them.

    Variables already set in the environment are left alone. Without an
    explicit path the file is searched for from the working directory upwards.

    Returns:
        The file that was loaded, or None when none was found

    Raises:
        typer.Exit: An explicit env_file does not exist
    """
    from dotenv import find_dotenv, load_dotenv

    if env_file is None:
        found = find_dotenv(usecwd=True)
        if not found:
            return None
        env_file = Path(found)
    elif not env_file.is_file():
        typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    load_dotenv(env_file, override=False)
    logger.debug("env_file_loaded", path=str(env_file))
    return env_file


def _print_errors(title: str, error: ConfigurationError) -> None:
    """List every leaf error with the document location it was found at."""
    leaves = error.errors if isinstance(error, ConfigurationErrors) else (error,)
    typer.secho(f"{title} ({len(leaves)}):", fg=typer.colors.RED, err=True)
    for leaf in leaves:
        notes = getattr(leaf, "__notes__", ())
        location = f" [{'; '.join(notes)}]" if notes else ""
        typer.echo(f"  - {leaf}{location}", err=True)


def _load_document(file: Path) -> OpenTelemetryConfiguration:
    try:
        return load_file(file.expanduser())
    except DecodeError as e:
        _print_errors("Could not decode configuration", e)
        raise typer.Exit(1) from None


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Do not read a .env file before substituting variables.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Read variables from this .env file instead of searching for one.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every component as it is built.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Write logs to stderr as JSON lines.",
    ),
) -> None:
    """Declarative OpenTelemetry SDK configuration."""
    from otelconfig.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "WARNING")

    # Before any document is read so ${NAME} references see .env values
    if not no_dotenv:
        _load_env_file(env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def validate(
    file: Path = typer.Argument(..., help="Configuration file (YAML or JSON)."),
) -> None:
    """Build the SDK from a configuration file and report every problem.

    The SDK is shut down again before the command returns, so exporters are
    constructed but nothing is left running.
    """
    with structlog.contextvars.bound_contextvars(config_file=str(file)):
        document = _load_document(file)
        try:
            sdk = create_sdk(document)
        except ConfigurationError as e:
            _print_errors("Configuration errors", e)
            raise typer.Exit(1) from None

        try:
            sdk.shutdown(timeout_millis=SHUTDOWN_TIMEOUT_MILLIS)
        except ShutdownError as e:
            typer.secho(f"Warning: shutdown reported errors: {e}", fg=typer.colors.YELLOW, err=True)

    if sdk.disabled:
        typer.echo(f"Configuration valid (file_format {document.file_format}, SDK disabled).")
        return
    built = [name for name in SIGNALS if not sdk.signal(name).is_noop]
    typer.echo(f"Configuration valid (file_format {document.file_format}).")
    typer.echo(f"  Signals: {', '.join(built) if built else 'none'}")
    typer.echo(f"  Resource attributes: {len(sdk.resource.attributes)}")


@app.command()
def render(
    file: Path = typer.Argument(..., help="Configuration file (YAML or JSON)."),
    output_format: str = typer.Option(
        "yaml",
        "--format",
        "-f",
        help="Output format: yaml or json.",
    ),
) -> None:
    """Print a configuration after variable substitution and schema normalisation.

    A legacy document is printed in the current schema's shape.
    """
    if output_format not in ("yaml", "json"):
        typer.secho(f"Error: unsupported format {output_format!r}, must be yaml or json", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    with structlog.contextvars.bound_contextvars(config_file=str(file)):
        document = _load_document(file)

    fmt: Literal["yaml", "json"] = "json" if output_format == "json" else "yaml"
    typer.echo(dump(document, fmt), nl=False)
