"""Settle Command Line Interface.

Entry point for the settle CLI tool: inspect and validate preset
configuration before a test run uses it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from settle import __version__
from settle.contracts.errors import InvalidSpecError
from settle.core.config import PresetRegistry, SettleSettings, load_settings

__all__ = [
    "app",
]

app = typer.Typer(
    name="settle",
    help="Settle: deadline-aware waits and retries for test automation.",
    no_args_is_help=True,
)


@dataclass(frozen=True)
class _LogFlags:
    """Global logging flags, kept on the root context for subcommands."""

    verbose: bool = False
    json_logs: bool = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"settle version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    ctx: typer.Context,
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
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a better message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Settle: deadline-aware waits and retries for test automation."""
    # Configured again from the settings file's logging block once a command loads it
    from settle.core.logging import configure_logging

    ctx.obj = _LogFlags(verbose=verbose, json_logs=json_logs)
    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]❌ {title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_registry(ctx: typer.Context, settings: str | None) -> PresetRegistry:
    """Load settings (or the built-in defaults), apply their logging block, resolve presets.

    Raises:
        typer.Exit: With code 1 after printing a formatted error
    """
    config = SettleSettings() if settings is None else _read_settings(settings)

    from settle.core.logging import configure_logging_from

    flags: _LogFlags = ctx.find_root().obj or _LogFlags()
    configure_logging_from(config.logging, verbose=flags.verbose, json_logs=flags.json_logs)

    try:
        registry = PresetRegistry.from_settings(config)
    except InvalidSpecError as e:
        _format_validation_error(
            title="Invalid Preset",
            message=str(e),
        )
        raise typer.Exit(1) from None
    registry.log_configuration()
    return registry


def _read_settings(settings: str) -> SettleSettings:
    """Load and validate a settings file.

    Raises:
        typer.Exit: With code 1 after printing a formatted error
    """
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # Must precede InvalidSpecError/ValueError: ValidationError inherits from ValueError
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}")
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check preset names, field names, and that poll intervals are below timeouts.",
        )
        raise typer.Exit(1) from None
    except InvalidSpecError as e:
        _format_validation_error(
            title="Invalid Preset",
            message=str(e),
        )
        raise typer.Exit(1) from None


@app.command()
def presets(
    ctx: typer.Context,
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file (built-in presets if omitted).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output presets as JSON.",
    ),
) -> None:
    """Show the resolved wait and retry presets."""
    registry = _load_registry(ctx, settings)

    if json_output:
        import json

        typer.echo(json.dumps(registry.as_dict(), indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    data = registry.as_dict()
    console = Console()

    waits = Table(title="Wait presets")
    waits.add_column("Name", style="cyan")
    waits.add_column("Timeout (s)", justify="right")
    waits.add_column("Poll (s)", justify="right")
    waits.add_column("Deadline")
    waits.add_column("Max invalidations", justify="right")
    for name, wait in data["waits"].items():
        limit = wait["max_invalidations"]
        waits.add_row(
            name,
            f"{wait['timeout_seconds']:g}",
            f"{wait['poll_interval_seconds']:g}",
            str(wait["deadline_policy"]),
            "unlimited" if limit is None else str(limit),
        )

    retries = Table(title="Retry presets")
    retries.add_column("Name", style="cyan")
    retries.add_column("Attempts", justify="right")
    retries.add_column("Initial delay (s)", justify="right")
    retries.add_column("Multiplier", justify="right")
    retries.add_column("Max delay (s)", justify="right")
    for name, retry in data["retries"].items():
        retries.add_row(
            name,
            str(retry["max_attempts"]),
            f"{retry['initial_delay_seconds']:g}",
            f"{retry['backoff_multiplier']:g}",
            f"{retry['max_delay_seconds']:g}",
        )

    console.print(waits)
    console.print(retries)


@app.command()
def validate(
    ctx: typer.Context,
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate a settings file without running anything."""
    registry = _load_registry(ctx, settings)
    typer.echo(
        f"✅ Configuration valid: {len(registry.waits)} wait presets, {len(registry.retries)} retry presets"
    )


if __name__ == "__main__":
    app()
