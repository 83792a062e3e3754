# src/cytogate/cli.py
"""cytogate command-line interface.

Entry point for checking and inspecting gating templates.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from cytogate import __version__
from cytogate.contracts.errors import ArgumentParseError, TemplateValidationError
from cytogate.core.config import CytogateSettings, load_settings
from cytogate.core.dag.graph import GatingTemplate
from cytogate.core.template.loader import load_template
from cytogate.plugins.registry import MethodRegistry

__all__ = [
    "app",
]

app = typer.Typer(
    name="cytogate",
    help="cytogate: hierarchical gating from declarative templates.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cytogate version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load CYTOGATE_* overrides from a .env file.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


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
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Load environment overrides from this .env file.",
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
    """cytogate: hierarchical gating from declarative templates."""
    from cytogate.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "WARNING"
    configure_logging(json_output=json_logs, level=log_level)

    if env_file is not None:
        _load_dotenv(env_file=env_file)


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
        title=f"[red bold]{title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_cli_settings(settings: Path | None) -> CytogateSettings:
    """Load settings, or defaults when no file is given. Exits on error."""
    if settings is None:
        return CytogateSettings()

    settings_path = settings.expanduser()
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
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and allowed values.",
        )
        raise typer.Exit(1) from None


def _load_cli_template(template: Path, config: CytogateSettings) -> GatingTemplate:
    """Load and build a template. Exits on error."""
    template_path = template.expanduser()
    try:
        return load_template(template_path, config.template)
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Template file does not exist: {template}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ArgumentParseError as e:
        _format_validation_error(
            title="Argument Parse Error",
            message=str(e).splitlines()[0],
            details=[f"text: {e.text}", *([e.detail] if e.detail else [])],
            hint="Arguments are written as name=value pairs separated by commas.",
        )
        raise typer.Exit(1) from None
    except TemplateValidationError as e:
        _format_validation_error(
            title="Invalid Gating Template",
            message=f"{template_path.name}: {e}",
        )
        raise typer.Exit(1) from None


_TEMPLATE_OPTION = typer.Option(..., "--template", "-t", help="Path to gating template CSV.")
_SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")


@app.command()
def validate(
    template: Path = _TEMPLATE_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """Validate a gating template without running it."""
    config = _load_cli_settings(settings)
    gating_template = _load_cli_template(template, config)

    typer.echo(f"Template '{gating_template.name}' is valid.")
    typer.echo(f"  Populations: {gating_template.node_count - 1}")
    typer.echo(f"  Edges: {gating_template.edge_count}")


@app.command()
def plan(
    template: Path = _TEMPLATE_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured).",
    ),
) -> None:
    """Show populations in the order they would be computed."""
    config = _load_cli_settings(settings)
    gating_template = _load_cli_template(template, config)
    records = gating_template.to_records()

    if output_format == "json":
        typer.echo(json.dumps([dict(record) for record in records], indent=2))
        return

    for index, record in enumerate(records, start=1):
        typer.echo(f"{index:3}. {record['path']}  [{record['method']} ({record['kind']})]")
        typer.echo(f"       parent: {record['parent']}")
        if record["dims"]:
            typer.echo(f"       dims: {record['dims']}")
        if record["group_by"]:
            typer.echo(f"       groupBy: {record['group_by']}")
        if record["collapse"]:
            typer.echo("       collapse: yes")
        if record["preprocessing"]:
            typer.echo(f"       preprocessing: {record['preprocessing']}")
        if record["references"]:
            typer.echo(f"       references: {', '.join(record['references'])}")


@app.command()
def methods(
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """List methods provided by installed plugins."""
    config = _load_cli_settings(settings)
    registry = MethodRegistry(prefix=config.dispatch.method_prefix)
    registry.load_installed_plugins()

    names = registry.names()
    typer.echo("METHODS:")
    if not names:
        typer.echo("  (none registered)")
    for name in names:
        typer.echo(f"  {name}")


if __name__ == "__main__":
    app()
