"""Main entry point for the stockmaxwin command line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from stockmaxwin.core.config import Settings, get_settings
from stockmaxwin.core.exceptions import ConfigurationError
from stockmaxwin.core.logging import configure_logging

from .commands import register as register_commands
from .constants import VALIDATION_EXIT_CODE
from .formatters import create_formatter
from .utils import emit_error


def create_app() -> typer.Typer:
    """Create a Typer application instance for stockmaxwin."""

    app = typer.Typer(add_completion=False, help="A-share main board stock screener")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help="Output format (table or jsonl).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Logging level; defaults to the configured level.",
        ),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
        config: Path | None = typer.Option(
            None,
            "--config",
            help="TOML configuration file.",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        try:
            settings = Settings.load_from_file(config) if config is not None else get_settings()
        except ConfigurationError as error:
            emit_error(error.message, error.error_code, details=error.details)
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from error

        level = (log_level or settings.log_level).upper()
        try:
            configure_logging(level, serialize=settings.log_format == "json")
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "log_level": level,
                "no_color": no_color,
                "settings": settings,
            }
        )

    register_commands(app)
    return app


app = create_app()
