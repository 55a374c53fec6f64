"""Typer application factory and CLI entry point for baasctl.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``init``, ``config``, ``pull``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. :class:`~baasctl.exceptions.BaasctlError` instances
become a one-line error and their exit code; anything else is written to a
crash log under the data directory.

See Also:
    :mod:`baasctl.config`: Global configuration and precedence resolution.
    :mod:`baasctl.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from baasctl import __version__
from baasctl.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="baasctl",
    help="Command-line client for a backend-as-a-service project.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"baasctl {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
    no_input: bool = typer.Option(
        False, "--no-input", help="Disable interactive prompts."
    ),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", help="API endpoint (highest precedence)."
    ),
    project_id: Optional[str] = typer.Option(
        None, "--project-id", help="Project id (highest precedence)."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~baasctl.output.OutputManager` from
    CLI flags, and stores shared options (``force``, ``no_input``,
    ``endpoint``, ``project_id``) in the Typer context so that sub-commands
    can read them via ``ctx.obj``.
    """
    from baasctl.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )

    ctx.ensure_object(dict)
    ctx.obj["force"] = force
    ctx.obj["no_input"] = no_input
    ctx.obj["verbose"] = verbose
    ctx.obj["endpoint"] = endpoint
    ctx.obj["project_id"] = project_id


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C outside a pull exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from baasctl.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app` (idempotent)."""
    from baasctl.commands.config import config_app
    from baasctl.commands.init import init_command
    from baasctl.commands.pull import pull_app

    if getattr(app, "_baasctl_registered", False):
        return
    app.command("init")(init_command)
    app.add_typer(config_app, name="config", help="Configuration management.")
    app.add_typer(pull_app, name="pull", help="Pull remote resources into baasctl.json.")
    app._baasctl_registered = True  # type: ignore[attr-defined]


def main() -> None:
    """CLI entry point invoked by the ``baasctl`` console script.

    Unhandled :class:`~baasctl.exceptions.BaasctlError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from baasctl.exceptions import BaasctlError
        from baasctl.output import error

        if isinstance(exc, BaasctlError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
