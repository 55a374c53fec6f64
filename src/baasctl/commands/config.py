"""Config commands -- view and modify global configuration.

Provides the ``baasctl config`` sub-command group for reading and updating
the user's global configuration file (:class:`~baasctl.models.GlobalConfig`).
Settings are persisted in the baasctl config directory and supply the
lowest-precedence endpoint, project id, credential source and request
timeouts.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from baasctl.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Prints the config directory and the project-local file path, then
    the global configuration (table or JSON, depending on the active
    output mode).

    Example::

        baasctl config show
        baasctl --json config show
    """
    from baasctl.config import get_config_dir, load_global_config, local_config_path

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    info(f"Project config: {local_config_path()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'request.timeout')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Nested keys use dot notation. The value is coerced to the type of the
    field it replaces, and the result is validated against
    :class:`~baasctl.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is unknown, the value
            cannot be coerced, or validation fails.

    Example::

        baasctl config set endpoint https://cloud.example.com/v1
        baasctl config set key_source env:MY_API_KEY
        baasctl config set request.download_timeout 600
    """
    from baasctl.config import load_global_config, save_global_config
    from baasctl.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    *parents, final_key = key.split(".")
    target = data
    for part in parents:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]

    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    if isinstance(current, bool):
        coerced: object = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")
