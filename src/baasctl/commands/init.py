"""Init command -- link the current directory to a remote project.

Implements the ``baasctl init`` top-level command. It records the project
id (and optionally its name and endpoint) in the project-local
``baasctl.json``, which every ``pull`` then reconciles into. Resources
already stored in the file are left untouched.
"""

from __future__ import annotations

from typing import Optional

import typer

from baasctl.output import info, success, suggest


def init_command(
    project_id: str = typer.Option(
        ..., "--project-id", help="Id of the remote project."
    ),
    project_name: Optional[str] = typer.Option(
        None, "--project-name", help="Display name stored alongside the id."
    ),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", help="API endpoint for this project (overrides global config)."
    ),
) -> None:
    """Create or update ``baasctl.json`` for a remote project.

    Args:
        project_id: The project every pull targets.
        project_name: Optional display name; pulled project settings
            replace it later.
        endpoint: Optional per-project endpoint, stored without a
            trailing slash.

    Example::

        baasctl init --project-id my-project
        baasctl init --project-id my-project --endpoint https://self-hosted.example.com/v1
    """
    from baasctl.config import LocalConfig

    store = LocalConfig.load()
    existing = store.get_project()["projectId"]
    if existing and existing != project_id:
        info(f'Replacing project "{existing}" in {store.path}.')

    store.set_project(project_id, project_name)
    if endpoint:
        store.set_endpoint(endpoint.rstrip("/"))
    store.flush()

    success(f'Project "{project_id}" initialised in {store.path}.')
    suggest("Pull everything: baasctl pull all")
