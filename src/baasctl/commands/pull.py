"""Pull commands -- synchronise remote resources into the project.

Implements the ``baasctl pull`` sub-command group. A bare ``baasctl pull``
asks which category to pull; ``baasctl pull all`` pulls every category in
a fixed order; the remaining sub-commands pull a single category.

Every command loads the project-local ``baasctl.json``, resolves connection
settings, and runs a :class:`~baasctl.pull.PullOrchestrator` inside
:func:`asyncio.run`. Ctrl-C sets a cancellation event that the engine
checks between requests, so the local file is never left half-written; a
second Ctrl-C interrupts immediately.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Optional, Union

import typer

from baasctl.models import FailurePolicy, PullOptions, ResourceCategory
from baasctl.output import warning


pull_app = typer.Typer(
    help="Pull resources from the remote project into baasctl.json.",
)


def _obj(ctx: typer.Context) -> dict[str, Any]:
    root = ctx.find_root()
    return root.obj if isinstance(root.obj, dict) else {}


def _install_cancel_handler(loop: asyncio.AbstractEventLoop, cancel: asyncio.Event) -> bool:
    """Route SIGINT to *cancel*; return False where the loop cannot do that."""

    def _handler() -> None:
        warning("Cancelling after the current step (Ctrl-C again to abort) ...")
        cancel.set()
        loop.remove_signal_handler(signal.SIGINT)

    try:
        loop.add_signal_handler(signal.SIGINT, _handler)
    except (NotImplementedError, RuntimeError):
        return False
    return True


async def _pull(
    ctx: typer.Context,
    category: Union[ResourceCategory, str, None],
    options: PullOptions,
) -> None:
    from baasctl.client import AsyncClient
    from baasctl.config import LocalConfig, resolve_settings
    from baasctl.pull import InteractiveSelectionProvider, PullContext, PullOrchestrator
    from baasctl.services import Services

    obj = _obj(ctx)
    store = LocalConfig.load()
    settings = resolve_settings(obj.get("endpoint"), obj.get("project_id"), store)
    selector = InteractiveSelectionProvider(no_input=obj.get("no_input", False))

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = _install_cancel_handler(loop, cancel)
    try:
        async with AsyncClient(settings) as client:
            pull_ctx = PullContext(
                services=Services(client),
                store=store,
                selector=selector,
                options=options,
                cancel=cancel,
                project_id=settings.project_id,
            )
            await PullOrchestrator(pull_ctx).pull(category)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _run(
    ctx: typer.Context,
    category: Union[ResourceCategory, str, None],
    *,
    all_: bool = False,
    ids: Optional[list[str]] = None,
    code: bool = True,
    with_variables: bool = False,
    keep_going: bool = False,
) -> None:
    obj = _obj(ctx)
    parent = obj.get("pull", {})
    options = PullOptions(
        all=all_,
        ids=list(ids or []),
        code=code and parent.get("code", True),
        with_variables=with_variables or parent.get("with_variables", False),
        force=obj.get("force", False),
        failure_policy=(
            FailurePolicy.CONTINUE
            if keep_going or parent.get("keep_going", False)
            else FailurePolicy.ABORT
        ),
    )
    asyncio.run(_pull(ctx, category, options))


_CODE_OPTION = typer.Option(
    True, "--code/--no-code", help="Download the latest deployment's source code."
)
_VARIABLES_OPTION = typer.Option(
    False, "--with-variables", help="Write function variables to a .env file."
)
_KEEP_GOING_OPTION = typer.Option(
    False, "--keep-going", help="Continue past failed functions and report them at the end."
)
_ALL_OPTION = typer.Option(
    False, "--all", help="Pull every item without prompting."
)


@pull_app.callback(invoke_without_command=True)
def pull_callback(
    ctx: typer.Context,
    code: bool = _CODE_OPTION,
    with_variables: bool = _VARIABLES_OPTION,
    keep_going: bool = _KEEP_GOING_OPTION,
) -> None:
    """Pull resources from the remote project.

    Without a sub-command, asks which resource category to pull.

    Example::

        baasctl pull
        baasctl pull --no-code
    """
    ctx.ensure_object(dict)
    ctx.obj["pull"] = {
        "code": code,
        "with_variables": with_variables,
        "keep_going": keep_going,
    }
    if ctx.invoked_subcommand is None:
        _run(
            ctx,
            None,
            code=code,
            with_variables=with_variables,
            keep_going=keep_going,
        )


@pull_app.command("all")
def pull_all(
    ctx: typer.Context,
    code: bool = _CODE_OPTION,
    with_variables: bool = _VARIABLES_OPTION,
    keep_going: bool = _KEEP_GOING_OPTION,
) -> None:
    """Pull project settings, functions, collections, buckets, teams and topics.

    Example::

        baasctl pull all --force
    """
    _run(
        ctx,
        "all",
        all_=True,
        code=code,
        with_variables=with_variables,
        keep_going=keep_going,
    )


@pull_app.command("project")
def pull_project(ctx: typer.Context, keep_going: bool = _KEEP_GOING_OPTION) -> None:
    """Pull the project's name and service/auth settings."""
    _run(ctx, ResourceCategory.PROJECT, keep_going=keep_going)


@pull_app.command("functions")
def pull_functions(
    ctx: typer.Context,
    ids: Optional[list[str]] = typer.Option(
        None, "--id", help="Function id to pull (repeatable)."
    ),
    all_: bool = _ALL_OPTION,
    code: bool = _CODE_OPTION,
    with_variables: bool = _VARIABLES_OPTION,
    keep_going: bool = _KEEP_GOING_OPTION,
) -> None:
    """Pull functions and, optionally, their deployment code.

    Code lands in each function's ``path`` (``functions/<id>`` for
    functions new to ``baasctl.json``).

    Example::

        baasctl pull functions --all --force
        baasctl pull functions --id checkout --id mailer --no-code
    """
    _run(
        ctx,
        ResourceCategory.FUNCTIONS,
        all_=all_,
        ids=ids,
        code=code,
        with_variables=with_variables,
        keep_going=keep_going,
    )


@pull_app.command("collections")
def pull_collections(
    ctx: typer.Context,
    ids: Optional[list[str]] = typer.Option(
        None, "--id", help="Database id to pull collections from (repeatable)."
    ),
    all_: bool = _ALL_OPTION,
    keep_going: bool = _KEEP_GOING_OPTION,
) -> None:
    """Pull databases and their collections.

    Example::

        baasctl pull collections --all
        baasctl pull collections --id main
    """
    _run(
        ctx,
        ResourceCategory.COLLECTIONS,
        all_=all_,
        ids=ids,
        keep_going=keep_going,
    )


@pull_app.command("buckets")
def pull_buckets(ctx: typer.Context, keep_going: bool = _KEEP_GOING_OPTION) -> None:
    """Pull every storage bucket."""
    _run(ctx, ResourceCategory.BUCKETS, keep_going=keep_going)


@pull_app.command("teams")
def pull_teams(ctx: typer.Context, keep_going: bool = _KEEP_GOING_OPTION) -> None:
    """Pull every team."""
    _run(ctx, ResourceCategory.TEAMS, keep_going=keep_going)


@pull_app.command("topics")
def pull_topics(ctx: typer.Context, keep_going: bool = _KEEP_GOING_OPTION) -> None:
    """Pull every messaging topic."""
    _run(ctx, ResourceCategory.TOPICS, keep_going=keep_going)


# Singular aliases.
pull_app.command("function", hidden=True)(pull_functions)
pull_app.command("collection", hidden=True)(pull_collections)
pull_app.command("bucket", hidden=True)(pull_buckets)
pull_app.command("team", hidden=True)(pull_teams)
pull_app.command("topic", hidden=True)(pull_topics)
