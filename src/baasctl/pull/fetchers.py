"""Remote fetchers, one per resource category.

Fetchers only read: they turn a resolved
:class:`~baasctl.pull.selection.SelectionScope` into the remote records to
pull and never touch the local store. Results keep the order the API
returned them in.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from baasctl.pull.paginate import check_cancelled, paginate
from baasctl.pull.selection import ScopeKind, SelectionProvider, SelectionScope
from baasctl.services import Services


@dataclass
class DatabaseBundle:
    """One database plus its collections, as fetched for a collections pull."""

    database: dict[str, Any]
    collections: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0


async def fetch_project(services: Services, project_id: str) -> dict[str, Any]:
    return await services.get_project(project_id)


async def fetch_functions(
    services: Services,
    scope: SelectionScope,
    selector: SelectionProvider,
    cancel: Optional[asyncio.Event] = None,
) -> list[dict[str, Any]]:
    """Functions to pull.

    ``ALL`` lists everything, ``EXPLICIT`` gets each id in turn, and
    ``INTERACTIVE`` lists everything and returns the selector's answer
    as-is. An empty listing never reaches the selector.
    """
    if scope.kind is ScopeKind.EXPLICIT:
        functions = []
        for function_id in scope.ids:
            check_cancelled(cancel)
            functions.append(await services.get_function(function_id))
        return functions

    functions, _ = await paginate(
        services.list_functions, wrapper="functions", cancel=cancel
    )
    if scope.kind is ScopeKind.ALL or not functions:
        return functions
    return await asyncio.to_thread(selector.choose_functions, functions)


async def _resolve_database_ids(
    services: Services,
    scope: SelectionScope,
    selector: SelectionProvider,
    cancel: Optional[asyncio.Event],
) -> list[str]:
    if scope.kind is ScopeKind.EXPLICIT:
        return list(scope.ids)

    databases, _ = await paginate(
        services.list_databases, wrapper="databases", cancel=cancel
    )
    if scope.kind is ScopeKind.ALL:
        return [database["$id"] for database in databases]
    if not databases:
        return []
    return await asyncio.to_thread(selector.choose_databases, databases)


async def fetch_collections(
    services: Services,
    scope: SelectionScope,
    selector: SelectionProvider,
    cancel: Optional[asyncio.Event] = None,
) -> list[DatabaseBundle]:
    """For each selected database, its metadata and every collection in it."""
    bundles: list[DatabaseBundle] = []
    for database_id in await _resolve_database_ids(services, scope, selector, cancel):
        check_cancelled(cancel)
        database = await services.get_database(database_id)
        collections, total = await paginate(
            services.list_collections,
            {"database_id": database_id},
            wrapper="collections",
            cancel=cancel,
        )
        bundles.append(DatabaseBundle(database=database, collections=collections, total=total))
    return bundles


async def fetch_buckets(
    services: Services, cancel: Optional[asyncio.Event] = None
) -> list[dict[str, Any]]:
    buckets, _ = await paginate(services.list_buckets, wrapper="buckets", cancel=cancel)
    return buckets


async def fetch_teams(
    services: Services, cancel: Optional[asyncio.Event] = None
) -> list[dict[str, Any]]:
    teams, _ = await paginate(services.list_teams, wrapper="teams", cancel=cancel)
    return teams


async def fetch_topics(
    services: Services, cancel: Optional[asyncio.Event] = None
) -> list[dict[str, Any]]:
    topics, _ = await paginate(services.list_topics, wrapper="topics", cancel=cancel)
    return topics
