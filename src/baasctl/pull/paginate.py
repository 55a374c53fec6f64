"""Offset/limit pagination over any listing endpoint.

:func:`paginate` drives a listing coroutine from
:class:`~baasctl.services.Services` until the remote collection is
exhausted and returns one flat list plus the reported total.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from baasctl.exceptions import PullCancelled
from baasctl.output import debug
from baasctl.services import query

DEFAULT_PAGE_SIZE = 100

ListingAction = Callable[..., Awaitable[dict[str, Any]]]


def check_cancelled(cancel: Optional[asyncio.Event]) -> None:
    """Raise :class:`PullCancelled` if *cancel* has been set."""
    if cancel is not None and cancel.is_set():
        raise PullCancelled("Pull cancelled.")


async def paginate(
    action: ListingAction,
    args: Optional[dict[str, Any]] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    wrapper: str = "",
    cancel: Optional[asyncio.Event] = None,
) -> tuple[list[dict[str, Any]], int]:
    """Collect every item of a paginated listing.

    Calls ``await action(**args, queries=[limit, offset])`` with the offset
    advancing by *limit* each round, appending ``response[wrapper]``. Stops
    as soon as one of these holds:

    * the first response reports ``total == 0`` (returns ``([], 0)``);
    * a page comes back empty;
    * the accumulated count reaches the reported total;
    * a page is shorter than *limit*;
    * the reported total drops below the previous one (the listing changed
      underneath us, so further offsets are meaningless).

    Errors raised by *action* propagate unchanged; nothing is retried here.

    Args:
        action: A listing coroutine function accepting ``queries=``.
        args: Extra keyword arguments for *action* (e.g. ``database_id``).
        limit: Page size.
        wrapper: Response key holding the page items (``"functions"``,
            ``"collections"``, ...).
        cancel: Checked before every page.

    Returns:
        ``(items, total)`` where *total* is the last reported total.

    Raises:
        PullCancelled: If *cancel* is set before a page is requested.
    """
    args = dict(args or {})
    items: list[dict[str, Any]] = []
    total: Optional[int] = None
    offset = 0

    while True:
        check_cancelled(cancel)
        response = await action(
            **args, queries=[query("limit", limit), query("offset", offset)]
        )
        page = response.get(wrapper) or []
        reported = int(response.get("total") or 0)

        if total is None and reported == 0:
            return [], 0

        shrank = total is not None and reported < total
        total = reported
        if not page:
            break

        items.extend(page)
        debug(f"Fetched {len(items)}/{total} {wrapper or 'items'} (offset {offset})")

        if shrank or len(items) >= total or len(page) < limit:
            break
        offset += limit

    return items, total
