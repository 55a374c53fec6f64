"""Tests for baasctl.pull.paginate -- offset/limit pagination."""

from __future__ import annotations

import asyncio
import json
import math
from typing import Any, Optional

import pytest

from baasctl.exceptions import PullCancelled, ServerError
from baasctl.pull.paginate import check_cancelled, paginate


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Listing:
    """A listing endpoint over *count* items that records every query."""

    def __init__(self, count: int) -> None:
        self.items = [{"$id": f"item-{i}"} for i in range(count)]
        self.queries: list[list[str]] = []

    async def __call__(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.queries.append(queries or [])
        limit = offset = 0
        for raw in queries or []:
            parsed = json.loads(raw)
            if parsed["method"] == "limit":
                limit = parsed["values"][0]
            else:
                offset = parsed["values"][0]
        return {"total": len(self.items), "items": self.items[offset:offset + limit]}


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


class TestPaginateCompleteness:
    @pytest.mark.parametrize("count", [0, 1, 99, 100, 101, 250])
    def test_returns_every_item_once_in_order(self, count: int) -> None:
        listing = Listing(count)
        items, total = asyncio.run(paginate(listing, wrapper="items"))

        assert total == count
        assert items == listing.items
        assert len(listing.queries) == max(1, math.ceil(count / 100))

    def test_empty_listing_makes_one_call(self) -> None:
        listing = Listing(0)
        assert asyncio.run(paginate(listing, wrapper="items")) == ([], 0)
        assert len(listing.queries) == 1

    def test_queries_advance_offset_by_limit(self) -> None:
        listing = Listing(250)
        asyncio.run(paginate(listing, wrapper="items"))

        assert listing.queries == [
            ['{"method":"limit","values":[100]}', '{"method":"offset","values":[0]}'],
            ['{"method":"limit","values":[100]}', '{"method":"offset","values":[100]}'],
            ['{"method":"limit","values":[100]}', '{"method":"offset","values":[200]}'],
        ]

    def test_custom_limit(self) -> None:
        listing = Listing(7)
        items, _ = asyncio.run(paginate(listing, limit=3, wrapper="items"))
        assert len(items) == 7
        assert len(listing.queries) == 3

    def test_extra_args_are_forwarded(self) -> None:
        seen: list[str] = []

        async def list_collections(database_id: str, queries: Optional[list[str]] = None) -> dict[str, Any]:
            seen.append(database_id)
            return {"total": 1, "collections": [{"$id": "c1"}]}

        items, total = asyncio.run(
            paginate(list_collections, {"database_id": "db1"}, wrapper="collections")
        )
        assert seen == ["db1"]
        assert items == [{"$id": "c1"}]
        assert total == 1


# ---------------------------------------------------------------------------
# Termination on inconsistent listings
# ---------------------------------------------------------------------------


class TestPaginateTermination:
    def test_stops_when_total_shrinks(self) -> None:
        pages = [
            {"total": 300, "items": [{"$id": str(i)} for i in range(100)]},
            {"total": 150, "items": [{"$id": str(i)} for i in range(100, 200)]},
            {"total": 150, "items": [{"$id": "never"}]},
        ]
        calls: list[int] = []

        async def shrinking(queries: Optional[list[str]] = None) -> dict[str, Any]:
            calls.append(1)
            return pages[len(calls) - 1]

        items, total = asyncio.run(paginate(shrinking, wrapper="items"))
        assert len(calls) == 2
        assert len(items) == 200
        assert total == 150

    def test_stops_on_empty_page_despite_total(self) -> None:
        calls: list[int] = []

        async def lying(queries: Optional[list[str]] = None) -> dict[str, Any]:
            calls.append(1)
            if len(calls) == 1:
                return {"total": 500, "items": [{"$id": str(i)} for i in range(100)]}
            return {"total": 500, "items": []}

        items, total = asyncio.run(paginate(lying, wrapper="items"))
        assert len(calls) == 2
        assert len(items) == 100
        assert total == 500

    def test_stops_on_short_page(self) -> None:
        calls: list[int] = []

        async def short(queries: Optional[list[str]] = None) -> dict[str, Any]:
            calls.append(1)
            return {"total": 1000, "items": [{"$id": "only"}]}

        items, _ = asyncio.run(paginate(short, wrapper="items"))
        assert len(calls) == 1
        assert items == [{"$id": "only"}]


# ---------------------------------------------------------------------------
# Errors and cancellation
# ---------------------------------------------------------------------------


class TestPaginateErrors:
    def test_action_errors_propagate_without_retry(self) -> None:
        calls: list[int] = []

        async def failing(queries: Optional[list[str]] = None) -> dict[str, Any]:
            calls.append(1)
            raise ServerError("boom")

        with pytest.raises(ServerError, match="boom"):
            asyncio.run(paginate(failing, wrapper="items"))
        assert len(calls) == 1

    def test_cancelled_before_first_page(self) -> None:
        listing = Listing(10)

        async def run() -> None:
            cancel = asyncio.Event()
            cancel.set()
            await paginate(listing, wrapper="items", cancel=cancel)

        with pytest.raises(PullCancelled):
            asyncio.run(run())
        assert listing.queries == []

    def test_check_cancelled_ignores_missing_event(self) -> None:
        check_cancelled(None)
