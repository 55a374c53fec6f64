"""Thin async wrappers around the REST endpoints the pull workflow consumes.

Each method maps one-to-one to an endpoint: it builds the path and query
parameters, awaits :class:`~baasctl.client.AsyncClient`, and returns the
decoded JSON. Listing methods share one shape so the paginator can drive
any of them::

    await services.list_buckets(queries=[...])
    # -> {"total": 250, "buckets": [{...}, ...]}

Query strings follow the platform's JSON query syntax, e.g.
``{"method": "limit", "values": [100]}``; build them with :func:`query`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from baasctl.client import AsyncClient


def query(method: str, *values: Any) -> str:
    """Encode one platform query, e.g. ``query("offset", 200)``."""
    return json.dumps({"method": method, "values": list(values)}, separators=(",", ":"))


def _list_params(queries: Optional[list[str]]) -> Optional[dict[str, Any]]:
    if not queries:
        return None
    return {"queries[]": list(queries)}


class Services:
    """Endpoint catalogue used by the pull engine.

    Args:
        client: An entered :class:`~baasctl.client.AsyncClient`.
    """

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    # --- projects ---

    async def get_project(self, project_id: str) -> dict[str, Any]:
        return await self._client.get_json(f"/projects/{project_id}")

    # --- functions ---

    async def list_functions(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        return await self._client.get_json("/functions", params=_list_params(queries))

    async def get_function(self, function_id: str) -> dict[str, Any]:
        return await self._client.get_json(f"/functions/{function_id}")

    async def download_deployment(
        self, function_id: str, deployment_id: str, destination: Path
    ) -> Path:
        """Write the deployment's packaged code to *destination* (a ``.tar.gz``)."""
        return await self._client.download(
            f"/functions/{function_id}/deployments/{deployment_id}/download",
            destination,
        )

    # --- databases ---

    async def list_databases(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        return await self._client.get_json("/databases", params=_list_params(queries))

    async def get_database(self, database_id: str) -> dict[str, Any]:
        return await self._client.get_json(f"/databases/{database_id}")

    async def list_collections(
        self, database_id: str, queries: Optional[list[str]] = None
    ) -> dict[str, Any]:
        return await self._client.get_json(
            f"/databases/{database_id}/collections", params=_list_params(queries)
        )

    # --- storage, teams, messaging ---

    async def list_buckets(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        return await self._client.get_json("/storage/buckets", params=_list_params(queries))

    async def list_teams(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        return await self._client.get_json("/teams", params=_list_params(queries))

    async def list_topics(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        return await self._client.get_json("/messaging/topics", params=_list_params(queries))
