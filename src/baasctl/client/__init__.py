"""HTTP client module for baasctl.

Provides :class:`AsyncClient`, a non-blocking client backed by
:class:`httpx.AsyncClient` that injects the platform's project and API key
headers, retries with exponential backoff, and maps error statuses to
:mod:`baasctl.exceptions`.

Example::

    from baasctl.client import AsyncClient

    async with AsyncClient(settings) as client:
        functions = await client.get_json("/functions")
"""

from baasctl.client.async_client import AsyncClient

__all__ = ["AsyncClient"]
