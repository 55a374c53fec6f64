"""Asynchronous HTTP client for the platform's REST API.

:class:`AsyncClient` wraps :class:`httpx.AsyncClient` with the platform's
project/key headers, retry with exponential backoff on 5xx and network
errors, mapping of error statuses onto the
:mod:`baasctl.exceptions` hierarchy, and streamed downloads of binary
payloads (function deployment archives) straight to disk.

Every call is an ``await`` point, so the pull engine can be cancelled
between any two requests.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import httpx

from baasctl.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from baasctl.models import ConnectionSettings
from baasctl.output import get_output

PROJECT_HEADER = "X-Appwrite-Project"
KEY_HEADER = "X-Appwrite-Key"
RESPONSE_FORMAT_HEADER = "X-Appwrite-Response-Format"
RESPONSE_FORMAT = "1.5.0"


class AsyncClient:
    """Asynchronous HTTP client for API calls.

    Must be used as an async context manager; the underlying
    :class:`httpx.AsyncClient` lives exactly as long as the ``async with``
    block.

    Args:
        settings: Resolved endpoint, project id, API key and request
            settings (timeouts, retries).
        transport: Optional httpx transport, used by tests to plug in an
            :class:`httpx.MockTransport`.

    Example::

        async with AsyncClient(settings) as client:
            response = await client.get("/functions")
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def settings(self) -> ConnectionSettings:
        return self._settings

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        self._client = httpx.AsyncClient(
            base_url=self._settings.endpoint,
            headers=self._default_headers(),
            timeout=self._settings.request.timeout,
            verify=not self._settings.self_signed,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry and error mapping.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            path: URL path appended to the endpoint.
            params: Query parameters. List values are sent as repeated keys.
            headers: Extra request headers.
            json_body: JSON-serialisable body.

        Returns:
            The :class:`httpx.Response` from the server.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On other 4xx, or 5xx after all retries are exhausted.
            ConnectionError_: On network / timeout errors after all retries.
        """
        response = await self._execute_with_retry(method, path, params, headers, json_body)
        self._map_response_error(response)
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET *path* and return the decoded JSON body."""
        response = await self.get(path, params=params)
        return response.json()

    async def download(
        self,
        path: str,
        destination: Path,
        params: Optional[dict[str, Any]] = None,
    ) -> Path:
        """Stream the body of GET *path* into *destination*.

        Uses :attr:`~baasctl.models.RequestConfig.download_timeout` instead
        of the regular per-request timeout. Downloads are not retried; a
        partially written file is left for the caller to clean up.

        Returns:
            *destination*.

        Raises:
            AuthError, NotFoundError, ServerError: On error statuses.
            ConnectionError_: On any transport error (network, timeout, protocol).
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        timeout = self._settings.request.download_timeout
        try:
            async with self._client.stream(
                "GET", path, params=params, timeout=timeout
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self._map_response_error(response)
                with open(destination, "wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Download of {path} failed: {exc}") from exc

        get_output().debug(f"Downloaded {path} -> {destination}")
        return destination

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _default_headers(self) -> dict[str, str]:
        headers = {
            RESPONSE_FORMAT_HEADER: RESPONSE_FORMAT,
            "Accept": "application/json",
        }
        if self._settings.project_id:
            headers[PROJECT_HEADER] = self._settings.project_id
        if self._settings.key:
            headers[KEY_HEADER] = self._settings.key
        return headers

    async def _execute_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the request, retrying on 5xx and connection errors.

        The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        max_retries = self._settings.request.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.request(
                    method,
                    path,
                    params=params,
                    headers=headers,
                    json=json_body,
                )
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc
            except httpx.TransportError as exc:
                raise ConnectionError_(f"Request to {path} failed: {exc}") from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                output.debug(
                    f"Server error {response.status_code}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("type") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)
