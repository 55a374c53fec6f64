"""Shared test fixtures for baasctl.

Provides reusable fixtures for isolated config environments, output state,
CLI runners, an in-memory stand-in for :class:`~baasctl.services.Services`,
and deployment tarball builders. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from baasctl.config import LocalConfig
from baasctl.exceptions import NotFoundError
from baasctl.models import PullOptions
from baasctl.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all BAASCTL_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "BAASCTL_ENDPOINT",
        "BAASCTL_PROJECT_ID",
        "BAASCTL_KEY",
        "BAASCTL_LOCAL_CONFIG",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def store(isolated_config: Path) -> LocalConfig:
    """An initialised project-local store at ``<tmp>/baasctl.json``."""
    local = LocalConfig(isolated_config / "baasctl.json")
    local.set_project("proj-1", "Demo")
    return local


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a PLAIN-format, quiet OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    """Uncoloured, non-quiet output so tests can assert on stderr text."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Deployment archives
# ---------------------------------------------------------------------------


def _build_tarball(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def make_tarball() -> Callable[[dict[str, str]], bytes]:
    """Builder for in-memory ``.tar.gz`` payloads: ``make_tarball({"main.js": "..."})``."""
    return _build_tarball


@pytest.fixture
def node_tarball() -> bytes:
    """A minimal Node.js deployment with ``main.js`` and ``package.json``."""
    return _build_tarball(
        {
            "main.js": "module.exports = async () => 'ok';\n",
            "package.json": json.dumps({"name": "fn", "main": "main.js"}),
        }
    )


# ---------------------------------------------------------------------------
# In-memory service layer
# ---------------------------------------------------------------------------


def _page_bounds(queries: Optional[list[str]]) -> tuple[int, int]:
    limit, offset = 25, 0
    for raw in queries or []:
        parsed = json.loads(raw)
        if parsed["method"] == "limit":
            limit = parsed["values"][0]
        elif parsed["method"] == "offset":
            offset = parsed["values"][0]
    return limit, offset


class FakeServices:
    """Stand-in for :class:`~baasctl.services.Services` backed by plain lists.

    Every call is appended to :attr:`calls` as ``(method, argument)`` so
    tests can assert on request counts and order.
    """

    def __init__(
        self,
        project: Optional[dict[str, Any]] = None,
        functions: Optional[list[dict[str, Any]]] = None,
        databases: Optional[list[dict[str, Any]]] = None,
        collections: Optional[dict[str, list[dict[str, Any]]]] = None,
        buckets: Optional[list[dict[str, Any]]] = None,
        teams: Optional[list[dict[str, Any]]] = None,
        topics: Optional[list[dict[str, Any]]] = None,
        archives: Optional[dict[str, bytes]] = None,
    ) -> None:
        self.project = project or {"$id": "proj-1", "name": "Demo"}
        self.functions = functions or []
        self.databases = databases or []
        self.collections = collections or {}
        self.buckets = buckets or []
        self.teams = teams or []
        self.topics = topics or []
        self.archives = archives or {}
        self.calls: list[tuple[str, Any]] = []

    def _page(self, items: list[dict[str, Any]], wrapper: str, queries: Optional[list[str]]) -> dict[str, Any]:
        limit, offset = _page_bounds(queries)
        return {"total": len(items), wrapper: items[offset:offset + limit]}

    def calls_to(self, method: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == method]

    async def get_project(self, project_id: str) -> dict[str, Any]:
        self.calls.append(("get_project", project_id))
        return dict(self.project)

    async def list_functions(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.calls.append(("list_functions", queries))
        return self._page(self.functions, "functions", queries)

    async def get_function(self, function_id: str) -> dict[str, Any]:
        self.calls.append(("get_function", function_id))
        for func in self.functions:
            if func["$id"] == function_id:
                return dict(func)
        raise NotFoundError(f"Function with the requested ID '{function_id}' could not be found.")

    async def download_deployment(self, function_id: str, deployment_id: str, destination: Path) -> Path:
        self.calls.append(("download_deployment", (function_id, deployment_id)))
        if deployment_id not in self.archives:
            raise NotFoundError(f"Deployment '{deployment_id}' could not be found.")
        destination.write_bytes(self.archives[deployment_id])
        return destination

    async def list_databases(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.calls.append(("list_databases", queries))
        return self._page(self.databases, "databases", queries)

    async def get_database(self, database_id: str) -> dict[str, Any]:
        self.calls.append(("get_database", database_id))
        for database in self.databases:
            if database["$id"] == database_id:
                return dict(database)
        raise NotFoundError(f"Database '{database_id}' could not be found.")

    async def list_collections(self, database_id: str, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.calls.append(("list_collections", database_id))
        return self._page(self.collections.get(database_id, []), "collections", queries)

    async def list_buckets(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.calls.append(("list_buckets", queries))
        return self._page(self.buckets, "buckets", queries)

    async def list_teams(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.calls.append(("list_teams", queries))
        return self._page(self.teams, "teams", queries)

    async def list_topics(self, queries: Optional[list[str]] = None) -> dict[str, Any]:
        self.calls.append(("list_topics", queries))
        return self._page(self.topics, "topics", queries)


@pytest.fixture
def fake_services() -> type[FakeServices]:
    """The :class:`FakeServices` class; construct it with the remote state a test needs."""
    return FakeServices


@pytest.fixture
def pull_options() -> Callable[..., PullOptions]:
    """Shorthand for ``PullOptions(**overrides)`` with ``force=True`` by default."""

    def _make(**overrides: Any) -> PullOptions:
        overrides.setdefault("force", True)
        return PullOptions(**overrides)

    return _make
