"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for baasctl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.baasctl/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~baasctl.models.GlobalConfig`
  JSON file storing the endpoint, default project and credential source.
* **Project-local store** -- :class:`LocalConfig`, the ``baasctl.json``
  file that ``pull`` reconciles remote resources into.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, the project-local file, and global config into
  the effective :class:`~baasctl.models.ConnectionSettings`.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so an interrupted pull never leaves a truncated
``baasctl.json`` behind.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from baasctl.exceptions import ConfigError
from baasctl.models import (
    BucketRecord,
    CollectionRecord,
    ConnectionSettings,
    DatabaseRecord,
    FunctionRecord,
    GlobalConfig,
    ProjectConfig,
    ResourceRecord,
    TeamRecord,
    TopicRecord,
)

_APP_NAME = "baasctl"
_CONFIG_FILENAME = "config.json"
_LOCAL_CONFIG_FILENAME = "baasctl.json"

_CATEGORY_FIELDS = ("functions", "databases", "collections", "buckets", "teams", "topics")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/baasctl/`` (default ``~/.config/baasctl/``).
    On macOS/Windows: ``~/.baasctl/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/baasctl/`` (default ``~/.local/share/baasctl/``).
    On macOS/Windows: ``~/.baasctl/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On any failure the temp file is cleaned up and the error re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Includes KeyboardInterrupt.
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~baasctl.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local store ---


def local_config_path() -> Path:
    """Path of the project-local config (``$BAASCTL_LOCAL_CONFIG`` or ``./baasctl.json``)."""
    override = os.environ.get("BAASCTL_LOCAL_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.cwd() / _LOCAL_CONFIG_FILENAME


class LocalConfig:
    """Project-local resource store backed by ``baasctl.json``.

    Loaded once per invocation, mutated in memory by the pull reconciler
    through upsert-only methods, and written back with :meth:`flush`.
    Identifiers are unique within each category; collections are keyed by
    ``(databaseId, $id)``. Function paths in the file are relative to the
    file's directory, see :attr:`base_dir`.

    Args:
        path: Location of the JSON file. It does not need to exist yet.
        data: Initial document; defaults to an empty :class:`ProjectConfig`.
    """

    def __init__(self, path: Path, data: Optional[ProjectConfig] = None) -> None:
        self.path = Path(path)
        self._data = data or ProjectConfig()

    @classmethod
    def load(cls, path: Optional[Path] = None) -> LocalConfig:
        """Read the store from *path* (default :func:`local_config_path`).

        A missing file yields an empty store.

        Raises:
            ConfigError: If the file holds invalid JSON or malformed records.
        """
        path = Path(path) if path is not None else local_config_path()
        if not path.is_file():
            return cls(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return cls(path, ProjectConfig.model_validate(raw))
        except (json.JSONDecodeError, ValueError) as exc:
            raise ConfigError(f"Invalid project config at {path}: {exc}") from exc

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    # ------------------------------------------------------------------ #
    # Project
    # ------------------------------------------------------------------ #

    def get_project(self) -> dict[str, Optional[str]]:
        return {
            "projectId": self._data.project_id,
            "projectName": self._data.project_name,
        }

    def set_project(
        self,
        project_id: str,
        name: Optional[str] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> None:
        self._data.project_id = project_id
        if name is not None:
            self._data.project_name = name
        if settings is not None:
            self._data.settings = settings

    def set_endpoint(self, endpoint: str) -> None:
        self._data.endpoint = endpoint

    @property
    def endpoint(self) -> Optional[str]:
        return self._data.endpoint

    @property
    def settings(self) -> Optional[dict[str, Any]]:
        return self._data.settings

    # ------------------------------------------------------------------ #
    # Functions
    # ------------------------------------------------------------------ #

    def get_functions(self) -> list[FunctionRecord]:
        return list(self._data.functions)

    def get_function(self, function_id: str) -> Optional[FunctionRecord]:
        for func in self._data.functions:
            if func.id == function_id:
                return func
        return None

    def add_function(self, record: FunctionRecord) -> None:
        _upsert(self._data.functions, record, _by_id(record.id))

    def update_function(self, function_id: str, record: FunctionRecord) -> None:
        """Replace the stored function *function_id* with *record*.

        Raises:
            ConfigError: If no function with that id is stored.
        """
        if self.get_function(function_id) is None:
            raise ConfigError(f"Function '{function_id}' is not in {self.path}")
        _upsert(self._data.functions, record, _by_id(function_id))

    # ------------------------------------------------------------------ #
    # Other categories
    # ------------------------------------------------------------------ #

    def get_databases(self) -> list[DatabaseRecord]:
        return list(self._data.databases)

    def add_database(self, record: DatabaseRecord) -> None:
        _upsert(self._data.databases, record, _by_id(record.id))

    def get_collections(self) -> list[CollectionRecord]:
        return list(self._data.collections)

    def add_collection(self, record: CollectionRecord) -> None:
        def match(existing: CollectionRecord) -> bool:
            return existing.id == record.id and existing.database_id == record.database_id

        _upsert(self._data.collections, record, match)

    def get_buckets(self) -> list[BucketRecord]:
        return list(self._data.buckets)

    def add_bucket(self, record: BucketRecord) -> None:
        _upsert(self._data.buckets, record, _by_id(record.id))

    def get_teams(self) -> list[TeamRecord]:
        return list(self._data.teams)

    def add_team(self, record: TeamRecord) -> None:
        _upsert(self._data.teams, record, _by_id(record.id))

    def get_messaging_topics(self) -> list[TopicRecord]:
        return list(self._data.topics)

    def add_messaging_topic(self, record: TopicRecord) -> None:
        _upsert(self._data.topics, record, _by_id(record.id))

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the store to the JSON document written by :meth:`flush`.

        Empty categories are omitted.
        """
        data = self._data.model_dump(
            mode="json",
            by_alias=True,
            exclude_unset=True,
            exclude_none=True,
            exclude=set(_CATEGORY_FIELDS),
        )
        for field in _CATEGORY_FIELDS:
            records: list[ResourceRecord] = getattr(self._data, field)
            if records:
                data[field] = [record.to_dict() for record in records]
        return data

    def snapshot(self) -> dict[str, Any]:
        """Capture the in-memory state so a failed category can be undone."""
        return self.to_dict()

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Return the in-memory state to a value taken with :meth:`snapshot`."""
        try:
            self._data = ProjectConfig.model_validate(snapshot)
        except ValidationError as exc:  # pragma: no cover
            raise ConfigError(f"Cannot restore project config snapshot: {exc}") from exc

    def flush(self) -> None:
        """Write the store to :attr:`path` atomically.

        Raises:
            ConfigError: If the file cannot be written (permissions, disk full).
        """
        try:
            _atomic_write(self.path, json.dumps(self.to_dict(), indent=4) + "\n")
        except OSError as exc:
            raise ConfigError(f"Cannot write project config {self.path}: {exc}") from exc


def _by_id(resource_id: str) -> Callable[[ResourceRecord], bool]:
    return lambda existing: existing.id == resource_id


def _upsert(
    records: list[Any], record: ResourceRecord, match: Callable[[Any], bool]
) -> None:
    """Replace the first record satisfying *match* in place, or append."""
    for index, existing in enumerate(records):
        if match(existing):
            records[index] = record
            return
    records.append(record)


# --- Precedence resolution ---


def resolve_settings(
    cli_endpoint: Optional[str] = None,
    cli_project_id: Optional[str] = None,
    local: Optional[LocalConfig] = None,
) -> ConnectionSettings:
    """Resolve connection settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_endpoint``, ``cli_project_id``)
        2. Environment variables (``BAASCTL_ENDPOINT``,
           ``BAASCTL_PROJECT_ID``, ``BAASCTL_KEY``)
        3. Project-local config (``./baasctl.json``)
        4. Global config (``~/.config/baasctl/config.json``)
        5. Defaults

    The API key comes from ``BAASCTL_KEY`` when set, otherwise from the
    global ``key_source`` descriptor.

    Returns:
        The effective :class:`~baasctl.models.ConnectionSettings`.
    """
    global_cfg = load_global_config()

    endpoint = global_cfg.endpoint
    project_id = global_cfg.project_id
    if local is not None:
        endpoint = local.endpoint or endpoint
        project_id = local.get_project()["projectId"] or project_id

    endpoint = os.environ.get("BAASCTL_ENDPOINT") or endpoint
    project_id = os.environ.get("BAASCTL_PROJECT_ID") or project_id

    if cli_endpoint is not None:
        endpoint = cli_endpoint
    if cli_project_id is not None:
        project_id = cli_project_id

    key = os.environ.get("BAASCTL_KEY")
    if not key and global_cfg.key_source:
        key = resolve_credential(global_cfg.key_source)

    return ConnectionSettings(
        endpoint=endpoint.rstrip("/"),
        project_id=project_id,
        key=key,
        self_signed=global_cfg.self_signed,
        request=global_cfg.request,
    )


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts the user interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("API key: ")

    raise ConfigError(f"Unknown credential source format: {source}")
