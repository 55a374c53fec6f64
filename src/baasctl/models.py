"""Canonical Pydantic models shared across all baasctl modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`RequestConfig`, :class:`OutputConfig`,
:class:`GlobalConfig`, and the resolved :class:`ConnectionSettings`.

**Resource records** -- the typed shape of everything ``pull`` persists in
the project-local ``baasctl.json``: :class:`FunctionRecord`,
:class:`DatabaseRecord`, :class:`CollectionRecord`, :class:`BucketRecord`,
:class:`TeamRecord`, :class:`TopicRecord`, all held by
:class:`ProjectConfig`.

Records use ``extra="allow"`` so attributes the platform adds later are
kept verbatim, and expose the platform's ``$id`` key as ``id``. They are
dumped with ``by_alias=True, exclude_unset=True`` so a record written back
to disk carries exactly the keys it was built from.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Config ---


class RequestConfig(BaseModel):
    """HTTP request settings applied to every API call."""

    timeout: int = Field(default=30, description="Per-request timeout in seconds")
    download_timeout: int = Field(
        default=300, description="Timeout in seconds for deployment archive downloads"
    )
    max_retries: int = Field(default=3, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/baasctl/config.json``.

    Fields here have the lowest precedence and can be overridden by the
    project-local config, environment variables, or CLI flags. See
    :func:`~baasctl.config.resolve_settings` for the full chain.
    """

    endpoint: str = Field(
        default="https://cloud.example.com/v1", description="API endpoint"
    )
    project_id: Optional[str] = None
    key_source: Optional[str] = Field(
        default=None,
        description="Credential source for the API key: env:VAR, file:/path, prompt",
    )
    self_signed: bool = Field(
        default=False, description="Accept self-signed TLS certificates"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class ConnectionSettings(BaseModel):
    """Effective connection settings after precedence resolution."""

    endpoint: str
    project_id: Optional[str] = None
    key: Optional[str] = None
    self_signed: bool = False
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Resource categories ---


class ResourceCategory(str, enum.Enum):
    """Resource categories understood by ``pull``.

    Declaration order is the order ``pull all`` runs them in, so project
    identity is settled before anything that references it.
    """

    PROJECT = "project"
    FUNCTIONS = "functions"
    COLLECTIONS = "collections"
    BUCKETS = "buckets"
    TEAMS = "teams"
    TOPICS = "topics"


PULL_ORDER: tuple[ResourceCategory, ...] = tuple(ResourceCategory)
"""Fixed order used by ``pull all``."""


class FailurePolicy(str, enum.Enum):
    """What a pull does when a single function fails to materialise."""

    ABORT = "abort"
    CONTINUE = "continue"


class PullOptions(BaseModel):
    """Options shared by every pull pipeline for one invocation."""

    all: bool = False
    ids: list[str] = Field(default_factory=list)
    code: bool = True
    with_variables: bool = False
    force: bool = False
    failure_policy: FailurePolicy = FailurePolicy.ABORT


# --- Resource records ---


class ResourceRecord(BaseModel):
    """Base for every persisted resource: an ``$id`` plus whatever the API sent."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="$id")
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class FunctionRecord(ResourceRecord):
    runtime: Optional[str] = None
    entrypoint: Optional[str] = None
    commands: Optional[str] = None
    deployment: Optional[str] = None
    path: Optional[str] = Field(
        default=None, description="Local directory holding the function's code"
    )


class DatabaseRecord(ResourceRecord):
    enabled: Optional[bool] = None


class CollectionRecord(ResourceRecord):
    database_id: str = Field(alias="databaseId")
    enabled: Optional[bool] = None
    attributes: Optional[list[dict[str, Any]]] = None
    indexes: Optional[list[dict[str, Any]]] = None


class BucketRecord(ResourceRecord):
    enabled: Optional[bool] = None
    maximum_file_size: Optional[int] = Field(default=None, alias="maximumFileSize")


class TeamRecord(ResourceRecord):
    pass


class TopicRecord(ResourceRecord):
    subscribe: Optional[list[str]] = None


class ProjectConfig(BaseModel):
    """The project-local ``baasctl.json`` document.

    Unknown top-level keys (written by other tooling) are preserved.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    project_id: Optional[str] = Field(default=None, alias="projectId")
    project_name: Optional[str] = Field(default=None, alias="projectName")
    endpoint: Optional[str] = None
    settings: Optional[dict[str, Any]] = None
    functions: list[FunctionRecord] = Field(default_factory=list)
    databases: list[DatabaseRecord] = Field(default_factory=list)
    collections: list[CollectionRecord] = Field(default_factory=list)
    buckets: list[BucketRecord] = Field(default_factory=list)
    teams: list[TeamRecord] = Field(default_factory=list)
    topics: list[TopicRecord] = Field(default_factory=list)
