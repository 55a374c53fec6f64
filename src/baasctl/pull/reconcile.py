"""Merge freshly fetched remote resources into the local store.

Every ``reconcile_*`` function strips server-managed volatile fields,
validates the remainder into its typed record, and upserts it into a
:class:`~baasctl.config.LocalConfig`. Re-running with the same remote
state leaves the store unchanged.
"""

from __future__ import annotations

from typing import Any, Iterable, TypeVar

from pydantic import ValidationError

from baasctl.config import LocalConfig
from baasctl.exceptions import RecordValidationError
from baasctl.models import (
    BucketRecord,
    CollectionRecord,
    DatabaseRecord,
    FunctionRecord,
    ResourceRecord,
    TeamRecord,
    TopicRecord,
)

VOLATILE_FIELDS = ("$createdAt", "$updatedAt", "total", "prefs")
"""Timestamps, computed counts and preference blobs; never persisted."""

FUNCTION_REMOTE_ONLY_FIELDS = ("vars",)
"""Function variables may hold secrets; they only ever reach ``.env``."""

R = TypeVar("R", bound=ResourceRecord)


def strip_volatile(record: dict[str, Any], extra: Iterable[str] = ()) -> dict[str, Any]:
    """Return a copy of *record* without volatile (and *extra*) keys."""
    drop = set(VOLATILE_FIELDS).union(extra)
    return {key: value for key, value in record.items() if key not in drop}


def _validate(model: type[R], data: dict[str, Any]) -> R:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        label = model.__name__.removesuffix("Record").lower()
        raise RecordValidationError(
            f"Unexpected {label} payload for '{data.get('$id', '?')}': {exc}"
        ) from exc


def function_path(function_id: str) -> str:
    """Default local directory (relative to the config file) for a new function."""
    return f"functions/{function_id}"


# --- project ---


def settings_from_project(project: dict[str, Any]) -> dict[str, Any]:
    """Group the flat project payload into ``services`` and ``auth`` sections.

    Keys the payload does not carry are left out.
    """
    settings = {
        "services": {
            "account": project.get("serviceStatusForAccount"),
            "avatars": project.get("serviceStatusForAvatars"),
            "databases": project.get("serviceStatusForDatabases"),
            "locale": project.get("serviceStatusForLocale"),
            "health": project.get("serviceStatusForHealth"),
            "storage": project.get("serviceStatusForStorage"),
            "teams": project.get("serviceStatusForTeams"),
            "users": project.get("serviceStatusForUsers"),
            "functions": project.get("serviceStatusForFunctions"),
            "graphql": project.get("serviceStatusForGraphql"),
            "messaging": project.get("serviceStatusForMessaging"),
        },
        "auth": {
            "methods": {
                "jwt": project.get("authJWT"),
                "phone": project.get("authPhone"),
                "invites": project.get("authInvites"),
                "anonymous": project.get("authAnonymous"),
                "email-otp": project.get("authEmailOtp"),
                "magic-url": project.get("authUsersAuthMagicURL"),
                "email-password": project.get("authEmailPassword"),
            },
            "security": {
                "duration": project.get("authDuration"),
                "limit": project.get("authLimit"),
                "sessionsLimit": project.get("authSessionsLimit"),
                "passwordHistory": project.get("authPasswordHistory"),
                "passwordDictionary": project.get("authPasswordDictionary"),
                "personalDataCheck": project.get("authPersonalDataCheck"),
                "sessionAlerts": project.get("authSessionAlerts"),
                "mockNumbers": project.get("authMockNumbers"),
            },
        },
    }
    return _prune(settings)


def _prune(value: dict[str, Any]) -> dict[str, Any]:
    pruned = {}
    for key, item in value.items():
        if isinstance(item, dict):
            item = _prune(item)
            if not item:
                continue
        elif item is None:
            continue
        pruned[key] = item
    return pruned


def reconcile_project(store: LocalConfig, project: dict[str, Any]) -> dict[str, Any]:
    """Record the project's id, name and normalised settings.

    Returns:
        The settings written to the store.
    """
    if not project.get("$id"):
        raise RecordValidationError("Unexpected project payload: missing '$id'")
    settings = settings_from_project(project)
    store.set_project(project["$id"], project.get("name"), settings)
    return settings


# --- functions ---


def reconcile_function(store: LocalConfig, remote: dict[str, Any]) -> FunctionRecord:
    """Upsert one function, keeping the locally chosen ``path`` of a known function."""
    data = strip_volatile(remote, FUNCTION_REMOTE_ONLY_FIELDS)
    existing = store.get_function(data.get("$id", ""))
    if existing is not None:
        data["path"] = existing.path or function_path(existing.id)
        record = _validate(FunctionRecord, data)
        store.update_function(record.id, record)
    else:
        data["path"] = function_path(data.get("$id", ""))
        record = _validate(FunctionRecord, data)
        store.add_function(record)
    return record


# --- everything else ---


def reconcile_database(store: LocalConfig, remote: dict[str, Any]) -> DatabaseRecord:
    record = _validate(DatabaseRecord, strip_volatile(remote))
    store.add_database(record)
    return record


def reconcile_collection(store: LocalConfig, remote: dict[str, Any]) -> CollectionRecord:
    record = _validate(CollectionRecord, strip_volatile(remote))
    store.add_collection(record)
    return record


def reconcile_bucket(store: LocalConfig, remote: dict[str, Any]) -> BucketRecord:
    record = _validate(BucketRecord, strip_volatile(remote))
    store.add_bucket(record)
    return record


def reconcile_team(store: LocalConfig, remote: dict[str, Any]) -> TeamRecord:
    record = _validate(TeamRecord, strip_volatile(remote))
    store.add_team(record)
    return record


def reconcile_topic(store: LocalConfig, remote: dict[str, Any]) -> TopicRecord:
    record = _validate(TopicRecord, strip_volatile(remote))
    store.add_messaging_topic(record)
    return record
