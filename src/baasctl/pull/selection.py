"""Selection scope resolution and the prompt seam of the pull engine.

Two pieces live here:

* :func:`resolve_scope` decides, per category, whether a pull covers every
  remote item (``ALL``), a list of ids given on the command line
  (``EXPLICIT``), or whatever the user picks (``INTERACTIVE``).
* :class:`SelectionProvider` is the only place the engine asks the user
  anything. :class:`InteractiveSelectionProvider` renders questionary
  prompts; :class:`ScriptedSelectionProvider` replays canned answers for
  ``--no-input`` runs and tests.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from baasctl.exceptions import InvalidUsageError, PullCancelled
from baasctl.models import ResourceCategory


class ScopeKind(str, enum.Enum):
    ALL = "all"
    EXPLICIT = "explicit"
    INTERACTIVE = "interactive"


class SelectionScope(BaseModel):
    """The resolved scope of one pull. ``ids`` is only set for ``EXPLICIT``."""

    kind: ScopeKind
    ids: list[str] = Field(default_factory=list)

    @classmethod
    def all(cls) -> SelectionScope:
        return cls(kind=ScopeKind.ALL)

    @classmethod
    def explicit(cls, ids: Sequence[str]) -> SelectionScope:
        return cls(kind=ScopeKind.EXPLICIT, ids=list(ids))

    @classmethod
    def interactive(cls) -> SelectionScope:
        return cls(kind=ScopeKind.INTERACTIVE)


def resolve_scope(bulk: bool, ids: Optional[Sequence[str]] = None) -> SelectionScope:
    """Pick the scope for one category.

    Bulk mode wins over explicit ids; explicit ids win over prompting.
    """
    if bulk:
        return SelectionScope.all()
    if ids:
        return SelectionScope.explicit(ids)
    return SelectionScope.interactive()


CATEGORY_LABELS: dict[ResourceCategory, str] = {
    ResourceCategory.PROJECT: "Settings (Project)",
    ResourceCategory.FUNCTIONS: "Functions (Deployment)",
    ResourceCategory.COLLECTIONS: "Collections (Databases)",
    ResourceCategory.BUCKETS: "Buckets (Storage)",
    ResourceCategory.TEAMS: "Teams (Auth)",
    ResourceCategory.TOPICS: "Topics (Messaging)",
}


def _describe(item: dict[str, Any]) -> str:
    return f"{item.get('name', '')} ({item['$id']})"


class SelectionProvider(ABC):
    """Answers the questions a pull may need to ask.

    Each method is called at most once per category, and only when the
    resolved scope is ``INTERACTIVE`` (or, for :meth:`confirm_code_pull`,
    when ``--force`` was not given). The engine calls them through
    :func:`asyncio.to_thread`, so implementations may block.
    """

    @abstractmethod
    def choose_category(self) -> Optional[ResourceCategory]:
        """Return the category to pull, or ``None`` to do nothing."""

    @abstractmethod
    def choose_functions(self, functions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Return the subset of *functions* to pull (possibly empty)."""

    @abstractmethod
    def choose_databases(self, databases: list[dict[str, Any]]) -> list[str]:
        """Return the ids of the databases whose collections should be pulled."""

    @abstractmethod
    def confirm_code_pull(self) -> bool:
        """Return True to download the latest deployment's source code."""


class InteractiveSelectionProvider(SelectionProvider):
    """questionary-backed prompts for terminal sessions.

    Args:
        no_input: When True (``--no-input``) every prompt raises
            :class:`InvalidUsageError` instead of blocking on stdin.
    """

    def __init__(self, no_input: bool = False) -> None:
        self._no_input = no_input

    def choose_category(self) -> Optional[ResourceCategory]:
        import questionary

        self._require_input("pick a resource to pull (use 'pull all' or a subcommand)")
        answer = questionary.select(
            "Which resources would you like to pull?",
            choices=[
                questionary.Choice(title=label, value=category.value)
                for category, label in CATEGORY_LABELS.items()
            ],
        ).ask()
        if answer is None:
            raise PullCancelled("Pull cancelled.")
        return ResourceCategory(answer)

    def choose_functions(self, functions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        import questionary

        self._require_input("select functions (use --all or --id)")
        answer = questionary.checkbox(
            "Which functions would you like to pull?",
            choices=[
                questionary.Choice(title=_describe(func), value=index)
                for index, func in enumerate(functions)
            ],
        ).ask()
        if answer is None:
            raise PullCancelled("Pull cancelled.")
        return [functions[index] for index in answer]

    def choose_databases(self, databases: list[dict[str, Any]]) -> list[str]:
        import questionary

        self._require_input("select databases (use --all or --id)")
        answer = questionary.checkbox(
            "From which database would you like to pull collections?",
            choices=[
                questionary.Choice(title=_describe(database), value=database["$id"])
                for database in databases
            ],
        ).ask()
        if answer is None:
            raise PullCancelled("Pull cancelled.")
        return list(answer)

    def confirm_code_pull(self) -> bool:
        import questionary

        self._require_input("confirm the code download (use --force or --no-code)")
        answer = questionary.confirm(
            "Do you want to pull source code of the latest deployment?",
            default=True,
        ).ask()
        if answer is None:
            raise PullCancelled("Pull cancelled.")
        return bool(answer)

    def _require_input(self, what: str) -> None:
        if self._no_input:
            raise InvalidUsageError(f"Input is disabled; cannot {what}.")


class ScriptedSelectionProvider(SelectionProvider):
    """Replays pre-decided answers.

    Any question without a scripted answer raises
    :class:`InvalidUsageError`, so a non-interactive run never stalls.

    Args:
        category: Answer for :meth:`choose_category`.
        function_ids: Ids to keep in :meth:`choose_functions`, in remote order.
        database_ids: Answer for :meth:`choose_databases`.
        pull_code: Answer for :meth:`confirm_code_pull`.
    """

    def __init__(
        self,
        category: Optional[ResourceCategory] = None,
        function_ids: Optional[Sequence[str]] = None,
        database_ids: Optional[Sequence[str]] = None,
        pull_code: Optional[bool] = None,
    ) -> None:
        self.category = category
        self.function_ids = None if function_ids is None else list(function_ids)
        self.database_ids = None if database_ids is None else list(database_ids)
        self.pull_code = pull_code
        self.asked: list[str] = []

    def choose_category(self) -> Optional[ResourceCategory]:
        self.asked.append("category")
        if self.category is None:
            raise InvalidUsageError("No resource category given.")
        return self.category

    def choose_functions(self, functions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.asked.append("functions")
        if self.function_ids is None:
            raise InvalidUsageError("No functions selected; pass --all or --id.")
        wanted = set(self.function_ids)
        return [func for func in functions if func["$id"] in wanted]

    def choose_databases(self, databases: list[dict[str, Any]]) -> list[str]:
        self.asked.append("databases")
        if self.database_ids is None:
            raise InvalidUsageError("No databases selected; pass --all or --id.")
        return list(self.database_ids)

    def confirm_code_pull(self) -> bool:
        self.asked.append("code")
        if self.pull_code is None:
            raise InvalidUsageError("Code download not confirmed; pass --force or --no-code.")
        return self.pull_code
