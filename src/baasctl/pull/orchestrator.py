"""Pull orchestration: one pipeline per resource category.

A :class:`Pipeline` knows how to pull a single
:class:`~baasctl.models.ResourceCategory`: it resolves the selection
scope, drives the fetchers, materialises code where needed, and hands
every remote record to the reconciler. :data:`PIPELINES` maps each
category to its pipeline and is checked for completeness at import time.

:class:`PullOrchestrator` runs pipelines against a shared
:class:`PullContext`. Each category is applied to the local store
all-or-nothing: the store is snapshotted first, restored if the pipeline
raises (including on cancellation), and flushed to disk once the
category succeeds.
"""

from __future__ import annotations

import asyncio
import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Literal, Mapping, Optional, Union

from baasctl.config import LocalConfig
from baasctl.exceptions import (
    BaasctlError,
    ProjectNotInitializedError,
    PullCancelled,
    PullError,
)
from baasctl.models import (
    PULL_ORDER,
    FailurePolicy,
    PullOptions,
    ResourceCategory,
    ResourceRecord,
)
from baasctl.output import debug, error, info, print_table, success, warning
from baasctl.pull.fetchers import (
    fetch_buckets,
    fetch_collections,
    fetch_functions,
    fetch_project,
    fetch_teams,
    fetch_topics,
)
from baasctl.pull.materialize import materialize_deployment
from baasctl.pull.paginate import check_cancelled
from baasctl.pull.reconcile import (
    function_path,
    reconcile_bucket,
    reconcile_collection,
    reconcile_database,
    reconcile_function,
    reconcile_project,
    reconcile_team,
    reconcile_topic,
)
from baasctl.pull.selection import SelectionProvider, resolve_scope
from baasctl.services import Services

PULL_ALL = "all"

# Resource column used when a whole category failed.
CATEGORY_FAILURE = "*"


@dataclass
class PullContext:
    """Everything a pipeline needs for one invocation.

    Attributes:
        services: Endpoint catalogue bound to an open client.
        store: The project-local config being reconciled into.
        selector: Answers interactive questions.
        options: Flags shared by every category.
        cancel: Set from the SIGINT handler; checked between steps.
        project_id: Effective project id; falls back to the store's.
    """

    services: Services
    store: LocalConfig
    selector: SelectionProvider
    options: PullOptions = field(default_factory=PullOptions)
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    project_id: Optional[str] = None

    @property
    def workdir(self) -> Path:
        """Directory that function paths and temporary archives are relative to."""
        return self.store.base_dir


@dataclass
class PullReport:
    category: ResourceCategory
    pulled: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)


class Pipeline(ABC):
    """Pulls one resource category into ``ctx.store``."""

    category: ResourceCategory

    @abstractmethod
    async def run(self, ctx: PullContext) -> PullReport:
        """Fetch, materialise, and reconcile this category."""


class ProjectPipeline(Pipeline):
    category = ResourceCategory.PROJECT

    async def run(self, ctx: PullContext) -> PullReport:
        project_id = ctx.project_id or ctx.store.get_project()["projectId"]
        if not project_id:
            raise ProjectNotInitializedError()

        info("Fetching project ...")
        project = await fetch_project(ctx.services, project_id)
        reconcile_project(ctx.store, project)
        success("Successfully pulled all project settings.")
        return PullReport(self.category, pulled=1)


class FunctionsPipeline(Pipeline):
    """Functions plus, optionally, the code of their active deployment."""

    category = ResourceCategory.FUNCTIONS

    async def run(self, ctx: PullContext) -> PullReport:
        options = ctx.options
        report = PullReport(self.category)

        info("Fetching functions ...")
        scope = resolve_scope(options.all, options.ids)
        functions = await fetch_functions(ctx.services, scope, ctx.selector, ctx.cancel)
        if not functions:
            info("No functions found.")
            return report

        pull_code = options.code
        if pull_code and not options.force:
            pull_code = await asyncio.to_thread(ctx.selector.confirm_code_pull)
        if not pull_code:
            warning("Source code download skipped.")

        info(f"Pulling {len(functions)} functions")
        for remote in functions:
            check_cancelled(ctx.cancel)
            record = reconcile_function(ctx.store, remote)
            label = record.name or record.id

            if not pull_code:
                report.pulled += 1
                success(f"Pulled {label} settings")
                continue
            if not record.deployment:
                report.pulled += 1
                warning(f"{label} has no active deployment; pulled settings only")
                continue

            variables = (remote.get("vars") or []) if options.with_variables else None
            try:
                await materialize_deployment(
                    ctx.services,
                    record.id,
                    record.deployment,
                    destination=ctx.workdir / (record.path or function_path(record.id)),
                    workdir=ctx.workdir,
                    variables=variables,
                    cancel=ctx.cancel,
                )
            except PullCancelled:
                raise
            except BaasctlError as exc:
                if options.failure_policy is FailurePolicy.ABORT:
                    raise
                error(f"Failed to pull code for {label}: {exc}")
                report.failures.append((record.id, str(exc)))
                continue

            report.pulled += 1
            success(f"Pulled {label} code and settings")

        success(f"Successfully pulled {report.pulled} functions.")
        return report


class CollectionsPipeline(Pipeline):
    """Databases and every collection in them."""

    category = ResourceCategory.COLLECTIONS

    async def run(self, ctx: PullContext) -> PullReport:
        report = PullReport(self.category)

        info("Fetching collections ...")
        scope = resolve_scope(ctx.options.all, ctx.options.ids)
        bundles = await fetch_collections(ctx.services, scope, ctx.selector, ctx.cancel)
        if not bundles:
            info("No collections found.")
            return report

        for bundle in bundles:
            check_cancelled(ctx.cancel)
            database = reconcile_database(ctx.store, bundle.database)
            info(f"Found {bundle.total} collections in {database.name or database.id}")
            for collection in bundle.collections:
                info(f"Fetching {collection.get('name') or collection['$id']} ...")
                reconcile_collection(ctx.store, {"databaseId": database.id, **collection})
                report.pulled += 1

        success(
            f"Successfully pulled {report.pulled} collections "
            f"from {len(bundles)} databases."
        )
        return report


Fetcher = Callable[[Services, Optional[asyncio.Event]], Awaitable[list[dict[str, Any]]]]
Reconciler = Callable[[LocalConfig, dict[str, Any]], ResourceRecord]


class ListingPipeline(Pipeline):
    """A category that is always pulled in full with no selection step.

    Args:
        category: The category handled.
        fetcher: Returns every remote item of the category.
        reconciler: Upserts one item into the store.
        noun: Plural label used in messages, e.g. ``"buckets"``.
    """

    def __init__(
        self,
        category: ResourceCategory,
        fetcher: Fetcher,
        reconciler: Reconciler,
        noun: str,
    ) -> None:
        self.category = category
        self._fetcher = fetcher
        self._reconciler = reconciler
        self._noun = noun

    async def run(self, ctx: PullContext) -> PullReport:
        report = PullReport(self.category)

        info(f"Fetching {self._noun} ...")
        items = await self._fetcher(ctx.services, ctx.cancel)
        if not items:
            info(f"No {self._noun} found.")
            return report

        info(f"Found {len(items)} {self._noun}")
        for item in items:
            check_cancelled(ctx.cancel)
            record = self._reconciler(ctx.store, item)
            debug(f"Pulled {record.name or record.id}")
            report.pulled += 1

        success(f"Successfully pulled {report.pulled} {self._noun}.")
        return report


PIPELINES: dict[ResourceCategory, Pipeline] = {
    pipeline.category: pipeline
    for pipeline in (
        ProjectPipeline(),
        FunctionsPipeline(),
        CollectionsPipeline(),
        ListingPipeline(ResourceCategory.BUCKETS, fetch_buckets, reconcile_bucket, "buckets"),
        ListingPipeline(ResourceCategory.TEAMS, fetch_teams, reconcile_team, "teams"),
        ListingPipeline(ResourceCategory.TOPICS, fetch_topics, reconcile_topic, "topics"),
    )
}

_unhandled = set(ResourceCategory) - set(PIPELINES)
if _unhandled:  # pragma: no cover
    raise RuntimeError(f"No pull pipeline for: {sorted(c.value for c in _unhandled)}")


class PullOrchestrator:
    """Runs pull pipelines against one :class:`PullContext`.

    Args:
        ctx: Shared services, store, selector, and options.
        pipelines: Category registry; defaults to :data:`PIPELINES`.
    """

    def __init__(
        self,
        ctx: PullContext,
        pipelines: Optional[Mapping[ResourceCategory, Pipeline]] = None,
    ) -> None:
        self.ctx = ctx
        self.pipelines = dict(PIPELINES if pipelines is None else pipelines)

    async def pull(
        self,
        category: Union[ResourceCategory, Literal["all"], None] = None,
    ) -> list[PullReport]:
        """Pull *category*, every category (``"all"``), or one the user picks.

        ``"all"`` runs each registered pipeline exactly once in
        :data:`~baasctl.models.PULL_ORDER` with bulk selection forced on.
        With no category the selector is asked for one; a ``None`` answer
        pulls nothing.

        Returns:
            One report per category run.

        Under :attr:`FailurePolicy.CONTINUE` a category that fails as a
        whole is rolled back and recorded, and the next category still runs.

        Raises:
            PullError: Under :attr:`FailurePolicy.CONTINUE`, after every
                category has run, if any resource or category failed.
            PullCancelled: If the cancel event was set.
        """
        ctx = self.ctx
        if category == PULL_ALL:
            ctx = dataclasses.replace(
                ctx, options=ctx.options.model_copy(update={"all": True})
            )
            categories = [c for c in PULL_ORDER if c in self.pipelines]
        elif category is None:
            chosen = await asyncio.to_thread(ctx.selector.choose_category)
            if chosen is None:
                info("Nothing to pull.")
                return []
            categories = [chosen]
        else:
            categories = [ResourceCategory(category)]

        reports = []
        for c in categories:
            try:
                reports.append(await self._run(ctx, c))
            except PullCancelled:
                raise
            except BaasctlError as exc:
                if ctx.options.failure_policy is FailurePolicy.ABORT:
                    raise
                error(f"Failed to pull {c.value}: {exc}")
                reports.append(PullReport(c, failures=[(CATEGORY_FAILURE, str(exc))]))
        self._raise_for_failures(reports)
        return reports

    async def _run(self, ctx: PullContext, category: ResourceCategory) -> PullReport:
        check_cancelled(ctx.cancel)
        pipeline = self.pipelines[category]
        snapshot = ctx.store.snapshot()
        try:
            report = await pipeline.run(ctx)
        except BaseException:
            ctx.store.restore(snapshot)
            debug(f"Rolled back local changes for {category.value}")
            raise
        ctx.store.flush()
        return report

    @staticmethod
    def _raise_for_failures(reports: list[PullReport]) -> None:
        rows = [
            [report.category.value, resource_id, message]
            for report in reports
            for resource_id, message in report.failures
        ]
        if not rows:
            return
        print_table(["Category", "Resource", "Error"], rows, title="Failed resources")
        raise PullError(
            f"{len(rows)} resource(s) failed to pull.",
            failures=[(row[1], row[2]) for row in rows],
        )
