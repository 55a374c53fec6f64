"""Tests for baasctl.pull.orchestrator -- pipelines, ordering, and rollback."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from baasctl.config import LocalConfig
from baasctl.exceptions import (
    ArchiveError,
    ConnectionError_,
    ProjectNotInitializedError,
    PullCancelled,
    PullError,
    ServerError,
)
from baasctl.models import PULL_ORDER, FailurePolicy, ResourceCategory
from baasctl.pull.orchestrator import (
    CATEGORY_FAILURE,
    PIPELINES,
    Pipeline,
    PullContext,
    PullOrchestrator,
    PullReport,
)
from baasctl.pull.selection import ScriptedSelectionProvider


def _remote(fake_services, node_tarball: bytes):
    return fake_services(
        project={"$id": "proj-1", "name": "Demo", "serviceStatusForTeams": True},
        functions=[
            {"$id": "checkout", "name": "Checkout", "deployment": "dep-1", "vars": [{"key": "K", "value": "V"}]},
            {"$id": "mailer", "name": "Mailer", "deployment": "dep-2"},
            {"$id": "draft", "name": "Draft", "deployment": ""},
        ],
        databases=[{"$id": "db1", "name": "Main", "$createdAt": "x"}],
        collections={"db1": [{"$id": "users", "databaseId": "db1", "name": "Users"}]},
        buckets=[{"$id": "avatars", "name": "Avatars", "maximumFileSize": 1024}],
        teams=[{"$id": "ops", "name": "Ops", "total": 3, "prefs": {}}],
        topics=[{"$id": "news", "name": "News", "total": 0}],
        archives={"dep-1": node_tarball, "dep-2": node_tarball},
    )


def _context(services, store: LocalConfig, selector=None, options=None) -> PullContext:
    ctx = PullContext(
        services=services,
        store=store,
        selector=selector or ScriptedSelectionProvider(),
    )
    if options is not None:
        ctx.options = options
    return ctx


def _on_disk(store: LocalConfig) -> dict:
    return json.loads(store.path.read_text())


class RecordingPipeline(Pipeline):
    def __init__(self, category: ResourceCategory, log: list[ResourceCategory]) -> None:
        self.category = category
        self._log = log

    async def run(self, ctx: PullContext) -> PullReport:
        self._log.append(self.category)
        return PullReport(self.category)


class TestRegistry:
    def test_every_category_has_a_pipeline(self) -> None:
        assert set(PIPELINES) == set(ResourceCategory)
        for category, pipeline in PIPELINES.items():
            assert pipeline.category is category


class TestPullAll:
    def test_runs_each_category_once_in_order(self, store, fake_services) -> None:
        log: list[ResourceCategory] = []
        pipelines = {c: RecordingPipeline(c, log) for c in ResourceCategory}
        orchestrator = PullOrchestrator(_context(fake_services(), store), pipelines)

        reports = asyncio.run(orchestrator.pull("all"))

        assert log == list(PULL_ORDER)
        assert [r.category for r in reports] == list(PULL_ORDER)

    def test_end_to_end(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = _remote(fake_services, node_tarball)
        ctx = _context(services, store, options=pull_options(with_variables=True))

        asyncio.run(PullOrchestrator(ctx).pull("all"))

        data = _on_disk(store)
        assert data["projectId"] == "proj-1"
        assert data["settings"] == {"services": {"teams": True}}
        assert [f["$id"] for f in data["functions"]] == ["checkout", "mailer", "draft"]
        assert all("vars" not in f for f in data["functions"])
        assert data["databases"] == [{"$id": "db1", "name": "Main"}]
        assert data["collections"] == [{"$id": "users", "databaseId": "db1", "name": "Users"}]
        assert data["buckets"][0]["maximumFileSize"] == 1024
        assert data["teams"] == [{"$id": "ops", "name": "Ops"}]
        assert data["topics"] == [{"$id": "news", "name": "News"}]

        checkout = store.base_dir / "functions" / "checkout"
        assert (checkout / "main.js").exists()
        assert (checkout / ".env").read_text() == "K=V\n"
        assert not (store.base_dir / "functions" / "draft").exists()
        assert list(store.base_dir.glob("*.tar.gz")) == []

    def test_all_forces_bulk_selection(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        selector = ScriptedSelectionProvider()
        ctx = _context(
            _remote(fake_services, node_tarball), store, selector, pull_options(code=False)
        )
        asyncio.run(PullOrchestrator(ctx).pull("all"))
        assert selector.asked == []

    def test_second_pull_is_idempotent(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = _remote(fake_services, node_tarball)
        ctx = _context(services, store, options=pull_options(code=False))

        asyncio.run(PullOrchestrator(ctx).pull("all"))
        first = store.path.read_text()
        asyncio.run(PullOrchestrator(ctx).pull("all"))
        assert store.path.read_text() == first


class TestSingleCategory:
    def test_no_category_asks_selector(self, store, fake_services, quiet_output) -> None:
        selector = ScriptedSelectionProvider(category=ResourceCategory.TEAMS)
        services = fake_services(teams=[{"$id": "ops", "name": "Ops"}])

        reports = asyncio.run(PullOrchestrator(_context(services, store, selector)).pull())

        assert selector.asked == ["category"]
        assert [r.category for r in reports] == [ResourceCategory.TEAMS]
        assert [c[0] for c in services.calls] == ["list_teams"]

    def test_empty_function_selection_is_noop(self, store, fake_services, quiet_output) -> None:
        store.flush()
        before = store.path.read_text()
        services = fake_services(functions=[{"$id": "a", "deployment": "d"}])
        selector = ScriptedSelectionProvider(function_ids=[])

        reports = asyncio.run(
            PullOrchestrator(_context(services, store, selector)).pull(
                ResourceCategory.FUNCTIONS
            )
        )

        assert reports[0].pulled == 0
        assert services.calls_to("download_deployment") == []
        assert selector.asked == ["functions"]
        assert store.path.read_text() == before

    def test_no_code_skips_download_and_prompt(
        self, store, fake_services, node_tarball, pull_options, plain_output, capsys
    ) -> None:
        services = _remote(fake_services, node_tarball)
        selector = ScriptedSelectionProvider()
        ctx = _context(
            services, store, selector, pull_options(all=True, code=False, force=False)
        )

        asyncio.run(PullOrchestrator(ctx).pull(ResourceCategory.FUNCTIONS))

        assert services.calls_to("download_deployment") == []
        assert selector.asked == []
        assert "Source code download skipped." in capsys.readouterr().err
        assert len(store.get_functions()) == 3

    def test_code_prompt_declined(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = _remote(fake_services, node_tarball)
        selector = ScriptedSelectionProvider(pull_code=False)
        ctx = _context(services, store, selector, pull_options(all=True, force=False))

        asyncio.run(PullOrchestrator(ctx).pull(ResourceCategory.FUNCTIONS))

        assert selector.asked == ["code"]
        assert services.calls_to("download_deployment") == []

    def test_explicit_function_ids(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = _remote(fake_services, node_tarball)
        ctx = _context(services, store, options=pull_options(ids=["mailer"]))

        asyncio.run(PullOrchestrator(ctx).pull(ResourceCategory.FUNCTIONS))

        assert [f.id for f in store.get_functions()] == ["mailer"]
        assert services.calls_to("download_deployment") == [("mailer", "dep-2")]

    def test_project_requires_id(self, isolated_config: Path, fake_services) -> None:
        store = LocalConfig(isolated_config / "baasctl.json")
        with pytest.raises(ProjectNotInitializedError):
            asyncio.run(
                PullOrchestrator(_context(fake_services(), store)).pull(
                    ResourceCategory.PROJECT
                )
            )
        assert not store.path.exists()


class TestFailures:
    def _broken_remote(self, fake_services, node_tarball):
        services = _remote(fake_services, node_tarball)
        services.archives["dep-1"] = b"not an archive"
        return services

    def test_abort_rolls_back_category(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        store.flush()
        before = store.path.read_text()
        ctx = _context(
            self._broken_remote(fake_services, node_tarball),
            store,
            options=pull_options(all=True),
        )

        with pytest.raises(ArchiveError):
            asyncio.run(PullOrchestrator(ctx).pull(ResourceCategory.FUNCTIONS))

        assert store.get_functions() == []
        assert store.path.read_text() == before

    def test_earlier_categories_stay_flushed(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        ctx = _context(
            self._broken_remote(fake_services, node_tarball),
            store,
            options=pull_options(),
        )

        with pytest.raises(ArchiveError):
            asyncio.run(PullOrchestrator(ctx).pull("all"))

        data = _on_disk(store)
        assert data["settings"] == {"services": {"teams": True}}
        assert "functions" not in data
        assert "teams" not in data

    def test_keep_going_collects_failures(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = self._broken_remote(fake_services, node_tarball)
        ctx = _context(
            services,
            store,
            options=pull_options(failure_policy=FailurePolicy.CONTINUE),
        )

        with pytest.raises(PullError) as excinfo:
            asyncio.run(PullOrchestrator(ctx).pull("all"))

        assert [f[0] for f in excinfo.value.failures] == ["checkout"]
        assert excinfo.value.exit_code == 9
        data = _on_disk(store)
        assert [f["$id"] for f in data["functions"]] == ["checkout", "mailer", "draft"]
        assert data["teams"] == [{"$id": "ops", "name": "Ops"}]
        assert (store.base_dir / "functions" / "mailer" / "main.js").exists()

    def test_keep_going_isolates_local_write_errors(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        occupied = store.base_dir / "functions" / "checkout"
        occupied.parent.mkdir()
        occupied.write_text("not a directory")
        ctx = _context(
            _remote(fake_services, node_tarball),
            store,
            options=pull_options(all=True, failure_policy=FailurePolicy.CONTINUE),
        )

        with pytest.raises(PullError) as excinfo:
            asyncio.run(PullOrchestrator(ctx).pull(ResourceCategory.FUNCTIONS))

        assert [f[0] for f in excinfo.value.failures] == ["checkout"]
        assert (store.base_dir / "functions" / "mailer" / "main.js").exists()
        assert [f["$id"] for f in _on_disk(store)["functions"]] == ["checkout", "mailer", "draft"]

    def test_keep_going_isolates_transport_errors(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = _remote(fake_services, node_tarball)
        download = services.download_deployment

        async def flaky_download(function_id, deployment_id, destination):
            if function_id == "checkout":
                raise ConnectionError_("Download failed: peer closed connection")
            return await download(function_id, deployment_id, destination)

        services.download_deployment = flaky_download
        ctx = _context(
            services,
            store,
            options=pull_options(all=True, failure_policy=FailurePolicy.CONTINUE),
        )

        with pytest.raises(PullError) as excinfo:
            asyncio.run(PullOrchestrator(ctx).pull(ResourceCategory.FUNCTIONS))

        assert excinfo.value.failures == [
            ("checkout", "Download failed: peer closed connection")
        ]
        assert (store.base_dir / "functions" / "mailer" / "main.js").exists()

    def _failing_teams(self, fake_services, node_tarball):
        services = _remote(fake_services, node_tarball)

        async def list_teams(queries=None):
            raise ServerError("HTTP 500: down")

        services.list_teams = list_teams
        return services

    def test_keep_going_continues_after_failed_category(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        ctx = _context(
            self._failing_teams(fake_services, node_tarball),
            store,
            options=pull_options(failure_policy=FailurePolicy.CONTINUE),
        )

        with pytest.raises(PullError) as excinfo:
            asyncio.run(PullOrchestrator(ctx).pull("all"))

        assert excinfo.value.failures == [(CATEGORY_FAILURE, "HTTP 500: down")]
        assert [t.id for t in store.get_messaging_topics()] == ["news"]
        data = _on_disk(store)
        assert "teams" not in data
        assert data["topics"] == [{"$id": "news", "name": "News"}]

    def test_failed_category_stops_run_by_default(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        ctx = _context(
            self._failing_teams(fake_services, node_tarball),
            store,
            options=pull_options(),
        )

        with pytest.raises(ServerError):
            asyncio.run(PullOrchestrator(ctx).pull("all"))

        assert store.get_messaging_topics() == []
        assert "topics" not in _on_disk(store)

    def test_cancel_rolls_back_and_stops(
        self, store, fake_services, node_tarball, pull_options, quiet_output
    ) -> None:
        services = _remote(fake_services, node_tarball)

        async def run() -> None:
            ctx = _context(services, store, options=pull_options(all=True))
            ctx.cancel.set()
            await PullOrchestrator(ctx).pull(ResourceCategory.TEAMS)

        with pytest.raises(PullCancelled):
            asyncio.run(run())
        assert services.calls == []
        assert store.get_teams() == []
