"""The pull/sync engine.

Synchronises remote project resources into the project-local
``baasctl.json`` and downloads function code next to it.

Modules:
    paginate: Offset/limit pagination over listing endpoints.
    selection: Scope resolution and the :class:`SelectionProvider` prompt seam.
    fetchers: Read-only remote fetchers, one per category.
    materialize: Deployment download and archive extraction.
    reconcile: Volatile-field stripping and upserts into the local store.
    orchestrator: Per-category pipelines and :class:`PullOrchestrator`.

Example::

    ctx = PullContext(services=services, store=LocalConfig.load(), selector=selector)
    await PullOrchestrator(ctx).pull("all")
"""

from baasctl.pull.orchestrator import (
    PIPELINES,
    PULL_ALL,
    Pipeline,
    PullContext,
    PullOrchestrator,
    PullReport,
)
from baasctl.pull.paginate import paginate
from baasctl.pull.selection import (
    InteractiveSelectionProvider,
    ScriptedSelectionProvider,
    SelectionProvider,
    SelectionScope,
    resolve_scope,
)

__all__ = [
    "PIPELINES",
    "PULL_ALL",
    "InteractiveSelectionProvider",
    "Pipeline",
    "PullContext",
    "PullOrchestrator",
    "PullReport",
    "ScriptedSelectionProvider",
    "SelectionProvider",
    "SelectionScope",
    "paginate",
    "resolve_scope",
]
