"""baasctl -- command-line client for a backend-as-a-service platform.

The heart of the package is the ``pull`` workflow, which synchronises remote
project resources (settings, functions, database collections, storage
buckets, teams and messaging topics) into a project-local ``baasctl.json``
file and downloads function deployment code next to it.

Typical workflow::

    baasctl init --project-id my-project --endpoint https://cloud.example.com/v1
    baasctl pull all --force

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models for configuration and pulled resource records.
    config: XDG-aware global configuration and the project-local store.
    services: Thin async wrappers around the REST endpoints pull consumes.
    pull: The pull/sync engine (paginator, selector, fetchers,
        materializer, reconciler, orchestrator).
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
