"""Built-in CLI sub-commands for baasctl.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~baasctl.commands.init` -- write the project-local ``baasctl.json``.
* :mod:`~baasctl.commands.config` -- view and modify global settings.
* :mod:`~baasctl.commands.pull` -- pull remote resources into the project.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config`` and ``pull``) or a plain callback
function registered directly on the root app (for ``init``).
"""
