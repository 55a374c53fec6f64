"""Download and unpack function deployment code.

:func:`materialize_deployment` downloads a deployment's ``.tar.gz`` to a
uniquely named working file, unpacks it into the function's local
directory, and always removes the archive again, whether the download,
the extraction, or neither failed.

Extraction is deliberately lenient: each member goes through the
:mod:`tarfile` ``data`` filter on its own, and members the filter rejects
(absolute paths, links leaving the directory, device files) or that fail
to write are skipped with a warning. An archive that cannot be opened or
whose compressed stream is cut short aborts with
:class:`~baasctl.exceptions.ArchiveError`, as does a destination that
cannot be created.
"""

from __future__ import annotations

import asyncio
import gzip
import tarfile
import time
import zlib
from pathlib import Path
from typing import Any, Optional

from baasctl.exceptions import ArchiveError
from baasctl.output import debug, warning
from baasctl.pull.paginate import check_cancelled
from baasctl.services import Services

# Raised by the decompressor when the stream is cut short or damaged.
_STREAM_ERRORS = (EOFError, zlib.error, gzip.BadGzipFile)


def archive_name(function_id: str) -> str:
    """``<function_id>-<epoch millis>.tar.gz``, unique across repeated pulls."""
    return f"{function_id}-{int(time.time() * 1000)}.tar.gz"


def extract_archive(archive: Path, destination: Path) -> list[str]:
    """Unpack *archive* into *destination*, skipping members that cannot be extracted.

    Existing files in *destination* are kept unless the archive overwrites
    them.

    Returns:
        Names of the members that were written.

    Raises:
        ArchiveError: If the archive is missing, corrupt, or truncated.
    """
    try:
        tar = tarfile.open(archive, "r:*")
    except (tarfile.TarError, OSError, *_STREAM_ERRORS) as exc:
        raise ArchiveError(f"Cannot open deployment archive {archive.name}: {exc}") from exc

    extracted: list[str] = []
    with tar:
        try:
            for member in tar:
                try:
                    tar.extract(member, destination, filter="data")
                except _STREAM_ERRORS:
                    raise
                except (tarfile.FilterError, tarfile.ExtractError, OSError) as exc:
                    warning(f"Skipped {member.name} from {archive.name}: {exc}")
                    continue
                extracted.append(member.name)
        except (tarfile.TarError, *_STREAM_ERRORS) as exc:
            raise ArchiveError(f"Corrupt deployment archive {archive.name}: {exc}") from exc
    return extracted


def write_env_file(destination: Path, variables: list[dict[str, Any]]) -> Path:
    """Write ``KEY=value`` lines for *variables* to ``<destination>/.env``."""
    env_file = destination / ".env"
    env_file.write_text(
        "".join(f"{var['key']}={var.get('value', '')}\n" for var in variables),
        encoding="utf-8",
    )
    return env_file


async def materialize_deployment(
    services: Services,
    function_id: str,
    deployment_id: str,
    destination: Path,
    workdir: Path,
    variables: Optional[list[dict[str, Any]]] = None,
    cancel: Optional[asyncio.Event] = None,
) -> list[str]:
    """Download deployment *deployment_id* of *function_id* into *destination*.

    Args:
        services: Endpoint catalogue used for the download.
        function_id: The function owning the deployment.
        deployment_id: Deployment to fetch; must be non-empty.
        destination: Local directory for the code, created if missing.
        workdir: Directory for the temporary archive; *destination* must
            resolve inside it.
        variables: When given, also written to ``<destination>/.env``.
        cancel: Checked before the download starts.

    Returns:
        Names of the extracted archive members.

    Raises:
        ArchiveError: If *destination* lies outside *workdir*, the archive
            cannot be read, or the code cannot be written locally.
        PullCancelled: If *cancel* is already set.
        BaasctlError: Any transport error from the download.
    """
    check_cancelled(cancel)
    if not destination.resolve().is_relative_to(workdir.resolve()):
        raise ArchiveError(
            f"Refusing to extract {function_id} outside {workdir}: {destination}"
        )

    archive = workdir / archive_name(function_id)
    try:
        await services.download_deployment(function_id, deployment_id, archive)
        destination.mkdir(parents=True, exist_ok=True)
        extracted = await asyncio.to_thread(extract_archive, archive, destination)
        debug(f"Extracted {len(extracted)} entries into {destination}")
        if variables is not None:
            write_env_file(destination, variables)
    except OSError as exc:
        raise ArchiveError(f"Cannot write code for {function_id} to {destination}: {exc}") from exc
    finally:
        archive.unlink(missing_ok=True)
    return extracted
