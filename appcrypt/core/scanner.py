"""
Bundle scanning for encrypted Mach-O binaries.

Walks a local copy of an app bundle, reads every regular file with
MachOReader, and keeps the binaries whose cryptid is nonzero. Problems
with individual files are collected as diagnostics and never stop the
scan; only an unreadable bundle root is fatal.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePath
from typing import Iterator, Optional, Union

from appcrypt.core.macho import MachOReader
from appcrypt.core.models import BinaryRecord, Diagnostic, DiagnosticKind, ScanResult
from appcrypt.exceptions import (
    ContainerReadError,
    ScanCancelledError,
    ScanError,
    TruncatedContainerError,
)

logger = logging.getLogger(__name__)

# Outcome of inspecting one file: a record, a diagnostic, or neither
_Outcome = tuple[Optional[BinaryRecord], Optional[Diagnostic]]


def _relative(path: str, root: str) -> str:
    """Path relative to root, with forward slashes."""
    return PurePath(os.path.relpath(path, root)).as_posix()


def _inspect(path: str, root: str) -> _Outcome:
    """Read a single file, turning per-file failures into diagnostics."""
    relative = _relative(path, root)

    try:
        with open(path, "rb") as f:
            record = MachOReader.parse(f, path)
    except TruncatedContainerError as e:
        logger.warning(f"Skipping corrupt Mach-O file {relative}: {e.message}")
        return None, Diagnostic(DiagnosticKind.CORRUPT_CONTAINER, relative, e.message)
    except OSError as e:
        error = ContainerReadError(relative, e.strerror or str(e))
        logger.warning(f"Failed to parse Mach-O binary {relative}: {error}")
        return None, Diagnostic(DiagnosticKind.UNREADABLE_FILE, relative, error.message)

    if record is None or not record.is_encrypted:
        return None, None

    return record.with_path(relative), None


def _walk_files(
    root: str,
    diagnostics: list[Diagnostic],
) -> Iterator[str]:
    """Yield every regular file under root; symlinks are not followed."""

    def on_error(error: OSError) -> None:
        relative = _relative(error.filename, root) if error.filename else root
        logger.warning(f"Failed to read directory {relative}: {error.strerror}")
        diagnostics.append(
            Diagnostic(
                DiagnosticKind.UNREADABLE_DIRECTORY,
                relative,
                error.strerror or str(error),
            )
        )

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames.sort()
        for name in sorted(filenames):
            path = os.path.join(dirpath, name)
            if os.path.islink(path) or not os.path.isfile(path):
                continue
            yield path


def scan_bundle(
    root: Union[str, os.PathLike[str]],
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> ScanResult:
    """
    Find encrypted Mach-O binaries under a bundle root.

    Args:
        root: Local bundle directory.
        workers: Number of threads reading files. 1 reads sequentially.
        cancel_event: Checked between files; when set, the scan stops.

    Returns:
        ScanResult with records sorted by path (relative to root) and the
        diagnostics collected for files and directories that were skipped.

    Raises:
        ScanError: If root is missing, not a directory, or not readable.
        ScanCancelledError: If cancel_event was set during the scan.
    """
    root = os.fspath(root)

    if not os.path.isdir(root):
        reason = "not a directory" if os.path.exists(root) else "no such directory"
        raise ScanError(root, reason)

    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise ScanError(root, e.strerror or str(e)) from e

    logger.debug(f"Scanning bundle {root} with {workers} worker(s)")

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    diagnostics: list[Diagnostic] = []
    outcomes: list[_Outcome] = []
    files_scanned = 0

    if workers <= 1:
        for path in _walk_files(root, diagnostics):
            if cancelled():
                raise ScanCancelledError(root)
            outcomes.append(_inspect(path, root))
            files_scanned += 1
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = []
            for path in _walk_files(root, diagnostics):
                if cancelled():
                    for future in futures:
                        future.cancel()
                    raise ScanCancelledError(root)
                futures.append(executor.submit(_inspect, path, root))

            # Merge only after every worker has finished
            outcomes = [future.result() for future in futures]
            files_scanned = len(futures)

    records: list[BinaryRecord] = []
    for record, diagnostic in outcomes:
        if record is not None:
            logger.debug(f"Collected binary {record}")
            records.append(record)
        if diagnostic is not None:
            diagnostics.append(diagnostic)

    records.sort(key=lambda r: r.path)

    logger.info(
        f"Scanned {files_scanned} file(s) in {root}: "
        f"{len(records)} encrypted binary(ies), {len(diagnostics)} problem(s)"
    )

    return ScanResult(
        root=root,
        records=records,
        diagnostics=diagnostics,
        files_scanned=files_scanned,
    )


def collect_binaries(root: Union[str, os.PathLike[str]]) -> list[BinaryRecord]:
    """Encrypted binaries under root, without diagnostics."""
    return scan_bundle(root).records
