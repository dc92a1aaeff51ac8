"""
Ownership classification of encrypted binaries.

Partitions the binaries found in a bundle between the main app and its
extensions. Extensions are tested in the order the device reported them
and the first one whose bundle path is a prefix of the binary's path
owns it, even when a later extension's path is longer.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from appcrypt.core.models import (
    BinaryRecord,
    ClassificationResult,
    Diagnostic,
    DiagnosticKind,
    SubBundleDescriptor,
)

logger = logging.getLogger(__name__)

STRAY_EXECUTABLE_HINT = (
    "It is very likely that one of the extensions requires a MinimumOSVersion "
    "that is higher than the device's OS. This will result in a binary that "
    "is left encrypted."
)


def find_owner(
    path: str,
    sub_bundles: Sequence[SubBundleDescriptor],
) -> SubBundleDescriptor | None:
    """First sub-bundle whose bundle path is a prefix of path."""
    for sub_bundle in sub_bundles:
        if path.startswith(sub_bundle.bundle_path):
            return sub_bundle
    return None


def classify(
    records: Iterable[BinaryRecord],
    main_executable_path: str,
    sub_bundles: Sequence[SubBundleDescriptor],
) -> ClassificationResult:
    """
    Split binaries into main app and per-extension groups.

    Args:
        records: Encrypted binaries with paths relative to the bundle root.
        main_executable_path: Main executable, relative to the bundle root.
        sub_bundles: Extensions in the order supplied by the device.

    Returns:
        ClassificationResult containing every record exactly once. An
        executable that is neither the main executable nor inside an
        extension goes to the main group and is reported as a
        STRAY_EXECUTABLE diagnostic.

    Raises:
        ValueError: If two records share a path.
    """
    result = ClassificationResult()
    seen: set[str] = set()

    for record in records:
        if record.path in seen:
            raise ValueError(f"Duplicate binary path: {record.path}")
        seen.add(record.path)

        owner = find_owner(record.path, sub_bundles)
        if owner is not None:
            result.sub_bundle_binaries.setdefault(owner.id, {})[record.path] = record
            continue

        if record.is_executable and record.path != main_executable_path:
            logger.warning(f"Executable is not within an extension: {record.path}")
            logger.warning(STRAY_EXECUTABLE_HINT)
            result.diagnostics.append(
                Diagnostic(
                    DiagnosticKind.STRAY_EXECUTABLE,
                    record.path,
                    "Executable is not within an extension and is not the "
                    "main executable",
                )
            )

        result.main_binaries[record.path] = record

    logger.debug(
        f"Classified {result.total} binary(ies): {len(result.main_binaries)} main, "
        f"{len(result.sub_bundle_binaries)} extension group(s)"
    )

    return result
