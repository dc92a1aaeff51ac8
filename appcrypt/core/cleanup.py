"""
Removal of non-essential metadata from a pulled app bundle.

The names to remove are configuration: files are only removed from the
bundle root, directories are removed wherever they occur in the tree.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, Union

from appcrypt.constants import REMOVE_BUNDLE_DIRS, REMOVE_BUNDLE_FILES

logger = logging.getLogger(__name__)


def cleanup_bundle(
    root: Union[str, os.PathLike[str]],
    remove_files: Iterable[str] = REMOVE_BUNDLE_FILES,
    remove_dirs: Iterable[str] = REMOVE_BUNDLE_DIRS,
) -> list[Path]:
    """
    Delete metadata files and directories from a bundle.

    Args:
        root: Local bundle directory.
        remove_files: File names removed from the bundle root.
        remove_dirs: Directory names removed recursively anywhere in the tree.

    Returns:
        Paths that were removed. Failures are logged and skipped.
    """
    root = Path(root)
    remove_files = set(remove_files)
    remove_dirs = set(remove_dirs)
    removed: list[Path] = []

    for name in sorted(remove_files):
        path = root / name
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Failed to remove file {path}: {e}")
            continue
        logger.debug(f"Removed {path}")
        removed.append(path)

    for dirpath, dirnames, _ in os.walk(root):
        for name in sorted(dirnames):
            if name not in remove_dirs:
                continue

            path = Path(dirpath) / name
            try:
                shutil.rmtree(path)
            except OSError as e:
                logger.warning(f"Failed to remove directory {path}: {e}")
            else:
                logger.debug(f"Removed {path}")
                removed.append(path)

        # Do not descend into removed (or failed) directories
        dirnames[:] = [d for d in dirnames if d not in remove_dirs]

    return removed
