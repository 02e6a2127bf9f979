"""
feedgate Atomic Replace

Swap a staged file or directory into its published location.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Union

from ..exceptions import AtomicReplaceError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = "_bak"


def _remove(path: Path):
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def backup_path_for(published: Union[str, Path]) -> Path:
    published = Path(published)
    return published.with_name(published.name + BACKUP_SUFFIX)


def atomic_replace(staging: Union[str, Path], published: Union[str, Path]) -> Path:
    """
    Publish a staged artifact set.

    The old published copy is renamed to ``<published>_bak``, the staging
    path is renamed onto ``published`` and the backup is removed. If the
    second rename fails the backup is renamed back.

    Both paths must be on the same filesystem. Between the two renames
    ``published`` briefly does not exist.

    Args:
        staging: Fully populated staging file or directory
        published: Path clients read from

    Returns:
        The published path

    Raises:
        AtomicReplaceError: If the staged set could not be published
    """
    staging = Path(staging)
    published = Path(published)
    backup = backup_path_for(published)

    if not staging.exists():
        raise AtomicReplaceError(f"staging path does not exist: {staging}")

    published.parent.mkdir(parents=True, exist_ok=True)

    try:
        _remove(backup)
    except OSError as e:
        raise AtomicReplaceError(f"cannot clear leftover backup {backup}: {e}") from e

    had_previous = published.exists()
    if had_previous:
        try:
            os.rename(published, backup)
        except OSError as e:
            raise AtomicReplaceError(f"cannot move {published} aside: {e}") from e

    try:
        os.rename(staging, published)
    except OSError as e:
        rolled_back = None
        if had_previous:
            try:
                os.rename(backup, published)
                rolled_back = True
                logger.warning(f"Rolled back {published} after failed publish")
            except OSError as restore_error:
                rolled_back = False
                logger.error(f"Rollback of {published} failed: {restore_error}")
        raise AtomicReplaceError(f"cannot publish {staging} to {published}: {e}", rolled_back) from e

    if had_previous:
        try:
            _remove(backup)
        except OSError as e:
            logger.warning(f"Could not remove backup {backup}: {e}")

    return published
