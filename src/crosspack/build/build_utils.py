"""Build utilities for crosspack.

This module provides filesystem helpers shared by the build stages.
"""

import os
import shutil
import stat
import time
from pathlib import Path
from typing import Any, Callable, Iterable

# Directories never copied from a project into a build workspace
EXCLUDED_DIRS = ("target", ".crosspack", ".git")


def remove_readonly(func: Callable[[str], None], path: str, excinfo: Any) -> None:
    """
    Error handler for shutil.rmtree on read-only files.

    Cargo's registry sources are checked out read-only; rmtree fails on
    them unless write permission is restored first.

    Args:
        func: The function that raised the exception
        path: The path to the file/directory
        excinfo: Exception information (unused)
    """
    os.chmod(path, stat.S_IWRITE)
    func(path)


def safe_rmtree(path: Path, max_retries: int = 3) -> None:
    """
    Safely remove a directory tree.

    Args:
        path: Path to directory to remove
        max_retries: Maximum number of retry attempts for locked files

    Raises:
        OSError: If directory cannot be removed after all retries
    """
    if not path.exists():
        return

    for attempt in range(max_retries):
        try:
            shutil.rmtree(path, onexc=remove_readonly)
            return
        except OSError as e:
            if attempt < max_retries - 1:
                time.sleep(0.5)
            else:
                raise OSError(
                    f"Failed to remove directory {path} after {max_retries} attempts: {e}"
                ) from e


def copy_source_tree(
    src_dir: Path, dest_dir: Path, excluded: Iterable[str] = EXCLUDED_DIRS
) -> Path:
    """
    Copy a project tree into a build workspace.

    Top-level build output and tool directories are skipped. Existing
    files in ``dest_dir`` are overwritten.

    Args:
        src_dir: Project directory
        dest_dir: Workspace directory
        excluded: Top-level directory names to skip

    Returns:
        The destination directory
    """
    excluded = set(excluded)
    src_dir = Path(src_dir).resolve()

    def ignore(directory: str, names: list[str]) -> set[str]:
        if Path(directory).resolve() == src_dir:
            return {name for name in names if name in excluded}
        return set()

    shutil.copytree(src_dir, dest_dir, ignore=ignore, dirs_exist_ok=True)
    return dest_dir
