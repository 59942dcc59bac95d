"""Source Build Stage.

Builds the real project against a warmed dependency cache layer and
returns the single executable produced for the target triple.

The layer itself is never modified: its target directory is copied into a
fresh per-triple workspace, and cargo recompiles only the units whose
inputs changed (the project's own crates).
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..config.manifest import BuildContext
from ..config.target_triple import TargetTriple
from ..packages.cache import Cache
from ..packages.downloader import file_sha256
from .build_utils import copy_source_tree, safe_rmtree
from .cross_build import BuildMode, CrossBuildDriver, CrossBuildError
from .dependency_stage import CacheHandle

logger = logging.getLogger(__name__)


class SourceBuildError(Exception):
    """Raised when the real source fails to build. Always fatal."""

    pass


@dataclass(frozen=True)
class Artifact:
    """The compiled executable for a target triple."""

    path: Path
    target: TargetTriple
    name: str
    sha256: str


def build_source(
    context: BuildContext,
    cache_handle: CacheHandle,
    driver: CrossBuildDriver,
    cache: Cache,
    profile: str,
    binary_name: str,
) -> Artifact:
    """
    Build the project's executable.

    Args:
        context: Project build context
        cache_handle: Dependency cache layer to start from
        driver: Cross-build driver for the pipeline's target
        cache: Cache providing the build workspace location
        profile: 'release' or 'debug'
        binary_name: Name of the executable cargo produces

    Returns:
        Artifact at the target-scoped output path

    Raises:
        SourceBuildError: On any preparation, compile or link failure
    """
    target = driver.toolchain.target
    workspace = cache.get_workspace_dir(str(target))
    target_dir = workspace / "target"

    try:
        safe_rmtree(workspace)
        cache.ensure_build_directories(str(target))
        copy_source_tree(context.project_dir, workspace)
        if cache_handle.committed and cache_handle.target_dir.exists():
            shutil.copytree(cache_handle.target_dir, target_dir, symlinks=True)
        else:
            logger.warning("No dependency cache to seed from for %s", cache_handle.key)
    except OSError as e:
        raise SourceBuildError(f"Failed to prepare build workspace: {e}") from e

    try:
        result = driver.build(workspace, BuildMode.FULL, profile, target_dir)
    except CrossBuildError as e:
        raise SourceBuildError(f"Source build failed:\n{e}") from e

    binary = result.output_dir / binary_name
    if not binary.is_file():
        raise SourceBuildError(
            f"Build succeeded but no executable found at {binary}\n"
            + "Check the binary name in Cargo.toml or crosspack.ini."
        )

    return Artifact(
        path=binary,
        target=target,
        name=binary_name,
        sha256=file_sha256(binary),
    )
