"""Dependency Cache Stage.

Builds the dependency graph of a project without its source, producing a
reusable layer (a CARGO_TARGET_DIR snapshot) keyed by ``cache_key``.

The stage copies only the version-stripped manifest and the lock file into
a scratch workspace, adds a stub ``src/main.rs`` so cargo has something to
build, and runs the cross build. A stub may legitimately fail to link; by
then every dependency has been compiled, so the failure is logged and the
layer is committed anyway.

Each (target triple, profile) pair is a separate slot of the layer with its
own completion marker. A slot missing from an existing layer is warmed and
committed next to the others.
"""

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config.manifest import LOCK_NAME, MANIFEST_NAME, DependencyManifest, cache_key
from ..packages.cache import LAYER_COMPLETE_MARKER, Cache
from .build_utils import safe_rmtree
from .cross_build import BuildMode, CrossBuildDriver, CrossBuildError

logger = logging.getLogger(__name__)

STUB_MAIN = "fn main() {}\n"


class DependencyBuildError(Exception):
    """Raised when the dependency-only build fails. Never fatal to a pipeline."""

    pass


@dataclass(frozen=True)
class CacheHandle:
    """A dependency cache layer slot for one triple and profile."""

    key: str
    path: Path
    # True when the slot already existed before this run
    hit: bool
    # False when the stub build failed (the slot may be partially warm)
    warmed: bool = True
    # False when the slot could not be written; nothing to seed from
    committed: bool = True

    @property
    def target_dir(self) -> Path:
        return self.path / "target"


def warm_dependency_cache(
    manifest: DependencyManifest,
    driver: CrossBuildDriver,
    cache: Cache,
    profile: str,
) -> CacheHandle:
    """
    Ensure a dependency cache layer slot exists for a manifest.

    Failures are never raised: a failed stub build still commits the slot,
    and a slot that cannot be written is reported as uncommitted so the
    source build runs without it.

    Args:
        manifest: Dependency manifest (Cargo.toml + Cargo.lock contents)
        driver: Cross-build driver for the pipeline's target
        cache: Cache holding the layers
        profile: Build profile the source stage will use

    Returns:
        CacheHandle for the slot; ``hit`` is True when no build ran
    """
    key = cache_key(manifest)
    target = str(driver.toolchain.target)
    slot_path = cache.get_layer_slot_path(key, target, profile)

    if cache.is_layer_cached(key, target, profile):
        logger.info("Dependency cache hit: %s (%s/%s)", key, target, profile)
        return CacheHandle(key=key, path=slot_path, hit=True)

    logger.info("Dependency cache miss: %s (%s/%s)", key, target, profile)

    staging: Optional[Path] = None
    try:
        slot_path.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(
            tempfile.mkdtemp(prefix=f"{profile}.", suffix=".staging", dir=slot_path.parent)
        )

        warmed = True
        try:
            _build_dependencies(manifest, driver, staging, profile)
        except DependencyBuildError as e:
            warmed = False
            logger.warning("Dependency build failed, continuing: %s", e)

        _commit(staging, slot_path, key)
    except OSError as e:
        logger.warning("Dependency cache not stored, continuing without it: %s", e)
        if staging is not None:
            _discard(staging)
        return CacheHandle(
            key=key, path=slot_path, hit=False, warmed=False, committed=False
        )
    except BaseException:
        if staging is not None:
            _discard(staging)
        raise

    return CacheHandle(key=key, path=slot_path, hit=False, warmed=warmed)


def _commit(staging: Path, slot_path: Path, key: str) -> None:
    """Mark a staging directory complete and move it into the slot."""
    safe_rmtree(staging / "workspace")
    (staging / LAYER_COMPLETE_MARKER).write_text(key + "\n", encoding="utf-8")

    # A leftover directory without the marker is an interrupted commit
    safe_rmtree(slot_path)
    staging.rename(slot_path)


def _discard(staging: Path) -> None:
    try:
        safe_rmtree(staging)
    except OSError as e:
        logger.warning("Failed to remove staging directory %s: %s", staging, e)


def _build_dependencies(
    manifest: DependencyManifest,
    driver: CrossBuildDriver,
    staging: Path,
    profile: str,
) -> None:
    """
    Run the stub build inside a staging directory.

    Raises:
        DependencyBuildError: If the workspace cannot be prepared or the build fails
    """
    workspace = staging / "workspace"
    try:
        (workspace / "src").mkdir(parents=True)
        (workspace / MANIFEST_NAME).write_text(
            manifest.normalized_manifest, encoding="utf-8"
        )
        (workspace / LOCK_NAME).write_text(manifest.lock_text, encoding="utf-8")
        (workspace / "src" / "main.rs").write_text(STUB_MAIN, encoding="utf-8")
    except OSError as e:
        raise DependencyBuildError(f"Failed to prepare stub workspace: {e}") from e

    try:
        driver.build(workspace, BuildMode.DEPENDENCIES, profile, staging / "target")
    except CrossBuildError as e:
        raise DependencyBuildError(str(e)) from e
