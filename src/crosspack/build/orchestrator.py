"""
Pipeline orchestration for crosspack projects.

This module sequences the whole pipeline, from reading Cargo.toml to
writing the runtime image:
1. Resolve configuration and read the manifest/lock file
2. Provision the cross toolchain
3. Warm the dependency cache layer (failure tolerated)
4. Build the real source (failure fatal)
5. Package the executable and trust bundle into a base-less image

States:
    START -> TOOLCHAIN_READY -> DEPS_CACHED -> SOURCE_BUILT -> PACKAGED -> DONE
Any fatal error moves the pipeline to FAILED; no image exists afterwards.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..config.manifest import BuildContext, ManifestError
from ..config.pipeline_config import ConfigError, PipelineConfig
from ..packages.cache import Cache
from ..packages.toolchain import ProvisioningError, ToolchainProvisioner
from .cross_build import CrossBuildDriver
from .dependency_stage import CacheHandle, warm_dependency_cache
from .entrypoint import EntrypointConfig, EntrypointError
from .packager import ArtifactPackager, PackagingError, RuntimeImage
from .source_stage import Artifact, SourceBuildError, build_source

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Pipeline progress."""

    START = "start"
    TOOLCHAIN_READY = "toolchain_ready"
    DEPS_CACHED = "deps_cached"
    SOURCE_BUILT = "source_built"
    PACKAGED = "packaged"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Result of a complete pipeline run."""

    success: bool
    state: PipelineState
    # Last state reached before DONE or FAILED
    last_state: PipelineState
    image: Optional[RuntimeImage]
    artifact: Optional[Artifact]
    cache: Optional[CacheHandle]
    build_time: float
    message: str


FATAL_ERRORS = (
    ConfigError,
    ManifestError,
    EntrypointError,
    ProvisioningError,
    SourceBuildError,
    PackagingError,
)


class PipelineOrchestrator:
    """
    Runs the cross-build and packaging pipeline for one target triple.

    Example usage:
        config = PipelineConfigLoader.load(Path("."))
        orchestrator = PipelineOrchestrator()
        result = orchestrator.run(Path("."), config)
        if result.success:
            print(f"Image: {result.image.path}")
    """

    def __init__(
        self,
        cache: Optional[Cache] = None,
        provisioner_factory: Optional[Callable[[Cache], ToolchainProvisioner]] = None,
        verbose: bool = False,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            cache: Cache instance (created per project if not given)
            provisioner_factory: Builds the toolchain provisioner for a cache
            verbose: Enable verbose output
        """
        self.cache = cache
        self.provisioner_factory = provisioner_factory or ToolchainProvisioner
        self.verbose = verbose
        self.state = PipelineState.START

    def _advance(self, state: PipelineState) -> None:
        logger.debug("Pipeline state: %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, project_dir: Path, config: PipelineConfig) -> PipelineResult:
        """
        Execute the pipeline.

        Args:
            project_dir: Project root containing Cargo.toml and Cargo.lock
            config: Resolved pipeline configuration

        Returns:
            PipelineResult; on failure ``image`` is None and ``message``
            holds the error
        """
        start_time = time.time()
        self.state = PipelineState.START
        artifact: Optional[Artifact] = None
        cache_handle: Optional[CacheHandle] = None

        try:
            context = BuildContext(project_dir)
            if self.cache is None:
                self.cache = Cache(context.project_dir)
            cache = self.cache

            if self.verbose:
                print("[1/5] Reading Cargo.toml and Cargo.lock...")

            dependency_manifest = context.load_dependency_manifest()
            binary_name = config.binary_name or context.binary_name()
            entrypoint = (
                EntrypointConfig(config.entrypoint, config.default_args)
                if config.entrypoint
                else EntrypointConfig.for_binary(binary_name, config.default_args)
            )

            output_path = config.output or (
                cache.images_dir / f"{binary_name}-{config.target}.tar"
            )
            if not output_path.is_absolute():
                output_path = context.project_dir / output_path
            # Only a successful run leaves an image at the output path
            try:
                if output_path.exists():
                    output_path.unlink()
            except OSError as e:
                raise PackagingError(
                    f"Cannot replace existing image at {output_path}: {e}"
                ) from e

            if self.verbose:
                print(f"      Target: {config.target}")
                print(f"      Binary: {binary_name} -> {entrypoint.path}")

            # Phase 2: toolchain
            if self.verbose:
                print(f"[2/5] Ensuring zig {config.toolchain_version} toolchain...")

            provisioner = self.provisioner_factory(cache)
            toolchain = provisioner.ensure_toolchain(
                config.target,
                config.toolchain_version,
                config.toolchain_checksum,
            )
            self._advance(PipelineState.TOOLCHAIN_READY)

            if self.verbose:
                print(f"      Toolchain ready: {toolchain.zig_path}")

            driver = CrossBuildDriver(toolchain, verbose=self.verbose)

            # Phase 3: dependency cache (never fatal)
            if self.verbose:
                print("[3/5] Warming dependency cache...")

            cache_handle = warm_dependency_cache(
                dependency_manifest, driver, cache, config.profile
            )
            self._advance(PipelineState.DEPS_CACHED)

            if self.verbose:
                status = "hit" if cache_handle.hit else "built"
                if not cache_handle.committed:
                    status = "not stored"
                elif not cache_handle.warmed:
                    status = "built with errors (ignored)"
                print(f"      Cache key: {cache_handle.key} ({status})")

            # Phase 4: source build
            if self.verbose:
                print("[4/5] Building source...")

            artifact = build_source(
                context, cache_handle, driver, cache, config.profile, binary_name
            )
            self._advance(PipelineState.SOURCE_BUILT)

            if self.verbose:
                print(f"      Executable: {artifact.path}")
                print(f"      SHA256: {artifact.sha256}")

            # Phase 5: packaging
            if self.verbose:
                print("[5/5] Packaging runtime image...")

            image = ArtifactPackager(config.trust_bundle).package(
                artifact, entrypoint, output_path
            )
            self._advance(PipelineState.PACKAGED)

            build_time = time.time() - start_time
            last_state = self.state
            self._advance(PipelineState.DONE)

            if self.verbose:
                print(f"      Image: {image.path}")
                print(f"      Digest: {image.digest}")
                print()
                print(f"Build time: {build_time:.2f}s")

            return PipelineResult(
                success=True,
                state=self.state,
                last_state=last_state,
                image=image,
                artifact=artifact,
                cache=cache_handle,
                build_time=build_time,
                message="Pipeline successful",
            )

        except FATAL_ERRORS as e:
            last_state = self.state
            self._advance(PipelineState.FAILED)
            logger.error("Pipeline failed after %s: %s", last_state.value, e)
            return PipelineResult(
                success=False,
                state=self.state,
                last_state=last_state,
                image=None,
                artifact=artifact,
                cache=cache_handle,
                build_time=time.time() - start_time,
                message=str(e),
            )
