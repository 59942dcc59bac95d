"""
Build pipeline components for crosspack.

This module provides the pipeline implementation including:
- Cross-build invocation (cargo zigbuild)
- Dependency cache warming and the source build
- Runtime image packaging
- Pipeline orchestration
"""

from .cross_build import BuildMode, CrossBuildDriver, CrossBuildError, CrossBuildResult
from .dependency_stage import CacheHandle, DependencyBuildError, warm_dependency_cache
from .entrypoint import EntrypointConfig, EntrypointError
from .orchestrator import PipelineOrchestrator, PipelineResult, PipelineState
from .packager import ArtifactPackager, PackagingError, RuntimeImage, read_layer_entries
from .source_stage import Artifact, SourceBuildError, build_source

__all__ = [
    "BuildMode",
    "CrossBuildDriver",
    "CrossBuildError",
    "CrossBuildResult",
    "CacheHandle",
    "DependencyBuildError",
    "warm_dependency_cache",
    "EntrypointConfig",
    "EntrypointError",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineState",
    "ArtifactPackager",
    "PackagingError",
    "RuntimeImage",
    "read_layer_entries",
    "Artifact",
    "SourceBuildError",
    "build_source",
]
