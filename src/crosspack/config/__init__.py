"""Configuration parsing modules for crosspack."""

from .manifest import (
    BuildContext,
    DependencyManifest,
    ManifestError,
    cache_key,
    strip_local_versions,
    strip_version,
)
from .pipeline_config import ConfigError, PipelineConfig, PipelineConfigLoader
from .target_triple import TargetTriple, TargetTripleError

__all__ = [
    "BuildContext",
    "DependencyManifest",
    "ManifestError",
    "cache_key",
    "strip_version",
    "strip_local_versions",
    "ConfigError",
    "PipelineConfig",
    "PipelineConfigLoader",
    "TargetTriple",
    "TargetTripleError",
]
