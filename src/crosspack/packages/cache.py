"""Cache management for crosspack.

This module provides a unified cache structure for storing downloaded
toolchain archives, extracted toolchains, dependency cache layers and
per-target build workspaces.

Cache Structure:
    ~/.crosspack/                       # Host-wide (CROSSPACK_CACHE_DIR)
    ├── packages/
    │   └── {url_hash}/                 # SHA256 hash of base URL
    │       └── {version}/
    │           └── archive             # Downloaded archive
    ├── toolchains/
    │   └── {name}/
    │       └── {version}/              # Extracted toolchain
    └── layers/
        └── {cache_key}/                # Dependency cache layer
            └── {target_triple}/
                └── {profile}/          # One committed slot per triple and profile
                    ├── .complete
                    └── target/         # CARGO_TARGET_DIR snapshot

    {project}/.crosspack/
    ├── build/
    │   └── {target_triple}/
    │       └── workspace/              # Source build workspace
    └── images/                         # Packaged runtime images

Layers are keyed by content (see ``crosspack.config.manifest.cache_key``)
and shared across runs. Within a layer each (triple, profile) slot is
warmed and committed on its own, so a layer warmed for one triple is not a
hit for another. Build workspaces are scoped per target triple so
outputs for different triples never collide.
"""

import hashlib
import os
from pathlib import Path
from typing import Optional

# Marker written into a layer directory once it has been committed
LAYER_COMPLETE_MARKER = ".complete"


class Cache:
    """Manages the crosspack cache directory structure.

    The host-wide cache lives in ``~/.crosspack`` unless the
    CROSSPACK_CACHE_DIR environment variable points elsewhere. Project
    specific output (build workspaces, images) lives in the project's
    ``.crosspack/`` directory.
    """

    def __init__(self, project_dir: Optional[Path] = None):
        """Initialize cache manager.

        Args:
            project_dir: Project directory. If None, uses current directory.
        """
        if project_dir is None:
            project_dir = Path.cwd()

        self.project_dir = Path(project_dir).resolve()

        cache_env = os.environ.get("CROSSPACK_CACHE_DIR")
        if cache_env:
            self.cache_root = Path(cache_env).resolve()
        else:
            self.cache_root = Path.home() / ".crosspack"

        self.build_root = self.project_dir / ".crosspack" / "build"
        self.images_dir = self.project_dir / ".crosspack" / "images"

    @staticmethod
    def hash_url(url: str) -> str:
        """Generate a SHA256 hash of a URL for cache directory naming.

        Args:
            url: The base URL to hash

        Returns:
            First 16 characters of SHA256 hash (sufficient for uniqueness)
        """
        return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]

    @property
    def packages_dir(self) -> Path:
        """Directory for downloaded package archives."""
        return self.cache_root / "packages"

    @property
    def toolchains_dir(self) -> Path:
        """Directory for extracted toolchains."""
        return self.cache_root / "toolchains"

    @property
    def layers_dir(self) -> Path:
        """Directory for dependency cache layers."""
        return self.cache_root / "layers"

    def get_build_dir(self, target: str) -> Path:
        """Get build directory for a specific target triple.

        Args:
            target: Target triple (e.g., 'aarch64-unknown-linux-musl')

        Returns:
            Path to the target's build directory
        """
        return self.build_root / target

    def get_workspace_dir(self, target: str) -> Path:
        """Get the source build workspace for a target triple.

        Args:
            target: Target triple

        Returns:
            Path to the workspace directory
        """
        return self.get_build_dir(target) / "workspace"

    def ensure_directories(self) -> None:
        """Create all cache directories if they don't exist."""
        for directory in [
            self.packages_dir,
            self.toolchains_dir,
            self.layers_dir,
        ]:
            directory.mkdir(parents=True, exist_ok=True)

    def ensure_build_directories(self, target: str) -> None:
        """Create build directories for a specific target triple.

        Args:
            target: Target triple
        """
        for directory in [self.get_build_dir(target), self.images_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    def clean_build(self, target: Optional[str] = None) -> None:
        """Remove build workspaces.

        Args:
            target: Target triple to clean. If None, cleans every target.
        """
        from ..build.build_utils import safe_rmtree

        if target is None:
            safe_rmtree(self.build_root)
        else:
            safe_rmtree(self.get_build_dir(target))

    def clean_layers(self) -> None:
        """Remove every dependency cache layer."""
        from ..build.build_utils import safe_rmtree

        safe_rmtree(self.layers_dir)

    def get_package_path(self, url: str, version: str, filename: str) -> Path:
        """Get path where a package archive would be stored.

        Args:
            url: Base URL for the package source
            version: Version string (e.g., '0.12.0')
            filename: Archive filename (e.g., 'zig-linux-x86_64-0.12.0.tar.xz')

        Returns:
            Path to the package archive
        """
        url_hash = self.hash_url(url)
        return self.packages_dir / url_hash / version / filename

    def get_toolchain_path(self, name: str, version: str) -> Path:
        """Get path where a toolchain would be extracted.

        Args:
            name: Toolchain name (e.g., 'zig')
            version: Version string

        Returns:
            Path to the extracted toolchain directory
        """
        return self.toolchains_dir / name / version

    def get_layer_path(self, key: str) -> Path:
        """Get path of the dependency cache layer for a cache key."""
        return self.layers_dir / key

    def get_layer_slot_path(self, key: str, target: str, profile: str) -> Path:
        """Get path of one (triple, profile) slot of a dependency layer.

        Args:
            key: Dependency cache key
            target: Target triple
            profile: Build profile

        Returns:
            Path to the slot directory
        """
        return self.get_layer_path(key) / target / profile

    def is_toolchain_cached(self, name: str, version: str) -> bool:
        """Check if a toolchain is already extracted.

        Args:
            name: Toolchain name
            version: Version string

        Returns:
            True if toolchain exists in cache
        """
        toolchain_path = self.get_toolchain_path(name, version)
        return toolchain_path.exists() and toolchain_path.is_dir()

    def is_layer_cached(self, key: str, target: str, profile: str) -> bool:
        """Check if a committed dependency layer slot exists.

        Args:
            key: Dependency cache key
            target: Target triple
            profile: Build profile

        Returns:
            True if the slot for this triple and profile was fully committed
        """
        slot = self.get_layer_slot_path(key, target, profile)
        return (slot / LAYER_COMPLETE_MARKER).exists()
