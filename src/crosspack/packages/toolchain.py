"""Cross toolchain provisioning.

This module installs the toolchain used to cross-compile Cargo projects:

- Zig, used by cargo-zigbuild as the C compiler and linker for the target
- the Rust standard library for the target triple (via rustup)
- the cargo-zigbuild cargo subcommand

Zig is downloaded into the host-wide cache and referenced by path; the
process environment is never modified. Child processes receive the
toolchain on PATH through ``Toolchain.env()``.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..config.target_triple import TargetTriple
from .cache import Cache
from .downloader import ChecksumError, DownloadError, ExtractionError, PackageDownloader
from .platform_utils import PlatformDetector, PlatformError

logger = logging.getLogger(__name__)


class ProvisioningError(Exception):
    """Raised when the cross toolchain cannot be installed or verified."""

    pass


@dataclass(frozen=True)
class Toolchain:
    """An installed cross toolchain for one target triple."""

    path: Path
    version: str
    target: TargetTriple

    @property
    def zig_path(self) -> Path:
        """Path to the zig executable."""
        return self.path / "zig"

    def env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Build a child-process environment with the toolchain on PATH.

        Args:
            base: Environment to extend (defaults to os.environ)

        Returns:
            New environment mapping
        """
        env = dict(os.environ if base is None else base)
        current_path = env.get("PATH", "")
        env["PATH"] = (
            f"{self.path}{os.pathsep}{current_path}" if current_path else str(self.path)
        )
        return env


class ToolchainProvisioner:
    """Downloads, verifies and registers the cross toolchain."""

    NAME = "zig"

    # Base URL for Zig release downloads
    BASE_URL = "https://ziglang.org/download"

    # cargo subcommand that routes linking through zig
    ZIGBUILD = "cargo-zigbuild"

    def __init__(
        self,
        cache: Cache,
        downloader: Optional[PackageDownloader] = None,
        show_progress: bool = True,
    ):
        """Initialize toolchain provisioner.

        Args:
            cache: Cache instance for storing the toolchain
            downloader: Downloader to use (created if not given)
            show_progress: Whether to show download progress
        """
        self.cache = cache
        self.downloader = downloader or PackageDownloader()
        self.show_progress = show_progress

    @staticmethod
    def detect_host() -> tuple[str, str]:
        """Detect host (os, architecture).

        Raises:
            ProvisioningError: If the host is not supported
        """
        try:
            return PlatformDetector.detect_host()
        except PlatformError as e:
            raise ProvisioningError(str(e)) from e

    def get_package_name(self, version: str) -> str:
        """Get the Zig archive filename for this host.

        Args:
            version: Zig version (e.g., '0.12.0')

        Returns:
            Archive filename (e.g., 'zig-linux-x86_64-0.12.0.tar.xz')
        """
        host_os, arch = self.detect_host()
        return f"zig-{host_os}-{arch}-{version}.tar.xz"

    def get_package_url(self, version: str) -> str:
        """Get the download URL of the Zig archive for this host."""
        return f"{self.BASE_URL}/{version}/{self.get_package_name(version)}"

    def ensure_toolchain(
        self,
        target: TargetTriple,
        version: str,
        checksum: Optional[str] = None,
        force_download: bool = False,
    ) -> Toolchain:
        """Ensure the cross toolchain for a target is installed.

        Re-running with an already installed, matching version performs no
        download.

        Args:
            target: Target triple to build for
            version: Pinned Zig version
            checksum: Optional SHA256 of the Zig archive
            force_download: Re-download even if a verified install exists

        Returns:
            Toolchain value

        Raises:
            ProvisioningError: On any fetch, checksum, version or install failure
        """
        package_name = self.get_package_name(version)
        toolchain_path = self.cache.get_toolchain_path(self.NAME, version)

        if (
            not force_download
            and self.cache.is_toolchain_cached(self.NAME, version)
            and self._verify_toolchain(toolchain_path, version)
        ):
            logger.info("Using cached zig %s at %s", version, toolchain_path)
        else:
            self._install_zig(version, package_name, checksum, toolchain_path)

        toolchain = Toolchain(path=toolchain_path, version=version, target=target)
        env = toolchain.env()

        self._ensure_rust_target(target, env)
        self._ensure_cargo_zigbuild(env)

        return toolchain

    def _install_zig(
        self,
        version: str,
        package_name: str,
        checksum: Optional[str],
        toolchain_path: Path,
    ) -> None:
        self.cache.ensure_directories()

        url = self.get_package_url(version)
        package_path = self.cache.get_package_path(self.BASE_URL, version, package_name)

        print(f"Downloading zig toolchain ({version})...")

        try:
            if not package_path.exists():
                self.downloader.download(url, package_path, checksum, self.show_progress)
            else:
                print(f"Using cached {package_name}")
                if checksum:
                    self.downloader.verify_checksum(package_path, checksum)

            toolchain_path.parent.mkdir(parents=True, exist_ok=True)

            # Extract next to the final location so the move is a rename
            with tempfile.TemporaryDirectory(dir=toolchain_path.parent) as temp_dir:
                temp_path = Path(temp_dir)
                self.downloader.extract_archive(
                    package_path, temp_path, show_progress=False
                )

                extracted = list(temp_path.iterdir())
                if len(extracted) == 1 and extracted[0].is_dir():
                    src_dir = extracted[0]
                else:
                    src_dir = temp_path / "contents"
                    src_dir.mkdir()
                    for item in extracted:
                        shutil.move(str(item), str(src_dir / item.name))

                if toolchain_path.exists():
                    shutil.rmtree(toolchain_path)
                src_dir.rename(toolchain_path)

        except ChecksumError as e:
            if package_path.exists():
                package_path.unlink()
            raise ProvisioningError(f"Failed to setup toolchain: {e}") from e
        except (DownloadError, ExtractionError, OSError) as e:
            raise ProvisioningError(f"Failed to setup toolchain: {e}") from e

        if not self._verify_toolchain(toolchain_path, version):
            shutil.rmtree(toolchain_path, ignore_errors=True)
            raise ProvisioningError(
                "Toolchain verification failed after extraction: "
                + f"expected zig {version} at {toolchain_path}"
            )

        print(f"Toolchain ready at {toolchain_path}")

    def _verify_toolchain(self, toolchain_path: Path, version: str) -> bool:
        """Check that zig runs and reports the pinned version.

        Args:
            toolchain_path: Path to toolchain directory
            version: Expected version

        Returns:
            True if the install is complete and matches
        """
        zig = toolchain_path / "zig"
        if not zig.exists():
            logger.warning("Missing tool: %s", zig)
            return False

        try:
            result = subprocess.run(
                [str(zig), "version"], capture_output=True, text=True
            )
        except OSError as e:
            logger.warning("Cannot run %s: %s", zig, e)
            return False

        reported = result.stdout.strip()
        if result.returncode != 0 or reported != version:
            logger.warning(
                "zig version mismatch: expected %s, got %r", version, reported
            )
            return False

        return True

    def _ensure_rust_target(self, target: TargetTriple, env: Dict[str, str]) -> None:
        """Install the Rust standard library for the target if missing."""
        installed = self._run(
            ["rustup", "target", "list", "--installed"], env, "list rust targets"
        )
        if str(target) in installed.split():
            return

        print(f"Adding rust target {target}...")
        self._run(["rustup", "target", "add", str(target)], env, "add rust target")

    def _ensure_cargo_zigbuild(self, env: Dict[str, str]) -> None:
        """Install cargo-zigbuild if it is not already on PATH."""
        if shutil.which(self.ZIGBUILD, path=env.get("PATH")):
            return

        print(f"Installing {self.ZIGBUILD}...")
        self._run(["cargo", "install", self.ZIGBUILD], env, f"install {self.ZIGBUILD}")

    @staticmethod
    def _run(cmd: List[str], env: Dict[str, str], action: str) -> str:
        """Run a provisioning command.

        Returns:
            Captured stdout

        Raises:
            ProvisioningError: If the command cannot be run or fails
        """
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, env=env)
        except OSError as e:
            raise ProvisioningError(f"Failed to {action}: {e}") from e

        if result.returncode != 0:
            raise ProvisioningError(
                f"Failed to {action} ({' '.join(cmd)}):\n{result.stderr}"
            )

        return result.stdout
