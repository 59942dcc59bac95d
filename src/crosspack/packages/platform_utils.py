"""Platform Detection Utilities.

This module provides utilities for detecting the build host's platform and
architecture for toolchain selection.

Supported Hosts:
    - Linux: x86_64, aarch64
    - macOS: x86_64, aarch64
"""

import platform
from typing import Tuple


class PlatformError(Exception):
    """Raised when platform detection fails or platform is unsupported."""

    pass


class PlatformDetector:
    """Detects the current host platform and architecture."""

    SUPPORTED_SYSTEMS = ("linux", "macos")
    SUPPORTED_ARCHITECTURES = ("x86_64", "aarch64")

    @staticmethod
    def detect_host() -> Tuple[str, str]:
        """Detect the host platform in Zig's download naming scheme.

        Returns:
            Tuple of (os, architecture)
            OS: 'linux' or 'macos'
            Architecture: 'x86_64' or 'aarch64'

        Raises:
            PlatformError: If the host cannot run the cross toolchain
        """
        system = platform.system().lower()
        machine = platform.machine().lower()

        if system == "linux":
            host_os = "linux"
        elif system == "darwin":
            host_os = "macos"
        else:
            raise PlatformError(f"Unsupported platform: {system} {machine}")

        if machine in ("x86_64", "amd64"):
            arch = "x86_64"
        elif machine in ("aarch64", "arm64"):
            arch = "aarch64"
        else:
            # zig publishes no archive for other host architectures
            raise PlatformError(f"Unsupported host architecture: {machine}")

        return host_os, arch

