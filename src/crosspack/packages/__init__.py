"""Package management for crosspack.

This module handles downloading, caching, and installing the cross
toolchain and managing the cache directory layout.
"""

from .cache import Cache
from .downloader import ChecksumError, DownloadError, ExtractionError, PackageDownloader
from .platform_utils import PlatformDetector, PlatformError
from .toolchain import ProvisioningError, Toolchain, ToolchainProvisioner

__all__ = [
    "Cache",
    "PackageDownloader",
    "DownloadError",
    "ChecksumError",
    "ExtractionError",
    "PlatformDetector",
    "PlatformError",
    "Toolchain",
    "ToolchainProvisioner",
    "ProvisioningError",
]
