"""Package downloader with progress tracking and checksum verification.

This module handles downloading toolchain archives from URLs, extracting
them, and verifying integrity with checksums.
"""

import hashlib
import tarfile
from pathlib import Path
from typing import Optional

import requests
from tqdm import tqdm


class DownloadError(Exception):
    """Raised when download fails."""

    pass


class ChecksumError(Exception):
    """Raised when checksum verification fails."""

    pass


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    pass


class PackageDownloader:
    """Downloads and extracts packages with progress tracking."""

    def __init__(self, chunk_size: int = 8192):
        """Initialize downloader.

        Args:
            chunk_size: Size of chunks for downloading and hashing
        """
        self.chunk_size = chunk_size

    def download(
        self,
        url: str,
        dest_path: Path,
        checksum: Optional[str] = None,
        show_progress: bool = True,
    ) -> Path:
        """Download a file from a URL.

        The file is written next to ``dest_path`` and only moved into place
        once complete and verified.

        Raises:
            DownloadError: If download fails
            ChecksumError: If checksum verification fails
        """
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = dest_path.with_name(dest_path.name + ".part")

        try:
            with requests.get(url, stream=True, timeout=30) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("content-length", 0))

                with open(temp_file, "wb") as f, tqdm(
                    total=total_size or None,
                    unit="B",
                    unit_scale=True,
                    unit_divisor=1024,
                    desc=f"Downloading {dest_path.name}",
                    disable=not show_progress,
                ) as progress_bar:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        f.write(chunk)
                        progress_bar.update(len(chunk))

            if checksum:
                self.verify_checksum(temp_file, checksum)

            temp_file.replace(dest_path)
            return dest_path

        except requests.RequestException as e:
            raise DownloadError(f"Failed to download {url}: {e}") from e

        finally:
            temp_file.unlink(missing_ok=True)

    def extract_archive(
        self, archive_path: Path, dest_dir: Path, show_progress: bool = True
    ) -> Path:
        """Extract a .tar.gz, .tar.bz2 or .tar.xz archive.

        Args:
            archive_path: Path to the archive file
            dest_dir: Destination directory for extraction
            show_progress: Whether to show progress information

        Returns:
            Path to the extracted directory

        Raises:
            ExtractionError: If extraction fails
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.exists():
            raise ExtractionError(f"Archive not found: {archive_path}")

        dest_dir.mkdir(parents=True, exist_ok=True)

        if not archive_path.name.endswith((".tar.gz", ".tar.bz2", ".tar.xz")):
            raise ExtractionError(f"Unsupported archive format: {archive_path.suffix}")

        if show_progress:
            print(f"Extracting {archive_path.name}...")

        try:
            self._extract_tar(archive_path, dest_dir)
        except (OSError, tarfile.TarError) as e:
            raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e

        return dest_dir

    def _extract_tar(self, archive_path: Path, dest_dir: Path) -> None:
        with tarfile.open(archive_path, "r:*") as tar:
            tar.extractall(dest_dir, filter="tar")

    def verify_checksum(self, file_path: Path, expected: str) -> bool:
        """Verify SHA256 checksum of a file.

        Args:
            file_path: Path to file to verify
            expected: Expected SHA256 checksum (hex string)

        Returns:
            True if checksum matches

        Raises:
            ChecksumError: If checksum doesn't match
        """
        actual = file_sha256(file_path, self.chunk_size)
        if actual.lower() != expected.lower():
            raise ChecksumError(
                f"Checksum mismatch for {file_path}\n"
                + f"Expected: {expected}\n"
                + f"Got: {actual}"
            )

        return True


def file_sha256(file_path: Path, chunk_size: int = 8192) -> str:
    """Compute the hex SHA256 digest of a file."""
    sha256 = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha256.update(chunk)

    return sha256.hexdigest()
