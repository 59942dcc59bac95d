"""
Cargo manifest and lock file handling.

This module models the build context of a Cargo project (source tree,
``Cargo.toml`` and ``Cargo.lock``) and derives the dependency cache key.

The key covers only what influences dependency compilation: the manifest
with its ``[package]`` version line removed, and the lock file with the
project's own package versions removed. Bumping the crate's version
therefore never invalidates the dependency cache layer.
"""

import hashlib
import json
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

MANIFEST_NAME = "Cargo.toml"
LOCK_NAME = "Cargo.lock"

# Tables whose `version` key is the crate's own version, not a dependency's
VERSIONED_TABLES = ("package", "workspace.package")

_TABLE_HEADER_RE = re.compile(r"^\s*\[\[?\s*([^\[\]]+?)\s*\]\]?\s*(#.*)?$")
_VERSION_LINE_RE = re.compile(r"""^version\s*=\s*(".*"|'.*')""")

_LOCK_PACKAGE_RE = re.compile(r"(?m)^(?=\[\[package\]\]\s*$)")
_LOCK_SOURCE_RE = re.compile(r"(?m)^source\s*=")
_LOCK_VERSION_RE = re.compile(r'(?m)^version\s*=\s*".*"\n?')


class ManifestError(Exception):
    """Exception raised for missing or unreadable manifest/lock files."""

    pass


def strip_version(manifest_text: str) -> str:
    """
    Remove the crate's own version line from a Cargo.toml.

    Only ``version = "..."`` (or single-quoted) lines inside ``[package]`` or
    ``[workspace.package]`` are removed; dependency tables keep theirs.
    Every other line is preserved byte-for-byte.

    Args:
        manifest_text: Contents of Cargo.toml

    Returns:
        Manifest text without the version line
    """
    table: Optional[str] = None
    kept = []

    for line in manifest_text.splitlines(keepends=True):
        header = _TABLE_HEADER_RE.match(line)
        if header:
            table = header.group(1)
        elif table in VERSIONED_TABLES and _VERSION_LINE_RE.match(line):
            continue
        kept.append(line)

    return "".join(kept)


def strip_local_versions(lock_text: str) -> str:
    """
    Remove the versions of the project's own packages from a Cargo.lock.

    Cargo records the crate's version in the lock file as well, so a
    version bump rewrites it. Entries without a ``source`` are local
    (workspace) packages; their ``version`` line is dropped. Registry and
    git dependencies are untouched.

    Args:
        lock_text: Contents of Cargo.lock

    Returns:
        Lock text with local package versions removed
    """
    blocks = _LOCK_PACKAGE_RE.split(lock_text)
    for i, block in enumerate(blocks):
        if block.startswith("[[package]]") and not _LOCK_SOURCE_RE.search(block):
            blocks[i] = _LOCK_VERSION_RE.sub("", block)
    return "".join(blocks)


@dataclass(frozen=True)
class DependencyManifest:
    """The manifest and lock file contents that define the dependency graph."""

    manifest_text: str
    lock_text: str

    @property
    def normalized_manifest(self) -> str:
        """Manifest text as used for hashing and the dependency build."""
        return strip_version(self.manifest_text)

    @property
    def normalized_lock(self) -> str:
        """Lock text as used for hashing."""
        return strip_local_versions(self.lock_text)


def cache_key(manifest: DependencyManifest) -> str:
    """
    Compute the dependency cache key.

    This is the only place the key is derived; every lookup and store of a
    dependency layer goes through it.

    Args:
        manifest: Dependency manifest

    Returns:
        Hex SHA256 digest
    """
    canonical = json.dumps(
        {"manifest": manifest.normalized_manifest, "lock": manifest.normalized_lock},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class BuildContext:
    """
    A Cargo project on disk.

    Usage:
        context = BuildContext(Path("."))
        deps = context.load_dependency_manifest()
        key = cache_key(deps)
    """

    def __init__(self, project_dir: Path):
        """
        Initialize the build context.

        Args:
            project_dir: Directory containing Cargo.toml and Cargo.lock
        """
        self.project_dir = Path(project_dir).resolve()
        self.manifest_path = self.project_dir / MANIFEST_NAME
        self.lock_path = self.project_dir / LOCK_NAME

    def load_dependency_manifest(self) -> DependencyManifest:
        """
        Read the manifest and lock file.

        Returns:
            DependencyManifest with both file contents

        Raises:
            ManifestError: If either file is missing or unreadable
        """
        if not self.manifest_path.exists():
            raise ManifestError(f"{MANIFEST_NAME} not found in {self.project_dir}")
        if not self.lock_path.exists():
            raise ManifestError(
                f"{LOCK_NAME} not found in {self.project_dir}\n"
                + "Run 'cargo generate-lockfile' to pin dependency versions."
            )

        try:
            return DependencyManifest(
                manifest_text=self.manifest_path.read_text(encoding="utf-8"),
                lock_text=self.lock_path.read_text(encoding="utf-8"),
            )
        except OSError as e:
            raise ManifestError(f"Failed to read manifest: {e}") from e

    def binary_name(self) -> str:
        """
        Determine the executable name Cargo will produce.

        Returns:
            Name of the first [[bin]] target, or the package name

        Raises:
            ManifestError: If the manifest cannot be parsed or names no binary
        """
        try:
            with open(self.manifest_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ManifestError(f"Failed to parse {self.manifest_path}: {e}") from e

        bins = data.get("bin") or []
        if bins and bins[0].get("name"):
            return bins[0]["name"]

        package = data.get("package") or {}
        if package.get("name"):
            return package["name"]

        raise ManifestError(f"No binary or package name in {self.manifest_path}")
