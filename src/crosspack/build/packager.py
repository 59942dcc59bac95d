"""Artifact Packager.

Assembles the runtime image: a base-less container image whose single
layer holds exactly two files, the CA trust bundle and the executable.

The image is written as a tar archive in OCI image layout. A Docker
``manifest.json`` is included as well so ``docker load`` accepts it.

Archive layout:
    oci-layout
    index.json
    manifest.json
    blobs/sha256/<config digest>
    blobs/sha256/<manifest digest>
    blobs/sha256/<layer digest>

Every tar entry has zeroed timestamps and ownership and entries are sorted,
so the same executable and trust bundle always produce the same digest.
"""

import hashlib
import io
import json
import logging
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config.pipeline_config import DEFAULT_TRUST_BUNDLE
from ..config.target_triple import TargetTripleError
from .entrypoint import EntrypointConfig
from .source_stage import Artifact

logger = logging.getLogger(__name__)

TRUST_BUNDLE_LAYER_PATH = "etc/ssl/certs/ca-certificates.crt"

MEDIA_TYPE_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_CONFIG = "application/vnd.oci.image.config.v1+json"
MEDIA_TYPE_LAYER = "application/vnd.oci.image.layer.v1.tar"

# Fixed creation time keeps image digests reproducible
EPOCH = "1970-01-01T00:00:00Z"


class PackagingError(Exception):
    """Raised when the runtime image cannot be assembled."""

    pass


@dataclass(frozen=True)
class RuntimeImage:
    """A packaged runtime image archive."""

    path: Path
    digest: str
    tag: str
    entries: Tuple[str, ...]


def _json_bytes(payload: Any) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    tar.addfile(info, io.BytesIO(data))


def _tar_bytes(files: Dict[str, Tuple[bytes, int]]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        for name in sorted(files):
            data, mode = files[name]
            _add_bytes(tar, name, data, mode)
    return buffer.getvalue()


class ArtifactPackager:
    """Builds single-binary runtime images.

    Example usage:
        packager = ArtifactPackager()
        image = packager.package(
            artifact,
            EntrypointConfig.for_binary("ops"),
            Path("ops.tar"),
        )
    """

    def __init__(self, trust_bundle: Path = DEFAULT_TRUST_BUNDLE):
        """
        Initialize packager.

        Args:
            trust_bundle: Host CA bundle copied into every image
        """
        self.trust_bundle = Path(trust_bundle)

    def package(
        self,
        artifact: Artifact,
        entrypoint: EntrypointConfig,
        output_path: Path,
        tag: Optional[str] = None,
    ) -> RuntimeImage:
        """
        Write the runtime image archive.

        Args:
            artifact: Compiled executable
            entrypoint: Entrypoint and default arguments
            output_path: Archive to write
            tag: Image reference name (defaults to '<binary>:latest')

        Returns:
            RuntimeImage

        Raises:
            PackagingError: If an input is missing or the target cannot run
                in a base-less image
        """
        self._check_inputs(artifact, entrypoint)

        try:
            architecture, variant = artifact.target.oci_platform
        except TargetTripleError as e:
            raise PackagingError(str(e)) from e

        tag = tag or f"{artifact.name}:latest"

        try:
            layer_files = {
                TRUST_BUNDLE_LAYER_PATH: (self.trust_bundle.read_bytes(), 0o644),
                entrypoint.layer_path: (artifact.path.read_bytes(), 0o755),
            }
        except OSError as e:
            raise PackagingError(f"Failed to read image contents: {e}") from e

        layer = _tar_bytes(layer_files)
        layer_digest = _digest(layer)

        platform: Dict[str, str] = {"architecture": architecture, "os": artifact.target.os}
        if variant:
            platform["variant"] = variant

        config = _json_bytes(
            {
                **platform,
                "created": EPOCH,
                "config": entrypoint.to_oci_config(),
                "rootfs": {"type": "layers", "diff_ids": [layer_digest]},
                "history": [{"created": EPOCH, "created_by": "crosspack"}],
            }
        )
        config_digest = _digest(config)

        manifest = _json_bytes(
            {
                "schemaVersion": 2,
                "mediaType": MEDIA_TYPE_MANIFEST,
                "config": {
                    "mediaType": MEDIA_TYPE_CONFIG,
                    "digest": config_digest,
                    "size": len(config),
                },
                "layers": [
                    {
                        "mediaType": MEDIA_TYPE_LAYER,
                        "digest": layer_digest,
                        "size": len(layer),
                    }
                ],
            }
        )
        manifest_digest = _digest(manifest)

        index = _json_bytes(
            {
                "schemaVersion": 2,
                "mediaType": MEDIA_TYPE_INDEX,
                "manifests": [
                    {
                        "mediaType": MEDIA_TYPE_MANIFEST,
                        "digest": manifest_digest,
                        "size": len(manifest),
                        "platform": platform,
                        "annotations": {"org.opencontainers.image.ref.name": tag},
                    }
                ],
            }
        )

        docker_manifest = _json_bytes(
            [
                {
                    "Config": self._blob_name(config_digest),
                    "RepoTags": [tag],
                    "Layers": [self._blob_name(layer_digest)],
                }
            ]
        )

        archive_files: Dict[str, Tuple[bytes, int]] = {
            "oci-layout": (_json_bytes({"imageLayoutVersion": "1.0.0"}), 0o644),
            "index.json": (index, 0o644),
            "manifest.json": (docker_manifest, 0o644),
            self._blob_name(config_digest): (config, 0o644),
            self._blob_name(manifest_digest): (manifest, 0o644),
            self._blob_name(layer_digest): (layer, 0o644),
        }

        self._write_archive(Path(output_path), _tar_bytes(archive_files))
        logger.info("Wrote image %s (%s) to %s", tag, manifest_digest, output_path)

        return RuntimeImage(
            path=Path(output_path),
            digest=manifest_digest,
            tag=tag,
            entries=tuple(sorted(layer_files)),
        )

    def _check_inputs(self, artifact: Artifact, entrypoint: EntrypointConfig) -> None:
        if not artifact.path.is_file():
            raise PackagingError(f"Artifact not found: {artifact.path}")
        if not self.trust_bundle.is_file():
            raise PackagingError(
                f"CA trust bundle not found: {self.trust_bundle}\n"
                + "Install ca-certificates on the build host."
            )
        if not artifact.target.is_static:
            raise PackagingError(
                f"Target {artifact.target} does not produce a static executable; "
                + "the image has no dynamic linker (use a musl target)"
            )
        if artifact.target.os != "linux":
            raise PackagingError(
                f"Container images require a linux target, got {artifact.target}"
            )
        if entrypoint.layer_path == TRUST_BUNDLE_LAYER_PATH:
            raise PackagingError("Entrypoint path collides with the trust bundle")

    @staticmethod
    def _blob_name(digest: str) -> str:
        algorithm, hex_digest = digest.split(":", 1)
        return f"blobs/{algorithm}/{hex_digest}"

    @staticmethod
    def _write_archive(output_path: Path, data: bytes) -> None:
        """Write atomically so a failed run leaves no partial image."""
        temp_path = output_path.with_name(output_path.name + ".tmp")
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(data)
            temp_path.replace(output_path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PackagingError(f"Failed to write image {output_path}: {e}") from e


def read_layer_entries(image_path: Path) -> List[str]:
    """
    List the file entries of an image archive's layer.

    Args:
        image_path: Image archive written by ArtifactPackager

    Returns:
        Entry names in the single layer

    Raises:
        PackagingError: If the archive is not a readable image
    """
    try:
        with tarfile.open(image_path, "r") as archive:
            docker_manifest = json.loads(archive.extractfile("manifest.json").read())
            layer_name = docker_manifest[0]["Layers"][0]
            layer_data = archive.extractfile(layer_name).read()
        with tarfile.open(fileobj=io.BytesIO(layer_data), mode="r") as layer:
            return layer.getnames()
    except (OSError, KeyError, IndexError, ValueError, AttributeError, tarfile.TarError) as e:
        raise PackagingError(f"Not a readable image archive: {image_path}: {e}") from e
