"""
Target triple model.

A target triple names the architecture, vendor, operating system and ABI a
binary is compiled for, e.g. ``aarch64-unknown-linux-musl``. The triple is
chosen once per pipeline run and scopes every build output directory.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


class TargetTripleError(Exception):
    """Exception raised for malformed or unsupported target triples."""

    pass


# Rust architecture -> (OCI architecture, OCI variant)
OCI_ARCHITECTURES: Dict[str, Tuple[str, Optional[str]]] = {
    "x86_64": ("amd64", None),
    "aarch64": ("arm64", "v8"),
    "armv7": ("arm", "v7"),
    "arm": ("arm", "v6"),
    "i686": ("386", None),
    "riscv64gc": ("riscv64", None),
    "powerpc64le": ("ppc64le", None),
    "s390x": ("s390x", None),
}

# ABIs that link the C runtime statically by default
STATIC_ABIS = ("musl", "musleabi", "musleabihf")


@dataclass(frozen=True)
class TargetTriple:
    """
    Parsed target triple.

    Example:
        triple = TargetTriple.parse("aarch64-unknown-linux-musl")
        triple.arch        # 'aarch64'
        triple.os          # 'linux'
        triple.abi         # 'musl'
        triple.is_static   # True
    """

    arch: str
    vendor: str
    os: str
    abi: Optional[str] = None

    @classmethod
    def parse(cls, value: str) -> "TargetTriple":
        """
        Parse a triple string.

        Args:
            value: Triple such as 'x86_64-unknown-linux-musl'

        Returns:
            TargetTriple instance

        Raises:
            TargetTripleError: If the string is not a valid triple
        """
        parts = value.strip().split("-")
        if len(parts) not in (3, 4) or not all(parts):
            raise TargetTripleError(
                f"Invalid target triple '{value}': expected arch-vendor-os[-abi]"
            )

        if len(parts) == 3:
            return cls(arch=parts[0], vendor=parts[1], os=parts[2])
        return cls(arch=parts[0], vendor=parts[1], os=parts[2], abi=parts[3])

    def __str__(self) -> str:
        parts = [self.arch, self.vendor, self.os]
        if self.abi:
            parts.append(self.abi)
        return "-".join(parts)

    @property
    def is_static(self) -> bool:
        """Whether binaries for this triple are statically linked by default."""
        return self.abi in STATIC_ABIS

    @property
    def oci_platform(self) -> Tuple[str, Optional[str]]:
        """
        Get the OCI (architecture, variant) pair for image metadata.

        Raises:
            TargetTripleError: If the architecture has no OCI equivalent
        """
        if self.arch not in OCI_ARCHITECTURES:
            raise TargetTripleError(
                f"No container architecture known for '{self.arch}' "
                + f"(supported: {', '.join(sorted(OCI_ARCHITECTURES))})"
            )
        return OCI_ARCHITECTURES[self.arch]
