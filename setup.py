"""
Setup file.
"""

from setuptools import find_packages, setup

KEYWORDS = "cross-compilation cargo zig musl container oci image toolchain reproducible"


if __name__ == "__main__":
    setup(
        name="crosspack",
        version="0.1.0",
        description="Cross-compile Cargo projects into single-binary container images",
        keywords=KEYWORDS,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.12",
        install_requires=[
            "requests",
            "tqdm",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": [
                "crosspack=crosspack.cli:main",
            ],
        },
        include_package_data=True)
