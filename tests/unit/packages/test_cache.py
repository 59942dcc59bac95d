"""Unit tests for cache management."""

from pathlib import Path

from crosspack.packages.cache import LAYER_COMPLETE_MARKER, Cache


class TestCache:
    """Test cases for Cache class."""

    def test_init_default_directory(self, monkeypatch):
        """Test initialization without an override uses the home directory."""
        monkeypatch.delenv("CROSSPACK_CACHE_DIR", raising=False)
        cache = Cache()
        assert cache.project_dir == Path.cwd().resolve()
        assert cache.cache_root == Path.home() / ".crosspack"
        assert cache.build_root == cache.project_dir / ".crosspack" / "build"

    def test_init_with_env_override(self, tmp_path, monkeypatch):
        """Test cache directory override via environment variable."""
        cache_dir = tmp_path / "custom_cache"
        monkeypatch.setenv("CROSSPACK_CACHE_DIR", str(cache_dir))

        cache = Cache(tmp_path)
        assert cache.cache_root == cache_dir.resolve()
        assert cache.images_dir == tmp_path.resolve() / ".crosspack" / "images"

    def test_hash_url(self):
        """Test URL hashing function."""
        hash1 = Cache.hash_url("https://ziglang.org/download")
        hash2 = Cache.hash_url("https://example.com/download")

        assert Cache.hash_url("https://ziglang.org/download") == hash1
        assert hash1 != hash2
        assert len(hash1) == 16

    def test_directories(self, cache):
        """Test host-wide cache directory properties."""
        assert cache.packages_dir == cache.cache_root / "packages"
        assert cache.toolchains_dir == cache.cache_root / "toolchains"
        assert cache.layers_dir == cache.cache_root / "layers"

    def test_build_dirs_are_scoped_per_target(self, cache):
        """Test that different triples never share a build directory."""
        arm = cache.get_workspace_dir("aarch64-unknown-linux-musl")
        x86 = cache.get_workspace_dir("x86_64-unknown-linux-musl")

        assert arm == cache.build_root / "aarch64-unknown-linux-musl" / "workspace"
        assert arm != x86

    def test_ensure_directories(self, cache):
        """Test creating host-wide cache directories."""
        cache.ensure_directories()

        assert cache.packages_dir.is_dir()
        assert cache.toolchains_dir.is_dir()
        assert cache.layers_dir.is_dir()

    def test_ensure_build_directories(self, cache):
        """Test creating build directories for a target."""
        cache.ensure_build_directories("aarch64-unknown-linux-musl")

        assert cache.get_build_dir("aarch64-unknown-linux-musl").is_dir()
        assert cache.images_dir.is_dir()

    def test_clean_build_single_target(self, cache):
        """Test cleaning one target leaves the others alone."""
        cache.ensure_build_directories("aarch64-unknown-linux-musl")
        cache.ensure_build_directories("x86_64-unknown-linux-musl")

        cache.clean_build("aarch64-unknown-linux-musl")

        assert not cache.get_build_dir("aarch64-unknown-linux-musl").exists()
        assert cache.get_build_dir("x86_64-unknown-linux-musl").exists()

    def test_clean_build_all(self, cache):
        """Test cleaning every build workspace."""
        cache.ensure_build_directories("aarch64-unknown-linux-musl")

        cache.clean_build()

        assert not cache.build_root.exists()

    def test_clean_layers(self, cache):
        """Test removing dependency layers."""
        cache.get_layer_path("abc").mkdir(parents=True)

        cache.clean_layers()

        assert not cache.layers_dir.exists()

    def test_get_package_path(self, cache):
        """Test package archive path layout."""
        url = "https://ziglang.org/download"
        path = cache.get_package_path(url, "0.12.0", "zig-linux-x86_64-0.12.0.tar.xz")

        assert path == (
            cache.packages_dir
            / Cache.hash_url(url)
            / "0.12.0"
            / "zig-linux-x86_64-0.12.0.tar.xz"
        )

    def test_is_toolchain_cached(self, cache):
        """Test toolchain presence check."""
        assert not cache.is_toolchain_cached("zig", "0.12.0")

        cache.get_toolchain_path("zig", "0.12.0").mkdir(parents=True)

        assert cache.is_toolchain_cached("zig", "0.12.0")

    def test_layer_requires_completion_marker(self, cache):
        """Test that a partially written layer slot is not a cache hit."""
        slot = cache.get_layer_slot_path("abc", "aarch64-unknown-linux-musl", "release")
        slot.mkdir(parents=True)
        assert not cache.is_layer_cached("abc", "aarch64-unknown-linux-musl", "release")

        (slot / LAYER_COMPLETE_MARKER).touch()
        assert cache.is_layer_cached("abc", "aarch64-unknown-linux-musl", "release")

    def test_layer_slots_are_independent(self, cache):
        """Test that each triple and profile has its own marker."""
        slot = cache.get_layer_slot_path("abc", "aarch64-unknown-linux-musl", "release")
        slot.mkdir(parents=True)
        (slot / LAYER_COMPLETE_MARKER).touch()

        assert slot == cache.layers_dir / "abc" / "aarch64-unknown-linux-musl" / "release"
        assert not cache.is_layer_cached("abc", "aarch64-unknown-linux-musl", "debug")
        assert not cache.is_layer_cached("abc", "x86_64-unknown-linux-musl", "release")
