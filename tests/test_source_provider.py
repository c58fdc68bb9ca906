"""Tests for import specifier resolution."""

from pathlib import Path

import pytest

from loglive.source_provider import (
    FileSourceProvider,
    InMemorySourceProvider,
    candidate_paths,
    is_relative_specifier,
)


def test_is_relative_specifier():
    """Test which specifiers are considered local."""
    assert is_relative_specifier("./a")
    assert is_relative_specifier("../a/b")
    assert is_relative_specifier("/abs/a")
    assert not is_relative_specifier("react")
    assert not is_relative_specifier("@scope/pkg")


def test_candidate_order():
    """Test the exact path, then extensions, then index files."""
    names = [str(p) for p in candidate_paths(Path("/p/mod"))]

    assert names[0] == "/p/mod"
    assert names[1:5] == ["/p/mod.ts", "/p/mod.js", "/p/mod.tsx", "/p/mod.jsx"]
    assert names[5] == "/p/mod/index.ts"


class TestFileSourceProvider:
    """Filesystem-backed resolution."""

    def test_resolves_relative_to_importer(self, temp_dir: Path):
        """Test resolution against the importing file's directory."""
        (temp_dir / "lib").mkdir()
        (temp_dir / "lib" / "math.ts").write_text("export const x = 1;\n")
        (temp_dir / "lib" / "index.js").write_text("")
        provider = FileSourceProvider()
        importer = temp_dir / "main.ts"

        assert provider.resolve("./lib/math", importer) == (temp_dir / "lib" / "math.ts").resolve()
        assert provider.resolve("./lib", importer) == (temp_dir / "lib" / "index.js").resolve()
        assert provider.resolve("./nope", importer) is None
        assert provider.resolve("lodash", importer) is None

    def test_exact_path_wins(self, temp_dir: Path):
        """Test a specifier with an extension resolves as written."""
        (temp_dir / "a.js").write_text("")
        (temp_dir / "a.js.ts").write_text("")

        assert FileSourceProvider().resolve("./a.js", temp_dir / "main.ts") == (temp_dir / "a.js").resolve()

    def test_read_text(self, temp_dir: Path):
        """Test reading and the error for a missing file."""
        path = temp_dir / "a.ts"
        path.write_text("const a = 1;\n")
        provider = FileSourceProvider()

        assert provider.read_text(path) == "const a = 1;\n"
        with pytest.raises(OSError):
            provider.read_text(temp_dir / "missing.ts")


class TestInMemorySourceProvider:
    """Mapping-backed resolution."""

    def test_resolve_and_read(self):
        """Test dotted segments are normalised without the filesystem."""
        provider = InMemorySourceProvider({"/src/util.ts": "x"})
        provider.add("/lib/index.ts", "y")

        assert provider.resolve("./util", Path("/src/main.ts")) == Path("/src/util.ts")
        assert provider.resolve("../lib", Path("/src/main.ts")) == Path("/lib/index.ts")
        assert provider.resolve("./other", Path("/src/main.ts")) is None
        assert provider.read_text(Path("/lib/index.ts")) == "y"

    def test_missing_file_raises_os_error(self):
        """Test reading an unknown path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            InMemorySourceProvider().read_text(Path("/nowhere.ts"))

    def test_untitled_importer_resolves_from_root(self):
        """Test an importer without a path resolves against the root."""
        provider = InMemorySourceProvider({"/lib.ts": "z"})

        assert provider.resolve("./lib", None) == Path("/lib.ts")
