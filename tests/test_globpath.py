"""Tests for watch pattern compilation and matching."""

from pathlib import Path

import pytest

from fileexec.errors import GlobCompileError
from fileexec.globpath import compile_glob, has_meta


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    for rel in (
        "a.log",
        "b.txt",
        "sub/c.log",
        "sub/deeper/d.log",
        "other/e.log",
    ):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel)
    return tmp_path


class TestHasMeta:
    def test_plain(self):
        assert not has_meta("/var/log/app.log")

    def test_meta(self):
        assert has_meta("/var/log/*.log")
        assert has_meta("/var/{a,b}.log")


class TestCompileGlob:
    """Tests for compile_glob().match()."""

    def test_literal_existing(self, tree: Path):
        assert compile_glob(f"{tree}/a.log").match() == [f"{tree}/a.log"]

    def test_literal_missing(self, tree: Path):
        assert compile_glob(f"{tree}/missing.log").match() == []

    def test_single_star_stays_in_directory(self, tree: Path):
        assert compile_glob(f"{tree}/*.log").match() == [f"{tree}/a.log"]

    def test_super_asterisk_recurses(self, tree: Path):
        assert compile_glob(f"{tree}/**.log").match() == [
            f"{tree}/a.log",
            f"{tree}/other/e.log",
            f"{tree}/sub/c.log",
            f"{tree}/sub/deeper/d.log",
        ]

    def test_one_level_down(self, tree: Path):
        assert compile_glob(f"{tree}/*/*.log").match() == [
            f"{tree}/other/e.log",
            f"{tree}/sub/c.log",
        ]

    def test_alternatives(self, tree: Path):
        assert compile_glob(f"{tree}/{{a,b}}.*").match() == [f"{tree}/a.log", f"{tree}/b.txt"]

    def test_character_class(self, tree: Path):
        assert compile_glob(f"{tree}/[ab].log").match() == [f"{tree}/a.log"]
        assert compile_glob(f"{tree}/[!a].txt").match() == [f"{tree}/b.txt"]

    def test_question_mark(self, tree: Path):
        assert compile_glob(f"{tree}/?.txt").match() == [f"{tree}/b.txt"]

    def test_relative_pattern(self, tree: Path, monkeypatch):
        monkeypatch.chdir(tree)
        assert compile_glob("*.log").match() == ["a.log"]
        assert compile_glob("sub/*.log").match() == ["sub/c.log"]
        assert compile_glob("./a.log").match() == ["a.log"]

    def test_missing_root(self, tmp_path: Path):
        assert compile_glob(f"{tmp_path}/nope/*.log").match() == []

    def test_directories_not_matched(self, tree: Path):
        assert compile_glob(f"{tree}/s*").match() == []

    @pytest.mark.parametrize("pattern", ["", "/var/[abc.log", "/var/{a,b.log", "/var/log\\"])
    def test_malformed(self, pattern):
        with pytest.raises(GlobCompileError):
            compile_glob(pattern)
