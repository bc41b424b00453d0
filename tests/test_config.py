"""Tests for book configuration loading and chapter list validation."""

import pytest

from bookbuild.config import BookConfig, get_book_root
from bookbuild.domain import ChapterList, ChapterSource, TargetFormat, parse_chapter_override
from bookbuild.exceptions import ConfigError


class TestBookConfig:
    """Tests for BookConfig.load."""

    def test_load_defaults(self, sample_book):
        """Test a minimal book.yaml gets the default settings."""
        config = BookConfig.load(sample_book)

        assert config.title == "Test Book"
        assert config.chapters.identifiers == [
            "000_header.txt",
            "Introduction.txt",
            "Lambda.txt",
            "xx_conclusions.txt",
        ]
        assert config.build_dir == sample_book.resolve() / "_build"
        assert config.macro_engine == "builtin"
        assert config.citeproc == "builtin"
        assert config.knit_header is None
        assert config.output_path(TargetFormat.EPUB) == sample_book.resolve() / "book.epub"
        assert config.target_dir(TargetFormat.PDF) == sample_book.resolve() / "_build" / "pdf"

    def test_missing_book_yaml(self, tmp_path):
        """Test loading outside a book fails clearly."""
        with pytest.raises(ConfigError, match="No book.yaml"):
            BookConfig.load(tmp_path)

    def test_chapter_override_keeps_given_order(self, sample_book):
        """Test the override replaces the list verbatim."""
        config = BookConfig.load(sample_book, ["Lambda.txt", "000_header.txt"])

        assert config.chapters.identifiers == ["Lambda.txt", "000_header.txt"]

    def test_missing_chapter_file(self, make_book):
        """Test a listed chapter must exist."""
        root = make_book({"a.txt": "# A\n"})

        with pytest.raises(ConfigError, match="ghost.txt"):
            BookConfig.load(root, ["a.txt", "ghost.txt"])

    def test_duplicate_chapter(self, make_book):
        """Test a chapter cannot appear twice."""
        root = make_book({"a.txt": "# A\n"})

        with pytest.raises(ConfigError, match="listed twice"):
            BookConfig.load(root, ["a.txt", "a.txt"])

    def test_empty_chapter_list(self, make_book):
        """Test a book needs at least one chapter."""
        root = make_book({"a.txt": "# A\n"})
        (root / "book.yaml").write_text("title: Empty\nchapters: []\n")

        with pytest.raises(ConfigError, match="No chapters"):
            BookConfig.load(root)

    @pytest.mark.parametrize(
        "setting, value",
        [("macro_engine", "m4"), ("citeproc", "natbib")],
    )
    def test_unknown_enum_values(self, make_book, setting, value):
        """Test unknown engine names are rejected."""
        root = make_book({"a.txt": "# A\n"}, **{setting: value})

        with pytest.raises(ConfigError, match=value):
            BookConfig.load(root)

    @pytest.mark.parametrize("build_dir", ["chapters", "chapters/_build", ".", "", ".."])
    def test_build_dir_cannot_overlap_sources(self, make_book, build_dir):
        """Test clean can never be pointed at the chapters or the book root."""
        root = make_book({"a.txt": "# A\n"}, build_dir=build_dir)

        with pytest.raises(ConfigError, match="build_dir"):
            BookConfig.load(root)

    def test_custom_build_dir(self, make_book):
        root = make_book({"a.txt": "# A\n"}, build_dir="out/intermediate")

        config = BookConfig.load(root)

        assert config.build_dir == root.resolve() / "out" / "intermediate"

    def test_invalid_yaml(self, make_book):
        """Test a broken book.yaml is a ConfigError."""
        root = make_book({"a.txt": "# A\n"})
        (root / "book.yaml").write_text("chapters: [a.txt\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            BookConfig.load(root)

    def test_pandoc_from_environment(self, sample_book, monkeypatch):
        """Test BOOKBUILD_PANDOC overrides the configured executable."""
        monkeypatch.setenv("BOOKBUILD_PANDOC", "/opt/pandoc/bin/pandoc")

        config = BookConfig.load(sample_book)

        assert config.pandoc == "/opt/pandoc/bin/pandoc"

    def test_book_root_from_environment(self, tmp_path, monkeypatch):
        """Test BOOK_ROOT sets the default book directory."""
        monkeypatch.setenv("BOOK_ROOT", str(tmp_path))

        assert get_book_root() == tmp_path.resolve()


class TestChapterList:
    """Tests for the ordered chapter list."""

    def test_preserves_order(self, tmp_path):
        """Test order is kept exactly as given."""
        chapters = ChapterList.from_identifiers(["z.txt", "a.txt", "m.txt"], tmp_path)

        assert chapters.identifiers == ["z.txt", "a.txt", "m.txt"]
        assert [c.stem for c in chapters] == ["z", "a", "m"]

    def test_stem_collision(self, tmp_path):
        """Test two sources that would share build artifacts are rejected."""
        with pytest.raises(ConfigError, match="same build artifacts"):
            ChapterList.from_identifiers(["a.txt", "a.Rmd"], tmp_path)

    def test_get_by_identifier_or_stem(self, tmp_path):
        """Test chapters can be looked up by file name or stem."""
        chapters = ChapterList.from_identifiers(["Lambda.txt"], tmp_path)

        assert chapters.get("Lambda.txt") == ChapterSource("Lambda.txt", tmp_path / "Lambda.txt")
        assert chapters.get("Lambda").identifier == "Lambda.txt"
        with pytest.raises(KeyError):
            chapters.get("Other")

    def test_parse_override(self):
        """Test a make-style CHAPTERS value splits on whitespace."""
        value = "000_header.txt \n Introduction.txt\tLambda.txt"

        assert parse_chapter_override(value) == [
            "000_header.txt",
            "Introduction.txt",
            "Lambda.txt",
        ]
