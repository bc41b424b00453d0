"""Tests for outline extraction from woven chapters."""

import pytest

from bookbuild.config import BookConfig
from bookbuild.domain import TargetFormat
from bookbuild.repositories import FileRepository
from bookbuild.services.outline_service import OutlineService


@pytest.fixture
def outline_service():
    """Create an OutlineService over the real file system."""
    return OutlineService(FileRepository())


class TestExtractEntries:
    """Tests for heading extraction."""

    def test_nested_headings(self, outline_service):
        """Test headings nest by level."""
        content = "# Lambda\n\n## Closures\n\n### Capture\n\n# Next\n"

        entries = outline_service.extract_entries(content)

        assert [e.title for e in entries] == ["Lambda", "Next"]
        assert entries[0].children[0].title == "Closures"
        assert entries[0].children[0].children[0].title == "Capture"
        assert entries[0].anchor == "lambda"

    def test_metadata_block_and_code_ignored(self, outline_service):
        """Test YAML metadata and comments in code blocks are not headings."""
        content = "---\ntitle: Book\n---\n\n# Real\n\n```python\n# not a heading\n```\n"

        entries = outline_service.extract_entries(content)

        assert [e.title for e in entries] == ["Real"]

    def test_crossref_identifier(self, outline_service):
        """Test explicit {#sec:...} identifiers become anchors."""
        entries = outline_service.extract_entries("# Introduction {#sec:intro}\n")

        assert entries[0].title == "Introduction"
        assert entries[0].anchor == "sec:intro"

    def test_entities_unescaped(self, outline_service):
        """Test heading text is returned as plain text."""
        entries = outline_service.extract_entries("# Functions & Operators\n")

        assert entries[0].title == "Functions & Operators"


class TestBookOutline:
    """Tests for the whole-book outline."""

    def test_outline_follows_chapter_list(self, sample_book, build_service, outline_service):
        """Test the TOC order equals the configured chapter order."""
        config = BookConfig.load(sample_book)
        build_service.build(config, TargetFormat.EPUB)

        outline = outline_service.outline(config, TargetFormat.EPUB)

        assert outline.chapter_order == config.chapters.identifiers
        top_level = [title for chapter in outline.chapters for title in chapter.titles]
        assert top_level == ["Introduction", "Lambda", "Conclusions"]

    def test_outline_stable_across_targets(self, sample_book, build_service, outline_service):
        """Test every target yields the same chapter-level TOC."""
        config = BookConfig.load(sample_book)
        build_service.build_all(config, list(TargetFormat))

        outlines = [outline_service.outline(config, t) for t in TargetFormat]

        assert len({tuple(o.chapter_order) for o in outlines}) == 1
        assert len({o.to_markdown() for o in outlines}) == 1

    def test_outline_requires_build(self, sample_book, outline_service):
        """Test the outline needs woven chapters."""
        config = BookConfig.load(sample_book)

        with pytest.raises(FileNotFoundError, match="000_header.txt"):
            outline_service.outline(config, TargetFormat.PDF)

    def test_to_markdown(self, sample_book, build_service, outline_service):
        """Test the outline renders as a markdown list."""
        config = BookConfig.load(sample_book)
        build_service.build(config, TargetFormat.PDF)

        markdown = outline_service.outline(config, TargetFormat.PDF).to_markdown()

        assert markdown == (
            "# Test Book\n\n"
            "- [Introduction](#introduction)\n"
            "- [Lambda](#lambda)\n"
            "- [Conclusions](#conclusions)"
        )
