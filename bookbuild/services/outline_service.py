"""Outline service implementation.

Extracts the headings each woven chapter contributes, in chapter-list
order, so the table of contents can be checked before running pandoc.
"""

import html
import re

import markdown
from markdown.extensions.fenced_code import FencedCodeExtension
from markdown.extensions.toc import TocExtension

from ..config import BookConfig
from ..domain import BookOutline, ChapterOutline, OutlineEntry, TargetFormat
from ..repositories.interfaces import IFileRepository


class OutlineService:
    """Service for building the book outline from woven chapters."""

    def __init__(self, file_repo: IFileRepository) -> None:
        """Initialize the outline service with required dependencies.

        Args:
            file_repo: Repository for file system operations.
        """
        self._file_repo = file_repo
        self._md = markdown.Markdown(
            extensions=[
                FencedCodeExtension(),
                "attr_list",
                TocExtension(slugify=self._slugify),
            ]
        )

    def outline(self, config: BookConfig, target: TargetFormat) -> BookOutline:
        """Build the outline of a target from its woven chapters.

        Args:
            config: Book configuration.
            target: Target whose woven chapters are read.

        Returns:
            BookOutline with one ChapterOutline per chapter, in list order.

        Raises:
            FileNotFoundError: If a woven chapter has not been built yet.
        """
        target_dir = config.target_dir(target)
        chapters: list[ChapterOutline] = []

        for chapter in config.chapters:
            woven = target_dir / chapter.woven_name()
            if not self._file_repo.exists(woven):
                raise FileNotFoundError(f"Chapter not built for {target.value}: {chapter.identifier}")
            content = self._file_repo.read_file(woven)
            chapters.append(
                ChapterOutline(chapter=chapter.identifier, entries=self.extract_entries(content))
            )

        return BookOutline(title=config.title, chapters=chapters)

    def extract_entries(self, content: str) -> list[OutlineEntry]:
        """Parse headings of a markdown document into nested outline entries."""
        content = self._strip_metadata_block(content)
        self._md.reset()
        self._md.convert(content)
        return [self._to_entry(token) for token in getattr(self._md, "toc_tokens", [])]

    def _to_entry(self, token: dict) -> OutlineEntry:
        return OutlineEntry(
            title=html.unescape(token["name"]),
            level=token["level"],
            anchor=token["id"],
            children=[self._to_entry(child) for child in token.get("children", [])],
        )

    def _slugify(self, value: str, separator: str = "-") -> str:
        """Convert heading text to an anchor, as pandoc's auto identifiers do."""
        value = re.sub(r"[^\w\s-]", "", value.lower().strip())
        return re.sub(r"[\s_-]+", separator, value).strip(separator)

    def _strip_metadata_block(self, content: str) -> str:
        """Strip a leading pandoc YAML metadata block."""
        if not content.startswith("---"):
            return content

        match = re.search(r"\n(---|\.\.\.)\s*\n", content[3:])
        if match:
            return content[3 + match.end() :].lstrip()
        return content
