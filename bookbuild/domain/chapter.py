"""Chapter sources and the ordered chapter list.

The chapter list is the book's table of contents. It is kept exactly as
configured: never sorted, filtered or de-duplicated behind the user's back.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from ..exceptions import ConfigError


@dataclass(frozen=True)
class ChapterSource:
    """A single chapter source file.

    Identity is the identifier as written in the chapter list
    (e.g. ``Lambda.txt``); ``path`` is where it lives on disk.
    """

    identifier: str
    path: Path

    @property
    def stem(self) -> str:
        """File name without its suffix, used to name derived artifacts."""
        return Path(self.identifier).stem

    def normalized_name(self) -> str:
        return f"{self.stem}.Rmd"

    def woven_name(self) -> str:
        return f"{self.stem}.md"


class ChapterList:
    """Ordered, duplicate-free sequence of chapters."""

    def __init__(self, chapters: Iterable[ChapterSource]) -> None:
        self._chapters = tuple(chapters)
        if not self._chapters:
            raise ConfigError("Chapter list is empty")

        seen: set[str] = set()
        stems: dict[str, str] = {}
        for chapter in self._chapters:
            if chapter.identifier in seen:
                raise ConfigError(f"Chapter listed twice: {chapter.identifier}")
            seen.add(chapter.identifier)
            # Derived artifacts are named by stem
            other = stems.get(chapter.stem)
            if other is not None:
                raise ConfigError(
                    f"Chapters {other} and {chapter.identifier} would produce "
                    f"the same build artifacts"
                )
            stems[chapter.stem] = chapter.identifier

    @classmethod
    def from_identifiers(cls, identifiers: Iterable[str], source_dir: Path) -> "ChapterList":
        """Build a chapter list from identifiers relative to ``source_dir``."""
        return cls(ChapterSource(identifier=name, path=source_dir / name) for name in identifiers)

    @property
    def identifiers(self) -> list[str]:
        return [chapter.identifier for chapter in self._chapters]

    def get(self, identifier: str) -> ChapterSource:
        """Look up a chapter by identifier.

        Raises:
            KeyError: If the chapter is not in the list.
        """
        for chapter in self._chapters:
            if chapter.identifier == identifier or chapter.stem == identifier:
                return chapter
        raise KeyError(identifier)

    def __iter__(self) -> Iterator[ChapterSource]:
        return iter(self._chapters)

    def __len__(self) -> int:
        return len(self._chapters)

    def __getitem__(self, index: int) -> ChapterSource:
        return self._chapters[index]

    def __repr__(self) -> str:
        return f"ChapterList({self.identifiers!r})"


def parse_chapter_override(value: str) -> list[str]:
    """Split a ``CHAPTERS="a.txt b.txt"`` style override into identifiers."""
    return value.split()
