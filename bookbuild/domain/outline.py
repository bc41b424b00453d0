"""Domain models for the compiled book's outline.

The outline mirrors the table of contents pandoc will produce with
chapter-level top division: one entry list per chapter, in book order.
"""

from dataclasses import dataclass, field


@dataclass
class OutlineEntry:
    """A heading found in a woven chapter."""

    title: str
    level: int  # 1 for #, 2 for ##, ...
    anchor: str
    children: list["OutlineEntry"] = field(default_factory=list)


@dataclass
class ChapterOutline:
    """Headings contributed by one chapter source."""

    chapter: str
    entries: list[OutlineEntry] = field(default_factory=list)

    @property
    def titles(self) -> list[str]:
        return [entry.title for entry in self.entries]


@dataclass
class BookOutline:
    """The whole book's outline in chapter-list order."""

    title: str
    chapters: list[ChapterOutline] = field(default_factory=list)

    @property
    def chapter_order(self) -> list[str]:
        return [chapter.chapter for chapter in self.chapters]

    def to_markdown(self, depth: int = 1) -> str:
        """Render the outline as a nested markdown list down to ``depth``."""
        lines = [f"# {self.title}", ""]
        for chapter in self.chapters:
            for entry in chapter.entries:
                lines.extend(_render_entry(entry, depth))
        return "\n".join(lines)


def _render_entry(entry: OutlineEntry, depth: int, indent: int = 0) -> list[str]:
    if entry.level > depth:
        return []
    lines = [f"{'  ' * indent}- [{entry.title}](#{entry.anchor})"]
    for child in entry.children:
        lines.extend(_render_entry(child, depth, indent + 1))
    return lines
