"""Service interfaces (protocols) for the build stages."""

from pathlib import Path
from typing import Protocol, Sequence

from ..config import BookConfig
from ..domain import TargetFormat
from .weave_service import WeaveResult


class IMacroResolver(Protocol):
    """Resolves format-conditional macro regions in a chapter."""

    def resolve(self, text: str, symbol: str, source: Path | None = None) -> str: ...


class ICodeWeaver(Protocol):
    """Executes embedded chunks and splices their output into markdown."""

    def has_chunks(self, text: str) -> bool: ...

    def weave(
        self,
        text: str,
        chapter: str,
        figure_dir: Path,
        figure_link: str = "figures",
        comment: str | None = None,
    ) -> WeaveResult: ...


class IDocumentCompiler(Protocol):
    """Runs the document compiler over the ordered chapters."""

    def compile(
        self,
        config: BookConfig,
        target: TargetFormat,
        chapters: Sequence[Path],
        output: Path,
        workdir: Path,
    ) -> Path: ...
