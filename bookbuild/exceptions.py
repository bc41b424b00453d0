"""Exception hierarchy for book builds.

Every failure a build can hit is one of these. Services raise them and the
CLI turns them into a diagnostic and an exit status at the command boundary.
"""

from pathlib import Path
from typing import Sequence


class BookBuildError(Exception):
    """Base class for all build failures."""

    exit_code = 1


class ConfigError(BookBuildError):
    """Raised when book.yaml or the chapter list is invalid."""


class FileAccessError(BookBuildError):
    """Raised when a chapter or build artifact cannot be read or written."""


class MacroSyntaxError(BookBuildError):
    """Raised when a chapter contains malformed macro directives."""

    def __init__(self, message: str, source: Path | str | None = None, line: int | None = None):
        self.message = message
        self.source = str(source) if source is not None else None
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.source or "<input>"
        if self.line is not None:
            location = f"{location}:{self.line}"
        return f"{location}: {self.message}"


class WeaveError(BookBuildError):
    """Raised when an executable chunk fails during weaving."""

    def __init__(
        self,
        message: str,
        chapter: str,
        line: int | None = None,
        label: str | None = None,
        details: str = "",
    ):
        self.message = message
        self.chapter = chapter
        self.line = line
        self.label = label
        self.details = details
        super().__init__(self._format())

    def _format(self) -> str:
        where = self.chapter
        if self.line is not None:
            where = f"{where}:{self.line}"
        chunk = f" (chunk '{self.label}')" if self.label else ""
        text = f"{where}{chunk}: {self.message}"
        if self.details:
            text = f"{text}\n{self.details.rstrip()}"
        return text


class ToolError(BookBuildError):
    """Raised when an external tool cannot run or exits non-zero.

    The tool's return code becomes the process exit status and its
    stderr is surfaced verbatim.
    """

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{self.argv[0] if self.argv else '<tool>'} exited with status {returncode}"
        )

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        # Killed by a signal: report 128 + signal number, as shells do
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode or 1
