"""
Configuration for a book build.

A book is described by ``book.yaml`` at its root. The chapter list in that
file is the only structural setting; pandoc flags are fixed per target.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .domain import ChapterList
from .exceptions import ConfigError
from .repositories import ConfigRepository, IConfigRepository

CONFIG_FILENAME = "book.yaml"

MACRO_ENGINES = ("builtin", "gpp")
CITEPROC_MODES = ("builtin", "filter")


def get_book_root() -> Path:
    """Get the default book root, checking the BOOK_ROOT environment variable."""
    env_root = os.environ.get("BOOK_ROOT")
    if env_root:
        return Path(env_root).resolve()
    return Path.cwd()


@dataclass
class BookConfig:
    """Settings for building one book."""

    root: Path
    chapters: ChapterList
    title: str = "Untitled"
    output_name: str = "book"
    source_dir: Path = Path("chapters")
    build_dir: Path = Path("_build")
    knit_header: Path | None = None
    cover_image: Path | None = None
    latex_template: Path | None = None
    pdf_engine: str = "xelatex"
    citeproc: str = "builtin"
    macro_engine: str = "builtin"
    pandoc: str = "pandoc"
    pandoc_args: list[str] = field(default_factory=list)
    comment: str = "## "

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILENAME

    def target_dir(self, target) -> Path:
        """Directory holding the intermediate artifacts for ``target``."""
        return self.build_dir / target.value

    def output_path(self, target) -> Path:
        return self.root / f"{self.output_name}.{target.extension}"

    @classmethod
    def load(
        cls,
        root: Path,
        chapters_override: list[str] | None = None,
        config_repo: IConfigRepository | None = None,
    ) -> "BookConfig":
        """Load and validate ``book.yaml`` from ``root``.

        Args:
            root: Book root directory.
            chapters_override: Chapter identifiers replacing the configured list.
            config_repo: Repository used to read YAML (default: ConfigRepository).

        Returns:
            The validated configuration.

        Raises:
            ConfigError: If the file is missing or any setting is invalid.
        """
        root = Path(root).resolve()
        config_repo = config_repo or ConfigRepository()
        path = root / CONFIG_FILENAME

        try:
            data = config_repo.load_yaml(path)
        except FileNotFoundError:
            raise ConfigError(f"No {CONFIG_FILENAME} found in {root}")

        return cls.from_dict(root, data, chapters_override)

    @classmethod
    def from_dict(
        cls,
        root: Path,
        data: dict[str, Any],
        chapters_override: list[str] | None = None,
    ) -> "BookConfig":
        root = Path(root).resolve()

        identifiers = chapters_override if chapters_override else data.get("chapters")
        if not identifiers:
            raise ConfigError("No chapters configured")
        if not isinstance(identifiers, list) or not all(isinstance(c, str) for c in identifiers):
            raise ConfigError("'chapters' must be a list of file names")

        source_dir = root / data.get("source_dir", "chapters")
        chapters = ChapterList.from_identifiers(identifiers, source_dir)
        missing = [c.identifier for c in chapters if not c.path.is_file()]
        if missing:
            raise ConfigError(f"Chapter source(s) not found in {source_dir}: {', '.join(missing)}")

        macro_engine = data.get("macro_engine", "builtin")
        if macro_engine not in MACRO_ENGINES:
            raise ConfigError(f"Unknown macro_engine '{macro_engine}'")

        citeproc = data.get("citeproc", "builtin")
        if citeproc not in CITEPROC_MODES:
            raise ConfigError(f"Unknown citeproc mode '{citeproc}'")

        build_dir = (root / str(data.get("build_dir", "_build"))).resolve()
        _check_build_dir(build_dir, root, source_dir.resolve())

        pandoc_args = data.get("pandoc_args") or []
        if not isinstance(pandoc_args, list):
            raise ConfigError("'pandoc_args' must be a list")

        return cls(
            root=root,
            chapters=chapters,
            title=str(data.get("title", "Untitled")),
            output_name=str(data.get("output_name", "book")),
            source_dir=source_dir,
            build_dir=build_dir,
            knit_header=_optional_path(root, data.get("knit_header")),
            cover_image=_optional_path(root, data.get("cover_image")),
            latex_template=_optional_path(root, data.get("latex_template")),
            pdf_engine=str(data.get("pdf_engine", "xelatex")),
            citeproc=citeproc,
            macro_engine=macro_engine,
            pandoc=os.environ.get("BOOKBUILD_PANDOC") or str(data.get("pandoc", "pandoc")),
            pandoc_args=[str(arg) for arg in pandoc_args],
            comment=str(data.get("comment", "## ")),
        )


def default_config(title: str) -> dict[str, Any]:
    """Starter ``book.yaml`` contents for ``bookbuild init``."""
    return {
        "title": title,
        "output_name": "book",
        "source_dir": "chapters",
        "build_dir": "_build",
        "chapters": ["000_header.txt", "Introduction.txt"],
        "citeproc": "builtin",
        "macro_engine": "builtin",
    }


def _check_build_dir(build_dir: Path, root: Path, source_dir: Path) -> None:
    """Reject build directories that clean could not remove without touching sources."""
    for protected in (root, source_dir):
        if protected.is_relative_to(build_dir):
            raise ConfigError(
                f"build_dir '{build_dir}' must not contain the book root or chapter sources"
            )
    if build_dir.is_relative_to(source_dir):
        raise ConfigError(f"build_dir '{build_dir}' must not be inside {source_dir}")


def _optional_path(root: Path, value: Any) -> Path | None:
    if not value:
        return None
    return root / str(value)
