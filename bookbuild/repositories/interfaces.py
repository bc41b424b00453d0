"""Repository interfaces (protocols) for file and configuration access."""

from pathlib import Path
from typing import Any, Protocol


class IFileRepository(Protocol):
    """File system operations used by the build services."""

    def exists(self, path: Path) -> bool: ...

    def read_file(self, path: Path) -> str: ...

    def write_file(self, path: Path, content: str) -> None: ...

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None: ...

    def mtime(self, path: Path) -> float | None: ...

    def remove(self, path: Path) -> bool: ...

    def remove_tree(self, path: Path) -> bool: ...


class IConfigRepository(Protocol):
    """YAML configuration file operations."""

    def load_yaml(self, path: Path) -> dict[str, Any]: ...

    def save_yaml(self, path: Path, data: dict[str, Any]) -> None: ...
