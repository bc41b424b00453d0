"""File system repository.

Writes go through a temporary sibling file and ``os.replace`` so a
failed stage never leaves a half-written artifact behind. OS-level
failures surface as FileAccessError naming the path involved.
"""

import os
import shutil
import tempfile
from pathlib import Path

from ..exceptions import FileAccessError


class FileRepository:
    """Concrete IFileRepository backed by the local file system."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def read_file(self, path: Path) -> str:
        """Read a UTF-8 text file.

        Raises:
            FileAccessError: If the file is missing, unreadable or not UTF-8.
        """
        try:
            return Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FileAccessError(
                f"{path} is not valid UTF-8 text (byte {e.start}: {e.reason})"
            ) from e
        except OSError as e:
            raise FileAccessError(f"Cannot read {path}: {e.strerror or e}") from e

    def write_file(self, path: Path, content: str) -> None:
        """Atomically replace ``path`` with ``content``.

        Raises:
            FileAccessError: If the file cannot be written.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        except OSError as e:
            raise FileAccessError(f"Cannot write {path}: {e.strerror or e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise FileAccessError(f"Cannot write {path}: {e.strerror or e}") from e
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        try:
            Path(path).mkdir(parents=parents, exist_ok=exist_ok)
        except OSError as e:
            raise FileAccessError(f"Cannot create {path}: {e.strerror or e}") from e

    def mtime(self, path: Path) -> float | None:
        """Modification time of ``path``, or None if it does not exist."""
        try:
            return Path(path).stat().st_mtime
        except FileNotFoundError:
            return None

    def remove(self, path: Path) -> bool:
        """Remove a file. Returns True if something was removed."""
        path = Path(path)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise FileAccessError(f"Cannot remove {path}: {e.strerror or e}") from e
        return True

    def remove_tree(self, path: Path) -> bool:
        """Remove a directory tree. Returns True if something was removed."""
        path = Path(path)
        if not path.is_dir():
            return False
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise FileAccessError(f"Cannot remove {path}: {e.strerror or e}") from e
        return True
