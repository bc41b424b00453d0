"""Repository layer for file system and configuration access."""

from .interfaces import IFileRepository, IConfigRepository
from .file_repository import FileRepository
from .config_repository import ConfigRepository

__all__ = [
    "IFileRepository",
    "IConfigRepository",
    "FileRepository",
    "ConfigRepository",
]
