"""bookbuild - build PDF, EPUB and DOCX books from markdown chapters."""

from .config import BookConfig
from .exceptions import (
    BookBuildError,
    ConfigError,
    FileAccessError,
    MacroSyntaxError,
    ToolError,
    WeaveError,
)

__all__ = [
    "BookConfig",
    "BookBuildError",
    "ConfigError",
    "FileAccessError",
    "MacroSyntaxError",
    "ToolError",
    "WeaveError",
]
