"""Domain layer for book builds."""

from .chapter import ChapterSource, ChapterList, parse_chapter_override
from .target import TargetFormat, DEFAULT_TARGETS
from .build import ArtifactStatus, BuildReport
from .outline import OutlineEntry, ChapterOutline, BookOutline

__all__ = [
    "ChapterSource",
    "ChapterList",
    "parse_chapter_override",
    "TargetFormat",
    "DEFAULT_TARGETS",
    "ArtifactStatus",
    "BuildReport",
    "OutlineEntry",
    "ChapterOutline",
    "BookOutline",
]
