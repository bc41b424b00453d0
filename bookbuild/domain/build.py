"""Domain models describing build progress and artifact state."""

from dataclasses import dataclass, field
from pathlib import Path

from .target import TargetFormat


@dataclass
class ArtifactStatus:
    """Freshness of one derived artifact."""

    chapter: str | None  # None for the compiled document
    stage: str  # normalized, woven or compiled
    path: Path
    exists: bool
    stale: bool


@dataclass
class BuildReport:
    """What a build regenerated for one target."""

    target: TargetFormat
    output: Path
    normalized: list[str] = field(default_factory=list)
    woven: list[str] = field(default_factory=list)
    figures: list[Path] = field(default_factory=list)
    compiled: bool = False

    @property
    def up_to_date(self) -> bool:
        """True when the build had nothing to do."""
        return not (self.normalized or self.woven or self.compiled)

    def summary(self) -> str:
        if self.up_to_date:
            return f"{self.output.name} is up to date"
        parts = [
            f"{len(self.normalized)} normalized",
            f"{len(self.woven)} woven",
        ]
        if self.figures:
            parts.append(f"{len(self.figures)} figure(s)")
        state = "compiled" if self.compiled else "not compiled"
        return f"{self.output.name} {state} ({', '.join(parts)})"
