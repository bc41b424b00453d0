"""Build orchestration service.

Runs the three stages for a target in order, regenerating only what is
out of date, the way make does with file modification times:

    chapters/X.txt --macro--> _build/<target>/X.Rmd --weave--> _build/<target>/X.md
    _build/<target>/*.md (in chapter order) --pandoc--> book.<ext>

The first failure aborts the build; nothing is retried or salvaged.
"""

from pathlib import Path
from typing import Iterable, Mapping

import structlog

from ..config import BookConfig
from ..domain import ArtifactStatus, BuildReport, ChapterSource, DEFAULT_TARGETS, TargetFormat
from ..exceptions import ConfigError
from ..repositories.interfaces import IFileRepository
from .interfaces import ICodeWeaver, IDocumentCompiler, IMacroResolver

logger = structlog.get_logger(__name__)

FIGURE_DIRNAME = "figures"
# Chapter list of the last compile, one identifier per line
MANIFEST_NAME = "chapters.lst"


class BuildService:
    """Service that turns the ordered chapter list into compiled books."""

    def __init__(
        self,
        file_repo: IFileRepository,
        macro_resolvers: Mapping[str, IMacroResolver],
        weaver: ICodeWeaver,
        compiler: IDocumentCompiler,
    ) -> None:
        """Initialize the build service with required dependencies.

        Args:
            file_repo: Repository for file system operations.
            macro_resolvers: Macro engines keyed by name (``builtin``, ``gpp``).
            weaver: Service executing embedded code chunks.
            compiler: Service invoking the document compiler.
        """
        self._file_repo = file_repo
        self._macro_resolvers = dict(macro_resolvers)
        self._weaver = weaver
        self._compiler = compiler

    def build(
        self, config: BookConfig, target: TargetFormat, force: bool = False
    ) -> BuildReport:
        """Build one target.

        Args:
            config: Book configuration.
            target: Output format to build.
            force: Rebuild every artifact regardless of timestamps.

        Returns:
            BuildReport listing what was regenerated.

        Raises:
            MacroSyntaxError: If a chapter has malformed macro directives.
            WeaveError: If a code chunk fails.
            ToolError: If an external tool fails.
        """
        target_dir = config.target_dir(target)
        output = config.output_path(target)
        report = BuildReport(target=target, output=output)
        log = logger.bind(target=target.value)

        self._file_repo.mkdir(target_dir, parents=True, exist_ok=True)

        woven_paths: list[Path] = []
        for chapter in config.chapters:
            normalized = target_dir / chapter.normalized_name()
            woven = target_dir / chapter.woven_name()

            renormalized = force or self._is_stale(
                normalized, self._normalize_deps(config, chapter)
            )
            if renormalized:
                self._normalize(config, chapter, target, normalized)
                report.normalized.append(chapter.identifier)
                log.info("chapter_normalized", chapter=chapter.identifier)

            if renormalized or self._is_stale(woven, [normalized]):
                figures = self._weave(config, chapter, normalized, woven, target_dir)
                report.woven.append(chapter.identifier)
                report.figures.extend(figures)
                log.info("chapter_woven", chapter=chapter.identifier, figures=len(figures))

            woven_paths.append(woven)

        chapters_changed = self._manifest_changed(config, target)
        if chapters_changed:
            self._file_repo.write_file(
                self._manifest_path(config, target), _manifest_text(config)
            )
            log.info("chapter_list_changed", chapters=len(config.chapters))

        compile_deps = self._compile_deps(config, target, woven_paths)
        if force or chapters_changed or report.woven or self._is_stale(output, compile_deps):
            self._compiler.compile(config, target, woven_paths, output, target_dir)
            report.compiled = True
        else:
            log.info("output_up_to_date", output=str(output))

        return report

    def build_all(
        self,
        config: BookConfig,
        targets: Iterable[TargetFormat] = DEFAULT_TARGETS,
        force: bool = False,
    ) -> list[BuildReport]:
        """Build several targets in order, stopping at the first failure."""
        return [self.build(config, target, force=force) for target in targets]

    def plan(self, config: BookConfig, target: TargetFormat) -> list[ArtifactStatus]:
        """Report which artifacts a build of ``target`` would regenerate."""
        target_dir = config.target_dir(target)
        statuses: list[ArtifactStatus] = []
        woven_paths: list[Path] = []
        any_woven_stale = False

        for chapter in config.chapters:
            normalized = target_dir / chapter.normalized_name()
            woven = target_dir / chapter.woven_name()

            normalized_stale = self._is_stale(normalized, self._normalize_deps(config, chapter))
            woven_stale = normalized_stale or self._is_stale(woven, [normalized])
            any_woven_stale = any_woven_stale or woven_stale

            statuses.append(
                ArtifactStatus(
                    chapter.identifier,
                    "normalized",
                    normalized,
                    self._file_repo.exists(normalized),
                    normalized_stale,
                )
            )
            statuses.append(
                ArtifactStatus(
                    chapter.identifier,
                    "woven",
                    woven,
                    self._file_repo.exists(woven),
                    woven_stale,
                )
            )
            woven_paths.append(woven)

        output = config.output_path(target)
        compiled_stale = (
            any_woven_stale
            or self._manifest_changed(config, target)
            or self._is_stale(output, self._compile_deps(config, target, woven_paths))
        )
        statuses.append(
            ArtifactStatus(None, "compiled", output, self._file_repo.exists(output), compiled_stale)
        )
        return statuses

    def clean(self, config: BookConfig) -> list[Path]:
        """Remove every derived artifact. Chapter sources are never touched.

        Returns:
            Paths that were removed.
        """
        removed: list[Path] = []
        if self._file_repo.remove_tree(config.build_dir):
            removed.append(config.build_dir)

        for target in TargetFormat:
            output = config.output_path(target)
            if self._file_repo.remove(output):
                removed.append(output)

        logger.info("cleaned", removed=len(removed))
        return removed

    def resolve_chapter(
        self, config: BookConfig, identifier: str, target: TargetFormat
    ) -> str:
        """Return one chapter's macro-resolved text without writing anything.

        Raises:
            ConfigError: If the chapter is not in the chapter list.
        """
        try:
            chapter = config.chapters.get(identifier)
        except KeyError:
            raise ConfigError(f"Chapter not in chapter list: {identifier}")
        return self._resolved_text(config, chapter, target)

    def _normalize(
        self,
        config: BookConfig,
        chapter: ChapterSource,
        target: TargetFormat,
        normalized: Path,
    ) -> None:
        self._file_repo.write_file(normalized, self._resolved_text(config, chapter, target))

    def _resolved_text(
        self, config: BookConfig, chapter: ChapterSource, target: TargetFormat
    ) -> str:
        resolver = self._macro_resolvers[config.macro_engine]
        symbol = target.macro_symbol

        parts: list[str] = []
        if config.knit_header is not None:
            header = self._file_repo.read_file(config.knit_header)
            parts.append(_ensure_newline(resolver.resolve(header, symbol, source=config.knit_header)))
        text = self._file_repo.read_file(chapter.path)
        parts.append(resolver.resolve(text, symbol, source=chapter.path))
        return "".join(parts)

    def _weave(
        self,
        config: BookConfig,
        chapter: ChapterSource,
        normalized: Path,
        woven: Path,
        target_dir: Path,
    ) -> list[Path]:
        text = self._file_repo.read_file(normalized)
        if not self._weaver.has_chunks(text):
            self._file_repo.write_file(woven, text)
            return []

        result = self._weaver.weave(
            text,
            chapter.identifier,
            target_dir / FIGURE_DIRNAME,
            figure_link=FIGURE_DIRNAME,
            comment=config.comment,
        )
        self._file_repo.write_file(woven, result.text)
        return result.figures

    def _normalize_deps(self, config: BookConfig, chapter: ChapterSource) -> list[Path]:
        deps = [chapter.path, config.config_path]
        if config.knit_header is not None:
            deps.append(config.knit_header)
        return deps

    def _compile_deps(
        self, config: BookConfig, target: TargetFormat, woven_paths: list[Path]
    ) -> list[Path]:
        deps = [*woven_paths, self._manifest_path(config, target), config.config_path]
        if target is TargetFormat.EPUB and config.cover_image is not None:
            deps.append(config.cover_image)
        if target is TargetFormat.PDF and config.latex_template is not None:
            deps.append(config.latex_template)
        return deps

    def _manifest_path(self, config: BookConfig, target: TargetFormat) -> Path:
        return config.target_dir(target) / MANIFEST_NAME

    def _manifest_changed(self, config: BookConfig, target: TargetFormat) -> bool:
        """True if the chapter list differs from the one the book was last built from."""
        path = self._manifest_path(config, target)
        if not self._file_repo.exists(path):
            return True
        return self._file_repo.read_file(path) != _manifest_text(config)

    def _is_stale(self, artifact: Path, deps: Iterable[Path]) -> bool:
        """True if ``artifact`` is missing or older than any existing dependency."""
        built = self._file_repo.mtime(artifact)
        if built is None:
            return True
        for dep in deps:
            changed = self._file_repo.mtime(dep)
            if changed is not None and changed > built:
                return True
        return False


def _manifest_text(config: BookConfig) -> str:
    return "".join(f"{identifier}\n" for identifier in config.chapters.identifiers)


def _ensure_newline(text: str) -> str:
    return text if not text or text.endswith("\n") else text + "\n"
