"""Document compiler service.

Builds the pandoc command line for a target and runs it once over the
ordered chapter files.
"""

import os
from pathlib import Path
from typing import Sequence

import structlog

from ..config import BookConfig
from ..domain import TargetFormat
from ..exceptions import ToolError
from .tool_runner import ToolRunner

logger = structlog.get_logger(__name__)

# Options shared by every target
COMMON_OPTIONS = [
    "--standalone",
    "--toc",
    "-f",
    "markdown+smart",
    "--top-level-division=chapter",
    "--filter",
    "pandoc-crossref",
]

TOC_DEPTH = 1
EPUB_IMAGE_EXTENSION = "png"


class DocumentCompiler:
    """Service that invokes pandoc to produce the final document."""

    def __init__(self, tool_runner: ToolRunner) -> None:
        """Initialize the compiler with required dependencies.

        Args:
            tool_runner: Runner used to invoke pandoc.
        """
        self._tool_runner = tool_runner

    def build_command(
        self,
        config: BookConfig,
        target: TargetFormat,
        inputs: Sequence[str],
        output: Path,
    ) -> list[str]:
        """Build the pandoc argv for ``target``.

        Args:
            config: Book configuration.
            target: Output format.
            inputs: Chapter files, in book order.
            output: File pandoc writes to.

        Returns:
            The full command line.
        """
        argv = [config.pandoc, *COMMON_OPTIONS]

        if config.citeproc == "filter":
            argv += ["--filter", "pandoc-citeproc"]
        else:
            argv.append("--citeproc")

        argv.append(f"--toc-depth={TOC_DEPTH}")

        if target is TargetFormat.EPUB:
            argv.append(f"--default-image-extension={EPUB_IMAGE_EXTENSION}")
            argv += ["-t", target.writer]
            if config.cover_image is not None:
                argv.append(f"--epub-cover-image={config.cover_image}")
        elif target is TargetFormat.PDF:
            if config.latex_template is not None:
                argv.append(f"--template={config.latex_template}")
            argv.append(f"--pdf-engine={config.pdf_engine}")
        elif target is TargetFormat.DOCX:
            argv += ["-t", target.writer]

        argv += config.pandoc_args
        argv += ["-o", str(output)]
        argv += list(inputs)
        return argv

    def compile(
        self,
        config: BookConfig,
        target: TargetFormat,
        chapters: Sequence[Path],
        output: Path,
        workdir: Path,
    ) -> Path:
        """Compile the woven chapters into one document.

        pandoc runs exactly once, from ``workdir`` so relative figure links
        resolve. It writes to a temporary file that only replaces ``output``
        on success.

        Args:
            config: Book configuration.
            target: Output format.
            chapters: Woven chapter files, in book order.
            output: Final document path.
            workdir: Directory holding the woven chapters.

        Returns:
            The output path.

        Raises:
            ToolError: If pandoc fails; no output is left behind.
        """
        partial = output.with_name(f".{output.stem}.partial{output.suffix}")
        inputs = [_relative_to(path, workdir) for path in chapters]
        argv = self.build_command(config, target, inputs, partial)

        logger.info("compile_started", target=target.value, chapters=len(inputs))
        try:
            self._tool_runner.run(argv, cwd=workdir)
            if not partial.exists():
                raise ToolError(argv, 1, f"{argv[0]} did not write {output.name}\n")
            os.replace(partial, output)
        finally:
            partial.unlink(missing_ok=True)

        logger.info("compile_finished", target=target.value, output=str(output))
        return output


def _relative_to(path: Path, base: Path) -> str:
    try:
        return str(path.relative_to(base))
    except ValueError:
        return str(path)
