"""Code weaving service.

Executes knitr-style chunks embedded in a normalized chapter and splices
their results back into the markdown:

    ```{python setup, echo=FALSE}
    import math
    ```

    ```{python}
    math.sqrt(2)
    ```

All chunks of a chapter share one EvaluationContext, so later chunks see
names defined by earlier ones. Each chapter gets a fresh context.
"""

import ast
import contextlib
import io
import linecache
import re
import sys
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from ..exceptions import WeaveError

logger = structlog.get_logger(__name__)

SUPPORTED_ENGINES = ("python",)

DEFAULT_OPTIONS: dict[str, Any] = {
    "echo": True,
    "eval": True,
    "include": True,
    "results": "markup",
    "error": False,
    "fig.cap": None,
}

RESULTS_MODES = ("markup", "asis", "hide")

_LITERALS = {
    "TRUE": True,
    "T": True,
    "True": True,
    "FALSE": False,
    "F": False,
    "False": False,
    "NULL": None,
    "None": None,
}


@dataclass
class Chunk:
    """An executable code chunk parsed from a chapter."""

    engine: str
    label: str
    code: str
    line: int  # line of the opening fence
    options: dict[str, Any] = field(default_factory=dict)

    def option(self, name: str) -> Any:
        return self.options.get(name, DEFAULT_OPTIONS[name])


@dataclass
class ChunkOutput:
    """What running a chunk produced."""

    stdout: str = ""
    value: Any = None
    has_value: bool = False
    display: str = ""  # value as console text
    markdown: str | None = None  # value as raw markdown
    error: str | None = None
    figures: list[Path] = field(default_factory=list)


@dataclass
class WeaveResult:
    """A woven chapter and its side-channel figure files."""

    text: str
    figures: list[Path] = field(default_factory=list)
    chunks: int = 0


class EvaluationContext:
    """Evaluation session for one chapter.

    Holds the namespace that chunk code runs in. State is carried forward
    from chunk to chunk, top to bottom.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.namespace: dict[str, Any] = {"__name__": "__chapter__"}

    def run(
        self,
        code: str,
        filename: str,
        first_line: int = 1,
        output: ChunkOutput | None = None,
    ) -> ChunkOutput:
        """Execute ``code`` in this context.

        If the last statement is an expression its value is returned, the
        way an interactive console would show it.

        Args:
            code: Python source of the chunk.
            filename: Name reported in tracebacks.
            first_line: Line of the chunk's first code line in the chapter.
            output: ChunkOutput to fill in; its stdout is kept even if the
                code raises.

        Returns:
            ChunkOutput with captured stdout and the trailing value.

        Raises:
            Exception: Whatever the chunk code raises.
        """
        tree = ast.parse(code, filename=filename, mode="exec")
        ast.increment_lineno(tree, first_line - 1)

        trailing: ast.Expression | None = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            trailing = ast.Expression(tree.body.pop().value)
            ast.fix_missing_locations(trailing)

        output = output if output is not None else ChunkOutput()
        buffer = io.StringIO()
        try:
            with contextlib.redirect_stdout(buffer):
                exec(compile(tree, filename, "exec"), self.namespace)
                if trailing is not None:
                    output.value = eval(compile(trailing, filename, "eval"), self.namespace)
                    output.has_value = True
        finally:
            output.stdout = buffer.getvalue()
        return output


class CodeWeaver:
    """Service that weaves executable chunks into plain markdown."""

    CHUNK_OPEN = re.compile(r"^(?P<fence>`{3,})[ \t]*\{(?P<header>[^}]*)\}[ \t]*$")
    FENCE_OPEN = re.compile(r"^(?P<fence>`{3,}|~{3,})")

    def __init__(self, comment: str = "## ", fig_ext: str = "png") -> None:
        """Initialize the weaver.

        Args:
            comment: Prefix for console output lines (knitr's ``comment``).
            fig_ext: File extension figures are saved with.
        """
        self._comment = comment
        self._fig_ext = fig_ext

    def has_chunks(self, text: str) -> bool:
        """Check if text contains any executable chunk."""
        return any(self.CHUNK_OPEN.match(line) for line in text.splitlines())

    def parse_chunks(self, text: str, chapter: str = "<chapter>") -> list[Chunk]:
        """Parse all executable chunks without running them."""
        return [piece for piece in self._split(text, chapter) if isinstance(piece, Chunk)]

    def weave(
        self,
        text: str,
        chapter: str,
        figure_dir: Path,
        figure_link: str = "figures",
        comment: str | None = None,
    ) -> WeaveResult:
        """Execute every chunk in ``text`` and render the results.

        Args:
            text: Normalized chapter text.
            chapter: Chapter name used in diagnostics and figure names.
            figure_dir: Directory where figures are written.
            figure_link: Relative path to ``figure_dir`` as written in the markdown.
            comment: Console output prefix overriding the weaver default.

        Returns:
            WeaveResult with the rewritten markdown and figure paths.

        Raises:
            WeaveError: If a chunk fails (without ``error=TRUE``) or the
                chunk syntax is invalid.
        """
        pieces = self._split(text, chapter)
        filename = f"<{chapter}>"
        linecache.cache[filename] = (len(text), None, text.splitlines(keepends=True), filename)

        prefix = self._comment if comment is None else comment
        context = EvaluationContext(chapter)
        stem = Path(chapter).stem
        rendered: list[str] = []
        figures: list[Path] = []
        chunk_count = 0

        try:
            for piece in pieces:
                if isinstance(piece, str):
                    rendered.append(piece)
                    continue

                chunk_count += 1
                output = self._run_chunk(context, piece, filename, stem, figure_dir)
                figures.extend(output.figures)
                logger.debug("chunk_evaluated", chapter=chapter, label=piece.label)

                if piece.option("include"):
                    rendered.append(self._render(piece, output, figure_link, prefix))
        except WeaveError:
            _close_figures()
            raise
        finally:
            linecache.cache.pop(filename, None)

        return WeaveResult(text="".join(rendered), figures=figures, chunks=chunk_count)

    def _split(self, text: str, chapter: str) -> list[str | Chunk]:
        """Split text into prose runs and chunks, skipping plain fenced blocks."""
        lines = text.splitlines(keepends=True)
        pieces: list[str | Chunk] = []
        prose: list[str] = []
        unnamed = 0
        i = 0

        while i < len(lines):
            line = lines[i]
            chunk_match = self.CHUNK_OPEN.match(line.rstrip("\r\n"))

            if chunk_match is not None:
                fence = chunk_match.group("fence")
                end = self._find_close(lines, i + 1, fence)
                if end is None:
                    raise WeaveError("chunk has no closing fence", chapter, line=i + 1)

                engine, label, options = self._parse_header(
                    chunk_match.group("header"), chapter, i + 1
                )
                if label is None:
                    unnamed += 1
                    label = f"unnamed-chunk-{unnamed}"

                if prose:
                    pieces.append("".join(prose))
                    prose = []
                pieces.append(
                    Chunk(
                        engine=engine,
                        label=label,
                        code="".join(lines[i + 1 : end]),
                        line=i + 1,
                        options=options,
                    )
                )
                i = end + 1
                continue

            fence_match = self.FENCE_OPEN.match(line)
            if fence_match is not None:
                # Plain code blocks are prose, even if they show chunk syntax
                end = self._find_close(lines, i + 1, fence_match.group("fence"))
                stop = len(lines) if end is None else end + 1
                prose.extend(lines[i:stop])
                i = stop
                continue

            prose.append(line)
            i += 1

        if prose:
            pieces.append("".join(prose))
        return pieces

    def _find_close(self, lines: list[str], start: int, fence: str) -> int | None:
        char = fence[0]
        pattern = re.compile(rf"^{re.escape(char)}{{{len(fence)},}}[ \t]*$")
        for j in range(start, len(lines)):
            if pattern.match(lines[j].rstrip("\r\n")):
                return j
        return None

    def _parse_header(
        self, header: str, chapter: str, line: int
    ) -> tuple[str, str | None, dict[str, Any]]:
        header = header.strip()
        match = re.match(r"^([A-Za-z_]\w*)[ \t,]*(.*)$", header, re.DOTALL)
        if match is None:
            raise WeaveError(f"invalid chunk header '{{{header}}}'", chapter, line=line)

        engine = match.group(1).lower()
        if engine not in SUPPORTED_ENGINES:
            raise WeaveError(f"unsupported chunk engine '{engine}'", chapter, line=line)

        label: str | None = None
        options: dict[str, Any] = {}
        for position, item in enumerate(_split_options(match.group(2))):
            key, sep, raw = item.partition("=")
            key = key.strip()
            if not sep:
                if position != 0 or not key:
                    raise WeaveError(f"invalid chunk option '{item}'", chapter, line=line)
                label = key
                continue
            value = _parse_value(raw.strip(), chapter, line)
            if key == "label":
                label = str(value)
            else:
                options[key] = value

        results = options.get("results", DEFAULT_OPTIONS["results"])
        if results not in RESULTS_MODES:
            raise WeaveError(f"invalid results mode '{results}'", chapter, line=line, label=label)
        return engine, label, options

    def _run_chunk(
        self,
        context: EvaluationContext,
        chunk: Chunk,
        filename: str,
        stem: str,
        figure_dir: Path,
    ) -> ChunkOutput:
        if not chunk.option("eval"):
            return ChunkOutput()

        output = ChunkOutput()
        try:
            context.run(chunk.code, filename, first_line=chunk.line + 1, output=output)
            _format_value(output)
        # sys.exit() in a chunk must fail the build, not end it
        except (Exception, SystemExit) as e:
            details = _format_exception(e, filename)
            if not chunk.option("error"):
                raise WeaveError(
                    f"{type(e).__name__}: {e}",
                    context.name,
                    line=chunk.line,
                    label=chunk.label,
                    details=details,
                ) from e
            output.error = details

        output.figures = self._save_figures(stem, chunk.label, figure_dir)
        return output

    def _save_figures(self, stem: str, label: str, figure_dir: Path) -> list[Path]:
        """Save and close any matplotlib figures the chunk left open."""
        pyplot = sys.modules.get("matplotlib.pyplot")
        if pyplot is None:
            return []

        paths: list[Path] = []
        for n, number in enumerate(pyplot.get_fignums(), start=1):
            figure_dir.mkdir(parents=True, exist_ok=True)
            figure = pyplot.figure(number)
            path = figure_dir / f"{stem}-{label}-{n}.{self._fig_ext}"
            figure.savefig(path)
            pyplot.close(figure)
            paths.append(path)
        return paths

    def _render(self, chunk: Chunk, output: ChunkOutput, figure_link: str, prefix: str) -> str:
        blocks: list[str] = []
        results = chunk.option("results")

        if chunk.option("echo"):
            fence = _fence_for(chunk.code)
            blocks.append(f"{fence}{chunk.engine}\n{_ensure_newline(chunk.code)}{fence}\n")

        if results != "hide":
            console = output.stdout + output.display
            if results == "asis":
                if console:
                    blocks.append(_ensure_newline(console))
            elif console:
                blocks.append(self._console_block(console, prefix))

            if output.markdown is not None:
                blocks.append(_ensure_newline(output.markdown))

        if output.error:
            blocks.append(self._console_block(output.error, prefix))

        caption = chunk.option("fig.cap") or ""
        for path in output.figures:
            blocks.append(f"![{caption}]({figure_link}/{path.name})\n")

        if not blocks:
            return ""
        return "\n" + "\n".join(blocks) + "\n"

    def _console_block(self, text: str, prefix: str) -> str:
        lines = text.rstrip("\n").split("\n")
        body = "".join(f"{prefix}{line}".rstrip() + "\n" for line in lines)
        fence = _fence_for(body)
        return f"{fence}\n{body}{fence}\n"


def _split_options(text: str) -> list[str]:
    """Split ``a, b='x, y', c=1`` on commas outside quotes."""
    items: list[str] = []
    current: list[str] = []
    quote: str | None = None
    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
            current.append(char)
        elif char == ",":
            items.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    tail = "".join(current).strip()
    if tail:
        items.append(tail)
    return [item for item in items if item]


def _parse_value(raw: str, chapter: str, line: int) -> Any:
    if raw in _LITERALS:
        return _LITERALS[raw]
    try:
        return ast.literal_eval(raw)
    except (ValueError, SyntaxError):
        raise WeaveError(f"invalid chunk option value '{raw}'", chapter, line=line)


def _format_value(output: ChunkOutput) -> None:
    """Render a chunk's trailing value as markdown or console text."""
    if not output.has_value or output.value is None:
        return
    output.markdown = _as_markdown(output.value)
    if output.markdown is None:
        output.display = _ensure_newline(repr(output.value))


def _fence_for(text: str) -> str:
    """A backtick fence longer than any backtick run inside ``text``."""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(3, longest + 1)


def _as_markdown(value: Any) -> str | None:
    """Markdown rendering of rich values (tables), or None for plain ones."""
    repr_markdown = getattr(value, "_repr_markdown_", None)
    if callable(repr_markdown):
        rendered = repr_markdown()
        if rendered is not None:
            return str(rendered)
    to_markdown = getattr(value, "to_markdown", None)
    if callable(to_markdown):
        return str(to_markdown())
    return None


def _format_exception(exc: BaseException, filename: str) -> str:
    """Format a traceback limited to frames outside the weaving machinery."""
    internal = {__file__, ast.__file__}
    frames = [
        frame
        for frame in traceback.extract_tb(exc.__traceback__)
        if frame.filename not in internal
    ]
    lines: list[str] = []
    if frames:
        lines.append("Traceback (most recent call last):\n")
        lines.extend(traceback.format_list(frames))
    lines.extend(traceback.format_exception_only(type(exc), exc))
    return "".join(lines)


def _ensure_newline(text: str) -> str:
    return text if text.endswith("\n") else text + "\n"


def _close_figures() -> None:
    pyplot = sys.modules.get("matplotlib.pyplot")
    if pyplot is not None:
        pyplot.close("all")
