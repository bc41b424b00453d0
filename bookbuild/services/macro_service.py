"""Macro resolution service.

Resolves format-conditional regions in chapter sources before weaving.
The built-in engine understands the cpp-style directives chapters use:

    #ifdef EPUB
    ![Cover](cover.png)
    #else
    \\includegraphics{cover.pdf}
    #endif

A directive is a line starting with ``#`` immediately followed by its
keyword, so markdown headings (``# Title``) pass through untouched.
"""

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from ..exceptions import MacroSyntaxError
from .tool_runner import ToolRunner

logger = structlog.get_logger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Za-z_]\w*$")


def require_symbol(symbol: str | None, source: Path | None = None) -> str:
    """Validate the target-format symbol.

    There is no default branch: the symbol must always be given.

    Raises:
        MacroSyntaxError: If the symbol is missing or not an identifier.
    """
    if not symbol:
        raise MacroSyntaxError("target format symbol must be given explicitly", source)
    if not SYMBOL_PATTERN.match(symbol):
        raise MacroSyntaxError(f"invalid target format symbol '{symbol}'", source)
    return symbol


@dataclass
class _Conditional:
    """An open #ifdef/#ifndef region."""

    keyword: str
    taking: bool
    line: int
    seen_else: bool = False


class MacroResolver:
    """Built-in macro engine.

    Supports ``#ifdef``, ``#ifndef``, ``#else``, ``#endif``, ``#define``,
    ``#undef`` and ``#include``. Names defined with a value are expanded
    as whole words in active text; the target symbol itself is defined
    without a value and never substituted into prose.
    """

    DIRECTIVE_PATTERN = re.compile(
        r"^#(define|undef|ifdef|ifndef|else|endif|include|if|elif)\b[ \t]*(.*?)\s*$"
    )
    INCLUDE_PATTERN = re.compile(r'^(?:"([^"]+)"|<([^>]+)>)$')

    def resolve(self, text: str, symbol: str, source: Path | None = None) -> str:
        """Resolve ``text`` for the given target symbol.

        Args:
            text: Chapter source text.
            symbol: Target format symbol (e.g. ``EPUB``), always explicit.
            source: Path of the text, for diagnostics and relative includes.

        Returns:
            The text with conditionals resolved and includes expanded.

        Raises:
            MacroSyntaxError: On malformed or unsupported directives.
        """
        require_symbol(symbol, source)
        defines: dict[str, str] = {symbol: ""}
        stack = [Path(source).resolve()] if source is not None else []
        return "".join(self._process(text, defines, source, stack))

    def _process(
        self,
        text: str,
        defines: dict[str, str],
        source: Path | None,
        include_stack: list[Path],
    ) -> list[str]:
        out: list[str] = []
        open_regions: list[_Conditional] = []
        active = True

        for lineno, line in enumerate(text.splitlines(keepends=True), start=1):
            match = self.DIRECTIVE_PATTERN.match(line)
            if match is None:
                if active:
                    out.append(self._expand(line, defines))
                continue

            keyword, argument = match.group(1), match.group(2)

            if keyword in ("if", "elif"):
                raise MacroSyntaxError(f"unsupported directive #{keyword}", source, lineno)

            if keyword in ("ifdef", "ifndef"):
                name = self._require_name(keyword, argument, source, lineno)
                taking = (name in defines) == (keyword == "ifdef")
                open_regions.append(_Conditional(keyword, taking, lineno))
            elif keyword == "else":
                if not open_regions:
                    raise MacroSyntaxError("#else without #ifdef", source, lineno)
                region = open_regions[-1]
                if region.seen_else:
                    raise MacroSyntaxError(
                        f"duplicate #else for #{region.keyword} on line {region.line}",
                        source,
                        lineno,
                    )
                region.seen_else = True
                region.taking = not region.taking
            elif keyword == "endif":
                if not open_regions:
                    raise MacroSyntaxError("#endif without #ifdef", source, lineno)
                open_regions.pop()
            elif active:
                if keyword == "define":
                    name, _, value = argument.partition(" ")
                    self._require_name(keyword, name, source, lineno)
                    defines[name] = value.strip()
                elif keyword == "undef":
                    name = self._require_name(keyword, argument, source, lineno)
                    defines.pop(name, None)
                elif keyword == "include":
                    out.extend(self._include(argument, defines, source, lineno, include_stack))

            active = all(region.taking for region in open_regions)

        if open_regions:
            region = open_regions[-1]
            raise MacroSyntaxError(
                f"unterminated #{region.keyword} (missing #endif)", source, region.line
            )
        return out

    def _include(
        self,
        argument: str,
        defines: dict[str, str],
        source: Path | None,
        lineno: int,
        include_stack: list[Path],
    ) -> list[str]:
        match = self.INCLUDE_PATTERN.match(argument)
        if match is None:
            raise MacroSyntaxError("#include expects \"file\" or <file>", source, lineno)

        name = match.group(1) or match.group(2)
        base = Path(source).parent if source is not None else Path.cwd()
        path = (base / name).resolve()

        if path in include_stack:
            raise MacroSyntaxError(f"include cycle through {name}", source, lineno)
        if not path.is_file():
            raise MacroSyntaxError(f"included file not found: {name}", source, lineno)

        logger.debug("macro_include", file=str(path))
        lines = self._process(
            path.read_text(encoding="utf-8"), defines, path, include_stack + [path]
        )
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        return lines

    def _require_name(self, keyword: str, name: str, source: Path | None, lineno: int) -> str:
        name = name.strip()
        if not name:
            raise MacroSyntaxError(f"#{keyword} requires a name", source, lineno)
        if not SYMBOL_PATTERN.match(name):
            raise MacroSyntaxError(f"#{keyword}: invalid name '{name}'", source, lineno)
        return name

    def _expand(self, line: str, defines: dict[str, str]) -> str:
        macros = {name: value for name, value in defines.items() if value}
        if not macros:
            return line
        pattern = re.compile(
            r"\b(" + "|".join(re.escape(n) for n in sorted(macros, key=len, reverse=True)) + r")\b"
        )
        return pattern.sub(lambda m: macros[m.group(1)], line)


class GppMacroResolver:
    """Macro engine that delegates to the external ``gpp`` preprocessor.

    Equivalent to ``cat chapter | gpp -D<SYMBOL>``.
    """

    def __init__(self, tool_runner: ToolRunner, executable: str = "gpp") -> None:
        """Initialize the gpp resolver.

        Args:
            tool_runner: Runner used to invoke gpp.
            executable: Name or path of the gpp binary.
        """
        self._tool_runner = tool_runner
        self._executable = executable

    def resolve(self, text: str, symbol: str, source: Path | None = None) -> str:
        require_symbol(symbol, source)
        argv = [self._executable, f"-D{symbol}"]
        cwd = None
        if source is not None:
            cwd = Path(source).parent
            argv.append(f"-I{cwd}")
        result = self._tool_runner.run(argv, cwd=cwd, input=text)
        return result.stdout
