"""External tool invocation.

Wraps subprocess calls to pandoc, gpp and friends. Tools are black
boxes: arguments in, files or stdout out, diagnostics on stderr.
"""

import subprocess
from pathlib import Path
from typing import Sequence

import structlog

from ..exceptions import ToolError

logger = structlog.get_logger(__name__)

# Shell convention for "command not found"
COMMAND_NOT_FOUND = 127


class ToolRunner:
    """Runs external commands and raises ToolError on failure."""

    def run(
        self,
        argv: Sequence[str],
        cwd: Path | None = None,
        input: str | None = None,
    ) -> subprocess.CompletedProcess:
        """Run a command to completion.

        Args:
            argv: Command and arguments.
            cwd: Working directory for the command.
            input: Text fed to the command's stdin.

        Returns:
            The completed process with captured text stdout/stderr.

        Raises:
            ToolError: If the executable is missing or exits non-zero.
        """
        argv = [str(arg) for arg in argv]
        logger.debug("tool_started", argv=argv, cwd=str(cwd) if cwd else None)

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                input=input,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            raise ToolError(argv, COMMAND_NOT_FOUND, f"{argv[0]}: command not found\n")

        if result.returncode != 0:
            logger.debug("tool_failed", tool=argv[0], returncode=result.returncode)
            raise ToolError(argv, result.returncode, result.stderr)

        if result.stderr:
            # pandoc reports warnings (missing citations etc.) on stderr
            logger.warning("tool_warnings", tool=argv[0], stderr=result.stderr.rstrip())
        return result
