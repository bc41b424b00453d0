"""Tests for running external tools."""

import sys

import pytest

from bookbuild.exceptions import ToolError
from bookbuild.services import ToolRunner


@pytest.fixture
def tool_runner():
    return ToolRunner()


class TestToolRunner:
    """Tests for ToolRunner.run."""

    def test_captures_stdout_and_feeds_stdin(self, tool_runner):
        """Test text is piped in and stdout is captured."""
        code = "import sys; sys.stdout.write(sys.stdin.read().upper())"

        result = tool_runner.run([sys.executable, "-c", code], input="epub\n")

        assert result.stdout == "EPUB\n"

    def test_nonzero_exit_raises_with_status_and_stderr(self, tool_runner):
        """Test the tool's status and diagnostics are kept on the error."""
        code = "import sys; sys.stderr.write('bad input\\n'); sys.exit(43)"

        with pytest.raises(ToolError) as exc_info:
            tool_runner.run([sys.executable, "-c", code])

        assert exc_info.value.returncode == 43
        assert exc_info.value.exit_code == 43
        assert exc_info.value.stderr == "bad input\n"

    def test_missing_executable(self, tool_runner):
        """Test a missing tool is reported like a shell would."""
        with pytest.raises(ToolError) as exc_info:
            tool_runner.run(["bookbuild-no-such-tool", "--version"])

        assert exc_info.value.returncode == 127
        assert "command not found" in exc_info.value.stderr

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_killed_by_signal(self, tool_runner):
        """Test a tool killed by a signal maps to 128 + signal number."""
        code = "import os, signal; os.kill(os.getpid(), signal.SIGTERM)"

        with pytest.raises(ToolError) as exc_info:
            tool_runner.run([sys.executable, "-c", code])

        assert exc_info.value.returncode == -15
        assert exc_info.value.exit_code == 143

    @pytest.mark.parametrize("returncode, exit_code", [(2, 2), (0, 1), (-9, 137)])
    def test_exit_code_mapping(self, returncode, exit_code):
        assert ToolError(["pandoc"], returncode).exit_code == exit_code

    def test_runs_in_working_directory(self, tool_runner, tmp_path):
        code = "import os; print(os.getcwd())"

        result = tool_runner.run([sys.executable, "-c", code], cwd=tmp_path)

        assert result.stdout.strip() == str(tmp_path.resolve())
