"""Shared fixtures for bookbuild tests."""

import subprocess
from pathlib import Path
from unittest.mock import Mock

import pytest
import structlog
import yaml

from bookbuild.repositories import FileRepository
from bookbuild.services import BuildService, CodeWeaver, DocumentCompiler, MacroResolver


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop logging configuration made by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_book(tmp_path):
    """Create a book directory with the given chapters and settings."""

    def _make(chapters: dict[str, str], **settings) -> Path:
        root = tmp_path / "book"
        chapters_dir = root / "chapters"
        chapters_dir.mkdir(parents=True, exist_ok=True)
        for name, text in chapters.items():
            (chapters_dir / name).write_text(text, encoding="utf-8")

        data = {"title": "Test Book", "chapters": list(chapters), **settings}
        (root / "book.yaml").write_text(yaml.safe_dump(data), encoding="utf-8")
        return root

    return _make


def _fake_pandoc(argv, cwd=None, input=None):
    """Concatenate the input files into the -o file, like a trivial pandoc."""
    out_index = argv.index("-o")
    output = Path(argv[out_index + 1])
    inputs = argv[out_index + 2 :]
    parts = [(Path(cwd) / name).read_text(encoding="utf-8") for name in inputs]
    output.write_text("".join(parts), encoding="utf-8")
    return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")


@pytest.fixture
def fake_runner():
    """A ToolRunner mock whose pandoc writes the concatenated inputs."""
    runner = Mock()
    runner.run.side_effect = _fake_pandoc
    return runner


@pytest.fixture
def build_service(fake_runner):
    """Create a BuildService with real stages and a fake pandoc."""
    return BuildService(
        FileRepository(),
        {"builtin": MacroResolver()},
        CodeWeaver(),
        DocumentCompiler(fake_runner),
    )


SAMPLE_CHAPTERS = {
    "000_header.txt": "---\ntitle: Test Book\n---\n",
    "Introduction.txt": "# Introduction\n\nWelcome.\n",
    "Lambda.txt": (
        "# Lambda\n\n"
        "#ifdef EPUB\n"
        "Reading on an e-reader.\n"
        "#else\n"
        "Reading on paper.\n"
        "#endif\n\n"
        "```{python}\n"
        "square = lambda x: x * x\n"
        "square(4)\n"
        "```\n"
    ),
    "xx_conclusions.txt": "# Conclusions\n\nThe end.\n",
}


@pytest.fixture
def sample_book(make_book) -> Path:
    """A four-chapter book with conditionals and one executable chunk."""
    return make_book(dict(SAMPLE_CHAPTERS))
