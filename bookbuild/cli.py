"""Command-line interface for bookbuild.

Provides a Click-based CLI with one command per build target, mirroring
the classic ``make all|pdf|epub|docx|clean`` workflow.
"""

import sys
from importlib.metadata import version as get_version
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.table import Table

from .config import CONFIG_FILENAME, BookConfig, default_config, get_book_root
from .domain import DEFAULT_TARGETS, TargetFormat, parse_chapter_override
from .exceptions import BookBuildError, ToolError
from .infrastructure import ServiceContainer, configure_services
from .logging_config import configure_logging
from .repositories import ConfigRepository
from .services import BuildService, OutlineService

# Get version from package metadata
try:
    __version__ = get_version("bookbuild")
except Exception:
    __version__ = "0.0.0"  # Fallback version


# Context keys
CONTAINER_KEY = "container"
BOOK_PATH_KEY = "book_path"
CHAPTERS_KEY = "chapters"

HEADER_TEMPLATE = """---
title: "{title}"
---
"""

INTRODUCTION_TEMPLATE = """# Introduction

```{python}
print("Hello from the build")
```
"""


def get_container(ctx: click.Context) -> ServiceContainer:
    """Get the service container from click context."""
    return ctx.obj[CONTAINER_KEY]


def load_config(ctx: click.Context) -> BookConfig:
    """Load the book configuration, exiting with a diagnostic on failure."""
    try:
        return BookConfig.load(ctx.obj[BOOK_PATH_KEY], ctx.obj.get(CHAPTERS_KEY))
    except BookBuildError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def fail(error: BookBuildError | OSError) -> NoReturn:
    """Report a build failure and exit with its status.

    Tool diagnostics are passed through verbatim. Plain OS errors exit
    with status 1.
    """
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, ToolError) and error.stderr:
        click.echo(error.stderr, err=True, nl=not error.stderr.endswith("\n"))
    sys.exit(error.exit_code if isinstance(error, BookBuildError) else 1)


@click.group()
@click.option(
    "--book",
    "-b",
    type=click.Path(file_okay=False),
    help="Path to book directory (default: $BOOK_ROOT or current directory).",
)
@click.option(
    "--chapters",
    "-c",
    help='Override the chapter list, e.g. "000_header.txt Lambda.txt".',
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.version_option(version=__version__, prog_name="bookbuild")
@click.pass_context
def cli(ctx: click.Context, book: str | None, chapters: str | None, verbose: bool) -> None:
    """bookbuild - Build books from markdown chapters.

    Chapters are macro-resolved for the target format, their embedded
    code chunks are executed, and pandoc compiles them in the order
    given by book.yaml.
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault(CONTAINER_KEY, configure_services())
    ctx.obj[BOOK_PATH_KEY] = Path(book).resolve() if book else get_book_root()
    ctx.obj[CHAPTERS_KEY] = parse_chapter_override(chapters) if chapters else None


def _build(ctx: click.Context, targets: tuple[TargetFormat, ...], force: bool) -> None:
    config = load_config(ctx)
    build_service = get_container(ctx).resolve(BuildService)

    for target in targets:
        try:
            report = build_service.build(config, target, force=force)
        except (BookBuildError, OSError) as e:
            fail(e)
        click.echo(report.summary())


force_option = click.option(
    "--force", "-f", is_flag=True, help="Rebuild everything, ignoring timestamps."
)


@cli.command("all")
@force_option
@click.pass_context
def build_all(ctx: click.Context, force: bool) -> None:
    """Build the PDF and the EPUB."""
    _build(ctx, DEFAULT_TARGETS, force)


@cli.command()
@force_option
@click.pass_context
def pdf(ctx: click.Context, force: bool) -> None:
    """Build the PDF only."""
    _build(ctx, (TargetFormat.PDF,), force)


@cli.command()
@force_option
@click.pass_context
def epub(ctx: click.Context, force: bool) -> None:
    """Build the EPUB only."""
    _build(ctx, (TargetFormat.EPUB,), force)


@cli.command()
@force_option
@click.pass_context
def docx(ctx: click.Context, force: bool) -> None:
    """Build the word-processor (DOCX) export."""
    _build(ctx, (TargetFormat.DOCX,), force)


@cli.command()
@click.pass_context
def clean(ctx: click.Context) -> None:
    """Remove all generated artifacts.

    Deletes the build directory and compiled books. Chapter sources
    are never touched.
    """
    config = load_config(ctx)
    build_service = get_container(ctx).resolve(BuildService)

    try:
        removed = build_service.clean(config)
    except (BookBuildError, OSError) as e:
        fail(e)
    if not removed:
        click.echo("Nothing to clean.")
        return
    for path in removed:
        click.echo(f"Removed {path}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show the chapter list and build status per target."""
    config = load_config(ctx)
    build_service = get_container(ctx).resolve(BuildService)

    console = Console()
    console.print(f"[bold blue]{config.title}[/bold blue]")
    console.print(f"Location: {config.root}")

    targets = list(TargetFormat)
    woven_status: dict[TargetFormat, dict[str, str]] = {}
    compiled_status: dict[TargetFormat, str] = {}
    for target in targets:
        woven_status[target] = {}
        for status in build_service.plan(config, target):
            label = _status_label(status.exists, status.stale)
            if status.chapter is None:
                compiled_status[target] = label
            elif status.stage == "woven":
                woven_status[target][status.chapter] = label

    table = Table(title=f"Chapters ({len(config.chapters)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Chapter", style="green")
    for target in targets:
        table.add_column(target.value.upper())

    for number, chapter in enumerate(config.chapters, start=1):
        table.add_row(
            str(number),
            chapter.identifier,
            *(woven_status[target][chapter.identifier] for target in targets),
        )
    table.add_section()
    table.add_row("", config.output_name, *(compiled_status[target] for target in targets))

    console.print(table)


def _status_label(exists: bool, stale: bool) -> str:
    if not exists:
        return "[red]missing[/red]"
    if stale:
        return "[yellow]stale[/yellow]"
    return "[green]ok[/green]"


@cli.command()
@click.argument("target", type=click.Choice([t.value for t in TargetFormat]))
@click.option("--depth", "-d", type=int, default=1, help="Heading depth to show (default: 1).")
@click.pass_context
def outline(ctx: click.Context, target: str, depth: int) -> None:
    """Print the table of contents the woven chapters will produce.

    TARGET must have been built first.
    """
    config = load_config(ctx)
    outline_service = get_container(ctx).resolve(OutlineService)

    try:
        book_outline = outline_service.outline(config, TargetFormat.parse(target))
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(f"Run 'bookbuild {target}' first.", err=True)
        sys.exit(1)
    except BookBuildError as e:
        fail(e)

    click.echo(book_outline.to_markdown(depth))


@cli.command()
@click.argument("chapter")
@click.option(
    "--target",
    "-t",
    type=click.Choice([t.value for t in TargetFormat]),
    required=True,
    help="Target format whose macro symbol is defined.",
)
@click.pass_context
def resolve(ctx: click.Context, chapter: str, target: str) -> None:
    """Print one chapter with its macros resolved for TARGET.

    CHAPTER is a chapter identifier from the chapter list.
    """
    config = load_config(ctx)
    build_service = get_container(ctx).resolve(BuildService)

    try:
        text = build_service.resolve_chapter(config, chapter, TargetFormat.parse(target))
    except (BookBuildError, OSError) as e:
        fail(e)
    click.echo(text, nl=False)


@cli.command()
@click.option("--title", "-t", required=True, help="The book title.")
@click.pass_context
def init(ctx: click.Context, title: str) -> None:
    """Initialize a new book project.

    Creates book.yaml and a chapters/ directory with a title block and
    an introduction.
    """
    book_path: Path = ctx.obj[BOOK_PATH_KEY]
    config_path = book_path / CONFIG_FILENAME
    if config_path.exists():
        click.echo(f"Error: A book already exists at {book_path}", err=True)
        sys.exit(1)

    config_repo = get_container(ctx).resolve(ConfigRepository)
    data = default_config(title)
    try:
        chapters_dir = book_path / data["source_dir"]
        chapters_dir.mkdir(parents=True, exist_ok=True)
        (chapters_dir / "000_header.txt").write_text(
            HEADER_TEMPLATE.format(title=title), encoding="utf-8"
        )
        (chapters_dir / "Introduction.txt").write_text(INTRODUCTION_TEMPLATE, encoding="utf-8")
        config_repo.save_yaml(config_path, data)
    except PermissionError as e:
        click.echo(f"Error: Permission denied - {e}", err=True)
        sys.exit(1)

    click.echo(f"Created new book: {title}")
    click.echo(f"  Location: {book_path}")
    click.echo("\nNext steps:")
    click.echo(f"  cd {book_path}")
    click.echo("  bookbuild epub")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
