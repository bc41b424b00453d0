"""Target output formats."""

from enum import Enum


class TargetFormat(str, Enum):
    """A supported final output encoding.

    Each target knows the macro symbol its chapters are resolved with,
    the extension of the compiled document and the pandoc writer.
    """

    PDF = "pdf"
    EPUB = "epub"
    DOCX = "docx"

    @property
    def macro_symbol(self) -> str:
        # The word-processor export is built from the PDF sources
        if self is TargetFormat.EPUB:
            return "EPUB"
        return "PDF"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def writer(self) -> str | None:
        """pandoc ``-t`` value, or None when pandoc infers it from the output."""
        return {
            TargetFormat.PDF: None,
            TargetFormat.EPUB: "epub3",
            TargetFormat.DOCX: "docx",
        }[self]

    @classmethod
    def parse(cls, value: str) -> "TargetFormat":
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown target '{value}' (expected one of: {valid})")


# Targets built by ``bookbuild all``, in build order
DEFAULT_TARGETS = (TargetFormat.PDF, TargetFormat.EPUB)
