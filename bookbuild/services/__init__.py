"""Service layer for book builds.

Provides the three build stages (macro resolution, weaving, compiling),
the orchestrating build service and outline extraction.
"""

from .interfaces import IMacroResolver, ICodeWeaver, IDocumentCompiler
from .tool_runner import ToolRunner
from .macro_service import MacroResolver, GppMacroResolver
from .weave_service import CodeWeaver, EvaluationContext, WeaveResult
from .compiler_service import DocumentCompiler
from .build_service import BuildService
from .outline_service import OutlineService

__all__ = [
    "IMacroResolver",
    "ICodeWeaver",
    "IDocumentCompiler",
    "ToolRunner",
    "MacroResolver",
    "GppMacroResolver",
    "CodeWeaver",
    "EvaluationContext",
    "WeaveResult",
    "DocumentCompiler",
    "BuildService",
    "OutlineService",
]
