"""Minimal dependency injection container.

Services are registered as factories keyed by type and resolved lazily
as singletons, so the CLI wires everything in one place.
"""

from typing import Any, Callable, TypeVar

from ..repositories import ConfigRepository, FileRepository
from ..services import (
    BuildService,
    CodeWeaver,
    DocumentCompiler,
    GppMacroResolver,
    MacroResolver,
    OutlineService,
    ToolRunner,
)

T = TypeVar("T")


class ServiceContainer:
    """Registry of service factories with singleton resolution."""

    def __init__(self) -> None:
        self._factories: dict[type, Callable[["ServiceContainer"], Any]] = {}
        self._instances: dict[type, Any] = {}

    def register(self, key: type, factory: Callable[["ServiceContainer"], Any]) -> None:
        """Register a factory for ``key``, replacing any previous one."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_instance(self, key: type, instance: Any) -> None:
        self._instances[key] = instance

    def resolve(self, key: type[T]) -> T:
        """Return the singleton for ``key``, creating it on first use.

        Raises:
            KeyError: If nothing is registered for ``key``.
        """
        if key in self._instances:
            return self._instances[key]
        if key not in self._factories:
            raise KeyError(f"No service registered for {key.__name__}")
        instance = self._factories[key](self)
        self._instances[key] = instance
        return instance


def configure_services() -> ServiceContainer:
    """Create a container with the default service wiring."""
    container = ServiceContainer()

    container.register(FileRepository, lambda c: FileRepository())
    container.register(ConfigRepository, lambda c: ConfigRepository())
    container.register(ToolRunner, lambda c: ToolRunner())
    container.register(MacroResolver, lambda c: MacroResolver())
    container.register(GppMacroResolver, lambda c: GppMacroResolver(c.resolve(ToolRunner)))
    container.register(CodeWeaver, lambda c: CodeWeaver())
    container.register(DocumentCompiler, lambda c: DocumentCompiler(c.resolve(ToolRunner)))
    container.register(
        BuildService,
        lambda c: BuildService(
            c.resolve(FileRepository),
            {
                "builtin": c.resolve(MacroResolver),
                "gpp": c.resolve(GppMacroResolver),
            },
            c.resolve(CodeWeaver),
            c.resolve(DocumentCompiler),
        ),
    )
    container.register(OutlineService, lambda c: OutlineService(c.resolve(FileRepository)))

    return container
