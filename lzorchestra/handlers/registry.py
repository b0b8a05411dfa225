"""
Module registry - the immutable stage graph and handler dispatch table.

The registry is constructed once at startup and passed into the
ModuleRunner. It holds every StageDefinition and a dispatch table mapping
module identifiers (ModuleName values) to handlers. Construction validates
the table exhaustively: every module of every stage must have a handler.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Iterable, Optional, Union

from lzorchestra.catalog import ModuleName, default_stages
from lzorchestra.errors import UnknownModuleError
from lzorchestra.handlers.base import ModuleHandler, NoOpModuleHandler
from lzorchestra.parameters import ModuleParameters
from lzorchestra.schemas import StageDefinition

HandlerKey = Union[ModuleName, str]


class ModuleRegistry:
    """
    Immutable registry of stages and module handlers.

    Usage:
        registry = ModuleRegistry.create_default({
            ModuleName.CREATE_STACK_POLICY: StackPolicyHandler(),
        })
        handler = registry.get(ModuleName.CREATE_STACK_POLICY)

        # Or all NoOp handlers for dry runs and tests
        registry = ModuleRegistry.create_noop()
    """

    def __init__(
        self,
        stages: Iterable[StageDefinition],
        handlers: Mapping[HandlerKey, ModuleHandler],
    ) -> None:
        """
        Initialize the registry.

        Args:
            stages: Stage definitions (duplicates are kept; the runner rejects them)
            handlers: Dispatch table keyed by module identifier

        Raises:
            UnknownModuleError: If a module has no handler
        """
        self._stages: tuple[StageDefinition, ...] = tuple(stages)
        self._handlers: Mapping[str, ModuleHandler] = MappingProxyType(
            {_key(name): handler for name, handler in handlers.items()}
        )

        for stage in self._stages:
            for module in stage.modules:
                if str(module.name) not in self._handlers:
                    raise UnknownModuleError(str(module.name))

    @property
    def stages(self) -> tuple[StageDefinition, ...]:
        return self._stages

    def find_stages(self, name: str) -> list[StageDefinition]:
        """All stage definitions with this name (more than one is a configuration error)."""
        return [stage for stage in self._stages if stage.name == name]

    def get(self, module: HandlerKey) -> ModuleHandler:
        """
        Get the handler for a module.

        Raises:
            UnknownModuleError: If no handler is registered for this module
        """
        key = _key(module)
        if key not in self._handlers:
            raise UnknownModuleError(key)
        return self._handlers[key]

    def has(self, module: HandlerKey) -> bool:
        return _key(module) in self._handlers

    def list_modules(self) -> list[str]:
        """List all module identifiers with a handler."""
        return list(self._handlers.keys())

    async def dispatch(self, params: ModuleParameters) -> str:
        """
        Dispatch module parameters to the module's handler.

        Returns:
            The handler's status line
        """
        return await self.get(params.module.name).execute(params)

    @classmethod
    def create_default(
        cls,
        handlers: Optional[Mapping[HandlerKey, ModuleHandler]] = None,
        stages: Optional[Iterable[StageDefinition]] = None,
    ) -> "ModuleRegistry":
        """
        Create a registry over the default stage catalog.

        Catalog modules without a supplied handler get a NoOpModuleHandler.

        Args:
            handlers: Handlers overriding the NoOp default, keyed by ModuleName
            stages: Stage definitions; defaults to the built-in catalog

        Returns:
            Configured ModuleRegistry
        """
        table: dict[HandlerKey, ModuleHandler] = {name: NoOpModuleHandler() for name in ModuleName}
        table.update(handlers or {})
        return cls(stages if stages is not None else default_stages(), table)

    @classmethod
    def create_noop(cls) -> "ModuleRegistry":
        """
        Create a registry with all NoOp handlers.

        Useful for testing and dry-run mode.
        """
        return cls.create_default()


def _key(module: HandlerKey) -> str:
    return module.value if isinstance(module, ModuleName) else module
