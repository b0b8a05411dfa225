"""
Base module handler and common implementations.

Module handlers perform the actual work of a module. The ModuleRunner
dispatches to them through the ModuleRegistry; each receives the module's
ModuleParameters and returns one status line.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from lzorchestra.parameters import ModuleParameters


class ModuleHandler(ABC):
    """
    Abstract base class for module handlers.

    Handlers must not mutate the shared runner parameters.
    """

    @abstractmethod
    async def execute(self, params: ModuleParameters) -> str:
        """
        Execute a module.

        Args:
            params: Module, stage, invocation and shared runner parameters

        Returns:
            Status line for this module

        Raises:
            Exception: If execution fails
        """
        pass


class NoOpModuleHandler(ModuleHandler):
    """
    No-op handler for testing and dry-run mode.

    Returns a status line without executing anything.
    """

    async def execute(self, params: ModuleParameters) -> str:
        """Return a no-op status without executing."""
        return f'Module "{params.module_name}" of "{params.stage_name}" stage: noop'


class FunctionModuleHandler(ModuleHandler):
    """Adapts a coroutine function to the ModuleHandler interface."""

    def __init__(self, func: Callable[[ModuleParameters], Awaitable[str]]):
        self.func = func

    async def execute(self, params: ModuleParameters) -> str:
        return await self.func(params)
