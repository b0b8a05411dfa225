"""
Handlers module for lzorchestra modules.

The ModuleRunner never calls module code directly; it dispatches through
the ModuleRegistry, which maps module identifiers to handlers.

Usage:
    from lzorchestra.handlers import ModuleRegistry, FunctionModuleHandler

    registry = ModuleRegistry.create_default({
        ModuleName.MOVE_ACCOUNTS: FunctionModuleHandler(move_accounts),
    })
"""

from lzorchestra.handlers.base import FunctionModuleHandler, ModuleHandler, NoOpModuleHandler
from lzorchestra.handlers.registry import ModuleRegistry

__all__ = [
    "ModuleHandler",
    "NoOpModuleHandler",
    "FunctionModuleHandler",
    "ModuleRegistry",
]
