"""
lzorchestra - Landing zone deployment orchestrator

Schedules configuration-driven deployment stages and modules across
accounts and regions, resolving credentials and deployment roles per
environment.
"""

__version__ = "0.1.0"


__all__ = ["InvocationParameters", "load_config", "ModuleRunner"]

from .config import InvocationParameters, load_config
from .runner import ModuleRunner
