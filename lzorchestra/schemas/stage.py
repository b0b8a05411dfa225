"""
Stage and module definitions.

A StageDefinition is a named, ordered phase of the deployment holding the
modules that run during it. A ModuleDefinition is the unit of orchestrated
work; its handler lives in the ModuleRegistry dispatch table, keyed by name.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .context import ExecutionPhase


@dataclass(frozen=True)
class ModuleDefinition:
    """
    A module within a stage.

    Attributes:
        name: Module identifier (dispatch table key)
        run_order: Order within the owning stage; equal values run concurrently
        execution_phase: SYNTH or DEPLOY
        description: Human-readable description
        controllable: Whether an operator environment flag may skip this module
    """
    name: str
    run_order: int
    execution_phase: ExecutionPhase = ExecutionPhase.DEPLOY
    description: str = ""
    controllable: bool = False

    def __post_init__(self):
        if isinstance(self.name, Enum):
            object.__setattr__(self, "name", self.name.value)
        if not self.name:
            raise ValueError("ModuleDefinition name is required")
        if not isinstance(self.run_order, int):
            raise ValueError(f"Module {self.name}: run_order must be an integer")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "name": str(self.name),
            "run_order": self.run_order,
            "execution_phase": self.execution_phase.value,
            "description": self.description,
            "controllable": self.controllable,
        }


@dataclass(frozen=True)
class StageDefinition:
    """
    A named, ordered deployment stage.

    Attributes:
        name: Stage name
        run_order: Order among stages; equal values run concurrently
        modules: Modules that run during this stage
    """
    name: str
    run_order: int
    modules: tuple[ModuleDefinition, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if isinstance(self.name, Enum):
            object.__setattr__(self, "name", self.name.value)
        if not self.name:
            raise ValueError("StageDefinition name is required")
        # Accept any iterable of modules but store an immutable tuple
        if not isinstance(self.modules, tuple):
            object.__setattr__(self, "modules", tuple(self.modules))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "name": str(self.name),
            "run_order": self.run_order,
            "modules": [m.to_dict() for m in self.modules],
        }
