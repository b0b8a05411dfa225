"""
DeploymentContext schema - the scope of the current invocation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ExecutionPhase(str, Enum):
    """Phase a module belongs to: synthesis-only or full deploy."""
    SYNTH = "synth"
    DEPLOY = "deploy"


@dataclass(frozen=True)
class DeploymentContext:
    """
    Scope of the current invocation.

    An unset stage means a broad synthesis of every non-meta stage. Account
    and region narrow a stage run to a single environment.

    Attributes:
        stage: Stage name to run, or None for all stages
        account_id: Target account, or None for all accounts
        region: Target region, or None for all regions
    """
    stage: Optional[str] = None
    account_id: Optional[str] = None
    region: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "stage": self.stage,
            "account_id": self.account_id,
            "region": self.region,
        }
