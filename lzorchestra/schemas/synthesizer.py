"""
SynthesizerConfig schema - how a deployment unit authenticates and publishes artifacts.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class SynthesizerStrategy(str, Enum):
    """Credential strategy for a deployment unit."""
    AMBIENT_CREDENTIALS = "ambient_credentials"
    CUSTOM_ROLE = "custom_role"
    DEFAULT_ROLE = "default_role"


@dataclass(frozen=True)
class SynthesizerConfig:
    """
    Strategy object computed once per (account, region, stage).

    Attributes:
        strategy: Which credentials the unit deploys with
        role_arn: Deployment role ARN (None for ambient credentials)
        asset_bucket_name: Artifact bucket the unit publishes to
        asset_bucket_prefix: Object-key prefix within a shared bucket, or None
        qualifier: Toolkit qualifier used for bootstrap resources
    """
    strategy: SynthesizerStrategy
    role_arn: Optional[str] = None
    asset_bucket_name: Optional[str] = None
    asset_bucket_prefix: Optional[str] = None
    qualifier: str = "accel"

    def __post_init__(self):
        if self.strategy == SynthesizerStrategy.AMBIENT_CREDENTIALS:
            if self.role_arn is not None:
                raise ValueError("AMBIENT_CREDENTIALS synthesizer must not carry a role ARN")
        elif not self.role_arn:
            raise ValueError(f"{self.strategy.name} synthesizer requires a role ARN")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "strategy": self.strategy.value,
            "role_arn": self.role_arn,
            "asset_bucket_name": self.asset_bucket_name,
            "asset_bucket_prefix": self.asset_bucket_prefix,
            "qualifier": self.qualifier,
        }
