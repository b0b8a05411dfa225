"""
Inclusion filter - decides which (stage, account, region) combinations
are materialized in the current invocation.

Evaluated once per candidate before any deployment unit is constructed,
so excluded candidates never trigger credential resolution.
"""

from dataclasses import dataclass
from typing import Optional

from lzorchestra.catalog import META_STAGES
from lzorchestra.schemas import DeploymentContext


@dataclass(frozen=True)
class Candidate:
    """A (stage, account, region) combination that could be materialized."""
    stage: str
    account_id: Optional[str] = None
    region: Optional[str] = None


def include(context: DeploymentContext, candidate: Candidate) -> bool:
    """
    Decide whether a candidate belongs to the current invocation.

    Args:
        context: Scope of the current invocation
        candidate: Combination under consideration

    Returns:
        True if the candidate should be materialized
    """
    # Broad synthesis: everything except pipeline bootstrap stages
    if context.stage is None:
        return candidate.stage not in META_STAGES

    if context.stage != candidate.stage:
        return False

    if context.account_id is None and context.region is None:
        return True

    if context.account_id is not None and context.region is not None:
        return (
            context.account_id == candidate.account_id
            and context.region == candidate.region
        )

    return False
