"""
Nearest-scope resolver.

Picks the most specific configuration object for an account from a
hierarchy of scopes: account > organizational unit > root. Root-scoped
entries act as per-key defaults that the nearer winner overrides entry by
entry (keyed by resource type), rather than being replaced wholesale.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from lzorchestra.errors import ResourcePolicyError
from lzorchestra.schemas import DeploymentTargets, PolicySet, ResourcePolicy

logger = logging.getLogger(__name__)


class Scope(str, Enum):
    """Scope tiers, nearest first."""
    ACCOUNT = "account"
    ORGANIZATIONAL_UNIT = "organizational_unit"
    ROOT = "root"


@dataclass(frozen=True)
class ScopeTarget:
    """
    The environment a configuration object is resolved for.

    Accounts may be targeted by name or by ID, so both are carried.
    """
    account_id: str
    region: str
    account_name: Optional[str] = None
    organizational_unit: Optional[str] = None

    def matches_account(self, accounts: Iterable[str]) -> bool:
        names = set(accounts)
        return self.account_id in names or (
            self.account_name is not None and self.account_name in names
        )


@dataclass(frozen=True)
class ResolvedPolicySet:
    """
    Result of nearest-scope resolution.

    Attributes:
        policy_set: The winning candidate
        scope: Tier the winner was selected from
        policies: Merged entries (root defaults overridden by the winner)
    """
    policy_set: PolicySet
    scope: Scope
    policies: tuple[ResourcePolicy, ...]

    def get(self, resource_type: str) -> Optional[ResourcePolicy]:
        for policy in self.policies:
            if policy.resource_type == resource_type:
                return policy
        return None


def is_included(targets: DeploymentTargets, target: ScopeTarget) -> bool:
    """
    Deployment-target predicate.

    Exclusions win over inclusions. An account is included when targeted
    directly, through its OU, or through the organization root.
    """
    if target.region in targets.excluded_regions:
        return False
    if target.matches_account(targets.excluded_accounts):
        return False
    if target.matches_account(targets.accounts):
        return True
    if target.organizational_unit and target.organizational_unit in targets.organizational_units:
        return True
    return targets.targets_root


class NearestScopeResolver:
    """
    Resolve the nearest applicable PolicySet and merge root defaults.

    Usage:
        resolver = NearestScopeResolver(mandatory_types=("S3_BUCKET", "KMS_KEY"))
        resolved = resolver.resolve(config.resource_policy_sets, target)
    """

    def __init__(self, mandatory_types: Sequence[str] = ()):
        """
        Initialize the resolver.

        Args:
            mandatory_types: Resource types that must have an entry after merge
        """
        self.mandatory_types = tuple(mandatory_types)

    def applicable(self, candidates: Iterable[PolicySet], target: ScopeTarget) -> list[PolicySet]:
        """Candidates whose deployment targets match the target."""
        return [c for c in candidates if is_included(c.deployment_targets, target)]

    def root_candidate(self, candidates: Sequence[PolicySet]) -> Optional[PolicySet]:
        for candidate in candidates:
            if candidate.deployment_targets.targets_root:
                return candidate
        return None

    def nearest(
        self, candidates: Sequence[PolicySet], target: ScopeTarget
    ) -> Optional[tuple[PolicySet, Scope]]:
        """
        Pick the most specific candidate among already-applicable ones.

        Returns:
            (winner, scope) or None when nothing applies
        """
        for candidate in candidates:
            if target.matches_account(candidate.deployment_targets.accounts):
                return candidate, Scope.ACCOUNT

        if target.organizational_unit:
            for candidate in candidates:
                if target.organizational_unit in candidate.deployment_targets.organizational_units:
                    return candidate, Scope.ORGANIZATIONAL_UNIT

        root = self.root_candidate(candidates)
        if root is not None:
            return root, Scope.ROOT
        return None

    def resolve(
        self, candidates: Iterable[PolicySet], target: ScopeTarget
    ) -> Optional[ResolvedPolicySet]:
        """
        Resolve and merge the policy set for a target.

        Args:
            candidates: All configured policy sets
            target: Account/region being resolved

        Returns:
            ResolvedPolicySet, or None when no candidate applies

        Raises:
            ResourcePolicyError: If a mandatory resource type is missing after merge
        """
        applicable = self.applicable(candidates, target)
        selected = self.nearest(applicable, target)
        if selected is None:
            logger.debug(f"No policy set applies to account {target.account_id} in {target.region}")
            return None

        winner, scope = selected
        root = self.root_candidate(applicable)

        merged: dict[str, ResourcePolicy] = {}
        if root is not None and root is not winner:
            merged.update(root.by_resource_type())
        merged.update(winner.by_resource_type())

        self._validate(merged, target)
        logger.debug(
            f"Resolved policy set {winner.name} ({scope.value}) for account {target.account_id}"
        )
        return ResolvedPolicySet(policy_set=winner, scope=scope, policies=tuple(merged.values()))

    def _validate(self, merged: dict[str, ResourcePolicy], target: ScopeTarget) -> None:
        for resource_type in self.mandatory_types:
            if resource_type not in merged:
                raise ResourcePolicyError(resource_type, target.account_id)
