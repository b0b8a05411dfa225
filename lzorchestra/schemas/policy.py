"""
Resource policy schemas used by nearest-scope resolution.

A PolicySet is addressed by deployment targets at three scopes: accounts,
organizational units, and the organization root ("Root").
"""

from dataclasses import dataclass, field
from typing import Any

ROOT_OU = "Root"


@dataclass(frozen=True)
class DeploymentTargets:
    """
    Where a configuration object applies.

    Attributes:
        accounts: Account names/IDs targeted directly
        organizational_units: OU names targeted (ROOT_OU for the whole organization)
        excluded_accounts: Accounts never targeted
        excluded_regions: Regions never targeted
    """
    accounts: tuple[str, ...] = ()
    organizational_units: tuple[str, ...] = ()
    excluded_accounts: tuple[str, ...] = ()
    excluded_regions: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "DeploymentTargets":
        """Deserialize from a config mapping."""
        data = data or {}
        return cls(
            accounts=tuple(data.get("accounts") or ()),
            organizational_units=tuple(data.get("organizationalUnits") or ()),
            excluded_accounts=tuple(data.get("excludedAccounts") or ()),
            excluded_regions=tuple(data.get("excludedRegions") or ()),
        )

    @property
    def targets_root(self) -> bool:
        return ROOT_OU in self.organizational_units


@dataclass(frozen=True)
class ResourcePolicy:
    """A single policy document for one resource type."""
    resource_type: str
    document: str


@dataclass(frozen=True)
class PolicySet:
    """
    A scoped collection of resource policies.

    Attributes:
        name: Identifier for logging
        deployment_targets: Scope the set applies to
        policies: Policy entries; a later entry for the same resource_type wins
    """
    name: str
    deployment_targets: DeploymentTargets
    policies: tuple[ResourcePolicy, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.policies, tuple):
            object.__setattr__(self, "policies", tuple(self.policies))

    def by_resource_type(self) -> dict[str, ResourcePolicy]:
        """Policies keyed by resource type, last declaration winning."""
        return {p.resource_type: p for p in self.policies}

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int = 0) -> "PolicySet":
        """Deserialize from a security-config policySets entry."""
        policies = [
            ResourcePolicy(resource_type=p["resourceType"], document=p["document"])
            for p in data.get("resourcePolicies") or []
        ]
        return cls(
            name=data.get("name", f"policy-set-{index}"),
            deployment_targets=DeploymentTargets.from_dict(data.get("deploymentTargets")),
            policies=tuple(policies),
        )
