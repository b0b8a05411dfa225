"""
Deployment units and their dependency graph.

A deployment unit is one (logical unit, account, region) artifact. Units
declare dependencies as explicit edges on a UnitGraph, which validates them
topologically before anything is materialized, so an omitted or reversed
dependency surfaces at plan time rather than during deployment.

Planning flow:
1. Inclusion filter scopes (stage, account, region) candidates
2. Synthesizer selection equips each environment with a role/storage strategy
3. Logical units and their edges are added to the graph
4. The graph is validated and scheduled level by level
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from lzorchestra.catalog import StageName
from lzorchestra.errors import ConfigurationError, DependencyCycleError
from lzorchestra.inclusion import Candidate, include
from lzorchestra.scheduler import RunOrderScheduler
from lzorchestra.schemas import DeploymentContext, ResourcePolicy, SynthesizerConfig
from lzorchestra.synthesizer import (
    SynthesizerFlags,
    select_synthesizer,
    toolkit_deployment_role_name,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")


def unit_name(logical_name: str, account_id: str, region: str) -> str:
    """Materialized unit name: {LogicalName}-{account}-{region}."""
    return f"{logical_name}-{account_id}-{region}"


@dataclass(frozen=True)
class LogicalUnit:
    """
    A unit template instantiated once per (account, region).

    Attributes:
        name: Logical name
        depends_on: Logical names this unit depends on in the same environment
        termination_protection: Protect the materialized unit from deletion
    """
    name: str
    depends_on: tuple[str, ...] = ()
    termination_protection: bool = True


# Network VPC stage: vpc -> endpoints -> dns
NETWORK_VPC_UNITS = (
    LogicalUnit("NetworkVpcStack"),
    LogicalUnit("NetworkVpcEndpointsStack", depends_on=("NetworkVpcStack",)),
    LogicalUnit("NetworkVpcDnsStack", depends_on=("NetworkVpcEndpointsStack",)),
)


class UnitScope(str, Enum):
    """Which environments a stage's units are instantiated in."""
    ALL = "all"
    MANAGEMENT = "management"
    MANAGEMENT_HOME = "management_home"
    MANAGEMENT_GLOBAL = "management_global"
    AUDIT = "audit"


@dataclass(frozen=True)
class StageUnits:
    """Logical units of one stage and the environments they target."""
    scope: UnitScope
    units: tuple[LogicalUnit, ...]


def _single(name: str) -> tuple[LogicalUnit, ...]:
    return (LogicalUnit(name),)


STAGE_UNITS: dict[str, StageUnits] = {
    StageName.PREPARE.value: StageUnits(UnitScope.MANAGEMENT_HOME, _single("PrepareStack")),
    StageName.ACCOUNTS.value: StageUnits(UnitScope.MANAGEMENT_GLOBAL, _single("AccountsStack")),
    StageName.BOOTSTRAP.value: StageUnits(UnitScope.ALL, _single("BootstrapStack")),
    StageName.KEY.value: StageUnits(UnitScope.ALL, _single("KeyStack")),
    StageName.LOGGING.value: StageUnits(UnitScope.ALL, _single("LoggingStack")),
    StageName.ORGANIZATIONS.value: StageUnits(UnitScope.MANAGEMENT, _single("OrganizationsStack")),
    StageName.SECURITY_AUDIT.value: StageUnits(UnitScope.AUDIT, _single("SecurityAuditStack")),
    StageName.NETWORK_PREP.value: StageUnits(UnitScope.ALL, _single("NetworkPrepStack")),
    StageName.SECURITY.value: StageUnits(UnitScope.ALL, _single("SecurityStack")),
    StageName.OPERATIONS.value: StageUnits(UnitScope.ALL, _single("OperationsStack")),
    StageName.NETWORK_VPC.value: StageUnits(UnitScope.ALL, NETWORK_VPC_UNITS),
    StageName.SECURITY_RESOURCES.value: StageUnits(UnitScope.ALL, _single("SecurityResourcesStack")),
    StageName.IDENTITY_CENTER.value: StageUnits(UnitScope.MANAGEMENT_HOME, _single("IdentityCenterStack")),
    StageName.NETWORK_ASSOCIATIONS.value: StageUnits(UnitScope.ALL, _single("NetworkAssociationsStack")),
    StageName.CUSTOMIZATIONS.value: StageUnits(UnitScope.ALL, _single("CustomizationsStack")),
    StageName.FINALIZE.value: StageUnits(UnitScope.MANAGEMENT_GLOBAL, _single("FinalizeStack")),
}


@dataclass(frozen=True)
class DeploymentUnit:
    """
    A named, account/region-scoped artifact.

    Attributes:
        name: Unique unit name
        account: Account the unit deploys into
        region: Region the unit deploys into
        synthesizer: Role/storage strategy for this environment
        stage: Stage the unit belongs to
        dependencies: Names of units that must deploy first
        termination_protection: Protect from deletion
        resource_policies: Resolved resource policies for the unit's account
        use_existing_roles: Reference pre-existing IAM roles instead of creating them
        toolkit_role_name: Role the toolkit deploys with, when it differs from the synthesizer role
    """
    name: str
    account: str
    region: str
    synthesizer: SynthesizerConfig
    stage: Optional[str] = None
    dependencies: tuple[str, ...] = field(default_factory=tuple)
    termination_protection: bool = True
    resource_policies: tuple[ResourcePolicy, ...] = ()
    use_existing_roles: bool = False
    toolkit_role_name: Optional[str] = None


class UnitGraph:
    """
    Directed acyclic graph of deployment units.

    Usage:
        graph = UnitGraph()
        graph.add(vpc)
        graph.add(endpoints)
        graph.add_dependency(endpoints.name, vpc.name)
        order = graph.topological_order()
    """

    def __init__(self) -> None:
        self._units: dict[str, DeploymentUnit] = {}
        self._edges: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, name: str) -> bool:
        return name in self._units

    def add(self, unit: DeploymentUnit) -> None:
        """
        Add a unit and the dependencies it declares.

        Raises:
            ConfigurationError: If a unit with the same name already exists
        """
        if unit.name in self._units:
            raise ConfigurationError(f"Duplicate deployment unit: {unit.name}")
        self._units[unit.name] = unit
        self._edges[unit.name] = list(unit.dependencies)

    def add_dependency(self, name: str, depends_on: str) -> None:
        """Declare that `name` must deploy after `depends_on`."""
        if name not in self._units:
            raise DependencyCycleError(f"Unknown deployment unit: {name}")
        if depends_on not in self._edges[name]:
            self._edges[name].append(depends_on)

    def get(self, name: str) -> DeploymentUnit:
        if name not in self._units:
            raise KeyError(f"Unknown deployment unit: {name}. Known: {list(self._units)}")
        return self._units[name]

    def dependencies_of(self, name: str) -> list[DeploymentUnit]:
        return [self._units[dep] for dep in self._edges[name]]

    @property
    def units(self) -> list[DeploymentUnit]:
        return list(self._units.values())

    def topological_order(self) -> list[DeploymentUnit]:
        """
        Units ordered so every dependency precedes its dependents.

        Ties keep insertion order, so the result is deterministic.

        Raises:
            DependencyCycleError: On unknown dependencies or cycles
        """
        return [self._units[name] for name in self._sorted_names()]

    def validate(self) -> None:
        """Raise DependencyCycleError unless the graph is a DAG."""
        self._sorted_names()

    def levels(self) -> dict[str, int]:
        """
        Depth of each unit: 0 without dependencies, else 1 + deepest dependency.

        Units on the same level have no path between them and may deploy
        concurrently.
        """
        depth: dict[str, int] = {}
        for name in self._sorted_names():
            depth[name] = max((depth[dep] + 1 for dep in self._edges[name]), default=0)
        return depth

    def _sorted_names(self) -> list[str]:
        for name, deps in self._edges.items():
            for dep in deps:
                if dep not in self._units:
                    raise DependencyCycleError(
                        f"Deployment unit {name} depends on unknown unit {dep}"
                    )

        # Kahn's algorithm
        remaining = {name: len(deps) for name, deps in self._edges.items()}
        dependents: dict[str, list[str]] = {name: [] for name in self._units}
        for name, deps in self._edges.items():
            for dep in deps:
                dependents[dep].append(name)

        ready = [name for name in self._units if remaining[name] == 0]
        ordered: list[str] = []
        while ready:
            name = ready.pop(0)
            ordered.append(name)
            for dependent in dependents[name]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    ready.append(dependent)

        if len(ordered) != len(self._units):
            cyclic = sorted(name for name, count in remaining.items() if count > 0)
            raise DependencyCycleError(
                f"Circular dependency detected involving units: {', '.join(cyclic)}"
            )
        return ordered


class UnitPlanner:
    """
    Build the unit graph for a stage across accounts and regions.

    Only environments accepted by the inclusion filter are instantiated.
    """

    def __init__(
        self,
        context: DeploymentContext,
        flags: SynthesizerFlags,
        use_existing_roles: bool = False,
        policies: Optional[Mapping[tuple[str, str], tuple[ResourcePolicy, ...]]] = None,
    ):
        """
        Initialize the planner.

        Args:
            context: Scope of the current invocation
            flags: Global synthesizer inputs
            use_existing_roles: Propagated to every planned unit
            policies: Resolved resource policies keyed by (account ID, region)
        """
        self.context = context
        self.flags = flags
        self.use_existing_roles = use_existing_roles
        self.policies = policies or {}

    def plan(
        self,
        stage: str,
        logical_units: Iterable[LogicalUnit],
        accounts: Iterable[str],
        regions: Iterable[str],
    ) -> UnitGraph:
        """
        Instantiate logical units for every included environment.

        Args:
            stage: Stage being planned
            logical_units: Unit templates and their intra-environment edges
            accounts: Candidate account IDs
            regions: Candidate regions

        Returns:
            Validated UnitGraph

        Raises:
            DependencyCycleError: If declared edges do not form a DAG
        """
        templates = list(logical_units)
        regions = list(regions)
        graph = UnitGraph()

        for account_id in accounts:
            for region in regions:
                if not include(self.context, Candidate(stage, account_id, region)):
                    continue

                synthesizer = select_synthesizer(account_id, region, stage, self.flags)
                toolkit_role = toolkit_deployment_role_name(stage, account_id, self.flags)
                for template in templates:
                    graph.add(DeploymentUnit(
                        name=unit_name(template.name, account_id, region),
                        account=account_id,
                        region=region,
                        synthesizer=synthesizer,
                        stage=stage,
                        dependencies=tuple(
                            unit_name(dep, account_id, region) for dep in template.depends_on
                        ),
                        termination_protection=template.termination_protection,
                        resource_policies=self.policies.get((account_id, region), ()),
                        use_existing_roles=self.use_existing_roles,
                        toolkit_role_name=toolkit_role,
                    ))

        graph.validate()
        logger.info(f"Planned {len(graph)} deployment units for stage {stage}")
        return graph


async def deploy_graph(
    graph: UnitGraph,
    deploy_unit: Callable[[DeploymentUnit], Awaitable[R]],
    scheduler: Optional[RunOrderScheduler] = None,
) -> list[R]:
    """
    Deploy a validated graph level by level.

    Units of one level run concurrently; a level starts only after every
    unit of the previous level has settled.
    """
    scheduler = scheduler or RunOrderScheduler()
    depth = graph.levels()
    return await scheduler.run(
        [(depth[unit.name], unit) for unit in graph.topological_order()],
        deploy_unit,
    )
