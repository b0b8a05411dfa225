"""
Stage deployment - turns stages into deployment units and drives them.

Deployment flow:
1. Select the environments each stage's units target
2. Resolve resource policies for every environment (nearest scope); a
   missing mandatory type fails here, before any unit is created
3. Plan the unit graph (inclusion filter, synthesizer selection)
4. Deploy the graph level by level

Import stages replay the external landing zone's template map through the
phase import sequencer instead, one (account, region) at a time.

Usage:
    deployer = StageDeployer(invocation, await runner.runner_parameters())
    graph = deployer.plan("network-vpc")
    await deployer.deploy("network-vpc", deploy_unit)
"""

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional

from lzorchestra.catalog import IMPORT_STAGES
from lzorchestra.cloud import global_region
from lzorchestra.config import InvocationParameters
from lzorchestra.errors import ConfigurationError
from lzorchestra.inclusion import Candidate, include
from lzorchestra.parameters import RunnerParameters
from lzorchestra.phase_import import JsonFileMappingStore, PhaseImportSequencer, UnitBuilder
from lzorchestra.scheduler import RunOrderScheduler
from lzorchestra.schemas import DeploymentContext, ImportMappingEntry, ResourcePolicy
from lzorchestra.scope import NearestScopeResolver, ScopeTarget
from lzorchestra.units import (
    STAGE_UNITS,
    DeploymentUnit,
    UnitGraph,
    UnitPlanner,
    UnitScope,
    deploy_graph,
)

logger = logging.getLogger(__name__)

Environment = tuple[str, str]


async def noop_deploy_unit(unit: DeploymentUnit) -> str:
    return f"Unit {unit.name} ({unit.synthesizer.strategy.value}): noop"


async def noop_build_unit(entry: ImportMappingEntry) -> dict[str, Any]:
    return {"templatePath": entry.template_path}


def mapping_file_name(account_id: str, region: str) -> str:
    return f"{account_id}-{region}.json"


class StageDeployer:
    """
    Plans and deploys the units of a stage across accounts and regions.

    The inclusion context narrows planning to one stage, and optionally to
    one (account, region); without a stage every non-meta stage is planned.
    """

    def __init__(
        self,
        invocation: InvocationParameters,
        runner: RunnerParameters,
        account_id: Optional[str] = None,
        region: Optional[str] = None,
        scheduler: Optional[RunOrderScheduler] = None,
    ):
        """
        Initialize the deployer.

        Args:
            invocation: Invocation parameters
            runner: Shared runner parameters
            account_id: Narrow a stage run to this account
            region: Narrow a stage run to this region
            scheduler: Scheduler for unit levels and import phases
        """
        self.invocation = invocation
        self.runner = runner
        self.account_id = account_id
        self.region = region
        self.scheduler = scheduler or RunOrderScheduler()

    @property
    def config(self):
        return self.runner.config

    def context(self, stage: Optional[str]) -> DeploymentContext:
        if stage is None:
            return DeploymentContext()
        return DeploymentContext(stage=stage, account_id=self.account_id, region=self.region)

    # =========================================================================
    # ENVIRONMENTS AND POLICIES
    # =========================================================================

    def environments(self, scope: UnitScope) -> tuple[list[str], list[str]]:
        """Candidate accounts and regions for a unit scope."""
        directory = self.runner.directory
        regions = list(self.runner.target_regions)
        home = self.config.home_region

        if scope == UnitScope.ALL:
            return directory.account_ids, regions
        if scope == UnitScope.MANAGEMENT:
            return [directory.management_account_id], regions
        if scope == UnitScope.MANAGEMENT_HOME:
            return [directory.management_account_id], [home]
        if scope == UnitScope.MANAGEMENT_GLOBAL:
            return [directory.management_account_id], [global_region(self.invocation.partition, home)]
        if scope == UnitScope.AUDIT:
            return [directory.audit_account_id], regions
        raise ConfigurationError(f"Unknown unit scope: {scope}")

    def scope_target(self, account_id: str, region: str) -> ScopeTarget:
        record = self.runner.directory.by_id(account_id)
        return ScopeTarget(
            account_id=account_id,
            region=region,
            account_name=record.name if record else None,
            organizational_unit=record.organizational_unit if record else None,
        )

    def resolve_policies(
        self, environments: Iterable[Environment]
    ) -> dict[Environment, tuple[ResourcePolicy, ...]]:
        """
        Resolve the nearest-scope policy set of each environment.

        Raises:
            ResourcePolicyError: If a mandatory resource type is missing
        """
        candidates = self.config.resource_policy_sets
        if not candidates:
            return {}

        resolver = NearestScopeResolver(self.config.mandatory_policy_types)
        resolved = {}
        for account_id, region in environments:
            result = resolver.resolve(candidates, self.scope_target(account_id, region))
            if result is not None:
                resolved[(account_id, region)] = result.policies
        return resolved

    # =========================================================================
    # PLAN AND DEPLOY
    # =========================================================================

    def _stages(self, stage: Optional[str]) -> list[str]:
        if stage is not None:
            return [stage] if stage in STAGE_UNITS else []
        broad = DeploymentContext()
        return [name for name in STAGE_UNITS if include(broad, Candidate(name))]

    def _included_environments(self, stage: str, context: DeploymentContext) -> list[Environment]:
        accounts, regions = self.environments(STAGE_UNITS[stage].scope)
        return [
            (account_id, region)
            for account_id in accounts
            for region in regions
            if include(context, Candidate(stage, account_id, region))
        ]

    def plan(self, stage: Optional[str] = None) -> UnitGraph:
        """
        Build the validated unit graph of one stage, or of every stage.

        Policies are resolved for all included environments first, so a
        missing mandatory policy aborts planning before any unit exists.

        Raises:
            ResourcePolicyError: If a mandatory resource type is missing
            DependencyCycleError: If declared edges do not form a DAG
        """
        stages = self._stages(stage)
        context = self.context(stage)
        if not stages:
            logger.info(f"Stage {stage} has no deployment units", extra={"stage": stage})

        environments: list[Environment] = []
        for name in stages:
            environments.extend(self._included_environments(name, context))
        policies = self.resolve_policies(environments)

        graph = UnitGraph()
        flags = self.runner.synthesizer_flags
        for name in stages:
            accounts, regions = self.environments(STAGE_UNITS[name].scope)
            planner = UnitPlanner(
                context,
                flags,
                use_existing_roles=self.invocation.use_existing_role,
                policies=policies,
            )
            for unit in planner.plan(name, STAGE_UNITS[name].units, accounts, regions).topological_order():
                graph.add(unit)

        graph.validate()
        return graph

    async def deploy(
        self,
        stage: Optional[str],
        deploy_unit: Callable[[DeploymentUnit], Awaitable[Any]],
    ) -> list[Any]:
        """Plan a stage and deploy its units level by level."""
        return await deploy_graph(self.plan(stage), deploy_unit, self.scheduler)

    # =========================================================================
    # IMPORT
    # =========================================================================

    async def import_resources(
        self,
        stage: str,
        build_unit: UnitBuilder,
        mapping_dir: Path,
    ) -> dict[Environment, dict[str, dict[str, Any]]]:
        """
        Replay the template map for every included environment.

        Each environment's per-phase resource mapping is written to
        `{mapping_dir}/{account}-{region}.json`.

        Raises:
            ConfigurationError: If the stage is not an import stage, or the
                template map or accelerator prefix is not configured
        """
        if stage not in IMPORT_STAGES:
            raise ConfigurationError(f"Stage {stage} does not import resources")

        mapping = self.config.asea_template_map
        prefix = self.config.asea_accelerator_prefix
        context = self.context(stage)
        results = {}

        for region in self.runner.target_regions:
            for account_id in self.runner.directory.account_ids:
                if not include(context, Candidate(stage, account_id, region)):
                    continue
                sequencer = PhaseImportSequencer(
                    build_unit,
                    JsonFileMappingStore(Path(mapping_dir) / mapping_file_name(account_id, region)),
                    stage=stage,
                    prefix=prefix,
                    scheduler=self.scheduler,
                )
                results[(account_id, region)] = await sequencer.run(mapping, account_id, region)
        return results
