"""
ModuleRunner - top-level orchestration of stages and modules.

Execution flow:
1. Select stage definitions (one named stage, or every stage that the
   inclusion filter admits to a broad run)
2. Reject duplicate stage declarations
3. Filter modules by execution phase and operator skip flags
4. Compute the shared runner parameters once (memoized)
5. Schedule: stage groups by stage run order (outer), module groups by
   module run order (inner); groups run sequentially, group members
   concurrently
6. Join one status line per module

A failure in any module aborts the run: the error propagates, no later
group starts, and no joined status is produced. Siblings already running
are not cancelled; drain() waits for them.

Usage:
    runner = ModuleRunner(invocation, ModuleRegistry.create_default(), cloud)
    status = await runner.execute("prepare")
"""

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from lzorchestra.catalog import MAX_CONCURRENT_MODULE_EXECUTIONS, ModuleName
from lzorchestra.cloud import CloudProvider
from lzorchestra.config import AcceleratorConfig, ConfigProvider, InvocationParameters
from lzorchestra.credentials import CredentialResolver
from lzorchestra.deployment import StageDeployer
from lzorchestra.errors import DuplicateStageError
from lzorchestra.handlers.registry import ModuleRegistry
from lzorchestra.inclusion import Candidate, include
from lzorchestra.parameters import (
    CentralLoggingResources,
    ModuleParameters,
    RunnerParameters,
    build_runner_parameters,
    lookup_central_logging,
    needs_central_logging,
)
from lzorchestra.scheduler import RunOrderScheduler
from lzorchestra.schemas import DeploymentContext, ModuleDefinition, StageDefinition
from lzorchestra.utils import pascal_case

logger = logging.getLogger(__name__)


def no_modules_status(stage: str) -> str:
    return f'No modules found for "{stage}" stage'


def skip_variable_name(module_name: str) -> str:
    """Environment variable that skips a module: Skip<PascalModuleName>."""
    return pascal_case(f"skip-{module_name}")


def is_skipped_by_environment(
    module: ModuleDefinition, environ: Optional[Mapping[str, str]] = None
) -> bool:
    """
    Check the operator skip flag for a module.

    Only execution-controllable modules honor the flag. The value is
    compared case-insensitively against "true".
    """
    if not module.controllable:
        return False

    environ = os.environ if environ is None else environ
    variable = skip_variable_name(str(module.name))
    if environ.get(variable, "").lower() == "true":
        logger.warning(
            f"Module {module.name} skipped by environment variable settings. "
            f"To enable the module execution remove the environment variable {variable} "
            f"or set it to false (case insensitive).",
            extra={"module_name": str(module.name)},
        )
        return True
    return False


@dataclass(frozen=True)
class _PlannedModule:
    """A module selected for this run, with its skip decision."""
    stage: StageDefinition
    module: ModuleDefinition
    skip_variable: Optional[str] = None


class ModuleRunner:
    """
    Executes the modules of one stage, or of every stage.

    The registry is immutable and injected; the runner parameters bundle is
    computed on first use and shared read-only by every module.
    """

    def __init__(
        self,
        invocation: InvocationParameters,
        registry: ModuleRegistry,
        cloud: CloudProvider,
        config_provider: Optional[ConfigProvider] = None,
        environ: Optional[Mapping[str, str]] = None,
        max_concurrency: Optional[int] = MAX_CONCURRENT_MODULE_EXECUTIONS,
    ):
        """
        Initialize the runner.

        Args:
            invocation: Invocation parameters
            registry: Stage graph and handler dispatch table
            cloud: Cloud provider
            config_provider: Configuration loader; defaults to invocation.config_dir
            environ: Environment for skip flags; defaults to os.environ
            max_concurrency: Upper bound on modules in flight at once
        """
        self.invocation = invocation
        self.registry = registry
        self.cloud = cloud
        self.resolver = CredentialResolver(cloud)
        self.config_provider = config_provider or ConfigProvider(invocation.config_dir)
        self.environ = environ

        self._stage_scheduler = RunOrderScheduler()
        self._module_scheduler = RunOrderScheduler(max_concurrency=max_concurrency)

        self._lock: Optional[asyncio.Lock] = None
        self._config: Optional[AcceleratorConfig] = None
        self._runner_parameters: Optional[RunnerParameters] = None
        self._central_logging_resolved = False
        self._central_logging: Optional[CentralLoggingResources] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def execute(self, stage: Optional[str] = None) -> str:
        """
        Execute modules and join their status lines.

        Args:
            stage: Stage to run; defaults to the invocation stage, and runs
                   every stage when both are unset

        Returns:
            Newline-joined status lines

        Raises:
            DuplicateStageError: If a stage name is declared more than once
            Exception: The first module failure
        """
        stage = stage if stage is not None else self.invocation.stage

        if stage is None:
            statuses = await self._execute_all_stages()
        else:
            statuses = await self._execute_named_stage(stage)

        return "\n".join(statuses)

    async def runner_parameters(self) -> RunnerParameters:
        """Shared runner parameters, computed once per runner."""
        async with self._get_lock():
            if self._runner_parameters is None:
                config = self._load_config()
                self._runner_parameters = await build_runner_parameters(
                    self.invocation, config, self.cloud, self.resolver
                )
            return self._runner_parameters

    async def central_logging(self) -> Optional[CentralLoggingResources]:
        """Central logging resources, looked up once per runner."""
        runner = await self.runner_parameters()
        async with self._get_lock():
            if not self._central_logging_resolved:
                self._central_logging = await lookup_central_logging(
                    self.invocation, runner, self.cloud, self.resolver
                )
                self._central_logging_resolved = True
            return self._central_logging

    async def stage_deployer(
        self, account_id: Optional[str] = None, region: Optional[str] = None
    ) -> StageDeployer:
        """Unit planner/deployer sharing this runner's parameters."""
        runner = await self.runner_parameters()
        return StageDeployer(self.invocation, runner, account_id=account_id, region=region)

    async def drain(self) -> None:
        """Wait for modules still running after a failed group."""
        await self._module_scheduler.drain()
        await self._stage_scheduler.drain()

    # =========================================================================
    # STAGE SELECTION
    # =========================================================================

    async def _execute_named_stage(self, name: str) -> list[str]:
        matches = self.registry.find_stages(name)
        if not matches:
            return [no_modules_status(name)]
        if len(matches) > 1:
            raise DuplicateStageError(name)
        return await self._execute_stage(matches[0])

    async def _execute_all_stages(self) -> list[str]:
        context = DeploymentContext()
        stages = [
            stage for stage in self.registry.stages
            if include(context, Candidate(stage.name))
        ]

        seen: set[str] = set()
        for stage in stages:
            if stage.name in seen:
                raise DuplicateStageError(stage.name)
            seen.add(stage.name)

        return await self._stage_scheduler.run(
            [(stage.run_order, stage) for stage in stages],
            self._execute_stage_lines,
        )

    async def _execute_stage_lines(self, stage: StageDefinition) -> str:
        # Outer groups collect one joined block per stage
        return "\n".join(await self._execute_stage(stage))

    # =========================================================================
    # MODULE EXECUTION
    # =========================================================================

    def _plan_stage(self, stage: StageDefinition) -> list[_PlannedModule]:
        planned = []
        for module in stage.modules:
            if module.execution_phase != self.invocation.phase:
                logger.debug(
                    f"Module {module.name} filtered out for {self.invocation.phase.value} run",
                    extra={"stage": stage.name, "module_name": str(module.name)},
                )
                continue
            skip = None
            if is_skipped_by_environment(module, self.environ):
                skip = skip_variable_name(str(module.name))
            planned.append(_PlannedModule(stage=stage, module=module, skip_variable=skip))
        return planned

    async def _execute_stage(self, stage: StageDefinition) -> list[str]:
        planned = self._plan_stage(stage)
        if all(item.skip_variable for item in planned):
            return [no_modules_status(stage.name)]

        logger.info(
            f"Executing {len(planned)} modules for stage {stage.name}",
            extra={"stage": stage.name},
        )
        return await self._module_scheduler.run(
            [(item.module.run_order, item) for item in planned],
            self._execute_module,
        )

    async def _execute_module(self, item: _PlannedModule) -> str:
        module, stage = item.module, item.stage
        extra = {"stage": stage.name, "module_name": str(module.name)}

        if item.skip_variable:
            return f"Module {module.name} execution skipped by environment variable {item.skip_variable}"

        runner = await self.runner_parameters()

        if (
            module.name == ModuleName.SETUP_CONTROL_TOWER_LANDING_ZONE.value
            and runner.config.control_tower_landing_zone is None
        ):
            logger.info(f"Module {module.name} has no landing zone configuration", extra=extra)
            return (
                f"Module {module.name} execution skipped, "
                f"No configuration found for Control Tower Landing zone"
            )

        central_logging = None
        if needs_central_logging(stage, module):
            central_logging = await self.central_logging()

        params = ModuleParameters(
            module=module,
            stage=stage,
            invocation=self.invocation,
            runner=runner,
            central_logging=central_logging,
        )

        logger.debug(f"Dispatching module {module.name}", extra=extra)
        try:
            status = await self.registry.dispatch(params)
        except Exception:
            logger.error(f"Module {module.name} of stage {stage.name} failed", extra=extra)
            raise
        logger.info(f"Module {module.name} completed", extra=extra)
        return status

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _load_config(self) -> AcceleratorConfig:
        if self._config is None:
            self._config = self.config_provider.load()
        return self._config
