"""
Runner parameters - the shared, read-only bundle every module receives.

The bundle is computed once per invocation (configuration, account
directory snapshot, resource-name prefixes, central logging bucket) and
reused by every module, including modules running concurrently.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lzorchestra.catalog import STAGE_RUN_ORDERS, StageName
from lzorchestra.cloud import CloudProvider
from lzorchestra.config import AcceleratorConfig, InvocationParameters
from lzorchestra.credentials import CredentialResolver
from lzorchestra.directory import AccountDirectory, load_account_directory
from lzorchestra.resources import (
    ResourcePrefixes,
    central_log_bucket_kms_parameter,
    central_log_bucket_name,
    resource_prefixes,
    runner_target_regions,
)
from lzorchestra.schemas import (
    AssumedCredential,
    ExecutionPhase,
    ModuleDefinition,
    StageDefinition,
)
from lzorchestra.synthesizer import SynthesizerFlags

logger = logging.getLogger(__name__)

CENTRAL_LOGGING_SESSION_NAME = "AcceleratorCentralLoggingLookup"


@dataclass(frozen=True)
class CentralLoggingResources:
    """Central log bucket and the key encrypting it."""
    bucket_name: str
    kms_key_arn: str


@dataclass(frozen=True)
class RunnerParameters:
    """
    Shared bundle computed once per invocation.

    Attributes:
        config: Loaded accelerator configuration
        directory: Account/organization snapshot
        prefixes: Resource-name prefixes
        management_credentials: Management account credentials, or None for ambient
        central_log_bucket_name: Name of the central log bucket
        target_regions: Enabled regions minus excluded regions
        synthesizer_flags: Inputs to synthesizer selection
    """
    config: AcceleratorConfig
    directory: AccountDirectory
    prefixes: ResourcePrefixes
    management_credentials: Optional[AssumedCredential]
    central_log_bucket_name: str
    target_regions: tuple[str, ...]
    synthesizer_flags: SynthesizerFlags


@dataclass(frozen=True)
class ModuleParameters:
    """
    Everything a module handler receives.

    Attributes:
        module: Module being executed
        stage: Stage the module belongs to
        invocation: Invocation parameters
        runner: Shared runner parameters (read-only)
        central_logging: Central logging resources, when applicable to this module
    """
    module: ModuleDefinition
    stage: StageDefinition
    invocation: InvocationParameters
    runner: RunnerParameters
    central_logging: Optional[CentralLoggingResources] = None

    @property
    def module_name(self) -> str:
        return str(self.module.name)

    @property
    def stage_name(self) -> str:
        return str(self.stage.name)

    @property
    def dry_run(self) -> bool:
        return self.invocation.dry_run

    @property
    def use_existing_role(self) -> bool:
        return self.invocation.use_existing_role


def needs_central_logging(stage: StageDefinition, module: ModuleDefinition) -> bool:
    """
    Whether a module should receive central logging resources.

    Resources do not exist before the logging stage has run, and synthesis
    modules never need them.
    """
    if module.execution_phase == ExecutionPhase.SYNTH:
        return False
    return stage.run_order > STAGE_RUN_ORDERS[StageName.LOGGING.value]


async def build_runner_parameters(
    invocation: InvocationParameters,
    config: AcceleratorConfig,
    cloud: CloudProvider,
    resolver: CredentialResolver,
) -> RunnerParameters:
    """
    Compute the shared runner bundle.

    Args:
        invocation: Invocation parameters
        config: Loaded accelerator configuration
        cloud: Cloud provider
        resolver: Credential resolver

    Returns:
        RunnerParameters
    """
    prefixes = resource_prefixes(invocation.prefix)
    management_credentials = await resolver.management_account_credentials(
        invocation.partition, invocation.region
    )
    directory = await load_account_directory(cloud, config, management_credentials)

    bucket_name = central_log_bucket_name(
        prefixes,
        directory.log_archive_account_id,
        config.central_logging_region,
        config.imported_central_log_bucket_name,
    )

    return RunnerParameters(
        config=config,
        directory=directory,
        prefixes=prefixes,
        management_credentials=management_credentials,
        central_log_bucket_name=bucket_name,
        target_regions=tuple(runner_target_regions(config.enabled_regions, config.excluded_regions)),
        synthesizer_flags=SynthesizerFlags.from_config(
            config,
            invocation.partition,
            invocation.prefix,
            directory.management_account_id,
        ),
    )


async def lookup_central_logging(
    invocation: InvocationParameters,
    runner: RunnerParameters,
    cloud: CloudProvider,
    resolver: CredentialResolver,
) -> Optional[CentralLoggingResources]:
    """
    Read the central log bucket key from the log archive account.

    A missing parameter is expected before the logging stage has deployed;
    it is logged as a warning and None is returned.
    """
    flags = runner.synthesizer_flags
    log_archive_id = runner.directory.log_archive_account_id
    region = runner.config.central_logging_region
    role_name = flags.custom_deployment_role or flags.management_access_role

    credentials = await resolver.assume(
        log_archive_id,
        region,
        assume_role_name=role_name,
        partition=invocation.partition,
        session_name=CENTRAL_LOGGING_SESSION_NAME,
        credentials=runner.management_credentials,
    )

    parameter = central_log_bucket_kms_parameter(runner.prefixes)
    key_arn = await cloud.get_parameter(parameter, region=region, credentials=credentials)
    if key_arn is None:
        logger.warning(
            f"Central log bucket key parameter {parameter} not found in account "
            f"{log_archive_id} ({region})",
            extra={"account": log_archive_id, "region": region},
        )
        return None

    return CentralLoggingResources(bucket_name=runner.central_log_bucket_name, kms_key_arn=key_arn)
