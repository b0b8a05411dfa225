"""
Deployment-unit synthesizer selection.

Chooses, per (account, region, stage), how a deployment unit authenticates
and where it publishes artifacts. Role selection and artifact storage are
decided independently and merged into one SynthesizerConfig.

Role selection, first match wins:
1. Custom deployment role configured and stage is not pre-bootstrap -> CUSTOM_ROLE
2. useManagementAccessRole set -> AMBIENT_CREDENTIALS
3. Otherwise -> DEFAULT_ROLE ({prefix}-Deployment-Role)

The management account's accounts and prepare units additionally name the
toolkit role they deploy with ({prefix}-Management-Deployment-Role); the
unit planner records it next to the synthesizer.
"""

from dataclasses import dataclass
from typing import Optional

from lzorchestra.catalog import PRE_BOOTSTRAP_STAGES, StageName
from lzorchestra.config import AcceleratorConfig
from lzorchestra.credentials import role_arn
from lzorchestra.schemas import SynthesizerConfig, SynthesizerStrategy

ASSET_BUCKET_PREFIX = "cdk-accel-assets"
TOOLKIT_QUALIFIER = "accel"


@dataclass(frozen=True)
class SynthesizerFlags:
    """
    Global inputs to synthesizer selection.

    Attributes:
        partition: AWS partition
        prefix: Accelerator prefix
        management_account_id: Management account ID
        home_region: Home region
        centralize_buckets: Publish all artifacts to one management-account bucket
        use_management_access_role: Deploy with the invoking identity
        custom_deployment_role: Role name overriding the default deployment role
        management_access_role: Role used when no deployment role exists yet
    """
    partition: str
    prefix: str
    management_account_id: str
    home_region: str
    centralize_buckets: bool = False
    use_management_access_role: bool = False
    custom_deployment_role: Optional[str] = None
    management_access_role: str = "AWSControlTowerExecution"

    @classmethod
    def from_config(
        cls,
        config: AcceleratorConfig,
        partition: str,
        prefix: str,
        management_account_id: str,
    ) -> "SynthesizerFlags":
        return cls(
            partition=partition,
            prefix=prefix,
            management_account_id=management_account_id,
            home_region=config.home_region,
            centralize_buckets=config.centralize_buckets,
            use_management_access_role=config.use_management_access_role,
            custom_deployment_role=config.custom_deployment_role,
            management_access_role=config.management_access_role,
        )


def is_pre_bootstrap_stage(stage: Optional[str]) -> bool:
    return stage in PRE_BOOTSTRAP_STAGES


def default_deployment_role_name(prefix: str) -> str:
    return f"{prefix}-Deployment-Role"


def select_role(
    account_id: str, stage: Optional[str], flags: SynthesizerFlags
) -> tuple[SynthesizerStrategy, Optional[str]]:
    """Pick the credential strategy and role ARN for a deployment unit."""
    if flags.custom_deployment_role and not is_pre_bootstrap_stage(stage):
        return (
            SynthesizerStrategy.CUSTOM_ROLE,
            role_arn(flags.partition, account_id, flags.custom_deployment_role),
        )
    if flags.use_management_access_role:
        return SynthesizerStrategy.AMBIENT_CREDENTIALS, None
    return (
        SynthesizerStrategy.DEFAULT_ROLE,
        role_arn(flags.partition, account_id, default_deployment_role_name(flags.prefix)),
    )


def select_storage(
    account_id: str, region: str, flags: SynthesizerFlags
) -> tuple[str, Optional[str]]:
    """
    Pick the artifact bucket and object-key prefix.

    Centralized buckets live in the management account's home region and
    are partitioned per account by key prefix.
    """
    if flags.centralize_buckets:
        bucket = f"{ASSET_BUCKET_PREFIX}-{flags.management_account_id}-{flags.home_region}"
        return bucket, f"{account_id}/"
    return f"{ASSET_BUCKET_PREFIX}-{account_id}-{region}", None


def select_synthesizer(
    account_id: str,
    region: str,
    stage: Optional[str],
    flags: SynthesizerFlags,
) -> SynthesizerConfig:
    """
    Compute the SynthesizerConfig for one (account, region, stage).

    Args:
        account_id: Target account
        region: Target region
        stage: Stage being synthesized
        flags: Global synthesizer inputs

    Returns:
        Immutable SynthesizerConfig
    """
    strategy, arn = select_role(account_id, stage, flags)
    bucket, bucket_prefix = select_storage(account_id, region, flags)
    return SynthesizerConfig(
        strategy=strategy,
        role_arn=arn,
        asset_bucket_name=bucket,
        asset_bucket_prefix=bucket_prefix,
        qualifier=TOOLKIT_QUALIFIER,
    )


def assume_role_name(stage: Optional[str], flags: SynthesizerFlags) -> str:
    """
    Role name used for cross-account lookups during a stage.

    Before bootstrap no custom deployment role exists in target accounts,
    so the management access role is used.
    """
    if flags.custom_deployment_role and not is_pre_bootstrap_stage(stage):
        return flags.custom_deployment_role
    return flags.management_access_role


def toolkit_deployment_role_name(
    stage: Optional[str], account_id: str, flags: SynthesizerFlags
) -> Optional[str]:
    """
    Role the toolkit deploys with in the management account's early stages.

    Returns:
        {prefix}-Management-Deployment-Role for the management account during
        the accounts and prepare stages, otherwise None
    """
    if account_id != flags.management_account_id:
        return None
    if stage in (StageName.ACCOUNTS.value, StageName.PREPARE.value):
        return f"{flags.prefix}-Management-Deployment-Role"
    return None
