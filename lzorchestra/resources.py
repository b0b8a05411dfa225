"""
Resource naming helpers.

Derives resource-name prefixes from the accelerator prefix, central log
bucket names and the regions a run targets.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

LEGACY_PREFIX = "AWSAccelerator"

CENTRAL_LOG_BUCKET_KMS_PARAMETER = "{ssm_prefix}/logging/central-bucket/kms/arn"


@dataclass(frozen=True)
class ResourcePrefixes:
    """Name prefixes applied to generated resources."""
    accelerator: str
    bucket_name: str
    database_name: str
    kms_alias: str
    repo_name: str
    secret_name: str
    sns_topic_name: str
    ssm_param_name: str
    trail_log_name: str

    @property
    def central_logs_bucket(self) -> str:
        return f"{self.bucket_name}-central-logs"


def resource_prefixes(prefix: str) -> ResourcePrefixes:
    """
    Build resource prefixes for an accelerator prefix.

    The legacy "AWSAccelerator" prefix maps to fixed historical names; any
    other prefix is used directly (lowercased where names require it).
    """
    if prefix == LEGACY_PREFIX:
        return ResourcePrefixes(
            accelerator=prefix,
            bucket_name="aws-accelerator",
            database_name="aws-accelerator",
            kms_alias="alias/accelerator",
            repo_name="aws-accelerator",
            secret_name="/accelerator",
            sns_topic_name="aws-accelerator",
            ssm_param_name="/accelerator",
            trail_log_name="aws-accelerator",
        )
    return ResourcePrefixes(
        accelerator=prefix,
        bucket_name=prefix.lower(),
        database_name=prefix.lower(),
        kms_alias=f"alias/{prefix}",
        repo_name=prefix,
        secret_name=prefix,
        sns_topic_name=prefix,
        ssm_param_name=f"/{prefix}",
        trail_log_name=prefix,
    )


def central_log_bucket_name(
    prefixes: ResourcePrefixes,
    log_archive_account_id: str,
    central_logging_region: str,
    imported_bucket_name: Optional[str] = None,
) -> str:
    """
    Name of the central log bucket.

    An imported bucket name may carry ${REGION} and ${ACCOUNT_ID} placeholders.
    """
    if imported_bucket_name:
        return (
            imported_bucket_name
            .replace("${REGION}", central_logging_region)
            .replace("${ACCOUNT_ID}", log_archive_account_id)
        )
    return f"{prefixes.central_logs_bucket}-{log_archive_account_id}-{central_logging_region}"


def central_log_bucket_kms_parameter(prefixes: ResourcePrefixes) -> str:
    """SSM parameter holding the central log bucket key ARN."""
    return CENTRAL_LOG_BUCKET_KMS_PARAMETER.format(ssm_prefix=prefixes.ssm_param_name)


def runner_target_regions(enabled_regions: Iterable[str], excluded_regions: Iterable[str]) -> list[str]:
    """Enabled regions minus excluded ones, order preserved."""
    excluded = set(excluded_regions)
    return [region for region in enabled_regions if region not in excluded]
