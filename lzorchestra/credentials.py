"""
Credential resolver.

Obtains short-lived cross-account credentials through assume-role. When the
current session already is the target role, no assumption happens and the
caller keeps using ambient credentials (signalled by returning None).

Credentials are resolved per call and never cached.
"""

import logging
import os
from typing import Optional

from lzorchestra.cloud import CloudProvider
from lzorchestra.errors import CredentialError
from lzorchestra.schemas import AssumedCredential

logger = logging.getLogger(__name__)


DEFAULT_SESSION_NAME = "AcceleratorAssumeRole"
MANAGEMENT_SESSION_NAME = "ManagementAccountCredentials"

MANAGEMENT_ACCOUNT_ID_ENV = "MANAGEMENT_ACCOUNT_ID"
MANAGEMENT_ACCOUNT_ROLE_NAME_ENV = "MANAGEMENT_ACCOUNT_ROLE_NAME"


def role_arn(partition: str, account_id: str, role_name: str) -> str:
    """Build an IAM role ARN."""
    return f"arn:{partition}:iam::{account_id}:role/{role_name}"


def resolve_role_arn(
    account_id: str,
    assume_role_arn: Optional[str] = None,
    assume_role_name: Optional[str] = None,
    partition: Optional[str] = None,
) -> str:
    """
    Resolve the target role ARN from exactly one of ARN or name+partition.

    Raises:
        CredentialError: If both or neither are supplied, or a name comes
                         without a partition
    """
    if assume_role_arn and assume_role_name:
        raise CredentialError("Either assumeRoleName or assumeRoleArn can be provided not both")
    if not assume_role_arn and not assume_role_name:
        raise CredentialError("Either assumeRoleName or assumeRoleArn must provided")
    if assume_role_arn:
        return assume_role_arn
    if not partition:
        raise CredentialError("When assumeRoleName provided partition must be provided")
    return role_arn(partition, account_id, assume_role_name)


class CredentialResolver:
    """
    Assume-role with a short-circuit for the current identity.

    Usage:
        resolver = CredentialResolver(cloud)
        creds = await resolver.assume("111111111111", "us-east-1",
                                      assume_role_name="AWSControlTowerExecution",
                                      partition="aws")
        # creds is None when already operating as that role
    """

    def __init__(self, cloud: CloudProvider):
        self.cloud = cloud

    async def assume(
        self,
        account_id: str,
        region: str,
        assume_role_arn: Optional[str] = None,
        assume_role_name: Optional[str] = None,
        partition: Optional[str] = None,
        session_name: str = DEFAULT_SESSION_NAME,
        credentials: Optional[AssumedCredential] = None,
    ) -> Optional[AssumedCredential]:
        """
        Obtain credentials for a role in the target account.

        Args:
            account_id: Target account
            region: Region for the STS endpoint
            assume_role_arn: Full role ARN (exclusive with assume_role_name)
            assume_role_name: Role name, combined with partition and account
            partition: Partition used with assume_role_name
            session_name: Role session name
            credentials: Source credentials to assume from (chaining)

        Returns:
            AssumedCredential, or None when the caller already is the target role

        Raises:
            CredentialError: On invalid inputs or a response missing credentials
        """
        target_arn = resolve_role_arn(account_id, assume_role_arn, assume_role_name, partition)

        identity = await self.cloud.get_caller_identity(credentials)
        if identity.get("Arn") == target_arn:
            logger.info("Already in target environment assume role credential not required")
            return None

        response = await self.cloud.assume_role(
            target_arn, session_name, region=region, credentials=credentials
        )

        if not response.get("AccessKeyId"):
            raise CredentialError("Access key ID not returned from AssumeRole command")
        if not response.get("SecretAccessKey"):
            raise CredentialError("Secret access key not returned from AssumeRole command")
        if not response.get("SessionToken"):
            raise CredentialError("Session token not returned from AssumeRole command")

        return AssumedCredential(
            access_key_id=response["AccessKeyId"],
            secret_access_key=response["SecretAccessKey"],
            session_token=response["SessionToken"],
            expiration=response.get("Expiration"),
        )

    async def management_account_credentials(
        self, partition: str, region: str
    ) -> Optional[AssumedCredential]:
        """
        Credentials for the management account injected via environment.

        Reads MANAGEMENT_ACCOUNT_ID and MANAGEMENT_ACCOUNT_ROLE_NAME. When
        either is unset, the ambient session is used (returns None).
        """
        account_id = os.environ.get(MANAGEMENT_ACCOUNT_ID_ENV)
        role_name = os.environ.get(MANAGEMENT_ACCOUNT_ROLE_NAME_ENV)
        if not account_id or not role_name:
            return None

        logger.info(f"Resolving management account credentials for {account_id}")
        return await self.assume(
            account_id,
            region,
            assume_role_arn=role_arn(partition, account_id, role_name),
            session_name=MANAGEMENT_SESSION_NAME,
        )
