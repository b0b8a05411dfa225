"""
Cloud provider facade.

Narrow async interface over the AWS APIs the orchestration engine needs:
STS (caller identity, assume role), Organizations (accounts, organization)
and SSM (parameters).

Every call goes through one shared retry policy: exponential backoff with
full jitter, applied to throttling-class errors only. Anything else
propagates on the first failure. Blocking boto3 calls run in worker threads
so concurrent modules interleave on one event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    CredentialRetrievalError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from lzorchestra.errors import TransientError
from lzorchestra.schemas import AssumedCredential

logger = logging.getLogger(__name__)


# Error codes retried with backoff
THROTTLING_ERROR_CODES = frozenset({
    "PolicyTypeNotEnabledException",
    "ConcurrentModificationException",
    "InsufficientDeliveryPolicyException",
    "NoAvailableDeliveryChannelException",
    "ConcurrentModifications",
    "LimitExceededException",
    "OperationNotPermittedException",
    "TooManyRequestsException",
    "TooManyUpdates",
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestLimitExceeded",
    "InternalErrorException",
    "InternalException",
})

# Connection-level failures retried like throttling
_RETRYABLE_EXCEPTIONS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
    EndpointConnectionError,
    CredentialRetrievalError,
)

# Organizations is a global service served from one region per partition
_ORGANIZATIONS_REGIONS = {
    "aws": "us-east-1",
    "aws-us-gov": "us-gov-west-1",
    "aws-cn": "cn-northwest-1",
    "aws-iso": "us-iso-east-1",
    "aws-iso-b": "us-isob-east-1",
}


def global_region(partition: str, default: str) -> str:
    """Region serving global services (Organizations, accounts) in a partition."""
    return _ORGANIZATIONS_REGIONS.get(partition, default)


def client_error_code(error: BaseException) -> Optional[str]:
    """Error code of a botocore ClientError, or None."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def is_throttling_error(error: BaseException) -> bool:
    """
    Classify an exception as throttling-class (retryable).

    Args:
        error: Exception raised by a provider call

    Returns:
        True if the call should be retried with backoff
    """
    if isinstance(error, TransientError):
        return True
    if isinstance(error, _RETRYABLE_EXCEPTIONS):
        return True
    code = client_error_code(error)
    if code is None:
        return False
    if code in THROTTLING_ERROR_CODES:
        return True
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode") == 429


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff policy for throttling-class errors.

    Attributes:
        max_attempts: Total attempts including the first call
        starting_delay: Base delay in seconds, doubled each attempt
        max_delay: Upper bound on a single wait in seconds
    """
    max_attempts: int = 20
    starting_delay: float = 0.15
    max_delay: float = 60.0

    def retrying(self) -> AsyncRetrying:
        """Build a tenacity controller for one call."""
        return AsyncRetrying(
            retry=retry_if_exception(is_throttling_error),
            wait=wait_random_exponential(multiplier=self.starting_delay, max=self.max_delay),
            stop=stop_after_attempt(self.max_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


# =============================================================================
# INTERFACE
# =============================================================================


class CloudProvider(ABC):
    """
    Abstract cloud facade consumed by the orchestration engine.

    Implementations apply the shared throttling retry policy to every call.
    """

    @abstractmethod
    async def get_caller_identity(
        self, credentials: Optional[AssumedCredential] = None
    ) -> dict[str, Any]:
        """
        Return the identity of the current session.

        Returns:
            Mapping with at least "Arn" and "Account"
        """

    @abstractmethod
    async def assume_role(
        self,
        role_arn: str,
        session_name: str,
        region: Optional[str] = None,
        credentials: Optional[AssumedCredential] = None,
    ) -> dict[str, Any]:
        """
        Assume a role.

        Returns:
            The provider's "Credentials" mapping (AccessKeyId, SecretAccessKey,
            SessionToken, Expiration); keys may be missing on malformed responses
        """

    @abstractmethod
    async def list_organization_accounts(
        self, credentials: Optional[AssumedCredential] = None
    ) -> list[dict[str, Any]]:
        """Return every account in the organization (all pages)."""

    @abstractmethod
    async def describe_organization(
        self, credentials: Optional[AssumedCredential] = None
    ) -> Optional[dict[str, Any]]:
        """Return organization details, or None when Organizations is not in use."""

    @abstractmethod
    async def get_parameter(
        self,
        name: str,
        region: Optional[str] = None,
        credentials: Optional[AssumedCredential] = None,
    ) -> Optional[str]:
        """Return a parameter value, or None when the parameter does not exist."""


# =============================================================================
# BOTO3 IMPLEMENTATION
# =============================================================================


ClientFactory = Callable[[str, Optional[str], Optional[AssumedCredential]], Any]


class Boto3CloudProvider(CloudProvider):
    """
    CloudProvider backed by boto3.

    Credentials are resolved via boto3's standard credential chain unless an
    AssumedCredential is passed for a call.
    """

    def __init__(
        self,
        partition: str,
        region: str,
        solution_id: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize the provider.

        Args:
            partition: AWS partition
            region: Default region for regional services
            solution_id: Appended to the user agent of every client
            retry_policy: Throttling backoff policy
            client_factory: Override client construction (service, region, credentials)
        """
        self.partition = partition
        self.region = region
        self.solution_id = solution_id
        self.retry_policy = retry_policy or RetryPolicy()
        self._client_factory = client_factory or self._default_client

    def _default_client(
        self,
        service: str,
        region: Optional[str],
        credentials: Optional[AssumedCredential],
    ) -> Any:
        kwargs = credentials.to_boto3_kwargs() if credentials else {}
        session = boto3.session.Session(**kwargs)
        config = Config(user_agent_extra=self.solution_id) if self.solution_id else None
        return session.client(service, region_name=region or self.region, config=config)

    def _client(
        self,
        service: str,
        region: Optional[str] = None,
        credentials: Optional[AssumedCredential] = None,
    ) -> Any:
        return self._client_factory(service, region or self.region, credentials)

    async def _call(self, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking client call in a worker thread under the retry policy."""
        return await self.retry_policy.retrying()(asyncio.to_thread, fn, **kwargs)

    @property
    def organizations_region(self) -> str:
        return global_region(self.partition, self.region)

    async def get_caller_identity(
        self, credentials: Optional[AssumedCredential] = None
    ) -> dict[str, Any]:
        client = self._client("sts", credentials=credentials)
        return await self._call(client.get_caller_identity)

    async def assume_role(
        self,
        role_arn: str,
        session_name: str,
        region: Optional[str] = None,
        credentials: Optional[AssumedCredential] = None,
    ) -> dict[str, Any]:
        client = self._client("sts", region=region, credentials=credentials)
        response = await self._call(
            client.assume_role, RoleArn=role_arn, RoleSessionName=session_name
        )
        return response.get("Credentials") or {}

    async def list_organization_accounts(
        self, credentials: Optional[AssumedCredential] = None
    ) -> list[dict[str, Any]]:
        client = self._client("organizations", region=self.organizations_region, credentials=credentials)
        accounts: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {}
        while True:
            page = await self._call(client.list_accounts, **kwargs)
            accounts.extend(page.get("Accounts", []))
            next_token = page.get("NextToken")
            if not next_token:
                return accounts
            kwargs = {"NextToken": next_token}

    async def describe_organization(
        self, credentials: Optional[AssumedCredential] = None
    ) -> Optional[dict[str, Any]]:
        client = self._client("organizations", region=self.organizations_region, credentials=credentials)
        try:
            response = await self._call(client.describe_organization)
        except ClientError as e:
            if client_error_code(e) == "AWSOrganizationsNotInUseException":
                logger.warning("AWS Organizations is not in use for this account")
                return None
            raise
        return response.get("Organization")

    async def get_parameter(
        self,
        name: str,
        region: Optional[str] = None,
        credentials: Optional[AssumedCredential] = None,
    ) -> Optional[str]:
        client = self._client("ssm", region=region, credentials=credentials)
        try:
            response = await self._call(client.get_parameter, Name=name)
        except ClientError as e:
            if client_error_code(e) == "ParameterNotFound":
                return None
            raise
        return response["Parameter"]["Value"]
