"""
Error classes for lzorchestra.

These error types classify failures at the orchestration boundaries:
- TransientError: Safe to retry (throttling, connection resets)
- PermanentError: Do not retry (invalid configuration, malformed provider responses)

Only the CloudProvider retries, and only TransientError-class failures.
Everything raised past the provider aborts the current run-order group and
every group after it.
"""


class LzorchestraError(Exception):
    """Base exception for lzorchestra."""
    pass


class TransientError(LzorchestraError):
    """
    Transient error - safe to retry.

    Examples:
    - Throttling / rate limit exceeded
    - Concurrent modification in progress
    - Connection reset or timeout

    The CloudProvider retries operations that fail with a throttling-class
    error using exponential backoff with full jitter.
    """
    pass


class PermanentError(LzorchestraError):
    """
    Permanent error - do not retry.

    Examples:
    - Missing mandatory configuration files
    - Duplicate stage declarations
    - Invalid assume-role input combination
    - Assume-role response missing credentials
    """
    pass


class ConfigurationError(PermanentError):
    """The orchestration graph or its inputs are invalid."""
    pass


class DuplicateStageError(ConfigurationError):
    """More than one StageDefinition shares a stage name."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(
            f"Internal error - duplicate entries found for stage {stage} in module stage registry"
        )


class UnknownModuleError(ConfigurationError):
    """A module has no handler in the dispatch table."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Unknown Module {module}")


class DependencyCycleError(ConfigurationError):
    """Deployment unit dependencies do not form a DAG."""
    pass


class CredentialError(PermanentError):
    """Assume-role input or response is invalid."""
    pass


class ResourcePolicyError(PermanentError):
    """A mandatory resource policy type has no entry after scope resolution."""

    def __init__(self, resource_type: str, account_id: str):
        self.resource_type = resource_type
        self.account_id = account_id
        super().__init__(
            f"Missing resource policy type {resource_type} for account {account_id}"
        )
