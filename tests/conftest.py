"""Shared fixtures for lzorchestra tests."""

import logging
from pathlib import Path
from typing import Any, Optional

import pytest
import yaml

from lzorchestra.cloud import CloudProvider
from lzorchestra.config import InvocationParameters
from lzorchestra.schemas import AssumedCredential


MANAGEMENT_ID = "111111111111"
LOG_ARCHIVE_ID = "222222222222"
AUDIT_ID = "333333333333"
WORKLOAD_ID = "444444444444"


# -----------------------------------------------------------------------------
# Fake cloud provider
# -----------------------------------------------------------------------------


class FakeCloudProvider(CloudProvider):
    """In-memory CloudProvider that records every call."""

    def __init__(
        self,
        caller_arn: str = "arn:aws:sts::111111111111:assumed-role/Operator/session",
        organization: Optional[dict[str, Any]] = None,
        accounts: Optional[list[dict[str, Any]]] = None,
        parameters: Optional[dict[str, str]] = None,
        assume_response: Optional[dict[str, Any]] = None,
    ):
        self.caller_arn = caller_arn
        self.organization = organization if organization is not None else {"Id": "o-example"}
        self.accounts = accounts if accounts is not None else [
            {"Id": MANAGEMENT_ID, "Email": "management@example.com", "Name": "Management"},
            {"Id": LOG_ARCHIVE_ID, "Email": "log-archive@example.com", "Name": "LogArchive"},
            {"Id": AUDIT_ID, "Email": "audit@example.com", "Name": "Audit"},
            {"Id": WORKLOAD_ID, "Email": "workload@example.com", "Name": "Workload"},
        ]
        self.parameters = parameters or {}
        self.assume_response = assume_response if assume_response is not None else {
            "AccessKeyId": "AKIAEXAMPLE",
            "SecretAccessKey": "secret",
            "SessionToken": "token",
        }
        self.calls: list[tuple[str, tuple]] = []

    async def get_caller_identity(self, credentials=None):
        self.calls.append(("get_caller_identity", (credentials,)))
        return {"Arn": self.caller_arn, "Account": MANAGEMENT_ID}

    async def assume_role(self, role_arn, session_name, region=None, credentials=None):
        self.calls.append(("assume_role", (role_arn, session_name, region)))
        return dict(self.assume_response)

    async def list_organization_accounts(self, credentials=None):
        self.calls.append(("list_organization_accounts", (credentials,)))
        return list(self.accounts)

    async def describe_organization(self, credentials=None):
        self.calls.append(("describe_organization", (credentials,)))
        return self.organization or None

    async def get_parameter(self, name, region=None, credentials=None):
        self.calls.append(("get_parameter", (name, region)))
        return self.parameters.get(name)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


@pytest.fixture
def cloud() -> FakeCloudProvider:
    return FakeCloudProvider()


@pytest.fixture
def credential() -> AssumedCredential:
    return AssumedCredential(
        access_key_id="AKIAEXAMPLE",
        secret_access_key="secret",
        session_token="token",
    )


# -----------------------------------------------------------------------------
# Configuration directory
# -----------------------------------------------------------------------------


def base_config_files() -> dict[str, dict[str, Any]]:
    """Minimal valid content for every mandatory configuration file."""
    return {
        "accounts-config.yaml": {
            "mandatoryAccounts": [
                {"name": "Management", "email": "management@example.com", "organizationalUnit": "Root"},
                {"name": "LogArchive", "email": "log-archive@example.com", "organizationalUnit": "Security"},
                {"name": "Audit", "email": "audit@example.com", "organizationalUnit": "Security"},
            ],
            "workloadAccounts": [
                {"name": "Workload", "email": "workload@example.com", "organizationalUnit": "Workloads"},
            ],
        },
        "global-config.yaml": {
            "homeRegion": "us-east-1",
            "enabledRegions": ["us-east-1", "us-west-2", "eu-west-1"],
            "managementAccountAccessRole": "AWSControlTowerExecution",
        },
        "iam-config.yaml": {"roleSets": []},
        "network-config.yaml": {"vpcs": []},
        "organization-config.yaml": {
            "enable": True,
            "organizationalUnits": [{"name": "Security"}, {"name": "Workloads"}],
        },
        "security-config.yaml": {"centralSecurityServices": {}},
    }


def write_config_dir(path: Path, files: dict[str, Any]) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (path / name).write_text(yaml.safe_dump(content))
    return path


@pytest.fixture
def config_files() -> dict[str, dict[str, Any]]:
    """Mutable copy of the base configuration; edit before requesting config_dir."""
    return base_config_files()


@pytest.fixture
def config_dir(tmp_path, config_files) -> Path:
    return write_config_dir(tmp_path / "config", config_files)


@pytest.fixture
def invocation(config_dir) -> InvocationParameters:
    return InvocationParameters(partition="aws", region="us-east-1", config_dir=config_dir)


# -----------------------------------------------------------------------------
# Environment isolation
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep operator environment variables out of tests."""
    for name in (
        "MANAGEMENT_ACCOUNT_ID",
        "MANAGEMENT_ACCOUNT_ROLE_NAME",
        "LZORCHESTRA_CONFIG_DIR",
        "SkipCreateOrganizationalUnit",
        "SkipRegisterOrganizationalUnit",
        "SkipInviteAccountsToOrganizations",
        "SkipMoveAccounts",
        "SkipSetupControlTowerLandingZone",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging so caplog sees lzorchestra records."""
    yield
    logger = logging.getLogger("lzorchestra")
    logger.handlers = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
