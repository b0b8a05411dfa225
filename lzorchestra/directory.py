"""
Account/organization directory.

Read-only snapshot joining the accounts declared in configuration with the
accounts that exist in the organization. Built once per invocation and
shared by every module.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from lzorchestra.cloud import CloudProvider
from lzorchestra.config import AcceleratorConfig
from lzorchestra.errors import ConfigurationError
from lzorchestra.schemas import AssumedCredential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountRecord:
    """A configured account with its resolved ID."""
    name: str
    email: str
    account_id: str
    organizational_unit: str


@dataclass(frozen=True)
class AccountDirectory:
    """
    Snapshot of configured accounts and organization metadata.

    Attributes:
        accounts: Every configured account with its resolved ID
        organization_id: Organization ID, or None when Organizations is disabled
    """
    accounts: tuple[AccountRecord, ...]
    organization_id: Optional[str] = None

    def get(self, name: str) -> AccountRecord:
        for record in self.accounts:
            if record.name == name:
                return record
        raise KeyError(f"Account not in directory: {name}. Known: {[a.name for a in self.accounts]}")

    def account_id(self, name: str) -> str:
        return self.get(name).account_id

    def by_id(self, account_id: str) -> Optional[AccountRecord]:
        for record in self.accounts:
            if record.account_id == account_id:
                return record
        return None

    def organizational_unit_of(self, account_id: str) -> Optional[str]:
        record = self.by_id(account_id)
        return record.organizational_unit if record else None

    @property
    def account_ids(self) -> list[str]:
        return [record.account_id for record in self.accounts]

    @property
    def management_account_id(self) -> str:
        return self.account_id("Management")

    @property
    def log_archive_account_id(self) -> str:
        return self.account_id("LogArchive")

    @property
    def audit_account_id(self) -> str:
        return self.account_id("Audit")

    @classmethod
    def build(
        cls,
        config: AcceleratorConfig,
        organization_accounts: list[dict[str, Any]],
        organization_id: Optional[str] = None,
    ) -> "AccountDirectory":
        """
        Join configured accounts with organization accounts by email.

        Statically configured account IDs take precedence over the
        organization listing.

        Raises:
            ConfigurationError: If a configured account cannot be resolved to an ID
        """
        by_email = {
            str(account.get("Email", "")).lower(): str(account["Id"])
            for account in organization_accounts
        }
        by_email.update(config.account_ids)

        records = []
        for account in config.accounts:
            account_id = by_email.get(account.email.lower())
            if account_id is None:
                raise ConfigurationError(
                    f"Account {account.name} ({account.email}) not found in organization or accountIds"
                )
            records.append(AccountRecord(
                name=account.name,
                email=account.email,
                account_id=account_id,
                organizational_unit=account.organizational_unit,
            ))
        return cls(accounts=tuple(records), organization_id=organization_id)


async def load_account_directory(
    cloud: CloudProvider,
    config: AcceleratorConfig,
    credentials: Optional[AssumedCredential] = None,
) -> AccountDirectory:
    """
    Build the account directory from configuration and the organization.

    Args:
        cloud: Cloud provider
        config: Loaded accelerator configuration
        credentials: Management account credentials, or None for ambient

    Returns:
        AccountDirectory snapshot

    Raises:
        ConfigurationError: If Organizations is enabled but cannot be described
    """
    if not config.organization_enabled:
        logger.info("AWS Organizations disabled in configuration; using static account IDs")
        return AccountDirectory.build(config, [])

    organization = await cloud.describe_organization(credentials)
    if organization is None:
        raise ConfigurationError(
            "AWS Organizations is enabled in configuration but organization details were not found"
        )

    organization_accounts = await cloud.list_organization_accounts(credentials)
    logger.debug(f"Found {len(organization_accounts)} organization accounts")
    return AccountDirectory.build(config, organization_accounts, organization.get("Id"))
