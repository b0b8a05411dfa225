"""
Configuration management for lzorchestra.

Loads the accelerator configuration directory (a set of YAML files) and the
invocation parameters for a run.

Mandatory files must all be present; the loader fails fast naming exactly
which ones are missing. Optional files are loaded when they exist.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from lzorchestra import __version__
from lzorchestra.errors import ConfigurationError
from lzorchestra.schemas import ExecutionPhase, PolicySet

logger = logging.getLogger(__name__)


MANDATORY_CONFIG_FILES = (
    "accounts-config.yaml",
    "global-config.yaml",
    "iam-config.yaml",
    "network-config.yaml",
    "organization-config.yaml",
    "security-config.yaml",
)

OPTIONAL_CONFIG_FILES = (
    "customizations-config.yaml",
    "replacements-config.yaml",
)

DEFAULT_PREFIX = "Accelerator"
DEFAULT_MANAGEMENT_ACCESS_ROLE = "AWSControlTowerExecution"
SOLUTION_ID = f"AwsSolution/SO0199/{__version__}"

# Resource types every account must receive a policy for, unless overridden
# by resourcePolicyEnforcement.mandatoryResourceTypes in security-config.yaml
DEFAULT_MANDATORY_POLICY_TYPES = (
    "S3_BUCKET",
    "KMS_KEY",
    "IAM_ROLE",
    "SECRETS_MANAGER_SECRET",
    "ECR_REPOSITORY",
    "OPENSEARCH_DOMAIN",
    "SQS_QUEUE",
    "EVENTBUS",
    "BACKUP_VAULT",
)


# =============================================================================
# INVOCATION PARAMETERS
# =============================================================================


@dataclass(frozen=True)
class InvocationParameters:
    """
    Parameters for one orchestration run.

    Attributes:
        partition: AWS partition (aws, aws-us-gov, ...)
        region: Home region the run executes from
        config_dir: Path to the accelerator configuration directory
        stage: Stage to run, or None for all stages
        prefix: Resource name prefix
        use_existing_role: Reuse pre-existing roles instead of creating them
        dry_run: Evaluate without making changes
        phase: SYNTH for synthesis-only runs, DEPLOY for full deploys
        solution_id: User agent suffix for provider calls
    """
    partition: str
    region: str
    config_dir: Path
    stage: Optional[str] = None
    prefix: str = DEFAULT_PREFIX
    use_existing_role: bool = False
    dry_run: bool = False
    phase: ExecutionPhase = ExecutionPhase.DEPLOY
    solution_id: str = SOLUTION_ID

    def __post_init__(self):
        missing = [
            name for name in ("partition", "region", "config_dir")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required parameters: {', '.join(missing)}")
        if not isinstance(self.config_dir, Path):
            object.__setattr__(self, "config_dir", Path(self.config_dir))
        if not self.prefix:
            object.__setattr__(self, "prefix", DEFAULT_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "partition": self.partition,
            "region": self.region,
            "config_dir": str(self.config_dir),
            "stage": self.stage,
            "prefix": self.prefix,
            "use_existing_role": self.use_existing_role,
            "dry_run": self.dry_run,
            "phase": self.phase.value,
            "solution_id": self.solution_id,
        }


# =============================================================================
# ACCELERATOR CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class AccountConfig:
    """A mandatory or workload account declared in accounts-config.yaml."""
    name: str
    email: str
    organizational_unit: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountConfig":
        try:
            return cls(
                name=data["name"],
                email=data["email"],
                organizational_unit=data.get("organizationalUnit", "Root"),
            )
        except KeyError as e:
            raise ConfigurationError(f"accounts-config.yaml: account entry missing {e}")


@dataclass
class AcceleratorConfig:
    """
    Parsed configuration directory.

    Raw file contents are kept in `raw` keyed by file name; accessors expose
    the fields the orchestration engine needs.
    """
    config_dir: Path
    raw: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # accounts-config.yaml
    # -------------------------------------------------------------------------

    @property
    def _accounts(self) -> Dict[str, Any]:
        return self.raw.get("accounts-config.yaml", {})

    @property
    def mandatory_accounts(self) -> List[AccountConfig]:
        return [AccountConfig.from_dict(a) for a in self._accounts.get("mandatoryAccounts") or []]

    @property
    def workload_accounts(self) -> List[AccountConfig]:
        return [AccountConfig.from_dict(a) for a in self._accounts.get("workloadAccounts") or []]

    @property
    def accounts(self) -> List[AccountConfig]:
        return self.mandatory_accounts + self.workload_accounts

    @property
    def account_ids(self) -> Dict[str, str]:
        """Email -> account ID for accounts with statically known IDs."""
        return {
            item["email"].lower(): str(item["accountId"])
            for item in self._accounts.get("accountIds") or []
        }

    def get_account(self, name: str) -> AccountConfig:
        """
        Look up a declared account by name.

        Raises:
            ConfigurationError: If no account has that name
        """
        for account in self.accounts:
            if account.name == name:
                return account
        raise ConfigurationError(f"Account {name} not found in accounts-config.yaml")

    @property
    def management_account(self) -> AccountConfig:
        return self.get_account("Management")

    @property
    def log_archive_account(self) -> AccountConfig:
        return self.get_account("LogArchive")

    @property
    def audit_account(self) -> AccountConfig:
        return self.get_account("Audit")

    # -------------------------------------------------------------------------
    # global-config.yaml
    # -------------------------------------------------------------------------

    @property
    def _global(self) -> Dict[str, Any]:
        return self.raw.get("global-config.yaml", {})

    @property
    def home_region(self) -> str:
        return self._global.get("homeRegion", "")

    @property
    def enabled_regions(self) -> List[str]:
        return list(self._global.get("enabledRegions") or [])

    @property
    def excluded_regions(self) -> List[str]:
        return list(self._global.get("excludedRegions") or [])

    @property
    def management_access_role(self) -> str:
        return self._global.get("managementAccountAccessRole") or DEFAULT_MANAGEMENT_ACCESS_ROLE

    @property
    def _cdk_options(self) -> Dict[str, Any]:
        return self._global.get("cdkOptions") or {}

    @property
    def centralize_buckets(self) -> bool:
        return bool(self._cdk_options.get("centralizeBuckets", False))

    @property
    def use_management_access_role(self) -> bool:
        return bool(self._cdk_options.get("useManagementAccessRole", False))

    @property
    def custom_deployment_role(self) -> Optional[str]:
        return self._cdk_options.get("customDeploymentRole") or None

    @property
    def control_tower_landing_zone(self) -> Optional[Dict[str, Any]]:
        control_tower = self._global.get("controlTower") or {}
        return control_tower.get("landingZone") or None

    @property
    def central_logging_region(self) -> str:
        logging_config = self._global.get("logging") or {}
        return logging_config.get("centralizedLoggingRegion") or self.home_region

    @property
    def imported_central_log_bucket_name(self) -> Optional[str]:
        logging_config = self._global.get("logging") or {}
        bucket = (logging_config.get("centralLogBucket") or {}).get("importedBucket") or {}
        return bucket.get("name") or None

    @property
    def _external_landing_zone(self) -> Dict[str, Any]:
        return self._global.get("externalLandingZoneResources") or {}

    @property
    def asea_template_map(self) -> Optional[Dict[str, Any]]:
        return self._external_landing_zone.get("templateMap") or None

    @property
    def asea_accelerator_prefix(self) -> Optional[str]:
        return self._external_landing_zone.get("acceleratorPrefix") or None

    # -------------------------------------------------------------------------
    # organization-config.yaml
    # -------------------------------------------------------------------------

    @property
    def organization_enabled(self) -> bool:
        return bool(self.raw.get("organization-config.yaml", {}).get("enable", True))

    @property
    def organizational_units(self) -> List[str]:
        units = self.raw.get("organization-config.yaml", {}).get("organizationalUnits") or []
        return [u["name"] for u in units]

    # -------------------------------------------------------------------------
    # security-config.yaml
    # -------------------------------------------------------------------------

    @property
    def _resource_policy_enforcement(self) -> Dict[str, Any]:
        return self.raw.get("security-config.yaml", {}).get("resourcePolicyEnforcement") or {}

    @property
    def resource_policy_sets(self) -> List[PolicySet]:
        return [
            PolicySet.from_dict(data, index)
            for index, data in enumerate(self._resource_policy_enforcement.get("policySets") or [])
        ]

    @property
    def mandatory_policy_types(self) -> tuple[str, ...]:
        configured = self._resource_policy_enforcement.get("mandatoryResourceTypes")
        if configured is None:
            return DEFAULT_MANDATORY_POLICY_TYPES
        return tuple(configured)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate cross-file configuration rules.

        Raises:
            ConfigurationError: If the configuration is inconsistent
        """
        if not self.home_region:
            raise ConfigurationError("global-config.yaml: homeRegion is required")

        if self.use_management_access_role and not self.centralize_buckets:
            raise ConfigurationError(
                "global-config.yaml: cdkOptions.useManagementAccessRole requires "
                "cdkOptions.centralizeBuckets to be enabled"
            )

        names = [a.name for a in self.accounts]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                f"accounts-config.yaml: duplicate account names {', '.join(duplicates)}"
            )

    def __repr__(self) -> str:
        return f"AcceleratorConfig(config_dir={self.config_dir}, files={sorted(self.raw)})"


# =============================================================================
# CONFIG PROVIDER
# =============================================================================


class ConfigProvider:
    """
    Loads and validates the accelerator configuration directory.

    Usage:
        config = ConfigProvider(Path("./config")).load()
    """

    def __init__(self, config_dir: Path | str):
        self.config_dir = Path(config_dir)

    def missing_files(self) -> List[str]:
        """Mandatory files absent from the configuration directory."""
        return [
            name for name in MANDATORY_CONFIG_FILES
            if not (self.config_dir / name).is_file()
        ]

    def load(self) -> AcceleratorConfig:
        """
        Load all configuration files.

        Returns:
            Validated AcceleratorConfig

        Raises:
            ConfigurationError: If the directory or any mandatory file is missing,
                                or a file is not valid YAML
        """
        if not self.config_dir.is_dir():
            raise ConfigurationError(f'Invalid config directory path !!! "{self.config_dir}" not found')

        missing = self.missing_files()
        if missing:
            raise ConfigurationError(
                f"Missing mandatory configuration files in {self.config_dir}. "
                f"\n Missing files are {','.join(missing)}"
            )

        raw: Dict[str, Dict[str, Any]] = {}
        for name in MANDATORY_CONFIG_FILES:
            raw[name] = self._load_yaml(self.config_dir / name)

        for name in OPTIONAL_CONFIG_FILES:
            path = self.config_dir / name
            if path.is_file():
                raw[name] = self._load_yaml(path)
            else:
                logger.debug(f"Optional configuration file {name} not present")

        config = AcceleratorConfig(config_dir=self.config_dir, raw=raw)
        config.validate()
        return config

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load and parse a single YAML configuration file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {path.name}: {e}")

        if data is None:
            raise ConfigurationError(f"Configuration file is empty: {path.name}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path.name} must contain a mapping")
        return data


def load_config(config_dir: Optional[Path] = None) -> AcceleratorConfig:
    """
    Load the accelerator configuration directory.

    Args:
        config_dir: Path to the config directory. Defaults to $LZORCHESTRA_CONFIG_DIR,
                    then ./config

    Returns:
        AcceleratorConfig instance

    Raises:
        ConfigurationError: If config is invalid or missing
    """
    if config_dir is None:
        config_dir = Path(os.environ.get("LZORCHESTRA_CONFIG_DIR", "config"))

    return ConfigProvider(config_dir).load()
