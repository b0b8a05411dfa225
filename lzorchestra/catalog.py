"""
Stage and module catalog.

Names and run orders for every deployment stage, and the modules that run
during each stage. The catalog is plain data; ModuleRegistry.create_default
turns it into the immutable registry the ModuleRunner is constructed with.
"""

from enum import Enum

from lzorchestra.schemas import ExecutionPhase, ModuleDefinition, StageDefinition


class StageName(str, Enum):
    """Deployment stage names."""
    PIPELINE = "pipeline"
    TESTER_PIPELINE = "tester-pipeline"
    ACCELERATOR_BOOTSTRAP = "accelerator-bootstrap"
    PREPARE = "prepare"
    ACCOUNTS = "accounts"
    BOOTSTRAP = "bootstrap"
    KEY = "key"
    LOGGING = "logging"
    ORGANIZATIONS = "organizations"
    SECURITY_AUDIT = "security-audit"
    NETWORK_PREP = "network-prep"
    SECURITY = "security"
    OPERATIONS = "operations"
    NETWORK_VPC = "network-vpc"
    SECURITY_RESOURCES = "security-resources"
    IDENTITY_CENTER = "identity-center"
    NETWORK_ASSOCIATIONS = "network-associations"
    CUSTOMIZATIONS = "customizations"
    FINALIZE = "finalize"
    IMPORT_ASEA_RESOURCES = "import-asea-resources"
    POST_IMPORT_ASEA_RESOURCES = "post-import-asea-resources"


class ModuleName(str, Enum):
    """Module identifiers. Keys of the handler dispatch table."""
    SETUP_CONTROL_TOWER_LANDING_ZONE = "setup-control-tower-landing-zone"
    CREATE_STACK_POLICY = "create-stack-policy"
    CREATE_ORGANIZATIONAL_UNIT = "create-organizational-unit"
    REGISTER_ORGANIZATIONAL_UNIT = "register-organizational-unit"
    INVITE_ACCOUNTS_TO_ORGANIZATIONS = "invite-accounts-to-organizations"
    MOVE_ACCOUNTS = "move-accounts"
    ROOT_USER_MANAGEMENT = "root-user-management"
    MANAGE_ACCOUNTS_ALIAS = "manage-accounts-alias"
    SSM_BLOCK_PUBLIC_DOCUMENT_SHARING = "ssm-block-public-document-sharing"
    GET_CLOUDFORMATION_TEMPLATES = "get-cloudformation-templates"


# Pipeline bootstrap stages; never part of a broad synthesis
META_STAGES = frozenset({StageName.PIPELINE.value, StageName.TESTER_PIPELINE.value})

# Stages that run before a deployment role exists in target accounts
PRE_BOOTSTRAP_STAGES = frozenset({
    StageName.PREPARE.value,
    StageName.ACCOUNTS.value,
    StageName.BOOTSTRAP.value,
})

# Stages whose legacy import results are persisted
IMPORT_STAGES = frozenset({
    StageName.IMPORT_ASEA_RESOURCES.value,
    StageName.POST_IMPORT_ASEA_RESOURCES.value,
})

STAGE_RUN_ORDERS: dict[str, int] = {
    StageName.ACCELERATOR_BOOTSTRAP.value: 1,
    StageName.PREPARE.value: 2,
    StageName.ACCOUNTS.value: 3,
    StageName.BOOTSTRAP.value: 4,
    StageName.KEY.value: 5,
    StageName.LOGGING.value: 6,
    StageName.ORGANIZATIONS.value: 7,
    StageName.SECURITY_AUDIT.value: 8,
    StageName.NETWORK_PREP.value: 9,
    StageName.SECURITY.value: 9,
    StageName.OPERATIONS.value: 9,
    StageName.NETWORK_VPC.value: 10,
    StageName.SECURITY_RESOURCES.value: 10,
    StageName.IDENTITY_CENTER.value: 10,
    StageName.NETWORK_ASSOCIATIONS.value: 11,
    StageName.CUSTOMIZATIONS.value: 12,
    StageName.FINALIZE.value: 13,
}

# Modules an operator may skip via a Skip<ModuleName> environment variable
EXECUTION_CONTROLLABLE_MODULES = frozenset({
    ModuleName.CREATE_ORGANIZATIONAL_UNIT.value,
    ModuleName.REGISTER_ORGANIZATIONAL_UNIT.value,
    ModuleName.INVITE_ACCOUNTS_TO_ORGANIZATIONS.value,
    ModuleName.MOVE_ACCOUNTS.value,
    ModuleName.SETUP_CONTROL_TOWER_LANDING_ZONE.value,
})

# Maximum number of module executions in flight at once
MAX_CONCURRENT_MODULE_EXECUTIONS = 50


def _module(
    name: ModuleName,
    run_order: int,
    description: str,
    phase: ExecutionPhase = ExecutionPhase.DEPLOY,
) -> ModuleDefinition:
    return ModuleDefinition(
        name=name.value,
        run_order=run_order,
        execution_phase=phase,
        description=description,
        controllable=name.value in EXECUTION_CONTROLLABLE_MODULES,
    )


_STAGE_MODULES: dict[str, tuple[ModuleDefinition, ...]] = {
    StageName.PREPARE.value: (
        _module(ModuleName.SETUP_CONTROL_TOWER_LANDING_ZONE, 1, "Manage AWS Control Tower Landing Zone"),
        _module(ModuleName.CREATE_STACK_POLICY, 1, "Setup Stack Policy in accounts"),
        _module(ModuleName.CREATE_ORGANIZATIONAL_UNIT, 2, "Create AWS Organizations Organizational Unit (OU)"),
        _module(
            ModuleName.REGISTER_ORGANIZATIONAL_UNIT, 3,
            "Register AWS Organizations Organizational Unit (OU) with AWS Control Tower",
        ),
        _module(ModuleName.INVITE_ACCOUNTS_TO_ORGANIZATIONS, 4, "Invite AWS Accounts to AWS Organizations"),
        _module(
            ModuleName.MOVE_ACCOUNTS, 5,
            "Move AWS Accounts to destination AWS Organizations Organizational Unit (OU)",
        ),
        _module(ModuleName.ROOT_USER_MANAGEMENT, 6, "Configure IAM Root User Management"),
    ),
    StageName.ACCOUNTS.value: (
        _module(ModuleName.MANAGE_ACCOUNTS_ALIAS, 1, "Manage the alias of accounts"),
    ),
    StageName.SECURITY.value: (
        _module(
            ModuleName.SSM_BLOCK_PUBLIC_DOCUMENT_SHARING, 1,
            "Manage SSM Block Public Document Sharing across organization accounts",
        ),
    ),
    StageName.NETWORK_VPC.value: (
        _module(
            ModuleName.GET_CLOUDFORMATION_TEMPLATES, 1,
            "Get Cloudformation Templates Cross Account",
            ExecutionPhase.SYNTH,
        ),
    ),
    StageName.FINALIZE.value: (
        _module(ModuleName.CREATE_STACK_POLICY, 1, "Setup Stack Policy in accounts"),
    ),
}


def default_stages() -> tuple[StageDefinition, ...]:
    """
    Build the default stage definitions.

    Returns:
        One StageDefinition per ordered stage, including stages without modules
    """
    return tuple(
        StageDefinition(name=name, run_order=order, modules=_STAGE_MODULES.get(name, ()))
        for name, order in STAGE_RUN_ORDERS.items()
    )
