"""
CLI interface for lzorchestra.

Provides commands to run or synthesize stages, plan a stage's deployment
units, replay legacy resource imports, inspect the stage catalog, and
validate a configuration directory.

Environment variables may be supplied through a .env file in the working
directory:
- MANAGEMENT_ACCOUNT_ID / MANAGEMENT_ACCOUNT_ROLE_NAME: management account role
- Skip<ModuleName> (e.g. SkipMoveAccounts=true): skip a controllable module
"""

import asyncio
from pathlib import Path

import click
from dotenv import load_dotenv

from lzorchestra import __version__
from lzorchestra.catalog import StageName
from lzorchestra.cloud import Boto3CloudProvider, CloudProvider
from lzorchestra.config import DEFAULT_PREFIX, ConfigProvider, InvocationParameters
from lzorchestra.deployment import noop_build_unit
from lzorchestra.errors import LzorchestraError
from lzorchestra.handlers import ModuleRegistry
from lzorchestra.runner import ModuleRunner
from lzorchestra.schemas import ExecutionPhase
from lzorchestra.units import UnitGraph
from lzorchestra.utils import print_banner, setup_logging


def _create_cloud(invocation: InvocationParameters) -> CloudProvider:
    """Build the cloud provider for an invocation."""
    return Boto3CloudProvider(
        invocation.partition,
        invocation.region,
        solution_id=invocation.solution_id,
    )


def _create_registry() -> ModuleRegistry:
    """Build the module registry for an invocation."""
    return ModuleRegistry.create_default()


@click.group()
@click.version_option(version=__version__, prog_name="lzorchestra")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
@click.option(
    "--log-format",
    default="pretty",
    type=click.Choice(["pretty", "structured"]),
    help="Console log format",
)
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write JSON logs to this file")
@click.pass_context
def main(ctx, log_level: str, log_format: str, log_file: Path | None):
    """
    lzorchestra - Landing zone deployment orchestrator.

    Runs configuration-driven deployment stages across accounts and regions.
    """
    load_dotenv()
    setup_logging(log_level=log_level, log_format=log_format, log_file=log_file)
    ctx.ensure_object(dict)


def _invocation_options(func):
    """Invocation options shared by run, synth, plan and import-resources."""
    options = [
        click.option("--partition", required=True, help="AWS partition (e.g. aws)"),
        click.option("--region", required=True, help="Home region"),
        click.option(
            "--config-dir",
            required=True,
            type=click.Path(path_type=Path),
            help="Accelerator configuration directory",
        ),
        click.option("--stage", default=None, help="Stage to run (default: all stages)"),
        click.option("--prefix", default=DEFAULT_PREFIX, show_default=True, help="Resource name prefix"),
        click.option("--use-existing-role", is_flag=True, help="Reuse pre-existing roles"),
        click.option("--dry-run", is_flag=True, help="Evaluate without making changes"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _invocation(phase: ExecutionPhase, **kwargs) -> InvocationParameters:
    try:
        return InvocationParameters(phase=phase, **kwargs)
    except LzorchestraError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)


async def _run(runner: ModuleRunner) -> str:
    try:
        return await runner.execute()
    finally:
        await runner.drain()


def _execute_impl(phase: ExecutionPhase, **kwargs) -> None:
    """Run modules of the given phase and echo the joined status."""
    invocation = _invocation(phase, **kwargs)

    if invocation.dry_run:
        print_banner("DRY RUN MODE")

    runner = ModuleRunner(invocation, _create_registry(), _create_cloud(invocation))
    try:
        status = asyncio.run(_run(runner))
    except Exception as e:
        label = invocation.stage or "all stages"
        click.echo(f"✗ {label} failed: {e}", err=True)
        raise SystemExit(1)

    click.echo(status)


@main.command("run")
@_invocation_options
def run(**kwargs):
    """
    Deploy a stage, or every stage in run order.

    Examples:

        lzorchestra run --partition aws --region us-east-1 --config-dir ./config

        lzorchestra run --partition aws --region us-east-1 --config-dir ./config --stage prepare
    """
    _execute_impl(ExecutionPhase.DEPLOY, **kwargs)


@main.command("synth")
@_invocation_options
def synth(**kwargs):
    """Run synthesis-phase modules of a stage, or of every stage."""
    _execute_impl(ExecutionPhase.SYNTH, **kwargs)


def _target_options(func):
    """Options narrowing a stage to one account and region."""
    func = click.option("--target-region", default=None, help="Narrow the stage to this region")(func)
    func = click.option("--target-account", default=None, help="Narrow the stage to this account ID")(func)
    return func


async def _plan(runner: ModuleRunner, account_id: str | None, region: str | None) -> UnitGraph:
    deployer = await runner.stage_deployer(account_id, region)
    return deployer.plan(runner.invocation.stage)


@main.command("plan")
@_invocation_options
@_target_options
def plan(target_account: str | None, target_region: str | None, **kwargs):
    """
    List the deployment units of a stage in dependency order.

    Examples:

        lzorchestra plan --partition aws --region us-east-1 --config-dir ./config --stage network-vpc
    """
    invocation = _invocation(ExecutionPhase.DEPLOY, **kwargs)
    runner = ModuleRunner(invocation, _create_registry(), _create_cloud(invocation))
    try:
        graph = asyncio.run(_plan(runner, target_account, target_region))
    except Exception as e:
        click.echo(f"✗ Planning failed: {e}", err=True)
        raise SystemExit(1)

    levels = graph.levels()
    for unit in graph.topological_order():
        click.echo(f"{levels[unit.name]:>3}  {unit.name} [{unit.synthesizer.strategy.value}]")
    click.echo(f"✓ {len(graph)} deployment units")


async def _import(
    runner: ModuleRunner,
    stage: str,
    mapping_dir: Path,
    account_id: str | None,
    region: str | None,
) -> dict:
    deployer = await runner.stage_deployer(account_id, region)
    return await deployer.import_resources(stage, noop_build_unit, mapping_dir)


@main.command("import-resources")
@_invocation_options
@_target_options
@click.option(
    "--mapping-dir",
    required=True,
    type=click.Path(path_type=Path),
    help="Directory receiving one resource mapping file per account and region",
)
def import_resources(
    target_account: str | None, target_region: str | None, mapping_dir: Path, **kwargs
):
    """Replay the external landing zone template map phase by phase."""
    invocation = _invocation(ExecutionPhase.DEPLOY, **kwargs)
    stage = invocation.stage or StageName.IMPORT_ASEA_RESOURCES.value
    runner = ModuleRunner(invocation, _create_registry(), _create_cloud(invocation))
    try:
        results = asyncio.run(_import(runner, stage, mapping_dir, target_account, target_region))
    except Exception as e:
        click.echo(f"✗ {stage} failed: {e}", err=True)
        raise SystemExit(1)

    for (account_id, region), phases in results.items():
        units = sum(len(mapping) for mapping in phases.values())
        click.echo(f"{account_id} {region}: {units} units in {len(phases)} phases")
    click.echo(f"✓ Resource mappings written to {mapping_dir}")


@main.command("stages")
def stages():
    """List stages in run order with their modules."""
    registry = _create_registry()
    for stage in sorted(registry.stages, key=lambda s: (s.run_order, s.name)):
        click.echo(f"{stage.run_order:>3}  {stage.name}")
        for module in sorted(stage.modules, key=lambda m: m.run_order):
            click.echo(f"       {module.run_order:>2}  {module.name} [{module.execution_phase.value}]")


@main.command("validate-config")
@click.option("--config-dir", required=True, type=click.Path(path_type=Path))
def validate_config(config_dir: Path):
    """Load and validate a configuration directory."""
    try:
        config = ConfigProvider(config_dir).load()
    except LzorchestraError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)

    click.echo(f"✓ Configuration valid: {len(config.accounts)} accounts, home region {config.home_region}")


if __name__ == "__main__":
    main()
