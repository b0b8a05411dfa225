"""Tests for the lzorchestra CLI."""

import json

import pytest
from click.testing import CliRunner

from conftest import WORKLOAD_ID, FakeCloudProvider, base_config_files, write_config_dir
from lzorchestra import __version__
from lzorchestra.cli import main


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def fake_cloud(monkeypatch):
    cloud = FakeCloudProvider()
    monkeypatch.setattr("lzorchestra.cli._create_cloud", lambda invocation: cloud)
    return cloud


def _args(command, config_dir, *extra):
    return [command, "--partition", "aws", "--region", "us-east-1", "--config-dir", str(config_dir), *extra]


class TestMain:
    """Tests for the top-level group."""

    def test_version(self, cli_runner):
        """--version prints the package version."""
        result = cli_runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, cli_runner):
        """Every command appears in help."""
        result = cli_runner.invoke(main, ["--help"])
        for command in ("run", "synth", "plan", "import-resources", "stages", "validate-config"):
            assert command in result.output


class TestRun:
    """Tests for the run command."""

    def test_run_stage(self, cli_runner, config_dir, fake_cloud):
        """A stage run prints one status line per module."""
        result = cli_runner.invoke(main, _args("run", config_dir, "--stage", "accounts"))

        assert result.exit_code == 0, result.output
        assert 'Module "manage-accounts-alias" of "accounts" stage: noop' in result.stdout

    def test_run_stage_without_modules(self, cli_runner, config_dir, fake_cloud):
        """A stage without modules prints the no-modules line."""
        result = cli_runner.invoke(main, _args("run", config_dir, "--stage", "key"))

        assert result.exit_code == 0
        assert 'No modules found for "key" stage' in result.stdout

    def test_run_all_stages(self, cli_runner, config_dir, fake_cloud):
        """Without --stage every stage runs."""
        result = cli_runner.invoke(main, _args("run", config_dir, "--dry-run"))

        assert result.exit_code == 0, result.output
        assert '"finalize" stage: noop' in result.stdout

    def test_skip_flag_from_environment(self, cli_runner, config_dir, fake_cloud, monkeypatch):
        """Skip<Module> variables are honored."""
        monkeypatch.setenv("SkipMoveAccounts", "true")
        result = cli_runner.invoke(main, _args("run", config_dir, "--stage", "prepare"))

        assert result.exit_code == 0
        assert "Module move-accounts execution skipped by environment variable SkipMoveAccounts" in result.stdout

    def test_missing_config_files(self, cli_runner, tmp_path, fake_cloud):
        """A broken configuration fails with exit code 1."""
        empty = tmp_path / "empty"
        empty.mkdir()

        result = cli_runner.invoke(main, _args("run", empty, "--stage", "accounts"))

        assert result.exit_code == 1
        assert "accounts failed" in result.output
        assert "Missing mandatory configuration files" in result.output

    def test_required_options(self, cli_runner):
        """Partition, region and config dir are required."""
        result = cli_runner.invoke(main, ["run"])
        assert result.exit_code != 0
        assert "--partition" in result.output


class TestSynth:
    """Tests for the synth command."""

    def test_synth_runs_synthesis_modules_only(self, cli_runner, config_dir, fake_cloud):
        """Only synthesis-phase modules run."""
        result = cli_runner.invoke(main, _args("synth", config_dir, "--stage", "network-vpc"))

        assert result.exit_code == 0, result.output
        assert '"get-cloudformation-templates" of "network-vpc" stage: noop' in result.stdout

    def test_synth_skips_deploy_modules(self, cli_runner, config_dir, fake_cloud):
        """Deploy-phase stages report no modules."""
        result = cli_runner.invoke(main, _args("synth", config_dir, "--stage", "accounts"))

        assert result.exit_code == 0
        assert 'No modules found for "accounts" stage' in result.stdout


class TestPlan:
    """Tests for the plan command."""

    def test_plan_stage(self, cli_runner, config_dir, fake_cloud):
        """Every account and region gets the stage's units."""
        result = cli_runner.invoke(main, _args("plan", config_dir, "--stage", "network-vpc"))

        assert result.exit_code == 0, result.output
        assert "✓ 36 deployment units" in result.stdout

    def test_plan_target_environment(self, cli_runner, config_dir, fake_cloud):
        """Target options narrow the plan to one environment, in dependency order."""
        result = cli_runner.invoke(main, _args(
            "plan", config_dir, "--stage", "network-vpc",
            "--target-account", WORKLOAD_ID, "--target-region", "us-west-2",
        ))

        assert result.exit_code == 0, result.output
        lines = [line for line in result.stdout.splitlines() if "Stack-" in line or "✓" in line]
        assert lines == [
            f"  0  NetworkVpcStack-{WORKLOAD_ID}-us-west-2 [default_role]",
            f"  1  NetworkVpcEndpointsStack-{WORKLOAD_ID}-us-west-2 [default_role]",
            f"  2  NetworkVpcDnsStack-{WORKLOAD_ID}-us-west-2 [default_role]",
            "✓ 3 deployment units",
        ]

    def test_missing_mandatory_policy(self, cli_runner, tmp_path, fake_cloud):
        """A missing mandatory resource policy fails planning."""
        files = base_config_files()
        files["security-config.yaml"]["resourcePolicyEnforcement"] = {
            "mandatoryResourceTypes": ["S3_BUCKET", "KMS_KEY"],
            "policySets": [{
                "name": "root-defaults",
                "deploymentTargets": {"organizationalUnits": ["Root"]},
                "resourcePolicies": [{"resourceType": "S3_BUCKET", "document": "s3.json"}],
            }],
        }
        config_dir = write_config_dir(tmp_path / "config", files)

        result = cli_runner.invoke(main, _args("plan", config_dir, "--stage", "key"))

        assert result.exit_code == 1
        assert "Planning failed" in result.output
        assert "KMS_KEY" in result.output


class TestImportResources:
    """Tests for the import-resources command."""

    def test_writes_phase_mapping(self, cli_runner, tmp_path, fake_cloud):
        """Phases with units are written to the environment's mapping file."""
        files = base_config_files()
        files["global-config.yaml"]["externalLandingZoneResources"] = {
            "acceleratorPrefix": "ASEA",
            "templateMap": {
                "Phase1-Workload": {"accountId": WORKLOAD_ID, "region": "us-east-1", "phase": "1"},
                "PhaseMinus1-Workload": {"accountId": WORKLOAD_ID, "region": "us-east-1", "phase": "-1"},
            },
        }
        config_dir = write_config_dir(tmp_path / "config", files)
        mapping_dir = tmp_path / "mappings"

        result = cli_runner.invoke(main, _args(
            "import-resources", config_dir, "--mapping-dir", str(mapping_dir),
            "--target-account", WORKLOAD_ID, "--target-region", "us-east-1",
        ))

        assert result.exit_code == 0, result.output
        assert f"{WORKLOAD_ID} us-east-1: 2 units in 2 phases" in result.stdout
        written = json.loads((mapping_dir / f"{WORKLOAD_ID}-us-east-1.json").read_text())
        assert sorted(written) == ["-1", "1"]

    def test_missing_template_map(self, cli_runner, config_dir, tmp_path, fake_cloud):
        """Without a template map the import fails."""
        result = cli_runner.invoke(main, _args("import-resources", config_dir, "--mapping-dir", str(tmp_path / "m")))

        assert result.exit_code == 1
        assert "Configuration validation failed at runtime." in result.output


class TestStages:
    """Tests for the stages command."""

    def test_lists_catalog(self, cli_runner):
        """Stages are listed with their modules."""
        result = cli_runner.invoke(main, ["stages"])

        assert result.exit_code == 0
        assert "prepare" in result.stdout
        assert "move-accounts [deploy]" in result.stdout
        assert "get-cloudformation-templates [synth]" in result.stdout


class TestValidateConfig:
    """Tests for the validate-config command."""

    def test_valid(self, cli_runner, config_dir):
        """A valid directory reports its account count."""
        result = cli_runner.invoke(main, ["validate-config", "--config-dir", str(config_dir)])

        assert result.exit_code == 0
        assert "Configuration valid: 4 accounts, home region us-east-1" in result.stdout

    def test_invalid(self, cli_runner, tmp_path):
        """A missing directory fails."""
        result = cli_runner.invoke(main, ["validate-config", "--config-dir", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert "Invalid config directory path" in result.output
