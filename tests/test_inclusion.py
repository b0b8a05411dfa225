"""Tests for the inclusion filter."""

import pytest

from lzorchestra.inclusion import Candidate, include
from lzorchestra.schemas import DeploymentContext


class TestBroadSynthesis:
    """No stage in context: everything but pipeline stages."""

    @pytest.mark.parametrize("stage", ["prepare", "network-vpc", "finalize", "import-asea-resources"])
    def test_regular_stages_included(self, stage):
        """Regular stages are included for any account and region."""
        assert include(DeploymentContext(), Candidate(stage, "111111111111", "us-east-1"))

    @pytest.mark.parametrize("stage", ["pipeline", "tester-pipeline"])
    def test_meta_stages_excluded(self, stage):
        """Pipeline bootstrap stages are never part of a broad synthesis."""
        assert not include(DeploymentContext(), Candidate(stage, "111111111111", "us-east-1"))

    def test_account_and_region_ignored_without_stage(self):
        """Account/region in context do not narrow a broad synthesis."""
        context = DeploymentContext(account_id="111111111111", region="us-east-1")
        assert include(context, Candidate("logging", "999999999999", "eu-west-1"))


class TestStageRun:
    """Stage set in context."""

    def test_other_stage_excluded(self):
        """Candidates of another stage are excluded."""
        assert not include(DeploymentContext(stage="logging"), Candidate("security"))

    def test_all_environments(self):
        """Stage alone includes every environment."""
        context = DeploymentContext(stage="logging")
        assert include(context, Candidate("logging", "111111111111", "us-east-1"))
        assert include(context, Candidate("logging", "222222222222", "eu-west-1"))

    def test_single_environment(self):
        """Stage with account and region includes exactly that environment."""
        context = DeploymentContext(stage="logging", account_id="111111111111", region="us-east-1")
        assert include(context, Candidate("logging", "111111111111", "us-east-1"))
        assert not include(context, Candidate("logging", "111111111111", "us-west-2"))
        assert not include(context, Candidate("logging", "222222222222", "us-east-1"))

    @pytest.mark.parametrize(
        "account_id,region",
        [("111111111111", None), (None, "us-east-1")],
    )
    def test_half_specified_environment(self, account_id, region):
        """Only one of account or region set matches nothing."""
        context = DeploymentContext(stage="logging", account_id=account_id, region=region)
        assert not include(context, Candidate("logging", "111111111111", "us-east-1"))


class TestPurity:
    """The filter is a pure function."""

    def test_repeatable(self):
        """Identical inputs give identical answers."""
        context = DeploymentContext(stage="logging", account_id="111111111111", region="us-east-1")
        candidate = Candidate("logging", "111111111111", "us-east-1")
        assert include(context, candidate) == include(context, candidate)
