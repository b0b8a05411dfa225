"""Tests for deployment units and the unit graph.

Tests cover:
- Topological ordering and level computation
- Cycle and unknown dependency detection
- Planning across included environments only
- Level-by-level deployment
"""

import pytest

from lzorchestra.errors import ConfigurationError, DependencyCycleError
from lzorchestra.schemas import DeploymentContext, SynthesizerConfig, SynthesizerStrategy
from lzorchestra.synthesizer import SynthesizerFlags
from lzorchestra.units import (
    NETWORK_VPC_UNITS,
    DeploymentUnit,
    LogicalUnit,
    UnitGraph,
    UnitPlanner,
    deploy_graph,
    unit_name,
)


AMBIENT = SynthesizerConfig(strategy=SynthesizerStrategy.AMBIENT_CREDENTIALS)
FLAGS = SynthesizerFlags(
    partition="aws",
    prefix="Accelerator",
    management_account_id="111111111111",
    home_region="us-east-1",
)


def _unit(name, *dependencies) -> DeploymentUnit:
    return DeploymentUnit(
        name=name,
        account="111111111111",
        region="us-east-1",
        synthesizer=AMBIENT,
        dependencies=tuple(dependencies),
    )


# -----------------------------------------------------------------------------
# UnitGraph
# -----------------------------------------------------------------------------


class TestUnitGraph:
    """Tests for UnitGraph."""

    def test_topological_order(self):
        """Dependencies come before dependents."""
        graph = UnitGraph()
        graph.add(_unit("dns", "endpoints"))
        graph.add(_unit("endpoints", "vpc"))
        graph.add(_unit("vpc"))

        assert [u.name for u in graph.topological_order()] == ["vpc", "endpoints", "dns"]

    def test_add_dependency(self):
        """Edges may be declared after adding units."""
        graph = UnitGraph()
        graph.add(_unit("a"))
        graph.add(_unit("b"))
        graph.add_dependency("a", "b")

        assert [u.name for u in graph.topological_order()] == ["b", "a"]
        assert [u.name for u in graph.dependencies_of("a")] == ["b"]

    def test_levels(self):
        """Independent units share a level."""
        graph = UnitGraph()
        graph.add(_unit("vpc"))
        graph.add(_unit("tgw"))
        graph.add(_unit("attach", "vpc", "tgw"))

        assert graph.levels() == {"vpc": 0, "tgw": 0, "attach": 1}

    def test_cycle(self):
        """A cycle is reported with the units involved."""
        graph = UnitGraph()
        graph.add(_unit("a", "b"))
        graph.add(_unit("b", "a"))
        graph.add(_unit("c"))

        with pytest.raises(DependencyCycleError, match="a, b"):
            graph.validate()

    def test_unknown_dependency(self):
        """An edge to a missing unit is rejected."""
        graph = UnitGraph()
        graph.add(_unit("a", "ghost"))
        with pytest.raises(DependencyCycleError, match="unknown unit ghost"):
            graph.topological_order()

    def test_duplicate_unit(self):
        """Unit names are unique."""
        graph = UnitGraph()
        graph.add(_unit("a"))
        with pytest.raises(ConfigurationError, match="Duplicate deployment unit"):
            graph.add(_unit("a"))

    def test_get_unknown(self):
        """Unknown names raise KeyError."""
        with pytest.raises(KeyError):
            UnitGraph().get("missing")


# -----------------------------------------------------------------------------
# Planning
# -----------------------------------------------------------------------------


class TestUnitPlanner:
    """Tests for UnitPlanner."""

    def test_plans_every_environment(self):
        """A stage run materializes units per account and region."""
        planner = UnitPlanner(DeploymentContext(stage="network-vpc"), FLAGS)
        graph = planner.plan(
            "network-vpc", NETWORK_VPC_UNITS, ["111111111111", "444444444444"], ["us-east-1", "us-west-2"]
        )

        assert len(graph) == 12
        dns = graph.get(unit_name("NetworkVpcDnsStack", "444444444444", "us-west-2"))
        assert dns.dependencies == (unit_name("NetworkVpcEndpointsStack", "444444444444", "us-west-2"),)
        assert dns.synthesizer.strategy == SynthesizerStrategy.DEFAULT_ROLE

    def test_single_environment(self):
        """Account and region in context narrow the plan."""
        context = DeploymentContext(stage="network-vpc", account_id="444444444444", region="us-west-2")
        graph = UnitPlanner(context, FLAGS).plan(
            "network-vpc", NETWORK_VPC_UNITS, ["111111111111", "444444444444"], ["us-east-1", "us-west-2"]
        )

        assert {(u.account, u.region) for u in graph.units} == {("444444444444", "us-west-2")}

    def test_other_stage_plans_nothing(self):
        """Units of a stage not being run are not materialized."""
        graph = UnitPlanner(DeploymentContext(stage="logging"), FLAGS).plan(
            "network-vpc", NETWORK_VPC_UNITS, ["111111111111"], ["us-east-1"]
        )
        assert len(graph) == 0

    def test_reversed_dependency_detected_at_plan_time(self):
        """A bad template edge fails before anything deploys."""
        templates = (
            LogicalUnit("A", depends_on=("B",)),
            LogicalUnit("B", depends_on=("A",)),
        )
        with pytest.raises(DependencyCycleError):
            UnitPlanner(DeploymentContext(), FLAGS).plan("security", templates, ["111111111111"], ["us-east-1"])


class TestDeployGraph:
    """Tests for deploy_graph."""

    async def test_dependencies_deploy_first(self):
        """Every unit deploys after its dependencies."""
        graph = UnitPlanner(DeploymentContext(stage="network-vpc"), FLAGS).plan(
            "network-vpc", NETWORK_VPC_UNITS, ["111111111111"], ["us-east-1", "us-west-2"]
        )
        deployed = []

        async def deploy(unit):
            for dependency in unit.dependencies:
                assert dependency in deployed
            deployed.append(unit.name)
            return unit.name

        results = await deploy_graph(graph, deploy)

        assert sorted(results) == sorted(u.name for u in graph.units)
