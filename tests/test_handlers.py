"""Tests for module handlers and the module registry.

Tests cover:
- NoOpModuleHandler and FunctionModuleHandler
- ModuleRegistry exhaustive validation, lookup and dispatch
- Default catalog registry
"""

from types import MappingProxyType

import pytest

from lzorchestra.catalog import STAGE_RUN_ORDERS, ModuleName, StageName, default_stages
from lzorchestra.errors import UnknownModuleError
from lzorchestra.handlers import FunctionModuleHandler, ModuleHandler, ModuleRegistry, NoOpModuleHandler
from lzorchestra.parameters import ModuleParameters
from lzorchestra.schemas import ModuleDefinition, StageDefinition


# -----------------------------------------------------------------------------
# Test Fixtures
# -----------------------------------------------------------------------------


def _params(module: ModuleDefinition, stage: StageDefinition, invocation) -> ModuleParameters:
    # Handlers under test never read the runner bundle
    return ModuleParameters(module=module, stage=stage, invocation=invocation, runner=None)


CUSTOM_MODULE = ModuleDefinition(name="custom-module", run_order=1)
CUSTOM_STAGE = StageDefinition(name="custom", run_order=1, modules=(CUSTOM_MODULE,))


# -----------------------------------------------------------------------------
# Handlers
# -----------------------------------------------------------------------------


class TestHandlers:
    """Tests for the built-in handlers."""

    def test_abstract(self):
        """ModuleHandler cannot be instantiated."""
        with pytest.raises(TypeError):
            ModuleHandler()

    async def test_noop(self, invocation):
        """NoOp returns a status naming module and stage."""
        status = await NoOpModuleHandler().execute(_params(CUSTOM_MODULE, CUSTOM_STAGE, invocation))
        assert status == 'Module "custom-module" of "custom" stage: noop'

    async def test_function(self, invocation):
        """FunctionModuleHandler awaits the wrapped coroutine."""
        async def run(params):
            return f"ran {params.module_name} dry_run={params.dry_run}"

        status = await FunctionModuleHandler(run).execute(_params(CUSTOM_MODULE, CUSTOM_STAGE, invocation))
        assert status == "ran custom-module dry_run=False"


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------


class TestModuleRegistry:
    """Tests for ModuleRegistry."""

    def test_missing_handler_rejected(self):
        """Every module of every stage needs a handler."""
        with pytest.raises(UnknownModuleError, match="Unknown Module custom-module"):
            ModuleRegistry([CUSTOM_STAGE], {})

    def test_get_by_name_or_enum(self):
        """Handlers are found by string or ModuleName."""
        handler = NoOpModuleHandler()
        registry = ModuleRegistry.create_default({ModuleName.MOVE_ACCOUNTS: handler})

        assert registry.get(ModuleName.MOVE_ACCOUNTS) is handler
        assert registry.get("move-accounts") is handler
        assert registry.has("move-accounts")

    def test_get_unknown(self):
        """Unknown modules raise UnknownModuleError."""
        with pytest.raises(UnknownModuleError):
            ModuleRegistry.create_noop().get("not-a-module")

    def test_handler_table_read_only(self):
        """The dispatch table cannot be mutated after construction."""
        registry = ModuleRegistry.create_noop()
        assert isinstance(registry._handlers, MappingProxyType)
        with pytest.raises(TypeError):
            registry._handlers["x"] = NoOpModuleHandler()

    def test_duplicate_stages_kept(self):
        """Duplicate stage names are kept for the runner to reject."""
        registry = ModuleRegistry([CUSTOM_STAGE, CUSTOM_STAGE], {"custom-module": NoOpModuleHandler()})
        assert len(registry.find_stages("custom")) == 2

    def test_list_modules(self):
        """Every catalog module has a handler in the default registry."""
        registry = ModuleRegistry.create_noop()
        assert set(registry.list_modules()) == {m.value for m in ModuleName}

    async def test_dispatch(self, invocation):
        """dispatch routes to the module's handler."""
        calls = []

        async def run(params):
            calls.append(params.module_name)
            return "done"

        registry = ModuleRegistry([CUSTOM_STAGE], {"custom-module": FunctionModuleHandler(run)})
        assert await registry.dispatch(_params(CUSTOM_MODULE, CUSTOM_STAGE, invocation)) == "done"
        assert calls == ["custom-module"]


class TestCatalog:
    """Tests for the default stage catalog."""

    def test_stage_per_run_order_entry(self):
        """One stage definition per ordered stage."""
        stages = default_stages()
        assert [s.name for s in stages] == list(STAGE_RUN_ORDERS)

    def test_prepare_modules(self):
        """The prepare stage holds the organization modules in order."""
        [prepare] = [s for s in default_stages() if s.name == StageName.PREPARE.value]
        orders = {m.name: m.run_order for m in prepare.modules}
        assert orders["setup-control-tower-landing-zone"] == 1
        assert orders["create-stack-policy"] == 1
        assert orders["move-accounts"] == 5

    def test_controllable_flags(self):
        """Only operator-controllable modules are flagged."""
        modules = {m.name: m for s in default_stages() for m in s.modules}
        assert modules["move-accounts"].controllable
        assert not modules["manage-accounts-alias"].controllable

    def test_enum_names_normalized(self):
        """Enum names are stored as their values."""
        module = ModuleDefinition(name=ModuleName.MOVE_ACCOUNTS, run_order=1)
        stage = StageDefinition(name=StageName.SECURITY, run_order=9, modules=[module])
        assert module.name == "move-accounts"
        assert stage.name == "security"
        assert isinstance(stage.modules, tuple)
