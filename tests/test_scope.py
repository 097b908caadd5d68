"""Tests for tenant scopes and the scope manager."""

import pytest

from recipe_factory.engine.context import RecipeDescriptor
from recipe_factory.engine.scope import ScopeManager
from recipe_factory.errors import ScopeError
from recipe_factory.handlers import ContentStepHandler, RecipesStepHandler, SettingsStepHandler
from recipe_factory.tenants import (
    InMemoryTenantHost,
    ScopeProviderFactory,
    TenantSettings,
)


def _descriptor(require_new_scope: bool) -> RecipeDescriptor:
    return RecipeDescriptor.from_bytes(b'{"steps": []}', require_new_scope=require_new_scope)


@pytest.mark.asyncio
async def test_ambient_scope_is_reused_and_kept(host):
    manager = ScopeManager(host)

    async with manager.using(_descriptor(False)) as first:
        pass
    async with manager.using(_descriptor(False)) as second:
        pass

    assert first is second
    assert first is host.ambient_scope()
    assert not first.disposed
    assert not first.isolated


@pytest.mark.asyncio
async def test_new_scope_per_use_is_disposed(host):
    manager = ScopeManager(host, tenant="Other")

    async with manager.using(_descriptor(True)) as first:
        assert first.isolated
        assert first.tenant.name == "Other"
        assert not first.disposed
    async with manager.using(_descriptor(True)) as second:
        pass

    assert first is not second
    assert first.disposed
    assert second.disposed


@pytest.mark.asyncio
async def test_new_scope_is_disposed_on_error(host):
    manager = ScopeManager(host)

    with pytest.raises(RuntimeError):
        async with manager.using(_descriptor(True)) as scope:
            raise RuntimeError("handler failed")

    assert scope.disposed


@pytest.mark.asyncio
async def test_unknown_tenant(host):
    manager = ScopeManager(host, tenant="Missing")

    with pytest.raises(ScopeError, match="Unknown tenant"):
        async with manager.using(_descriptor(True)):
            pass


def test_isolated_scopes_get_fresh_handlers_but_share_tenant_data(host):
    ambient = host.ambient_scope()
    isolated = host.get_scope(TenantSettings(name="Default"))

    assert [type(h) for h in ambient.handlers] == [type(h) for h in isolated.handlers]
    assert all(a is not b for a, b in zip(ambient.handlers, isolated.handlers))
    assert all(h.scope is isolated for h in isolated.handlers)
    assert ambient.evaluator is not isolated.evaluator
    assert ambient.content is isolated.content


def test_dispose_is_idempotent_and_blocks_use(host):
    scope = host.get_scope("Default")

    scope.dispose()
    scope.dispose()

    assert scope.disposed
    with pytest.raises(ScopeError, match="disposed"):
        scope.handlers
    with pytest.raises(ScopeError):
        scope.load_settings()


def test_scope_settings_round_trip(host):
    scope = host.ambient_scope("Other")

    scope.save_settings({"SiteName": "Other site", "Theme": "Dark"})
    scope.save_settings({"Theme": None})

    assert scope.load_settings() == {"SiteName": "Other site"}
    assert host.ambient_scope().load_settings() == {}


def test_scope_without_configuration():
    host = InMemoryTenantHost()
    scope = host.ambient_scope()

    assert scope.load_settings() == {}
    with pytest.raises(ScopeError):
        scope.save_settings({"a": 1})


def test_default_scope_uses_registered_handlers():
    host = ScopeProviderFactory.create("memory", tenants=["Default"])
    handler_types = [type(h) for h in host.ambient_scope().handlers]

    for expected in (SettingsStepHandler, ContentStepHandler, RecipesStepHandler):
        assert expected in handler_types


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError, match="Unknown scope provider"):
        ScopeProviderFactory.create("nope")
    assert "memory" in ScopeProviderFactory.available_providers()


def test_default_tenant_is_always_hosted():
    host = InMemoryTenantHost(tenants=["Blog"], default_tenant="Main")

    assert [t.name for t in host.tenants()] == ["Blog", "Main"]
    assert host.get_settings().name == "Main"
