"""
Recipe Factory - Execution Scope Manager

Decides which scope a recipe step runs in. Recipes that require a new scope
get a freshly created, isolated scope of the target tenant for each step;
it is disposed when the step is done, on every exit path. All other recipes
run in the tenant's ambient scope, which outlives the step and is left
alone.
"""

from __future__ import annotations
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional
import logging

if TYPE_CHECKING:
    from recipe_factory.engine.context import RecipeDescriptor
    from recipe_factory.tenants.base import ExecutionScope, ScopeProvider

logger = logging.getLogger(__name__)


class ScopeManager:
    """Hands out execution scopes for recipe steps."""

    def __init__(self, provider: "ScopeProvider", tenant: Optional[str] = None):
        """
        Initialize scope manager.

        Args:
            provider: Tenant host creating the scopes
            tenant: Target tenant (the provider's default tenant when omitted)
        """
        self.provider = provider
        self.tenant = tenant

    @asynccontextmanager
    async def using(self, descriptor: "RecipeDescriptor") -> AsyncIterator["ExecutionScope"]:
        """
        Acquire the scope for one step of `descriptor`.

        Usage:
            async with scope_manager.using(descriptor) as scope:
                ...
        """
        if not descriptor.require_new_scope:
            yield self.provider.ambient_scope(self.tenant)
            return

        settings = self.provider.get_settings(self.tenant)
        scope = self.provider.get_scope(settings)
        logger.debug(f"Running '{descriptor.name}' in a new scope of tenant: {settings.name}")
        try:
            yield scope
        finally:
            scope.dispose()
