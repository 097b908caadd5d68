"""
Recipe Factory - Tenants Package

Execution scopes and tenant hosts. A scope provider hands out the ambient
scope of a tenant or creates isolated scopes for recipes that need them.
"""

from recipe_factory.tenants.base import (
    ExecutionScope,
    ScopeProvider,
    ScopeProviderFactory,
    TenantSettings,
)
from recipe_factory.tenants.memory import ContentStore, InMemoryTenantHost

__all__ = [
    "ExecutionScope",
    "ScopeProvider",
    "ScopeProviderFactory",
    "TenantSettings",
    "ContentStore",
    "InMemoryTenantHost",
]
