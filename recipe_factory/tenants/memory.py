"""
Recipe Factory - In-Memory Tenant Host

Keeps tenants and their content in memory, with JSON export for state
inspection. Used by the API process and by the tests.
"""

from __future__ import annotations
import json
import uuid
from copy import deepcopy
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Type, Union
import logging

from recipe_factory.errors import ScopeError
from recipe_factory.handlers.base import StepHandler
from recipe_factory.tenants.base import (
    ExecutionScope,
    ScopeProvider,
    ScopeProviderFactory,
    TenantSettings,
)

if TYPE_CHECKING:
    from recipe_factory.storage import TenantConfigurationSources

logger = logging.getLogger(__name__)


class ContentStore:
    """
    In-memory content items of one tenant, keyed by content type and id.

    Applying the same item twice updates it in place.
    """

    ID_FIELD = "ContentItemId"
    TYPE_FIELD = "ContentType"

    def __init__(self, tenant: str):
        self.tenant = tenant
        self._items: Dict[str, Dict[str, Any]] = {}
        self._operation_count = 0

    def set_item(self, item: Dict[str, Any]) -> str:
        """
        Insert or update a content item.

        Returns:
            The item id (generated when the item has none)
        """
        item = deepcopy(item)
        item_id = item.get(self.ID_FIELD) or uuid.uuid4().hex
        item[self.ID_FIELD] = item_id

        existing = self._items.get(item_id)
        if existing is not None:
            existing.update(item)
            logger.debug(f"Updated content item {item_id} in {self.tenant}")
        else:
            self._items[item_id] = item
            logger.debug(f"Created content item {item_id} in {self.tenant}")

        self._operation_count += 1
        return item_id

    def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        item = self._items.get(item_id)
        return deepcopy(item) if item is not None else None

    def list_items(self, content_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """List items, optionally filtered by content type."""
        return [
            deepcopy(item)
            for item in self._items.values()
            if content_type is None or item.get(self.TYPE_FIELD) == content_type
        ]

    def delete_item(self, item_id: str) -> bool:
        if self._items.pop(item_id, None) is None:
            return False
        self._operation_count += 1
        return True

    def get_state(self) -> Dict[str, Any]:
        """Summary of the store, for debugging and the API."""
        types: Dict[str, int] = {}
        for item in self._items.values():
            content_type = item.get(self.TYPE_FIELD) or "unknown"
            types[content_type] = types.get(content_type, 0) + 1
        return {
            "tenant": self.tenant,
            "items": len(self._items),
            "content_types": types,
            "operation_count": self._operation_count,
        }

    def reset(self) -> None:
        """Remove all items."""
        self._items = {}
        self._operation_count = 0
        logger.info(f"Content store reset: {self.tenant}")

    def export_state(self, path: str) -> str:
        """Export all items to a JSON file."""
        export_path = Path(path)
        export_path.parent.mkdir(parents=True, exist_ok=True)
        state = {
            "metadata": {
                "tenant": self.tenant,
                "exported_at": datetime.utcnow().isoformat(),
                "operation_count": self._operation_count,
            },
            "items": list(self._items.values()),
        }
        with open(export_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, default=str)
        logger.info(f"Content exported to: {export_path}")
        return str(export_path)


class InMemoryTenantHost(ScopeProvider):
    """
    Tenant host backed by process memory.

    Each tenant has one content store and one ambient scope, both created on
    first use. Isolated scopes share the tenant's content store and
    configuration but get new handler and evaluator instances.
    """

    def __init__(
        self,
        tenants: Optional[Iterable[Union[TenantSettings, str]]] = None,
        configuration: Optional["TenantConfigurationSources"] = None,
        handler_classes: Optional[Sequence[Type[StepHandler]]] = None,
        default_tenant: str = ScopeProvider.DEFAULT_TENANT,
    ):
        """
        Initialize host.

        Args:
            tenants: Tenants to host (only the default tenant when omitted)
            configuration: Shared tenant configuration sources
            handler_classes: Step handler classes for every scope
                (the registered handlers when omitted)
            default_tenant: Tenant used when none is named
        """
        self.configuration = configuration
        self.handler_classes = list(handler_classes) if handler_classes is not None else None
        self.default_tenant = default_tenant

        self._tenants: Dict[str, TenantSettings] = {}
        self._content: Dict[str, ContentStore] = {}
        self._ambient: Dict[str, ExecutionScope] = {}

        for tenant in tenants or [default_tenant]:
            self.add_tenant(tenant)
        if default_tenant not in self._tenants:
            self.add_tenant(default_tenant)

    def add_tenant(self, tenant: Union[TenantSettings, str]) -> TenantSettings:
        """Register a tenant (idempotent)."""
        settings = TenantSettings(name=tenant) if isinstance(tenant, str) else tenant
        self._tenants[settings.name] = settings
        self._content.setdefault(settings.name, ContentStore(settings.name))
        logger.debug(f"Hosting tenant: {settings.name}")
        return settings

    def get_settings(self, tenant: Optional[str] = None) -> TenantSettings:
        name = tenant or self.default_tenant
        settings = self._tenants.get(name)
        if settings is None:
            raise ScopeError(
                f"Unknown tenant: {name}. Available: {list(self._tenants.keys())}"
            )
        return settings

    def get_scope(self, settings: Union[TenantSettings, str]) -> ExecutionScope:
        name = settings if isinstance(settings, str) else settings.name
        tenant = self.get_settings(name)
        logger.debug(f"Creating isolated scope for tenant: {name}")
        return self._create_scope(tenant, isolated=True)

    def ambient_scope(self, tenant: Optional[str] = None) -> ExecutionScope:
        settings = self.get_settings(tenant)
        scope = self._ambient.get(settings.name)
        if scope is None:
            scope = self._create_scope(settings, isolated=False)
            self._ambient[settings.name] = scope
        return scope

    def tenants(self) -> List[TenantSettings]:
        return list(self._tenants.values())

    def content(self, tenant: Optional[str] = None) -> ContentStore:
        """Content store of a tenant."""
        return self._content[self.get_settings(tenant).name]

    def get_state(self) -> Dict[str, Any]:
        return {
            "tenants": [
                self._content[name].get_state() for name in self._tenants
            ],
        }

    def reset(self) -> None:
        """Drop all content and ambient scopes."""
        for store in self._content.values():
            store.reset()
        for scope in self._ambient.values():
            scope.dispose()
        self._ambient = {}

    def _create_scope(self, settings: TenantSettings, isolated: bool) -> ExecutionScope:
        return ExecutionScope(
            tenant=settings,
            content=self._content[settings.name],
            configuration=self.configuration,
            handler_classes=self.handler_classes,
            isolated=isolated,
        )


# Register provider
ScopeProviderFactory.register("memory", InMemoryTenantHost)
