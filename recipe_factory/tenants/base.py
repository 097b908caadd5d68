"""
Recipe Factory - Tenant Scope Interface

Defines execution scopes and the abstract scope provider (tenant host).
A scope bundles everything a recipe step runs against: the tenant, the step
handlers, the expression evaluator, the tenant's content and its
configuration. Providers can be swapped (in-memory host for tests and
single-process use, other hosts for real deployments).
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Type, Union
import logging

from recipe_factory.engine.scripting import ExpressionEvaluator, JinjaExpressionEvaluator
from recipe_factory.errors import ScopeError
from recipe_factory.handlers.base import HandlerRegistry, StepHandler

if TYPE_CHECKING:
    from recipe_factory.storage import TenantConfigurationSources
    from recipe_factory.tenants.memory import ContentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantSettings:
    """Identity of a tenant; the key used to request an isolated scope."""
    name: str
    description: str = ""
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)


class ExecutionScope:
    """
    Scope under which the handlers of one recipe step run.

    Handlers and the evaluator belong to the scope, so a freshly created
    scope never shares handler instances with another one. Tenant data
    (content and configuration) is shared by every scope of the same tenant.
    """

    def __init__(
        self,
        tenant: TenantSettings,
        content: "ContentStore",
        configuration: Optional["TenantConfigurationSources"] = None,
        handler_classes: Optional[Sequence[Type[StepHandler]]] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
        isolated: bool = False,
    ):
        """
        Initialize scope.

        Args:
            tenant: Tenant the scope belongs to
            content: Tenant content store
            configuration: Tenant configuration sources (optional)
            handler_classes: Step handler classes (registry order when omitted)
            evaluator: Expression evaluator (a new sandboxed one when omitted)
            isolated: True for scopes created on demand and disposed after use
        """
        self.tenant = tenant
        self.content = content
        self.configuration = configuration
        self.evaluator = evaluator or JinjaExpressionEvaluator()
        self.isolated = isolated
        self._disposed = False

        if handler_classes is None:
            self._handlers = HandlerRegistry.create_all(self)
        else:
            self._handlers = [handler_class(self) for handler_class in handler_classes]

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def handlers(self) -> List[StepHandler]:
        """Step handlers in registration order."""
        self._ensure_active()
        return list(self._handlers)

    # =========================================================================
    # TENANT CONFIGURATION
    # =========================================================================

    def load_settings(self) -> Dict[str, Any]:
        """Current configuration of the scope tenant."""
        self._ensure_active()
        if self.configuration is None:
            return {}
        return self.configuration.load(self.tenant.name)

    def save_settings(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge values into the scope tenant's configuration.

        Raises:
            ScopeError: If the scope has no configuration sources
        """
        self._ensure_active()
        if self.configuration is None:
            raise ScopeError(f"No configuration sources for tenant: {self.tenant.name}")
        return self.configuration.save(self.tenant.name, data)

    # =========================================================================
    # LIFETIME
    # =========================================================================

    def dispose(self) -> None:
        """Release the scope. Further calls are no-ops."""
        if self._disposed:
            return
        self._disposed = True
        self._handlers = []
        logger.debug(f"Disposed scope for tenant: {self.tenant.name}")

    def _ensure_active(self) -> None:
        if self._disposed:
            raise ScopeError(f"Scope for tenant '{self.tenant.name}' is already disposed")


class ScopeProvider(ABC):
    """
    Abstract base class for tenant hosts.

    A provider hands out the long-lived ambient scope of a tenant and creates
    new isolated scopes on request.
    """

    DEFAULT_TENANT = "Default"

    @abstractmethod
    def get_settings(self, tenant: Optional[str] = None) -> TenantSettings:
        """
        Look up a tenant.

        Args:
            tenant: Tenant name (default tenant when omitted)

        Raises:
            ScopeError: If the tenant is unknown
        """
        pass

    @abstractmethod
    def get_scope(self, settings: Union[TenantSettings, str]) -> ExecutionScope:
        """
        Create a new isolated scope. The caller must dispose it.

        Raises:
            ScopeError: If the tenant is unknown
        """
        pass

    @abstractmethod
    def ambient_scope(self, tenant: Optional[str] = None) -> ExecutionScope:
        """Return the shared scope of a tenant. It is never disposed by callers."""
        pass

    @abstractmethod
    def tenants(self) -> List[TenantSettings]:
        """All known tenants."""
        pass


class ScopeProviderFactory:
    """
    Factory for creating scope providers.

    Usage:
        host = ScopeProviderFactory.create("memory", tenants=["Default"])
    """

    _providers: Dict[str, type] = {}

    @classmethod
    def register(cls, provider_type: str, provider_class: type) -> None:
        """Register a provider type."""
        cls._providers[provider_type] = provider_class

    @classmethod
    def create(cls, provider_type: str, **kwargs) -> ScopeProvider:
        """
        Create a provider instance.

        Raises:
            ValueError: If provider type is not registered
        """
        if provider_type not in cls._providers:
            raise ValueError(
                f"Unknown scope provider: {provider_type}. "
                f"Available: {list(cls._providers.keys())}"
            )
        return cls._providers[provider_type](**kwargs)

    @classmethod
    def available_providers(cls) -> List[str]:
        """Get list of available provider types."""
        return list(cls._providers.keys())
