"""
Recipe Factory - Base Step Handler Interface

Defines the step handler interface and registry for extensibility.
All recipe step handlers must inherit from the StepHandler base class.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type
import logging

from recipe_factory.engine.context import StepContext

if TYPE_CHECKING:
    from recipe_factory.tenants.base import ExecutionScope

logger = logging.getLogger(__name__)


class StepHandler(ABC):
    """
    Abstract base class for all recipe step handlers.

    A handler applies one kind of recipe step:
    - SettingsStepHandler: tenant configuration values
    - ContentStepHandler: content items
    - RecipesStepHandler: nested recipes

    Each handler:
    - Is created per execution scope and may use the scope's tenant data
    - Declares the step names it handles (matched case-insensitively)
    - Receives a StepContext whose scripted values are already resolved
    - May be a plain method or a coroutine
    - Should be idempotent: recipes can be applied more than once
    """

    # Handler metadata (override in subclasses)
    HANDLER_NAME: str = "base"
    STEP_NAMES: List[str] = []

    def __init__(self, scope: Optional["ExecutionScope"] = None):
        """Initialize handler for a scope."""
        self.scope = scope
        self.logger = logging.getLogger(f"handler.{self.HANDLER_NAME}")

    def can_handle(self, step_name: str) -> bool:
        """True when this handler processes steps named `step_name`."""
        wanted = step_name.casefold()
        return any(name.casefold() == wanted for name in self.STEP_NAMES)

    def validate(self, step: Dict[str, Any]) -> List[str]:
        """
        Validate a step payload.

        Args:
            step: Resolved step object

        Returns:
            List of validation errors (empty if valid)
        """
        return []

    @abstractmethod
    def execute(self, context: StepContext) -> Any:
        """
        Apply the step.

        Args:
            context: Step context (scripted values resolved)
        """
        pass


class HandlerRegistry:
    """
    Registry for managing available step handlers.

    Usage:
        HandlerRegistry.register(SettingsStepHandler)
        handlers = HandlerRegistry.create_all(scope)
    """

    _handlers: Dict[str, Type[StepHandler]] = {}

    @classmethod
    def register(cls, handler_class: Type[StepHandler]) -> Type[StepHandler]:
        """Register a handler class. Registration order is dispatch order."""
        name = handler_class.HANDLER_NAME
        cls._handlers[name] = handler_class
        logger.info(f"Registered step handler: {name}")
        return handler_class

    @classmethod
    def unregister(cls, name: str) -> None:
        """Remove a handler class."""
        cls._handlers.pop(name, None)

    @classmethod
    def get(cls, name: str, scope: Optional["ExecutionScope"] = None) -> Optional[StepHandler]:
        """Get handler instance by name."""
        handler_class = cls._handlers.get(name)
        if handler_class:
            return handler_class(scope)
        return None

    @classmethod
    def create_all(cls, scope: Optional["ExecutionScope"] = None) -> List[StepHandler]:
        """New instances of every registered handler, in registration order."""
        return [handler_class(scope) for handler_class in cls._handlers.values()]

    @classmethod
    def available(cls) -> List[str]:
        """Get list of available handler names."""
        return list(cls._handlers.keys())

    @classmethod
    def all_handlers(cls) -> Dict[str, Type[StepHandler]]:
        """Get all registered handlers."""
        return cls._handlers.copy()
