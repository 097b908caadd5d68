"""
Recipe Factory - Recipe Lifecycle Events

Observers subclass RecipeEventHandler and override the hooks they need.
Hooks may be plain methods or coroutines. A failing observer is logged and
skipped; it never aborts a recipe.
"""

from __future__ import annotations
import inspect
from typing import TYPE_CHECKING, Iterable, List, Optional
import logging

if TYPE_CHECKING:
    from recipe_factory.engine.context import RecipeDescriptor, StepContext

logger = logging.getLogger(__name__)


class RecipeEventHandler:
    """Base class for recipe lifecycle observers. Every hook is a no-op."""

    def recipe_executing(self, execution_id: str, descriptor: "RecipeDescriptor"):
        pass

    def recipe_executed(self, execution_id: str, descriptor: "RecipeDescriptor"):
        pass

    def execution_failed(
        self,
        execution_id: str,
        descriptor: "RecipeDescriptor",
        error: BaseException,
    ):
        pass

    def recipe_cancelled(self, execution_id: str, descriptor: "RecipeDescriptor"):
        pass

    def step_executing(self, context: "StepContext"):
        pass

    def step_executed(self, context: "StepContext"):
        pass


class RecipeEvents:
    """Delivers lifecycle notifications to every registered observer, in order."""

    HOOKS = (
        "recipe_executing",
        "recipe_executed",
        "execution_failed",
        "recipe_cancelled",
        "step_executing",
        "step_executed",
    )

    def __init__(self, observers: Optional[Iterable[RecipeEventHandler]] = None):
        self.observers: List[RecipeEventHandler] = list(observers or [])

    def add(self, observer: RecipeEventHandler) -> None:
        self.observers.append(observer)

    async def fire(self, hook: str, *args) -> None:
        """
        Invoke a hook on all observers.

        Args:
            hook: Hook name (one of HOOKS)
            *args: Hook arguments
        """
        if hook not in self.HOOKS:
            raise ValueError(f"Unknown recipe event: {hook}")

        for observer in self.observers:
            try:
                result = getattr(observer, hook)(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Recipe event observer {observer.__class__.__name__} failed on {hook}"
                )
