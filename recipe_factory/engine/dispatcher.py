"""
Recipe Factory - Step Dispatcher

Runs one recipe step:
1. Acquire the step's execution scope
2. Resolve scripted values of the step in place
3. Invoke every handler of the scope that handles the step name,
   in registration order, with step events around each invocation

A handler failure stops the remaining handlers and propagates to the
executor.
"""

from __future__ import annotations
import inspect
from typing import Optional
import logging

from recipe_factory.engine.context import StepContext
from recipe_factory.engine.events import RecipeEvents
from recipe_factory.engine.resolver import resolve_tree
from recipe_factory.engine.scope import ScopeManager
from recipe_factory.engine.scripting import ParametersProvider, ScriptContext, VariablesProvider
from recipe_factory.errors import StepHandlerError

logger = logging.getLogger(__name__)


class StepDispatcher:
    """Dispatches resolved recipe steps to step handlers."""

    def __init__(self, scope_manager: ScopeManager, events: Optional[RecipeEvents] = None):
        """
        Initialize dispatcher.

        Args:
            scope_manager: Provides the scope each step runs in
            events: Lifecycle observers notified around each handler
        """
        self.scope_manager = scope_manager
        self.events = events or RecipeEvents()

    async def dispatch(
        self,
        context: StepContext,
        variables: Optional[VariablesProvider] = None,
    ) -> int:
        """
        Execute a step.

        Args:
            context: Step to execute
            variables: Variables of the recipe the step belongs to

        Returns:
            Number of handlers that processed the step

        Raises:
            ScriptEvaluationError: If a scripted value cannot be evaluated
            StepHandlerError: If a handler rejects the step payload
            Exception: Whatever a handler raises
        """
        async with self.scope_manager.using(context.descriptor) as scope:
            script_context = ScriptContext(
                evaluator=scope.evaluator,
                parameters=ParametersProvider(context.environment),
                variables=variables,
                base_path=context.descriptor.base_path,
            )
            resolve_tree(context.step, script_context)

            handled = 0
            for handler in scope.handlers:
                if not handler.can_handle(context.name):
                    continue

                errors = handler.validate(context.step)
                if errors:
                    raise StepHandlerError(
                        f"Invalid '{context.name}' step: {'; '.join(errors)}",
                        context.name,
                        errors=errors,
                    )

                logger.info(f"Executing recipe step '{context.name}'.")
                await self.events.fire("step_executing", context)

                result = handler.execute(context)
                if inspect.isawaitable(result):
                    await result

                await self.events.fire("step_executed", context)
                logger.info(f"Finished executing recipe step '{context.name}'.")
                handled += 1

            if handled == 0:
                logger.warning(f"No handler found for recipe step '{context.name}'.")
            return handled
