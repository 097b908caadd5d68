"""
Recipe Factory - Recipe Executor

Executes recipes step by step using the step dispatcher.
Handles streaming, cancellation, per-step results, nested recipes and
lifecycle notifications.
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional
import logging

from recipe_factory.engine.context import (
    CancellationToken,
    ExecutionContext,
    RecipeDescriptor,
    StepContext,
)
from recipe_factory.engine.dispatcher import StepDispatcher
from recipe_factory.engine.events import RecipeEventHandler, RecipeEvents
from recipe_factory.engine.reader import RecipeNode, RecipeReader
from recipe_factory.engine.scope import ScopeManager
from recipe_factory.engine.scripting import VariablesProvider
from recipe_factory.errors import RecipeFormatError, describe_exception
from recipe_factory.models import RecipeResult, RecipeStatus, StepResult

if TYPE_CHECKING:
    from recipe_factory.storage import StorageManager
    from recipe_factory.tenants.base import ScopeProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepOutcome:
    """Outcome of one step, recorded before the executor decides to stop."""
    step_result: StepResult
    error: Optional[Exception] = None

    @property
    def successful(self) -> bool:
        return self.error is None


class RecipeExecutor:
    """
    Executes recipes.

    Responsibilities:
    - Stream the recipe document, one step at a time
    - Check cancellation before each step
    - Record a StepResult per attempted step
    - Run nested recipes after the step that declared them
    - Notify lifecycle observers

    Error Handling:
    - A failing step is recorded as unsuccessful but completed
    - The error is raised after the bookkeeping, aborting the recipe
    - The execution-failed notification is sent before the error leaves
    - Cancellation is not an error: execute() returns None
    """

    def __init__(
        self,
        scope_manager: ScopeManager,
        observers: Optional[Iterable[RecipeEventHandler]] = None,
        storage: Optional["StorageManager"] = None,
    ):
        """
        Initialize executor.

        Args:
            scope_manager: Provides the scope each step runs in
            observers: Lifecycle observers
            storage: Persists recipe results when given
        """
        self.scope_manager = scope_manager
        self.events = RecipeEvents(observers)
        self.dispatcher = StepDispatcher(scope_manager, self.events)
        self.storage = storage
        self.logger = logging.getLogger(__name__)

        self._results: Dict[str, RecipeResult] = {}

    def get_result(self, execution_id: str) -> Optional[RecipeResult]:
        """Result of an execution started by this executor (or stored)."""
        result = self._results.get(execution_id)
        if result is None and self.storage is not None:
            result = self.storage.load_result(execution_id)
        return result

    async def execute(
        self,
        execution_id: str,
        descriptor: RecipeDescriptor,
        environment: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Optional[str]:
        """
        Execute a recipe.

        Args:
            execution_id: Identifier of this execution
            descriptor: Recipe to execute
            environment: Parameters visible to expressions (shared with nested recipes)
            cancellation_token: Checked before each step

        Returns:
            The execution id, or None when the run was cancelled

        Raises:
            RecipeFormatError: If the document is malformed
            Exception: The error of the first failing step
        """
        token = cancellation_token or CancellationToken()
        return await self._execute(execution_id, descriptor, environment, token, None)

    async def _execute(
        self,
        execution_id: str,
        descriptor: RecipeDescriptor,
        environment: Any,
        token: CancellationToken,
        inherited_variables: Optional[VariablesProvider],
    ) -> Optional[str]:
        await self.events.fire("recipe_executing", execution_id, descriptor)

        result = RecipeResult(
            execution_id=execution_id,
            recipe_name=descriptor.name,
            started_at=datetime.utcnow(),
        )
        self._results[execution_id] = result
        self.logger.info(f"Executing recipe '{descriptor.name}' ({execution_id})")

        try:
            context = ExecutionContext(
                execution_id=execution_id,
                environment=environment,
                descriptor=descriptor,
            )
            variables = inherited_variables

            with descriptor.open() as stream:
                for node in RecipeReader(stream):
                    if node.kind == RecipeReader.VARIABLES:
                        variables = VariablesProvider(node.value)
                        continue
                    if node.kind != RecipeReader.STEP:
                        continue

                    step_context = self._create_step_context(context, node)

                    if token.cancelled:
                        self.logger.error("Recipe interrupted by cancellation token.")
                        self._finish(result, RecipeStatus.CANCELLED)
                        await self.events.fire("recipe_cancelled", execution_id, descriptor)
                        return None

                    outcome = await self._execute_step(step_context, variables, result)
                    if not outcome.successful:
                        raise outcome.error

                    for inner in step_context.inner_recipes:
                        inner_id = str(uuid.uuid4())
                        self.logger.info(
                            f"Executing nested recipe '{inner.name}' ({inner_id}) "
                            f"from step '{step_context.name}'"
                        )
                        completed = await self._execute(
                            inner_id, inner, environment, token, variables
                        )
                        if completed is None:
                            self.logger.error("Recipe interrupted by cancellation token.")
                            self._finish(result, RecipeStatus.CANCELLED)
                            await self.events.fire("recipe_cancelled", execution_id, descriptor)
                            return None

        except Exception as e:
            self.logger.error(f"Recipe '{descriptor.name}' ({execution_id}) failed: {e}")
            self._finish(result, RecipeStatus.FAILED)
            await self.events.fire("execution_failed", execution_id, descriptor, e)
            raise

        self._finish(result, RecipeStatus.COMPLETED)
        await self.events.fire("recipe_executed", execution_id, descriptor)
        self.logger.info(
            f"Recipe '{descriptor.name}' ({execution_id}) completed: "
            f"{len(result.steps)} steps"
        )
        return execution_id

    def _create_step_context(self, context: ExecutionContext, node: RecipeNode) -> StepContext:
        name = node.value.get("name")
        if not isinstance(name, str) or not name:
            raise RecipeFormatError(f"Recipe step {node.index} must have a 'name'")
        return StepContext.for_step(context, node.value)

    async def _execute_step(
        self,
        context: StepContext,
        variables: Optional[VariablesProvider],
        result: RecipeResult,
    ) -> StepOutcome:
        """
        Dispatch one step and record its result.

        The StepResult is appended before dispatch and finalized afterwards,
        so it reflects the attempt when the error reaches the caller.
        """
        step_result = StepResult(step_name=context.name, started_at=datetime.utcnow())
        result.steps.append(step_result)

        error: Optional[Exception] = None
        try:
            await self.dispatcher.dispatch(context, variables)
            step_result.is_successful = True
        except Exception as e:
            self.logger.exception(f"Recipe step '{context.name}' failed")
            step_result.is_successful = False
            step_result.error_message = describe_exception(e)
            error = e

        step_result.is_completed = True
        step_result.completed_at = datetime.utcnow()
        return StepOutcome(step_result=step_result, error=error)

    def _finish(self, result: RecipeResult, status: RecipeStatus) -> None:
        result.status = status
        result.completed_at = datetime.utcnow()
        if self.storage is not None:
            try:
                self.storage.save_result(result)
            except OSError as e:
                self.logger.warning(f"Could not save result {result.execution_id}: {e}")


# Factory function
def create_executor(
    provider: "ScopeProvider",
    tenant: Optional[str] = None,
    storage: Optional["StorageManager"] = None,
    observers: Optional[Iterable[RecipeEventHandler]] = None,
) -> RecipeExecutor:
    """
    Create a recipe executor instance.

    Args:
        provider: Tenant host
        tenant: Target tenant (provider default when omitted)
        storage: Optional result storage
        observers: Optional lifecycle observers

    Returns:
        Configured RecipeExecutor
    """
    return RecipeExecutor(
        scope_manager=ScopeManager(provider, tenant),
        observers=observers,
        storage=storage,
    )
