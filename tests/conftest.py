"""Shared fixtures for the recipe factory tests."""

from __future__ import annotations
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from recipe_factory.engine.context import RecipeDescriptor, StepContext
from recipe_factory.engine.events import RecipeEventHandler
from recipe_factory.handlers.base import StepHandler
from recipe_factory.storage import TenantConfigurationSources
from recipe_factory.tenants.memory import InMemoryTenantHost

# (execution_id, step name, resolved step payload) per handler call
CALLS: List[Dict[str, Any]] = []

# Nested recipe documents referenced by name from `nested` steps
NESTED: Dict[str, Dict[str, Any]] = {}


class RecordingHandler(StepHandler):
    """
    Test handler.

    record -> remembers the resolved step
    fail   -> raises RuntimeError(step["message"])
    nested -> attaches step["recipes"] (documents) as nested recipes
    """

    HANDLER_NAME = "recording"
    STEP_NAMES = ["record", "fail", "nested"]

    def execute(self, context: StepContext) -> None:
        name = context.name.lower()
        if name == "fail":
            raise RuntimeError(context.step.get("message", "boom"))

        CALLS.append({
            "execution_id": context.execution_id,
            "name": context.name,
            "step": dict(context.step),
            "scope": self.scope,
        })

        if name == "nested":
            for entry in context.step.get("recipes", []):
                # A string names a document kept out of the step, so the
                # outer recipe does not resolve its scripted values
                document = NESTED[entry] if isinstance(entry, str) else entry
                context.inner_recipes.append(
                    RecipeDescriptor.from_document(
                        document,
                        base_path=context.descriptor.base_path,
                        require_new_scope=context.descriptor.require_new_scope,
                    )
                )


class AsyncRecordingHandler(StepHandler):
    """Coroutine handler for `async` steps."""

    HANDLER_NAME = "async-recording"
    STEP_NAMES = ["async"]

    async def execute(self, context: StepContext) -> None:
        await asyncio.sleep(0)
        CALLS.append({
            "execution_id": context.execution_id,
            "name": context.name,
            "step": dict(context.step),
            "scope": self.scope,
        })


class EventRecorder(RecipeEventHandler):
    """Observer that remembers every notification."""

    def __init__(self):
        self.events: List[tuple] = []

    def recipe_executing(self, execution_id, descriptor):
        self.events.append(("recipe_executing", execution_id))

    def recipe_executed(self, execution_id, descriptor):
        self.events.append(("recipe_executed", execution_id))

    def execution_failed(self, execution_id, descriptor, error):
        self.events.append(("execution_failed", execution_id))

    def recipe_cancelled(self, execution_id, descriptor):
        self.events.append(("recipe_cancelled", execution_id))

    async def step_executing(self, context):
        self.events.append(("step_executing", context.name))

    async def step_executed(self, context):
        self.events.append(("step_executed", context.name))

    def names(self, kind: str) -> List[Any]:
        return [value for event, value in self.events if event == kind]


def step_values(calls: List[Dict[str, Any]]) -> List[Any]:
    """`value` field of every recorded step, in call order."""
    return [call["step"].get("value") for call in calls]


@pytest.fixture
def calls() -> List[Dict[str, Any]]:
    CALLS.clear()
    NESTED.clear()
    yield CALLS
    CALLS.clear()
    NESTED.clear()


@pytest.fixture
def configuration(tmp_path) -> TenantConfigurationSources:
    return TenantConfigurationSources(str(tmp_path / "tenants"))


@pytest.fixture
def host(configuration) -> InMemoryTenantHost:
    return InMemoryTenantHost(
        tenants=["Default", "Other"],
        configuration=configuration,
        handler_classes=[RecordingHandler, AsyncRecordingHandler],
    )


@pytest.fixture
def make_recipe(tmp_path):
    """Build a descriptor over an in-memory recipe document."""

    def _make(
        steps: List[Dict[str, Any]],
        variables: Optional[Dict[str, Any]] = None,
        require_new_scope: bool = False,
        **fields: Any,
    ) -> RecipeDescriptor:
        document: Dict[str, Any] = dict(fields)
        if variables is not None:
            document["variables"] = variables
        document["steps"] = steps
        return RecipeDescriptor.from_document(
            document,
            base_path=str(tmp_path),
            require_new_scope=require_new_scope,
        )

    return _make
