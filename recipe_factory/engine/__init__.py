"""
Recipe Factory - Engine Package

Core recipe execution engine:
- Reader: Streams recipe documents step by step
- Scripting/Resolver: Evaluates scripted values
- Dispatcher: Runs steps through step handlers within a scope
- Executor: Orchestrates recipes, nested recipes and lifecycle events
- Harvester: Discovers recipe files
"""

from recipe_factory.engine.context import (
    CancellationToken,
    ExecutionContext,
    RecipeDescriptor,
    StepContext,
)
from recipe_factory.engine.events import RecipeEventHandler, RecipeEvents
from recipe_factory.engine.executor import RecipeExecutor, create_executor
from recipe_factory.engine.harvester import RecipeHarvester
from recipe_factory.engine.scope import ScopeManager

__all__ = [
    "CancellationToken",
    "ExecutionContext",
    "RecipeDescriptor",
    "StepContext",
    "RecipeEventHandler",
    "RecipeEvents",
    "RecipeExecutor",
    "create_executor",
    "RecipeHarvester",
    "ScopeManager",
]
