"""
Recipe Factory - Recipes Step Handler

Applies `recipes` steps, which pull other recipes into the current run.

Example step:
    {
        "name": "recipes",
        "values": [
            {"name": "blog-content"},
            {"path": "modules/theme.recipe.json"}
        ]
    }

Entries are resolved relative to the base path of the recipe declaring the
step. The resolved recipes are attached to the step context; the executor
runs them, in order, once this step has succeeded.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List
import logging

from recipe_factory.engine.context import RecipeDescriptor, StepContext
from recipe_factory.engine.harvester import RecipeHarvester
from recipe_factory.errors import StepHandlerError
from recipe_factory.handlers.base import HandlerRegistry, StepHandler

logger = logging.getLogger(__name__)


class RecipesStepHandler(StepHandler):
    """Resolves nested recipes by name or by relative path."""

    HANDLER_NAME = "recipes"
    STEP_NAMES = ["recipes"]

    def validate(self, step: Dict[str, Any]) -> List[str]:
        errors = []

        values = step.get("values")
        if not isinstance(values, list):
            errors.append("Recipes step must have a 'values' list")
            return errors

        for i, entry in enumerate(values):
            if not isinstance(entry, dict):
                errors.append(f"Entry {i} must be an object")
            elif not entry.get("name") and not entry.get("path"):
                errors.append(f"Entry {i} requires 'name' or 'path'")

        return errors

    def execute(self, context: StepContext) -> List[RecipeDescriptor]:
        base_path = Path(context.descriptor.base_path)
        harvester = RecipeHarvester(recursive=True)

        for entry in context.step["values"]:
            if entry.get("path"):
                descriptor = self._from_path(context, base_path, entry["path"], harvester)
            else:
                descriptor = harvester.find(base_path, entry["name"])
                if descriptor is None:
                    raise StepHandlerError(
                        f"Recipe not found: {entry['name']} (searched {base_path})",
                        context.name,
                    )

            context.inner_recipes.append(descriptor)
            context.log_info(f"Queued nested recipe: {descriptor.name}")
            self.logger.debug(f"Queued nested recipe {descriptor.name} from {descriptor.file_path}")

        return context.inner_recipes

    def _from_path(
        self,
        context: StepContext,
        base_path: Path,
        relative: str,
        harvester: RecipeHarvester,
    ) -> RecipeDescriptor:
        file_path = base_path / relative
        if not file_path.is_file():
            raise StepHandlerError(f"Recipe file not found: {file_path}", context.name)

        descriptor = harvester.harvest_file(file_path)
        if descriptor is None:
            raise StepHandlerError(f"Invalid recipe file: {file_path}", context.name)
        return descriptor


# Register handler
HandlerRegistry.register(RecipesStepHandler)
