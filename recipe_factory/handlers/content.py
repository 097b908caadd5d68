"""
Recipe Factory - Content Step Handler

Applies `content` steps: every object of the step's `data` array is stored
in the tenant content store, keyed by `ContentItemId`.
"""

from __future__ import annotations
from typing import Any, Dict, List
import logging

from recipe_factory.engine.context import StepContext
from recipe_factory.errors import StepHandlerError
from recipe_factory.handlers.base import HandlerRegistry, StepHandler

logger = logging.getLogger(__name__)


class ContentStepHandler(StepHandler):
    """
    Imports content items into the scope tenant.

    Items without a `ContentItemId` get a generated one; items with an id
    that already exists are updated, so applying a step twice does not
    duplicate content.
    """

    HANDLER_NAME = "content"
    STEP_NAMES = ["content"]

    def validate(self, step: Dict[str, Any]) -> List[str]:
        errors = []

        if "data" not in step:
            errors.append("Content step must have 'data'")
        elif not isinstance(step["data"], list):
            errors.append("'data' must be a list")
        else:
            for i, item in enumerate(step["data"]):
                if not isinstance(item, dict):
                    errors.append(f"Content item {i} must be an object")

        return errors

    def execute(self, context: StepContext) -> List[str]:
        if self.scope is None:
            raise StepHandlerError("Content step requires an execution scope", context.name)

        item_ids = [self.scope.content.set_item(item) for item in context.step["data"]]

        context.log_info(f"Imported {len(item_ids)} content items")
        self.logger.info(
            f"Imported {len(item_ids)} content items into tenant: {self.scope.tenant.name}"
        )
        return item_ids


# Register handler
HandlerRegistry.register(ContentStepHandler)
