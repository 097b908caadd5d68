"""
Recipe Factory - Settings Step Handler

Applies `settings` steps: every field of the step except `name` is merged
into the tenant configuration. A null value removes the key.

Example step:
    {"name": "settings", "SiteName": "[parameters('site')]", "TimeZone": null}
"""

from __future__ import annotations
from typing import Any, Dict
import logging

from recipe_factory.engine.context import StepContext
from recipe_factory.errors import StepHandlerError
from recipe_factory.handlers.base import HandlerRegistry, StepHandler

logger = logging.getLogger(__name__)


class SettingsStepHandler(StepHandler):
    """Writes step values into the scope tenant's configuration."""

    HANDLER_NAME = "settings"
    STEP_NAMES = ["settings"]

    def execute(self, context: StepContext) -> Dict[str, Any]:
        if self.scope is None:
            raise StepHandlerError("Settings step requires an execution scope", context.name)

        values = self._values(context.step)
        config = self.scope.save_settings(values)

        removed = [key for key, value in values.items() if value is None]
        context.log_info(
            f"Applied {len(values) - len(removed)} settings, removed {len(removed)} "
            f"for tenant {self.scope.tenant.name}"
        )
        self.logger.info(f"Updated settings of tenant: {self.scope.tenant.name}")
        return config

    def _values(self, step: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in step.items() if key != "name"}


# Register handler
HandlerRegistry.register(SettingsStepHandler)
