"""
Recipe Factory - Handlers Package

Pluggable step handlers. Each handler applies one kind of recipe step;
the built-in handlers register themselves on import.
"""

from recipe_factory.handlers.base import HandlerRegistry, StepHandler
from recipe_factory.handlers.settings import SettingsStepHandler
from recipe_factory.handlers.content import ContentStepHandler
from recipe_factory.handlers.recipes import RecipesStepHandler

__all__ = [
    "HandlerRegistry",
    "StepHandler",
    "SettingsStepHandler",
    "ContentStepHandler",
    "RecipesStepHandler",
]
