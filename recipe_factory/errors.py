"""
Recipe Factory - Exceptions

Exception types shared by the engine, the tenant layer and the step handlers.
"""

from __future__ import annotations
from typing import List, Optional


class RecipeError(Exception):
    """Base exception for recipe execution errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class RecipeFormatError(RecipeError):
    """Raised when a recipe document is malformed."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)


class ScriptEvaluationError(RecipeError):
    """Raised when a scripted value cannot be evaluated."""

    def __init__(self, message: str, expression: str):
        self.expression = expression
        super().__init__(f"{message}: [{expression}]")


class UnknownVariableError(ScriptEvaluationError):
    """Raised when an expression references an undeclared recipe variable."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown recipe variable '{name}'", f"variables('{name}')")


class ScopeError(RecipeError):
    """Raised when an execution scope cannot be created or is misused."""


class StepHandlerError(RecipeError):
    """Raised by step handlers when a step payload cannot be applied."""

    def __init__(self, message: str, step_name: str, errors: Optional[List[str]] = None):
        self.step_name = step_name
        self.errors = errors or []
        super().__init__(message)


def describe_exception(exc: BaseException) -> str:
    """Text recorded in a StepResult for a failed step."""
    text = str(exc)
    if not text:
        return exc.__class__.__name__
    return f"{exc.__class__.__name__}: {text}"
