"""
Recipe Factory - Scripting

Expression evaluation for scripted recipe values.

A string value wrapped in square brackets (`"[variables('site')]"`) is a
script. The bracket characters are trimmed and the remaining text is handed
to an ExpressionEvaluator together with a ScriptContext. The context carries
everything an expression can see, so nothing is registered on a shared
evaluator between runs:
- the caller's environment, through ParametersProvider (`parameters('x')`)
- the recipe `variables` block, through VariablesProvider (`variables('x')`
  or the bare name `x`)
- a few helpers: `uuid()`, `base64(text)`, `now()`, `text(path)`
"""

from __future__ import annotations
import base64 as _base64
import functools
import json
import uuid as _uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol
import logging

from jinja2 import TemplateError, meta
from jinja2.sandbox import SandboxedEnvironment

from recipe_factory.errors import RecipeError, ScriptEvaluationError, UnknownVariableError

logger = logging.getLogger(__name__)

# Guard against expressions that keep producing bracketed text forever
MAX_EVALUATION_PASSES = 100


def is_scripted(value: Any) -> bool:
    """True when `value` is a string wrapped in square brackets."""
    return isinstance(value, str) and value.startswith("[") and value.endswith("]")


def to_text(value: Any) -> str:
    """Textual form of an evaluation result."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def evaluate_script(value: str, context: "ScriptContext") -> str:
    """
    Evaluate a scripted string until the result is no longer scripted.

    Args:
        value: String leaf, scripted or not
        context: Script context of the current step

    Returns:
        The final, non-scripted text (`value` unchanged if it was not scripted)

    Raises:
        ScriptEvaluationError: If an expression fails or never settles
    """
    passes = 0
    while is_scripted(value):
        if passes >= MAX_EVALUATION_PASSES:
            raise ScriptEvaluationError(
                f"Expression did not settle after {MAX_EVALUATION_PASSES} passes",
                value,
            )
        expression = value.strip("[]")
        if not expression.strip():
            # An empty directive has nothing to evaluate
            return ""
        value = to_text(context.evaluator.evaluate(expression, context))
        passes += 1
    return value


# =============================================================================
# EVALUATOR INTERFACE
# =============================================================================

class ExpressionEvaluator(Protocol):
    """Evaluates one expression against a script context."""

    def evaluate(self, expression: str, context: "ScriptContext") -> Any:
        ...


class JinjaExpressionEvaluator:
    """
    Default evaluator backed by the Jinja2 sandbox.

    Only the names an expression actually references are resolved, so a
    scripted variable is evaluated only when it is used.
    """

    CACHE_SIZE = 512

    def __init__(self, cache_size: int = CACHE_SIZE):
        """
        Initialize evaluator.

        Args:
            cache_size: Number of compiled expressions kept (least recently used are dropped)
        """
        self.environment = SandboxedEnvironment()
        self._compile = functools.lru_cache(maxsize=cache_size)(self._compile_expression)

    def _compile_expression(self, expression: str):
        ast = self.environment.parse("{{ " + expression + " }}")
        names = meta.find_undeclared_variables(ast)
        function = self.environment.compile_expression(expression)
        return function, names

    def evaluate(self, expression: str, context: "ScriptContext") -> Any:
        """
        Evaluate an expression.

        Args:
            expression: Expression text, brackets already removed
            context: Script context providing the visible names

        Returns:
            Expression result (None when the expression yields nothing)

        Raises:
            ScriptEvaluationError: If the expression cannot be compiled or run
        """
        try:
            function, names = self._compile(expression)
            bindings = context.bindings(names)
            return function(**bindings)
        except RecipeError:
            raise
        except TemplateError as e:
            raise ScriptEvaluationError(f"Invalid expression ({e.message})", expression) from e
        except Exception as e:
            raise ScriptEvaluationError(f"Expression failed ({e})", expression) from e


# =============================================================================
# PROVIDERS
# =============================================================================

class ParametersProvider:
    """Exposes the caller's environment object as `parameters(name)`."""

    def __init__(self, environment: Any):
        self.environment = environment

    def get(self, name: str) -> Any:
        if self.environment is None:
            return None
        if isinstance(self.environment, Mapping):
            return self.environment.get(name)
        return getattr(self.environment, name, None)

    def functions(self) -> Dict[str, Callable[..., Any]]:
        return {"parameters": self.get}


class VariablesProvider:
    """
    Exposes a recipe's `variables` block.

    Values are read-only. A scripted value is evaluated each time it is
    requested, with the context of the requesting step.
    """

    def __init__(self, variables: Dict[str, Any]):
        self._variables = dict(variables)
        self._resolving: List[str] = []

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    @property
    def names(self) -> List[str]:
        return list(self._variables)

    def resolve(self, name: str, context: "ScriptContext") -> Any:
        """
        Resolve a variable value.

        Raises:
            UnknownVariableError: If the variable is not declared
            ScriptEvaluationError: If variables reference each other in a cycle
        """
        if name not in self._variables:
            raise UnknownVariableError(name)
        if name in self._resolving:
            chain = " -> ".join([*self._resolving, name])
            raise ScriptEvaluationError(f"Circular variable reference ({chain})", f"variables('{name}')")

        value = self._variables[name]
        if not is_scripted(value):
            return value

        self._resolving.append(name)
        try:
            return evaluate_script(value, context)
        finally:
            self._resolving.pop()

    def functions(self, context: "ScriptContext") -> Dict[str, Callable[..., Any]]:
        return {"variables": lambda name: self.resolve(name, context)}


# =============================================================================
# SCRIPT CONTEXT
# =============================================================================

@dataclass
class ScriptContext:
    """Everything visible to the expressions of one recipe step."""
    evaluator: ExpressionEvaluator
    parameters: ParametersProvider
    variables: Optional[VariablesProvider] = None
    base_path: str = "."
    extra: Dict[str, Any] = field(default_factory=dict)

    def functions(self) -> Dict[str, Callable[..., Any]]:
        """Helper functions available to every expression."""
        functions: Dict[str, Callable[..., Any]] = {
            "uuid": lambda: _uuid.uuid4().hex,
            "base64": lambda text: _base64.b64encode(str(text).encode("utf-8")).decode("ascii"),
            "now": lambda: datetime.now(timezone.utc).isoformat(),
            "text": self.read_text,
        }
        functions.update(self.parameters.functions())
        if self.variables is not None:
            functions.update(self.variables.functions(self))
        else:
            functions["variables"] = self._no_variables
        return functions

    def bindings(self, names: Iterable[str]) -> Dict[str, Any]:
        """
        Resolve the names referenced by an expression.

        Helper functions win over recipe variables; names that are neither
        are left out and evaluate as undefined.
        """
        functions = self.functions()
        bindings: Dict[str, Any] = {}
        for name in names:
            if name in functions:
                bindings[name] = functions[name]
            elif name in self.extra:
                bindings[name] = self.extra[name]
            elif self.variables is not None and name in self.variables:
                bindings[name] = self.variables.resolve(name, self)
        return bindings

    def read_text(self, path: str) -> str:
        """Read a file relative to the recipe base path."""
        base = Path(self.base_path).resolve()
        target = (base / path).resolve()
        if base != target and base not in target.parents:
            raise ScriptEvaluationError("Path escapes the recipe folder", f"text('{path}')")
        if not target.is_file():
            raise ScriptEvaluationError("File not found", f"text('{path}')")
        return target.read_text(encoding="utf-8")

    def _no_variables(self, name: str) -> Any:
        raise UnknownVariableError(name)
