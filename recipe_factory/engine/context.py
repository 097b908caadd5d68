"""
Recipe Factory - Execution Contexts

Data passed through the engine while a recipe runs:
- RecipeDescriptor: where a recipe comes from and how it must be scoped
- ExecutionContext: one per `RecipeExecutor.execute` call
- StepContext: one per recipe step, handed to step handlers
- CancellationToken: cooperative cancellation checked between steps
"""

from __future__ import annotations
import io
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional

from recipe_factory.models import RecipeMetadata


@dataclass(frozen=True)
class RecipeDescriptor:
    """
    Identifies a recipe source.

    The descriptor never holds an open stream; `open()` creates a fresh one
    on each call so the same descriptor can be executed more than once.
    """
    name: str
    base_path: str
    open_stream: Callable[[], BinaryIO] = field(repr=False, compare=False)
    require_new_scope: bool = False
    file_path: Optional[str] = None
    metadata: Optional[RecipeMetadata] = field(default=None, compare=False)

    def open(self) -> BinaryIO:
        """Open a new byte stream over the recipe document."""
        return self.open_stream()

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        require_new_scope: bool = False,
        metadata: Optional[RecipeMetadata] = None,
    ) -> "RecipeDescriptor":
        """Create a descriptor for a recipe file; relative references resolve beside it."""
        file_path = Path(path).resolve()
        name = metadata.name if metadata else file_path.name.split(".")[0]
        return cls(
            name=name,
            base_path=str(file_path.parent),
            open_stream=lambda: open(file_path, "rb"),
            require_new_scope=require_new_scope,
            file_path=str(file_path),
            metadata=metadata,
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        name: str = "inline",
        base_path: str = ".",
        require_new_scope: bool = False,
    ) -> "RecipeDescriptor":
        """Create a descriptor over an in-memory recipe document."""
        return cls(
            name=name,
            base_path=base_path,
            open_stream=lambda: io.BytesIO(data),
            require_new_scope=require_new_scope,
        )

    @classmethod
    def from_document(
        cls,
        document: Dict[str, Any],
        base_path: str = ".",
        require_new_scope: bool = False,
    ) -> "RecipeDescriptor":
        """Create a descriptor from an already decoded recipe document."""
        name = document.get("name") if isinstance(document.get("name"), str) else "inline"
        return cls.from_bytes(
            json.dumps(document).encode("utf-8"),
            name=name,
            base_path=base_path,
            require_new_scope=require_new_scope,
        )


@dataclass(frozen=True)
class ExecutionContext:
    """Identity and inputs of a single recipe execution."""
    execution_id: str
    environment: Any
    descriptor: RecipeDescriptor


@dataclass
class StepContext:
    """
    Context handed to step handlers for one recipe step.

    `step` is the raw step object; scripted values are replaced in place
    before any handler sees it. Handlers that expand into further recipes
    append descriptors to `inner_recipes`; the executor runs them after the
    step succeeds.
    """
    name: str
    step: Dict[str, Any]
    execution_id: str
    environment: Any
    descriptor: RecipeDescriptor
    inner_recipes: List[RecipeDescriptor] = field(default_factory=list)
    logs: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def for_step(cls, context: ExecutionContext, step: Dict[str, Any]) -> "StepContext":
        return cls(
            name=step["name"],
            step=step,
            execution_id=context.execution_id,
            environment=context.environment,
            descriptor=context.descriptor,
        )

    def log_info(self, message: str) -> Dict[str, Any]:
        """Record a structured info entry."""
        return self._create_log("INFO", message)

    def log_warning(self, message: str) -> Dict[str, Any]:
        """Record a structured warning entry."""
        return self._create_log("WARNING", message)

    def _create_log(self, level: str, message: str) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": level,
            "execution_id": self.execution_id,
            "step": self.name,
            "message": message,
        }
        self.logs.append(entry)
        return entry


class CancellationToken:
    """Cooperative cancellation flag, checked once per step boundary."""

    def __init__(self) -> None:
        self._cancel_requested = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    def request_cancel(self) -> None:
        self._cancel_requested = True
