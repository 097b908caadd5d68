"""
Recipe Factory - Domain Models

Defines the Pydantic models for recipe execution results, recipe metadata
and API payloads. These models are what the executor records, what the
storage layer persists and what the HTTP surface returns.
"""

from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class RecipeStatus(str, Enum):
    """Overall status of a recipe execution."""
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# =============================================================================
# RECIPE METADATA (harvested from recipe headers)
# =============================================================================

class RecipeMetadata(BaseModel):
    """Top-level descriptive fields of a recipe document."""
    name: str = Field(..., description="Recipe name, used to look it up")
    display_name: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    website: Optional[str] = None
    version: Optional[str] = None
    is_setup_recipe: bool = False
    require_new_scope: bool = False
    tags: List[str] = Field(default_factory=list)


# =============================================================================
# EXECUTION RESULTS
# =============================================================================

class StepResult(BaseModel):
    """
    Result of a single recipe step.

    `is_completed` is True once the step has been dispatched, whether it
    succeeded or failed.
    """
    step_name: str
    is_successful: bool = False
    is_completed: bool = False
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RecipeResult(BaseModel):
    """Ordered step results of one recipe execution."""
    execution_id: str
    recipe_name: Optional[str] = None
    status: RecipeStatus = RecipeStatus.EXECUTING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    steps: List[StepResult] = Field(default_factory=list)


# =============================================================================
# API MODELS
# =============================================================================

class RecipeExecuteRequest(BaseModel):
    """Request to execute an inline recipe document."""
    recipe: Dict[str, Any] = Field(..., description="Recipe document (JSON object)")
    environment: Dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters exposed to recipe expressions",
    )
    tenant: Optional[str] = Field(default=None, description="Target tenant")
    require_new_scope: bool = Field(
        default=False,
        description="Execute every step in a freshly created tenant scope",
    )


class HarvestedRecipeExecuteRequest(BaseModel):
    """Request to execute a harvested recipe by name."""
    environment: Dict[str, Any] = Field(default_factory=dict)
    tenant: Optional[str] = None


class RecipeExecuteResponse(BaseModel):
    """Response after scheduling a recipe execution."""
    execution_id: str
    status: RecipeStatus
    message: str


class ExecutionStatusResponse(BaseModel):
    """Response for an execution status query."""
    execution_id: str
    status: RecipeStatus
    message: Optional[str] = None
    result: Optional[RecipeResult] = None


class RecipeListResponse(BaseModel):
    """Harvested recipes available for execution."""
    recipes: List[RecipeMetadata] = Field(default_factory=list)
    total: int = 0


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    execution_id: Optional[str] = None
