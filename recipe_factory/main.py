"""
Recipe Factory - FastAPI Application

Main entry point for the Recipe Factory API.
Provides endpoints for executing recipes and inspecting their results.
"""

from __future__ import annotations
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, BackgroundTasks, HTTPException, status
from fastapi.responses import JSONResponse

from recipe_factory import __version__
from recipe_factory.config import ConfigError, HostSettings, get_settings
from recipe_factory.engine.context import CancellationToken, RecipeDescriptor
from recipe_factory.engine.executor import RecipeExecutor, create_executor
from recipe_factory.engine.harvester import RecipeHarvester
from recipe_factory.errors import ScopeError
from recipe_factory.models import (
    ExecutionStatusResponse,
    HarvestedRecipeExecuteRequest,
    RecipeExecuteRequest,
    RecipeExecuteResponse,
    RecipeListResponse,
    RecipeStatus,
)
from recipe_factory.storage import StorageManager, TenantConfigurationSources
from recipe_factory.tenants import ScopeProviderFactory, TenantSettings

# Import handlers to register them
from recipe_factory.handlers import ContentStepHandler, RecipesStepHandler, SettingsStepHandler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# RUNTIME
# =============================================================================

class Runtime:
    """Services shared by all requests, built from the host settings."""

    def __init__(self, settings: HostSettings):
        self.settings = settings
        self.storage = StorageManager(settings.storage.path)
        self.configuration = TenantConfigurationSources(settings.storage.tenants_path)
        self.host = ScopeProviderFactory.create(
            "memory",
            tenants=[
                TenantSettings(name=tenant.name, description=tenant.description)
                for tenant in settings.tenants
            ] or None,
            configuration=self.configuration,
            default_tenant=settings.default_tenant,
        )
        self.harvester = RecipeHarvester(recursive=settings.recipes.recursive)
        self._executors: Dict[str, RecipeExecutor] = {}

    def executor_for(self, tenant: str) -> RecipeExecutor:
        """Executor bound to a tenant (one per tenant)."""
        executor = self._executors.get(tenant)
        if executor is None:
            executor = create_executor(self.host, tenant=tenant, storage=self.storage)
            self._executors[tenant] = executor
        return executor

    def resolve_tenant(self, tenant: Optional[str]) -> TenantSettings:
        """Tenant settings; unknown tenants become a 404."""
        try:
            return self.host.get_settings(tenant)
        except ScopeError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    def tenant_requires_new_scope(self, tenant: str) -> bool:
        config = self.settings.get_tenant(tenant)
        return bool(config and config.require_new_scope)


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    """Get the runtime instance (built on first use)."""
    global _runtime
    if _runtime is None:
        _runtime = Runtime(get_settings())
    return _runtime


def configure_runtime(settings: HostSettings) -> Runtime:
    """Replace the runtime, e.g. with settings pointing at a test folder."""
    global _runtime
    _runtime = Runtime(settings)
    active_executions.clear()
    return _runtime


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Recipe Factory starting...")
    try:
        runtime = get_runtime()
    except ConfigError as e:
        logger.error(f"Invalid host settings: {e.message} {e.errors}")
        raise
    logging.getLogger().setLevel(runtime.settings.logging.level.upper())
    logger.info(f"Storage path: {runtime.storage.base_path.absolute()}")
    logger.info(f"Recipes path: {runtime.settings.recipes.path}")
    yield
    # Shutdown
    logger.info("Recipe Factory shutting down...")


app = FastAPI(
    title="Recipe Factory",
    description="""
    ## Recipe Execution Engine

    This API provides endpoints for:
    - **Executing recipes** (inline JSON documents or harvested recipe files)
    - **Monitoring execution status** and per-step results
    - **Cancelling executions** between steps

    ### Execution Flow
    1. Submit a recipe via POST /recipes/execute
    2. Engine streams the recipe, resolves scripted values, runs each step
    3. Monitor progress via GET /executions/{execution_id}
    """,
    version=__version__,
    lifespan=lifespan,
)

# Global state for tracking active executions
active_executions: Dict[str, Dict[str, Any]] = {}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def generate_execution_id() -> str:
    """Generate unique execution ID."""
    return uuid.uuid4().hex


def start_execution(
    background_tasks: BackgroundTasks,
    descriptor: RecipeDescriptor,
    environment: Dict[str, Any],
    tenant: TenantSettings,
) -> RecipeExecuteResponse:
    """Register an execution and schedule it as a background task."""
    execution_id = generate_execution_id()
    token = CancellationToken()

    active_executions[execution_id] = {
        "status": RecipeStatus.EXECUTING,
        "message": f"Executing recipe: {descriptor.name}",
        "tenant": tenant.name,
        "token": token,
        "created_at": datetime.utcnow().isoformat(),
    }

    background_tasks.add_task(
        execute_recipe_async,
        execution_id,
        descriptor,
        environment,
        tenant.name,
        token,
    )

    logger.info(f"Execution created: {execution_id} for recipe {descriptor.name}")

    return RecipeExecuteResponse(
        execution_id=execution_id,
        status=RecipeStatus.EXECUTING,
        message=f"Recipe '{descriptor.name}' scheduled for tenant {tenant.name}",
    )


async def execute_recipe_async(
    execution_id: str,
    descriptor: RecipeDescriptor,
    environment: Dict[str, Any],
    tenant: str,
    token: CancellationToken,
) -> None:
    """
    Execute a recipe in the background.

    This runs in a background task to not block the API response.
    """
    executor = get_runtime().executor_for(tenant)
    state = active_executions[execution_id]

    try:
        completed = await executor.execute(execution_id, descriptor, environment, token)

        if completed is None:
            state["status"] = RecipeStatus.CANCELLED
            state["message"] = "Execution cancelled"
        else:
            state["status"] = RecipeStatus.COMPLETED
            state["message"] = "Execution completed"

        logger.info(f"Execution {execution_id} finished: {state['status'].value}")

    except Exception as e:
        logger.exception(f"Execution {execution_id} failed: {str(e)}")
        state["status"] = RecipeStatus.FAILED
        state["message"] = f"Execution error: {str(e)}"


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Recipe Factory",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "execute": "POST /recipes/execute",
            "get_status": "GET /executions/{execution_id}",
            "cancel": "POST /executions/{execution_id}/cancel",
            "list_recipes": "GET /recipes",
        },
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "active_executions": len([
            e for e in active_executions.values()
            if e["status"] == RecipeStatus.EXECUTING
        ]),
    }


@app.post(
    "/recipes/execute",
    response_model=RecipeExecuteResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Recipes"],
    summary="Execute an inline recipe",
)
async def execute_recipe(
    request: RecipeExecuteRequest,
    background_tasks: BackgroundTasks,
) -> RecipeExecuteResponse:
    """
    Execute a recipe document.

    The recipe executes asynchronously. Use GET /executions/{execution_id}
    to monitor progress.

    **Request Body:**
    - `recipe`: Recipe document (`variables`, `steps`, ...)
    - `environment`: Values available through `parameters('name')`
    - `tenant`: Target tenant (default tenant when omitted)
    - `require_new_scope`: Run every step in a new tenant scope
    """
    runtime = get_runtime()
    tenant = runtime.resolve_tenant(request.tenant)

    descriptor = RecipeDescriptor.from_document(
        request.recipe,
        base_path=runtime.settings.recipes.path,
        require_new_scope=(
            request.require_new_scope or runtime.tenant_requires_new_scope(tenant.name)
        ),
    )

    return start_execution(background_tasks, descriptor, request.environment, tenant)


@app.get(
    "/recipes",
    response_model=RecipeListResponse,
    tags=["Recipes"],
    summary="List harvested recipes",
)
async def list_recipes() -> RecipeListResponse:
    """List the recipes found in the configured recipes folder."""
    runtime = get_runtime()
    descriptors = runtime.harvester.harvest(runtime.settings.recipes.path)
    recipes = [d.metadata for d in descriptors if d.metadata is not None]
    return RecipeListResponse(recipes=recipes, total=len(recipes))


@app.post(
    "/recipes/{name}/execute",
    response_model=RecipeExecuteResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Recipes"],
    summary="Execute a harvested recipe by name",
)
async def execute_harvested_recipe(
    name: str,
    request: HarvestedRecipeExecuteRequest,
    background_tasks: BackgroundTasks,
) -> RecipeExecuteResponse:
    """Execute a recipe from the recipes folder."""
    runtime = get_runtime()
    tenant = runtime.resolve_tenant(request.tenant)

    descriptor = runtime.harvester.find(runtime.settings.recipes.path, name)
    if descriptor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Recipe not found: {name}",
        )

    if runtime.tenant_requires_new_scope(tenant.name) and not descriptor.require_new_scope:
        descriptor = RecipeDescriptor.from_file(
            descriptor.file_path,
            require_new_scope=True,
            metadata=descriptor.metadata,
        )

    return start_execution(background_tasks, descriptor, request.environment, tenant)


@app.get(
    "/executions/{execution_id}",
    response_model=ExecutionStatusResponse,
    tags=["Executions"],
    summary="Get execution status",
)
async def get_execution_status(execution_id: str) -> ExecutionStatusResponse:
    """
    Get the status and step results of an execution.

    Status values: `executing`, `completed`, `failed`, `cancelled`.
    """
    runtime = get_runtime()

    if execution_id in active_executions:
        state = active_executions[execution_id]
        result = runtime.executor_for(state["tenant"]).get_result(execution_id)
        return ExecutionStatusResponse(
            execution_id=execution_id,
            status=state["status"],
            message=state.get("message"),
            result=result,
        )

    result = runtime.storage.load_result(execution_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Execution not found: {execution_id}",
        )

    return ExecutionStatusResponse(
        execution_id=execution_id,
        status=result.status,
        result=result,
    )


@app.post(
    "/executions/{execution_id}/cancel",
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Executions"],
    summary="Request cancellation of an execution",
)
async def cancel_execution(execution_id: str):
    """
    Request cancellation. The recipe stops before its next step.
    """
    state = active_executions.get(execution_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Execution not found: {execution_id}",
        )

    if state["status"] != RecipeStatus.EXECUTING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Execution already finished: {state['status'].value}",
        )

    state["token"].request_cancel()
    logger.info(f"Cancellation requested: {execution_id}")
    return {"execution_id": execution_id, "message": "Cancellation requested"}


@app.get(
    "/tenants/{tenant}/settings",
    tags=["Tenants"],
    summary="Get a tenant's configuration",
)
async def get_tenant_settings(tenant: str):
    """Get the persisted configuration of a tenant."""
    runtime = get_runtime()
    settings = runtime.resolve_tenant(tenant)
    return {
        "tenant": settings.name,
        "settings": runtime.configuration.load(settings.name),
    }


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        },
    )


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "recipe_factory.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
