"""
Recipe Factory - Storage Layer

Handles persistence of recipe execution results and tenant configuration.
Uses JSON files - can be extended to SQLite or other backends.
"""

from __future__ import annotations
import json
import shutil
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from recipe_factory.models import RecipeResult

logger = logging.getLogger(__name__)


class StorageManager:
    """
    Manages storage of recipe execution results.

    Directory structure:
    /executions/
        <execution_id>/
            result.json         - Recipe result (status + step results)
            <name>.json         - Additional artifacts
    """

    def __init__(self, base_path: str = "./executions"):
        """Initialize storage manager with base path."""
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Storage initialized at: {self.base_path.absolute()}")

    def _execution_path(self, execution_id: str) -> Path:
        """Get path for a specific execution."""
        safe_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in execution_id)
        return self.base_path / safe_id

    # =========================================================================
    # EXECUTION RESULTS
    # =========================================================================

    def save_result(self, result: RecipeResult) -> str:
        """
        Save a recipe result.

        Args:
            result: Recipe result to persist

        Returns:
            Path to the saved file
        """
        execution_path = self._execution_path(result.execution_id)
        execution_path.mkdir(parents=True, exist_ok=True)
        result_path = execution_path / "result.json"
        with open(result_path, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, indent=2, default=str)
        logger.debug(f"Saved result for execution: {result.execution_id}")
        return str(result_path)

    def load_result(self, execution_id: str) -> Optional[RecipeResult]:
        """Load a recipe result, or None when it was never saved."""
        result_path = self._execution_path(execution_id) / "result.json"
        if not result_path.exists():
            return None
        with open(result_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return RecipeResult(**data)

    def execution_exists(self, execution_id: str) -> bool:
        """Check if an execution has stored data."""
        return self._execution_path(execution_id).exists()

    def get_all_executions(self) -> List[str]:
        """Get all stored execution IDs."""
        if not self.base_path.exists():
            return []
        return sorted(
            d.name for d in self.base_path.iterdir()
            if d.is_dir() and not d.name.startswith(".")
        )

    def delete_execution(self, execution_id: str) -> bool:
        """Delete an execution and all its files."""
        execution_path = self._execution_path(execution_id)
        if execution_path.exists():
            shutil.rmtree(execution_path)
            logger.info(f"Deleted execution: {execution_id}")
            return True
        return False

    def save_artifact(self, execution_id: str, filename: str, content: Any) -> str:
        """
        Save arbitrary artifact content next to an execution result.

        Args:
            execution_id: Execution identifier
            filename: Filename for the artifact
            content: Content to save (dict/list -> JSON, str -> text)

        Returns:
            Path to saved artifact
        """
        execution_path = self._execution_path(execution_id)
        execution_path.mkdir(parents=True, exist_ok=True)
        artifact_path = execution_path / filename

        with open(artifact_path, "w", encoding="utf-8") as f:
            if isinstance(content, (dict, list)):
                json.dump(content, f, indent=2, default=str)
            else:
                f.write(str(content))

        logger.debug(f"Saved artifact: {artifact_path}")
        return str(artifact_path)


class TenantConfigurationSources:
    """
    Per-tenant configuration files.

    Directory structure:
    /tenants/
        <tenant>/
            appsettings.json

    Writes to the same tenant are serialized; different tenants do not
    block each other.
    """

    FILENAME = "appsettings.json"

    def __init__(self, base_path: str = "./tenants"):
        """Initialize configuration sources with base path."""
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, tenant: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(tenant)
            if lock is None:
                lock = threading.Lock()
                self._locks[tenant] = lock
            return lock

    def _settings_path(self, tenant: str) -> Path:
        return self.base_path / tenant / self.FILENAME

    def load(self, tenant: str) -> Dict[str, Any]:
        """Load a tenant's configuration (empty when none was saved)."""
        settings_path = self._settings_path(tenant)
        if not settings_path.exists():
            return {}
        with open(settings_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, tenant: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge values into a tenant's configuration.

        Args:
            tenant: Tenant name
            data: Keys to set; a None value removes the key

        Returns:
            The configuration as written
        """
        with self._lock_for(tenant):
            config = self.load(tenant)

            for key, value in data.items():
                if value is not None:
                    config[key] = value
                else:
                    config.pop(key, None)

            settings_path = self._settings_path(tenant)
            settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(settings_path, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2, default=str)

        logger.debug(f"Saved configuration for tenant: {tenant}")
        return config
