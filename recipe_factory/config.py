"""
Recipe Factory - Host Settings

Parses and validates the YAML host settings file.
Transforms raw YAML into validated settings models.

Example:
    storage:
      path: ./executions
      tenants_path: ./tenants
    recipes:
      path: ./recipes
      recursive: true
    logging:
      level: INFO
    default_tenant: Default
    tenants:
      - name: Default
      - name: Blog
        description: Blog tenant
"""

from __future__ import annotations
import os
from typing import Any, Dict, List, Optional, Tuple
import logging
import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "RECIPE_FACTORY_SETTINGS"


# =============================================================================
# SETTINGS MODELS
# =============================================================================

class StorageSettings(BaseModel):
    """Where execution results and tenant configuration are written."""
    path: str = Field(default="./executions", description="Execution results folder")
    tenants_path: str = Field(default="./tenants", description="Tenant configuration folder")


class RecipesSettings(BaseModel):
    """Where recipes are harvested from."""
    path: str = "./recipes"
    recursive: bool = True


class LoggingSettings(BaseModel):
    level: str = "INFO"


class TenantConfig(BaseModel):
    """A hosted tenant."""
    name: str
    description: str = ""
    require_new_scope: bool = Field(
        default=False,
        description="Run recipes for this tenant in new scopes by default",
    )


class HostSettings(BaseModel):
    """Complete host settings."""
    storage: StorageSettings = Field(default_factory=StorageSettings)
    recipes: RecipesSettings = Field(default_factory=RecipesSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    default_tenant: str = "Default"
    tenants: List[TenantConfig] = Field(default_factory=list)

    def get_tenant(self, name: str) -> Optional[TenantConfig]:
        for tenant in self.tenants:
            if tenant.name == name:
                return tenant
        return None


# =============================================================================
# PARSER
# =============================================================================

class ConfigError(Exception):
    """Exception raised for host settings errors."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


class SettingsParser:
    """
    Parser for host settings files.

    Responsibilities:
    - Parse YAML content
    - Validate structure
    - Transform to HostSettings
    - Report clear validation errors
    """

    SECTIONS = ["storage", "recipes", "logging", "tenants", "default_tenant"]

    LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

    def __init__(self):
        """Initialize parser."""
        self.logger = logging.getLogger(__name__)

    def parse(self, yaml_content: str) -> HostSettings:
        """
        Parse YAML content into HostSettings.

        Args:
            yaml_content: YAML settings string (empty means defaults)

        Returns:
            Validated HostSettings

        Raises:
            ConfigError: If parsing or validation fails
        """
        raw_config = self._parse_yaml(yaml_content)

        validation_errors = self._validate_structure(raw_config)
        if validation_errors:
            raise ConfigError("Settings validation failed", errors=validation_errors)

        try:
            settings = HostSettings(**raw_config)
        except ValidationError as e:
            errors = [f"{err['loc']}: {err['msg']}" for err in e.errors()]
            raise ConfigError("Settings model validation failed", errors=errors)

        semantic_errors = self._validate_semantics(settings)
        if semantic_errors:
            raise ConfigError("Settings semantic validation failed", errors=semantic_errors)

        self.logger.info(f"Loaded host settings with {len(settings.tenants)} tenants")
        return settings

    def _parse_yaml(self, yaml_content: str) -> Dict[str, Any]:
        try:
            config = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML syntax error: {str(e)}")
        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError("Settings must be a YAML mapping/dictionary")
        return config

    def _validate_structure(self, config: Dict[str, Any]) -> List[str]:
        errors = []

        for key in config:
            if key not in self.SECTIONS:
                errors.append(f"Unknown settings section: '{key}'")

        for section in ["storage", "recipes", "logging"]:
            if section in config and not isinstance(config[section], dict):
                errors.append(f"Section '{section}' must be a mapping")

        if "tenants" in config:
            tenants = config["tenants"]
            if not isinstance(tenants, list):
                errors.append("tenants must be a list")
            else:
                for i, tenant in enumerate(tenants):
                    if not isinstance(tenant, dict):
                        errors.append(f"tenants[{i}] must be a mapping")
                    elif "name" not in tenant:
                        errors.append(f"tenants[{i}].name is required")

        return errors

    def _validate_semantics(self, settings: HostSettings) -> List[str]:
        errors = []

        names = [tenant.name for tenant in settings.tenants]
        if len(names) != len(set(names)):
            errors.append("Duplicate tenant names found")

        if names and settings.default_tenant not in names:
            errors.append(f"default_tenant '{settings.default_tenant}' is not a configured tenant")

        if settings.logging.level.upper() not in self.LOG_LEVELS:
            errors.append(
                f"Unknown logging level '{settings.logging.level}'. "
                f"Supported: {self.LOG_LEVELS}"
            )

        return errors

    def parse_file(self, file_path: str) -> HostSettings:
        """
        Parse settings from file.

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                yaml_content = f.read()
        except IOError as e:
            raise ConfigError(f"Cannot read file: {str(e)}")

        return self.parse(yaml_content)

    def validate_only(self, yaml_content: str) -> Tuple[bool, List[str]]:
        """Validate settings without returning them."""
        try:
            self.parse(yaml_content)
            return True, []
        except ConfigError as e:
            return False, e.errors or [e.message]


# Singleton instance
_settings: Optional[HostSettings] = None


def get_settings() -> HostSettings:
    """
    Get host settings.

    Loaded once from the file named by RECIPE_FACTORY_SETTINGS, or built-in
    defaults when the variable is not set.
    """
    global _settings
    if _settings is None:
        path = os.environ.get(SETTINGS_ENV_VAR)
        if path:
            _settings = SettingsParser().parse_file(path)
        else:
            _settings = HostSettings()
    return _settings


def reset_settings() -> None:
    """Forget loaded settings; the next get_settings() reloads them."""
    global _settings
    _settings = None
