"""Tests for the host settings parser."""

import pytest

from recipe_factory import config
from recipe_factory.config import (
    ConfigError,
    HostSettings,
    SettingsParser,
    get_settings,
    reset_settings,
)


VALID_SETTINGS = """
storage:
  path: /data/executions
  tenants_path: /data/tenants
recipes:
  path: /data/recipes
  recursive: false
logging:
  level: debug
default_tenant: Blog
tenants:
  - name: Blog
    description: Blog tenant
  - name: Shop
    require_new_scope: true
"""


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    monkeypatch.delenv(config.SETTINGS_ENV_VAR, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_parse_valid_settings():
    settings = SettingsParser().parse(VALID_SETTINGS)

    assert settings.storage.path == "/data/executions"
    assert settings.storage.tenants_path == "/data/tenants"
    assert settings.recipes.recursive is False
    assert settings.default_tenant == "Blog"
    assert [t.name for t in settings.tenants] == ["Blog", "Shop"]
    assert settings.get_tenant("Shop").require_new_scope is True
    assert settings.get_tenant("Nope") is None


def test_empty_settings_use_defaults():
    assert SettingsParser().parse("") == HostSettings()


@pytest.mark.parametrize(
    "content, expected_error",
    [
        ("storage: []", "Section 'storage' must be a mapping"),
        ("tenants: {}", "tenants must be a list"),
        ("tenants:\n  - description: no name", "tenants[0].name is required"),
        ("unknown: 1", "Unknown settings section: 'unknown'"),
        ("tenants:\n  - name: A\n  - name: A\ndefault_tenant: A", "Duplicate tenant names found"),
        ("tenants:\n  - name: A", "default_tenant 'Default' is not a configured tenant"),
        ("logging:\n  level: LOUD", "Unknown logging level 'LOUD'"),
    ],
)
def test_invalid_settings(content, expected_error):
    with pytest.raises(ConfigError) as exc_info:
        SettingsParser().parse(content)

    assert any(expected_error in error for error in exc_info.value.errors)


def test_yaml_syntax_error():
    with pytest.raises(ConfigError, match="YAML syntax error"):
        SettingsParser().parse("storage: [unclosed")


def test_model_errors_are_collected():
    with pytest.raises(ConfigError) as exc_info:
        SettingsParser().parse("recipes:\n  recursive: sometimes")

    assert exc_info.value.message == "Settings model validation failed"
    assert any("recursive" in error for error in exc_info.value.errors)


def test_validate_only():
    assert SettingsParser().validate_only(VALID_SETTINGS) == (True, [])
    valid, errors = SettingsParser().validate_only("- not a mapping")
    assert valid is False
    assert errors == ["Settings must be a YAML mapping/dictionary"]


def test_get_settings_defaults_without_environment():
    assert get_settings() == HostSettings()
    assert get_settings() is get_settings()


def test_get_settings_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text(VALID_SETTINGS, encoding="utf-8")
    monkeypatch.setenv(config.SETTINGS_ENV_VAR, str(path))

    assert get_settings().default_tenant == "Blog"


def test_missing_settings_file(monkeypatch, tmp_path):
    monkeypatch.setenv(config.SETTINGS_ENV_VAR, str(tmp_path / "missing.yaml"))

    with pytest.raises(ConfigError, match="Cannot read file"):
        get_settings()
