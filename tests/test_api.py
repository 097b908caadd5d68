"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from recipe_factory import main
from recipe_factory.config import HostSettings, LoggingSettings, RecipesSettings, StorageSettings, TenantConfig
from recipe_factory.engine.context import CancellationToken
from recipe_factory.models import RecipeStatus


@pytest.fixture
def recipes_path(tmp_path):
    folder = tmp_path / "recipes"
    folder.mkdir()
    (folder / "blog.recipe.json").write_text(json.dumps({
        "name": "blog",
        "displayName": "Blog",
        "tags": ["demo"],
        "steps": [{"name": "settings", "SiteName": "[parameters('site')]"}],
    }), encoding="utf-8")
    return folder


@pytest.fixture
def client(tmp_path, recipes_path):
    settings = HostSettings(
        storage=StorageSettings(
            path=str(tmp_path / "executions"),
            tenants_path=str(tmp_path / "tenants"),
        ),
        recipes=RecipesSettings(path=str(recipes_path)),
        logging=LoggingSettings(level="DEBUG"),
        default_tenant="Default",
        tenants=[TenantConfig(name="Default"), TenantConfig(name="Shop", require_new_scope=True)],
    )
    main.configure_runtime(settings)
    yield TestClient(main.app)
    main.active_executions.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_execute_inline_recipe(client):
    recipe = {
        "variables": {"greeting": "Hello"},
        "steps": [
            {"name": "settings", "Greeting": "[greeting ~ ' ' ~ parameters('who')]"},
            {"name": "content", "data": [{"ContentItemId": "home", "ContentType": "Page"}]},
        ],
    }

    response = client.post("/recipes/execute", json={"recipe": recipe, "environment": {"who": "you"}})

    assert response.status_code == 202
    execution_id = response.json()["execution_id"]

    status_response = client.get(f"/executions/{execution_id}")
    assert status_response.status_code == 200
    body = status_response.json()
    assert body["status"] == "completed"
    assert [s["step_name"] for s in body["result"]["steps"]] == ["settings", "content"]
    assert all(s["is_successful"] for s in body["result"]["steps"])

    settings = client.get("/tenants/Default/settings").json()
    assert settings == {"tenant": "Default", "settings": {"Greeting": "Hello you"}}
    assert main.get_runtime().host.content().get_item("home") is not None


def test_failed_execution_reports_step_error(client):
    recipe = {"steps": [{"name": "content", "data": "not a list"}]}

    execution_id = client.post("/recipes/execute", json={"recipe": recipe}).json()["execution_id"]
    body = client.get(f"/executions/{execution_id}").json()

    assert body["status"] == "failed"
    step = body["result"]["steps"][0]
    assert step["is_completed"] is True
    assert step["is_successful"] is False
    assert "'data' must be a list" in step["error_message"]


def test_results_survive_restart(client):
    execution_id = client.post(
        "/recipes/execute", json={"recipe": {"steps": []}}
    ).json()["execution_id"]

    main.active_executions.clear()
    body = client.get(f"/executions/{execution_id}").json()

    assert body["status"] == "completed"
    assert body["result"]["execution_id"] == execution_id


def test_invalid_body_is_rejected(client):
    assert client.post("/recipes/execute", json={"recipe": []}).status_code == 422
    assert client.post("/recipes/execute", json={}).status_code == 422


def test_unknown_tenant(client):
    response = client.post("/recipes/execute", json={"recipe": {"steps": []}, "tenant": "Nope"})

    assert response.status_code == 404
    assert client.get("/tenants/Nope/settings").status_code == 404


def test_unknown_execution(client):
    assert client.get("/executions/missing").status_code == 404
    assert client.post("/executions/missing/cancel").status_code == 404


def test_cancel_finished_execution_conflicts(client):
    execution_id = client.post(
        "/recipes/execute", json={"recipe": {"steps": []}}
    ).json()["execution_id"]

    assert client.post(f"/executions/{execution_id}/cancel").status_code == 409


def test_cancel_running_execution(client):
    token = CancellationToken()
    main.active_executions["running"] = {
        "status": RecipeStatus.EXECUTING,
        "message": "Executing",
        "tenant": "Default",
        "token": token,
    }

    response = client.post("/executions/running/cancel")

    assert response.status_code == 202
    assert token.cancelled


def test_list_and_execute_harvested_recipes(client):
    listing = client.get("/recipes").json()

    assert listing["total"] == 1
    assert listing["recipes"][0]["name"] == "blog"
    assert listing["recipes"][0]["tags"] == ["demo"]

    response = client.post("/recipes/blog/execute", json={"environment": {"site": "Shop site"}, "tenant": "Shop"})
    assert response.status_code == 202
    execution_id = response.json()["execution_id"]

    assert client.get(f"/executions/{execution_id}").json()["status"] == "completed"
    assert client.get("/tenants/Shop/settings").json()["settings"] == {"SiteName": "Shop site"}


def test_execute_unknown_harvested_recipe(client):
    assert client.post("/recipes/nope/execute", json={}).status_code == 404
