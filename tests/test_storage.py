"""Tests for result storage and tenant configuration sources."""

import json
import threading
from datetime import datetime

from recipe_factory.models import RecipeResult, RecipeStatus, StepResult
from recipe_factory.storage import StorageManager, TenantConfigurationSources


def _result(execution_id: str) -> RecipeResult:
    return RecipeResult(
        execution_id=execution_id,
        recipe_name="blog",
        status=RecipeStatus.FAILED,
        started_at=datetime(2024, 1, 1, 12, 0, 0),
        steps=[
            StepResult(step_name="settings", is_successful=True, is_completed=True),
            StepResult(step_name="content", is_completed=True, error_message="ValueError: bad"),
        ],
    )


def test_save_and_load_result(tmp_path):
    storage = StorageManager(str(tmp_path / "executions"))

    path = storage.save_result(_result("exec-1"))

    assert path.endswith("result.json")
    loaded = storage.load_result("exec-1")
    assert loaded == _result("exec-1")
    assert storage.execution_exists("exec-1")


def test_unknown_result(tmp_path):
    storage = StorageManager(str(tmp_path / "executions"))

    assert storage.load_result("missing") is None
    assert not storage.execution_exists("missing")
    assert storage.delete_execution("missing") is False


def test_list_and_delete(tmp_path):
    storage = StorageManager(str(tmp_path / "executions"))
    storage.save_result(_result("b"))
    storage.save_result(_result("a"))

    assert storage.get_all_executions() == ["a", "b"]
    assert storage.delete_execution("a") is True
    assert storage.get_all_executions() == ["b"]


def test_execution_ids_cannot_escape_base_path(tmp_path):
    storage = StorageManager(str(tmp_path / "executions"))

    storage.save_result(_result("../outside"))

    assert not (tmp_path / "outside").exists()
    assert storage.load_result("../outside").execution_id == "../outside"


def test_artifacts(tmp_path):
    storage = StorageManager(str(tmp_path / "executions"))

    json_path = storage.save_artifact("exec-1", "content.json", {"items": 2})
    text_path = storage.save_artifact("exec-1", "notes.txt", "done")

    assert json.loads(open(json_path, encoding="utf-8").read()) == {"items": 2}
    assert open(text_path, encoding="utf-8").read() == "done"


def test_configuration_merge_and_remove(tmp_path):
    sources = TenantConfigurationSources(str(tmp_path / "tenants"))

    assert sources.load("Blog") == {}

    sources.save("Blog", {"SiteName": "Blog", "Theme": "Dark"})
    written = sources.save("Blog", {"Theme": None, "Missing": None, "PageSize": 5})

    assert written == {"SiteName": "Blog", "PageSize": 5}
    on_disk = json.loads((tmp_path / "tenants" / "Blog" / "appsettings.json").read_text(encoding="utf-8"))
    assert on_disk == written
    assert sources.load("Other") == {}


def test_concurrent_writes_to_one_tenant_are_not_lost(tmp_path):
    sources = TenantConfigurationSources(str(tmp_path / "tenants"))

    def writer(index: int):
        for round_number in range(10):
            sources.save("Shared", {f"key-{index}-{round_number}": index})

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(sources.load("Shared")) == 80
