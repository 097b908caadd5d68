"""Tests for recipe discovery."""

import json

from recipe_factory.engine.harvester import RecipeHarvester


def _write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if isinstance(content, str) else json.dumps(content), encoding="utf-8")


def test_harvest_reads_metadata(tmp_path):
    _write(tmp_path / "blog.recipe.json", {
        "name": "Blog",
        "displayName": "Blog site",
        "description": "A blog",
        "author": "The Team",
        "website": "https://example.com",
        "version": "2.0",
        "issetuprecipe": True,
        "requireNewScope": True,
        "tags": ["blog", "demo"],
        "steps": [{"name": "settings"}],
    })

    [descriptor] = RecipeHarvester().harvest(tmp_path)

    metadata = descriptor.metadata
    assert descriptor.name == "Blog"
    assert metadata.display_name == "Blog site"
    assert metadata.author == "The Team"
    assert metadata.website == "https://example.com"
    assert metadata.version == "2.0"
    assert metadata.is_setup_recipe is True
    assert metadata.tags == ["blog", "demo"]
    assert descriptor.require_new_scope is True
    assert descriptor.base_path == str(tmp_path.resolve())
    assert descriptor.file_path == str((tmp_path / "blog.recipe.json").resolve())


def test_name_defaults_to_file_name(tmp_path):
    _write(tmp_path / "headless.recipe.json", {"steps": []})

    [descriptor] = RecipeHarvester().harvest(tmp_path)

    assert descriptor.name == "headless"
    assert descriptor.require_new_scope is False


def test_invalid_files_are_skipped(tmp_path):
    _write(tmp_path / "good.recipe.json", {"name": "good"})
    _write(tmp_path / "broken.recipe.json", "{not json")
    _write(tmp_path / "array.recipe.json", "[]")
    _write(tmp_path / "bad-tags.recipe.json", {"name": "bad", "tags": {"a": 1}})
    _write(tmp_path / "other.json", {"name": "not a recipe"})

    names = [d.name for d in RecipeHarvester().harvest(tmp_path)]

    assert names == ["good"]


def test_recursive_harvest(tmp_path):
    _write(tmp_path / "top.recipe.json", {"name": "top"})
    _write(tmp_path / "nested" / "deep.recipe.json", {"name": "deep"})

    assert [d.name for d in RecipeHarvester().harvest(tmp_path)] == ["top"]
    assert sorted(d.name for d in RecipeHarvester(recursive=True).harvest(tmp_path)) == ["deep", "top"]


def test_missing_folder(tmp_path):
    assert RecipeHarvester().harvest(tmp_path / "nope") == []


def test_find_is_case_insensitive(tmp_path):
    _write(tmp_path / "a.recipe.json", {"name": "Agency"})

    harvester = RecipeHarvester()
    assert harvester.find(tmp_path, "agency").name == "Agency"
    assert harvester.find(tmp_path, "missing") is None


def test_harvested_descriptor_can_be_opened_repeatedly(tmp_path):
    _write(tmp_path / "x.recipe.json", {"name": "x", "steps": []})
    [descriptor] = RecipeHarvester().harvest(tmp_path)

    for _ in range(2):
        with descriptor.open() as stream:
            assert json.loads(stream.read()) == {"name": "x", "steps": []}


def test_badly_encoded_file_is_skipped(tmp_path):
    _write(tmp_path / "good.recipe.json", {"name": "good"})
    (tmp_path / "bad.recipe.json").write_bytes(b'{"name": "\xff\xfe"}')

    harvester = RecipeHarvester()

    assert [d.name for d in harvester.harvest(tmp_path)] == ["good"]
    assert harvester.harvest_file(tmp_path / "bad.recipe.json") is None
    assert harvester.find(tmp_path, "good").name == "good"
