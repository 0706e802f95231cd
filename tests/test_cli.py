"""Tests for the typer CLI."""

import json

from typer.testing import CliRunner

from workload_arbiter.cli import app

runner = CliRunner()


def test_recipes_lists_catalog():
    result = runner.invoke(app, ["recipes"])
    assert result.exit_code == 0
    assert "VALORANT" in result.output
    assert "Universal" in result.output


def test_match_marks_best():
    result = runner.invoke(app, ["match", "cs2.exe", "obs64.exe"])
    assert result.exit_code == 0
    assert "CS2" in result.output
    assert "Streaming" in result.output


def test_match_without_processes_matching_nothing(tmp_path):
    path = tmp_path / "recipes.json"
    path.write_text(json.dumps({"recipes": [{"name": "Only", "triggers": ["only.exe"]}]}))
    result = runner.invoke(app, ["match", "other.exe", "--catalog", str(path)])
    assert result.exit_code == 0
    assert "No matching recipe" in result.output


def test_corrupt_catalog_exits_nonzero(tmp_path):
    path = tmp_path / "recipes.json"
    path.write_text("{broken")
    result = runner.invoke(app, ["recipes", "--catalog", str(path)])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_apply_dry_run_then_revert(tmp_path):
    db = str(tmp_path / "cli.db")
    result = runner.invoke(app, ["apply", "Streaming", "--db-path", db])
    assert result.exit_code == 0
    assert "dry run" in result.output
    assert "applied" in result.output

    result = runner.invoke(app, ["revert", "Streaming", "--db-path", db])
    assert result.exit_code == 0
    assert "reverted" in result.output


def test_apply_unknown_recipe_fails(tmp_path):
    result = runner.invoke(app, ["apply", "Nope", "--db-path", str(tmp_path / "cli.db")])
    assert result.exit_code == 1


def test_apply_rejects_unsafe_actuator_url(tmp_path):
    result = runner.invoke(app, [
        "apply", "Streaming",
        "--actuator-url", "ftp://127.0.0.1/",
        "--db-path", str(tmp_path / "cli.db"),
    ])
    assert result.exit_code == 1


def test_recipes_filtered_by_category():
    result = runner.invoke(app, ["recipes", "--category", "streaming"])
    assert result.exit_code == 0
    assert "Streaming" in result.output
    assert "VALORANT" not in result.output


def test_unknown_category_lists_nothing():
    result = runner.invoke(app, ["recipes", "--category", "Farming"])
    assert result.exit_code == 0
    assert "No recipes in category" in result.output
