"""Tests for CLI commands: cards, reviews, study session, packs, stats, data management, config."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from recall.domain.errors import NotFoundError, ValidationError
from recall.interface._common import humanize_error, parse_rating
from recall.interface.cli import app

runner = CliRunner()


@pytest.fixture
def invoke(tmp_path, mock_home):
    """Run the CLI against a throwaway data directory."""
    data_dir = tmp_path / "data"

    def run(*args, input=None):
        return runner.invoke(app, ["--data-dir", str(data_dir), *args], input=input)

    return run


def add_card(invoke, source_id="c-1") -> str:
    result = invoke("add", "concept", source_id)
    assert result.exit_code == 0, result.output
    return result.output.split()[1]


def due_ids(invoke) -> list[str]:
    result = invoke("due", "--json")
    assert result.exit_code == 0, result.output
    return [c["id"] for c in json.loads(result.output)]


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition study engine" in result.stdout
    assert "study" in result.stdout
    assert "pack" in result.stdout


# --- Cards ---


def test_add_then_due(invoke):
    card_id = add_card(invoke)

    assert card_id.startswith("card_")
    assert due_ids(invoke) == [card_id]

    result = invoke("due")
    assert "1 card(s) due" in result.output
    assert "concept:c-1" in result.output


def test_add_duplicate_fails(invoke):
    add_card(invoke)
    result = invoke("add", "concept", "c-1")
    assert result.exit_code == 1
    assert "Invalid input" in result.output


def test_add_unknown_source_type_fails(invoke):
    result = invoke("add", "lesson", "x")
    assert result.exit_code == 1


def test_review_moves_card_out_of_due(invoke):
    card_id = add_card(invoke)

    result = invoke("review", card_id, "good")

    assert result.exit_code == 0, result.output
    assert "next review in 1 day" in result.output
    assert due_ids(invoke) == []


def test_review_rejects_bad_quality(invoke):
    card_id = add_card(invoke)
    assert invoke("review", card_id, "7").exit_code == 1
    assert invoke("review", card_id, "great").exit_code == 2


def test_review_unknown_card(invoke):
    result = invoke("review", "card_missing", "4")
    assert result.exit_code == 1
    assert "No card with id 'card_missing'" in result.output


def test_remove(invoke):
    card_id = add_card(invoke)
    assert invoke("remove", card_id).exit_code == 0
    assert due_ids(invoke) == []


# --- Study session ---


def test_study_session_with_undo(invoke):
    add_card(invoke, "a")
    add_card(invoke, "b")

    # good, undo, again, easy
    result = invoke("study", input="3\nu\n1\n4\n")

    assert result.exit_code == 0, result.output
    assert "Undone." in result.output
    assert "Reviewed 2 card(s)" in result.output
    assert due_ids(invoke) == []

    stats = json.loads(invoke("stats", "--json").output)
    assert stats["total_reviews"] == 2
    assert stats["current_streak"] == 1


def test_study_quit_early(invoke):
    add_card(invoke, "a")
    result = invoke("study", input="q\n")
    assert result.exit_code == 0
    assert "Reviewed 0 card(s)" in result.output


def test_study_nothing_due(invoke):
    result = invoke("study")
    assert result.exit_code == 0
    assert "Nothing due." in result.output


# --- Packs ---


def test_pack_lifecycle(invoke):
    card_id = add_card(invoke)

    result = invoke("pack", "create", "Physics", "--description", "Mechanics")
    assert result.exit_code == 0, result.output
    pack_id = result.output.split()[2]

    assert invoke("pack", "add-card", pack_id, card_id).exit_code == 0
    packs = {p["name"]: p for p in json.loads(invoke("pack", "list", "--json").output)}
    assert packs["Physics"]["card_count"] == 1
    assert packs["All Cards"]["is_default"] is True

    assert invoke("pack", "rename", pack_id, "Mechanics").exit_code == 0
    assert invoke("pack", "remove-card", pack_id, card_id).exit_code == 0
    assert invoke("pack", "delete", pack_id, "--force").exit_code == 0

    names = [p["name"] for p in json.loads(invoke("pack", "list", "--json").output)]
    assert names == ["All Cards", "Recently Added"]


def test_default_pack_cannot_be_deleted(invoke):
    packs = json.loads(invoke("pack", "list", "--json").output)
    default_id = next(p["id"] for p in packs if p["name"] == "All Cards")

    result = invoke("pack", "delete", default_id, "--force")
    assert result.exit_code == 1


# --- Stats ---


def test_stats_text(invoke):
    card_id = add_card(invoke)
    invoke("review", card_id, "4")

    result = invoke("stats")
    assert result.exit_code == 0
    assert "Cards: 1" in result.output
    assert "Streak: 1 day(s)" in result.output


# --- Data management ---


def test_export_import_round_trip(invoke, tmp_path):
    card_id = add_card(invoke)
    invoke("review", card_id, "5")
    export_path = tmp_path / "backup" / "export.json"

    assert invoke("export", str(export_path)).exit_code == 0
    assert invoke("clear", "--force").exit_code == 0
    assert due_ids(invoke) == []

    result = invoke("import", str(export_path), "--force")
    assert result.exit_code == 0, result.output
    assert "Imported 1 card(s)" in result.output
    document = json.loads(invoke("export").output)
    assert [c["id"] for c in document["cards"]] == [card_id]


def test_import_unreadable_file(invoke, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")
    result = invoke("import", str(bad), "--force")
    assert result.exit_code == 1


def test_clear_requires_confirmation(invoke):
    add_card(invoke)

    aborted = invoke("clear", input="n\n")
    assert aborted.exit_code == 1
    assert len(due_ids(invoke)) == 1

    result = invoke("clear", input="y\n")
    assert result.exit_code == 0
    assert "Deleted 1 card(s), 2 pack(s), 0 review(s)." in result.output


# --- Config ---


def test_config_show(invoke, tmp_path):
    result = invoke("config", "show")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["data_dir"] == str(tmp_path / "data")
    assert data["backend"] == "json"


def test_invalid_backend_option(invoke):
    result = invoke("--backend", "sqlite", "due")
    assert result.exit_code == 2


# --- Serve ---


@patch("uvicorn.run")
def test_serve_command(mock_run, invoke):
    result = invoke("serve", "--port", "9999")
    assert result.exit_code == 0
    mock_run.assert_called_once()
    assert mock_run.call_args.kwargs["port"] == 9999


# --- Helpers ---


def test_parse_rating():
    assert parse_rating("again") == 0
    assert parse_rating("Hard") == 3
    assert parse_rating("easy") == 5
    assert parse_rating("2") == 2


def test_humanize_error():
    assert humanize_error(NotFoundError("pack", "pack_x")) == "No pack with id 'pack_x'"
    assert humanize_error(ValidationError("bad")) == "Invalid input: bad"
