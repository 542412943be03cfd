"""Tests for the lingua CLI: card commands, preferences, practice loop, config and serve."""

import asyncio
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from lingua.domain.exercise import ExerciseType
from lingua.infrastructure.adapters.yaml_store import YamlCardRepository
from lingua.interface.cli import app

runner = CliRunner()


@pytest.fixture
def data_dir(mock_home, tmp_path, monkeypatch):
    d = tmp_path / "data"
    monkeypatch.setenv("LINGUA_DATA_DIR", str(d))
    return d


def add_card(*args):
    result = runner.invoke(app, ["add", *args])
    assert result.exit_code == 0, result.output
    return result.output.strip().split()[-1]


def stored_cards(data_dir):
    return asyncio.run(YamlCardRepository(data_dir / "deck.yaml").list_cards())


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "lingua: flashcard practice" in result.stdout
    assert "practice" in result.stdout
    assert "prefs" in result.stdout


# --- Cards ---


def test_add_and_list(data_dir):
    card_id = add_card("der Hund", "the dog", "-l", "DE", "-t", "Animals")

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert card_id in result.stdout
    assert "der Hund -> the dog  [de]" in result.stdout

    result = runner.invoke(app, ["list", "--json"])
    data = json.loads(result.stdout)
    assert data[0]["id"] == card_id
    assert data[0]["tags"] == ["animals"]


def test_add_requires_language(data_dir):
    result = runner.invoke(app, ["add", "Hund", "dog"])
    assert result.exit_code == 2
    assert "No language given" in result.stdout


def test_add_uses_configured_language(data_dir, monkeypatch):
    monkeypatch.setenv("LINGUA_LANGUAGE", "de")
    add_card("Hund", "dog")
    assert stored_cards(data_dir)[0].language == "de"


def test_add_rejects_bad_difficulty(data_dir):
    result = runner.invoke(app, ["add", "Hund", "dog", "-l", "de", "--difficulty", "7"])
    assert result.exit_code == 1
    assert "Difficulty must be between 1 and 5" in result.stdout


def test_favorite_archive_delete(data_dir):
    card_id = add_card("Hund", "dog", "-l", "de")

    result = runner.invoke(app, ["favorite", card_id])
    assert "now a favorite" in result.stdout

    runner.invoke(app, ["archive", card_id])
    assert "No cards found" in runner.invoke(app, ["list"]).stdout
    assert card_id in runner.invoke(app, ["list", "--all"]).stdout

    result = runner.invoke(app, ["delete", card_id, "--force"])
    assert result.exit_code == 0
    assert stored_cards(data_dir) == []


def test_edit_card(data_dir):
    card_id = add_card("Hund", "dog", "-l", "de", "-t", "animals")

    result = runner.invoke(app, ["edit", card_id, "--back", "hound", "-t", "Pets"])

    assert result.exit_code == 0, result.output
    assert "Hund -> hound" in result.stdout
    card = stored_cards(data_dir)[0]
    assert card.back_text == "hound"
    assert card.tags == frozenset({"pets"})


def test_edit_needs_a_change(data_dir):
    card_id = add_card("Hund", "dog", "-l", "de")
    result = runner.invoke(app, ["edit", card_id])
    assert result.exit_code == 2
    assert "Nothing to change" in result.stdout


def test_delete_missing_card(data_dir):
    result = runner.invoke(app, ["delete", "card_missing", "--force"])
    assert result.exit_code == 1
    assert "Card not found: card_missing" in result.stdout


def test_delete_asks_for_confirmation(data_dir):
    card_id = add_card("Hund", "dog", "-l", "de")
    result = runner.invoke(app, ["delete", card_id], input="n\n")
    assert result.exit_code == 0
    assert len(stored_cards(data_dir)) == 1


def test_due_lists_due_types(data_dir):
    add_card("Hund", "dog", "-l", "de")
    result = runner.invoke(app, ["due"])
    assert result.exit_code == 0
    assert "reading_recognition" in result.stdout
    assert "1 cards due" in result.stdout


def test_stats_json(data_dir):
    add_card("Hund", "dog", "-l", "de")
    result = runner.invoke(app, ["stats", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["total_cards"] == 1
    assert data["card_levels"]["New"] == 1


# --- Preferences ---


def test_prefs_toggle_and_show(data_dir):
    result = runner.invoke(app, ["prefs", "toggle", "reverse-translation"])
    assert result.exit_code == 0
    assert "Reverse Translation disabled." in result.stdout

    result = runner.invoke(app, ["prefs", "show", "--json"])
    assert "reverse_translation" not in json.loads(result.stdout)["enabled_types"]


def test_prefs_toggle_unknown_type(data_dir):
    result = runner.invoke(app, ["prefs", "toggle", "telepathy"])
    assert result.exit_code == 2
    assert "Unknown exercise type" in result.stdout


def test_prefs_category_and_reset(data_dir):
    result = runner.invoke(app, ["prefs", "category", "production", "--disable"])
    assert result.exit_code == 0
    assert "[ ] writing_translation" in result.stdout

    result = runner.invoke(app, ["prefs", "reset"])
    assert "[x] writing_translation" in result.stdout


def test_prefs_prioritize(data_dir):
    result = runner.invoke(app, ["prefs", "prioritize", "--off", "--threshold", "60"])
    assert result.exit_code == 0
    assert "Prioritize weaknesses: off" in result.stdout

    data = json.loads(runner.invoke(app, ["prefs", "show", "--json"]).stdout)
    assert data["prioritize_weaknesses"] is False
    assert data["weakness_threshold"] == 60.0


# --- Practice ---


def test_practice_nothing_due(data_dir):
    result = runner.invoke(app, ["practice"])
    assert result.exit_code == 0
    assert "Nothing to practice right now." in result.stdout


def test_practice_self_graded_recall(data_dir):
    add_card("Hund", "dog", "-l", "de")

    # Reveal, then confirm the card was known
    result = runner.invoke(app, ["practice"], input="\ny\n")

    assert result.exit_code == 0, result.output
    assert "= dog" in result.stdout
    assert "Session complete: 1 exercises reviewed." in result.stdout
    score = stored_cards(data_dir)[0].get_exercise_score(ExerciseType.READING_RECOGNITION)
    assert score.current_chain == 1


def test_practice_typed_answer(data_dir):
    add_card("Hund", "dog", "-l", "de")
    runner.invoke(app, ["prefs", "toggle", "reading_recognition"])

    result = runner.invoke(app, ["practice"], input="Dog\n")

    assert result.exit_code == 0, result.output
    assert "Correct!" in result.stdout
    assert "Accuracy: 100%" in result.stdout


def test_practice_wrong_answer_can_be_overridden(data_dir):
    add_card("Hund", "dog", "-l", "de")
    runner.invoke(app, ["prefs", "toggle", "reading_recognition"])

    result = runner.invoke(app, ["practice"], input="hound\ny\n")

    assert "Expected: dog" in result.stdout
    assert "Correct: 1" in result.stdout


def test_practice_skip_and_quit(data_dir):
    add_card("Hund", "dog", "-l", "de")
    add_card("Katze", "cat", "-l", "de")

    result = runner.invoke(app, ["practice"], input="/skip\n/quit\n")

    assert result.exit_code == 0, result.output
    assert "Correct: 0  Incorrect: 1" in result.stdout


# --- Config ---


@patch("lingua.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "data_dir": Path("/tmp/lingua"),
        "backend": "yaml",
        "verbose": 1,
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["data_dir"] == str(Path("/tmp/lingua"))
    assert output_data["backend"] == "yaml"


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("lingua.server:app", host="127.0.0.1", port=9000, reload=False)
