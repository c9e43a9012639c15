"""Integration tests for the click command-line interface."""

import json
from pathlib import Path
from typing import Callable

import fitz  # type: ignore[import-untyped]  # PyMuPDF
import pytest
from click.testing import CliRunner

from cli import cli

DeckFactory = Callable[..., Path]


@pytest.fixture
def runner(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    """CliRunner with tmp_path as working directory for boards/, layouts/, output/."""
    monkeypatch.chdir(tmp_path)
    return CliRunner()


class TestSuggest:
    """Tests for the suggest command."""

    def test_classic_suggestion(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test 20 cards on 4x4 boards."""
        deck_dir = make_deck(20)
        result = runner.invoke(cli, ["suggest", str(deck_dir), "--grid-size", "16"])

        assert result.exit_code == 0, result.output
        assert "20 cards" in result.output
        assert "Maximum unique boards: 2422" in result.output
        assert "Suggested boards: 10" in result.output

    def test_too_few_cards_hint(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test the hint when the deck is below the threshold."""
        deck_dir = make_deck(10)
        result = runner.invoke(cli, ["suggest", str(deck_dir), "--grid-size", "9"])

        assert result.exit_code == 0, result.output
        assert "Add 2 more cards" in result.output


class TestGenerate:
    """Tests for generate and clear."""

    def test_generate_writes_boards(self, runner: CliRunner, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test boards JSON is written with the requested count."""
        deck_dir = make_deck(14)
        result = runner.invoke(cli, ["generate", str(deck_dir), "--grid-size", "9", "--count", "5", "--seed", "1"])

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "boards" / "test_set.json").read_text(encoding="utf-8"))
        assert len(data["boards"]) == 5
        assert all(len(board["card_ids"]) == 9 for board in data["boards"])

    def test_default_count_is_suggested(self, runner: CliRunner, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test omitting --count deals the suggested number."""
        deck_dir = make_deck(15)
        result = runner.invoke(cli, ["generate", str(deck_dir), "--grid-size", "9"])

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "boards" / "test_set.json").read_text(encoding="utf-8"))
        assert len(data["boards"]) == 5

    def test_below_minimum_fails(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test the minimum-card gate blocks generation."""
        deck_dir = make_deck(11)
        result = runner.invoke(cli, ["generate", str(deck_dir), "--grid-size", "9"])

        assert result.exit_code == 1
        assert "Need at least 12 cards" in result.output

    def test_over_safe_maximum_warns(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test requesting more boards than the safe maximum still deals them."""
        deck_dir = make_deck(16)
        result = runner.invoke(cli, ["generate", str(deck_dir), "--grid-size", "16", "--count", "2"])

        assert result.exit_code == 0, result.output
        assert "exceeds the safe maximum of 0" in result.output

    def test_clear(self, runner: CliRunner, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test clear empties the stored collection."""
        deck_dir = make_deck(14)
        runner.invoke(cli, ["generate", str(deck_dir), "--grid-size", "9", "--count", "3"])

        result = runner.invoke(cli, ["clear", str(deck_dir)])

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "boards" / "test_set.json").read_text(encoding="utf-8"))
        assert data["boards"] == []


class TestStepOrder:
    """Tests for commands run out of order."""

    def test_layout_before_generate(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test layout asks for generate first."""
        deck_dir = make_deck(14)
        result = runner.invoke(cli, ["layout", str(deck_dir)])

        assert result.exit_code == 1
        assert "Run 'generate' command first" in result.output

    def test_render_before_layout(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test render asks for layout first."""
        deck_dir = make_deck(14)
        result = runner.invoke(cli, ["render", str(deck_dir)])

        assert result.exit_code == 1
        assert "Run 'layout' command first" in result.output

    def test_missing_manifest(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a directory without deck.json is reported."""
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(cli, ["suggest", str(empty)])

        assert result.exit_code == 1
        assert "Deck manifest not found" in result.output


class TestPipeline:
    """Tests for the full pipeline and follow-up commands."""

    def test_pipeline_writes_all_artifacts(self, runner: CliRunner, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test generate → layout → render in one command."""
        deck_dir = make_deck(14)
        result = runner.invoke(
            cli, ["pipeline", str(deck_dir), "--grid-size", "9", "--count", "4", "--seed", "3"]
        )

        assert result.exit_code == 0, result.output
        assert "Pipeline complete" in result.output
        assert (tmp_path / "boards" / "test_set.json").exists()

        layout = json.loads((tmp_path / "layouts" / "test_set.json").read_text(encoding="utf-8"))
        # 4 boards + 2 deck pages
        assert len(layout["pages"]) == 6

        assert (tmp_path / "output" / "test_set" / "loteria-tableros.pdf").stat().st_size > 0
        assert len(list((tmp_path / "logs" / "test_set").glob("pipeline_*.log"))) == 1

    def test_pipeline_failure_exits_nonzero(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test a failing phase aborts with exit code 1."""
        deck_dir = make_deck(8)
        result = runner.invoke(cli, ["pipeline", str(deck_dir), "--grid-size", "9"])

        assert result.exit_code == 1
        assert "Pipeline failed" in result.output

    def test_pipeline_without_deck(self, runner: CliRunner, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test --no-deck leaves only the board pages in the PDF."""
        deck_dir = make_deck(12)
        result = runner.invoke(cli, ["pipeline", str(deck_dir), "--grid-size", "9", "--count", "2", "--no-deck"])

        assert result.exit_code == 0, result.output
        doc = fitz.open(str(tmp_path / "output" / "test_set" / "loteria-tableros.pdf"))
        try:
            assert len(doc) == 2
        finally:
            doc.close()

    def test_single_card(self, runner: CliRunner, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test the card command writes one PDF."""
        deck_dir = make_deck(3)
        result = runner.invoke(cli, ["card", str(deck_dir), "card_02"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "output" / "test_set" / "card_card_02.pdf").exists()

    def test_unknown_card(self, runner: CliRunner, make_deck: DeckFactory) -> None:
        """Test the card command rejects unknown ids."""
        deck_dir = make_deck(3)
        result = runner.invoke(cli, ["card", str(deck_dir), "card_99"])

        assert result.exit_code == 1
        assert "Card card_99 not found" in result.output
