"""Unit tests for loteria/storage.py."""

import json
from pathlib import Path
from typing import Callable

import pytest
from pydantic import ValidationError

from loteria.storage import DirectoryCardSource, DirectoryImageResolver, JsonBoardStore, TTLCache, resolve_boards
from loteria.validation import Board, Card, StoredBoard

DeckFactory = Callable[..., Path]
CardPool = Callable[[int], list[Card]]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    """Tests for TTLCache."""

    def test_hit_before_expiry(self) -> None:
        """Test values are returned until the TTL elapses."""
        clock = FakeClock()
        cache: TTLCache[str, bytes] = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", b"1")
        clock.now = 9.9
        assert cache.get("a") == b"1"

    def test_expired_entry_evicted(self) -> None:
        """Test expired entries return None and are dropped."""
        clock = FakeClock()
        cache: TTLCache[str, bytes] = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", b"1")
        clock.now = 10
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_set_refreshes_expiry(self) -> None:
        """Test re-setting a key restarts its TTL."""
        clock = FakeClock()
        cache: TTLCache[str, int] = TTLCache(ttl_seconds=5, clock=clock)
        cache.set("a", 1)
        clock.now = 4
        cache.set("a", 2)
        clock.now = 8
        assert cache.get("a") == 2

    def test_set_prunes_expired_entries(self) -> None:
        """Test stale keys are dropped on write even if never read again."""
        clock = FakeClock()
        cache: TTLCache[str, int] = TTLCache(ttl_seconds=5, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.now = 6
        cache.set("c", 3)
        assert len(cache) == 1
        assert cache.get("c") == 3

    def test_invalidate_and_clear(self) -> None:
        """Test explicit removal."""
        cache: TTLCache[str, int] = TTLCache(ttl_seconds=5)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") is None
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    def test_non_positive_ttl_raises(self) -> None:
        """Test that ttl_seconds must be positive."""
        with pytest.raises(ValueError, match="ttl_seconds must be > 0"):
            TTLCache(ttl_seconds=0)


class TestDirectoryCardSource:
    """Tests for DirectoryCardSource."""

    def test_load_cards_in_deck_order(self, make_deck: DeckFactory) -> None:
        """Test cards come back as listed in deck.json."""
        deck_dir = make_deck(5)
        cards = DirectoryCardSource(deck_dir).load_cards("test_set")

        assert [card.id for card in cards] == [f"card_{i:02d}" for i in range(1, 6)]
        assert cards[0].title == "El número 1"
        assert cards[0].image == "images/card_01.png"

    def test_missing_manifest_raises(self, tmp_path: Path) -> None:
        """Test that a directory without deck.json raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Deck manifest not found"):
            DirectoryCardSource(tmp_path).load_cards("test_set")

    def test_wrong_set_raises(self, make_deck: DeckFactory) -> None:
        """Test that the requested set must match the manifest."""
        deck_dir = make_deck(3)
        with pytest.raises(KeyError, match="not 'other_set'"):
            DirectoryCardSource(deck_dir).load_cards("other_set")

    def test_malformed_manifest_raises(self, tmp_path: Path) -> None:
        """Test schema violations surface as ValidationError."""
        (tmp_path / "deck.json").write_text(json.dumps({"set_id": "s", "cards": [{"id": ""}]}), encoding="utf-8")
        with pytest.raises(ValidationError):
            DirectoryCardSource(tmp_path).load_cards("s")


class TestJsonBoardStore:
    """Tests for JsonBoardStore."""

    def test_save_and_load_in_order(self, tmp_path: Path, card_pool: CardPool) -> None:
        """Test boards are persisted as id lists in save order."""
        cards = card_pool(12)
        store = JsonBoardStore(tmp_path / "boards" / "s.json")
        first = Board(id="b1", cards=cards[:9], grid_size=9)
        second = Board(id="b2", cards=cards[3:], grid_size=9)

        store.save_board("s", first)
        store.save_board("s", second)

        stored = store.load_boards("s")
        assert [s.id for s in stored] == ["b1", "b2"]
        assert stored[1].card_ids == second.card_ids

    def test_file_is_readable_json(self, tmp_path: Path, card_pool: CardPool) -> None:
        """Test the on-disk format."""
        path = tmp_path / "s.json"
        JsonBoardStore(path).save_board("s", Board(id="b1", cards=card_pool(9), grid_size=9))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["set_id"] == "s"
        assert data["schema_version"] == "1.0.0"
        assert data["boards"][0]["grid_size"] == 9

    def test_replace_boards(self, tmp_path: Path, card_pool: CardPool) -> None:
        """Test the collection is swapped wholesale."""
        cards = card_pool(12)
        store = JsonBoardStore(tmp_path / "s.json")
        store.save_board("s", Board(id="old", cards=cards[:9], grid_size=9))

        store.replace_boards(
            "s",
            [Board(id="b1", cards=cards[:9], grid_size=9), Board(id="b2", cards=cards[3:], grid_size=9)],
        )

        assert [s.id for s in store.load_boards("s")] == ["b1", "b2"]
        assert not (tmp_path / "s.json.tmp").exists()

    def test_failed_write_keeps_previous_file(
        self, tmp_path: Path, card_pool: CardPool, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test an interrupted write leaves the stored collection unchanged."""
        cards = card_pool(9)
        path = tmp_path / "s.json"
        store = JsonBoardStore(path)
        store.save_board("s", Board(id="b1", cards=cards, grid_size=9))
        before = path.read_text(encoding="utf-8")

        def failing_replace(src: object, dst: object) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("loteria.storage.os.replace", failing_replace)
        with pytest.raises(OSError, match="disk full"):
            store.replace_boards("s", [])

        assert path.read_text(encoding="utf-8") == before
        assert not (tmp_path / "s.json.tmp").exists()

    def test_load_missing_file_raises(self, tmp_path: Path) -> None:
        """Test loading before any generation raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Board file not found"):
            JsonBoardStore(tmp_path / "none.json").load_boards("s")

    def test_delete_all_on_missing_file_is_noop(self, tmp_path: Path) -> None:
        """Test clearing an empty store does not create a file."""
        path = tmp_path / "none.json"
        JsonBoardStore(path).delete_all_boards("s")
        assert not path.exists()

    def test_other_set_rejected(self, tmp_path: Path, card_pool: CardPool) -> None:
        """Test a store file belongs to exactly one set."""
        store = JsonBoardStore(tmp_path / "s.json")
        store.save_board("s", Board(id="b1", cards=card_pool(9), grid_size=9))
        with pytest.raises(KeyError, match="belongs to set 's'"):
            store.load_boards("t")


class TestDirectoryImageResolver:
    """Tests for DirectoryImageResolver."""

    def test_resolves_relative_path(self, make_deck: DeckFactory) -> None:
        """Test image bytes are read from the deck directory."""
        deck_dir = make_deck(2)
        card = Card(id="card_01", title="x", image="images/card_01.png")
        data = DirectoryImageResolver(deck_dir).resolve(card)
        assert data is not None
        assert data.startswith(b"\x89PNG")

    def test_no_image_reference(self, tmp_path: Path) -> None:
        """Test cards without an image resolve to None."""
        assert DirectoryImageResolver(tmp_path).resolve(Card(id="c1", title="x")) is None

    def test_missing_file_warns(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Test a dangling reference resolves to None with a warning."""
        card = Card(id="c1", title="x", image="images/gone.png")
        with caplog.at_level("WARNING", logger="loteria.storage"):
            assert DirectoryImageResolver(tmp_path).resolve(card) is None
        assert "Image for card c1 not found" in caplog.text

    @pytest.mark.parametrize("reference", ["../secret.png", "images/../../secret.png"])
    def test_relative_escape_rejected(self, tmp_path: Path, make_deck: DeckFactory, reference: str) -> None:
        """Test references climbing out of the deck directory are refused."""
        deck_dir = make_deck(1)
        (tmp_path / "secret.png").write_bytes(b"private")
        card = Card(id="c1", title="x", image=reference)

        with pytest.raises(ValueError, match="outside the deck directory"):
            DirectoryImageResolver(deck_dir).resolve(card)

    def test_absolute_path_rejected(self, tmp_path: Path, make_deck: DeckFactory) -> None:
        """Test absolute references outside the deck are refused."""
        deck_dir = make_deck(1)
        secret = tmp_path / "secret.png"
        secret.write_bytes(b"private")
        card = Card(id="c1", title="x", image=str(secret))

        with pytest.raises(ValueError, match="outside the deck directory"):
            DirectoryImageResolver(deck_dir).resolve(card)

    def test_cache_serves_repeat_lookups(self, make_deck: DeckFactory) -> None:
        """Test cached bytes are returned without touching the file."""
        deck_dir = make_deck(1)
        cache: TTLCache[str, bytes] = TTLCache(ttl_seconds=60)
        resolver = DirectoryImageResolver(deck_dir, cache=cache)
        card = Card(id="card_01", title="x", image="images/card_01.png")

        first = resolver.resolve(card)
        (deck_dir / "images" / "card_01.png").unlink()
        assert resolver.resolve(card) == first
        assert len(cache) == 1


class TestResolveBoards:
    """Tests for resolve_boards()."""

    def test_rebuilds_boards(self, card_pool: CardPool) -> None:
        """Test stored ids are joined back to cards in grid order."""
        cards = card_pool(10)
        stored = [StoredBoard(id="b1", card_ids=[c.id for c in reversed(cards[:9])], grid_size=9)]

        boards = resolve_boards(stored, cards)

        assert boards[0].id == "b1"
        assert boards[0].card_ids == [c.id for c in reversed(cards[:9])]
        assert boards[0].cards[0] == cards[8]

    def test_unknown_card_raises(self, card_pool: CardPool) -> None:
        """Test a board referencing a removed card raises KeyError."""
        cards = card_pool(9)
        stored = [StoredBoard(id="b1", card_ids=[c.id for c in cards[:8]] + ["gone"], grid_size=9)]
        with pytest.raises(KeyError, match="references unknown cards: gone"):
            resolve_boards(stored, cards)
