"""Card, board and image storage collaborators.

This module provides:
- Abstract CardSource / BoardStore / ImageResolver interfaces
- Filesystem implementations backed by a deck directory and a JSON file
- TTLCache, an explicit expiring cache handed to resolvers by the caller
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Generic, Hashable, Iterable, TypeVar

from loteria.config import DECK_MANIFEST_NAME, IMAGE_CACHE_TTL_SECONDS
from loteria.validation import Board, BoardCollectionFile, Card, DeckManifest, StoredBoard

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """In-memory cache whose entries expire ttl_seconds after being set."""

    def __init__(
        self,
        ttl_seconds: float = IMAGE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    def set(self, key: K, value: V) -> None:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (value, now + self.ttl_seconds)

    def invalidate(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CardSource(ABC):
    """Supplies the cards currently in a set."""

    @abstractmethod
    def load_cards(self, set_id: str) -> list[Card]:
        """Return the set's cards in deck order.

        Args:
            set_id: Card set identifier

        Returns:
            Ordered snapshot of the set's cards
        """
        raise NotImplementedError


class BoardStore(ABC):
    """Durable storage for a set's board collection."""

    @abstractmethod
    def save_board(self, set_id: str, board: Board) -> None:
        """Persist one board (card ids and grid size)."""
        raise NotImplementedError

    @abstractmethod
    def replace_boards(self, set_id: str, boards: Iterable[Board]) -> None:
        """Replace the set's whole collection with boards in one write.

        Either every board is stored or the previous collection is kept.
        """
        raise NotImplementedError

    @abstractmethod
    def delete_all_boards(self, set_id: str) -> None:
        """Delete every board stored for the set."""
        raise NotImplementedError

    @abstractmethod
    def load_boards(self, set_id: str) -> list[StoredBoard]:
        """Return the stored boards for the set, in save order."""
        raise NotImplementedError


class ImageResolver(ABC):
    """Turns a card's image reference into raster bytes."""

    @abstractmethod
    def resolve(self, card: Card) -> bytes | None:
        """Return encoded image bytes, or None if the card has no image."""
        raise NotImplementedError


class DirectoryCardSource(CardSource):
    """Card source reading a deck directory's deck.json manifest."""

    def __init__(self, deck_dir: str | Path) -> None:
        self.deck_dir = Path(deck_dir)

    def load_manifest(self) -> DeckManifest:
        """Load and validate the deck manifest.

        Raises:
            FileNotFoundError: If deck.json does not exist
            pydantic.ValidationError: If the manifest is malformed
        """
        manifest_path = self.deck_dir / DECK_MANIFEST_NAME
        if not manifest_path.exists():
            raise FileNotFoundError(f"Deck manifest not found: {manifest_path}")

        manifest = DeckManifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))
        logger.debug(f"Loaded {len(manifest.cards)} cards from {manifest_path}")
        return manifest

    def load_cards(self, set_id: str) -> list[Card]:
        manifest = self.load_manifest()
        if manifest.set_id != set_id:
            raise KeyError(f"Deck at {self.deck_dir} holds set {manifest.set_id!r}, not {set_id!r}")
        return list(manifest.cards)


class JsonBoardStore(BoardStore):
    """Board store keeping one set's collection in a JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self, set_id: str) -> BoardCollectionFile:
        if not self.path.exists():
            return BoardCollectionFile(set_id=set_id, generated_at=datetime.now().isoformat())

        collection = BoardCollectionFile.model_validate_json(self.path.read_text(encoding="utf-8"))
        if collection.set_id != set_id:
            raise KeyError(
                f"Board file {self.path} belongs to set {collection.set_id!r}, not {set_id!r}"
            )
        return collection

    def _write(self, collection: BoardCollectionFile) -> None:
        # Readers only ever see a complete file
        self.path.parent.mkdir(parents=True, exist_ok=True)
        collection.generated_at = datetime.now().isoformat()
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            tmp_path.write_text(collection.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        finally:
            tmp_path.unlink(missing_ok=True)

    def save_board(self, set_id: str, board: Board) -> None:
        collection = self._read(set_id)
        collection.boards.append(StoredBoard.from_board(board))
        self._write(collection)

    def replace_boards(self, set_id: str, boards: Iterable[Board]) -> None:
        collection = self._read(set_id)
        collection.boards = [StoredBoard.from_board(board) for board in boards]
        self._write(collection)

    def delete_all_boards(self, set_id: str) -> None:
        if not self.path.exists():
            return
        collection = self._read(set_id)
        collection.boards = []
        self._write(collection)

    def load_boards(self, set_id: str) -> list[StoredBoard]:
        if not self.path.exists():
            raise FileNotFoundError(f"Board file not found: {self.path}")
        return list(self._read(set_id).boards)


class DirectoryImageResolver(ImageResolver):
    """Resolve image references as paths relative to a deck directory."""

    def __init__(self, deck_dir: str | Path, cache: TTLCache[str, bytes] | None = None) -> None:
        self.deck_dir = Path(deck_dir)
        self.cache = cache

    def resolve(self, card: Card) -> bytes | None:
        if not card.image:
            return None

        if self.cache is not None:
            cached = self.cache.get(card.image)
            if cached is not None:
                return cached

        image_path = (self.deck_dir / card.image).resolve()
        if not image_path.is_relative_to(self.deck_dir.resolve()):
            raise ValueError(f"Image for card {card.id} is outside the deck directory: {card.image}")
        if not image_path.is_file():
            logger.warning(f"Image for card {card.id} not found: {image_path}")
            return None

        data = image_path.read_bytes()
        if self.cache is not None:
            self.cache.set(card.image, data)
        return data


def resolve_boards(stored_boards: Iterable[StoredBoard], cards: Iterable[Card]) -> list[Board]:
    """Rebuild Board models from stored card ids.

    Args:
        stored_boards: Boards as persisted (ids only)
        cards: The set's current cards

    Returns:
        Boards with full Card references, in stored order

    Raises:
        KeyError: If a stored board references a card no longer in the set
    """
    cards_by_id = {card.id: card for card in cards}
    boards: list[Board] = []
    for stored in stored_boards:
        missing = [card_id for card_id in stored.card_ids if card_id not in cards_by_id]
        if missing:
            raise KeyError(f"Board {stored.id} references unknown cards: {', '.join(missing)}")
        boards.append(
            Board(
                id=stored.id,
                cards=tuple(cards_by_id[card_id] for card_id in stored.card_ids),
                grid_size=stored.grid_size,
            )
        )
    return boards
