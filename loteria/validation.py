"""Schema validation using Pydantic models.

This module defines:
- Card and Board domain models (immutable)
- Deck manifest and stored board-collection file schemas
- Helpers for order-independent board comparison
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from loteria.config import SCHEMA_VERSION

GridSize = Literal[9, 16]


class Card(BaseModel):
    """A deck card: a title plus an optional image reference."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Stable card identifier, unique within a set")
    title: str = Field(default="", description="Card title printed under the image")
    image: str | None = Field(
        default=None, description="Image reference understood by the image resolver"
    )


class Board(BaseModel):
    """A dealt board: grid_size distinct cards in row-major grid order."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Board identifier")
    cards: tuple[Card, ...]
    grid_size: GridSize

    @model_validator(mode="after")
    def check_cards(self) -> "Board":
        """Validate card count matches grid_size and no card repeats."""
        if len(self.cards) != self.grid_size:
            raise ValueError(
                f"Board must hold exactly {self.grid_size} cards, got {len(self.cards)}"
            )
        if len(self.id_set) != len(self.cards):
            raise ValueError(f"Board {self.id} contains a repeated card")
        return self

    @property
    def card_ids(self) -> list[str]:
        """Card ids in grid order."""
        return [card.id for card in self.cards]

    @property
    def id_set(self) -> frozenset[str]:
        """Card ids as an order-independent set."""
        return frozenset(card.id for card in self.cards)


class DeckManifest(BaseModel):
    """Contents of a deck directory's deck.json."""

    schema_version: str = Field(default=SCHEMA_VERSION, description="JSON schema version")
    set_id: str = Field(min_length=1, description="Card set identifier")
    name: str = Field(default="", description="Human-readable deck name")
    cards: list[Card]

    @field_validator("cards")
    @classmethod
    def check_unique_ids(cls, v: list[Card]) -> list[Card]:
        """Validate that no card id appears twice in the set."""
        seen: set[str] = set()
        for card in v:
            if card.id in seen:
                raise ValueError(f"Duplicate card id in deck: {card.id}")
            seen.add(card.id)
        return v


class StoredBoard(BaseModel):
    """Board persistence shape (card ids only, no image data)."""

    id: str = Field(min_length=1)
    card_ids: list[str]
    grid_size: GridSize

    @model_validator(mode="after")
    def check_card_ids(self) -> "StoredBoard":
        """Validate the stored ids still describe a well-formed board."""
        if len(self.card_ids) != self.grid_size:
            raise ValueError(
                f"Stored board must list exactly {self.grid_size} card ids, "
                f"got {len(self.card_ids)}"
            )
        if len(set(self.card_ids)) != len(self.card_ids):
            raise ValueError(f"Stored board {self.id} contains a repeated card id")
        return self

    @classmethod
    def from_board(cls, board: Board) -> "StoredBoard":
        return cls(id=board.id, card_ids=board.card_ids, grid_size=board.grid_size)


class BoardCollectionFile(BaseModel):
    """A persisted board collection for one card set."""

    schema_version: str = Field(default=SCHEMA_VERSION, description="JSON schema version")
    set_id: str = Field(min_length=1, description="Card set the boards were dealt from")
    generated_at: str = Field(description="ISO 8601 timestamp of the last write")
    boards: list[StoredBoard] = Field(default_factory=list)

    @field_validator("generated_at")
    @classmethod
    def check_timestamp_format(cls, v: str) -> str:
        """Validate timestamp is valid ISO 8601 format."""
        try:
            datetime.fromisoformat(v)
        except ValueError as e:
            raise ValueError(f"Invalid ISO 8601 timestamp: {v}") from e
        return v


def are_boards_duplicate(board1: Board, board2: Board) -> bool:
    """Check whether two boards hold the same cards, ignoring position.

    Args:
        board1: First board
        board2: Second board

    Returns:
        True if both boards contain exactly the same card ids
    """
    return board1.id_set == board2.id_set


def is_duplicate_board(board: Board, existing_boards: list[Board]) -> bool:
    """Check whether board duplicates any board in existing_boards."""
    return any(are_boards_duplicate(board, existing) for existing in existing_boards)
