"""Board dealing with duplicate avoidance.

This module handles:
- Fisher-Yates shuffling of the card pool
- Rejection sampling of unique boards with a bounded attempt budget
- Clearing and regenerating a set's persisted board collection
"""

import logging
import random
import uuid
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from loteria.config import MAX_ATTEMPTS
from loteria.storage import BoardStore
from loteria.validation import Board, Card, is_duplicate_board

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InsufficientCardsError(ValueError):
    """Raised when the card pool cannot fill a single board."""

    def __init__(self, grid_size: int, available: int) -> None:
        self.grid_size = grid_size
        self.available = available
        side = "4x4" if grid_size == 16 else "3x3"
        super().__init__(
            f"Not enough cards for a {side} board: need at least {grid_size} cards, "
            f"but only {available} available"
        )


@dataclass
class GenerationStats:
    """Retry bookkeeping for one generation batch."""

    attempts_per_board: list[int] = field(default_factory=list)
    total_retries: int = 0
    exhausted_boards: list[int] = field(default_factory=list)  # 1-indexed board numbers


def shuffle_cards(cards: Sequence[T], rng: random.Random) -> list[T]:
    """Return a uniformly shuffled copy of cards (Fisher-Yates).

    Args:
        cards: Items to shuffle (left untouched)
        rng: Random source

    Returns:
        New list with the same items in random order
    """
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def generate_boards_with_stats(
    card_pool: Sequence[Card],
    count: int,
    grid_size: int,
    rng: random.Random | None = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> tuple[list[Board], GenerationStats]:
    """Deal count boards and report how many retries it took.

    Args:
        card_pool: Cards to deal from (treated as read-only)
        count: Number of boards to produce
        grid_size: Cards per board (9 or 16)
        rng: Random source; a fresh unseeded one when omitted
        max_attempts: Duplicate retries allowed per board

    Returns:
        Tuple of (boards in generation order, GenerationStats)

    Raises:
        InsufficientCardsError: If the pool is smaller than grid_size
        ValueError: If count is negative

    Note:
        When a board cannot be made unique within max_attempts, the last
        candidate is accepted anyway, so near the combinatorial ceiling the
        batch may contain duplicates instead of hanging or failing.
    """
    if len(card_pool) < grid_size:
        raise InsufficientCardsError(grid_size, len(card_pool))
    if count < 0:
        raise ValueError(f"Board count must be >= 0, got {count}")

    rng = rng or random.Random()
    stats = GenerationStats()
    boards: list[Board] = []

    logger.info(
        f"Generating {count} boards from {len(card_pool)} cards "
        f"(grid: {'4x4' if grid_size == 16 else '3x3'})"
    )

    for board_number in range(1, count + 1):
        attempts = 0
        is_unique = False

        while True:
            # Shuffle then slice: no card can repeat within a board
            selected = shuffle_cards(card_pool, rng)[:grid_size]
            candidate = Board(id=uuid.uuid4().hex, cards=tuple(selected), grid_size=grid_size)

            if not is_duplicate_board(candidate, boards):
                is_unique = True
                break

            attempts += 1
            if attempts >= max_attempts:
                break

        if not is_unique:
            logger.warning(
                f"Could not generate unique board {board_number} after {max_attempts} "
                f"attempts. Using last generated board."
            )
            stats.exhausted_boards.append(board_number)

        if attempts > 0:
            logger.debug(f"Board {board_number} generated after {attempts} attempts to avoid duplicates")

        boards.append(candidate)
        stats.attempts_per_board.append(attempts)
        stats.total_retries += attempts

    if stats.total_retries > 0:
        logger.info(f"Total attempts to avoid duplicates: {stats.total_retries}")

    return boards, stats


def generate_boards(
    card_pool: Sequence[Card],
    count: int,
    grid_size: int,
    rng: random.Random | None = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> list[Board]:
    """Deal count boards of grid_size distinct cards each.

    See generate_boards_with_stats() for arguments and failure modes.
    """
    boards, _ = generate_boards_with_stats(card_pool, count, grid_size, rng, max_attempts)
    return boards


def clear_boards(store: BoardStore, set_id: str) -> None:
    """Discard the whole board collection for a set."""
    store.delete_all_boards(set_id)
    logger.info(f"Cleared all boards for set {set_id}")


def regenerate_boards(
    store: BoardStore,
    set_id: str,
    card_pool: Sequence[Card],
    count: int,
    grid_size: int,
    rng: random.Random | None = None,
) -> list[Board]:
    """Replace a set's board collection with a freshly dealt one.

    Args:
        store: Board persistence backend
        set_id: Card set the boards belong to
        card_pool: Cards to deal from
        count: Number of boards to produce
        grid_size: Cards per board (9 or 16)
        rng: Random source

    Returns:
        The new boards, in generation order

    Raises:
        InsufficientCardsError: If the pool is smaller than grid_size; the
            existing collection is left untouched
        OSError: If the store cannot write; the existing collection is
            left untouched
    """
    boards = generate_boards(card_pool, count, grid_size, rng)
    store.replace_boards(set_id, boards)

    logger.info(f"Saved {len(boards)} boards for set {set_id}")
    return boards
