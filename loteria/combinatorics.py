"""Board-count arithmetic.

This module handles:
- Binomial coefficients for k-card boards drawn from an n-card deck
- The "safe" maximum of unique boards a deck can produce
- The suggested board count shown to users for each grid mode
"""

import math

from loteria.config import (
    CLASSIC_APPEARANCES_PER_CARD,
    DEFAULT_SUGGESTED_BOARDS,
    KIDS_CARDS_PER_BOARD,
    MIN_CARDS_PER_GRID,
    SUPPORTED_GRID_SIZES,
    UNIQUE_SAFETY_MARGIN,
)


def binomial_coefficient(n: int, k: int) -> int:
    """Count the k-combinations of n items.

    Args:
        n: Number of items (n >= 0)
        k: Combination size

    Returns:
        C(n, k), or 0 when k < 0 or k > n

    Note:
        Uses the multiplicative formula with float division and rounds the
        result, so n in the low hundreds never builds a factorial.
    """
    if k < 0 or k > n:
        return 0
    if k == 0 or k == n:
        return 1

    k = min(k, n - k)
    result = 1.0
    for i in range(k):
        result *= (n - i) / (i + 1)

    return round(result)


def calculate_max_unique_boards(available_cards: int, grid_size: int) -> int:
    """Return how many unique boards can be requested safely.

    Args:
        available_cards: Cards in the deck
        grid_size: Cards per board (9 or 16)

    Returns:
        Half of C(available_cards, grid_size), floored; 0 if the deck cannot
        form a single board
    """
    if available_cards < grid_size:
        return 0
    return math.floor(binomial_coefficient(available_cards, grid_size) * UNIQUE_SAFETY_MARGIN)


def calculate_suggested_boards(available_cards: int, grid_size: int) -> int:
    """Suggest how many boards to deal for a deck.

    Args:
        available_cards: Cards in the deck
        grid_size: Cards per board (9 or 16)

    Returns:
        Suggested board count, at least 1 and never above
        calculate_max_unique_boards(); DEFAULT_SUGGESTED_BOARDS when the deck
        is smaller than one board

    Raises:
        ValueError: If grid_size is not supported
    """
    _check_grid_size(grid_size)

    if available_cards < grid_size:
        return DEFAULT_SUGGESTED_BOARDS

    if grid_size == 9:
        ideal_boards = available_cards // KIDS_CARDS_PER_BOARD
    else:
        # Math.round semantics: halves round up
        ideal_boards = math.floor(available_cards * CLASSIC_APPEARANCES_PER_CARD / grid_size + 0.5)

    max_unique = calculate_max_unique_boards(available_cards, grid_size)
    return max(1, min(ideal_boards, max_unique))


def minimum_cards(grid_size: int) -> int:
    """Return the smallest deck allowed to generate boards for grid_size."""
    _check_grid_size(grid_size)
    return MIN_CARDS_PER_GRID[grid_size]


def can_generate(available_cards: int, grid_size: int) -> bool:
    """Check whether a deck meets the minimum-card threshold."""
    return available_cards >= minimum_cards(grid_size)


def grid_dimensions(grid_size: int) -> tuple[int, int]:
    """Return (columns, rows) for a grid size: 3x3 for 9, 4x4 for 16."""
    _check_grid_size(grid_size)
    side = 3 if grid_size == 9 else 4
    return side, side


def _check_grid_size(grid_size: int) -> None:
    if grid_size not in SUPPORTED_GRID_SIZES:
        raise ValueError(
            f"Unsupported grid size: {grid_size} (expected one of {SUPPORTED_GRID_SIZES})"
        )
