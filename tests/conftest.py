"""Shared fixtures: synthetic decks with Pillow-generated card images."""

import json
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image, ImageDraw

from loteria.validation import Card

DeckFactory = Callable[..., Path]


def make_card_image(path: Path, size: tuple[int, int] = (350, 550), color: tuple[int, int, int] = (100, 150, 200)) -> None:
    """Write a solid-color test image with a white frame."""
    img = Image.new("RGB", size, color=color)
    draw = ImageDraw.Draw(img)
    draw.rectangle([(5, 5), (size[0] - 6, size[1] - 6)], outline=(255, 255, 255), width=3)
    img.save(path)


@pytest.fixture
def make_deck(tmp_path: Path) -> DeckFactory:
    """Factory writing a deck directory (deck.json + images) under tmp_path."""

    def _make_deck(
        num_cards: int,
        set_id: str = "test_set",
        with_images: bool = True,
        corrupt_ids: tuple[str, ...] = (),
    ) -> Path:
        deck_dir = tmp_path / set_id
        image_dir = deck_dir / "images"
        image_dir.mkdir(parents=True, exist_ok=True)

        cards = []
        for i in range(1, num_cards + 1):
            card_id = f"card_{i:02d}"
            image_ref = None
            if with_images:
                image_ref = f"images/{card_id}.png"
                if card_id in corrupt_ids:
                    (deck_dir / image_ref).write_bytes(b"definitely not a png")
                else:
                    make_card_image(deck_dir / image_ref, color=((10 * i) % 256, 120, 200))
            cards.append({"id": card_id, "title": f"El número {i}", "image": image_ref})

        manifest = {"schema_version": "1.0.0", "set_id": set_id, "name": "Test Deck", "cards": cards}
        (deck_dir / "deck.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        return deck_dir

    return _make_deck


@pytest.fixture
def card_pool() -> Callable[[int], list[Card]]:
    """Factory for in-memory card pools without images."""

    def _card_pool(n: int) -> list[Card]:
        return [Card(id=f"card_{i:02d}", title=f"Card {i}") for i in range(1, n + 1)]

    return _card_pool
