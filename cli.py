"""Command-line interface for dealing and printing lotería boards.

Usage:
    # Full pipeline
    python cli.py pipeline decks/my_deck --grid-size=16 --count=20

    # Step-by-step
    python cli.py suggest decks/my_deck --grid-size=9
    python cli.py generate decks/my_deck --grid-size=16 --count=20 --seed=7
    python cli.py layout decks/my_deck
    python cli.py render decks/my_deck --logo=img/logo.png
"""

import json
import logging
import random
import sys
from datetime import datetime
from pathlib import Path

import click
from pydantic import ValidationError

from loteria.combinatorics import (
    calculate_max_unique_boards,
    calculate_suggested_boards,
    can_generate,
    minimum_cards,
)
from loteria.config import DEFAULT_GRID_SIZE, DEFAULT_PAPER_TYPE, PAPER_TYPES
from loteria.generator import InsufficientCardsError, clear_boards, regenerate_boards
from loteria.layout import build_document
from loteria.rendering import load_layout, render_card_pdf, render_document
from loteria.storage import (
    DirectoryCardSource,
    DirectoryImageResolver,
    JsonBoardStore,
    TTLCache,
    resolve_boards,
)
from loteria.validation import DeckManifest

# Configure root logger
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

GRID_CHOICE = click.Choice(["9", "16"])
PDF_NAME = "loteria-tableros.pdf"


def _load_manifest(deck_dir: str) -> DeckManifest:
    try:
        return DirectoryCardSource(deck_dir).load_manifest()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except ValidationError as e:
        raise click.ClickException(f"Invalid deck manifest in {deck_dir}: {e}") from e


def _board_store(set_id: str) -> JsonBoardStore:
    return JsonBoardStore(Path(f"boards/{set_id}.json"))


@click.group()
def cli() -> None:
    """Lotería - Board Dealer and Print Tool."""
    pass


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--grid-size", default=str(DEFAULT_GRID_SIZE), type=GRID_CHOICE, help="Cards per board")
def suggest(deck_dir: str, grid_size: str) -> None:
    """Show how many boards a deck can support.

    Args:
        deck_dir: Deck directory containing deck.json
        grid_size: 9 (3x3) or 16 (4x4)
    """
    manifest = _load_manifest(deck_dir)
    size = int(grid_size)
    available = len(manifest.cards)

    click.echo(f"🃏 Deck '{manifest.name or manifest.set_id}': {available} cards")
    click.echo(f"  Minimum cards for {size}-card boards: {minimum_cards(size)}")
    click.echo(f"  Maximum unique boards: {calculate_max_unique_boards(available, size)}")
    click.echo(f"  Suggested boards: {calculate_suggested_boards(available, size)}")

    if not can_generate(available, size):
        click.echo(f"  ⚠ Add {minimum_cards(size) - available} more cards to generate boards")


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--grid-size", default=str(DEFAULT_GRID_SIZE), type=GRID_CHOICE, help="Cards per board")
@click.option("--count", type=click.IntRange(min=0), default=None, help="Boards to deal (default: suggested)")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible boards")
def generate(deck_dir: str, grid_size: str, count: int | None, seed: int | None) -> None:
    """Deal a fresh board collection, replacing any existing one.

    Args:
        deck_dir: Deck directory containing deck.json
        grid_size: 9 (3x3) or 16 (4x4)
        count: Number of boards (defaults to the suggested count)
        seed: Optional random seed

    Output:
        - Board collection JSON: boards/{set_id}.json
    """
    manifest = _load_manifest(deck_dir)
    size = int(grid_size)
    available = len(manifest.cards)

    if not can_generate(available, size):
        raise click.ClickException(
            f"Need at least {minimum_cards(size)} cards for {size}-card boards, "
            f"but the deck has {available}."
        )

    if count is None:
        count = calculate_suggested_boards(available, size)

    max_unique = calculate_max_unique_boards(available, size)
    if count > max_unique:
        click.echo(
            f"⚠ {count} boards exceeds the safe maximum of {max_unique}; "
            f"some boards may repeat",
            err=True,
        )

    click.echo(f"🎲 Dealing {count} boards from {available} cards...")

    store = _board_store(manifest.set_id)
    rng = random.Random(seed) if seed is not None else None
    try:
        boards = regenerate_boards(store, manifest.set_id, manifest.cards, count, size, rng)
    except InsufficientCardsError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"✓ Dealt {len(boards)} boards")
    click.echo(f"📁 Boards saved to: {store.path}")


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
def clear(deck_dir: str) -> None:
    """Delete every board dealt for a deck."""
    manifest = _load_manifest(deck_dir)
    clear_boards(_board_store(manifest.set_id), manifest.set_id)
    click.echo(f"🗑️  Cleared boards for set {manifest.set_id}")


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--paper-type", default=DEFAULT_PAPER_TYPE, type=click.Choice(list(PAPER_TYPES)), help="Paper size")
@click.option("--no-deck", is_flag=True, help="Skip the full-deck listing pages")
def layout(deck_dir: str, paper_type: str, no_deck: bool) -> None:
    """Lay out the dealt boards (and deck listing) as page JSON.

    Output:
        - Layout JSON: layouts/{set_id}.json
    """
    manifest = _load_manifest(deck_dir)
    store = _board_store(manifest.set_id)

    try:
        stored = store.load_boards(manifest.set_id)
        boards = resolve_boards(stored, manifest.cards)
    except FileNotFoundError as e:
        raise click.ClickException(f"{e}. Run 'generate' command first.") from e
    except KeyError as e:
        raise click.ClickException(f"Boards are out of date with the deck: {e}") from e

    click.echo(f"📐 Laying out {len(boards)} boards...")

    document = build_document(
        boards, manifest.cards, include_deck=not no_deck, paper_type=paper_type
    )

    layout_path = Path(f"layouts/{manifest.set_id}.json")
    layout_path.parent.mkdir(parents=True, exist_ok=True)
    layout_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")

    click.echo(f"✓ Generated {len(document['pages'])} pages")
    click.echo(f"📁 Layout JSON saved to: {layout_path}")


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--logo", type=click.Path(exists=True, dir_okay=False), default=None, help="Logo image for board headers")
def render(deck_dir: str, logo: str | None) -> None:
    """Render the print-ready PDF from the layout JSON.

    Output:
        - Print-ready PDF: output/{set_id}/loteria-tableros.pdf
    """
    manifest = _load_manifest(deck_dir)
    layout_path = Path(f"layouts/{manifest.set_id}.json")

    try:
        document = load_layout(str(layout_path))
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(f"{e}. Run 'layout' command first.") from e

    click.echo(f"🖨️  Rendering {len(document['pages'])} pages...")

    output_path = Path(f"output/{manifest.set_id}/{PDF_NAME}")
    resolver = DirectoryImageResolver(deck_dir, cache=TTLCache())
    logo_bytes = Path(logo).read_bytes() if logo else None

    summary = render_document(document, resolver, output_path, logo=logo_bytes)

    for card_id in summary["failed_cells"]:
        click.echo(f"  ❌ card {card_id}: image could not be embedded", err=True)

    click.echo(f"✓ Rendered {summary['pages']} pages")
    click.echo(f"📁 Output PDF saved to: {output_path}")


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("card_id")
@click.option("--paper-type", default=DEFAULT_PAPER_TYPE, type=click.Choice(list(PAPER_TYPES)), help="Paper size")
def card(deck_dir: str, card_id: str, paper_type: str) -> None:
    """Render a single card on its own page.

    Output:
        - Card PDF: output/{set_id}/card_{card_id}.pdf
    """
    manifest = _load_manifest(deck_dir)
    matches = [c for c in manifest.cards if c.id == card_id]
    if not matches:
        raise click.ClickException(f"Card {card_id} not found in set {manifest.set_id}")

    resolver = DirectoryImageResolver(deck_dir)
    pdf_bytes = render_card_pdf(matches[0], resolver, paper_type)

    output_path = Path(f"output/{manifest.set_id}/card_{card_id}.pdf")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(pdf_bytes)
    click.echo(f"📁 Card PDF saved to: {output_path}")


@cli.command()
@click.argument("deck_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--grid-size", default=str(DEFAULT_GRID_SIZE), type=GRID_CHOICE, help="Cards per board")
@click.option("--count", type=click.IntRange(min=0), default=None, help="Boards to deal (default: suggested)")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible boards")
@click.option("--paper-type", default=DEFAULT_PAPER_TYPE, type=click.Choice(list(PAPER_TYPES)), help="Paper size")
@click.option("--no-deck", is_flag=True, help="Skip the full-deck listing pages")
@click.option("--logo", type=click.Path(exists=True, dir_okay=False), default=None, help="Logo image for board headers")
@click.pass_context
def pipeline(
    ctx: click.Context,
    deck_dir: str,
    grid_size: str,
    count: int | None,
    seed: int | None,
    paper_type: str,
    no_deck: bool,
    logo: str | None,
) -> None:
    """Run full pipeline: generate → layout → render.

    Output:
        - Board collection JSON: boards/{set_id}.json
        - Layout JSON: layouts/{set_id}.json
        - Print-ready PDF: output/{set_id}/loteria-tableros.pdf
        - Log file: logs/{set_id}/pipeline_{timestamp}.log
    """
    manifest = _load_manifest(deck_dir)

    # Setup file logging
    log_dir = Path(f"logs/{manifest.set_id}")
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"pipeline_{timestamp}.log"

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(file_handler)

    logger.info(f"Starting pipeline for set_id: {manifest.set_id}")
    logger.info(f"Deck directory: {deck_dir}")
    logger.info(f"Grid size: {grid_size}")
    logger.info(f"Paper type: {paper_type}")

    click.echo("=" * 60)
    click.echo("🎨 Lotería - Full Pipeline")
    click.echo("=" * 60)

    try:
        click.echo("\n📍 Phase 1: Dealing boards...")
        ctx.invoke(generate, deck_dir=deck_dir, grid_size=grid_size, count=count, seed=seed)

        click.echo("\n📍 Phase 2: Laying out pages...")
        ctx.invoke(layout, deck_dir=deck_dir, paper_type=paper_type, no_deck=no_deck)

        click.echo("\n📍 Phase 3: Rendering PDF...")
        ctx.invoke(render, deck_dir=deck_dir, logo=logo)

        click.echo("\n" + "=" * 60)
        click.echo(f"✅ Pipeline complete! Check output/{manifest.set_id}/")
        click.echo("=" * 60)
        click.echo(f"📄 Log file: {log_file}")

        logger.info("Pipeline completed successfully")

    except Exception as e:
        click.echo(f"\n❌ Pipeline failed: {e}", err=True)
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        sys.exit(1)

    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()


if __name__ == "__main__":
    cli()
