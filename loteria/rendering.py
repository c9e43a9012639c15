"""PDF rendering from document layouts.

This module handles:
- Loading layout JSON written by the layout step
- Decoding card images with Pillow and embedding them with ReportLab
- Drawing board, deck and single-card pages in a fixed order per cell
- Isolating per-cell image failures as placeholders
"""

import io
import json
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, TypedDict

from PIL import Image, UnidentifiedImageError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from loteria.config import (
    BOARD_BACKDROP_FILL_RGB,
    BOARD_BACKDROP_STROKE_PT,
    BOARD_BACKDROP_STROKE_RGB,
    CELL_BORDER_WIDTH_PT,
    DEFAULT_PAPER_TYPE,
    ERROR_BORDER_GRAY,
    ERROR_FILL_GRAY,
    ERROR_TEXT,
    ERROR_TEXT_SIZE,
    PAGE_TITLE_FONT,
)
from loteria.coordinates import top_left_to_pdf
from loteria.layout import (
    CellLayout,
    DocumentLayout,
    PageLayout,
    Rect,
    TextLayout,
    build_card_document,
    build_document,
    fit_image,
)
from loteria.storage import ImageResolver
from loteria.validation import Board, Card

logger = logging.getLogger(__name__)


class ImageEmbedError(RuntimeError):
    """Raised when a card's image bytes cannot be decoded or embedded."""

    def __init__(self, card_id: str, reason: str) -> None:
        self.card_id = card_id
        super().__init__(f"Could not embed image for card {card_id}: {reason}")


class RenderSummary(TypedDict):
    """What render_document() drew."""

    pages: int
    cells: int
    missing_images: list[str]  # card ids drawn without an image
    failed_cells: list[str]  # card ids drawn as error placeholders


def load_layout(layout_json_path: str) -> DocumentLayout:
    """Load a document layout written by the layout step.

    Raises:
        FileNotFoundError: If the layout JSON does not exist
        ValueError: If the JSON is not a document layout
    """
    layout_path = Path(layout_json_path)
    if not layout_path.exists():
        raise FileNotFoundError(f"Layout JSON not found: {layout_json_path}")

    layout_data = json.loads(layout_path.read_text(encoding="utf-8"))
    if not isinstance(layout_data, dict) or not isinstance(layout_data.get("pages"), list):
        raise ValueError(f"Invalid layout JSON (no pages list): {layout_json_path}")

    # TypedDict casting (layout_data is dict from JSON)
    document: DocumentLayout = layout_data  # type: ignore[assignment]
    return document


def decode_image(card_id: str, data: bytes) -> Image.Image:
    """Decode image bytes into a Pillow image ReportLab can embed.

    Raises:
        ImageEmbedError: If the bytes are empty, corrupt, not an image or
            larger than Pillow's decompression-bomb limit
    """
    if not data:
        raise ImageEmbedError(card_id, "image data is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.width == 0 or img.height == 0:
                raise ImageEmbedError(card_id, "image has invalid dimensions (0x0)")
            if img.mode in ("RGB", "RGBA", "L"):
                return img.copy()
            has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
            return img.convert("RGBA" if has_alpha else "RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageEmbedError(card_id, str(e)) from e


def _draw_text(c: canvas.Canvas, text: TextLayout, page_height: float) -> None:
    c.setFont(text["font"], text["font_size"])
    c.drawString(text["x"], page_height - text["baseline_y"], text["text"])


def _rect(c: canvas.Canvas, box: Rect, page_height: float, stroke: int, fill: int) -> None:
    x_pt, y_pt = top_left_to_pdf(box["x"], box["y"], box["height"], page_height)
    c.rect(x_pt, y_pt, box["width"], box["height"], stroke=stroke, fill=fill)


def _draw_image(c: canvas.Canvas, img: Image.Image, area: Rect, page_height: float, align_right: bool = False) -> None:
    placement = fit_image(img.width, img.height, area, align_right=align_right)
    x_pt, y_pt = top_left_to_pdf(placement["x"], placement["y"], placement["height"], page_height)
    c.drawImage(
        ImageReader(img),
        x_pt,
        y_pt,
        width=placement["width"],
        height=placement["height"],
        mask="auto",
    )


def _draw_error_cell(c: canvas.Canvas, cell: CellLayout, page_height: float) -> None:
    c.saveState()
    c.setFillGray(ERROR_FILL_GRAY)
    c.setStrokeGray(ERROR_BORDER_GRAY)
    c.setLineWidth(1)
    _rect(c, cell["bbox"], page_height, stroke=1, fill=1)

    c.setFillGray(ERROR_BORDER_GRAY)
    c.setFont(PAGE_TITLE_FONT, ERROR_TEXT_SIZE)
    bbox = cell["bbox"]
    c.drawString(bbox["x"] + 5, page_height - (bbox["y"] + bbox["height"] / 2), ERROR_TEXT)
    c.restoreState()


def draw_cell(
    c: canvas.Canvas,
    cell: CellLayout,
    page_height: float,
    image_resolver: ImageResolver,
    summary: RenderSummary,
) -> None:
    """Draw one card: image, label backdrop, label text, then the border.

    An image that fails to resolve or decode turns the cell into an error
    placeholder; the rest of the page is unaffected.
    """
    card = Card(id=cell["card_id"], title=cell["title"], image=cell["image"])
    summary["cells"] += 1

    try:
        try:
            data = image_resolver.resolve(card)
        except Exception as e:
            raise ImageEmbedError(card.id, f"image could not be resolved: {e}") from e
        img = decode_image(card.id, data) if data is not None else None
    except ImageEmbedError as e:
        logger.error(f"{e}; drawing placeholder")
        summary["failed_cells"].append(card.id)
        _draw_error_cell(c, cell, page_height)
        return

    if img is None:
        logger.debug(f"Card {card.id} has no image, drawing label only")
        summary["missing_images"].append(card.id)
    elif cell["image_area"]["height"] > 0:
        _draw_image(c, img, cell["image_area"], page_height)

    label = cell["label"]
    if label is not None:
        c.saveState()
        c.setFillColorRGB(1, 1, 1)
        _rect(c, label["backdrop"], page_height, stroke=0, fill=1)
        c.setFillColorRGB(0, 0, 0)
        _draw_text(c, label["text"], page_height)
        c.restoreState()

    # Border goes last so the label backdrop never covers it
    c.saveState()
    c.setStrokeColorRGB(0, 0, 0)
    c.setLineWidth(CELL_BORDER_WIDTH_PT)
    _rect(c, cell["bbox"], page_height, stroke=1, fill=0)
    c.restoreState()


def draw_page(
    c: canvas.Canvas,
    page: PageLayout,
    image_resolver: ImageResolver,
    summary: RenderSummary,
    logo: Image.Image | None = None,
) -> None:
    """Draw a page's backdrop, title, logo and cells, then end the page."""
    page_height = page["height"]
    c.setPageSize((page["width"], page_height))

    if page["backdrop"] is not None:
        c.saveState()
        c.setFillColorRGB(*BOARD_BACKDROP_FILL_RGB)
        c.setStrokeColorRGB(*BOARD_BACKDROP_STROKE_RGB)
        c.setLineWidth(BOARD_BACKDROP_STROKE_PT)
        _rect(c, page["backdrop"], page_height, stroke=1, fill=1)
        c.restoreState()

    if page["title"] is not None:
        c.setFillColorRGB(0, 0, 0)
        _draw_text(c, page["title"], page_height)

    if logo is not None and page["logo_box"] is not None:
        _draw_image(c, logo, page["logo_box"], page_height, align_right=True)

    for cell in page["cells"]:
        draw_cell(c, cell, page_height, image_resolver, summary)

    c.showPage()
    summary["pages"] += 1


def render_document(
    document: DocumentLayout,
    image_resolver: ImageResolver,
    output: str | Path | BinaryIO,
    logo: bytes | None = None,
) -> RenderSummary:
    """Render a document layout to PDF.

    Args:
        document: Layout from layout.build_document() or load_layout()
        image_resolver: Supplies image bytes for each card
        output: Output file path or writable binary stream
        logo: Optional encoded logo drawn in each board page's header

    Returns:
        RenderSummary counting pages, cells and degraded cells

    Note:
        - Layout coordinates are top-left points, flipped here for ReportLab
        - A cell whose image cannot be decoded is drawn as a placeholder;
          the document is always completed
    """
    if isinstance(output, (str, Path)):
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        target: str | BinaryIO = str(output)
    else:
        target = output

    logo_image = None
    if logo is not None:
        try:
            logo_image = decode_image("logo", logo)
        except ImageEmbedError as e:
            logger.warning(f"Could not draw logo on boards: {e}")

    summary = RenderSummary(pages=0, cells=0, missing_images=[], failed_cells=[])
    c = canvas.Canvas(target)

    for page in document["pages"]:
        draw_page(c, page, image_resolver, summary, logo_image)

    c.save()

    logger.info(
        f"Rendered {summary['pages']} pages ({summary['cells']} cells, "
        f"{len(summary['failed_cells'])} failed, {len(summary['missing_images'])} without image)"
    )
    return summary


def render_boards_pdf(
    boards: Iterable[Board],
    image_resolver: ImageResolver,
    deck_cards: list[Card] | None = None,
    include_deck: bool = True,
    paper_type: str = DEFAULT_PAPER_TYPE,
    logo: bytes | None = None,
) -> bytes:
    """Lay out and render boards (plus the deck listing) to PDF bytes."""
    document = build_document(boards, deck_cards, include_deck=include_deck, paper_type=paper_type)
    buffer = io.BytesIO()
    render_document(document, image_resolver, buffer, logo=logo)
    return buffer.getvalue()


def render_card_pdf(
    card: Card,
    image_resolver: ImageResolver,
    paper_type: str = DEFAULT_PAPER_TYPE,
) -> bytes:
    """Render a single card on its own page to PDF bytes."""
    document = build_card_document(card, paper_type)
    buffer = io.BytesIO()
    render_document(document, image_resolver, buffer)
    return buffer.getvalue()
