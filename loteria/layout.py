"""Page geometry for boards, the full-deck listing and single-card sheets.

This module handles:
- Grid geometry for board pages (3x3 / 4x4) and deck pages (fixed 7:11 cells)
- Per-cell regions: image area, label strip, fitted label text
- Aspect-preserving image fitting and shrink-then-truncate label fitting
- Assembling a JSON-serializable document layout for the renderer

All coordinates are PDF points with a top-left origin; the renderer flips
them to ReportLab's bottom-left origin.
"""

import math
from datetime import datetime
from typing import Iterable, Literal, TypedDict

from reportlab.pdfbase.pdfmetrics import stringWidth

from loteria.combinatorics import grid_dimensions
from loteria.config import (
    BOARD_BACKDROP_PADDING_PT,
    BOARD_CARD_TITLE_SIZE,
    BOARD_GAP_CM,
    BOARD_HEADER_CM,
    BOARD_HEADER_GAP_PT,
    BOARD_MARGIN_BOTTOM_CM,
    BOARD_MARGIN_TOP_CM,
    BOARD_MARGIN_X_CM,
    BOARD_PAGE_TITLE_PADDING_PT,
    BOARD_PAGE_TITLE_SIZE,
    BOARD_TITLE_TEMPLATE,
    CARD_PAGE_MARGIN_PT,
    CARD_PAGE_TITLE_SIZE,
    COORDINATE_SYSTEM,
    DECK_CARD_ASPECT,
    DECK_COLS,
    DECK_CONTINUATION_TEMPLATE,
    DECK_GAP_CM,
    DECK_HEADER_PT,
    DECK_MARGIN_BOTTOM_PT,
    DECK_MARGIN_TOP_PT,
    DECK_MARGIN_X_PT,
    DECK_ROWS,
    DECK_TITLE,
    DECK_TITLE_OFFSET_PT,
    DECK_TITLE_SIZE,
    DECK_TITLE_X_PT,
    DEFAULT_PAPER_TYPE,
    ELLIPSIS,
    LABEL_BACKDROP_MIN_PT,
    LABEL_BACKDROP_PADDING_PT,
    LABEL_BASELINE_OFFSET_PT,
    LABEL_FONT,
    LABEL_MIN_SIZE,
    LABEL_PADDING_X_PT,
    LABEL_SIZE_STEP,
    LABEL_STRIP_PADDING_PT,
    PAGE_TITLE_FONT,
    PAPER_TYPES,
    SCHEMA_VERSION,
)
from loteria.coordinates import cm_to_points
from loteria.validation import Board, Card


class Rect(TypedDict):
    """Axis-aligned box in points (top-left origin)."""

    x: float
    y: float
    width: float
    height: float


class FittedText(TypedDict):
    """Label text after fitting to a width."""

    text: str
    size: float
    width: float


class TextLayout(TypedDict):
    """A positioned line of text; baseline_y is measured from the page top."""

    text: str
    font: str
    font_size: float
    x: float
    baseline_y: float
    width: float


class LabelLayout(TypedDict):
    """A card label: opaque backdrop plus fitted text."""

    backdrop: Rect
    text: TextLayout


class CellLayout(TypedDict):
    """Everything needed to draw one card in one cell."""

    card_id: str
    title: str
    image: str | None
    bbox: Rect
    image_area: Rect
    label: LabelLayout | None


class GridGeometry(TypedDict):
    """Resolved grid: cell size, gaps and top-left origin."""

    cols: int
    rows: int
    gap: float
    cell_width: float
    cell_height: float
    origin_x: float
    origin_y: float
    available_width: float
    available_height: float


class PageLayout(TypedDict):
    """One printed page."""

    kind: Literal["board", "deck", "card"]
    page_number: int
    width: float
    height: float
    title: TextLayout | None
    board_id: str | None
    backdrop: Rect | None
    logo_box: Rect | None
    grid: GridGeometry | None
    cells: list[CellLayout]


class DocumentLayout(TypedDict):
    """A complete paginated print document."""

    schema_version: str
    coordinate_system: str
    generated_at: str
    pages: list[PageLayout]


def page_size(paper_type: str = DEFAULT_PAPER_TYPE, landscape: bool = False) -> tuple[float, float]:
    """Return (width, height) in points for a paper type.

    Raises:
        KeyError: If paper_type not in PAPER_TYPES
    """
    if paper_type not in PAPER_TYPES:
        raise KeyError(f"Unknown paper type: {paper_type}")

    paper = PAPER_TYPES[paper_type]
    width = cm_to_points(paper["width_cm"])
    height = cm_to_points(paper["height_cm"])
    if landscape:
        return height, width
    return width, height


def normalize_title(title: str) -> str:
    """Collapse whitespace, trim and uppercase a card title."""
    return " ".join(title.split()).upper()


def text_width(text: str, size: float, font: str = LABEL_FONT) -> float:
    """Rendered width of text in points."""
    return stringWidth(text, font, size)


def fit_text_to_width(
    text: str,
    max_width: float,
    preferred_size: float,
    min_size: float,
    font: str = LABEL_FONT,
) -> FittedText:
    """Fit text into max_width by shrinking, then truncating with an ellipsis.

    Args:
        text: Text to fit
        max_width: Available width in points
        preferred_size: Starting font size
        min_size: Smallest font size allowed
        font: Font name for width measurement

    Returns:
        FittedText whose width never exceeds max_width

    Note:
        The size shrinks in LABEL_SIZE_STEP decrements down to min_size.
        Only when the text is still too wide at min_size is it truncated:
        the longest prefix that fits together with an ellipsis is kept.
    """
    size = preferred_size
    width = text_width(text, size, font)

    while width > max_width and size > min_size:
        size = max(min_size, size - LABEL_SIZE_STEP)
        width = text_width(text, size, font)

    if width <= max_width:
        return FittedText(text=text, size=size, width=width)

    ellipsis_width = text_width(ELLIPSIS, size, font)
    if ellipsis_width > max_width:
        return FittedText(text="", size=size, width=0.0)

    target = max_width - ellipsis_width

    # Binary search for the longest prefix that fits in target
    lo, hi = 0, len(text)
    while lo < hi:
        mid = math.ceil((lo + hi) / 2)
        if text_width(text[:mid], size, font) <= target:
            lo = mid
        else:
            hi = mid - 1

    truncated = text[:lo].rstrip()
    final_text = f"{truncated}{ELLIPSIS}" if truncated else ELLIPSIS
    return FittedText(text=final_text, size=size, width=text_width(final_text, size, font))


def fit_image(image_width: float, image_height: float, area: Rect, align_right: bool = False) -> Rect:
    """Scale an image uniformly to fit inside area.

    Args:
        image_width: Source image width (any unit)
        image_height: Source image height (same unit)
        area: Target region
        align_right: Flush the image to the area's right edge instead of
            centering it horizontally

    Returns:
        Placement rect, centered vertically inside area

    Raises:
        ValueError: If the image has a non-positive dimension
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Invalid image dimensions: {image_width}x{image_height}")

    scale = min(area["width"] / image_width, area["height"] / image_height)
    scaled_width = image_width * scale
    scaled_height = image_height * scale

    if align_right:
        x = area["x"] + area["width"] - scaled_width
    else:
        x = area["x"] + (area["width"] - scaled_width) / 2

    return Rect(
        x=x,
        y=area["y"] + (area["height"] - scaled_height) / 2,
        width=scaled_width,
        height=scaled_height,
    )


def layout_grid(
    cols: int,
    rows: int,
    gap: float,
    origin_x: float,
    origin_y: float,
    available_width: float,
    available_height: float,
) -> GridGeometry:
    """Split an available area into cols x rows equal cells separated by gap.

    Note:
        cell_width * cols + gap * (cols - 1) == available_width, so the grid
        fills the area exactly; the same holds for rows.
    """
    return GridGeometry(
        cols=cols,
        rows=rows,
        gap=gap,
        cell_width=(available_width - (cols - 1) * gap) / cols,
        cell_height=(available_height - (rows - 1) * gap) / rows,
        origin_x=origin_x,
        origin_y=origin_y,
        available_width=available_width,
        available_height=available_height,
    )


def cell_rect(grid: GridGeometry, index: int) -> Rect:
    """Return the box of the cell at row-major index."""
    row, col = divmod(index, grid["cols"])
    return Rect(
        x=grid["origin_x"] + col * (grid["cell_width"] + grid["gap"]),
        y=grid["origin_y"] + row * (grid["cell_height"] + grid["gap"]),
        width=grid["cell_width"],
        height=grid["cell_height"],
    )


def compute_board_grid(grid_size: int, page_width: float, page_height: float) -> GridGeometry:
    """Board grid for a portrait page: margins reserved, grid fills the rest.

    Args:
        grid_size: Cards per board (9 or 16)
        page_width: Page width in points
        page_height: Page height in points

    Returns:
        GridGeometry horizontally centered and anchored below the header
    """
    cols, rows = grid_dimensions(grid_size)
    margin_x = cm_to_points(BOARD_MARGIN_X_CM)
    margin_top = cm_to_points(BOARD_MARGIN_TOP_CM)
    margin_bottom = cm_to_points(BOARD_MARGIN_BOTTOM_CM)

    available_width = page_width - 2 * margin_x
    available_height = page_height - margin_top - margin_bottom

    return layout_grid(
        cols,
        rows,
        cm_to_points(BOARD_GAP_CM),
        origin_x=(page_width - available_width) / 2,
        origin_y=margin_top,
        available_width=available_width,
        available_height=available_height,
    )


def compute_deck_grid(page_width: float, page_height: float) -> GridGeometry:
    """Deck grid for a landscape page with fixed 7:11 cells.

    Note:
        Cell width comes from the column budget and height from the aspect
        ratio; when that height overflows the row budget, the height is
        clamped and the width recomputed, so the ratio always holds.
    """
    gap = cm_to_points(DECK_GAP_CM)
    budget_width = page_width - 2 * DECK_MARGIN_X_PT - (DECK_COLS - 1) * gap
    budget_height = (
        page_height
        - DECK_MARGIN_TOP_PT
        - DECK_HEADER_PT
        - DECK_MARGIN_BOTTOM_PT
        - (DECK_ROWS - 1) * gap
    )

    cell_width = budget_width / DECK_COLS
    cell_height = cell_width / DECK_CARD_ASPECT
    max_cell_height = budget_height / DECK_ROWS

    if cell_height > max_cell_height:
        cell_height = max_cell_height
        cell_width = cell_height * DECK_CARD_ASPECT

    grid_width = DECK_COLS * cell_width + (DECK_COLS - 1) * gap
    grid_height = DECK_ROWS * cell_height + (DECK_ROWS - 1) * gap

    return GridGeometry(
        cols=DECK_COLS,
        rows=DECK_ROWS,
        gap=gap,
        cell_width=cell_width,
        cell_height=cell_height,
        origin_x=(page_width - grid_width) / 2,
        origin_y=DECK_MARGIN_TOP_PT + DECK_HEADER_PT,
        available_width=grid_width,
        available_height=grid_height,
    )


def layout_label(title: str, bbox: Rect, title_size: float) -> LabelLayout | None:
    """Fit a card title into the bottom of its cell.

    Returns:
        LabelLayout, or None when the normalized title is empty
    """
    text = normalize_title(title)
    if not text:
        return None

    max_width = max(0.0, bbox["width"] - LABEL_PADDING_X_PT * 2)
    preferred = max(LABEL_MIN_SIZE, title_size - 1)
    fitted = fit_text_to_width(text, max_width, preferred, LABEL_MIN_SIZE)

    cell_bottom = bbox["y"] + bbox["height"]
    backdrop_height = max(LABEL_BACKDROP_MIN_PT, fitted["size"] + LABEL_BACKDROP_PADDING_PT)

    return LabelLayout(
        backdrop=Rect(
            x=bbox["x"],
            y=cell_bottom - backdrop_height,
            width=bbox["width"],
            height=backdrop_height,
        ),
        text=TextLayout(
            text=fitted["text"],
            font=LABEL_FONT,
            font_size=fitted["size"],
            x=bbox["x"] + LABEL_PADDING_X_PT + (max_width - fitted["width"]) / 2,
            baseline_y=cell_bottom - LABEL_BASELINE_OFFSET_PT,
            width=fitted["width"],
        ),
    )


def layout_card_cell(card: Card, bbox: Rect, title_size: float) -> CellLayout:
    """Split a cell into image area and label strip for one card."""
    label_strip = title_size + LABEL_STRIP_PADDING_PT

    return CellLayout(
        card_id=card.id,
        title=card.title,
        image=card.image,
        bbox=bbox,
        image_area=Rect(
            x=bbox["x"],
            y=bbox["y"],
            width=bbox["width"],
            height=max(0.0, bbox["height"] - label_strip),
        ),
        label=layout_label(card.title, bbox, title_size),
    )


def layout_board_page(
    board: Board,
    board_number: int,
    paper_type: str = DEFAULT_PAPER_TYPE,
) -> PageLayout:
    """Lay out one board on a portrait page.

    Args:
        board: Board to print
        board_number: 1-indexed number shown in the page title
        paper_type: Paper size from config.PAPER_TYPES

    Returns:
        PageLayout with one cell per card, row-major from the top-left
    """
    width, height = page_size(paper_type)
    grid = compute_board_grid(board.grid_size, width, height)

    header = cm_to_points(BOARD_HEADER_CM)
    grid_top = grid["origin_y"]
    padding = BOARD_BACKDROP_PADDING_PT

    title_text = BOARD_TITLE_TEMPLATE.format(number=board_number)
    title = TextLayout(
        text=title_text,
        font=PAGE_TITLE_FONT,
        font_size=BOARD_PAGE_TITLE_SIZE,
        x=grid["origin_x"] + BOARD_PAGE_TITLE_PADDING_PT,
        baseline_y=grid_top - BOARD_HEADER_GAP_PT - BOARD_PAGE_TITLE_SIZE / 2,
        width=text_width(title_text, BOARD_PAGE_TITLE_SIZE, PAGE_TITLE_FONT),
    )

    # Logo fills the header height left over after the title line
    logo_height = header - BOARD_HEADER_GAP_PT - BOARD_PAGE_TITLE_PADDING_PT
    logo_box = Rect(
        x=grid["origin_x"] + grid["available_width"] / 2,
        y=grid_top - BOARD_HEADER_GAP_PT - logo_height,
        width=grid["available_width"] / 2 - BOARD_PAGE_TITLE_PADDING_PT,
        height=logo_height,
    )

    backdrop = Rect(
        x=grid["origin_x"] - padding,
        y=grid_top - header - padding,
        width=grid["available_width"] + 2 * padding,
        height=grid["available_height"] + header + 2 * padding,
    )

    cells = [
        layout_card_cell(card, cell_rect(grid, index), BOARD_CARD_TITLE_SIZE)
        for index, card in enumerate(board.cards)
    ]

    return PageLayout(
        kind="board",
        page_number=board_number,
        width=width,
        height=height,
        title=title,
        board_id=board.id,
        backdrop=backdrop,
        logo_box=logo_box,
        grid=grid,
        cells=cells,
    )


def deck_page_title(page_number: int) -> str:
    if page_number == 1:
        return DECK_TITLE
    return DECK_CONTINUATION_TEMPLATE.format(page=page_number)


def layout_deck_pages(
    cards: list[Card],
    paper_type: str = DEFAULT_PAPER_TYPE,
    first_page_number: int = 1,
) -> list[PageLayout]:
    """Lay out the whole deck on landscape pages, DECK_COLS x DECK_ROWS each.

    Args:
        cards: Cards in deck order
        paper_type: Paper size from config.PAPER_TYPES
        first_page_number: Document page number of the first deck page

    Returns:
        One PageLayout per chunk of cards; empty when cards is empty
    """
    width, height = page_size(paper_type, landscape=True)
    grid = compute_deck_grid(width, height)
    per_page = DECK_COLS * DECK_ROWS

    pages: list[PageLayout] = []
    for deck_page, start in enumerate(range(0, len(cards), per_page), start=1):
        chunk = cards[start : start + per_page]
        title_text = deck_page_title(deck_page)

        pages.append(
            PageLayout(
                kind="deck",
                page_number=first_page_number + deck_page - 1,
                width=width,
                height=height,
                title=TextLayout(
                    text=title_text,
                    font=PAGE_TITLE_FONT,
                    font_size=DECK_TITLE_SIZE,
                    x=DECK_TITLE_X_PT,
                    baseline_y=DECK_TITLE_OFFSET_PT,
                    width=text_width(title_text, DECK_TITLE_SIZE, PAGE_TITLE_FONT),
                ),
                board_id=None,
                backdrop=None,
                logo_box=None,
                grid=grid,
                cells=[
                    layout_card_cell(card, cell_rect(grid, index), BOARD_CARD_TITLE_SIZE)
                    for index, card in enumerate(chunk)
                ],
            )
        )

    return pages


def layout_card_page(card: Card, paper_type: str = DEFAULT_PAPER_TYPE) -> PageLayout:
    """Lay out a single card, as large as fits, centered on a portrait page."""
    width, height = page_size(paper_type)
    available_width = width - CARD_PAGE_MARGIN_PT * 2
    available_height = height - CARD_PAGE_MARGIN_PT * 2

    card_width = available_width
    card_height = card_width / DECK_CARD_ASPECT
    if card_height > available_height:
        card_height = available_height
        card_width = card_height * DECK_CARD_ASPECT

    bbox = Rect(
        x=(width - card_width) / 2,
        y=(height - card_height) / 2,
        width=card_width,
        height=card_height,
    )

    return PageLayout(
        kind="card",
        page_number=1,
        width=width,
        height=height,
        title=None,
        board_id=None,
        backdrop=None,
        logo_box=None,
        grid=None,
        cells=[layout_card_cell(card, bbox, CARD_PAGE_TITLE_SIZE)],
    )


def build_document(
    boards: Iterable[Board],
    deck_cards: list[Card] | None = None,
    include_deck: bool = True,
    paper_type: str = DEFAULT_PAPER_TYPE,
) -> DocumentLayout:
    """Lay out every board (one per page) followed by the full-deck listing.

    Args:
        boards: Boards in print order; numbered from 1
        deck_cards: Deck to list after the boards
        include_deck: Whether to append the deck listing
        paper_type: Paper size from config.PAPER_TYPES

    Returns:
        DocumentLayout ready for rendering.render_document()
    """
    pages = [
        layout_board_page(board, number, paper_type)
        for number, board in enumerate(boards, start=1)
    ]

    if include_deck and deck_cards:
        pages.extend(layout_deck_pages(deck_cards, paper_type, first_page_number=len(pages) + 1))

    return DocumentLayout(
        schema_version=SCHEMA_VERSION,
        coordinate_system=COORDINATE_SYSTEM,
        generated_at=datetime.now().isoformat(),
        pages=pages,
    )


def build_card_document(card: Card, paper_type: str = DEFAULT_PAPER_TYPE) -> DocumentLayout:
    """Document with a single card sheet."""
    return DocumentLayout(
        schema_version=SCHEMA_VERSION,
        coordinate_system=COORDINATE_SYSTEM,
        generated_at=datetime.now().isoformat(),
        pages=[layout_card_page(card, paper_type)],
    )
