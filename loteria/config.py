"""Centralized configuration constants for loteria-boards."""

# Unit conversion
POINTS_PER_CM = 28.35  # 1 cm = 28.35 PDF points

# Board grid
SUPPORTED_GRID_SIZES = (9, 16)  # 3x3 "kids" mode | 4x4 "classic" mode
DEFAULT_GRID_SIZE = 16
MIN_CARDS_PER_GRID = {9: 12, 16: 16}  # Policy thresholds, not derived

# Generation
MAX_ATTEMPTS = 1000  # Rejection-sampling budget per board
UNIQUE_SAFETY_MARGIN = 0.5  # Fraction of C(n, k) considered safe to request
DEFAULT_SUGGESTED_BOARDS = 8  # Returned when the deck cannot form a board
KIDS_CARDS_PER_BOARD = 3  # 3x3: one board per three cards
CLASSIC_APPEARANCES_PER_CARD = 8  # 4x4: each card on ~8 boards on average

# Persistence
SCHEMA_VERSION = "1.0.0"
COORDINATE_SYSTEM = "top_left_pt"  # Origin: top-left corner, units: points
DECK_MANIFEST_NAME = "deck.json"
IMAGE_CACHE_TTL_SECONDS = 300.0

# Paper types (portrait dimensions)
PAPER_TYPES = {
    "A4": {
        "width_cm": 21.0,
        "height_cm": 29.7,
    },
    "letter": {
        "width_cm": 21.59,
        "height_cm": 27.94,
    },
}
DEFAULT_PAPER_TYPE = "A4"

# Board page (portrait). With A4 the available area is 14 x 21 cm,
# the traditional "mediano" board.
BOARD_MARGIN_X_CM = 3.5
BOARD_MARGIN_TOP_CM = 5.85  # Includes the 3 cm header for title and logo
BOARD_MARGIN_BOTTOM_CM = 2.85
BOARD_HEADER_CM = 3.0
BOARD_HEADER_GAP_PT = 3.0
BOARD_GAP_CM = 0.15
BOARD_BACKDROP_PADDING_PT = 20.0
BOARD_BACKDROP_FILL_RGB = (0.995, 0.953, 0.906)  # Light orange tint
BOARD_BACKDROP_STROKE_RGB = (0.98, 0.92, 0.87)
BOARD_BACKDROP_STROKE_PT = 1.0
BOARD_PAGE_TITLE_SIZE = 12.0
BOARD_PAGE_TITLE_PADDING_PT = 10.0
BOARD_CARD_TITLE_SIZE = 11.0
BOARD_TITLE_TEMPLATE = "Tablero {number}"

# Full-deck listing (landscape)
DECK_COLS = 5
DECK_ROWS = 2
DECK_GAP_CM = 0.4
DECK_MARGIN_X_PT = 30.0
DECK_MARGIN_TOP_PT = 26.0
DECK_MARGIN_BOTTOM_PT = 26.0
DECK_HEADER_PT = 26.0
DECK_CARD_ASPECT = 7 / 11  # width / height, the traditional card ratio
DECK_TITLE = "Baraja Completa"
DECK_CONTINUATION_TEMPLATE = "Baraja Completa (continuación - Página {page})"
DECK_TITLE_X_PT = 30.0
DECK_TITLE_OFFSET_PT = 18.0  # Title baseline distance from page top
DECK_TITLE_SIZE = 12.0

# Single-card sheet
CARD_PAGE_MARGIN_PT = 60.0
CARD_PAGE_TITLE_SIZE = 12.0

# Per-cell label fitting
LABEL_FONT = "Helvetica-Bold"
LABEL_STRIP_PADDING_PT = 8.0  # Added to the font size to size the label strip
LABEL_PADDING_X_PT = 6.0
LABEL_MIN_SIZE = 6.0
LABEL_SIZE_STEP = 0.5
LABEL_BASELINE_OFFSET_PT = 3.0
LABEL_BACKDROP_MIN_PT = 10.0
LABEL_BACKDROP_PADDING_PT = 7.0
ELLIPSIS = "…"

# Cell drawing
CELL_BORDER_WIDTH_PT = 2.0
ERROR_FILL_GRAY = 0.9
ERROR_BORDER_GRAY = 0.5
ERROR_TEXT = "Error"
ERROR_TEXT_SIZE = 10.0
PAGE_TITLE_FONT = "Helvetica"
