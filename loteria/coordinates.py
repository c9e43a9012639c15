"""Unit conversion and coordinate transform utilities.

This module handles:
- Physical unit conversions (centimeters → points)
- Coordinate system transforms (top-left points → ReportLab bottom-left points)
"""

from loteria.config import POINTS_PER_CM


def cm_to_points(cm: float) -> float:
    """Convert centimeters to PDF points.

    Note:
        Uses the 28.35 pt/cm approximation the print constants were
        calibrated with (exact value is 72 / 2.54 = 28.346...).
    """
    return cm * POINTS_PER_CM


def top_left_to_pdf(x: float, y: float, height: float, page_height: float) -> tuple[float, float]:
    """Convert a top-left-origin box corner to ReportLab's bottom-left origin.

    Args:
        x: Box left edge in points from the page's left edge
        y: Box top edge in points from the page's top edge
        height: Box height in points
        page_height: Page height in points

    Returns:
        Tuple of (x_pt, y_pt) for the box's bottom-left corner, as
        canvas.rect() and canvas.drawImage() expect
    """
    return x, page_height - y - height
