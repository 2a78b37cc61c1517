"""Physical unit conversions. Pixel values round half up, so 0.5 px always becomes 1 px."""

from __future__ import annotations

import math

MM_PER_INCH = 25.4


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mm_to_inches(mm: float) -> float:
    return mm / MM_PER_INCH


def mm_to_pixels(mm: float, dpi: float) -> int:
    """Physical length in millimetres -> whole pixels at `dpi`."""
    return _round_half_up(mm / MM_PER_INCH * dpi)
