"""
Sheet layout: tile copies of one photo onto a print sheet.

Preview and export use the same drawing code; only `dpi` differs, so the
preview is a faithful scaled-down picture of what gets printed.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from PIL import Image, ImageDraw

from photosheet.core.models import PhysicalSpec, SheetSpec, TileGridLayout
from photosheet.core.units import mm_to_pixels
from photosheet.core.viewport import new_canvas
from photosheet.errors import InvalidInputError

DEFAULT_MARGIN_MM = 5.0
DEFAULT_GAP_MM = 2.0
MARK_LENGTH_MM = 3.0

SEPARATOR_COLOR = "#E0E0E0"
MARK_COLOR = "#CCCCCC"

Segment = Tuple[float, float, float, float]


def _fit_count(available_mm: float, tile_mm: float, gap_mm: float) -> int:
    # Largest N with N * tile + (N - 1) * gap <= available.
    return max(0, int(math.floor((available_mm + gap_mm) / (tile_mm + gap_mm))))


def compute_layout(
    photo_spec: PhysicalSpec,
    sheet_spec: SheetSpec,
    margin_mm: float = DEFAULT_MARGIN_MM,
    gap_mm: float = DEFAULT_GAP_MM,
) -> TileGridLayout:
    """
    Grid of photos that fits inside the sheet's printable area.

    A photo larger than the printable area gives a 0-tile layout, which is a
    valid answer ("fits 0 photos"), not an error.
    """
    if margin_mm < 0 or gap_mm < 0:
        raise InvalidInputError("Margin and gap must be >= 0.", details={"margin_mm": margin_mm, "gap_mm": gap_mm})

    cols = _fit_count(sheet_spec.width_mm - 2 * margin_mm, photo_spec.width_mm, gap_mm)
    rows = _fit_count(sheet_spec.height_mm - 2 * margin_mm, photo_spec.height_mm, gap_mm)
    layout = TileGridLayout(
        cols=cols,
        rows=rows,
        margin_mm=margin_mm,
        gap_mm=gap_mm,
        tile_width_mm=photo_spec.width_mm,
        tile_height_mm=photo_spec.height_mm,
    )
    if not layout.fits:
        logger.warning("{} photo does not fit on {} sheet; 0 photos fit", photo_spec.id, sheet_spec.id)
    return layout


def tile_pixel_size(layout: TileGridLayout, dpi: float) -> Tuple[int, int]:
    return mm_to_pixels(layout.tile_width_mm, dpi), mm_to_pixels(layout.tile_height_mm, dpi)


def tile_origins(layout: TileGridLayout, dpi: float) -> List[Tuple[int, int]]:
    """Top-left pixel of every tile, row by row."""
    tile_w, tile_h = tile_pixel_size(layout, dpi)
    margin = mm_to_pixels(layout.margin_mm, dpi)
    gap = mm_to_pixels(layout.gap_mm, dpi)
    return [
        (margin + col * (tile_w + gap), margin + row * (tile_h + gap))
        for row in range(layout.rows)
        for col in range(layout.cols)
    ]


def registration_marks(x: float, y: float, tile_w: float, tile_h: float, gap: float, mark: float) -> List[Segment]:
    """
    L-shaped cut marks at the four outer corners of one tile.

    Each corner gets a vertical and a horizontal stroke, pushed half a gap
    outward from the tile edge and `mark` long.
    """
    half = gap / 2.0
    right = x + tile_w
    bottom = y + tile_h
    return [
        # top-left
        (x - half, y, x - half, y - mark),
        (x, y - half, x - mark, y - half),
        # top-right
        (right + half, y, right + half, y - mark),
        (right, y - half, right + mark, y - half),
        # bottom-left
        (x - half, bottom, x - half, bottom + mark),
        (x, bottom + half, x - mark, bottom + half),
        # bottom-right
        (right + half, bottom, right + half, bottom + mark),
        (right, bottom + half, right + mark, bottom + half),
    ]


def sheet_pixel_size(sheet_spec: SheetSpec, dpi: float) -> Tuple[int, int]:
    return mm_to_pixels(sheet_spec.width_mm, dpi), mm_to_pixels(sheet_spec.height_mm, dpi)


def render_sheet(
    tile: Image.Image,
    layout: TileGridLayout,
    sheet_spec: SheetSpec,
    margin_mm: Optional[float] = None,
    gap_mm: Optional[float] = None,
    dpi: float = 300,
) -> Image.Image:
    """Composite `layout.total` copies of `tile` on a white sheet at `dpi`."""
    if dpi <= 0:
        raise InvalidInputError("dpi must be > 0.", details={"dpi": dpi})
    if tile.width <= 0 or tile.height <= 0:
        raise InvalidInputError("Tile image has zero size.", details={"size": tile.size})
    if margin_mm is not None or gap_mm is not None:
        layout = TileGridLayout(
            cols=layout.cols,
            rows=layout.rows,
            margin_mm=layout.margin_mm if margin_mm is None else margin_mm,
            gap_mm=layout.gap_mm if gap_mm is None else gap_mm,
            tile_width_mm=layout.tile_width_mm,
            tile_height_mm=layout.tile_height_mm,
        )

    canvas = new_canvas(sheet_pixel_size(sheet_spec, dpi), "#FFFFFF")
    if not layout.fits:
        return canvas

    tile_w, tile_h = tile_pixel_size(layout, dpi)
    gap = mm_to_pixels(layout.gap_mm, dpi)
    mark = mm_to_pixels(MARK_LENGTH_MM, dpi)
    placed = tile.convert("RGB").resize((tile_w, tile_h), Image.LANCZOS)

    origins = tile_origins(layout, dpi)
    draw = ImageDraw.Draw(canvas)
    for x, y in origins:
        canvas.paste(placed, (x, y))
        draw.rectangle((x, y, x + tile_w - 1, y + tile_h - 1), outline=SEPARATOR_COLOR, width=1)

    for x, y in origins:
        for segment in registration_marks(x, y, tile_w, tile_h, gap, mark):
            draw.line(segment, fill=MARK_COLOR, width=1)

    logger.debug("rendered {} tiles on {} at {} dpi -> {}", len(origins), sheet_spec.id, dpi, canvas.size)
    return canvas


def render_sheets(
    tile: Image.Image,
    layout: TileGridLayout,
    sheet_spec: SheetSpec,
    dpis: Iterable[float] = (150, 300),
    max_workers: Optional[int] = None,
) -> Dict[float, Image.Image]:
    """Render the same sheet at several resolutions in parallel (e.g. preview + export)."""
    dpis = list(dpis)
    # Each worker gets its own copy; Pillow images are not safe to share across threads.
    tiles = [tile.copy() for _ in dpis]
    with ThreadPoolExecutor(max_workers=max_workers or len(dpis) or 1) as pool:
        futures = {
            dpi: pool.submit(render_sheet, t, layout, sheet_spec, None, None, dpi)
            for dpi, t in zip(dpis, tiles)
        }
        return {dpi: f.result() for dpi, f in futures.items()}


def save_sheet(image: Image.Image, path: str, sheet_spec: SheetSpec, dpi: float, quality: int = 95) -> None:
    """
    Write a rendered sheet. A .pdf page is sized to the physical sheet, so a
    print dialog at 100% reproduces the photos at their real size.
    """
    suffix = Path(path).suffix.lower()
    if suffix == ".pdf":
        image.save(path, format="PDF", resolution=float(dpi))
    elif suffix in (".jpg", ".jpeg"):
        image.save(path, format="JPEG", quality=quality, optimize=True, dpi=(dpi, dpi))
    else:
        image.save(path, dpi=(dpi, dpi))
    logger.info(
        "saved sheet {} ({:.2f}x{:.2f} in @ {} dpi)", path, sheet_spec.width_inches, sheet_spec.height_inches, dpi
    )
