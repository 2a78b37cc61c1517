from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from photosheet.core.units import mm_to_inches, mm_to_pixels
from photosheet.errors import InvalidInputError


@dataclass(frozen=True)
class PhysicalSpec:
    """
    A country's official photo dimensions and placement requirements.

    width_mm / height_mm:
        Printed photo size.
    dpi:
        Target print resolution; the output raster is exactly
        round(width_mm / 25.4 * dpi) x round(height_mm / 25.4 * dpi).
    head_height_min_mm / head_height_max_mm:
        Acceptable chin-to-crown height on the printed photo.
    eye_line_from_bottom:
        Eye line position as a percentage of the height, measured from the bottom edge.
    """
    id: str
    country: str
    width_mm: float
    height_mm: float
    dpi: int
    head_height_min_mm: float
    head_height_max_mm: float
    eye_line_from_bottom: float
    background_color: str = "#FFFFFF"
    notes: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.width_mm <= 0 or self.height_mm <= 0:
            raise InvalidInputError(
                f"Photo spec '{self.id}' must have positive dimensions.",
                details={"width_mm": self.width_mm, "height_mm": self.height_mm},
            )
        if self.dpi <= 0:
            raise InvalidInputError(f"Photo spec '{self.id}' must have a positive dpi.", details={"dpi": self.dpi})
        if self.head_height_min_mm > self.head_height_max_mm:
            raise InvalidInputError(
                f"Photo spec '{self.id}' has head height min > max.",
                details={"min": self.head_height_min_mm, "max": self.head_height_max_mm},
            )
        if not (0 <= self.eye_line_from_bottom <= 100):
            raise InvalidInputError(
                f"Photo spec '{self.id}' eye line must be within 0-100%.",
                details={"eye_line_from_bottom": self.eye_line_from_bottom},
            )

    @property
    def aspect_ratio(self) -> float:
        return self.width_mm / self.height_mm

    @property
    def width_inches(self) -> float:
        return mm_to_inches(self.width_mm)

    @property
    def height_inches(self) -> float:
        return mm_to_inches(self.height_mm)

    @property
    def head_height_target_mm(self) -> float:
        return (self.head_height_min_mm + self.head_height_max_mm) / 2.0

    @property
    def output_size(self) -> Tuple[int, int]:
        return mm_to_pixels(self.width_mm, self.dpi), mm_to_pixels(self.height_mm, self.dpi)


@dataclass(frozen=True)
class SheetSpec:
    """Printable paper size. Stored in millimetres; inches are derived."""
    id: str
    name: str
    width_mm: float
    height_mm: float

    def __post_init__(self) -> None:
        if self.width_mm <= 0 or self.height_mm <= 0:
            raise InvalidInputError(
                f"Sheet '{self.id}' must have positive dimensions.",
                details={"width_mm": self.width_mm, "height_mm": self.height_mm},
            )

    @property
    def width_inches(self) -> float:
        return mm_to_inches(self.width_mm)

    @property
    def height_inches(self) -> float:
        return mm_to_inches(self.height_mm)

    def rotated(self) -> "SheetSpec":
        """Same paper turned 90 degrees (portrait <-> landscape)."""
        return SheetSpec(id=f"{self.id}-rotated", name=self.name, width_mm=self.height_mm, height_mm=self.width_mm)


@dataclass(frozen=True)
class DisplayState:
    """
    Pan/zoom view of the source image, passed by value.

    scale:
        Zoom factor about the image center (> 0).
    offset_x / offset_y:
        Pan offset in unscaled display pixels from the container center. The
        on-screen displacement is scale * offset.
    natural_width / natural_height:
        Source image size in pixels.
    """
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    natural_width: int = 0
    natural_height: int = 0

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise InvalidInputError("Display scale must be > 0.", details={"scale": self.scale})

    @staticmethod
    def initial(natural_width: int, natural_height: int) -> "DisplayState":
        return DisplayState(natural_width=natural_width, natural_height=natural_height)

    @property
    def natural_size(self) -> Tuple[int, int]:
        return self.natural_width, self.natural_height


@dataclass(frozen=True)
class FaceBox:
    """Detected face bounding box in source-image pixels."""
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError(
                "Face box must have a positive width and height.",
                details={"width": self.width, "height": self.height},
            )

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0


@dataclass(frozen=True)
class CropRectangle:
    """Crop region in source-image pixels, already clamped to the bitmap."""
    x: float
    y: float
    width: float
    height: float

    @property
    def box(self) -> Tuple[float, float, float, float]:
        """(left, upper, right, lower) as Pillow expects it."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class TileGridLayout:
    """How many copies of one photo fit on one sheet, and the spacing used."""
    cols: int
    rows: int
    margin_mm: float
    gap_mm: float
    tile_width_mm: float
    tile_height_mm: float

    def __post_init__(self) -> None:
        if self.cols < 0 or self.rows < 0:
            raise InvalidInputError("Layout cols/rows must be >= 0.", details={"cols": self.cols, "rows": self.rows})

    @property
    def total(self) -> int:
        return self.cols * self.rows

    @property
    def fits(self) -> bool:
        return self.total > 0
