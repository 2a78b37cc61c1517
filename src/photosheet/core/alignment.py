from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from loguru import logger

from photosheet.core.models import DisplayState, FaceBox, PhysicalSpec
from photosheet.core.viewport import BASE_DISPLAY_HEIGHT_FACTOR, Size, base_display_size
from photosheet.errors import InvalidInputError, NoFaceDetectedError

# Usable zoom range for automatic placement.
MIN_AUTO_SCALE = 0.8
MAX_AUTO_SCALE = 3.0

# Vertical anchor of the head inside the face box (box midpoint).
FACE_ANCHOR_Y = 0.5


@dataclass(frozen=True)
class GuideGeometry:
    """
    Face oval drawn inside the crop window, in percent of the crop window.

    The oval is horizontally centered; only its vertical placement matters
    for alignment.
    """
    top_percent: float = 8.0
    width_percent: float = 55.0
    height_percent: float = 65.0

    def __post_init__(self) -> None:
        if self.height_percent <= 0 or self.width_percent <= 0:
            raise InvalidInputError("Guide oval must have a positive size.")
        if self.top_percent < 0 or self.top_percent + self.height_percent > 100:
            raise InvalidInputError(
                "Guide oval must lie inside the crop window.",
                details={"top_percent": self.top_percent, "height_percent": self.height_percent},
            )

    @property
    def center_y(self) -> float:
        """Oval vertical center as a fraction of crop-window height."""
        return (self.top_percent + self.height_percent / 2.0) / 100.0


@dataclass(frozen=True)
class AlignmentResult:
    scale: float
    offset_x: float
    offset_y: float
    clamped: bool = False

    def apply_to(self, display: DisplayState) -> DisplayState:
        return replace(display, scale=self.scale, offset_x=self.offset_x, offset_y=self.offset_y)


def solve(
    face_box: Optional[FaceBox],
    natural_size: Size,
    crop_window: Size,
    guide: GuideGeometry,
    spec: PhysicalSpec,
) -> AlignmentResult:
    """
    Compute the scale and pan offset that put the detected face inside the guide oval.

    The scale makes the face height match the middle of the spec's head-height
    range; the offset moves the face center onto the oval center. Offsets are
    stored in unscaled display pixels (see viewport's display convention).

    Raises NoFaceDetectedError when `face_box` is None. Nothing is mutated, so the
    caller simply keeps its current DisplayState.
    """
    if face_box is None:
        raise NoFaceDetectedError("No face detected. Position the photo manually.")

    W, H = natural_size
    if W <= 0 or H <= 0:
        raise InvalidInputError("Source image has zero size.", details={"width": W, "height": H})
    if face_box.height <= 0:
        raise InvalidInputError("Face box height must be > 0.", details={"height": face_box.height})

    crop_h = crop_window[1]
    base_w, base_h = base_display_size(crop_window, natural_size)

    face_height_ratio = face_box.height / H
    face_top_ratio = face_box.y / H
    face_center_x_ratio = (face_box.x + face_box.width / 2.0) / W

    target_head_ratio = spec.head_height_target_mm / spec.height_mm

    raw_scale = (target_head_ratio * crop_h) / (face_height_ratio * crop_h * BASE_DISPLAY_HEIGHT_FACTOR)
    scale = min(MAX_AUTO_SCALE, max(MIN_AUTO_SCALE, raw_scale))
    clamped = scale != raw_scale
    if clamped:
        logger.warning("auto-align scale {:.3f} outside usable range; using {:.3f}", raw_scale, scale)

    # Face center on screen with zero offset, relative to the crop-window center.
    face_x = (face_center_x_ratio - 0.5) * base_w * scale
    face_y = (face_top_ratio + face_height_ratio * FACE_ANCHOR_Y - 0.5) * base_h * scale

    target_x = 0.0
    target_y = (guide.center_y - 0.5) * crop_h

    # Translation is scaled with the image, so divide the screen delta by scale.
    offset_x = (target_x - face_x) / scale
    offset_y = (target_y - face_y) / scale

    result = AlignmentResult(scale=scale, offset_x=offset_x, offset_y=offset_y, clamped=clamped)
    logger.debug("aligned face {} -> {}", face_box, result)
    return result
