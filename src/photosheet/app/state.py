from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from loguru import logger

from photosheet.config import Settings
from photosheet.core import viewport
from photosheet.core.alignment import AlignmentResult, solve
from photosheet.core.models import CropRectangle, DisplayState, FaceBox, PhysicalSpec, SheetSpec
from photosheet.data.photo_specs import DEFAULT_PHOTO_SPEC, DEFAULT_SHEET, get_photo_spec, get_sheet_spec
from photosheet.errors import InvalidInputError, NoFaceDetectedError

if TYPE_CHECKING:  # avoid importing Pillow at module import time
    from PIL import Image


@dataclass
class EditorSession:
    """
    Mutable state for one editing session.

    The session owns the DisplayState. Geometry functions receive it by value and
    return new values; only the session replaces it. Every edit bumps
    `generation`, so an auto-alignment computed for an older image, spec or
    position is recognised as stale and dropped.
    """
    settings: Settings = field(default_factory=Settings)

    source: Optional["Image.Image"] = None
    photo_spec: PhysicalSpec = field(default_factory=lambda: get_photo_spec(DEFAULT_PHOTO_SPEC))
    sheet_spec: SheetSpec = field(default_factory=lambda: get_sheet_spec(DEFAULT_SHEET))
    display: DisplayState = field(default_factory=DisplayState)

    cropped: Optional["Image.Image"] = None
    generation: int = 0

    def _touch(self) -> None:
        self.generation += 1
        self.cropped = None

    @property
    def crop_window(self) -> viewport.Size:
        return viewport.crop_window_size(self.photo_spec, self.settings.crop_window_height)

    def load_image(self, image: "Image.Image") -> None:
        """New source image: the view goes back to scale 1, no offset."""
        if image.width <= 0 or image.height <= 0:
            raise InvalidInputError("Source image has zero size.", details={"size": image.size})
        self.source = image
        self.display = DisplayState.initial(image.width, image.height)
        self._touch()

    def select_photo_spec(self, spec_id: str) -> None:
        self.photo_spec = get_photo_spec(spec_id)
        self._touch()

    def select_sheet(self, sheet_id: str, landscape: bool = False) -> None:
        sheet = get_sheet_spec(sheet_id)
        self.sheet_spec = sheet.rotated() if landscape else sheet

    def drag(self, dx: float, dy: float) -> None:
        self.display = viewport.pan(self.display, dx, dy)
        self._touch()

    def zoom(self, scale: float) -> None:
        self.display = viewport.zoom_to(self.display, scale)
        self._touch()

    def reset_view(self) -> None:
        self.display = DisplayState.initial(self.display.natural_width, self.display.natural_height)
        self._touch()

    def begin_detection(self) -> int:
        """Token identifying the state a detection request was started from."""
        return self.generation

    def apply_alignment(self, token: int, result: AlignmentResult) -> bool:
        """Apply solver output if nothing changed since `token`; return whether it was applied."""
        if token != self.generation:
            logger.debug("discarding stale alignment (token {}, now {})", token, self.generation)
            return False
        self.display = result.apply_to(self.display)
        self._touch()
        return True

    def auto_align(self, face_box: Optional[FaceBox], token: Optional[int] = None) -> bool:
        """
        Solve for `face_box` and apply the result.

        No face leaves the display exactly as it was and raises
        NoFaceDetectedError for the caller to surface.
        """
        if self.source is None:
            raise InvalidInputError("Load an image before aligning.")
        token = self.generation if token is None else token
        try:
            result = solve(
                face_box,
                self.display.natural_size,
                self.crop_window,
                self.settings.guide,
                self.photo_spec,
            )
        except NoFaceDetectedError:
            logger.warning("auto-align: no face detected; keeping current view")
            raise
        return self.apply_alignment(token, result)

    def crop_rectangle(self) -> CropRectangle:
        return viewport.display_to_source(self.display, self.crop_window, self.display.natural_size)

    def render_crop(self) -> "Image.Image":
        if self.source is None:
            raise InvalidInputError("Load an image before cropping.")
        self.cropped = viewport.render_output(
            self.source,
            self.crop_rectangle(),
            viewport.output_pixel_size(self.photo_spec),
            self.photo_spec.background_color,
        )
        return self.cropped

    def reset(self) -> None:
        """Clear all session state."""
        self.source = None
        self.display = DisplayState()
        self.photo_spec = get_photo_spec(DEFAULT_PHOTO_SPEC)
        self.sheet_spec = get_sheet_spec(DEFAULT_SHEET)
        self._touch()
