from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Callable, Mapping, Optional

from photosheet.core.alignment import GuideGeometry
from photosheet.errors import InvalidInputError

ENV_PREFIX = "PHOTOSHEET_"
DETECTORS = ("mediapipe", "haar")


@dataclass(frozen=True)
class Settings:
    """
    Knobs for the photo/sheet pipeline.

    crop_window_height:
        On-screen crop window height in display pixels; the width follows the
        photo's aspect ratio and the image base height is 1.5x this.
    guide:
        Face oval inside the crop window.
    margin_mm / gap_mm:
        Sheet margin on every side and spacing between tiles.
    preview_dpi / export_dpi:
        Sheet resolutions for on-screen preview and for print.
    detector:
        Face detector backend ("mediapipe" or "haar").
    detection_timeout:
        Seconds to wait for the detector; a late answer counts as "no face".
    remove_background:
        If True, attempts to replace the background via rembg.
    """
    crop_window_height: float = 320.0
    guide: GuideGeometry = field(default_factory=GuideGeometry)
    margin_mm: float = 5.0
    gap_mm: float = 2.0
    preview_dpi: int = 150
    export_dpi: int = 300
    jpeg_quality: int = 95
    detector: str = "mediapipe"
    detection_timeout: float = 10.0
    remove_background: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.detector not in DETECTORS:
            raise InvalidInputError(
                f"Unknown detector '{self.detector}'.", suggestions=[f"Use one of: {', '.join(DETECTORS)}"]
            )
        if self.preview_dpi <= 0 or self.export_dpi <= 0:
            raise InvalidInputError("dpi values must be > 0.")
        if self.margin_mm < 0 or self.gap_mm < 0:
            raise InvalidInputError("Margin and gap must be >= 0.")
        if not (1 <= self.jpeg_quality <= 100):
            raise InvalidInputError("JPEG quality must be within 1-100.")


_ENV_FIELDS: Mapping[str, Callable[[str], object]] = {
    "LOG_LEVEL": str.upper,
    "LOG_FILE": str,
    "DETECTOR": str.lower,
    "MARGIN_MM": float,
    "GAP_MM": float,
    "PREVIEW_DPI": int,
    "EXPORT_DPI": int,
    "DETECTION_TIMEOUT": float,
}


def load_settings(environ: Optional[Mapping[str, str]] = None, base: Optional[Settings] = None) -> Settings:
    """Defaults overridden by PHOTOSHEET_* environment variables."""
    env = os.environ if environ is None else environ
    overrides = {}
    for name, convert in _ENV_FIELDS.items():
        raw = env.get(ENV_PREFIX + name)
        if raw is None or raw == "":
            continue
        try:
            overrides[name.lower()] = convert(raw)
        except ValueError:
            raise InvalidInputError(
                f"Invalid value for {ENV_PREFIX}{name}: {raw!r}", details={"variable": ENV_PREFIX + name}
            ) from None
    return replace(base or Settings(), **overrides)
