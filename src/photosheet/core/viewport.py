"""
Viewport transform: display space <-> source space.

Display convention shared with the alignment solver:
  - the crop window (w_c, h_c) is fixed and centered in the container;
  - the image is shown at a base height of h_c * BASE_DISPLAY_HEIGHT_FACTOR,
    native aspect ratio preserved, centered in the container;
  - the pan offset is applied in the unscaled frame and then scaled with the
    image, so the on-screen displacement of the image center is scale * offset.

All coordinates below are relative to the crop-window center.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Tuple, Union

from loguru import logger
from PIL import Image, ImageColor

from photosheet.core.models import CropRectangle, DisplayState, PhysicalSpec
from photosheet.errors import InvalidInputError, RenderTargetUnavailableError

BASE_DISPLAY_HEIGHT_FACTOR = 1.5
DEFAULT_CROP_WINDOW_HEIGHT = 320.0

# Zoom slider range.
MIN_ZOOM = 0.5
MAX_ZOOM = 3.0

Size = Tuple[float, float]
Color = Union[str, Tuple[int, int, int]]


def _check_size(name: str, size: Size) -> None:
    w, h = size
    if w <= 0 or h <= 0:
        raise InvalidInputError(f"{name} must have positive dimensions.", details={"width": w, "height": h})


def crop_window_size(spec: PhysicalSpec, height: float = DEFAULT_CROP_WINDOW_HEIGHT) -> Size:
    """On-screen crop window with the photo's physical aspect ratio."""
    if height <= 0:
        raise InvalidInputError("Crop window height must be > 0.", details={"height": height})
    return height * spec.aspect_ratio, float(height)


def base_display_size(crop_window: Size, natural_size: Size) -> Size:
    """Unscaled displayed image size (width follows the native aspect ratio)."""
    _check_size("Crop window", crop_window)
    _check_size("Source image", natural_size)
    base_h = crop_window[1] * BASE_DISPLAY_HEIGHT_FACTOR
    return base_h * natural_size[0] / natural_size[1], base_h


def displayed_image_rect(display: DisplayState, crop_window: Size) -> Tuple[float, float, float, float]:
    """(left, top, width, height) of the image on screen, relative to the crop-window center."""
    base_w, base_h = base_display_size(crop_window, display.natural_size)
    s = display.scale
    width = base_w * s
    height = base_h * s
    cx = display.offset_x * s
    cy = display.offset_y * s
    return cx - width / 2.0, cy - height / 2.0, width, height


def display_to_source(display: DisplayState, crop_window: Size, natural_size: Size) -> CropRectangle:
    """
    Map the crop window into source pixels for the current pan/zoom.

    The result never reads outside the bitmap: origin is clamped to
    [0, W] x [0, H] and the extent is trimmed so x + width <= W and
    y + height <= H.
    """
    W, H = natural_size
    _check_size("Source image", natural_size)
    display = replace(display, natural_width=W, natural_height=H)

    img_left, img_top, img_w, img_h = displayed_image_rect(display, crop_window)
    scale_x = W / img_w
    scale_y = H / img_h

    crop_w, crop_h = crop_window
    left = (-crop_w / 2.0 - img_left) * scale_x
    top = (-crop_h / 2.0 - img_top) * scale_y
    right = left + crop_w * scale_x
    bottom = top + crop_h * scale_y

    x0 = min(max(0.0, left), float(W))
    y0 = min(max(0.0, top), float(H))
    x1 = min(max(x0, right), float(W))
    y1 = min(max(y0, bottom), float(H))

    crop = CropRectangle(x=x0, y=y0, width=x1 - x0, height=y1 - y0)
    logger.debug("display {} -> crop {}", display, crop)
    return crop


def output_pixel_size(spec: PhysicalSpec) -> Tuple[int, int]:
    """Exact (width, height) of the finished photo at the spec dpi."""
    return spec.output_size


def new_canvas(size: Tuple[int, int], color: Color, mode: str = "RGB") -> Image.Image:
    """Allocate a filled drawing surface or raise RenderTargetUnavailableError."""
    w, h = size
    if w <= 0 or h <= 0:
        raise InvalidInputError("Canvas size must be positive.", details={"width": w, "height": h})
    try:
        return Image.new(mode, (int(w), int(h)), ImageColor.getrgb(color) if isinstance(color, str) else color)
    except (MemoryError, OverflowError, ValueError) as e:
        raise RenderTargetUnavailableError(
            f"Could not allocate a {w}x{h} canvas.", details={"width": w, "height": h}
        ) from e


def render_output(
    source: Image.Image,
    crop: CropRectangle,
    output_size: Tuple[int, int],
    background_color: Color = "#FFFFFF",
) -> Image.Image:
    """
    Draw the crop region of `source` stretched over an output canvas of exactly `output_size`.

    Pixels not covered by the source (empty crop) keep the background color.
    """
    if source.width <= 0 or source.height <= 0:
        raise InvalidInputError("Source image has zero size.", details={"size": source.size})

    canvas = new_canvas(output_size, background_color)
    if crop.is_empty:
        logger.debug("empty crop; output is background only")
        return canvas

    if source.mode in ("RGBA", "LA") or (source.mode == "P" and "transparency" in source.info):
        region = source.convert("RGBA").resize(canvas.size, Image.LANCZOS, box=crop.box)
        canvas.paste(region, (0, 0), region)
    else:
        region = source.convert("RGB").resize(canvas.size, Image.LANCZOS, box=crop.box)
        canvas.paste(region, (0, 0))
    return canvas


def pan(display: DisplayState, dx: float, dy: float) -> DisplayState:
    """Move the image by a screen-space drag delta; the image follows the pointer."""
    return replace(
        display,
        offset_x=display.offset_x + dx / display.scale,
        offset_y=display.offset_y + dy / display.scale,
    )


def zoom_to(display: DisplayState, scale: float) -> DisplayState:
    return replace(display, scale=min(MAX_ZOOM, max(MIN_ZOOM, float(scale))))
