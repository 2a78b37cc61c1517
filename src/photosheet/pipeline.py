#!/usr/bin/env python3
"""
photosheet pipeline

Turn a portrait into a country-spec ID photo and, optionally, a print sheet:
- Detects the face (MediaPipe or OpenCV Haar cascade)
- Solves pan/zoom so the face fills the guide oval at the spec's head height
- Crops to the exact pixel size for the spec's physical size and dpi
- Optionally replaces the background via rembg
- Tiles the photo on a sheet with cut marks (JPEG/PNG or print-size PDF)

Usage:
  photosheet --input in.jpg --output photo.jpg --country uk
  photosheet -i in.jpg -o photo.jpg -c us --sheet 4x6 --sheet-output sheet.pdf
  photosheet -i in.jpg -o photo.jpg --no-align --scale 1.4 --offset-y -20
  photosheet -i in.jpg -o photo.jpg --sheet a4 --landscape --sheet-preview preview.png
  photosheet --show uk
  photosheet --list

Notes:
- Always verify the final photo against the official requirements of the
  issuing authority.
"""

from __future__ import annotations

import argparse
import io
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

from loguru import logger
from PIL import Image, ImageOps

from photosheet.app.state import EditorSession
from photosheet.config import DETECTORS, Settings, load_settings
from photosheet.core.alignment import AlignmentResult
from photosheet.core.models import DisplayState, PhysicalSpec, TileGridLayout
from photosheet.core.sheet import compute_layout, render_sheets, save_sheet
from photosheet.data.photo_specs import DEFAULT_PHOTO_SPEC, PHOTO_SPECS, SHEET_SIZES, get_photo_spec
from photosheet.detection.face_detector import FaceDetector, detect_with_timeout, get_detector
from photosheet.errors import InvalidInputError, NoFaceDetectedError, PhotoSheetError
from photosheet.logging_config import setup_logging
from photosheet.validation.report import ValidationReport
from photosheet.validation.validator import format_report_text, validate_id_photo


@dataclass
class PipelineResult:
    photo: Image.Image
    display: DisplayState
    aligned: bool
    layout: Optional[TileGridLayout] = None
    sheet: Optional[Image.Image] = None
    sheet_preview: Optional[Image.Image] = None
    report: Optional[ValidationReport] = None


def load_image_rgb(path: str) -> Image.Image:
    """Load an image, apply EXIF orientation, return RGB PIL Image."""
    try:
        img = Image.open(path)
        img = ImageOps.exif_transpose(img)
    except (OSError, Image.DecompressionBombError) as e:
        raise InvalidInputError(f"Could not open image '{path}'.", details={"error": str(e)}) from e
    if img.mode != "RGB":
        img = img.convert("RGB")
    if img.width == 0 or img.height == 0:
        raise InvalidInputError(f"Image '{path}' has zero size.")
    return img


def replace_background(photo: Image.Image, color: str) -> Image.Image:
    """
    Cut the subject out with rembg and composite it onto `color`.
    If rembg isn't installed, returns the photo unchanged.
    """
    try:
        from rembg import remove  # type: ignore
    except ImportError:
        logger.warning("rembg is not installed; background left as is (pip install 'photosheet[bg]')")
        return photo

    cut = remove(photo)
    if isinstance(cut, bytes):
        cut = Image.open(io.BytesIO(cut))
    cut = cut.convert("RGBA")

    bg = Image.new("RGBA", cut.size, color)
    return Image.alpha_composite(bg, cut).convert("RGB")


def save_photo(photo: Image.Image, output_path: str, dpi: int, quality: int = 95) -> None:
    if output_path.lower().endswith((".jpg", ".jpeg")):
        photo.save(output_path, format="JPEG", quality=quality, optimize=True, dpi=(dpi, dpi))
    else:
        photo.save(output_path, dpi=(dpi, dpi))
    logger.info("saved photo {} ({}x{})", output_path, photo.width, photo.height)


def process_id_photo(
    input_path: str,
    output_path: Optional[str],
    spec_id: str = DEFAULT_PHOTO_SPEC,
    settings: Optional[Settings] = None,
    sheet_id: Optional[str] = None,
    sheet_output: Optional[str] = None,
    sheet_preview: Optional[str] = None,
    landscape: bool = False,
    detector: Optional[FaceDetector] = None,
    manual_view: Optional[AlignmentResult] = None,
    validate: bool = False,
) -> PipelineResult:
    """
    Build the ID photo for `spec_id` and optionally tile it on `sheet_id`.

    Args:
      input_path: source portrait
      output_path: where to write the photo (None keeps it in memory only)
      manual_view: explicit scale/offset; skips face detection
      sheet_preview: where to write the low-dpi sheet preview
      landscape: turn the sheet 90 degrees before tiling
      detector: face detector callable; defaults to settings.detector
      validate: run the compliance checks on the finished photo

    A photo with no detectable face is still produced from the default view;
    `aligned` is False so callers can ask the user to position it manually.
    """
    settings = settings or Settings()
    session = EditorSession(settings=settings)
    session.select_photo_spec(spec_id)
    session.load_image(load_image_rgb(input_path))
    spec = session.photo_spec
    logger.info(
        "processing {} for {} ({}x{}mm @ {} dpi)", input_path, spec.country, spec.width_mm, spec.height_mm, spec.dpi
    )

    detect = detector
    aligned = False
    if manual_view is not None:
        session.apply_alignment(session.begin_detection(), manual_view)
    else:
        detect = detect or get_detector(settings.detector)
        token = session.begin_detection()
        face = detect_with_timeout(detect, session.source, settings.detection_timeout)
        try:
            aligned = session.auto_align(face, token)
        except NoFaceDetectedError as e:
            logger.warning(e.user_message())

    photo = session.render_crop()
    if settings.remove_background:
        photo = replace_background(photo, spec.background_color)

    if output_path:
        save_photo(photo, output_path, spec.dpi, settings.jpeg_quality)

    result = PipelineResult(photo=photo, display=session.display, aligned=aligned)

    if sheet_id:
        session.select_sheet(sheet_id, landscape)
        sheet_spec = session.sheet_spec
        layout = compute_layout(spec, sheet_spec, settings.margin_mm, settings.gap_mm)
        logger.info("{} on {}: {}x{} = {} photos", spec.id, sheet_spec.id, layout.cols, layout.rows, layout.total)
        result.layout = layout
        # Preview and export come from the same renderer, differing only in dpi.
        sheets = render_sheets(photo, layout, sheet_spec, dpis=(settings.preview_dpi, settings.export_dpi))
        result.sheet = sheets[settings.export_dpi]
        result.sheet_preview = sheets[settings.preview_dpi]
        if sheet_output:
            save_sheet(result.sheet, sheet_output, sheet_spec, settings.export_dpi, settings.jpeg_quality)
        if sheet_preview:
            save_sheet(result.sheet_preview, sheet_preview, sheet_spec, settings.preview_dpi, settings.jpeg_quality)

    if validate:
        # A manual view skips detection, but the head and centering checks still need a face.
        detect = detect or get_detector(settings.detector)
        result.report = validate_id_photo(photo, spec, detect)

    return result


def _format_spec_table() -> str:
    lines = ["Photo specs:"]
    for s in PHOTO_SPECS.values():
        w, h = s.output_size
        lines.append(
            f"  {s.id:<10} {s.country:<28} {s.width_mm:g}x{s.height_mm:g}mm  {w}x{h}px  "
            f"head {s.head_height_min_mm:g}-{s.head_height_max_mm:g}mm  bg {s.background_color}"
        )
    lines.append("Sheets:")
    for sh in SHEET_SIZES.values():
        lines.append(f"  {sh.id:<10} {sh.name:<28} {sh.width_mm:g}x{sh.height_mm:g}mm")
    return "\n".join(lines)


def _format_spec_details(spec: PhysicalSpec) -> str:
    w, h = spec.output_size
    lines = [
        f"{spec.country} ({spec.id})",
        f"  Size:        {spec.width_mm:g}x{spec.height_mm:g}mm at {spec.dpi} dpi ({w}x{h}px)",
        f"  Head height: {spec.head_height_min_mm:g}-{spec.head_height_max_mm:g}mm",
        f"  Eye line:    {spec.eye_line_from_bottom:g}% of the height from the bottom",
        f"  Background:  {spec.background_color}",
    ]
    if spec.notes:
        lines.append("  Requirements:")
        lines.extend(f"    - {note}" for note in spec.notes)
    return "\n".join(lines)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Generate a country-spec ID photo and a printable sheet of copies.")
    p.add_argument("--input", "-i", help="Path to input image (jpg/png/etc)")
    p.add_argument("--output", "-o", help="Path to output photo (jpg/png)")
    p.add_argument("--country", "-c", default=DEFAULT_PHOTO_SPEC, help="Photo spec id (see --list)")
    p.add_argument("--sheet", help="Sheet size id to tile the photo on (see --list)")
    p.add_argument("--sheet-output", help="Path to output sheet (jpg/png/pdf)")
    p.add_argument("--sheet-preview", help="Path to a low-dpi sheet preview (jpg/png/pdf)")
    p.add_argument("--landscape", action="store_true", help="Turn the sheet 90 degrees before tiling")
    p.add_argument("--margin", type=float, help="Sheet margin in mm (default: 5)")
    p.add_argument("--gap", type=float, help="Gap between photos in mm (default: 2)")
    p.add_argument("--dpi", type=int, help="Sheet export dpi (default: 300)")
    p.add_argument("--preview-dpi", type=int, help="Sheet preview dpi (default: 150)")
    p.add_argument("--detector", choices=DETECTORS, help="Face detector backend")
    p.add_argument("--no-align", action="store_true", help="Skip face detection; use --scale/--offset-x/--offset-y")
    p.add_argument("--scale", type=float, default=1.0, help="Manual zoom (with --no-align)")
    p.add_argument("--offset-x", type=float, default=0.0, help="Manual pan offset in display px (with --no-align)")
    p.add_argument("--offset-y", type=float, default=0.0, help="Manual pan offset in display px (with --no-align)")
    p.add_argument("--remove-bg", action="store_true", help="Replace the background via rembg")
    p.add_argument("--validate", action="store_true", help="Print a compliance report for the photo")
    p.add_argument("--list", action="store_true", help="List photo specs and sheet sizes, then exit")
    p.add_argument("--show", metavar="ID", help="Show the requirements of one photo spec, then exit")
    p.add_argument("--log-level", help="Log level (default: INFO, or PHOTOSHEET_LOG_LEVEL)")
    p.add_argument("--log-file", help="Also log to this file")
    return p


def _settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    overrides: Dict[str, object] = {}
    if args.margin is not None:
        overrides["margin_mm"] = args.margin
    if args.gap is not None:
        overrides["gap_mm"] = args.gap
    if args.dpi is not None:
        overrides["export_dpi"] = args.dpi
    if args.preview_dpi is not None:
        overrides["preview_dpi"] = args.preview_dpi
    if args.detector is not None:
        overrides["detector"] = args.detector
    if args.remove_bg:
        overrides["remove_background"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.log_file:
        overrides["log_file"] = args.log_file
    return replace(base, **overrides)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    if args.list:
        print(_format_spec_table())
        return 0
    if args.show:
        try:
            print(_format_spec_details(get_photo_spec(args.show)))
        except PhotoSheetError as e:
            print(f"ERROR: {e.user_message()}", file=sys.stderr)
            return 2
        return 0
    if not args.input or not (args.output or args.sheet_output or args.sheet_preview):
        parser.error("--input and at least one of --output/--sheet-output/--sheet-preview are required")
    if (args.sheet_output or args.sheet_preview) and not args.sheet:
        parser.error("--sheet-output and --sheet-preview need --sheet")

    try:
        settings = _settings_from_args(args, load_settings())
        setup_logging(settings.log_level, settings.log_file)

        manual = None
        if args.no_align:
            manual = AlignmentResult(scale=args.scale, offset_x=args.offset_x, offset_y=args.offset_y)

        result = process_id_photo(
            input_path=args.input,
            output_path=args.output,
            spec_id=args.country,
            settings=settings,
            sheet_id=args.sheet,
            sheet_output=args.sheet_output,
            sheet_preview=args.sheet_preview,
            landscape=args.landscape,
            manual_view=manual,
            validate=args.validate,
        )
    except PhotoSheetError as e:
        print(f"ERROR: {e.user_message()}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if not result.aligned and not args.no_align:
        print("No face detected - position manually with --no-align --scale/--offset-x/--offset-y.", file=sys.stderr)
    if args.output:
        print(f"Saved: {args.output}")
    if result.layout is not None:
        print(f"Sheet: {result.layout.cols}x{result.layout.rows} = {result.layout.total} photos")
        if not result.layout.fits:
            print("Fits 0 photos on this sheet; choose a larger sheet or smaller margins.", file=sys.stderr)
        if args.sheet_output:
            print(f"Saved: {args.sheet_output}")
        if args.sheet_preview:
            print(f"Saved: {args.sheet_preview}")
    if result.report is not None:
        print(format_report_text(result.report))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
