"""
Per-country photo specifications and printable sheet sizes.

All dimensions are millimetres. Both tables are read-only mappings built once
at import time.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from photosheet.core.models import PhysicalSpec, SheetSpec
from photosheet.errors import UnknownSpecError

_PHOTO_SPECS = (
    PhysicalSpec(
        id="us",
        country="United States",
        width_mm=51,
        height_mm=51,
        dpi=300,
        head_height_min_mm=25,
        head_height_max_mm=35,
        eye_line_from_bottom=56,
        notes=(
            'Head must be between 1" and 1 3/8" (25-35mm)',
            'Eyes between 1 1/8" and 1 3/8" from bottom',
            "White or off-white background",
            "Taken within last 6 months",
        ),
    ),
    PhysicalSpec(
        id="uk",
        country="United Kingdom",
        width_mm=35,
        height_mm=45,
        dpi=300,
        head_height_min_mm=29,
        head_height_max_mm=34,
        eye_line_from_bottom=60,
        notes=(
            "Head height 29-34mm",
            "Plain cream or light grey background",
            "No shadows on face or background",
            "Neutral expression, mouth closed",
        ),
    ),
    PhysicalSpec(
        id="eu",
        country="European Union (Schengen)",
        width_mm=35,
        height_mm=45,
        dpi=300,
        head_height_min_mm=32,
        head_height_max_mm=36,
        eye_line_from_bottom=60,
        notes=(
            "Face must cover 70-80% of photo",
            "Light grey or light blue background",
            "Neutral expression required",
            "ICAO compliant",
        ),
    ),
    PhysicalSpec(
        id="india",
        country="India",
        width_mm=35,
        height_mm=45,
        dpi=300,
        head_height_min_mm=25,
        head_height_max_mm=35,
        eye_line_from_bottom=55,
        notes=(
            "White background only",
            "Face should cover 50-60% of photo",
            "Both ears must be visible",
            "Taken within last 3 months",
        ),
    ),
    PhysicalSpec(
        id="china",
        country="China",
        width_mm=33,
        height_mm=48,
        dpi=300,
        head_height_min_mm=28,
        head_height_max_mm=33,
        eye_line_from_bottom=55,
        notes=(
            "White background required",
            "Head height 28-33mm",
            "Face centered in frame",
            "No glasses allowed",
        ),
    ),
    PhysicalSpec(
        id="canada",
        country="Canada",
        width_mm=50,
        height_mm=70,
        dpi=300,
        head_height_min_mm=31,
        head_height_max_mm=36,
        eye_line_from_bottom=50,
        notes=(
            "Face height 31-36mm",
            "White or light-colored background",
            "Neutral expression",
            "Taken within last 12 months",
        ),
    ),
    PhysicalSpec(
        id="australia",
        country="Australia",
        width_mm=35,
        height_mm=45,
        dpi=300,
        head_height_min_mm=32,
        head_height_max_mm=36,
        eye_line_from_bottom=58,
        notes=(
            "Head and shoulders only",
            "Plain light background",
            "Mouth closed, neutral expression",
            "No head coverings (except religious)",
        ),
    ),
    PhysicalSpec(
        id="japan",
        country="Japan",
        width_mm=35,
        height_mm=45,
        dpi=300,
        head_height_min_mm=27,
        head_height_max_mm=40,
        eye_line_from_bottom=55,
        notes=(
            "Plain white or light background",
            "Face clearly visible",
            "No hats or sunglasses",
            "Taken within last 6 months",
        ),
    ),
)

_SHEET_SIZES = (
    SheetSpec(id="4x6", name='4x6" (Standard Photo)', width_mm=102, height_mm=152),
    SheetSpec(id="5x7", name='5x7"', width_mm=127, height_mm=178),
    SheetSpec(id="a4", name="A4 (210x297mm)", width_mm=210, height_mm=297),
    SheetSpec(id="letter", name='US Letter (8.5x11")', width_mm=216, height_mm=279),
)

PHOTO_SPECS: Mapping[str, PhysicalSpec] = MappingProxyType({s.id: s for s in _PHOTO_SPECS})
SHEET_SIZES: Mapping[str, SheetSpec] = MappingProxyType({s.id: s for s in _SHEET_SIZES})

DEFAULT_PHOTO_SPEC = "us"
DEFAULT_SHEET = "4x6"


def get_photo_spec(spec_id: str) -> PhysicalSpec:
    try:
        return PHOTO_SPECS[spec_id.lower()]
    except KeyError:
        raise UnknownSpecError("photo spec", spec_id, list(PHOTO_SPECS)) from None


def get_sheet_spec(sheet_id: str) -> SheetSpec:
    try:
        return SHEET_SIZES[sheet_id.lower()]
    except KeyError:
        raise UnknownSpecError("sheet size", sheet_id, list(SHEET_SIZES)) from None
