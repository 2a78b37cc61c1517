from __future__ import annotations

from typing import Any, List, Optional, TYPE_CHECKING

import numpy as np
from loguru import logger
from PIL import Image, ImageColor

from photosheet.core.models import FaceBox, PhysicalSpec
from photosheet.validation.report import RuleResult, ValidationReport

if TYPE_CHECKING:
    from photosheet.detection.face_detector import FaceDetector

CENTERING_TOLERANCE = 0.08
BACKGROUND_TOLERANCE = 24
BACKGROUND_MIN_RATIO = 0.95


def _pil_to_np_rgb(img: Image.Image) -> np.ndarray:
    return np.asarray(img.convert("RGB"), dtype=np.uint8)


def _border_pixels(img_rgb: np.ndarray, margin: int) -> np.ndarray:
    h, w, _ = img_rgb.shape
    m = max(1, min(margin, h // 2, w // 2))
    return np.concatenate(
        [
            img_rgb[:m, :, :].reshape(-1, 3),
            img_rgb[h - m :, :, :].reshape(-1, 3),
            img_rgb[:, :m, :].reshape(-1, 3),
            img_rgb[:, w - m :, :].reshape(-1, 3),
        ],
        axis=0,
    )


def _background_match_ratio(img_rgb: np.ndarray, color: str, margin: int, tol: int = BACKGROUND_TOLERANCE) -> float:
    border = _border_pixels(img_rgb, margin).astype(np.int16)
    if not border.size:
        return 0.0
    target = np.array(ImageColor.getrgb(color)[:3], dtype=np.int16)
    mask = (np.abs(border - target) <= tol).all(axis=1)
    return float(mask.mean())


def _lighting_metrics(img_rgb: np.ndarray) -> dict[str, Any]:
    gray = (0.2126 * img_rgb[:, :, 0] + 0.7152 * img_rgb[:, :, 1] + 0.0722 * img_rgb[:, :, 2]).astype(np.float32)
    return {
        "luma_mean": float(gray.mean()),
        "luma_std": float(gray.std()),
        "dark_clip": float((gray <= 10).mean()),
        "bright_clip": float((gray >= 245).mean()),
    }


def _detect(detector: Optional[FaceDetector], photo: Image.Image) -> Optional[FaceBox]:
    if detector is None:
        return None
    return detector(photo)


def validate_id_photo(
    photo: Image.Image,
    spec: PhysicalSpec,
    detector: Optional[FaceDetector] = None,
) -> ValidationReport:
    """
    Check a finished ID photo against `spec`.

    Rules are best-effort heuristics intended for user guidance, not an official
    adjudication. Head height and centering need a detector; without one (or
    without a face) those rules fail with a hint.

    Head height is approximated by the detector's face-box height. Face boxes
    usually stop at the forehead, so the measured value reads low compared to a
    chin-to-crown measurement.
    """
    results: List[RuleResult] = []

    # Size
    w, h = photo.size
    exp_w, exp_h = spec.output_size
    size_ok = (w, h) == (exp_w, exp_h)
    results.append(
        RuleResult(
            rule_id="Size",
            passed=size_ok,
            message=f"{w}x{h} pixels (expected {exp_w}x{exp_h} at {spec.dpi} dpi).",
            metrics={"width": w, "height": h, "expected": [exp_w, exp_h]},
        )
    )

    img_rgb = _pil_to_np_rgb(photo)
    face = _detect(detector, photo)

    # Head height, in printed millimetres
    lo, hi = spec.head_height_min_mm, spec.head_height_max_mm
    if face is None:
        results.append(
            RuleResult(
                rule_id="Head height",
                passed=False,
                message="Could not detect a face (needed for head size check).",
                metrics={"head_mm": None, "range_mm": [lo, hi]},
            )
        )
    else:
        # face box height approximates chin-to-crown
        head_mm = face.height / float(h) * spec.height_mm
        ok = lo <= head_mm <= hi
        msg = f"{head_mm:.1f}mm face box, crown not included (target {lo:g}-{hi:g}mm)."
        if not ok:
            msg += " Zoom in or out so the head fills the guide oval."
        results.append(
            RuleResult(
                rule_id="Head height",
                passed=ok,
                message=msg,
                metrics={"head_mm": head_mm, "head_px": face.height, "range_mm": [lo, hi]},
            )
        )

    # Centering
    center_x = w / 2.0
    if face is None:
        results.append(
            RuleResult(
                rule_id="Centering",
                passed=False,
                message="Could not detect a face (needed for centering check).",
                metrics={"face_x": None, "center_x": center_x},
            )
        )
    else:
        dx = face.center[0] - center_x
        tol = CENTERING_TOLERANCE * w
        ok = abs(dx) <= tol
        msg = f"Face offset {dx:+.0f}px (tolerance ±{tol:.0f}px)."
        if not ok:
            msg += " Drag the photo so the face sits in the middle of the oval."
        results.append(
            RuleResult(
                rule_id="Centering",
                passed=ok,
                message=msg,
                metrics={"face_x": face.center[0], "center_x": center_x, "dx_px": dx, "tolerance_px": tol},
            )
        )

    # Background color along the border
    margin = max(10, int(0.05 * min(h, w)))
    ratio = _background_match_ratio(img_rgb, spec.background_color, margin=margin)
    bg_ok = ratio >= BACKGROUND_MIN_RATIO
    bg_msg = f"Border pixels matching {spec.background_color}: {ratio*100:.1f}% (target ≥ {BACKGROUND_MIN_RATIO*100:.0f}%)."
    if not bg_ok:
        bg_msg += " Use a plain background or enable background removal."
    results.append(
        RuleResult(
            rule_id="Background",
            passed=bg_ok,
            message=bg_msg,
            metrics={"match_ratio": ratio, "margin_px": margin, "color": spec.background_color},
        )
    )

    # Lighting heuristics
    lmets = _lighting_metrics(img_rgb)
    ok_mean = 60.0 <= lmets["luma_mean"] <= 210.0
    ok_clip = lmets["dark_clip"] <= 0.02 and lmets["bright_clip"] <= 0.02
    ok_std = 15.0 <= lmets["luma_std"] <= 90.0
    light_ok = ok_mean and ok_clip and ok_std
    light_msg = (
        f"Mean {lmets['luma_mean']:.0f}, Std {lmets['luma_std']:.0f}, "
        f"Clip(D/B) {lmets['dark_clip']*100:.1f}%/{lmets['bright_clip']*100:.1f}%."
    )
    if not light_ok:
        light_msg += " Avoid harsh shadows/backlight; use even front lighting."
    results.append(RuleResult(rule_id="Lighting", passed=light_ok, message=light_msg, metrics=lmets))

    report = ValidationReport(spec_id=spec.id, results=results)
    logger.info("validation for {}: {}", spec.id, "PASS" if report.passed else f"FAIL {report.failed_rules}")
    return report


def format_report_text(report: ValidationReport) -> str:
    lines: List[str] = []
    lines.append(f"ID Photo Compliance Report ({report.spec_id})")
    lines.append("-" * 32)
    lines.append(f"Overall: {'PASS' if report.passed else 'FAIL'}")
    lines.append("")
    for r in report.results:
        mark = "✅" if r.passed else "❌"
        lines.append(f"{mark} {r.rule_id}: {r.message}")
    return "\n".join(lines)
