"""
Face detectors.

A detector is any callable `detect(image) -> FaceBox | None` returning the
largest face in native pixel coordinates of `image`.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, Optional

import cv2
import numpy as np
from loguru import logger
from PIL import Image

from photosheet.core.models import FaceBox
from photosheet.errors import InvalidInputError

FaceDetector = Callable[[Image.Image], Optional[FaceBox]]


def _pil_to_bgr_np(img: Image.Image) -> np.ndarray:
    """PIL -> OpenCV BGR numpy array."""
    arr = np.array(img.convert("RGB"))
    return cv2.cvtColor(arr, cv2.COLOR_RGB2BGR)


def _clip_box(x: float, y: float, w: float, h: float, img_w: int, img_h: int) -> Optional[FaceBox]:
    x0 = max(0.0, x)
    y0 = max(0.0, y)
    x1 = min(float(img_w), x + w)
    y1 = min(float(img_h), y + h)
    if x1 <= x0 or y1 <= y0:
        return None
    return FaceBox(x=x0, y=y0, width=x1 - x0, height=y1 - y0)


def detect_face_mediapipe(img: Image.Image, min_confidence: float = 0.5) -> Optional[FaceBox]:
    """
    MediaPipe face detection (full-range model). Returns the largest face or None.
    """
    import mediapipe as mp

    rgb = np.array(img.convert("RGB"))
    h, w = rgb.shape[:2]

    with mp.solutions.face_detection.FaceDetection(
        model_selection=1,
        min_detection_confidence=min_confidence,
    ) as detector:
        results = detector.process(rgb)

    if not results.detections:
        return None

    boxes = []
    for det in results.detections:
        rel = det.location_data.relative_bounding_box
        box = _clip_box(rel.xmin * w, rel.ymin * h, rel.width * w, rel.height * h, w, h)
        if box is not None:
            boxes.append(box)
    if not boxes:
        return None
    return max(boxes, key=lambda b: b.width * b.height)


def detect_face_haar(img: Image.Image) -> Optional[FaceBox]:
    """OpenCV frontal-face Haar cascade. Returns the largest face or None."""
    bgr = _pil_to_bgr_np(img)
    gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
    cascade = cv2.CascadeClassifier(cv2.data.haarcascades + "haarcascade_frontalface_default.xml")
    faces = cascade.detectMultiScale(gray, scaleFactor=1.1, minNeighbors=5, minSize=(30, 30))
    if len(faces) == 0:
        return None
    x, y, fw, fh = max(faces, key=lambda r: r[2] * r[3])
    return FaceBox(x=float(x), y=float(y), width=float(fw), height=float(fh))


_DETECTORS = {
    "mediapipe": detect_face_mediapipe,
    "haar": detect_face_haar,
}


def get_detector(name: str) -> FaceDetector:
    try:
        return _DETECTORS[name]
    except KeyError:
        raise InvalidInputError(
            f"Unknown detector '{name}'.", suggestions=[f"Use one of: {', '.join(_DETECTORS)}"]
        ) from None


def detect_with_timeout(detector: FaceDetector, img: Image.Image, timeout: Optional[float]) -> Optional[FaceBox]:
    """
    Run `detector` with a deadline. A result that misses the deadline is
    treated exactly like "no face".
    """
    if timeout is None:
        return detector(img)

    pool = ThreadPoolExecutor(max_workers=1)
    future = pool.submit(detector, img)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("face detection exceeded {:.1f}s; treating as no face", timeout)
        future.cancel()
        return None
    finally:
        pool.shutdown(wait=False)
