import importlib.util
import time
import unittest
from unittest import skipIf

from PIL import Image

from tests._test_path import SRC  # noqa: F401

from photosheet.core.models import FaceBox


def _can_import(name: str) -> bool:
    return importlib.util.find_spec(name) is not None


@skipIf(not _can_import("cv2"), "OpenCV not available")
class TestFaceDetectorHelpers(unittest.TestCase):
    def setUp(self):
        from photosheet.detection import face_detector
        self.fd = face_detector

    def test_pil_to_bgr(self):
        img = Image.new("RGB", (2, 1), (10, 20, 30))
        bgr = self.fd._pil_to_bgr_np(img)
        self.assertEqual(bgr.shape, (1, 2, 3))
        self.assertEqual(tuple(bgr[0, 0]), (30, 20, 10))

    def test_clip_box(self):
        box = self.fd._clip_box(-10, 5, 50, 20, img_w=30, img_h=100)
        self.assertEqual(box, FaceBox(0, 5, 30, 20))
        self.assertIsNone(self.fd._clip_box(40, 5, 10, 10, img_w=30, img_h=100))

    def test_haar_on_blank_image_finds_nothing(self):
        self.assertIsNone(self.fd.detect_face_haar(Image.new("RGB", (200, 200), (255, 255, 255))))

    def test_get_detector(self):
        self.assertIs(self.fd.get_detector("haar"), self.fd.detect_face_haar)
        with self.assertRaises(ValueError):
            self.fd.get_detector("nope")

    def test_timeout_counts_as_no_face(self):
        def slow(_img):
            time.sleep(0.5)
            return FaceBox(0, 0, 1, 1)

        self.assertIsNone(self.fd.detect_with_timeout(slow, Image.new("RGB", (4, 4)), timeout=0.05))

    def test_result_within_deadline(self):
        box = FaceBox(1, 2, 3, 4)
        self.assertEqual(self.fd.detect_with_timeout(lambda _img: box, Image.new("RGB", (4, 4)), timeout=5), box)
        self.assertEqual(self.fd.detect_with_timeout(lambda _img: box, Image.new("RGB", (4, 4)), timeout=None), box)
