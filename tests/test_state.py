import unittest

from PIL import Image

from tests._test_path import SRC  # noqa: F401

from photosheet.app.state import EditorSession
from photosheet.core.alignment import AlignmentResult
from photosheet.core.models import DisplayState, FaceBox
from photosheet.errors import InvalidInputError, NoFaceDetectedError, UnknownSpecError


class TestEditorSession(unittest.TestCase):
    def setUp(self):
        self.s = EditorSession()
        self.s.load_image(Image.new("RGB", (1000, 1500), (128, 128, 128)))

    def test_load_image_resets_view(self):
        self.s.zoom(2.0)
        self.s.drag(30, 40)
        self.s.load_image(Image.new("RGB", (640, 480)))
        self.assertEqual(self.s.display, DisplayState.initial(640, 480))

    def test_no_face_leaves_display_identical(self):
        self.s.zoom(1.7)
        self.s.drag(12.5, -3)
        before = self.s.display
        gen = self.s.generation
        with self.assertRaises(NoFaceDetectedError):
            self.s.auto_align(None)
        self.assertIs(self.s.display, before)
        self.assertEqual(self.s.generation, gen)

    def test_auto_align_applies_result(self):
        applied = self.s.auto_align(FaceBox(x=400, y=300, width=200, height=300))
        self.assertTrue(applied)
        self.assertNotEqual(self.s.display.scale, 1.0)
        self.assertEqual(self.s.display.natural_size, (1000, 1500))

    def test_stale_alignment_is_discarded(self):
        token = self.s.begin_detection()
        self.s.drag(5, 5)  # user moved the photo while detection was running
        before = self.s.display
        applied = self.s.apply_alignment(token, AlignmentResult(scale=2.0, offset_x=1, offset_y=2))
        self.assertFalse(applied)
        self.assertEqual(self.s.display, before)

    def test_spec_change_invalidates_detection(self):
        token = self.s.begin_detection()
        self.s.select_photo_spec("uk")
        self.assertFalse(self.s.auto_align(FaceBox(400, 300, 200, 300), token))

    def test_current_token_is_applied(self):
        token = self.s.begin_detection()
        self.assertTrue(self.s.apply_alignment(token, AlignmentResult(scale=2.0, offset_x=1, offset_y=2)))
        self.assertEqual(self.s.display.scale, 2.0)

    def test_drag_after_alignment_overrides_it(self):
        self.s.auto_align(FaceBox(400, 300, 200, 300))
        aligned = self.s.display
        self.s.drag(10, 0)
        self.assertAlmostEqual(self.s.display.offset_x, aligned.offset_x + 10 / aligned.scale)

    def test_render_crop_uses_spec_size(self):
        self.s.select_photo_spec("uk")
        photo = self.s.render_crop()
        self.assertEqual(photo.size, (413, 531))
        self.assertIs(self.s.cropped, photo)

    def test_edit_clears_cropped_photo(self):
        self.s.render_crop()
        self.s.zoom(1.2)
        self.assertIsNone(self.s.cropped)

    def test_landscape_sheet_is_rotated(self):
        gen = self.s.generation
        self.s.select_sheet("4x6", landscape=True)
        self.assertEqual((self.s.sheet_spec.width_mm, self.s.sheet_spec.height_mm), (152, 102))
        self.assertEqual(self.s.generation, gen)

    def test_unknown_spec(self):
        with self.assertRaises(UnknownSpecError):
            self.s.select_photo_spec("atlantis")

    def test_reset_clears_fields_and_restores_defaults(self):
        self.s.select_photo_spec("japan")
        self.s.select_sheet("a4")
        self.s.render_crop()

        self.s.reset()

        self.assertIsNone(self.s.source)
        self.assertIsNone(self.s.cropped)
        self.assertEqual(self.s.display, DisplayState())
        self.assertEqual(self.s.photo_spec.id, "us")
        self.assertEqual(self.s.sheet_spec.id, "4x6")

    def test_align_without_image(self):
        with self.assertRaises(InvalidInputError):
            EditorSession().auto_align(FaceBox(0, 0, 10, 10))
