import itertools
import unittest
from unittest.mock import patch

from PIL import Image

from tests._test_path import SRC  # noqa: F401

from photosheet.core import viewport as vp
from photosheet.core.models import CropRectangle, DisplayState
from photosheet.core.units import mm_to_inches, mm_to_pixels
from photosheet.data.photo_specs import get_photo_spec
from photosheet.errors import InvalidInputError, RenderTargetUnavailableError


class TestUnits(unittest.TestCase):
    def test_mm_to_pixels(self):
        self.assertEqual(mm_to_pixels(51, 300), 602)
        self.assertEqual(mm_to_pixels(25.4, 150), 150)

    def test_half_pixel_rounds_up(self):
        # 12.7mm at 1 dpi is exactly half a pixel
        self.assertEqual(mm_to_pixels(12.7, 1), 1)

    def test_mm_to_inches(self):
        self.assertAlmostEqual(mm_to_inches(50.8), 2.0)


class TestCropWindow(unittest.TestCase):
    def test_crop_window_follows_aspect(self):
        w, h = vp.crop_window_size(get_photo_spec("uk"), 320)
        self.assertAlmostEqual(w, 320 * 35 / 45)
        self.assertEqual(h, 320)

    def test_base_display_size(self):
        w, h = vp.base_display_size((200, 320), (1000, 2000))
        self.assertAlmostEqual(h, 480)
        self.assertAlmostEqual(w, 240)


class TestDisplayToSource(unittest.TestCase):
    def test_centered_at_scale_one(self):
        # Image 1000x1500 shown at 480 px tall -> 1 display px = 3.125 source px.
        d = DisplayState.initial(1000, 1500)
        crop = vp.display_to_source(d, (200, 320), (1000, 1500))
        self.assertAlmostEqual(crop.width, 200 * 3.125)
        self.assertAlmostEqual(crop.height, 320 * 3.125)
        self.assertAlmostEqual(crop.x, 500 - 100 * 3.125)
        self.assertAlmostEqual(crop.y, 750 - 160 * 3.125)

    def test_offset_is_scaled_with_image(self):
        # Moving right by offset 10 at scale 2 shifts the image 20 screen px,
        # i.e. the crop moves left by 20 / (scale * base px) in source px.
        natural = (1000, 1500)
        d0 = DisplayState(scale=2.0, natural_width=1000, natural_height=1500)
        d1 = DisplayState(scale=2.0, offset_x=10, natural_width=1000, natural_height=1500)
        c0 = vp.display_to_source(d0, (200, 320), natural)
        c1 = vp.display_to_source(d1, (200, 320), natural)
        px_per_screen = 1500 / (480 * 2.0)
        self.assertAlmostEqual(c0.x - c1.x, 20 * px_per_screen)

    def test_zoom_in_shrinks_crop(self):
        natural = (1000, 1500)
        c1 = vp.display_to_source(DisplayState(scale=1.0), (200, 320), natural)
        c2 = vp.display_to_source(DisplayState(scale=2.0), (200, 320), natural)
        self.assertAlmostEqual(c2.width, c1.width / 2)

    def test_crop_always_inside_bitmap(self):
        windows = [(200, 320), (320, 320), (228.5, 320)]
        naturals = [(1000, 1500), (4000, 3000), (37, 51)]
        scales = [0.5, 0.8, 1.0, 2.2, 3.0]
        offsets = [-5000, -150, 0, 42.5, 900]
        for win, nat, s, ox, oy in itertools.product(windows, naturals, scales, offsets, offsets):
            crop = vp.display_to_source(DisplayState(scale=s, offset_x=ox, offset_y=oy), win, nat)
            self.assertGreaterEqual(crop.x, 0)
            self.assertGreaterEqual(crop.y, 0)
            self.assertGreaterEqual(crop.width, 0)
            self.assertGreaterEqual(crop.height, 0)
            self.assertLessEqual(crop.x + crop.width, nat[0] + 1e-9)
            self.assertLessEqual(crop.y + crop.height, nat[1] + 1e-9)

    def test_idempotent(self):
        d = DisplayState(scale=1.37, offset_x=-12.25, offset_y=33.0)
        a = vp.display_to_source(d, (249, 320), (1234, 987))
        b = vp.display_to_source(d, (249, 320), (1234, 987))
        self.assertEqual(a, b)

    def test_image_panned_out_of_view_gives_empty_crop(self):
        crop = vp.display_to_source(DisplayState(offset_x=10000), (200, 320), (1000, 1500))
        self.assertTrue(crop.is_empty)

    def test_zero_natural_size_fails_fast(self):
        with self.assertRaises(InvalidInputError):
            vp.display_to_source(DisplayState(), (200, 320), (0, 1500))


class TestRenderOutput(unittest.TestCase):
    def test_exact_size_and_content(self):
        src = Image.new("RGB", (100, 100), (200, 10, 10))
        out = vp.render_output(src, CropRectangle(10, 10, 50, 50), (413, 531), "#FFFFFF")
        self.assertEqual(out.size, (413, 531))
        for got, want in zip(out.getpixel((200, 260)), (200, 10, 10)):
            self.assertLessEqual(abs(got - want), 1)

    def test_empty_crop_is_background(self):
        src = Image.new("RGB", (100, 100), (0, 0, 0))
        out = vp.render_output(src, CropRectangle(0, 0, 0, 0), (50, 60), "#336699")
        self.assertEqual(out.getpixel((25, 30)), (0x33, 0x66, 0x99))

    def test_transparent_source_shows_background(self):
        src = Image.new("RGBA", (40, 40), (255, 0, 0, 0))
        out = vp.render_output(src, CropRectangle(0, 0, 40, 40), (20, 20), "#FFFFFF")
        self.assertEqual(out.getpixel((10, 10)), (255, 255, 255))

    def test_deterministic(self):
        src = Image.linear_gradient("L").convert("RGB")
        crop = CropRectangle(12.3, 40.7, 100.2, 128.9)
        a = vp.render_output(src, crop, (80, 103))
        b = vp.render_output(src, crop, (80, 103))
        self.assertEqual(a.tobytes(), b.tobytes())

    def test_zero_size_source_rejected(self):
        with self.assertRaises(InvalidInputError):
            vp.render_output(Image.new("RGB", (0, 0)), CropRectangle(0, 0, 1, 1), (10, 10))

    def test_zero_size_canvas_rejected(self):
        with self.assertRaises(InvalidInputError):
            vp.render_output(Image.new("RGB", (5, 5)), CropRectangle(0, 0, 1, 1), (0, 10))

    def test_allocation_failure_raises_without_result(self):
        src = Image.new("RGB", (100, 100), (200, 10, 10))
        out = None
        with patch.object(vp.Image, "new", side_effect=MemoryError):
            with self.assertRaises(RenderTargetUnavailableError) as ctx:
                out = vp.render_output(src, CropRectangle(0, 0, 100, 100), (100000, 100000))
        self.assertIsNone(out)
        self.assertEqual(ctx.exception.details, {"width": 100000, "height": 100000})
        self.assertIsInstance(ctx.exception.__cause__, MemoryError)

    def test_output_pixel_size_matches_spec(self):
        self.assertEqual(vp.output_pixel_size(get_photo_spec("uk")), (413, 531))


class TestPanZoom(unittest.TestCase):
    def test_pan_returns_new_state(self):
        d = DisplayState(scale=2.0)
        d2 = vp.pan(d, 10, -4)
        self.assertEqual((d2.offset_x, d2.offset_y), (5.0, -2.0))
        self.assertEqual((d.offset_x, d.offset_y), (0.0, 0.0))

    def test_zoom_is_clamped(self):
        d = DisplayState()
        self.assertEqual(vp.zoom_to(d, 10).scale, vp.MAX_ZOOM)
        self.assertEqual(vp.zoom_to(d, 0.1).scale, vp.MIN_ZOOM)
        self.assertEqual(vp.zoom_to(d, 1.7).scale, 1.7)
