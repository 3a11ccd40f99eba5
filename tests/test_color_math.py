"""
Tests for color_math: conversions, interpolation, luminance and contrast.
Run from project root: python -m pytest tests/ -v
"""
import sys
import unittest
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from color_math import (
    adjust_lightness, adjust_saturation, contrast_ratio, hex_to_hsl, hex_to_rgb, hsl_to_hex,
    hue_distance, is_dark, lerp_color, normalize_hex, parse_hex, relative_luminance,
    rgb_array_to_hsl, rgb_to_hex, rgb_to_hsl, with_alpha,
)
from errors import InvalidInput


class TestHex(unittest.TestCase):

    def test_parse_six_and_eight_digits(self):
        self.assertEqual(parse_hex('#2D3440'), ((45, 52, 64), None))
        self.assertEqual(parse_hex('ffffff7f'), ((255, 255, 255), 127))

    def test_malformed_strings_raise_invalid_input(self):
        for bad in ('', '#fff', '#gggggg', '#1234567', 'red'):
            with self.assertRaises(InvalidInput):
                parse_hex(bad)
        with self.assertRaises(InvalidInput):
            parse_hex(None)

    def test_invalid_input_is_a_value_error(self):
        with self.assertRaises(ValueError):
            hex_to_rgb('#zzzzzz')

    def test_normalize_lowercases_and_keeps_alpha(self):
        self.assertEqual(normalize_hex('ABCDEF'), '#abcdef')
        self.assertEqual(normalize_hex('#ABCDEF7F'), '#abcdef7f')

    def test_rgb_to_hex_clamps_and_rounds(self):
        self.assertEqual(rgb_to_hex(300, -5, 127.5), '#ff0080')

    def test_with_alpha(self):
        self.assertEqual(with_alpha('#123456', '7F'), '#1234567f')
        self.assertEqual(with_alpha('#123456aa', '33'), '#12345633')


class TestHsl(unittest.TestCase):

    def test_round_trip_within_one_unit(self):
        for h in range(0, 360, 15):
            for s in (60, 80, 100):
                for l in (40, 50, 60):
                    back = hex_to_hsl(hsl_to_hex(h, s, l))
                    self.assertLessEqual(hue_distance(back.h, h), 1, (h, s, l, back))
                    self.assertLessEqual(abs(back.s - s), 1, (h, s, l, back))
                    self.assertLessEqual(abs(back.l - l), 1, (h, s, l, back))

    def test_achromatic_colors_have_zero_hue_and_saturation(self):
        self.assertEqual(rgb_to_hsl(128, 128, 128)[:2], (0.0, 0.0))
        self.assertEqual(hsl_to_hex(200, 0, 100), '#ffffff')

    def test_primaries(self):
        self.assertEqual(hsl_to_hex(0, 100, 50), '#ff0000')
        self.assertEqual(hsl_to_hex(120, 100, 50), '#00ff00')
        self.assertEqual(hsl_to_hex(240, 100, 50), '#0000ff')
        self.assertAlmostEqual(hex_to_hsl('#0000ff').h, 240)

    def test_hue_wraps(self):
        self.assertEqual(hsl_to_hex(360, 100, 50), hsl_to_hex(0, 100, 50))
        self.assertEqual(hsl_to_hex(-120, 100, 50), hsl_to_hex(240, 100, 50))

    def test_vectorized_matches_scalar(self):
        samples = [(255, 0, 0), (12, 200, 90), (30, 30, 30), (250, 240, 10), (40, 60, 200)]
        arr = rgb_array_to_hsl(np.array(samples))
        for row, rgb in zip(arr, samples):
            np.testing.assert_allclose(row, rgb_to_hsl(*rgb), atol=1e-9)


class TestInterpolation(unittest.TestCase):

    def test_hue_distance_is_circular(self):
        self.assertEqual(hue_distance(350, 10), 20)
        self.assertEqual(hue_distance(0, 180), 180)
        self.assertEqual(hue_distance(90, 90), 0)

    def test_lerp_takes_short_way_round(self):
        mid = lerp_color(hsl_to_hex(350, 100, 50), hsl_to_hex(10, 100, 50), 0.5)
        self.assertLessEqual(hue_distance(hex_to_hsl(mid).h, 0), 1)

    def test_lerp_endpoints(self):
        self.assertEqual(lerp_color('#2d3440', '#c8d0dc', 0), hsl_to_hex(*hex_to_hsl('#2d3440')))
        self.assertEqual(lerp_color('#000000', '#ffffff', 0.5), '#808080')

    def test_nudges_clamp(self):
        self.assertEqual(adjust_lightness('#ffffff', 10), '#ffffff')
        self.assertEqual(adjust_lightness('#000000', -10), '#000000')
        self.assertEqual(adjust_saturation('#808080', -20), '#808080')
        self.assertGreater(hex_to_hsl(adjust_lightness('#404040', 20)).l, hex_to_hsl('#404040').l)


class TestContrast(unittest.TestCase):

    def test_black_on_white_is_exactly_21(self):
        self.assertEqual(contrast_ratio('#000000', '#FFFFFF'), 21)
        self.assertEqual(contrast_ratio('#ffffff', '#000000'), 21)

    def test_identical_colors_have_ratio_one(self):
        self.assertEqual(contrast_ratio('#2d3440', '#2d3440'), 1)

    def test_luminance_extremes(self):
        self.assertEqual(relative_luminance('#000000'), 0)
        self.assertAlmostEqual(relative_luminance('#ffffff'), 1.0)

    def test_is_dark(self):
        self.assertTrue(is_dark('#2d3440'))
        self.assertFalse(is_dark('#c8d0dc'))


if __name__ == '__main__':
    unittest.main()
