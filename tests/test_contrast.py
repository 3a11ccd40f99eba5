"""
Tests for contrast validation and lightness correction.
"""
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from color_math import contrast_ratio, hex_to_hsl, hue_distance
from contrast import (
    BACKGROUND, CONTRAST_REQUIREMENTS, ContrastRequirement, adjust_for_contrast, correct_color,
    format_contrast_report, validate_contrast,
)
from derivation import resolve_roles
from errors import UnsatisfiableContrast
from roles import SemanticColorRoles


def dark_roles(**overrides):
    data = dict(
        tone='dark',
        surface_base='#2D3440',
        text_primary='#C8D0DC',
        accent_primary='#E8943A',
        accent_secondary='#3AB5C8',
    )
    data.update(overrides)
    return resolve_roles(SemanticColorRoles(**data))


class TestValidate(unittest.TestCase):

    def test_requirement_table(self):
        self.assertEqual(len(CONTRAST_REQUIREMENTS), 11)
        background_side = [r for r in CONTRAST_REQUIREMENTS if r.adjust == BACKGROUND]
        self.assertEqual({r.background_role for r in background_side}, {'accent_primary', 'accent_secondary'})

    def test_reports_every_failing_pair(self):
        roles = dark_roles(text_primary='#3a4050')
        issues = validate_contrast(roles)
        pairs = {(i.foreground_role, i.background_role) for i in issues}
        self.assertIn(('text_primary', 'surface_base'), pairs)
        for issue in issues:
            self.assertLess(issue.ratio, issue.required)
            self.assertEqual(issue.ratio, contrast_ratio(issue.foreground, issue.background))

    def test_report_format(self):
        self.assertEqual(format_contrast_report([]), 'All contrast checks passed.')
        report = format_contrast_report(validate_contrast(dark_roles(text_primary='#3a4050')))
        self.assertIn('FAIL: text_primary (#3a4050) on surface_base', report)


class TestCorrection(unittest.TestCase):

    def test_corrected_roles_pass_every_requirement(self):
        for text in ('#3a4050', '#5a6070', '#c8d0dc'):
            corrected = adjust_for_contrast(dark_roles(text_primary=text))
            self.assertEqual(validate_contrast(corrected), [], text)
            for req in CONTRAST_REQUIREMENTS:
                ratio = contrast_ratio(corrected.color(req.foreground_role), corrected.color(req.background_role))
                self.assertGreaterEqual(ratio, req.min_ratio)

    def test_input_is_not_mutated(self):
        roles = dark_roles(text_primary='#3a4050')
        corrected = adjust_for_contrast(roles)
        self.assertEqual(roles.text_primary, '#3a4050')
        self.assertNotEqual(corrected.text_primary, roles.text_primary)

    def test_passing_roles_are_unchanged(self):
        roles = adjust_for_contrast(dark_roles())
        self.assertEqual(adjust_for_contrast(roles), roles)

    def test_adjustment_is_small_and_keeps_hue(self):
        roles = dark_roles(text_primary='#40506a')
        corrected = adjust_for_contrast(roles)
        text_ratios = [contrast_ratio(corrected.text_primary, corrected.color(bg))
                       for bg in ('surface_base', 'surface_highlight', 'detail_bg', 'control_bg')]
        self.assertGreaterEqual(min(text_ratios), 4.5)
        self.assertLess(min(text_ratios), 5.0)
        self.assertLessEqual(hue_distance(hex_to_hsl(corrected.text_primary).h, hex_to_hsl('#40506a').h), 5)

    def test_background_side_adjusts_accent(self):
        icon_on_accent = (ContrastRequirement('selection_fg', 'accent_primary', 3.0, adjust=BACKGROUND),)
        roles = dark_roles(accent_primary='#303060')
        corrected = adjust_for_contrast(roles, icon_on_accent)
        self.assertEqual(corrected.selection_fg, roles.selection_fg)
        self.assertNotEqual(corrected.accent_primary, roles.accent_primary)
        self.assertGreaterEqual(contrast_ratio(corrected.selection_fg, corrected.accent_primary), 3.0)
        self.assertGreater(hex_to_hsl(corrected.accent_primary).l, hex_to_hsl(roles.accent_primary).l)
        self.assertEqual(validate_contrast(adjust_for_contrast(roles)), [])

    def test_direction_follows_counterpart(self):
        lighter, ok = correct_color('#555555', '#000000', 7.0)
        self.assertTrue(ok)
        self.assertGreater(hex_to_hsl(lighter).l, hex_to_hsl('#555555').l)

        darker, ok = correct_color('#aaaaaa', '#ffffff', 7.0)
        self.assertTrue(ok)
        self.assertLess(hex_to_hsl(darker).l, hex_to_hsl('#aaaaaa').l)

    def test_unsatisfiable_pair_is_flagged(self):
        impossible = (ContrastRequirement('text_primary', 'surface_base', 22.0),)
        roles = dark_roles()

        with self.assertLogs('contrast', level='WARNING'):
            corrected = adjust_for_contrast(roles, impossible)
        issues = validate_contrast(corrected, impossible)
        self.assertEqual(len(issues), 1)
        self.assertEqual(hex_to_hsl(corrected.text_primary).l, 100)

        with self.assertRaises(UnsatisfiableContrast) as cm:
            adjust_for_contrast(roles, impossible, strict=True)
        self.assertEqual(len(cm.exception.issues), 1)
        self.assertEqual(cm.exception.roles.text_primary, corrected.text_primary)


if __name__ == '__main__':
    unittest.main()
