"""
End-to-end tests: config loading, theme generation, rendering and the CLIs.
"""
import io
import json
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

import numpy as np
from PIL import Image

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import analyze
import batch_analyze
import profile_analyze
from color_math import hex_to_hsl, hue_distance, is_dark
from contrast import ContrastRequirement
from errors import InvalidInput, UnsatisfiableContrast
from analyze import (
    ThemeGenerator, generate_theme, plot_neutral_scale, render, render_html, theme_from_image,
    theme_to_dict,
)
from roles import SemanticColorRoles, Tone
from theme_config import default_theme_config, load_theme_config

SAMPLE_ROLES = SemanticColorRoles(
    tone='dark',
    surface_base='#2D3440',
    text_primary='#C8D0DC',
    accent_primary='#E8943A',
    accent_secondary='#3AB5C8',
)


def write_sample_image(path):
    """Dark canvas with a light text stripe and an orange accent block."""
    pixels = np.zeros((60, 80, 3), dtype=np.uint8)
    pixels[:] = (0x1e, 0x22, 0x30)
    pixels[5:15, :, :] = (0xe6, 0xe6, 0xe6)
    pixels[40:50, 50:70, :] = (0xe8, 0x94, 0x3a)
    Image.fromarray(pixels, 'RGB').save(path)


class TestThemeConfig(unittest.TestCase):

    def test_bundled_config(self):
        config = default_theme_config()
        self.assertEqual(len(config.parameters), 236)
        self.assertEqual(set(config.blend_factors), {'dark', 'light'})
        self.assertEqual(len(config.vu_meters), 7)

    def test_custom_config_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'rules.yaml'
            path.write_text(
                "parameters:\n"
                "  Desktop: {type: role, source: surface_base}\n"
                "  StandbySelectionBackground: {type: derived}\n"
                "blend_factors:\n"
                "  dark: {ClipContrastColorAdjustment: -15}\n"
                "  light: {ClipContrastColorAdjustment: 10}\n"
            )
            config = load_theme_config(path)
        self.assertEqual(list(config.parameters), ['Desktop', 'StandbySelectionBackground'])
        self.assertEqual(config.vu_meters, {})

        theme = generate_theme(SAMPLE_ROLES, config)
        self.assertEqual(theme.parameters['Desktop'], '#2d3440')
        self.assertEqual(len(theme.parameters), 2)
        self.assertEqual(theme.blend_factors['ClipContrastColorAdjustment'], -15)

    def test_empty_rule_table_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'rules.yaml'
            path.write_text("parameters: []\n")
            with self.assertRaises(InvalidInput):
                load_theme_config(path)

    def test_unparseable_yaml_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'rules.yaml'
            path.write_text("parameters: {Desktop: [unclosed\n")
            with self.assertRaises(InvalidInput):
                load_theme_config(path)

    def test_missing_config_file(self):
        with self.assertRaises(FileNotFoundError):
            load_theme_config(Path('/nonexistent/rules.yaml'))


class TestGenerateTheme(unittest.TestCase):

    def test_anchor_roles(self):
        theme = generate_theme(SAMPLE_ROLES)
        self.assertEqual(theme.contrast_issues, ())
        self.assertEqual(len(theme.parameters), 236)
        self.assertEqual(theme.roles.surface_base, '#2d3440')
        self.assertEqual(len(theme.neutral_scale.stops()), 13)

    def test_strict_generator_raises(self):
        impossible = (ContrastRequirement('text_primary', 'surface_base', 22.0),)
        with self.assertRaises(UnsatisfiableContrast):
            ThemeGenerator(requirements=impossible, strict=True).generate(SAMPLE_ROLES)

    def test_without_correction_issues_are_reported(self):
        partial = SemanticColorRoles(
            tone='dark',
            surface_base='#2D3440',
            text_primary='#3a4050',
            accent_primary='#E8943A',
            accent_secondary='#3AB5C8',
        )
        theme = ThemeGenerator(correct_contrast=False).generate(partial)
        self.assertTrue(theme.contrast_issues)
        self.assertEqual(theme.roles.text_primary, '#3a4050')


class TestThemeFromImage(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.image = Path(self.tmp.name) / 'sample.png'
        write_sample_image(self.image)

    def tearDown(self):
        self.tmp.cleanup()

    def test_pipeline_picks_roles_from_image(self):
        selection, theme = theme_from_image(str(self.image))
        roles = theme.roles
        self.assertEqual(roles.tone, Tone.DARK)
        self.assertTrue(is_dark(roles.surface_base))
        self.assertFalse(is_dark(roles.text_primary))
        self.assertLessEqual(hue_distance(hex_to_hsl(roles.accent_primary).h, hex_to_hsl('#e8943a').h), 5)
        self.assertIn('surface_base', selection.role_locations)
        self.assertEqual(len(theme.parameters), 236)
        self.assertEqual(theme.contrast_issues, ())

    def test_forced_light_tone(self):
        _, theme = theme_from_image(str(self.image), tone=Tone.LIGHT)
        self.assertEqual(theme.roles.tone, Tone.LIGHT)
        self.assertFalse(is_dark(theme.roles.surface_base))

    def test_dict_is_json_ready(self):
        selection, theme = theme_from_image(str(self.image))
        data = json.loads(json.dumps(theme_to_dict(theme, selection)))
        self.assertEqual(data['tone'], 'dark')
        self.assertNotIn('tone', data['roles'])
        self.assertEqual(len(data['parameters']), 236)
        self.assertIn('n5_border', data['neutral_scale'])
        self.assertTrue(data['source']['extracted_colors'])

    def test_renderers(self):
        selection, theme = theme_from_image(str(self.image))
        text = render(selection, theme)
        self.assertTrue(text.startswith('THEME: dark'))
        self.assertIn('All contrast checks passed.', text)
        html = render_html(selection, theme, str(self.image))
        self.assertTrue(html.startswith('<!DOCTYPE html>'))
        self.assertIn(theme.roles.accent_primary, html)

    def test_plot_neutral_scale(self):
        import matplotlib
        matplotlib.use('Agg')

        _, theme = theme_from_image(str(self.image))
        output = Path(self.tmp.name) / 'scale.png'
        plot_neutral_scale(theme, str(output))
        self.assertTrue(output.exists())


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.image = self.dir / 'sample.png'
        write_sample_image(self.image)

    def tearDown(self):
        self.tmp.cleanup()

    def test_json_to_stdout(self):
        out = io.StringIO()
        with redirect_stdout(out):
            analyze.main(['-i', str(self.image), '--json'])
        data = json.loads(out.getvalue())
        self.assertEqual(data['tone'], 'dark')

    def test_report_files(self):
        out = io.StringIO()
        with redirect_stdout(out):
            analyze.main(['-i', str(self.image), '-o', '--json', str(self.dir / 'theme.json')])
        self.assertIn('THEME: dark', out.getvalue())
        self.assertTrue((self.dir / 'sample-theme.html').exists())
        self.assertTrue((self.dir / 'theme.json').exists())

    def test_missing_image_exits_with_error(self):
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as cm:
            analyze.main(['-i', str(self.dir / 'missing.png')])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn('Error', err.getvalue())

    def test_batch(self):
        write_sample_image(self.dir / 'second.png')
        output = self.dir / 'out'
        with redirect_stdout(io.StringIO()):
            batch_analyze.main(['-i', str(self.dir), '-o', str(output)])
        for stem in ('sample', 'second'):
            self.assertTrue((output / f'{stem}-theme.json').exists())
            self.assertTrue((output / f'{stem}-theme.html').exists())

    def test_batch_without_images(self):
        empty = self.dir / 'empty'
        empty.mkdir()
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit) as cm:
            batch_analyze.main(['-i', str(empty), '-o', str(self.dir / 'out')])
        self.assertEqual(cm.exception.code, 2)

    def test_profile_stages(self):
        timings, colors = profile_analyze.profile_image(str(self.image), verbose=False)
        self.assertEqual(list(timings), ['load_pixels', 'extract_colors', 'select_palette',
                                         'generate_theme', 'render', 'total'])
        self.assertEqual(len(colors), 3)


if __name__ == '__main__':
    unittest.main()
