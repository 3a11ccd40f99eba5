#!/usr/bin/env python3
"""
Unified theme generation pipeline.

Turns an image (or a hand-picked set of semantic roles) into a complete theme
and renders it as prose, JSON or an HTML swatch report.
Stages: Extraction → Role Selection → Resolution → Contrast Correction → Scale & Parameters
"""

import json
import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional, Sequence

from color_math import hex_to_hsl, is_dark
from contrast import (
    CONTRAST_REQUIREMENTS, ContrastRequirement, adjust_for_contrast,
    format_contrast_report, validate_contrast,
)
from derivation import (
    NeutralScale, build_neutral_scale, generate_parameters, get_blend_factors,
    get_vu_meters, resolve_roles,
)
from errors import UnsatisfiableContrast
from extract_colors import DEFAULT_COLOR_COUNT, extract_colors, load_pixels, visualize_colors
from palette_selection import PaletteSelection, VariantMode, select_palette
from roles import ContrastLevel, ResolvedColorRoles, SemanticColorRoles, Tone
from theme_config import ThemeConfig, VuMeterGradient, default_theme_config, load_theme_config

logger = logging.getLogger(__name__)


# =============================================================================
# Theme Generation
# =============================================================================

@dataclass(frozen=True)
class ThemeData:
    """Everything a theme document writer needs."""
    roles: ResolvedColorRoles
    neutral_scale: NeutralScale
    parameters: Mapping[str, str]
    vu_meters: Mapping[str, VuMeterGradient]
    blend_factors: Mapping[str, float]
    contrast_issues: tuple = field(default_factory=tuple)  # Residual after correction


class ThemeGenerator:
    """
    Composed pipeline with its configuration fixed at construction.

    Args:
        config: Rule table, blend factors and VU meters (default: bundled YAML)
        requirements: Contrast pairs to validate and enforce
        correct_contrast: Nudge failing roles before building the scale
        strict: Raise UnsatisfiableContrast instead of reporting residual issues
    """

    def __init__(self, config: Optional[ThemeConfig] = None,
                 requirements: Sequence[ContrastRequirement] = CONTRAST_REQUIREMENTS,
                 correct_contrast: bool = True,
                 strict: bool = False):
        self.config = config or default_theme_config()
        self.requirements = tuple(requirements)
        self.correct_contrast = correct_contrast
        self.strict = strict

    def generate(self, partial: SemanticColorRoles) -> ThemeData:
        roles = resolve_roles(partial)
        if self.correct_contrast:
            roles = adjust_for_contrast(roles, self.requirements, strict=self.strict)
        issues = validate_contrast(roles, self.requirements)

        scale = build_neutral_scale(roles)
        return ThemeData(
            roles=roles,
            neutral_scale=scale,
            parameters=generate_parameters(roles, scale, self.config.parameters),
            vu_meters=get_vu_meters(self.config),
            blend_factors=get_blend_factors(roles.tone, self.config),
            contrast_issues=tuple(issues),
        )


def generate_theme(partial: SemanticColorRoles, config: Optional[ThemeConfig] = None) -> ThemeData:
    """Resolve, correct and expand a role set with the default pipeline."""
    return ThemeGenerator(config).generate(partial)


def theme_from_image(image_path: str,
                     tone: Optional[Tone] = None,
                     variant: VariantMode = VariantMode.BALANCED,
                     color_count: int = DEFAULT_COLOR_COUNT,
                     contrast_level: Optional[ContrastLevel] = None,
                     config: Optional[ThemeConfig] = None,
                     strict: bool = False) -> tuple[PaletteSelection, ThemeData]:
    """Run the full pipeline on an image file.

    Returns:
        Tuple of (palette_selection, theme_data)
    """
    # Stage 1: Extraction
    colors = extract_colors(load_pixels(image_path), color_count=color_count)

    # Stage 2: Role Selection
    selection = select_palette(colors, tone=tone, variant=variant)
    if contrast_level is not None:
        selection = replace(selection, roles=replace(selection.roles, contrast_level=contrast_level))

    # Stages 3-5
    theme = ThemeGenerator(config, strict=strict).generate(selection.roles)
    return selection, theme


# =============================================================================
# Render
# =============================================================================

def theme_to_dict(theme: ThemeData, selection: Optional[PaletteSelection] = None) -> dict:
    """JSON-ready rendition of a theme, optionally with its image source data."""
    data = {
        'tone': theme.roles.tone.value,
        'roles': theme.roles.as_dict(),
        'neutral_scale': theme.neutral_scale.as_dict(),
        'parameters': dict(theme.parameters),
        'blend_factors': dict(theme.blend_factors),
        'vu_meters': {name: asdict(meter) for name, meter in theme.vu_meters.items()},
        'contrast_issues': [asdict(issue) for issue in theme.contrast_issues],
    }
    del data['roles']['tone']

    if selection is not None:
        data['source'] = {
            'role_locations': {role: list(loc) for role, loc in selection.role_locations.items()},
            'extracted_colors': [
                {'hex': c.hex, 'population': c.population,
                 'percentage': round(c.percentage, 2), 'location': list(c.location)}
                for c in selection.extracted_colors
            ],
        }
        if selection.debug is not None:
            data['source']['debug'] = asdict(selection.debug)
    return data


def _location_note(selection: Optional[PaletteSelection], role: str) -> str:
    if selection is None:
        return ''
    loc = selection.role_locations.get(role)
    if loc is None:
        return '  (synthesized)' if role in ('surface_base', 'text_primary', 'accent_secondary') else ''
    return f"  (image at {loc[0]:.2f}, {loc[1]:.2f})"


def render(selection: Optional[PaletteSelection], theme: ThemeData) -> str:
    """Render a theme as a plain-text report."""
    lines = []
    roles = theme.roles

    # Header
    lines.append(f"THEME: {roles.tone.value}")
    if selection is not None and selection.debug is not None:
        d = selection.debug
        lines.append(f"Surface strategy: {d.surface_strategy} | Text contrast: {d.contrast_ratio:.1f}:1 | "
                     f"Accent saturation: {d.primary_saturation:.0f} | "
                     f"Accent separation: {d.secondary_hue_distance:.0f}°")
    lines.append(f"Parameters: {len(theme.parameters)} | Scale stops: {len(theme.neutral_scale.stops())}")
    lines.append("")

    # Roles section
    lines.append("ROLES:")
    for role, value in roles.colors().items():
        h, s, l = hex_to_hsl(value)
        lines.append(f"  {role:<18} {value}  HSL({h:.0f}, {s:.0f}, {l:.0f}){_location_note(selection, role)}")
    lines.append("")

    # Scale section
    lines.append("NEUTRAL SCALE:")
    for name, value in theme.neutral_scale.as_dict().items():
        lines.append(f"  {name:<14} {value}  L {hex_to_hsl(value).l:.1f}")
    lines.append("")

    # Extracted colors section
    if selection is not None:
        lines.append("EXTRACTED COLORS:")
        for c in selection.extracted_colors:
            coverage = f"{c.percentage:.1f}%" if c.percentage >= 0.1 else "<0.1%"
            lines.append(f"  {c.hex}  {coverage:>6}  HSL({c.hsl.h:.0f}, {c.hsl.s:.0f}, {c.hsl.l:.0f})")
        lines.append("")

    lines.append("CONTRAST:")
    lines.append(format_contrast_report(theme.contrast_issues))

    return "\n".join(lines)


def text_color_for_background(hex_str: str) -> str:
    """Return black or white text color based on background luminance."""
    return "#fff" if is_dark(hex_str) else "#000"


def render_html(selection: Optional[PaletteSelection], theme: ThemeData, image_path: str) -> str:
    """Render a theme as a standalone HTML swatch report."""
    from html import escape

    safe_path = escape(image_path)

    css = """
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            background: #f5f5f5;
            color: #333;
            line-height: 1.5;
            padding: 2rem;
            max-width: 900px;
            margin: 0 auto;
        }
        h1 { font-size: 1.5rem; margin-bottom: 0.5rem; }
        h2 { font-size: 1.2rem; margin: 2rem 0 1rem; border-bottom: 1px solid #ddd; padding-bottom: 0.5rem; }
        .meta { color: #666; font-size: 0.9rem; margin-bottom: 1rem; }
        .palette-strip {
            display: flex;
            height: 80px;
            border-radius: 8px;
            overflow: hidden;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            margin: 1.5rem 0;
        }
        .palette-strip .swatch {
            display: flex;
            align-items: flex-end;
            justify-content: center;
            padding: 0.5rem;
            font-size: 0.7rem;
            font-weight: 500;
        }
        .role-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr)); gap: 0.75rem; }
        .role-card {
            background: #fff;
            border-radius: 8px;
            padding: 0.75rem;
            box-shadow: 0 1px 3px rgba(0,0,0,0.08);
            display: grid;
            grid-template-columns: 48px 1fr;
            gap: 0.75rem;
            font-size: 0.85rem;
        }
        .role-card .swatch { width: 48px; height: 48px; border-radius: 6px; }
        .role-card .name { font-weight: 600; }
        .role-card .values { font-family: monospace; color: #555; font-size: 0.8rem; }
        .preview { border-radius: 8px; padding: 1.5rem; box-shadow: 0 2px 8px rgba(0,0,0,0.1); }
        .preview .chip { display: inline-block; padding: 0.25rem 0.75rem; border-radius: 4px; margin-right: 0.5rem; }
        .issues { font-family: monospace; font-size: 0.8rem; white-space: pre-wrap; }
        table.params { width: 100%; border-collapse: collapse; font-size: 0.8rem; }
        table.params td { padding: 0.2rem 0.5rem; border-bottom: 1px solid #eee; }
        table.params .chip { display: inline-block; width: 1.5rem; height: 1rem; border-radius: 3px; vertical-align: middle; }
    """

    roles = theme.roles
    lines = []
    lines.append('<!DOCTYPE html>')
    lines.append('<html lang="en">')
    lines.append('<head>')
    lines.append('<meta charset="utf-8">')
    lines.append(f'<title>Theme: {safe_path}</title>')
    lines.append(f'<style>{css}</style>')
    lines.append('</head>')
    lines.append('<body>')
    lines.append(f'<h1>{safe_path}</h1>')

    meta = f'{roles.tone.value} theme, {len(theme.parameters)} parameters'
    if selection is not None and selection.debug is not None:
        meta += f', surface via {escape(selection.debug.surface_strategy)}'
    lines.append(f'<p class="meta">{meta}</p>')

    # Extracted palette strip
    if selection is not None:
        lines.append('<h2>Extracted Colors</h2>')
        lines.append('<div class="palette-strip">')
        for c in selection.extracted_colors:
            width = max(c.percentage, 2)
            lines.append(f'  <div class="swatch" style="background:{c.hex}; flex:{width:.1f}; '
                         f'color:{text_color_for_background(c.hex)}">{c.percentage:.0f}%</div>')
        lines.append('</div>')

    # Preview
    lines.append('<h2>Preview</h2>')
    lines.append(f'<div class="preview" style="background:{roles.surface_base}; color:{roles.text_primary}">')
    lines.append(f'  <p>Primary text on surface</p>')
    lines.append(f'  <p style="color:{roles.text_secondary}">Secondary text on surface</p>')
    lines.append(f'  <p style="margin-top:0.75rem">'
                 f'<span class="chip" style="background:{roles.accent_primary}; color:{roles.selection_fg}">Primary</span>'
                 f'<span class="chip" style="background:{roles.accent_secondary}; color:{roles.selection_fg}">Secondary</span>'
                 f'<span class="chip" style="background:{roles.selection_bg}; color:{roles.selection_fg}">Selection</span>'
                 f'<span class="chip" style="background:{roles.control_bg}; color:{roles.text_primary}">Control</span></p>')
    lines.append('</div>')

    # Roles
    lines.append('<h2>Roles</h2>')
    lines.append('<div class="role-grid">')
    for role, value in roles.colors().items():
        lines.append('<div class="role-card">')
        lines.append(f'  <div class="swatch" style="background:{value}"></div>')
        lines.append(f'  <div><div class="name">{role}</div><div class="values">{value}</div></div>')
        lines.append('</div>')
    lines.append('</div>')

    # Neutral scale
    lines.append('<h2>Neutral Scale</h2>')
    lines.append('<div class="palette-strip">')
    for name, value in theme.neutral_scale.as_dict().items():
        lines.append(f'  <div class="swatch" style="background:{value}; flex:1; '
                     f'color:{text_color_for_background(value)}">{name.split("_")[0]}</div>')
    lines.append('</div>')

    # Contrast
    lines.append('<h2>Contrast</h2>')
    lines.append(f'<p class="issues">{escape(format_contrast_report(theme.contrast_issues))}</p>')

    # Parameters
    lines.append('<h2>Parameters</h2>')
    lines.append('<table class="params">')
    for name, value in theme.parameters.items():
        lines.append(f'  <tr><td><span class="chip" style="background:{value}"></span></td>'
                     f'<td>{name}</td><td><code>{value}</code></td></tr>')
    lines.append('</table>')

    lines.append('</body>')
    lines.append('</html>')

    return '\n'.join(lines)


def plot_neutral_scale(theme: ThemeData, output_path: str) -> None:
    """
    Plot the neutral ramp: one bar per stop, height = lightness, filled with the stop color.
    """
    import matplotlib.pyplot as plt

    stops = list(theme.neutral_scale.as_dict().items())
    names = [name.split('_')[0] for name, _ in stops]
    lightness = [hex_to_hsl(value).l for _, value in stops]

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(range(len(stops)), lightness, color=[value for _, value in stops], edgecolor='#333333')
    ax.plot(range(len(stops)), lightness, color='#888888', linewidth=1, marker='o', markersize=3)
    ax.set_xticks(range(len(stops)))
    ax.set_xticklabels(names)
    ax.set_ylim(0, 100)
    ax.set_ylabel('Lightness')
    ax.set_title(f'Neutral scale ({theme.roles.tone.value})')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150)
    plt.close(fig)
    logger.info("Saved neutral scale plot to %s", output_path)


# =============================================================================
# CLI
# =============================================================================

def _output_path(value, image_path: Path, suffix: str) -> Path:
    # True when the flag was given without a path
    if value is True:
        return image_path.with_name(f"{image_path.stem}{suffix}")
    return Path(value)


def main(argv=None):
    import argparse
    import sys

    parser = argparse.ArgumentParser(
        description='Generate a complete color theme from an image.'
    )
    parser.add_argument('--input', '-i', required=True, help='Path to the image file')
    parser.add_argument('--tone', choices=[t.value for t in Tone],
                        help='Force dark or light (default: from the most prominent color)')
    parser.add_argument('--variant', choices=[v.value for v in VariantMode], default=VariantMode.BALANCED.value,
                        help='Surface selection policy')
    parser.add_argument('--colors', type=int, default=DEFAULT_COLOR_COUNT, help='Number of colors to extract')
    parser.add_argument('--contrast', choices=[c.value for c in ContrastLevel],
                        help='Spacing between surface roles (default: medium)')
    parser.add_argument('--config', help='Alternative parameter map YAML')
    parser.add_argument('--json', nargs='?', const=True, default=None,
                        help='Print theme JSON instead of prose, or write it to the given path')
    parser.add_argument('--output', '-o', nargs='?', const=True, default=None,
                        help='Write HTML report. Optionally specify path, otherwise auto-names from input.')
    parser.add_argument('--plot', nargs='?', const=True, default=None,
                        help='Write a neutral scale plot (PNG)')
    parser.add_argument('--swatches', nargs='?', const=True, default=None,
                        help='Write a swatch image of the extracted colors (PNG)')
    parser.add_argument('--strict', action='store_true',
                        help='Fail when a contrast requirement cannot be met')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log pipeline decisions')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    image_path = Path(args.input)

    # Run pipeline
    try:
        config = load_theme_config(Path(args.config)) if args.config else None
        selection, theme = theme_from_image(
            str(image_path),
            tone=Tone(args.tone) if args.tone else None,
            variant=VariantMode(args.variant),
            color_count=args.colors,
            contrast_level=ContrastLevel(args.contrast) if args.contrast else None,
            config=config,
            strict=args.strict,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except UnsatisfiableContrast as e:
        print(format_contrast_report(e.issues, title=f"Error: {e}"), file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        sys.exit(1)

    data = theme_to_dict(theme, selection)
    if args.json is True:
        print(json.dumps(data, indent=2))
    else:
        print(render(selection, theme))

    outputs = []
    try:
        if args.json and args.json is not True:
            path = Path(args.json)
            path.write_text(json.dumps(data, indent=2))
            outputs.append(path)
        if args.output:
            path = _output_path(args.output, image_path, '-theme.html')
            path.write_text(render_html(selection, theme, str(image_path)))
            outputs.append(path)
        if args.plot:
            path = _output_path(args.plot, image_path, '-scale.png')
            plot_neutral_scale(theme, str(path))
            outputs.append(path)
        if args.swatches:
            path = _output_path(args.swatches, image_path, '-swatches.png')
            visualize_colors(selection.extracted_colors, str(path))
            outputs.append(path)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        sys.exit(1)

    for path in outputs:
        print(f"Wrote: {path}", file=sys.stderr if args.json is True else sys.stdout)


if __name__ == '__main__':
    main()
