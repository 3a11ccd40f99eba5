"""
Color math: hex parsing, RGB/HSL conversion, interpolation and WCAG contrast.

Every function here is pure. Colors travel between modules as lowercase
hex strings (#rrggbb, or #rrggbbaa when an alpha channel is attached);
HSL uses degrees for hue and percentages for saturation and lightness.
"""

import math
import re
from typing import NamedTuple, Optional

import numpy as np

from errors import InvalidInput


class RGB(NamedTuple):
    r: int
    g: int
    b: int


class HSL(NamedTuple):
    h: float  # 0-360
    s: float  # 0-100
    l: float  # 0-100


# Relative luminance where black and white give the same contrast ratio
LUMINANCE_MIDPOINT = 0.179

_HEX_RE = re.compile(r'^#?([0-9a-fA-F]{6})([0-9a-fA-F]{2})?$')


def _round(value: float) -> int:
    """Round half up, so x.5 channel values never depend on parity."""
    return int(math.floor(value + 0.5))


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


# =============================================================================
# Hex
# =============================================================================

def parse_hex(hex_str: str) -> tuple[RGB, Optional[int]]:
    """Parse #rrggbb or #rrggbbaa into (RGB, alpha or None).

    Raises:
        InvalidInput: If the string is not a 6- or 8-digit hex color
    """
    if not isinstance(hex_str, str):
        raise InvalidInput(f"Color must be a hex string, got {type(hex_str).__name__}")
    match = _HEX_RE.match(hex_str.strip())
    if not match:
        raise InvalidInput(f"Malformed color string: {hex_str!r}")
    digits, alpha = match.groups()
    rgb = RGB(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    return rgb, (int(alpha, 16) if alpha else None)


def hex_to_rgb(hex_str: str) -> RGB:
    return parse_hex(hex_str)[0]


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Convert RGB (0-255, clamped and rounded) to #rrggbb."""
    return '#' + ''.join(f"{_round(_clamp(c, 0, 255)):02x}" for c in (r, g, b))


def normalize_hex(hex_str: str) -> str:
    """Lowercase, '#'-prefixed form of a color string, alpha preserved."""
    rgb, alpha = parse_hex(hex_str)
    out = rgb_to_hex(*rgb)
    if alpha is not None:
        out += f"{alpha:02x}"
    return out


def with_alpha(hex_str: str, alpha: str) -> str:
    """Append a two-digit hex alpha (e.g. "7f") to the 6-digit color."""
    return f"#{hex_str.lstrip('#')[:6]}{alpha.lower()}"


# =============================================================================
# RGB <-> HSL
# =============================================================================

def rgb_to_hsl(r: float, g: float, b: float) -> HSL:
    """Convert RGB (0-255) to HSL. Achromatic colors get hue 0."""
    r, g, b = r / 255, g / 255, b / 255
    mx = max(r, g, b)
    mn = min(r, g, b)
    l = (mx + mn) / 2
    h = s = 0.0

    if mx != mn:
        d = mx - mn
        s = d / (2 - mx - mn) if l > 0.5 else d / (mx + mn)
        if mx == r:
            h = ((g - b) / d + (6 if g < b else 0)) / 6
        elif mx == g:
            h = ((b - r) / d + 2) / 6
        else:
            h = ((r - g) / d + 4) / 6

    return HSL(h * 360, s * 100, l * 100)


def hsl_to_rgb(h: float, s: float, l: float) -> RGB:
    """Convert HSL to RGB (0-255). Saturation and lightness are clamped."""
    h = (h % 360) / 360
    s = _clamp(s, 0, 100) / 100
    l = _clamp(l, 0, 100) / 100

    if s == 0:
        v = _round(l * 255)
        return RGB(v, v, v)

    def hue_to_rgb(p: float, q: float, t: float) -> float:
        if t < 0:
            t += 1
        if t > 1:
            t -= 1
        if t < 1 / 6:
            return p + (q - p) * 6 * t
        if t < 1 / 2:
            return q
        if t < 2 / 3:
            return p + (q - p) * (2 / 3 - t) * 6
        return p

    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q
    return RGB(
        _round(hue_to_rgb(p, q, h + 1 / 3) * 255),
        _round(hue_to_rgb(p, q, h) * 255),
        _round(hue_to_rgb(p, q, h - 1 / 3) * 255),
    )


def hex_to_hsl(hex_str: str) -> HSL:
    return rgb_to_hsl(*hex_to_rgb(hex_str))


def hsl_to_hex(h: float, s: float, l: float) -> str:
    return rgb_to_hex(*hsl_to_rgb(h, s, l))


def rgb_array_to_hsl(rgb: np.ndarray) -> np.ndarray:
    """Vectorized rgb_to_hsl for an (n, 3) array. Returns (n, 3) [h, s, l]."""
    norm = rgb.astype(np.float64) / 255.0
    r, g, b = norm[:, 0], norm[:, 1], norm[:, 2]
    mx = norm.max(axis=1)
    mn = norm.min(axis=1)
    d = mx - mn
    l = (mx + mn) / 2

    with np.errstate(divide='ignore', invalid='ignore'):
        s = np.where(l > 0.5, d / (2 - mx - mn), d / (mx + mn))
        h = np.select(
            [mx == r, mx == g],
            [((g - b) / d + np.where(g < b, 6, 0)) / 6, ((b - r) / d + 2) / 6],
            default=((r - g) / d + 4) / 6,
        )

    chromatic = d > 0
    s = np.where(chromatic, s, 0.0)
    h = np.where(chromatic, h, 0.0)
    return np.column_stack([h * 360, s * 100, l * 100])


# =============================================================================
# Hue and Interpolation
# =============================================================================

def hue_distance(h1: float, h2: float) -> float:
    """Minimum angular distance between two hues (0-180)."""
    diff = abs(h1 - h2) % 360
    return min(diff, 360 - diff)


def lerp_color(color_a: str, color_b: str, t: float) -> str:
    """Interpolate two colors in HSL at t (0-1), taking the short way round the hue circle."""
    a = hex_to_hsl(color_a)
    b = hex_to_hsl(color_b)

    h_diff = b.h - a.h
    if h_diff > 180:
        h_diff -= 360
    if h_diff < -180:
        h_diff += 360

    h = (a.h + h_diff * t + 360) % 360
    s = a.s + (b.s - a.s) * t
    l = a.l + (b.l - a.l) * t
    return hsl_to_hex(h, s, l)


def adjust_lightness(hex_str: str, delta: float) -> str:
    """Shift lightness by delta (positive = lighter), clamped to 0-100."""
    hsl = hex_to_hsl(hex_str)
    return hsl_to_hex(hsl.h, hsl.s, _clamp(hsl.l + delta, 0, 100))


def adjust_saturation(hex_str: str, delta: float) -> str:
    hsl = hex_to_hsl(hex_str)
    return hsl_to_hex(hsl.h, _clamp(hsl.s + delta, 0, 100), hsl.l)


def set_lightness(hex_str: str, lightness: float) -> str:
    hsl = hex_to_hsl(hex_str)
    return hsl_to_hex(hsl.h, hsl.s, _clamp(lightness, 0, 100))


# =============================================================================
# Luminance and Contrast
# =============================================================================

def relative_luminance(hex_str: str) -> float:
    """WCAG relative luminance of an sRGB color (alpha ignored)."""
    def to_linear(c: int) -> float:
        v = c / 255
        return v / 12.92 if v <= 0.03928 else ((v + 0.055) / 1.055) ** 2.4

    r, g, b = hex_to_rgb(hex_str)
    return 0.2126 * to_linear(r) + 0.7152 * to_linear(g) + 0.0722 * to_linear(b)


def contrast_ratio(hex1: str, hex2: str) -> float:
    """WCAG contrast ratio, 1 (none) to 21 (black on white)."""
    l1 = relative_luminance(hex1)
    l2 = relative_luminance(hex2)
    lighter = max(l1, l2)
    darker = min(l1, l2)
    # rounded so float noise never moves black/white off exactly 21
    return round((lighter + 0.05) / (darker + 0.05), 10)


def is_dark(hex_str: str) -> bool:
    """True when white text would out-contrast black text on this color."""
    return relative_luminance(hex_str) <= LUMINANCE_MIDPOINT
