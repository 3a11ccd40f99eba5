"""
Expand semantic roles into the full theme: resolved roles, the neutral
lightness ramp and the named parameter table.

All functions are pure; the rule table, blend factors and VU meters come from
an injected ThemeConfig.
"""

import logging
from dataclasses import asdict, dataclass, fields
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from color_math import (
    adjust_lightness, adjust_saturation, hex_to_hsl, hsl_to_hex, lerp_color,
    normalize_hex, with_alpha,
)
from errors import InvalidInput, UnknownParameterRule
from roles import COLOR_ROLES, EXTENSION_ROLES, ResolvedColorRoles, SemanticColorRoles, Tone
from theme_config import ThemeConfig, VuMeterGradient, default_theme_config

logger = logging.getLogger(__name__)


# =============================================================================
# Role Resolution
# =============================================================================

# Base lightness offsets at multiplier 1.0, per tone
HIGHLIGHT_OFFSET = {Tone.DARK: 6, Tone.LIGHT: 9}
BORDER_OFFSET = {Tone.DARK: 4, Tone.LIGHT: 5}
CONTROL_OFFSET = {Tone.DARK: 9, Tone.LIGHT: 16}

MIN_DARK_HIGHLIGHT_SPREAD = 12
MAX_DARK_HIGHLIGHT = 95
MIN_DARK_CONTROL = 5
# Below this control-to-border gap the surface is too dark for the fixed offsets
MIN_DARK_ANCHOR_GAP = 2
DARK_CONTROL_FRACTION = 0.5
MAX_LIGHT_CONTROL = 95

SELECTION_MAX_SATURATION = 40
SELECTION_LIGHTNESS = {Tone.DARK: 78, Tone.LIGHT: 88}
SELECTION_FOREGROUND = {Tone.DARK: '#070707', Tone.LIGHT: '#121212'}


def _dark_highlight(h: float, s: float, base_l: float, target_l: float) -> str:
    """Highlight at least MIN_DARK_HIGHLIGHT_SPREAD above base after hex rounding."""
    l = min(max(target_l, base_l + MIN_DARK_HIGHLIGHT_SPREAD), MAX_DARK_HIGHLIGHT)
    color = hsl_to_hex(h, s, l)
    while hex_to_hsl(color).l < base_l + MIN_DARK_HIGHLIGHT_SPREAD and l < MAX_DARK_HIGHLIGHT:
        l = min(l + 0.1, MAX_DARK_HIGHLIGHT)
        color = hsl_to_hex(h, s, l)
    return color


def resolve_roles(partial: SemanticColorRoles) -> ResolvedColorRoles:
    """
    Fill in every derivable role that was not supplied.

    Lightness offsets scale with the contrast level multiplier. Supplied roles
    are kept verbatim, so resolving a fully specified set is the identity.
    """
    tone = partial.tone
    dark = tone == Tone.DARK
    cm = partial.multiplier
    base = hex_to_hsl(partial.surface_base)

    surface_highlight = partial.surface_highlight
    if surface_highlight is None:
        target = base.l + HIGHLIGHT_OFFSET[tone] * cm
        if dark:
            surface_highlight = _dark_highlight(base.h, base.s, base.l, target)
        else:
            surface_highlight = hsl_to_hex(base.h, base.s, min(target, 100))

    border_l = base.l - BORDER_OFFSET[tone] * cm
    if dark:
        control_l = max(base.l - CONTROL_OFFSET[tone] * cm, MIN_DARK_CONTROL)
        if border_l - control_l < MIN_DARK_ANCHOR_GAP:
            # Very dark surface: control < border < surface, even below the control floor
            control_l = min(control_l, base.l * DARK_CONTROL_FRACTION)
            border_l = max(border_l, (control_l + base.l) / 2)
    else:
        control_l = min(base.l + CONTROL_OFFSET[tone] * cm, MAX_LIGHT_CONTROL)

    surface_border = partial.surface_border or hsl_to_hex(base.h, base.s, border_l)
    control_bg = partial.control_bg or hsl_to_hex(base.h, base.s, control_l)
    detail_bg = partial.detail_bg or lerp_color(partial.surface_base, surface_highlight, 0.5)

    text_secondary = partial.text_secondary or lerp_color(partial.surface_base, partial.text_primary, 0.5)

    selection_bg = partial.selection_bg
    if selection_bg is None:
        accent = hex_to_hsl(partial.accent_secondary)
        selection_bg = hsl_to_hex(accent.h, min(accent.s, SELECTION_MAX_SATURATION), SELECTION_LIGHTNESS[tone])

    return ResolvedColorRoles(
        tone=tone,
        surface_base=partial.surface_base,
        surface_highlight=surface_highlight,
        surface_border=surface_border,
        detail_bg=detail_bg,
        control_bg=control_bg,
        text_primary=partial.text_primary,
        text_secondary=text_secondary,
        accent_primary=partial.accent_primary,
        accent_secondary=partial.accent_secondary,
        selection_bg=selection_bg,
        selection_fg=partial.selection_fg or SELECTION_FOREGROUND[tone],
        surface_secondary=partial.surface_secondary,
        accent_tertiary=partial.accent_tertiary,
        contrast_level=partial.contrast_level,
    )


# =============================================================================
# Neutral Scale
# =============================================================================

@dataclass(frozen=True)
class NeutralScale:
    """Neutral lightness ramp tinted with the surface hue.

    n9b_mid and n11b_ruler are calibrated half-stops; stops() yields the
    thirteen primary stops only.
    """
    n0_deepest: str
    n1_deep: str
    n2_dark: str
    n3_control: str
    n4_area: str
    n5_border: str
    n6_surface: str
    n7_detail: str
    n8_highlight: str
    n9_mid_low: str
    n9b_mid: str
    n10_mid: str
    n11_mid_high: str
    n11b_ruler: str
    n12_text: str

    def stops(self) -> list[tuple[str, str]]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)
                if f.name not in HALF_STOPS]

    def as_dict(self) -> dict:
        return asdict(self)


HALF_STOPS = ('n9b_mid', 'n11b_ruler')
SCALE_STOPS = tuple(f.name for f in fields(NeutralScale))

# Saturation of interpolated stops relative to the surface saturation
DEEP_SATURATION = 1.4
MAX_DEEP_SATURATION = 70
SURFACE_SATURATION = 1.0
FAR_MID_SATURATION = 0.45
NEAR_TEXT_SATURATION = 0.20


def build_neutral_scale(roles: ResolvedColorRoles) -> NeutralScale:
    """
    Build the ramp from the control, surface and text anchors.

    Interpolation fractions are calibrated against the stock Default Dark and
    Default Light Neutral Medium themes.
    """
    control = hex_to_hsl(roles.control_bg).l
    surface = hex_to_hsl(roles.surface_base)
    highlight = hex_to_hsl(roles.surface_highlight).l
    text = hex_to_hsl(roles.text_primary).l
    secondary = hex_to_hsl(roles.text_secondary).l
    border = hex_to_hsl(roles.surface_border).l

    h, s = surface.h, surface.s
    deep_s = min(s * DEEP_SATURATION, MAX_DEEP_SATURATION)
    surface_s = s * SURFACE_SATURATION
    far_s = s * FAR_MID_SATURATION
    near_s = s * NEAR_TEXT_SATURATION

    if roles.is_dark:
        area = control + (surface.l - control) * 0.25
        if area >= border:
            area = (control + border) / 2
        n9 = highlight + (secondary - highlight) * 0.49
        scale = NeutralScale(
            n0_deepest=hsl_to_hex(h, deep_s, control * 0.23),
            n1_deep=hsl_to_hex(h, deep_s, control * 0.57),
            n2_dark=hsl_to_hex(h, deep_s, control * 0.80),
            n3_control=roles.control_bg,
            n4_area=hsl_to_hex(h, surface_s, area),
            n5_border=roles.surface_border,
            n6_surface=roles.surface_base,
            n7_detail=roles.detail_bg,
            n8_highlight=roles.surface_highlight,
            n9_mid_low=hsl_to_hex(h, far_s, n9),
            n9b_mid=hsl_to_hex(h, far_s, n9 + (secondary - n9) * 0.5),
            n10_mid=roles.text_secondary,
            n11_mid_high=hsl_to_hex(h, near_s, secondary + (text - secondary) * 0.26),
            n11b_ruler=hsl_to_hex(h, near_s, secondary + (text - secondary) * 0.44),
            n12_text=roles.text_primary,
        )
        _check_dark_ramp(scale)
        return scale

    # Light tone: the ramp runs from text (dark) toward the surface
    n9 = secondary - (secondary - text) * 0.34
    return NeutralScale(
        n0_deepest=hsl_to_hex(h, deep_s, text * 0.38),
        n1_deep=hsl_to_hex(h, deep_s, text + (secondary - text) * 0.20),
        n2_dark=hsl_to_hex(h, deep_s, text + (secondary - text) * 0.47),
        n3_control=roles.control_bg,
        n4_area=hsl_to_hex(h, far_s, secondary),
        n5_border=roles.surface_border,
        n6_surface=roles.surface_base,
        n7_detail=roles.detail_bg,
        n8_highlight=roles.surface_highlight,
        n9_mid_low=hsl_to_hex(h, far_s, n9),
        n9b_mid=hsl_to_hex(h, far_s, n9 + (secondary - n9) * 0.38),
        n10_mid=roles.text_secondary,
        n11_mid_high=hsl_to_hex(h, surface_s, surface.l),
        n11b_ruler=hsl_to_hex(h, surface_s, control),
        n12_text=roles.text_primary,
    )


def _check_dark_ramp(scale: NeutralScale) -> None:
    stops = scale.stops()
    for (lo_name, lo), (hi_name, hi) in zip(stops, stops[1:]):
        if hex_to_hsl(lo).l >= hex_to_hsl(hi).l:
            logger.warning("Neutral scale is not monotonic: %s (%s) >= %s (%s)", lo_name, lo, hi_name, hi)


# =============================================================================
# Derived Parameters
# =============================================================================

class DerivedRule(str, Enum):
    """Parameters whose color needs a bespoke formula."""
    STANDBY_SELECTION_BACKGROUND = 'StandbySelectionBackground'
    SELECTION_BACKGROUND_CONTRAST = 'SelectionBackgroundContrast'
    TAKE_LANE_TRACK_NOT_HIGHLIGHTED = 'TakeLaneTrackNotHighlighted'
    WARPER_TIME_BAR_MARKER_BACKGROUND = 'WarperTimeBarMarkerBackground'
    MUTED_AUDITION_CLIP = 'MutedAuditionClip'
    RANGE_EDIT_FIELD = 'RangeEditField'


def _standby_selection(roles: ResolvedColorRoles) -> str:
    # Calibrated: #b0ddeb -> #637e86 (dark), #cdf8ff -> #abc6cb (light)
    dark = roles.is_dark
    color = adjust_saturation(roles.selection_bg, -25 if dark else -20)
    return adjust_lightness(color, -30 if dark else -15)


def resolve_derived(rule: DerivedRule, roles: ResolvedColorRoles) -> str:
    """Compute one derived parameter. Every DerivedRule member has a branch."""
    dark = roles.is_dark

    if rule == DerivedRule.STANDBY_SELECTION_BACKGROUND:
        return _standby_selection(roles)
    elif rule == DerivedRule.SELECTION_BACKGROUND_CONTRAST:
        return lerp_color(roles.selection_bg, _standby_selection(roles), 0.55)
    elif rule in (DerivedRule.TAKE_LANE_TRACK_NOT_HIGHLIGHTED, DerivedRule.WARPER_TIME_BAR_MARKER_BACKGROUND):
        # Calibrated: #363636 -> #303030 (dark), #a5a5a5 -> #9c9c9c (light)
        return adjust_lightness(roles.surface_base, -2.2 if dark else -3.5)
    elif rule == DerivedRule.MUTED_AUDITION_CLIP:
        return lerp_color(roles.surface_base, roles.text_secondary, 0.65 if dark else 0.55)
    elif rule == DerivedRule.RANGE_EDIT_FIELD:
        h, s, l = hex_to_hsl(roles.accent_secondary)
        return hsl_to_hex(h, s, l * (0.55 if dark else 0.85))
    raise AssertionError(f"Unhandled derived rule: {rule}")


# =============================================================================
# Parameter Table
# =============================================================================

def _lookup(name: str, ref: Any, roles: ResolvedColorRoles, scale: NeutralScale) -> str:
    """Resolve a reference: role name, scale stop name or hex literal."""
    if not isinstance(ref, str):
        raise UnknownParameterRule(name, f"reference must be a string, got {ref!r}")
    if ref in COLOR_ROLES or ref in EXTENSION_ROLES:
        value = getattr(roles, ref)
        if value is None:
            raise UnknownParameterRule(name, f"role {ref!r} is not set")
        return value
    if ref in SCALE_STOPS:
        return getattr(scale, ref)
    try:
        return normalize_hex(ref)
    except InvalidInput:
        raise UnknownParameterRule(name, f"unknown reference {ref!r}") from None


def _alpha(name: str, value: Any) -> str:
    if not isinstance(value, str) or len(value) != 2:
        raise UnknownParameterRule(name, f"alpha must be two hex digits, got {value!r}")
    try:
        int(value, 16)
    except ValueError:
        raise UnknownParameterRule(name, f"alpha must be two hex digits, got {value!r}") from None
    return value


def resolve_parameter(name: str, entry: Mapping[str, Any],
                      roles: ResolvedColorRoles, scale: NeutralScale) -> str:
    """
    Resolve one rule table entry to a color string.

    Raises:
        UnknownParameterRule: If the entry is malformed or its kind is unknown
    """
    if not isinstance(entry, Mapping):
        raise UnknownParameterRule(name, "entry is not a mapping")
    kind = entry.get('type')
    tone_key = roles.tone.value

    if kind in ('role', 'scale'):
        return _lookup(name, entry.get('source'), roles, scale)

    if kind == 'fixed':
        return _lookup(name, entry.get('value'), roles, scale)

    if kind == 'tone':
        light_alpha = entry.get('light_alpha')
        if not roles.is_dark and light_alpha is not None:
            if not isinstance(light_alpha, Mapping):
                raise UnknownParameterRule(name, "light_alpha must be a mapping")
            color = _lookup(name, light_alpha.get('source'), roles, scale)
            return with_alpha(color, _alpha(name, light_alpha.get('alpha')))
        if tone_key not in entry:
            raise UnknownParameterRule(name, f"no {tone_key} value")
        return _lookup(name, entry[tone_key], roles, scale)

    if kind == 'alpha':
        color = _lookup(name, entry.get('source'), roles, scale)
        return with_alpha(color, _alpha(name, entry.get('alpha')))

    if kind == 'semantic':
        value = entry.get(tone_key)
        try:
            return normalize_hex(value)
        except InvalidInput:
            raise UnknownParameterRule(name, f"{tone_key} must be a color literal, got {value!r}") from None

    if kind == 'derived':
        try:
            rule = DerivedRule(name)
        except ValueError:
            raise UnknownParameterRule(name, "no derived formula with this name") from None
        return resolve_derived(rule, roles)

    raise UnknownParameterRule(name, f"unknown rule type {kind!r}")


def generate_parameters(roles: ResolvedColorRoles, scale: NeutralScale,
                        rules: Optional[Mapping[str, Any]] = None) -> Mapping[str, str]:
    """
    Build the parameter table in rule table order.

    A malformed entry only drops its own parameter; it is logged and skipped.

    Returns:
        Read-only mapping of parameter name to '#rrggbb' or '#rrggbbaa'
    """
    if rules is None:
        rules = default_theme_config().parameters

    params = {}
    skipped = 0
    for name, entry in rules.items():
        try:
            params[name] = resolve_parameter(name, entry, roles, scale)
        except UnknownParameterRule as e:
            logger.warning("Skipping parameter: %s", e)
            skipped += 1

    logger.debug("Generated %d parameters (%d skipped)", len(params), skipped)
    return MappingProxyType(params)


# =============================================================================
# Configuration Tables
# =============================================================================

def get_blend_factors(tone: Tone, config: Optional[ThemeConfig] = None) -> Mapping[str, float]:
    """Numeric blend factors for a tone, as configured."""
    config = config or default_theme_config()
    return config.blend_factors[Tone(tone).value]


def get_vu_meters(config: Optional[ThemeConfig] = None) -> Mapping[str, VuMeterGradient]:
    """VU meter gradients; identical for every theme."""
    config = config or default_theme_config()
    return config.vu_meters
