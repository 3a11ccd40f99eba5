"""
Map extracted colors onto the four mandatory semantic roles.

The surface decision is delegated to a SurfaceSelector so alternative
policies can be swapped without touching text/accent selection.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from color_math import HSL, contrast_ratio, hex_to_hsl, hsl_to_hex, hue_distance
from errors import InvalidInput
from extract_colors import ExtractedColor
from roles import SemanticColorRoles, Tone, coerce_enum

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_ACCENT_SATURATION = 35
MIN_TEXT_CONTRAST = 4.5  # WCAG AA
MIN_ACCENT_HUE_DISTANCE = 60
TEXT_HUE_SEPARATION = 30
TEXT_LIGHTNESS_SEPARATION = 20

HARMONY_TARGET = 150  # Hue distance rewarded by the harmony bonus
HARMONY_MAX_BONUS = 20

FALLBACK_TEXT = {Tone.DARK: '#ffffff', Tone.LIGHT: '#121212'}

# Tone-calibrated (lightness, saturation) for synthesized surfaces
SURFACE_CALIBRATION = {
    Tone.DARK: (16, 22),
    Tone.LIGHT: (90, 18),
}

BALANCED_SATURATION_CAP = 35
MUTED_SATURATION_CAP = 20


class VariantMode(str, Enum):
    """How aggressively the surface is pulled away from the literal image colors."""
    BALANCED = 'balanced'
    MUTED = 'muted'
    SYNTHESIZED = 'synthesized'


def harmony_bonus(distance: float) -> float:
    """Bonus peaking at a 150 degree hue separation, zero beyond +/-20 degrees."""
    return max(0.0, HARMONY_MAX_BONUS - abs(distance - HARMONY_TARGET))


def matches_tone(color: ExtractedColor, tone: Tone) -> bool:
    return color.hsl.l < 50 if tone == Tone.DARK else color.hsl.l >= 50


# =============================================================================
# Surface Strategies
# =============================================================================

@dataclass(frozen=True)
class SurfaceChoice:
    """A chosen surface color and the extracted color it came from, if any."""
    hex: str
    source_index: Optional[int]
    strategy: str

    @property
    def hsl(self) -> HSL:
        return hex_to_hsl(self.hex)


class SurfaceSelector(ABC):
    """Single-method strategy interface for choosing surface_base."""

    name = 'surface'

    @abstractmethod
    def select_surface(self, colors: list[ExtractedColor], tone: Tone) -> SurfaceChoice:
        """Pick the surface for tone; colors are ranked by population."""


class ProminentSurfaceSelector(SurfaceSelector):
    """
    Most prominent color of the right tone whose saturation stays under a cap.

    If tone matches exist but all are too saturated, the most prominent one is
    desaturated to the cap. If nothing matches the tone, a surface is
    synthesized from the most prominent hue at calibrated lightness.
    """

    name = 'prominent'

    def __init__(self, saturation_cap: float = BALANCED_SATURATION_CAP):
        self.saturation_cap = saturation_cap

    def select_surface(self, colors, tone):
        tone_matches = [i for i, c in enumerate(colors) if matches_tone(c, tone)]

        for i in tone_matches:
            if colors[i].hsl.s <= self.saturation_cap:
                return SurfaceChoice(colors[i].hex, i, self.name)

        if tone_matches:
            i = tone_matches[0]
            h, _, l = colors[i].hsl
            logger.debug("No %s surface under saturation %s; desaturating %s",
                         tone.value, self.saturation_cap, colors[i].hex)
            return SurfaceChoice(hsl_to_hex(h, self.saturation_cap, l), i, f"{self.name}-desaturated")

        l, s = SURFACE_CALIBRATION[tone]
        logger.debug("No %s candidates; synthesizing surface from hue %.0f", tone.value, colors[0].hsl.h)
        return SurfaceChoice(hsl_to_hex(colors[0].hsl.h, s, l), None,
                             f"{self.name}-synthesized")


class HueMeanSurfaceSelector(SurfaceSelector):
    """
    Surface at the image's saturation x population weighted circular-mean hue.

    Lightness and saturation are fixed per tone, so a dark theme can come
    from an image that has no dark pixels of its dominant hue.
    """

    name = 'hue-mean'

    def select_surface(self, colors, tone):
        hue = circular_mean_hue(colors)
        l, s = SURFACE_CALIBRATION[tone]
        return SurfaceChoice(hsl_to_hex(hue, s, l), None, self.name)


def circular_mean_hue(colors: list[ExtractedColor]) -> float:
    """Weighted circular mean of hues; 0 for a fully achromatic palette."""
    sin_sum = 0.0
    cos_sum = 0.0
    for c in colors:
        weight = c.hsl.s * c.population
        angle = math.radians(c.hsl.h)
        sin_sum += math.sin(angle) * weight
        cos_sum += math.cos(angle) * weight
    if sin_sum == 0 and cos_sum == 0:
        return 0.0
    return math.degrees(math.atan2(sin_sum, cos_sum)) % 360


def surface_selector_for(variant: VariantMode) -> SurfaceSelector:
    variant = VariantMode(variant)
    if variant == VariantMode.MUTED:
        return ProminentSurfaceSelector(MUTED_SATURATION_CAP)
    if variant == VariantMode.SYNTHESIZED:
        return HueMeanSurfaceSelector()
    return ProminentSurfaceSelector(BALANCED_SATURATION_CAP)


# =============================================================================
# Selection
# =============================================================================

@dataclass(frozen=True)
class SelectionDebug:
    contrast_ratio: float  # text_primary against surface_base
    primary_saturation: float
    secondary_hue_distance: float
    surface_strategy: str


@dataclass(frozen=True)
class PaletteSelection:
    roles: SemanticColorRoles
    role_locations: dict  # role -> (x, y) for roles taken from an extracted color
    extracted_colors: list = field(default_factory=list)
    debug: Optional[SelectionDebug] = None


def _select_text(colors, surface: SurfaceChoice, tone: Tone) -> tuple[Optional[int], str, float]:
    """Index, hex and contrast of the most legible color against the surface."""
    surface_hsl = surface.hsl
    best_index = None
    best_ratio = 0.0

    for i, c in enumerate(colors):
        if i == surface.source_index:
            continue
        separated = (hue_distance(c.hsl.h, surface_hsl.h) >= TEXT_HUE_SEPARATION
                     or abs(c.hsl.l - surface_hsl.l) >= TEXT_LIGHTNESS_SEPARATION)
        if not separated:
            continue
        ratio = contrast_ratio(c.hex, surface.hex)
        if ratio >= MIN_TEXT_CONTRAST and ratio > best_ratio:
            best_index, best_ratio = i, ratio

    if best_index is None:
        fallback = FALLBACK_TEXT[tone]
        logger.debug("No legible text candidate; falling back to %s", fallback)
        return None, fallback, contrast_ratio(fallback, surface.hex)
    return best_index, colors[best_index].hex, best_ratio


def select_palette(colors: list[ExtractedColor],
                   tone: Optional[Tone] = None,
                   variant: VariantMode = VariantMode.BALANCED,
                   surface_selector: Optional[SurfaceSelector] = None) -> PaletteSelection:
    """
    Choose surface, text and accent roles from ranked extracted colors.

    Args:
        colors: Extracted colors, most prominent first
        tone: Forced tone; derived from the most prominent color when None
        variant: Surface policy used when no surface_selector is given
        surface_selector: Explicit surface strategy

    Returns:
        PaletteSelection with the mandatory roles, source locations and debug metrics

    Raises:
        InvalidInput: If colors is empty
    """
    if not colors:
        raise InvalidInput("No colors provided for palette selection")

    if tone is None:
        tone = Tone.DARK if colors[0].hsl.l < 50 else Tone.LIGHT
    else:
        tone = coerce_enum(Tone, tone, 'tone')
    selector = surface_selector or surface_selector_for(variant)

    # Surface
    surface = selector.select_surface(colors, tone)
    surface_hue = surface.hsl.h

    # Text
    text_index, text_hex, text_ratio = _select_text(colors, surface, tone)
    used = {surface.source_index, text_index}

    # Accent primary: saturation plus harmony with the surface, stable on ties
    unused = [i for i in range(len(colors)) if i not in used]
    candidates = [i for i in unused if colors[i].hsl.s >= MIN_ACCENT_SATURATION]
    ranked = sorted(
        candidates,
        key=lambda i: -(colors[i].hsl.s + harmony_bonus(hue_distance(colors[i].hsl.h, surface_hue))),
    )
    if ranked:
        primary_index = ranked[0]
    elif unused:
        primary_index = unused[0]
    else:
        primary_index = 0
    primary = colors[primary_index]

    # Accent secondary: far from the primary, harmony-weighted
    secondary_index = None
    best_score = -1.0
    secondary_distance = 0.0
    for i in ranked:
        if i == primary_index:
            continue
        dist = hue_distance(colors[i].hsl.h, primary.hsl.h)
        if dist < MIN_ACCENT_HUE_DISTANCE:
            continue
        score = dist + harmony_bonus(dist)
        if score > best_score:
            secondary_index, best_score, secondary_distance = i, score, dist

    if secondary_index is None:
        h, s, l = primary.hsl
        secondary_hex = hsl_to_hex((h + 180) % 360, s * 0.8, l)
        secondary_distance = 180.0
        logger.debug("No distinct secondary accent; using complement %s of %s", secondary_hex, primary.hex)
    else:
        secondary_hex = colors[secondary_index].hex

    roles = SemanticColorRoles(
        tone=tone,
        surface_base=surface.hex,
        text_primary=text_hex,
        accent_primary=primary.hex,
        accent_secondary=secondary_hex,
    )

    locations = {}
    if surface.source_index is not None:
        locations['surface_base'] = colors[surface.source_index].location
    if text_index is not None:
        locations['text_primary'] = colors[text_index].location
    locations['accent_primary'] = primary.location
    if secondary_index is not None:
        locations['accent_secondary'] = colors[secondary_index].location

    return PaletteSelection(
        roles=roles,
        role_locations=locations,
        extracted_colors=list(colors),
        debug=SelectionDebug(
            contrast_ratio=text_ratio,
            primary_saturation=primary.hsl.s,
            secondary_hue_distance=secondary_distance,
            surface_strategy=surface.strategy,
        ),
    )
