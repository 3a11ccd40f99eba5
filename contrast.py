"""
Validate WCAG contrast between role pairs and nudge lightness until they pass.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from color_math import contrast_ratio, hex_to_hsl, hsl_to_hex, is_dark
from errors import UnsatisfiableContrast
from roles import ResolvedColorRoles

logger = logging.getLogger(__name__)

SEARCH_ITERATIONS = 20
MAX_PASSES = 3

FOREGROUND = 'foreground'
BACKGROUND = 'background'


@dataclass(frozen=True)
class ContrastRequirement:
    foreground_role: str
    background_role: str
    min_ratio: float
    label: str = ''
    adjust: str = FOREGROUND  # Which side the corrector may change

    @property
    def adjusted_role(self) -> str:
        return self.background_role if self.adjust == BACKGROUND else self.foreground_role

    @property
    def fixed_role(self) -> str:
        return self.foreground_role if self.adjust == BACKGROUND else self.background_role


@dataclass(frozen=True)
class ContrastIssue:
    foreground_role: str
    background_role: str
    foreground: str
    background: str
    ratio: float
    required: float


CONTRAST_REQUIREMENTS = (
    ContrastRequirement('text_primary', 'surface_base', 4.5, 'Primary text on main background'),
    ContrastRequirement('text_primary', 'surface_highlight', 4.5, 'Primary text on selected track'),
    ContrastRequirement('text_primary', 'detail_bg', 4.5, 'Primary text on clip editor'),
    ContrastRequirement('text_primary', 'control_bg', 4.5, 'Primary text on input fields'),
    ContrastRequirement('text_secondary', 'surface_base', 3.0, 'Disabled text on main background'),
    ContrastRequirement('text_secondary', 'control_bg', 3.0, 'Disabled text on input fields'),
    ContrastRequirement('selection_fg', 'selection_bg', 4.5, 'Selection text on selection highlight'),
    ContrastRequirement('accent_primary', 'surface_base', 3.0, 'Active toggle on main background'),
    ContrastRequirement('accent_primary', 'control_bg', 3.0, 'Active toggle on input fields'),
    ContrastRequirement('selection_fg', 'accent_primary', 3.0, 'Icon on primary accent', adjust=BACKGROUND),
    ContrastRequirement('selection_fg', 'accent_secondary', 3.0, 'Icon on secondary accent', adjust=BACKGROUND),
)


def validate_contrast(roles: ResolvedColorRoles,
                      requirements: Sequence[ContrastRequirement] = CONTRAST_REQUIREMENTS) -> list[ContrastIssue]:
    """Every requirement whose ratio is below its minimum, in requirement order."""
    issues = []
    for req in requirements:
        fg = roles.color(req.foreground_role)
        bg = roles.color(req.background_role)
        ratio = contrast_ratio(fg, bg)
        if ratio < req.min_ratio:
            issues.append(ContrastIssue(
                foreground_role=req.foreground_role,
                background_role=req.background_role,
                foreground=fg,
                background=bg,
                ratio=ratio,
                required=req.min_ratio,
            ))
    return issues


def _search_lightness(color: str, counterpart: str, min_ratio: float, lighten: bool) -> tuple[str, bool]:
    """
    Smallest lightness change toward one extreme that reaches min_ratio.

    Returns (color, satisfied). When even the extreme fails, the extreme is
    returned with satisfied=False.
    """
    h, s, start = hex_to_hsl(color)
    extreme = 100.0 if lighten else 0.0
    extreme_color = hsl_to_hex(h, s, extreme)
    if contrast_ratio(extreme_color, counterpart) < min_ratio:
        return extreme_color, False

    # Invariant: lo fails, hi passes; best is the last tested passing color
    lo, hi = start, extreme
    best = extreme_color
    for _ in range(SEARCH_ITERATIONS):
        mid = (lo + hi) / 2
        candidate = hsl_to_hex(h, s, mid)
        if contrast_ratio(candidate, counterpart) >= min_ratio:
            hi, best = mid, candidate
        else:
            lo = mid
    return best, True


def correct_color(color: str, counterpart: str, min_ratio: float) -> tuple[str, bool]:
    """
    Move color's lightness away from counterpart until min_ratio is reached.

    Lightens when the counterpart is dark (luminance <= 0.179), darkens
    otherwise. If that direction cannot reach the ratio the opposite one is
    tried; if neither can, the better extreme is returned unsatisfied.
    """
    if contrast_ratio(color, counterpart) >= min_ratio:
        return color, True

    lighten = is_dark(counterpart)
    result, ok = _search_lightness(color, counterpart, min_ratio, lighten)
    if ok:
        return result, True

    other, ok = _search_lightness(color, counterpart, min_ratio, not lighten)
    if ok:
        return other, True
    if contrast_ratio(other, counterpart) > contrast_ratio(result, counterpart):
        return other, False
    return result, False


def adjust_for_contrast(roles: ResolvedColorRoles,
                        requirements: Sequence[ContrastRequirement] = CONTRAST_REQUIREMENTS,
                        strict: bool = False) -> ResolvedColorRoles:
    """
    Return a corrected copy of roles meeting every satisfiable requirement.

    Runs up to three passes, since fixing one pair can break an earlier one.
    Hue and saturation of adjusted roles are preserved.

    Raises:
        UnsatisfiableContrast: With strict=True, if any requirement still fails;
            the exception carries the issues and the best-effort roles
    """
    for pass_number in range(1, MAX_PASSES + 1):
        if not validate_contrast(roles, requirements):
            break
        for req in requirements:
            fg = roles.color(req.foreground_role)
            bg = roles.color(req.background_role)
            if contrast_ratio(fg, bg) >= req.min_ratio:
                continue
            current = roles.color(req.adjusted_role)
            corrected, _ = correct_color(current, roles.color(req.fixed_role), req.min_ratio)
            if corrected != current:
                logger.debug("Pass %d: %s %s -> %s for %s", pass_number, req.adjusted_role,
                             current, corrected, req.label or req.fixed_role)
                roles = replace(roles, **{req.adjusted_role: corrected})

    issues = validate_contrast(roles, requirements)
    if issues:
        logger.warning(format_contrast_report(issues))
        if strict:
            raise UnsatisfiableContrast(issues, roles)
    return roles


def format_contrast_report(issues: Sequence[ContrastIssue], title: Optional[str] = None) -> str:
    if not issues:
        return 'All contrast checks passed.'
    lines = [title or f"{len(issues)} contrast issue(s):"]
    for issue in issues:
        lines.append(
            f"FAIL: {issue.foreground_role} ({issue.foreground}) on {issue.background_role} "
            f"({issue.background}): ratio {issue.ratio:.2f}:1, required {issue.required}:1"
        )
    return '\n'.join(lines)
