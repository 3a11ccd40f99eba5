"""
Semantic color roles: the small input set and its fully resolved form.
"""

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Optional

from color_math import normalize_hex
from errors import InvalidInput


class Tone(str, Enum):
    """Overall theme brightness family."""
    DARK = 'dark'
    LIGHT = 'light'


class ContrastLevel(str, Enum):
    """Scales the lightness offsets between the surface roles."""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    VERY_HIGH = 'very_high'

    @property
    def multiplier(self) -> float:
        return CONTRAST_MULTIPLIERS[self]


CONTRAST_MULTIPLIERS = {
    ContrastLevel.LOW: 1.0,
    ContrastLevel.MEDIUM: 1.4,
    ContrastLevel.HIGH: 1.8,
    ContrastLevel.VERY_HIGH: 2.2,
}

MANDATORY_ROLES = ('surface_base', 'text_primary', 'accent_primary', 'accent_secondary')

DERIVED_ROLES = (
    'surface_highlight', 'surface_border', 'detail_bg', 'control_bg',
    'text_secondary', 'selection_bg', 'selection_fg',
)

EXTENSION_ROLES = ('surface_secondary', 'accent_tertiary')

# Every color-valued role of a resolved set, in document order
COLOR_ROLES = (
    'surface_base', 'surface_highlight', 'surface_border', 'detail_bg', 'control_bg',
    'text_primary', 'text_secondary', 'accent_primary', 'accent_secondary',
    'selection_bg', 'selection_fg',
)


def coerce_enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(m.value for m in enum_cls)
        raise InvalidInput(f"Invalid {name} {value!r}; expected one of: {allowed}") from None


def _check_color(role: str, value) -> str:
    if value is None or value == '':
        raise InvalidInput(f"Missing mandatory role: {role}")
    try:
        return normalize_hex(value)
    except InvalidInput as e:
        raise InvalidInput(f"{role}: {e}") from None


@dataclass(frozen=True)
class SemanticColorRoles:
    """Minimal role set: tone, four anchors, optional overrides.

    Colors are validated and normalized on construction; a missing or
    malformed mandatory role raises InvalidInput.
    """
    tone: Tone
    surface_base: str
    text_primary: str
    accent_primary: str
    accent_secondary: str
    surface_highlight: Optional[str] = None
    surface_border: Optional[str] = None
    detail_bg: Optional[str] = None
    control_bg: Optional[str] = None
    text_secondary: Optional[str] = None
    selection_bg: Optional[str] = None
    selection_fg: Optional[str] = None
    contrast_level: Optional[ContrastLevel] = None
    surface_secondary: Optional[str] = None
    accent_tertiary: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'tone', coerce_enum(Tone, self.tone, 'tone'))
        if self.contrast_level is not None:
            object.__setattr__(self, 'contrast_level',
                               coerce_enum(ContrastLevel, self.contrast_level, 'contrast level'))
        for role in MANDATORY_ROLES:
            object.__setattr__(self, role, _check_color(role, getattr(self, role)))
        for role in DERIVED_ROLES + EXTENSION_ROLES:
            value = getattr(self, role)
            if value is not None:
                object.__setattr__(self, role, _check_color(role, value))

    @property
    def multiplier(self) -> float:
        return (self.contrast_level or ContrastLevel.MEDIUM).multiplier

    @classmethod
    def from_dict(cls, data: dict) -> 'SemanticColorRoles':
        """Build from a plain mapping, ignoring keys that are not roles."""
        known = {f.name for f in fields(cls)}
        for role in ('tone',) + MANDATORY_ROLES:
            if data.get(role) in (None, ''):
                raise InvalidInput(f"Missing mandatory role: {role}")
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class ResolvedColorRoles:
    """All roles populated. Never mutated; corrections produce a new instance."""
    tone: Tone
    surface_base: str
    surface_highlight: str
    surface_border: str
    detail_bg: str
    control_bg: str
    text_primary: str
    text_secondary: str
    accent_primary: str
    accent_secondary: str
    selection_bg: str
    selection_fg: str
    surface_secondary: Optional[str] = None
    accent_tertiary: Optional[str] = None
    contrast_level: Optional[ContrastLevel] = None  # None means medium

    @property
    def is_dark(self) -> bool:
        return self.tone == Tone.DARK

    def color(self, role: str) -> str:
        if role not in COLOR_ROLES and role not in EXTENSION_ROLES:
            raise KeyError(role)
        return getattr(self, role)

    def colors(self) -> dict:
        """Role name -> color for every populated color role."""
        out = {role: getattr(self, role) for role in COLOR_ROLES}
        for role in EXTENSION_ROLES:
            if getattr(self, role) is not None:
                out[role] = getattr(self, role)
        return out

    def as_dict(self) -> dict:
        data = asdict(self)
        data['tone'] = self.tone.value
        if self.contrast_level is not None:
            data['contrast_level'] = self.contrast_level.value
        return {k: v for k, v in data.items() if v is not None}
