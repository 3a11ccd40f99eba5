"""
Load the declarative theme configuration (YAML): the parameter rule table,
per-tone blend factors and the VU meter gradients.

The configuration is read once and frozen; the pipeline receives it as a
ThemeConfig value instead of reading module globals.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from errors import InvalidInput

logger = logging.getLogger(__name__)

VU_METER_FIELDS = (
    'only_minimum_to_maximum', 'maximum', 'above_zero_decibel', 'zero_decibel',
    'below_zero_decibel1', 'below_zero_decibel2', 'minimum',
)


def _project_root() -> Path:
    return Path(__file__).resolve().parent


def default_config_path() -> Path:
    return _project_root() / 'config' / 'parameter_map.yaml'


@dataclass(frozen=True)
class VuMeterGradient:
    """Seven-level meter gradient; identical across tones."""
    only_minimum_to_maximum: bool
    maximum: str
    above_zero_decibel: str
    zero_decibel: str
    below_zero_decibel1: str
    below_zero_decibel2: str
    minimum: str


@dataclass(frozen=True)
class ThemeConfig:
    """Immutable rule table plus numeric tables, in file order."""
    parameters: Mapping[str, Any]
    blend_factors: Mapping[str, Mapping[str, float]]
    vu_meters: Mapping[str, VuMeterGradient]
    source: Optional[Path] = None

    def with_parameters(self, parameters: Mapping[str, Any]) -> 'ThemeConfig':
        """Copy with a different rule table (used to layer custom rules)."""
        return ThemeConfig(
            parameters=_freeze_rules(parameters),
            blend_factors=self.blend_factors,
            vu_meters=self.vu_meters,
            source=self.source,
        )


def _freeze_rules(rules: Mapping[str, Any]) -> Mapping[str, Any]:
    # Malformed entries are kept as-is; they are rejected per parameter at generation time
    frozen = {}
    for name, entry in rules.items():
        frozen[str(name)] = MappingProxyType(dict(entry)) if isinstance(entry, dict) else entry
    return MappingProxyType(frozen)


def _parse_blend_factors(data: Any) -> Mapping[str, Mapping[str, float]]:
    if not isinstance(data, dict):
        raise InvalidInput("blend_factors must map 'dark' and 'light' to tables")
    out = {}
    for tone in ('dark', 'light'):
        table = data.get(tone)
        if not isinstance(table, dict):
            raise InvalidInput(f"blend_factors.{tone} is missing")
        for key, value in table.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidInput(f"blend_factors.{tone}.{key} must be numeric, got {value!r}")
        out[tone] = MappingProxyType({k: float(v) for k, v in table.items()})
    return MappingProxyType(out)


def _parse_vu_meters(data: Any) -> Mapping[str, VuMeterGradient]:
    if data is None:
        return MappingProxyType({})
    if not isinstance(data, dict):
        raise InvalidInput("vu_meters must be a mapping")
    meters = {}
    for name, entry in data.items():
        if not isinstance(entry, dict):
            raise InvalidInput(f"vu_meters.{name} must be a mapping")
        missing = [f for f in VU_METER_FIELDS if f not in entry]
        if missing:
            raise InvalidInput(f"vu_meters.{name} is missing {', '.join(missing)}")
        meters[name] = VuMeterGradient(**{f: entry[f] for f in VU_METER_FIELDS})
    return MappingProxyType(meters)


def parse_theme_config(data: Any, source: Optional[Path] = None) -> ThemeConfig:
    """Validate the top-level structure of an already-parsed config document."""
    if not isinstance(data, dict):
        raise InvalidInput("Theme config must be a mapping")
    rules = data.get('parameters')
    if not isinstance(rules, dict) or not rules:
        raise InvalidInput("Theme config has no 'parameters' table")
    return ThemeConfig(
        parameters=_freeze_rules(rules),
        blend_factors=_parse_blend_factors(data.get('blend_factors')),
        vu_meters=_parse_vu_meters(data.get('vu_meters')),
        source=source,
    )


def load_theme_config(config_path: Optional[Path] = None) -> ThemeConfig:
    """Load config from YAML. Path is optional; defaults to config/parameter_map.yaml.

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidInput: If the YAML does not have the expected structure
    """
    if config_path is None:
        return default_theme_config()
    path = Path(config_path)
    with open(path, encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidInput(f"Could not parse {path}: {e}") from e
    config = parse_theme_config(data, source=path)
    logger.debug("Loaded %d parameter rules from %s", len(config.parameters), path)
    return config


@lru_cache(maxsize=1)
def default_theme_config() -> ThemeConfig:
    return load_theme_config(default_config_path())
