"""
inkwell/config.py
=================

Analysis configuration.

Every numeric policy of the estimator is grouped here so it can be swapped
without code changes:

    AnalysisConfig
    ├── cost_model      CostModel           per-operation ink estimates
    ├── dry_nib         DryNibConfig        static dry-nib heuristic constants
    ├── optimizations   OptimizationConfig  optimization-rule constants
    ├── runtime         RuntimeThresholds   constants baked into probes
    ├── hotspot_threshold                   ink above which an op is a hotspot
    └── ink_per_gas                         ink → gas divisor

``load_config(path)`` reads a JSON file with the same top-level keys; any
key it does not know is an error rather than being silently ignored.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Type, TypeVar

from inkwell.cost_model import CostModel
from inkwell.errors import ConfigError, SourceSpan
from inkwell.runtime import RuntimeThresholds

__all__ = [
    "DryNibConfig",
    "OptimizationConfig",
    "AnalysisConfig",
    "DEFAULT_CONFIG",
    "config_from_dict",
    "load_config",
]

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DryNibConfig:
    """Constants of the three static dry-nib passes."""

    # pass 1: per-operation overcharge
    read_base: int = 800_000
    write_base: int = 1_000_000
    return_size: int = 32
    per_byte: int = 100
    per_word: int = 1_000
    overcharge_threshold: int = 150_000
    high_severity_threshold: int = 800_000
    nested_get_count: int = 2

    # pass 2: repeated reads
    repeated_read_count: int = 3
    read_waste: int = 1_200_000
    repeated_buffer: int = 64

    # pass 3: nested access, gas figures converted with AnalysisConfig.ink_per_gas
    host_round_trip: int = 840_000
    cold_access_gas: int = 2_100
    warm_access_gas: int = 100
    nested_buffer: int = 64


@dataclass(frozen=True, slots=True)
class OptimizationConfig:
    """Constants of the optimization rules."""

    redundant_read_threshold: int = 2_000_000
    redundant_read_savings: int = 1_200_000
    redundant_read_savings_pct: float = 50.0
    cached_read_savings: int = 1_200_000
    current_code_width: int = 80


@dataclass(frozen=True)
class AnalysisConfig:
    cost_model: CostModel = field(default_factory=CostModel)
    dry_nib: DryNibConfig = field(default_factory=DryNibConfig)
    optimizations: OptimizationConfig = field(default_factory=OptimizationConfig)
    runtime: RuntimeThresholds = field(default_factory=RuntimeThresholds)
    hotspot_threshold: int = 1_000_000
    ink_per_gas: int = 10_000

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings = list(self.cost_model.validate())
        warnings.extend(self.runtime.validate())
        if self.ink_per_gas <= 0:
            warnings.append("ink_per_gas must be positive")
        if self.hotspot_threshold < 0:
            warnings.append("hotspot_threshold must be non-negative")
        return warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cost_model": self.cost_model.to_dict(),
            "dry_nib": asdict(self.dry_nib),
            "optimizations": asdict(self.optimizations),
            "runtime": self.runtime.to_dict(),
            "hotspot_threshold": self.hotspot_threshold,
            "ink_per_gas": self.ink_per_gas,
        }


DEFAULT_CONFIG = AnalysisConfig()


# ═══════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════

def _section(cls: Type[T], data: Any, name: str, path: str) -> T:
    if not isinstance(data, dict):
        raise ConfigError(f"section `{name}` must be an object", span=SourceSpan(file=path))
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(
            f"unknown key(s) in `{name}`: {', '.join(unknown)}",
            span=SourceSpan(file=path),
        ).add_note("known keys: " + ", ".join(sorted(known)))
    values = {}
    for key, raw in data.items():
        kind = float if known[key].type in ("float", float) else int
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ConfigError(f"`{name}.{key}` must be a number", span=SourceSpan(file=path))
        values[key] = kind(raw)
    return cls(**values)


_TOP_LEVEL = {
    "cost_model": CostModel,
    "dry_nib": DryNibConfig,
    "optimizations": OptimizationConfig,
    "runtime": RuntimeThresholds,
}
_SCALARS = ("hotspot_threshold", "ink_per_gas")


def config_from_dict(data: Dict[str, Any], path: str = "<config>") -> AnalysisConfig:
    """Build an :class:`AnalysisConfig` from a mapping, overriding defaults."""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object", span=SourceSpan(file=path))
    unknown = sorted(set(data) - set(_TOP_LEVEL) - set(_SCALARS))
    if unknown:
        raise ConfigError(
            f"unknown configuration key(s): {', '.join(unknown)}",
            span=SourceSpan(file=path),
        ).add_note("known keys: " + ", ".join(sorted(list(_TOP_LEVEL) + list(_SCALARS))))

    kwargs: Dict[str, Any] = {}
    for key, cls in _TOP_LEVEL.items():
        if key in data:
            kwargs[key] = _section(cls, data[key], key, path)
    for key in _SCALARS:
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"`{key}` must be an integer", span=SourceSpan(file=path))
            kwargs[key] = value

    config = AnalysisConfig(**kwargs)
    problems = [w for w in config.validate() if "non-negative" in w or "positive" in w]
    if problems:
        raise ConfigError("invalid configuration: " + "; ".join(problems), span=SourceSpan(file=path))
    for warning in config.validate():
        log.warning("%s: %s", path, warning)
    return config


def load_config(path: str) -> AnalysisConfig:
    """Load an :class:`AnalysisConfig` from a JSON file.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not valid JSON, or contains unknown
        keys or invalid values.
    """
    path = os.path.expanduser(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise ConfigError(f"cannot read configuration: {exc.strerror}", span=SourceSpan(file=path)) from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(
            f"configuration is not valid UTF-8 (byte {exc.start})", span=SourceSpan(file=path),
        ) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"configuration is not valid JSON: {exc.msg}",
            span=SourceSpan(file=path, line=exc.lineno, column=exc.colno),
        ) from exc
    log.debug("loaded configuration from %s", path)
    return config_from_dict(data, path)
