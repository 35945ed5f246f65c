"""
Regular hyperparameter grids expressed as data.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class GridAxis:
    name: str
    min: float
    max: float
    levels: int
    integer: bool = False
    log: bool = False

    def values(self) -> Tuple[Any, ...]:
        if self.levels < 1:
            raise ConfigurationError(f"Axis '{self.name}': levels must be >= 1, got {self.levels}")
        if self.min > self.max:
            raise ConfigurationError(f"Axis '{self.name}': min {self.min} is greater than max {self.max}")
        if self.log and self.min <= 0:
            raise ConfigurationError(f"Axis '{self.name}': log-spaced range must be positive")

        if self.log:
            raw = np.logspace(np.log10(self.min), np.log10(self.max), self.levels)
        else:
            raw = np.linspace(self.min, self.max, self.levels)

        if self.integer:
            # rounding can collapse neighbouring levels on narrow ranges
            return tuple(dict.fromkeys(int(round(v)) for v in raw))
        return tuple(float(v) for v in raw)

    @classmethod
    def from_dict(cls, name: str, cfg: Mapping[str, Any]) -> "GridAxis":
        try:
            return cls(
                name=name,
                min=float(cfg["min"]),
                max=float(cfg["max"]),
                levels=int(cfg.get("levels", 5)),
                integer=bool(cfg.get("integer", False)),
                log=bool(cfg.get("log", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid grid axis '{name}': {cfg}") from exc


@dataclass(frozen=True)
class HyperparameterGrid:
    axes: Tuple[GridAxis, ...] = ()

    def configurations(self) -> List[Dict[str, Any]]:
        """Cartesian product of the axis values, in axis order."""
        if not self.axes:
            return [{}]
        names = [axis.name for axis in self.axes]
        return [dict(zip(names, combo)) for combo in itertools.product(*(a.values() for a in self.axes))]

    def __len__(self) -> int:
        return len(self.configurations())

    @classmethod
    def from_config(cls, cfg: Mapping[str, Mapping[str, Any]] | None) -> "HyperparameterGrid":
        if not cfg:
            return cls()
        return cls(axes=tuple(GridAxis.from_dict(name, axis) for name, axis in cfg.items()))


def config_id(params: Mapping[str, Any]) -> str:
    """Stable, readable identifier for one hyperparameter tuple."""
    if not params:
        return "default"
    parts = []
    for key in sorted(params):
        value = params[key]
        parts.append(f"{key}={value:.6g}" if isinstance(value, float) else f"{key}={value}")
    return ",".join(parts)
