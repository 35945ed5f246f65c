from dataclasses import dataclass, field
from typing import Any, Dict

import yaml

from .errors import ConfigurationError

_MISSING_INCOME_POLICIES = ("drop", "impute_median")
_FENCE_SCOPES = ("global", "train")
_WINNER_METRICS = ("train_auc", "cv_auc")


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    cleaning: Dict[str, Any] = field(default_factory=dict)
    preprocessing: Dict[str, Any] = field(default_factory=dict)
    models: Dict[str, Any] = field(default_factory=dict)
    validation: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"Config file {path} does not contain a mapping")
        unknown = set(cfg) - {"data", "cleaning", "preprocessing", "models", "validation", "output"}
        if unknown:
            raise ConfigurationError(f"Unknown config sections: {sorted(unknown)}")
        if "data" not in cfg:
            raise ConfigurationError(f"Config file {path} has no data section")
        config = cls(**{section: values or {} for section, values in cfg.items()})
        config.validate()
        return config

    @property
    def seed(self) -> int:
        return int(self.validation.get("seed", 42))

    @property
    def label_col(self) -> str:
        return self.data.get("label_col", "accepted")

    def validate(self) -> None:
        """Check the values the pipeline cannot recover from later on."""
        if "path" not in self.data:
            raise ConfigurationError("data.path is required")

        policy = self.cleaning.get("missing_income", {}).get("policy", "drop")
        if policy not in _MISSING_INCOME_POLICIES:
            raise ConfigurationError(
                f"cleaning.missing_income.policy must be one of {_MISSING_INCOME_POLICIES}, got {policy!r}"
            )

        scope = self.cleaning.get("outliers", {}).get("scope", "global")
        if scope not in _FENCE_SCOPES:
            raise ConfigurationError(
                f"cleaning.outliers.scope must be one of {_FENCE_SCOPES}, got {scope!r}"
            )

        train_fraction = self.validation.get("train_fraction", 0.7)
        if not 0.0 < float(train_fraction) < 1.0:
            raise ConfigurationError(
                f"validation.train_fraction must be in (0, 1), got {train_fraction}"
            )

        n_splits = self.validation.get("n_splits", 5)
        if int(n_splits) < 2:
            raise ConfigurationError(f"validation.n_splits must be >= 2, got {n_splits}")

        metric = self.validation.get("winner_metric", "train_auc")
        if metric not in _WINNER_METRICS:
            raise ConfigurationError(
                f"validation.winner_metric must be one of {_WINNER_METRICS}, got {metric!r}"
            )

        ratio = self.preprocessing.get("upsample_ratio")
        if ratio is not None and not 0.0 < float(ratio) <= 1.0:
            raise ConfigurationError(f"preprocessing.upsample_ratio must be in (0, 1], got {ratio}")
