"""
Registry of the six model families compared by the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Tuple

from lightgbm import LGBMClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.neighbors import KNeighborsClassifier
from sklearn.tree import DecisionTreeClassifier

from .errors import ConfigurationError
from .grid import HyperparameterGrid

FAMILY_ORDER = (
    "logistic_regression",
    "boosted_trees",
    "knn",
    "elastic_net",
    "decision_tree",
    "random_forest",
)

DEFAULT_GRIDS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "knn": {"neighbors": {"min": 1, "max": 15, "levels": 5, "integer": True}},
    "elastic_net": {
        "penalty": {"min": 1e-4, "max": 1.0, "levels": 5, "log": True},
        "mixture": {"min": 0.0, "max": 1.0, "levels": 5},
    },
    "decision_tree": {"cost_complexity": {"min": 1e-4, "max": 1e-1, "levels": 5, "log": True}},
    "random_forest": {
        "mtry": {"min": 2, "max": 10, "levels": 3, "integer": True},
        "trees": {"min": 100, "max": 500, "levels": 3, "integer": True},
        "min_n": {"min": 2, "max": 20, "levels": 3, "integer": True},
    },
}


def _no_complexity(params):
    return ()


@dataclass(frozen=True)
class ModelFamily:
    name: str
    builder: Callable[..., Any]
    grid: HyperparameterGrid = field(default_factory=HyperparameterGrid)
    fixed_params: Mapping[str, Any] = field(default_factory=dict)
    complexity: Callable[[Mapping[str, Any]], Tuple] = _no_complexity
    supports_importance: bool = False

    @property
    def tunable(self) -> bool:
        return bool(self.grid.axes)

    def build(self, params: Mapping[str, Any], n_samples: int, n_features: int, seed: int):
        return self.builder(dict(params), dict(self.fixed_params), n_samples, n_features, seed)


def _logistic_regression(params, fixed, n_samples, n_features, seed):
    # large C: effectively unpenalized baseline
    return LogisticRegression(
        C=float(fixed.get("C", 1e4)),
        max_iter=int(fixed.get("max_iter", 1000)),
        random_state=seed,
    )


def _boosted_trees(params, fixed, n_samples, n_features, seed):
    lgbm_params = dict(fixed)
    lgbm_params.setdefault("verbosity", -1)
    lgbm_params.setdefault("n_jobs", 1)
    return LGBMClassifier(random_state=seed, **lgbm_params)


def _knn(params, fixed, n_samples, n_features, seed):
    return KNeighborsClassifier(
        n_neighbors=max(1, min(int(params["neighbors"]), n_samples)),
        weights=fixed.get("weights", "uniform"),
    )


def _elastic_net(params, fixed, n_samples, n_features, seed):
    penalty = float(params["penalty"])
    if penalty <= 0:
        raise ConfigurationError(f"elastic_net penalty must be > 0, got {penalty}")
    # glmnet scales the penalty by the sample count: C = 1 / (n * lambda)
    return LogisticRegression(
        penalty="elasticnet",
        solver="saga",
        C=1.0 / (n_samples * penalty),
        l1_ratio=float(params["mixture"]),
        max_iter=int(fixed.get("max_iter", 5000)),
        random_state=seed,
    )


def _decision_tree(params, fixed, n_samples, n_features, seed):
    return DecisionTreeClassifier(
        ccp_alpha=float(params["cost_complexity"]),
        random_state=seed,
        **fixed,
    )


def _random_forest(params, fixed, n_samples, n_features, seed):
    forest_params = dict(fixed)
    forest_params.setdefault("n_jobs", 1)
    return RandomForestClassifier(
        max_features=max(1, min(int(params["mtry"]), n_features)),
        n_estimators=int(params["trees"]),
        min_samples_leaf=int(params["min_n"]),
        random_state=seed,
        **forest_params,
    )


# Tie-break keys: ascending order means simpler configuration.
def _knn_complexity(params):
    return (params["neighbors"],)


def _elastic_net_complexity(params):
    return (-params["penalty"], -params["mixture"])


def _tree_complexity(params):
    return (-params["cost_complexity"],)


def _forest_complexity(params):
    return (params["trees"], params["mtry"], -params["min_n"])


_FAMILIES = {
    "logistic_regression": (_logistic_regression, _no_complexity, False, False),
    "boosted_trees": (_boosted_trees, _no_complexity, False, True),
    "knn": (_knn, _knn_complexity, True, False),
    "elastic_net": (_elastic_net, _elastic_net_complexity, True, False),
    "decision_tree": (_decision_tree, _tree_complexity, True, False),
    "random_forest": (_random_forest, _forest_complexity, True, True),
}


# (lower bound, upper bound, lower bound exclusive) per tunable axis
_AXIS_RULES = {
    "knn": {"neighbors": (1, None, False)},
    "elastic_net": {"penalty": (0.0, None, True), "mixture": (0.0, 1.0, False)},
    "decision_tree": {"cost_complexity": (0.0, None, False)},
    "random_forest": {
        "mtry": (1, None, False),
        "trees": (1, None, False),
        "min_n": (1, None, False),
    },
}


def _check_grid(name: str, grid: HyperparameterGrid) -> None:
    """Reject grids whose axes or values the family's builder cannot accept."""
    rules = _AXIS_RULES[name]
    axes = {axis.name: axis for axis in grid.axes}
    if set(axes) != set(rules):
        raise ConfigurationError(f"'{name}' grid must define axes {sorted(rules)}, got {sorted(axes)}")
    for axis_name, (low, high, exclusive) in rules.items():
        for value in axes[axis_name].values():
            below = value <= low if exclusive else value < low
            if below or (high is not None and value > high):
                bound = f"> {low}" if exclusive else f">= {low}"
                if high is not None:
                    bound += f" and <= {high}"
                raise ConfigurationError(f"{name} {axis_name} must be {bound}, got {value}")


def build_family_registry(models_cfg: Mapping[str, Any] | None = None) -> Dict[str, ModelFamily]:
    """Build enabled families in fixed order from the ``models`` config section."""
    models_cfg = dict(models_cfg or {})
    unknown = set(models_cfg) - set(FAMILY_ORDER)
    if unknown:
        raise ConfigurationError(f"Unknown model families in config: {sorted(unknown)}")

    registry: Dict[str, ModelFamily] = {}
    for name in FAMILY_ORDER:
        cfg = models_cfg.get(name) or {}
        if not cfg.get("enabled", True):
            continue
        builder, complexity, tunable, importance = _FAMILIES[name]
        grid = HyperparameterGrid()
        if tunable:
            grid = HyperparameterGrid.from_config(cfg.get("grid") or DEFAULT_GRIDS[name])
            if not grid.axes:
                raise ConfigurationError(f"Tunable family '{name}' has an empty grid")
            _check_grid(name, grid)
        registry[name] = ModelFamily(
            name=name,
            builder=builder,
            grid=grid,
            fixed_params=dict(cfg.get("params") or {}),
            complexity=complexity,
            supports_importance=importance,
        )
    return registry
