import numpy as np
import pandas as pd
import pytest

from marketing_offer.errors import DataValidationError
from marketing_offer.model_families import build_family_registry
from marketing_offer.model_selector import ModelSelector, summarize
from marketing_offer.model_trainer import ModelTrainer
from marketing_offer.preprocessor import RecipeSpec


def _metrics(rows):
    return pd.DataFrame(rows, columns=["family", "config_id", "params", "fold", "auc", "error"])


def _knn_rows(neighbors, aucs):
    return [
        ("knn", f"neighbors={neighbors}", {"neighbors": neighbors}, fold, auc, None)
        for fold, auc in enumerate(aucs, start=1)
    ]


def test_summarize_ignores_undefined_cells():
    metrics = _metrics(_knn_rows(5, [0.7, np.nan, 0.9]))
    summary = summarize(metrics)
    assert summary.loc[0, "mean_auc"] == pytest.approx(0.8)
    assert summary.loc[0, "n_defined"] == 2
    assert summary.loc[0, "n_folds"] == 3


def test_best_configuration_ties_resolve_to_fewer_neighbors():
    families = build_family_registry()
    metrics = _metrics(_knn_rows(15, [0.75, 0.85]) + _knn_rows(3, [0.80, 0.80]) + _knn_rows(9, [0.6, 0.7]))
    selector = ModelSelector(families)

    for _ in range(3):
        best = selector.best_configurations(metrics)
        assert best["knn"]["params"] == {"neighbors": 3}
        assert best["knn"]["cv_auc"] == pytest.approx(0.80)


def test_best_configuration_tie_is_independent_of_row_order():
    families = build_family_registry()
    rows = _knn_rows(15, [0.8, 0.8]) + _knn_rows(3, [0.8, 0.8])
    forward = ModelSelector(families).best_configurations(_metrics(rows))
    backward = ModelSelector(families).best_configurations(_metrics(rows[::-1]))
    assert forward["knn"]["config_id"] == backward["knn"]["config_id"] == "neighbors=3"


def test_forest_tie_prefers_fewer_trees():
    families = build_family_registry()
    small = {"mtry": 4, "trees": 100, "min_n": 5}
    large = {"mtry": 4, "trees": 500, "min_n": 5}
    metrics = _metrics(
        [
            ("random_forest", "large", large, 1, 0.9, None),
            ("random_forest", "small", small, 1, 0.9, None),
        ]
    )
    best = ModelSelector(families).best_configurations(metrics)
    assert best["random_forest"]["params"] == small


def test_family_with_only_failed_cells_is_skipped():
    families = build_family_registry()
    metrics = _metrics(
        _knn_rows(5, [0.7, 0.8])
        + [("elastic_net", "x", {"penalty": 0.1, "mixture": 0.5}, 1, np.nan, "did not converge")]
    )
    best = ModelSelector(families).best_configurations(metrics)
    assert "knn" in best
    assert "elastic_net" not in best


def test_pick_winner_uses_configured_metric_and_family_order():
    families = build_family_registry()
    comparison = pd.DataFrame(
        {
            "family": ["knn", "logistic_regression", "random_forest"],
            "config_id": ["a", "default", "b"],
            "cv_auc": [0.70, 0.80, 0.75],
            "train_auc": [0.95, 0.85, 0.95],
        }
    )
    assert ModelSelector(families, winner_metric="train_auc").pick_winner(comparison) == "knn"
    assert ModelSelector(families, winner_metric="cv_auc").pick_winner(comparison) == "logistic_regression"


def test_pick_winner_without_candidates_fails():
    with pytest.raises(DataValidationError):
        ModelSelector(build_family_registry()).pick_winner(
            pd.DataFrame(columns=["family", "config_id", "cv_auc", "train_auc"])
        )


def test_finalize_refits_on_full_train_set(model_df):
    families = build_family_registry({"logistic_regression": {"params": {"C": 1.0}}})
    spec = RecipeSpec.from_frame(model_df, label_col="accepted")
    trainer = ModelTrainer(families, spec, seed=0)
    best = {
        "knn": {"params": {"neighbors": 5}, "config_id": "neighbors=5", "cv_auc": 0.7},
        "logistic_regression": {"params": {}, "config_id": "default", "cv_auc": 0.8},
    }
    models, comparison = ModelSelector(families).finalize(trainer, model_df, best)

    assert set(models) == {"knn", "logistic_regression"}
    assert list(comparison["family"]) == ["knn", "logistic_regression"]
    assert comparison["train_auc"].between(0, 1).all()
    assert models["knn"].params == {"neighbors": 5}
