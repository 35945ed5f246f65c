import json

import pandas as pd
import pytest

from marketing_offer.evaluator import UNSUPPORTED, Evaluator
from marketing_offer.model_families import build_family_registry
from marketing_offer.model_trainer import ModelTrainer
from marketing_offer.partitioner import Partitioner
from marketing_offer.preprocessor import RecipeSpec


@pytest.fixture
def split(model_df):
    return Partitioner(seed=2).split(model_df, 0.7)


def _fit(family_name, params, train):
    families = build_family_registry({"logistic_regression": {"params": {"C": 1.0}}})
    spec = RecipeSpec.from_frame(train, label_col="accepted", upsample_ratio=1.0)
    trainer = ModelTrainer(families, spec, seed=0)
    return trainer.fit_final(families[family_name], params, train), families[family_name]


def test_confusion_matrix_counts_sum_to_test_size(split, tmp_path):
    train, test = split
    model, family = _fit("logistic_regression", {}, train)
    evaluator = Evaluator(str(tmp_path / "metrics.json"), str(tmp_path / "figs"), verbose=False)
    result = evaluator.evaluate(model, test, supports_importance=family.supports_importance)

    cm = result.confusion_matrix
    assert set(cm) == {"tp", "fp", "tn", "fn"}
    assert sum(cm.values()) == len(test)
    # event label 0 is the positive class
    assert cm["tp"] + cm["fn"] == int((test["accepted"] == 0).sum())
    assert 0.0 <= result.auc <= 1.0
    assert result.feature_importance == UNSUPPORTED

    saved = json.loads((tmp_path / "metrics.json").read_text())
    assert saved["family"] == "logistic_regression"
    assert saved["feature_importance"] == UNSUPPORTED


def test_forest_reports_feature_importance(split, tmp_path):
    train, test = split
    model, family = _fit("random_forest", {"mtry": 3, "trees": 25, "min_n": 2}, train)
    evaluator = Evaluator(str(tmp_path / "metrics.json"), str(tmp_path / "figs"), verbose=False)
    result = evaluator.evaluate(model, test, supports_importance=family.supports_importance)

    table = result.feature_importance
    assert isinstance(table, pd.DataFrame)
    assert list(table.columns) == ["feature", "importance"]
    assert set(table["feature"]) == set(model.state.feature_names)
    assert table["importance"].is_monotonic_decreasing
    assert table["importance"].sum() == pytest.approx(1.0)


def test_threshold_changes_hard_labels_only(split, tmp_path):
    train, test = split
    model, _ = _fit("knn", {"neighbors": 7}, train)
    low = Evaluator("", str(tmp_path), threshold=0.0, verbose=False).evaluate(model, test)
    default = Evaluator("", str(tmp_path), verbose=False).evaluate(model, test)

    assert low.auc == pytest.approx(default.auc)
    assert low.confusion_matrix["tn"] == 0
    assert low.confusion_matrix["fn"] == 0


def test_evaluation_does_not_refit_state(split, tmp_path):
    train, test = split
    model, _ = _fit("knn", {"neighbors": 7}, train)
    state_before = model.state
    Evaluator("", str(tmp_path), verbose=False).evaluate(model, test)
    assert model.state is state_before
    assert model.state == state_before


def test_plots_are_written(split, tmp_path):
    train, test = split
    model, family = _fit("random_forest", {"mtry": 3, "trees": 10, "min_n": 2}, train)
    figs = tmp_path / "figs"
    Evaluator("", str(figs), verbose=False).evaluate(
        model, test, supports_importance=family.supports_importance, plot=True
    )
    assert (figs / "confusion_matrix_random_forest.png").exists()
    assert (figs / "feature_importance_random_forest.png").exists()
