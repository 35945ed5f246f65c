import json
import os
from dataclasses import dataclass, field
from typing import Dict, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import confusion_matrix

from .model_trainer import TrainedModel, auc_for_event
from .utils.logger import get_logger

UNSUPPORTED = "unsupported"


@dataclass
class EvaluationResult:
    family: str
    auc: float
    confusion_matrix: Dict[str, int]
    feature_importance: Union[pd.DataFrame, str] = field(default=UNSUPPORTED)

    def to_dict(self) -> Dict[str, object]:
        importance = self.feature_importance
        if isinstance(importance, pd.DataFrame):
            importance = importance.to_dict(orient="records")
        return {
            "family": self.family,
            "auc": self.auc,
            "confusion_matrix": dict(self.confusion_matrix),
            "feature_importance": importance,
        }


def feature_importance(model: TrainedModel, supported: bool = True) -> Union[pd.DataFrame, str]:
    """Impurity-based importance per transformed feature, or ``"unsupported"``."""
    importances = getattr(model.estimator, "feature_importances_", None)
    if not supported or importances is None:
        return UNSUPPORTED
    values = np.asarray(importances, dtype=float)
    if values.sum() > 0:
        values = values / values.sum()
    table = pd.DataFrame({"feature": list(model.state.feature_names), "importance": values})
    return table.sort_values("importance", ascending=False, kind="mergesort").reset_index(drop=True)


class Evaluator:
    """Evaluate the selected model once on the held-out test set; save metrics and figures."""

    def __init__(
        self,
        metrics_path: str,
        figures_dir: str = "artifacts",
        threshold: float = 0.5,
        event_label: int = 0,
        verbose: bool = True,
    ):
        self.metrics_path = metrics_path
        self.figures_dir = figures_dir
        self.threshold = threshold
        self.event_label = event_label
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def _confusion_counts(self, y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, int]:
        """Counts with the event label as the positive class."""
        actual = (y_true == self.event_label).astype(int)
        predicted = (y_pred == self.event_label).astype(int)
        tn, fp, fn, tp = confusion_matrix(actual, predicted, labels=[0, 1]).ravel()
        return {"tp": int(tp), "fp": int(fp), "tn": int(tn), "fn": int(fn)}

    def _plot_confusion_matrix(self, counts: Dict[str, int], family: str) -> str:
        cm = np.array([[counts["tp"], counts["fn"]], [counts["fp"], counts["tn"]]])
        event = f"label {self.event_label}"

        plt.figure(figsize=(6, 5))
        sns.heatmap(
            cm,
            annot=True,
            fmt="d",
            cmap="Blues",
            xticklabels=[event, "other"],
            yticklabels=[event, "other"],
        )
        plt.xlabel("Predicted")
        plt.ylabel("Actual")
        plt.title(f"Confusion Matrix ({family})")

        os.makedirs(self.figures_dir, exist_ok=True)
        path = os.path.join(self.figures_dir, f"confusion_matrix_{family}.png")
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()

        if self.verbose:
            self.logger.info(f"Saved confusion matrix: {path}")
        return path

    def _plot_feature_importance(self, table: pd.DataFrame, family: str, top_n: int = 20) -> str:
        plt.figure(figsize=(7, 6))
        sns.barplot(data=table.head(top_n), x="importance", y="feature", color="steelblue")
        plt.title(f"Feature Importance ({family})")

        os.makedirs(self.figures_dir, exist_ok=True)
        path = os.path.join(self.figures_dir, f"feature_importance_{family}.png")
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()

        if self.verbose:
            self.logger.info(f"Saved feature importance plot: {path}")
        return path

    def evaluate(
        self,
        model: TrainedModel,
        test_df: pd.DataFrame,
        supports_importance: bool = False,
        plot: bool = False,
    ) -> EvaluationResult:
        """Apply the model's fitted state (never refit) to ``test_df`` and score it."""
        label_col = model.state.label_col
        y_true = test_df[label_col].astype(int).to_numpy()
        proba = model.predict_proba(test_df)

        classes = list(model.classes_)
        event_proba = proba[:, classes.index(self.event_label)]
        other = [c for c in classes if c != self.event_label][0]
        y_pred = np.where(event_proba >= self.threshold, self.event_label, other)

        result = EvaluationResult(
            family=model.family,
            auc=auc_for_event(y_true, proba, classes, self.event_label),
            confusion_matrix=self._confusion_counts(y_true, y_pred),
            feature_importance=feature_importance(model, supports_importance),
        )

        if self.metrics_path:
            metrics_dir = os.path.dirname(self.metrics_path)
            if metrics_dir:
                os.makedirs(metrics_dir, exist_ok=True)
            with open(self.metrics_path, "w") as f:
                json.dump(result.to_dict(), f, indent=4)
            if self.verbose:
                self.logger.info(f"Saved metrics: {self.metrics_path}")

        if plot:
            self._plot_confusion_matrix(result.confusion_matrix, model.family)
            if isinstance(result.feature_importance, pd.DataFrame):
                self._plot_feature_importance(result.feature_importance, model.family)

        return result
