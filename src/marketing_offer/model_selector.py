from typing import Any, Dict, Mapping, Tuple

import numpy as np
import pandas as pd

from .errors import ConvergenceFailure, DataValidationError
from .model_families import ModelFamily
from .model_trainer import ModelTrainer, TrainedModel
from .utils.logger import get_logger


def summarize(metrics: pd.DataFrame) -> pd.DataFrame:
    """Mean validation AUC per (family, configuration); undefined cells are ignored."""
    grouped = metrics.groupby(["family", "config_id"], sort=False)
    summary = grouped.agg(
        mean_auc=("auc", "mean"),
        std_auc=("auc", "std"),
        n_folds=("fold", "count"),
        n_defined=("auc", "count"),
    ).reset_index()
    params = metrics.drop_duplicates(["family", "config_id"]).set_index(["family", "config_id"])["params"]
    summary.insert(2, "params", [params[key] for key in zip(summary["family"], summary["config_id"])])
    return summary


class ModelSelector:
    """
    Picks the best configuration per family from cross-validation, refits it
    on the full training set, then picks one winning family. The test set is
    never consulted here.
    """

    def __init__(
        self,
        families: Mapping[str, ModelFamily],
        winner_metric: str = "train_auc",
    ):
        self.families = dict(families)
        self.winner_metric = winner_metric
        self.logger = get_logger(self.__class__.__name__)

    def best_configurations(self, metrics: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
        """
        Highest mean AUC per family. Ties go to the simplest configuration
        (family complexity key ascending), then to the configuration id.
        """
        summary = summarize(metrics)
        best: Dict[str, Dict[str, Any]] = {}
        for name, group in summary.groupby("family", sort=False):
            defined = group.dropna(subset=["mean_auc"])
            if defined.empty:
                self.logger.warning(f"{name}: every configuration failed; family skipped")
                continue

            family = self.families[name]
            top = defined["mean_auc"].max()
            tied = defined[np.isclose(defined["mean_auc"], top, rtol=0.0, atol=1e-12)]
            row = min(
                tied.itertuples(index=False),
                key=lambda r: (family.complexity(r.params), r.config_id),
            )
            best[name] = {
                "params": dict(row.params),
                "config_id": row.config_id,
                "cv_auc": float(row.mean_auc),
                "n_defined": int(row.n_defined),
            }
            self.logger.info(f"{name}: best [{row.config_id}] mean CV AUC {row.mean_auc:.4f}")
        return best

    def finalize(
        self,
        trainer: ModelTrainer,
        train_df: pd.DataFrame,
        best: Mapping[str, Mapping[str, Any]],
    ) -> Tuple[Dict[str, TrainedModel], pd.DataFrame]:
        """Refit each family's best configuration on all of ``train_df`` and self-score it."""
        models: Dict[str, TrainedModel] = {}
        rows = []
        for name, choice in best.items():
            family = self.families[name]
            try:
                model = trainer.fit_final(family, choice["params"], train_df)
                train_auc = trainer.score(model, train_df)
            except ConvergenceFailure as exc:
                self.logger.warning(f"{name}: final refit failed ({exc}); family skipped")
                continue
            models[name] = model
            rows.append(
                {
                    "family": name,
                    "config_id": choice["config_id"],
                    "cv_auc": choice["cv_auc"],
                    "train_auc": train_auc,
                }
            )
        comparison = pd.DataFrame(rows, columns=["family", "config_id", "cv_auc", "train_auc"])
        return models, comparison

    def pick_winner(self, comparison: pd.DataFrame) -> str:
        """Family with the highest winner metric; ties go to the earlier family."""
        if comparison.empty:
            raise DataValidationError("No model family produced a usable fit")
        ranked = comparison.reset_index(drop=True)
        order = {name: i for i, name in enumerate(self.families)}
        ranked = ranked.assign(_order=ranked["family"].map(order))
        ranked = ranked.sort_values([self.winner_metric, "_order"], ascending=[False, True])
        winner = str(ranked.iloc[0]["family"])
        self.logger.info(
            f"Winner by {self.winner_metric}: {winner} ({ranked.iloc[0][self.winner_metric]:.4f})"
        )
        return winner
