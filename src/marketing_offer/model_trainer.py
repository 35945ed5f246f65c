import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import roc_auc_score

from .errors import ConvergenceFailure
from .grid import config_id
from .model_families import ModelFamily
from .partitioner import FoldSet
from .preprocessor import Preprocessor, RecipeSpec, TransformerState
from .utils.logger import get_logger

METRIC_COLUMNS = ["family", "config_id", "params", "fold", "auc", "error"]


def auc_for_event(
    y_true: np.ndarray,
    proba: np.ndarray,
    classes: Sequence[Any],
    event_label: int = 0,
) -> float:
    """
    ROC AUC with ``event_label`` as the positive class, scored by the predicted
    probability of that label. The default event is label 0 (offer declined):
    the estimate is P(label == 0). For a binary problem this equals the AUC of
    P(label == 1) against label 1.
    """
    classes = list(classes)
    if event_label not in classes:
        raise ConvergenceFailure(f"Model never saw event label {event_label}; classes={classes}")
    y_event = (np.asarray(y_true) == event_label).astype(int)
    if y_event.min() == y_event.max():
        raise ConvergenceFailure("AUC undefined: scored subset holds a single label class")
    return float(roc_auc_score(y_event, proba[:, classes.index(event_label)]))


@dataclass(frozen=True)
class TrainedModel:
    """One family + one hyperparameter tuple + its transformer state + fitted estimator."""
    family: str
    params: Mapping[str, Any]
    state: TransformerState
    estimator: Any = field(repr=False)

    @property
    def config_id(self) -> str:
        return config_id(self.params)

    @property
    def classes_(self) -> np.ndarray:
        return self.estimator.classes_

    def predict_proba(self, df: pd.DataFrame) -> np.ndarray:
        return self.estimator.predict_proba(self.state.apply(df))


class ModelTrainer:
    """
    Cross-validated sweep over model families and their hyperparameter grids.

    Every (family, configuration, fold) cell fits the recipe on the fold's
    training portion only, applies it to both portions, fits the model and
    scores the validation portion. A cell that fails to converge, or whose
    validation fold holds a label its training fold lacks, is recorded with
    ``auc = NaN`` instead of aborting the sweep.
    """

    def __init__(
        self,
        families: Mapping[str, ModelFamily],
        recipe_spec: RecipeSpec,
        label_col: str = "accepted",
        seed: int = 42,
        n_jobs: int = 1,
        event_label: int = 0,
    ):
        self.families = dict(families)
        self.recipe_spec = recipe_spec
        self.label_col = label_col
        self.seed = seed
        self.n_jobs = n_jobs
        self.event_label = event_label
        self.logger = get_logger(self.__class__.__name__)

    def fit_model(self, family: ModelFamily, params: Mapping[str, Any], train_df: pd.DataFrame) -> TrainedModel:
        """Fit recipe + estimator on ``train_df``; non-convergence raises ConvergenceFailure."""
        prep = Preprocessor(self.recipe_spec, label_col=self.label_col, random_state=self.seed)
        state, X_train, y_train = prep.fit_transform(train_df)

        if len(np.unique(y_train)) < 2:
            raise ConvergenceFailure(
                f"{family.name} [{config_id(params)}]: training data holds a single label class"
            )

        estimator = family.build(params, n_samples=len(X_train), n_features=X_train.shape[1], seed=self.seed)
        with warnings.catch_warnings():
            warnings.simplefilter("error", category=ConvergenceWarning)
            try:
                estimator.fit(X_train, y_train)
            except ConvergenceWarning as exc:
                raise ConvergenceFailure(
                    f"{family.name} [{config_id(params)}] did not converge: {exc}"
                ) from exc

        return TrainedModel(family=family.name, params=dict(params), state=state, estimator=estimator)

    def score(self, model: TrainedModel, df: pd.DataFrame) -> float:
        y = df[self.label_col].astype(int).to_numpy()
        return auc_for_event(y, model.predict_proba(df), model.classes_, self.event_label)

    def score_cell(
        self,
        family: ModelFamily,
        params: Mapping[str, Any],
        fold: int,
        train_df: pd.DataFrame,
        val_df: pd.DataFrame,
    ) -> Dict[str, Any]:
        record = {
            "family": family.name,
            "config_id": config_id(params),
            "params": dict(params),
            "fold": fold,
            "auc": float("nan"),
            "error": None,
        }
        try:
            unseen = set(val_df[self.label_col].unique()) - set(train_df[self.label_col].unique())
            if unseen:
                raise ConvergenceFailure(
                    f"validation fold holds labels {sorted(unseen)} absent from its training fold"
                )
            model = self.fit_model(family, params, train_df)
            record["auc"] = self.score(model, val_df)
        except ConvergenceFailure as exc:
            record["error"] = str(exc)
            self.logger.warning(f"{family.name} [{record['config_id']}] fold {fold}: {exc}")
        return record

    def tune(self, train_df: pd.DataFrame, folds: FoldSet) -> pd.DataFrame:
        """Score every (family, configuration, fold) cell; returns the long metrics table."""
        cells = []
        for family in self.families.values():
            for params in family.grid.configurations():
                for fold, (train_idx, val_idx) in enumerate(folds, start=1):
                    cells.append((family, params, fold, train_idx, val_idx))

        self.logger.info(
            f"Tuning {len(self.families)} families: {len(cells)} cells over {folds.k} folds (n_jobs={self.n_jobs})"
        )

        records: List[Dict[str, Any]] = Parallel(n_jobs=self.n_jobs)(
            delayed(self.score_cell)(
                family,
                params,
                fold,
                train_df.iloc[train_idx].reset_index(drop=True),
                train_df.iloc[val_idx].reset_index(drop=True),
            )
            for family, params, fold, train_idx, val_idx in cells
        )

        metrics = pd.DataFrame.from_records(records, columns=METRIC_COLUMNS)
        n_failed = int(metrics["auc"].isna().sum())
        if n_failed:
            self.logger.warning(f"{n_failed}/{len(metrics)} cells produced no metric")
        return metrics

    def fit_final(self, family: ModelFamily, params: Mapping[str, Any], train_df: pd.DataFrame) -> TrainedModel:
        """Refit one configuration on the entire training set."""
        model = self.fit_model(family, params, train_df)
        self.logger.info(f"Refit {family.name} [{model.config_id}] on {len(train_df):,} rows")
        return model
