from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.feature_selection import VarianceThreshold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from .errors import SchemaMismatchError
from .utils.logger import get_logger


def indicator_name(col: str, level) -> str:
    return re.sub(r"\W+", "_", f"{col}_{level}")


@dataclass(frozen=True)
class RecipeSpec:
    """Declares the preprocessing role of every feature."""
    numeric: Tuple[str, ...]
    categorical: Tuple[str, ...]
    drop_zero_variance: bool = True
    upsample_ratio: Optional[float] = None

    @classmethod
    def from_frame(
        cls,
        X: pd.DataFrame,
        label_col: Optional[str] = None,
        drop_zero_variance: bool = True,
        upsample_ratio: Optional[float] = None,
    ) -> "RecipeSpec":
        """Infer roles by dtype: numbers/bools are numeric, objects/strings/categories are categorical."""
        features = X.drop(columns=[label_col]) if label_col in X.columns else X
        numeric = features.select_dtypes(include=["number", "bool"]).columns.tolist()
        categorical = features.select_dtypes(include=["object", "string", "category"]).columns.tolist()
        return cls(
            numeric=tuple(numeric),
            categorical=tuple(categorical),
            drop_zero_variance=drop_zero_variance,
            upsample_ratio=upsample_ratio,
        )

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.numeric + self.categorical


@dataclass(frozen=True)
class TransformerState:
    """
    Fitted recipe for one training subset: the sklearn pipeline plus the
    input schema it was fitted against. Holds no reference to the training
    data; ``apply`` only calls ``transform``.
    """
    label_col: str
    input_columns: Tuple[str, ...]
    recipe_columns: Tuple[str, ...]
    transformer: Pipeline = field(repr=False)
    dropped: Tuple[str, ...]
    output_columns: Tuple[str, ...]

    def check_schema(self, df: pd.DataFrame) -> None:
        given = set(df.columns) - {self.label_col}
        expected = set(self.input_columns)
        if given != expected:
            raise SchemaMismatchError(
                f"Columns do not match the fitted schema: "
                f"missing={sorted(expected - given)}, unexpected={sorted(given - expected)}"
            )

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        self.check_schema(df)
        out = self.transformer.transform(df.loc[:, list(self.recipe_columns)])
        return out.loc[:, list(self.output_columns)].astype(float).reset_index(drop=True)

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return self.output_columns


def apply(state: TransformerState, df: pd.DataFrame) -> pd.DataFrame:
    """Evaluation-time transform: replays ``state``, never rebalances or re-estimates."""
    return state.apply(df)


class Preprocessor:
    """Fit-once/apply-many recipe: one-hot encoding, centering/scaling, zero-variance filter, upsampling."""

    def __init__(
        self,
        spec: RecipeSpec,
        label_col: str = "accepted",
        random_state: int = 42,
        verbose: bool = False,
    ):
        """
        Parameters
        ----------
        spec:
            Feature roles and training-time options.
        label_col:
            Binary label column; ignored by the transform, used for upsampling.
        random_state:
            Seed for the upsampling draw.
        verbose:
            If True, logs the fitted feature counts.
        """
        self.spec = spec
        self.label_col = label_col
        self.random_state = random_state
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def _make_onehot() -> OneHotEncoder:
        # dense output so the pipeline can emit a named DataFrame
        return OneHotEncoder(
            handle_unknown="ignore",
            sparse_output=False,
            feature_name_combiner=indicator_name,
        )

    def build(self) -> Pipeline:
        """Build (but do not fit) the recipe pipeline."""
        recipe = ColumnTransformer(
            transformers=[
                ("num", StandardScaler(), list(self.spec.numeric)),
                ("cat", self._make_onehot(), list(self.spec.categorical)),
            ],
            remainder="drop",
            verbose_feature_names_out=False,
        )
        steps = [("recipe", recipe)]
        if self.spec.drop_zero_variance:
            steps.append(("zero_variance", VarianceThreshold(threshold=0.0)))
        return Pipeline(steps=steps).set_output(transform="pandas")

    def upsample(self, train_df: pd.DataFrame) -> pd.DataFrame:
        """
        Duplicate minority-label rows (with replacement) until each minority
        class has ``upsample_ratio`` times the majority count. The majority
        class is never resampled. Training-time only.
        """
        ratio = self.spec.upsample_ratio
        if ratio is None:
            return train_df

        y = train_df[self.label_col].to_numpy()
        classes, counts = np.unique(y, return_counts=True)
        if len(classes) < 2:
            return train_df

        majority = counts.max()
        target = min(int(np.floor(majority * ratio)), majority)
        rng = np.random.RandomState(self.random_state)
        extra = []
        for cls, n in zip(classes, counts):
            if n >= target:
                continue
            idx = np.where(y == cls)[0]
            extra.append(rng.choice(idx, size=target - n, replace=True))

        if not extra:
            return train_df
        new_idx = np.concatenate([np.arange(len(y))] + extra)
        return train_df.iloc[new_idx].reset_index(drop=True)

    def _check_columns(self, df: pd.DataFrame) -> None:
        missing = [c for c in self.spec.columns if c not in df.columns]
        if missing:
            raise SchemaMismatchError(f"Training frame is missing recipe columns: {missing}")
        if self.label_col not in df.columns:
            raise SchemaMismatchError(f"Label column '{self.label_col}' not found in training frame")

    def _fit_on(self, data: pd.DataFrame, input_columns: Tuple[str, ...]) -> TransformerState:
        recipe_columns = self.spec.columns
        transformer = self.build().fit(data.loc[:, list(recipe_columns)])

        candidates = transformer.named_steps["recipe"].get_feature_names_out()
        if self.spec.drop_zero_variance:
            keep = transformer.named_steps["zero_variance"].get_support()
        else:
            keep = np.ones(len(candidates), dtype=bool)

        state = TransformerState(
            label_col=self.label_col,
            input_columns=input_columns,
            recipe_columns=recipe_columns,
            transformer=transformer,
            dropped=tuple(str(c) for c in candidates[~keep]),
            output_columns=tuple(str(c) for c in candidates[keep]),
        )

        if self.verbose:
            self.logger.info(
                f"Recipe fitted: numeric={len(self.spec.numeric)}, categorical={len(self.spec.categorical)}, "
                f"dropped zero-variance={len(state.dropped)}, rows={len(data):,}"
            )
        return state

    def fit(self, train_df: pd.DataFrame) -> TransformerState:
        """Estimate the transform on ``train_df`` only (after upsampling)."""
        self._check_columns(train_df)
        input_columns = tuple(c for c in train_df.columns if c != self.label_col)
        return self._fit_on(self.upsample(train_df), input_columns)

    def fit_transform(self, train_df: pd.DataFrame) -> Tuple[TransformerState, pd.DataFrame, np.ndarray]:
        """Training-time output: fitted state plus the upsampled, transformed training rows."""
        self._check_columns(train_df)
        input_columns = tuple(c for c in train_df.columns if c != self.label_col)
        data = self.upsample(train_df)
        state = self._fit_on(data, input_columns)
        X = state.apply(data)
        y = data[self.label_col].astype(int).to_numpy()
        return state, X, y
