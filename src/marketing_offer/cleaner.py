from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd

from .errors import DataValidationError, SchemaMismatchError
from .feature_engineer import CAMPAIGN_FLAG_PREFIX
from .utils.logger import get_logger

DEFAULT_DROP_COLUMNS = ("id", "cost_contact", "revenue", "enrolled_on", "birth_year")
DEFAULT_CATEGORICAL = ("education", "marital_status", "generation", "complain")


def upper_fence(values: pd.Series, multiplier: float = 1.5) -> float:
    """Boxplot upper fence: Q3 + multiplier * (Q3 - Q1)."""
    values = pd.to_numeric(values, errors="coerce").dropna()
    if values.empty:
        raise DataValidationError("Cannot compute an outlier fence on an empty column")
    q1, q3 = values.quantile([0.25, 0.75])
    return float(q3 + multiplier * (q3 - q1))


class DataCleaner:
    """
    Turns engineered customer records into a modeling dataset:
    resolves missing income, removes income outliers, drops columns with no
    predictive meaning and tags categorical/numeric types.
    """

    def __init__(
        self,
        label_col: str = "accepted",
        income_col: str = "income",
        missing_policy: str = "drop",
        max_drop_fraction: float = 0.05,
        fence_multiplier: float = 1.5,
        drop_columns: Iterable[str] = DEFAULT_DROP_COLUMNS,
        categorical_columns: Iterable[str] = DEFAULT_CATEGORICAL,
    ):
        self.label_col = label_col
        self.income_col = income_col
        self.missing_policy = missing_policy
        self.max_drop_fraction = max_drop_fraction
        self.fence_multiplier = fence_multiplier
        self.drop_columns = tuple(drop_columns)
        self.categorical_columns = tuple(categorical_columns)
        self.logger = get_logger(self.__class__.__name__)

    def _require(self, df: pd.DataFrame, *cols: str) -> None:
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise SchemaMismatchError(f"Input is missing required columns: {missing}")

    def handle_missing_income(self, df: pd.DataFrame) -> pd.DataFrame:
        self._require(df, self.income_col)
        n_missing = int(df[self.income_col].isna().sum())
        if n_missing == 0:
            return df

        if self.missing_policy == "impute_median":
            median = float(df[self.income_col].median())
            self.logger.info(f"Imputed {n_missing} missing incomes with median {median:,.0f}")
            out = df.copy()
            out[self.income_col] = out[self.income_col].fillna(median)
            return out

        if self.missing_policy == "drop":
            fraction = n_missing / max(len(df), 1)
            if fraction > self.max_drop_fraction:
                raise DataValidationError(
                    f"{fraction:.1%} of rows miss '{self.income_col}', above the allowed "
                    f"{self.max_drop_fraction:.1%}; use the 'impute_median' policy or raise the limit"
                )
            self.logger.info(f"Dropped {n_missing} rows with missing {self.income_col} ({fraction:.2%})")
            return df.dropna(subset=[self.income_col]).reset_index(drop=True)

        raise ValueError(f"Unknown missing-income policy: {self.missing_policy}")

    def income_fence(self, df: pd.DataFrame) -> float:
        self._require(df, self.income_col)
        return upper_fence(df[self.income_col], self.fence_multiplier)

    def remove_income_outliers(self, df: pd.DataFrame, fence: Optional[float] = None) -> pd.DataFrame:
        """Drop rows whose income exceeds ``fence`` (computed from ``df`` when not given)."""
        if fence is None:
            fence = self.income_fence(df)
        keep = df[self.income_col] <= fence
        n_dropped = int((~keep).sum())
        self.logger.info(f"Income fence {fence:,.0f}: dropped {n_dropped} outlier rows")
        return df.loc[keep].reset_index(drop=True)

    def drop_unused(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.drop(columns=[c for c in self.drop_columns if c in df.columns])

    def tag_types(self, df: pd.DataFrame) -> pd.DataFrame:
        self._require(df, self.label_col)
        out = df.copy()

        labels = set(pd.unique(out[self.label_col].dropna()))
        if out[self.label_col].isna().any() or not labels.issubset({0, 1}):
            raise DataValidationError(
                f"Label '{self.label_col}' must be binary 0/1 without missing values, got {sorted(labels)}"
            )
        out[self.label_col] = out[self.label_col].astype(int)

        categorical = set(self.categorical_columns) | {
            c for c in out.columns if c.startswith(CAMPAIGN_FLAG_PREFIX)
        }
        for col in out.columns:
            if col == self.label_col:
                continue
            if col in categorical or not pd.api.types.is_numeric_dtype(out[col]):
                out[col] = out[col].astype(str).astype("category")
            else:
                out[col] = pd.to_numeric(out[col])
        return out

    def clean(self, df: pd.DataFrame, remove_outliers: bool = True) -> pd.DataFrame:
        n_start = len(df)
        out = self.handle_missing_income(df)
        if remove_outliers:
            out = self.remove_income_outliers(out)
        out = self.tag_types(self.drop_unused(out))

        if out.empty:
            raise DataValidationError("Dataset is empty after cleaning")

        numeric = out.select_dtypes(include="number").columns
        if out[numeric].isna().any().any():
            bad = out[numeric].columns[out[numeric].isna().any()].tolist()
            raise DataValidationError(f"Numeric modeling features still contain missing values: {bad}")

        self.logger.info(f"Cleaned dataset: {n_start:,} -> {len(out):,} rows, {out.shape[1]} cols")
        return out
