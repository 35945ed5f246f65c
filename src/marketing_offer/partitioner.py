"""
Stratified train/test split and stratified k-fold grouping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from .errors import ConfigurationError, SchemaMismatchError, StratificationError
from .utils.logger import get_logger


@dataclass(frozen=True)
class FoldSet:
    """k stratified folds over one training frame, stored as positional indices."""
    k: int
    folds: Tuple[Tuple[np.ndarray, np.ndarray], ...]

    def __len__(self) -> int:
        return self.k

    def __iter__(self):
        return iter(self.folds)

    def iter_frames(self, df: pd.DataFrame) -> Iterator[Tuple[int, pd.DataFrame, pd.DataFrame]]:
        for fold_idx, (train_idx, val_idx) in enumerate(self.folds, start=1):
            train_df = df.iloc[train_idx].reset_index(drop=True)
            val_df = df.iloc[val_idx].reset_index(drop=True)
            yield fold_idx, train_df, val_df


class Partitioner:
    """Splits a dataset by label stratum; deterministic for a given seed."""

    def __init__(self, label_col: str = "accepted", seed: int = 42):
        self.label_col = label_col
        self.seed = seed
        self.logger = get_logger(self.__class__.__name__)

    def _labels(self, df: pd.DataFrame) -> np.ndarray:
        if self.label_col not in df.columns:
            raise SchemaMismatchError(f"Label column '{self.label_col}' not found")
        return df[self.label_col].to_numpy()

    def split(self, df: pd.DataFrame, train_fraction: float = 0.7) -> Tuple[pd.DataFrame, pd.DataFrame]:
        if not 0.0 < train_fraction < 1.0:
            raise ConfigurationError(f"train_fraction must be in (0, 1), got {train_fraction}")

        y = self._labels(df)
        classes, counts = np.unique(y, return_counts=True)
        too_small = {int(c): int(n) for c, n in zip(classes, counts) if n < 2}
        if too_small:
            raise StratificationError(f"Label strata too small to split: {too_small}")

        idx = np.arange(len(df))
        train_idx, test_idx = train_test_split(
            idx,
            train_size=train_fraction,
            stratify=y,
            random_state=self.seed,
        )
        train = df.iloc[np.sort(train_idx)].reset_index(drop=True)
        test = df.iloc[np.sort(test_idx)].reset_index(drop=True)

        self.logger.info(
            f"Split {len(df):,} rows -> train {len(train):,} "
            f"(pos rate {train[self.label_col].mean():.3f}), test {len(test):,} "
            f"(pos rate {test[self.label_col].mean():.3f})"
        )
        return train, test

    def make_folds(self, train: pd.DataFrame, k: int = 5) -> FoldSet:
        if k < 2:
            raise ConfigurationError(f"Fold count must be >= 2, got {k}")

        y = self._labels(train)
        _, counts = np.unique(y, return_counts=True)
        minority = int(counts.min()) if len(counts) else 0
        if len(counts) < 2 or k > minority:
            raise StratificationError(
                f"Cannot build {k} stratified folds: minority label has {minority} records"
            )

        skf = StratifiedKFold(n_splits=k, shuffle=True, random_state=self.seed)
        folds = tuple(
            (train_idx, val_idx) for train_idx, val_idx in skf.split(np.zeros(len(y)), y)
        )
        return FoldSet(k=k, folds=folds)
