import os
import warnings
from textwrap import indent
from typing import Any, Dict, Optional

import pandas as pd

from .artifacts import ArtifactStore
from .cleaner import DEFAULT_CATEGORICAL, DEFAULT_DROP_COLUMNS, DataCleaner
from .config import Config
from .data_loader import DataLoader
from .errors import MarketingPipelineError, StageError
from .evaluator import EvaluationResult, Evaluator
from .feature_engineer import FeatureEngineer
from .model_families import build_family_registry
from .model_selector import ModelSelector, summarize
from .model_trainer import ModelTrainer
from .partitioner import Partitioner
from .preprocessor import RecipeSpec
from .utils.logger import get_logger


class PipelineRunner:
    """End-to-end marketing offer acceptance pipeline.

    Steps:
      1. Load the raw table and rename columns
      2. Derive generation, tenure and prior-acceptance features
      3. Clean: missing income, income outliers, unused columns, type tags
      4. Stratified train/test split and stratified k folds on train
      5. Cross-validated sweep over six model families and their grids
      6. Best configuration per family, refit on the full train set
      7. Winner chosen from training-side metrics only
      8. Single evaluation of the winner on the untouched test set"""

    def __init__(self, config_path: str, store: Optional[ArtifactStore] = None):
        self.config = Config.from_yaml(config_path)
        out = self.config.output
        self.store = store or ArtifactStore(
            out.get("artifacts_dir", "artifacts"), enabled=out.get("use_cache", True)
        )
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings(
            "ignore",
            message="X does not have valid feature names",
            category=UserWarning,
            module="sklearn",
        )

    def _stage(self, name: str, fn, *args, config: Optional[Dict[str, Any]] = None, **kwargs):
        """Run one stage; fatal errors are re-raised with the stage name attached."""
        try:
            return fn(*args, **kwargs)
        except StageError:
            raise
        except (MarketingPipelineError, FileNotFoundError, KeyError, ValueError) as exc:
            raise StageError(name, f"{type(exc).__name__}: {exc}", config) from exc

    def _load(self) -> pd.DataFrame:
        data = self.config.data
        loader = DataLoader(
            data["path"],
            sample_size=data.get("sample_size"),
            sep=data.get("sep", ","),
            column_mapping=data.get("column_mapping"),
            random_state=self.config.seed,
        )
        return loader.load()

    def _prepare(self, df: pd.DataFrame, cleaner: DataCleaner, remove_outliers: bool) -> pd.DataFrame:
        engineer = FeatureEngineer(
            generation_fallback=self.config.cleaning.get("generation_fallback", "Generation Z"),
            date_format=self.config.data.get("date_format"),
        )
        return cleaner.clean(engineer.transform(df), remove_outliers=remove_outliers)

    def _make_cleaner(self) -> DataCleaner:
        cleaning = self.config.cleaning
        missing = cleaning.get("missing_income", {})
        outliers = cleaning.get("outliers", {})
        return DataCleaner(
            label_col=self.config.label_col,
            missing_policy=missing.get("policy", "drop"),
            max_drop_fraction=float(missing.get("max_drop_fraction", 0.05)),
            fence_multiplier=float(outliers.get("multiplier", 1.5)),
            drop_columns=cleaning.get("drop_columns", DEFAULT_DROP_COLUMNS),
            categorical_columns=cleaning.get("categorical_columns", DEFAULT_CATEGORICAL),
        )

    def run(self) -> EvaluationResult:
        cfg = self.config
        label_col = cfg.label_col
        seed = cfg.seed
        out = cfg.output
        self.logger.info("Starting marketing offer pipeline")

        raw = self._stage("load", self._load, config={"path": cfg.data["path"]})
        self.logger.info(f"Loaded dataset: {raw.shape[0]:,} rows x {raw.shape[1]} cols")
        if label_col not in raw.columns:
            raise StageError("load", f"label column '{label_col}' missing from input", {"label_col": label_col})

        cleaner = self._make_cleaner()
        fence_scope = cfg.cleaning.get("outliers", {}).get("scope", "global")
        outliers_on = cfg.cleaning.get("outliers", {}).get("enabled", True)
        if fence_scope == "global" and outliers_on:
            self.logger.warning(
                "Income fence computed on the full dataset before the split; "
                "test-set incomes influence it (set cleaning.outliers.scope=train to avoid)"
            )
        dataset = self._stage(
            "prepare",
            self._prepare,
            raw,
            cleaner,
            remove_outliers=outliers_on and fence_scope == "global",
            config=cfg.cleaning,
        )

        cleaned_path = out.get("cleaned_data_path", "artifacts/cleaned.csv")
        os.makedirs(os.path.dirname(cleaned_path) or ".", exist_ok=True)
        dataset.to_csv(cleaned_path, index=False)
        self.logger.info(f"Saved cleaned dataset: {cleaned_path}")

        partitioner = Partitioner(label_col=label_col, seed=seed)
        train_fraction = float(cfg.validation.get("train_fraction", 0.7))
        train, test = self._stage(
            "split", partitioner.split, dataset, train_fraction,
            config={"train_fraction": train_fraction, "seed": seed},
        )

        if outliers_on and fence_scope == "train":
            train = self._stage("prepare", cleaner.remove_income_outliers, train, config=cfg.cleaning)

        n_splits = int(cfg.validation.get("n_splits", 5))
        folds = self._stage(
            "folds", partitioner.make_folds, train, n_splits,
            config={"n_splits": n_splits, "seed": seed},
        )

        families = self._stage("models", build_family_registry, cfg.models, config=cfg.models)
        spec = RecipeSpec.from_frame(
            train,
            label_col=label_col,
            drop_zero_variance=cfg.preprocessing.get("drop_zero_variance", True),
            upsample_ratio=cfg.preprocessing.get("upsample_ratio"),
        )
        event_label = int(cfg.validation.get("event_label", 0))
        trainer = ModelTrainer(
            families,
            spec,
            label_col=label_col,
            seed=seed,
            n_jobs=int(cfg.validation.get("n_jobs", 1)),
            event_label=event_label,
        )

        # keyed on the training rows as well as the config
        sweep_payload = {
            "data": cfg.data,
            "train_fingerprint": int(pd.util.hash_pandas_object(train, index=False).sum()),
            "cleaning": cfg.cleaning,
            "preprocessing": cfg.preprocessing,
            "models": cfg.models,
            "validation": cfg.validation,
        }
        metrics = self._stage(
            "tune",
            self.store.get_or_compute,
            "tune",
            sweep_payload,
            lambda: trainer.tune(train, folds),
            config=cfg.models,
        )
        summary = summarize(metrics)
        summary_path = out.get("cv_metrics_path", "artifacts/cv_metrics.csv")
        os.makedirs(os.path.dirname(summary_path) or ".", exist_ok=True)
        summary.drop(columns=["params"]).to_csv(summary_path, index=False)

        selector = ModelSelector(families, winner_metric=cfg.validation.get("winner_metric", "train_auc"))
        best = selector.best_configurations(metrics)
        models, comparison = self._stage(
            "select", selector.finalize, trainer, train, best, config={"families": list(best)}
        )
        for name, model in models.items():
            self.store.save(model, f"model_{name}")

        comparison_path = out.get("comparison_path", "artifacts/model_comparison.csv")
        os.makedirs(os.path.dirname(comparison_path) or ".", exist_ok=True)
        comparison.to_csv(comparison_path, index=False)
        table = indent(comparison.to_string(index=False, float_format=lambda v: f"{v:.4f}"), " " * 4)
        self.logger.info(f"Model comparison:\n{table}")

        winner = self._stage("select", selector.pick_winner, comparison)

        # the only place the test set is scored
        evaluator = Evaluator(
            out.get("metrics_path", "artifacts/test_metrics.json"),
            out.get("figures_dir", "artifacts/figures"),
            threshold=float(cfg.validation.get("threshold", 0.5)),
            event_label=event_label,
        )
        result = self._stage(
            "evaluate",
            evaluator.evaluate,
            models[winner],
            test,
            supports_importance=families[winner].supports_importance,
            plot=out.get("plots", True),
            config={"family": winner, "params": models[winner].params},
        )

        if isinstance(result.feature_importance, pd.DataFrame):
            importance_path = out.get("importance_path", "artifacts/feature_importance.csv")
            os.makedirs(os.path.dirname(importance_path) or ".", exist_ok=True)
            result.feature_importance.to_csv(importance_path, index=False)
            self.logger.info(f"Saved feature importance: {importance_path}")
        else:
            self.logger.info(f"Feature importance for {winner}: {result.feature_importance}")

        cm = result.confusion_matrix
        self.logger.info(
            f"Test AUC ({winner}): {result.auc:.4f} | "
            f"TP={cm['tp']} FP={cm['fp']} TN={cm['tn']} FN={cm['fn']}"
        )
        self.logger.info("Pipeline finished")
        return result
