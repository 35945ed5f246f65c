"""
Marketing Offer Acceptance — Modular Machine Learning Pipeline

This package loads a customer marketing table, cleans it, and compares six
classification model families on whether a customer accepts an offer,
using stratified cross-validation, grid tuning, and a single held-out
test evaluation of the selected model.

Modules:
    config              — Load YAML configuration safely.
    errors              — Pipeline error taxonomy.
    data_loader         — Read, optionally sample and rename the raw table.
    feature_engineer    — Generation, tenure and prior-acceptance features.
    cleaner             — Missing income, income outliers, type tagging.
    partitioner         — Stratified train/test split and k folds.
    preprocessor        — Fit-once/apply-many feature recipe.
    grid                — Regular hyperparameter grids.
    model_families      — The six model families and their builders.
    model_trainer       — Cross-validated sweep and final refits.
    model_selector      — Best configuration per family, overall winner.
    evaluator           — Test metrics, confusion matrix, feature importance.
    artifacts           — joblib artifact store keyed by stage/config hash.
    pipeline            — Orchestrates all components.
    utils.logger        — Unified timestamped console logger.
"""

from .artifacts import ArtifactStore
from .cleaner import DataCleaner
from .config import Config
from .data_loader import DataLoader
from .evaluator import Evaluator
from .feature_engineer import FeatureEngineer
from .model_selector import ModelSelector
from .model_trainer import ModelTrainer, TrainedModel
from .partitioner import FoldSet, Partitioner
from .pipeline import PipelineRunner
from .preprocessor import Preprocessor, RecipeSpec, TransformerState

__all__ = [
    "ArtifactStore",
    "Config",
    "DataCleaner",
    "DataLoader",
    "Evaluator",
    "FeatureEngineer",
    "FoldSet",
    "ModelSelector",
    "ModelTrainer",
    "Partitioner",
    "PipelineRunner",
    "Preprocessor",
    "RecipeSpec",
    "TrainedModel",
    "TransformerState",
]
