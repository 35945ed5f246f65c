import hashlib
import json
import os
from typing import Any, Callable, Mapping

import joblib

from .utils.logger import get_logger


class ArtifactStore:
    """
    joblib-backed save/load of pipeline artifacts under one directory.
    Cached entries are keyed by (stage, hash of the stage configuration).
    """

    def __init__(self, root: str = "artifacts", enabled: bool = True):
        self.root = root
        self.enabled = enabled
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def key(stage: str, payload: Mapping[str, Any]) -> str:
        canonical = json.dumps(payload, sort_keys=True, default=str)
        digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:12]
        return f"{stage}-{digest}"

    def path(self, name: str) -> str:
        return os.path.join(self.root, f"{name}.joblib")

    def exists(self, name: str) -> bool:
        return os.path.exists(self.path(name))

    def save(self, obj: Any, name: str) -> str:
        path = self.path(name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        joblib.dump(obj, path)
        self.logger.info(f"Saved artifact: {path}")
        return path

    def load(self, name: str) -> Any:
        path = self.path(name)
        if not os.path.exists(path):
            raise FileNotFoundError(f"No artifact named '{name}' under {self.root}")
        return joblib.load(path)

    def get_or_compute(self, stage: str, payload: Mapping[str, Any], compute: Callable[[], Any]) -> Any:
        """Load the artifact for (stage, payload) if present, else compute and save it."""
        name = self.key(stage, payload)
        if self.enabled and self.exists(name):
            self.logger.info(f"Cache hit for {stage}: {name}")
            return self.load(name)
        obj = compute()
        if self.enabled:
            self.save(obj, name)
        return obj
