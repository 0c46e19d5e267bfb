"""
model_store.py

On-disk cache of fitted models and sweep results.

A TopicModel is stored as one joblib file keyed by
(corpus fingerprint, K, iterations, seed, trainer parameters), so a sweep
re-run on the same corpus with the same settings can skip retraining.
The file format is an implementation detail (joblib pickle), not a
compatibility contract.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import joblib

from .corpus import DocumentTermMatrix
from .lda_trainer import TopicModel
from .model_sweep import SweepResult

_PARAM_KEYS = ("trainer", "alpha", "beta", "coherence_top_n", "burnin")


class ModelStore:
    """Directory-backed cache of TopicModel / SweepResult objects."""

    def __init__(
        self,
        root: Union[str, Path],
        *,
        compress: int = 3,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.compress = compress
        self.log_fn = log_fn or (lambda _msg: None)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def model_key(
        fingerprint: str,
        k: int,
        iterations: int,
        seed: int,
        trainer_params: Dict[str, Any],
    ) -> str:
        params = json.dumps(trainer_params, sort_keys=True, default=str)
        params_hash = hashlib.sha256(params.encode("utf-8")).hexdigest()[:12]
        return f"model_{fingerprint[:16]}_k{int(k)}_it{int(iterations)}_s{int(seed)}_{params_hash}"

    def model_path(self, fingerprint: str, k: int, iterations: int, seed: int, trainer_params: Dict[str, Any]) -> Path:
        return self.root / f"{self.model_key(fingerprint, k, iterations, seed, trainer_params)}.joblib"

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def get_model(
        self,
        *,
        dtm: DocumentTermMatrix,
        k: int,
        iterations: int,
        seed: int,
        trainer_params: Dict[str, Any],
    ) -> Optional[TopicModel]:
        """Load a cached model, or return None on a miss."""
        path = self.model_path(dtm.fingerprint, k, iterations, seed, trainer_params)
        if not path.exists():
            return None
        model = joblib.load(path)
        if not isinstance(model, TopicModel):
            raise TypeError(f"{path} does not contain a TopicModel (got {type(model).__name__}).")
        self.log_fn(f"[ModelStore] hit {path.name}")
        return model

    def save_model(
        self,
        model: TopicModel,
        *,
        dtm: Optional[DocumentTermMatrix] = None,
        trainer_params: Optional[Dict[str, Any]] = None,
    ) -> Path:
        """
        Persist a model under its cache key.

        The key is taken from `model.config` (fingerprint, iterations, seed);
        `dtm` only overrides the fingerprint and `trainer_params` the
        hyperparameter part.
        """
        cfg = model.config
        fingerprint = dtm.fingerprint if dtm is not None else cfg["dtm_fingerprint"]
        if trainer_params is None:
            trainer_params = {key: cfg[key] for key in _PARAM_KEYS if key in cfg}
        path = self.model_path(fingerprint, model.k, cfg["iterations"], cfg["seed"], trainer_params)
        joblib.dump(model, path, compress=self.compress)
        self.log_fn(f"[ModelStore] saved {path.name}")
        return path

    # ------------------------------------------------------------------
    # Sweep results
    # ------------------------------------------------------------------

    def save_sweep(self, result: SweepResult, name: Optional[str] = None) -> Path:
        """Persist a whole SweepResult (models included unless discarded)."""
        if name is None:
            cfg = result.config
            fingerprint = str(cfg.get("dtm_fingerprint", "unknown"))
            name = f"sweep_{fingerprint[:16]}_it{result.iterations}_s{cfg.get('base_seed', 'na')}"
        path = self.root / f"{name}.joblib"
        joblib.dump(result, path, compress=self.compress)
        self.log_fn(f"[ModelStore] saved {path.name}")
        return path

    def load_sweep(self, name_or_path: Union[str, Path]) -> SweepResult:
        path = Path(name_or_path)
        if not path.suffix:
            path = self.root / f"{path.name}.joblib"
        result = joblib.load(path)
        if not isinstance(result, SweepResult):
            raise TypeError(f"{path} does not contain a SweepResult (got {type(result).__name__}).")
        return result
