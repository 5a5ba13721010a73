#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Hyperparameter Tuning

Randomized search over the network's structural / optimization
hyperparameters.

Features:
- Samples a fraction of the full Cartesian grid without replacement
- Each run holds out a validation split and early-stops on validation loss
- Best configuration = lowest validation MSE over completed runs
- Final model is retrained from scratch on the full training set
- Ctrl-C stops the search; the best of the completed runs is kept
"""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from ..core.cross_validation import grid_size, sample_grid, validate_grid
from ..core.errors import NoConvergingRun
from ..models.neural_regressor import create_mlp_factory

# ---------------- Hyperparameter grids ----------------
# Full grid: 4 * 3 * 3 * 3 * 4 = 432 combinations

HYPERPARAMETER_GRIDS: Dict[str, Dict[str, List[Any]]] = {
    "mlp": {
        "hidden_1": [32, 64, 128, 256],
        "hidden_2": [16, 32, 64],
        "dropout_1": [0.1, 0.2, 0.4],
        "dropout_2": [0.1, 0.2, 0.4],
        "lr": [1e-4, 5e-4, 1e-3, 5e-3],
    },
}
HYPERPARAMETER_GRIDS_FAST = {
    "mlp": {
        "hidden_1": [16, 32],
        "hidden_2": [8, 16],
        "dropout_1": [0.1],
        "dropout_2": [0.1],
        "lr": [1e-3, 5e-3],
    },
}


@dataclass
class Run:
    params: Dict[str, Any]
    val_mse: float
    epochs: int
    diverged: bool


@dataclass
class BestConfig:
    params: Dict[str, Any]
    val_mse: float
    n_completed: int
    n_planned: int
    interrupted: bool = False
    runs: List[Run] = field(default_factory=list)


class HyperparameterTuner:
    """
    Randomized grid search for the two-hidden-layer regressor.

    Args:
        sample_fraction: Fraction of the full grid to try
        validation_split: Share of training rows held out in each run
        patience: Early-stopping patience (epochs without improvement)
        max_epochs: Upper bound on epochs per run
        seed: Seeds the grid sample and every run; None means non-reproducible
        model_factory: params -> estimator with fit/predict and best_val_mse_/diverged_
    """

    def __init__(
        self,
        sample_fraction: float = 0.1,
        validation_split: float = 0.2,
        patience: int = 10,
        max_epochs: int = 300,
        seed: Optional[int] = 42,
        model_factory: Optional[Callable] = None,
        verbose: bool = True,
    ):
        self.sample_fraction = sample_fraction
        self.validation_split = validation_split
        self.patience = patience
        self.max_epochs = max_epochs
        self.seed = seed
        self.model_factory = model_factory or create_mlp_factory()
        self.verbose = verbose

        # Store results
        self.runs: List[Run] = []
        self.best: Optional[BestConfig] = None

    def _run_params(self, params: Dict[str, Any], run_idx: int) -> Dict[str, Any]:
        out = dict(params)
        out.setdefault("validation_split", self.validation_split)
        out.setdefault("patience", self.patience)
        out.setdefault("max_epochs", self.max_epochs)
        if self.seed is not None:
            out.setdefault("seed", self.seed + run_idx)
        return out

    def tune(
        self,
        X,
        y,
        grid: Dict[str, List[Any]],
        sample_fraction: Optional[float] = None,
    ) -> BestConfig:
        """
        Try a random sample of ``grid`` and return the configuration with the
        lowest validation MSE.

        Raises:
            EmptyGrid: if any hyperparameter has zero candidates
            NoConvergingRun: if every completed run diverged
        """
        validate_grid(grid)
        fraction = self.sample_fraction if sample_fraction is None else sample_fraction
        candidates = sample_grid(grid, fraction, self.seed)

        if self.verbose:
            print(f"\n{'='*60}")
            print("Randomized hyperparameter search")
            print(f"{'='*60}")
            print(f"Grid size: {grid_size(grid)}, sampled runs: {len(candidates)}")
            print(f"Data shape: {np.shape(X)}")

        self.runs = []
        interrupted = False
        try:
            for i, params in enumerate(candidates):
                est = self.model_factory(self._run_params(params, i))
                est.fit(X, y)
                val_mse = float(est.best_val_mse_)
                diverged = bool(est.diverged_) or not math.isfinite(val_mse)
                run = Run(params=params, val_mse=val_mse, epochs=int(est.epochs_), diverged=diverged)
                self.runs.append(run)
                if self.verbose:
                    status = "diverged" if diverged else f"val_mse={val_mse:.4f}"
                    print(f"  [{i+1}/{len(candidates)}] params={params}  {status}  epochs={run.epochs}")
        except KeyboardInterrupt:
            if not self.runs:
                raise
            interrupted = True
            print(
                f"Warning: search interrupted after {len(self.runs)}/{len(candidates)} runs; "
                "selecting from completed runs"
            )

        converged = [r for r in self.runs if not r.diverged]
        if not converged:
            raise NoConvergingRun(
                f"All {len(self.runs)} sampled runs diverged",
                n_runs=len(self.runs),
                params=[r.params for r in self.runs],
            )

        winner = min(converged, key=lambda r: r.val_mse)
        self.best = BestConfig(
            params=dict(winner.params),
            val_mse=winner.val_mse,
            n_completed=len(self.runs),
            n_planned=len(candidates),
            interrupted=interrupted,
            runs=list(self.runs),
        )
        if self.verbose:
            print(f"\nBest parameters: {self.best.params}")
            print(f"Best validation MSE: {self.best.val_mse:.4f}")
        return self.best

    def fit_final(self, X, y, best: Optional[BestConfig] = None):
        """Retrain from scratch on all of ``X``, ``y`` with the best configuration."""
        best = best or self.best
        if best is None:
            raise RuntimeError("No best configuration; call tune() first")
        est = self.model_factory(self._run_params(best.params, 0))
        est.fit(X, y)
        if getattr(est, "diverged_", False):
            raise NoConvergingRun(
                "Final refit with the best configuration diverged", params=best.params
            )
        return est

    def compare_runs(self) -> pd.DataFrame:
        rows = []
        for r in self.runs:
            rows.append({**r.params, "val_mse": r.val_mse, "epochs": r.epochs, "diverged": r.diverged})
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame(rows).sort_values("val_mse").reset_index(drop=True)

    def save_results(self, filepath: str):
        if self.best is None:
            raise RuntimeError("Nothing to save; call tune() first")
        payload = asdict(self.best)
        with open(filepath, "w") as f:
            json.dump(payload, f, indent=2, default=float)
        if self.verbose:
            print(f"Results saved to: {filepath}")


def tune(X_train, y_train, grid, sample_fraction: float = 0.1, **kwargs) -> BestConfig:
    return HyperparameterTuner(sample_fraction=sample_fraction, **kwargs).tune(X_train, y_train, grid)


def fit_final(X_train, y_train, best: BestConfig, **kwargs):
    return HyperparameterTuner(**kwargs).fit_final(X_train, y_train, best)
