#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Experimental Pipelines

ForecastPipeline (regression on a temporal split):
1. Data loading and temporal ordering
2. Design matrix with explicit reference levels and a time-threshold split
3. Penalized regression with the penalty chosen by K-fold CV
4. Randomized hyperparameter search for the two-hidden-layer network
5. Held-out evaluation (MSE, R²) and ranking of the test entities
6. Results, summary, predictions and fitted models written to disk

InferencePipeline (binary response):
1. Data loading
2. Apparent fit vs. the majority-class baseline
3. Bootstrap coefficient standard errors and p-values
4. Optimism-corrected AUC
5. Variance inflation factors
"""

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config import EXPERIMENT_CONFIG, PATH_CONFIG
from ..core.dataset import DatasetSchema, prepare_dataset
from ..core.design_matrix import FeatureMatrixBuilder, TemporalSplit, suggest_split
from ..models.models_registry import get_factory_and_grid
from ..models.persistence import load_model, save_model
from .bootstrap_inference import BootstrapInference, ModelSpec, coefficient_table
from .holdout_evaluation import HoldoutEvaluator, evaluate_classifier, rank_predictions
from .hyperparameter_tuning import HyperparameterTuner
from .regularization_path import entry_penalties, nonzero_counts

# results / file key of the penalized model, by penalty
PENALIZED_MODEL_NAMES = {"l1": "lasso", "l2": "ridge", "elasticnet": "elasticnet"}


def _to_jsonable(value):
    """Convert numpy / pandas values in a results dict to plain JSON types."""
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, pd.DataFrame):
        return value.to_dict(orient="records")
    if isinstance(value, pd.Series):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    return value


def _write_json(results: Dict[str, Any], path: Path) -> Path:
    with open(path, "w") as f:
        json.dump(_to_jsonable(results), f, indent=2, sort_keys=True, ensure_ascii=False)
    return path


class ForecastPipeline:
    """
    Regression forecasting on a temporal split.

    Args:
        data: CSV path or DataFrame with one row per (entity, period)
        schema: Column roles of the dataset
        response_field: Column to forecast
        reference_levels: Reference level for every categorical field
        split: Explicit temporal split; when None, the most recent periods
            covering about ``test_fraction`` of rows are held out
        models: Subset of ("lasso", "mlp") to run; "lasso" selects the penalized
            regression, stored under its penalty name (lasso, ridge or elasticnet)
        fast: Use the small network grid
    """

    def __init__(
        self,
        data: Union[str, Path, pd.DataFrame],
        schema: DatasetSchema,
        response_field: str,
        reference_levels: Mapping[str, str],
        split: Optional[TemporalSplit] = None,
        test_fraction: float = EXPERIMENT_CONFIG.test_fraction,
        models: Sequence[str] = ("lasso", "mlp"),
        penalty: str = EXPERIMENT_CONFIG.penalty,
        l1_ratio: Optional[float] = None,
        n_folds: int = EXPERIMENT_CONFIG.cv_folds,
        sample_fraction: float = EXPERIMENT_CONFIG.sample_fraction,
        fast: bool = False,
        seed: Optional[int] = EXPERIMENT_CONFIG.seed,
        results_dir: Union[str, Path] = PATH_CONFIG.results_dir,
        verbose: bool = True,
    ):
        unknown = [m for m in models if m not in {"lasso", "mlp"}]
        if unknown:
            raise ValueError(f"Unknown models: {unknown}")
        self.data_src = data
        self.schema = schema
        self.response_field = response_field
        self.reference_levels = dict(reference_levels)
        self.split = split
        self.test_fraction = test_fraction
        self.models_to_run = list(models)
        self.penalty = penalty
        self.penalized_name = PENALIZED_MODEL_NAMES.get(penalty.lower(), penalty.lower())
        self.l1_ratio = l1_ratio
        self.n_folds = n_folds
        self.sample_fraction = sample_fraction
        self.fast = fast
        self.seed = seed
        self.results_dir = Path(results_dir)
        self.verbose = verbose

        self.data: Optional[pd.DataFrame] = None
        self.builder: Optional[FeatureMatrixBuilder] = None
        self.design = None
        self.models: Dict[str, Any] = {}
        self.evaluator: Optional[HoldoutEvaluator] = None
        self.results: Dict[str, Any] = {}

    def _banner(self, title: str):
        if self.verbose:
            print("\n" + "=" * 60)
            print(title)
            print("=" * 60)

    def load_and_prepare_data(self) -> pd.DataFrame:
        self._banner("STEP 1: Loading and Preparing Data")
        self.data, meta = prepare_dataset(self.data_src, self.schema, self.response_field)
        self.results["data"] = meta
        if self.verbose:
            print(f"[data] rows={meta['final_rows']}, dropped={meta['dropped_rows']}")
            print(f"[data] periods={meta['periods']}")
        return self.data

    def build_design_matrix(self):
        self._banner("STEP 2: Building Design Matrix")
        if self.data is None:
            self.load_and_prepare_data()
        if self.split is None:
            self.split = suggest_split(self.data, self.schema.time_field, self.test_fraction)

        self.builder = FeatureMatrixBuilder(self.schema, self.reference_levels)
        self.design = self.builder.build(self.data, self.response_field, self.split)
        self.results["split"] = {
            "train_from": self.split.train_from,
            "train_until": self.split.train_until,
            "test_periods": list(self.split.test_periods),
            "train_rows": len(self.design.y_train),
            "test_rows": len(self.design.y_test),
        }
        self.results["columns"] = list(self.design.columns)
        if self.verbose:
            print(
                f"[data] train t<={self.split.train_until} ({len(self.design.y_train)} rows), "
                f"test t in {list(self.split.test_periods)} ({len(self.design.y_test)} rows)"
            )
            print(f"[data] {len(self.design.columns)} columns; indicators per field: "
                  f"{self.builder.indicator_counts()}")
        return self.design

    def run_penalized_regression(self):
        self._banner("STEP 3: Penalized Regression")
        factory, _ = get_factory_and_grid(self.penalty, fast=self.fast)
        model = factory(
            {
                **({"l1_ratio": self.l1_ratio} if self.l1_ratio is not None else {}),
                "n_folds": self.n_folds,
                "n_alphas": EXPERIMENT_CONFIG.n_alphas,
                "eps": EXPERIMENT_CONFIG.alpha_eps,
                "seed": self.seed if self.seed is not None else EXPERIMENT_CONFIG.seed,
                "verbose": self.verbose,
            }
        )
        model.fit(self.design.X_train, self.design.y_train)
        self.models[self.penalized_name] = model

        summary = model.summary()
        summary["entry_penalties"] = entry_penalties(model.coef_path_).to_dict()
        summary["nonzero_counts"] = nonzero_counts(model.coef_path_).tolist()
        self.results[self.penalized_name] = summary
        if self.verbose:
            print("Non-zero coefficients:")
            for name, value in model.nonzero_coefficients().items():
                print(f"  {name:30} {value: .4f}")
        return model

    def run_network_search(self):
        self._banner("STEP 4: Network Hyperparameter Search")
        factory, grid = get_factory_and_grid("mlp", fast=self.fast)
        tuner = HyperparameterTuner(
            sample_fraction=self.sample_fraction,
            validation_split=EXPERIMENT_CONFIG.validation_split,
            patience=EXPERIMENT_CONFIG.patience,
            max_epochs=EXPERIMENT_CONFIG.max_epochs,
            seed=self.seed,
            model_factory=factory,
            verbose=self.verbose,
        )
        best = tuner.tune(self.design.X_train, self.design.y_train, grid)
        model = tuner.fit_final(self.design.X_train, self.design.y_train, best)
        self.models["mlp"] = model
        self.results["mlp"] = asdict(best)
        return model

    def evaluate_holdout(self) -> pd.DataFrame:
        self._banner("STEP 5: Held-out Evaluation")
        self.evaluator = HoldoutEvaluator(self.design, verbose=self.verbose)
        for name, model in self.models.items():
            params = self.results.get(name, {}).get("params", {})
            self.evaluator.evaluate_model(name, model, params)

        comparison = self.evaluator.create_comparison_table()
        self.results["holdout"] = {
            name: {k: v for k, v in res.items() if k != "ranking"}
            for name, res in self.evaluator.results.items()
        }
        if self.verbose:
            print("\n" + "=" * 80)
            print("HELD-OUT COMPARISON")
            print("=" * 80)
            print(comparison.round(4))
        return comparison

    def save_results(self) -> Path:
        self._banner("STEP 6: Saving Results")
        self.results_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        results_path = _write_json(self.results, self.results_dir / f"experiment_results_{stamp}.json")
        if self.verbose:
            print(f"Results saved to: {results_path}")

        if self.evaluator is not None:
            for name, res in self.evaluator.results.items():
                out = self.results_dir / f"predictions_{name}.csv"
                res["ranking"].to_csv(out, index=False)
                if self.verbose:
                    print(f"Ranked predictions saved to: {out}")

        for name, model in self.models.items():
            path = save_model(
                model,
                self.results_dir / f"model_{name}.joblib",
                builder=self.builder,
                meta={"response_field": self.response_field, "split": self.results.get("split")},
            )
            if self.verbose:
                print(f"Model saved to: {path}")

        self._save_summary_text()
        return results_path

    def _summary_lines(self):
        lines = ["MODEL SUMMARY (held-out periods)", "=" * 60]
        header = f"{'Model':20} | {'Test MSE':>10} | {'Test R2':>8} | {'Train R2':>8}"
        lines.append(header)
        lines.append("-" * len(header))
        for name, res in self.results.get("holdout", {}).items():
            lines.append(
                f"{name:20} | {res['test_metrics']['mse']:10.4f} | "
                f"{res['test_metrics']['r2']:8.4f} | {res['train_metrics']['r2']:8.4f}"
            )
        lines.append("=" * 60)
        return lines

    def _save_summary_text(self):
        out = self.results_dir / "experiment_summary.txt"
        out.write_text("\n".join(self._summary_lines()), encoding="utf-8")
        if self.verbose:
            print(f"\nSummary written to: {out}")

    def predict_future(self, new_data: pd.DataFrame, model_name: Optional[str] = None) -> pd.DataFrame:
        """Rank entities of a future period with a fitted model (no response needed).

        ``model_name`` defaults to the penalized model.
        """
        model_name = model_name or self.penalized_name
        if model_name not in self.models:
            raise ValueError(f"Model '{model_name}' has not been fitted")
        X = self.builder.transform(new_data)
        entities = None
        if self.schema.entity_field is not None:
            entities = new_data[self.schema.entity_field].to_numpy()
        return rank_predictions(entities, self.models[model_name].predict(X))

    def run_complete_pipeline(self) -> Dict[str, Any]:
        self.load_and_prepare_data()
        self.build_design_matrix()
        if "lasso" in self.models_to_run:
            self.run_penalized_regression()
        if "mlp" in self.models_to_run:
            self.run_network_search()
        self.evaluate_holdout()
        self.save_results()
        return self.results


def predict_with_saved_model(path, new_data: pd.DataFrame, entity_field: Optional[str] = None) -> pd.DataFrame:
    """Load a model written by ``ForecastPipeline.save_results`` and rank ``new_data``."""
    bundle = load_model(path)
    builder = bundle["builder"]
    if builder is None:
        raise ValueError(f"{path} was saved without its feature builder")
    preds = bundle["model"].predict(builder.transform(new_data))
    entities = new_data[entity_field].to_numpy() if entity_field is not None else None
    return rank_predictions(entities, preds)


class InferencePipeline:
    """
    Bootstrap inference for a binary response.

    Args:
        data: CSV path or DataFrame
        schema: Column roles of the dataset
        response_field: Binary (0/1) response column
        reference_levels: Reference level for every categorical field
        n_resamples: Bootstrap resamples (R)
        n_jobs: joblib workers for the refits
    """

    def __init__(
        self,
        data: Union[str, Path, pd.DataFrame],
        schema: DatasetSchema,
        response_field: str,
        reference_levels: Mapping[str, str],
        n_resamples: int = EXPERIMENT_CONFIG.n_resamples,
        max_retries: int = EXPERIMENT_CONFIG.max_retries,
        n_jobs: int = 1,
        seed: Optional[int] = EXPERIMENT_CONFIG.seed,
        vif_threshold: float = EXPERIMENT_CONFIG.vif_threshold,
        results_dir: Union[str, Path] = PATH_CONFIG.results_dir,
        verbose: bool = True,
    ):
        self.data_src = data
        self.spec = ModelSpec(
            response_field=response_field, schema=schema, reference_levels=dict(reference_levels)
        )
        self.engine = BootstrapInference(
            n_resamples=n_resamples,
            seed=seed,
            max_retries=max_retries,
            n_jobs=n_jobs,
            vif_threshold=vif_threshold,
            verbose=verbose,
        )
        self.results_dir = Path(results_dir)
        self.verbose = verbose

        self.data: Optional[pd.DataFrame] = None
        self.coefficients: Optional[pd.DataFrame] = None
        self.vif: Optional[pd.DataFrame] = None
        self.results: Dict[str, Any] = {}

    def _banner(self, title: str):
        if self.verbose:
            print("\n" + "=" * 60)
            print(title)
            print("=" * 60)

    def load_data(self) -> pd.DataFrame:
        self._banner("STEP 1: Loading Data")
        self.data, meta = prepare_dataset(
            self.data_src, self.spec.schema, self.spec.response_field, require_time=False
        )
        self.results["data"] = meta
        if self.verbose:
            counts = self.data[self.spec.response_field].value_counts().to_dict()
            print(f"[data] rows={meta['final_rows']}, response balance={counts}")
        return self.data

    def run_baseline_comparison(self) -> Dict[str, Any]:
        self._banner("STEP 2: Apparent Fit vs. Majority Baseline")
        X, y = self.spec.design(self.data)
        model = self.spec.make_estimator().fit(X, y)
        self.results["apparent_fit"] = evaluate_classifier(model, X, y, verbose=self.verbose)
        return self.results["apparent_fit"]

    def run_bootstrap_coefficients(self) -> pd.DataFrame:
        self._banner("STEP 3: Bootstrap Coefficient Standard Errors")
        estimates = self.engine.coefficients(self.data, self.spec)
        self.coefficients = coefficient_table(estimates)
        self.results["coefficients"] = self.coefficients.reset_index()
        if self.verbose:
            print(self.coefficients.round(4))
        return self.coefficients

    def run_bootstrap_auc(self):
        self._banner("STEP 4: Optimism-corrected AUC")
        summary = self.engine.auc(self.data, self.spec)
        self.results["auc"] = asdict(summary)
        return summary

    def run_vif(self) -> pd.DataFrame:
        self._banner("STEP 5: Variance Inflation Factors")
        self.vif = self.engine.vif(self.data, self.spec)
        self.results["vif"] = self.vif.reset_index()
        if self.verbose:
            print(self.vif.round(3))
        return self.vif

    def save_results(self) -> Path:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        results_path = _write_json(self.results, self.results_dir / f"inference_results_{stamp}.json")
        if self.coefficients is not None:
            self.coefficients.to_csv(self.results_dir / "bootstrap_coefficients.csv")
        if self.vif is not None:
            self.vif.to_csv(self.results_dir / "vif.csv")

        lines = ["BOOTSTRAP INFERENCE SUMMARY", "=" * 60]
        if self.coefficients is not None:
            lines.append(self.coefficients.round(4).to_string())
        if "auc" in self.results:
            auc = self.results["auc"]
            lines.append("-" * 60)
            lines.append(f"Apparent AUC:  {auc['apparent_auc']:.4f}")
            lines.append(f"Optimism:      {auc['mean_optimism']:.4f}")
            lines.append(f"Corrected AUC: {auc['corrected_auc']:.4f}")
        lines.append("=" * 60)
        (self.results_dir / "inference_summary.txt").write_text("\n".join(lines), encoding="utf-8")

        if self.verbose:
            print(f"Results saved to: {results_path}")
        return results_path

    def run_complete_pipeline(self) -> Dict[str, Any]:
        self.load_data()
        self.run_baseline_comparison()
        self.run_bootstrap_coefficients()
        self.run_bootstrap_auc()
        self.run_vif()
        self.save_results()
        return self.results
