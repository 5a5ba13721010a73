#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Held-out Evaluation for fitted forecasting models
"""

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..core.metrics import classification_metrics, regression_metrics


def rank_predictions(entities, predictions, name: str = "predicted") -> pd.DataFrame:
    """(entity, predicted) table sorted from highest to lowest prediction."""
    preds = np.asarray(predictions, dtype=float).ravel()
    if entities is None:
        entities = np.arange(len(preds))
    entities = np.asarray(entities)
    if len(entities) != len(preds):
        raise ValueError(f"{len(entities)} entities but {len(preds)} predictions")
    table = pd.DataFrame({"entity": entities, name: preds})
    return table.sort_values(name, ascending=False, kind="mergesort").reset_index(drop=True)


class HoldoutEvaluator:
    def __init__(self, design, verbose: bool = True):
        """
        Args:
            design: DesignMatrix from the feature builder (temporal split already applied)
            verbose: Print per-model results
        """
        self.design = design
        self.verbose = verbose
        self.results: Dict[str, Dict[str, Any]] = {}

    def evaluate_model(self, model_name: str, model, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Score an already fitted regressor on the training and held-out periods.

        Returns:
            Dictionary with test metrics, train metrics and the overfitting gap
        """
        d = self.design
        test_pred = model.predict(d.X_test)
        train_pred = model.predict(d.X_train)

        test_metrics = regression_metrics(d.y_test, test_pred)
        train_metrics = regression_metrics(d.y_train, train_pred)

        # gap > 0 on r2 / < 0 on mse means the model does better on data it saw
        overfitting_gap = {
            "mse": test_metrics["mse"] - train_metrics["mse"],
            "r2": train_metrics["r2"] - test_metrics["r2"],
        }

        results = {
            "model_name": model_name,
            "params": params or {},
            "test_metrics": test_metrics,
            "train_metrics": train_metrics,
            "overfitting_gap": overfitting_gap,
            "test_size": len(d.y_test),
            "train_size": len(d.y_train),
            "ranking": rank_predictions(d.entities_test, test_pred),
        }
        self.results[model_name] = results

        if self.verbose:
            print(f"\n{'='*60}")
            print(f"Evaluating {model_name} on held-out periods")
            print(f"{'='*60}")
            print(f"Test:  MSE={test_metrics['mse']:.4f}  R2={test_metrics['r2']:.4f}")
            print(f"Train: MSE={train_metrics['mse']:.4f}  R2={train_metrics['r2']:.4f}")
            print(f"Overfitting gap (R2 train - test): {overfitting_gap['r2']:.4f}")
            if overfitting_gap["r2"] > 0.1:
                print(f"Warning: train R2 exceeds test R2 by {overfitting_gap['r2']:.4f}")
        return results

    def create_comparison_table(self) -> pd.DataFrame:
        rows = []
        for model_name, res in self.results.items():
            rows.append(
                {
                    "Model": model_name,
                    "Test_MSE": res["test_metrics"]["mse"],
                    "Test_R2": res["test_metrics"]["r2"],
                    "Train_MSE": res["train_metrics"]["mse"],
                    "Train_R2": res["train_metrics"]["r2"],
                    "Overfitting_Gap_R2": res["overfitting_gap"]["r2"],
                    "Test_Size": res["test_size"],
                    "Train_Size": res["train_size"],
                }
            )
        return pd.DataFrame(rows)


def evaluate_classifier(model, X, y, threshold: float = 0.5, verbose: bool = True) -> Dict[str, Any]:
    """Accuracy at ``threshold`` next to the majority-class baseline, plus AUC."""
    proba = model.predict_proba(X)[:, 1]
    out = classification_metrics(y, proba, threshold)
    if verbose:
        print(
            f"[eval] accuracy={out['accuracy']:.4f} baseline={out['baseline_accuracy']:.4f} "
            f"(majority class {out['majority_class']})"
        )
        if out["auc"] is not None:
            print(f"[eval] AUC={out['auc']:.4f}")
        if out["accuracy_over_baseline"] <= 0:
            print("Warning: classifier does not beat the majority-class baseline")
    return out
