#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Performance Metrics

Regression and binary-classification metrics computed directly with numpy:
- Mean squared error and R²
- Accuracy, majority-class baseline and confusion matrix
- ROC AUC (rank formulation)

R² invariance: applying the same affine map y -> a*y + c (a != 0) to both the
truth and the prediction leaves R² unchanged, because SSE and SST scale by the
same a². Shifting only the truth (predictions fixed) changes SSE but not SST,
so R² is not invariant under that.
"""

import numpy as np
from typing import Dict, List, Optional
from scipy.stats import rankdata

from .errors import DegenerateResponse, InsufficientVariation


def _as_1d(a) -> np.ndarray:
    return np.asarray(a, dtype=float).ravel()


def mean_squared_error(y_true, y_pred) -> float:
    y_true = _as_1d(y_true)
    y_pred = _as_1d(y_pred)
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")
    if len(y_true) == 0:
        raise ValueError("Cannot compute MSE of an empty vector")
    return float(np.mean((y_true - y_pred) ** 2))


def r2_score(y_true, y_pred) -> float:
    """
    R² = 1 - SSE/SST, with SST taken around the mean of ``y_true`` itself.

    Raises:
        DegenerateResponse: if ``y_true`` is constant (SST = 0)
    """
    y_true = _as_1d(y_true)
    y_pred = _as_1d(y_pred)
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")

    sst = float(np.sum((y_true - y_true.mean()) ** 2))
    if sst == 0.0:
        raise DegenerateResponse(
            "Response is constant; R² is undefined", n_rows=len(y_true)
        )
    sse = float(np.sum((y_true - y_pred) ** 2))
    return 1.0 - sse / sst


def regression_metrics(y_true, y_pred) -> Dict[str, float]:
    return {
        "mse": mean_squared_error(y_true, y_pred),
        "r2": r2_score(y_true, y_pred),
    }


def confusion_matrix(y_true, y_pred, labels: Optional[List] = None) -> np.ndarray:
    """Rows are true labels, columns are predicted labels."""
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)

    if labels is None:
        labels = sorted(set(y_true.tolist()) | set(y_pred.tolist()))

    label_to_idx = {label: i for i, label in enumerate(labels)}
    cm = np.zeros((len(labels), len(labels)), dtype=int)
    for true_label, pred_label in zip(y_true.tolist(), y_pred.tolist()):
        cm[label_to_idx[true_label], label_to_idx[pred_label]] += 1
    return cm


def accuracy_score(y_true, y_pred) -> float:
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)

    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")
    if len(y_true) == 0:
        return 0.0
    return float(np.sum(y_true == y_pred) / len(y_true))


def majority_baseline(y_true) -> Dict[str, float]:
    """Accuracy of always predicting the most frequent class."""
    y_true = np.asarray(y_true)
    if len(y_true) == 0:
        raise ValueError("Cannot compute a baseline for an empty response")
    values, counts = np.unique(y_true, return_counts=True)
    best = int(np.argmax(counts))
    majority = values[best]
    return {
        "majority_class": majority.item() if isinstance(majority, np.generic) else majority,
        "baseline_accuracy": float(counts[best] / len(y_true)),
    }


def roc_auc_score(y_true, scores) -> float:
    """
    Area under the ROC curve for a binary response.

    Uses the rank-sum identity AUC = (R1 - n1(n1+1)/2) / (n1*n0), with average
    ranks for ties.

    Raises:
        InsufficientVariation: if ``y_true`` holds a single class
    """
    y_true = np.asarray(y_true).ravel()
    scores = _as_1d(scores)
    if len(y_true) != len(scores):
        raise ValueError("y_true and scores must have the same length")

    classes = np.unique(y_true)
    if len(classes) != 2:
        raise InsufficientVariation(
            f"AUC needs two classes, found {classes.tolist()}",
            classes=classes.tolist(),
        )
    pos = y_true == classes[1]
    n1 = int(pos.sum())
    n0 = len(y_true) - n1
    ranks = rankdata(scores)
    return float((ranks[pos].sum() - n1 * (n1 + 1) / 2.0) / (n1 * n0))


def classification_metrics(y_true, proba, threshold: float = 0.5) -> Dict[str, object]:
    """
    Default-threshold accuracy reported next to (never instead of) the
    majority-class baseline.

    ``proba`` is the probability of the positive class, the larger of the two
    sorted labels in ``y_true`` (sklearn's ``classes_[1]``). Labels need not be
    coded 0/1; the confusion matrix is ordered (negative, positive).
    """
    y_true = np.asarray(y_true).ravel()
    proba = _as_1d(proba)
    classes = np.unique(y_true)
    if len(classes) > 2:
        raise ValueError(f"Binary response required, found classes {classes.tolist()}")
    positive = classes[1] if len(classes) == 2 else 1
    y01 = (y_true == positive).astype(int)
    y_pred = (proba >= threshold).astype(int)

    base = majority_baseline(y_true)
    acc = accuracy_score(y01, y_pred)
    out = {
        "threshold": threshold,
        "positive_class": positive.item() if isinstance(positive, np.generic) else positive,
        "accuracy": acc,
        "baseline_accuracy": base["baseline_accuracy"],
        "majority_class": base["majority_class"],
        "accuracy_over_baseline": acc - base["baseline_accuracy"],
        "confusion_matrix": confusion_matrix(y01, y_pred, labels=[0, 1]).tolist(),
    }
    if len(classes) == 2:
        out["auc"] = roc_auc_score(y01, proba)
    else:
        out["auc"] = None
    return out
