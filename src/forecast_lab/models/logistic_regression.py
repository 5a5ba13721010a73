# logistic_regression.py
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression

from ..core.design_matrix import align_columns, to_array
from ..core.errors import InsufficientVariation

# C this large leaves the likelihood effectively unpenalized (a plain GLM fit)
UNPENALIZED_C = 1e6


class LogisticClassifier:
    """sklearn LogisticRegression wrapped for binary-response inference.

    params:
      - penalty: "none" (default, GLM-style fit), "l2" or "l1"
      - C: inverse penalty strength, ignored when penalty="none"
      - max_iter, tol: solver settings
    """

    def __init__(self, **params: Dict[str, Any]):
        self.p = params
        self.model: Optional[LogisticRegression] = None
        self.columns: List[str] = []

    def _make_estimator(self) -> LogisticRegression:
        penalty = str(self.p.get("penalty", "none")).lower()
        max_iter = self.p.get("max_iter", 5000)
        tol = self.p.get("tol", 1e-8)
        if penalty == "none":
            return LogisticRegression(C=UNPENALIZED_C, max_iter=max_iter, tol=tol)
        if penalty == "l2":
            return LogisticRegression(C=self.p.get("C", 1.0), max_iter=max_iter, tol=tol)
        if penalty == "l1":
            return LogisticRegression(
                penalty="l1", solver="liblinear", C=self.p.get("C", 1.0), max_iter=max_iter, tol=tol
            )
        raise ValueError(f"Unknown penalty for LogisticClassifier: {penalty}")

    def fit(self, X, y):
        y = np.asarray(y).ravel()
        classes = np.unique(y)
        if len(classes) != 2:
            raise InsufficientVariation(
                f"Binary response required, found classes {classes.tolist()}",
                classes=classes.tolist(),
            )
        if isinstance(X, pd.DataFrame):
            self.columns = [str(c) for c in X.columns]
        else:
            self.columns = [f"x{i}" for i in range(np.asarray(X).shape[1])]
        self.model = self._make_estimator()
        self.model.fit(to_array(X), y)
        return self

    def predict_proba(self, X) -> np.ndarray:
        if self.model is None:
            raise RuntimeError("Model is not fitted; call fit() first")
        return self.model.predict_proba(align_columns(X, self.columns))

    def predict(self, X, threshold: float = 0.5) -> np.ndarray:
        return (self.predict_proba(X)[:, 1] >= threshold).astype(int)

    def coefficients(self) -> pd.Series:
        if self.model is None:
            raise RuntimeError("Model is not fitted; call fit() first")
        return pd.Series(
            [float(self.model.intercept_[0]), *self.model.coef_[0].tolist()],
            index=["(Intercept)", *self.columns],
        )


def create_logistic_factory(defaults: Optional[Dict[str, Any]] = None):
    defaults = defaults or {}

    def factory(params: Dict[str, Any]):
        return LogisticClassifier(**{**defaults, **params})

    return factory
