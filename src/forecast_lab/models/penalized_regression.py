# penalized_regression.py
"""
Cross-validated penalized linear regression (lasso by default).

The penalty grid runs geometrically from ``alpha_max``, the smallest penalty
that zeroes every coefficient, down to ``alpha_max * eps``. Each fold fits the
whole path with sklearn's coordinate descent (warm starts), the penalty with
the lowest mean held-out MSE is kept (``selection="min"``), and the model is
refit on all training rows. ``selection="1se"`` takes the largest penalty
within one standard error of that minimum instead; it is never the default.

Objective, with rho = l1_ratio:
    1/(2n) * ||y - Xw - b||^2 + alpha * rho * ||w||_1 + alpha * (1 - rho)/2 * ||w||^2

Features are standardized before fitting; coefficients are reported on the
original scale.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import enet_path

from ..core.cross_validation import kfold_indices
from ..core.design_matrix import align_columns, to_array
from ..core.errors import DegenerateResponse, SingularFeatureSet

PENALTY_L1_RATIO = {"l1": 1.0, "lasso": 1.0, "l2": 0.0, "ridge": 0.0}

# glmnet's convention for a pure ridge path: size alpha_max as if rho were 1e-3
_MIN_RATIO_FOR_ALPHA_MAX = 1e-3


def resolve_l1_ratio(penalty: str, l1_ratio: Optional[float] = None) -> float:
    penalty = penalty.lower()
    if penalty in PENALTY_L1_RATIO:
        return PENALTY_L1_RATIO[penalty]
    if penalty in {"elasticnet", "enet"}:
        if l1_ratio is None or not 0.0 < l1_ratio < 1.0:
            raise ValueError("elasticnet penalty needs l1_ratio in (0, 1)")
        return float(l1_ratio)
    raise ValueError(f"Unknown penalty: {penalty}")


def _column_names(X) -> List[str]:
    if isinstance(X, pd.DataFrame):
        return [str(c) for c in X.columns]
    return [f"x{i}" for i in range(np.asarray(X).shape[1])]


def _standardize(X: np.ndarray, enabled: bool = True) -> Tuple[np.ndarray, np.ndarray]:
    mean = X.mean(axis=0)
    if not enabled:
        return mean, np.ones(X.shape[1])
    scale = X.std(axis=0)
    scale[scale == 0.0] = 1.0
    return mean, scale


def _check_response(y: np.ndarray) -> None:
    if len(y) == 0 or np.all(y == y[0]):
        raise DegenerateResponse(
            "Response is constant; nothing to fit", n_rows=len(y)
        )


def penalty_grid(
    X,
    y,
    n_alphas: int = 100,
    eps: float = 1e-4,
    l1_ratio: float = 1.0,
    standardize: bool = True,
) -> np.ndarray:
    """Descending geometric penalty sequence from ``alpha_max`` to ``alpha_max * eps``."""
    X = to_array(X)
    y = np.asarray(y, dtype=float).ravel()
    _check_response(y)

    mean, scale = _standardize(X, standardize)
    Xs = (X - mean) / scale
    yc = y - y.mean()
    ratio = max(l1_ratio, _MIN_RATIO_FOR_ALPHA_MAX)
    alpha_max = float(np.max(np.abs(Xs.T @ yc)) / (len(y) * ratio))
    if alpha_max <= 0.0:
        raise SingularFeatureSet(
            "No predictor co-varies with the response; penalty grid is empty",
            n_features=X.shape[1],
        )
    return np.geomspace(alpha_max, alpha_max * eps, n_alphas)


def _fit_path(
    Xs: np.ndarray,
    y: np.ndarray,
    alphas: np.ndarray,
    l1_ratio: float,
    max_iter: int,
    tol: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Intercepts (n_alphas,) and coefficients (n_features, n_alphas) on the rows given.

    ``alphas`` must be in descending order.
    """
    x_mean = Xs.mean(axis=0)
    y_mean = y.mean()
    Xc = Xs - x_mean
    yc = y - y_mean

    if l1_ratio > 0.0:
        _, coefs, _ = enet_path(
            Xc, yc, l1_ratio=l1_ratio, alphas=alphas, max_iter=max_iter, tol=tol
        )
    else:
        # ridge: w = (XᵀX + n·alpha·I)⁻¹ Xᵀy, via the SVD of the centred matrix
        n = Xc.shape[0]
        U, s, Vt = np.linalg.svd(Xc, full_matrices=False)
        Uty = U.T @ yc
        coefs = np.column_stack(
            [Vt.T @ (s / (s ** 2 + n * a) * Uty) for a in alphas]
        )
    intercepts = y_mean - x_mean @ coefs
    return intercepts, coefs


@dataclass
class _Params:
    penalty: str = "l1"
    l1_ratio: Optional[float] = None
    alpha: Optional[float] = None
    alphas: Optional[Sequence[float]] = None
    n_alphas: int = 100
    eps: float = 1e-4
    n_folds: int = 10
    selection: str = "min"
    cross_validate: bool = True
    standardize: bool = True
    seed: int = 42
    max_iter: int = 10000
    tol: float = 1e-7
    verbose: bool = False


class PenalizedRegression:
    """
    Penalized least squares with the penalty chosen by K-fold CV.

    Pass ``alpha`` to fit a single fixed penalty without cross-validation, or
    ``cross_validate=False`` to fit the whole grid and keep the smallest penalty.
    After ``fit``: ``alpha_``, ``intercept_``, ``coef_`` (original scale),
    ``alphas_``, ``cv_mse_mean_``, ``cv_mse_se_`` and ``coef_path_``.
    """

    def __init__(self, **params: Any):
        known = {f.name for f in fields(_Params)}
        unknown = set(params) - known
        if unknown:
            raise ValueError(f"Unknown parameters for PenalizedRegression: {sorted(unknown)}")
        self.p = _Params(**params)
        if self.p.selection not in {"min", "1se"}:
            raise ValueError(f"selection must be 'min' or '1se', got {self.p.selection}")
        self.l1_ratio = resolve_l1_ratio(self.p.penalty, self.p.l1_ratio)

        self.columns: List[str] = []
        self.alpha_: Optional[float] = None
        self.intercept_: float = 0.0
        self.coef_: Optional[np.ndarray] = None
        self.alphas_: Optional[np.ndarray] = None
        self.cv_mse_mean_: Optional[np.ndarray] = None
        self.cv_mse_se_: Optional[np.ndarray] = None
        self.coef_path_: Optional[pd.DataFrame] = None

    # ---------- cv ----------
    def _cross_validate(self, Xs: np.ndarray, y: np.ndarray, alphas: np.ndarray):
        p = self.p
        folds = kfold_indices(len(y), p.n_folds, p.seed)
        errors = np.empty((len(folds), len(alphas)))
        for fi, (tr, va) in enumerate(folds):
            b, W = _fit_path(Xs[tr], y[tr], alphas, self.l1_ratio, p.max_iter, p.tol)
            pred = b[None, :] + Xs[va] @ W
            errors[fi] = np.mean((y[va, None] - pred) ** 2, axis=0)
        return errors.mean(axis=0), errors.std(axis=0, ddof=1) / np.sqrt(len(folds))

    def _select(self, mean: np.ndarray, se: np.ndarray) -> int:
        best = int(np.argmin(mean))
        if self.p.selection == "min":
            return best
        # alphas are descending, so the first index within one SE is the largest penalty
        limit = mean[best] + se[best]
        return int(np.flatnonzero(mean <= limit)[0])

    # ---------- api ----------
    def fit(self, X, y) -> "PenalizedRegression":
        p = self.p
        self.columns = _column_names(X)
        X = to_array(X)
        y = np.asarray(y, dtype=float).ravel()
        if X.shape[0] != len(y):
            raise ValueError("X and y must have the same number of rows")
        _check_response(y)

        use_cv = p.alpha is None and p.cross_validate
        if use_cv and X.shape[0] < p.n_folds:
            raise SingularFeatureSet(
                f"{X.shape[0]} training rows cannot support {p.n_folds}-fold CV",
                n_rows=X.shape[0],
                n_folds=p.n_folds,
            )
        if X.shape[1] == 0 or np.all(X.std(axis=0) == 0.0):
            raise SingularFeatureSet(
                "No predictor column varies across training rows",
                n_features=X.shape[1],
            )

        mean, scale = _standardize(X, p.standardize)
        Xs = (X - mean) / scale

        if p.alpha is not None:
            alphas = np.array([float(p.alpha)])
        elif p.alphas is not None:
            alphas = np.sort(np.asarray(p.alphas, dtype=float))[::-1]
        else:
            alphas = penalty_grid(X, y, p.n_alphas, p.eps, self.l1_ratio, p.standardize)

        if use_cv:
            cv_mean, cv_se = self._cross_validate(Xs, y, alphas)
            best = self._select(cv_mean, cv_se)
            self.cv_mse_mean_ = cv_mean
            self.cv_mse_se_ = cv_se
        else:
            # no CV: keep the least penalized fit
            best = len(alphas) - 1

        b, W = _fit_path(Xs, y, alphas, self.l1_ratio, p.max_iter, p.tol)
        W_orig = W / scale[:, None]
        b_orig = b - mean @ W_orig

        self.alphas_ = alphas
        self.alpha_ = float(alphas[best])
        self.coef_ = W_orig[:, best]
        self.intercept_ = float(b_orig[best])
        self.coef_path_ = pd.DataFrame(W_orig.T, index=pd.Index(alphas, name="alpha"), columns=self.columns)

        if p.verbose:
            print(
                f"[lasso] penalty={p.penalty} alpha={self.alpha_:.6g} "
                f"({best + 1}/{len(alphas)}) nonzero={self.n_nonzero()}/{len(self.columns)}"
            )
            if self.cv_mse_mean_ is not None:
                print(f"[lasso] cv_mse={self.cv_mse_mean_[best]:.4f} ± {self.cv_mse_se_[best]:.4f}")
        return self

    def _check_fitted(self):
        if self.coef_ is None:
            raise RuntimeError("Model is not fitted; call fit() first")

    def predict(self, X) -> np.ndarray:
        self._check_fitted()
        arr = align_columns(X, self.columns)
        return self.intercept_ + arr @ self.coef_

    def coefficients(self) -> pd.Series:
        self._check_fitted()
        return pd.Series(
            [self.intercept_, *self.coef_], index=["(Intercept)", *self.columns]
        )

    def n_nonzero(self) -> int:
        self._check_fitted()
        return int(np.count_nonzero(self.coef_))

    def nonzero_coefficients(self) -> pd.Series:
        coefs = self.coefficients().iloc[1:]
        return coefs[coefs != 0.0]

    def summary(self) -> Dict[str, Any]:
        self._check_fitted()
        best = int(np.flatnonzero(self.alphas_ == self.alpha_)[0])
        out = {
            "penalty": self.p.penalty,
            "l1_ratio": self.l1_ratio,
            "alpha": self.alpha_,
            "n_alphas": len(self.alphas_),
            "n_nonzero": self.n_nonzero(),
            "coefficients": self.coefficients().to_dict(),
        }
        if self.cv_mse_mean_ is not None:
            out["cv_mse"] = float(self.cv_mse_mean_[best])
            out["cv_mse_se"] = float(self.cv_mse_se_[best])
        return out


def fit_lasso(X_train, y_train, penalty_grid: Optional[Sequence[float]] = None, **params: Any) -> PenalizedRegression:
    """Select the penalty by K-fold CV over ``penalty_grid`` and refit on all rows."""
    if penalty_grid is not None:
        params["alphas"] = penalty_grid
    return PenalizedRegression(**params).fit(X_train, y_train)


def predict(model, X) -> np.ndarray:
    return model.predict(X)


def create_penalized_factory(defaults: Optional[Dict[str, Any]] = None):
    defaults = defaults or {}

    def factory(params: Dict[str, Any]):
        return PenalizedRegression(**{**defaults, **params})

    return factory
