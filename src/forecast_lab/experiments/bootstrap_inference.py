#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Bootstrap Inference for a fitted binary classifier

- Coefficient standard errors from R refits on resamples drawn with
  replacement; z = original estimate / bootstrap SE, two-sided normal p-value
- Optimism-corrected AUC: each resample's model is scored on the original
  data (a) and on its own resample (b); optimism = b - a and
  corrected AUC = mean(a) - mean(optimism)
- Variance inflation factors, flagged (not rejected) at VIF >= 5

Every resample is refit on its own draw. Degenerate draws (single-class
response, or a design column that varies in the data left constant) are
redrawn up to ``max_retries`` times. Resample indices are drawn up front
from one seeded generator, so results do not depend on ``n_jobs``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy.stats import norm
from sklearn.linear_model import LinearRegression

from ..core.dataset import DatasetSchema
from ..core.design_matrix import FeatureMatrixBuilder, with_response
from ..core.errors import BootstrapExhausted, InsufficientVariation
from ..core.metrics import roc_auc_score
from ..models.logistic_regression import create_logistic_factory


def significance_marker(p: float) -> str:
    if p is None or not np.isfinite(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    if p < 0.1:
        return "."
    return ""


class CoefficientEstimate(NamedTuple):
    estimate: float
    std_error: float
    z: float
    p_value: float

    @property
    def signif(self) -> str:
        return significance_marker(self.p_value)


@dataclass
class AUCSummary:
    corrected_auc: float
    apparent_auc: float
    mean_auc_original: float
    mean_auc_resample: float
    mean_optimism: float
    n_resamples: int


@dataclass
class ModelSpec:
    """What to fit on each resample.

    ``factory(params)`` must return an estimator with ``fit``, ``predict_proba``
    and ``coefficients()``; the default is an unpenalized logistic regression.
    """

    response_field: str
    schema: DatasetSchema
    reference_levels: Mapping[str, str] = field(default_factory=dict)
    factory: Optional[Callable] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def make_estimator(self):
        factory = self.factory or create_logistic_factory()
        return factory(dict(self.params))

    def design(self, dataset: pd.DataFrame) -> Tuple[pd.DataFrame, np.ndarray]:
        """Encode the whole dataset once; resamples reuse these columns."""
        schema = with_response(self.schema, self.response_field)
        builder = FeatureMatrixBuilder(schema, self.reference_levels)
        X = builder.fit_transform(dataset).reset_index(drop=True)
        y = dataset[self.response_field].to_numpy()
        return X, y


def _check_resample(
    y: np.ndarray,
    idx: np.ndarray,
    X: Optional[np.ndarray] = None,
    varying: Optional[np.ndarray] = None,
    columns: Sequence[str] = (),
) -> None:
    classes = np.unique(y[idx])
    if len(classes) < 2:
        raise InsufficientVariation(
            f"Resample has a single response class {classes.tolist()}",
            classes=classes.tolist(),
            n_rows=len(idx),
        )
    if X is None or not np.any(varying):
        return
    Xr = X[idx][:, varying]
    constant = np.zeros(X.shape[1], dtype=bool)
    constant[varying] = (Xr == Xr[0]).all(axis=0)
    if constant.any():
        names = [columns[j] if j < len(columns) else f"x{j}" for j in np.flatnonzero(constant)]
        raise InsufficientVariation(
            f"Resample leaves design columns constant: {names}",
            columns=names,
            n_rows=len(idx),
        )


def _fit_resample(spec: ModelSpec, X: pd.DataFrame, y: np.ndarray, idx: np.ndarray):
    return spec.make_estimator().fit(X.iloc[idx], y[idx])


def _resample_coefficients(spec, X, y, idx) -> np.ndarray:
    return _fit_resample(spec, X, y, idx).coefficients().to_numpy(dtype=float)


def _resample_aucs(spec, X, y, idx) -> Tuple[float, float]:
    model = _fit_resample(spec, X, y, idx)
    auc_original = roc_auc_score(y, model.predict_proba(X)[:, 1])
    auc_resample = roc_auc_score(y[idx], model.predict_proba(X.iloc[idx])[:, 1])
    return auc_original, auc_resample


def variance_inflation_factors(
    X: pd.DataFrame, threshold: float = 5.0, verbose: bool = True
) -> pd.DataFrame:
    """
    VIF_j = 1 / (1 - R²_j), R²_j from regressing predictor j on all the others.

    Predictors at or above ``threshold`` are flagged; this is a warning, not an error.
    """
    cols = list(X.columns)
    arr = X.to_numpy(dtype=float)
    vifs = []
    for j, col in enumerate(cols):
        others = np.delete(arr, j, axis=1)
        if others.shape[1] == 0:
            vifs.append(1.0)
            continue
        r2 = LinearRegression().fit(others, arr[:, j]).score(others, arr[:, j])
        vifs.append(float("inf") if r2 >= 1.0 - 1e-12 else 1.0 / (1.0 - r2))

    table = pd.DataFrame({"vif": vifs}, index=pd.Index(cols, name="predictor"))
    table["flagged"] = table["vif"] >= threshold
    if verbose:
        for col in table.index[table["flagged"]]:
            print(f"[vif] Warning: {col} has VIF={table.loc[col, 'vif']:.2f} (>= {threshold})")
    return table


class BootstrapInference:
    """
    Args:
        n_resamples: Number of bootstrap resamples (R)
        seed: Seed for the resample generator
        max_retries: Redraws allowed for one degenerate resample (single-class
            response, or a varying design column left constant)
        n_jobs: joblib workers for the refits (1 = in process)
    """

    def __init__(
        self,
        n_resamples: int = 1000,
        seed: Optional[int] = 42,
        max_retries: int = 100,
        n_jobs: int = 1,
        vif_threshold: float = 5.0,
        verbose: bool = True,
    ):
        if n_resamples < 2:
            raise ValueError(f"n_resamples must be at least 2, got {n_resamples}")
        self.n_resamples = n_resamples
        self.seed = seed
        self.max_retries = max_retries
        self.n_jobs = n_jobs
        self.vif_threshold = vif_threshold
        self.verbose = verbose
        self.n_redraws_ = 0

    def draw_resamples(self, y: np.ndarray, X=None) -> List[np.ndarray]:
        """
        Draw ``n_resamples`` index vectors with replacement.

        A resample is redrawn when its response is single-class or, given the
        design ``X``, when it leaves constant a column that varies in the full
        data (e.g. no row of a rare categorical level).
        """
        rng = np.random.default_rng(self.seed)
        n = len(y)
        columns: Sequence[str] = ()
        varying = None
        if X is not None:
            if isinstance(X, pd.DataFrame):
                columns = [str(c) for c in X.columns]
            X = np.asarray(X, dtype=float)
            varying = ~(X == X[0]).all(axis=0) if n else np.zeros(X.shape[1], dtype=bool)
        out = []
        self.n_redraws_ = 0
        for r in range(self.n_resamples):
            last_error = None
            for _ in range(self.max_retries + 1):
                idx = rng.integers(0, n, size=n)
                try:
                    _check_resample(y, idx, X, varying, columns)
                except InsufficientVariation as e:
                    last_error = e
                    self.n_redraws_ += 1
                    continue
                out.append(idx)
                break
            else:
                raise BootstrapExhausted(
                    f"Resample {r + 1} stayed degenerate after {self.max_retries} redraws",
                    resample=r + 1,
                    max_retries=self.max_retries,
                ) from last_error
        if self.verbose and self.n_redraws_:
            print(f"[bootstrap] redrew {self.n_redraws_} degenerate resamples")
        return out

    def _map(self, fn, spec, X, y, resamples) -> list:
        if self.n_jobs == 1:
            return [fn(spec, X, y, idx) for idx in resamples]
        return Parallel(n_jobs=self.n_jobs)(delayed(fn)(spec, X, y, idx) for idx in resamples)

    def coefficients(self, dataset: pd.DataFrame, spec: ModelSpec) -> Dict[str, CoefficientEstimate]:
        X, y = spec.design(dataset)
        original = spec.make_estimator().fit(X, y).coefficients()

        if self.verbose:
            print(f"[bootstrap] refitting {self.n_resamples} resamples of {len(y)} rows")
        resamples = self.draw_resamples(y, X)
        draws = np.vstack(self._map(_resample_coefficients, spec, X, y, resamples))

        se = draws.std(axis=0, ddof=1)
        est = original.to_numpy(dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            z = np.where(se > 0, est / se, np.nan)
        p = 2.0 * norm.sf(np.abs(z))

        return {
            name: CoefficientEstimate(float(est[i]), float(se[i]), float(z[i]), float(p[i]))
            for i, name in enumerate(original.index)
        }

    def auc(self, dataset: pd.DataFrame, spec: ModelSpec) -> AUCSummary:
        X, y = spec.design(dataset)
        original = spec.make_estimator().fit(X, y)
        apparent = roc_auc_score(y, original.predict_proba(X)[:, 1])

        resamples = self.draw_resamples(y, X)
        pairs = np.array(self._map(_resample_aucs, spec, X, y, resamples))
        auc_original, auc_resample = pairs[:, 0], pairs[:, 1]
        optimism = auc_resample - auc_original

        summary = AUCSummary(
            corrected_auc=float(auc_original.mean() - optimism.mean()),
            apparent_auc=float(apparent),
            mean_auc_original=float(auc_original.mean()),
            mean_auc_resample=float(auc_resample.mean()),
            mean_optimism=float(optimism.mean()),
            n_resamples=len(resamples),
        )
        if self.verbose:
            print(
                f"[bootstrap] apparent AUC={summary.apparent_auc:.4f} "
                f"optimism={summary.mean_optimism:.4f} corrected AUC={summary.corrected_auc:.4f}"
            )
        return summary

    def vif(self, dataset: pd.DataFrame, spec: ModelSpec) -> pd.DataFrame:
        X, _ = spec.design(dataset)
        return variance_inflation_factors(X, self.vif_threshold, self.verbose)


def coefficient_table(estimates: Mapping[str, CoefficientEstimate]) -> pd.DataFrame:
    """(predictor, estimate, std_error, z, p_value, signif) table."""
    rows = [
        {"predictor": name, **e._asdict(), "signif": e.signif}
        for name, e in estimates.items()
    ]
    return pd.DataFrame(rows).set_index("predictor")


def bootstrap_coefficients(
    dataset: pd.DataFrame, model_spec: ModelSpec, R: int = 1000, **kwargs
) -> Dict[str, CoefficientEstimate]:
    return BootstrapInference(n_resamples=R, **kwargs).coefficients(dataset, model_spec)


def bootstrap_auc(dataset: pd.DataFrame, model_spec: ModelSpec, R: int = 1000, **kwargs) -> float:
    return BootstrapInference(n_resamples=R, **kwargs).auc(dataset, model_spec).corrected_auc
