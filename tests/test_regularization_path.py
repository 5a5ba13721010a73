import numpy as np
import pandas as pd

from forecast_lab.experiments.regularization_path import (
    RegularizationPathExperiment,
    coefficient_path,
    entry_penalties,
    nonzero_counts,
)


def _orthogonal_design(n=100, p=5, seed=0):
    """Centred columns with unit variance that are exactly orthogonal."""
    rng = np.random.default_rng(seed)
    A = rng.normal(size=(n, p))
    A -= A.mean(axis=0)
    Q, _ = np.linalg.qr(A)
    return pd.DataFrame(Q * np.sqrt(n), columns=[f"x{i}" for i in range(p)])


def test_nonzero_count_never_grows_with_the_penalty():
    X = _orthogonal_design()
    rng = np.random.default_rng(1)
    y = X.to_numpy() @ np.array([3.0, -2.0, 1.0, 0.5, 0.0]) + rng.normal(scale=0.5, size=len(X))

    path = coefficient_path(X, y, n_alphas=60)
    counts = nonzero_counts(path, tol=1e-8).sort_index()  # ascending penalty
    assert np.all(np.diff(counts.to_numpy()) <= 0)
    assert counts.iloc[-1] == 0


def test_irrelevant_feature_leaves_the_path_first():
    """y = 2*x1 + 0*x2 + noise: x2 only survives smaller penalties than x1."""
    rng = np.random.default_rng(2)
    X = pd.DataFrame({"x1": rng.normal(size=200), "x2": rng.normal(size=200)})
    y = 2.0 * X["x1"].to_numpy() + rng.normal(scale=1.0, size=200)

    entries = entry_penalties(coefficient_path(X, y), tol=1e-8)
    assert entries["x1"] > entries["x2"]
    assert entries.index[0] == "x1"


def test_path_is_indexed_by_descending_penalty():
    rng = np.random.default_rng(3)
    X = pd.DataFrame({"a": rng.normal(size=50), "b": rng.normal(size=50)})
    y = X["a"].to_numpy() + rng.normal(scale=0.1, size=50)
    path = coefficient_path(X, y, alphas=[0.01, 1.0, 0.1])
    assert path.index.tolist() == [1.0, 0.1, 0.01]
    assert list(path.columns) == ["a", "b"]


def test_experiment_summary():
    rng = np.random.default_rng(4)
    X = pd.DataFrame({"a": rng.normal(size=60), "b": rng.normal(size=60)})
    y = 3.0 * X["a"].to_numpy() + rng.normal(size=60)

    exp = RegularizationPathExperiment(n_alphas=30, verbose=False)
    res = exp.run(X, y, name="points")
    assert len(res["path"]) == 30
    summary = exp.get_summary()
    assert set(summary["Feature"]) == {"a", "b"}
    assert (summary["Model"] == "points").all()
