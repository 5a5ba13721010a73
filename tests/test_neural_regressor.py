import numpy as np
import pandas as pd
import pytest

from forecast_lab.core.errors import DegenerateResponse, NoConvergingRun, SchemaMismatch
from forecast_lab.core.metrics import r2_score
from forecast_lab.experiments.hyperparameter_tuning import tune
from forecast_lab.models.neural_regressor import NeuralRegressor, create_mlp_factory

SMALL = dict(hidden_1=16, hidden_2=8, dropout_1=0.0, dropout_2=0.0, lr=1e-2, max_epochs=60, patience=8, device="cpu")


def _data(n=240, seed=0):
    rng = np.random.default_rng(seed)
    X = pd.DataFrame({"x1": rng.normal(size=n), "x2": rng.normal(size=n)})
    y = 50.0 + 10.0 * X["x1"] + 5.0 * X["x2"] + rng.normal(scale=1.0, size=n)
    return X, y.to_numpy()


def test_fit_learns_a_linear_signal():
    X, y = _data()
    model = NeuralRegressor(seed=0, **SMALL).fit(X, y)

    assert np.isfinite(model.best_val_mse_)
    assert not model.diverged_
    assert 1 <= model.epochs_ <= 60
    assert len(model.history_) == model.epochs_
    assert r2_score(y, model.predict(X)) > 0.8


def test_validation_mse_is_in_response_units():
    """Rescaling the response by 10 rescales the reported validation MSE by 100."""
    X, y = _data()
    a = NeuralRegressor(seed=1, **SMALL).fit(X, y)
    b = NeuralRegressor(seed=1, **SMALL).fit(X, y * 10.0)
    assert b.best_val_mse_ == pytest.approx(a.best_val_mse_ * 100.0, rel=0.05)


def test_same_seed_same_network():
    X, y = _data()
    a = NeuralRegressor(seed=3, **SMALL).fit(X, y)
    b = NeuralRegressor(seed=3, **SMALL).fit(X, y)
    assert np.allclose(a.predict(X), b.predict(X))
    assert a.epochs_ == b.epochs_


def test_early_stopping_respects_max_epochs():
    X, y = _data()
    params = {**SMALL, "max_epochs": 3, "patience": 100}
    model = NeuralRegressor(seed=0, **params).fit(X, y)
    assert model.epochs_ == 3


def test_patience_stops_training_on_noise():
    """With nothing to learn, validation loss stops improving long before the epoch cap."""
    rng = np.random.default_rng(2)
    X = pd.DataFrame({"x1": rng.normal(size=200), "x2": rng.normal(size=200)})
    y = rng.normal(loc=5.0, scale=3.0, size=200)
    params = {**SMALL, "max_epochs": 200, "patience": 5}
    model = NeuralRegressor(seed=0, **params).fit(X, y)

    assert not model.diverged_
    assert model.epochs_ < 200
    val_losses = [h["val_loss"] for h in model.history_]
    # stopped exactly `patience` epochs after the best one
    assert int(np.argmin(val_losses)) == len(val_losses) - 1 - 5
    assert model.best_val_mse_ == pytest.approx(min(val_losses) * model.y_std ** 2)


def _non_finite_inputs(n=60):
    X, y = _data(n=n)
    # one missing value poisons whichever loss (train or validation) its row lands in
    X.loc[0, "x2"] = np.nan
    return X, y


def test_non_finite_loss_is_reported_as_divergence():
    X, y = _non_finite_inputs()
    model = NeuralRegressor(seed=0, **SMALL).fit(X, y)

    assert model.diverged_
    assert model.epochs_ == 1
    assert model.best_val_mse_ == float("inf")


def test_search_over_diverging_networks_raises():
    X, y = _non_finite_inputs()
    grid = {"hidden_1": [8], "lr": [1e-2, 1e-3]}
    with pytest.raises(NoConvergingRun):
        tune(X, y, grid, sample_fraction=1.0, max_epochs=5, verbose=False)


def test_constant_response_is_degenerate():
    X, _ = _data(n=50)
    with pytest.raises(DegenerateResponse):
        NeuralRegressor(**SMALL).fit(X, np.full(50, 2.0))


def test_predict_checks_columns():
    X, y = _data(n=80)
    model = NeuralRegressor(seed=0, **{**SMALL, "max_epochs": 2}).fit(X, y)
    with pytest.raises(SchemaMismatch):
        model.predict(X.rename(columns={"x2": "x3"}))


def test_predict_before_fit():
    X, _ = _data(n=10)
    with pytest.raises(RuntimeError):
        NeuralRegressor().predict(X)


def test_factory_merges_defaults():
    factory = create_mlp_factory({"hidden_1": 8, "patience": 3})
    model = factory({"hidden_1": 4})
    assert model.p.hidden_1 == 4
    assert model.p.patience == 3
    with pytest.raises(ValueError):
        factory({"n_layers": 3})
