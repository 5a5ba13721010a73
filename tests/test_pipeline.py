import json

import numpy as np
import pandas as pd
import pytest

from forecast_lab.experiments.experimental_pipeline import (
    ForecastPipeline,
    InferencePipeline,
    predict_with_saved_model,
)
from forecast_lab.models.models_registry import get_factory_and_grid
from forecast_lab.models.neural_regressor import NeuralRegressor
from forecast_lab.models.penalized_regression import PenalizedRegression
from forecast_lab.models.persistence import load_model, save_model


def _future_rows(player_seasons):
    """Next season's rows with no response yet."""
    last = player_seasons[player_seasons["t"] == 5]
    return last.drop(columns=["points", "assists"]).assign(t=6, season="2024")


def test_forecast_pipeline_lasso(tmp_path, player_seasons, player_schema, season_split):
    pipeline = ForecastPipeline(
        player_seasons, player_schema, "points", {"position": "C"},
        split=season_split, models=("lasso",), n_folds=5, results_dir=tmp_path, verbose=False,
    )
    results = pipeline.run_complete_pipeline()

    assert results["split"]["test_periods"] == [5]
    assert results["split"]["train_rows"] == 160
    assert results["holdout"]["lasso"]["test_metrics"]["r2"] > 0.8
    assert "x1" in results["lasso"]["entry_penalties"]

    saved = list(tmp_path.glob("experiment_results_*.json"))
    assert len(saved) == 1
    assert json.loads(saved[0].read_text())["lasso"]["penalty"] == "l1"
    assert (tmp_path / "experiment_summary.txt").exists()
    ranked = pd.read_csv(tmp_path / "predictions_lasso.csv")
    assert ranked["predicted"].is_monotonic_decreasing
    assert (tmp_path / "model_lasso.joblib").exists()


def test_forecast_pipeline_suggests_split(tmp_path, player_seasons, player_schema):
    pipeline = ForecastPipeline(
        player_seasons, player_schema, "points", {"position": "C"},
        models=("lasso",), n_folds=5, results_dir=tmp_path, verbose=False,
    )
    pipeline.load_and_prepare_data()
    pipeline.build_design_matrix()
    # 5 equal periods: holding out one (20%) is as close to 30% as holding out two
    assert pipeline.split.test_periods == (5,)


def test_predict_future_and_saved_model_agree(tmp_path, player_seasons, player_schema, season_split):
    pipeline = ForecastPipeline(
        player_seasons, player_schema, "points", {"position": "C"},
        split=season_split, models=("lasso",), n_folds=5, results_dir=tmp_path, verbose=False,
    )
    pipeline.run_complete_pipeline()
    future = _future_rows(player_seasons)

    live = pipeline.predict_future(future)
    assert len(live) == 40
    assert live["predicted"].is_monotonic_decreasing

    reloaded = predict_with_saved_model(tmp_path / "model_lasso.joblib", future, entity_field="player")
    pd.testing.assert_frame_equal(live, reloaded)


def test_predict_future_unknown_model(tmp_path, player_seasons, player_schema, season_split):
    pipeline = ForecastPipeline(
        player_seasons, player_schema, "points", {"position": "C"},
        split=season_split, models=("lasso",), n_folds=5, results_dir=tmp_path, verbose=False,
    )
    pipeline.run_complete_pipeline()
    with pytest.raises(ValueError):
        pipeline.predict_future(_future_rows(player_seasons), model_name="mlp")


def test_forecast_pipeline_with_network(tmp_path, player_seasons, player_schema, season_split):
    pipeline = ForecastPipeline(
        player_seasons, player_schema, "points", {"position": "C"},
        split=season_split, models=("lasso", "mlp"), n_folds=5, sample_fraction=0.25,
        fast=True, results_dir=tmp_path, verbose=False,
    )
    results = pipeline.run_complete_pipeline()

    assert isinstance(pipeline.models["mlp"], NeuralRegressor)
    assert results["mlp"]["n_planned"] == 2
    assert set(results["holdout"]) == {"lasso", "mlp"}
    assert (tmp_path / "predictions_mlp.csv").exists()


def test_unknown_model_rejected(player_seasons, player_schema):
    with pytest.raises(ValueError):
        ForecastPipeline(player_seasons, player_schema, "points", {"position": "C"}, models=("xgb",))


def test_inference_pipeline(tmp_path, grouped_binary, binary_schema):
    pipeline = InferencePipeline(
        grouped_binary, binary_schema, "y", {"group": "B"},
        n_resamples=50, seed=0, results_dir=tmp_path, verbose=False,
    )
    results = pipeline.run_complete_pipeline()

    assert results["apparent_fit"]["baseline_accuracy"] == pytest.approx(320 / 600)
    assert pipeline.coefficients.loc["group_A", "signif"] == "***"
    assert 0.5 < results["auc"]["corrected_auc"] < 1.0
    assert list(pipeline.vif.index) == ["group_A", "group_C"]

    assert (tmp_path / "bootstrap_coefficients.csv").exists()
    assert (tmp_path / "vif.csv").exists()
    assert "Corrected AUC" in (tmp_path / "inference_summary.txt").read_text()
    saved = list(tmp_path.glob("inference_results_*.json"))
    assert len(saved) == 1
    payload = json.loads(saved[0].read_text())
    assert {row["predictor"] for row in payload["coefficients"]} == {"(Intercept)", "group_A", "group_C"}


def test_registry():
    factory, grid = get_factory_and_grid("lasso")
    assert grid is None
    model = factory({})
    assert isinstance(model, PenalizedRegression)
    assert model.p.penalty == "l1"
    assert get_factory_and_grid("ridge")[0]({}).p.penalty == "l2"

    _, fast_grid = get_factory_and_grid("mlp", fast=True)
    _, full_grid = get_factory_and_grid("mlp", fast=False)
    assert len(full_grid["hidden_1"]) == 4
    assert len(fast_grid["hidden_1"]) < len(full_grid["hidden_1"])
    with pytest.raises(ValueError):
        get_factory_and_grid("xgb")


def test_persistence_round_trip(tmp_path):
    rng = np.random.default_rng(0)
    X = pd.DataFrame({"a": rng.normal(size=50), "b": rng.normal(size=50)})
    y = 2.0 * X["a"].to_numpy() + rng.normal(scale=0.1, size=50)
    model = PenalizedRegression(n_folds=5).fit(X, y)

    path = save_model(model, tmp_path / "nested" / "m.joblib", meta={"response_field": "y"})
    bundle = load_model(path)
    assert bundle["meta"] == {"response_field": "y"}
    assert bundle["builder"] is None
    assert np.allclose(bundle["model"].predict(X), model.predict(X))


def test_load_model_rejects_other_files(tmp_path):
    import joblib

    path = tmp_path / "other.joblib"
    joblib.dump([1, 2, 3], path)
    with pytest.raises(ValueError):
        load_model(path)


@pytest.mark.parametrize("coding", [{0: 1, 1: 2}, {0: "acquitted", 1: "executed"}])
def test_inference_baseline_with_non_01_response(grouped_binary, binary_schema, coding):
    data = grouped_binary.assign(y=grouped_binary["y"].map(coding))
    pipeline = InferencePipeline(data, binary_schema, "y", {"group": "B"}, verbose=False)
    pipeline.load_data()
    out = pipeline.run_baseline_comparison()

    assert out["majority_class"] == coding[0]
    assert out["positive_class"] == coding[1]
    assert out["baseline_accuracy"] == pytest.approx(320 / 600)
    # predicts the positive class for A only: 160 + 280 correct
    assert out["accuracy"] == pytest.approx(440 / 600)
    assert out["confusion_matrix"] == [[280, 40], [120, 160]]


def test_inference_pipeline_without_time_field(tmp_path, grouped_binary, binary_schema):
    data = grouped_binary.drop(columns=["t"])
    pipeline = InferencePipeline(
        data, binary_schema, "y", {"group": "B"},
        n_resamples=20, seed=0, results_dir=tmp_path, verbose=False,
    )
    results = pipeline.run_complete_pipeline()

    assert results["data"]["periods"] == []
    assert results["data"]["final_rows"] == 600
    assert list(pipeline.vif.index) == ["group_A", "group_C"]


def test_ridge_penalty_is_stored_under_its_own_name(tmp_path, player_seasons, player_schema, season_split):
    pipeline = ForecastPipeline(
        player_seasons, player_schema, "points", {"position": "C"},
        split=season_split, models=("lasso",), penalty="l2", n_folds=5, results_dir=tmp_path, verbose=False,
    )
    results = pipeline.run_complete_pipeline()

    assert set(pipeline.models) == {"ridge"}
    assert results["ridge"]["penalty"] == "l2"
    assert "lasso" not in results
    assert set(results["holdout"]) == {"ridge"}
    assert (tmp_path / "predictions_ridge.csv").exists()
    assert (tmp_path / "model_ridge.joblib").exists()
    assert not (tmp_path / "model_lasso.joblib").exists()
    assert len(pipeline.predict_future(_future_rows(player_seasons))) == 40
