import numpy as np
import pandas as pd
import pytest

from forecast_lab.core.design_matrix import (
    CategoricalEncoding,
    FeatureMatrixBuilder,
    TemporalSplit,
    align_columns,
    build,
    suggest_split,
)
from forecast_lab.core.errors import SchemaMismatch, UnseenCategory


def test_build_unpacks_and_splits_by_time(player_seasons, player_schema, season_split):
    design = build(player_seasons, "points", {"position": "C"}, season_split, player_schema)
    X_train, y_train, X_test, y_test = design

    assert len(X_train) == 160 and len(X_test) == 40
    assert (player_seasons.loc[X_train.index, "t"] <= 4).all()
    assert (player_seasons.loc[X_test.index, "t"] == 5).all()
    assert list(X_train.columns) == list(X_test.columns)
    assert y_train.dtype == float
    assert design.entities_test.tolist() == player_seasons.loc[X_test.index, "player"].tolist()


def test_responses_and_identifiers_never_enter_the_matrix(player_seasons, player_schema, season_split):
    design = build(player_seasons, "points", {"position": "C"}, season_split, player_schema)
    for col in ["points", "assists", "player", "season", "t"]:
        assert col not in design.columns


def test_indicator_count_is_levels_minus_one(player_seasons, player_schema, season_split):
    """Changing the reference changes which column is omitted, not how many columns there are."""
    with_c = build(player_seasons, "points", {"position": "C"}, season_split, player_schema)
    with_f = build(player_seasons, "points", {"position": "F"}, season_split, player_schema)

    assert with_c.columns == ["age", "x1", "x2", "position_F", "position_G"]
    assert with_f.columns == ["age", "x1", "x2", "position_C", "position_G"]
    assert len(with_c.columns) == len(with_f.columns)
    assert with_c.encodings["position"].reference == "C"


def test_reference_rows_are_all_zero(player_seasons, player_schema, season_split):
    design = build(player_seasons, "points", {"position": "C"}, season_split, player_schema)
    is_c = player_seasons.loc[design.X_train.index, "position"] == "C"
    indicators = design.X_train[["position_F", "position_G"]]
    assert (indicators[is_c.to_numpy()] == 0.0).all().all()
    assert (indicators[~is_c.to_numpy()].sum(axis=1) == 1.0).all()


def test_split_is_a_function_of_time_only(player_seasons, player_schema, season_split):
    a = build(player_seasons, "points", {"position": "C"}, season_split, player_schema)
    shuffled = player_seasons.sample(frac=1.0, random_state=7)
    b = build(shuffled, "points", {"position": "C"}, season_split, player_schema)

    pd.testing.assert_frame_equal(a.X_train.sort_index(), b.X_train.sort_index())
    pd.testing.assert_frame_equal(a.X_test.sort_index(), b.X_test.sort_index())


def test_train_from_bounds_the_training_window(player_seasons, player_schema):
    split = TemporalSplit(train_until=4, test_periods=(5,), train_from=3)
    design = build(player_seasons, "points", {"position": "C"}, split, player_schema)
    assert set(player_seasons.loc[design.X_train.index, "t"]) == {3, 4}


def test_leaking_split_is_rejected():
    with pytest.raises(ValueError):
        TemporalSplit(train_until=5, test_periods=(5,))
    with pytest.raises(ValueError):
        TemporalSplit(train_until=3, test_periods=())


def test_empty_partition_is_schema_mismatch(player_seasons, player_schema):
    split = TemporalSplit(train_until=4, test_periods=(99,))
    with pytest.raises(SchemaMismatch):
        build(player_seasons, "points", {"position": "C"}, split, player_schema)


def test_unseen_test_level_raises(player_seasons, player_schema, season_split):
    df = player_seasons.copy()
    row = df.index[df["t"] == 5][0]
    df.loc[row, "position"] = "PF"
    with pytest.raises(UnseenCategory) as exc:
        build(df, "points", {"position": "C"}, season_split, player_schema)
    assert exc.value.context["field"] == "position"
    assert exc.value.context["levels"] == ["PF"]
    assert exc.value.context["rows"] == [row]


def test_missing_reference_is_schema_mismatch(player_seasons, player_schema, season_split):
    with pytest.raises(SchemaMismatch):
        build(player_seasons, "points", {}, season_split, player_schema)


def test_reference_not_in_training_levels(player_seasons, player_schema, season_split):
    with pytest.raises(SchemaMismatch) as exc:
        build(player_seasons, "points", {"position": "PG"}, season_split, player_schema)
    assert exc.value.context["levels"] == ["C", "F", "G"]


def test_reference_for_numeric_field_is_schema_mismatch(player_seasons, player_schema, season_split):
    with pytest.raises(SchemaMismatch):
        build(player_seasons, "points", {"position": "C", "age": "25"}, season_split, player_schema)


def test_transform_before_fit(player_schema, player_seasons):
    with pytest.raises(RuntimeError):
        FeatureMatrixBuilder(player_schema, {"position": "C"}).transform(player_seasons)


def test_transform_needs_the_fitted_columns(player_seasons, player_schema):
    builder = FeatureMatrixBuilder(player_schema, {"position": "C"}).fit(player_seasons)
    with pytest.raises(SchemaMismatch):
        builder.transform(player_seasons.drop(columns=["x2"]))


def test_transform_does_not_need_the_response(player_seasons, player_schema):
    builder = FeatureMatrixBuilder(player_schema, {"position": "C"}).fit(player_seasons)
    X = builder.transform(player_seasons.drop(columns=["points", "assists"]))
    assert list(X.columns) == builder.columns


def test_categorical_encoding_columns():
    enc = CategoricalEncoding(field="team", levels=("BOS", "LAL", "NYK"), reference="LAL")
    assert enc.columns == ["team_BOS", "team_NYK"]
    out = enc.transform(pd.Series(["NYK", "LAL"]))
    assert out.to_numpy().tolist() == [[0.0, 1.0], [0.0, 0.0]]


def test_suggest_split_targets_test_fraction():
    df = pd.DataFrame({"t": [1] * 50 + [2] * 20 + [3] * 15 + [4] * 15})
    split = suggest_split(df, test_fraction=0.3)
    assert split.test_periods == (3, 4)
    assert split.train_until == 2


def test_suggest_split_keeps_a_training_period():
    df = pd.DataFrame({"t": [1] * 5 + [2] * 95})
    split = suggest_split(df, test_fraction=0.9)
    assert split.test_periods == (2,)
    assert split.train_until == 1


def test_align_columns_reorders_and_checks():
    X = pd.DataFrame({"b": [1.0], "a": [2.0]})
    assert align_columns(X, ["a", "b"]).tolist() == [[2.0, 1.0]]
    with pytest.raises(SchemaMismatch):
        align_columns(X, ["a", "c"])
    with pytest.raises(SchemaMismatch):
        align_columns(np.zeros((2, 3)), ["a", "b"])
