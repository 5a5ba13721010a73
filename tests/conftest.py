import numpy as np
import pandas as pd
import pytest

from forecast_lab.core.dataset import DatasetSchema
from forecast_lab.core.design_matrix import TemporalSplit

POSITION_EFFECT = {"C": 1.0, "F": 0.0, "G": -1.0}


@pytest.fixture
def player_seasons() -> pd.DataFrame:
    """40 players over 5 seasons; points = 10 + 2*x1 + position effect + noise (x2 is irrelevant)."""
    rng = np.random.default_rng(0)
    rows = []
    for season_idx, season in enumerate([2019, 2020, 2021, 2022, 2023]):
        for i in range(40):
            pos = "CFG"[i % 3]
            x1 = rng.normal()
            x2 = rng.normal()
            rows.append(
                {
                    "player": f"p{i:02d}",
                    "season": str(season),
                    "t": season_idx + 1,
                    "position": pos,
                    "age": 20 + (i % 15) + season_idx,
                    "x1": x1,
                    "x2": x2,
                    "points": 10.0 + 2.0 * x1 + POSITION_EFFECT[pos] + rng.normal(scale=0.5),
                    "assists": rng.normal(),
                }
            )
    return pd.DataFrame(rows)


@pytest.fixture
def player_schema() -> DatasetSchema:
    return DatasetSchema(
        response_fields=("points", "assists"),
        entity_field="player",
        period_field="season",
    )


@pytest.fixture
def season_split() -> TemporalSplit:
    return TemporalSplit(train_until=4, test_periods=(5,))


@pytest.fixture
def grouped_binary() -> pd.DataFrame:
    """Levels A/B/C, 200 rows each; P(y=1) is 0.8 for A and 0.3 for both B and C."""
    rows = []
    for group, n_ones in [("A", 160), ("B", 60), ("C", 60)]:
        for i in range(200):
            rows.append({"t": 1, "group": group, "y": int(i < n_ones)})
    return pd.DataFrame(rows)


@pytest.fixture
def binary_schema() -> DatasetSchema:
    return DatasetSchema(response_fields=("y",))
