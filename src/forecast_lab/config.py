from dataclasses import dataclass
from pathlib import Path

# Repository root (src/forecast_lab/config.py -> ../../)
PROJECT_ROOT = Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class PathConfig:
    """Where runners read data and write results."""

    data_dir: Path = PROJECT_ROOT / "data"
    results_dir: Path = PROJECT_ROOT / "results"


@dataclass(frozen=True)
class ExperimentConfig:
    """Defaults shared by the pipeline and the runners."""

    seed: int = 42
    test_fraction: float = 0.3

    # penalized regression
    cv_folds: int = 10
    n_alphas: int = 100
    alpha_eps: float = 1e-4
    penalty: str = "l1"

    # network search
    sample_fraction: float = 0.1
    validation_split: float = 0.2
    patience: int = 10
    max_epochs: int = 300

    # bootstrap
    n_resamples: int = 1000
    max_retries: int = 100
    vif_threshold: float = 5.0


PATH_CONFIG = PathConfig()
EXPERIMENT_CONFIG = ExperimentConfig()
