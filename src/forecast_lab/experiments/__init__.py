# Experimental components for temporal forecasting

from .bootstrap_inference import (
    BootstrapInference,
    ModelSpec,
    bootstrap_auc,
    bootstrap_coefficients,
    variance_inflation_factors,
)
from .experimental_pipeline import ForecastPipeline, InferencePipeline
from .holdout_evaluation import HoldoutEvaluator, rank_predictions
from .hyperparameter_tuning import (
    HYPERPARAMETER_GRIDS,
    HYPERPARAMETER_GRIDS_FAST,
    BestConfig,
    HyperparameterTuner,
    fit_final,
    tune,
)
from .regularization_path import RegularizationPathExperiment, coefficient_path

__all__ = [
    "BootstrapInference",
    "ModelSpec",
    "bootstrap_auc",
    "bootstrap_coefficients",
    "variance_inflation_factors",
    "ForecastPipeline",
    "InferencePipeline",
    "HoldoutEvaluator",
    "rank_predictions",
    "HYPERPARAMETER_GRIDS",
    "HYPERPARAMETER_GRIDS_FAST",
    "BestConfig",
    "HyperparameterTuner",
    "fit_final",
    "tune",
    "RegularizationPathExperiment",
    "coefficient_path",
]
