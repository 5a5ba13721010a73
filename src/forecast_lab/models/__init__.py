# Model implementations for temporal forecasting

from .logistic_regression import LogisticClassifier, create_logistic_factory
from .neural_regressor import NeuralRegressor, create_mlp_factory
from .penalized_regression import (
    PenalizedRegression,
    create_penalized_factory,
    fit_lasso,
    penalty_grid,
    predict,
)
from .persistence import load_model, save_model

__all__ = [
    "LogisticClassifier",
    "create_logistic_factory",
    "NeuralRegressor",
    "create_mlp_factory",
    "PenalizedRegression",
    "create_penalized_factory",
    "fit_lasso",
    "penalty_grid",
    "predict",
    "load_model",
    "save_model",
]
