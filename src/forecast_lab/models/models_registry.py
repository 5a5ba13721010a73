# models_registry.py
from typing import Any, Callable, Dict, List, Optional, Tuple

from .logistic_regression import create_logistic_factory
from .neural_regressor import create_mlp_factory
from .penalized_regression import create_penalized_factory


def get_factory_and_grid(
    model: str, fast: bool = True
) -> Tuple[Callable[[Dict[str, Any]], Any], Optional[Dict[str, List[Any]]]]:
    """
    Return (factory, grid). factory: params(dict) -> estimator.

    grid is the hyperparameter search space for the network; the penalized
    models choose their penalty internally, so their grid is None.
    """
    model = model.lower()

    if model in {"lasso", "l1", "penalized", "ridge", "l2", "elasticnet"}:
        penalty = {"lasso": "l1", "penalized": "l1", "ridge": "l2"}.get(model, model)
        return create_penalized_factory({"penalty": penalty}), None

    if model in {"mlp", "nn", "neural"}:
        # imported here to avoid a models <-> experiments import cycle
        from ..experiments.hyperparameter_tuning import (
            HYPERPARAMETER_GRIDS,
            HYPERPARAMETER_GRIDS_FAST,
        )

        grids = HYPERPARAMETER_GRIDS_FAST if fast else HYPERPARAMETER_GRIDS
        return create_mlp_factory(), grids["mlp"]

    if model in {"logit", "logistic", "logreg"}:
        return create_logistic_factory(), None

    raise ValueError(f"Unknown model: {model}")
