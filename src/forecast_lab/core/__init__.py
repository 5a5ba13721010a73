# Core components for temporal forecasting

from .cross_validation import grid_dict_product, kfold_indices, sample_grid
from .dataset import DatasetSchema, prepare_dataset, validate_dataset
from .design_matrix import (
    CategoricalEncoding,
    DesignMatrix,
    FeatureMatrixBuilder,
    TemporalSplit,
    build,
    suggest_split,
)
from .errors import (
    BootstrapExhausted,
    DegenerateResponse,
    EmptyGrid,
    ForecastLabError,
    InsufficientVariation,
    NoConvergingRun,
    SchemaMismatch,
    SingularFeatureSet,
    UnseenCategory,
)
from .metrics import (
    classification_metrics,
    mean_squared_error,
    r2_score,
    regression_metrics,
    roc_auc_score,
)

__all__ = [
    "grid_dict_product",
    "kfold_indices",
    "sample_grid",
    "DatasetSchema",
    "prepare_dataset",
    "validate_dataset",
    "CategoricalEncoding",
    "DesignMatrix",
    "FeatureMatrixBuilder",
    "TemporalSplit",
    "build",
    "suggest_split",
    "BootstrapExhausted",
    "DegenerateResponse",
    "EmptyGrid",
    "ForecastLabError",
    "InsufficientVariation",
    "NoConvergingRun",
    "SchemaMismatch",
    "SingularFeatureSet",
    "UnseenCategory",
    "classification_metrics",
    "mean_squared_error",
    "r2_score",
    "regression_metrics",
    "roc_auc_score",
]
