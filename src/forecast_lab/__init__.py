"""
Temporal, regularization-tuned forecasting and inference.

Key modules:
- core.dataset: Dataset schema, validation and loading
- core.design_matrix: Design matrix with explicit reference levels and a temporal split
- core.cross_validation: Fold and grid utilities
- core.metrics: MSE, R², accuracy, majority baseline, confusion matrix, AUC
- models: Penalized regression, logistic regression, two-hidden-layer network
- experiments.hyperparameter_tuning: Randomized search with early stopping
- experiments.bootstrap_inference: Bootstrap standard errors, corrected AUC, VIF
- experiments.experimental_pipeline: Forecast and inference pipelines
"""

__version__ = "0.1.0"
