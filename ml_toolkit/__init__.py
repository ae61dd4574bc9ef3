"""ML Toolkit core

From-scratch trainers for tabular data, built on numpy.

Usage:
    from ml_toolkit.dataset import read_dataset
    from ml_toolkit.config import KMeansConfig
    from ml_toolkit.train_model import train
    ds = read_dataset("iris.csv")
    res = train(ds, ds.suggest_columns(), KMeansConfig(k=3))

Modules:
- kernel: Dense matrix helpers and activations shared by the trainers
- dataset: Tabular dataset, feature/target selection, profiling, missing values
- config: Trainer hyperparameters; JSON save/load of a training setup
- kmeans / logistic_regression / neural_network: The three trainers
- train_model: Single entry point returning a model or a typed failure
- evaluate_model: scikit-learn metrics for a trained model
- gallery: Named-file store for datasets
- jobs: Background training with a log queue and stop support
- utils: Shared helpers (callbacks, errors, TrainResult)
"""
from __future__ import annotations

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
