from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .dataset import DatasetSpec, ProblemType, TabularDataset
from .kmeans import KMeansModel, inertia_of
from .logistic_regression import LogisticRegressionModel
from .neural_network import NeuralNetworkModel
from .utils import ConfigurationError, TrainResult


def _classification_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score

    y_true, y_pred = np.ravel(y_true), np.ravel(y_pred)
    return {
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "precision_macro": float(precision_score(y_true, y_pred, average="macro", zero_division=0)),
        "recall_macro": float(recall_score(y_true, y_pred, average="macro", zero_division=0)),
        "f1_macro": float(f1_score(y_true, y_pred, average="macro", zero_division=0)),
    }


def _regression_metrics(model: NeuralNetworkModel, X: np.ndarray, y: Sequence[Any]) -> Dict[str, float]:
    from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

    y_true = np.asarray(y, dtype=float)
    y_pred = model.predict(X)
    errors = {"mae": mean_absolute_error(y_true, y_pred), "mse": mean_squared_error(y_true, y_pred)}
    errors["rmse"] = np.sqrt(errors["mse"])
    errors["r2"] = r2_score(y_true, y_pred)
    return {name: float(value) for name, value in errors.items()}


def _clustering_metrics(X: np.ndarray, model: KMeansModel, labels: np.ndarray) -> Dict[str, float]:
    from sklearn.metrics import silhouette_score

    metrics = {"inertia": float(inertia_of(X, np.asarray(model.centroids), labels)),
               "n_clusters": float(model.k)}
    n_labels = int(np.unique(labels).shape[0])
    # silhouette is only defined for 2 <= n_labels <= n_samples - 1
    if 2 <= n_labels <= X.shape[0] - 1:
        metrics["silhouette"] = float(silhouette_score(X, labels))
    return metrics


def _class_indices(values: Sequence[Any], classes: Sequence[Any], target: str) -> np.ndarray:
    lookup = {c: i for i, c in enumerate(classes)}
    unknown = [v for v in values if v not in lookup]
    if unknown:
        raise ConfigurationError(f"Target column '{target}' has labels unseen during training: {unknown[:5]}")
    return np.array([lookup[v] for v in values], dtype=int)


@dataclass
class EvaluationResult:
    task_type: str  # classification | regression | clustering
    metrics: Dict[str, float]
    confusion_matrix: Optional[np.ndarray] = None
    labels: Optional[List[Any]] = None  # row/column order of confusion_matrix


def evaluate(model: Any, dataset: TabularDataset, spec: Optional[DatasetSpec] = None) -> EvaluationResult:
    """Score a trained model (or a ``TrainResult``) against ``dataset``.

    Features default to the names the model was trained on; supervised models
    also need ``spec.target_col``.
    """
    if isinstance(model, TrainResult):
        model = model.model
    if model is None:
        raise ValueError("No trained model to evaluate")
    features = list(spec.feature_cols) if spec and spec.feature_cols else list(model.feature_names)
    X = dataset.feature_matrix(features)

    if isinstance(model, KMeansModel):
        labels = model.predict(X)
        return EvaluationResult(task_type="clustering", metrics=_clustering_metrics(X, model, labels))

    if not isinstance(model, (LogisticRegressionModel, NeuralNetworkModel)):
        raise TypeError(f"Unsupported model type: {type(model).__name__}")
    target = spec.target_col if spec else None
    y = dataset.target(target)

    if isinstance(model, NeuralNetworkModel) and model.problem_type is ProblemType.REGRESSION:
        return EvaluationResult(task_type="regression", metrics=_regression_metrics(model, X, y))

    from sklearn.metrics import confusion_matrix

    classes = list(model.classes)
    y_true = _class_indices(y, classes, str(target))
    if isinstance(model, LogisticRegressionModel):
        y_pred = model.predict(X)
    else:
        y_pred = _class_indices(list(model.predict(X)), classes, str(target))
    cm = confusion_matrix(y_true, y_pred, labels=list(range(len(classes))))
    return EvaluationResult(
        task_type="classification",
        metrics=_classification_metrics(y_true, y_pred),
        confusion_matrix=cm,
        labels=classes,
    )
