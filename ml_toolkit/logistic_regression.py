from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from . import kernel as K
from .config import LogisticRegressionConfig
from .dataset import DatasetSpec, TabularDataset, encode_first_seen
from .utils import (
    ConfigurationError,
    LogFn,
    ProgressFn,
    StopFlag,
    TrainingStopped,
    default_log,
    frozen,
    report_progress,
    should_stop,
)


@dataclass(frozen=True)
class LogisticRegressionModel:
    """Binary classifier; ``weights[0]`` is the bias term.

    ``confusion_matrix`` is ``[[TN, FP], [FN, TP]]`` (rows = actual, columns =
    predicted) over the training rows, with class index 1 as the positive class.
    """

    weights: np.ndarray
    costs: tuple[float, ...]
    accuracies: tuple[float, ...]
    confusion_matrix: np.ndarray
    precision: float
    recall: float
    f1_score: float
    classes: tuple = (0, 1)
    feature_names: tuple[str, ...] = ()

    def predict_proba(self, X) -> np.ndarray:
        return K.sigmoid(K.dot(add_bias(X), self.weights.reshape(-1, 1))).ravel()

    def predict(self, X) -> np.ndarray:
        """0/1 class index per row at threshold 0.5."""
        return (self.predict_proba(X) > 0.5).astype(int)

    def predict_labels(self, X) -> list[Any]:
        return [self.classes[i] for i in self.predict(X)]


def add_bias(X) -> np.ndarray:
    X = K.as_matrix(X)
    return np.hstack([np.ones((X.shape[0], 1)), X])


def binary_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> tuple[np.ndarray, float, float, float]:
    """Confusion matrix ``[[TN, FP], [FN, TP]]`` and positive-class precision, recall, F1."""
    from sklearn.metrics import confusion_matrix, f1_score, precision_score, recall_score

    y_true = np.asarray(y_true, dtype=int).ravel()
    y_pred = np.asarray(y_pred, dtype=int).ravel()
    cm = confusion_matrix(y_true, y_pred, labels=[0, 1])
    precision = float(precision_score(y_true, y_pred, labels=[0, 1], pos_label=1, zero_division=0))
    recall = float(recall_score(y_true, y_pred, labels=[0, 1], pos_label=1, zero_division=0))
    f1 = float(f1_score(y_true, y_pred, labels=[0, 1], pos_label=1, zero_division=0))
    return cm.astype(int), precision, recall, f1


def fit_logistic_regression(
    X: np.ndarray,
    y: Sequence[Any],
    cfg: LogisticRegressionConfig,
    log: LogFn = default_log,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
    feature_names: Optional[list[str]] = None,
    target_name: str = "target",
) -> LogisticRegressionModel:
    cfg.validate()
    encoding = encode_first_seen(list(y))
    if encoding.n_classes != 2:
        raise ConfigurationError(
            "Logistic Regression requires a binary target variable with exactly 2 unique classes "
            f"(found {encoding.n_classes} in '{target_name}')."
        )
    Xb = add_bias(X)
    n = Xb.shape[0]
    if len(encoding.indices) != n:
        raise ConfigurationError(f"Target has {len(encoding.indices)} values but features have {n} rows")
    target = encoding.indices.astype(float).reshape(-1, 1)
    w = np.zeros((Xb.shape[1], 1))
    epochs = int(cfg.epochs)
    log_every = max(int(cfg.log_every), 1)

    log(f"Training Logistic Regression on {n} samples, {Xb.shape[1] - 1} features "
        f"(classes: {encoding.classes[0]!r} -> 0, {encoding.classes[1]!r} -> 1)")
    costs: list[float] = []
    accuracies: list[float] = []
    for epoch in range(epochs):
        if should_stop(stop_flag):
            raise TrainingStopped(epoch)
        h = K.sigmoid(K.dot(Xb, w))
        cost = K.mean(-target * K.log(h) - (1.0 - target) * K.log(1.0 - h))
        acc = float(np.mean((h > 0.5).astype(float) == target))
        costs.append(float(cost))
        accuracies.append(acc)

        gradient = K.divide(K.dot(K.transpose(Xb), K.subtract(h, target)), n)
        w = K.subtract(w, K.multiply(gradient, cfg.learning_rate))

        if (epoch + 1) % log_every == 0 or epoch == 0:
            log(f"Epoch {epoch + 1}/{epochs}: cost={cost:.4f}, accuracy={acc:.4f}")
        report_progress(progress, epoch + 1, epochs, f"Epoch {epoch + 1}/{epochs}")

    final = (K.sigmoid(K.dot(Xb, w)) > 0.5).astype(int).ravel()
    cm, precision, recall, f1 = binary_metrics(encoding.indices, final)
    log(f"Logistic Regression finished: accuracy={accuracies[-1]:.4f}, precision={precision:.4f}, "
        f"recall={recall:.4f}, f1={f1:.4f}")
    return LogisticRegressionModel(
        weights=frozen(w.ravel()),
        costs=tuple(costs),
        accuracies=tuple(accuracies),
        confusion_matrix=frozen(cm, dtype=int),
        precision=float(precision),
        recall=float(recall),
        f1_score=float(f1),
        classes=encoding.classes,
        feature_names=tuple(feature_names or ()),
    )


def train_logistic_regression(
    dataset: TabularDataset,
    spec: DatasetSpec,
    cfg: LogisticRegressionConfig,
    log: LogFn = default_log,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
) -> LogisticRegressionModel:
    X = dataset.feature_matrix(spec.feature_cols)
    y = dataset.target(spec.target_col)
    return fit_logistic_regression(
        X, y, cfg, log=log, progress=progress, stop_flag=stop_flag,
        feature_names=list(spec.feature_cols), target_name=str(spec.target_col),
    )
