from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from . import kernel as K
from .config import KMeansConfig
from .dataset import DatasetSpec, TabularDataset
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
class KMeansModel:
    k: int
    max_iterations: int
    centroids: np.ndarray
    inertia: float
    predictions: np.ndarray
    feature_names: tuple[str, ...] = ()
    n_iterations: int = 0
    inertia_history: tuple[float, ...] = ()

    def predict(self, X) -> np.ndarray:
        """Index of the nearest frozen centroid for every row of ``X``."""
        X = K.as_matrix(X)
        if X.shape[1] != self.centroids.shape[1]:
            raise ValueError(f"Expected {self.centroids.shape[1]} features, got {X.shape[1]}")
        return assign(X, self.centroids)


def assign(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    # argmin keeps the first minimum on ties
    return np.argmin(K.squared_distances(X, centroids), axis=1)


def inertia_of(X: np.ndarray, centroids: np.ndarray, labels: np.ndarray) -> float:
    return K.sum(K.power(K.subtract(X, centroids[labels]), 2))


def kmeans_plus_plus(X: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    n = X.shape[0]
    chosen = [X[int(rng.integers(n))]]
    for _ in range(1, k):
        dist_sq = np.min(K.squared_distances(X, np.array(chosen)), axis=1)
        probs = K.divide(dist_sq, float(dist_sq.sum())).ravel()
        cumulative = np.cumsum(probs)
        idx = int(np.searchsorted(cumulative, rng.random(), side="left"))
        if idx >= n:
            # every point already sits on a centroid, or rounding left the tail short
            positive = np.flatnonzero(dist_sq)
            idx = int(positive[-1]) if positive.size else int(rng.integers(n))
        chosen.append(X[idx])
    return np.array(chosen, dtype=float)


def fit_kmeans(
    X: np.ndarray,
    cfg: KMeansConfig,
    log: LogFn = default_log,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
    feature_names: Optional[list[str]] = None,
) -> KMeansModel:
    cfg.validate()
    X = K.as_matrix(X)
    n = X.shape[0]
    k = int(cfg.k)
    if k > n:
        raise ConfigurationError(f"Number of clusters (k={k}) cannot exceed the number of rows ({n})")
    rng = np.random.default_rng(cfg.random_state)

    log(f"Training K-Means (k={k}) on {n} samples, {X.shape[1]} features")
    centroids = kmeans_plus_plus(X, k, rng)
    history: list[float] = []
    iterations = 0
    for it in range(int(cfg.max_iterations)):
        if should_stop(stop_flag):
            raise TrainingStopped(it, unit="iterations")
        labels = assign(X, centroids)
        history.append(inertia_of(X, centroids, labels))

        new_centroids = centroids.copy()
        for c in range(k):
            members = X[labels == c]
            # empty clusters keep their previous centroid
            if members.shape[0]:
                new_centroids[c] = K.mean(members, axis=0)

        converged = bool(np.all(np.abs(new_centroids - centroids) < cfg.tolerance))
        centroids = new_centroids
        iterations = it + 1
        report_progress(progress, iterations, int(cfg.max_iterations), f"Iteration {iterations}: inertia={history[-1]:.4f}")
        if converged:
            break

    predictions = assign(X, centroids)
    inertia = inertia_of(X, centroids, predictions)
    log(f"K-Means finished after {iterations} iterations, inertia={inertia:.4f}")
    return KMeansModel(
        k=k,
        max_iterations=int(cfg.max_iterations),
        centroids=frozen(centroids),
        inertia=float(inertia),
        predictions=frozen(predictions, dtype=int),
        feature_names=tuple(feature_names or ()),
        n_iterations=iterations,
        inertia_history=tuple(float(h) for h in history),
    )


def train_kmeans(
    dataset: TabularDataset,
    spec: DatasetSpec,
    cfg: KMeansConfig,
    log: LogFn = default_log,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
) -> KMeansModel:
    X = dataset.feature_matrix(spec.feature_cols)
    return fit_kmeans(X, cfg, log=log, progress=progress, stop_flag=stop_flag, feature_names=list(spec.feature_cols))
