from __future__ import annotations

import time
from typing import Optional

from .config import KMeansConfig, LogisticRegressionConfig, NeuralNetworkConfig, TrainerConfig, trainer_name
from .dataset import DatasetSpec, ProblemType, TabularDataset
from .kmeans import train_kmeans
from .logistic_regression import train_logistic_regression
from .neural_network import train_neural_network
from .utils import (
    ConfigurationError,
    FailureKind,
    LogFn,
    ProgressFn,
    StopFlag,
    TrainingStopped,
    TrainResult,
    default_log,
)


def _fit(dataset: TabularDataset, spec: DatasetSpec, cfg: TrainerConfig, log: LogFn,
         progress: ProgressFn | None, stop_flag: StopFlag) -> TrainResult:
    feats = list(spec.feature_cols)
    if isinstance(cfg, KMeansConfig):
        model = train_kmeans(dataset, spec, cfg, log=log, progress=progress, stop_flag=stop_flag)
        return TrainResult(model=model, history={"inertia": list(model.inertia_history)},
                           task_type="clustering", feature_names=feats)
    if isinstance(cfg, LogisticRegressionConfig):
        model = train_logistic_regression(dataset, spec, cfg, log=log, progress=progress, stop_flag=stop_flag)
        return TrainResult(model=model, history={"cost": list(model.costs), "accuracy": list(model.accuracies)},
                           task_type="classification", feature_names=feats)
    if isinstance(cfg, NeuralNetworkConfig):
        model = train_neural_network(dataset, spec, cfg, log=log, progress=progress, stop_flag=stop_flag)
        hist = {"cost": list(model.costs)}
        if model.problem_type is ProblemType.CLASSIFICATION:
            hist["accuracy"] = list(model.accuracies)
        return TrainResult(model=model, history=hist, task_type=model.problem_type.value, feature_names=feats)
    raise ConfigurationError(f"Unsupported trainer config: {type(cfg).__name__}")


def train(
    dataset: TabularDataset,
    spec: DatasetSpec,
    cfg: TrainerConfig,
    log: Optional[LogFn] = None,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
) -> TrainResult:
    """Run one training call and fold every failure into the returned result.

    Configuration problems, a user stop and unexpected errors all come back as
    ``TrainResult(model=None, error=..., failure=...)``; nothing is raised.
    """
    log = log or default_log
    feats = list(spec.feature_cols)
    t0 = time.time()
    try:
        res = _fit(dataset, spec, cfg, log, progress, stop_flag)
    except ConfigurationError as e:
        log(f"Configuration error: {e}")
        return TrainResult(model=None, feature_names=feats, error=str(e), failure=FailureKind.CONFIGURATION)
    except TrainingStopped as e:
        log(str(e))
        return TrainResult(model=None, feature_names=feats, error=str(e), failure=FailureKind.STOPPED)
    except Exception as e:
        log(f"Training failed: {type(e).__name__}: {e}")
        return TrainResult(model=None, feature_names=feats, error=f"{type(e).__name__}: {e}",
                           failure=FailureKind.FATAL)
    log(f"{trainer_name(cfg)} fit complete in {time.time() - t0:.2f}s")
    return res
