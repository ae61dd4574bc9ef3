from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

LogFn = Callable[[str], None]
ProgressFn = Callable[[float, str], None]  # progress [0..1], text
StopFlag = Optional[list[bool]]

logger = logging.getLogger("ml_toolkit")


class ConfigurationError(ValueError):
    """Raised before training when the dataset or hyperparameters are unusable."""


class TrainingStopped(Exception):
    def __init__(self, completed: int, unit: str = "epochs"):
        super().__init__(f"Training stopped by user after {completed} {unit}.")
        self.completed = completed


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    STOPPED = "stopped"
    FATAL = "fatal"


def default_log(msg: str) -> None:
    logger.info(msg)


def should_stop(stop_flag: StopFlag) -> bool:
    return bool(stop_flag and stop_flag[0])


def report_progress(progress: ProgressFn | None, done: int, total: int, msg: str) -> None:
    if progress:
        progress(done / max(total, 1), msg)


def frozen(arr: Any, dtype=float) -> np.ndarray:
    """Return a read-only copy of ``arr``."""
    out = np.array(arr, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


@dataclass
class TrainResult:
    model: Any
    history: Optional[dict[str, list[float]]] = None
    task_type: str = "classification"  # classification | regression | clustering
    feature_names: Optional[list[str]] = None
    error: Optional[str] = None
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.model is not None and self.failure is None

    @property
    def stopped(self) -> bool:
        return self.failure is FailureKind.STOPPED
