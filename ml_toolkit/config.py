from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

from .dataset import DatasetSpec
from .kernel import Activation
from .utils import ConfigurationError

HIDDEN_ACTIVATIONS = (Activation.RELU, Activation.SIGMOID, Activation.TANH)


def _check_rate_and_epochs(learning_rate: float, epochs: int) -> None:
    if not learning_rate > 0:
        raise ConfigurationError(f"Learning rate must be positive (got {learning_rate})")
    if int(epochs) < 1:
        raise ConfigurationError(f"Epochs must be at least 1 (got {epochs})")


@dataclass
class KMeansConfig:
    """K-Means hyperparameters.

    Attributes:
        k: Number of clusters (>= 1, at most the number of rows).
        max_iterations: Upper bound on assignment/update rounds.
        tolerance: Stop once no centroid coordinate moves by this much or more.
        random_state: Seed for k-means++ seeding; ``None`` draws fresh entropy.
    """
    k: int = 3
    max_iterations: int = 100
    tolerance: float = 1e-4
    random_state: Optional[int] = 42

    def validate(self) -> None:
        if int(self.k) < 1:
            raise ConfigurationError(f"Number of clusters must be at least 1 (got {self.k})")
        if int(self.max_iterations) < 1:
            raise ConfigurationError(f"Max iterations must be at least 1 (got {self.max_iterations})")
        if self.tolerance < 0:
            raise ConfigurationError(f"Tolerance must be non-negative (got {self.tolerance})")


@dataclass
class LogisticRegressionConfig:
    learning_rate: float = 0.01
    epochs: int = 1000
    log_every: int = 100

    def validate(self) -> None:
        _check_rate_and_epochs(self.learning_rate, self.epochs)


@dataclass
class NeuralNetworkConfig:
    """Feed-forward network hyperparameters.

    Attributes:
        hidden_layers: Widths of the hidden layers, input side first. May be empty.
        activation: Hidden-layer activation: "relu", "sigmoid" or "tanh".
        learning_rate: Step size applied to the summed (not averaged) gradients.
        epochs: Number of full-batch passes.
        init_scale: Initial weights are drawn uniformly from [-init_scale, init_scale).
        random_state: Seed for weight initialisation; ``None`` draws fresh entropy.
        log_every: Emit a log line every this many epochs.
    """
    hidden_layers: list[int] = field(default_factory=lambda: [20, 10])
    activation: str = "relu"
    learning_rate: float = 0.01
    epochs: int = 1000
    init_scale: float = 0.05
    random_state: Optional[int] = 42
    log_every: int = 100

    def validate(self) -> None:
        _check_rate_and_epochs(self.learning_rate, self.epochs)
        for width in self.hidden_layers:
            if int(width) != width or int(width) < 1:
                raise ConfigurationError(f"Hidden layer widths must be positive integers (got {width})")
        if self.hidden_activation not in HIDDEN_ACTIVATIONS:
            raise ConfigurationError(f"Hidden activation must be relu, sigmoid or tanh (got '{self.activation}')")

    @property
    def hidden_activation(self) -> Activation:
        return Activation.from_name(self.activation)


TrainerConfig = Union[KMeansConfig, LogisticRegressionConfig, NeuralNetworkConfig]

_TRAINER_NAMES = {
    KMeansConfig: "kmeans",
    LogisticRegressionConfig: "logistic_regression",
    NeuralNetworkConfig: "neural_network",
}


def parse_hidden_layers(text: str) -> list[int]:
    """Parse "20,10" into ``[20, 10]``; blank entries are ignored."""
    widths: list[int] = []
    for tok in text.split(","):
        tok = tok.strip()
        if not tok:
            continue
        try:
            width = int(tok)
        except ValueError:
            raise ConfigurationError(f"Hidden layer width '{tok}' is not an integer") from None
        if width < 1:
            raise ConfigurationError(f"Hidden layer widths must be positive integers (got {width})")
        widths.append(width)
    return widths


def trainer_name(cfg: TrainerConfig) -> str:
    try:
        return _TRAINER_NAMES[type(cfg)]
    except KeyError:
        raise ConfigurationError(f"Unsupported trainer config: {type(cfg).__name__}") from None


def config_to_dict(spec: DatasetSpec, cfg: TrainerConfig) -> dict[str, Any]:
    return {
        "trainer": trainer_name(cfg),
        "features": list(spec.feature_cols),
        "target": spec.target_col,
        "params": asdict(cfg),
    }


def config_from_dict(data: dict[str, Any]) -> tuple[DatasetSpec, TrainerConfig]:
    name = data.get("trainer")
    by_name = {v: k for k, v in _TRAINER_NAMES.items()}
    if name not in by_name:
        raise ConfigurationError(f"Unknown trainer '{name}'")
    cls = by_name[name]
    try:
        cfg = cls(**data.get("params", {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid parameters for {name}: {e}") from None
    features = data.get("features") or []
    if isinstance(features, str):
        features = [f.strip() for f in features.split(",") if f.strip()]
    return DatasetSpec(feature_cols=list(features), target_col=data.get("target")), cfg


def save_config(path: str, spec: DatasetSpec, cfg: TrainerConfig) -> str:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(spec, cfg), f, indent=2)
    return path


def load_config(path: str) -> tuple[DatasetSpec, TrainerConfig]:
    with open(path, "r", encoding="utf-8") as f:
        return config_from_dict(json.load(f))
