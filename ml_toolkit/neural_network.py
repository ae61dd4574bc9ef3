from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from . import kernel as K
from .config import NeuralNetworkConfig
from .dataset import DatasetSpec, ProblemType, TabularDataset, detect_problem_type, encode_sorted, is_number
from .kernel import Activation
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

SOFTMAX = "softmax"


@dataclass(frozen=True)
class Standardizer:
    """Per-column z-scoring; zero-variance columns map to 0."""

    mean: np.ndarray
    std: np.ndarray

    @classmethod
    def fit(cls, X: np.ndarray) -> "Standardizer":
        X = K.as_matrix(X)
        return cls(mean=frozen(X.mean(axis=0)), std=frozen(X.std(axis=0)))

    def transform(self, X) -> np.ndarray:
        X = K.as_matrix(X)
        if X.shape[1] != self.mean.shape[0]:
            raise ValueError(f"Expected {self.mean.shape[0]} features, got {X.shape[1]}")
        safe = np.where(self.std > 0, self.std, 1.0)
        return np.where(self.std > 0, (X - self.mean) / safe, 0.0)


@dataclass(frozen=True)
class NeuralNetworkModel:
    layer_sizes: tuple[int, ...]
    weights: tuple[np.ndarray, ...]
    biases: tuple[np.ndarray, ...]
    activation: Activation
    output_activation: str  # softmax | sigmoid | linear
    problem_type: ProblemType
    standardizer: Standardizer
    costs: tuple[float, ...]
    accuracies: tuple[float, ...] = ()
    r_squared: Optional[float] = None
    classes: tuple = ()
    feature_names: tuple[str, ...] = ()

    def predict_proba(self, X) -> np.ndarray:
        """Raw output-layer activations for every row of ``X``."""
        return forward(self.standardizer.transform(X), self.weights, self.biases,
                       self.activation, self.output_activation)[-1]

    def predict(self, X) -> np.ndarray:
        out = self.predict_proba(X)
        if self.problem_type is ProblemType.REGRESSION:
            return out.ravel()
        if self.output_activation == SOFTMAX:
            idx = K.argmax(out)
        else:
            idx = np.minimum((out.ravel() > 0.5).astype(int), len(self.classes) - 1)
        return np.asarray([self.classes[i] for i in idx])


def output_layer(activation: str, z: np.ndarray) -> np.ndarray:
    if activation == SOFTMAX:
        return K.softmax(z)
    return Activation(activation).forward(z)


def forward(
    X: np.ndarray,
    weights: Sequence[np.ndarray],
    biases: Sequence[np.ndarray],
    hidden: Activation,
    output: str,
) -> list[np.ndarray]:
    """Activations of every layer, input first."""
    activations = [K.as_matrix(X)]
    last = len(weights) - 1
    for i, (W, b) in enumerate(zip(weights, biases)):
        z = K.add(K.dot(activations[-1], W), b)
        activations.append(output_layer(output, z) if i == last else hidden.forward(z))
    return activations


def init_parameters(
    layer_sizes: Sequence[int], scale: float, rng: np.random.Generator
) -> tuple[list[np.ndarray], list[np.ndarray]]:
    weights, biases = [], []
    for n_in, n_out in zip(layer_sizes[:-1], layer_sizes[1:]):
        weights.append(rng.random((n_in, n_out)) * 2 * scale - scale)
        biases.append(np.zeros((1, n_out)))
    return weights, biases


def _prepare_target(y: Sequence[Any], target_name: str):
    problem = detect_problem_type(y)
    if problem is ProblemType.CLASSIFICATION:
        encoding = encode_sorted(y)
        if encoding.n_classes > 2:
            return problem, encoding.classes, encoding.one_hot(), SOFTMAX
        return problem, encoding.classes, encoding.indices.astype(float).reshape(-1, 1), Activation.SIGMOID.value
    if not all(is_number(v) for v in y):
        raise ConfigurationError(f"Regression target '{target_name}' contains non-numeric data.")
    return problem, (), np.asarray(y, dtype=float).reshape(-1, 1), Activation.LINEAR.value


def _loss(prediction: np.ndarray, target: np.ndarray, output: str) -> float:
    if output == SOFTMAX:
        return -K.mean(K.multiply(target, K.log(prediction)))
    if output == Activation.SIGMOID.value:
        return -K.mean(target * K.log(prediction) + (1.0 - target) * K.log(1.0 - prediction))
    return K.mean(K.power(K.subtract(prediction, target), 2))


def _accuracy(prediction: np.ndarray, target: np.ndarray, output: str) -> float:
    if output == SOFTMAX:
        return float(np.mean(K.argmax(prediction) == K.argmax(target)))
    return float(np.mean((prediction > 0.5).astype(float) == target))


def r_squared(prediction: np.ndarray, target: np.ndarray) -> float:
    ss_res = K.sum(K.power(K.subtract(target, prediction), 2))
    ss_tot = K.sum(K.power(K.subtract(target, K.mean(target)), 2))
    return 1.0 - ss_res / (ss_tot + K.EPSILON)


def fit_neural_network(
    X: np.ndarray,
    y: Sequence[Any],
    cfg: NeuralNetworkConfig,
    log: LogFn = default_log,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
    feature_names: Optional[list[str]] = None,
    target_name: str = "target",
) -> NeuralNetworkModel:
    cfg.validate()
    hidden = cfg.hidden_activation
    X = K.as_matrix(X)
    y = list(y)
    if len(y) != X.shape[0]:
        raise ConfigurationError(f"Target has {len(y)} values but features have {X.shape[0]} rows")
    problem, classes, target, output = _prepare_target(y, target_name)

    scaler = Standardizer.fit(X)
    Xs = scaler.transform(X)
    layer_sizes = [X.shape[1], *[int(w) for w in cfg.hidden_layers], target.shape[1]]
    rng = np.random.default_rng(cfg.random_state)
    weights, biases = init_parameters(layer_sizes, cfg.init_scale, rng)
    epochs = int(cfg.epochs)
    log_every = max(int(cfg.log_every), 1)
    lr = cfg.learning_rate

    log(f"Training Neural Network {layer_sizes} ({problem.value}, hidden={hidden.value}, output={output}) "
        f"on {X.shape[0]} samples")
    costs: list[float] = []
    accuracies: list[float] = []
    r2: Optional[float] = None
    for epoch in range(epochs):
        if should_stop(stop_flag):
            raise TrainingStopped(epoch)
        acts = forward(Xs, weights, biases, hidden, output)
        prediction = acts[-1]
        cost = _loss(prediction, target, output)
        costs.append(float(cost))
        if problem is ProblemType.CLASSIFICATION:
            accuracies.append(_accuracy(prediction, target, output))
        else:
            r2 = r_squared(prediction, target)

        # ---- backward pass: every delta uses the weights of this epoch ----
        deltas = [K.subtract(prediction, target)]
        for layer in range(len(weights) - 1, 0, -1):
            propagated = K.dot(deltas[0], K.transpose(weights[layer]))
            deltas.insert(0, K.multiply(propagated, hidden.derivative(acts[layer])))
        for layer, delta in enumerate(deltas):
            grad_w = K.dot(K.transpose(acts[layer]), delta)
            grad_b = K.sum(delta, axis=0, keepdims=True)
            weights[layer] = K.subtract(weights[layer], K.multiply(grad_w, lr))
            biases[layer] = K.subtract(biases[layer], K.multiply(grad_b, lr))

        if (epoch + 1) % log_every == 0 or epoch == 0:
            metric = f"accuracy={accuracies[-1]:.4f}" if accuracies else f"r2={r2:.4f}"
            log(f"Epoch {epoch + 1}/{epochs}: cost={cost:.4f}, {metric}")
        report_progress(progress, epoch + 1, epochs, f"Epoch {epoch + 1}/{epochs}")

    summary = f"accuracy={accuracies[-1]:.4f}" if accuracies else f"r2={r2:.4f}"
    log(f"Neural Network finished: cost={costs[-1]:.4f}, {summary}")
    return NeuralNetworkModel(
        layer_sizes=tuple(layer_sizes),
        weights=tuple(frozen(w) for w in weights),
        biases=tuple(frozen(b) for b in biases),
        activation=hidden,
        output_activation=output,
        problem_type=problem,
        standardizer=scaler,
        costs=tuple(costs),
        accuracies=tuple(accuracies),
        r_squared=None if r2 is None else float(r2),
        classes=tuple(classes),
        feature_names=tuple(feature_names or ()),
    )


def train_neural_network(
    dataset: TabularDataset,
    spec: DatasetSpec,
    cfg: NeuralNetworkConfig,
    log: LogFn = default_log,
    progress: ProgressFn | None = None,
    stop_flag: StopFlag = None,
) -> NeuralNetworkModel:
    X = dataset.feature_matrix(spec.feature_cols)
    y = dataset.target(spec.target_col)
    return fit_neural_network(
        X, y, cfg, log=log, progress=progress, stop_flag=stop_flag,
        feature_names=list(spec.feature_cols), target_name=str(spec.target_col),
    )
