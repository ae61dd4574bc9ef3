import numpy as np
import pytest
from sklearn.metrics import r2_score

from ml_toolkit.config import NeuralNetworkConfig
from ml_toolkit.dataset import DatasetSpec, ProblemType, TabularDataset
from ml_toolkit.kernel import Activation
from ml_toolkit.neural_network import Standardizer, fit_neural_network, train_neural_network
from ml_toolkit.utils import ConfigurationError, TrainingStopped


def _quiet(msg: str) -> None:
    pass


def _three_clusters():
    x = [i * 0.1 for i in range(10)] + [5 + i * 0.1 for i in range(10)] + [10 + i * 0.1 for i in range(10)]
    y = [0] * 10 + [1] * 10 + [2] * 10
    return np.array(x).reshape(-1, 1), y


def test_regression_fits_a_line():
    x = np.linspace(0.0, 1.0, 50)
    y = (2 * x + 1).tolist()
    cfg = NeuralNetworkConfig(hidden_layers=[8], activation="tanh", learning_rate=0.005, epochs=2000)
    model = fit_neural_network(x.reshape(-1, 1), y, cfg, log=_quiet)
    assert model.problem_type is ProblemType.REGRESSION
    assert model.output_activation == "linear"
    assert model.layer_sizes == (1, 8, 1)
    assert len(model.costs) == 2000
    assert model.accuracies == ()
    assert model.costs[-1] < model.costs[0]
    assert model.r_squared > 0.9
    assert r2_score(y, model.predict(x.reshape(-1, 1))) > 0.9


def test_multiclass_softmax_separates_three_clusters():
    X, y = _three_clusters()
    cfg = NeuralNetworkConfig(hidden_layers=[8], activation="tanh", learning_rate=0.01, epochs=500)
    model = fit_neural_network(X, y, cfg, log=_quiet)
    assert model.output_activation == "softmax"
    assert model.layer_sizes == (1, 8, 3)
    assert model.classes == (0, 1, 2)
    assert model.accuracies[-1] == 1.0
    assert model.r_squared is None
    assert model.predict(X).tolist() == y


def test_binary_target_uses_single_sigmoid_output():
    X = np.arange(20, dtype=float).reshape(-1, 1)
    y = [0] * 10 + [1] * 10
    cfg = NeuralNetworkConfig(hidden_layers=[4], activation="tanh", learning_rate=0.01, epochs=300)
    model = fit_neural_network(X, y, cfg, log=_quiet)
    assert model.output_activation == "sigmoid"
    assert model.layer_sizes == (1, 4, 1)
    assert model.accuracies[-1] >= 0.9
    assert set(model.predict(X).tolist()) <= {0, 1}


def test_predict_is_idempotent_and_applies_training_standardization():
    X, y = _three_clusters()
    model = fit_neural_network(X, y, NeuralNetworkConfig(hidden_layers=[4], epochs=20), log=_quiet)
    p1 = model.predict_proba(X)
    p2 = model.predict_proba(X)
    assert np.array_equal(p1, p2)
    assert np.allclose(p1.sum(axis=1), 1.0)
    assert np.allclose(model.standardizer.mean, [X.mean()])


def test_fixed_seed_gives_identical_weights():
    X, y = _three_clusters()
    cfg = NeuralNetworkConfig(hidden_layers=[5, 3], epochs=10, random_state=1)
    m1 = fit_neural_network(X, y, cfg, log=_quiet)
    m2 = fit_neural_network(X, y, cfg, log=_quiet)
    for w1, w2 in zip(m1.weights, m2.weights):
        assert np.array_equal(w1, w2)
    assert m1.activation is Activation.RELU


def test_initial_weights_are_small_and_biases_zero():
    X, y = _three_clusters()
    model = fit_neural_network(X, y, NeuralNetworkConfig(hidden_layers=[6], epochs=1, learning_rate=1e-9), log=_quiet)
    for w in model.weights:
        assert np.all(np.abs(w) <= 0.05 + 1e-6)
    for b in model.biases:
        assert np.allclose(b, 0.0, atol=1e-6)


def test_zero_variance_column_standardizes_to_zero():
    scaler = Standardizer.fit(np.array([[1.0, 5.0], [1.0, 7.0]]))
    out = scaler.transform([[1.0, 6.0], [3.0, 7.0]])
    assert np.allclose(out[:, 0], 0.0)
    assert np.allclose(out[:, 1], [0.0, 1.0])


def test_string_regression_target_is_rejected():
    ds = TabularDataset({"x": [1.0, 2.0, 3.0], "t": ["a", "b", "c"]})
    with pytest.raises(ConfigurationError, match="'t'"):
        train_neural_network(ds, DatasetSpec(["x"], "t"), NeuralNetworkConfig(epochs=5), log=_quiet)


def test_stop_flag_halts_training():
    X, y = _three_clusters()
    with pytest.raises(TrainingStopped):
        fit_neural_network(X, y, NeuralNetworkConfig(), log=_quiet, stop_flag=[True])


def test_log_lines_follow_log_every():
    X, y = _three_clusters()
    lines = []
    fit_neural_network(X, y, NeuralNetworkConfig(hidden_layers=[3], epochs=10, log_every=5), log=lines.append)
    epoch_lines = [line for line in lines if line.startswith("Epoch")]
    assert [line.split(":")[0] for line in epoch_lines] == ["Epoch 1/10", "Epoch 5/10", "Epoch 10/10"]
