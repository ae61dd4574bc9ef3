import json

import pytest

from ml_toolkit.config import (
    KMeansConfig,
    LogisticRegressionConfig,
    NeuralNetworkConfig,
    load_config,
    parse_hidden_layers,
    save_config,
)
from ml_toolkit.dataset import DatasetSpec
from ml_toolkit.kernel import Activation
from ml_toolkit.utils import ConfigurationError


def test_defaults_validate():
    KMeansConfig().validate()
    LogisticRegressionConfig().validate()
    cfg = NeuralNetworkConfig()
    cfg.validate()
    assert cfg.hidden_layers == [20, 10]
    assert cfg.hidden_activation is Activation.RELU


@pytest.mark.parametrize("cfg", [
    KMeansConfig(k=0),
    KMeansConfig(max_iterations=0),
    LogisticRegressionConfig(learning_rate=0.0),
    LogisticRegressionConfig(epochs=0),
    NeuralNetworkConfig(hidden_layers=[4, 0]),
    NeuralNetworkConfig(activation="softplus"),
    NeuralNetworkConfig(activation="linear"),
])
def test_invalid_configs_raise(cfg):
    with pytest.raises(ConfigurationError):
        cfg.validate()


def test_parse_hidden_layers():
    assert parse_hidden_layers("20, 10,") == [20, 10]
    assert parse_hidden_layers("") == []
    with pytest.raises(ConfigurationError, match="'a'"):
        parse_hidden_layers("8,a")
    with pytest.raises(ConfigurationError):
        parse_hidden_layers("8,-1")


def test_save_and_load_config(tmp_path):
    path = tmp_path / "cfg.json"
    spec = DatasetSpec(feature_cols=["x1", "x2"], target_col="y")
    cfg = NeuralNetworkConfig(hidden_layers=[8], activation="tanh", epochs=50)
    save_config(str(path), spec, cfg)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["trainer"] == "neural_network"
    assert raw["features"] == ["x1", "x2"]

    spec2, cfg2 = load_config(str(path))
    assert spec2 == spec
    assert cfg2 == cfg


def test_load_config_rejects_unknown_trainer(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"trainer": "svm", "params": {}}), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="svm"):
        load_config(str(path))


def test_load_config_rejects_unknown_params(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"trainer": "kmeans", "features": "a, b", "params": {"clusters": 3}}), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(path))
