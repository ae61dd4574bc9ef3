import numpy as np
import pytest

from ml_toolkit.config import KMeansConfig
from ml_toolkit.dataset import DatasetSpec, TabularDataset
from ml_toolkit.kmeans import fit_kmeans, train_kmeans
from ml_toolkit.utils import ConfigurationError, TrainingStopped


def _quiet(msg: str) -> None:
    pass


def _blobs(seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    a = rng.normal(loc=(0.0, 0.0), scale=0.3, size=(20, 2))
    b = rng.normal(loc=(10.0, 10.0), scale=0.3, size=(20, 2))
    return np.vstack([a, b])


def test_single_cluster_is_the_mean():
    X = np.random.default_rng(3).normal(size=(25, 3))
    model = fit_kmeans(X, KMeansConfig(k=1), log=_quiet)
    assert model.centroids.shape == (1, 3)
    assert np.allclose(model.centroids[0], X.mean(axis=0))
    assert np.isclose(model.inertia, float(((X - X.mean(axis=0)) ** 2).sum()))
    assert set(model.predictions.tolist()) == {0}


def test_predictions_centroids_and_inertia_history():
    X = np.random.default_rng(5).normal(size=(60, 2))
    model = fit_kmeans(X, KMeansConfig(k=4), log=_quiet)
    assert model.centroids.shape == (4, 2)
    assert model.predictions.shape == (60,)
    assert model.predictions.min() >= 0 and model.predictions.max() < 4
    assert model.n_iterations == len(model.inertia_history)
    assert model.inertia <= model.inertia_history[0] + 1e-9
    diffs = np.diff(model.inertia_history)
    assert np.all(diffs <= 1e-9)


def test_separated_blobs_get_separate_clusters():
    X = _blobs()
    model = fit_kmeans(X, KMeansConfig(k=2), log=_quiet)
    first, second = model.predictions[:20], model.predictions[20:]
    assert len(set(first.tolist())) == 1
    assert len(set(second.tolist())) == 1
    assert first[0] != second[0]


def test_fixed_seed_is_deterministic():
    X = np.random.default_rng(11).normal(size=(40, 3))
    m1 = fit_kmeans(X, KMeansConfig(k=3, random_state=7), log=_quiet)
    m2 = fit_kmeans(X, KMeansConfig(k=3, random_state=7), log=_quiet)
    assert np.array_equal(m1.centroids, m2.centroids)
    assert np.array_equal(m1.predictions, m2.predictions)


def test_predict_is_idempotent_and_matches_training_assignment():
    X = _blobs(1)
    model = fit_kmeans(X, KMeansConfig(k=2), log=_quiet)
    p1 = model.predict(X)
    p2 = model.predict(X)
    assert np.array_equal(p1, p2)
    assert np.array_equal(p1, model.predictions)
    with pytest.raises(ValueError):
        model.predict([[1.0, 2.0, 3.0]])


def test_identical_points_leave_extra_centroid_in_place():
    X = np.ones((4, 2))
    model = fit_kmeans(X, KMeansConfig(k=2), log=_quiet)
    assert np.allclose(model.centroids, 1.0)
    assert model.predictions.tolist() == [0, 0, 0, 0]
    assert model.inertia == 0.0


def test_model_is_read_only():
    model = fit_kmeans(_blobs(), KMeansConfig(k=2), log=_quiet)
    with pytest.raises(ValueError):
        model.centroids[0, 0] = 5.0


def test_more_clusters_than_rows_is_a_configuration_error():
    with pytest.raises(ConfigurationError, match="k=5"):
        fit_kmeans(np.zeros((3, 2)), KMeansConfig(k=5), log=_quiet)


def test_non_numeric_feature_fails_before_training():
    ds = TabularDataset({"a": [1, 2, 3], "b": ["x", "y", "z"]})
    with pytest.raises(ConfigurationError, match="'b'"):
        train_kmeans(ds, DatasetSpec(["a", "b"]), KMeansConfig(k=2), log=_quiet)


def test_stop_flag_halts_between_iterations():
    with pytest.raises(TrainingStopped) as exc:
        fit_kmeans(_blobs(), KMeansConfig(k=2), log=_quiet, stop_flag=[True])
    assert exc.value.completed == 0


def test_train_kmeans_records_feature_names_and_logs():
    ds = TabularDataset({"x": [0.0, 0.1, 9.0, 9.1], "y": [0.0, 0.2, 9.0, 9.2]})
    lines = []
    model = train_kmeans(ds, DatasetSpec(["x", "y"]), KMeansConfig(k=2), log=lines.append)
    assert model.feature_names == ("x", "y")
    assert any("K-Means" in line for line in lines)
