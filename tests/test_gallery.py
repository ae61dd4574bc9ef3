import json
from datetime import datetime, timedelta, timezone

import pytest

from ml_toolkit.dataset import TabularDataset
from ml_toolkit.gallery import GalleryError, InMemoryGallery, JsonFileGallery, load_dataset, save_dataset


def _ticking_clock():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = iter(range(1000))
    return lambda: start + timedelta(minutes=next(ticks))


def test_list_is_newest_first():
    g = InMemoryGallery(clock=_ticking_clock())
    g.save("a.json", "[]")
    g.save("b.json", "[]")
    g.save("c.json", "[]")
    assert [f.name for f in g.list()] == ["c.json", "b.json", "a.json"]


def test_same_timestamp_keeps_newest_first():
    fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)
    g = InMemoryGallery(clock=lambda: fixed)
    g.save("a.json", "[]")
    g.save("b.json", "[]")
    assert [f.name for f in g.list()] == ["b.json", "a.json"]


def test_duplicate_and_empty_names_are_rejected():
    g = InMemoryGallery()
    g.save("data.json", "[]")
    with pytest.raises(GalleryError, match="already exists"):
        g.save("data.json", "[1]")
    with pytest.raises(GalleryError):
        g.save("   ", "[]")
    assert g.get("data.json").content == "[]"


def test_delete_reports_whether_anything_was_removed():
    g = InMemoryGallery()
    g.save("data.json", "[]")
    assert g.delete("data.json") is True
    assert g.delete("data.json") is False
    assert g.list() == []


def test_json_gallery_persists_across_instances(tmp_path):
    path = tmp_path / "gallery.json"
    JsonFileGallery(str(path), clock=_ticking_clock()).save("one.json", '[{"x": 1}]')

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw == [{"name": "one.json", "content": '[{"x": 1}]', "createdAt": "2024-01-01T00:00:00+00:00"}]

    again = JsonFileGallery(str(path))
    assert [f.name for f in again.list()] == ["one.json"]
    assert again.delete("one.json")
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_json_gallery_reports_corrupt_file(tmp_path):
    path = tmp_path / "gallery.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(GalleryError, match="corrupt"):
        JsonFileGallery(str(path)).list()


def test_save_and_load_dataset():
    g = InMemoryGallery()
    ds = TabularDataset({"x": [1.0, 2.5], "y": ["a", "b"]})
    entry = save_dataset(g, "iris", ds)
    assert entry.name == "iris.json"
    loaded = load_dataset(g, "iris.json")
    assert loaded.columns == ["x", "y"]
    assert loaded.column("x") == [1.0, 2.5]
    assert loaded.column("y") == ["a", "b"]
    with pytest.raises(GalleryError):
        load_dataset(g, "missing.json")
