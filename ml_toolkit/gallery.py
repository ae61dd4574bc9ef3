"""Named-file gallery used to keep datasets between sessions.

``FileGallery`` is the storage interface the rest of the toolkit talks to;
``InMemoryGallery`` and ``JsonFileGallery`` are the two backends. The JSON
backend keeps every file in one document shaped as
``[{"name": ..., "content": ..., "createdAt": ...}, ...]``.
"""
from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .dataset import TabularDataset


class GalleryError(ValueError):
    pass


@dataclass(frozen=True)
class SavedFile:
    name: str
    content: str
    created_at: str  # ISO-8601

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "content": self.content, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, d: Dict[str, str]) -> "SavedFile":
        return cls(name=d["name"], content=d["content"], created_at=d.get("createdAt", ""))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileGallery(ABC):
    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock

    @abstractmethod
    def _read(self) -> List[SavedFile]:
        ...

    @abstractmethod
    def _write(self, files: List[SavedFile]) -> None:
        ...

    def save(self, name: str, content: str) -> SavedFile:
        name = name.strip()
        if not name:
            raise GalleryError("File name must not be empty.")
        files = self._read()
        if any(f.name == name for f in files):
            raise GalleryError(f"A file named '{name}' already exists in the gallery.")
        entry = SavedFile(name=name, content=content, created_at=self._clock().isoformat())
        self._write(files + [entry])
        return entry

    def list(self) -> List[SavedFile]:
        """All files, newest first."""
        ordered = sorted(enumerate(self._read()), key=lambda p: (p[1].created_at, p[0]), reverse=True)
        return [f for _, f in ordered]

    def get(self, name: str) -> Optional[SavedFile]:
        return next((f for f in self._read() if f.name == name), None)

    def delete(self, name: str) -> bool:
        files = self._read()
        kept = [f for f in files if f.name != name]
        if len(kept) == len(files):
            return False
        self._write(kept)
        return True


class InMemoryGallery(FileGallery):
    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        super().__init__(clock)
        self._files: List[SavedFile] = []

    def _read(self) -> List[SavedFile]:
        return list(self._files)

    def _write(self, files: List[SavedFile]) -> None:
        self._files = list(files)


class JsonFileGallery(FileGallery):
    def __init__(self, path: str, clock: Callable[[], datetime] = _utcnow):
        super().__init__(clock)
        self.path = path

    def _read(self) -> List[SavedFile]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise GalleryError(f"Gallery file {self.path} is corrupt: {e}") from None
        if not isinstance(data, list):
            raise GalleryError(f"Gallery file {self.path} must hold a JSON array")
        return [SavedFile.from_dict(d) for d in data]

    def _write(self, files: List[SavedFile]) -> None:
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump([s.to_dict() for s in files], f, indent=2)
        os.replace(tmp, self.path)


def save_dataset(gallery: FileGallery, name: str, dataset: TabularDataset) -> SavedFile:
    name = name.strip()
    if not name:
        raise GalleryError("File name must not be empty.")
    if not name.lower().endswith(".json"):
        name = f"{name}.json"
    return gallery.save(name, dataset.to_json())


def load_dataset(gallery: FileGallery, name: str) -> TabularDataset:
    entry = gallery.get(name)
    if entry is None:
        raise GalleryError(f"No file named '{name}' in the gallery.")
    return TabularDataset.from_json(entry.content)
