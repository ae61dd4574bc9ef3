from __future__ import annotations

import io
import json
import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from .utils import ConfigurationError

MAX_CLASSES = 10
TARGET_HINTS = ("target", "species", "label", "class")


class ProblemType(str, Enum):
    CLASSIFICATION = "classification"
    REGRESSION = "regression"


@dataclass
class DatasetSpec:
    feature_cols: list[str]
    target_col: Optional[str] = None


@dataclass(frozen=True)
class LabelEncoding:
    """Ordered label set; ``indices[i]`` is the position of row i's label in ``classes``."""

    classes: tuple
    indices: np.ndarray = field(repr=False)

    @property
    def n_classes(self) -> int:
        return len(self.classes)

    def one_hot(self) -> np.ndarray:
        out = np.zeros((len(self.indices), self.n_classes))
        out[np.arange(len(self.indices)), self.indices] = 1.0
        return out


def is_number(v: Any) -> bool:
    if isinstance(v, (bool, np.bool_)) or not isinstance(v, numbers.Number):
        return False
    return not (isinstance(v, numbers.Real) and math.isnan(v))


def is_missing(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str):
        return v.strip() == ""
    return isinstance(v, numbers.Real) and not isinstance(v, bool) and math.isnan(v)


def _coerce_cell(v: Any) -> Any:
    # JSON import: numeric-looking strings and booleans become numbers
    if isinstance(v, bool):
        return int(v)
    if isinstance(v, str) and v.strip():
        try:
            num = float(v)
        except ValueError:
            return v
        if not math.isfinite(num):
            return v
        return int(num) if num.is_integer() and "." not in v and "e" not in v.lower() else num
    return v


def parse_feature_list(text: str) -> list[str]:
    return [f.strip() for f in text.split(",") if f.strip()]


def detect_problem_type(values: Sequence[Any]) -> ProblemType:
    """Classification iff at most 10 distinct values, all integer-valued numbers."""
    vals = list(values)
    if vals and all(is_number(v) and float(v).is_integer() for v in vals):
        if len(set(float(v) for v in vals)) <= MAX_CLASSES:
            return ProblemType.CLASSIFICATION
    return ProblemType.REGRESSION


def encode_sorted(values: Sequence[Any]) -> LabelEncoding:
    le = LabelEncoder().fit(list(values))
    classes = tuple(_plain(c) for c in le.classes_)
    return LabelEncoding(classes=classes, indices=le.transform(list(values)).astype(int))


def encode_first_seen(values: Sequence[Any]) -> LabelEncoding:
    classes = tuple(pd.unique(pd.Series(list(values), dtype=object)))
    lookup = {c: i for i, c in enumerate(classes)}
    return LabelEncoding(classes=classes, indices=np.array([lookup[v] for v in values], dtype=int))


class TabularDataset:
    """Rectangular, column-oriented table of numeric and categorical cells.

    The frame is copied on the way in and every accessor hands out copies, so
    trainers can never mutate the caller's data.
    """

    def __init__(self, columns: Mapping[str, Sequence[Any]] | pd.DataFrame):
        if isinstance(columns, pd.DataFrame):
            df = columns.copy()
        else:
            lengths = {str(name): len(vals) for name, vals in columns.items()}
            if len(set(lengths.values())) > 1:
                raise ConfigurationError(f"Dataset is not rectangular: column lengths differ {lengths}")
            df = pd.DataFrame({str(name): pd.Series(list(vals), dtype=object) for name, vals in columns.items()})
            df = df.infer_objects()
        if df.columns.duplicated().any():
            raise ConfigurationError("Dataset column names must be unique")
        df.columns = [str(c) for c in df.columns]
        self._df = df.reset_index(drop=True)

    # ------------------------------ construction ------------------------------
    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "TabularDataset":
        rows = list(records)
        if not rows:
            raise ConfigurationError("Dataset must contain at least one row")
        headers = list(rows[0].keys())
        return cls({h: [row.get(h) for row in rows] for h in headers})

    @classmethod
    def from_json(cls, text: str) -> "TabularDataset":
        data = json.loads(text)
        if not isinstance(data, list) or not data:
            raise ConfigurationError("JSON must be a non-empty array of objects.")
        return cls.from_records([{k: _coerce_cell(v) for k, v in row.items()} for row in data])

    @classmethod
    def from_csv(cls, text: str) -> "TabularDataset":
        """Parse CSV text with a header row; rows with extra fields are skipped."""
        try:
            df = pd.read_csv(io.StringIO(text.strip()), skipinitialspace=True, on_bad_lines="skip")
        except pd.errors.EmptyDataError:
            raise ConfigurationError("CSV must have a header and at least one row of data.") from None
        if df.empty:
            raise ConfigurationError("CSV must have a header and at least one row of data.")
        return cls(df)

    def to_frame(self) -> pd.DataFrame:
        return self._df.copy()

    def to_records(self) -> list[dict[str, Any]]:
        return [{c: _plain(v) for c, v in row.items()} for row in self._df.to_dict(orient="records")]

    def to_json(self) -> str:
        return json.dumps(self.to_records(), indent=2)

    def to_csv(self) -> str:
        return self._df.to_csv(index=False)

    # ------------------------------ inspection ------------------------------
    @property
    def columns(self) -> list[str]:
        return list(self._df.columns)

    @property
    def n_rows(self) -> int:
        return int(self._df.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        return self.n_rows, len(self.columns)

    def __len__(self) -> int:
        return self.n_rows

    def __contains__(self, name: object) -> bool:
        return name in self._df.columns

    def column(self, name: str) -> list[Any]:
        if name not in self._df.columns:
            raise ConfigurationError(f"Column '{name}' not found.")
        return [_plain(v) for v in self._df[name].tolist()]

    def is_numeric(self, name: str) -> bool:
        s = self._df[name]
        if pd.api.types.is_bool_dtype(s):
            return False
        if pd.api.types.is_numeric_dtype(s):
            return not bool(s.isna().any())
        return all(is_number(v) for v in s.tolist())

    def numeric_columns(self) -> list[str]:
        return [c for c in self.columns if self.is_numeric(c)]

    def suggest_columns(self) -> DatasetSpec:
        cols = self.columns
        target = next((c for c in cols if c.lower() in TARGET_HINTS), cols[-1] if cols else None)
        feats = [c for c in cols if c != target and self.is_numeric(c)]
        return DatasetSpec(feature_cols=feats, target_col=target)

    # ------------------------------ model inputs ------------------------------
    def feature_matrix(self, features: Sequence[str]) -> np.ndarray:
        """Rows = samples, columns = ``features`` in the order given."""
        features = list(features)
        if not features:
            raise ConfigurationError("Please select at least one feature column.")
        for f in features:
            if f not in self._df.columns:
                raise ConfigurationError(f"Feature '{f}' not found in data.")
            if not self.is_numeric(f):
                raise ConfigurationError(f"Feature '{f}' contains non-numeric data.")
        if self.n_rows == 0:
            raise ConfigurationError("Dataset has no rows.")
        return self._df[features].to_numpy(dtype=float, copy=True)

    def target(self, name: Optional[str]) -> list[Any]:
        if not name:
            raise ConfigurationError("Please select a target column.")
        if name not in self._df.columns:
            raise ConfigurationError(f"Target column '{name}' not found.")
        values = self.column(name)
        if any(is_missing(v) for v in values):
            raise ConfigurationError(f"Target column '{name}' contains missing values.")
        return values

    # ------------------------------ preprocessing ------------------------------
    def profile(self) -> dict[str, dict[str, Any]]:
        out: dict[str, dict[str, Any]] = {}
        for c in self.columns:
            values = self.column(c)
            present = [v for v in values if not is_missing(v)]
            nums = [float(v) for v in present if is_number(v)]
            if present and len(nums) == len(present):
                arr = np.asarray(nums)
                out[c] = {
                    "type": "numeric",
                    "count": len(nums),
                    "missing": len(values) - len(present),
                    "mean": float(arr.mean()),
                    "std": float(arr.std()) if len(arr) > 1 else 0.0,
                    "min": float(arr.min()),
                    "max": float(arr.max()),
                }
            else:
                counts = pd.Series(present, dtype=object).value_counts()
                out[c] = {
                    "type": "categorical",
                    "count": len(present),
                    "missing": len(values) - len(present),
                    "unique": int(counts.shape[0]),
                    "mode": _plain(counts.index[0]) if not counts.empty else None,
                }
        return out

    def fill_missing(self, strategy: str) -> "TabularDataset":
        """Return a copy with missing cells dropped (``drop``) or filled (``mean``/``median``/``mode``)."""
        strategy = strategy.lower()
        if strategy not in ("drop", "mean", "median", "mode"):
            raise ConfigurationError(f"Unknown missing-value strategy: {strategy}")
        cols = {c: self.column(c) for c in self.columns}
        if strategy == "drop":
            keep = [i for i in range(self.n_rows) if not any(is_missing(cols[c][i]) for c in cols)]
            return TabularDataset({c: [vals[i] for i in keep] for c, vals in cols.items()})

        filled = {}
        for c, vals in cols.items():
            nums = [float(v) for v in vals if is_number(v)]
            if vals and len(nums) / len(vals) > 0.5:
                if strategy == "mean":
                    fill = float(np.mean(nums))
                elif strategy == "median":
                    fill = float(np.median(nums))
                else:
                    fill = _mode(nums)
            else:
                fill = _mode([v for v in vals if not is_missing(v)], default="")
            filled[c] = [fill if is_missing(v) else v for v in vals]
        return TabularDataset(filled)


def _mode(values: list[Any], default: Any = 0) -> Any:
    if not values:
        return default
    # ties go to the value seen first
    counts = pd.Series(values, dtype=object).value_counts(sort=False)
    return _plain(counts.idxmax())


def _plain(v: Any) -> Any:
    if isinstance(v, np.generic):
        return v.item()
    return v


def read_dataset(path: str) -> TabularDataset:
    p = path.lower()
    if p.endswith(".csv"):
        df = pd.read_csv(path)
    elif p.endswith(".tsv"):
        df = pd.read_csv(path, sep="\t")
    elif p.endswith(".jsonl"):
        df = pd.read_json(path, lines=True)
    elif p.endswith(".json"):
        df = pd.read_json(path)
    else:
        raise ConfigurationError(f"Unsupported dataset format: {path}")
    return TabularDataset(df)
