#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Feature Matrix Builder

Turns a dataset into a numeric design matrix and a temporal train/test split.

- Numeric predictors pass through unchanged
- Each categorical field becomes one indicator column per non-reference level;
  the reference level is explicit, validated, and shared by train and test
- Identifier fields never enter the matrix
- The split thresholds the time ordinal: train on older periods, test on the
  held-out most recent period(s). Rows are never sampled at random.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .dataset import DatasetSchema, validate_dataset
from .errors import SchemaMismatch, UnseenCategory


def with_response(schema: DatasetSchema, response_field: str) -> DatasetSchema:
    """Schema that reserves ``response_field`` so it is never used as a predictor."""
    if response_field in schema.response_fields:
        return schema
    return replace(schema, response_fields=(*schema.response_fields, response_field))


@dataclass(frozen=True)
class CategoricalEncoding:
    """Indicator encoding of one categorical field against a reference level."""

    field: str
    levels: Tuple[str, ...]
    reference: str

    def __post_init__(self):
        if self.reference not in self.levels:
            raise SchemaMismatch(
                f"Reference level '{self.reference}' for '{self.field}' is not among "
                f"the training levels {list(self.levels)}",
                field=self.field,
                reference=self.reference,
                levels=list(self.levels),
            )

    @property
    def encoded_levels(self) -> List[str]:
        return [lvl for lvl in self.levels if lvl != self.reference]

    @property
    def columns(self) -> List[str]:
        return [f"{self.field}_{lvl}" for lvl in self.encoded_levels]

    def transform(self, values: pd.Series) -> pd.DataFrame:
        values = values.astype(str)
        unseen = sorted(set(values.unique()) - set(self.levels))
        if unseen:
            rows = values.index[values.isin(unseen)].tolist()
            raise UnseenCategory(
                f"Field '{self.field}' has levels {unseen} with no training column",
                field=self.field,
                levels=unseen,
                rows=rows[:20],
            )
        data = {
            col: (values == lvl).astype(float)
            for col, lvl in zip(self.columns, self.encoded_levels)
        }
        return pd.DataFrame(data, index=values.index, columns=self.columns)


@dataclass(frozen=True)
class TemporalSplit:
    """
    Train = ``train_from <= t <= train_until``; test = ``t in test_periods``.

    Test periods must all be later than ``train_until`` so no future rows leak
    into training.
    """

    train_until: float
    test_periods: Tuple[float, ...]
    train_from: Optional[float] = None

    def __post_init__(self):
        periods = tuple(self.test_periods)
        if not periods:
            raise ValueError("TemporalSplit needs at least one test period")
        if min(periods) <= self.train_until:
            raise ValueError(
                f"Test periods {list(periods)} must be later than train_until="
                f"{self.train_until}"
            )
        object.__setattr__(self, "test_periods", periods)

    def masks(self, t: pd.Series) -> Tuple[pd.Series, pd.Series]:
        train = t <= self.train_until
        if self.train_from is not None:
            train &= t >= self.train_from
        test = t.isin(self.test_periods)
        return train, test

    def split(self, df: pd.DataFrame, time_field: str = "t") -> Tuple[pd.DataFrame, pd.DataFrame]:
        train, test = self.masks(df[time_field])
        return df[train].copy(), df[test].copy()


def suggest_split(
    df: pd.DataFrame, time_field: str = "t", test_fraction: float = 0.3
) -> TemporalSplit:
    """
    Hold out the most recent periods until they cover about ``test_fraction`` of rows.

    Periods are added newest-first while doing so moves the test share closer
    to the target; at least one period is always held out and at least one is
    left for training.
    """
    if not 0.0 < test_fraction < 1.0:
        raise ValueError(f"test_fraction must be in (0, 1), got {test_fraction}")
    counts = df[time_field].value_counts().sort_index(ascending=False)
    if len(counts) < 2:
        raise ValueError("Need at least two distinct periods to split by time")

    total = counts.sum()
    held: List[float] = []
    covered = 0
    for period, n in counts.items():
        if len(held) == len(counts) - 1:
            break
        if held and abs((covered + n) / total - test_fraction) >= abs(covered / total - test_fraction):
            break
        held.append(period)
        covered += n

    train_until = max(p for p in counts.index if p not in held)
    return TemporalSplit(train_until=train_until, test_periods=tuple(sorted(held)))


@dataclass
class DesignMatrix:
    """Encoded train/test matrices. Unpacks as ``(X_train, y_train, X_test, y_test)``."""

    X_train: pd.DataFrame
    y_train: pd.Series
    X_test: pd.DataFrame
    y_test: pd.Series
    columns: List[str]
    encodings: Dict[str, CategoricalEncoding] = field(default_factory=dict)
    entities_test: Optional[pd.Series] = None

    def __iter__(self) -> Iterator:
        return iter((self.X_train, self.y_train, self.X_test, self.y_test))


class FeatureMatrixBuilder:
    """
    Learns the encoding from training rows and applies it unchanged elsewhere.

    Args:
        schema: Column roles of the dataset
        reference_levels: Maps every categorical field to its reference level
        include_time: Also pass the time ordinal through as a predictor
    """

    def __init__(
        self,
        schema: DatasetSchema,
        reference_levels: Mapping[str, str],
        include_time: bool = False,
    ):
        self.schema = schema
        self.reference_levels = {k: str(v) for k, v in reference_levels.items()}
        self.include_time = include_time
        self.numeric_fields: List[str] = []
        self.encodings: Dict[str, CategoricalEncoding] = {}
        self.columns: List[str] = []
        self._fitted = False

    def fit(self, train_df: pd.DataFrame) -> "FeatureMatrixBuilder":
        numeric, categorical = self.schema.predictor_fields(train_df)
        missing_refs = [c for c in categorical if c not in self.reference_levels]
        if missing_refs:
            raise SchemaMismatch(
                f"No reference level given for categorical fields {missing_refs}",
                fields=missing_refs,
            )
        unknown = [c for c in self.reference_levels if c not in categorical]
        if unknown:
            raise SchemaMismatch(
                f"Reference levels given for non-categorical fields {unknown}",
                fields=unknown,
            )

        self.numeric_fields = list(numeric)
        if self.include_time:
            self.numeric_fields.insert(0, self.schema.time_field)

        self.encodings = {}
        for col in categorical:
            levels = tuple(sorted(train_df[col].astype(str).unique()))
            self.encodings[col] = CategoricalEncoding(
                field=col, levels=levels, reference=self.reference_levels[col]
            )

        self.columns = list(self.numeric_fields)
        for enc in self.encodings.values():
            self.columns.extend(enc.columns)
        self._fitted = True
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        if not self._fitted:
            raise RuntimeError("FeatureMatrixBuilder.transform called before fit")

        missing = [
            c for c in [*self.numeric_fields, *self.encodings] if c not in df.columns
        ]
        if missing:
            raise SchemaMismatch(
                f"Columns missing from data being encoded: {missing}", missing=missing
            )

        parts = [df[self.numeric_fields].astype(float)]
        for col, enc in self.encodings.items():
            parts.append(enc.transform(df[col]))
        X = pd.concat(parts, axis=1)

        if list(X.columns) != self.columns:
            raise SchemaMismatch(
                "Encoded columns differ from the fitted column set",
                expected=self.columns,
                got=list(X.columns),
            )
        return X

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)

    def indicator_counts(self) -> Dict[str, int]:
        return {col: len(enc.columns) for col, enc in self.encodings.items()}

    def build(
        self, dataset: pd.DataFrame, response_field: str, split: TemporalSplit
    ) -> DesignMatrix:
        self.schema = with_response(self.schema, response_field)
        validate_dataset(dataset, self.schema, response_field)
        train_df, test_df = split.split(dataset, self.schema.time_field)
        if train_df.empty or test_df.empty:
            raise SchemaMismatch(
                f"Split leaves an empty partition (train={len(train_df)}, "
                f"test={len(test_df)})",
                train_rows=len(train_df),
                test_rows=len(test_df),
            )

        X_train = self.fit_transform(train_df)
        X_test = self.transform(test_df)
        if list(X_train.columns) != list(X_test.columns):
            raise SchemaMismatch(
                "Train and test design matrices have different columns",
                train=list(X_train.columns),
                test=list(X_test.columns),
            )

        entities = None
        if self.schema.entity_field is not None:
            entities = test_df[self.schema.entity_field]

        return DesignMatrix(
            X_train=X_train,
            y_train=train_df[response_field].astype(float),
            X_test=X_test,
            y_test=test_df[response_field].astype(float),
            columns=list(self.columns),
            encodings=dict(self.encodings),
            entities_test=entities,
        )


def build(
    dataset: pd.DataFrame,
    response_field: str,
    reference_levels: Mapping[str, str],
    split: TemporalSplit,
    schema: Optional[DatasetSchema] = None,
) -> DesignMatrix:
    """Encode ``dataset`` and split it by time. See ``FeatureMatrixBuilder``."""
    if schema is None:
        schema = DatasetSchema(response_fields=(response_field,))
    builder = FeatureMatrixBuilder(schema, reference_levels)
    return builder.build(dataset, response_field, split)


def to_array(X) -> np.ndarray:
    if isinstance(X, pd.DataFrame):
        return X.to_numpy(dtype=float)
    return np.asarray(X, dtype=float)


def align_columns(X, columns: Sequence[str]) -> np.ndarray:
    """Reorder a DataFrame to the fitted column order; arrays are checked by width."""
    if isinstance(X, pd.DataFrame):
        missing = [c for c in columns if c not in X.columns]
        extra = [c for c in X.columns if c not in columns]
        if missing or extra:
            raise SchemaMismatch(
                "Prediction matrix does not match the fitted columns",
                missing=missing,
                extra=extra,
            )
        return X[list(columns)].to_numpy(dtype=float)
    arr = np.asarray(X, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != len(columns):
        raise SchemaMismatch(
            f"Expected {len(columns)} columns, got shape {arr.shape}",
            expected=len(columns),
            shape=arr.shape,
        )
    return arr
