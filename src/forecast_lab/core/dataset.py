#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Dataset schema and loading.

One row is one (entity, time-period) observation:
- a temporal ordinal ``t`` that increases with recency
- numeric and categorical predictor fields
- one or more response fields
- identifier fields (names, free-text labels) that never enter a model

The schema is supplied by the caller; nothing about the columns is hard-coded.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from pandas.api.types import is_numeric_dtype

from .errors import SchemaMismatch


@dataclass(frozen=True)
class DatasetSchema:
    """Column roles of a dataset.

    ``categorical_fields`` / ``numeric_fields`` may be left as None, in which
    case they are inferred from dtypes over the columns that are not the time,
    entity, response, period or identifier fields.
    """

    response_fields: Tuple[str, ...]
    time_field: str = "t"
    entity_field: Optional[str] = None
    period_field: Optional[str] = None
    categorical_fields: Optional[Tuple[str, ...]] = None
    numeric_fields: Optional[Tuple[str, ...]] = None
    identifier_fields: Tuple[str, ...] = field(default_factory=tuple)

    def reserved_fields(self) -> List[str]:
        out = [self.time_field, *self.response_fields, *self.identifier_fields]
        for extra in (self.entity_field, self.period_field):
            if extra is not None:
                out.append(extra)
        return out

    def predictor_fields(self, df: pd.DataFrame) -> Tuple[List[str], List[str]]:
        """Return (numeric, categorical) predictor columns for ``df``."""
        reserved = set(self.reserved_fields())
        candidates = [c for c in df.columns if c not in reserved]

        if self.categorical_fields is not None:
            categorical = list(self.categorical_fields)
        else:
            categorical = [c for c in candidates if not is_numeric_dtype(df[c])]

        if self.numeric_fields is not None:
            numeric = list(self.numeric_fields)
        else:
            numeric = [
                c for c in candidates if c not in categorical and is_numeric_dtype(df[c])
            ]
        return numeric, categorical


def validate_dataset(
    df: pd.DataFrame,
    schema: DatasetSchema,
    response_field: Optional[str] = None,
    require_time: bool = True,
) -> None:
    """Check that every column the schema names is present and consistent.

    With ``require_time=False`` the time field may be absent (cross-sectional
    use); when present it is still checked.
    """
    numeric, categorical = schema.predictor_fields(df)
    has_time = require_time or schema.time_field in df.columns
    required = [*numeric, *categorical]
    if has_time:
        required.insert(0, schema.time_field)
    if response_field is not None:
        required.append(response_field)
    if schema.entity_field is not None:
        required.append(schema.entity_field)
    if schema.period_field is not None:
        required.append(schema.period_field)

    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaMismatch(
            f"Dataset is missing required columns: {missing}", missing=missing
        )

    if has_time and not is_numeric_dtype(df[schema.time_field]):
        raise SchemaMismatch(
            f"Time field '{schema.time_field}' must be numeric",
            field=schema.time_field,
        )

    non_numeric = [c for c in numeric if not is_numeric_dtype(df[c])]
    if non_numeric:
        raise SchemaMismatch(
            f"Numeric predictor columns hold non-numeric values: {non_numeric}",
            fields=non_numeric,
        )

    # each period label must map to one ordinal
    if has_time and schema.period_field is not None:
        per_period = df.groupby(schema.period_field)[schema.time_field].nunique()
        bad = per_period[per_period > 1]
        if len(bad):
            raise SchemaMismatch(
                f"Time ordinal is inconsistent within periods: {bad.index.tolist()}",
                field=schema.time_field,
                periods=bad.index.tolist(),
            )


def prepare_dataset(
    src: str | Path | pd.DataFrame,
    schema: DatasetSchema,
    response_field: Optional[str] = None,
    dropna: bool = True,
    require_time: bool = True,
) -> Tuple[pd.DataFrame, Dict]:
    """
    Load a dataset and put it in temporal order.

    Args:
        src: Path to a CSV file, or an already loaded DataFrame
        schema: Column roles
        response_field: Response column that must be present (optional)
        dropna: Drop rows with missing values in model columns
        require_time: When False, a dataset without the time field is accepted
            and keeps its row order

    Returns:
        (dataset, meta) where meta describes what was dropped and the periods seen
    """
    if isinstance(src, pd.DataFrame):
        df = src.copy()
        source = "<dataframe>"
    else:
        df = pd.read_csv(src)
        source = str(src)

    validate_dataset(df, schema, response_field, require_time)

    has_time = schema.time_field in df.columns
    numeric, categorical = schema.predictor_fields(df)
    model_cols = [*numeric, *categorical]
    if has_time:
        model_cols.insert(0, schema.time_field)
    if response_field is not None:
        model_cols.append(response_field)

    before = len(df)
    if dropna:
        df = df.dropna(subset=model_cols)
    after = len(df)

    if has_time:
        df = df.sort_values(schema.time_field, kind="mergesort")
    df = df.reset_index(drop=True)

    meta = {
        "src": source,
        "dropped_rows": before - after,
        "final_rows": int(after),
        "periods": sorted(df[schema.time_field].unique().tolist()) if has_time else [],
        "numeric_fields": numeric,
        "categorical_fields": categorical,
    }
    return df, meta


def parse_reference_levels(pairs: Sequence[str]) -> Dict[str, str]:
    """Parse ``field=level`` strings (command-line form) into a mapping."""
    out: Dict[str, str] = {}
    for p in pairs:
        if "=" not in p:
            raise ValueError(f"Reference level must look like field=level, got: {p!r}")
        key, value = p.split("=", 1)
        out[key.strip()] = value.strip()
    return out
