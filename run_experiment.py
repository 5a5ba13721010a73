#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Runner for the temporal forecasting pipeline.

- Run from project root.
- Reads one CSV with one row per (entity, period).
- Splits by the time ordinal (explicit --train-until/--test-period, or the most
  recent periods covering --test-fraction of rows).
- Fits the penalized regression, the tuned network, or both, and writes results,
  ranked predictions and fitted models to --results-dir.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).parent.resolve()
SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from forecast_lab.config import EXPERIMENT_CONFIG, PATH_CONFIG  # noqa: E402
from forecast_lab.core.dataset import DatasetSchema, parse_reference_levels  # noqa: E402
from forecast_lab.core.design_matrix import TemporalSplit  # noqa: E402
from forecast_lab.experiments.experimental_pipeline import ForecastPipeline  # noqa: E402


def _csv_list(value: str | None):
    if not value:
        return None
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _schema_from_args(args: argparse.Namespace) -> DatasetSchema:
    responses = _csv_list(args.other_responses) or ()
    return DatasetSchema(
        response_fields=(args.response, *responses),
        time_field=args.time_field,
        entity_field=args.entity_field,
        period_field=args.period_field,
        categorical_fields=_csv_list(args.categorical),
        numeric_fields=_csv_list(args.numeric),
        identifier_fields=_csv_list(args.identifiers) or (),
    )


def _split_from_args(args: argparse.Namespace) -> TemporalSplit | None:
    if args.train_until is None and not args.test_period:
        return None
    if args.train_until is None or not args.test_period:
        raise SystemExit("--train-until and --test-period must be given together")
    return TemporalSplit(
        train_until=args.train_until,
        test_periods=tuple(args.test_period),
        train_from=args.train_from,
    )


def main() -> None:
    cfg = EXPERIMENT_CONFIG
    ap = argparse.ArgumentParser(description="Temporal forecasting experiment")
    ap.add_argument("--csv", type=Path, required=True, help="Dataset CSV")
    ap.add_argument("--response", required=True, help="Response column to forecast")
    ap.add_argument("--time-field", default="t", help="Temporal ordinal column")
    ap.add_argument("--entity-field", default=None, help="Entity column used to rank predictions")
    ap.add_argument("--period-field", default=None, help="Period label column (checked against --time-field)")
    ap.add_argument("--other-responses", default=None, help="Comma-separated response columns to exclude")
    ap.add_argument("--categorical", default=None, help="Comma-separated categorical columns (default: by dtype)")
    ap.add_argument("--numeric", default=None, help="Comma-separated numeric columns (default: by dtype)")
    ap.add_argument("--identifiers", default=None, help="Comma-separated columns that never enter the model")
    ap.add_argument("--reference", action="append", default=[], metavar="FIELD=LEVEL",
                    help="Reference level of a categorical field (repeatable)")

    ap.add_argument("--train-until", type=float, default=None, help="Last time ordinal used for training")
    ap.add_argument("--train-from", type=float, default=None, help="First time ordinal used for training")
    ap.add_argument("--test-period", type=float, action="append", default=[],
                    help="Held-out time ordinal (repeatable)")
    ap.add_argument("--test-fraction", type=float, default=cfg.test_fraction,
                    help="Share of rows held out when no explicit split is given")

    ap.add_argument("--model", choices=["lasso", "mlp", "all"], default="all",
                    help="lasso = the penalized regression (see --penalty), mlp = the tuned network")
    ap.add_argument("--penalty", choices=["l1", "l2", "elasticnet"], default=cfg.penalty)
    ap.add_argument("--l1-ratio", type=float, default=None, help="L1 share of the elasticnet penalty")
    ap.add_argument("--folds", type=int, default=cfg.cv_folds)
    ap.add_argument("--sample-fraction", type=float, default=cfg.sample_fraction)
    ap.add_argument("--fast", action="store_true", help="Use the small network grid")
    ap.add_argument("--seed", type=int, default=cfg.seed)
    ap.add_argument("--results-dir", type=Path, default=PATH_CONFIG.results_dir)
    ap.add_argument("--predict-csv", type=Path, default=None,
                    help="Rows of a future period to rank with the fitted models")

    args = ap.parse_args()

    models = ["lasso", "mlp"] if args.model == "all" else [args.model]
    pipeline = ForecastPipeline(
        data=args.csv,
        schema=_schema_from_args(args),
        response_field=args.response,
        reference_levels=parse_reference_levels(args.reference),
        split=_split_from_args(args),
        test_fraction=args.test_fraction,
        models=models,
        penalty=args.penalty,
        l1_ratio=args.l1_ratio,
        n_folds=args.folds,
        sample_fraction=args.sample_fraction,
        fast=args.fast,
        seed=args.seed,
        results_dir=args.results_dir,
    )
    pipeline.run_complete_pipeline()

    if args.predict_csv is not None:
        future = pd.read_csv(args.predict_csv)
        for name in pipeline.models:
            ranked = pipeline.predict_future(future, model_name=name)
            out = args.results_dir / f"future_predictions_{name}.csv"
            ranked.to_csv(out, index=False)
            print(f"[predict] {name}: {len(ranked)} rows ranked -> {out}")
            print(ranked.head(10))


if __name__ == "__main__":
    main()
