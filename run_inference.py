#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Runner for bootstrap inference on a binary response.

- Run from project root.
- Fits an unpenalized logistic regression on the whole dataset and reports it
  against the majority-class baseline.
- Bootstrap standard errors / p-values, optimism-corrected AUC and VIFs are
  written to --results-dir.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).parent.resolve()
SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from forecast_lab.config import EXPERIMENT_CONFIG, PATH_CONFIG  # noqa: E402
from forecast_lab.core.dataset import DatasetSchema, parse_reference_levels  # noqa: E402
from forecast_lab.experiments.experimental_pipeline import InferencePipeline  # noqa: E402


def _csv_list(value):
    if not value:
        return None
    return tuple(v.strip() for v in value.split(",") if v.strip())


def main() -> None:
    cfg = EXPERIMENT_CONFIG
    ap = argparse.ArgumentParser(description="Bootstrap inference for a binary response")
    ap.add_argument("--csv", type=Path, required=True, help="Dataset CSV")
    ap.add_argument("--response", required=True, help="Binary (0/1) response column")
    ap.add_argument("--time-field", default="t", help="Temporal ordinal column (optional here)")
    ap.add_argument("--categorical", default=None, help="Comma-separated categorical columns (default: by dtype)")
    ap.add_argument("--numeric", default=None, help="Comma-separated numeric columns (default: by dtype)")
    ap.add_argument("--identifiers", default=None, help="Comma-separated columns that never enter the model")
    ap.add_argument("--reference", action="append", default=[], metavar="FIELD=LEVEL",
                    help="Reference level of a categorical field (repeatable)")

    ap.add_argument("--resamples", type=int, default=cfg.n_resamples, help="Bootstrap resamples (R)")
    ap.add_argument("--max-retries", type=int, default=cfg.max_retries,
                    help="Redraws allowed for a single-class resample")
    ap.add_argument("--n-jobs", type=int, default=1, help="joblib workers for the refits")
    ap.add_argument("--seed", type=int, default=cfg.seed)
    ap.add_argument("--results-dir", type=Path, default=PATH_CONFIG.results_dir)

    args = ap.parse_args()

    schema = DatasetSchema(
        response_fields=(args.response,),
        time_field=args.time_field,
        categorical_fields=_csv_list(args.categorical),
        numeric_fields=_csv_list(args.numeric),
        identifier_fields=_csv_list(args.identifiers) or (),
    )
    pipeline = InferencePipeline(
        data=args.csv,
        schema=schema,
        response_field=args.response,
        reference_levels=parse_reference_levels(args.reference),
        n_resamples=args.resamples,
        max_retries=args.max_retries,
        n_jobs=args.n_jobs,
        seed=args.seed,
        results_dir=args.results_dir,
    )
    pipeline.run_complete_pipeline()


if __name__ == "__main__":
    main()
