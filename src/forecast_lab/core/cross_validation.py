# cross_validation.py
from __future__ import annotations

import itertools
import math
import random
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .errors import EmptyGrid, SingularFeatureSet


def kfold_indices(n: int, k: int, seed: int = 42) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Shuffled K-fold split of ``range(n)`` into (train_idx, val_idx) pairs.

    Fold sizes differ by at most one row; the first ``n % k`` folds take the extra rows.
    """
    if k < 2:
        raise ValueError(f"Need at least 2 folds, got {k}")
    if n < k:
        raise SingularFeatureSet(
            f"Cannot make {k} folds from {n} rows", n_rows=n, n_folds=k
        )

    rng = random.Random(seed)
    order = list(range(n))
    rng.shuffle(order)

    size, r = divmod(n, k)
    folds = []
    start = 0
    for j in range(k):
        take = size + (1 if j < r else 0)
        val_idx = np.array(sorted(order[start : start + take]), dtype=int)
        start += take
        mask = np.ones(n, dtype=bool)
        mask[val_idx] = False
        folds.append((np.flatnonzero(mask), val_idx))
    return folds


def validate_grid(grid: Dict[str, List[Any]]) -> None:
    if not grid:
        raise EmptyGrid("Hyperparameter grid has no parameters")
    empty = [name for name, values in grid.items() if len(values) == 0]
    if empty:
        raise EmptyGrid(
            f"Hyperparameters with zero candidates: {empty}", parameters=empty
        )


def grid_size(grid: Dict[str, List[Any]]) -> int:
    validate_grid(grid)
    return math.prod(len(v) for v in grid.values())


def grid_dict_product(grid: Dict[str, List[Any]]) -> Iterator[Dict[str, Any]]:
    keys = list(grid.keys())
    for values in itertools.product(*[grid[k] for k in keys]):
        yield dict(zip(keys, values))


def sample_grid(
    grid: Dict[str, List[Any]], sample_fraction: float, seed: Optional[int] = 42
) -> List[Dict[str, Any]]:
    """
    Draw ``ceil(sample_fraction * |grid|)`` distinct combinations, without replacement.

    e.g. 10% of a 432-combination grid gives 44 runs.
    """
    if not 0.0 < sample_fraction <= 1.0:
        raise ValueError(f"sample_fraction must be in (0, 1], got {sample_fraction}")
    total = grid_size(grid)
    n = min(total, max(1, math.ceil(sample_fraction * total - 1e-9)))
    combos = list(grid_dict_product(grid))
    rng = random.Random(seed)
    picked = sorted(rng.sample(range(total), n))
    return [combos[i] for i in picked]


def holdout_indices(
    n: int, validation_split: float, seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """Random (train_idx, val_idx) split; at least one row on each side."""
    if not 0.0 < validation_split < 1.0:
        raise ValueError(f"validation_split must be in (0, 1), got {validation_split}")
    if n < 2:
        raise SingularFeatureSet(
            f"Need at least 2 rows for a validation split, got {n}", n_rows=n
        )
    rng = np.random.default_rng(seed)
    order = rng.permutation(n)
    n_val = min(n - 1, max(1, int(round(n * validation_split))))
    return np.sort(order[n_val:]), np.sort(order[:n_val])
