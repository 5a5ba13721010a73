# neural_regressor.py
"""
Two-hidden-layer feed-forward regressor with early stopping.

Topology is fixed: Linear -> ReLU -> Dropout -> Linear -> ReLU -> Dropout -> Linear(1).
Tunable: hidden_1, hidden_2, dropout_1, dropout_2, lr.

Training is stochastic (weight init, dropout masks, batch order, validation
split). Passing ``seed`` makes a run reproducible on the same device; with
``seed=None`` repeated fits give different networks.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

import numpy as np
import torch
import torch.nn as nn
from sklearn.preprocessing import StandardScaler
from torch.utils.data import DataLoader, TensorDataset

from ..core.cross_validation import holdout_indices
from ..core.design_matrix import align_columns, to_array
from ..core.errors import DegenerateResponse


class _TwoLayerNet(nn.Module):
    def __init__(self, n_features, hidden_1, hidden_2, dropout_1, dropout_2):
        super().__init__()
        self.net = nn.Sequential(
            nn.Linear(n_features, hidden_1),
            nn.ReLU(),
            nn.Dropout(dropout_1),
            nn.Linear(hidden_1, hidden_2),
            nn.ReLU(),
            nn.Dropout(dropout_2),
            nn.Linear(hidden_2, 1),
        )

    def forward(self, x):
        return self.net(x).squeeze(-1)


@dataclass
class _Params:
    hidden_1: int = 64
    hidden_2: int = 32
    dropout_1: float = 0.2
    dropout_2: float = 0.2
    lr: float = 1e-3
    batch_size: int = 32
    max_epochs: int = 300
    patience: int = 10
    validation_split: float = 0.2
    seed: Optional[int] = None
    device: str = "cuda" if torch.cuda.is_available() else "cpu"
    verbose: bool = False


class NeuralRegressor:
    """
    After ``fit``: ``best_val_mse_`` (original response units), ``epochs_``,
    ``diverged_`` and ``history_`` (one dict per epoch).
    """

    def __init__(self, **kwargs: Any):
        known = {f.name for f in fields(_Params)}
        unknown = set(kwargs) - known
        if unknown:
            raise ValueError(f"Unknown parameters for NeuralRegressor: {sorted(unknown)}")
        self.p = _Params(**kwargs)
        self.model: Optional[_TwoLayerNet] = None
        self.columns: List[str] = []
        self.x_scaler: Optional[StandardScaler] = None
        self.y_mean = 0.0
        self.y_std = 1.0
        self.best_val_mse_ = float("inf")
        self.epochs_ = 0
        self.diverged_ = False
        self.history_: List[Dict[str, float]] = []

    def get_params(self) -> Dict[str, Any]:
        return dict(self.p.__dict__)

    def _loader(self, X: np.ndarray, y: np.ndarray, shuffle: bool, generator=None) -> DataLoader:
        ds = TensorDataset(
            torch.as_tensor(X, dtype=torch.float32),
            torch.as_tensor(y, dtype=torch.float32),
        )
        return DataLoader(ds, batch_size=self.p.batch_size, shuffle=shuffle, generator=generator)

    @torch.no_grad()
    def _mean_loss(self, dl: DataLoader, lossf) -> float:
        self.model.eval()
        total, count = 0.0, 0
        for xb, yb in dl:
            xb, yb = xb.to(self.p.device), yb.to(self.p.device)
            total += lossf(self.model(xb), yb).item() * len(yb)
            count += len(yb)
        return total / max(1, count)

    def fit(self, X, y):
        p = self.p
        self.columns = (
            [str(c) for c in X.columns] if hasattr(X, "columns") else
            [f"x{i}" for i in range(np.asarray(X).shape[1])]
        )
        X = to_array(X)
        y = np.asarray(y, dtype=float).ravel()
        if np.all(y == y[0]):
            raise DegenerateResponse("Response is constant; nothing to fit", n_rows=len(y))

        generator = None
        if p.seed is not None:
            torch.manual_seed(p.seed)
            generator = torch.Generator().manual_seed(p.seed)

        tr, va = holdout_indices(len(y), p.validation_split, p.seed)
        self.x_scaler = StandardScaler().fit(X[tr])
        self.y_mean = float(y[tr].mean())
        self.y_std = float(y[tr].std()) or 1.0

        Xs = self.x_scaler.transform(X)
        ys = (y - self.y_mean) / self.y_std
        dl_tr = self._loader(Xs[tr], ys[tr], shuffle=True, generator=generator)
        dl_va = self._loader(Xs[va], ys[va], shuffle=False)

        self.model = _TwoLayerNet(
            X.shape[1], p.hidden_1, p.hidden_2, p.dropout_1, p.dropout_2
        ).to(p.device)
        optim = torch.optim.Adam(self.model.parameters(), lr=p.lr)
        lossf = nn.MSELoss()

        best_val, best_state, wait = float("inf"), None, 0
        self.history_ = []
        self.diverged_ = False
        for ep in range(1, p.max_epochs + 1):
            self.model.train()
            total, count = 0.0, 0
            for xb, yb in dl_tr:
                xb, yb = xb.to(p.device), yb.to(p.device)
                optim.zero_grad()
                loss = lossf(self.model(xb), yb)
                loss.backward()
                optim.step()
                total += loss.item() * len(yb)
                count += len(yb)
            train_loss = total / max(1, count)
            val_loss = self._mean_loss(dl_va, lossf)
            self.history_.append({"epoch": ep, "train_loss": train_loss, "val_loss": val_loss})

            if not (np.isfinite(train_loss) and np.isfinite(val_loss)):
                self.diverged_ = True
                if p.verbose:
                    print(f"[mlp] epoch {ep}: non-finite loss, stopping")
                break

            if val_loss < best_val:
                best_val, wait = val_loss, 0
                best_state = copy.deepcopy(self.model.state_dict())
            else:
                wait += 1
                if wait >= p.patience:
                    break
        self.epochs_ = len(self.history_)

        if best_state is not None:
            self.model.load_state_dict(best_state)
        else:
            self.diverged_ = True
        self.best_val_mse_ = best_val * self.y_std ** 2 if best_state is not None else float("inf")

        if p.verbose:
            print(
                f"[mlp] epochs={self.epochs_} best_val_mse={self.best_val_mse_:.4f} "
                f"diverged={self.diverged_}"
            )
        return self

    @torch.no_grad()
    def predict(self, X) -> np.ndarray:
        if self.model is None:
            raise RuntimeError("Model is not fitted; call fit() first")
        self.model.eval()
        Xs = self.x_scaler.transform(align_columns(X, self.columns))
        out = self.model(torch.as_tensor(Xs, dtype=torch.float32).to(self.p.device))
        return out.cpu().numpy().astype(float) * self.y_std + self.y_mean


def create_mlp_factory(defaults: Optional[Dict[str, Any]] = None):
    defaults = defaults or {}

    def factory(params: Dict[str, Any]):
        return NeuralRegressor(**{**defaults, **params})

    return factory
