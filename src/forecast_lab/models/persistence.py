# persistence.py
from pathlib import Path
from typing import Any, Dict, Optional

import joblib


def save_model(model: Any, path, builder: Optional[Any] = None, meta: Optional[Dict] = None) -> Path:
    """Write a fitted model, the encoder it was fitted with, and metadata to one file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump({"model": model, "builder": builder, "meta": meta or {}}, path)
    return path


def load_model(path) -> Dict[str, Any]:
    """Inverse of ``save_model``; returns the dict with keys model / builder / meta."""
    bundle = joblib.load(Path(path))
    if not isinstance(bundle, dict) or "model" not in bundle:
        raise ValueError(f"{path} is not a saved model bundle")
    return bundle
