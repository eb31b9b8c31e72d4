"""Torch utilities shared across the codebase."""

from __future__ import annotations

import importlib
from typing import Any

# Offset between per-node generator seeds so neighbouring node ids do not share
# correlated streams when the base seed is small.
_SEED_STRIDE = 1_000_003


def require_torch() -> Any:
    try:
        return importlib.import_module("torch")
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("Torch is required to use snnkernel components.") from exc


def node_generator(seed: int, node_id: int) -> Any:
    """Return a CPU generator owned by a single node.

    The stream depends only on ``seed`` and ``node_id``, never on which thread
    or rank updates the node, so results do not change with the worker layout.
    """

    t = require_torch()
    gen = t.Generator(device="cpu")
    gen.manual_seed((int(seed) * _SEED_STRIDE + int(node_id)) % (2**63 - 1))
    return gen


def draw_uniform(gen: Any) -> float:
    t = require_torch()
    return float(t.rand((1,), generator=gen, dtype=t.float64).item())


def draw_exponential(gen: Any) -> float:
    """Draw one sample from Exp(1)."""

    t = require_torch()
    sample = t.empty((1,), dtype=t.float64).exponential_(1.0, generator=gen)
    return float(sample.item())


__all__ = [
    "draw_exponential",
    "draw_uniform",
    "node_generator",
    "require_torch",
]
