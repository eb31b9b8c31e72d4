"""Pytest configuration."""

from __future__ import annotations

import os
import tempfile
import uuid
from collections.abc import Iterator
from pathlib import Path

import pytest

from snnkernel.contracts.simulation import SimulationConfig
from snnkernel.simulation.context import KernelContext


def _pytest_base_dir() -> Path:
    root = os.environ.get("PYTEST_BASEDIR")
    repo_root = Path(__file__).resolve().parents[1]
    base = Path(root) if root else repo_root / ".pytest_tmp"
    return _ensure_writable_base(base, fallback=Path(tempfile.gettempdir()) / "snnkernel_pytest")


def _ensure_writable_base(base: Path, *, fallback: Path) -> Path:
    try:
        base.mkdir(parents=True, exist_ok=True)
        probe = base / "__write_probe__"
        probe.mkdir(parents=True, exist_ok=True)
        probe.rmdir()
        return base
    except OSError:
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def pytest_configure(config) -> None:
    """Use a writable base temp directory even on read-only checkouts."""
    if config.option.basetemp is None:
        base = _pytest_base_dir() / "tmp" / uuid.uuid4().hex
        base.mkdir(parents=True, exist_ok=True)
        config.option.basetemp = str(base)


@pytest.fixture
def kernel() -> Iterator[KernelContext]:
    """Initialized single-worker kernel context, torn down after the test."""
    ctx = KernelContext(SimulationConfig(resolution=0.1, seed=12345)).initialize()
    try:
        yield ctx
    finally:
        ctx.teardown()
