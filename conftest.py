"""Shared fixtures: one CPU Taichi runtime for the whole session."""

import numpy as np
import pytest

from config import PARTICLE_DTYPE
from context import GPUContext, create_context
from dynamics import central_field, frozen


@pytest.fixture(scope="session")
def ctx():
    return create_context("cpu", require_gpu=False, kernel=central_field)


@pytest.fixture
def frozen_ctx(ctx):
    return GPUContext(ctx.arch, frozen)


@pytest.fixture
def make_records():
    """Build PARTICLE_DTYPE records from (pos, category, active) tuples."""
    def _make(rows):
        records = np.zeros(len(rows), dtype=PARTICLE_DTYPE)
        for i, (pos, category, active) in enumerate(rows):
            records["pos"][i] = pos
            records["mass"][i] = 1.0
            records["category"][i] = category
            records["active"][i] = active
        return records
    return _make
