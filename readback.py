"""
Readback Synchronizer: host-visible, point-in-time copies of the store.

One host buffer is allocated per pass and reused every frame. A snapshot
"maps" it until release(); the next snapshot is refused while mapped, so the
projector can never observe a half-overwritten buffer.
"""

from contextlib import contextmanager

import numpy as np
import taichi as ti

from config import PARTICLE_DTYPE
from store import download, flat_view


class ReadbackBuffer:
    """
    Reusable host copy of a particle field.

    Attributes:
        n: Records per snapshot
        failures: Number of snapshots that failed and were skipped
        is_mapped: True while a snapshot view is handed out
    """

    def __init__(self, ctx, n):
        self.ctx = ctx
        self.n = n
        self.failures = 0
        self.is_mapped = False
        self._host = np.zeros(n, dtype=PARTICLE_DTYPE)
        self._flat = flat_view(self._host)

    def snapshot(self, particles):
        """
        Copy device state to the host buffer and block until it is readable.

        Returns:
            Read-only PARTICLE_DTYPE view in stored (initialization) order,
            or None if the copy failed.

        Raises:
            RuntimeError: buffer still mapped from the previous snapshot
        """
        if self.is_mapped:
            raise RuntimeError("Readback buffer is still mapped; call release() first")
        if particles.shape[0] != self.n:
            raise ValueError(f"Field holds {particles.shape[0]} particles, buffer expects {self.n}")

        try:
            download(particles, self._flat)
            ti.sync()
        except RuntimeError as e:
            self.failures += 1
            print(f"\n[Readback] Copy failed, skipping frame: {e}")
            return None

        self.is_mapped = True
        view = self._host.view()
        view.flags.writeable = False
        return view

    def release(self):
        """Unmap the buffer so the next frame may reuse it."""
        self.is_mapped = False

    @contextmanager
    def mapped(self, particles):
        """Snapshot for the duration of a with-block (yields None on failure)."""
        snap = self.snapshot(particles)
        try:
            yield snap
        finally:
            self.release()
