"""
Device context for the visualizer.

Owns the Taichi runtime and the per-run choices that every component needs
(backend, dynamics kernel). One GPUContext is created by the orchestrator and
passed explicitly into the store, stepper and readback calls. It also tracks
the SNode trees a pass allocates so they can be freed when the pass ends.
"""

import taichi as ti

from config import WORKGROUP_SIZE, workgroups_for
from dynamics import central_field


class DeviceUnavailableError(RuntimeError):
    """No usable compute device; the run cannot continue."""


ARCHS = {
    "gpu": ti.gpu,
    "cpu": ti.cpu,
    "cuda": ti.cuda,
    "vulkan": ti.vulkan,
    "metal": ti.metal,
    "opengl": ti.opengl,
}

CPU_ARCHS = (ti.x64, ti.arm64)


class GPUContext:
    """
    Explicit handle for the initialized runtime.

    Attributes:
        arch: Backend Taichi actually resolved to
        kernel: Dynamics kernel launched by the stepper (see dynamics.KERNELS)
        workgroup_size: block_dim of the dynamics kernels (config.WORKGROUP_SIZE,
            fixed at compile time; used here for launch accounting only)
        live_trees: SNode trees allocated by store.load and not yet released
    """

    workgroup_size = WORKGROUP_SIZE

    def __init__(self, arch, kernel):
        self.arch = arch
        self.kernel = kernel
        self.live_trees = []

    @property
    def is_gpu(self):
        return self.arch not in CPU_ARCHS

    def workgroups(self, n):
        return workgroups_for(n, self.workgroup_size)

    def track(self, tree):
        self.live_trees.append(tree)
        return tree

    def release_trees(self):
        """Destroy every tracked tree; fields placed in them become unusable."""
        count = len(self.live_trees)
        while self.live_trees:
            self.live_trees.pop().destroy()
        return count

    def __repr__(self):
        return f"GPUContext(arch={self.arch}, kernel={getattr(self.kernel, '__name__', self.kernel)})"


def _active_arch():
    return ti.cfg.arch


def create_context(arch="gpu", require_gpu=True, kernel=None):
    """
    Initialize Taichi and return the context.

    Args:
        arch: Backend name, one of ARCHS
        require_gpu: Fail if Taichi fell back to a CPU backend. An explicit
            "cpu" request is never a fallback and always passes.
        kernel: Dynamics kernel; defaults to dynamics.central_field

    Raises:
        DeviceUnavailableError: ti.init failed, or no GPU while require_gpu
        KeyError: Unknown backend name
    """
    if arch not in ARCHS:
        raise KeyError(f"Unknown arch '{arch}' (choose from {', '.join(ARCHS)})")

    try:
        ti.init(arch=ARCHS[arch])
    except Exception as e:
        raise DeviceUnavailableError(f"Taichi initialization failed for arch={arch}: {e}") from e

    resolved = _active_arch()
    if require_gpu and arch != "cpu" and resolved in CPU_ARCHS:
        raise DeviceUnavailableError(
            f"No GPU found (requested arch={arch}, Taichi fell back to {resolved})")

    if kernel is None:
        kernel = central_field

    print(f"[Taichi] Initialized with backend: {resolved}")
    return GPUContext(resolved, kernel)
