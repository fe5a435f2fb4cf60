"""
Per-particle dynamics kernels.

Every kernel here follows the same contract so the stepper can launch any of
them interchangeably:
    kernel(particles: ti.template(), params: ti.template())
- One invocation per particle index in [0, N), blocks of WORKGROUP_SIZE
- Invocation i reads/writes only particles[i].pos, .vel, .time_debt, .active
- .category and .mass are never written
- params[None].mode selects Baseline (0) or Dilated (1); params is read-only

Kernels:
1. central_field: uniform-sphere gravity with optional clock dilation
2. frozen: no motion, every particle marked active
"""

import taichi as ti

from config import (
    WORKGROUP_SIZE, SPHERE_RADIUS, FIELD_STRENGTH, DT, SOFTENING,
    CORE_RADIUS, MIN_CLOCK_RATE,
)


@ti.func
def sphere_acceleration(p: ti.math.vec3) -> ti.math.vec3:
    """
    Acceleration inside/outside a uniform-density sphere centered on the origin.

    Harmonic (linear in p) inside SPHERE_RADIUS, inverse-square outside,
    continuous at the surface.
    """
    r = p.norm()
    a = -FIELD_STRENGTH * p
    if r > SPHERE_RADIUS:
        a = -FIELD_STRENGTH * (SPHERE_RADIUS ** 3) * p / (r * r * r)
    return a


@ti.func
def clock_rate(p: ti.math.vec3) -> ti.f32:
    """Fraction of a step a particle's clock advances (1 in the core, → MIN_CLOCK_RATE outside)."""
    r = p.norm() + SOFTENING
    return ti.min(1.0, ti.max(MIN_CLOCK_RATE, CORE_RADIUS / r))


@ti.kernel
def central_field(particles: ti.template(), params: ti.template()):
    """
    Semi-implicit Euler step in the central field.

    Baseline: every particle integrates and is marked active.
    Dilated: time_debt accumulates (1 - clock_rate) each step; once it
    reaches one whole step the particle pays it back by skipping this step
    (active = 0), otherwise it integrates (active = 1). The core keeps
    working while the slow outer shell goes dark.
    """
    dilated = params[None].mode > 0.5
    ti.loop_config(block_dim=WORKGROUP_SIZE)
    for i in range(particles.shape[0]):
        p = particles[i].pos
        v = particles[i].vel
        debt = particles[i].time_debt
        do_step = True

        if dilated:
            debt += 1.0 - clock_rate(p)
            if debt >= 1.0:
                debt -= 1.0
                do_step = False

        if do_step:
            v += sphere_acceleration(p) * DT
            p += v * DT
            particles[i].pos = p
            particles[i].vel = v
            particles[i].active = 1.0
        else:
            particles[i].active = 0.0
        particles[i].time_debt = debt


@ti.kernel
def frozen(particles: ti.template(), params: ti.template()):
    """Hold every particle in place and mark it active."""
    ti.loop_config(block_dim=WORKGROUP_SIZE)
    for i in range(particles.shape[0]):
        particles[i].active = 1.0


KERNELS = {
    "central": central_field,
    "frozen": frozen,
}


def get_kernel(name):
    """Look up a dynamics kernel by name."""
    if name not in KERNELS:
        raise KeyError(f"Unknown kernel '{name}' (choose from {', '.join(KERNELS)})")
    return KERNELS[name]
