"""
Particle Store: canonical simulation state for one pass.

Device side the store is a Taichi StructField of Particle records plus a 0-D
SimParams field. Host side a record is config.PARTICLE_DTYPE; the flat
float32 (N, RECORD_WIDTH) view of a host array is what upload/download copy.

Lifecycle (per pass):
1. seed_records: sample initial conditions on the host
2. load: allocate fields in a per-pass SNode tree, upload records, write params
3. stepper mutates the particle field; readback reads it
4. ctx.release_trees() frees the tree when the pass ends
"""

import numpy as np
import taichi as ti

from config import (
    SPHERE_RADIUS, TYPE_A, TYPE_B, MODES,
    PARTICLE_DTYPE, RECORD_WIDTH,
    COL_POS, COL_VEL, COL_MASS, COL_CATEGORY, COL_TIME_DEBT, COL_ACTIVE,
)

Particle = ti.types.struct(
    pos=ti.math.vec3,
    vel=ti.math.vec3,
    mass=ti.f32,
    category=ti.f32,
    time_debt=ti.f32,
    active=ti.f32,
)

SimParams = ti.types.struct(
    time_seed=ti.f32,
    mode=ti.f32,
)


def flat_view(records):
    """(N, RECORD_WIDTH) float32 view sharing memory with a PARTICLE_DTYPE array."""
    return records.view(np.float32).reshape(len(records), RECORD_WIDTH)


def seed_records(n, rng):
    """
    Sample n particles uniformly in angle inside the seeding sphere.

    Args:
        n: Number of particles
        rng: numpy.random.Generator

    Returns:
        PARTICLE_DTYPE array of length n

    Radius r = R·sqrt(u); θ ∈ [0, 2π), φ ∈ [0, π); zero velocity, unit mass,
    category A/B with probability 0.5, no time debt, inactive.
    """
    if n < 1:
        raise ValueError(f"Particle count must be positive, got {n}")

    r = SPHERE_RADIUS * np.sqrt(rng.random(n, dtype=np.float32))
    theta = rng.uniform(0.0, 2.0 * np.pi, n).astype(np.float32)
    phi = rng.uniform(0.0, np.pi, n).astype(np.float32)

    records = np.zeros(n, dtype=PARTICLE_DTYPE)
    records["pos"][:, 0] = r * np.sin(phi) * np.cos(theta)
    records["pos"][:, 1] = r * np.sin(phi) * np.sin(theta)
    records["pos"][:, 2] = r * np.cos(phi)
    records["mass"] = 1.0
    records["category"] = np.where(rng.random(n) < 0.5, TYPE_A, TYPE_B)
    return records


# ==============================================================================
# Host <-> device copies
# ==============================================================================

@ti.kernel
def upload(particles: ti.template(), src: ti.types.ndarray(dtype=ti.f32, ndim=2)):
    """Copy flat host records into the particle field (same index order)."""
    for i in range(particles.shape[0]):
        particles[i].pos = ti.Vector([src[i, COL_POS + d] for d in ti.static(range(3))])
        particles[i].vel = ti.Vector([src[i, COL_VEL + d] for d in ti.static(range(3))])
        particles[i].mass = src[i, COL_MASS]
        particles[i].category = src[i, COL_CATEGORY]
        particles[i].time_debt = src[i, COL_TIME_DEBT]
        particles[i].active = src[i, COL_ACTIVE]


@ti.kernel
def download(particles: ti.template(), dst: ti.types.ndarray(dtype=ti.f32, ndim=2)):
    """Copy the particle field into flat host records (same index order)."""
    for i in range(particles.shape[0]):
        p = particles[i]
        for d in ti.static(range(3)):
            dst[i, COL_POS + d] = p.pos[d]
            dst[i, COL_VEL + d] = p.vel[d]
        dst[i, COL_MASS] = p.mass
        dst[i, COL_CATEGORY] = p.category
        dst[i, COL_TIME_DEBT] = p.time_debt
        dst[i, COL_ACTIVE] = p.active


@ti.kernel
def reset_params(params: ti.template(), mode: ti.f32):
    params[None].time_seed = 0.0
    params[None].mode = mode


# ==============================================================================
# Store construction
# ==============================================================================

def load(ctx, records, mode):
    """
    Allocate device buffers for one pass and fill them from host records.

    The fields live in their own SNode tree, tracked by ctx; the pass owner
    frees it with ctx.release_trees() once the pass ends.

    Args:
        ctx: GPUContext (must already be initialized)
        records: PARTICLE_DTYPE array
        mode: MODE_BASELINE or MODE_DILATED

    Returns:
        (particles, params) Taichi fields
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode {mode!r}")
    if len(records) < 1:
        raise ValueError("Cannot load an empty particle set")
    records = np.ascontiguousarray(records, dtype=PARTICLE_DTYPE)

    fb = ti.FieldsBuilder()
    particles = Particle.field()
    params = SimParams.field()
    fb.dense(ti.i, len(records)).place(particles)
    fb.place(params)
    ctx.track(fb.finalize())

    upload(particles, flat_view(records))
    reset_params(params, float(mode))
    return particles, params


def initialize(ctx, n, mode, rng):
    """Seed n fresh particles and load them; see seed_records and load."""
    records = seed_records(n, rng)
    print(f"[Init] Seeded {n} particles (A={int(np.sum(records['category'] < 0.5))}, "
          f"B={int(np.sum(records['category'] >= 0.5))}) on {ctx.arch}")
    return load(ctx, records, mode)
