"""
Compute Stepper: advance the Particle Store by whole kernel steps.

Launches are queued without any host synchronization between them; the
readback's ti.sync() is the only barrier per frame.
"""

import taichi as ti


@ti.kernel
def advance_clock(params: ti.template()):
    params[None].time_seed += 1.0


def step(ctx, particles, params):
    """One dynamics step: kernel over all particles, then tick the clock."""
    ctx.kernel(particles, params)
    advance_clock(params)


def run_steps(ctx, particles, params, count):
    """
    Queue `count` steps back to back.

    Args:
        count: Number of steps (0 launches nothing)
    """
    if count < 0:
        raise ValueError(f"Step count must be >= 0, got {count}")
    for _ in range(count):
        step(ctx, particles, params)
