#!/usr/bin/env python3
"""
Main entry point for the Chronoturin comparative visualizer.

This script:
1. Initializes Taichi (GPU required unless --allow-cpu or --arch cpu)
2. Runs the NEWTONIAN pass, then the CHRONOTURIN pass, each from a fresh store
3. Per frame: queue S kernel steps → blocking readback → project → save PNG

Output: newton_000.png ... and chrono_000.png ... in --out.

Usage:
    python run.py [--particles N] [--frames F] [--steps S] [--seed K] [--out DIR]
"""

import argparse
import os
import sys
import time

import numpy as np

from config import (
    N, FRAMES_PER_MODE, SIM_STEPS_PER_FRAME, DEFAULT_SEED,
    MODES, MODE_NAMES, MODE_PREFIXES,
)
from context import ARCHS, DeviceUnavailableError, create_context
from dynamics import KERNELS, get_kernel
from projector import Camera, render, save_frame
from readback import ReadbackBuffer
from stepper import run_steps
from store import initialize, load, seed_records


def frame_filename(mode, frame):
    """e.g. newton_007.png"""
    return f"{MODE_PREFIXES[mode]}_{frame:03d}.png"


class PassReport:
    """What one pass produced."""

    def __init__(self, mode):
        self.mode = mode
        self.written = []       # Paths of saved frames
        self.skipped = []       # Frame indices dropped by failed readbacks
        self.frame_ms = []      # Wall-clock ms per saved frame

    @property
    def mean_ms(self):
        return float(np.mean(self.frame_ms)) if self.frame_ms else 0.0


def run_pass(ctx, mode, n, frames, steps, out_dir, rng, seeder=None, camera=None):
    """
    Run one full pass under a single dynamics mode.

    Args:
        ctx: GPUContext
        mode: MODE_BASELINE or MODE_DILATED
        n: Particle count
        frames: Frames to render
        steps: Kernel steps per frame
        out_dir: Directory for PNG frames
        rng: numpy.random.Generator used for seeding
        seeder: Optional callable (n, rng) -> PARTICLE_DTYPE records
        camera: Optional Camera

    Returns:
        PassReport
    """
    if frames < 0:
        raise ValueError(f"Frame count must be >= 0, got {frames}")
    if camera is None:
        camera = Camera()

    if seeder is None:
        particles, params = initialize(ctx, n, mode, rng)
    else:
        particles, params = load(ctx, seeder(n, rng), mode)

    readback = ReadbackBuffer(ctx, particles.shape[0])
    report = PassReport(mode)
    name = MODE_NAMES[mode]

    try:
        for frame in range(frames):
            start_time = time.perf_counter()

            run_steps(ctx, particles, params, steps)

            with readback.mapped(particles) as snap:
                if snap is None:
                    report.skipped.append(frame)
                    continue
                image = render(snap, mode, camera)

            path = os.path.join(out_dir, frame_filename(mode, frame))
            save_frame(image, path)
            report.written.append(path)

            dur_ms = (time.perf_counter() - start_time) * 1000.0
            report.frame_ms.append(dur_ms)
            print(f"\r[{name}] Frame {frame:03d} | Render Time: {dur_ms:.0f} ms", end="", flush=True)
    finally:
        # The store is discarded with the pass
        ctx.release_trees()

    print(f"\n[{name}] Pass done: {len(report.written)} frames written, "
          f"{len(report.skipped)} skipped, mean {report.mean_ms:.1f} ms/frame")
    return report


def run_comparison(ctx, n=N, frames=FRAMES_PER_MODE, steps=SIM_STEPS_PER_FRAME,
                   out_dir=".", seed=DEFAULT_SEED, independent_seeds=False):
    """
    Run both passes in order (NEWTONIAN, then CHRONOTURIN).

    With a shared seed each pass builds its own Generator(seed), so both start
    from the identical initial state while still being re-initialized from
    scratch. With independent_seeds one Generator feeds both passes.

    Returns:
        List of PassReport, one per mode
    """
    print("--- CHRONOTURIN: COMPARATIVE VISUALIZER ---")
    print(f"[Config] N={n}, frames/mode={frames}, steps/frame={steps}, "
          f"workgroups={ctx.workgroups(n)}x{ctx.workgroup_size}")
    print(f"[Config] Seed={seed} ({'independent per pass' if independent_seeds else 'shared by both passes'})")

    shared_rng = np.random.default_rng(seed)
    reports = []
    for pass_idx, mode in enumerate(MODES):
        rng = shared_rng if independent_seeds else np.random.default_rng(seed)
        print(f"\n>> STARTING PASS {pass_idx + 1}: {MODE_NAMES[mode]} MODE")
        reports.append(run_pass(ctx, mode, n, frames, steps, out_dir, rng))

    print("\nSimulation Complete.")
    return reports


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Render NEWTONIAN vs CHRONOTURIN particle passes')
    parser.add_argument('--particles', type=int, default=N,
                        help=f'Number of particles (default: {N})')
    parser.add_argument('--frames', type=int, default=FRAMES_PER_MODE,
                        help=f'Frames per mode (default: {FRAMES_PER_MODE})')
    parser.add_argument('--steps', type=int, default=SIM_STEPS_PER_FRAME,
                        help=f'Simulation steps per frame (default: {SIM_STEPS_PER_FRAME})')
    parser.add_argument('--seed', type=int, default=DEFAULT_SEED,
                        help=f'Random seed (default: {DEFAULT_SEED})')
    parser.add_argument('--independent-seeds', action='store_true',
                        help='Sample each pass independently instead of sharing the seed')
    parser.add_argument('--arch', choices=sorted(ARCHS), default='gpu',
                        help='Taichi backend (default: gpu)')
    parser.add_argument('--allow-cpu', action='store_true',
                        help='Do not abort when no GPU is available')
    parser.add_argument('--kernel', choices=sorted(KERNELS), default='central',
                        help='Dynamics kernel (default: central)')
    parser.add_argument('--out', default='.',
                        help='Output directory for PNG frames (default: .)')
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        ctx = create_context(args.arch, require_gpu=not (args.allow_cpu or args.arch == 'cpu'),
                             kernel=get_kernel(args.kernel))
    except DeviceUnavailableError as e:
        print(f"[Fatal] {e}")
        return 1

    run_comparison(ctx, n=args.particles, frames=args.frames, steps=args.steps,
                   out_dir=args.out, seed=args.seed,
                   independent_seeds=args.independent_seeds)
    return 0


if __name__ == '__main__':
    sys.exit(main())
