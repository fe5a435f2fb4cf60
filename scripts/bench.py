#!/usr/bin/env python3
"""
Benchmark script for the comparative visualizer - Reproducible Performance Testing
===================================================================================

Runs a fixed number of frames of one mode with a deterministic seed and reports:
- Frames per second
- Time breakdown (steps, readback, render, save)
- Configuration used

Usage:
    python scripts/bench.py [--frames N] [--particles N] [--mode newton|chrono] [--save]

Example:
    python scripts/bench.py --frames 50 --particles 100000 --mode chrono
"""

import sys
import os
import time
import argparse
import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import (
    N, SIM_STEPS_PER_FRAME, MODE_BASELINE, MODE_DILATED, MODE_NAMES,
)
from context import ARCHS, DeviceUnavailableError, create_context
from dynamics import KERNELS, get_kernel
from projector import render, save_frame
from readback import ReadbackBuffer
from run import frame_filename
from stepper import run_steps
from store import initialize

MODE_BY_PREFIX = {"newton": MODE_BASELINE, "chrono": MODE_DILATED}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Benchmark visualizer pipeline stages')
    parser.add_argument('--frames', type=int, default=50,
                        help='Number of frames to run (default: 50)')
    parser.add_argument('--particles', type=int, default=N,
                        help=f'Number of particles (default: {N})')
    parser.add_argument('--steps', type=int, default=SIM_STEPS_PER_FRAME,
                        help=f'Simulation steps per frame (default: {SIM_STEPS_PER_FRAME})')
    parser.add_argument('--mode', choices=sorted(MODE_BY_PREFIX), default='chrono',
                        help='Dynamics mode (default: chrono)')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed for reproducibility (default: 42)')
    parser.add_argument('--arch', choices=sorted(ARCHS), default='gpu',
                        help='Taichi backend (default: gpu)')
    parser.add_argument('--kernel', choices=sorted(KERNELS), default='central',
                        help='Dynamics kernel (default: central)')
    parser.add_argument('--save', metavar='DIR', default=None,
                        help='Also write frames to DIR (default: do not save)')
    return parser.parse_args(argv)


def run_benchmark(args):
    """
    Run benchmark and collect performance statistics.

    Args:
        args: Parsed command line arguments

    Returns:
        Dictionary with benchmark results
    """
    mode = MODE_BY_PREFIX[args.mode]

    print(f"\n{'='*70}")
    print(f"VISUALIZER BENCHMARK")
    print(f"{'='*70}\n")

    print(f"Configuration:")
    print(f"  Particles:     {args.particles}")
    print(f"  Frames:        {args.frames}")
    print(f"  Steps/frame:   {args.steps}")
    print(f"  Mode:          {MODE_NAMES[mode]}")
    print(f"  Kernel:        {args.kernel}")
    print(f"  Seed:          {args.seed}")
    print(f"  Save:          {args.save or 'Disabled'}")
    print(f"\n")

    ctx = create_context(args.arch, require_gpu=(args.arch != 'cpu'),
                         kernel=get_kernel(args.kernel))

    print("Initializing simulation...")
    rng = np.random.default_rng(args.seed)
    particles, params = initialize(ctx, args.particles, mode, rng)
    readback = ReadbackBuffer(ctx, args.particles)

    # Warm-up (first launches include JIT compilation)
    warmup_frames = 3
    for _ in range(warmup_frames):
        run_steps(ctx, particles, params, args.steps)
        with readback.mapped(particles) as snap:
            if snap is not None:
                render(snap, mode)
    print(f"Warm-up complete ({warmup_frames} frames)\n")

    times_steps = []
    times_readback = []
    times_render = []
    times_save = []
    times_total = []

    print(f"Running {args.frames} frames...\n")
    start_time_total = time.perf_counter()

    for frame in range(args.frames):
        t0 = time.perf_counter()

        # 1. Queue steps (asynchronous on GPU backends)
        run_steps(ctx, particles, params, args.steps)
        t_steps = time.perf_counter() - t0

        # 2. Readback (includes waiting for the queued steps)
        t_rb_start = time.perf_counter()
        snap = readback.snapshot(particles)
        t_readback = time.perf_counter() - t_rb_start

        # 3. Render + optional save
        t_render = 0.0
        t_save = 0.0
        if snap is not None:
            t_render_start = time.perf_counter()
            image = render(snap, mode)
            t_render = time.perf_counter() - t_render_start
            if args.save:
                t_save_start = time.perf_counter()
                save_frame(image, os.path.join(args.save, frame_filename(mode, frame)))
                t_save = time.perf_counter() - t_save_start
        readback.release()

        t_frame = time.perf_counter() - t0
        times_steps.append(t_steps)
        times_readback.append(t_readback)
        times_render.append(t_render)
        times_save.append(t_save)
        times_total.append(t_frame)

        if (frame + 1) % 10 == 0 or frame == args.frames - 1:
            fps_current = 1.0 / t_frame if t_frame > 0 else 0
            print(f"  Frame {frame+1:4d}/{args.frames}: {fps_current:5.1f} FPS")

    total_time = time.perf_counter() - start_time_total
    ctx.release_trees()
    avg_fps = args.frames / total_time if total_time > 0 else 0.0

    avg_steps = np.mean(times_steps)
    avg_readback = np.mean(times_readback)
    avg_render = np.mean(times_render)
    avg_save = np.mean(times_save)
    avg_total = np.mean(times_total)
    total_avg = max(avg_steps + avg_readback + avg_render + avg_save, 1e-12)

    print(f"\n{'='*70}")
    print(f"BENCHMARK RESULTS")
    print(f"{'='*70}\n")

    print(f"Overall Performance:")
    print(f"  Average FPS:   {avg_fps:.2f}")
    print(f"  Total Time:    {total_time:.2f}s")
    print(f"  Avg Frame:     {avg_total*1000:.2f}ms")
    print(f"  Skipped:       {readback.failures}")
    print(f"\n")

    print(f"Time Breakdown (averages):")
    print(f"  Steps:         {avg_steps*1000:6.2f}ms  ({100*avg_steps/total_avg:5.1f}%)")
    print(f"  Readback:      {avg_readback*1000:6.2f}ms  ({100*avg_readback/total_avg:5.1f}%)")
    print(f"  Render:        {avg_render*1000:6.2f}ms  ({100*avg_render/total_avg:5.1f}%)")
    print(f"  Save:          {avg_save*1000:6.2f}ms  ({100*avg_save/total_avg:5.1f}%)")
    print(f"\n")

    return {
        'avg_fps': avg_fps,
        'total_time': total_time,
        'avg_frame_ms': avg_total * 1000,
        'avg_steps_ms': avg_steps * 1000,
        'avg_readback_ms': avg_readback * 1000,
        'avg_render_ms': avg_render * 1000,
        'avg_save_ms': avg_save * 1000,
        'skipped': readback.failures,
        'config': {
            'particles': args.particles,
            'frames': args.frames,
            'steps': args.steps,
            'mode': args.mode,
            'kernel': args.kernel,
            'seed': args.seed,
        }
    }


def main():
    """Main entry point."""
    args = parse_args()
    try:
        run_benchmark(args)
    except DeviceUnavailableError as e:
        print(f"[Fatal] {e}")
        return 1

    print(f"Benchmark complete!")
    print(f"{'='*70}\n")

    return 0


if __name__ == '__main__':
    sys.exit(main())
