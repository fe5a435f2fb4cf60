"""
Configuration parameters for the Chronoturin comparative visualizer.

This module defines all simulation parameters:
- Particle population (count, seeding sphere)
- Pass schedule (frames per mode, steps per frame, workgroup size)
- Camera and image (resolution, field of view, near plane)
- Palette (per-category and activity color increments)
- Dynamics (central field, clock dilation)
- Record layout (host-side particle dtype)

World units are arbitrary; the seeding sphere is centered on the origin and
the camera looks down +z from CAMERA_Z.
"""

import math

import numpy as np

# ==============================================================================
# Particle population
# ==============================================================================

N = 100_000                 # Particles per pass (identical for both passes)
SPHERE_RADIUS = 300.0       # Seeding sphere radius (world units)
DEFAULT_SEED = 1234         # Seed shared by both passes unless --independent-seeds

TYPE_A = 0.0                # Category A (drawn red)
TYPE_B = 1.0                # Category B (drawn blue)

# ==============================================================================
# Pass schedule
# ==============================================================================

FRAMES_PER_MODE = 150       # Frames rendered per pass
SIM_STEPS_PER_FRAME = 5     # Kernel steps between two snapshots
WORKGROUP_SIZE = 256        # Threads per block for the per-particle kernel

# ==============================================================================
# Modes
# ==============================================================================

MODE_BASELINE = 0           # Every particle integrates every step
MODE_DILATED = 1            # Outer particles lose steps to clock dilation
MODES = (MODE_BASELINE, MODE_DILATED)   # Pass order

MODE_NAMES = {MODE_BASELINE: "NEWTONIAN", MODE_DILATED: "CHRONOTURIN"}
MODE_PREFIXES = {MODE_BASELINE: "newton", MODE_DILATED: "chrono"}

# ==============================================================================
# Camera / image
# ==============================================================================

IMAGE_WIDTH = 1024
IMAGE_HEIGHT = 1024
CAMERA_Z = -1000.0          # Camera sits on the z axis looking toward +z
FOV = 800.0                 # Focal length in pixels
NEAR_PLANE = 10.0           # Particles with depth <= NEAR_PLANE are culled

# ==============================================================================
# Palette (additive, saturating at 255)
# ==============================================================================

COLOR_A_RED = 200           # Category A base
COLOR_B_BLUE = 255          # Category B base
ACTIVE_GREEN = 150          # Particle was updated during the last step
DILATED_ACTIVE_RED = 50     # Extra gold tint for active particles in dilated mode
CHANNEL_MAX = 255

# ==============================================================================
# Dynamics (central_field kernel)
# ==============================================================================
# Field of a uniform-density sphere of radius SPHERE_RADIUS:
#   inside:  a = -FIELD_STRENGTH * p                 (harmonic)
#   outside: a = -FIELD_STRENGTH * R³ * p / |p|³     (inverse square)
# Collapse time ≈ (π/2) / sqrt(FIELD_STRENGTH) ≈ 157 time units, i.e. ~630 steps
# at DT = 0.25, so a 150×5 step pass covers one full infall.

FIELD_STRENGTH = 1.0e-4
DT = 0.25
SOFTENING = 1.0             # Keeps |p| away from zero in the clock rate

CORE_RADIUS = 60.0          # Clock runs at full rate inside this radius
MIN_CLOCK_RATE = 0.05       # Slowest clock (outer shell), fraction of a step

# ==============================================================================
# Record layout (must match the Taichi struct in store.py)
# ==============================================================================

PARTICLE_DTYPE = np.dtype([
    ("pos", np.float32, (3,)),
    ("vel", np.float32, (3,)),
    ("mass", np.float32),
    ("category", np.float32),
    ("time_debt", np.float32),
    ("active", np.float32),
])
RECORD_WIDTH = PARTICLE_DTYPE.itemsize // 4   # float32 slots per record (10)

# Column offsets inside the flat (N, RECORD_WIDTH) view
COL_POS = 0
COL_VEL = 3
COL_MASS = 6
COL_CATEGORY = 7
COL_TIME_DEBT = 8
COL_ACTIVE = 9


def workgroups_for(n, workgroup_size=WORKGROUP_SIZE):
    """Number of blocks needed to cover n particles."""
    return int(math.ceil(n / workgroup_size))
