"""
Projector/Rasterizer: turn one snapshot into one RGB frame.

Pinhole camera on the z axis, one pixel per particle, no depth buffer:
1. depth = z - camera_z; cull depth <= near
2. sx = x·fov/depth + W/2, sy = y·fov/depth + H/2 (float32)
3. keep 0 <= sx < W, 0 <= sy < H; pixel = truncated (sx, sy)
4. add palette increments per particle, clamp each channel at 255

All increments are non-negative, so clamping the per-pixel sums gives the
same image as saturating-adding particles one by one in any order.
"""

import os

import numpy as np
from PIL import Image

from config import (
    IMAGE_WIDTH, IMAGE_HEIGHT, CAMERA_Z, FOV, NEAR_PLANE,
    COLOR_A_RED, COLOR_B_BLUE, ACTIVE_GREEN, DILATED_ACTIVE_RED, CHANNEL_MAX,
    MODE_DILATED, MODES,
)


class Camera:
    """Fixed pinhole camera looking toward +z."""

    def __init__(self, width=IMAGE_WIDTH, height=IMAGE_HEIGHT, camera_z=CAMERA_Z,
                 fov=FOV, near=NEAR_PLANE):
        self.width = width
        self.height = height
        self.camera_z = camera_z
        self.fov = fov
        self.near = near


def project(snapshot, camera):
    """
    Project particles to integer pixel coordinates.

    Returns:
        (indices, px, py): record indices of drawn particles and their pixels
    """
    pos = np.asarray(snapshot["pos"], dtype=np.float32)
    depth = pos[:, 2] - np.float32(camera.camera_z)
    in_front = np.flatnonzero(depth > camera.near)

    factor = np.float32(camera.fov) / depth[in_front]
    sx = pos[in_front, 0] * factor + np.float32(camera.width / 2)
    sy = pos[in_front, 1] * factor + np.float32(camera.height / 2)

    on_screen = (sx >= 0) & (sx < camera.width) & (sy >= 0) & (sy < camera.height)
    indices = in_front[on_screen]
    px = sx[on_screen].astype(np.int64)
    py = sy[on_screen].astype(np.int64)
    return indices, px, py


def render(snapshot, mode, camera=None):
    """
    Rasterize a snapshot.

    Args:
        snapshot: PARTICLE_DTYPE array (e.g. from ReadbackBuffer.snapshot)
        mode: MODE_BASELINE or MODE_DILATED
        camera: Camera (defaults from config)

    Returns:
        uint8 array of shape (height, width, 3), row = screen y
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode {mode!r}")
    if camera is None:
        camera = Camera()

    indices, px, py = project(snapshot, camera)
    category_a = snapshot["category"][indices] < 0.5
    active = snapshot["active"][indices] > 0.5

    red = np.where(category_a, COLOR_A_RED, 0)
    if mode == MODE_DILATED:
        red = red + np.where(active, DILATED_ACTIVE_RED, 0)
    green = np.where(active, ACTIVE_GREEN, 0)
    blue = np.where(category_a, 0, COLOR_B_BLUE)

    n_pixels = camera.width * camera.height
    linear = py * camera.width + px
    acc = np.empty((n_pixels, 3), dtype=np.float64)
    for channel, contrib in enumerate((red, green, blue)):
        acc[:, channel] = np.bincount(linear, weights=contrib, minlength=n_pixels)

    np.minimum(acc, CHANNEL_MAX, out=acc)
    return acc.astype(np.uint8).reshape(camera.height, camera.width, 3)


def save_frame(image, path):
    """Write an RGB frame as PNG."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    Image.fromarray(image).save(path)
