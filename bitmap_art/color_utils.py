"""Redmean colour distance, nearest-colour matching and hex helpers."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from skimage.color import rgb2lab


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative channel values."""
    return int(math.floor(value + 0.5))


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Format a (possibly fractional) RGB triple as ``#RRGGBB``."""
    return "#{:02X}{:02X}{:02X}".format(
        round_half_up(r), round_half_up(g), round_half_up(b),
    )


def hex_to_rgb(hex_str: str) -> tuple[int, int, int]:
    """Parse ``#RRGGBB`` (the ``#`` is optional) into an RGB triple."""
    h = hex_str.strip().lstrip("#")
    if len(h) != 6:
        msg = f"Invalid hex colour '{hex_str}'"
        raise ValueError(msg)
    try:
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    except ValueError:
        msg = f"Invalid hex colour '{hex_str}'"
        raise ValueError(msg) from None


def palette_to_array(palette: Sequence[str]) -> np.ndarray:
    """Convert a hex palette to a (K, 3) uint8 array."""
    return np.array([hex_to_rgb(c) for c in palette], dtype=np.uint8).reshape(-1, 3)


def redmean_distance(
    c1: Sequence[float],
    c2: Sequence[float],
) -> float:
    """Redmean-weighted squared distance between two RGB colours.

    Red is weighted by ``2 + rMean/256``, green by ``4`` and blue by
    ``2 + (255 - rMean)/256``. Symmetric, and zero only for identical colours.
    """
    r_mean = (c1[0] + c2[0]) / 2
    d_r = c1[0] - c2[0]
    d_g = c1[1] - c2[1]
    d_b = c1[2] - c2[2]
    w_r = 2 + r_mean / 256
    w_b = 2 + (255 - r_mean) / 256
    return float(w_r * d_r * d_r + 4.0 * d_g * d_g + w_b * d_b * d_b)


def redmean_cost(
    colors: np.ndarray,
    palette: np.ndarray,
    chunk_size: int = 4096,
) -> np.ndarray:
    """Pairwise redmean distance between colours and palette entries.

    Args:
        colors:  (N, 3) RGB, any numeric dtype.
        palette: (K, 3) RGB.
        chunk_size: Rows computed per batch (controls peak RAM).

    Returns:
        (N, K) float64 cost matrix.
    """
    c = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    p = np.asarray(palette, dtype=np.float64).reshape(-1, 3)

    n = len(c)
    cost = np.empty((n, len(p)), dtype=np.float64)
    for i in range(0, n, chunk_size):
        j = min(i + chunk_size, n)
        block = c[i:j, np.newaxis, :]
        r_mean = (block[..., 0] + p[np.newaxis, :, 0]) / 2
        diff = block - p[np.newaxis, :, :]
        w_r = 2 + r_mean / 256
        w_b = 2 + (255 - r_mean) / 256
        cost[i:j] = (
            w_r * diff[..., 0] ** 2
            + 4.0 * diff[..., 1] ** 2
            + w_b * diff[..., 2] ** 2
        )
    return cost


def nearest_indices(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the closest palette entry for every colour.

    Ties resolve to the earliest palette entry.
    """
    return np.argmin(redmean_cost(colors, palette), axis=1)


def nearest_entry(
    color: Sequence[float],
    entries: Sequence[Sequence[float]],
) -> int:
    """Scalar counterpart of :func:`nearest_indices` for a single colour.

    Ties resolve to the earliest entry.
    """
    best, best_dist = 0, math.inf
    for i, entry in enumerate(entries):
        dist = redmean_distance(color, entry)
        if dist < best_dist:
            best, best_dist = i, dist
    return best


def nearest_color(
    color: Sequence[float],
    palette: np.ndarray,
) -> tuple[int, int, int]:
    """Return the palette entry closest to *color* under the redmean metric."""
    p = np.asarray(palette, dtype=np.uint8).reshape(-1, 3)
    if len(p) == 0:
        msg = "Cannot match against an empty palette"
        raise ValueError(msg)
    idx = int(nearest_indices(np.asarray(color, dtype=np.float64), p)[0])
    r, g, b = p[idx]
    return int(r), int(g), int(b)


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) uint8 RGB → (N, 3) float64 CIELAB."""
    return rgb2lab(rgb.astype(np.float64).reshape(1, -1, 3) / 255.0).reshape(-1, 3)


def quality_metric(reduced: np.ndarray, output: np.ndarray) -> float:
    """Mean CIELAB distance between the reduced source and the bitmap.

    Only pixels that are opaque in the output take part. Returns 0.0 for a
    fully transparent result.
    """
    opaque = output[..., 3] == 255
    if not opaque.any():
        return 0.0
    src = rgb_to_lab(reduced[..., :3][opaque])
    dst = rgb_to_lab(output[..., :3][opaque])
    return float(np.mean(np.sqrt(np.sum((src - dst) ** 2, axis=1))))
