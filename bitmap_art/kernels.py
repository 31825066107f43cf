"""Dither kernel library: diffusion taps, Bayer matrices and noise bias.

Methods fall into three families:

- **diffusion**: the quantisation residual of each pixel is pushed forward
  to not-yet-visited neighbours (Floyd-Steinberg, Atkinson, Sierra Lite,
  Stretch, Jarvis-Judice-Ninke).
- **spatial**: a per-pixel bias in roughly [-32, +32] is added before
  matching (Bayer 2/4/8 ordered dither, uniform "blue noise").
- **plain**: straight thresholding (``none``).
"""

from __future__ import annotations

import numpy as np

# Method key -> display label, in menu order
DITHER_METHODS: dict[str, str] = {
    "none": "Threshold (1-Bit)",
    "floyd": "Floyd-Steinberg",
    "atkinson": "Atkinson",
    "sierra": "Sierra Lite",
    "bayer2": "Bayer Matrix 2x2",
    "bayer4": "Bayer Matrix 4x4",
    "bayer8": "Bayer Matrix 8x8",
    "noise": "Blue Noise",
    "stretch": "Stretch Error",
    "jarvis": "Jarvis-Judice-Ninke",
}

# (dx, dy, weight); dy >= 0 and dx > 0 when dy == 0, so only unvisited
# pixels are ever touched in raster order.
DIFFUSION_KERNELS: dict[str, tuple[tuple[int, int, float], ...]] = {
    "floyd": (
        (1, 0, 7 / 16),
        (-1, 1, 3 / 16),
        (0, 1, 5 / 16),
        (1, 1, 1 / 16),
    ),
    # Atkinson spreads only 6/8 of the error
    "atkinson": (
        (1, 0, 1 / 8),
        (2, 0, 1 / 8),
        (-1, 1, 1 / 8),
        (0, 1, 1 / 8),
        (1, 1, 1 / 8),
        (0, 2, 1 / 8),
    ),
    "sierra": (
        (1, 0, 2 / 4),
        (-1, 1, 1 / 4),
        (0, 1, 1 / 4),
    ),
    "stretch": (
        (1, 0, 1.0),
    ),
    "jarvis": (
        (1, 0, 7 / 48),
        (2, 0, 5 / 48),
        (-2, 1, 3 / 48),
        (-1, 1, 5 / 48),
        (0, 1, 7 / 48),
        (1, 1, 5 / 48),
        (2, 1, 3 / 48),
        (-2, 2, 1 / 48),
        (-1, 2, 3 / 48),
        (0, 2, 5 / 48),
        (1, 2, 3 / 48),
        (2, 2, 1 / 48),
    ),
}

BAYER_MATRICES: dict[str, np.ndarray] = {
    "bayer2": np.array([[0, 2], [3, 1]]),
    "bayer4": np.array([
        [0, 8, 2, 10],
        [12, 4, 14, 6],
        [3, 11, 1, 9],
        [15, 7, 13, 5],
    ]),
    "bayer8": np.array([
        [0, 32, 8, 40, 2, 34, 10, 42],
        [48, 16, 56, 24, 50, 18, 58, 26],
        [12, 44, 4, 36, 14, 46, 6, 38],
        [60, 28, 52, 20, 62, 30, 54, 22],
        [3, 35, 11, 43, 1, 33, 9, 41],
        [51, 19, 59, 27, 49, 17, 57, 25],
        [15, 47, 7, 39, 13, 45, 5, 37],
        [63, 31, 55, 23, 61, 29, 53, 21],
    ]),
}

# Peak-to-peak amplitude of the spatial bias
BIAS_SPREAD = 64.0

TRANSPARENT_ALPHA = 128


def is_diffusion(method: str) -> bool:
    return method in DIFFUSION_KERNELS


def is_spatial(method: str) -> bool:
    return method in BAYER_MATRICES or method == "noise"


def ordered_bias(method: str, width: int, height: int) -> np.ndarray:
    """Tile a Bayer matrix over the grid as a (H, W) bias array.

    Entry ``M[y mod N][x mod N]`` maps to ``(M / N**2 - 0.5) * 64``.
    """
    matrix = BAYER_MATRICES[method]
    n = matrix.shape[0]
    normalised = matrix.astype(np.float64) / (n * n)
    ys = np.arange(height) % n
    xs = np.arange(width) % n
    return (normalised[np.ix_(ys, xs)] - 0.5) * BIAS_SPREAD


def noise_bias(rng: np.random.Generator, width: int, height: int) -> np.ndarray:
    """Fresh uniform bias per pixel, drawn in raster order."""
    return (rng.random((height, width)) - 0.5) * BIAS_SPREAD


def spatial_bias(
    method: str,
    width: int,
    height: int,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """(H, W) float64 bias for *method*; zeros for plain and diffusion methods."""
    if method in BAYER_MATRICES:
        return ordered_bias(method, width, height)
    if method == "noise":
        if rng is None:
            rng = np.random.default_rng()
        return noise_bias(rng, width, height)
    return np.zeros((height, width), dtype=np.float64)


def diffuse_error(
    buffer: np.ndarray | list[list[list[float]]],
    x: int,
    y: int,
    error: np.ndarray | tuple[float, float, float],
    kernel: tuple[tuple[int, int, float], ...],
) -> None:
    """Spread the RGB *error* from (x, y) into *buffer* in place.

    *buffer* is indexed ``buffer[y][x][channel]`` with alpha in channel 3;
    an (H, W, 4) array and nested lists both work. Neighbours outside the
    grid or with alpha below 128 are skipped, so transparent pixels never
    accumulate error.
    """
    h, w = len(buffer), len(buffer[0])
    er, eg, eb = error
    for dx, dy, weight in kernel:
        nx, ny = x + dx, y + dy
        if nx < 0 or nx >= w or ny >= h:
            continue
        px = buffer[ny][nx]
        if px[3] < TRANSPARENT_ALPHA:
            continue
        px[0] += er * weight
        px[1] += eg * weight
        px[2] += eb * weight
