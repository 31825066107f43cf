"""Palette presets, editing helpers and extraction from image pixels."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import numpy as np
from PIL import Image
from scipy.cluster.vq import vq
from scipy.spatial.distance import cdist

from bitmap_art.color_utils import hex_to_rgb, rgb_to_hex, round_half_up

logger = logging.getLogger(__name__)

# Extraction strategy key -> display label, in menu order
PALETTE_METHODS: dict[str, str] = {
    "kmeans": "K-Means Clustering",
    "histogram": "Histogram Freq",
    "median_cut": "Median Cut (Wide)",
    "extreme": "Extremes",
    "varied": "Varied Distribution",
    "distant": "Max Distance",
    "pronounced": "Pronounced",
}

# Named presets: key -> (label, hex colours)
PALETTE_PRESETS: dict[str, tuple[str, tuple[str, ...]]] = {
    "default": ("Basic (5 Colors)", (
        "#000000", "#FFFFFF", "#FF0000", "#00FF00", "#0000FF",
    )),
    "rainbow": ("Rainbow (8 Colors)", (
        "#000000", "#FFFFFF", "#FF0000", "#00FF00",
        "#0000FF", "#FFFF00", "#00FFFF", "#FF00FF",
    )),
    "gameboy": ("Gameboy (GB)", ("#0F380F", "#306230", "#8BAC0F", "#9BBC0F")),
    "mac_bw": ("Classic Mac (1-Bit)", ("#000000", "#FFFFFF")),
    "cga_1": ("CGA (Magenta/Cyan)", ("#000000", "#55FFFF", "#FF55FF", "#FFFFFF")),
    "cga_2": ("CGA (Red/Green)", ("#000000", "#55FF55", "#FF5555", "#FFFF55")),
    "vaporwave": ("Vaporwave", (
        "#FF71CE", "#01CDFE", "#05FFA1", "#B967FF", "#FFFB96",
    )),
    "neon_noir": ("Neon Noir", (
        "#0B0C15", "#161B2D", "#232C45", "#FF0055", "#00E5FF", "#FFFFFF",
    )),
    "sepia": ("Sepia", ("#2E211B", "#4D3930", "#805D46", "#BF9775", "#E6CBB3")),
    "c64": ("Commodore 64", (
        "#000000", "#FFFFFF", "#880000", "#AAFFEE",
        "#CC44CC", "#00CC55", "#0000AA", "#EEEE77",
        "#DD8855", "#664400", "#FF7777", "#333333",
        "#777777", "#AAFF66", "#0088FF", "#BBBBBB",
    )),
}

DEFAULT_PALETTE: tuple[str, ...] = PALETTE_PRESETS["default"][1]
BW_PALETTE: tuple[str, ...] = ("#000000", "#FFFFFF")
PAD_COLOR = "#FFFFFF"

# Extraction works on a fixed-size thumbnail
SAMPLE_SIZE = (64, 64)
OPAQUE_ALPHA = 128

KMEANS_ITERATIONS = 5
VARIED_MIN_DISTANCE = 50.0
VARIED_MAX_ATTEMPTS = 1000
DISTANT_CANDIDATES = 200
PRONOUNCED_MIN_RANGE = 50
PRONOUNCED_MIN_PIXELS = 100


# -- Hex palette helpers -----------------------------------------------


def normalize_hex(color: str) -> str:
    """Canonical upper-case ``#RRGGBB`` form of *color*."""
    return rgb_to_hex(*hex_to_rgb(color))


def parse_palette(text: str) -> tuple[str, ...]:
    """Parse a comma-separated list like ``'#FF7F11, 262626'``."""
    colors = tuple(normalize_hex(c) for c in text.split(",") if c.strip())
    if not colors:
        msg = "Palette must contain at least one colour"
        raise ValueError(msg)
    return colors


def get_preset(name: str) -> tuple[str, ...]:
    """Colours of the named preset."""
    key = name.lower()
    if key not in PALETTE_PRESETS:
        available = ", ".join(PALETTE_PRESETS)
        msg = f"Unknown palette preset '{name}'. Available: {available}"
        raise ValueError(msg)
    return PALETTE_PRESETS[key][1]


def add_color(palette: Sequence[str], color: str = "#888888") -> tuple[str, ...]:
    return (*palette, normalize_hex(color))


def update_color(palette: Sequence[str], index: int, color: str) -> tuple[str, ...]:
    colors = list(palette)
    colors[index] = normalize_hex(color)
    return tuple(colors)


def remove_color(palette: Sequence[str], index: int) -> tuple[str, ...]:
    """Drop the colour at *index*; a palette can never become empty."""
    if len(palette) <= 1:
        msg = "Cannot remove the last palette colour"
        raise ValueError(msg)
    colors = list(palette)
    del colors[index]
    return tuple(colors)


# -- Sampling ----------------------------------------------------------


def sample_pixels(image: Image.Image) -> np.ndarray:
    """Box-sample *image* to 64x64 and return its opaque pixels.

    Returns:
        (N, 3) uint8 array; N may be 0 for a fully transparent image.
    """
    thumb = image.convert("RGBA").resize(SAMPLE_SIZE, Image.BOX)
    data = np.array(thumb, dtype=np.uint8).reshape(-1, 4)
    return data[data[:, 3] >= OPAQUE_ALPHA, :3]


def extract_palette_from_image(
    image: Image.Image,
    method: str = "median_cut",
    num_colors: int = 5,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> list[str]:
    """Sample *image* and derive a *num_colors* palette with *method*."""
    return extract_palette(sample_pixels(image), method, num_colors, seed=seed, rng=rng)


def extract_palette(
    pixels: np.ndarray,
    method: str = "median_cut",
    num_colors: int = 5,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> list[str]:
    """Derive a palette from sampled opaque pixels.

    Args:
        pixels: (N, 3) uint8 opaque RGB sample.
        method: One of :data:`PALETTE_METHODS`.
        num_colors: Palette size K (>= 1).
        seed: Reproducibility seed for randomized methods.
        rng: Explicit generator; takes precedence over *seed*.

    Returns:
        Exactly *num_colors* upper-case hex strings, deduplicated and padded
        with white. An empty sample yields :data:`DEFAULT_PALETTE` unchanged.
    """
    key = method.lower()
    strategy = _STRATEGIES.get(key)
    if strategy is None:
        available = ", ".join(PALETTE_METHODS)
        msg = f"Unknown palette method '{method}'. Available: {available}"
        raise ValueError(msg)
    if num_colors < 1:
        msg = f"num_colors must be >= 1, got {num_colors}"
        raise ValueError(msg)

    px = np.asarray(pixels, dtype=np.uint8).reshape(-1, 3)
    if len(px) == 0:
        logger.debug("No opaque pixels sampled; using default palette")
        return list(DEFAULT_PALETTE)

    if rng is None:
        rng = np.random.default_rng(seed)

    chosen = strategy(px, num_colors, rng)

    hex_colors: list[str] = []
    for r, g, b in chosen:
        hx = rgb_to_hex(r, g, b)
        if hx not in hex_colors:
            hex_colors.append(hx)
    while len(hex_colors) < num_colors:
        hex_colors.append(PAD_COLOR)

    logger.debug("Extracted %s palette from %d pixels: %s", key, len(px), hex_colors)
    return hex_colors[:num_colors]


# -- Strategies --------------------------------------------------------
# Each takes (N, 3) uint8 pixels, K and a generator and returns a list of
# RGB triples (floats allowed); post-processing happens in extract_palette.


def _bucket_means(px: np.ndarray, shift: int, k: int) -> list[np.ndarray]:
    """Average colours of coarse buckets, most populated first."""
    keys = (px >> shift).astype(np.int64)
    flat = (keys[:, 0] << 16) | (keys[:, 1] << 8) | keys[:, 2]
    _, first, inverse, counts = np.unique(
        flat, return_index=True, return_inverse=True, return_counts=True,
    )
    inverse = inverse.reshape(-1)
    sums = np.zeros((len(counts), 3), dtype=np.float64)
    np.add.at(sums, inverse, px.astype(np.float64))
    means = sums / counts[:, np.newaxis]
    # Descending population; ties keep first-seen bucket order
    order = np.lexsort((first, -counts))
    return [means[i] for i in order[:k]]


def _histogram(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    return _bucket_means(px, 4, k)


def _pronounced(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    """Histogram over 3-bit buckets, preferring saturated pixels."""
    spread = px.max(axis=1).astype(np.int16) - px.min(axis=1).astype(np.int16)
    saturated = px[spread > PRONOUNCED_MIN_RANGE]
    source = saturated if len(saturated) >= PRONOUNCED_MIN_PIXELS else px
    return _bucket_means(source, 5, k)


def _kmeans(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    """Lloyd's algorithm with a fixed iteration count.

    Centroids start at random sample pixels. A centroid that loses all its
    pixels keeps its position and is dropped if still empty at the end.
    """
    obs = px.astype(np.float64)
    centroids = obs[rng.integers(0, len(obs), size=k)].copy()
    counts = np.zeros(k, dtype=np.int64)

    for _ in range(KMEANS_ITERATIONS):
        codes, _ = vq(obs, centroids, check_finite=False)
        counts = np.bincount(codes, minlength=k)
        sums = np.zeros((k, 3), dtype=np.float64)
        np.add.at(sums, codes, obs)
        filled = counts > 0
        centroids[filled] = sums[filled] / counts[filled, np.newaxis]

    return [centroids[i] for i in range(k) if counts[i] > 0]


def _median_cut(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    """Median cut that always splits the box with the widest range next."""

    def box_range(box: np.ndarray) -> int:
        if len(box) == 0:
            return 0
        return int((box.max(axis=0).astype(np.int16) - box.min(axis=0)).max())

    boxes: list[tuple[np.ndarray, int]] = [(px, box_range(px))]

    while len(boxes) < k:
        # Stable re-sort before every split
        boxes.sort(key=lambda item: item[1], reverse=True)
        box, _ = boxes.pop(0)
        if len(box) == 0:
            boxes.append((box, 0))
            break

        ranges = box.max(axis=0).astype(np.int16) - box.min(axis=0)
        widest = int(ranges.max())
        # Channel preference on equal ranges: green, blue, red
        channel = 1 if ranges[1] == widest else (2 if ranges[2] == widest else 0)

        ordered = box[np.argsort(box[:, channel], kind="stable")]
        mid = len(ordered) // 2
        low, high = ordered[:mid], ordered[mid:]
        boxes.append((low, box_range(low)))
        boxes.append((high, box_range(high)))

    colors = []
    for box, _ in boxes:
        if len(box) == 0:
            colors.append((0, 0, 0))
            continue
        mean = box.astype(np.float64).mean(axis=0)
        colors.append(tuple(round_half_up(v) for v in mean))
    return colors


def _extreme(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    """Evenly spaced picks along the R+G+B brightness ordering."""
    order = np.argsort(px.astype(np.int32).sum(axis=1), kind="stable")
    ranked = px[order]
    if k == 1:
        return [ranked[0]]
    step = len(ranked) // (k - 1)
    chosen = [ranked[0]]
    chosen.extend(ranked[i * step] for i in range(1, k - 1))
    chosen.append(ranked[-1])
    return chosen


def _varied(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    """Random picks that keep a minimum RGB distance from each other."""
    obs = px.astype(np.float64)
    chosen = [obs[rng.integers(len(obs))]]
    attempts = 0
    while len(chosen) < k and attempts < VARIED_MAX_ATTEMPTS:
        candidate = obs[rng.integers(len(obs))]
        nearest = cdist(candidate[np.newaxis], np.array(chosen)).min()
        if nearest > VARIED_MIN_DISTANCE:
            chosen.append(candidate)
        attempts += 1
    while len(chosen) < k:
        chosen.append(obs[rng.integers(len(obs))])
    return chosen


def _distant(px: np.ndarray, k: int, rng: np.random.Generator) -> list:
    """Farthest-point heuristic over random candidate batches."""
    obs = px.astype(np.float64)
    chosen = [obs[rng.integers(len(obs))]]
    for _ in range(1, k):
        candidates = obs[rng.integers(0, len(obs), size=DISTANT_CANDIDATES)]
        spread = cdist(candidates, np.array(chosen), "sqeuclidean").min(axis=1)
        chosen.append(candidates[int(np.argmax(spread))])
    return chosen


_STRATEGIES: dict[str, Callable[[np.ndarray, int, np.random.Generator], list]] = {
    "kmeans": _kmeans,
    "histogram": _histogram,
    "median_cut": _median_cut,
    "extreme": _extreme,
    "varied": _varied,
    "distant": _distant,
    "pronounced": _pronounced,
}
