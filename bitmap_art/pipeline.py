"""Quantization pipeline: downsample, reduce bit depth, dither, emit.

A run is a pure function of the source image, a :class:`BitmapConfig` and
(for randomized methods) a generator. It owns one float working buffer for
its duration and produces an immutable RGBA output buffer.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageFilter

from bitmap_art.color_utils import (
    nearest_entry,
    nearest_indices,
    palette_to_array,
    round_half_up,
)
from bitmap_art.config import BitmapConfig
from bitmap_art.kernels import (
    DIFFUSION_KERNELS,
    TRANSPARENT_ALPHA,
    diffuse_error,
    is_diffusion,
    spatial_bias,
)
from bitmap_art.palette import BW_PALETTE, extract_palette_from_image, normalize_hex

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])
MIDPOINT = 128.0

CancelCheck = Callable[[], bool]


class RenderCancelled(Exception):
    """A newer request superseded the run before it finished."""


@dataclass(frozen=True)
class BitmapResult:
    """Output of one pipeline run.

    Attributes:
        pixels:  (H, W, 4) uint8 RGBA output buffer (read-only).
        reduced: (H, W, 4) uint8 downsampled, bit-depth-reduced source.
        palette: Hex colours the output was matched against.
        config:  Validated configuration of the run.
        preview_size: (w, h) the buffer is presented at.
    """

    pixels: np.ndarray
    reduced: np.ndarray
    palette: tuple[str, ...]
    config: BitmapConfig
    preview_size: tuple[int, int]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def preview(self) -> Image.Image:
        """Hard-edged upscale to the requested output width."""
        return upscale(self.pixels, *self.preview_size)


# -- Stages ------------------------------------------------------------


def compute_working_size(
    source_width: int,
    source_height: int,
    output_width: int,
    block_size: int,
) -> tuple[int, int]:
    """Working (w, h): one cell per *block_size* output pixels.

    The height follows the source aspect ratio, rounded half up (minimum 1).
    """
    w = max(1, output_width // block_size)
    h = max(1, round_half_up(w * source_height / source_width))
    return w, h


def compute_preview_size(
    source_width: int,
    source_height: int,
    output_width: int,
) -> tuple[int, int]:
    return output_width, max(1, round_half_up(output_width * source_height / source_width))


def downsample(image: Image.Image, size: tuple[int, int], blur: float = 0) -> np.ndarray:
    """Resample *image* to *size* with an optional Gaussian pre-filter.

    *blur* is a radius in working-resolution pixels; it is scaled to the
    source resolution and applied before resampling.

    Returns:
        (h, w, 4) uint8 RGBA array.
    """
    src = image.convert("RGBA")
    if blur > 0:
        radius = blur * src.width / size[0]
        src = src.filter(ImageFilter.GaussianBlur(radius=radius))
    return np.array(src.resize(size, Image.BOX), dtype=np.uint8)


def reduce_bit_depth(rgba: np.ndarray, depth: int) -> np.ndarray:
    """Snap RGB channels to ``2**depth`` evenly spaced levels.

    Alpha is left untouched; depth 8 returns an unchanged copy.
    """
    out = rgba.copy()
    if depth >= 8:
        return out
    step = 255 / (2 ** depth - 1)
    rgb = out[..., :3].astype(np.float64)
    out[..., :3] = np.rint(np.rint(rgb / step) * step).astype(np.uint8)
    return out


def upscale(pixels: np.ndarray, width: int, height: int) -> Image.Image:
    """Nearest-neighbour upscale; never smooths block edges."""
    return Image.fromarray(pixels).resize((width, height), Image.NEAREST)


def quantize(
    working: np.ndarray,
    config: BitmapConfig,
    palette: np.ndarray | None = None,
    rng: np.random.Generator | None = None,
    should_cancel: CancelCheck | None = None,
) -> np.ndarray:
    """Quantize a float RGBA working buffer to the output buffer.

    Diffusion methods mutate *working* in place and visit pixels in
    raster order. All other methods have no inter-pixel dependency and are
    computed a row at a time.

    Args:
        working: (H, W, 4) float64 buffer.
        config:  Validated configuration.
        palette: (K, 3) uint8 palette; required in colour mode.
        rng:     Generator for the noise method.
        should_cancel: Polled at every row; ``True`` aborts the run.

    Returns:
        (H, W, 4) uint8 RGBA output.
    """
    if config.mode == "color" and (palette is None or len(palette) == 0):
        msg = "Colour mode requires a non-empty palette"
        raise ValueError(msg)

    h, w = working.shape[:2]
    out = np.zeros((h, w, 4), dtype=np.uint8)
    if is_diffusion(config.dither_method):
        kernel = DIFFUSION_KERNELS[config.dither_method]
        _quantize_diffused(working, out, config, palette, kernel, should_cancel)
    else:
        bias = spatial_bias(config.dither_method, w, h, rng)
        _quantize_biased(working, out, config, palette, bias, should_cancel)
    return out


def _check(should_cancel: CancelCheck | None) -> None:
    if should_cancel is not None and should_cancel():
        raise RenderCancelled


def _quantize_biased(
    working: np.ndarray,
    out: np.ndarray,
    config: BitmapConfig,
    palette: np.ndarray | None,
    bias: np.ndarray,
    should_cancel: CancelCheck | None,
) -> None:
    offset = config.user_offset
    for y in range(working.shape[0]):
        _check(should_cancel)
        row = working[y]
        opaque = row[:, 3] >= TRANSPARENT_ALPHA
        if not opaque.any():
            continue
        rgb = np.clip(row[opaque, :3], 0, 255)
        row_bias = bias[y, opaque]

        if config.mode == "bw":
            gray = rgb @ LUMA_WEIGHTS
            value = np.where(gray + row_bias + offset > MIDPOINT, 255, 0)
            new = np.repeat(value[:, np.newaxis], 3, axis=1)
        else:
            effective = np.clip(rgb + row_bias[:, np.newaxis] + offset, 0, 255)
            new = palette[nearest_indices(effective, palette)]

        out[y, opaque, :3] = new
        out[y, opaque, 3] = 255


def _quantize_diffused(
    working: np.ndarray,
    out: np.ndarray,
    config: BitmapConfig,
    palette: np.ndarray | None,
    kernel: tuple[tuple[int, int, float], ...],
    should_cancel: CancelCheck | None,
) -> None:
    # Strict raster order over a nested-list copy of the buffer
    offset = config.user_offset
    h, w = working.shape[:2]
    buf = working.tolist()
    entries = [] if palette is None else [tuple(map(float, p)) for p in palette]
    wr, wg, wb = LUMA_WEIGHTS.tolist()

    for y in range(h):
        _check(should_cancel)
        out_row = [(0, 0, 0, 0)] * w
        for x, (r, g, b, a) in enumerate(buf[y]):
            if a < TRANSPARENT_ALPHA:
                continue
            r, g, b = _clamp(r), _clamp(g), _clamp(b)
            tr, tg, tb = _clamp(r + offset), _clamp(g + offset), _clamp(b + offset)

            if config.mode == "bw":
                value = 255.0 if wr * r + wg * g + wb * b + offset > MIDPOINT else 0.0
                nr = ng = nb = value
            else:
                nr, ng, nb = entries[nearest_entry((tr, tg, tb), entries)]

            diffuse_error(buf, x, y, (tr - nr, tg - ng, tb - nb), kernel)
            out_row[x] = (nr, ng, nb, 255)
        out[y] = out_row

    working[...] = buf


def _clamp(value: float) -> float:
    return 0.0 if value < 0.0 else (255.0 if value > 255.0 else value)


# -- Orchestration -----------------------------------------------------


def resolve_palette(
    image: Image.Image,
    config: BitmapConfig,
    palette: Sequence[str] | None = None,
    rng: np.random.Generator | None = None,
) -> tuple[str, ...]:
    """Palette for a run: black/white, explicit, configured or extracted."""
    if config.mode == "bw":
        return BW_PALETTE
    if palette is not None:
        if len(palette) == 0:
            msg = "An explicit palette needs at least one colour"
            raise ValueError(msg)
        return tuple(normalize_hex(c) for c in palette)
    if config.palette is not None:
        return config.palette
    extracted = extract_palette_from_image(
        image, config.palette_method, config.palette_size, rng=rng,
    )
    logger.info("Palette: %s -> %s", config.palette_method, ", ".join(extracted))
    return tuple(extracted)


def render(
    image: Image.Image | None,
    config: BitmapConfig,
    palette: Sequence[str] | None = None,
    rng: np.random.Generator | None = None,
    should_cancel: CancelCheck | None = None,
) -> BitmapResult | None:
    """Run the full pipeline on *image*.

    Args:
        image:   Source image, or ``None`` when nothing is loaded yet.
        config:  Run configuration; validated (clamped) defensively.
        palette: Explicit hex palette overriding ``config.palette``.
        rng:     Generator for randomized methods; defaults to one seeded
                 from ``config.seed``.
        should_cancel: Polled at row boundaries.

    Returns:
        A :class:`BitmapResult`, or ``None`` when *image* is ``None``.

    Raises:
        RenderCancelled: when *should_cancel* reports supersession.
    """
    if image is None:
        logger.debug("No source image loaded; nothing to render")
        return None

    cfg = config.validated()
    if rng is None:
        rng = np.random.default_rng(cfg.seed)

    t0 = time.perf_counter()
    hex_palette = resolve_palette(image, cfg, palette, rng)
    palette_rgb = palette_to_array(hex_palette)

    size = compute_working_size(image.width, image.height, cfg.output_width, cfg.block_size)
    reduced = reduce_bit_depth(downsample(image, size, cfg.blur), cfg.color_depth)
    working = reduced.astype(np.float64)

    logger.info(
        "Quantizing %dx%d  mode=%s  dither=%s  depth=%d",
        size[0], size[1], cfg.mode, cfg.dither_method, cfg.color_depth,
    )
    pixels = quantize(
        working, cfg,
        palette=palette_rgb if cfg.mode == "color" else None,
        rng=rng,
        should_cancel=should_cancel,
    )
    pixels.setflags(write=False)
    logger.info("Quantized  (%.1f s)", time.perf_counter() - t0)

    return BitmapResult(
        pixels=pixels,
        reduced=reduced,
        palette=hex_palette,
        config=cfg,
        preview_size=compute_preview_size(image.width, image.height, cfg.output_width),
    )
