"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path

from bitmap_art.kernels import DITHER_METHODS
from bitmap_art.palette import PALETTE_METHODS, normalize_hex

MODES = ("bw", "color")

# Inclusive bounds enforced by BitmapConfig.validated()
RANGES: dict[str, tuple[int, int]] = {
    "output_width": (100, 2000),
    "block_size": (1, 64),
    "threshold": (0, 255),
    "blur": (0, 100),
    "color_depth": (1, 8),
    "palette_size": (1, 64),
}


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(value)))


@dataclass(frozen=True)
class BitmapConfig:
    """All tuneable parameters for a bitmap run.

    Attributes:
        mode:           ``"bw"`` (black & white threshold) or ``"color"`` (palette).
        output_width:   Width of the presented image in pixels.
        block_size:     Side length of one bitmap cell in output pixels.
        threshold:      Brightness bias, centred at 128.
        blur:           Pre-filter radius in working-resolution pixels.
        color_depth:    Bits per channel before dithering (8 = untouched).
        dither_method:  Key of :data:`bitmap_art.kernels.DITHER_METHODS`.
        palette_method: Key of :data:`bitmap_art.palette.PALETTE_METHODS`.
        palette:        Explicit hex palette for colour mode (None = extract).
        palette_size:   Number of colours to extract when *palette* is None.
        seed:           Random seed for randomized methods (None = non-deterministic).
        output_format:  Raster format for saved files.
        save_svg:       Also write the vector rendition.
        save_palette:   Persist a swatch of the palette used.
        save_comparison: Generate a side-by-side comparison grid.
        input_dir:      Folder to scan for source images.
        output_dir:     Folder for results.
    """

    # Quantization
    mode: str = "bw"
    output_width: int = 600
    block_size: int = 4
    threshold: int = 128
    blur: int = 0
    color_depth: int = 8
    dither_method: str = "floyd"

    # Palette
    palette_method: str = "median_cut"
    palette: tuple[str, ...] | None = None
    palette_size: int = 5
    seed: int | None = None

    # Output
    output_format: str = "png"
    save_svg: bool = True
    save_palette: bool = True
    save_comparison: bool = False

    # Paths
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".gif"}
    )

    @property
    def user_offset(self) -> int:
        """Brightness offset added before thresholding / matching."""
        return self.threshold - 128

    def validated(self) -> BitmapConfig:
        """Return a copy with numeric fields clamped to their ranges.

        Raises:
            ValueError: on an unknown mode, dither method, palette method,
                an empty explicit palette or a malformed hex colour.
        """
        mode = self.mode.lower()
        if mode not in MODES:
            msg = f"Unknown mode '{self.mode}'. Available: {', '.join(MODES)}"
            raise ValueError(msg)

        dither = self.dither_method.lower()
        if dither not in DITHER_METHODS:
            available = ", ".join(DITHER_METHODS)
            msg = f"Unknown dither method '{self.dither_method}'. Available: {available}"
            raise ValueError(msg)

        method = self.palette_method.lower()
        if method not in PALETTE_METHODS:
            available = ", ".join(PALETTE_METHODS)
            msg = f"Unknown palette method '{self.palette_method}'. Available: {available}"
            raise ValueError(msg)

        palette = self.palette
        if palette is not None:
            if len(palette) == 0:
                msg = "An explicit palette needs at least one colour"
                raise ValueError(msg)
            palette = tuple(normalize_hex(c) for c in palette)

        clamped = {
            name: _clamp(getattr(self, name), lo, hi)
            for name, (lo, hi) in RANGES.items()
        }
        return replace(
            self,
            mode=mode,
            dither_method=dither,
            palette_method=method,
            palette=palette,
            **clamped,
        )
