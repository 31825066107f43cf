"""
Bitmap Art
==========

Convert a continuous-tone image into reduced-palette, blocky bitmap art.
The engine ships:

- **Palette extraction** (median cut, k-means, histogram and four more)
- **Redmean colour matching**
- **Dithering**: error diffusion, Bayer ordered dither and noise
"""

__version__ = "1.0.0"

from bitmap_art.color_utils import nearest_color, redmean_distance
from bitmap_art.config import BitmapConfig
from bitmap_art.image_io import load_image, save_png, save_svg, to_svg
from bitmap_art.kernels import DITHER_METHODS
from bitmap_art.palette import (
    PALETTE_METHODS,
    PALETTE_PRESETS,
    extract_palette,
    extract_palette_from_image,
)
from bitmap_art.pipeline import BitmapResult, RenderCancelled, render
from bitmap_art.session import RenderSession

__all__ = [
    "DITHER_METHODS",
    "PALETTE_METHODS",
    "PALETTE_PRESETS",
    "BitmapConfig",
    "BitmapResult",
    "RenderCancelled",
    "RenderSession",
    "extract_palette",
    "extract_palette_from_image",
    "load_image",
    "nearest_color",
    "redmean_distance",
    "render",
    "save_png",
    "save_svg",
    "to_svg",
]
