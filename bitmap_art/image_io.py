"""Image loading, raster/vector encoders and comparison-grid generation."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from bitmap_art.color_utils import palette_to_array
from bitmap_art.pipeline import BitmapResult

# Raster formats written with transparency intact
ALPHA_SUFFIXES = frozenset({".png", ".webp", ".tif", ".tiff", ".gif"})


def load_image(path: str | Path) -> Image.Image:
    """Load an image from disk as RGBA (transparency preserved)."""
    with Image.open(path) as img:
        return img.convert("RGBA")


def save_png(result: BitmapResult, path: str | Path) -> None:
    """Save the hard-edged preview of *result*.

    The format follows the file suffix. Formats without an alpha channel
    (JPEG, BMP, ...) get transparent cells flattened onto white.
    """
    preview = result.preview()
    if Path(path).suffix.lower() not in ALPHA_SUFFIXES:
        preview = flatten(preview)
    preview.save(path)


def flatten(image: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Composite an RGBA image onto an opaque background."""
    canvas = Image.new("RGB", image.size, background)
    canvas.paste(image, mask=image.getchannel("A"))
    return canvas


def group_by_color(pixels: np.ndarray) -> dict[str, list[tuple[int, int]]]:
    """Bucket opaque pixel coordinates by exact ``#RRGGBB`` colour.

    Groups appear in the order their colour is first met in raster order;
    coordinates within a group are in raster order too.
    """
    groups: dict[str, list[tuple[int, int]]] = {}
    for y, row in enumerate(pixels.tolist()):
        for x, (r, g, b, a) in enumerate(row):
            if a == 0:
                continue
            key = f"#{r:02X}{g:02X}{b:02X}"
            groups.setdefault(key, []).append((x, y))
    return groups


def to_svg(pixels: np.ndarray) -> str:
    """Render an RGBA buffer as an SVG of unit squares, one group per colour."""
    h, w = pixels.shape[:2]
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {w} {h}" '
        'shape-rendering="crispEdges">'
    ]
    for color, coords in group_by_color(pixels).items():
        rects = "".join(
            f'<rect x="{x}" y="{y}" width="1" height="1" />' for x, y in coords
        )
        parts.append(f'<g fill="{color}">{rects}</g>')
    parts.append("</svg>")
    return "".join(parts)


def save_svg(result: BitmapResult, path: str | Path) -> None:
    Path(path).write_text(to_svg(result.pixels), encoding="utf-8")


def save_palette_swatch(
    palette: tuple[str, ...] | list[str],
    path: str | Path,
    swatch: int = 48,
) -> None:
    """Save the palette as a strip of square swatches."""
    rgb = palette_to_array(palette)
    strip = Image.fromarray(rgb.reshape(1, -1, 3))
    strip = strip.resize((swatch * len(rgb), swatch), Image.NEAREST)
    strip.save(path)


def make_comparison_grid(
    source: Image.Image,
    result: BitmapResult,
    output_path: str | Path,
) -> None:
    """Create a 3-panel comparison: Original | Reduced | Bitmap.

    All panels share the preview size of *result*.
    """
    panel_w, panel_h = result.preview_size
    label_height = 36

    original = source.convert("RGBA").resize((panel_w, panel_h), Image.LANCZOS)
    reduced = Image.fromarray(result.reduced).resize((panel_w, panel_h), Image.NEAREST)
    bitmap = result.preview()

    panels = [original, reduced, bitmap]
    labels = [
        "Original",
        f"Reduced {result.width}x{result.height}",
        f"Bitmap {result.config.dither_method}",
    ]

    gap = 8
    total_w = len(panels) * panel_w + (len(panels) - 1) * gap
    total_h = panel_h + label_height

    canvas = Image.new("RGB", (total_w, total_h), (30, 30, 30))
    draw = ImageDraw.Draw(canvas)

    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 18,
        )
    except OSError:
        font = ImageFont.load_default()

    for i, (panel, label) in enumerate(zip(panels, labels, strict=False)):
        x = i * (panel_w + gap)
        canvas.paste(panel, (x, label_height), panel)

        bbox = draw.textbbox((0, 0), label, font=font)
        text_w = bbox[2] - bbox[0]
        tx = x + (panel_w - text_w) // 2
        draw.text((tx, 6), label, fill=(220, 220, 220), font=font)

    canvas.save(output_path)
