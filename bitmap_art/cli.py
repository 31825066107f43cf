"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from bitmap_art.color_utils import quality_metric
from bitmap_art.config import BitmapConfig
from bitmap_art.image_io import (
    load_image,
    make_comparison_grid,
    save_palette_swatch,
    save_png,
    save_svg,
)
from bitmap_art.kernels import DITHER_METHODS
from bitmap_art.palette import (
    PALETTE_METHODS,
    extract_palette_from_image,
    get_preset,
    parse_palette,
)
from bitmap_art.pipeline import BitmapResult
from bitmap_art.session import RenderSession

app = typer.Typer(
    name="bitmap-art",
    help="Turn any image into dithered, reduced-palette bitmap art.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def _resolve_palette(palette: str | None, preset: str | None) -> tuple[str, ...] | None:
    try:
        if palette:
            return parse_palette(palette)
        if preset:
            return get_preset(preset)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return None


def _build_config(**kwargs: object) -> BitmapConfig:
    try:
        return BitmapConfig(**kwargs).validated()  # type: ignore[arg-type]
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _swatches(palette: tuple[str, ...] | list[str]) -> Text:
    text = Text()
    for color in palette:
        text.append("    ", style=f"on {color}")
        text.append(f" {color}  ")
    return text


def _write_outputs(
    source_path: Path,
    result: BitmapResult,
    cfg: BitmapConfig,
    stem: str,
) -> Path:
    out_dir = cfg.output_dir
    bitmap_path = out_dir / f"{stem}_bitmap.{cfg.output_format}"
    save_png(result, bitmap_path)
    if cfg.save_svg:
        save_svg(result, out_dir / f"{stem}_bitmap.svg")
    if cfg.save_palette and cfg.mode == "color":
        save_palette_swatch(result.palette, out_dir / f"{stem}_palette.{cfg.output_format}")
    if cfg.save_comparison:
        make_comparison_grid(
            load_image(source_path), result,
            out_dir / f"{stem}_comparison.{cfg.output_format}",
        )
    return bitmap_path


# Defaults come from BitmapConfig - single source of truth
_DEFAULTS = BitmapConfig()

_DITHER_HELP = "One of: " + ", ".join(DITHER_METHODS)
_PALETTE_HELP = "One of: " + ", ".join(PALETTE_METHODS)


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    mode: str = typer.Option(_DEFAULTS.mode, "--mode", "-m", help="'bw' or 'color'"),
    width: int = typer.Option(
        _DEFAULTS.output_width, "--width", "-w", help="Output width in pixels (100-2000)",
    ),
    block: int = typer.Option(
        _DEFAULTS.block_size, "--block", "-b", help="Bit size / blockiness (1-64)",
    ),
    threshold: int = typer.Option(
        _DEFAULTS.threshold, "--threshold", "-t", help="Brightness threshold (0-255)",
    ),
    blur: int = typer.Option(_DEFAULTS.blur, "--blur", help="Signal blur radius (0-100)"),
    depth: int = typer.Option(
        _DEFAULTS.color_depth, "--depth", "-d", help="Bits per channel (1-8)",
    ),
    dither: str = typer.Option(_DEFAULTS.dither_method, "--dither", help=_DITHER_HELP),
    palette_method: str = typer.Option(
        _DEFAULTS.palette_method, "--palette-method", help=_PALETTE_HELP,
    ),
    palette_size: int = typer.Option(
        _DEFAULTS.palette_size, "--colors", "-k", help="Colours to extract",
    ),
    palette: str | None = typer.Option(
        None, "--palette", "-p",
        help="Comma-separated hex colours, e.g. '#0F380F,#9BBC0F'",
    ),
    preset: str | None = typer.Option(
        None, "--preset", help="Named palette preset (e.g. gameboy, c64)",
    ),
    seed: int | None = typer.Option(
        _DEFAULTS.seed, "--seed", "-s", help="Random seed (None = random)",
    ),
    svg: bool = typer.Option(_DEFAULTS.save_svg, "--svg/--no-svg", help="Also write SVG"),
    comparison: bool = typer.Option(
        _DEFAULTS.save_comparison, "--comparison/--no-comparison",
        help="Write a side-by-side comparison grid",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Process all images in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)
    logger = logging.getLogger("bitmap_art")

    cfg = _build_config(
        mode=mode,
        output_width=width,
        block_size=block,
        threshold=threshold,
        blur=blur,
        color_depth=depth,
        dither_method=dither,
        palette_method=palette_method,
        palette=_resolve_palette(palette, preset),
        palette_size=palette_size,
        seed=seed,
        save_svg=svg,
        save_comparison=comparison,
        input_dir=input_dir,
        output_dir=output_dir,
    )

    input_dir.mkdir(exist_ok=True)
    output_dir.mkdir(exist_ok=True)

    images = _collect_images(input_dir, cfg.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .jpg / .png / ... files there and re-run.\n")
        raise typer.Exit(0)

    console.print(Panel.fit(
        f"[bold]BITMAP ART[/bold]\n"
        f"Mode: {cfg.mode}  |  Width: {cfg.output_width}  |  Block: {cfg.block_size}\n"
        f"Dither: {DITHER_METHODS[cfg.dither_method]}  |  Depth: {cfg.color_depth} bit\n"
        f"Palette: {cfg.palette_method if cfg.palette is None else 'explicit'}"
        f"  |  Images: {len(images)}",
        border_style="cyan",
    ))

    session = RenderSession()
    failures = 0
    for idx, img_path in enumerate(images, 1):
        console.rule(f"[bold cyan][{idx}/{len(images)}] {img_path.name}[/bold cyan]")
        t_total = time.perf_counter()

        try:
            session.load(load_image(img_path))
        except (OSError, ValueError) as exc:
            failures += 1
            logger.error("Skipping %s: cannot read image (%s)", img_path.name, exc)
            continue

        result = session.render_now(cfg)
        if result is None:
            failures += 1
            logger.error("Skipping %s: %s", img_path.name, session.last_error)
            continue

        if cfg.mode == "color":
            console.print(_swatches(result.palette))

        bitmap_path = _write_outputs(img_path, result, cfg, img_path.stem)
        err = quality_metric(result.reduced, result.pixels)
        elapsed = time.perf_counter() - t_total

        console.print(
            f"  [green]✓[/green] {bitmap_path.name}  "
            f"[dim]{result.width}x{result.height} cells  error={err:.1f}"
            f"  time={elapsed:.1f}s[/dim]"
        )

    style = "green" if failures == 0 else "yellow"
    console.print(Panel.fit(
        f"[bold {style}]DONE[/bold {style}] - {len(images) - failures}/{len(images)}"
        f" images in [bold]{output_dir}/[/bold]",
        border_style=style,
    ))


# -- single-image command ----------------------------------------------

@app.command()
def single(
    source: Path = typer.Argument(..., help="Path to the source image"),
    output: Path = typer.Option(Path("output/bitmap.png"), "--output", "-o"),
    mode: str = typer.Option(_DEFAULTS.mode, "--mode", "-m"),
    width: int = typer.Option(_DEFAULTS.output_width, "--width", "-w"),
    block: int = typer.Option(_DEFAULTS.block_size, "--block", "-b"),
    threshold: int = typer.Option(_DEFAULTS.threshold, "--threshold", "-t"),
    blur: int = typer.Option(_DEFAULTS.blur, "--blur"),
    depth: int = typer.Option(_DEFAULTS.color_depth, "--depth", "-d"),
    dither: str = typer.Option(_DEFAULTS.dither_method, "--dither", help=_DITHER_HELP),
    palette_method: str = typer.Option(
        _DEFAULTS.palette_method, "--palette-method", help=_PALETTE_HELP,
    ),
    palette_size: int = typer.Option(_DEFAULTS.palette_size, "--colors", "-k"),
    palette: str | None = typer.Option(None, "--palette", "-p"),
    preset: str | None = typer.Option(None, "--preset"),
    seed: int | None = typer.Option(_DEFAULTS.seed, "--seed", "-s"),
    svg: bool = typer.Option(_DEFAULTS.save_svg, "--svg/--no-svg"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Process a single image."""
    _setup_logging(verbose)

    cfg = _build_config(
        mode=mode,
        output_width=width,
        block_size=block,
        threshold=threshold,
        blur=blur,
        color_depth=depth,
        dither_method=dither,
        palette_method=palette_method,
        palette=_resolve_palette(palette, preset),
        palette_size=palette_size,
        seed=seed,
        save_svg=svg,
    )

    output.parent.mkdir(parents=True, exist_ok=True)

    try:
        image = load_image(source)
    except (OSError, ValueError) as exc:
        console.print(f"[red]✗[/red] Cannot read {source}: {exc}")
        raise typer.Exit(1) from exc

    session = RenderSession()
    session.load(image)
    result = session.render_now(cfg)
    if result is None:
        console.print(f"[red]✗[/red] Processing failed: {session.last_error}")
        raise typer.Exit(1)

    save_png(result, output)
    if cfg.save_svg:
        save_svg(result, output.with_suffix(".svg"))

    err = quality_metric(result.reduced, result.pixels)
    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{result.width}x{result.height} cells  error={err:.1f}[/dim]"
    )


# -- palette command ---------------------------------------------------

@app.command("palette")
def palette_cmd(
    source: Path = typer.Argument(..., help="Image to extract colours from"),
    method: str = typer.Option(
        _DEFAULTS.palette_method, "--method", help=_PALETTE_HELP,
    ),
    colors: int = typer.Option(_DEFAULTS.palette_size, "--colors", "-k"),
    seed: int | None = typer.Option(_DEFAULTS.seed, "--seed", "-s"),
    swatch: Path | None = typer.Option(None, "--swatch", help="Save a swatch image"),
) -> None:
    """Extract and print a palette; pass it back with --palette."""
    try:
        extracted = extract_palette_from_image(
            load_image(source), method, max(1, colors), seed=seed,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    console.print(_swatches(extracted))
    console.print(",".join(extracted), highlight=False)
    if swatch is not None:
        save_palette_swatch(extracted, swatch)


if __name__ == "__main__":
    app()
