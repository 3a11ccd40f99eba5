#!/usr/bin/env python3
"""Profile the theme pipeline to identify performance bottlenecks."""

import cProfile
import io
import pstats
import sys
import time
from pathlib import Path

from analyze import ThemeGenerator, render
from extract_colors import build_histogram, extract_colors, load_pixels
from palette_selection import select_palette

RULE = '=' * 60


def _timed(timings: dict, stage: str, func, *args):
    start = time.perf_counter()
    result = func(*args)
    timings[stage] = time.perf_counter() - start
    return result


def profile_image(image_path: str, verbose: bool = True):
    """Time each pipeline stage for a single image.

    Returns:
        Tuple of (timings by stage including 'total', extracted colors)
    """
    if verbose:
        print(f"\n{RULE}\nProfiling: {Path(image_path).name}\n{RULE}")

    timings = {}
    pixels = _timed(timings, 'load_pixels', load_pixels, image_path)
    if verbose:
        hist = build_histogram(pixels)
        print(f"  Size: {pixels.shape[1]}x{pixels.shape[0]}")
        print(f"  Opaque pixels: {hist.total_pixels:,}")
        print(f"  Quantized colors: {len(hist.counts):,}")

    colors = _timed(timings, 'extract_colors', extract_colors, pixels)
    selection = _timed(timings, 'select_palette', select_palette, colors)
    theme = _timed(timings, 'generate_theme', ThemeGenerator().generate, selection.roles)
    _timed(timings, 'render', render, selection, theme)

    total = sum(timings.values())
    timings['total'] = total

    if verbose:
        print(f"  Extracted colors: {len(colors)}")
        print(f"  Parameters: {len(theme.parameters)}")
        print("\nStage timings:")
        for stage, t in timings.items():
            pct = (t / total * 100) if stage != 'total' else 100
            print(f"  {stage:20s}: {t:6.3f}s ({pct:5.1f}%)")

    return timings, colors


def detailed_profile(image_path: str, top: int = 30):
    """cProfile extract_colors (the main compute stage), loading outside the profile."""
    print(f"\n{RULE}\nDetailed profile of extract_colors()\n{RULE}")
    pixels = load_pixels(image_path)

    profiler = cProfile.Profile()
    profiler.enable()
    colors = extract_colors(pixels)
    profiler.disable()

    stream = io.StringIO()
    pstats.Stats(profiler, stream=stream).sort_stats('cumulative').print_stats(top)
    print(stream.getvalue())
    return colors


def main(argv=None):
    images = [Path(p) for p in (argv if argv is not None else sys.argv[1:])]

    if not images:
        print("Usage: profile_analyze.py IMAGE [IMAGE ...]", file=sys.stderr)
        sys.exit(1)

    missing = [p for p in images if not p.is_file()]
    if missing:
        print(f"Error: Image not found: {missing[0]}", file=sys.stderr)
        sys.exit(1)

    print(f"Profiling {len(images)} image(s)")

    all_timings = []
    for img in images:
        timings, colors = profile_image(str(img))
        all_timings.append((img.name, timings, len(colors)))

    print(f"\n{RULE}\nSUMMARY\n{RULE}")
    print(f"{'Image':<35} {'Colors':>8} {'Extract':>9} {'Total':>8}")
    print("-" * 60)
    for name, timings, count in all_timings:
        print(f"{name:<35} {count:>8} {timings['extract_colors']:>8.3f}s {timings['total']:>7.3f}s")

    # Detailed profile on first image
    detailed_profile(str(images[0]))


if __name__ == '__main__':
    main()
