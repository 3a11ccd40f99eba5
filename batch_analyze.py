#!/usr/bin/env python3
"""Batch generate themes for a directory of images (JSON + HTML per image)."""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from analyze import ThemeData, render_html, theme_from_image, theme_to_dict
from palette_selection import VariantMode
from roles import ContrastLevel, Tone

IMAGE_SUFFIXES = {'.jpg', '.jpeg', '.png', '.webp'}


def find_images(directory: Path) -> list[Path]:
    """Image files directly inside directory, sorted by name."""
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES)


def write_theme(image_path: Path, output_dir: Path,
                tone: Optional[Tone] = None,
                variant: VariantMode = VariantMode.BALANCED,
                contrast_level: Optional[ContrastLevel] = None) -> ThemeData:
    """Generate one theme and write {stem}-theme.json and {stem}-theme.html."""
    selection, theme = theme_from_image(str(image_path), tone=tone, variant=variant,
                                        contrast_level=contrast_level)
    outputs = {
        output_dir / f"{image_path.stem}-theme.json": json.dumps(theme_to_dict(theme, selection), indent=2),
        output_dir / f"{image_path.stem}-theme.html": render_html(selection, theme, str(image_path)),
    }
    for path, text in outputs.items():
        if path.exists():
            print(f"  Warning: Overwriting {path.name}", file=sys.stderr)
        path.write_text(text)
    return theme


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch generate themes for a directory of images.'
    )
    parser.add_argument('--input', '-i', required=True, help='Directory containing images to analyze')
    parser.add_argument('--output', '-o', required=True, help='Directory for JSON and HTML output files')
    parser.add_argument('--tone', choices=[t.value for t in Tone], help='Force dark or light')
    parser.add_argument('--variant', choices=[v.value for v in VariantMode], default=VariantMode.BALANCED.value,
                        help='Surface selection policy')
    parser.add_argument('--contrast', choices=[c.value for c in ContrastLevel],
                        help='Spacing between surface roles (default: medium)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log pipeline decisions')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    input_dir = Path(args.input)
    output_dir = Path(args.output)
    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)
    output_dir.mkdir(parents=True, exist_ok=True)

    options = dict(
        tone=Tone(args.tone) if args.tone else None,
        variant=VariantMode(args.variant),
        contrast_level=ContrastLevel(args.contrast) if args.contrast else None,
    )
    failed = []
    flagged = 0
    batch_start = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        prefix = f"[{i}/{len(images)}] {image_path.name}"
        start = time.perf_counter()
        try:
            theme = write_theme(image_path, output_dir, **options)
        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            print(f"{prefix} → ERROR: {error_msg}", file=sys.stderr)
            failed.append((image_path.name, error_msg))
            continue

        note = ''
        if theme.contrast_issues:
            flagged += 1
            note = f", {len(theme.contrast_issues)} contrast issue(s)"
        print(f"{prefix} → {theme.roles.tone.value} {theme.roles.surface_base} "
              f"({time.perf_counter() - start:.2f}s{note})")

    elapsed = time.perf_counter() - batch_start
    succeeded = len(images) - len(failed)

    print()
    print(f"Completed: {succeeded}/{len(images)} succeeded in {elapsed:.2f}s")
    if succeeded:
        print(f"Average: {elapsed / succeeded:.2f}s per image")
    if flagged:
        print(f"Themes with unresolved contrast issues: {flagged}")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name, error in failed:
            print(f"  - {name}: {error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
