#!/usr/bin/env python3
"""
Extract a small ranked palette from an image with median-cut quantization.

Pixels are quantized per channel, grouped into a frequency map, split into
buckets by median cut and finally topped up with saturated outliers that
population-weighted clustering would otherwise average away.
"""

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

from color_math import HSL, RGB, hue_distance, rgb_array_to_hsl, rgb_to_hex, rgb_to_hsl
from errors import InvalidInput

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_MAX_SIZE = 400  # Longest side after downscaling
DEFAULT_COLOR_COUNT = 10
DEFAULT_QUANTIZATION_BITS = 5
MIN_ALPHA = 128  # Pixels below this alpha are ignored

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

# Outlier rescue
MIN_OUTLIER_SATURATION = 50
MAX_OUTLIERS = 3
OUTLIER_HUE_RANGE = 30  # Degrees within which a bucket represents a color
OUTLIER_SATURATION_RANGE = 20


# =============================================================================
# Data
# =============================================================================

@dataclass(frozen=True)
class ExtractedColor:
    """A palette color with its share of the image."""
    hex: str
    rgb: RGB
    hsl: HSL
    population: int  # Opaque pixels in the bucket
    percentage: float  # Share of opaque pixels, 0-100
    location: tuple  # (x, y) centroid, normalized 0-1


@dataclass
class ColorHistogram:
    """Quantized colors of one image, as parallel arrays."""
    rgb: np.ndarray  # (n, 3) quantized channel values
    counts: np.ndarray  # (n,) pixel counts
    location_sums: np.ndarray  # (n, 2) summed normalized (x, y)
    total_pixels: int  # Opaque pixels


# =============================================================================
# Loading
# =============================================================================

def load_pixels(image_path: str, max_size: int = DEFAULT_MAX_SIZE) -> np.ndarray:
    """
    Load an image as an RGBA array, downscaled so its longest side is at most max_size.

    Raises:
        FileNotFoundError: If image file doesn't exist
        InvalidInput: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except Exception as e:
        raise InvalidInput(f"Could not open image: {e}")

    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise InvalidInput(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise InvalidInput(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )

    img = img.convert('RGBA')
    if max(width, height) > max_size:
        scale = max_size / max(width, height)
        new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    return np.array(img)


# =============================================================================
# Quantization
# =============================================================================

def quantize(values: np.ndarray, bits: int) -> np.ndarray:
    """Reduce 8-bit channel values to `bits` bits, mapped to the center of each step."""
    values = values.astype(np.int64)
    shift = 8 - bits
    if shift == 0:
        return values
    return ((values >> shift) << shift) + (1 << (shift - 1))


def build_histogram(pixels: np.ndarray, quantization_bits: int = DEFAULT_QUANTIZATION_BITS) -> ColorHistogram:
    """
    Count quantized colors in an (H, W, 4) RGBA or (H, W, 3) RGB buffer.

    Raises:
        InvalidInput: On a malformed buffer or when no pixel is opaque
    """
    if not 1 <= quantization_bits <= 8:
        raise InvalidInput(f"quantization_bits must be 1-8, got {quantization_bits}")

    arr = np.asarray(pixels)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4) or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InvalidInput(f"Expected an (H, W, 3|4) pixel buffer, got shape {arr.shape}")

    h, w = arr.shape[:2]
    flat = arr.reshape(-1, arr.shape[2])
    if arr.shape[2] == 4:
        opaque = flat[:, 3] >= MIN_ALPHA
    else:
        opaque = np.ones(len(flat), dtype=bool)

    total = int(opaque.sum())
    if total == 0:
        raise InvalidInput("Image has no opaque pixels")

    q = quantize(flat[opaque, :3], quantization_bits)
    keys = (q[:, 0] << 16) | (q[:, 1] << 8) | q[:, 2]
    unique_keys, inverse, counts = np.unique(keys, return_inverse=True, return_counts=True)
    inverse = inverse.ravel()

    # Normalized pixel coordinates for centroid tracking
    rows, cols = np.divmod(np.flatnonzero(opaque), w)
    x_sums = np.bincount(inverse, weights=cols / w, minlength=len(unique_keys))
    y_sums = np.bincount(inverse, weights=rows / h, minlength=len(unique_keys))

    rgb = np.column_stack([(unique_keys >> 16) & 0xFF, (unique_keys >> 8) & 0xFF, unique_keys & 0xFF])
    return ColorHistogram(
        rgb=rgb,
        counts=counts.astype(np.int64),
        location_sums=np.column_stack([x_sums, y_sums]),
        total_pixels=total,
    )


# =============================================================================
# Median Cut
# =============================================================================

def _largest_range_channel(rgb: np.ndarray) -> int:
    """Channel index with the widest value range; R, then G, then B on ties."""
    ranges = rgb.max(axis=0) - rgb.min(axis=0)
    return int(np.argmax(ranges))


def split_bucket(hist: ColorHistogram, members: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Split a bucket on its widest channel where cumulative population reaches half."""
    channel = _largest_range_channel(hist.rgb[members])
    ordered = members[np.argsort(hist.rgb[members, channel], kind='stable')]

    cumulative = np.cumsum(hist.counts[ordered])
    reached = int(np.argmax(cumulative >= cumulative[-1] / 2))
    split = max(1, reached)
    return ordered[:split], ordered[split:]


def median_cut(hist: ColorHistogram, color_count: int) -> list[np.ndarray]:
    """
    Partition histogram indices into at most color_count buckets.

    Always splits the bucket holding the most distinct colors (first one on
    ties); stops early once every bucket holds a single color.
    """
    buckets = [np.arange(len(hist.counts))]

    while len(buckets) < color_count:
        sizes = [len(b) for b in buckets]
        index = int(np.argmax(sizes))
        if sizes[index] <= 1:
            break
        left, right = split_bucket(hist, buckets[index])
        buckets[index:index + 1] = [left, right]

    return buckets


def bucket_average(hist: ColorHistogram, members: np.ndarray) -> tuple[RGB, int, tuple]:
    """Population-weighted average color, population and centroid of a bucket."""
    counts = hist.counts[members]
    total = int(counts.sum())
    mean = (hist.rgb[members] * counts[:, None]).sum(axis=0) / total
    rgb = RGB(*(int(v) for v in np.floor(mean + 0.5)))
    x, y = hist.location_sums[members].sum(axis=0) / total
    return rgb, total, (float(x), float(y))


# =============================================================================
# Outlier Rescue
# =============================================================================

def rescue_saturated_outliers(hist: ColorHistogram, buckets: list[np.ndarray],
                              max_outliers: int = MAX_OUTLIERS) -> list[np.ndarray]:
    """
    Promote small, saturated colors that no bucket average represents.

    A color is represented when some bucket average is within 30 degrees of
    hue and 20 points of saturation. Candidates are ranked by saturation
    weighted by log(population + 1); promotions keep 30 degrees apart. Each
    promoted color moves out of its source bucket into its own, so the total
    population is unchanged.
    """
    hsl = rgb_array_to_hsl(hist.rgb)
    hue, sat = hsl[:, 0], hsl[:, 1]

    represented = np.zeros(len(hue), dtype=bool)
    for members in buckets:
        avg = rgb_to_hsl(*bucket_average(hist, members)[0])
        diff = np.abs(hue - avg.h)
        dist = np.minimum(diff, 360 - diff)
        represented |= (dist < OUTLIER_HUE_RANGE) & (np.abs(sat - avg.s) < OUTLIER_SATURATION_RANGE)

    candidates = np.flatnonzero((sat >= MIN_OUTLIER_SATURATION) & ~represented)
    if len(candidates) == 0:
        return buckets

    scores = sat[candidates] * np.log(hist.counts[candidates] + 1)
    candidates = candidates[np.argsort(-scores, kind='stable')]

    promoted = []
    for idx in candidates:
        if len(promoted) >= max_outliers:
            break
        if any(hue_distance(hue[idx], hue[p]) < OUTLIER_HUE_RANGE for p in promoted):
            continue
        promoted.append(int(idx))

    logger.debug("Rescued %d saturated outlier(s) from %d candidates", len(promoted), len(candidates))

    remaining = [b[~np.isin(b, promoted)] for b in buckets]
    return [b for b in remaining if len(b) > 0] + [np.array([p]) for p in promoted]


# =============================================================================
# Extraction
# =============================================================================

def extract_colors(pixels: np.ndarray,
                   color_count: int = DEFAULT_COLOR_COUNT,
                   quantization_bits: int = DEFAULT_QUANTIZATION_BITS,
                   rescue_outliers: bool = True) -> list[ExtractedColor]:
    """
    Reduce a pixel buffer to its dominant colors.

    Args:
        pixels: (H, W, 4) RGBA or (H, W, 3) RGB uint8 array, already downscaled
        color_count: Target number of median-cut buckets
        quantization_bits: Bits kept per channel before counting
        rescue_outliers: Add up to 3 saturated colors the buckets missed

    Returns:
        Extracted colors sorted by population descending (stable on ties).

    Raises:
        InvalidInput: If the buffer has no opaque pixels or a bad shape
    """
    if color_count < 1:
        raise InvalidInput(f"color_count must be at least 1, got {color_count}")

    hist = build_histogram(pixels, quantization_bits)
    buckets = median_cut(hist, color_count)
    if rescue_outliers:
        buckets = rescue_saturated_outliers(hist, buckets)

    colors = []
    for members in buckets:
        rgb, population, location = bucket_average(hist, members)
        colors.append(ExtractedColor(
            hex=rgb_to_hex(*rgb),
            rgb=rgb,
            hsl=rgb_to_hsl(*rgb),
            population=population,
            percentage=population / hist.total_pixels * 100,
            location=location,
        ))

    logger.debug("Quantized %d opaque pixels into %d colors, %d buckets",
                 hist.total_pixels, len(hist.counts), len(colors))

    return sorted(colors, key=lambda c: -c.population)


def extract_colors_from_image(image_path: str, max_size: int = DEFAULT_MAX_SIZE,
                              **options) -> list[ExtractedColor]:
    """Load, downscale and extract in one step."""
    return extract_colors(load_pixels(image_path, max_size), **options)


# =============================================================================
# Visualization
# =============================================================================

def visualize_colors(colors: list[ExtractedColor], output_path: str) -> None:
    """
    Create a swatch image of the extracted colors with their percentages.

    Args:
        colors: Output of extract_colors()
        output_path: Path to save the output image
    """
    from PIL import ImageDraw

    swatch_size = 80
    padding = 10
    text_height = 25
    cols = max(1, min(len(colors), 6))
    rows = (len(colors) + cols - 1) // cols

    img_width = cols * (swatch_size + padding) + padding
    img_height = max(1, rows) * (swatch_size + text_height + padding) + padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    for i, color in enumerate(colors):
        row = i // cols
        col = i % cols

        x = padding + col * (swatch_size + padding)
        y = padding + row * (swatch_size + text_height + padding)

        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=tuple(color.rgb))

        # Center text under swatch
        text = f"{color.percentage:.1f}%"
        bbox = draw.textbbox((0, 0), text)
        text_width = bbox[2] - bbox[0]
        text_x = x + (swatch_size - text_width) // 2
        draw.text((text_x, y + swatch_size + 4), text, fill=(0, 0, 0))

    img.save(output_path)
    logger.info("Saved swatches to %s", output_path)


if __name__ == '__main__':
    import argparse
    import sys

    parser = argparse.ArgumentParser(description='Extract the dominant colors of an image.')
    parser.add_argument('--input', '-i', required=True, help='Path to the image file')
    parser.add_argument('--colors', '-n', type=int, default=DEFAULT_COLOR_COUNT,
                        help='Number of median-cut buckets')
    parser.add_argument('--no-outliers', action='store_true',
                        help='Skip the saturated outlier rescue pass')
    parser.add_argument('--swatches', help='Write a swatch PNG to this path')
    args = parser.parse_args()

    try:
        extracted = extract_colors_from_image(args.input, color_count=args.colors,
                                              rescue_outliers=not args.no_outliers)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except InvalidInput as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        sys.exit(1)

    for c in extracted:
        print(f"{c.hex}  {c.percentage:5.1f}%  HSL({c.hsl.h:.0f}, {c.hsl.s:.0f}, {c.hsl.l:.0f})  "
              f"at ({c.location[0]:.2f}, {c.location[1]:.2f})")

    if args.swatches:
        visualize_colors(extracted, args.swatches)
        print(f"Wrote: {args.swatches}")
