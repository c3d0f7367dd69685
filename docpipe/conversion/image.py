"""Image file normalization utilities."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageChops, UnidentifiedImageError

from ..exceptions import FileFormatError

logger = logging.getLogger(__name__)


def normalize_image(image_path: Path, output_dir: Path) -> Path:
    """Copy an image into the staging directory as an RGB PNG.

    Args:
        image_path: Source image (JPEG, PNG, TIFF, WebP, ...)
        output_dir: Directory receiving the normalized image

    Returns:
        Path of the PNG page image

    Raises:
        FileFormatError: If the file is not a readable image
    """
    try:
        with Image.open(image_path) as image:
            converted = image.convert("RGB") if image.mode not in ("RGB", "L") else image.copy()
    except (UnidentifiedImageError, OSError) as e:
        raise FileFormatError(f"Could not load image: {image_path}") from e

    output_path = output_dir / f"{image_path.stem}_page_1.png"
    converted.save(output_path, format="PNG")
    logger.info("Loaded image: %s, size: %s", image_path.name, converted.size)
    return output_path


def trim_edges(image_path: Path) -> bool:
    """Crop uniform borders (the corner pixel's colour) from a page image in place.

    Returns:
        True if the image was cropped

    Example:
        >>> trim_edges(Path("/tmp/run/doc_page_1.png"))
        True
    """
    with Image.open(image_path) as image:
        rgb = image.convert("RGB")

    background = Image.new("RGB", rgb.size, rgb.getpixel((0, 0)))
    bbox = ImageChops.difference(rgb, background).getbbox()
    if bbox is None or bbox == (0, 0, *rgb.size):
        return False

    rgb.crop(bbox).save(image_path, format="PNG")
    logger.debug("Trimmed edges of %s to %s", image_path.name, bbox)
    return True
