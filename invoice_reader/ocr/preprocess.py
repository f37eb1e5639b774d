"""Image preprocessing before local OCR.

Grayscale with contrast stretching and binarization, both optional. Any
failure falls back to the untouched image.
"""

import io
import logging
from pathlib import Path

from PIL import Image, ImageOps

from invoice_reader.shared.config import Settings

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff"}

# Grayscale cut-off for binarization
THRESHOLD = 128


def is_image(path: Path) -> bool:
    """Check whether a file has a supported image extension."""
    return path.suffix.lower() in IMAGE_EXTENSIONS


def preprocess_image(image: Image.Image, settings: Settings) -> Image.Image:
    """Apply the preprocessing steps enabled in settings.

    Args:
        image: Loaded image
        settings: Settings with image_enhance and image_threshold flags

    Returns:
        Processed image, or the original if processing failed
    """
    if not settings.image_enhance and not settings.image_threshold:
        return image

    try:
        processed = image
        if settings.image_enhance:
            processed = ImageOps.autocontrast(processed.convert("L"))
        if settings.image_threshold:
            processed = processed.convert("L").point(lambda x: 255 if x > THRESHOLD else 0, "L")
        return processed
    except Exception as e:
        logger.warning(f"Image preprocessing failed, using original image: {e}")
        return image


def load_image(data: bytes) -> Image.Image:
    """Decode image bytes into a Pillow image."""
    image = Image.open(io.BytesIO(data))
    image.load()
    return image
