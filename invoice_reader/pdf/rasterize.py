"""Render PDF pages to PNG images for OCR."""

import io
import logging
from pathlib import Path

from pdf2image import convert_from_path
from PIL import Image

logger = logging.getLogger(__name__)


def rasterize_pdf(path: Path, dpi: int, scale: float = 1.0) -> list[bytes]:
    """Render every page of a PDF.

    Args:
        path: Path to PDF file
        dpi: Rendering resolution
        scale: Extra scale factor applied after rendering

    Returns:
        PNG-encoded pages in page order
    """
    images = convert_from_path(str(path), dpi=dpi)

    pages: list[bytes] = []
    for image in images:
        if scale != 1.0:
            size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
            image = image.resize(size, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        pages.append(buffer.getvalue())

    logger.debug(f"Rasterized {path.name}: {len(pages)} pages at {dpi} dpi x{scale}")
    return pages
