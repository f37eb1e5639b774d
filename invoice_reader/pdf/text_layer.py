"""Native PDF text layer extraction with pdfplumber.

A PDF without a usable text layer is a normal outcome, reported as
NoTextLayer so the caller can fall back to OCR.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import pdfplumber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextLayerFound:
    """PDF has embedded text; no OCR needed."""

    text: str
    pages: int


@dataclass(frozen=True)
class NoTextLayer:
    """PDF text layer is missing or too short to trust."""

    pages: int
    reason: str


TextLayerResult = TextLayerFound | NoTextLayer


def is_pdf(path: Path) -> bool:
    """Check whether a file has a .pdf extension."""
    return path.suffix.lower() == ".pdf"


def extract_text_layer(path: Path, min_chars: int) -> TextLayerResult:
    """Read the embedded text of every page.

    Args:
        path: Path to PDF file
        min_chars: Minimum stripped characters for the layer to count

    Returns:
        TextLayerFound with page texts joined by a blank line, or NoTextLayer
    """
    page_texts: list[str] = []

    with pdfplumber.open(path) as pdf:
        page_count = len(pdf.pages)
        for page in pdf.pages:
            text = page.extract_text()
            if text:
                page_texts.append(text)

    text = "\n\n".join(page_texts)
    stripped = len(text.strip())

    if stripped < min_chars:
        logger.debug(f"No text layer in {path.name}: {stripped} chars over {page_count} pages")
        return NoTextLayer(
            pages=page_count,
            reason=f"Text layer has {stripped} characters (minimum {min_chars})",
        )

    return TextLayerFound(text=text, pages=page_count)
