"""Local OCR provider using Tesseract.

Based on pytesseract documentation:
https://github.com/madmaze/pytesseract

Recognition contexts (language bundle, engine flags and the verified engine
version) are created lazily, at most once, and kept in a bounded pool of
LOCAL_OCR_WORKERS entries. Callers check a context out for the duration of
one recognition call.
"""

import logging
import os
import queue
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import pytesseract

from invoice_reader.extraction.schema import ProviderId
from invoice_reader.ocr.base import OCRProvider, OCRResult, read_image_bytes
from invoice_reader.ocr.preprocess import load_image, preprocess_image
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

# Automatic page segmentation, keep column spacing for table rows
TESSERACT_CONFIG = "--psm 3 -c preserve_interword_spaces=1"


@dataclass(frozen=True)
class TesseractContext:
    """Verified recognition setup for one worker."""

    lang: str
    config: str
    version: str


class TesseractOCRProvider(OCRProvider):
    """OCR provider using the local Tesseract engine."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._pool: queue.Queue[TesseractContext] | None = None
        self._lock = threading.Lock()
        self._configure_tesseract()

    def _configure_tesseract(self) -> None:
        """Configure Tesseract command path from environment.

        Allows overriding default Tesseract path via TESSERACT_CMD environment variable.
        """
        tesseract_cmd = os.getenv("TESSERACT_CMD")
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def provider_name(self) -> ProviderId:
        return "tesseract"

    def is_available(self) -> bool:
        """Check if the tesseract binary can be found."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except pytesseract.TesseractNotFoundError:
            return False

    def _create_context(self) -> TesseractContext:
        """Verify the engine and language data, then build a context.

        Raises:
            ProviderUnavailable: If tesseract is missing or a language is not installed
        """
        try:
            version = str(pytesseract.get_tesseract_version())
            installed = set(pytesseract.get_languages(config=""))
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
            raise ProviderUnavailable(f"Tesseract is not available: {e}") from e

        missing = [lang for lang in self.settings.ocr_lang.split("+") if lang not in installed]
        if missing:
            raise ProviderUnavailable(
                f"Tesseract language data not installed: {', '.join(missing)}"
            )

        return TesseractContext(
            lang=self.settings.ocr_lang, config=TESSERACT_CONFIG, version=version
        )

    def _get_pool(self) -> "queue.Queue[TesseractContext]":
        """Get or create the context pool (lazy, thread-safe)."""
        with self._lock:
            if self._pool is None:
                workers = self.settings.local_ocr_workers
                pool: queue.Queue[TesseractContext] = queue.Queue(maxsize=workers)
                for _ in range(workers):
                    pool.put(self._create_context())
                self._pool = pool
                logger.info(
                    f"Initialized {workers} Tesseract context(s) "
                    f"(lang={self.settings.ocr_lang})"
                )
            return self._pool

    @contextmanager
    def _checkout(self) -> Iterator[TesseractContext]:
        """Borrow a context from the pool, blocking until one is free."""
        pool = self._get_pool()
        context = pool.get()
        try:
            yield context
        finally:
            pool.put(context)

    def recognize(self, image: bytes | Path) -> OCRResult:
        """Recognize text in an image with Tesseract.

        Args:
            image: Encoded image bytes or path to an image file

        Returns:
            OCRResult with layout-preserving text and mean word confidence

        Raises:
            ProviderUnavailable: If the engine cannot be used
        """
        start_time = time.perf_counter()

        loaded = preprocess_image(load_image(read_image_bytes(image)), self.settings)

        with self._checkout() as context:
            try:
                data = pytesseract.image_to_data(
                    loaded,
                    lang=context.lang,
                    config=context.config,
                    output_type=pytesseract.Output.DICT,
                )
            except pytesseract.TesseractError as e:
                raise ProviderUnavailable(f"Tesseract recognition failed: {e}") from e

        text, confidence = _assemble_text(data)
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        return OCRResult(
            text=text,
            confidence=confidence,
            elapsed_ms=elapsed_ms,
            provider_id=self.provider_name,
        )

    def close(self) -> None:
        """Release the context pool."""
        with self._lock:
            self._pool = None


def _assemble_text(data: dict[str, list]) -> tuple[str, float]:
    """Rebuild text lines from word boxes.

    Words are grouped by (block, paragraph, line); blocks are separated by a
    blank line.

    Returns:
        Tuple of (text, mean confidence in 0-1)
    """
    lines: dict[tuple[int, int, int], list[str]] = {}
    confidences: list[float] = []

    for i, word in enumerate(data.get("text", [])):
        if not word or not word.strip():
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word.strip())

        conf = float(data["conf"][i])
        if conf >= 0:
            confidences.append(conf)

    output: list[str] = []
    previous_block = None
    for (block, _, _), words in lines.items():
        if previous_block is not None and block != previous_block:
            output.append("")
        output.append(" ".join(words))
        previous_block = block

    confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0
    return "\n".join(output), min(max(confidence, 0.0), 1.0)
