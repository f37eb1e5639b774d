"""OCR provider using Google Cloud Vision document text detection.

Based on the google-cloud-vision client library:
https://cloud.google.com/vision/docs/fulltext-annotations
"""

import logging
import time
from pathlib import Path
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import vision
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from invoice_reader.extraction.schema import ProviderId
from invoice_reader.ocr.base import OCRProvider, OCRResult, read_image_bytes
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import MissingCredentials, ProviderUnavailable

logger = logging.getLogger(__name__)

# Used when the API reports no word confidences
NEUTRAL_CONFIDENCE = 0.5


class GoogleVisionOCRProvider(OCRProvider):
    """OCR provider backed by Google Cloud Vision."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._client: vision.ImageAnnotatorClient | None = None

    @property
    def provider_name(self) -> ProviderId:
        return "gcv"

    def is_available(self) -> bool:
        """Check that project id and keyfile are configured."""
        return bool(self.settings.gcv_project_id and self.settings.gcv_keyfile)

    def _get_client(self) -> vision.ImageAnnotatorClient:
        """Get or create the Vision client (lazy initialization).

        Raises:
            MissingCredentials: If project id or keyfile is not configured
        """
        if self._client is None:
            if not self.settings.gcv_project_id:
                raise MissingCredentials(
                    "Google Cloud project not configured. Set GCV_PROJECT_ID environment variable."
                )
            if not self.settings.gcv_keyfile:
                raise MissingCredentials(
                    "Google Cloud keyfile not configured. Set GCV_KEYFILE environment variable."
                )

            self._client = vision.ImageAnnotatorClient.from_service_account_file(
                self.settings.gcv_keyfile,
                client_options={"quota_project_id": self.settings.gcv_project_id},
            )
            logger.info(f"Google Cloud Vision client initialized for {self.settings.gcv_project_id}")

        return self._client

    @retry(
        retry=retry_if_exception_type(
            (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10),
        reraise=True,
    )
    def _detect(self, content: bytes) -> Any:
        """Call document text detection, retrying transient transport errors."""
        client = self._get_client()
        return client.document_text_detection(image=vision.Image(content=content))

    def recognize(self, image: bytes | Path) -> OCRResult:
        """Recognize text with Google Cloud Vision.

        Args:
            image: Encoded image bytes or path to an image file

        Returns:
            OCRResult with the full text annotation

        Raises:
            MissingCredentials: If credentials are not configured
            ProviderUnavailable: If the API fails or detects no text
        """
        start_time = time.perf_counter()
        content = read_image_bytes(image)

        try:
            response = self._detect(content)
        except google_exceptions.GoogleAPICallError as e:
            raise ProviderUnavailable(f"Google Cloud Vision request failed: {e}") from e

        if response.error.message:
            raise ProviderUnavailable(f"Google Cloud Vision error: {response.error.message}")

        annotation = response.full_text_annotation
        text = annotation.text if annotation else ""
        if not text:
            raise ProviderUnavailable("No text detected by Google Cloud Vision")

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        return OCRResult(
            text=text,
            confidence=_word_confidence(annotation),
            elapsed_ms=elapsed_ms,
            provider_id=self.provider_name,
        )

    def close(self) -> None:
        """Drop the cached client."""
        self._client = None


def _word_confidence(annotation: Any) -> float:
    """Mean confidence over all words, skipping unset values."""
    confidences = [
        word.confidence
        for page in annotation.pages
        for block in page.blocks
        for paragraph in block.paragraphs
        for word in paragraph.words
        if word.confidence
    ]
    if not confidences:
        return NEUTRAL_CONFIDENCE
    return min(max(sum(confidences) / len(confidences), 0.0), 1.0)
