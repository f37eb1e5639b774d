"""OCR provider using AWS Textract expense analysis.

Based on boto3 Textract documentation:
https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/textract/client/analyze_expense.html
"""

import logging
import time
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from invoice_reader.extraction.schema import ProviderId
from invoice_reader.ocr.base import OCRProvider, OCRResult, read_image_bytes
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import MissingCredentials, ProviderUnavailable

logger = logging.getLogger(__name__)

# Used when Textract returns no fields
NEUTRAL_CONFIDENCE = 0.5

TRANSIENT_ERROR_CODES = {
    "ThrottlingException",
    "ProvisionedThroughputExceededException",
    "InternalServerError",
    "ServiceUnavailable",
}


def _is_transient(error: BaseException) -> bool:
    return (
        isinstance(error, ClientError)
        and error.response.get("Error", {}).get("Code") in TRANSIENT_ERROR_CODES
    )


class TextractOCRProvider(OCRProvider):
    """OCR provider backed by AWS Textract AnalyzeExpense."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._client: Any | None = None

    @property
    def provider_name(self) -> ProviderId:
        return "textract"

    def is_available(self) -> bool:
        """Check that AWS access key and secret are configured."""
        return bool(self.settings.aws_access_key_id and self.settings.aws_secret_access_key)

    def _get_client(self) -> Any:
        """Get or create the Textract client (lazy initialization).

        Raises:
            MissingCredentials: If access key or secret is not configured
        """
        if self._client is None:
            if not self.settings.aws_access_key_id:
                raise MissingCredentials(
                    "AWS access key not configured. Set AWS_ACCESS_KEY_ID environment variable."
                )
            if not self.settings.aws_secret_access_key:
                raise MissingCredentials(
                    "AWS secret key not configured. "
                    "Set AWS_SECRET_ACCESS_KEY environment variable."
                )

            self._client = boto3.client(
                "textract",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
            )
            logger.info(f"Textract client initialized in {self.settings.aws_region}")

        return self._client

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10),
        reraise=True,
    )
    def _analyze(self, content: bytes) -> dict[str, Any]:
        """Call AnalyzeExpense, retrying throttling and internal errors."""
        client = self._get_client()
        return client.analyze_expense(Document={"Bytes": content})

    def recognize(self, image: bytes | Path) -> OCRResult:
        """Recognize invoice text with Textract.

        Args:
            image: Encoded image bytes or path to an image file

        Returns:
            OCRResult with line items followed by summary fields

        Raises:
            MissingCredentials: If credentials are not configured
            ProviderUnavailable: If the API fails or returns no text
        """
        start_time = time.perf_counter()
        content = read_image_bytes(image)

        try:
            response = self._analyze(content)
        except (ClientError, BotoCoreError) as e:
            raise ProviderUnavailable(f"Textract request failed: {e}") from e

        text, confidence = _expense_text(response)
        if not text:
            raise ProviderUnavailable("No text detected by Textract")

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        return OCRResult(
            text=text,
            confidence=confidence,
            elapsed_ms=elapsed_ms,
            provider_id=self.provider_name,
        )

    def close(self) -> None:
        """Drop the cached client."""
        self._client = None


def _expense_text(response: dict[str, Any]) -> tuple[str, float]:
    """Flatten an AnalyzeExpense response into text lines.

    One line per line item (values joined by spaces), then one line per
    summary field as "Label: Value".

    Returns:
        Tuple of (text, mean field confidence in 0-1)
    """
    lines: list[str] = []
    confidences: list[float] = []

    def _collect(field: dict[str, Any]) -> str | None:
        detection = field.get("ValueDetection") or {}
        value = detection.get("Text")
        if not value:
            return None
        if detection.get("Confidence"):
            confidences.append(detection["Confidence"])
        return value

    for document in response.get("ExpenseDocuments", []):
        for group in document.get("LineItemGroups", []):
            for item in group.get("LineItems", []):
                values = [
                    value
                    for value in map(_collect, item.get("LineItemExpenseFields", []))
                    if value
                ]
                if values:
                    lines.append(" ".join(values))

        for field in document.get("SummaryFields", []):
            value = _collect(field)
            if not value:
                continue
            label = (field.get("LabelDetection") or {}).get("Text")
            lines.append(f"{label}: {value}" if label else value)

    if not confidences:
        return "\n".join(lines), NEUTRAL_CONFIDENCE
    confidence = sum(confidences) / len(confidences) / 100
    return "\n".join(lines), min(max(confidence, 0.0), 1.0)
