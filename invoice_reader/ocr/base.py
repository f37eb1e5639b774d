"""Abstract base class for OCR providers.

Enables switching between the local Tesseract engine and cloud OCR services
(Google Cloud Vision, AWS Textract) behind one interface.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field

from invoice_reader.extraction.schema import ProviderId
from invoice_reader.shared.config import Settings


class OCRResult(BaseModel):
    """Result of one recognition call.

    Attributes:
        text: Recognized text
        confidence: Provider confidence (0-1)
        elapsed_ms: Wall time of the call in milliseconds
        provider_id: Provider that produced the text
    """

    text: str
    confidence: float = Field(..., ge=0, le=1)
    elapsed_ms: int = Field(..., ge=0)
    provider_id: ProviderId


class OCRProvider(ABC):
    """Abstract base class for OCR providers.

    Providers raise ProviderUnavailable when recognition cannot be performed;
    they never return an "unsuccessful" result.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def recognize(self, image: bytes | Path) -> OCRResult:
        """Recognize text in an image.

        Args:
            image: Encoded image bytes or path to an image file

        Returns:
            OCRResult with text and confidence

        Raises:
            ProviderUnavailable: If the provider cannot recognize the image
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """

    @property
    @abstractmethod
    def provider_name(self) -> ProviderId:
        """Provider identifier recorded on results (e.g. 'tesseract', 'gcv')."""

    def close(self) -> None:
        """Release resources held by the provider. Safe to call twice."""


def read_image_bytes(image: bytes | Path) -> bytes:
    """Return image content, reading it from disk if given a path."""
    if isinstance(image, Path):
        return image.read_bytes()
    return image
