"""Factory for creating OCR providers based on configuration.

Implements Factory Pattern for provider selection with registry pattern for extensibility.

Based on:
- Factory Pattern: https://refactoring.guru/design-patterns/factory-method/python
- Registry Pattern: Python Cookbook 3rd Edition, Recipe 9.22
"""

import logging

from invoice_reader.ocr.base import OCRProvider
from invoice_reader.ocr.gcv_provider import GoogleVisionOCRProvider
from invoice_reader.ocr.tesseract_provider import TesseractOCRProvider
from invoice_reader.ocr.textract_provider import TextractOCRProvider
from invoice_reader.shared.config import Settings

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry of available OCR providers.

    Maps OCR_PROVIDER values to implementation classes. Supports runtime
    registration of new providers.
    """

    _providers: dict[str, type[OCRProvider]] = {
        "local": TesseractOCRProvider,
        "gcv": GoogleVisionOCRProvider,
        "textract": TextractOCRProvider,
    }

    @classmethod
    def register(cls, name: str, provider_class: type[OCRProvider]) -> None:
        """Register a new provider.

        Args:
            name: Provider identifier (must match Settings.ocr_provider)
            provider_class: Provider class implementing OCRProvider interface
        """
        cls._providers[name] = provider_class
        logger.info(f"Registered OCR provider: {name}")

    @classmethod
    def get_provider_class(cls, name: str) -> type[OCRProvider]:
        """Get provider class by name.

        Raises:
            ValueError: If provider not found in registry
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown OCR provider: '{name}'. Available providers: {available}")
        return cls._providers[name]

    @classmethod
    def list_providers(cls) -> list[str]:
        """List all registered provider names."""
        return list(cls._providers.keys())


def create_ocr_provider(settings: Settings) -> OCRProvider:
    """Create the OCR provider selected by settings.ocr_provider.

    Args:
        settings: Application settings

    Logs a warning if the provider is not available (e.g. missing tesseract
    binary or cloud credentials); the provider is still returned.

    Returns:
        Configured provider instance (cloud clients are created on first use)

    Raises:
        ValueError: If configured provider is unknown
    """
    provider_class = ProviderRegistry.get_provider_class(settings.ocr_provider)
    provider = provider_class(settings)

    if not provider.is_available():
        logger.warning(
            f"OCR provider '{settings.ocr_provider}' is not fully available. "
            f"Check configuration (e.g. TESSERACT_CMD, language data, credentials)."
        )

    logger.info(f"Created OCR provider: {settings.ocr_provider} ({provider.provider_name})")
    return provider
