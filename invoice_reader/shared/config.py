"""Shared configuration management for the invoice reader.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from invoice_reader.shared.errors import MissingCredentials


class Settings(BaseSettings):
    """Invoice reader settings with environment variable support.

    Settings are read from environment variables without a prefix, so the
    names match the operator documentation. Example: OCR_PROVIDER=gcv
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Force DEBUG logging and print tracebacks in the CLI",
    )

    # OCR provider configuration
    ocr_provider: Literal["local", "gcv", "textract"] = Field(
        default="local",
        description="OCR provider: local (Tesseract), gcv (Google Cloud Vision), textract (AWS)",
    )
    ocr_lang: str = Field(
        default="pol+eng",
        description="Tesseract language bundle(s), joined with '+'",
    )
    local_ocr_workers: int = Field(
        default=1,
        ge=1,
        description="Number of local recognition contexts (local OCR parallelism)",
    )

    # Batch processing
    concurrency: int = Field(
        default=4,
        ge=1,
        description="Default number of invoices processed concurrently in a batch",
    )

    # Result cache
    cache_dir: Path = Field(
        default=Path(".cache"),
        description="Root directory for content-addressed cache files",
    )
    cache_enabled: bool = Field(
        default=True,
        description="Enable reading and writing the result cache",
    )

    # Google Cloud Vision (for ocr_provider="gcv")
    gcv_project_id: str | None = Field(
        default=None,
        description="Google Cloud project id",
    )
    gcv_keyfile: str | None = Field(
        default=None,
        description="Path to the service account JSON keyfile",
    )

    # AWS Textract (for ocr_provider="textract")
    aws_region: str = Field(
        default="eu-central-1",
        description="AWS region for Textract",
    )
    aws_access_key_id: str | None = Field(
        default=None,
        description="AWS access key (use env var AWS_ACCESS_KEY_ID)",
    )
    aws_secret_access_key: str | None = Field(
        default=None,
        description="AWS secret key (use env var AWS_SECRET_ACCESS_KEY)",
    )

    # PDF rasterization (used when a PDF has no text layer)
    pdf_dpi: int = Field(
        default=300,
        ge=36,
        description="Rendering resolution for PDF pages",
    )
    pdf_scale: float = Field(
        default=1.5,
        gt=0,
        description="Additional scale factor applied to rendered pages",
    )
    pdf_min_text_chars: int = Field(
        default=20,
        ge=1,
        description="Minimum characters for a PDF text layer to be trusted",
    )

    # Image preprocessing (local provider)
    image_enhance: bool = Field(
        default=True,
        description="Convert to grayscale and stretch contrast before OCR",
    )
    image_threshold: bool = Field(
        default=True,
        description="Binarize the image before OCR",
    )

    def validate_provider_credentials(self) -> None:
        """Check that the selected OCR provider has its credentials.

        Raises:
            MissingCredentials: If a cloud provider is selected without credentials
        """
        if self.ocr_provider == "gcv":
            if not self.gcv_project_id or not self.gcv_keyfile:
                raise MissingCredentials(
                    "GCV_PROJECT_ID and GCV_KEYFILE must be set for Google Cloud Vision"
                )
        elif self.ocr_provider == "textract":
            if not self.aws_access_key_id or not self.aws_secret_access_key:
                raise MissingCredentials(
                    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set for Textract"
                )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
