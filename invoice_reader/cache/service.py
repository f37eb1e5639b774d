"""Content-addressed result cache.

Records are stored as JSON at <cache_dir>/ocr/<sha256 of file>.json. The
cache is append-only by content hash, so concurrent writers of the same key
write identical content and the last atomic rename wins.
"""

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from invoice_reader.extraction.schema import InvoiceRecord
from invoice_reader.pipeline.metrics import (
    invoice_cache_lookups_total,
    invoice_cache_write_failures_total,
)
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import CacheWriteFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def file_hash(path: Path) -> str:
    """Compute SHA-256 of a file's content.

    Args:
        path: File to hash

    Returns:
        Hex digest
    """
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ResultCache:
    """File-backed cache of InvoiceRecords keyed by content hash."""

    def __init__(self, settings: Settings) -> None:
        """Initialize cache.

        Args:
            settings: Settings with cache_dir and cache_enabled
        """
        self.settings = settings
        self.root = Path(settings.cache_dir) / "ocr"

    @property
    def enabled(self) -> bool:
        return self.settings.cache_enabled

    def cache_path(self, key: str) -> Path:
        """Return the file path for a cache key."""
        return self.root / f"{key}.json"

    def get(self, key: str) -> InvoiceRecord | None:
        """Look up a record.

        Args:
            key: Content hash

        Returns:
            Cached record, or None on a miss (including unreadable entries)
        """
        if not self.enabled:
            return None

        path = self.cache_path(key)
        try:
            record = InvoiceRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            invoice_cache_lookups_total.labels(result="miss").inc()
            return None
        except (OSError, ValidationError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache entry {path}: {e}")
            invoice_cache_lookups_total.labels(result="miss").inc()
            return None

        invoice_cache_lookups_total.labels(result="hit").inc()
        return record

    def put(self, key: str, record: InvoiceRecord) -> None:
        """Store a record. Failures are logged and never raised.

        Args:
            key: Content hash
            record: Record to store
        """
        if not self.enabled:
            return

        try:
            self._write(key, record)
        except CacheWriteFailed as e:
            invoice_cache_write_failures_total.inc()
            logger.warning(f"Cache write failed for {key}: {e.__cause__ or e}")

    def _write(self, key: str, record: InvoiceRecord) -> None:
        """Write atomically via a temporary file and rename.

        Raises:
            CacheWriteFailed: If the directory or file cannot be written
        """
        path = self.cache_path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(record.model_dump_json(indent=2))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheWriteFailed(f"Could not write {path}") from e
