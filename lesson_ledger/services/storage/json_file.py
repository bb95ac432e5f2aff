"""
JSON File Storage Implementation

DESIGN DECISION: The ledger lives in a single JSON file because:
1. The tutor's data is small (hundreds of lessons, not millions)
2. The file can be backed up, diffed and imported elsewhere by hand
3. No database setup required

TRADEOFFS:
- Every save rewrites the whole file (we're fine for personal use)
- No concurrent writers (the store is the only writer)

Writes go to a temporary file that is then renamed over the old one,
so a crash mid-write leaves the previous document intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from tenacity import (
    RetryError,
    retry_if_exception_type,
    Retrying,
    stop_after_attempt,
    wait_exponential,
)

from lesson_ledger.config import get_settings
from lesson_ledger.services.storage.interface import (
    CorruptDocumentError,
    StateStorageInterface,
    StorageUnavailableError,
)

logger = structlog.get_logger(__name__)


class JsonFileStorage(StateStorageInterface):
    """
    File-backed ledger storage.

    Saves are best-effort: transient OS errors are retried with
    exponential backoff, and a write that still fails is logged and
    reported as ``False`` rather than raised.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        save_attempts: Optional[int] = None,
        wait_max: float = 2.0,
    ):
        """
        Initialize file storage.

        Args:
            path: State file location. Defaults to the configured
                  ``<directory>/<key>.json``.
            save_attempts: Write attempts before giving up.
            wait_max: Upper bound in seconds for the backoff between attempts.
        """
        settings = get_settings().storage
        self._path = Path(path) if path is not None else settings.state_path
        self._save_attempts = save_attempts or settings.save_attempts
        self._wait_max = wait_max

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, payload: str) -> None:
        """Write ``payload`` atomically. Raises StorageUnavailableError."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageUnavailableError(f"Failed to write {self._path}: {e}") from e

    def save(self, document: dict[str, Any]) -> bool:
        """Serialize and write the document, retrying transient failures."""
        payload = json.dumps(document, ensure_ascii=False, indent=2)

        retrying = Retrying(
            stop=stop_after_attempt(self._save_attempts),
            wait=wait_exponential(multiplier=0.1, max=self._wait_max),
            retry=retry_if_exception_type(StorageUnavailableError),
        )
        try:
            retrying(self._write, payload)
        except RetryError as e:
            logger.error(
                "state_save_failed",
                path=str(self._path),
                attempts=self._save_attempts,
                error=str(e.last_attempt.exception()),
            )
            return False

        logger.debug("state_saved", path=str(self._path), size=len(payload))
        return True

    def read_document(self) -> Optional[Any]:
        """
        Read and decode the stored document.

        Returns None when no file exists.

        Raises:
            CorruptDocumentError: The file is not valid JSON
            StorageUnavailableError: The file cannot be read
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(f"Failed to read {self._path}: {e}") from e

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDocumentError(f"Stored state is not valid JSON: {e}") from e

    def load(self) -> Optional[Any]:
        """Read the document back, treating unreadable data as absent."""
        try:
            return self.read_document()
        except (CorruptDocumentError, StorageUnavailableError) as e:
            logger.error("state_load_failed", path=str(self._path), error=str(e))
            return None

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
