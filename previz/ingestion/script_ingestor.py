"""
Script Ingestor

Turns typed text or an uploaded file into plain script text. Plain-text
files are decoded locally; PDFs go to the OCR service with progress
reported per stage. Anything else is rejected before any network call.
"""

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Callable, Dict, Optional, Set, Tuple

from previz.core.config import IngestionConfig
from previz.core.constants import MIME_PDF, MIME_TEXT, SUPPORTED_SCRIPT_TYPES
from previz.core.exceptions import (
    EmptyScriptError,
    IngestionInProgressError,
    InputError,
    MissingConfigError,
    UnsupportedFileTypeError,
)
from previz.core.logging_config import get_logger
from previz.ingestion.ocr_client import OCRClient, idempotency_key_for

logger = get_logger("ingestion.script_ingestor")

GENERIC_MIME_TYPES = {"", "application/octet-stream"}


class IngestionStage(Enum):
    """Stages reported while a document is processed."""
    READING = "reading"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    EXTRACTING = "extracting"
    COMPLETE = "complete"


STAGE_PERCENT = {
    IngestionStage.READING: 10,
    IngestionStage.UPLOADING: 30,
    IngestionStage.PROCESSING: 60,
    IngestionStage.EXTRACTING: 90,
    IngestionStage.COMPLETE: 100,
}


@dataclass
class IngestionProgress:
    """A progress event for the caller's progress indicator."""
    stage: IngestionStage
    elapsed_seconds: float
    percent: int


@dataclass
class ScriptUpload:
    """An uploaded file as received from the client."""
    name: str
    data: bytes
    mime_type: str = ""
    last_modified: int = 0

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def file_key(self) -> str:
        return f"{self.name}-{self.size}-{self.last_modified}"

    @property
    def extension(self) -> str:
        return PurePath(self.name).suffix.lower()


@dataclass
class IngestionResult:
    """Normalized script text and where it came from."""
    text: str
    source: str
    file_name: Optional[str] = None
    cached: bool = False

    @property
    def word_count(self) -> int:
        return len(self.text.split())


ProgressCallback = Callable[[IngestionProgress], None]


def detect_script_type(upload: ScriptUpload) -> str:
    """
    Resolve the upload's script type from its declared MIME type, falling
    back to the extension only when the declared type is generic.
    """
    mime = (upload.mime_type or "").split(";")[0].strip().lower()
    if mime in SUPPORTED_SCRIPT_TYPES:
        return mime
    if mime in GENERIC_MIME_TYPES:
        for supported, extensions in SUPPORTED_SCRIPT_TYPES.items():
            if upload.extension in extensions:
                return supported
    raise UnsupportedFileTypeError(upload.name, upload.mime_type or None)


class ScriptIngestor:
    """
    Produces plain script text from direct input or uploaded files.

    OCR results are cached per file key (name, size, modification time)
    for ``cache_ttl_seconds``; submitting a file that is still being
    processed raises IngestionInProgressError.
    """

    def __init__(
        self,
        ocr: Optional[OCRClient] = None,
        config: Optional[IngestionConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ocr = ocr
        self.config = config or IngestionConfig()
        self._clock = clock
        self._cache: Dict[str, Tuple[float, str]] = {}
        self._in_flight: Set[str] = set()

    def ingest_text(self, text: str) -> IngestionResult:
        """Pass typed text through unchanged."""
        if text is None or not text.strip():
            raise EmptyScriptError()
        return IngestionResult(text=text, source="text")

    async def ingest_file(
        self,
        upload: ScriptUpload,
        on_progress: Optional[ProgressCallback] = None
    ) -> IngestionResult:
        script_type = detect_script_type(upload)

        if upload.size == 0:
            raise EmptyScriptError(f"Uploaded file is empty: {upload.name}")
        if upload.size > self.config.max_file_bytes:
            raise InputError(
                f"File too large: {upload.name}",
                {"size": upload.size, "max_bytes": self.config.max_file_bytes},
            )

        if script_type == MIME_TEXT:
            return self._decode_text(upload)
        if script_type == MIME_PDF:
            return await self._extract_document(upload, on_progress)
        raise UnsupportedFileTypeError(upload.name, upload.mime_type or None)

    def _decode_text(self, upload: ScriptUpload) -> IngestionResult:
        text = upload.data.decode("utf-8-sig", errors="replace")
        if not text.strip():
            raise EmptyScriptError(f"No text found in {upload.name}")
        logger.info(f"Read {len(text)} characters from {upload.name}")
        return IngestionResult(text=text, source="file", file_name=upload.name)

    async def _extract_document(
        self,
        upload: ScriptUpload,
        on_progress: Optional[ProgressCallback]
    ) -> IngestionResult:
        if self.ocr is None:
            raise MissingConfigError("No OCR service configured for document uploads")

        key = upload.file_key
        self._evict_expired()

        cached = self._cache.get(key)
        if cached is not None:
            logger.info(f"Using cached OCR result for {upload.name}")
            if on_progress:
                on_progress(IngestionProgress(IngestionStage.COMPLETE, 0.0, 100))
            return IngestionResult(text=cached[1], source="ocr", file_name=upload.name, cached=True)

        if key in self._in_flight:
            raise IngestionInProgressError(key)

        start = self._clock()

        def report(stage: IngestionStage) -> None:
            if on_progress:
                on_progress(IngestionProgress(
                    stage=stage,
                    elapsed_seconds=round(self._clock() - start, 1),
                    percent=STAGE_PERCENT[stage],
                ))

        self._in_flight.add(key)
        try:
            report(IngestionStage.READING)
            report(IngestionStage.UPLOADING)
            report(IngestionStage.PROCESSING)
            text = await self.ocr.extract_text(
                upload.name,
                upload.data,
                mime_type=MIME_PDF,
                idempotency_key=idempotency_key_for(key),
            )
            report(IngestionStage.EXTRACTING)
        finally:
            self._in_flight.discard(key)

        self._cache[key] = (self._clock() + self.config.cache_ttl_seconds, text)
        report(IngestionStage.COMPLETE)
        return IngestionResult(text=text, source="ocr", file_name=upload.name)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires, _) in self._cache.items() if expires <= now]:
            del self._cache[key]
