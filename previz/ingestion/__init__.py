"""Script ingestion: typed text or text extracted from uploaded files."""

from previz.ingestion.ocr_client import OCRClient
from previz.ingestion.script_ingestor import (
    IngestionProgress,
    IngestionResult,
    IngestionStage,
    ScriptIngestor,
    ScriptUpload,
)

__all__ = [
    "IngestionProgress",
    "IngestionResult",
    "IngestionStage",
    "OCRClient",
    "ScriptIngestor",
    "ScriptUpload",
]
