"""
Document text extraction through the ``parse-document`` edge function.
"""

import base64
import uuid
from typing import Optional

from previz.core.constants import MIME_PDF
from previz.core.exceptions import OCRServiceError, UpstreamServiceError
from previz.core.logging_config import get_logger
from previz.llm.edge_functions import EdgeFunctionClient

logger = get_logger("ingestion.ocr")

EMPTY_DOCUMENT_MESSAGE = (
    "No readable text found in PDF. The file may be image-based or corrupted."
)


def idempotency_key_for(file_key: str) -> str:
    """Stable request key so a repeated upload maps to the same OCR job."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"previz-ocr:{file_key}"))


class OCRClient:
    """Sends a document to the OCR service and returns its text."""

    FUNCTION_NAME = "parse-document"

    def __init__(self, functions: EdgeFunctionClient):
        self.functions = functions

    async def extract_text(
        self,
        file_name: str,
        data: bytes,
        mime_type: str = MIME_PDF,
        idempotency_key: Optional[str] = None
    ) -> str:
        body = {
            "fileData": base64.b64encode(data).decode("ascii"),
            "fileName": file_name,
            "mimeType": mime_type,
            "idempotencyKey": idempotency_key or str(uuid.uuid4()),
        }
        try:
            result = await self.functions.invoke(self.FUNCTION_NAME, body)
        except OCRServiceError:
            raise
        except UpstreamServiceError as e:
            logger.error(f"OCR failed for {file_name}: {e.reason}")
            raise OCRServiceError(e.reason, e.status_code)

        text = result.get("text") or ""
        if not text.strip():
            raise OCRServiceError(EMPTY_DOCUMENT_MESSAGE)

        logger.info(f"OCR extracted {len(text)} characters from {file_name}")
        return text
