from sof_extractor.services.ocr.batch import BatchAbortedError, BatchCoordinator
from sof_extractor.services.ocr.client import HttpOCRClient, OCRClient, OCRServiceError
from sof_extractor.services.ocr.orchestrator import (
    OCRCancelledError,
    OCRJobOrchestrator,
    OCRTimeoutError,
)
from sof_extractor.services.ocr.types import Corpus, Document, OCRResult, PollResponse, PollStatus

__all__ = [
    "BatchAbortedError",
    "BatchCoordinator",
    "Corpus",
    "Document",
    "HttpOCRClient",
    "OCRCancelledError",
    "OCRClient",
    "OCRJobOrchestrator",
    "OCRResult",
    "OCRServiceError",
    "OCRTimeoutError",
    "PollResponse",
    "PollStatus",
]
