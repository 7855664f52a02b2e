from sof_extractor.services.extraction.contract import (
    ExtractionContract,
    default_analysis,
    parse_extraction_response,
    strip_code_fences,
)
from sof_extractor.services.extraction.types import (
    EventValidationError,
    ExtractionOk,
    ExtractionParseError,
    ExtractionParseFailure,
    ExtractionResult,
    RawEvent,
)
from sof_extractor.services.extraction.validation import validate_event

__all__ = [
    "EventValidationError",
    "ExtractionContract",
    "ExtractionOk",
    "ExtractionParseError",
    "ExtractionParseFailure",
    "ExtractionResult",
    "RawEvent",
    "default_analysis",
    "parse_extraction_response",
    "strip_code_fences",
    "validate_event",
]
