"""
Typed pipeline errors.

Every error carries the stage it came from and, where relevant, the page
number or report category so callers can diagnose a failed run.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for all errors surfaced by the pipeline."""

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        page: Optional[int] = None,
        category: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.page = page
        self.category = category

    def to_dict(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {
            "error": type(self).__name__,
            "stage": self.stage,
            "message": self.message,
        }
        if self.page is not None:
            detail["page"] = self.page
        if self.category is not None:
            detail["category"] = self.category
        return detail


class DocumentFormatError(PipelineError):
    """Input bytes are not a readable paginated document."""

    stage = "rasterize"


class RecognitionError(PipelineError):
    """OCR failed for a single page. Absorbed by the text extractor."""

    stage = "ocr"

    def __init__(self, page: int, message: str):
        super().__init__(f"page {page}: {message}", page=page)


class OcrEngineError(PipelineError):
    """The OCR engine could not be started or is not installed."""

    stage = "ocr"


class ExtractionError(PipelineError):
    """The language model call for a structured extraction failed."""

    stage = "extract"


class ExtractionSchemaError(ExtractionError):
    """Model output could not be parsed into a StructuredRecord."""


class ReconciliationError(PipelineError):
    """The similarity oracle failed or returned unusable scores."""

    stage = "reconcile"


class StageTimeoutError(PipelineError, TimeoutError):
    """An external call exceeded its time bound."""
