"""
Resume / Job Description Reconciliation

This package provides a three-step pipeline:
1. Rasterize the resume PDF and OCR each page (pypdfium2 + tesseract)
2. LLM extraction of structured records (PhiData + GPT-4) for resume and job
3. Semantic reconciliation into matched / missing / extra per category

Usage:
    from resume_recon import run_pipeline

    report = run_pipeline(pdf_bytes, job_description)
    print(report.skills.missing)
"""

from .config import CATEGORIES, Settings, get_settings
from .errors import (
    DocumentFormatError,
    ExtractionError,
    ExtractionSchemaError,
    OcrEngineError,
    PipelineError,
    ReconciliationError,
    RecognitionError,
    StageTimeoutError,
)
from .models import MatchedPair, ReconciliationEntry, Report, Role, StructuredRecord
from .pipeline import ResumePipeline, run_pipeline

__all__ = [
    "CATEGORIES",
    "DocumentFormatError",
    "ExtractionError",
    "ExtractionSchemaError",
    "MatchedPair",
    "OcrEngineError",
    "PipelineError",
    "ReconciliationEntry",
    "ReconciliationError",
    "RecognitionError",
    "Report",
    "ResumePipeline",
    "Role",
    "Settings",
    "StageTimeoutError",
    "StructuredRecord",
    "get_settings",
    "run_pipeline",
]
__version__ = "1.0.0"
