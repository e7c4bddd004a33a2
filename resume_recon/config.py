"""
Configuration for the resume reconciliation pipeline.
Adjust defaults here; deployments override them through environment variables
read by `get_settings()`.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Categories compared between the job description and the resume, in report order
CATEGORIES = ("skills", "experience", "education")

# Rasterization parameters
RASTER_CONFIG = {
    "scale": 3.0,  # PDF points multiplier; small-font resumes need >= 3
}

# OCR parameters
OCR_CONFIG = {
    "binary": "tesseract",
    "language": "eng",
    "psm": None,  # Tesseract page segmentation mode; None keeps the engine default
    "timeout_seconds": 120.0,
}

# LLM configuration
LLM_CONFIG = {
    "temperature": 0,  # For maximum consistency
    "model": "gpt-4o",  # Default model
    "max_retries": 3,  # Total extraction attempts per record
    "timeout_seconds": 60.0,  # Per model request
    "timeout_grace_seconds": 5.0,  # Added to the request timeout before an attempt is abandoned
}

# Similarity oracle and match thresholds
RECONCILIATION_CONFIG = {
    "backend": "llm_judge",
    "thresholds": {
        "llm_judge": 0.75,
        "embedding": 0.82,
    },
    "embedding_model": "text-embedding-3-small",
}

# Scratch storage for transient page images
SCRATCH_CONFIG = {
    "root": Path(tempfile.gettempdir()) / "resume-recon-pages",
}

# Truncation for raw model output in debug logs
LOG_PREVIEW_CHARS = 500


class Settings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    openai_api_key: Optional[str] = None
    model_name: str = LLM_CONFIG["model"]
    request_timeout_seconds: float = LLM_CONFIG["timeout_seconds"]
    extraction_max_retries: int = Field(default=LLM_CONFIG["max_retries"], ge=1)
    ocr_timeout_seconds: float = OCR_CONFIG["timeout_seconds"]
    ocr_language: str = OCR_CONFIG["language"]
    tesseract_cmd: str = OCR_CONFIG["binary"]
    render_scale: float = Field(default=RASTER_CONFIG["scale"], gt=0)
    scratch_dir: Path = SCRATCH_CONFIG["root"]
    similarity_backend: str = RECONCILIATION_CONFIG["backend"]
    match_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)


def get_settings() -> Settings:
    """Build settings from the environment (and a local .env file if present)."""
    load_dotenv()
    threshold = os.getenv("MATCH_THRESHOLD")
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        model_name=os.getenv("OPENAI_MODEL", LLM_CONFIG["model"]),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", LLM_CONFIG["timeout_seconds"])),
        extraction_max_retries=int(os.getenv("EXTRACTION_MAX_RETRIES", LLM_CONFIG["max_retries"])),
        ocr_timeout_seconds=float(os.getenv("OCR_TIMEOUT_SECONDS", OCR_CONFIG["timeout_seconds"])),
        ocr_language=os.getenv("OCR_LANGUAGE", OCR_CONFIG["language"]),
        tesseract_cmd=os.getenv("TESSERACT_CMD", OCR_CONFIG["binary"]),
        render_scale=float(os.getenv("RENDER_SCALE", RASTER_CONFIG["scale"])),
        scratch_dir=Path(os.getenv("SCRATCH_DIR", str(SCRATCH_CONFIG["root"]))),
        similarity_backend=os.getenv("SIMILARITY_BACKEND", RECONCILIATION_CONFIG["backend"]),
        match_threshold=float(threshold) if threshold else None,
    )
