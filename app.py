from __future__ import annotations

import logging
import os

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from resume_recon import (
    DocumentFormatError,
    PipelineError,
    Report,
    ResumePipeline,
    Settings,
    StageTimeoutError,
    get_settings,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Resume Reconciliation API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline(settings: Settings = Depends(get_settings)) -> ResumePipeline:
    return ResumePipeline.from_settings(settings)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/file", response_model=Report)
async def upload_file(
    file: UploadFile = File(...),
    job_description: str = Form(..., alias="jobDescription"),
    pipeline: ResumePipeline = Depends(get_pipeline),
):
    document_bytes = await file.read()
    if not document_bytes:
        raise HTTPException(status_code=400, detail="Missing resume file")
    if not job_description.strip():
        raise HTTPException(status_code=400, detail="Missing jobDescription")

    logger.info(f"Received {file.filename or 'upload'} ({len(document_bytes)} bytes)")
    try:
        return await pipeline.run(document_bytes, job_description)
    except DocumentFormatError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    except StageTimeoutError as e:
        raise HTTPException(status_code=504, detail=e.to_dict())
    except PipelineError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())
