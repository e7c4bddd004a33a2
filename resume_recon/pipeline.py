"""
Pipeline Orchestrator

Runs the complete reconciliation process for one resume and one job description:
1. Rasterize the resume and OCR every page (sequential, one OCR engine)
2. Extract structured records for resume and job description (concurrently)
3. Reconcile the two records into a Report
"""

import asyncio
import logging
from functools import partial
from typing import Callable, List, Optional

from .config import CATEGORIES, LLM_CONFIG, RASTER_CONFIG, SCRATCH_CONFIG, Settings
from .errors import ExtractionSchemaError, PipelineError, StageTimeoutError
from .llm_extractor import build_extraction_agent, extract_structured
from .models import PageText, Report, Role, StructuredRecord
from .rasterizer import RasterEngine, rasterize
from .reconciler import reconcile
from .scratch import ScratchStorage, make_run_id
from .similarity import EmbeddingOracle, SimilarityOracle, build_oracle
from .text_extractor import OcrEngine, TesseractCliEngine, extract_text, join_page_texts, ocr_session

logger = logging.getLogger(__name__)

Extractor = Callable[[str, Role], StructuredRecord]


def make_extractor(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Extractor:
    """Extractor bound to one model configuration; builds a fresh agent per call."""

    def _extract(source_text: str, role: Role) -> StructuredRecord:
        agent = build_extraction_agent(role, model_name, api_key=api_key, timeout=timeout)
        return extract_structured(source_text, role, agent=agent)

    return _extract


class ResumePipeline:
    """
    Holds the collaborators for pipeline runs. Holds no per-run state, so one
    instance can serve concurrent runs.
    """

    def __init__(
        self,
        *,
        scratch: Optional[ScratchStorage] = None,
        ocr_engine_factory: Callable[[], OcrEngine] = TesseractCliEngine,
        extractor: Extractor = extract_structured,
        oracle: Optional[SimilarityOracle] = None,
        rasterizer: Optional[RasterEngine] = None,
        scale: float = RASTER_CONFIG["scale"],
        threshold: Optional[float] = None,
        max_retries: int = LLM_CONFIG["max_retries"],
        request_timeout: float = LLM_CONFIG["timeout_seconds"],
        timeout_grace: float = LLM_CONFIG["timeout_grace_seconds"],
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.scratch = scratch or ScratchStorage(SCRATCH_CONFIG["root"])
        self.ocr_engine_factory = ocr_engine_factory
        self.extractor = extractor
        self.oracle = oracle or build_oracle()
        self.rasterizer = rasterizer
        self.scale = scale
        self.threshold = threshold
        self.max_retries = max_retries
        self.request_timeout = request_timeout
        self.timeout_grace = timeout_grace

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResumePipeline":
        if settings.similarity_backend == EmbeddingOracle.name:
            oracle = build_oracle(settings.similarity_backend, api_key=settings.openai_api_key)
        else:
            oracle = build_oracle(
                settings.similarity_backend,
                model_name=settings.model_name,
                api_key=settings.openai_api_key,
                timeout=settings.request_timeout_seconds,
            )
        return cls(
            scratch=ScratchStorage(settings.scratch_dir),
            ocr_engine_factory=partial(
                TesseractCliEngine,
                binary=settings.tesseract_cmd,
                language=settings.ocr_language,
                timeout_s=settings.ocr_timeout_seconds,
            ),
            extractor=make_extractor(
                settings.model_name,
                api_key=settings.openai_api_key,
                timeout=settings.request_timeout_seconds,
            ),
            oracle=oracle,
            scale=settings.render_scale,
            threshold=settings.match_threshold,
            max_retries=settings.extraction_max_retries,
            request_timeout=settings.request_timeout_seconds,
        )

    def recognize_document(self, document_bytes: bytes, run_id: Optional[str] = None) -> List[PageText]:
        """
        Rasterize and OCR the document. Blocking.

        Page images live only inside this call's scratch area and the OCR
        engine only inside its session; both are released on every exit path.
        """
        with self.scratch.run_area(run_id) as area:
            pages = rasterize(document_bytes, area, scale=self.scale, engine=self.rasterizer)
            with ocr_session(self.ocr_engine_factory) as engine:
                return extract_text(pages, engine)

    async def extract_record(self, source_text: str, role: Role) -> StructuredRecord:
        """
        Structured extraction with a bounded retry on schema errors and timeouts.

        The model client's own request timeout ends a slow attempt, and that
        attempt is retried. If an attempt outlives the request timeout plus
        `timeout_grace`, its worker thread is abandoned and the stage fails
        without starting another attempt.
        """
        if not source_text.strip():
            logger.warning(f"No text to extract for {role.value}; using an empty record")
            return StructuredRecord.empty()

        bound = self.request_timeout + self.timeout_grace
        last_error: Optional[PipelineError] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info(f"Extraction attempt {attempt}/{self.max_retries} for {role.value}")
                return await asyncio.wait_for(
                    asyncio.to_thread(self.extractor, source_text, role),
                    timeout=bound,
                )
            except (ExtractionSchemaError, StageTimeoutError) as e:
                last_error = e
            except asyncio.TimeoutError as e:
                # The worker thread is still running; another attempt would overlap it.
                raise StageTimeoutError(
                    f"Extraction for {role.value} exceeded {bound}s", stage="extract"
                ) from e
            logger.warning(f"Extraction attempt {attempt} for {role.value} failed: {last_error}")

        raise last_error

    async def run(self, document_bytes: bytes, job_description: str) -> Report:
        """
        Produce the Report for one resume document and one job description.

        Raises:
            ValueError: the job description is blank
            PipelineError: any fatal stage failure (see errors.py)
        """
        if not job_description or not job_description.strip():
            raise ValueError("Job description is empty")

        run_id = make_run_id()
        logger.info("=" * 80)
        logger.info(f"STARTING PIPELINE RUN {run_id}")
        logger.info("=" * 80)

        try:
            logger.info("Step 1: Rasterizing and recognizing resume pages...")
            page_texts = await asyncio.to_thread(self.recognize_document, document_bytes, run_id)
            resume_text = join_page_texts(page_texts)
            logger.info(f"✓ Recognized {len(page_texts)} page(s), {len(resume_text)} characters")

            logger.info("Step 2: Extracting structured records...")
            candidate_result, job_result = await asyncio.gather(
                self.extract_record(resume_text, Role.CANDIDATE),
                self.extract_record(job_description, Role.JOB_DESCRIPTION),
                return_exceptions=True,
            )
            failures = [r for r in (candidate_result, job_result) if isinstance(r, BaseException)]
            for extra_failure in failures[1:]:
                logger.error(f"Additional extraction failure: {extra_failure}")
            if failures:
                raise failures[0]
            logger.info("✓ Structured extraction complete")

            logger.info("Step 3: Reconciling records...")
            try:
                report = await asyncio.wait_for(
                    asyncio.to_thread(reconcile, job_result, candidate_result, self.oracle, self.threshold),
                    timeout=(self.request_timeout + self.timeout_grace) * len(CATEGORIES),
                )
            except asyncio.TimeoutError as e:
                if isinstance(e, StageTimeoutError):
                    raise
                raise StageTimeoutError("Reconciliation exceeded its time bound", stage="reconcile") from e
            logger.info("✓ Reconciliation complete")
        except Exception as e:
            logger.error(f"Pipeline run {run_id} failed: {e}", exc_info=True)
            raise

        logger.info("=" * 80)
        logger.info(f"PIPELINE RUN {run_id} COMPLETE")
        logger.info("=" * 80)
        return report


def run_pipeline(
    document_bytes: bytes,
    job_description: str,
    pipeline: Optional[ResumePipeline] = None,
) -> Report:
    """
    Synchronous entry point: one resume document + one job description -> Report.

    Example:
        >>> report = run_pipeline(pdf_bytes, job_text)
        >>> [m.requirement for m in report.skills.matched]
    """
    pipeline = pipeline or ResumePipeline()
    return asyncio.run(pipeline.run(document_bytes, job_description))
