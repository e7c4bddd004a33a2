"""
OCR stage: page images -> recognized text, one PageText per page.

Page failure policy (BLANK_ON_FAILURE): when a single page cannot be
recognized, that page contributes an empty PageText carrying the error
message and the remaining pages are still processed. Engine-level failures
(binary missing, timeouts) are not page failures and abort the stage.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from .config import OCR_CONFIG
from .errors import OcrEngineError, RecognitionError, StageTimeoutError
from .models import Page, PageText

logger = logging.getLogger(__name__)

BLANK_ON_FAILURE = "blank_on_failure"
PAGE_FAILURE_POLICY = BLANK_ON_FAILURE


class OcrEngine(ABC):
    """
    Interface for OCR engines with an explicit lifecycle.

    One instance serves one run: `start()` once, `recognize()` once per page
    (never concurrently), `terminate()` once.
    """

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def recognize(self, image_file: Path, page_num: int) -> str:
        """Return the literal recognized text; raise RecognitionError for a bad page."""
        raise NotImplementedError

    @abstractmethod
    def terminate(self) -> None:
        raise NotImplementedError


class TesseractCliEngine(OcrEngine):
    """Tesseract OCR via the `tesseract` CLI, plain text written to stdout."""

    def __init__(
        self,
        binary: str = OCR_CONFIG["binary"],
        language: str = OCR_CONFIG["language"],
        psm: Optional[int] = OCR_CONFIG["psm"],
        timeout_s: float = OCR_CONFIG["timeout_seconds"],
    ):
        self.binary = binary
        self.language = language
        self.psm = psm
        self.timeout_s = timeout_s
        self.version: Optional[str] = None
        self._running = False

    def start(self) -> None:
        try:
            proc = subprocess.run(
                [self.binary, "--version"],
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as e:
            raise OcrEngineError(f"{self.binary} binary not found on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise StageTimeoutError("OCR engine startup timed out", stage="ocr") from e

        if proc.returncode != 0:
            raise OcrEngineError(f"{self.binary} --version exited with {proc.returncode}")

        # Older builds print the version banner on stderr.
        banner = (proc.stdout or proc.stderr or "").strip().splitlines()
        self.version = banner[0] if banner else None
        self._running = True
        logger.info(f"OCR engine started: {self.version or self.binary}")

    def recognize(self, image_file: Path, page_num: int) -> str:
        if not self._running:
            raise OcrEngineError("OCR engine used before start() or after terminate()")
        if not image_file.exists():
            raise RecognitionError(page_num, "page image file not found")

        cmd = [self.binary, str(image_file), "stdout", "-l", self.language]
        if self.psm is not None:
            cmd.extend(["--psm", str(self.psm)])

        try:
            proc = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as e:
            raise OcrEngineError(f"{self.binary} binary not found on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise StageTimeoutError(
                f"OCR timed out after {self.timeout_s}s", stage="ocr", page=page_num
            ) from e

        if proc.returncode != 0:
            raise RecognitionError(page_num, f"tesseract exited with {proc.returncode}: {proc.stderr[-500:]}")
        return proc.stdout

    def terminate(self) -> None:
        if self._running:
            logger.info("OCR engine terminated")
        self._running = False


@contextmanager
def ocr_session(factory: Callable[[], OcrEngine]) -> Iterator[OcrEngine]:
    """Create one engine for the run and terminate it on every exit path."""
    engine = factory()
    try:
        engine.start()
        yield engine
    finally:
        engine.terminate()


def extract_text(pages: Iterable[Page], engine: OcrEngine) -> List[PageText]:
    """
    Recognize each page in order with an already started engine.

    `pages` may be a lazy rasterizer iterator; pages are pulled and recognized
    one at a time.
    """
    results: List[PageText] = []
    for page in pages:
        try:
            text = engine.recognize(page.image_file, page.page_num)
        except RecognitionError as e:
            logger.warning(f"OCR failed for page {page.page_num}, continuing with blank text ({PAGE_FAILURE_POLICY}): {e}")
            results.append(PageText(page_num=page.page_num, text="", error=str(e)))
            continue
        logger.debug(f"Page {page.page_num}: {len(text)} characters recognized")
        results.append(PageText(page_num=page.page_num, text=text))

    failed = [p.page_num for p in results if not p.ok]
    logger.info(f"OCR completed: {len(results)} page(s), {len(failed)} failed {failed if failed else ''}".rstrip())
    return results


def join_page_texts(page_texts: Iterable[PageText]) -> str:
    """Concatenate page texts in page order."""
    ordered = sorted(page_texts, key=lambda p: p.page_num)
    return "\n".join(p.text.strip() for p in ordered if p.text.strip())
