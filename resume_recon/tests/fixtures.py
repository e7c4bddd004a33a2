"""
Test doubles shared by the test modules: in-memory PDFs, a scripted OCR
engine, scripted phi agents and a synonym-table similarity oracle.
"""

import io
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, Iterable, List, Optional, Set

import pypdfium2 as pdfium

from resume_recon.errors import RecognitionError
from resume_recon.models import Role, StructuredRecord, normalize_entry
from resume_recon.similarity import SimilarityOracle
from resume_recon.text_extractor import OcrEngine


SAMPLE_JOB_DESCRIPTION = """
Backend Software Engineer

Requirements:
- Skills: Python, Go
- 3+ years as a backend software engineer
- Bachelor's degree in Computer Science
"""

RESUME_PAGES = {
    1: "Jane Doe\nBackend Developer at Acme (2019-2024)\nSkills: Python, SQL\n",
    2: "EDUCATION\nBSc Computer Science, State University\n",
}

JOB_RECORD = StructuredRecord(
    skills=["Python", "Go"],
    experience=["3+ years as a backend software engineer"],
    education=["Bachelor's degree in Computer Science"],
)

CANDIDATE_RECORD = StructuredRecord(
    skills=["Python", "SQL"],
    experience=["Backend Developer at Acme (2019-2024)"],
    education=["BSc Computer Science"],
)

SYNONYMS = [
    ("backend software engineer", "backend developer"),
    ("3+ years as a backend software engineer", "Backend Developer at Acme (2019-2024)"),
    ("Bachelor's degree in Computer Science", "BSc Computer Science"),
    ("JavaScript", "JS"),
]


def make_pdf(num_pages: int, width: float = 612, height: float = 792) -> bytes:
    """Blank PDF with `num_pages` US-letter pages."""
    pdf = pdfium.PdfDocument.new()
    try:
        for _ in range(num_pages):
            pdf.new_page(width, height).close()
        buffer = io.BytesIO()
        pdf.save(buffer)
    finally:
        pdf.close()
    return buffer.getvalue()


class FakeOcrEngine(OcrEngine):
    """OCR engine returning scripted text per page and counting lifecycle calls."""

    def __init__(self, texts: Optional[Dict[int, str]] = None, fail_pages: Iterable[int] = (), fail_start: bool = False):
        self.texts = dict(texts or {})
        self.fail_pages: Set[int] = set(fail_pages)
        self.fail_start = fail_start
        self.start_calls = 0
        self.terminate_calls = 0
        self.recognized: List[int] = []
        self.seen_files: List[Path] = []

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_start:
            raise RuntimeError("engine failed to start")

    def recognize(self, image_file: Path, page_num: int) -> str:
        self.seen_files.append(image_file)
        if page_num in self.fail_pages:
            raise RecognitionError(page_num, "unreadable page")
        self.recognized.append(page_num)
        return self.texts.get(page_num, "")

    def terminate(self) -> None:
        self.terminate_calls += 1


class ScriptedAgent:
    """Stand-in for a phi Agent: returns queued responses, records prompts."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: List[str] = []

    def run(self, prompt: str):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return SimpleNamespace(content=response)


class SynonymOracle(SimilarityOracle):
    """Scores 0.9 for listed synonym pairs, 0.1 otherwise."""

    name = "llm_judge"

    def __init__(self, synonyms=SYNONYMS):
        self.pairs = set()
        for a, b in synonyms:
            self.pairs.add((normalize_entry(a), normalize_entry(b)))
            self.pairs.add((normalize_entry(b), normalize_entry(a)))
        self.calls: List[str] = []

    def score_matrix(self, category, required, present):
        self.calls.append(category)
        return [
            [0.9 if (normalize_entry(r), normalize_entry(p)) in self.pairs else 0.1 for p in present]
            for r in required
        ]


class MatrixOracle(SimilarityOracle):
    """Returns a fixed matrix (or raises) regardless of input."""

    name = "llm_judge"

    def __init__(self, matrix=None, error: Optional[BaseException] = None):
        self.matrix = matrix
        self.error = error
        self.calls = 0

    def score_matrix(self, category, required, present):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.matrix


def scripted_extractor(
    records: Optional[Dict[Role, StructuredRecord]] = None,
    calls: Optional[List[Role]] = None,
) -> Callable[[str, Role], StructuredRecord]:
    records = records or {Role.JOB_DESCRIPTION: JOB_RECORD, Role.CANDIDATE: CANDIDATE_RECORD}

    def _extract(source_text: str, role: Role) -> StructuredRecord:
        if calls is not None:
            calls.append(role)
        return records[role]

    return _extract
