from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class Role(str, Enum):
    """Which side of the comparison a text belongs to."""

    JOB_DESCRIPTION = "job_description"
    CANDIDATE = "candidate"


@dataclass(frozen=True, slots=True)
class Page:
    page_num: int  # 1-indexed
    image_file: Path  # materialized inside the run's scratch area
    width_px: int
    height_px: int


@dataclass(frozen=True, slots=True)
class PageText:
    page_num: int
    text: str
    error: Optional[str] = None  # set when recognition failed for this page

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_entry(value: str) -> str:
    """Case-folded, whitespace-collapsed form used for identity checks."""
    return re.sub(r"\s+", " ", value).strip().casefold()


class StructuredRecord(BaseModel):
    """
    Skills, experience and education extracted from one text.

    Each field is an ordered, duplicate-free list of non-blank strings.
    Unknown keys and non-string elements are rejected rather than coerced.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    skills: List[StrictStr]
    experience: List[StrictStr]
    education: List[StrictStr]

    @field_validator("skills", "experience", "education")
    @classmethod
    def dedupe_entries(cls, values: List[str]) -> List[str]:
        seen = set()
        cleaned = []
        for value in values:
            text = value.strip()
            if not text:
                raise ValueError("entries must be non-blank strings")
            key = normalize_entry(text)
            if key in seen:
                continue
            seen.add(key)
            cleaned.append(text)
        return cleaned

    @classmethod
    def empty(cls) -> "StructuredRecord":
        return cls(skills=[], experience=[], education=[])

    def entries(self, category: str) -> List[str]:
        return list(getattr(self, category))


class MatchedPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    requirement: str
    evidence: str
    score: float = Field(ge=0.0, le=1.0)


class ReconciliationEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    matched: Tuple[MatchedPair, ...] = ()
    missing: Tuple[str, ...] = ()
    extra: Tuple[str, ...] = ()


class Report(BaseModel):
    """Final output of one pipeline run: one entry per category."""

    model_config = ConfigDict(frozen=True)

    skills: ReconciliationEntry
    experience: ReconciliationEntry
    education: ReconciliationEntry

    def category(self, name: str) -> ReconciliationEntry:
        return getattr(self, name)
