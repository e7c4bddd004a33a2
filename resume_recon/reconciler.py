"""
Reconciliation Engine

Compares the job's StructuredRecord with the candidate's, category by
category, using pairwise semantic-similarity scores and greedy bipartite
matching:

- pairs scoring >= threshold are candidates
- candidates are accepted in descending score order; ties go to the lower
  required index, then the lower present index
- each required and each present entry is used at most once
- matched/missing keep the required order, extra keeps the present order

Entries identical after case-folding and whitespace collapsing always score 1.0.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from .config import CATEGORIES
from .errors import ReconciliationError
from .models import MatchedPair, ReconciliationEntry, Report, StructuredRecord, normalize_entry
from .similarity import ScoreMatrix, SimilarityOracle

logger = logging.getLogger(__name__)


def validate_score_matrix(scores: ScoreMatrix, rows: int, cols: int, category: str) -> List[List[float]]:
    if not isinstance(scores, (list, tuple)) or len(scores) != rows:
        raise ReconciliationError(
            f"Expected {rows} score rows, got {len(scores) if isinstance(scores, (list, tuple)) else type(scores).__name__}",
            category=category,
        )
    validated = []
    for i, row in enumerate(scores):
        if not isinstance(row, (list, tuple)) or len(row) != cols:
            raise ReconciliationError(f"Score row {i} does not have {cols} columns", category=category)
        clean_row = []
        for value in row:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ReconciliationError(f"Non-numeric score in row {i}: {value!r}", category=category)
            value = float(value)
            if math.isnan(value) or value < 0.0 or value > 1.0:
                raise ReconciliationError(f"Score out of range [0, 1] in row {i}: {value}", category=category)
            clean_row.append(value)
        validated.append(clean_row)
    return validated


def greedy_match(scores: Sequence[Sequence[float]], threshold: float) -> Dict[int, Tuple[int, float]]:
    """
    One-to-one assignment of required rows to present columns.

    Returns {required_index: (present_index, score)}.
    """
    candidates = [
        (score, i, j)
        for i, row in enumerate(scores)
        for j, score in enumerate(row)
        if score >= threshold
    ]
    candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

    assigned: Dict[int, Tuple[int, float]] = {}
    used_present = set()
    for score, i, j in candidates:
        if i in assigned or j in used_present:
            continue
        assigned[i] = (j, score)
        used_present.add(j)
    return assigned


def reconcile_category(
    category: str,
    required: List[str],
    present: List[str],
    oracle: SimilarityOracle,
    threshold: float,
) -> ReconciliationEntry:
    if not required or not present:
        return ReconciliationEntry(matched=[], missing=list(required), extra=list(present))

    try:
        raw_scores = oracle.score_matrix(category, required, present)
    except ReconciliationError:
        raise
    except Exception as e:
        raise ReconciliationError(f"Similarity oracle failed: {e}", category=category) from e

    scores = validate_score_matrix(raw_scores, len(required), len(present), category)

    # Lexically identical entries need no oracle judgement.
    for i, req in enumerate(required):
        for j, item in enumerate(present):
            if normalize_entry(req) == normalize_entry(item):
                scores[i][j] = 1.0

    assigned = greedy_match(scores, threshold)
    used_present = {j for j, _ in assigned.values()}

    matched = [
        MatchedPair(requirement=required[i], evidence=present[assigned[i][0]], score=assigned[i][1])
        for i in range(len(required))
        if i in assigned
    ]
    missing = [required[i] for i in range(len(required)) if i not in assigned]
    extra = [present[j] for j in range(len(present)) if j not in used_present]

    logger.info(f"{category}: {len(matched)} matched, {len(missing)} missing, {len(extra)} extra")
    return ReconciliationEntry(matched=matched, missing=missing, extra=extra)


def reconcile(
    required: StructuredRecord,
    present: StructuredRecord,
    oracle: SimilarityOracle,
    threshold: Optional[float] = None,
) -> Report:
    """
    Build the full Report; any category failure fails the whole reconciliation.

    Args:
        required: record extracted from the job description
        present: record extracted from the resume
        oracle: semantic similarity oracle
        threshold: minimum score for a match (defaults to the oracle's)

    Raises:
        ReconciliationError: oracle failure or unusable scores
    """
    threshold = oracle.default_threshold if threshold is None else threshold
    logger.info(f"Reconciling with {oracle.name} oracle, threshold {threshold}")

    entries = {
        category: reconcile_category(
            category,
            required.entries(category),
            present.entries(category),
            oracle,
            threshold,
        )
        for category in CATEGORIES
    }
    return Report(**entries)
