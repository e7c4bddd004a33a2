"""
Semantic similarity oracles used by the reconciliation engine.

An oracle scores every (required, present) pair of one category in [0, 1];
1.0 means both entries denote the same real-world concept.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np
from phi.agent import Agent
from phi.embedder.openai import OpenAIEmbedder

from .config import LOG_PREVIEW_CHARS, RECONCILIATION_CONFIG
from .llm_extractor import build_model, extract_json_from_response, response_text

logger = logging.getLogger(__name__)

ScoreMatrix = List[List[float]]


class SimilarityOracle(ABC):
    name = "oracle"

    @property
    def default_threshold(self) -> float:
        return RECONCILIATION_CONFIG["thresholds"][self.name]

    @abstractmethod
    def score_matrix(self, category: str, required: List[str], present: List[str]) -> ScoreMatrix:
        """Return a len(required) x len(present) matrix of scores in [0, 1]."""
        raise NotImplementedError


def build_judge_agent(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Agent:
    """Agent that scores semantic equivalence between two lists of entries."""
    return Agent(
        name="Equivalence Judge",
        role="Score whether job requirements and resume entries denote the same concept",
        model=build_model(model_name, api_key=api_key, timeout=timeout),
        instructions=[
            "You compare two numbered lists: REQUIRED entries from a job description and PRESENT entries from a resume.",
            "Score every (required, present) pair from 0.0 to 1.0:",
            "- 1.0: same concept (synonyms, abbreviation vs expansion, e.g. 'JS' and 'JavaScript')",
            "- 0.8-0.95: paraphrases of the same role, degree or skill (e.g. 'backend developer' and 'backend software engineer')",
            "- 0.3-0.6: related but different concepts (e.g. 'Python' and 'Django')",
            "- 0.0-0.2: unrelated",
            "Judge meaning only; never reward shared words alone.",
            "",
            "Return ONLY a JSON object: {\"scores\": [[...], ...]} with one row per REQUIRED entry",
            "and one number per PRESENT entry in each row, in the given order.",
        ],
        show_tool_calls=False,
        markdown=False,
    )


class LLMJudgeOracle(SimilarityOracle):
    """Model-judged pairwise scores, one model call per category."""

    name = "llm_judge"

    def __init__(self, agent: Optional[Agent] = None, model_name: Optional[str] = None, **agent_kwargs):
        self.agent = agent or build_judge_agent(model_name, **agent_kwargs)

    def score_matrix(self, category: str, required: List[str], present: List[str]) -> ScoreMatrix:
        required_block = "\n".join(f"{i}. {item}" for i, item in enumerate(required))
        present_block = "\n".join(f"{j}. {item}" for j, item in enumerate(present))
        prompt = (
            f"Category: {category}\n\n"
            f"REQUIRED ({len(required)}):\n{required_block}\n\n"
            f"PRESENT ({len(present)}):\n{present_block}\n\n"
            f"Return {{\"scores\": [...]}} as a {len(required)} x {len(present)} matrix."
        )
        text = response_text(self.agent.run(prompt))
        logger.debug(f"Raw judge response for {category}: {text[:LOG_PREVIEW_CHARS]}...")

        data = extract_json_from_response(text)
        if not isinstance(data, dict) or "scores" not in data:
            raise ValueError("judge response has no 'scores' matrix")
        return data["scores"]


class EmbeddingOracle(SimilarityOracle):
    """Cosine similarity of OpenAI embeddings, negative similarities clipped to 0."""

    name = "embedding"

    def __init__(self, embedder: Optional[OpenAIEmbedder] = None, model: Optional[str] = None, api_key: Optional[str] = None):
        if embedder is None:
            embedder_kwargs = {"model": model or RECONCILIATION_CONFIG["embedding_model"]}
            if api_key:
                embedder_kwargs["api_key"] = api_key
            embedder = OpenAIEmbedder(**embedder_kwargs)
        self.embedder = embedder

    def _embed(self, texts: List[str]) -> np.ndarray:
        cache: Dict[str, List[float]] = {}
        vectors = []
        for text in texts:
            if text not in cache:
                embedding = self.embedder.get_embedding(text)
                if not embedding:
                    raise ValueError(f"empty embedding returned for {text!r}")
                cache[text] = embedding
            vectors.append(cache[text])
        matrix = np.asarray(vectors, dtype=float)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        if np.any(norms == 0):
            raise ValueError("zero-length embedding vector")
        return matrix / norms

    def score_matrix(self, category: str, required: List[str], present: List[str]) -> ScoreMatrix:
        req_vectors = self._embed(required)
        present_vectors = self._embed(present)
        scores = np.clip(req_vectors @ present_vectors.T, 0.0, 1.0)
        logger.debug(f"Embedding scores for {category}: shape {scores.shape}")
        return scores.tolist()


def build_oracle(backend: Optional[str] = None, **kwargs) -> SimilarityOracle:
    backend = backend or RECONCILIATION_CONFIG["backend"]
    if backend == LLMJudgeOracle.name:
        return LLMJudgeOracle(**kwargs)
    if backend == EmbeddingOracle.name:
        return EmbeddingOracle(**kwargs)
    raise ValueError(f"Unsupported similarity backend: {backend}")
