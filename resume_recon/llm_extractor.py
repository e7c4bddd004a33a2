"""
LLM Extraction Module

Uses PhiData + OpenAI chat models to extract a StructuredRecord (skills,
experience, education) from a job description or a resume's OCR text.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import APITimeoutError
from phi.agent import Agent
from phi.model.openai import OpenAIChat
from pydantic import ValidationError

from .config import LLM_CONFIG, LOG_PREVIEW_CHARS
from .errors import ExtractionError, ExtractionSchemaError, StageTimeoutError
from .models import Role, StructuredRecord

logger = logging.getLogger(__name__)

SCHEMA_KEYS = ("skills", "experience", "education")

ROLE_INSTRUCTIONS: Dict[Role, List[str]] = {
    Role.JOB_DESCRIPTION: [
        "You read a job description and extract ONLY the requirements it explicitly states.",
        "- skills: array of skills, tools, languages and technologies the job explicitly asks for",
        "- experience: array of experience requirements exactly as stated (roles, years, domains)",
        "- education: array of degree, field or certification requirements exactly as stated",
        "Do not list nice-to-have perks, company facts or responsibilities unless stated as a requirement.",
    ],
    Role.CANDIDATE: [
        "You read a resume (OCR text, may contain recognition noise) and extract ONLY information explicitly present.",
        "- skills: array of skills, tools, languages and technologies the resume names",
        "- experience: array of roles held and experience statements (title, years, domain) as written",
        "- education: array of degrees, fields of study and certifications as written",
    ],
}

COMMON_INSTRUCTIONS = [
    "Return ONLY a valid JSON object with exactly three keys: \"skills\", \"experience\", \"education\".",
    "Each value MUST be an array of strings. Use an empty array when nothing is stated.",
    "",
    "CRITICAL RULES:",
    "1. Every entry must come from the source text; never infer, normalize, generalize or invent entries.",
    "2. Keep the wording of the source; do not rename skills (React.js stays React.js).",
    "3. Do not add keys, explanations, markdown or text before or after the JSON.",
]


def get_model_config(model_name: str, temperature: float = 0) -> Dict[str, Any]:
    """
    Get model configuration with temperature support check.
    Some models don't support custom temperature.
    """
    config = {"id": model_name}

    # Models that don't support temperature customization
    models_without_temperature = ["o1", "o1-mini", "o1-preview", "gpt-5-mini", "gpt-5"]

    model_lower = model_name.lower()
    supports_temperature = not any(no_temp in model_lower for no_temp in models_without_temperature)

    if supports_temperature:
        config["temperature"] = temperature

    # JSON mode support
    if "gpt-4" in model_lower:
        config["response_format"] = {"type": "json_object"}

    return config


def build_model(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> OpenAIChat:
    model_config = get_model_config(model_name or LLM_CONFIG["model"], temperature=LLM_CONFIG["temperature"])
    model_config["timeout"] = timeout or LLM_CONFIG["timeout_seconds"]
    # Retries are owned by the pipeline; a client retry would outlive the request timeout.
    model_config["max_retries"] = 0
    if api_key:
        model_config["api_key"] = api_key
    return OpenAIChat(**model_config)


def build_extraction_agent(
    role: Role,
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Agent:
    """Build PhiData agent extracting one StructuredRecord for the given role."""
    name = "Requirement Extractor" if role == Role.JOB_DESCRIPTION else "Candidate Extractor"
    return Agent(
        name=name,
        role="Extract explicitly stated skills, experience and education as JSON",
        model=build_model(model_name, api_key=api_key, timeout=timeout),
        instructions=ROLE_INSTRUCTIONS[role] + [""] + COMMON_INSTRUCTIONS,
        show_tool_calls=False,
        markdown=False,
    )


def extract_json_from_response(text: str) -> Optional[Dict[str, Any]]:
    """Extract JSON from LLM response, handling markdown and other formatting."""
    if not text:
        return None

    # Remove markdown code fences
    if '```json' in text:
        match = re.search(r'```json\s*\n?(.*?)\n?```', text, re.DOTALL)
        if match:
            text = match.group(1).strip()
    elif '```' in text:
        match = re.search(r'```\s*\n?(.*?)\n?```', text, re.DOTALL)
        if match:
            text = match.group(1).strip()

    # Try to find JSON object
    json_match = re.search(r'\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}', text, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(0))
        except json.JSONDecodeError:
            pass

    # Try direct parse
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def response_text(response: Any) -> str:
    """Pull the text content out of a phi RunResponse (or anything string-like)."""
    if hasattr(response, 'content'):
        return str(response.content)
    if hasattr(response, 'messages') and response.messages:
        last_msg = response.messages[-1]
        return str(last_msg.content if hasattr(last_msg, 'content') else last_msg)
    return str(response)


def parse_structured_record(text: str) -> StructuredRecord:
    """
    Validate raw model output as a StructuredRecord.

    Raises:
        ExtractionSchemaError: output is not JSON, is not an object, or does
            not have exactly the three list-of-string fields.
    """
    data = extract_json_from_response(text)
    if data is None:
        raise ExtractionSchemaError("Could not extract valid JSON from LLM response")
    if not isinstance(data, dict):
        raise ExtractionSchemaError(f"Expected a JSON object, got {type(data).__name__}")

    missing = [key for key in SCHEMA_KEYS if key not in data]
    if missing:
        raise ExtractionSchemaError(f"Missing keys in extracted data: {', '.join(missing)}")

    try:
        return StructuredRecord.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ExtractionSchemaError(f"Extracted data does not match schema: {problems}") from e


def build_prompt(source_text: str, role: Role) -> str:
    label = "Job Description" if role == Role.JOB_DESCRIPTION else "Resume"
    return f"""Extract skills, experience and education from the {label.lower()} below.
Return ONLY a JSON object of the form {{"skills": [...], "experience": [...], "education": [...]}}.
Include only entries explicitly present in the text.

{label}:
{source_text}
"""


def extract_structured(
    source_text: str,
    role: Role,
    agent: Optional[Agent] = None,
    model_name: Optional[str] = None,
) -> StructuredRecord:
    """
    Run one structured extraction for `role`.

    Single attempt; the pipeline decides whether to retry.

    Raises:
        ExtractionSchemaError: model output does not fit the schema
        StageTimeoutError: the model request timed out
        ExtractionError: any other model failure
    """
    agent = agent or build_extraction_agent(role, model_name)
    logger.info(f"Extracting structured record for {role.value} ({len(source_text)} chars)")

    try:
        response = agent.run(build_prompt(source_text, role))
    except APITimeoutError as e:
        raise StageTimeoutError(f"Model request timed out for {role.value}", stage="extract") from e
    except Exception as e:
        raise ExtractionError(f"Model call failed for {role.value}: {e}") from e

    text = response_text(response)
    logger.debug(f"Raw LLM response: {text[:LOG_PREVIEW_CHARS]}...")

    record = parse_structured_record(text)
    logger.info(
        f"{role.value}: {len(record.skills)} skills, "
        f"{len(record.experience)} experience, {len(record.education)} education entries"
    )
    return record
