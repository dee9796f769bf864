# backend/quizfoundry/core/openai_validator.py

import os, json, re, logging
from typing import Dict, Any
from openai import OpenAI

from . import prompts
from .errors import AppError

logger = logging.getLogger("quizfoundry.ai.validator")

# ------------------------------------------------------------
# OpenAI setup
# ------------------------------------------------------------
def configure_openai(api_key: str | None = None) -> OpenAI:
    key = api_key or os.getenv("OPENAI_API_KEY", "")
    if not key:
        raise AppError("OpenAI API key is not configured", 500)
    return OpenAI(api_key=key)


# ------------------------------------------------------------
# Safe JSON extraction
# ------------------------------------------------------------
def _safe_json(text: str) -> dict:
    """Try to extract/clean JSON from model output."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Strip common markdown fences
    cleaned = re.sub(r"^```(json)?|```$", "", text.strip(), flags=re.M)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            pass

    raise ValueError(f"Invalid JSON: {text[:200]}")


def _ask_validator(user_prompt: str, api_key: str | None = None, model: str | None = None) -> str:
    client = configure_openai(api_key)
    resp = client.chat.completions.create(
        model=model or os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        temperature=0,
        messages=[
            {"role": "system", "content": prompts.REVIEW_SYSTEM},
            {"role": "user", "content": user_prompt},
        ],
    )
    return resp.choices[0].message.content or ""


# ------------------------------------------------------------
# Main validator
# ------------------------------------------------------------
def validate_quiz_content(
    content: Dict[str, Any],
    api_key: str | None = None,
    model: str | None = None,
) -> Dict[str, Any]:
    """
    Review a quiz (title, description, questions with options) before it goes public.
    Output that cannot be parsed counts as a rejection with zero confidence.
    """
    user_prompt = prompts.format_review(
        content.get("title", ""), content.get("description"), content.get("questions") or []
    )
    raw = _ask_validator(user_prompt, api_key, model)

    try:
        data = _safe_json(raw)
    except ValueError as e:
        logger.error(f"[validator] unparseable response: {e}")
        return {
            "is_approved": False,
            "reasoning": "Content validation failed - unable to parse response",
            "confidence": 0,
            "concerns": ["Unable to validate content safety"],
        }

    concerns = data.get("concerns") or []
    if not isinstance(concerns, list):
        concerns = [str(concerns)]
    try:
        confidence = max(0, min(100, int(data.get("confidence", 0))))
    except (TypeError, ValueError):
        confidence = 0

    result = {
        "is_approved": data.get("isApproved") is True,
        "reasoning": str(data.get("reasoning") or "No reasoning provided"),
        "confidence": confidence,
        "concerns": [str(c) for c in concerns],
    }
    logger.info(
        f"[validator] approved={result['is_approved']} confidence={result['confidence']}"
    )
    return result


def rejection_message(result: Dict[str, Any]) -> str:
    message = f"Quiz content was rejected: {result['reasoning']}"
    if result.get("concerns"):
        message += f" Specific concerns: {', '.join(result['concerns'])}"
    return message
