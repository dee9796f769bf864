# backend/quizfoundry/core/openai_qg.py

import os, json, logging, re, asyncio
from typing import Dict, Any, List, TypedDict
from openai import AsyncOpenAI

from . import prompts
from .errors import AIGenerationError, AppError, ContentRefusalError, InvalidResponseError
from .schemas import DIFFICULTIES

logger = logging.getLogger("quizfoundry.ai")

MAX_RETRIES = 2
RETRY_DELAY_SECONDS = 1.0

# ------------------------------------------------------------
# Types for clarity
# ------------------------------------------------------------
class QuizGenerationInput(TypedDict):
    prompt: str
    difficulty: str
    question_count: int
    options_count: int

class GeneratedOption(TypedDict):
    option_text: str
    is_correct: bool
    order_index: int

class GeneratedQuestion(TypedDict):
    question_text: str
    question_type: str
    order_index: int
    options: List[GeneratedOption]

class GeneratedQuiz(TypedDict):
    title: str
    description: str
    difficulty: str
    questions: List[GeneratedQuestion]

# ------------------------------------------------------------
# Global OpenAI client (async)
# ------------------------------------------------------------
_client: AsyncOpenAI | None = None
_model: str = "gpt-4o-mini"

def configure_openai(api_key: str | None = None, model: str | None = None) -> AsyncOpenAI:
    """Create or reuse an AsyncOpenAI client."""
    global _client, _model
    if model:
        _model = model
    if _client is None:
        key = api_key or os.getenv("OPENAI_API_KEY", "")
        if not key:
            raise AIGenerationError("OpenAI API key is not configured", retryable=False)
        _client = AsyncOpenAI(api_key=key)
        logger.info("OpenAI async client configured (global instance).")
    return _client

async def _complete(system: str, user: str, temperature: float = 0.7) -> str:
    """Single chat completion; returns the stripped text of the first choice."""
    client = configure_openai()
    resp = await client.chat.completions.create(
        model=_model,
        temperature=temperature,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
    )
    return (resp.choices[0].message.content or "").strip()

# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_FENCED_ANY = re.compile(r"```\s*([\s\S]*?)\s*```")
_BARE_OBJECT = re.compile(r"\{[\s\S]*\}")

_REFUSAL_PATTERNS = [
    re.compile(r"I cannot|I can't|I'm unable to|I won't be able to", re.I),
    re.compile(r"I cannot fulfill|I cannot create|I cannot generate|I cannot provide", re.I),
    re.compile(r"inappropriate|harmful|offensive|unethical", re.I),
    re.compile(r"against my guidelines|violates guidelines|against my programming", re.I),
    re.compile(r"refuse to generate|cannot assist with", re.I),
]

_REASONING_KEYWORDS = (
    "because", "since", "as", "due to", "reason", "harmful", "offensive",
    "inappropriate", "unethical", "violates", "against", "promotes",
)

def _json_block(text: str) -> re.Match | None:
    return _FENCED_JSON.search(text) or _FENCED_ANY.search(text) or _BARE_OBJECT.search(text)

def _is_refusal(text: str) -> bool:
    # Only prose outside the JSON payload counts; quiz content may mention these words.
    if not text:
        return False
    block = _json_block(text)
    prose = text if block is None else text[: block.start()] + text[block.end():]
    return any(p.search(prose) for p in _REFUSAL_PATTERNS)

def _refusal_reasoning(text: str) -> str:
    sentences = [s.strip() for s in re.split(r"[.!?]+", text) if len(s.strip()) > 10]
    for sentence in sentences:
        lowered = sentence.lower()
        if any(k in lowered for k in _REASONING_KEYWORDS):
            return sentence
    for sentence in sentences:
        if len(sentence) > 30:
            return sentence
    return "Content was deemed inappropriate by the AI"

def _parse_json_response(text: str) -> Dict[str, Any]:
    if not text:
        raise InvalidResponseError("No JSON content found in AI response", text)

    block = _json_block(text)
    snippet = (block.group(1) if block and block.groups() else block.group(0)) if block else text
    if not snippet.strip():
        raise InvalidResponseError("No JSON content found in AI response", text[:500])

    for candidate in (snippet, re.sub(r",\s*([}\]])", r"\1", snippet)):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            raise InvalidResponseError("AI response is not a valid object", text[:500])
        return data

    logger.error(f"[AI] could not parse model output: {text[:200]}")
    raise InvalidResponseError("Failed to parse AI response as JSON. Please try again.", text[:500])

def _normalize_options(raw: Any, where: str) -> List[GeneratedOption]:
    if not isinstance(raw, list):
        raise InvalidResponseError(f"{where}: Missing or invalid options")
    if not raw:
        raise InvalidResponseError(f"{where}: Must have at least one option")
    options: List[GeneratedOption] = []
    for i, opt in enumerate(raw):
        text = opt.get("option_text") if isinstance(opt, dict) else None
        if not text or not isinstance(text, str):
            raise InvalidResponseError(f"{where}, Option {i + 1}: Missing or invalid option text")
        options.append({
            "option_text": text.strip(),
            "is_correct": bool(opt.get("is_correct")),
            "order_index": i,
        })
    return options

def _normalize_questions(raw: Any, options_count: int | None = None) -> List[GeneratedQuestion]:
    questions: List[GeneratedQuestion] = []
    for q_index, q in enumerate(raw):
        where = f"Question {q_index + 1}"
        text = q.get("question_text") if isinstance(q, dict) else None
        if not text or not isinstance(text, str):
            raise InvalidResponseError(f"{where}: Missing or invalid question text")

        options = _normalize_options(q.get("options"), where)
        correct = sum(1 for o in options if o["is_correct"])
        if correct != 1:
            raise InvalidResponseError(
                f"{where}: Must have exactly one correct answer (found {correct})"
            )
        if options_count is not None and len(options) != options_count:
            logger.warning(f"[AI] {where}: got {len(options)} options, expected {options_count}")

        questions.append({
            "question_text": text.strip(),
            "question_type": "multiple_choice",
            "order_index": q_index,
            "options": options,
        })
    return questions

def _normalize_quiz(data: Dict[str, Any], params: QuizGenerationInput) -> GeneratedQuiz:
    title = data.get("title")
    if not title or not isinstance(title, str):
        raise InvalidResponseError("Quiz title is missing or invalid")
    if not isinstance(data.get("questions"), list):
        raise InvalidResponseError("Quiz questions are missing or invalid")
    if not data["questions"]:
        raise InvalidResponseError("Quiz must have at least one question")

    title = " ".join(title.split()[:8])
    questions = _normalize_questions(data["questions"], params["options_count"])
    if len(questions) != params["question_count"]:
        logger.warning(f"[AI] got {len(questions)} questions, expected {params['question_count']}")

    description = data.get("description")
    description = description.strip() if isinstance(description, str) else ""
    return {
        "title": title,
        "description": description
        or f"A {params['difficulty']} difficulty quiz covering various aspects of the topic.",
        "difficulty": params["difficulty"],
        "questions": questions,
    }

def _validate_input(params: QuizGenerationInput) -> None:
    prompt = (params.get("prompt") or "").strip()
    if not prompt:
        raise AppError("Quiz prompt cannot be empty", 400)
    if len(prompt) < 10:
        raise AppError("Quiz prompt must be at least 10 characters", 400)
    if len(prompt) > 2000:
        raise AppError("Quiz prompt must be less than 2000 characters", 400)
    if not 3 <= params["question_count"] <= 20:
        raise AppError("Question count must be between 3 and 20", 400)
    if not 2 <= params["options_count"] <= 8:
        raise AppError("Options count must be between 2 and 8", 400)
    if params["difficulty"] not in DIFFICULTIES:
        raise AppError("Difficulty must be easy, medium, or hard", 400)

# ------------------------------------------------------------
# Quiz generation (with retries)
# ------------------------------------------------------------
async def _generate_once(params: QuizGenerationInput) -> GeneratedQuiz:
    user_prompt = prompts.format_quiz_generation(
        params["prompt"], params["difficulty"], params["question_count"], params["options_count"]
    )
    logger.info(
        f"[AI] requesting {params['difficulty']} quiz with {params['question_count']} questions"
    )
    text = await _complete(prompts.QUIZ_SYSTEM, user_prompt)
    if not text:
        raise AIGenerationError("No response received from OpenAI", retryable=True)
    logger.debug(f"[AI] received response ({len(text)} chars)")

    if _is_refusal(text):
        reasoning = _refusal_reasoning(text)
        raise ContentRefusalError(f"AI refused to generate quiz: {reasoning}", reasoning)

    return _normalize_quiz(_parse_json_response(text), params)

async def generate_quiz_with_ai(params: QuizGenerationInput) -> GeneratedQuiz:
    """Generate a validated, normalised quiz. Refusals and malformed output are never retried."""
    if not (_client or os.getenv("OPENAI_API_KEY")):
        raise AIGenerationError("OpenAI API key is not configured", retryable=False)
    _validate_input(params)

    attempt = 0
    while True:
        logger.info(f"[AI] attempt {attempt + 1}/{MAX_RETRIES + 1}")
        try:
            quiz = await _generate_once(params)
            logger.info(f"[AI] generated quiz \"{quiz['title']}\"")
            return quiz
        except (ContentRefusalError, InvalidResponseError):
            raise
        except AIGenerationError as e:
            error = e
        except AppError:
            raise
        except Exception as e:
            logger.error(f"[AI] unexpected error on attempt {attempt + 1}: {e}", exc_info=True)
            error = AIGenerationError(
                "An unexpected error occurred while generating the quiz. Please try again.",
                retryable=True,
            )

        if not error.retryable or attempt >= MAX_RETRIES:
            raise error
        attempt += 1
        logger.warning(f"[AI] retrying in {RETRY_DELAY_SECONDS}s (attempt {attempt + 1})")
        await asyncio.sleep(RETRY_DELAY_SECONDS)

# ------------------------------------------------------------
# Creative prompt & editing assistance
# ------------------------------------------------------------
async def generate_creative_quiz_prompt() -> str:
    text = await _complete(prompts.CREATIVE_SYSTEM, prompts.CREATIVE_USER, temperature=1.0)
    text = text.strip().strip('"')
    if not text:
        raise AppError("Failed to generate quiz prompt", 500)
    return text

async def generate_additional_questions(context: Dict[str, Any], count: int) -> Dict[str, Any]:
    text = await _complete(
        prompts.ADDITIONAL_QUESTIONS_SYSTEM, prompts.format_additional_questions(context, count)
    )
    data = _parse_json_response(text)
    if not isinstance(data.get("questions"), list):
        raise InvalidResponseError("Generated questions are missing or invalid", text[:500])
    questions = _normalize_questions(data["questions"])
    start = len(context.get("existing_questions") or [])
    for i, q in enumerate(questions):
        q["order_index"] = start + i
    logger.info(f"[AI] generated {len(questions)} additional questions")
    return {"questions": questions}

async def enhance_question(question_text: str, context: Dict[str, Any]) -> Dict[str, Any]:
    text = await _complete(
        prompts.ENHANCE_SYSTEM, prompts.format_question_enhancement(question_text, context)
    )
    enhanced = _parse_json_response(text).get("enhanced_question")
    if not isinstance(enhanced, dict) or not isinstance(enhanced.get("question_text"), str):
        raise InvalidResponseError("Enhanced question is missing or invalid", text[:500])
    return {
        "enhanced_question": {
            "question_text": enhanced["question_text"].strip(),
            "reasoning": str(enhanced.get("reasoning", "")).strip(),
        }
    }

async def generate_additional_options(
    question_text: str, existing_options: List[Dict[str, Any]], options_count: int
) -> Dict[str, Any]:
    text = await _complete(
        prompts.ADDITIONAL_OPTIONS_SYSTEM,
        prompts.format_additional_options(question_text, existing_options, options_count),
    )
    options = _normalize_options(_parse_json_response(text).get("options"), "Generated options")
    start = len(existing_options)
    for i, opt in enumerate(options):
        opt["is_correct"] = False
        opt["order_index"] = start + i
    return {"options": options}

async def suggest_question_types(topic: str, difficulty: str) -> Dict[str, Any]:
    text = await _complete(prompts.QUESTION_TYPES_SYSTEM, prompts.format_question_types(topic, difficulty))
    raw = _parse_json_response(text).get("suggestions")
    if not isinstance(raw, list):
        raise InvalidResponseError("Question type suggestions are missing or invalid", text[:500])
    suggestions = [
        {
            "type": str(s.get("type", "")).strip(),
            "description": str(s.get("description", "")).strip(),
            "example": str(s.get("example", "")).strip(),
        }
        for s in raw
        if isinstance(s, dict) and s.get("type")
    ]
    return {"suggestions": suggestions}
