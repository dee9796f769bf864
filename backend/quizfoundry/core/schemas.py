# backend/quizfoundry/core/schemas.py

import re
from typing import Annotated, Any, Dict, List, Literal, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import AppError
from .validation import is_email, validate_password

DIFFICULTIES = ("easy", "medium", "hard")
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _check_length(value: str, lo: int, hi: int, too_short: str, too_long: str) -> str:
    value = value.strip()
    if len(value) < lo:
        raise ValueError(too_short)
    if len(value) > hi:
        raise ValueError(too_long)
    return value


def _check_difficulty(value: str) -> str:
    if value not in DIFFICULTIES:
        raise ValueError("Difficulty must be easy, medium, or hard")
    return value


def _check_prompt(value: str) -> str:
    return _check_length(
        value, 10, 2000,
        "Prompt must be at least 10 characters",
        "Prompt must be less than 2000 characters",
    )


Prompt = Annotated[str, AfterValidator(_check_prompt)]
Difficulty = Annotated[str, AfterValidator(_check_difficulty)]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ------------------------------------------------------------
# Auth & users
# ------------------------------------------------------------
class SignupRequest(_Request):
    email: str
    password: str
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        if not is_email(v):
            raise ValueError("Invalid email address")
        return v.lower()

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        result = validate_password(v)
        if not result.is_valid:
            raise ValueError("; ".join(result.errors))
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < 1:
            raise ValueError("Name is required")
        return v


class LoginRequest(_Request):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        if not is_email(v):
            raise ValueError("Invalid email address")
        return v.lower()

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class RefreshRequest(_Request):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(_Request):
    refresh_token: Optional[str] = None
    all_sessions: bool = False


class UpdateUserRequest(_Request):
    name: Optional[str] = None
    role: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(v) > 50:
            raise ValueError("Name must not exceed 50 characters")
        if not v.strip():
            raise ValueError("Name cannot be empty or whitespace only")
        return v

    @field_validator("avatar_url")
    @classmethod
    def _avatar(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _URL_RE.match(v):
            raise ValueError("Invalid url")
        return v

    @field_validator("bio")
    @classmethod
    def _bio(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if len(v) > 500:
            raise ValueError("Bio must not exceed 500 characters")
        if v != "" and not v.strip():
            raise ValueError("Bio cannot contain only whitespace")
        return v


# ------------------------------------------------------------
# Onboarding
# ------------------------------------------------------------
class PartialOnboardingData(_Request):
    name: Optional[str] = None
    role: Optional[str] = None


class UpdateOnboardingRequest(_Request):
    flow_type: str
    current_step: int = Field(ge=0)
    is_complete: Optional[bool] = None
    onboarding_data: Optional[PartialOnboardingData] = None

    @field_validator("flow_type")
    @classmethod
    def _flow(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("Flow type is required")
        return v


class CompleteOnboardingRequest(_Request):
    name: str
    role: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("Name is required")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("Role is required")
        return v


# ------------------------------------------------------------
# Quiz creation (AI)
# ------------------------------------------------------------
class ExpressQuizRequest(_Request):
    """Express mode: only the prompt is user-controlled; counts are presets."""

    prompt: Prompt
    is_public: bool = True


class PrototypeQuizRequest(_Request):
    prompt: Prompt
    question_count: int = Field(alias="questionCount")
    options_count: int = Field(alias="optionsCount")
    difficulty: Difficulty

    @field_validator("question_count")
    @classmethod
    def _questions(cls, v: int) -> int:
        if v < 3:
            raise ValueError("Must have at least 3 questions")
        if v > 20:
            raise ValueError("Cannot have more than 20 questions")
        return v

    @field_validator("options_count")
    @classmethod
    def _options(cls, v: int) -> int:
        if v < 2:
            raise ValueError("Must have at least 2 options")
        if v > 8:
            raise ValueError("Cannot have more than 8 options")
        return v


class AdvancedQuizRequest(PrototypeQuizRequest):
    is_public: bool = True


# ------------------------------------------------------------
# Questions & options
# ------------------------------------------------------------
class OptionInput(_Request):
    option_text: str
    is_correct: bool = False
    order_index: int = Field(ge=0)

    @field_validator("option_text")
    @classmethod
    def _text(cls, v: str) -> str:
        return _check_length(
            v, 1, 200,
            "Option text is required",
            "Option text must be less than 200 characters",
        )


def _check_options(options: List[OptionInput]) -> List[OptionInput]:
    if len(options) < 2:
        raise ValueError("Multiple choice questions must have at least 2 options")
    if len(options) > 8:
        raise ValueError("Questions cannot have more than 8 options")
    return options


class QuestionInput(_Request):
    question_text: str
    question_type: Literal["multiple_choice", "short_answer"] = "multiple_choice"
    order_index: int = Field(ge=0)
    options: Optional[List[OptionInput]] = None

    @field_validator("question_text")
    @classmethod
    def _text(cls, v: str) -> str:
        return _check_length(
            v, 10, 500,
            "Question text must be at least 10 characters",
            "Question text must be less than 500 characters",
        )

    @field_validator("options")
    @classmethod
    def _options(cls, v: Optional[List[OptionInput]]) -> Optional[List[OptionInput]]:
        return v if v is None else _check_options(v)


class FullQuestionInput(QuestionInput):
    options: List[OptionInput]

    @field_validator("options")
    @classmethod
    def _options(cls, v: List[OptionInput]) -> List[OptionInput]:
        _check_options(v)
        correct = sum(1 for o in v if o.is_correct)
        if correct == 0:
            raise ValueError("Each question must have at least one correct answer")
        if correct != 1:
            raise ValueError("Each question must have exactly one correct answer")
        return v


# ------------------------------------------------------------
# Manual quizzes & updates
# ------------------------------------------------------------
class _QuizMeta(_Request):
    title: str
    description: Optional[str] = None
    difficulty: Difficulty
    is_public: bool = True

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _check_length(
            v, 3, 200,
            "Title must be at least 3 characters",
            "Title must be less than 200 characters",
        )

    @field_validator("description")
    @classmethod
    def _description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_length(v, 0, 1000, "", "Description must be less than 1000 characters")


class CreateManualQuizRequest(_QuizMeta):
    pass


class UpdateQuizWithQuestionsRequest(_QuizMeta):
    questions: List[FullQuestionInput]

    @field_validator("questions")
    @classmethod
    def _questions(cls, v: List[FullQuestionInput]) -> List[FullQuestionInput]:
        if len(v) < 1:
            raise ValueError("Quiz must have at least 1 question")
        if len(v) > 20:
            raise ValueError("Quiz cannot have more than 20 questions")
        return v


class PublishManualQuizRequest(UpdateQuizWithQuestionsRequest):
    original_prompt: Optional[str] = None

    @field_validator("original_prompt")
    @classmethod
    def _original_prompt(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_length(
            v, 10, 2000,
            "Original prompt must be at least 10 characters",
            "Original prompt must be less than 2000 characters",
        )


class UpdateQuizRequest(_Request):
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty: Optional[str] = None
    is_public: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_length(
            v, 3, 200,
            "Title must be at least 3 characters",
            "Title must be less than 200 characters",
        )

    @field_validator("description")
    @classmethod
    def _description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_length(v, 0, 1000, "", "Description must be less than 1000 characters")

    @field_validator("difficulty")
    @classmethod
    def _difficulty(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_difficulty(v)


# ------------------------------------------------------------
# Taking quizzes
# ------------------------------------------------------------
class SubmittedAnswer(_Request):
    question_id: str = Field(alias="questionId")
    option_id: str = Field(alias="optionId")


class SubmitQuizRequest(_Request):
    answers: List[SubmittedAnswer]


# ------------------------------------------------------------
# AI assistance
# ------------------------------------------------------------
class ContextOption(_Request):
    option_text: str
    is_correct: bool = False


class ContextQuestion(_Request):
    question_text: str
    options: List[ContextOption] = Field(default_factory=list)


class QuizContext(_Request):
    title: str
    description: Optional[str] = None
    difficulty: Difficulty
    original_prompt: str = Field(alias="originalPrompt")
    existing_questions: List[ContextQuestion] = Field(default_factory=list, alias="existingQuestions")


class GenerateQuestionsRequest(_Request):
    quiz_id: Optional[str] = None
    count: int = Field(default=3, ge=1, le=10)
    context: Optional[QuizContext] = None


class EnhanceQuestionRequest(_Request):
    quiz_id: Optional[str] = None
    question_text: str = Field(min_length=1, max_length=500)
    context: Optional[QuizContext] = None


class GenerateOptionsRequest(_Request):
    quiz_id: Optional[str] = None
    question_text: str = Field(min_length=1, max_length=500)
    existing_options: List[ContextOption] = Field(default_factory=list)
    options_count: int = Field(default=2, ge=1, le=6, alias="optionsCount")


class QuestionTypeSuggestionsRequest(_Request):
    quiz_id: Optional[str] = None
    topic: str = Field(min_length=1, max_length=2000)
    difficulty: Difficulty


# ------------------------------------------------------------
# Responses
# ------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float


class MetaResponse(BaseModel):
    message: str
    success: bool


def envelope(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def error_messages(errors: List[Dict[str, Any]]) -> List[str]:
    """Flatten pydantic error dicts into their human-readable messages."""
    messages = []
    for err in errors:
        msg = str(err.get("msg", "Invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        elif err.get("type") == "missing":
            msg = f"{'.'.join(str(p) for p in err.get('loc', ())[-1:])} is required"
        messages.append(msg)
    return messages


def parse_body(model, data: Any, message: Optional[str] = None, prefix: str = "", sep: str = "; "):
    """
    Validate a raw JSON body against `model`. On failure raise a 400 AppError whose message is
    either the fixed `message` or `prefix` plus the individual messages joined by `sep`.
    """
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as e:
        errors = e.errors(include_url=False)
        text = message or prefix + sep.join(error_messages(errors))
        raise AppError(text, 400, details=jsonable_encoder(errors))
