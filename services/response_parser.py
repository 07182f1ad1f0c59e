import json
import math
import re
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from core.errors import ContractViolationError, MalformedEnvelopeError
from core.logger import logger
from models.question import QuestionType, MCQ_LABELS


class McqRecord(BaseModel):
    """Closed-form question as returned by the generator."""
    type: Literal["mcq"] = "mcq"
    text: str
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct: str
    solving_time: Optional[int] = None


class OpenRecord(BaseModel):
    """Open-form question with a reference answer."""
    type: Literal["open"] = "open"
    text: str
    answer: str
    solving_time: Optional[int] = None


QuestionRecord = Annotated[Union[McqRecord, OpenRecord], Field(discriminator="type")]


class GradingResult(BaseModel):
    correct: bool
    score: int
    explanation: str = ""


_FENCE_START = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_END = re.compile(r"\s*```\s*$")


def extract_content(envelope) -> str:
    """Return choices[0].message.content from a chat-completion envelope."""
    if isinstance(envelope, (str, bytes)):
        try:
            envelope = json.loads(envelope)
        except json.JSONDecodeError as e:
            raise MalformedEnvelopeError(f"Envelope is not valid JSON: {e}")

    try:
        content = envelope["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise MalformedEnvelopeError("Envelope has no choices[0].message.content")

    if not isinstance(content, str):
        raise MalformedEnvelopeError("Envelope content is not text")
    return content.strip()


def strip_code_fence(text: str) -> str:
    """Drop a surrounding ``` fence and any prose outside the outermost braces."""
    t = text.strip()
    if t.startswith("```"):
        t = _FENCE_START.sub("", t, count=1)
        t = _FENCE_END.sub("", t, count=1)

    first = t.find("{")
    last = t.rfind("}")
    if first >= 0 and last > first:
        return t[first:last + 1].strip()
    return t


def _load_object(content: str) -> dict:
    try:
        data = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as e:
        logger.warning("Generator returned invalid JSON", content=content[:500])
        raise ContractViolationError(f"Generated content is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ContractViolationError("Generated content must be a JSON object")
    return data


def _solving_time(entry: dict, key: str) -> Optional[int]:
    value = entry.get("solvingTime")
    if value is None:
        return None
    if isinstance(value, bool):
        raise ContractViolationError(f"{key}.solvingTime must be a positive integer")
    try:
        seconds = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ContractViolationError(f"{key}.solvingTime must be a positive integer")
    if seconds <= 0:
        raise ContractViolationError(f"{key}.solvingTime must be a positive integer")
    return seconds


def _required_text(entry: dict, key: str, field: str) -> str:
    value = entry.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ContractViolationError(f"{key} is missing required field '{field}'")
    return value.strip()


def _parse_mcq(entry: dict, key: str) -> McqRecord:
    text = _required_text(entry, key, "text")

    options = entry.get("options")
    if not isinstance(options, list):
        raise ContractViolationError(f"{key} is missing required field 'options'")
    if len(options) != len(MCQ_LABELS):
        raise ContractViolationError(f"{key} must have exactly {len(MCQ_LABELS)} options, got {len(options)}")
    if any(not isinstance(o, str) or not o.strip() for o in options):
        raise ContractViolationError(f"{key} has an empty option")

    correct = _required_text(entry, key, "correct").upper().rstrip(").")
    if correct not in MCQ_LABELS:
        raise ContractViolationError(f"{key}.correct must be one of {', '.join(MCQ_LABELS)}, got '{entry['correct']}'")

    return McqRecord(
        text=text,
        options=[o.strip() for o in options],
        correct=correct,
        solving_time=_solving_time(entry, key),
    )


def _parse_open(entry: dict, key: str) -> OpenRecord:
    return OpenRecord(
        text=_required_text(entry, key, "text"),
        answer=_required_text(entry, key, "answer"),
        solving_time=_solving_time(entry, key),
    )


def parse_question_batch(content: str, expected_count: int, question_type: QuestionType) -> List[QuestionRecord]:
    """
    Validate a generated batch against the question contract.

    The payload must hold exactly ``expected_count`` entries keyed
    question1..questionN in order. Nothing is repaired: the first problem
    raises ContractViolationError.
    """
    data = _load_object(content)

    questions = data.get("questions")
    if not isinstance(questions, dict):
        raise ContractViolationError("Generated content is missing key 'questions'")

    expected_keys = [f"question{n}" for n in range(1, expected_count + 1)]

    if len(questions) != expected_count:
        delta = expected_count - len(questions)
        missing = [k for k in expected_keys if k not in questions]
        detail = f"missing {', '.join(missing)}" if missing else f"{-delta} unexpected entries"
        raise ContractViolationError(
            f"Expected {expected_count} questions but got {len(questions)} ({detail})"
        )

    for key in expected_keys:
        if key not in questions:
            raise ContractViolationError(f"Missing key {key}")
    if list(questions.keys()) != expected_keys:
        raise ContractViolationError("Question keys are out of order")

    parse = _parse_mcq if question_type is QuestionType.MCQ else _parse_open
    records = []
    for key in expected_keys:
        entry = questions[key]
        if not isinstance(entry, dict):
            raise ContractViolationError(f"{key} must be a JSON object")
        records.append(parse(entry, key))
    return records


def parse_grading_result(content: str) -> GradingResult:
    data = _load_object(content)

    for field in ("correct", "score"):
        if field not in data:
            raise ContractViolationError(f"Grading result is missing required field '{field}'")

    correct = data["correct"]
    if not isinstance(correct, bool):
        raise ContractViolationError("Grading result field 'correct' must be a boolean")

    score = data["score"]
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ContractViolationError("Grading result field 'score' must be a number")
    # json.loads accepts NaN, Infinity and overflowing literals like 1e400
    if isinstance(score, float) and not math.isfinite(score):
        raise ContractViolationError("Grading result field 'score' must be a finite number")

    explanation = data.get("explanation") or ""
    if not isinstance(explanation, str):
        explanation = str(explanation)

    return GradingResult(correct=correct, score=int(score), explanation=explanation.strip())
