"""Prompt templates for question generation, open-answer grading and explanations.

Everything here is pure: the functions only validate their inputs and render
strings, so they can run before any network call is attempted.
"""
from core.config import settings
from core.errors import ValidationError
from models.question import QuestionType

QUESTION_PROMPT = """You are a professional instructor.
Produce EXACTLY {count} {type}-style questions at difficulty {difficulty} (scale 1-10)
in {language} about: {topic}.

Return ONLY raw JSON (no markdown, no backticks, no commentary) with this exact shape:
{{
  "questions": {{
{entries}
  }}
}}

Rules:
- Use the keys question1 to question{count}, in order, and no other keys.
- "text" is the question itself and must not be empty.
- "solvingTime" is the number of seconds a player needs to answer.
{type_rules}"""

MCQ_ENTRY = '    "question{n}": {{"text": "...", "options": ["A) ...", "B) ...", "C) ...", "D) ..."], "correct": "A", "solvingTime": 30}}'
OPEN_ENTRY = '    "question{n}": {{"text": "...", "answer": "...", "solvingTime": 120}}'

MCQ_RULES = """- "options" has EXACTLY four entries labelled A), B), C), D).
- "correct" is the single letter (A, B, C or D) of the right option."""
OPEN_RULES = """- "answer" is a short reference answer used for grading."""

GRADING_PROMPT = """You are an examiner. Grade the candidate's answer with an integer score from {score_min} to {score_max}
and state if it is essentially correct. Also give a one-sentence explanation.
Respond ONLY with raw JSON (no markdown, no backticks) like:
{{"correct": true, "score": {score_max}, "explanation": "..."}}
Question: {question}
Candidate answer: {answer}"""

EXPLAIN_PROMPT = """Explain concisely why the following is the correct answer.
Question: {question}
Correct answer: {answer}"""


def parse_question_type(value) -> QuestionType:
    if not isinstance(value, str):
        raise ValidationError("Question type is required")
    try:
        return QuestionType(value.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown question type '{value}', expected 'mcq' or 'open'")


def validate_generation_params(difficulty, language, question_type, topic, count) -> QuestionType:
    """Check generation inputs and return the parsed question type."""
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValidationError("Question count must be a positive integer")
    if count > settings.MAX_QUESTIONS_PER_SESSION:
        raise ValidationError(f"Question count cannot exceed {settings.MAX_QUESTIONS_PER_SESSION}")
    if isinstance(difficulty, bool) or not isinstance(difficulty, int) or not 1 <= difficulty <= 10:
        raise ValidationError("Difficulty must be an integer between 1 and 10")
    if not isinstance(topic, str) or not topic.strip():
        raise ValidationError("Topic is required")
    if not isinstance(language, str) or not language.strip():
        raise ValidationError("Language is required")
    return parse_question_type(question_type)


def build_question_prompt(difficulty: int, language: str, question_type, topic: str, count: int) -> str:
    qtype = validate_generation_params(difficulty, language, question_type, topic, count)

    entry = MCQ_ENTRY if qtype is QuestionType.MCQ else OPEN_ENTRY
    entries = ",\n".join(entry.format(n=n) for n in range(1, count + 1))

    return QUESTION_PROMPT.format(
        count=count,
        type=qtype.value,
        difficulty=difficulty,
        language=language.strip(),
        topic=topic.strip(),
        entries=entries,
        type_rules=MCQ_RULES if qtype is QuestionType.MCQ else OPEN_RULES,
    )


def build_grading_prompt(question_text: str, user_answer: str,
                         score_min: int = None, score_max: int = None) -> str:
    return GRADING_PROMPT.format(
        score_min=settings.OPEN_SCORE_MIN if score_min is None else score_min,
        score_max=settings.OPEN_SCORE_MAX if score_max is None else score_max,
        question=question_text,
        answer=user_answer,
    )


def build_explanation_prompt(question_text: str, correct_answer: str) -> str:
    return EXPLAIN_PROMPT.format(question=question_text, answer=correct_answer)
