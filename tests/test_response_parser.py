import json

import pytest

from conftest import batch, envelope, mcq_batch, mcq_entry, open_batch
from core.errors import ContractViolationError, MalformedEnvelopeError
from models.question import QuestionType
from services.response_parser import (
    McqRecord,
    OpenRecord,
    extract_content,
    parse_grading_result,
    parse_question_batch,
    strip_code_fence,
)


def test_extract_content_from_envelope_text():
    assert extract_content(envelope("  hello  ")) == "hello"
    assert extract_content({"choices": [{"message": {"content": "x"}}]}) == "x"


@pytest.mark.parametrize("body", [
    "not json",
    json.dumps({"choices": []}),
    json.dumps({"choices": [{"message": {}}]}),
    json.dumps({"error": {"message": "quota"}}),
    json.dumps({"choices": [{"message": {"content": None}}]}),
])
def test_extract_content_malformed(body):
    with pytest.raises(MalformedEnvelopeError):
        extract_content(body)


def test_strip_code_fence():
    fenced = '```json\n{"questions": {}}\n```'
    assert strip_code_fence(fenced) == '{"questions": {}}'
    assert strip_code_fence('Sure! {"a": 1} Hope this helps') == '{"a": 1}'


def test_parse_exact_mcq_batch():
    records = parse_question_batch(mcq_batch(3, correct="b)"), 3, QuestionType.MCQ)

    assert len(records) == 3
    assert all(isinstance(r, McqRecord) for r in records)
    assert [r.text for r in records] == ["Question number 1?", "Question number 2?", "Question number 3?"]
    assert all(len(r.options) == 4 for r in records)
    assert all(r.correct == "B" for r in records)
    assert records[0].solving_time == 20


def test_parse_open_batch_inside_fence():
    content = "```json\n" + open_batch(2, solving_time=None) + "\n```"
    records = parse_question_batch(content, 2, QuestionType.OPEN)

    assert all(isinstance(r, OpenRecord) for r in records)
    assert records[1].answer == "Reference answer 2"
    assert records[0].solving_time is None


def test_four_of_five_is_a_contract_violation():
    with pytest.raises(ContractViolationError) as exc:
        parse_question_batch(mcq_batch(4), 5, QuestionType.MCQ)
    assert "Expected 5 questions but got 4" in exc.value.message
    assert "question5" in exc.value.message


def test_too_many_questions_rejected():
    with pytest.raises(ContractViolationError):
        parse_question_batch(mcq_batch(4), 3, QuestionType.MCQ)


def test_wrong_keys_rejected():
    content = json.dumps({"questions": {"question1": mcq_entry(1), "q2": mcq_entry(2)}})
    with pytest.raises(ContractViolationError) as exc:
        parse_question_batch(content, 2, QuestionType.MCQ)
    assert "question2" in exc.value.message


def test_out_of_order_keys_rejected():
    content = json.dumps({"questions": {"question2": mcq_entry(2), "question1": mcq_entry(1)}})
    with pytest.raises(ContractViolationError):
        parse_question_batch(content, 2, QuestionType.MCQ)


@pytest.mark.parametrize("entry", [
    {"text": "Q?", "options": ["A) a", "B) b", "C) c"], "correct": "A"},
    {"text": "Q?", "options": ["A) a", "B) b", "C) c", "D) d"], "correct": "E"},
    {"text": "", "options": ["A) a", "B) b", "C) c", "D) d"], "correct": "A"},
    {"text": "Q?", "options": ["A) a", "B) b", "C) c", "D) d"]},
    {"text": "Q?", "options": ["A) a", "B) b", "C) c", "D) d"], "correct": "A", "solvingTime": -5},
])
def test_bad_mcq_entries_rejected(entry):
    with pytest.raises(ContractViolationError):
        parse_question_batch(batch([entry]), 1, QuestionType.MCQ)


def test_open_entry_needs_answer():
    with pytest.raises(ContractViolationError):
        parse_question_batch(batch([{"text": "Why?"}]), 1, QuestionType.OPEN)


def test_missing_questions_key_and_invalid_json():
    with pytest.raises(ContractViolationError):
        parse_question_batch(json.dumps({"items": []}), 1, QuestionType.MCQ)
    with pytest.raises(ContractViolationError):
        parse_question_batch("{not json", 1, QuestionType.MCQ)


def test_parse_grading_result():
    result = parse_grading_result('```json\n{"correct": true, "score": 87.6, "explanation": " Good "}\n```')
    assert result.correct is True
    assert result.score == 87
    assert result.explanation == "Good"


@pytest.mark.parametrize("content", [
    json.dumps({"score": 10}),
    json.dumps({"correct": True}),
    json.dumps({"correct": "yes", "score": 10}),
    json.dumps({"correct": True, "score": "ten"}),
    "no json here",
])
def test_bad_grading_results_rejected(content):
    with pytest.raises(ContractViolationError):
        parse_grading_result(content)


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e400"])
def test_non_finite_grading_score_rejected(literal):
    with pytest.raises(ContractViolationError):
        parse_grading_result('{"correct": true, "score": %s}' % literal)


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "1e400"])
def test_non_finite_solving_time_rejected(literal):
    content = '{"questions": {"question1": {"text": "Q?", "answer": "A", "solvingTime": %s}}}' % literal
    with pytest.raises(ContractViolationError):
        parse_question_batch(content, 1, QuestionType.OPEN)
