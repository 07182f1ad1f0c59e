from types import SimpleNamespace

import pytest
from sqlalchemy import select

from conftest import FakeGateway, grading, mcq_batch, open_batch
from core.config import settings
from core.errors import GatewayError, GradingFailedError, NotFoundError, ValidationError
from models.question import QuestionAnswer
from models.session import Player
from services import answer_service
from services.answer_service import AnswerService, clamp
from services.question_service import GenerationParams, QuestionService
from services.session_service import SessionService


async def generate(db, question_type="mcq", count=1):
    content = mcq_batch(count, correct="B") if question_type == "mcq" else open_batch(count)
    params = GenerationParams.build(4, "English", question_type, "Databases", count)
    return await QuestionService(db, FakeGateway(content)).generate_questions(params, "alice")


def test_clamp():
    assert clamp(9000, 1, 100) == 100
    assert clamp(-3, 1, 100) == 1
    assert clamp(42, 1, 100) == 42


@pytest.mark.parametrize("answer", ["B", "b", " b "])
async def test_mcq_grading_is_case_insensitive(db, answer):
    [question] = await generate(db)
    gateway = FakeGateway()

    result = await AnswerService(db, gateway).submit_answer(question["id"], answer)

    assert result["correct"] is True
    assert result["score"] == settings.MCQ_CORRECT_SCORE
    assert "explanation" not in result
    assert gateway.prompts == []


async def test_mcq_wrong_answer_scores_nothing(db):
    [question] = await generate(db)

    result = await AnswerService(db, FakeGateway()).submit_answer(question["id"], "a", score=500)

    assert result["correct"] is False
    assert result["score"] == settings.MCQ_INCORRECT_SCORE


async def test_mcq_caller_score_is_clamped(db):
    [question] = await generate(db)
    service = AnswerService(db, FakeGateway())

    assert (await service.submit_answer(question["id"], "B", score=350))["score"] == 350
    assert (await service.submit_answer(question["id"], "B", score=5000))["score"] == settings.MCQ_CORRECT_SCORE_MAX
    assert (await service.submit_answer(question["id"], "B", score=-10))["score"] == 0


async def test_open_score_clamped_to_range(db):
    [question] = await generate(db, "open")
    gateway = FakeGateway(grading(True, 9000, "Spot on."))

    result = await AnswerService(db, gateway).submit_answer(question["id"], "Tables with rows")

    assert result["correct"] is True
    assert result["score"] == settings.OPEN_SCORE_MAX
    assert result["explanation"] == "Spot on."
    assert "Tables with rows" in gateway.prompts[0]

    stored = (await db.execute(select(QuestionAnswer))).scalars().all()
    assert [a.score for a in stored] == [settings.OPEN_SCORE_MAX]


async def test_open_score_raised_to_minimum(db):
    [question] = await generate(db, "open")

    result = await AnswerService(db, FakeGateway(grading(False, 0))).submit_answer(question["id"], "no idea")

    assert result["correct"] is False
    assert result["score"] == settings.OPEN_SCORE_MIN


async def test_unparseable_grading_is_grading_failed(db):
    [question] = await generate(db, "open")

    with pytest.raises(GradingFailedError):
        await AnswerService(db, FakeGateway("I think it is fine")).submit_answer(question["id"], "x")

    assert (await db.execute(select(QuestionAnswer))).scalars().all() == []


async def test_gateway_failure_propagates(db):
    [question] = await generate(db, "open")

    with pytest.raises(GatewayError):
        await AnswerService(db, FakeGateway(GatewayError("down"))).submit_answer(question["id"], "x")


async def test_submit_validation(db):
    [question] = await generate(db)
    service = AnswerService(db, FakeGateway())

    with pytest.raises(ValidationError):
        await service.submit_answer(question["id"], None)
    with pytest.raises(ValidationError):
        await service.submit_answer(question["id"], "B", score="high")
    with pytest.raises(NotFoundError):
        await service.submit_answer(12345, "B")


async def test_answer_updates_player_in_session(session_factory, users):
    async with session_factory() as db:
        created = await SessionService(db, gateway=FakeGateway(mcq_batch(2))).create_session(
            "alice", "Databases", "mcq", 4, "English", 2
        )
    async with session_factory() as db:
        await SessionService(db, gateway=FakeGateway()).join_session(created["code"], "bob")

    first, second = created["questions"]
    async with session_factory() as db:
        service = AnswerService(db, FakeGateway())
        await service.submit_answer(first["id"], "b", username="bob", score=300, answer_time=4.5)
        await service.submit_answer(second["id"], "D", username="bob")

    async with session_factory() as db:
        row = await db.execute(select(Player).filter(Player.user_id == users["bob"].id))
        player = row.scalar_one()
        assert player.score == 300
        assert player.correct_answers == 1
        assert player.current_answer == "D"
        assert player.answer_time is not None


async def test_explanation(db):
    [question] = await generate(db)
    gateway = FakeGateway("B is right because it is the second option.")

    result = await AnswerService(db, gateway).get_explanation(question["id"])

    assert result == {"id": question["id"], "explanation": "B is right because it is the second option."}
    assert "Correct answer: B" in gateway.prompts[0]


async def test_failed_player_update_keeps_answer_log_in_sync(session_factory, users, monkeypatch):
    async with session_factory() as db:
        created = await SessionService(db, gateway=FakeGateway(mcq_batch(1))).create_session(
            "alice", "Databases", "mcq", 4, "English", 1
        )
    async with session_factory() as db:
        await SessionService(db, gateway=FakeGateway()).join_session(created["code"], "bob")

    def clock_unavailable():
        raise RuntimeError("clock unavailable")

    monkeypatch.setattr(answer_service, "time", SimpleNamespace(time=clock_unavailable))
    [question] = created["questions"]
    async with session_factory() as db:
        with pytest.raises(RuntimeError):
            await AnswerService(db, FakeGateway()).submit_answer(question["id"], "B", username="bob")

    async with session_factory() as db:
        assert (await db.execute(select(QuestionAnswer))).scalars().all() == []
        row = await db.execute(select(Player).filter(Player.user_id == users["bob"].id))
        player = row.scalar_one()
        assert player.score == 0
        assert player.correct_answers == 0


async def test_answer_without_roster_entry_is_still_recorded(session_factory, users):
    async with session_factory() as db:
        created = await SessionService(db, gateway=FakeGateway(mcq_batch(1))).create_session(
            "alice", "Databases", "mcq", 4, "English", 1
        )
    [question] = created["questions"]

    async with session_factory() as db:
        result = await AnswerService(db, FakeGateway()).submit_answer(question["id"], "B", username="carol")
        assert result["correct"] is True
        stored = (await db.execute(select(QuestionAnswer))).scalars().all()
        assert [a.user_id for a in stored] == [users["carol"].id]
