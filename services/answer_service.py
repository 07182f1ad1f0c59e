import time
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from core.config import settings
from core.errors import (
    ContractViolationError,
    GradingFailedError,
    MalformedEnvelopeError,
    ValidationError,
)
from core.logger import logger
from models.question import Question, QuestionAnswer, QuestionType
from models.session import Player
from models.user import User
from services.llm_gateway import LLMGateway
from services.lock_manager import lock_manager
from services.prompt_builder import build_explanation_prompt, build_grading_prompt
from services.question_service import QuestionService
from services.session_service import session_lock_key
from services.response_parser import GradingResult, extract_content, parse_grading_result
from services.user_service import UserService


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class AnswerService:
    def __init__(self, db: AsyncSession, gateway: LLMGateway = None):
        self.db = db
        self.gateway = gateway or LLMGateway()

    async def grade(self, question: Question, user_answer: str, score: Optional[int] = None) -> GradingResult:
        """
        Grade one answer.

        mcq answers are compared to the stored letter without a network call.
        Open answers are graded by the generator and the score is clamped to
        [OPEN_SCORE_MIN, OPEN_SCORE_MAX] whatever it returned.
        """
        if question.question_type is QuestionType.MCQ:
            correct = user_answer.strip().casefold() == question.correct.strip().casefold()
            if not correct:
                points = settings.MCQ_INCORRECT_SCORE
            elif score is None:
                points = settings.MCQ_CORRECT_SCORE
            else:
                points = clamp(score, 0, settings.MCQ_CORRECT_SCORE_MAX)
            return GradingResult(correct=correct, score=points)

        prompt = build_grading_prompt(question.text, user_answer)
        envelope = await self.gateway.generate(prompt)
        try:
            result = parse_grading_result(extract_content(envelope))
        except (ContractViolationError, MalformedEnvelopeError) as e:
            logger.warning("Open answer grading failed", question_id=question.id, error=e.message)
            raise GradingFailedError(f"Could not grade answer: {e.message}")

        raw_score = result.score
        result.score = clamp(raw_score, settings.OPEN_SCORE_MIN, settings.OPEN_SCORE_MAX)
        if result.score != raw_score:
            logger.info("Grading score clamped", question_id=question.id, raw=raw_score, score=result.score)
        return result

    async def submit_answer(self, question_id: int, user_answer: str, username: Optional[str] = None,
                            score: Optional[int] = None, answer_time: Optional[float] = None) -> dict:
        if user_answer is None or not isinstance(user_answer, str):
            raise ValidationError("User answer is required")
        if score is not None and (isinstance(score, bool) or not isinstance(score, int)):
            raise ValidationError("Score must be an integer")

        question = await QuestionService(self.db, self.gateway).get_question(question_id)
        user = await UserService(self.db).get_by_username(username) if username else None

        # No lock is held while the generator grades
        result = await self.grade(question, user_answer, score)

        answer = QuestionAnswer(
            question_id=question.id,
            user_id=user.id if user else None,
            user_answer=user_answer,
            correct=result.correct,
            score=result.score,
        )

        if user and question.game_session_id:
            await self._record_for_player(question, user, answer, result, answer_time)
        else:
            self.db.add(answer)
            await self.db.commit()

        logger.info("Answer submitted", question_id=question.id, answer_id=answer.id,
                    correct=result.correct, score=result.score)

        response = {"id": answer.id, "correct": result.correct, "score": result.score}
        if question.question_type is QuestionType.OPEN:
            response["explanation"] = result.explanation
        return response

    async def _record_for_player(self, question: Question, user: User, answer: QuestionAnswer,
                                 result: GradingResult, answer_time: Optional[float]):
        """Store the answer and the player's new totals in one commit."""
        # End the read transaction before waiting for the lock
        await self.db.commit()

        async with lock_manager.hold(session_lock_key(question.game_session_id)):
            row = await self.db.execute(
                select(Player).filter(
                    Player.game_session_id == question.game_session_id,
                    Player.user_id == user.id,
                ).with_for_update().execution_options(populate_existing=True)
            )
            player = row.scalar_one_or_none()
            self.db.add(answer)
            # Without a roster entry only the answer is recorded
            if player:
                player.score += result.score
                if result.correct:
                    player.correct_answers += 1
                player.current_answer = answer.user_answer
                player.answer_time = answer_time if answer_time is not None else time.time()
            await self.db.commit()

    async def get_explanation(self, question_id: int) -> dict:
        question = await QuestionService(self.db, self.gateway).get_question(question_id)

        prompt = build_explanation_prompt(question.text, question.correct)
        explanation = extract_content(await self.gateway.generate(prompt))
        if not explanation:
            raise ContractViolationError("Generator returned an empty explanation")

        return {"id": question.id, "explanation": explanation}
