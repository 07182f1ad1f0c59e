"""
Produced interface of the quiz core.

Every operation takes flat arguments and returns ``(payload, None)`` on
success or ``(None, error)`` where ``error`` is a QuizError carrying its
ErrorKind. The API layer maps kinds to transport responses.
"""
from typing import Any, Awaitable, Optional, Tuple

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import QuizError
from core.logger import logger
from services.answer_service import AnswerService
from services.llm_gateway import LLMGateway
from services.question_service import GenerationParams, QuestionService
from services.quiz_service import QuizService
from services.session_service import SessionService

Result = Tuple[Optional[Any], Optional[QuizError]]


class QuizOperations:
    def __init__(self, db: AsyncSession, redis: Optional[Redis] = None, gateway: LLMGateway = None):
        self.db = db
        self.redis = redis
        self.gateway = gateway or LLMGateway()

    async def _run(self, operation: str, call: Awaitable) -> Result:
        try:
            return await call, None
        except QuizError as e:
            await self.db.rollback()
            logger.warning("Operation failed", operation=operation, kind=e.kind.value, error=e.message)
            return None, e

    def _sessions(self) -> SessionService:
        return SessionService(self.db, self.redis, self.gateway)

    async def create_session(self, username: str, topic: str, question_type: str,
                             difficulty: int, language: str, count: int) -> Result:
        return await self._run("createSession", self._sessions().create_session(
            username, topic, question_type, difficulty, language, count
        ))

    async def join_session(self, code: str, username: str) -> Result:
        return await self._run("joinSession", self._sessions().join_session(code, username))

    async def start_session(self, code: str, username: str) -> Result:
        return await self._run("startSession", self._sessions().start_session(code, username))

    async def finish_session(self, code: str, username: str) -> Result:
        return await self._run("finishSession", self._sessions().finish_session(code, username))

    async def generate_questions(self, username: str, topic: str, question_type: str,
                                 difficulty: int, language: str, count: int,
                                 include_answers: bool = False) -> Result:
        async def call():
            params = GenerationParams.build(difficulty, language, question_type, topic, count)
            return await QuestionService(self.db, self.gateway).generate_questions(
                params, username, include_answers=include_answers
            )
        return await self._run("generateQuestions", call())

    async def submit_answer(self, question_id: int, user_answer: str, username: Optional[str] = None,
                            score: Optional[int] = None, answer_time: Optional[float] = None) -> Result:
        return await self._run("submitAnswer", AnswerService(self.db, self.gateway).submit_answer(
            question_id, user_answer, username=username, score=score, answer_time=answer_time
        ))

    async def get_explanation(self, question_id: int) -> Result:
        return await self._run("getExplanation", AnswerService(self.db, self.gateway).get_explanation(question_id))

    async def get_session_questions(self, code: str) -> Result:
        return await self._run("getSessionQuestions", self._sessions().get_session_questions(code))

    async def list_answered_history(self, username: str) -> Result:
        return await self._run("listAnsweredHistory", QuizService(self.db).list_answered_history(username))
