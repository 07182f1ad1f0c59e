import re
import secrets
import string
import time
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from redis.asyncio import Redis
from models.session import GameSession, Player, PlayerStatus, SessionStatus
from models.user import User
from core.config import settings
from core.errors import ConflictError, NotFoundError, ValidationError
from core.logger import logger
from services.llm_gateway import LLMGateway
from services.lock_manager import lock_manager
from services.question_service import GenerationParams, QuestionService, to_payload
from services.user_service import UserService

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{settings.SESSION_CODE_LENGTH}}}$")

# Allowed forward moves of the session state machine
TRANSITIONS = {
    SessionStatus.WAITING: SessionStatus.PLAYING,
    SessionStatus.PLAYING: SessionStatus.FINISHED,
}

PLAYER_COLORS = ["#E74C3C", "#3498DB", "#2ECC71", "#F1C40F", "#9B59B6", "#E67E22", "#1ABC9C", "#34495E"]


def generate_session_code(length: int = None) -> str:
    length = length or settings.SESSION_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def session_lock_key(session_id: int) -> str:
    return f"game_session:{session_id}"


def snapshot(session: GameSession) -> dict:
    return {
        "sessionId": session.id,
        "code": session.code,
        "host": session.host.username if session.host else None,
        "status": session.status.value,
        "topic": session.topic,
        "questionType": session.question_type,
        "count": session.count,
        "difficulty": session.difficulty,
        "language": session.language,
        "startTime": session.start_time,
        "endTime": session.end_time,
        "players": [
            {
                "id": p.id,
                "name": p.name,
                "avatar": p.avatar,
                "color": p.color,
                "score": p.score,
                "status": p.status.value,
                "isHost": p.is_host,
                "correctAnswers": p.correct_answers,
            }
            for p in session.players
        ],
    }


class SessionService:
    def __init__(self, db: AsyncSession, redis: Optional[Redis] = None, gateway: LLMGateway = None):
        self.db = db
        self.redis = redis
        self.gateway = gateway or LLMGateway()

    def _player_for(self, user: User, seat: int, is_host: bool = False) -> Player:
        return Player(
            user_id=user.id,
            name=user.full_name or user.username,
            avatar=user.username[:1].upper(),
            color=PLAYER_COLORS[seat % len(PLAYER_COLORS)],
            score=0,
            correct_answers=0,
            status=PlayerStatus.WAITING,
            is_host=is_host,
            current_answer=None,
            answer_time=None,
        )

    async def _reserve_code(self, code: str) -> bool:
        """Check-then-reserve a code. The unique index on game_sessions.code is the final guard."""
        if self.redis:
            reserved = await self.redis.set(
                f"aiquiz:code:{code}", "1", nx=True, ex=settings.SESSION_CODE_TTL_SECONDS
            )
            if not reserved:
                return False
        result = await self.db.execute(select(GameSession.id).filter(GameSession.code == code))
        return result.scalar_one_or_none() is None

    async def create_session(self, username: str, topic: str, question_type: str,
                             difficulty: int, language: str, count: int) -> dict:
        params = GenerationParams.build(difficulty, language, question_type, topic, count)
        host = await UserService(self.db).get_by_username(username)

        questions_service = QuestionService(self.db, self.gateway)
        # Generation runs before anything is written; a failure leaves no session behind
        records = await questions_service.fetch_records(params)

        for attempt in range(1, settings.SESSION_CODE_MAX_ATTEMPTS + 1):
            code = generate_session_code()
            if not await self._reserve_code(code):
                logger.warning("Session code collision", code=code, attempt=attempt)
                continue

            quiz, questions = questions_service.build_questions(records, params, host)
            session = GameSession(
                code=code,
                status=SessionStatus.WAITING,
                host_id=host.id,
                topic=params.topic,
                question_type=params.question_type.value,
                count=params.count,
                difficulty=params.difficulty,
                language=params.language,
                start_time=None,
                end_time=None,
                players=[self._player_for(host, 0, is_host=True)],
                questions=questions,
            )
            session.host = host
            self.db.add(quiz)
            self.db.add(session)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                await self.db.refresh(host)
                logger.warning("Session code taken on insert", code=code, attempt=attempt)
                continue

            logger.info("Game session created", session_id=session.id, code=code,
                        host=host.username, questions=len(questions))
            data = snapshot(session)
            data["questions"] = [to_payload(q) for q in questions]
            return data

        raise ConflictError(
            f"Could not allocate a unique session code after {settings.SESSION_CODE_MAX_ATTEMPTS} attempts"
        )

    async def find_by_code(self, code: str, for_update: bool = False) -> Optional[GameSession]:
        query = (
            select(GameSession)
            .options(selectinload(GameSession.players), selectinload(GameSession.host))
            .filter(GameSession.code == code)
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_session_by_code(self, code: str, for_update: bool = False) -> GameSession:
        if not code or not code.strip():
            raise ValidationError("Session code is required")
        normalized = code.strip().upper()
        # A code outside the generated format cannot exist; skip the query
        session = None
        if CODE_PATTERN.match(normalized):
            session = await self.find_by_code(normalized, for_update=for_update)
        if not session:
            raise NotFoundError(f"Session not found with code: {code}")
        return session

    async def join_session(self, code: str, username: str) -> dict:
        if not code or not username:
            raise ValidationError("Session code and username are required to join a session")

        found = await self.get_session_by_code(code)
        user = await UserService(self.db).get_by_username(username)
        # End the read transaction before waiting for the lock
        await self.db.commit()

        async with lock_manager.hold(session_lock_key(found.id)):
            # Re-read under the lock (and a row lock on databases that support it)
            session = await self.get_session_by_code(code, for_update=True)

            if session.status is SessionStatus.FINISHED:
                await self.db.commit()
                raise ValidationError(f"Session {session.code} has already finished")

            if any(p.user_id == user.id for p in session.players):
                await self.db.commit()
                logger.info("Player already in session", code=session.code, username=user.username)
                return snapshot(session)

            session.players.append(self._player_for(user, len(session.players)))
            await self.db.commit()

        logger.info("Player joined session", session_id=session.id, code=session.code,
                    username=user.username, players=len(session.players))
        return snapshot(session)

    async def _advance(self, code: str, username: str, target: SessionStatus) -> dict:
        user = await UserService(self.db).get_by_username(username)
        found = await self.get_session_by_code(code)
        await self.db.commit()

        async with lock_manager.hold(session_lock_key(found.id)):
            session = await self.get_session_by_code(code, for_update=True)

            if session.host_id != user.id:
                await self.db.commit()
                raise ValidationError("Only the host can change the session status")
            if TRANSITIONS.get(session.status) is not target:
                await self.db.commit()
                raise ValidationError(f"Cannot move session from {session.status.value} to {target.value}")

            now = time.time()
            session.status = target
            if target is SessionStatus.PLAYING:
                session.start_time = now
                player_status = PlayerStatus.PLAYING
            else:
                session.end_time = now
                player_status = PlayerStatus.FINISHED
            for player in session.players:
                player.status = player_status
            await self.db.commit()

        logger.info("Game session status changed", session_id=session.id, code=session.code, status=target.value)
        return snapshot(session)

    async def start_session(self, code: str, username: str) -> dict:
        return await self._advance(code, username, SessionStatus.PLAYING)

    async def finish_session(self, code: str, username: str) -> dict:
        return await self._advance(code, username, SessionStatus.FINISHED)

    async def get_session_questions(self, code: str) -> List[dict]:
        """Question list for players; canonical answers are never included."""
        session = await self.get_session_by_code(code)
        questions = await QuestionService(self.db, self.gateway).get_questions_by_session(session.id)
        return [to_payload(q) for q in questions]
