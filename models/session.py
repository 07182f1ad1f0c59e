from enum import Enum
from sqlalchemy import Column, Integer, String, ForeignKey, Float, Boolean, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin


class SessionStatus(str, Enum):
    WAITING = "WAITING"
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"


class PlayerStatus(str, Enum):
    WAITING = "WAITING"
    READY = "READY"
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"


class GameSession(Base, TimestampMixin):
    __tablename__ = "game_sessions"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(16), unique=True, index=True, nullable=False)
    status = Column(SAEnum(SessionStatus, name="session_status"), default=SessionStatus.WAITING, nullable=False)
    host_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    topic = Column(String(255), nullable=False)
    question_type = Column(String(10), nullable=False)
    count = Column(Integer, nullable=False)
    difficulty = Column(Integer, nullable=False)
    language = Column(String(100), nullable=False)

    # Epoch seconds, set on the PLAYING / FINISHED transitions
    start_time = Column(Float, nullable=True)
    end_time = Column(Float, nullable=True)

    host = relationship("User")
    players = relationship(
        "Player", back_populates="game_session", order_by="Player.id", cascade="all, delete-orphan"
    )
    questions = relationship(
        "Question", back_populates="game_session", order_by="Question.id", cascade="all, delete-orphan"
    )


class Player(Base, TimestampMixin):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    game_session_id = Column(Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String(255), nullable=False)
    avatar = Column(String(255), nullable=True)
    color = Column(String(32), nullable=True)
    score = Column(Integer, default=0, nullable=False)
    status = Column(SAEnum(PlayerStatus, name="player_status"), default=PlayerStatus.WAITING, nullable=False)
    is_host = Column(Boolean, default=False, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    current_answer = Column(Text, nullable=True)
    answer_time = Column(Float, nullable=True)

    game_session = relationship("GameSession", back_populates="players")
