from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import ErrorKind, QuizError
from core.logger import logger
from db.session import get_db, get_redis, init_db
from services.llm_gateway import LLMGateway
from services.operations import QuizOperations

# API Documentation
API_DESCRIPTION = """
## AI Quiz API

Multiplayer quiz sessions with questions and grading produced by an LLM.

Failures are returned as `{"errorKind": ..., "errorMessage": ...}` with an
HTTP status derived from the error kind.
"""

TAGS_METADATA = [
    {
        "name": "session",
        "description": "Create, join and advance game sessions.",
    },
    {
        "name": "questions",
        "description": "Generate questions, submit answers, explanations and history.",
    },
    {
        "name": "info",
        "description": "Public information endpoints.",
    },
]

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.GATEWAY: 502,
    ErrorKind.MALFORMED_ENVELOPE: 502,
    ErrorKind.CONTRACT_VIOLATION: 502,
    ErrorKind.GRADING_FAILED: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("API started", env=settings.ENV)
    yield


app = FastAPI(
    title="AI Quiz API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_gateway() -> LLMGateway:
    return LLMGateway()


async def get_operations(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    gateway: LLMGateway = Depends(get_gateway),
) -> QuizOperations:
    return QuizOperations(db, redis=redis, gateway=gateway)


def respond(result: Any, error: Optional[QuizError]):
    if error is not None:
        return JSONResponse(status_code=STATUS_BY_KIND.get(error.kind, 400), content=error.to_dict())
    return result


# === Pydantic Models with Documentation ===

class CreateSessionRequest(BaseModel):
    """Request body for creating a game session."""
    username: Optional[str] = Field(None, description="Host username", examples=["alice"])
    topic: Optional[str] = Field(None, description="Quiz topic, used verbatim", examples=["Network Security"])
    questionType: Optional[str] = Field(None, description="mcq or open", examples=["mcq"])
    difficulty: Optional[int] = Field(None, description="1 (easy) to 10 (hard)", examples=[5])
    language: Optional[str] = Field(None, description="Natural language of the questions", examples=["English"])
    count: Optional[int] = Field(None, description="Number of questions", examples=[3])


class SessionCodeRequest(BaseModel):
    """Request body for join/start/finish."""
    sessionCode: Optional[str] = Field(None, description="Six character session code", examples=["K7Q2ZX"])
    userName: Optional[str] = Field(None, description="Acting username", examples=["bob"])


class GetQuestionRequest(BaseModel):
    username: Optional[str] = None
    topic: Optional[str] = None
    type: Optional[str] = None
    difficulty: Optional[int] = None
    language: Optional[str] = None
    count: Optional[int] = None
    includeAnswers: bool = Field(False, description="Return canonical answers (trusted callers only)")


class SubmitAnswerRequest(BaseModel):
    questionId: int
    userAnswer: Optional[str] = None
    userName: Optional[str] = None
    score: Optional[int] = Field(None, description="Caller score for a correct mcq answer")
    answerTime: Optional[float] = None


class QuestionIdRequest(BaseModel):
    questionId: int


class SessionQuestionsRequest(BaseModel):
    sessionCode: Optional[str] = None


class HistoryRequest(BaseModel):
    username: Optional[str] = None


class ErrorResponse(BaseModel):
    errorKind: str
    errorMessage: str


ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 404, 409, 502)}


# === Session endpoints ===

@app.post("/ws/session/createSession", tags=["session"], responses=ERROR_RESPONSES)
async def create_session(payload: CreateSessionRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.create_session(
        payload.username, payload.topic, payload.questionType,
        payload.difficulty, payload.language, payload.count,
    ))


@app.post("/ws/session/joinSession", tags=["session"], responses=ERROR_RESPONSES)
async def join_session(payload: SessionCodeRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.join_session(payload.sessionCode, payload.userName))


@app.post("/ws/session/startSession", tags=["session"], responses=ERROR_RESPONSES)
async def start_session(payload: SessionCodeRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.start_session(payload.sessionCode, payload.userName))


@app.post("/ws/session/finishSession", tags=["session"], responses=ERROR_RESPONSES)
async def finish_session(payload: SessionCodeRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.finish_session(payload.sessionCode, payload.userName))


# === Question endpoints ===

@app.post("/ws/questions/getQuestions", tags=["questions"], responses=ERROR_RESPONSES)
async def get_questions(payload: GetQuestionRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.generate_questions(
        payload.username, payload.topic, payload.type, payload.difficulty,
        payload.language, payload.count, include_answers=payload.includeAnswers,
    ))


@app.post("/ws/questions/submitAnswer", tags=["questions"], responses=ERROR_RESPONSES)
async def submit_answer(payload: SubmitAnswerRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.submit_answer(
        payload.questionId, payload.userAnswer, username=payload.userName,
        score=payload.score, answer_time=payload.answerTime,
    ))


@app.post("/ws/questions/getExplanation", tags=["questions"], responses=ERROR_RESPONSES)
async def get_explanation(payload: QuestionIdRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.get_explanation(payload.questionId))


@app.post("/ws/questions/getSessionQuestions", tags=["questions"], responses=ERROR_RESPONSES)
async def get_session_questions(payload: SessionQuestionsRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.get_session_questions(payload.sessionCode))


@app.post("/ws/questions/getAllAnsweredQuestionsAndQuizzes", tags=["questions"], responses=ERROR_RESPONSES)
async def get_answer_history(payload: HistoryRequest, ops: QuizOperations = Depends(get_operations)):
    return respond(*await ops.list_answered_history(payload.username))


@app.get("/health", tags=["info"])
async def health():
    return {"status": "ok", "env": settings.ENV}
