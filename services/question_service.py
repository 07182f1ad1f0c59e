from typing import List, Optional, Tuple
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from core.errors import NotFoundError
from core.logger import logger
from models.question import Question, QuestionType
from models.quiz import Quiz
from models.user import User
from services.llm_gateway import LLMGateway
from services.prompt_builder import build_question_prompt, validate_generation_params
from services.response_parser import (
    McqRecord,
    QuestionRecord,
    extract_content,
    parse_question_batch,
)
from services.user_service import UserService

# Default seconds per difficulty point when the generator omits solvingTime
SOLVING_TIME_PER_LEVEL = {
    QuestionType.MCQ: 10,
    QuestionType.OPEN: 60,
}


class GenerationParams(BaseModel):
    difficulty: int
    language: str
    question_type: QuestionType
    topic: str
    count: int

    @classmethod
    def build(cls, difficulty, language, question_type, topic, count) -> "GenerationParams":
        qtype = validate_generation_params(difficulty, language, question_type, topic, count)
        return cls(
            difficulty=difficulty,
            language=language.strip(),
            question_type=qtype,
            topic=topic.strip(),
            count=count,
        )


def to_payload(question: Question, include_answer: bool = False) -> dict:
    """Caller-facing view of a question. The canonical answer is opt-in."""
    data = {
        "id": question.id,
        "type": question.type,
        "language": question.language,
        "topic": question.topic,
        "difficulty": question.difficulty,
        "text": question.text,
        "solvingTime": question.solving_time,
    }
    if question.question_type is QuestionType.MCQ:
        data["options"] = list(question.options or [])
    if include_answer:
        data["answer"] = question.correct
    return data


class QuestionService:
    def __init__(self, db: AsyncSession, gateway: LLMGateway = None):
        self.db = db
        self.gateway = gateway or LLMGateway()

    async def fetch_records(self, params: GenerationParams) -> List[QuestionRecord]:
        """Prompt the generator and validate the batch. Writes nothing."""
        prompt = build_question_prompt(
            params.difficulty, params.language, params.question_type, params.topic, params.count
        )
        envelope = await self.gateway.generate(prompt)
        content = extract_content(envelope)
        records = parse_question_batch(content, params.count, params.question_type)
        logger.info("Question batch parsed", topic=params.topic, type=params.question_type.value, count=len(records))
        return records

    def build_questions(self, records: List[QuestionRecord], params: GenerationParams,
                        owner: User) -> Tuple[Quiz, List[Question]]:
        """Turn parsed records into unsaved Quiz/Question rows."""
        default_time = params.difficulty * SOLVING_TIME_PER_LEVEL[params.question_type]

        questions = []
        for record in records:
            question = Question(
                type=params.question_type.value,
                text=record.text,
                language=params.language,
                topic=params.topic,
                difficulty=params.difficulty,
                solving_time=record.solving_time or default_time,
            )
            if isinstance(record, McqRecord):
                question.options = list(record.options)
                question.correct = record.correct
            else:
                question.options = None
                question.correct = record.answer
            questions.append(question)

        quiz = Quiz(
            user_id=owner.id,
            name=f"{params.topic} Quiz",
            description=f"{params.topic} quiz ({params.language}, difficulty {params.difficulty})",
            language=params.language,
            type=params.question_type.value,
            time_limit=sum(q.solving_time for q in questions),
            topic=params.topic,
            questions=questions,
        )
        return quiz, questions

    async def generate_questions(self, params: GenerationParams, username: str,
                                 include_answers: bool = False) -> List[dict]:
        """Generate, persist as one unit and return the question payloads."""
        owner = await UserService(self.db).get_by_username(username)

        records = await self.fetch_records(params)
        quiz, questions = self.build_questions(records, params, owner)

        self.db.add(quiz)
        await self.db.commit()

        logger.info("Questions generated", quiz_id=quiz.id, user_id=owner.id, count=len(questions))
        return [to_payload(q, include_answer=include_answers) for q in questions]

    async def get_question(self, question_id: int) -> Question:
        result = await self.db.execute(select(Question).filter(Question.id == question_id))
        question = result.scalar_one_or_none()
        if not question:
            raise NotFoundError(f"Question not found with id: {question_id}")
        return question

    async def get_questions_by_quiz(self, quiz_id: int) -> List[Question]:
        result = await self.db.execute(
            select(Question).filter(Question.quiz_id == quiz_id).order_by(Question.id)
        )
        return list(result.scalars().all())

    async def get_questions_by_session(self, game_session_id: int) -> List[Question]:
        result = await self.db.execute(
            select(Question).filter(Question.game_session_id == game_session_id).order_by(Question.id)
        )
        return list(result.scalars().all())

    async def count_questions(self, quiz_id: Optional[int] = None) -> int:
        query = select(func.count(Question.id))
        if quiz_id is not None:
            query = query.filter(Question.quiz_id == quiz_id)
        result = await self.db.execute(query)
        return result.scalar()
