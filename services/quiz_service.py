from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.quiz import Quiz
from models.question import Question, QuestionAnswer
from core.logger import logger
from services.user_service import UserService

class QuizService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_quizzes(self, user_id: int) -> List[Quiz]:
        result = await self.db.execute(
            select(Quiz).filter(Quiz.user_id == user_id).order_by(Quiz.created_at.desc(), Quiz.id.desc())
        )
        return list(result.scalars().all())

    async def get_quiz_questions(self, quiz_id: int) -> List[Question]:
        result = await self.db.execute(
            select(Question).filter(Question.quiz_id == quiz_id).order_by(Question.id)
        )
        return list(result.scalars().all())

    async def _latest_answers(self, question_ids: List[int]) -> dict:
        """Map question id to its most recent answer."""
        if not question_ids:
            return {}
        result = await self.db.execute(
            select(QuestionAnswer)
            .filter(QuestionAnswer.question_id.in_(question_ids))
            .order_by(QuestionAnswer.id)
        )
        latest = {}
        for answer in result.scalars().all():
            latest[answer.question_id] = answer
        return latest

    async def list_answered_history(self, username: str) -> List[dict]:
        """Every quiz the user generated, with the questions that have been answered."""
        user = await UserService(self.db).get_by_username(username)
        quizzes = await self.get_user_quizzes(user.id)

        history = []
        for quiz in quizzes:
            questions = await self.get_quiz_questions(quiz.id)
            answers = await self._latest_answers([q.id for q in questions])

            answered = []
            for question in questions:
                answer = answers.get(question.id)
                if not answer:
                    continue
                answered.append({
                    "questionId": question.id,
                    "questionText": question.text,
                    "userAnswer": answer.user_answer,
                    "correct": answer.correct,
                    "score": answer.score,
                    "createdAt": answer.created_at.isoformat() if answer.created_at else None,
                })

            history.append({
                "quizId": quiz.id,
                "quizName": quiz.name,
                "quizDescription": quiz.description,
                "quizLang": quiz.language,
                "quizType": quiz.type,
                "quizTimeLimit": quiz.time_limit,
                "quizCreatedAt": quiz.created_at.isoformat() if quiz.created_at else None,
                "quizTopic": quiz.topic,
                "answeredQuestions": answered,
            })

        logger.info("Answer history listed", username=user.username, quizzes=len(history))
        return history
