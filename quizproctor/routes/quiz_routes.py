import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizproctor.auth.dependencies import Identity, get_current_identity
from quizproctor.core.errors import internal_error
from quizproctor.core.schemas import APIModel
from quizproctor.database import get_db
from quizproctor.models.quiz_result import DIFFICULTIES, QUIZ_TYPES, QuizResult
from quizproctor.models.user import User

router = APIRouter(tags=['quiz'])

logger = logging.getLogger(__name__)


class AnswerRecord(APIModel):
    question_id: Any = Field(default=None, alias='questionId')
    question: str | None = None
    selected_answer: int | None = Field(default=None, alias='selectedAnswer')
    correct_answer: int | None = Field(default=None, alias='correctAnswer')
    is_correct: bool = Field(default=False, alias='isCorrect')
    options: list[str] = Field(default_factory=list)


class SubmitQuizRequest(APIModel):
    quiz_type: str | None = Field(default=None, alias='quizType')
    difficulty: str | None = None
    score: int | None = None
    total_questions: int | None = Field(default=None, alias='totalQuestions')
    correct_answers: int = Field(default=0, alias='correctAnswers', ge=0)
    wrong_answers: int = Field(default=0, alias='wrongAnswers', ge=0)
    time_taken_seconds: int = Field(default=0, alias='timeTakenSeconds', ge=0)
    detailed_answers: list[AnswerRecord] = Field(default_factory=list, alias='detailedAnswers')


class SubmitQuizResponse(APIModel):
    message: str
    result_id: str = Field(alias='resultId')


class QuizResultResponse(APIModel):
    id: str
    user_id: str
    user_email: str
    user_name: str | None = None
    quiz_type: str
    difficulty: str
    score: int
    total_questions: int
    correct_answers: int
    wrong_answers: int
    time_taken_seconds: int
    detailed_answers: list[dict]
    status: str
    completed_at: datetime
    created_at: datetime


class QuizHistoryResponse(APIModel):
    results: list[QuizResultResponse]


def serialize_result(result: QuizResult) -> QuizResultResponse:
    return QuizResultResponse(
        id=result.id,
        user_id=result.user_id,
        user_email=result.user_email,
        user_name=result.user_name,
        quiz_type=result.quiz_type,
        difficulty=result.difficulty,
        score=result.score,
        total_questions=result.total_questions,
        correct_answers=result.correct_answers,
        wrong_answers=result.wrong_answers,
        time_taken_seconds=result.time_taken_seconds,
        detailed_answers=result.answers,
        status=result.status,
        completed_at=result.completed_at,
        created_at=result.created_at,
    )


def validate_submission(data: SubmitQuizRequest) -> None:
    if not data.quiz_type or not data.difficulty or data.score is None or not data.total_questions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Missing required quiz data',
        )

    if data.quiz_type not in QUIZ_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Invalid quiz type. Must be one of: {", ".join(QUIZ_TYPES)}',
        )

    if data.difficulty not in DIFFICULTIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Invalid difficulty. Must be one of: {", ".join(DIFFICULTIES)}',
        )

    if data.total_questions < 0 or data.score < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Score and question count cannot be negative',
        )

    if data.score > data.total_questions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Score cannot exceed the number of questions',
        )

    # unanswered questions count as neither correct nor wrong
    if data.correct_answers + data.wrong_answers > data.total_questions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Correct and wrong answers cannot exceed the number of questions',
        )


@router.post('/submit', response_model=SubmitQuizResponse, status_code=status.HTTP_201_CREATED)
def submit_quiz(
    data: SubmitQuizRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    validate_submission(data)

    try:
        user = db.get(User, identity.user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')

        result = QuizResult(
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
            quiz_type=data.quiz_type,
            difficulty=data.difficulty,
            score=data.score,
            total_questions=data.total_questions,
            correct_answers=data.correct_answers,
            wrong_answers=data.wrong_answers,
            time_taken_seconds=data.time_taken_seconds,
        )
        result.answers = [answer.model_dump(by_alias=True) for answer in data.detailed_answers]
        db.add(result)
        db.commit()
        db.refresh(result)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'saving a quiz result', db) from exc

    logger.info('Saved %s/%s result %s for user %s', data.quiz_type, data.difficulty, result.id, user.id)

    return SubmitQuizResponse(message='Quiz results saved successfully', result_id=result.id)


@router.get('/history', response_model=QuizHistoryResponse)
def quiz_history(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    try:
        results = db.query(QuizResult).filter(
            QuizResult.user_id == identity.user_id,
        ).order_by(QuizResult.completed_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'loading quiz history') from exc

    return QuizHistoryResponse(results=[serialize_result(result) for result in results])
