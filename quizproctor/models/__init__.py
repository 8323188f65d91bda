from quizproctor.models.user import User
from quizproctor.models.quiz_result import QuizResult

__all__ = ["User", "QuizResult"]
