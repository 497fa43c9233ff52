"""
Course Assessment Models Package
"""

from app.models.course import Course, CourseStatus, Enrollment, EnrollmentStatus, Section
from app.models.notification import Notification
from app.models.quiz import Answer, Question, QuestionType, Quiz, QuizAttempt
from app.models.user import Instructor, User

__all__ = [
    "User", "Instructor",
    "Course", "CourseStatus", "Section", "Enrollment", "EnrollmentStatus",
    "Quiz", "Question", "QuestionType", "QuizAttempt", "Answer",
    "Notification",
]
