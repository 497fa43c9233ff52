"""
Quiz endpoints

Section-scoped routes create, reorder and bulk-update quizzes; quiz-scoped
routes read, update, delete and report on a single quiz. All routes need
a bearer token for an instructor who owns the course.
"""

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user_id
from app.repositories.quizzes import QuizRepository
from app.schemas.quiz import QuizBulkUpdate, QuizCreate, QuizReorder, QuizUpdate
from app.services.notifications import DatabaseNotificationSender, NotificationQueue
from app.services.quizzes import QuizService

router = APIRouter()


def get_notification_sender() -> DatabaseNotificationSender:
    return DatabaseNotificationSender()


def get_quiz_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    sender=Depends(get_notification_sender),
) -> QuizService:
    """Request-scoped service; notifications run after the response is sent"""
    return QuizService(QuizRepository(db), NotificationQueue(sender, background_tasks))


def success_response(message: str, data: Any) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data}


@router.post("/sections/{section_id}/quizzes", status_code=status.HTTP_201_CREATED)
def create_quiz(
    section_id: int,
    payload: QuizCreate,
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Create a quiz with its questions at the end of the section or at `order`"""
    quiz = service.create_quiz(section_id, payload, user_id)
    return success_response("Quiz created successfully", {"quiz": quiz})


@router.put("/sections/{section_id}/quizzes/reorder")
def reorder_quizzes(
    section_id: int,
    payload: QuizReorder,
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Replace the order of every quiz in a section"""
    result = service.reorder_quizzes(section_id, payload, user_id)
    return success_response("Quizzes reordered successfully", result)


@router.patch("/sections/{section_id}/quizzes/bulk")
def bulk_update_quizzes(
    section_id: int,
    payload: QuizBulkUpdate,
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Set behaviour flags on several quizzes of one section"""
    result = service.bulk_update_quizzes(section_id, payload, user_id)
    return success_response(f"{result['summary']['updatedCount']} quizzes updated successfully", result)


@router.get("/quizzes/{quiz_id}")
def get_quiz(
    quiz_id: int,
    include_questions: bool = Query(True, alias="includeQuestions"),
    include_attempts: bool = Query(False, alias="includeAttempts"),
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    result = service.get_quiz(
        quiz_id, user_id, include_questions=include_questions, include_attempts=include_attempts
    )
    return success_response("Quiz retrieved successfully", result)


@router.put("/quizzes/{quiz_id}")
def update_quiz(
    quiz_id: int,
    payload: QuizUpdate,
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Partial update; a `questions` list replaces every question of the quiz"""
    quiz, changes = service.update_quiz(quiz_id, payload, user_id)
    return success_response("Quiz updated successfully", {"quiz": quiz, "changes": changes})


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(
    quiz_id: int,
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    summary = service.delete_quiz(quiz_id, user_id)
    return success_response("Quiz deleted successfully", summary)


@router.get("/quizzes/{quiz_id}/analytics")
def get_quiz_analytics(
    quiz_id: int,
    user_id: int = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service),
):
    result = service.get_quiz_analytics(quiz_id, user_id)
    return success_response("Quiz analytics retrieved successfully", result)
