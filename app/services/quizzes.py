"""
Quiz service

Builds the transactional write-set for quiz create, update, delete,
reorder and bulk update. Each request validates its input and checks
ownership and lifecycle rules before anything is written, then commits
all row changes, order shifts included, in a single transaction.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import sentry_sdk
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import NotFoundException, ValidationException
from app.core.logging import log_audit_trail, log_business_operation
from app.core.security import OwnershipResolver
from app.models import CourseStatus, Quiz
from app.repositories.quizzes import QuizRepository
from app.schemas.quiz import (
    QuestionResponse,
    QuizBulkUpdate,
    QuizChanges,
    QuizCreate,
    QuizReorder,
    QuizResponse,
    QuizStats,
    QuizSummary,
    QuizUpdate,
    SectionSummary,
)
from app.services.analytics import QuizAnalytics
from app.services.mutation_guard import ChangeSet, MutationGuard
from app.services.notifications import NotificationQueue
from app.services.ordering import OrderSequencer
from app.services.question_validator import validate_questions

logger = logging.getLogger(__name__)

FLAG_FIELDS = ("is_required", "randomize_questions", "show_results", "allow_review")


def _check_title(title: Optional[str], message: str) -> str:
    if title is None or not title.strip():
        raise ValidationException(message)
    return title.strip()


def _check_duration(duration: Optional[int]) -> int:
    if duration is None or duration <= 0:
        raise ValidationException("Duration must be greater than 0 minutes")
    return duration


def _check_passing_score(score: Optional[int]) -> int:
    if score is None or score < 0 or score > 100:
        raise ValidationException("Passing score must be between 0 and 100")
    return score


def _check_max_attempts(attempts: Optional[int]) -> int:
    if attempts is None or attempts < 1:
        raise ValidationException("Max attempts must be at least 1")
    return attempts


def _trim(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


def build_quiz_response(quiz: Quiz, attempt_count: int, include_questions: bool = True) -> QuizResponse:
    """Quiz with ordered questions and derived stats"""
    questions = sorted(quiz.questions, key=lambda question: question.order)
    return QuizResponse(
        id=quiz.id,
        section_id=quiz.section_id,
        title=quiz.title,
        description=quiz.description,
        instructions=quiz.instructions,
        duration=quiz.duration,
        passing_score=quiz.passing_score,
        max_attempts=quiz.max_attempts,
        order=quiz.order,
        is_required=quiz.is_required,
        randomize_questions=quiz.randomize_questions,
        show_results=quiz.show_results,
        allow_review=quiz.allow_review,
        section=SectionSummary(
            id=quiz.section.id, title=quiz.section.title, course_id=quiz.section.course_id
        ),
        questions=[QuestionResponse.model_validate(question) for question in questions]
        if include_questions
        else None,
        stats=QuizStats(
            total_questions=len(questions),
            total_attempts=attempt_count,
            total_points=sum(question.points for question in questions),
        ),
        created_at=quiz.created_at,
        updated_at=quiz.updated_at,
    )


class QuizService:
    """Orchestrates validation, permission checks and ordering for quiz writes"""

    def __init__(
        self,
        repository: QuizRepository,
        notifications: NotificationQueue,
        log: Optional[logging.Logger] = None,
    ):
        self.repository = repository
        self.ownership = OwnershipResolver(repository)
        self.notifications = notifications
        self.logger = log or logger

    def _load_quiz(self, quiz_id: int, user_id: int, message: str, with_questions: bool = True) -> Quiz:
        quiz = self.repository.get_quiz(quiz_id, with_questions=with_questions)
        if quiz is None:
            raise NotFoundException("Quiz")
        self.ownership.require_owner(user_id, quiz.section.course, message, resource_id=quiz_id)
        return quiz

    def _load_section(self, section_id: int, user_id: int, message: str, require_verified: bool = False):
        section = self.repository.get_section(section_id)
        if section is None:
            raise NotFoundException("Section")
        self.ownership.require_owner(
            user_id, section.course, message, require_verified=require_verified, resource_id=section_id
        )
        return section

    # Create

    def create_quiz(self, section_id: int, payload: QuizCreate, user_id: int) -> QuizResponse:
        title = _check_title(payload.title, "Title is required")
        duration = _check_duration(payload.duration)
        passing_score = _check_passing_score(payload.passing_score)
        max_attempts = _check_max_attempts(payload.max_attempts)
        questions = validate_questions(payload.questions)
        if payload.order is not None and payload.order < 1:
            raise ValidationException("Order must be a positive number starting from 1")

        section = self._load_section(
            section_id,
            user_id,
            "You can only create quizzes for your own courses",
            require_verified=True,
        )

        with self.repository.transaction():
            sequencer = OrderSequencer(self.repository.sibling_orders(section_id), label="Quiz")
            if payload.order is None:
                placement = sequencer.append()
            else:
                placement = sequencer.insert_at(payload.order)
            self.repository.apply_order_shifts(section_id, placement.shifts)

            quiz = self.repository.add_quiz(
                section_id,
                title=title,
                description=_trim(payload.description),
                instructions=_trim(payload.instructions),
                duration=duration,
                passing_score=passing_score,
                max_attempts=max_attempts,
                order=placement.order,
                is_required=payload.is_required,
                randomize_questions=payload.randomize_questions,
                show_results=payload.show_results,
                allow_review=payload.allow_review,
            )
            self.repository.add_questions(quiz, questions)
            self.repository.touch(section)

        created = self.repository.refresh_quiz(quiz.id)
        total_points = created.total_points

        log_business_operation(
            self.logger,
            "CREATE_QUIZ",
            "QUIZ",
            created.id,
            "SUCCESS",
            sectionId=section_id,
            courseId=section.course_id,
            questionsCount=len(questions),
            totalPoints=total_points,
            order=created.order,
            userId=user_id,
        )

        self._notify_quiz_created(created, section, user_id, total_points)
        return build_quiz_response(created, attempt_count=0)

    def _notify_quiz_created(self, quiz: Quiz, section, user_id: int, total_points: int) -> None:
        course = section.course
        question_count = len(quiz.questions)
        self.notifications.enqueue(
            user_id,
            {
                "type": "QUIZ_CREATED",
                "title": "Quiz Created",
                "message": (
                    f'Quiz "{quiz.title}" has been created successfully '
                    f"with {question_count} questions."
                ),
                "data": {
                    "quizId": quiz.id,
                    "quizTitle": quiz.title,
                    "sectionId": section.id,
                    "courseId": course.id,
                    "courseTitle": course.title,
                    "questionsCount": question_count,
                    "totalPoints": total_points,
                },
            },
        )

        if course.status != CourseStatus.PUBLISHED:
            return

        try:
            student_ids = self.repository.active_enrollment_user_ids(
                course.id, settings.NOTIFICATION_FANOUT_LIMIT
            )
        except SQLAlchemyError as e:
            # The quiz is already committed; students are simply not notified
            logger.error(
                f"Failed to load students to notify for quiz {quiz.id}: {e}",
                extra={"quiz_id": quiz.id, "course_id": course.id},
            )
            if settings.SENTRY_DSN:
                sentry_sdk.capture_exception(e)
            return
        for student_id in student_ids:
            self.notifications.enqueue(
                student_id,
                {
                    "type": "NEW_QUIZ",
                    "title": "New Quiz Available",
                    "message": (
                        f'A new quiz "{quiz.title}" has been added to your course "{course.title}".'
                    ),
                    "data": {
                        "quizId": quiz.id,
                        "quizTitle": quiz.title,
                        "courseId": course.id,
                        "courseTitle": course.title,
                        "sectionId": section.id,
                        "duration": quiz.duration,
                        "passingScore": quiz.passing_score,
                        "maxAttempts": quiz.max_attempts,
                        "questionsCount": question_count,
                        "isRequired": quiz.is_required,
                    },
                },
            )
        self.logger.info(
            f"Queued {len(student_ids)} student notifications for quiz {quiz.id}",
            extra={"quiz_id": quiz.id, "recipients": len(student_ids)},
        )

    # Update

    def _validated_update_fields(self, payload: QuizUpdate) -> Dict[str, Any]:
        requested = payload.model_dump(exclude_unset=True, exclude={"questions", "order"})
        fields: Dict[str, Any] = {}
        for name, value in requested.items():
            if name == "title":
                fields[name] = _check_title(value, "Title cannot be empty")
            elif name in ("description", "instructions"):
                fields[name] = _trim(value)
            elif name == "duration":
                fields[name] = _check_duration(value)
            elif name == "passing_score":
                fields[name] = _check_passing_score(value)
            elif name == "max_attempts":
                fields[name] = _check_max_attempts(value)
            elif name in FLAG_FIELDS and value is not None:
                fields[name] = value
        return fields

    def update_quiz(self, quiz_id: int, payload: QuizUpdate, user_id: int) -> Tuple[QuizResponse, QuizChanges]:
        quiz = self._load_quiz(quiz_id, user_id, "You can only update quizzes for your own courses")
        course = quiz.section.course
        attempt_count = self.repository.count_attempts(quiz_id)
        replaces_questions = "questions" in payload.model_fields_set and payload.questions is not None

        change_set = ChangeSet(
            payload.model_dump(exclude_unset=True, exclude={"questions"}),
            replaces_questions=replaces_questions,
            current={
                "passing_score": quiz.passing_score,
                "max_attempts": quiz.max_attempts,
                "duration": quiz.duration,
            },
        )
        MutationGuard.can_mutate(course.status, attempt_count > 0, change_set).raise_for_denial()

        questions = validate_questions(payload.questions) if replaces_questions else None
        fields = self._validated_update_fields(payload)
        before = {
            "title": quiz.title,
            "duration": quiz.duration,
            "passingScore": quiz.passing_score,
            "maxAttempts": quiz.max_attempts,
            "order": quiz.order,
            "questionsCount": len(quiz.questions),
        }

        with self.repository.transaction():
            if payload.order is not None and payload.order != quiz.order:
                sequencer = OrderSequencer(self.repository.sibling_orders(quiz.section_id), label="Quiz")
                placement = sequencer.move(quiz.id, payload.order)
                self.repository.apply_order_shifts(quiz.section_id, placement.shifts)
                fields["order"] = placement.order

            self.repository.update_quiz(quiz, fields)

            if questions is not None:
                self.repository.delete_questions(quiz)
                self.repository.add_questions(quiz, questions)

            self.repository.touch(quiz.section)

        updated = self.repository.refresh_quiz(quiz_id)
        changes = QuizChanges(
            fields_updated=[to_camel(name) for name in fields],
            order_changed="order" in fields,
            questions_updated=questions is not None,
        )

        log_business_operation(
            self.logger,
            "UPDATE_QUIZ",
            "QUIZ",
            quiz_id,
            "SUCCESS",
            changedFields=changes.fields_updated,
            questionsUpdated=changes.questions_updated,
            hasAttempts=attempt_count > 0,
        )
        log_audit_trail(
            "UPDATE_QUIZ",
            "QUIZ",
            quiz_id,
            before,
            {**changes.model_dump(by_alias=True), "newQuestionsCount": len(updated.questions)},
            user_id,
        )
        return build_quiz_response(updated, attempt_count), changes

    # Delete

    def delete_quiz(self, quiz_id: int, user_id: int) -> Dict[str, Any]:
        quiz = self._load_quiz(quiz_id, user_id, "You can only delete quizzes from your own courses")
        section = quiz.section
        attempt_count = self.repository.count_attempts(quiz_id)

        MutationGuard.can_delete(section.course.status, attempt_count).raise_for_denial()

        summary = {
            "deletedQuiz": {
                "id": quiz.id,
                "title": quiz.title,
                "order": quiz.order,
                "questionsDeleted": len(quiz.questions),
            },
            "section": {"id": section.id, "title": section.title},
            "course": {"id": section.course.id, "title": section.course.title},
        }

        with self.repository.transaction():
            sequencer = OrderSequencer(self.repository.sibling_orders(section.id), label="Quiz")
            shifts = sequencer.delete(quiz.id)
            self.repository.delete_quiz(quiz)
            self.repository.apply_order_shifts(section.id, shifts)
            self.repository.touch(section)

        log_business_operation(
            self.logger,
            "DELETE_QUIZ",
            "QUIZ",
            quiz_id,
            "SUCCESS",
            sectionId=section.id,
            order=summary["deletedQuiz"]["order"],
            questionsDeleted=summary["deletedQuiz"]["questionsDeleted"],
        )
        log_audit_trail("DELETE_QUIZ", "QUIZ", quiz_id, summary["deletedQuiz"], None, user_id)
        return summary

    # Read

    def get_quiz(
        self,
        quiz_id: int,
        user_id: int,
        include_questions: bool = True,
        include_attempts: bool = False,
    ) -> Dict[str, Any]:
        quiz = self._load_quiz(quiz_id, user_id, "You can only view quizzes from your own courses")
        attempt_count = self.repository.count_attempts(quiz_id)
        result: Dict[str, Any] = {
            "quiz": build_quiz_response(quiz, attempt_count, include_questions=include_questions)
        }

        if include_attempts:
            attempts = self.repository.recent_attempts(quiz_id, settings.RECENT_ATTEMPTS_LIMIT)
            result["recentAttempts"] = [
                {
                    "id": attempt.id,
                    "score": attempt.score,
                    "passed": attempt.passed,
                    "startedAt": attempt.started_at,
                    "completedAt": attempt.completed_at,
                    "timeSpent": attempt.time_spent,
                    "student": {
                        "firstName": attempt.student.first_name,
                        "lastName": attempt.student.last_name,
                        "email": attempt.student.email,
                    }
                    if attempt.student
                    else None,
                }
                for attempt in attempts
            ]
            if attempts:
                passed = sum(1 for attempt in attempts if attempt.passed)
                result["attemptStats"] = {
                    "passRate": round(passed / len(attempts) * 100, 1),
                    "averageScore": round(sum(a.score for a in attempts) / len(attempts), 1),
                    "totalPassed": passed,
                    "totalFailed": len(attempts) - passed,
                }
        return result

    def get_quiz_analytics(self, quiz_id: int, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        quiz = self._load_quiz(
            quiz_id, user_id, "You can only view analytics for your own quizzes", with_questions=False
        )
        attempts, questions, answers = self.repository.load_analytics_inputs(quiz_id)
        analytics = QuizAnalytics(attempts, questions, answers, now=now)
        document = analytics.build()

        log_business_operation(
            self.logger,
            "GET_QUIZ_ANALYTICS",
            "QUIZ",
            quiz_id,
            "SUCCESS",
            totalAttempts=len(attempts),
            uniqueStudents=document["overview"]["uniqueStudents"],
            passRate=document["overview"]["passRate"],
        )
        return {
            "quiz": {
                "id": quiz.id,
                "title": quiz.title,
                "section": {
                    "id": quiz.section.id,
                    "title": quiz.section.title,
                    "course": {"id": quiz.section.course.id, "title": quiz.section.course.title},
                },
            },
            "analytics": document,
            "metadata": analytics.metadata(),
        }

    # Section-level operations

    def reorder_quizzes(self, section_id: int, payload: QuizReorder, user_id: int) -> Dict[str, Any]:
        if not payload.quiz_orders:
            raise ValidationException("Quiz orders array is required")

        section = self._load_section(section_id, user_id, "You can only reorder quizzes for your own courses")
        MutationGuard.can_reorder(section.course.status).raise_for_denial()

        current = self.repository.sibling_orders(section_id)
        sequencer = OrderSequencer(current, label="Quiz")
        changed = sequencer.reorder([(item.id, item.order) for item in payload.quiz_orders])

        if changed:
            with self.repository.transaction():
                self.repository.set_orders(changed)
                self.repository.touch(section)

            log_business_operation(
                self.logger,
                "REORDER_QUIZZES",
                "SECTION",
                section_id,
                "SUCCESS",
                quizCount=len(payload.quiz_orders),
                changed=len(changed),
            )
            log_audit_trail(
                "REORDER_QUIZZES",
                "SECTION",
                section_id,
                {"orders": current},
                {"orders": changed},
                user_id,
            )

        quizzes = self.repository.list_section_quizzes(section_id)
        return {
            "section": {"id": section.id, "title": section.title},
            "quizzes": [QuizSummary.model_validate(quiz) for quiz in quizzes],
        }

    def bulk_update_quizzes(self, section_id: int, payload: QuizBulkUpdate, user_id: int) -> Dict[str, Any]:
        quiz_ids = list(dict.fromkeys(payload.quiz_ids))
        if not quiz_ids:
            raise ValidationException("Quiz IDs array is required")
        if not payload.updates:
            raise ValidationException("Updates object is required")
        if len(quiz_ids) > settings.BULK_UPDATE_MAX_QUIZZES:
            raise ValidationException(
                f"Cannot update more than {settings.BULK_UPDATE_MAX_QUIZZES} quizzes at once"
            )
        MutationGuard.check_bulk_fields(payload.updates)
        values = {
            _snake(name): _coerce_flag(name, value) for name, value in payload.updates.items()
        }

        section = self._load_section(section_id, user_id, "You can only update quizzes for your own courses")

        found = [quiz.id for quiz in self.repository.list_section_quizzes(section_id, quiz_ids)]
        missing = [quiz_id for quiz_id in quiz_ids if quiz_id not in found]
        if missing:
            raise ValidationException(
                "Some quizzes not found in the specified section", details={"missingIds": missing}
            )

        MutationGuard.can_bulk_update(
            section.course.status, self.repository.attempt_counts(quiz_ids)
        ).raise_for_denial()

        with self.repository.transaction():
            self.repository.bulk_update_quizzes(section_id, quiz_ids, values)
            self.repository.touch(section)

        log_business_operation(
            self.logger,
            "BULK_UPDATE_QUIZZES",
            "QUIZ",
            section_id,
            "SUCCESS",
            quizCount=len(quiz_ids),
            updatedFields=list(payload.updates),
        )
        log_audit_trail(
            "BULK_UPDATE_QUIZZES",
            "SECTION",
            section_id,
            {"quizIds": quiz_ids},
            {"updates": payload.updates},
            user_id,
        )

        updated = self.repository.list_section_quizzes(section_id, quiz_ids)
        return {
            "quizzes": [QuizSummary.model_validate(quiz) for quiz in updated],
            "summary": {
                "updatedCount": len(updated),
                "updatedFields": list(payload.updates),
                "updates": {name: values[_snake(name)] for name in payload.updates},
            },
        }


def _snake(name: str) -> str:
    return "".join(f"_{char.lower()}" if char.isupper() else char for char in name)


def _coerce_flag(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationException(f"{name} must be a boolean", details={"field": name})
