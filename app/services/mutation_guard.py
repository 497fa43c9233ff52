"""
Mutation permission rules for quizzes

Decides whether an edit is allowed from the owning course's lifecycle
status and the attempts already recorded against the quiz.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.core.exceptions import StateConflictException, ValidationException
from app.models.course import CourseStatus

SCORING_FIELDS = ("passing_score", "max_attempts", "duration")
BULK_UPDATE_FIELDS = ("isRequired", "showResults", "allowReview", "randomizeQuestions")
NEW_VERSION_SUGGESTION = "Create a new quiz version instead"


class GuardDecision:
    """Outcome of a permission check"""

    def __init__(
        self,
        allowed: bool,
        reason: Optional[str] = None,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.allowed = allowed
        self.reason = reason
        self.suggestion = suggestion
        self.details = details or {}

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str, suggestion: Optional[str] = None, **details) -> "GuardDecision":
        return cls(False, reason=reason, suggestion=suggestion, details=details)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise StateConflictException(self.reason, suggestion=self.suggestion, details=self.details)

    def __bool__(self) -> bool:
        return self.allowed

    def __repr__(self) -> str:
        if self.allowed:
            return "GuardDecision(allowed)"
        return f"GuardDecision(denied: {self.reason})"


class ChangeSet:
    """
    Requested quiz edit, classified by how far it reaches.

    ``fields`` maps snake_case quiz columns to requested values; scoring
    fields only count when they differ from ``current``.
    """

    def __init__(
        self,
        fields: Mapping[str, Any],
        replaces_questions: bool = False,
        current: Optional[Mapping[str, Any]] = None,
    ):
        self.fields = dict(fields)
        self.replaces_questions = replaces_questions
        self.current = dict(current or {})

    @property
    def scoring_fields(self) -> List[str]:
        return [
            name
            for name in SCORING_FIELDS
            if name in self.fields and self.fields[name] != self.current.get(name)
        ]

    @property
    def is_structural(self) -> bool:
        return self.replaces_questions

    @property
    def touches_scoring(self) -> bool:
        return bool(self.scoring_fields)


def _status(course_status) -> CourseStatus:
    return course_status if isinstance(course_status, CourseStatus) else CourseStatus(course_status)


class MutationGuard:
    """Lifecycle rules for quiz edits, deletion, reordering and bulk updates"""

    @staticmethod
    def can_mutate(course_status, has_attempts: bool, change_set: ChangeSet) -> GuardDecision:
        status = _status(course_status)

        if status == CourseStatus.UNDER_REVIEW:
            return GuardDecision.deny("Cannot update quiz while course is under review")

        if status == CourseStatus.PUBLISHED and has_attempts:
            if change_set.touches_scoring:
                return GuardDecision.deny(
                    "Cannot modify scoring settings for published quizzes with attempts",
                    restrictedFields=list(SCORING_FIELDS),
                    requestedFields=change_set.scoring_fields,
                )
            if change_set.is_structural:
                return GuardDecision.deny(
                    "Cannot modify questions for published quizzes with student attempts",
                    suggestion=NEW_VERSION_SUGGESTION,
                )

        return GuardDecision.allow()

    @staticmethod
    def can_delete(course_status, attempt_count: int) -> GuardDecision:
        if _status(course_status) == CourseStatus.PUBLISHED:
            return GuardDecision.deny(
                "Cannot delete quizzes from published courses",
                suggestion="Consider archiving the course first if you need to make structural changes",
            )
        if attempt_count > 0:
            return GuardDecision.deny(
                "Cannot delete quiz with student attempts",
                suggestion="Archive the course instead of deleting quizzes with student activity",
                totalAttempts=attempt_count,
            )
        return GuardDecision.allow()

    @staticmethod
    def can_reorder(course_status) -> GuardDecision:
        if _status(course_status) == CourseStatus.UNDER_REVIEW:
            return GuardDecision.deny("Cannot reorder quizzes while course is under review")
        return GuardDecision.allow()

    @staticmethod
    def check_bulk_fields(fields: Iterable[str]) -> None:
        """Reject any bulk update field outside the whitelist"""
        invalid = [name for name in fields if name not in BULK_UPDATE_FIELDS]
        if invalid:
            raise ValidationException(
                f"Invalid fields: {', '.join(invalid)}. Valid fields: {', '.join(BULK_UPDATE_FIELDS)}",
                details={"invalidFields": invalid, "validFields": list(BULK_UPDATE_FIELDS)},
            )

    @staticmethod
    def can_bulk_update(course_status, attempts_by_quiz: Mapping[Any, int]) -> GuardDecision:
        """
        All-or-nothing check for a bulk flag update.

        Args:
            course_status: Status of the course owning the section
            attempts_by_quiz: Attempt count per targeted quiz id
        """
        status = _status(course_status)
        if status == CourseStatus.UNDER_REVIEW:
            return GuardDecision.deny("Cannot update quizzes while course is under review")

        if status == CourseStatus.PUBLISHED:
            blocked = [
                {"id": quiz_id, "attempts": count}
                for quiz_id, count in attempts_by_quiz.items()
                if count > 0
            ]
            if blocked:
                return GuardDecision.deny(
                    "Cannot bulk update published quizzes with student attempts",
                    quizzesWithAttempts=blocked,
                )
        return GuardDecision.allow()
