"""Lifecycle rules for quiz mutations"""

import pytest

from app.core.exceptions import StateConflictException, ValidationException
from app.models import CourseStatus
from app.services.mutation_guard import ChangeSet, MutationGuard

CURRENT = {"passing_score": 70, "max_attempts": 3, "duration": 30}


def change(replaces_questions=False, **fields):
    return ChangeSet(fields, replaces_questions=replaces_questions, current=CURRENT)


@pytest.mark.parametrize("status", [CourseStatus.DRAFT, CourseStatus.ARCHIVED])
def test_unpublished_courses_allow_everything(status):
    decision = MutationGuard.can_mutate(status, True, change(True, passing_score=10))
    assert decision


def test_under_review_blocks_updates():
    decision = MutationGuard.can_mutate(CourseStatus.UNDER_REVIEW, False, change(title="x"))
    assert not decision
    assert decision.reason == "Cannot update quiz while course is under review"


def test_published_without_attempts_allows_scoring_changes():
    assert MutationGuard.can_mutate(CourseStatus.PUBLISHED, False, change(True, duration=5))


def test_published_with_attempts_blocks_scoring_changes():
    decision = MutationGuard.can_mutate(CourseStatus.PUBLISHED, True, change(passing_score=80))
    assert not decision
    assert decision.details["requestedFields"] == ["passing_score"]
    with pytest.raises(StateConflictException) as excinfo:
        decision.raise_for_denial()
    assert excinfo.value.status_code == 400
    assert excinfo.value.error_code == "STATE_CONFLICT"


def test_unchanged_scoring_values_do_not_count():
    decision = MutationGuard.can_mutate(
        CourseStatus.PUBLISHED, True, change(passing_score=70, max_attempts=3, title="Renamed")
    )
    assert decision


def test_published_with_attempts_blocks_question_replacement():
    decision = MutationGuard.can_mutate(CourseStatus.PUBLISHED, True, change(True))
    assert not decision
    assert decision.suggestion == "Create a new quiz version instead"


def test_delete_rules():
    assert not MutationGuard.can_delete(CourseStatus.PUBLISHED, 0)
    denied = MutationGuard.can_delete(CourseStatus.DRAFT, 2)
    assert not denied
    assert denied.details["totalAttempts"] == 2
    assert MutationGuard.can_delete(CourseStatus.DRAFT, 0)


def test_reorder_rules():
    assert not MutationGuard.can_reorder(CourseStatus.UNDER_REVIEW)
    assert MutationGuard.can_reorder(CourseStatus.PUBLISHED)


def test_bulk_fields_whitelist():
    MutationGuard.check_bulk_fields(["isRequired", "allowReview"])
    with pytest.raises(ValidationException) as excinfo:
        MutationGuard.check_bulk_fields(["isRequired", "duration"])
    assert excinfo.value.details["invalidFields"] == ["duration"]


def test_bulk_update_is_all_or_nothing():
    decision = MutationGuard.can_bulk_update(CourseStatus.PUBLISHED, {1: 0, 2: 4})
    assert not decision
    assert decision.details["quizzesWithAttempts"] == [{"id": 2, "attempts": 4}]
    assert MutationGuard.can_bulk_update(CourseStatus.PUBLISHED, {1: 0, 2: 0})
    assert MutationGuard.can_bulk_update(CourseStatus.DRAFT, {1: 3})
    assert not MutationGuard.can_bulk_update(CourseStatus.UNDER_REVIEW, {1: 0})


def test_status_given_as_string():
    assert not MutationGuard.can_reorder("UNDER_REVIEW")
