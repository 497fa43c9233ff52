"""
Quiz persistence

All reads and writes for quizzes, questions and the records analytics
consumes. The repository is bound to one request session; callers own the
transaction boundary (see ``app.core.database.atomic``).
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.database import atomic
from app.models import (
    Answer,
    Course,
    Enrollment,
    EnrollmentStatus,
    Instructor,
    Question,
    Quiz,
    QuizAttempt,
    Section,
)
from app.schemas.quiz import NormalizedQuestion
from app.services.analytics import AnswerRecord, AttemptRecord, QuestionRecord
from app.services.ordering import OrderShift


class QuizRepository:
    def __init__(self, db: Session):
        self.db = db

    def transaction(self):
        """Commit everything flushed inside the block as one unit"""
        return atomic(self.db)

    # Lookups

    def get_section(self, section_id: int) -> Optional[Section]:
        return self.db.execute(
            select(Section).options(joinedload(Section.course)).where(Section.id == section_id)
        ).scalar_one_or_none()

    def get_quiz(self, quiz_id: int, with_questions: bool = True) -> Optional[Quiz]:
        query = select(Quiz).options(joinedload(Quiz.section).joinedload(Section.course))
        if with_questions:
            query = query.options(selectinload(Quiz.questions))
        return self.db.execute(query.where(Quiz.id == quiz_id)).unique().scalar_one_or_none()

    def get_instructor_by_user(self, user_id: int) -> Optional[Instructor]:
        return self.db.execute(
            select(Instructor).where(Instructor.user_id == user_id)
        ).scalar_one_or_none()

    def count_attempts(self, quiz_id: int) -> int:
        return self.db.execute(
            select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id)
        ).scalar_one()

    def attempt_counts(self, quiz_ids: Sequence[int]) -> Dict[int, int]:
        counts = dict(
            self.db.execute(
                select(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
                .where(QuizAttempt.quiz_id.in_(quiz_ids))
                .group_by(QuizAttempt.quiz_id)
            ).all()
        )
        return {quiz_id: counts.get(quiz_id, 0) for quiz_id in quiz_ids}

    def sibling_orders(self, section_id: int) -> Dict[int, int]:
        rows = self.db.execute(
            select(Quiz.id, Quiz.order).where(Quiz.section_id == section_id)
        ).all()
        return {quiz_id: order for quiz_id, order in rows}

    def list_section_quizzes(self, section_id: int, quiz_ids: Optional[Iterable[int]] = None) -> List[Quiz]:
        query = select(Quiz).where(Quiz.section_id == section_id)
        if quiz_ids is not None:
            query = query.where(Quiz.id.in_(list(quiz_ids)))
        return list(self.db.execute(query.order_by(Quiz.order)).scalars())

    def active_enrollment_user_ids(self, course_id: int, limit: int) -> List[int]:
        return list(
            self.db.execute(
                select(Enrollment.student_id)
                .where(Enrollment.course_id == course_id, Enrollment.status == EnrollmentStatus.ACTIVE)
                .order_by(Enrollment.id)
                .limit(limit)
            ).scalars()
        )

    def recent_attempts(self, quiz_id: int, limit: int) -> List[QuizAttempt]:
        return list(
            self.db.execute(
                select(QuizAttempt)
                .options(joinedload(QuizAttempt.student))
                .where(QuizAttempt.quiz_id == quiz_id)
                .order_by(QuizAttempt.started_at.desc())
                .limit(limit)
            ).scalars()
        )

    def load_analytics_inputs(
        self, quiz_id: int
    ) -> Tuple[List[AttemptRecord], List[QuestionRecord], List[AnswerRecord]]:
        attempts = [
            AttemptRecord(
                id=attempt.id,
                student_id=attempt.student_id,
                score=attempt.score,
                passed=attempt.passed,
                started_at=attempt.started_at,
                completed_at=attempt.completed_at,
                time_spent=attempt.time_spent,
                student_name=attempt.student.full_name if attempt.student else "",
            )
            for attempt in self.db.execute(
                select(QuizAttempt)
                .options(joinedload(QuizAttempt.student))
                .where(QuizAttempt.quiz_id == quiz_id)
                .order_by(QuizAttempt.id)
            ).scalars()
        ]
        questions = [
            QuestionRecord(id=row.id, question=row.question, type=row.type, points=row.points)
            for row in self.db.execute(
                select(Question).where(Question.quiz_id == quiz_id).order_by(Question.order)
            ).scalars()
        ]
        answers = [
            AnswerRecord(question_id=question_id, attempt_id=attempt_id, is_correct=is_correct)
            for question_id, attempt_id, is_correct in self.db.execute(
                select(Answer.question_id, Answer.attempt_id, Answer.is_correct)
                .join(Question, Question.id == Answer.question_id)
                .where(Question.quiz_id == quiz_id)
            ).all()
        ]
        return attempts, questions, answers

    # Writes

    def apply_order_shifts(self, section_id: int, shifts: Iterable[OrderShift]) -> None:
        """Translate each shift intent into a single ranged UPDATE"""
        for shift in shifts:
            conditions = [Quiz.section_id == section_id, Quiz.order >= shift.start]
            if shift.end is not None:
                conditions.append(Quiz.order <= shift.end)
            if shift.exclude_id is not None:
                conditions.append(Quiz.id != shift.exclude_id)
            self.db.execute(
                update(Quiz)
                .where(*conditions)
                .values(order=Quiz.order + shift.delta)
                .execution_options(synchronize_session="fetch")
            )

    def set_orders(self, orders: Dict[int, int]) -> None:
        for quiz_id, order in orders.items():
            self.db.execute(
                update(Quiz)
                .where(Quiz.id == quiz_id)
                .values(order=order)
                .execution_options(synchronize_session="fetch")
            )

    def add_quiz(self, section_id: int, **fields) -> Quiz:
        quiz = Quiz(section_id=section_id, **fields)
        self.db.add(quiz)
        self.db.flush()
        return quiz

    def add_questions(self, quiz: Quiz, questions: Sequence[NormalizedQuestion]) -> List[Question]:
        rows = [Question(quiz_id=quiz.id, **question.to_row()) for question in questions]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def delete_questions(self, quiz: Quiz) -> None:
        self.db.execute(
            delete(Question)
            .where(Question.quiz_id == quiz.id)
            .execution_options(synchronize_session="fetch")
        )
        self.db.expire(quiz, ["questions"])

    def update_quiz(self, quiz: Quiz, fields: Dict) -> None:
        for name, value in fields.items():
            setattr(quiz, name, value)
        self.db.flush()

    def bulk_update_quizzes(self, section_id: int, quiz_ids: Sequence[int], values: Dict) -> None:
        self.db.execute(
            update(Quiz)
            .where(Quiz.id.in_(list(quiz_ids)), Quiz.section_id == section_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )

    def delete_quiz(self, quiz: Quiz) -> None:
        self.db.delete(quiz)
        self.db.flush()

    def touch(self, section: Section) -> None:
        now = datetime.now(timezone.utc)
        section.updated_at = now
        course: Course = section.course
        course.last_updated = now
        self.db.flush()

    def refresh_quiz(self, quiz_id: int) -> Quiz:
        self.db.expire_all()
        return self.get_quiz(quiz_id)
