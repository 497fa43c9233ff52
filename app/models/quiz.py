"""
Quiz models: quizzes, questions, attempts and answers
"""

import enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class QuestionType(str, enum.Enum):
    """Supported question types"""
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"
    FILL_IN_BLANK = "FILL_IN_BLANK"
    MATCHING = "MATCHING"
    DRAG_DROP = "DRAG_DROP"
    CODE_CHALLENGE = "CODE_CHALLENGE"


class Quiz(Base):
    """Quiz attached to a course section"""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)

    duration = Column(Integer, nullable=False)  # minutes
    passing_score = Column(Integer, nullable=False)  # percentage
    max_attempts = Column(Integer, default=1, nullable=False)
    order = Column(Integer, nullable=False)

    is_required = Column(Boolean, default=True)
    randomize_questions = Column(Boolean, default=False)
    show_results = Column(Boolean, default=True)
    allow_review = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    section = relationship("Section", back_populates="quizzes")
    questions = relationship(
        "Question", back_populates="quiz", order_by="Question.order", cascade="all, delete-orphan"
    )
    attempts = relationship("QuizAttempt", back_populates="quiz")

    @property
    def total_points(self) -> int:
        return sum(question.points or 0 for question in self.questions)


class Question(Base):
    """Question belonging to a quiz"""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)

    question = Column(Text, nullable=False)
    type = Column(String(32), nullable=False)
    points = Column(Integer, nullable=False)
    order = Column(Integer, nullable=False)

    options = Column(JSON, nullable=True)
    correct_answer = Column(JSON, nullable=True)
    matching_pairs = Column(JSON, nullable=True)
    code_template = Column(Text, nullable=True)
    test_cases = Column(JSON, nullable=True)
    language = Column(String(32), nullable=True)

    explanation = Column(Text, nullable=True)
    hints = Column(JSON, default=list)
    difficulty = Column(String(16), default="MEDIUM")
    tags = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")
    answers = relationship("Answer", back_populates="question", cascade="all, delete-orphan")


class QuizAttempt(Base):
    """One student's run through a quiz"""
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)

    score = Column(Float, nullable=False)
    passed = Column(Boolean, nullable=False, default=False)
    time_spent = Column(Integer, nullable=True)  # seconds

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    quiz = relationship("Quiz", back_populates="attempts")
    student = relationship("User")
    answers = relationship("Answer", back_populates="attempt", cascade="all, delete-orphan")


class Answer(Base):
    """Per-question outcome within an attempt"""
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    is_correct = Column(Boolean, nullable=False, default=False)

    # Relationships
    attempt = relationship("QuizAttempt", back_populates="answers")
    question = relationship("Question", back_populates="answers")
