"""
Quiz schemas: request payloads and response shapes
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while exposing snake_case attributes"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MatchingPair(CamelModel):
    left: str
    right: str


class QuestionPayload(CamelModel):
    """
    Question as submitted by an instructor.

    Types are deliberately loose; shape rules per question type are enforced
    by the question validator so errors can name the question index.
    """
    question: Optional[Any] = None
    type: Optional[Any] = None
    points: Optional[Any] = None
    explanation: Optional[str] = None
    hints: Optional[List[str]] = None
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    options: Optional[List[Any]] = None
    correct_answer: Optional[Any] = None
    matching_pairs: Optional[List[Any]] = None
    code_template: Optional[str] = None
    test_cases: Optional[List[Any]] = None
    language: Optional[str] = None


class NormalizedQuestion(CamelModel):
    """Question after validation, ready to be stored"""
    question: str
    type: str
    points: int
    order: int = 0
    options: Optional[List[str]] = None
    correct_answer: Optional[List[str]] = None
    matching_pairs: Optional[List[MatchingPair]] = None
    code_template: Optional[str] = None
    test_cases: Optional[List[Any]] = None
    language: Optional[str] = None
    explanation: Optional[str] = None
    hints: List[str] = []
    difficulty: str = "MEDIUM"
    tags: List[str] = []

    def to_row(self) -> Dict[str, Any]:
        """Column values for a Question row"""
        row = self.model_dump(by_alias=False)
        if self.matching_pairs is not None:
            row["matching_pairs"] = [pair.model_dump() for pair in self.matching_pairs]
        return row


class QuizCreate(CamelModel):
    """Quiz creation payload"""
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    duration: Optional[int] = None
    passing_score: Optional[int] = None
    max_attempts: int = 1
    order: Optional[int] = None
    is_required: bool = True
    randomize_questions: bool = False
    show_results: bool = True
    allow_review: bool = True
    questions: List[QuestionPayload] = []


class QuizUpdate(CamelModel):
    """Partial quiz update; `questions`, when sent, replaces the whole set"""
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    duration: Optional[int] = None
    passing_score: Optional[int] = None
    max_attempts: Optional[int] = None
    order: Optional[int] = None
    is_required: Optional[bool] = None
    randomize_questions: Optional[bool] = None
    show_results: Optional[bool] = None
    allow_review: Optional[bool] = None
    questions: Optional[List[QuestionPayload]] = None


class QuizOrderItem(CamelModel):
    id: int
    order: Any


class QuizReorder(CamelModel):
    quiz_orders: List[QuizOrderItem] = Field(default_factory=list)


class QuizBulkUpdate(CamelModel):
    quiz_ids: List[int] = Field(default_factory=list)
    updates: Dict[str, Any] = Field(default_factory=dict)


class QuestionResponse(CamelModel):
    id: int
    quiz_id: int
    question: str
    type: str
    points: int
    order: int
    options: Optional[List[str]] = None
    correct_answer: Optional[List[str]] = None
    matching_pairs: Optional[List[MatchingPair]] = None
    code_template: Optional[str] = None
    test_cases: Optional[List[Any]] = None
    language: Optional[str] = None
    explanation: Optional[str] = None
    hints: Optional[List[str]] = None
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    created_at: Optional[datetime] = None


class QuizStats(CamelModel):
    total_questions: int
    total_attempts: int
    total_points: int


class SectionSummary(CamelModel):
    id: int
    title: str
    course_id: int


class QuizResponse(CamelModel):
    """Quiz with its ordered questions and derived stats"""
    id: int
    section_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    duration: int
    passing_score: int
    max_attempts: int
    order: int
    is_required: bool
    randomize_questions: bool
    show_results: bool
    allow_review: bool
    section: Optional[SectionSummary] = None
    questions: Optional[List[QuestionResponse]] = None
    stats: QuizStats
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuizChanges(CamelModel):
    fields_updated: List[str]
    order_changed: bool
    questions_updated: bool


class QuizSummary(CamelModel):
    """Sibling listing entry returned by reorder and bulk update"""
    id: int
    title: str
    order: int
    duration: int
    passing_score: int
    max_attempts: int
    is_required: bool
    randomize_questions: bool
    show_results: bool
    allow_review: bool
