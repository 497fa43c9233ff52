"""
Quiz analytics

Pure aggregation over a quiz's attempts, questions and per-question answers.
All inputs are loaded up front; nothing here touches the database. Every
percentage is rounded to one decimal and empty inputs produce 0.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

QUESTION_PREVIEW_LENGTH = 100
RECENT_ACTIVITY_LIMIT = 10
TOP_PERFORMERS_LIMIT = 5
STRUGGLING_STUDENTS_LIMIT = 5
TREND_WINDOWS = (("lastWeek", 7), ("lastMonth", 30), ("last3Months", 90))


@dataclass
class AttemptRecord:
    id: int
    student_id: int
    score: float
    passed: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    time_spent: Optional[int] = None
    student_name: str = ""


@dataclass
class QuestionRecord:
    id: int
    question: str
    type: str
    points: int


@dataclass
class AnswerRecord:
    question_id: int
    attempt_id: int
    is_correct: bool


def percentage(part: float, whole: float) -> float:
    if not whole:
        return 0
    return round(part / whole * 100, 1)


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0
    return sum(values) / len(values)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def difficulty_label(correct: int, total: int) -> str:
    if total == 0:
        return "No Data"
    accuracy = correct / total
    if accuracy >= 0.8:
        return "Easy"
    if accuracy >= 0.6:
        return "Medium"
    return "Hard"


def score_bucket(score: float) -> str:
    if score >= 90:
        return "90-100"
    if score >= 80:
        return "80-89"
    if score >= 70:
        return "70-79"
    if score >= 60:
        return "60-69"
    return "Below 60"


class QuizAnalytics:
    """Analytics for one quiz"""

    def __init__(
        self,
        attempts: Sequence[AttemptRecord],
        questions: Sequence[QuestionRecord],
        answers: Sequence[AnswerRecord],
        now: Optional[datetime] = None,
    ):
        self.attempts = list(attempts)
        self.questions = list(questions)
        self.answers = list(answers)
        self.now = _as_utc(now) if now else datetime.now(timezone.utc)

    def overview(self) -> Dict[str, Any]:
        total = len(self.attempts)
        passed = sum(1 for attempt in self.attempts if attempt.passed)
        return {
            "totalAttempts": total,
            "uniqueStudents": len({attempt.student_id for attempt in self.attempts}),
            "passedAttempts": passed,
            "failedAttempts": total - passed,
            "passRate": percentage(passed, total),
            "averageScore": round(_mean([attempt.score for attempt in self.attempts]), 1),
            "totalQuestions": len(self.questions),
            "totalPoints": sum(question.points or 0 for question in self.questions),
        }

    def score_distribution(self) -> Dict[str, int]:
        distribution = {"90-100": 0, "80-89": 0, "70-79": 0, "60-69": 0, "Below 60": 0}
        for attempt in self.attempts:
            distribution[score_bucket(attempt.score)] += 1
        return distribution

    def time_analytics(self) -> Dict[str, int]:
        times = [attempt.time_spent or 0 for attempt in self.attempts]
        if not times:
            return {"averageTimeSpent": 0, "quickestCompletion": 0, "slowestCompletion": 0}
        return {
            "averageTimeSpent": math.floor(_mean(times) + 0.5),
            "quickestCompletion": min(times),
            "slowestCompletion": max(times),
        }

    def question_analytics(self) -> List[Dict[str, Any]]:
        tallies: Dict[int, List[int]] = {question.id: [0, 0] for question in self.questions}
        for answer in self.answers:
            tally = tallies.get(answer.question_id)
            if tally is None:
                continue
            tally[0] += 1
            if answer.is_correct:
                tally[1] += 1

        results = []
        for question in self.questions:
            total, correct = tallies[question.id]
            text = question.question
            if len(text) > QUESTION_PREVIEW_LENGTH:
                text = text[:QUESTION_PREVIEW_LENGTH] + "..."
            results.append(
                {
                    "questionId": question.id,
                    "question": text,
                    "type": question.type,
                    "points": question.points,
                    "totalAnswers": total,
                    "correctAnswers": correct,
                    "incorrectAnswers": total - correct,
                    "accuracy": percentage(correct, total),
                    "difficulty": difficulty_label(correct, total),
                }
            )
        return results

    def _newest_first(self) -> List[AttemptRecord]:
        return sorted(self.attempts, key=lambda attempt: _as_utc(attempt.started_at), reverse=True)

    def recent_activity(self) -> List[Dict[str, Any]]:
        return [
            {
                "studentName": attempt.student_name,
                "score": attempt.score,
                "passed": attempt.passed,
                "timeSpent": attempt.time_spent,
                "completedAt": attempt.completed_at,
            }
            for attempt in self._newest_first()[:RECENT_ACTIVITY_LIMIT]
        ]

    def trends(self) -> Dict[str, int]:
        trends = {}
        for name, days in TREND_WINDOWS:
            since = self.now - timedelta(days=days)
            trends[name] = sum(1 for attempt in self.attempts if _as_utc(attempt.started_at) >= since)
        return trends

    def top_performers(self) -> List[Dict[str, Any]]:
        passed = [attempt for attempt in self.attempts if attempt.passed]
        passed.sort(key=lambda attempt: attempt.score, reverse=True)
        return [
            {
                "studentId": attempt.student_id,
                "studentName": attempt.student_name,
                "score": attempt.score,
                "timeSpent": attempt.time_spent,
                "completedAt": attempt.completed_at,
            }
            for attempt in passed[:TOP_PERFORMERS_LIMIT]
        ]

    def struggling_students(self) -> List[Dict[str, Any]]:
        grouped: Dict[int, Dict[str, Any]] = {}
        for attempt in self.attempts:
            if attempt.passed:
                continue
            student = grouped.setdefault(
                attempt.student_id,
                {
                    "studentId": attempt.student_id,
                    "studentName": attempt.student_name,
                    "attempts": 0,
                    "bestScore": 0,
                    "scores": [],
                },
            )
            student["attempts"] += 1
            student["scores"].append(attempt.score)
            student["bestScore"] = max(student["bestScore"], attempt.score)

        struggling = []
        for student in list(grouped.values())[:STRUGGLING_STUDENTS_LIMIT]:
            scores = student.pop("scores")
            student["avgScore"] = round(_mean(scores), 1)
            struggling.append(student)
        return struggling

    def metadata(self) -> Dict[str, Any]:
        starts = [_as_utc(attempt.started_at) for attempt in self.attempts]
        return {
            "generatedAt": self.now,
            "dataRange": {
                "earliestAttempt": min(starts) if starts else None,
                "latestAttempt": max(starts) if starts else None,
            },
        }

    def build(self) -> Dict[str, Any]:
        """Full analytics document"""
        return {
            "overview": self.overview(),
            "scoreDistribution": self.score_distribution(),
            "timeAnalytics": self.time_analytics(),
            "questionAnalytics": self.question_analytics(),
            "recentActivity": self.recent_activity(),
            "trends": self.trends(),
            "topPerformers": self.top_performers(),
            "strugglingStudents": self.struggling_students(),
        }
