"""Quiz analytics aggregation"""

from datetime import datetime, timedelta, timezone

from app.services.analytics import (
    AnswerRecord,
    AttemptRecord,
    QuestionRecord,
    QuizAnalytics,
    difficulty_label,
    score_bucket,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
SCORES = [95, 85, 72, 60, 55, 90, 40, 88, 77, 65]


def make_attempts(scores, passing=70):
    return [
        AttemptRecord(
            id=index,
            student_id=index % 7,
            score=score,
            passed=score >= passing,
            started_at=NOW - timedelta(days=index * 5),
            time_spent=300 + index * 10,
            student_name=f"Student {index % 7}",
        )
        for index, score in enumerate(scores, start=1)
    ]


def test_empty_quiz_has_zeroed_analytics():
    document = QuizAnalytics([], [], [], now=NOW).build()
    overview = document["overview"]
    assert overview["passRate"] == 0
    assert overview["averageScore"] == 0
    assert set(document["scoreDistribution"].values()) == {0}
    assert document["timeAnalytics"] == {
        "averageTimeSpent": 0,
        "quickestCompletion": 0,
        "slowestCompletion": 0,
    }
    assert document["topPerformers"] == []
    assert document["strugglingStudents"] == []


def test_pass_rate_and_distribution():
    analytics = QuizAnalytics(make_attempts(SCORES), [], [], now=NOW)
    overview = analytics.overview()
    assert overview["totalAttempts"] == 10
    assert overview["passedAttempts"] == 6
    assert overview["passRate"] == 60.0
    assert overview["averageScore"] == 72.7
    assert analytics.score_distribution() == {
        "90-100": 2,
        "80-89": 2,
        "70-79": 2,
        "60-69": 2,
        "Below 60": 2,
    }


def test_time_analytics_rounds_average():
    analytics = QuizAnalytics(make_attempts([80, 90]), [], [], now=NOW)
    assert analytics.time_analytics() == {
        "averageTimeSpent": 315,
        "quickestCompletion": 310,
        "slowestCompletion": 320,
    }


def test_trend_windows_count_recent_attempts():
    trends = QuizAnalytics(make_attempts(SCORES), [], [], now=NOW).trends()
    # attempts start 5, 10, ... 50 days before NOW
    assert trends == {"lastWeek": 1, "lastMonth": 6, "last3Months": 10}


def test_top_performers_only_include_passing_attempts():
    top = QuizAnalytics(make_attempts(SCORES), [], [], now=NOW).top_performers()
    assert [entry["score"] for entry in top] == [95, 90, 88, 85, 77]


def test_struggling_students_grouped_by_student():
    attempts = [
        AttemptRecord(1, 1, 40, False, NOW, student_name="A"),
        AttemptRecord(2, 1, 60, False, NOW, student_name="A"),
        AttemptRecord(3, 2, 30, False, NOW, student_name="B"),
        AttemptRecord(4, 2, 90, True, NOW, student_name="B"),
    ]
    struggling = QuizAnalytics(attempts, [], [], now=NOW).struggling_students()
    assert struggling == [
        {"studentId": 1, "studentName": "A", "attempts": 2, "bestScore": 60, "avgScore": 50.0},
        {"studentId": 2, "studentName": "B", "attempts": 1, "bestScore": 30, "avgScore": 30.0},
    ]


def test_question_analytics_accuracy_and_difficulty():
    questions = [
        QuestionRecord(1, "x" * 120, "ESSAY", 5),
        QuestionRecord(2, "Unanswered", "ESSAY", 5),
    ]
    answers = [AnswerRecord(1, attempt, attempt <= 3) for attempt in range(1, 6)]
    stats = QuizAnalytics([], questions, answers, now=NOW).question_analytics()
    assert stats[0]["accuracy"] == 60.0
    assert stats[0]["difficulty"] == "Medium"
    assert stats[0]["question"].endswith("...")
    assert len(stats[0]["question"]) == 103
    assert stats[1]["difficulty"] == "No Data"
    assert stats[1]["accuracy"] == 0


def test_recent_activity_is_newest_first():
    recent = QuizAnalytics(make_attempts(SCORES + [99, 98]), [], [], now=NOW).recent_activity()
    assert len(recent) == 10
    assert recent[0]["score"] == 95


def test_metadata_reports_range():
    metadata = QuizAnalytics(make_attempts([80, 90]), [], [], now=NOW).metadata()
    assert metadata["generatedAt"] == NOW
    assert metadata["dataRange"]["latestAttempt"] == NOW - timedelta(days=5)
    assert metadata["dataRange"]["earliestAttempt"] == NOW - timedelta(days=10)


def test_labels():
    assert difficulty_label(8, 10) == "Easy"
    assert difficulty_label(5, 10) == "Hard"
    assert score_bucket(89.9) == "80-89"
    assert score_bucket(59) == "Below 60"
