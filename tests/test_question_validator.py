"""Question validation rules per question type"""

import pytest

from app.core.exceptions import QuestionValidationError, ValidationException
from app.schemas.quiz import QuestionPayload
from app.services.question_validator import TYPE_RULES, validate_question, validate_questions
from app.models.quiz import QuestionType


def payload(**fields):
    base = {"question": "What is 2 + 2?", "points": 5}
    base.update(fields)
    return QuestionPayload(**base)


def test_every_question_type_has_a_rule():
    assert set(TYPE_RULES) == set(QuestionType)


def test_single_choice_normalizes_answer_to_list():
    question = validate_question(
        payload(type="SINGLE_CHOICE", options=["3", "4", " "], correctAnswer="4"), 1
    )
    assert question.options == ["3", "4"]
    assert question.correct_answer == ["4"]


def test_single_choice_accepts_stored_one_element_list():
    question = validate_question(
        payload(type="SINGLE_CHOICE", options=["3", "4"], correctAnswer=["4"]), 1
    )
    assert question.correct_answer == ["4"]


def test_multiple_choice_keeps_every_correct_answer():
    question = validate_question(
        payload(type="MULTIPLE_CHOICE", options=["a", "b", "c"], correctAnswer=["a", "c"]), 1
    )
    assert question.correct_answer == ["a", "c"]


def test_multiple_choice_rejects_unknown_answer():
    with pytest.raises(QuestionValidationError) as excinfo:
        validate_question(
            payload(type="MULTIPLE_CHOICE", options=["a", "b"], correctAnswer=["a", "z"]), 3
        )
    assert excinfo.value.message == "Question 3: Correct answers must match available options"
    assert excinfo.value.details["invalidAnswers"] == ["z"]


def test_multiple_choice_empty_answer_list_is_missing():
    with pytest.raises(QuestionValidationError, match="Correct answer is required"):
        validate_question(payload(type="MULTIPLE_CHOICE", options=["a", "b"], correctAnswer=[]), 1)


def test_choice_needs_two_options_with_text():
    with pytest.raises(QuestionValidationError, match="at least 2 options"):
        validate_question(payload(type="SINGLE_CHOICE", options=["a"], correctAnswer="a"), 1)
    with pytest.raises(QuestionValidationError, match="All options must have text content"):
        validate_question(payload(type="SINGLE_CHOICE", options=["a", "  "], correctAnswer="a"), 1)


@pytest.mark.parametrize("answer", ["true", "FALSE", True, ["false"]])
def test_true_false_normalizes_answer(answer):
    question = validate_question(payload(type="TRUE_FALSE", correctAnswer=answer), 1)
    assert question.options == ["true", "false"]
    assert question.correct_answer == [str(answer[0] if isinstance(answer, list) else answer).lower()]


def test_true_false_rejects_other_answers():
    with pytest.raises(QuestionValidationError, match="'true' or 'false'"):
        validate_question(payload(type="TRUE_FALSE", correctAnswer="maybe"), 2)


@pytest.mark.parametrize("question_type", ["SHORT_ANSWER", "ESSAY", "FILL_IN_BLANK"])
def test_text_answer_types_trim_answer(question_type):
    question = validate_question(payload(type=question_type, correctAnswer="  four "), 1)
    assert question.correct_answer == ["four"]


def test_text_answer_requires_answer():
    with pytest.raises(QuestionValidationError) as excinfo:
        validate_question(payload(type="FILL_IN_BLANK", correctAnswer="   "), 4)
    assert excinfo.value.message == (
        "Question 4: Correct answer is required for fill in blank questions"
    )


def test_matching_pairs_are_trimmed():
    question = validate_question(
        payload(
            type="MATCHING",
            matchingPairs=[{"left": " a ", "right": "1"}, {"left": "b", "right": " 2"}],
        ),
        1,
    )
    assert [(pair.left, pair.right) for pair in question.matching_pairs] == [("a", "1"), ("b", "2")]


def test_matching_pair_error_names_question_and_pair():
    with pytest.raises(ValidationException) as excinfo:
        validate_question(
            payload(type="MATCHING", matchingPairs=[{"left": "a", "right": "1"}, {"left": "b"}]),
            2,
        )
    assert excinfo.value.message == "Question 2, Pair 2: Both left and right items are required"


def test_matching_needs_two_pairs():
    with pytest.raises(QuestionValidationError, match="at least 2 matching pairs"):
        validate_question(payload(type="MATCHING", matchingPairs=[{"left": "a", "right": "1"}]), 1)


def test_drag_drop_has_no_structural_requirements():
    question = validate_question(payload(type="DRAG_DROP"), 1)
    assert question.type == "DRAG_DROP"
    assert question.correct_answer is None


def test_code_challenge_defaults_language():
    question = validate_question(
        payload(
            type="CODE_CHALLENGE",
            codeTemplate="function add(a, b) {}",
            testCases=[{"input": [1, 2], "expected": 3}],
        ),
        1,
    )
    assert question.language == "javascript"
    assert question.test_cases == [{"input": [1, 2], "expected": 3}]


def test_code_challenge_requires_template_and_tests():
    with pytest.raises(QuestionValidationError, match="Code template is required"):
        validate_question(payload(type="CODE_CHALLENGE", testCases=[{}]), 1)
    with pytest.raises(QuestionValidationError, match="At least one test case"):
        validate_question(payload(type="CODE_CHALLENGE", codeTemplate="x", testCases=[]), 1)


def test_common_checks_run_before_type_rules():
    with pytest.raises(QuestionValidationError, match="Question text is required"):
        validate_question(payload(question=" ", type="BOGUS", points=0), 1)
    with pytest.raises(QuestionValidationError, match="Question type is required"):
        validate_question(payload(points=0), 1)
    with pytest.raises(QuestionValidationError, match="Invalid question type"):
        validate_question(payload(type="BOGUS", points=0), 1)
    with pytest.raises(QuestionValidationError, match="Points must be greater than 0"):
        validate_question(payload(type="ESSAY", points=0), 1)


@pytest.mark.parametrize("points", [2.5, "ten", True, None])
def test_points_must_be_a_positive_whole_number(points):
    with pytest.raises(QuestionValidationError, match="Points must be greater than 0"):
        validate_question(payload(type="ESSAY", correctAnswer="x", points=points), 1)


def test_non_string_type_is_an_invalid_type():
    with pytest.raises(QuestionValidationError, match="Invalid question type"):
        validate_question(payload(type=3), 1)


def test_defaults_are_filled_in():
    question = validate_question(payload(type="ESSAY", correctAnswer="anything"), 1)
    assert question.difficulty == "MEDIUM"
    assert question.hints == []
    assert question.tags == []


def test_submission_reports_first_failing_index():
    questions = [
        payload(type="ESSAY", correctAnswer="ok"),
        payload(type="TRUE_FALSE", correctAnswer="nope"),
        payload(type="ESSAY"),
    ]
    with pytest.raises(QuestionValidationError) as excinfo:
        validate_questions(questions)
    assert excinfo.value.index == 2


def test_empty_submission_is_rejected():
    with pytest.raises(ValidationException, match="At least one question is required"):
        validate_questions([])


def test_submission_is_numbered_in_order():
    questions = validate_questions(
        [payload(type="ESSAY", correctAnswer="a"), payload(type="TRUE_FALSE", correctAnswer="true")]
    )
    assert [(q.order, q.type) for q in questions] == [(1, "ESSAY"), (2, "TRUE_FALSE")]
