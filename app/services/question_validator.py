"""
Question validation and normalization

Each question type owns one rule function registered in ``TYPE_RULES``.
A rule checks the type-specific structure and returns the normalized
type-specific columns. Common checks (text, type, points) run first, so
the first failure in the documented order is the one reported.
"""

from typing import Any, Callable, Dict, List, Sequence

from app.core.exceptions import QuestionValidationError, ValidationException
from app.models.quiz import QuestionType
from app.schemas.quiz import MatchingPair, NormalizedQuestion, QuestionPayload
from app.services.ordering import sequenced

TypeRule = Callable[[QuestionPayload, int], Dict[str, Any]]

VALID_TYPES = [question_type.value for question_type in QuestionType]
TRUE_FALSE_OPTIONS = ["true", "false"]
DEFAULT_CODE_LANGUAGE = "javascript"
DEFAULT_DIFFICULTY = "MEDIUM"


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _is_positive_points(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _single_answer(payload: QuestionPayload) -> Any:
    """Unwrap a one-element list; single-answer types round-trip stored lists"""
    answer = payload.correct_answer
    if isinstance(answer, list) and len(answer) == 1:
        return answer[0]
    return answer


def _choice_rule(payload: QuestionPayload, index: int) -> Dict[str, Any]:
    options = payload.options
    if not isinstance(options, list) or len(options) < 2:
        raise QuestionValidationError(index, "Multiple choice questions must have at least 2 options")

    valid_options = [option for option in options if not _is_blank(option)]
    if len(valid_options) < 2:
        raise QuestionValidationError(index, "All options must have text content")

    if payload.correct_answer in (None, "", []):
        raise QuestionValidationError(index, "Correct answer is required")

    if payload.type == QuestionType.MULTIPLE_CHOICE.value:
        answers = payload.correct_answer
        if not isinstance(answers, list):
            answers = [answers]
        invalid = [answer for answer in answers if answer not in valid_options]
        if invalid:
            raise QuestionValidationError(
                index, "Correct answers must match available options", {"invalidAnswers": invalid}
            )
    else:
        answer = _single_answer(payload)
        if answer not in valid_options:
            raise QuestionValidationError(
                index, "Correct answer must match one of the available options"
            )
        answers = [answer]

    return {"options": valid_options, "correct_answer": list(answers)}


def _true_false_rule(payload: QuestionPayload, index: int) -> Dict[str, Any]:
    answer = _single_answer(payload)
    if isinstance(answer, bool):
        answer = str(answer)
    normalized = answer.strip().lower() if isinstance(answer, str) else None
    if normalized not in TRUE_FALSE_OPTIONS:
        raise QuestionValidationError(
            index, "True/False questions must have 'true' or 'false' as correct answer"
        )
    return {"options": list(TRUE_FALSE_OPTIONS), "correct_answer": [normalized]}


def _text_answer_rule(payload: QuestionPayload, index: int) -> Dict[str, Any]:
    answer = _single_answer(payload)
    if _is_blank(answer):
        label = payload.type.lower().replace("_", " ")
        raise QuestionValidationError(index, f"Correct answer is required for {label} questions")
    return {"correct_answer": [answer.strip()]}


def _matching_rule(payload: QuestionPayload, index: int) -> Dict[str, Any]:
    pairs = payload.matching_pairs
    if not isinstance(pairs, list) or len(pairs) < 2:
        raise QuestionValidationError(index, "Matching questions must have at least 2 matching pairs")

    normalized = []
    for pair_index, pair in enumerate(pairs, start=1):
        left = pair.get("left") if isinstance(pair, dict) else None
        right = pair.get("right") if isinstance(pair, dict) else None
        if _is_blank(left) or _is_blank(right):
            raise ValidationException(
                f"Question {index}, Pair {pair_index}: Both left and right items are required",
                details={"questionIndex": index, "pairIndex": pair_index},
            )
        normalized.append(MatchingPair(left=left.strip(), right=right.strip()))
    return {"matching_pairs": normalized}


def _drag_drop_rule(payload: QuestionPayload, index: int) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if isinstance(payload.options, list):
        fields["options"] = [str(option) for option in payload.options if not _is_blank(option)]
    if payload.correct_answer is not None:
        answers = payload.correct_answer
        if not isinstance(answers, list):
            answers = [answers]
        fields["correct_answer"] = [str(answer) for answer in answers]
    return fields


def _code_challenge_rule(payload: QuestionPayload, index: int) -> Dict[str, Any]:
    if _is_blank(payload.code_template):
        raise QuestionValidationError(index, "Code template is required for code challenge questions")
    if not isinstance(payload.test_cases, list) or not payload.test_cases:
        raise QuestionValidationError(index, "At least one test case is required for code challenges")
    return {
        "code_template": payload.code_template,
        "test_cases": payload.test_cases,
        "language": payload.language or DEFAULT_CODE_LANGUAGE,
    }


TYPE_RULES: Dict[QuestionType, TypeRule] = {
    QuestionType.MULTIPLE_CHOICE: _choice_rule,
    QuestionType.SINGLE_CHOICE: _choice_rule,
    QuestionType.TRUE_FALSE: _true_false_rule,
    QuestionType.SHORT_ANSWER: _text_answer_rule,
    QuestionType.ESSAY: _text_answer_rule,
    QuestionType.FILL_IN_BLANK: _text_answer_rule,
    QuestionType.MATCHING: _matching_rule,
    QuestionType.DRAG_DROP: _drag_drop_rule,
    QuestionType.CODE_CHALLENGE: _code_challenge_rule,
}

_unruled = set(QuestionType) - set(TYPE_RULES)
if _unruled:
    raise RuntimeError(f"Question types without validation rules: {sorted(t.value for t in _unruled)}")


def validate_question(payload: QuestionPayload, index: int) -> NormalizedQuestion:
    """
    Validate one question and return its normalized form.

    Args:
        payload: Question as submitted
        index: 1-based position used in error messages

    Raises:
        QuestionValidationError: On the first rule the question breaks
    """
    if _is_blank(payload.question):
        raise QuestionValidationError(index, "Question text is required")

    if payload.type is None or payload.type == "":
        raise QuestionValidationError(index, "Question type is required")
    if not isinstance(payload.type, str) or payload.type not in VALID_TYPES:
        raise QuestionValidationError(
            index, f"Invalid question type. Must be one of: {', '.join(VALID_TYPES)}"
        )

    if not _is_positive_points(payload.points):
        raise QuestionValidationError(index, "Points must be greater than 0")

    question_type = QuestionType(payload.type)
    type_fields = TYPE_RULES[question_type](payload, index)

    return NormalizedQuestion(
        question=payload.question.strip(),
        type=question_type.value,
        points=payload.points,
        explanation=payload.explanation.strip() if payload.explanation else None,
        hints=payload.hints or [],
        difficulty=payload.difficulty or DEFAULT_DIFFICULTY,
        tags=payload.tags or [],
        **type_fields,
    )


def validate_questions(payloads: Sequence[QuestionPayload]) -> List[NormalizedQuestion]:
    """Validate a full submission; questions are numbered 1..N in submission order"""
    if not payloads:
        raise ValidationException("At least one question is required")

    return [
        validate_question(payload, position).model_copy(update={"order": position})
        for position, payload in sequenced(payloads)
    ]
