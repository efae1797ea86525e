"""Recovery parser turning raw generator text into candidate questions."""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import json_repair
from pydantic import ValidationError

from app.exceptions import NoStructuredDataFound, UnparsableGeneratorOutput
from app.models.exam_models import BloomsLevel, Difficulty, QuestionType
from app.models.question_models import (
    QUESTION_VARIANTS,
    DiagramCategory,
    MatchingPair,
    PendingDiagram,
    QuestionBase,
)
from app.utils.error_utils import bounded_excerpt
from app.utils.json_scanner import (
    WHITESPACE,
    locate_array_start,
    normalize,
    repair_truncation,
)
from app.utils.text_cleaning import strip_code_fences

logger = logging.getLogger(__name__)

NO_ANSWER = "No answer provided"

# Generators sometimes put a Bloom's level where the question type belongs.
# Map (level, marks) onto a concrete type suited to that mark value.
_BLOOMS_TYPES_BY_MARKS: Dict[BloomsLevel, Dict[int, QuestionType]] = {
    BloomsLevel.REMEMBER: {
        1: QuestionType.CHOOSE_BEST_ANSWER,
        2: QuestionType.FILL_BLANKS,
        3: QuestionType.SHORT_ANSWER,
        5: QuestionType.LONG_ANSWER,
    },
    BloomsLevel.UNDERSTAND: {
        1: QuestionType.FILL_BLANKS,
        2: QuestionType.SHORT_ANSWER,
        3: QuestionType.SHORT_ANSWER,
        5: QuestionType.LONG_ANSWER,
    },
    BloomsLevel.APPLY: {
        1: QuestionType.ONE_WORD_ANSWER,
        2: QuestionType.SHORT_ANSWER,
        3: QuestionType.SHORT_ANSWER,
        5: QuestionType.LONG_ANSWER,
    },
    BloomsLevel.ANALYZE: {
        1: QuestionType.TRUE_FALSE,
        2: QuestionType.SHORT_ANSWER,
        3: QuestionType.SHORT_ANSWER,
        5: QuestionType.LONG_ANSWER,
    },
    BloomsLevel.EVALUATE: {
        1: QuestionType.TRUE_FALSE,
        2: QuestionType.SHORT_ANSWER,
        3: QuestionType.LONG_ANSWER,
        5: QuestionType.LONG_ANSWER,
    },
    BloomsLevel.CREATE: {
        1: QuestionType.ONE_WORD_ANSWER,
        2: QuestionType.SHORT_ANSWER,
        3: QuestionType.LONG_ANSWER,
        5: QuestionType.LONG_ANSWER,
    },
}

BLOOMS_TYPE_TABLE: Dict[Tuple[BloomsLevel, int], QuestionType] = {
    (level, marks): question_type
    for level, by_marks in _BLOOMS_TYPES_BY_MARKS.items()
    for marks, question_type in by_marks.items()
}

_BLOOMS_VALUES = {level.value for level in BloomsLevel}
_TYPE_VALUES = {question_type.value for question_type in QuestionType}
_DIFFICULTY_VALUES = {difficulty.value for difficulty in Difficulty}
_CATEGORY_VALUES = {category.value for category in DiagramCategory}


def _pick(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def _as_label(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().upper().replace(" ", "_").replace("-", "_")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(part) for part in value if part is not None)
    return str(value).strip()


def _as_text_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [str(part) for part in value if part is not None and str(part).strip()]
    return [str(value)]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _coerce_marks(value: Any) -> int:
    try:
        marks = int(float(value))
    except (TypeError, ValueError):
        return 1
    return marks if marks > 0 else 1


def _nearest_bucket(marks: int) -> int:
    if marks <= 1:
        return 1
    if marks == 2:
        return 2
    if marks <= 4:
        return 3
    return 5


def _matching_pairs(value: Any) -> List[MatchingPair]:
    pairs: List[MatchingPair] = []
    if isinstance(value, dict):
        return [MatchingPair(left=str(k), right=str(v)) for k, v in value.items()]
    if not isinstance(value, list):
        return pairs
    for entry in value:
        if isinstance(entry, dict):
            left = _pick(entry, "left", "item", "term")
            right = _pick(entry, "right", "match", "definition")
            if left is not None and right is not None:
                pairs.append(MatchingPair(left=str(left), right=str(right)))
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            pairs.append(MatchingPair(left=str(entry[0]), right=str(entry[1])))
    return pairs


def _diagram_from_item(item: Dict[str, Any]) -> Optional[PendingDiagram]:
    diagram = item.get("diagram")
    description = ""
    category = ""
    if isinstance(diagram, dict):
        description = _as_text(_pick(diagram, "description", "diagramDescription"))
        category = _as_text(_pick(diagram, "category", "type")).lower()
    elif isinstance(diagram, str):
        description = diagram.strip()

    if not description:
        description = _as_text(_pick(item, "diagramDescription", "diagram_description"))
    if not category:
        category = _as_text(_pick(item, "diagramType", "diagram_type")).lower()

    if not description:
        return None
    if category not in _CATEGORY_VALUES:
        category = DiagramCategory.DIAGRAM.value if not category else DiagramCategory.OTHER.value
    return PendingDiagram(description=description, category=DiagramCategory(category))


def resolve_question_type(raw_type: Any, marks: int) -> Tuple[QuestionType, Optional[BloomsLevel]]:
    """
    Resolve a declared type label to a concrete question type.

    Returns:
        Tuple of (question type, Bloom's level implied by the label or None)
    """
    label = _as_label(raw_type)
    if label in _TYPE_VALUES:
        return QuestionType(label), None
    if label in _BLOOMS_VALUES:
        level = BloomsLevel(label)
        return BLOOMS_TYPE_TABLE[(level, _nearest_bucket(marks))], level
    return QuestionType.SHORT_ANSWER, None


class RecoveryParser:
    """Parser that recovers question records from untrusted generator text."""

    def __init__(self, max_excerpt_chars: int = 500):
        """
        Initialize recovery parser.

        Args:
            max_excerpt_chars: Upper bound on raw text kept in error details
        """
        self.max_excerpt_chars = max_excerpt_chars

    def recover_items(self, raw: str) -> List[Any]:
        """
        Recover the outer JSON array from raw generator output.

        Args:
            raw: Raw generator output

        Returns:
            Parsed array items (not yet validated)

        Raises:
            NoStructuredDataFound: If the output contains no array
            UnparsableGeneratorOutput: If the array cannot be repaired
        """
        text = strip_code_fences(raw or "")
        start = locate_array_start(text)
        if start is None:
            raise NoStructuredDataFound(
                "Generator output contains no question array",
                details={"excerpt": bounded_excerpt(text, self.max_excerpt_chars)},
            )

        fragment = text[start:]
        repaired = repair_truncation(normalize(fragment))
        if repaired is not None:
            body, truncated = repaired
        elif fragment.rstrip(WHITESPACE).endswith("]"):
            # The array was closed, so the scanner was misled by quoting.
            body, truncated = fragment, False
        else:
            raise UnparsableGeneratorOutput(
                "Generator output could not be parsed: truncated before the "
                "first complete question",
                excerpt=bounded_excerpt(fragment, self.max_excerpt_chars),
            )

        try:
            items = json.loads(body, strict=False)
        except json.JSONDecodeError as e:
            logger.info(f"Strict parse failed, retrying with json_repair: {e}")
            items = json_repair.loads(body)
            if not isinstance(items, (list, dict)):
                raise UnparsableGeneratorOutput(
                    f"Generator output could not be parsed: {e}",
                    excerpt=bounded_excerpt(fragment, self.max_excerpt_chars),
                )
            logger.info("Generator output parsed after repair")

        if truncated:
            logger.warning(
                f"Recovered truncated generator output: kept {len(body)} "
                f"of {len(fragment)} characters"
            )
        return items if isinstance(items, list) else [items]

    def parse(
        self, raw: str, default_difficulty: Difficulty = Difficulty.MODERATE
    ) -> List[QuestionBase]:
        """
        Convert raw generator output into candidate questions.

        Args:
            raw: Raw generator output
            default_difficulty: Difficulty used when an item declares none

        Returns:
            Candidate questions in generator order
        """
        items = self.recover_items(raw)
        questions: List[QuestionBase] = []
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object item at position {position}")
                continue
            question = self.to_candidate(item, default_difficulty)
            if question is None:
                logger.warning(f"Skipping unusable item at position {position}")
                continue
            questions.append(question)

        logger.info(f"Recovered {len(questions)} candidate questions from {len(items)} items")
        return questions

    def to_candidate(
        self, item: Dict[str, Any], default_difficulty: Difficulty = Difficulty.MODERATE
    ) -> Optional[QuestionBase]:
        """Map one loosely-typed item onto its question variant."""
        text = _as_text(_pick(item, "questionText", "question_text", "question", "text"))
        if not text:
            return None

        marks = _coerce_marks(_pick(item, "marks", "mark", "points"))
        question_type, implied_level = resolve_question_type(
            _pick(item, "questionType", "question_type", "type"), marks
        )

        blooms_label = _as_label(_pick(item, "bloomsLevel", "blooms_level", "blooms"))
        if blooms_label in _BLOOMS_VALUES:
            blooms_level = BloomsLevel(blooms_label)
        else:
            blooms_level = implied_level or BloomsLevel.REMEMBER

        difficulty_label = _as_label(item.get("difficulty"))
        difficulty = (
            Difficulty(difficulty_label)
            if difficulty_label in _DIFFICULTY_VALUES
            else default_difficulty
        )

        data: Dict[str, Any] = {
            "question_text": text,
            "marks": marks,
            "blooms_level": blooms_level,
            "difficulty": difficulty,
            "is_twisted": _as_bool(_pick(item, "isTwisted", "is_twisted")),
            "correct_answer": _as_text(
                _pick(item, "correctAnswer", "correct_answer", "answer")
            )
            or NO_ANSWER,
            "explanation": _as_text(item.get("explanation")),
            "tags": _as_text_list(item.get("tags")),
            "visual_aids": _as_text_list(_pick(item, "visualAids", "visual_aids")),
            "diagram": _diagram_from_item(item),
            "options": _as_text_list(item.get("options")),
            "multiple_correct_answers": _as_text_list(
                _pick(item, "multipleCorrectAnswers", "multiple_correct_answers")
            ),
            "matching_pairs": _matching_pairs(_pick(item, "matchingPairs", "matching_pairs")),
            "drawing_instructions": _as_text(
                _pick(item, "drawingInstructions", "drawing_instructions")
            ),
            "marking_instructions": _as_text(
                _pick(item, "markingInstructions", "marking_instructions")
            ),
        }

        variant = QUESTION_VARIANTS[question_type]
        try:
            return variant(
                **{key: value for key, value in data.items() if key in variant.model_fields}
            )
        except ValidationError as e:
            logger.warning(f"Item failed validation as {question_type.value}: {e}")
            return None
