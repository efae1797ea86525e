"""Pydantic models describing an exam specification."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MARK_BUCKETS = (1, 2, 3, 5)
PERCENTAGE_TOLERANCE = 0.5


class QuestionType(str, Enum):
    """Concrete question formats a paper can contain."""

    CHOOSE_BEST_ANSWER = "CHOOSE_BEST_ANSWER"
    FILL_BLANKS = "FILL_BLANKS"
    ONE_WORD_ANSWER = "ONE_WORD_ANSWER"
    TRUE_FALSE = "TRUE_FALSE"
    CHOOSE_MULTIPLE_ANSWERS = "CHOOSE_MULTIPLE_ANSWERS"
    MATCHING_PAIRS = "MATCHING_PAIRS"
    DRAWING_DIAGRAM = "DRAWING_DIAGRAM"
    MARKING_PARTS = "MARKING_PARTS"
    SHORT_ANSWER = "SHORT_ANSWER"
    LONG_ANSWER = "LONG_ANSWER"


class BloomsLevel(str, Enum):
    """Bloom's taxonomy cognitive levels."""

    REMEMBER = "REMEMBER"
    UNDERSTAND = "UNDERSTAND"
    APPLY = "APPLY"
    ANALYZE = "ANALYZE"
    EVALUATE = "EVALUATE"
    CREATE = "CREATE"


class Difficulty(str, Enum):
    EASY = "EASY"
    MODERATE = "MODERATE"
    TOUGHEST = "TOUGHEST"


class Language(str, Enum):
    ENGLISH = "ENGLISH"
    TAMIL = "TAMIL"
    HINDI = "HINDI"
    MALAYALAM = "MALAYALAM"
    TELUGU = "TELUGU"
    KANNADA = "KANNADA"


# Types used for a bucket whose type distribution was left empty.
DEFAULT_BUCKET_TYPES: Dict[int, QuestionType] = {
    1: QuestionType.CHOOSE_BEST_ANSWER,
    2: QuestionType.SHORT_ANSWER,
    3: QuestionType.SHORT_ANSWER,
    5: QuestionType.LONG_ANSWER,
}


class MarkDistribution(BaseModel):
    """Target question count for each mark bucket."""

    model_config = ConfigDict(frozen=True)

    one_mark: int = Field(default=0, ge=0, le=100)
    two_mark: int = Field(default=0, ge=0, le=100)
    three_mark: int = Field(default=0, ge=0, le=100)
    five_mark: int = Field(default=0, ge=0, le=100)

    def count_for(self, marks: int) -> int:
        """Return the target count for a mark bucket (0 for unknown buckets)."""
        return {
            1: self.one_mark,
            2: self.two_mark,
            3: self.three_mark,
            5: self.five_mark,
        }.get(marks, 0)

    @property
    def total_questions(self) -> int:
        return self.one_mark + self.two_mark + self.three_mark + self.five_mark

    @property
    def total_marks(self) -> int:
        return sum(marks * self.count_for(marks) for marks in MARK_BUCKETS)


class BloomsShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: BloomsLevel
    percentage: float = Field(..., ge=0, le=100)


class TypeShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: QuestionType
    percentage: float = Field(..., ge=0, le=100)


class ReferenceMaterial(BaseModel):
    """Pointer to a reference book or document used as question source."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Original file name")
    path: Optional[str] = Field(None, description="Storage path of the document")
    file_size: Optional[int] = Field(None, ge=0, description="Size in bytes")
    uploaded_at: Optional[datetime] = None


def _sums_to_hundred(percentages: List[float]) -> bool:
    return abs(sum(percentages) - 100) <= PERCENTAGE_TOLERANCE


class ExamSpecification(BaseModel):
    """Immutable input contract for composing one question paper."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "subject_name": "Biology",
                "class_name": "Grade 9",
                "exam_title": "Mid-term Examination",
                "mark_distribution": {
                    "one_mark": 10,
                    "two_mark": 8,
                    "three_mark": 5,
                    "five_mark": 2,
                },
                "blooms_distribution": [
                    {"level": "REMEMBER", "percentage": 40},
                    {"level": "UNDERSTAND", "percentage": 30},
                    {"level": "APPLY", "percentage": 30},
                ],
                "question_type_distribution": {
                    "1": [{"type": "CHOOSE_BEST_ANSWER", "percentage": 100}],
                    "2": [
                        {"type": "FILL_BLANKS", "percentage": 50},
                        {"type": "SHORT_ANSWER", "percentage": 50},
                    ],
                    "3": [{"type": "SHORT_ANSWER", "percentage": 100}],
                    "5": [{"type": "LONG_ANSWER", "percentage": 100}],
                },
                "difficulty_level": "MODERATE",
                "twisted_questions_percentage": 10,
            }
        },
    )

    subject_name: str = Field(default="General", min_length=1)
    class_name: str = Field(default="", description="Class or grade label")
    exam_title: str = Field(default="Question Paper")
    language: Language = Language.ENGLISH
    mark_distribution: MarkDistribution
    blooms_distribution: List[BloomsShare] = Field(default_factory=list)
    question_type_distribution: Dict[int, List[TypeShare]] = Field(
        default_factory=dict,
        description="Per mark bucket (1, 2, 3, 5) list of type percentages",
    )
    difficulty_level: Difficulty = Difficulty.MODERATE
    twisted_questions_percentage: float = Field(default=0, ge=0, le=50)
    custom_instructions: Optional[str] = None
    reference_material: Optional[ReferenceMaterial] = None
    diagram_pool_path: Optional[str] = None

    @model_validator(mode="after")
    def validate_distributions(self):
        """Each distribution group must sum to 100 within tolerance."""
        if self.blooms_distribution and not _sums_to_hundred(
            [share.percentage for share in self.blooms_distribution]
        ):
            raise ValueError("blooms_distribution percentages must sum to 100")

        for marks, shares in self.question_type_distribution.items():
            if marks not in MARK_BUCKETS:
                raise ValueError(
                    f"question_type_distribution has unknown mark bucket {marks}"
                )
            if shares and not _sums_to_hundred([s.percentage for s in shares]):
                raise ValueError(
                    f"question type percentages for {marks}-mark questions must sum to 100"
                )
        return self

    @property
    def total_questions(self) -> int:
        return self.mark_distribution.total_questions

    @property
    def total_marks(self) -> int:
        return self.mark_distribution.total_marks

    def type_shares_for(self, marks: int) -> List[TypeShare]:
        """
        Return the declared type distribution for a bucket, falling back to
        a single default type when none was declared.
        """
        shares = self.question_type_distribution.get(marks)
        if shares:
            return list(shares)
        return [TypeShare(type=DEFAULT_BUCKET_TYPES[marks], percentage=100)]
