"""Pydantic models for generated questions and their diagram requirements.

Questions form a closed tagged union discriminated by ``question_type``; each
variant carries only the payload that makes sense for its format. Diagram
requirements are a two-state union discriminated by ``status``.
"""

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field, TypeAdapter

from app.models.exam_models import BloomsLevel, Difficulty, QuestionType


class DiagramCategory(str, Enum):
    GRAPH = "graph"
    GEOMETRY = "geometry"
    CIRCUIT = "circuit"
    CHART = "chart"
    DIAGRAM = "diagram"
    FIGURE = "figure"
    OTHER = "other"


class PendingDiagram(BaseModel):
    """A diagram the question needs but which has no image yet."""

    status: Literal["pending"] = "pending"
    description: str = Field(..., description="What the diagram should show")
    category: DiagramCategory = DiagramCategory.DIAGRAM
    alt_text: Optional[str] = Field(None, description="Accessible text description")

    def resolve(
        self, image_path: str, source: str, alt_text: Optional[str] = None
    ) -> "ReadyDiagram":
        """Transition pending -> ready by attaching an image reference."""
        return ReadyDiagram(
            description=self.description,
            category=self.category,
            alt_text=alt_text or self.alt_text or self.description,
            image_path=image_path,
            source=source,
        )


class ReadyDiagram(BaseModel):
    """A diagram with an attached image reference."""

    status: Literal["ready"] = "ready"
    description: str
    category: DiagramCategory = DiagramCategory.DIAGRAM
    alt_text: Optional[str] = None
    image_path: str = Field(..., min_length=1, description="Path to a raster image")
    source: str = Field(..., description="Where the image came from (pool or generated)")

    def rollback(self) -> PendingDiagram:
        """Explicit failure rollback: drop the image and return to pending."""
        return PendingDiagram(
            description=self.description,
            category=self.category,
            alt_text=self.alt_text,
        )


DiagramRequirement = Annotated[
    Union[PendingDiagram, ReadyDiagram], Field(discriminator="status")
]


class MatchingPair(BaseModel):
    left: str
    right: str


class QuestionBase(BaseModel):
    """Fields shared by every question variant."""

    question_text: str = Field(..., description="The complete question text")
    marks: int = Field(..., ge=0)
    blooms_level: BloomsLevel = BloomsLevel.REMEMBER
    difficulty: Difficulty = Difficulty.MODERATE
    is_twisted: bool = False
    correct_answer: str = ""
    explanation: str = ""
    tags: List[str] = Field(default_factory=list)
    visual_aids: List[str] = Field(default_factory=list)
    diagram: Optional[DiagramRequirement] = None


class ChooseBestAnswerQuestion(QuestionBase):
    question_type: Literal[QuestionType.CHOOSE_BEST_ANSWER] = QuestionType.CHOOSE_BEST_ANSWER
    options: List[str] = Field(default_factory=list)


class ChooseMultipleAnswersQuestion(QuestionBase):
    question_type: Literal[QuestionType.CHOOSE_MULTIPLE_ANSWERS] = (
        QuestionType.CHOOSE_MULTIPLE_ANSWERS
    )
    options: List[str] = Field(default_factory=list)
    multiple_correct_answers: List[str] = Field(default_factory=list)


class FillBlanksQuestion(QuestionBase):
    question_type: Literal[QuestionType.FILL_BLANKS] = QuestionType.FILL_BLANKS


class OneWordAnswerQuestion(QuestionBase):
    question_type: Literal[QuestionType.ONE_WORD_ANSWER] = QuestionType.ONE_WORD_ANSWER


class TrueFalseQuestion(QuestionBase):
    question_type: Literal[QuestionType.TRUE_FALSE] = QuestionType.TRUE_FALSE


class MatchingPairsQuestion(QuestionBase):
    question_type: Literal[QuestionType.MATCHING_PAIRS] = QuestionType.MATCHING_PAIRS
    matching_pairs: List[MatchingPair] = Field(default_factory=list)


class DrawingDiagramQuestion(QuestionBase):
    question_type: Literal[QuestionType.DRAWING_DIAGRAM] = QuestionType.DRAWING_DIAGRAM
    drawing_instructions: str = ""


class MarkingPartsQuestion(QuestionBase):
    question_type: Literal[QuestionType.MARKING_PARTS] = QuestionType.MARKING_PARTS
    marking_instructions: str = ""


class ShortAnswerQuestion(QuestionBase):
    question_type: Literal[QuestionType.SHORT_ANSWER] = QuestionType.SHORT_ANSWER


class LongAnswerQuestion(QuestionBase):
    question_type: Literal[QuestionType.LONG_ANSWER] = QuestionType.LONG_ANSWER


CandidateQuestion = Annotated[
    Union[
        ChooseBestAnswerQuestion,
        ChooseMultipleAnswersQuestion,
        FillBlanksQuestion,
        OneWordAnswerQuestion,
        TrueFalseQuestion,
        MatchingPairsQuestion,
        DrawingDiagramQuestion,
        MarkingPartsQuestion,
        ShortAnswerQuestion,
        LongAnswerQuestion,
    ],
    Field(discriminator="question_type"),
]

QUESTION_VARIANTS: Dict[QuestionType, Type[QuestionBase]] = {
    QuestionType.CHOOSE_BEST_ANSWER: ChooseBestAnswerQuestion,
    QuestionType.CHOOSE_MULTIPLE_ANSWERS: ChooseMultipleAnswersQuestion,
    QuestionType.FILL_BLANKS: FillBlanksQuestion,
    QuestionType.ONE_WORD_ANSWER: OneWordAnswerQuestion,
    QuestionType.TRUE_FALSE: TrueFalseQuestion,
    QuestionType.MATCHING_PAIRS: MatchingPairsQuestion,
    QuestionType.DRAWING_DIAGRAM: DrawingDiagramQuestion,
    QuestionType.MARKING_PARTS: MarkingPartsQuestion,
    QuestionType.SHORT_ANSWER: ShortAnswerQuestion,
    QuestionType.LONG_ANSWER: LongAnswerQuestion,
}

DIAGRAM_QUESTION_TYPES = frozenset(
    {QuestionType.DRAWING_DIAGRAM, QuestionType.MARKING_PARTS}
)

candidate_adapter: TypeAdapter = TypeAdapter(CandidateQuestion)
candidate_list_adapter: TypeAdapter = TypeAdapter(List[CandidateQuestion])


def retype(
    question: QuestionBase, new_type: QuestionType, marks: Optional[int] = None
) -> QuestionBase:
    """
    Convert a question to another variant.

    Common fields carry over; payload fields the target variant does not
    define (options on a long answer, for example) are dropped.

    Args:
        question: Source question (left untouched)
        new_type: Target question type
        marks: Optional replacement mark value

    Returns:
        A new question instance of the target variant
    """
    target = QUESTION_VARIANTS[new_type]
    data = question.model_dump(exclude={"question_type"})
    if marks is not None:
        data["marks"] = marks
    kept = {key: value for key, value in data.items() if key in target.model_fields}
    return target(**kept)
