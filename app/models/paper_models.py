"""Pydantic models for finalized question papers and the paper API."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.exam_models import ExamSpecification
from app.models.question_models import CandidateQuestion


class DistributionReport(BaseModel):
    """Summary of how the generator output was reconciled with the targets."""

    requested_total: int = 0
    delivered_total: int = 0
    parsed_count: int = 0
    per_bucket: Dict[int, Dict[str, int]] = Field(
        default_factory=dict,
        description="Mark bucket -> question type -> delivered count",
    )
    reassigned: int = Field(0, description="Candidates moved from another mark bucket")
    retyped: int = Field(0, description="Candidates whose question type was changed")
    duplicated: int = Field(0, description="Records synthesized by duplication")
    diagrams_ready: int = 0
    diagrams_pending: int = 0


class FinalizedQuestionSet(BaseModel):
    """Exactly ``total_questions`` questions in bucket order (1, 2, 3, 5)."""

    questions: List[CandidateQuestion]
    report: DistributionReport

    def __len__(self) -> int:
        return len(self.questions)

    def by_marks(self, marks: int) -> List[CandidateQuestion]:
        return [q for q in self.questions if q.marks == marks]


class GeneratePaperRequest(BaseModel):
    """Request model for the paper generation endpoint."""

    specification: ExamSpecification
    exemplars: Optional[List[str]] = Field(
        None,
        description="Prior exemplar questions used as style references (max 5 used)",
    )


class PaperResponse(BaseModel):
    """Response model for a stored question paper."""

    id: str = Field(..., description="Paper ID")
    exam_title: str
    subject_name: str
    total_questions: int
    total_marks: int
    questions: List[CandidateQuestion]
    report: Optional[DistributionReport] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
