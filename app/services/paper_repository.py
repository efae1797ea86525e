"""Persistence of composed question papers."""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from app.db.models import PaperQuestion, QuestionPaper
from app.models.exam_models import ExamSpecification
from app.models.paper_models import DistributionReport, FinalizedQuestionSet, PaperResponse
from app.models.question_models import CandidateQuestion, candidate_list_adapter

logger = logging.getLogger(__name__)


class QuestionPaperRepository:
    """Stores and loads question papers and their questions."""

    def __init__(self, db: Session):
        """
        Initialize repository.

        Args:
            db: Database session
        """
        self.db = db

    def save(self, spec: ExamSpecification, question_set: FinalizedQuestionSet) -> QuestionPaper:
        """
        Persist a finalized question set.

        Args:
            spec: Specification the paper was composed from
            question_set: Finalized questions and distribution report

        Returns:
            Stored paper
        """
        paper = QuestionPaper(
            id=f"paper_{uuid.uuid4().hex[:12]}",
            exam_title=spec.exam_title,
            subject_name=spec.subject_name,
            class_name=spec.class_name,
            total_questions=spec.total_questions,
            total_marks=spec.total_marks,
            specification=spec.model_dump(mode="json"),
            report=question_set.report.model_dump(mode="json"),
        )
        for position, question in enumerate(question_set.questions):
            paper.questions.append(
                PaperQuestion(
                    id=f"pq_{uuid.uuid4().hex[:12]}",
                    position=position,
                    marks=question.marks,
                    question_type=question.question_type.value,
                    question_text=question.question_text,
                    payload=question.model_dump(mode="json"),
                    diagram_status=question.diagram.status if question.diagram else None,
                )
            )

        self.db.add(paper)
        self.db.commit()
        self.db.refresh(paper)

        logger.info(f"Stored question paper {paper.id} with {len(question_set)} questions")
        return paper

    def get_paper(self, paper_id: str) -> Optional[QuestionPaper]:
        """
        Get a paper by ID.

        Args:
            paper_id: Paper ID

        Returns:
            Paper if found, None otherwise
        """
        return self.db.query(QuestionPaper).filter(QuestionPaper.id == paper_id).first()

    def list_papers(self, skip: int = 0, limit: int = 100) -> List[QuestionPaper]:
        """List stored papers, newest first."""
        return (
            self.db.query(QuestionPaper)
            .order_by(QuestionPaper.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def list_questions(self, paper_id: str, marks: Optional[int] = None) -> List[CandidateQuestion]:
        """
        Load a paper's questions in paper order.

        Args:
            paper_id: Paper ID
            marks: Optional mark bucket filter

        Returns:
            Validated question records
        """
        query = self.db.query(PaperQuestion).filter(PaperQuestion.paper_id == paper_id)
        if marks is not None:
            query = query.filter(PaperQuestion.marks == marks)
        rows = query.order_by(PaperQuestion.position).all()
        return candidate_list_adapter.validate_python([row.payload for row in rows])

    def delete_paper(self, paper_id: str) -> bool:
        """
        Delete a paper and its questions.

        Returns:
            True if deleted, False if not found
        """
        paper = self.get_paper(paper_id)
        if not paper:
            return False

        self.db.delete(paper)
        self.db.commit()
        logger.info(f"Deleted question paper {paper_id}")
        return True

    def to_response(self, paper: QuestionPaper) -> PaperResponse:
        """Build the API response for a stored paper."""
        return PaperResponse(
            id=paper.id,
            exam_title=paper.exam_title,
            subject_name=paper.subject_name,
            total_questions=paper.total_questions,
            total_marks=paper.total_marks,
            questions=self.list_questions(paper.id),
            report=DistributionReport.model_validate(paper.report) if paper.report else None,
            created_at=paper.created_at,
        )
