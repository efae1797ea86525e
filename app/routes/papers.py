"""Question paper route endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.middleware import limiter, rate_limit_string
from app.models.paper_models import GeneratePaperRequest, PaperResponse
from app.models.question_models import CandidateQuestion
from app.services.paper_pipeline import QuestionPaperPipeline
from app.services.paper_repository import QuestionPaperRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/question-papers", tags=["question-papers"])


def get_pipeline() -> QuestionPaperPipeline:
    """Dependency providing a pipeline configured from application settings."""
    return QuestionPaperPipeline()


@router.post("/generate", response_model=PaperResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(rate_limit_string)
async def generate_paper(
    request: Request,
    body: GeneratePaperRequest,
    pipeline: QuestionPaperPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    """
    Compose, store and return a question paper.

    The generator is called once; the response always carries exactly the
    requested number of questions, with a report of how the generator
    output was reconciled.

    Args:
        request: FastAPI Request object (used by the rate limiter)
        body: Specification and optional exemplar questions
        pipeline: Question paper pipeline
        db: Database session

    Returns:
        PaperResponse with the stored paper
    """
    spec = body.specification
    logger.info(
        f"Generating '{spec.exam_title}' ({spec.subject_name}): "
        f"{spec.total_questions} questions, {spec.total_marks} marks"
    )

    question_set = await pipeline.compose(spec, exemplars=body.exemplars)

    repository = QuestionPaperRepository(db)
    paper = repository.save(spec, question_set)
    return repository.to_response(paper)


@router.get("", response_model=List[PaperResponse])
async def list_papers(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List stored question papers, newest first."""
    repository = QuestionPaperRepository(db)
    return [repository.to_response(paper) for paper in repository.list_papers(skip, limit)]


@router.get("/{paper_id}", response_model=PaperResponse)
async def get_paper(paper_id: str, db: Session = Depends(get_db)):
    """
    Get a stored question paper.

    Raises:
        HTTPException: 404 if the paper does not exist
    """
    repository = QuestionPaperRepository(db)
    paper = repository.get_paper(paper_id)
    if not paper:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question paper '{paper_id}' not found",
        )
    return repository.to_response(paper)


@router.get("/{paper_id}/questions", response_model=List[CandidateQuestion])
async def list_paper_questions(
    paper_id: str,
    marks: Optional[int] = Query(None, description="Filter by mark bucket"),
    db: Session = Depends(get_db),
):
    """List a paper's questions in paper order, optionally for one mark bucket."""
    repository = QuestionPaperRepository(db)
    if not repository.get_paper(paper_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question paper '{paper_id}' not found",
        )
    return repository.list_questions(paper_id, marks=marks)


@router.delete("/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_paper(paper_id: str, db: Session = Depends(get_db)):
    """Delete a stored question paper."""
    repository = QuestionPaperRepository(db)
    if not repository.delete_paper(paper_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question paper '{paper_id}' not found",
        )
