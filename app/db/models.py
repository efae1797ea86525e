"""SQLAlchemy database models for composed question papers."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base


class QuestionPaper(Base):
    """A composed question paper and the specification it was built from."""

    __tablename__ = "question_papers"

    id = Column(String, primary_key=True, index=True)
    exam_title = Column(String, nullable=False, index=True)
    subject_name = Column(String, nullable=False, index=True)
    class_name = Column(String, nullable=True)
    total_questions = Column(Integer, nullable=False)
    total_marks = Column(Integer, nullable=False)
    specification = Column(JSON, nullable=False)
    report = Column(JSON, nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    questions = relationship(
        "PaperQuestion",
        back_populates="paper",
        cascade="all, delete-orphan",
        order_by="PaperQuestion.position",
    )

    def __repr__(self):
        return f"<QuestionPaper(id={self.id}, exam_title={self.exam_title})>"


class PaperQuestion(Base):
    """One finalized question, stored in paper order."""

    __tablename__ = "paper_questions"

    id = Column(String, primary_key=True, index=True)
    paper_id = Column(
        String,
        ForeignKey("question_papers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    marks = Column(Integer, nullable=False, index=True)
    question_type = Column(String, nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)  # Full question record as JSON
    diagram_status = Column(String, nullable=True)  # "pending", "ready" or NULL

    paper = relationship("QuestionPaper", back_populates="questions")

    def __repr__(self):
        return f"<PaperQuestion(id={self.id}, paper_id={self.paper_id}, position={self.position})>"
