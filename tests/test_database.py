"""Unit tests for database connection and session management."""

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from app.db.database import (
    DATABASE_URL,
    SessionLocal,
    _db_path,
    drop_db,
    engine,
    get_db,
    init_db,
)
from app.db.models import PaperQuestion, QuestionPaper


def table_names():
    with engine.connect() as conn:
        result = conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
        return [row[0] for row in result]


class TestDatabasePath:
    """Test database path configuration."""

    def test_database_path_is_absolute(self):
        """Test that database path is resolved to absolute path."""
        assert _db_path.is_absolute(), "Database path should be absolute"

    def test_database_url_format(self):
        """Test that DATABASE_URL is properly formatted."""
        assert DATABASE_URL.startswith("sqlite:///")
        assert str(_db_path) in DATABASE_URL


class TestDatabaseInitialization:
    """Test database initialization functions."""

    def test_init_db_creates_tables(self):
        """Test that init_db creates the paper tables."""
        init_db()
        tables = table_names()
        assert "question_papers" in tables
        assert "paper_questions" in tables

    def test_init_db_idempotent(self):
        """Test that calling init_db multiple times doesn't cause errors."""
        init_db()
        init_db()

    def test_drop_and_reinit(self):
        """Test that tables can be dropped and recreated."""
        init_db()
        drop_db()
        assert "question_papers" not in table_names()
        init_db()
        assert "question_papers" in table_names()


class TestDatabaseSession:
    """Test database session management."""

    def test_get_db_yields_session(self):
        """Test that get_db yields a database session."""
        db_gen = get_db()
        db = next(db_gen)
        assert isinstance(db, Session)
        db_gen.close()

    def test_session_local_configuration(self):
        """Test that SessionLocal is a sessionmaker producing new sessions."""
        assert isinstance(SessionLocal, sessionmaker)
        session1, session2 = SessionLocal(), SessionLocal()
        assert session1 is not session2
        session1.close()
        session2.close()


class TestCascade:
    """Test relationships between papers and questions."""

    def test_deleting_paper_deletes_questions(self):
        """Questions are removed with their paper."""
        init_db()
        db = SessionLocal()
        try:
            paper = QuestionPaper(
                id="paper_cascade",
                exam_title="Test",
                subject_name="Math",
                total_questions=1,
                total_marks=1,
                specification={},
            )
            paper.questions.append(
                PaperQuestion(
                    id="pq_cascade",
                    position=0,
                    marks=1,
                    question_type="SHORT_ANSWER",
                    question_text="Q",
                    payload={},
                )
            )
            db.add(paper)
            db.commit()

            db.delete(paper)
            db.commit()

            assert db.query(PaperQuestion).filter(PaperQuestion.id == "pq_cascade").first() is None
        finally:
            db.close()

    def test_invalid_query_raises_error(self):
        """Test that invalid SQL raises appropriate errors."""
        db = SessionLocal()
        try:
            with pytest.raises(Exception):
                db.execute(text("SELECT * FROM nonexistent_table"))
        finally:
            db.close()
