"""Pytest configuration and shared fixtures."""
import os
from pathlib import Path

# Point settings at throwaway locations before the app is imported
_TEST_DATA = Path(__file__).parent / "test_data"
os.environ.setdefault("DATABASE_PATH", str(_TEST_DATA / "app.db"))
os.environ.setdefault("DIAGRAM_OUTPUT_DIR", str(_TEST_DATA / "diagrams"))
os.environ.setdefault("AI_PROVIDER", "mock")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.main import app
from app.models.exam_models import ExamSpecification


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def spec_data():
    """Raw specification payload: 25 questions across all four buckets."""
    return {
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


@pytest.fixture
def sample_spec(spec_data):
    """Validated 25-question specification."""
    return ExamSpecification.model_validate(spec_data)


@pytest.fixture
def make_item():
    """Factory for generator output items in the camelCase wire format."""

    def _make(text, question_type="SHORT_ANSWER", marks=1, **extra):
        item = {
            "questionText": text,
            "questionType": question_type,
            "marks": marks,
            "bloomsLevel": "REMEMBER",
            "difficulty": "MODERATE",
            "correctAnswer": "answer",
        }
        item.update(extra)
        return item

    return _make


@pytest.fixture
def png_file(tmp_path):
    """Small PNG image on disk."""
    path = tmp_path / "pool.png"
    Image.new("RGB", (8, 8), "red").save(path, format="PNG")
    return path


@pytest.fixture
def gif_file(tmp_path):
    """Small GIF image on disk (needs conversion)."""
    path = tmp_path / "pool.gif"
    Image.new("P", (8, 8)).save(path, format="GIF")
    return path
