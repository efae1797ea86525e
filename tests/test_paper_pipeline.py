"""Integration tests for the question paper pipeline."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import GeneratorConfig
from app.exceptions import NoStructuredDataFound, ValidationException
from app.models.exam_models import ExamSpecification, QuestionType
from app.models.question_models import ReadyDiagram
from app.services.generator_client import GeneratorClient
from app.services.paper_pipeline import QuestionPaperPipeline


def stub_client(raw):
    """Generator client whose backend returns fixed text."""
    backend = MagicMock()
    backend.name = "stub"
    backend.complete = AsyncMock(return_value=raw)
    return GeneratorClient(GeneratorConfig(), backend=backend)


@pytest.fixture
def twenty_items(make_item):
    """Twenty well-formed items, short of the 3- and 5-mark targets."""
    items = [make_item(f"MCQ {i}", "CHOOSE_BEST_ANSWER", 1, options=["a", "b"]) for i in range(10)]
    items += [make_item(f"Blank {i}", "FILL_BLANKS", 2) for i in range(4)]
    items += [make_item(f"Short2 {i}", "SHORT_ANSWER", 2) for i in range(4)]
    items += [make_item(f"Short3 {i}", "SHORT_ANSWER", 3) for i in range(2)]
    return items


class TestCompose:
    """Tests for end-to-end composition."""

    @pytest.mark.asyncio
    async def test_truncated_output_still_yields_full_paper(self, sample_spec, twenty_items, tmp_path):
        """Twenty items plus a truncated one still give exactly 25 questions."""
        raw = (
            "Here is your paper:\n```json\n"
            + json.dumps(twenty_items, indent=2)[:-2]
            + ',\n  {"questionText": "Explain the water cy'
        )
        pipeline = QuestionPaperPipeline(
            GeneratorConfig(), client=stub_client(raw), output_dir=tmp_path
        )
        result = await pipeline.compose(sample_spec)

        assert len(result) == 25
        assert [len(result.by_marks(m)) for m in (1, 2, 3, 5)] == [10, 8, 5, 2]
        assert result.report.parsed_count == 20
        assert result.report.duplicated == 5
        assert all(q.question_type == QuestionType.LONG_ANSWER for q in result.by_marks(5))
        assert "Explain the water cy" not in " ".join(q.question_text for q in result.questions)

    @pytest.mark.asyncio
    async def test_mock_provider_round_trip(self, sample_spec, tmp_path):
        """The offline provider produces a paper needing no repair."""
        pipeline = QuestionPaperPipeline(GeneratorConfig(provider="mock"), output_dir=tmp_path)
        result = await pipeline.compose(sample_spec, exemplars=["Define photosynthesis."])

        assert len(result) == 25
        assert result.report.duplicated == 0
        assert result.report.reassigned == 0
        assert sum(q.is_twisted for q in result.questions) == 2

    @pytest.mark.asyncio
    async def test_parser_errors_propagate(self, sample_spec, tmp_path):
        """Output without an array is a fatal error."""
        pipeline = QuestionPaperPipeline(
            GeneratorConfig(), client=stub_client("I cannot do that."), output_dir=tmp_path
        )
        with pytest.raises(NoStructuredDataFound):
            await pipeline.compose(sample_spec)

    @pytest.mark.asyncio
    async def test_pool_loaded_from_manifest(self, spec_data, png_file, tmp_path):
        """The diagram pool manifest named in the specification is used."""
        manifest = png_file.parent / "pool.json"
        manifest.write_text(
            json.dumps({"diagrams": [{"image_path": png_file.name, "category": "figure"}]})
        )
        spec_data["question_type_distribution"]["5"] = [
            {"type": "LONG_ANSWER", "percentage": 50},
            {"type": "DRAWING_DIAGRAM", "percentage": 50},
        ]
        spec_data["diagram_pool_path"] = str(manifest)
        spec = ExamSpecification.model_validate(spec_data)

        pipeline = QuestionPaperPipeline(
            GeneratorConfig(provider="mock"), output_dir=tmp_path / "out"
        )
        result = await pipeline.compose(spec)

        drawings = [q for q in result.questions if q.question_type == QuestionType.DRAWING_DIAGRAM]
        assert len(drawings) == 1
        assert isinstance(drawings[0].diagram, ReadyDiagram)
        assert drawings[0].diagram.image_path == str(png_file)
        assert result.report.diagrams_ready == 1
        assert result.report.diagrams_pending == 0

    @pytest.mark.asyncio
    async def test_missing_manifest_raises(self, spec_data, tmp_path):
        """A manifest path that does not exist is a validation error."""
        spec_data["diagram_pool_path"] = str(tmp_path / "missing.json")
        spec = ExamSpecification.model_validate(spec_data)
        pipeline = QuestionPaperPipeline(GeneratorConfig(provider="mock"), output_dir=tmp_path)

        with pytest.raises(ValidationException):
            await pipeline.compose(spec)
