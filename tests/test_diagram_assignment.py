"""Unit tests for diagram assignment, raster conversion and placeholder generation."""

from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from app.exceptions import DiagramConversionException, DiagramGenerationException
from app.models.diagram_models import DiagramPool, DiagramRequest, GeneratedDiagram, PoolDiagram
from app.models.question_models import (
    ChooseBestAnswerQuestion,
    DiagramCategory,
    DrawingDiagramQuestion,
    PendingDiagram,
    ReadyDiagram,
    ShortAnswerQuestion,
)
from app.services.diagram_assignment import DiagramAssigner, infer_category, needs_diagram
from app.services.diagram_generator import DiagramGenerator, PlaceholderDiagramGenerator
from app.utils.image_utils import RasterConverter


@pytest.fixture
def converter(tmp_path):
    """Create a raster converter writing into a temp directory."""
    return RasterConverter(tmp_path / "converted")


def diagram_questions(count):
    return [
        DrawingDiagramQuestion(question_text=f"Draw figure {i}", marks=5) for i in range(count)
    ]


class TestEligibility:
    """Tests for diagram eligibility and category inference."""

    def test_diagram_question_types_are_eligible(self):
        """Drawing questions always need a diagram."""
        assert needs_diagram(DrawingDiagramQuestion(question_text="Draw a cell", marks=5))

    def test_keyword_in_text_is_eligible(self):
        """Keywords in question text or visual aids make a question eligible."""
        assert needs_diagram(ShortAnswerQuestion(question_text="Plot y = x^2", marks=3))
        assert needs_diagram(
            ShortAnswerQuestion(question_text="Explain", marks=3, visual_aids=["A sketch of a lever"])
        )

    def test_plain_question_not_eligible(self):
        """Questions without hints need no diagram."""
        assert not needs_diagram(ChooseBestAnswerQuestion(question_text="What is 2 + 2?", marks=1))

    @pytest.mark.parametrize(
        "text",
        [
            "Read the paragraph and summarise its main idea.",
            "Why is graphite a good lubricant?",
            "Describe the photograph in your own words.",
            "Figure out the missing number in 2, 4, _, 8.",
        ],
    )
    def test_keyword_inside_other_words_not_eligible(self, text):
        """Keywords only count as whole words."""
        assert not needs_diagram(ShortAnswerQuestion(question_text=text, marks=2))

    def test_plural_keyword_is_eligible(self):
        """Plural keywords still make a question eligible."""
        assert needs_diagram(ShortAnswerQuestion(question_text="Compare the two graphs", marks=3))

    @pytest.mark.parametrize(
        "text,category",
        [
            ("A circuit with two resistors", DiagramCategory.CIRCUIT),
            ("Graph of velocity against time", DiagramCategory.GRAPH),
            ("A right-angled triangle", DiagramCategory.GEOMETRY),
            ("Pie chart of expenses", DiagramCategory.CHART),
            ("Something else", DiagramCategory.OTHER),
            ("A barometer reading in a paragraph", DiagramCategory.OTHER),
        ],
    )
    def test_infer_category(self, text, category):
        """Categories are inferred from keywords."""
        assert infer_category(text) == category


class TestDiagramAssigner:
    """Tests for the pending/ready assignment lifecycle."""

    @pytest.mark.asyncio
    async def test_pool_assigned_cyclically(self, converter, png_file, tmp_path):
        """Eligible question i receives usable pool entry i mod P."""
        second = tmp_path / "second.png"
        Image.new("RGB", (8, 8), "blue").save(second, format="PNG")
        pool = DiagramPool(
            entries=(
                PoolDiagram(image_path=str(png_file), description="first"),
                PoolDiagram(image_path=str(second), description="second"),
            )
        )
        questions = diagram_questions(5)
        await DiagramAssigner(converter, pool=pool).assign(questions)

        paths = [q.diagram.image_path for q in questions]
        assert paths == [str(png_file), str(second), str(png_file), str(second), str(png_file)]
        assert all(q.diagram.source == "pool" for q in questions)

    @pytest.mark.asyncio
    async def test_non_eligible_questions_skipped(self, converter, png_file):
        """Questions without diagram needs are neither assigned nor counted."""
        pool = DiagramPool(entries=(PoolDiagram(image_path=str(png_file)),))
        plain = ChooseBestAnswerQuestion(question_text="What is 2 + 2?", marks=1)
        drawing = DrawingDiagramQuestion(question_text="Draw a cell", marks=5)
        await DiagramAssigner(converter, pool=pool).assign([plain, drawing])

        assert plain.diagram is None
        assert isinstance(drawing.diagram, ReadyDiagram)

    @pytest.mark.asyncio
    async def test_unusable_entries_skipped(self, converter, png_file, tmp_path, caplog):
        """Missing and unreadable pool entries are skipped before cycling."""
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not an image")
        pool = DiagramPool(
            entries=(
                PoolDiagram(image_path=str(tmp_path / "missing.png")),
                PoolDiagram(image_path=str(broken)),
                PoolDiagram(image_path=str(png_file)),
            )
        )
        questions = diagram_questions(2)
        with caplog.at_level("WARNING"):
            await DiagramAssigner(converter, pool=pool).assign(questions)

        assert [q.diagram.image_path for q in questions] == [str(png_file), str(png_file)]
        assert "Skipping diagram pool entry" in caplog.text

    @pytest.mark.asyncio
    async def test_non_raster_pool_entry_converted(self, converter, gif_file):
        """Pool images in other formats are converted to PNG."""
        pool = DiagramPool(entries=(PoolDiagram(image_path=str(gif_file)),))
        questions = diagram_questions(1)
        await DiagramAssigner(converter, pool=pool).assign(questions)

        path = questions[0].diagram.image_path
        assert path.endswith(".png")
        with Image.open(path) as image:
            assert image.format == "PNG"

    @pytest.mark.asyncio
    async def test_empty_pool_and_failing_generator_leaves_pending(self, converter):
        """A failing generator leaves the diagram pending without raising."""
        generator = AsyncMock()
        generator.generate.side_effect = DiagramGenerationException("renderer down")
        questions = diagram_questions(2)

        await DiagramAssigner(converter, pool=DiagramPool(), generator=generator).assign(questions)

        assert all(isinstance(q.diagram, PendingDiagram) for q in questions)
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_generator_error_leaves_pending(self, converter):
        """Any collaborator error is contained to the question."""
        generator = AsyncMock()
        generator.generate.side_effect = RuntimeError("boom")
        questions = diagram_questions(1)

        await DiagramAssigner(converter, generator=generator).assign(questions)

        assert isinstance(questions[0].diagram, PendingDiagram)

    @pytest.mark.asyncio
    async def test_generator_used_when_pool_empty(self, converter, png_file):
        """Pending diagrams are resolved by the generator, in question order."""
        generator = AsyncMock()
        generator.generate.return_value = GeneratedDiagram(
            image_path=str(png_file), alt_text="generated", source="generated"
        )
        questions = diagram_questions(2)

        await DiagramAssigner(converter, generator=generator).assign(questions)

        assert all(q.diagram.source == "generated" for q in questions)
        requests = [call.args[0] for call in generator.generate.await_args_list]
        assert [r.question_text for r in requests] == ["Draw figure 0", "Draw figure 1"]

    @pytest.mark.asyncio
    async def test_ready_diagrams_kept(self, converter, png_file):
        """Diagrams already ready are never replaced."""
        ready = ReadyDiagram(description="kept", image_path="/tmp/kept.png", source="pool")
        question = ShortAnswerQuestion(question_text="Use the figure", marks=3, diagram=ready)
        generator = AsyncMock()

        await DiagramAssigner(converter, generator=generator).assign([question])

        assert question.diagram == ready
        generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_description_fallback(self, converter):
        """Questions without hints get a description derived from their text."""
        questions = diagram_questions(1)
        await DiagramAssigner(converter).assign(questions)

        assert questions[0].diagram.description == "Diagram for question: Draw figure 0"


class TestRasterConverter:
    """Tests for raster conversion."""

    def test_png_returned_unchanged(self, converter, png_file):
        """PNG files on disk are used as-is."""
        assert converter.ensure_raster(str(png_file)) == str(png_file)

    def test_bytes_written_as_png(self, converter, png_file):
        """In-memory images are written as PNG."""
        path = converter.ensure_raster(image_bytes=png_file.read_bytes())
        assert path.endswith(".png")

    def test_missing_reference_raises(self, converter):
        """An entry with no image raises."""
        with pytest.raises(DiagramConversionException):
            converter.ensure_raster()


class TestPlaceholderDiagramGenerator:
    """Tests for the placeholder diagram generator."""

    @pytest.mark.asyncio
    async def test_generates_png(self, tmp_path):
        """A PNG panel is written and described."""
        generator = PlaceholderDiagramGenerator(tmp_path / "generated")
        request = DiagramRequest(
            description="Velocity-time graph", category=DiagramCategory.GRAPH, question_text="Q"
        )
        diagram = await generator.generate(request)

        assert diagram.alt_text == "Velocity-time graph"
        with Image.open(diagram.image_path) as image:
            assert image.size == (600, 400)

    @pytest.mark.asyncio
    async def test_rendering_runs_in_worker_thread(self, tmp_path):
        """Drawing and saving the panel happen off the event loop."""
        generator = PlaceholderDiagramGenerator(tmp_path / "generated")
        request = DiagramRequest(description="Lever", category=DiagramCategory.DIAGRAM)
        target = tmp_path / "generated" / "panel.png"

        with patch(
            "app.services.diagram_generator.asyncio.to_thread",
            AsyncMock(return_value=target),
        ) as to_thread:
            diagram = await generator.generate(request)

        to_thread.assert_awaited_once_with(generator._render, request)
        assert diagram.image_path == str(target)

    def test_incomplete_generator_cannot_be_created(self):
        """Generators must implement generate."""

        class SilentGenerator(DiagramGenerator):
            pass

        with pytest.raises(TypeError):
            SilentGenerator()
