"""Assigns diagram images to questions that need a visual.

Each eligible question moves through a two-state lifecycle: it starts
``pending`` and becomes ``ready`` once an image is attached, first from the
reusable diagram pool and otherwise from the diagram generator. A question
whose generation fails stays ``pending``; the renderer then prints the
description instead of an image.
"""

import asyncio
import logging
import re
from typing import List, Optional, Sequence, Tuple

from app.exceptions import DiagramConversionException, DiagramException
from app.models.diagram_models import DiagramPool, DiagramRequest, PoolDiagram
from app.models.question_models import (
    DIAGRAM_QUESTION_TYPES,
    DiagramCategory,
    DrawingDiagramQuestion,
    MarkingPartsQuestion,
    PendingDiagram,
    QuestionBase,
    ReadyDiagram,
)
from app.services.diagram_generator import DiagramGenerator
from app.utils.image_utils import RasterConverter
from app.utils.text_cleaning import truncate_text

logger = logging.getLogger(__name__)

def _keyword_pattern(keywords: Sequence[str]) -> "re.Pattern[str]":
    # Whole words only, plural allowed; "figure out" is a verb phrase.
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"\b(?:{alternatives})(?:s|es)?\b(?!\s+out\b)", re.IGNORECASE)


DIAGRAM_PATTERN = _keyword_pattern(("graph", "diagram", "plot", "sketch", "figure"))

# Checked in order; the first category with a matching keyword wins.
CATEGORY_PATTERNS: Tuple[Tuple[DiagramCategory, "re.Pattern[str]"], ...] = tuple(
    (category, _keyword_pattern(keywords))
    for category, keywords in (
        (DiagramCategory.CIRCUIT, ("circuit", "resistor", "battery", "voltage")),
        (DiagramCategory.GRAPH, ("graph", "plot", "axis", "axes", "curve")),
        (DiagramCategory.CHART, ("chart", "histogram", "pie", "bar")),
        (DiagramCategory.GEOMETRY, ("triangle", "circle", "angle", "polygon", "geometry")),
        (DiagramCategory.FIGURE, ("figure",)),
        (DiagramCategory.DIAGRAM, ("diagram", "sketch")),
    )
)


def _hint_text(question: QuestionBase) -> str:
    return " ".join([question.question_text, *question.visual_aids])


def needs_diagram(question: QuestionBase) -> bool:
    """Return True if the question requires a visual."""
    if question.diagram is not None:
        return True
    if question.question_type in DIAGRAM_QUESTION_TYPES:
        return True
    return DIAGRAM_PATTERN.search(_hint_text(question)) is not None


def infer_category(text: str) -> DiagramCategory:
    """Infer a diagram category from descriptive text."""
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return DiagramCategory.OTHER


def pending_diagram_for(question: QuestionBase) -> PendingDiagram:
    """Build the initial pending requirement for an eligible question."""
    description = ""
    if question.visual_aids:
        description = question.visual_aids[0]
    elif isinstance(question, DrawingDiagramQuestion) and question.drawing_instructions:
        description = question.drawing_instructions
    elif isinstance(question, MarkingPartsQuestion) and question.marking_instructions:
        description = question.marking_instructions
    if not description:
        description = f"Diagram for question: {truncate_text(question.question_text, 80)}"

    category = infer_category(f"{description} {question.question_text}")
    return PendingDiagram(description=description, category=category)


class DiagramAssigner:
    """Resolves pending diagrams from a pool, then by generation."""

    def __init__(
        self,
        converter: RasterConverter,
        pool: Optional[DiagramPool] = None,
        generator: Optional[DiagramGenerator] = None,
    ):
        """
        Initialize assigner.

        Args:
            converter: Converts images to a supported raster format
            pool: Reusable diagrams; read-only, one cursor per assigner
            generator: Fallback collaborator for questions still pending
        """
        self.converter = converter
        self.pool = pool or DiagramPool()
        self.generator = generator
        self._usable: Optional[List[Tuple[PoolDiagram, str]]] = None

    def usable_pool_entries(self) -> List[Tuple[PoolDiagram, str]]:
        """
        Pool entries with a readable raster image, in pool order.

        Entries whose image is missing, unreadable or unconvertible are
        skipped. Computed once per assigner.
        """
        if self._usable is None:
            usable: List[Tuple[PoolDiagram, str]] = []
            for position, entry in enumerate(self.pool.entries):
                try:
                    path = self.converter.ensure_raster(entry.image_path, entry.image_bytes)
                except DiagramConversionException as e:
                    logger.warning(f"Skipping diagram pool entry {position}: {e.message}")
                    continue
                usable.append((entry, path))
            self._usable = usable
        return self._usable

    async def assign(self, questions: Sequence[QuestionBase]) -> Sequence[QuestionBase]:
        """
        Attach diagrams to every eligible question, in question order.

        Args:
            questions: Finalized questions; diagram fields are updated in place

        Returns:
            The same questions
        """
        eligible = [question for question in questions if needs_diagram(question)]
        for question in eligible:
            if question.diagram is None:
                question.diagram = pending_diagram_for(question)

        usable = await asyncio.to_thread(self.usable_pool_entries)
        if usable:
            for index, question in enumerate(eligible):
                if isinstance(question.diagram, ReadyDiagram):
                    continue
                entry, path = usable[index % len(usable)]
                question.diagram = question.diagram.resolve(
                    path, source="pool", alt_text=entry.description or None
                )

        for question in eligible:
            if isinstance(question.diagram, PendingDiagram):
                await self._generate(question)

        ready = sum(1 for q in eligible if isinstance(q.diagram, ReadyDiagram))
        logger.info(
            f"Diagram assignment: {len(eligible)} eligible, {ready} ready, "
            f"{len(eligible) - ready} pending"
        )
        return questions

    async def _generate(self, question: QuestionBase) -> None:
        if self.generator is None:
            return

        pending = question.diagram
        request = DiagramRequest(
            description=pending.description,
            category=pending.category,
            question_text=question.question_text,
        )
        try:
            generated = await self.generator.generate(request)
            path = await asyncio.to_thread(
                self.converter.ensure_raster, generated.image_path, generated.image_bytes
            )
        except DiagramException as e:
            logger.warning(f"Diagram left pending for '{truncate_text(question.question_text, 60)}': {e.message}")
            return
        except Exception as e:
            logger.warning(
                f"Diagram generator failed for '{truncate_text(question.question_text, 60)}': {e}",
                exc_info=True,
            )
            return

        question.diagram = pending.resolve(
            path, source=generated.source, alt_text=generated.alt_text or None
        )
