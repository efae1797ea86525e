"""Diagram generation collaborator used when the pool cannot supply an image."""

import asyncio
import hashlib
import logging
import textwrap
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from app.exceptions import DiagramGenerationException
from app.models.diagram_models import DiagramRequest, GeneratedDiagram

logger = logging.getLogger(__name__)


class DiagramGenerator(ABC):
    """Interface for producing one diagram image per request."""

    @abstractmethod
    async def generate(self, request: DiagramRequest) -> GeneratedDiagram:
        """
        Produce a diagram for a question.

        Raises:
            DiagramGenerationException: If no image could be produced
        """


class PlaceholderDiagramGenerator(DiagramGenerator):
    """
    Draws a labelled placeholder panel carrying the diagram description.

    Printed papers get a bordered box with the description text so the
    student still sees what the figure should contain.
    """

    width = 600
    height = 400

    def __init__(self, output_dir: Path):
        """
        Initialize generator.

        Args:
            output_dir: Directory where generated images are written
        """
        self.output_dir = Path(output_dir)

    async def generate(self, request: DiagramRequest) -> GeneratedDiagram:
        try:
            target = await asyncio.to_thread(self._render, request)
        except OSError as e:
            raise DiagramGenerationException(
                f"Failed to write generated diagram: {e}",
                details={"category": request.category.value},
            ) from e

        logger.info(f"Generated placeholder {request.category.value} diagram at {target}")
        return GeneratedDiagram(
            image_path=str(target),
            alt_text=request.description,
            source="generated",
        )

    def _render(self, request: DiagramRequest) -> Path:
        # Panels are content-addressed, so identical requests reuse one file.
        self.output_dir.mkdir(parents=True, exist_ok=True)
        key = f"{request.category.value}|{request.description}|{request.question_text}"
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]
        target = self.output_dir / f"generated-{digest}.png"
        if not target.exists():
            self._draw(request).save(target, format="PNG")
        return target

    def _draw(self, request: DiagramRequest) -> Image.Image:
        image = Image.new("RGB", (self.width, self.height), "white")
        draw = ImageDraw.Draw(image)
        font = ImageFont.load_default()

        draw.rectangle((20, 20, self.width - 20, self.height - 20), outline="#cccccc", width=2)
        draw.rectangle((40, 40, self.width - 40, self.height - 40), outline="#dddddd", width=1)

        lines = [request.category.value.capitalize(), ""]
        lines += textwrap.wrap(request.description or "Diagram", width=60)[:8]
        top = self.height // 2 - 40
        for index, line in enumerate(lines):
            left = (self.width - draw.textlength(line, font=font)) / 2
            draw.text((left, top + index * 18), line, fill="#666666", font=font)
        return image
