"""Pydantic models for the reusable diagram pool and diagram generation."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from app.exceptions import ValidationException
from app.models.question_models import DiagramCategory

logger = logging.getLogger(__name__)


class PoolDiagram(BaseModel):
    """A diagram image extracted from a pattern or reference document."""

    model_config = ConfigDict(frozen=True)

    image_path: Optional[str] = Field(None, description="Path to the extracted image")
    image_bytes: Optional[bytes] = Field(None, description="In-memory image data")
    category: DiagramCategory = DiagramCategory.DIAGRAM
    description: str = ""
    location: Optional[str] = Field(
        None, description="Where the diagram appeared, e.g. 'Page 1, Question 5'"
    )


class DiagramPool(BaseModel):
    """Ordered, read-only sequence of pool diagrams."""

    model_config = ConfigDict(frozen=True)

    entries: Tuple[PoolDiagram, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @classmethod
    def from_manifest(cls, manifest_path: Path) -> "DiagramPool":
        """
        Load a pool from a JSON manifest.

        The manifest is either a list of entries or an object with a
        ``diagrams`` list. Relative image paths resolve against the
        manifest's directory. Entries that are not objects or do not
        describe a valid diagram are skipped with a warning.

        Raises:
            ValidationException: If the manifest is missing or malformed
        """
        manifest_path = Path(manifest_path)
        if not manifest_path.exists():
            raise ValidationException(
                f"Diagram pool manifest not found: {manifest_path}"
            )

        try:
            raw = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationException(
                f"Diagram pool manifest is not valid JSON: {e}"
            ) from e

        items = raw.get("diagrams", []) if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise ValidationException("Diagram pool manifest must contain a list")

        entries: List[PoolDiagram] = []
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object pool manifest entry: {item!r}")
                continue
            image_path = item.get("image_path") or item.get("imagePath")
            if image_path:
                image_path = str(image_path)
                if not Path(image_path).is_absolute():
                    image_path = str(manifest_path.parent / image_path)
            category = str(item.get("category") or item.get("type") or "diagram").lower()
            if category not in {c.value for c in DiagramCategory}:
                category = DiagramCategory.OTHER.value
            location = item.get("location")
            try:
                entries.append(
                    PoolDiagram(
                        image_path=image_path,
                        category=DiagramCategory(category),
                        description=str(item.get("description") or ""),
                        location=str(location) if location is not None else None,
                    )
                )
            except ValidationError as e:
                logger.warning(f"Skipping invalid pool manifest entry {position}: {e}")

        logger.info(f"Loaded diagram pool with {len(entries)} entries from {manifest_path}")
        return cls(entries=tuple(entries))


class DiagramRequest(BaseModel):
    """Request sent to the diagram-producing collaborator."""

    description: str
    category: DiagramCategory
    question_text: str = ""


class GeneratedDiagram(BaseModel):
    """Response from the diagram-producing collaborator."""

    image_path: Optional[str] = None
    image_bytes: Optional[bytes] = None
    alt_text: str = ""
    source: str = "generated"

    @model_validator(mode="after")
    def validate_has_image(self):
        if not self.image_path and not self.image_bytes:
            raise ValueError("Generated diagram needs image_path or image_bytes")
        return self
