"""Image helpers for preparing diagram images for the renderer."""

import hashlib
import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from app.exceptions import DiagramConversionException

logger = logging.getLogger(__name__)

# Raster formats the document renderer embeds directly.
SUPPORTED_RASTER_FORMATS = {"PNG", "JPEG"}


class RasterConverter:
    """Ensures diagram images are in a raster format the renderer accepts."""

    def __init__(self, output_dir: Path):
        """
        Initialize converter.

        Args:
            output_dir: Directory where converted images are written
        """
        self.output_dir = Path(output_dir)

    def ensure_raster(
        self, image_path: Optional[str] = None, image_bytes: Optional[bytes] = None
    ) -> str:
        """
        Return a path to a PNG/JPEG version of the image.

        Images already stored on disk as PNG or JPEG are returned unchanged.
        In-memory images and other formats (GIF, BMP, WEBP, TIFF, ...) are
        converted to PNG under ``output_dir``.

        Args:
            image_path: Path to an image on disk
            image_bytes: Raw image data (used when no path is given)

        Returns:
            Path to a raster image

        Raises:
            DiagramConversionException: If the image is missing, unreadable,
                or cannot be converted
        """
        if image_path:
            path = Path(image_path)
            if not path.is_file():
                raise DiagramConversionException(f"Diagram image not found: {path}")
            try:
                data = path.read_bytes()
            except OSError as e:
                raise DiagramConversionException(f"Diagram image unreadable: {e}") from e
        elif image_bytes:
            path = None
            data = image_bytes
        else:
            raise DiagramConversionException("Diagram has no image reference")

        try:
            with Image.open(io.BytesIO(data)) as image:
                image_format = (image.format or "").upper()
                if path is not None and image_format in SUPPORTED_RASTER_FORMATS:
                    return str(path)
                return self._write_png(image, data)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DiagramConversionException(
                f"Diagram image could not be converted: {e}"
            ) from e

    def _write_png(self, image: Image.Image, data: bytes) -> str:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha1(data).hexdigest()[:16]
        target = self.output_dir / f"diagram-{digest}.png"
        if not target.exists():
            if image.mode not in ("RGB", "RGBA", "L"):
                image = image.convert("RGBA")
            image.save(target, format="PNG")
            logger.debug(f"Converted diagram image to {target}")
        return str(target)
