"""Image processing utilities for downsampling and re-encoding."""

import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

# Image processing settings
MAX_DIMENSION = 512  # Longest edge sent to the model
JPEG_QUALITY = 80
PREPROCESSED_MIME_TYPE = "image/jpeg"
SCRATCH_PREFIX = "vision-renamer-"


class ImageProcessor:
    """Handles image downsampling and JPEG re-encoding."""

    @staticmethod
    @contextmanager
    def scratch_file(suffix: str = ".jpg") -> Generator[Path, None, None]:
        """
        Reserve a uniquely named file in the system temp directory.

        The file is removed when the block exits, whether or not it raised.
        """
        fd, name = tempfile.mkstemp(prefix=f"{SCRATCH_PREFIX}{time.time_ns()}-", suffix=suffix)
        os.close(fd)
        path = Path(name)
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)

    @staticmethod
    def preprocess(
        image_path: Path,
        max_dimension: int = MAX_DIMENSION,
        quality: int = JPEG_QUALITY,
    ) -> bytes:
        """
        Downsample an image and re-encode it as JPEG.

        Args:
            image_path: Path to the source image (any format Pillow can decode)
            max_dimension: Maximum length of the longer edge; smaller images are not upscaled
            quality: JPEG quality (0-100)

        Returns:
            The JPEG bytes

        Raises:
            ConversionError: If the image cannot be decoded or re-encoded
        """
        with ImageProcessor.scratch_file() as scratch:
            try:
                with Image.open(image_path) as img:
                    img = ImageOps.exif_transpose(img)

                    # Convert to RGB if necessary
                    if img.mode != 'RGB':
                        img = img.convert('RGB')

                    # thumbnail() keeps aspect ratio and never enlarges
                    img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
                    img.save(scratch, format='JPEG', quality=quality)

                payload = scratch.read_bytes()
            except Exception as e:
                raise ConversionError(f"Failed to process image {Path(image_path).name}: {e}") from e

        logger.debug("Preprocessed %s into %d bytes", image_path, len(payload))
        return payload


class ConversionError(Exception):
    """Raised when an image cannot be re-encoded."""
    pass
