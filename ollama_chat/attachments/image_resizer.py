"""Image attachment preparation using Pillow.

Bounds attached images to a maximum side length and encodes them as the
base64 payload the chat endpoint expects.
"""

import base64
import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Constants
MAX_IMAGE_BYTES = 20 * 1024 * 1024  # 20MB
DEFAULT_MAX_DIMENSION = 800
JPEG_QUALITY = 85


class ImageProcessingError(Exception):
    """Raised when an image cannot be decoded or re-encoded."""

    pass


def _validate_image_bytes(raw: bytes) -> None:
    """Validate image content before decoding.

    Args:
        raw: Raw bytes of the image file.

    Raises:
        ImageProcessingError: If validation fails.
    """
    if not raw:
        raise ImageProcessingError("Empty file provided")

    if len(raw) > MAX_IMAGE_BYTES:
        size_mb = len(raw) / (1024 * 1024)
        raise ImageProcessingError(f"Image size ({size_mb:.1f}MB) exceeds maximum allowed (20MB)")


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Return the size that fits within max_dimension, keeping aspect ratio."""
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width >= height:
        return max_dimension, max(1, height * max_dimension // width)
    return max(1, width * max_dimension // height), max_dimension


def prepare_image(raw: bytes, max_dimension: int = DEFAULT_MAX_DIMENSION) -> str:
    """Bound an image's dimensions and return it as a base64 payload.

    Images already within bounds are passed through untouched. Larger images
    are downscaled and re-encoded as JPEG.

    Args:
        raw: Raw bytes of the image file.
        max_dimension: Longest allowed side in pixels.

    Returns:
        Base64-encoded image bytes (no data URL prefix).

    Raises:
        ImageProcessingError: If the file is empty, too large, or not an image.
    """
    _validate_image_bytes(raw)

    try:
        with Image.open(io.BytesIO(raw)) as image:
            image.load()
            new_size = scaled_size(image.width, image.height, max_dimension)
            if new_size == image.size:
                return base64.b64encode(raw).decode("ascii")

            resized = image.convert("RGB").resize(new_size, Image.Resampling.LANCZOS)
    except UnidentifiedImageError as e:
        raise ImageProcessingError("Invalid image: unrecognized format") from e
    except (OSError, ValueError) as e:
        raise ImageProcessingError(f"Failed to read image: {e}") from e

    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    logger.debug(f"Resized image to {new_size[0]}x{new_size[1]}")
    return base64.b64encode(buffer.getvalue()).decode("ascii")
