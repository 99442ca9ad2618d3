"""Image attachment handling.

Turns raw uploaded or pasted image bytes into bounded-size base64 payloads
ready to ride along with a user message.
"""

from ollama_chat.attachments.image_resizer import (
    ImageProcessingError,
    prepare_image,
    scaled_size,
)

__all__ = ["ImageProcessingError", "prepare_image", "scaled_size"]
