"""Image prefetch helpers: MIME sniffing and data-URI encoding."""

import base64
from typing import Optional

from issue_bridge.constants import IMAGE_MAGIC_NUMBERS
from issue_bridge.core.logging import get_logger

logger = get_logger(__name__)


def sniff_mime_type(content: Optional[bytes]) -> Optional[str]:
    """Detect PNG, GIF, JPEG or SVG from the first four bytes."""
    if not content or len(content) < 4:
        return None
    magic = content[:4].hex().upper()
    mime_type = IMAGE_MAGIC_NUMBERS.get(magic)
    if mime_type is None:
        logger.debug("Image mimeType not found", magic=magic)
    return mime_type


def to_data_uri(content: Optional[bytes]) -> Optional[str]:
    """Encode image bytes as a data URI, or None if the type is unknown."""
    mime_type = sniff_mime_type(content)
    if mime_type is None:
        return None
    return f"data:{mime_type};base64," + base64.b64encode(content).decode()
