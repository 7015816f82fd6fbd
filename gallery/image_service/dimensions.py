from io import BytesIO
from typing import Optional, Tuple
import logging
from PIL import Image, UnidentifiedImageError

from gallery.exceptions import DimensionExtractionError

log = logging.getLogger(__name__)

def extract_dimensions(data: bytes) -> Tuple[int, int]:
    """Decodes the image header and returns (width, height).

    The Pillow handle is closed on every exit path. Raises
    DimensionExtractionError when the blob is not a readable image, is over
    Pillow's decompression bomb limit, or reports a non-positive size.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DimensionExtractionError(f"Failed to decode image: {e}") from e

    if not (isinstance(width, int) and isinstance(height, int)) or width <= 0 or height <= 0:
        raise DimensionExtractionError(f"Invalid image dimensions {width}x{height}")
    return width, height

def usable_dimension(value) -> Optional[int]:
    """Parses a caller-supplied width/height; anything not a positive integer is None."""
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None

def resolve_dimensions(data: bytes, width, height, filename: str = "") -> Tuple[Optional[int], Optional[int]]:
    """Uses the supplied dimensions when both are usable, else reads them from the blob.

    A failed read is logged and yields (None, None); it never raises.
    """
    width, height = usable_dimension(width), usable_dimension(height)
    if width and height:
        return width, height

    log.info("Dimensions missing or invalid for %s, extracting server-side", filename)
    try:
        width, height = extract_dimensions(data)
    except DimensionExtractionError as e:
        log.warning("Could not extract dimensions for %s: %s", filename, e)
        return None, None
    log.info("Extracted dimensions for %s: %sx%s", filename, width, height)
    return width, height
