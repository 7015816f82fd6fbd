from io import BytesIO
from pathlib import PurePosixPath
from typing import Dict, NamedTuple, Tuple
import logging
from PIL import Image, ImageOps

from gallery.storage.s3 import S3Service, LONG_CACHE_CONTROL

log = logging.getLogger(__name__)

THUMBNAIL_FORMAT = "WEBP"
THUMBNAIL_EXTENSION = "webp"
THUMBNAIL_CONTENT_TYPE = "image/webp"

class Preset(NamedTuple):
    name: str
    width: int
    quality: int

PRESETS: Tuple[Preset, ...] = (
    Preset("small", 400, 70),
    Preset("medium", 800, 75),
    Preset("large", 1200, 80),
)

PRESET_NAMES = frozenset(p.name for p in PRESETS)

def target_size(original: Tuple[int, int], max_width: int) -> Tuple[int, int]:
    """Scales original to max_width keeping the aspect ratio; never enlarges."""
    width, height = original
    if width <= max_width:
        return width, height
    ratio = max_width / width
    return max_width, max(1, round(height * ratio))

def render_thumbnail(data: bytes, preset: Preset) -> bytes:
    """Returns the WebP rendition of data for preset."""
    with Image.open(BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        size = target_size(img.size, preset.width)
        if size != img.size:
            img = img.resize(size, Image.Resampling.LANCZOS)
        buf = BytesIO()
        img.save(buf, format=THUMBNAIL_FORMAT, quality=preset.quality)
    return buf.getvalue()

def thumbnail_path(user_id: str, preset: Preset, filename: str) -> str:
    base = PurePosixPath(filename).stem
    return f"{user_id}/thumbnails/{preset.name}_{base}.{THUMBNAIL_EXTENSION}"

def generate_thumbnails(s3: S3Service, data: bytes, filename: str, user_id: str) -> Dict[str, str]:
    """Renders and stores every preset, returning preset name -> storage path.

    A preset that fails to render or upload is logged and left out of the map.
    """
    thumbnails = {}
    for preset in PRESETS:
        path = thumbnail_path(user_id, preset, filename)
        try:
            rendition = render_thumbnail(data, preset)
            s3.upload(
                fileobj=BytesIO(rendition),
                key=path,
                content_type=THUMBNAIL_CONTENT_TYPE,
                cache_control=LONG_CACHE_CONTROL,
            )
        except Exception as e:
            log.warning("Failed to generate %s thumbnail for %s: %s", preset.name, filename, e)
            continue
        thumbnails[preset.name] = path
    log.info("Generated %d/%d thumbnails for %s", len(thumbnails), len(PRESETS), filename)
    return thumbnails
