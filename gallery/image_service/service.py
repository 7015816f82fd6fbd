from datetime import datetime, timezone
from io import BytesIO
from pathlib import PurePosixPath
from typing import List, Optional
import logging
import secrets
import time
from botocore.exceptions import BotoCoreError, ClientError

from gallery.storage.dynamodb import DynamoDBService
from gallery.storage.s3 import S3Service, ObjectExistsError, LONG_CACHE_CONTROL
from gallery.image_service.models import ImageMetadata, ImageUpdate, StoredImage, StoredImageWithUrls
from gallery.image_service.dimensions import resolve_dimensions
from gallery.image_service.thumbnails import generate_thumbnails
from gallery.image_service.signing import LISTING_URL_EXPIRY, sign_image
from gallery.tag_service.service import upsert_tags
from gallery.exceptions import StorageException, DynamoDBException, ImageNotFoundException

log = logging.getLogger(__name__)

def unique_filename(original_name: str) -> str:
    """Builds `{epoch_ms}-{token}.{ext}` keeping the original extension."""
    extension = PurePosixPath(original_name).suffix.lstrip(".").lower() or "bin"
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}.{extension}"

def to_image(item: dict) -> StoredImage:
    return StoredImage(**item)

def ingest_image(
    db: DynamoDBService,
    s3: S3Service,
    data: bytes,
    filename: str,
    content_type: str,
    user_id: str,
    title: str,
    description: Optional[str],
    tags: List[str],
    width=None,
    height=None,
) -> StoredImageWithUrls:
    """Stores the original, derives thumbnails, records the image and signs its URLs."""
    width, height = resolve_dimensions(data, width, height, filename)

    stored_name = unique_filename(filename)
    image_path = f"{user_id}/{stored_name}"

    # upload to s3, never replacing an existing object
    try:
        s3.upload(
            fileobj=BytesIO(data),
            key=image_path,
            content_type=content_type,
            cache_control=LONG_CACHE_CONTROL,
        )
    except (BotoCoreError, ClientError, ObjectExistsError) as e:
        log.error(f"S3 upload failed: {e}")
        raise StorageException("Failed to upload file")

    thumbnails = generate_thumbnails(s3, data, stored_name, user_id)

    if tags:
        upsert_tags(db, user_id, tags)

    now = datetime.now(timezone.utc)
    metadata = ImageMetadata(
        size=len(data),
        type=content_type,
        original_name=filename,
        width=width,
        height=height,
        aspect_ratio=width / height if width and height else None,
        thumbnails=thumbnails,
        uploaded_at=now,
    )
    image = StoredImage(
        title=title,
        description=description or "",
        tags=tags,
        image_path=image_path,
        metadata=metadata,
        user_id=user_id,
        created_at=now,
        updated_at=now,
    )

    # persist the record in dynamodb
    try:
        db.put_image(image.model_dump(mode="json", exclude_none=True))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_image failed: {e}")
        raise DynamoDBException("Failed to save image metadata")

    log.info("Saved image %s for user %s", image.id, user_id)
    return sign_image(s3, image, LISTING_URL_EXPIRY)


def fetch_images(db: DynamoDBService, user_id: str, tag: Optional[str] = None) -> List[StoredImage]:
    """Returns the owner's images, newest first, optionally only those carrying tag."""
    try:
        items = db.query_images(user_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB fetch_images failed: {e}")
        raise DynamoDBException("Failed to fetch images")
    images = [to_image(item) for item in items]
    if tag:
        images = [image for image in images if tag in image.tags]
    return images

def get_image(db: DynamoDBService, image_id: str, user_id: str) -> StoredImage:
    """Gets one image; images owned by someone else are reported as missing."""
    try:
        item = db.get_image(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_image failed: {e}")
        raise DynamoDBException("Failed to fetch image")
    if not item or item.get("user_id") != user_id:
        raise ImageNotFoundException(image_id)
    return to_image(item)

def update_image(db: DynamoDBService, image_id: str, user_id: str, update: ImageUpdate) -> StoredImage:
    """Applies a partial edit; a supplied metadata object replaces the stored one."""
    changes = update.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if not changes:
        return get_image(db, image_id, user_id)
    changes["updated_at"] = datetime.now(timezone.utc).isoformat()

    try:
        item = db.update_image(image_id, user_id, changes)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB update_image failed: {e}")
        raise DynamoDBException("Failed to update image")
    if item is None:
        raise ImageNotFoundException(image_id)
    log.info("Updated image %s fields %s", image_id, sorted(changes))
    return to_image(item)

def remove_image(
    db: DynamoDBService,
    s3: S3Service,
    image_id: str,
    user_id: str,
) -> bool:
    """Deletes the record, then makes a best-effort attempt to remove its objects."""
    image = get_image(db, image_id, user_id)

    try:
        deleted = db.delete_image(image_id, user_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_image failed: {e}")
        raise DynamoDBException("Failed to delete image")
    if not deleted:
        raise ImageNotFoundException(image_id)

    paths = [image.image_path]
    if image.metadata:
        paths.extend(image.metadata.thumbnails.values())
    for path in paths:
        try:
            s3.delete(path)
        except (BotoCoreError, ClientError) as e:
            log.warning("Could not delete %s from storage: %s", path, e)
    return True
