from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, Response
from starlette.concurrency import run_in_threadpool
from typing import List, Optional
import json
import logging

from gallery.storage.dynamodb import DynamoDBService
from gallery.storage.s3 import S3Service
from gallery.auth.identity import CurrentUser
from gallery.dependencies.dependencies import get_s3_service, get_dynamodb_service, get_current_user
from gallery.image_service.service import ingest_image, fetch_images, get_image, update_image, remove_image
from gallery.image_service.signing import LISTING_URL_EXPIRY, SINGLE_URL_EXPIRY, sign_image, sign_images
from gallery.image_service.models import DeleteResponse, ImageUpdate, StoredImageWithUrls
from gallery.exceptions import BadRequestException
from gallery.settings import settings

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["images"]
)

# Allowed content types
ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
}

def parse_tags(raw: Optional[str]) -> List[str]:
    """Parses the `tags` form field, a JSON array of tag labels."""
    if not raw:
        return []
    try:
        tags = json.loads(raw)
    except json.JSONDecodeError:
        raise BadRequestException("tags must be a JSON array of strings")
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise BadRequestException("tags must be a JSON array of strings")
    return tags

@router.post("", response_model=StoredImageWithUrls, status_code=201)
async def upload_image(
    response: Response,
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),  # JSON array
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Ingests one image with its metadata and returns it with signed URLs."""
    # Add security header
    response.headers["X-Content-Type-Options"] = "nosniff"

    if file is None or not file.filename or not title or not title.strip():
        raise BadRequestException("File and title are required")

    # Pre-check content-type
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise BadRequestException(f"Unsupported content type: {file.content_type}")

    tags_list = parse_tags(tags)

    contents = await file.read()
    if len(contents) > settings.max_upload_bytes:
        raise BadRequestException("File exceeds the maximum upload size")

    return await run_in_threadpool(
        ingest_image,
        db=db,
        s3=s3,
        data=contents,
        filename=file.filename,
        content_type=file.content_type,
        user_id=user.id,
        title=title.strip(),
        description=description,
        tags=tags_list,
        width=width,
        height=height,
    )

@router.get("", response_model=List[StoredImageWithUrls])
async def list_images_handler(
    tag: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Lists the caller's images, newest first, with day-long signed URLs."""
    images = await run_in_threadpool(fetch_images, db, user.id, tag)
    return await sign_images(s3, images, LISTING_URL_EXPIRY)

@router.get("/{image_id}", response_model=StoredImageWithUrls)
def get_image_handler(
    image_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Gets one image with hour-long signed URLs."""
    image = get_image(db, image_id, user.id)
    return sign_image(s3, image, SINGLE_URL_EXPIRY)

@router.put("/{image_id}", response_model=StoredImageWithUrls)
def update_image_handler(
    image_id: str,
    changes: ImageUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Edits title, description, tags or metadata of an image."""
    image = update_image(db, image_id, user.id, changes)
    return sign_image(s3, image, SINGLE_URL_EXPIRY)

@router.delete("/{image_id}", response_model=DeleteResponse)
def delete_image(
    image_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Deletes an image record and, best effort, its stored objects."""
    remove_image(db, s3, image_id, user.id)
    return DeleteResponse(success=True)
