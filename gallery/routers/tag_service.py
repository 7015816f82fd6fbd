from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from gallery.storage.dynamodb import DynamoDBService
from gallery.auth.identity import CurrentUser
from gallery.dependencies.dependencies import get_dynamodb_service, get_current_user
from gallery.tag_service.service import list_tags, tag_usage, delete_tag, cleanup_unused_tags
from gallery.image_service.models import CleanupResponse, DeleteResponse, Tag, TagUsage

router = APIRouter(
    prefix="/tags",
    tags=["tags"]
)

@router.get("", response_model=List[Tag])
def list_tags_handler(
    q: Optional[str] = Query(None, max_length=50),
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
):
    """Lists the caller's tags alphabetically, or searches them with `q`."""
    return list_tags(db, user.id, q)

@router.get("/stats", response_model=List[TagUsage])
def tag_stats_handler(
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
):
    return tag_usage(db, user.id)

@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_tags_handler(
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
):
    """Deletes tags no image of the caller uses any more."""
    return CleanupResponse(deleted=cleanup_unused_tags(db, user.id))

@router.delete("/{name}", response_model=DeleteResponse)
def delete_tag_handler(
    name: str,
    user: CurrentUser = Depends(get_current_user),
    db: DynamoDBService = Depends(get_dynamodb_service),
):
    delete_tag(db, user.id, name)
    return DeleteResponse(success=True)
