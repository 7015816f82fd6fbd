from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from uuid import uuid4

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return str(uuid4())

class ImageMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    size: Optional[int] = None
    type: Optional[str] = None
    original_name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: Optional[float] = None
    thumbnails: Dict[str, str] = {}
    uploaded_at: Optional[datetime] = None

class StoredImage(BaseModel):
    id: str = Field(default_factory=new_image_id)
    title: str
    description: Optional[str] = None
    tags: List[str] = []
    image_path: str
    metadata: Optional[ImageMetadata] = None
    user_id: str
    created_at: datetime
    updated_at: datetime

class StoredImageWithUrls(StoredImage):
    image_url: Optional[str] = None
    thumbnail_urls: Dict[str, str] = {}

class ImageUpdate(BaseModel):
    """Partial edit; fields left out are not touched."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    metadata: Optional[ImageMetadata] = None

class Tag(BaseModel):
    id: str
    name: str
    user_id: str
    created_at: datetime

class TagUsage(BaseModel):
    name: str
    count: int

class DeleteResponse(BaseModel):
    success: bool = True

class CleanupResponse(BaseModel):
    deleted: int
