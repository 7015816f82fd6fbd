"""
    Schema checks for queued files and their metadata.

    File checks run on their own when files are added. Metadata checks run
    over the whole queue right before an upload and are grouped by file id.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import re

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from gallery.client.settings import (
    MAX_DESCRIPTION_LENGTH, MAX_FILE_BYTES, MAX_QUEUE_FILES, MAX_TAGS_PER_FILE,
)
from gallery.client.tags import ClientTag

SUPPORTED_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"})
TAG_LABEL_PATTERN = re.compile(r"^#[A-Za-z0-9_]+$")
DEFAULT_TITLE_MAX_LENGTH = 30


class FileSchema(BaseModel):
    name: str
    size: int
    type: str

    @field_validator("name")
    @classmethod
    def name_present(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("file_name", "File name is required")
        return value

    @field_validator("size")
    @classmethod
    def size_in_bounds(cls, value: int) -> int:
        if value < 1:
            raise PydanticCustomError("file_empty", "File cannot be empty")
        if value > MAX_FILE_BYTES:
            raise PydanticCustomError("file_too_large", "File size must be less than 10MB")
        return value

    @field_validator("type")
    @classmethod
    def supported_type(cls, value: str) -> str:
        if not value.startswith("image/"):
            raise PydanticCustomError("file_type", "Only image files are allowed")
        if value not in SUPPORTED_TYPES:
            raise PydanticCustomError("file_type", "Only JPEG, PNG, WebP, and GIF images are supported")
        return value


class TagSchema(BaseModel):
    id: str
    label: str

    @field_validator("id")
    @classmethod
    def id_present(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("tag_id", "Tag ID is required")
        return value

    @field_validator("label")
    @classmethod
    def label_format(cls, value: str) -> str:
        if not TAG_LABEL_PATTERN.match(value):
            raise PydanticCustomError(
                "tag_label",
                "Tag must start with # and contain only letters, numbers, and underscores",
            )
        return value


class FileMetadataSchema(BaseModel):
    """Validated with context={"title_max_length": n}; defaults to 30."""
    title: str
    description: Optional[str] = None
    tags: List[TagSchema] = []

    @field_validator("title")
    @classmethod
    def title_length(cls, value: str, info: ValidationInfo) -> str:
        limit = (info.context or {}).get("title_max_length", DEFAULT_TITLE_MAX_LENGTH)
        if not value.strip():
            raise PydanticCustomError("title_required", "Title is required")
        if len(value) > limit:
            raise PydanticCustomError(
                "title_length", "Title must be less than {limit} characters", {"limit": limit}
            )
        return value

    @field_validator("description")
    @classmethod
    def description_length(cls, value: Optional[str]) -> Optional[str]:
        if value and len(value) > MAX_DESCRIPTION_LENGTH:
            raise PydanticCustomError(
                "description_length", "Description must be less than {limit} characters",
                {"limit": MAX_DESCRIPTION_LENGTH},
            )
        return value

    @field_validator("tags")
    @classmethod
    def tag_count(cls, value: List[TagSchema]) -> List[TagSchema]:
        if len(value) > MAX_TAGS_PER_FILE:
            raise PydanticCustomError(
                "too_many_tags", "Maximum {limit} tags allowed", {"limit": MAX_TAGS_PER_FILE}
            )
        return value


def error_messages(exc: ValidationError, with_path: bool = False) -> List[str]:
    messages = []
    for error in exc.errors():
        if with_path and error["loc"]:
            path = ".".join(str(part) for part in error["loc"])
            messages.append(f"{path}: {error['msg']}")
        else:
            messages.append(error["msg"])
    return messages


def validate_file(name: str, size: int, content_type: str) -> List[str]:
    """Returns one message per violated file constraint; empty when the file is acceptable."""
    try:
        FileSchema(name=name, size=size, type=content_type or "")
    except ValidationError as e:
        return error_messages(e)
    return []


def validate_tags(tags: Sequence[ClientTag]) -> List[str]:
    """Checks a tag selection on its own (count and label format)."""
    messages = []
    if len(tags) > MAX_TAGS_PER_FILE:
        messages.append(f"Maximum {MAX_TAGS_PER_FILE} tags allowed")
    for index, tag in enumerate(tags):
        try:
            TagSchema.model_validate(tag.model_dump())
        except ValidationError as e:
            messages.extend(f"tags.{index}.{m}" for m in error_messages(e, with_path=True))
    return messages


def validate_metadata(metadata: dict, title_max_length: int = DEFAULT_TITLE_MAX_LENGTH) -> List[str]:
    try:
        FileMetadataSchema.model_validate(metadata, context={"title_max_length": title_max_length})
    except ValidationError as e:
        return error_messages(e, with_path=True)
    return []


@dataclass
class ValidationReport:
    file_errors: Dict[str, List[str]] = field(default_factory=dict)
    batch_errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.file_errors and not self.batch_errors

    def messages(self) -> List[str]:
        return self.batch_errors + [m for msgs in self.file_errors.values() for m in msgs]


def validate_batch(
    files: Sequence,
    metadata: Dict[str, dict],
    title_max_length: int = DEFAULT_TITLE_MAX_LENGTH,
    max_files: int = MAX_QUEUE_FILES,
    batch_tags: Optional[Sequence[ClientTag]] = None,
) -> ValidationReport:
    """Pre-upload check of the whole queue.

    `files` are queued PendingFile records; `metadata` maps their ids to
    metadata dicts. With `batch_tags` the shared selection is checked once and
    its errors are reported unscoped.
    """
    report = ValidationReport()
    if not files:
        report.batch_errors.append("Select at least one file to upload")
        return report
    if len(files) > max_files:
        report.batch_errors.append(f"Maximum {max_files} files allowed")

    if batch_tags is not None:
        report.batch_errors.extend(validate_tags(batch_tags))

    for pending in files:
        messages = validate_file(pending.name, pending.size, pending.content_type)
        entry = metadata.get(pending.id)
        if entry is None:
            messages.append("Metadata is missing")
        else:
            messages.extend(validate_metadata(entry, title_max_length))
        if messages:
            report.file_errors[pending.id] = messages
    return report
