from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath
from typing import Callable, Dict, Iterator, List, Optional, Sequence
import logging
import mimetypes
import secrets

from gallery.client.errors import CapacityError, DuplicateFileError, UploadError, ValidationError
from gallery.client.notifications import Notifier
from gallery.client.previews import PreviewHandle, PreviewRegistry
from gallery.client.settings import MAX_QUEUE_FILES
from gallery.client.tags import ClientTag
from gallery.client.validation import validate_file

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawFile:
    """A file picked by the user, before it is validated or queued."""
    name: str
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path) -> "RawFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, data=path.read_bytes(), content_type=content_type or "application/octet-stream")


@dataclass(frozen=True)
class PendingFile:
    """A queued file: the payload plus its session id and preview handle."""
    id: str
    payload: RawFile
    preview: PreviewHandle

    @property
    def name(self) -> str:
        return self.payload.name

    @property
    def size(self) -> int:
        return self.payload.size

    @property
    def content_type(self) -> str:
        return self.payload.content_type

    @property
    def key(self):
        return (self.name, self.size)


@dataclass
class FileMetadata:
    title: str
    description: str = ""
    tags: List[ClientTag] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "tags": [tag.model_dump() for tag in self.tags],
        }


@dataclass
class AddFilesResult:
    accepted: List[PendingFile] = field(default_factory=list)
    errors: List[UploadError] = field(default_factory=list)


def default_title(filename: str) -> str:
    """The filename without its last extension."""
    return PurePath(filename).stem if "." in filename else filename


class UploadQueue:
    """Ordered selection of files waiting to be uploaded, with their metadata."""

    def __init__(self, notifier: Optional[Notifier] = None, previews: Optional[PreviewRegistry] = None,
                 max_files: int = MAX_QUEUE_FILES):
        self.notifier = notifier or Notifier()
        self.previews = previews or PreviewRegistry()
        self.max_files = max_files
        self._files: List[PendingFile] = []
        self._metadata: Dict[str, FileMetadata] = {}
        self._errors: Dict[str, List[str]] = {}
        self._reset_hooks: List[Callable[[], None]] = []
        self.batch_tags: List[ClientTag] = []

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[PendingFile]:
        return iter(list(self._files))

    @property
    def files(self) -> List[PendingFile]:
        return list(self._files)

    @property
    def metadata(self) -> Dict[str, FileMetadata]:
        return dict(self._metadata)

    @property
    def errors(self) -> Dict[str, List[str]]:
        return {file_id: list(msgs) for file_id, msgs in self._errors.items()}

    @property
    def total_size_mb(self) -> str:
        return f"{sum(f.size for f in self._files) / (1024 * 1024):.2f}"

    def get(self, file_id: str) -> Optional[PendingFile]:
        return next((f for f in self._files if f.id == file_id), None)

    def on_reset(self, hook: Callable[[], None]):
        """Registers a callback run by clear_all, e.g. to reset a file picker."""
        self._reset_hooks.append(hook)

    def _new_id(self) -> str:
        while True:
            file_id = secrets.token_urlsafe(6)
            if file_id not in self._metadata:
                return file_id

    def add_files(self, raw_files: Sequence[RawFile]) -> AddFilesResult:
        """Validates and queues files.

        Invalid and duplicate files are reported and skipped without affecting
        the others. If the survivors would push the queue past max_files the
        whole batch is refused.
        """
        result = AddFilesResult()
        candidates: List[RawFile] = []
        seen = {f.key for f in self._files}

        for raw in raw_files:
            messages = validate_file(raw.name, raw.size, raw.content_type)
            if messages:
                result.errors.append(ValidationError(messages, raw.name))
                continue
            if (raw.name, raw.size) in seen:
                result.errors.append(DuplicateFileError(raw.name))
                continue
            seen.add((raw.name, raw.size))
            candidates.append(raw)

        if len(self._files) + len(candidates) > self.max_files:
            error = CapacityError(self.max_files)
            self.notifier.error(str(error))
            return AddFilesResult(errors=[error])

        for error in result.errors:
            self.notifier.error(str(error))

        # previews are only created once the batch is known to fit
        for raw in candidates:
            pending = PendingFile(id=self._new_id(), payload=raw, preview=self.previews.create(raw.data))
            self._files.append(pending)
            self._metadata[pending.id] = FileMetadata(title=default_title(raw.name))
            result.accepted.append(pending)

        if result.accepted:
            count = len(result.accepted)
            self.notifier.success(f"{count} file{'s' if count > 1 else ''} added")
            log.debug("Queued %d files, queue size %d", count, len(self._files))
        return result

    def remove_file(self, file_id: str):
        pending = self.get(file_id)
        if pending is None:
            return
        self.previews.revoke(pending.preview)
        self._files.remove(pending)
        self._metadata.pop(file_id, None)
        self._errors.pop(file_id, None)

    def update_metadata(self, file_id: str, **changes):
        """Shallow-merges changes into the file's metadata and clears its errors."""
        current = self._metadata.get(file_id)
        if current is None:
            return
        unknown = set(changes) - {"title", "description", "tags"}
        if unknown:
            raise TypeError(f"Unknown metadata fields: {', '.join(sorted(unknown))}")
        self._metadata[file_id] = replace(current, **changes)
        self._errors.pop(file_id, None)

    def set_batch_tags(self, tags: Sequence[ClientTag]):
        self.batch_tags = list(tags)

    def set_errors(self, errors: Dict[str, List[str]]):
        self._errors = {file_id: list(msgs) for file_id, msgs in errors.items() if file_id in self._metadata}

    def clear_errors(self, file_id: Optional[str] = None):
        if file_id is None:
            self._errors.clear()
        else:
            self._errors.pop(file_id, None)

    def clear_all(self):
        """Revokes every preview, empties the queue and runs the reset hooks."""
        for pending in self._files:
            self.previews.revoke(pending.preview)
        self._files.clear()
        self._metadata.clear()
        self._errors.clear()
        self.batch_tags = []
        for hook in self._reset_hooks:
            hook()
