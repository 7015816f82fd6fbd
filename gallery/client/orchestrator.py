"""
    Drives the upload of a queue, one file at a time, against the gallery API.
"""
import asyncio
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple
import logging

import httpx

from gallery.client.errors import HttpError, NetworkError, UploadError, UploadInProgressError
from gallery.client.notifications import Notifier
from gallery.client.queue import FileMetadata, PendingFile, UploadQueue, default_title
from gallery.client.settings import ClientSettings
from gallery.client.validation import ValidationReport, validate_batch
from gallery.exceptions import DimensionExtractionError
from gallery.image_service.dimensions import extract_dimensions

log = logging.getLogger(__name__)

UPLOAD_ENDPOINT = "/api/images"
GALLERY_ROUTE = "/"


class UploadPhase(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"


class UploadMode(str, Enum):
    PER_FILE = "per_file"  # each file sends its own title, description and tags
    BATCH = "batch"  # filename titles, one tag selection shared by every file


@dataclass(frozen=True)
class UploadState:
    phase: UploadPhase = UploadPhase.IDLE
    total: int = 0
    completed: int = 0
    failed: int = 0
    current_file: Optional[str] = None

    @property
    def partial_failure(self) -> bool:
        return self.failed > 0 and self.completed > 0


@dataclass
class FileResult:
    file_id: str
    filename: str
    image: Optional[dict] = None
    error: Optional[UploadError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UploadSummary:
    total: int
    results: List[FileResult] = field(default_factory=list)
    validation: Optional[ValidationReport] = None

    @property
    def started(self) -> bool:
        return self.validation is None or self.validation.ok

    @property
    def completed(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def partial_failure(self) -> bool:
        return self.completed > 0 and self.failed > 0


class UploadOrchestrator:
    """Uploads every queued file in order and reports progress.

    Only one run may be active. A file that fails is reported and skipped;
    once at least one file made it the queue is cleared and `navigate` is
    called with the gallery route after `settings.redirect_delay` seconds.
    """

    def __init__(
        self,
        queue: UploadQueue,
        client: httpx.AsyncClient,
        notifier: Optional[Notifier] = None,
        settings: Optional[ClientSettings] = None,
        navigate: Optional[Callable[[str], None]] = None,
        mode: UploadMode = UploadMode.PER_FILE,
        read_dimensions: Callable[[bytes], Tuple[int, int]] = extract_dimensions,
    ):
        self.queue = queue
        self.client = client
        self.notifier = notifier or queue.notifier
        self.settings = settings or ClientSettings()
        self.navigate = navigate
        self.mode = UploadMode(mode)
        self.read_dimensions = read_dimensions
        self.state = UploadState()
        self._listeners: List[Callable[[UploadState], None]] = []
        self._redirect: Optional[asyncio.TimerHandle] = None
        self._closed = False
        queue.on_reset(self.reset_progress)

    # state

    def subscribe(self, listener: Callable[[UploadState], None]):
        self._listeners.append(listener)

    def _set_state(self, **changes):
        self.state = replace(self.state, **changes)
        for listener in self._listeners:
            listener(self.state)

    def reset_progress(self):
        self._set_state(total=0, completed=0, failed=0, current_file=None)

    @property
    def is_uploading(self) -> bool:
        return self.state.phase is UploadPhase.UPLOADING

    def close(self):
        """Detaches the orchestrator; results arriving afterwards are ignored."""
        self._closed = True
        if self._redirect is not None:
            self._redirect.cancel()
            self._redirect = None

    # payloads

    def effective_metadata(self, pending: PendingFile) -> FileMetadata:
        if self.mode is UploadMode.BATCH:
            return FileMetadata(title=default_title(pending.name), tags=list(self.queue.batch_tags))
        return self.queue.metadata[pending.id]

    def validate(self) -> ValidationReport:
        files = self.queue.files
        if self.mode is UploadMode.BATCH:
            metadata = {f.id: FileMetadata(title=default_title(f.name)).as_dict() for f in files}
            return validate_batch(files, metadata, self.settings.title_max_length,
                                  self.settings.max_files, batch_tags=self.queue.batch_tags)
        metadata = {file_id: meta.as_dict() for file_id, meta in self.queue.metadata.items()}
        return validate_batch(files, metadata, self.settings.title_max_length, self.settings.max_files)

    async def _dimensions(self, pending: PendingFile) -> Tuple[int, int]:
        try:
            return await asyncio.to_thread(self.read_dimensions, pending.payload.data)
        except DimensionExtractionError as e:
            log.warning("Could not extract dimensions for %s: %s", pending.name, e)
            return 0, 0

    def build_form(self, metadata: FileMetadata, width: int, height: int) -> dict:
        form = {
            "title": metadata.title,
            "description": metadata.description or "",
            "tags": json.dumps([tag.label for tag in metadata.tags]),
        }
        if width > 0:
            form["width"] = str(width)
        if height > 0:
            form["height"] = str(height)
        return form

    async def send(self, pending: PendingFile) -> dict:
        """Issues the ingestion request for one file; raises NetworkError or HttpError."""
        metadata = self.effective_metadata(pending)
        width, height = await self._dimensions(pending)
        files = {"file": (pending.name, pending.payload.data, pending.content_type)}
        try:
            response = await self.client.post(UPLOAD_ENDPOINT, data=self.build_form(metadata, width, height), files=files)
        except httpx.HTTPError as e:
            raise NetworkError(str(e) or type(e).__name__, pending.name) from e
        if not response.is_success:
            raise HttpError(response.status_code, _error_detail(response), pending.name)
        try:
            return response.json()
        except ValueError as e:
            raise HttpError(response.status_code, "Invalid response body", pending.name) from e

    # run

    async def upload(self) -> UploadSummary:
        if self.is_uploading:
            raise UploadInProgressError()

        files = self.queue.files
        report = self.validate()
        if not report.ok:
            self.queue.set_errors(report.file_errors)
            for message in report.batch_errors:
                self.notifier.error(message)
            for file_id, messages in report.file_errors.items():
                pending = self.queue.get(file_id)
                name = pending.name if pending else file_id
                for message in messages:
                    self.notifier.error(f'File "{name}": {message}')
            return UploadSummary(total=len(files), validation=report)

        summary = UploadSummary(total=len(files))
        self._set_state(phase=UploadPhase.UPLOADING, total=len(files), completed=0, failed=0, current_file=None)
        log.info("Upload started for %d files", len(files))
        try:
            for pending in files:
                self._set_state(current_file=pending.name)
                try:
                    image = await self.send(pending)
                except UploadError as e:
                    if self._closed:
                        break
                    log.error("Error uploading %s: %s", pending.name, e)
                    summary.results.append(FileResult(pending.id, pending.name, error=e))
                    self._set_state(failed=self.state.failed + 1)
                    self.notifier.error(f'Error uploading "{pending.name}": {e.message}')
                    continue
                if self._closed:
                    break
                summary.results.append(FileResult(pending.id, pending.name, image=image))
                self._set_state(completed=self.state.completed + 1)
                if summary.completed < summary.total:
                    self.notifier.info(f"Uploaded {summary.completed}/{summary.total} files...")

            if self._closed:
                log.info("Upload surface closed, ignoring remaining results")
                return summary

            log.info("Upload finished: %d/%d succeeded", summary.completed, summary.total)
            if summary.completed > 0:
                if summary.completed == summary.total:
                    self.notifier.success(f"All {summary.completed} files uploaded successfully!")
                else:
                    self.notifier.success(f"Uploaded {summary.completed} of {summary.total} files")
                self.queue.clear_all()
                self._schedule_redirect()
        finally:
            self._set_state(phase=UploadPhase.IDLE, current_file=None)
        return summary

    def _schedule_redirect(self):
        if self.navigate is None:
            return
        loop = asyncio.get_running_loop()
        self._redirect = loop.call_later(self.settings.redirect_delay, self._redirect_now)

    def _redirect_now(self):
        self._redirect = None
        if not self._closed:
            self.navigate(GALLERY_ROUTE)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str):
            return detail
    return f"HTTP {response.status_code}"
