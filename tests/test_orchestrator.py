import asyncio
import json

import httpx
import pytest

from conftest import make_image_bytes
from gallery.auth.identity import USER_HEADER
from gallery.client.errors import HttpError, NetworkError, UploadInProgressError
from gallery.client.notifications import NotificationLevel, Notifier
from gallery.client.orchestrator import UploadMode, UploadOrchestrator, UploadPhase
from gallery.client.queue import RawFile, UploadQueue
from gallery.client.settings import ClientSettings
from gallery.client.tags import PREDEFINED_TAGS
from gallery.main import app


def png(name, width=40, height=20):
    return RawFile(name, make_image_bytes(width, height), "image/png")


def filename_of(request):
    for name in ("f1.png", "f2.png", "f3.png", "beach.png"):
        if f'filename="{name}"'.encode() in request.content:
            return name
    return None


def ok_response(request):
    return httpx.Response(201, json={"id": filename_of(request), "title": "t"})


@pytest.fixture
def queue():
    return UploadQueue(notifier=Notifier())


def make_orchestrator(queue, handler, **kwargs):
    client = httpx.AsyncClient(base_url="http://gallery.test", transport=httpx.MockTransport(handler))
    kwargs.setdefault("settings", ClientSettings(redirect_delay=0.01))
    return UploadOrchestrator(queue, client, **kwargs)


@pytest.mark.asyncio
async def test_uploads_sequentially_in_queue_order(queue):
    queue.add_files([png("f1.png"), png("f2.png"), png("f3.png")])
    seen = []

    def handler(request):
        assert request.url.path == "/api/images"
        seen.append(filename_of(request))
        return ok_response(request)

    summary = await make_orchestrator(queue, handler).upload()

    assert seen == ["f1.png", "f2.png", "f3.png"]
    assert summary.completed == 3
    assert summary.failed == 0
    assert [r.image["id"] for r in summary.results] == seen


@pytest.mark.asyncio
async def test_form_carries_metadata_and_dimensions(queue):
    queue.add_files([png("beach.png", 640, 480)])
    file_id = queue.files[0].id
    queue.update_metadata(file_id, title="Spiaggia", description="Sardegna", tags=PREDEFINED_TAGS[4:6])
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return ok_response(request)

    await make_orchestrator(queue, handler).upload()

    body = bodies[0]
    assert b"Spiaggia" in body
    assert b"Sardegna" in body
    assert json.dumps(["#mare", "#montagna"]).encode() in body
    assert b'name="width"\r\n\r\n640' in body
    assert b'name="height"\r\n\r\n480' in body


@pytest.mark.asyncio
async def test_unreadable_dimensions_are_omitted(queue):
    queue.add_files([RawFile("f1.png", b"not a png", "image/png")])
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return ok_response(request)

    summary = await make_orchestrator(queue, handler).upload()
    assert summary.completed == 1
    assert b'name="width"' not in bodies[0]


@pytest.mark.asyncio
async def test_oversized_image_does_not_abort_batch(queue, mocker):
    from PIL import Image

    queue.add_files([png("f1.png", 40, 40), png("f2.png", 10, 10)])
    # 40x40 is past twice the limit and trips Pillow's decompression bomb check
    mocker.patch.object(Image, "MAX_IMAGE_PIXELS", 500)
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return ok_response(request)

    summary = await make_orchestrator(queue, handler).upload()

    assert summary.completed == 2
    assert summary.failed == 0
    assert b'name="width"' not in bodies[0]
    assert b'name="width"\r\n\r\n10' in bodies[1]


@pytest.mark.asyncio
async def test_unexpected_error_propagates_and_returns_to_idle(queue):
    queue.add_files([png("f1.png"), png("f2.png")])
    calls = []

    def broken_reader(data):
        raise RuntimeError("decoder crashed")

    def handler(request):
        calls.append(request)
        return ok_response(request)

    orchestrator = make_orchestrator(queue, handler, read_dimensions=broken_reader)
    with pytest.raises(RuntimeError):
        await orchestrator.upload()

    assert calls == []
    assert orchestrator.state.phase is UploadPhase.IDLE
    assert orchestrator.state.current_file is None
    assert not orchestrator.is_uploading
    assert [f.name for f in queue] == ["f1.png", "f2.png"]
    assert queue.previews.live == 2


@pytest.mark.asyncio
async def test_progress_is_monotonic(queue):
    queue.add_files([png("f1.png"), png("f2.png"), png("f3.png")])
    orchestrator = make_orchestrator(queue, ok_response)
    states = []
    orchestrator.subscribe(states.append)

    await orchestrator.upload()

    uploading = [s for s in states if s.phase is UploadPhase.UPLOADING]
    completed = [s.completed for s in uploading]
    assert completed == sorted(completed)
    assert completed[-1] == 3
    assert all(s.total == 3 for s in uploading)
    assert orchestrator.state.phase is UploadPhase.IDLE


@pytest.mark.asyncio
async def test_partial_failure(queue):
    queue.add_files([png("f1.png"), png("f2.png"), png("f3.png")])
    navigated = []

    def handler(request):
        if filename_of(request) == "f2.png":
            return httpx.Response(500, json={"detail": "Failed to upload file"})
        return ok_response(request)

    orchestrator = make_orchestrator(queue, handler, navigate=navigated.append)
    summary = await orchestrator.upload()

    assert summary.completed == 2
    assert summary.failed == 1
    assert summary.partial_failure
    failed = [r for r in summary.results if not r.ok][0]
    assert failed.filename == "f2.png"
    assert isinstance(failed.error, HttpError)
    assert failed.error.status_code == 500

    notifications = queue.notifier.history()
    assert 'Error uploading "f2.png": Failed to upload file' in [n.title for n in notifications]
    assert notifications[-1].level is NotificationLevel.SUCCESS
    assert notifications[-1].title == "Uploaded 2 of 3 files"
    assert len(queue) == 0
    assert queue.previews.live == 0

    await asyncio.sleep(0.05)
    assert navigated == ["/"]


@pytest.mark.asyncio
async def test_total_failure_keeps_queue(queue):
    queue.add_files([png("f1.png"), png("f2.png")])
    navigated = []

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    orchestrator = make_orchestrator(queue, handler, navigate=navigated.append)
    summary = await orchestrator.upload()

    assert summary.completed == 0
    assert summary.failed == 2
    assert all(isinstance(r.error, NetworkError) for r in summary.results)
    assert len(queue) == 2
    assert orchestrator.state.phase is UploadPhase.IDLE
    assert not orchestrator.is_uploading

    await asyncio.sleep(0.05)
    assert navigated == []


@pytest.mark.asyncio
async def test_validation_failure_sends_nothing(queue):
    queue.add_files([png("f1.png"), png("f2.png")])
    bad = queue.files[1]
    queue.update_metadata(bad.id, title="x" * 31)
    calls = []

    def handler(request):
        calls.append(request)
        return ok_response(request)

    summary = await make_orchestrator(queue, handler).upload()

    assert calls == []
    assert not summary.started
    assert summary.results == []
    assert queue.errors == {bad.id: ["title: Title must be less than 30 characters"]}
    errors = queue.notifier.history(NotificationLevel.ERROR)
    assert errors[-1].title == 'File "f2.png": title: Title must be less than 30 characters'


@pytest.mark.asyncio
async def test_empty_queue_is_rejected(queue):
    summary = await make_orchestrator(queue, ok_response).upload()
    assert not summary.started
    assert queue.notifier.history(NotificationLevel.ERROR)[-1].title == "Select at least one file to upload"


@pytest.mark.asyncio
async def test_configured_title_bound(queue):
    queue.add_files([png("f1.png")])
    queue.update_metadata(queue.files[0].id, title="x" * 45)
    orchestrator = make_orchestrator(queue, ok_response, settings=ClientSettings(title_max_length=50))
    summary = await orchestrator.upload()
    assert summary.completed == 1


@pytest.mark.asyncio
async def test_single_run_guard(queue):
    queue.add_files([png("f1.png")])
    release = asyncio.Event()

    async def handler(request):
        await release.wait()
        return ok_response(request)

    orchestrator = make_orchestrator(queue, handler)
    first = asyncio.create_task(orchestrator.upload())
    while not orchestrator.is_uploading:
        await asyncio.sleep(0)

    with pytest.raises(UploadInProgressError):
        await orchestrator.upload()

    release.set()
    summary = await first
    assert summary.completed == 1


@pytest.mark.asyncio
async def test_close_ignores_late_results(queue):
    queue.add_files([png("f1.png"), png("f2.png")])
    release = asyncio.Event()
    navigated = []

    async def handler(request):
        await release.wait()
        return ok_response(request)

    orchestrator = make_orchestrator(queue, handler, navigate=navigated.append)
    task = asyncio.create_task(orchestrator.upload())
    while not orchestrator.is_uploading:
        await asyncio.sleep(0)

    orchestrator.close()
    release.set()
    summary = await task

    assert summary.results == []
    assert len(queue) == 2
    await asyncio.sleep(0.05)
    assert navigated == []


@pytest.mark.asyncio
async def test_close_cancels_pending_redirect(queue):
    queue.add_files([png("f1.png")])
    navigated = []
    orchestrator = make_orchestrator(queue, ok_response, navigate=navigated.append,
                                     settings=ClientSettings(redirect_delay=0.05))
    await orchestrator.upload()
    orchestrator.close()
    await asyncio.sleep(0.1)
    assert navigated == []


@pytest.mark.asyncio
async def test_batch_mode_uses_filenames_and_shared_tags(queue):
    queue.add_files([png("f1.png"), png("f2.png")])
    queue.update_metadata(queue.files[0].id, title="ignored in batch mode")
    queue.set_batch_tags(PREDEFINED_TAGS[:1])
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return ok_response(request)

    summary = await make_orchestrator(queue, handler, mode=UploadMode.BATCH).upload()

    assert summary.completed == 2
    assert b'name="title"\r\n\r\nf1\r\n' in bodies[0]
    assert b'name="title"\r\n\r\nf2\r\n' in bodies[1]
    assert all(json.dumps(["#estate"]).encode() in body for body in bodies)


@pytest.mark.asyncio
async def test_round_trip_against_api(aws_services, queue):
    queue.add_files([png("beach.png", 800, 600)])
    queue.update_metadata(queue.files[0].id, title="Beach", tags=[PREDEFINED_TAGS[4], PREDEFINED_TAGS[0]])

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://gallery.test",
                                 headers={USER_HEADER: "user-1"}) as client:
        summary = await UploadOrchestrator(queue, client).upload()
        created = summary.results[0].image

        stored = (await client.get(f"/api/images/{created['id']}")).json()

    assert summary.completed == 1
    assert stored["title"] == "Beach"
    assert set(stored["tags"]) == {"#mare", "#estate"}
    assert stored["metadata"]["width"] == 800
    assert stored["metadata"]["height"] == 600
    assert stored["image_url"]
