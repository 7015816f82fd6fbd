"""
    Command line upload of a local directory of travel photos.

    gallery-upload upload ./holiday --tag "#mare" --tag "#estate"
    gallery-upload upload ./holiday --mode per-file --description "Sardinia" --dry-run
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from gallery.client.api import GalleryAPI, create_http_client
from gallery.client.notifications import Notification, Notifier
from gallery.client.orchestrator import UploadMode, UploadOrchestrator
from gallery.client.queue import RawFile, UploadQueue
from gallery.client.settings import ClientSettings
from gallery.client.tags import tags_from_labels

log = logging.getLogger("gallery-upload")

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}


def find_images(directory: Path, recursive: bool = False) -> List[Path]:
    pattern = "**/*" if recursive else "*"
    return sorted(
        p for p in directory.glob(pattern)
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    )


def print_notification(notification: Notification):
    print(f"[{notification.level.value}] {notification.title}")


async def run_upload(args, settings: ClientSettings) -> int:
    images = find_images(Path(args.directory), args.recursive)
    if not images:
        log.warning("No image files found in %s", args.directory)
        return 1

    if args.dry_run:
        for path in images:
            print(f"- {path}")
        return 0

    notifier = Notifier()
    notifier.subscribe(print_notification)
    queue = UploadQueue(notifier=notifier, max_files=settings.max_files)
    queue.add_files([RawFile.from_path(p) for p in images])
    if not len(queue):
        return 1

    tags = tags_from_labels(args.tag)
    mode = UploadMode(args.mode.replace("-", "_"))
    if mode is UploadMode.BATCH:
        queue.set_batch_tags(tags)
    else:
        for pending in queue:
            queue.update_metadata(pending.id, tags=list(tags), description=args.description or "")

    async with create_http_client(settings) as client:
        orchestrator = UploadOrchestrator(queue, client, notifier=notifier, settings=settings, mode=mode)
        summary = await orchestrator.upload()

    print(f"\nUpload complete. Successful: {summary.completed}, Failed: {summary.failed}, Total: {summary.total}")
    return 0 if summary.started and summary.failed == 0 else 1


async def run_list(args, settings: ClientSettings) -> int:
    async with create_http_client(settings) as client:
        images = await GalleryAPI(client).list_images(tag=args.tag)
    for image in images:
        print(f"{image['id']}  {image['title']:<30}  {' '.join(image.get('tags', []))}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Upload travel photos to the gallery")
    parser.add_argument("--base-url", help="Gallery API base URL (GALLERY_BASE_URL)")
    parser.add_argument("--token", help="Bearer token (GALLERY_ACCESS_TOKEN)")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="Upload every image in a directory")
    upload.add_argument("directory")
    upload.add_argument("--tag", action="append", default=[], help="Tag label, repeatable")
    upload.add_argument("--description", default="", help="Description for every file (per-file mode)")
    upload.add_argument("--mode", choices=["per-file", "batch"], default="batch")
    upload.add_argument("--recursive", action="store_true")
    upload.add_argument("--dry-run", action="store_true")

    listing = commands.add_parser("list", help="List uploaded images")
    listing.add_argument("--tag")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = ClientSettings()
    if args.base_url:
        settings.base_url = args.base_url
    if args.token:
        settings.access_token = args.token

    if args.command == "upload":
        return asyncio.run(run_upload(args, settings))
    return asyncio.run(run_list(args, settings))


if __name__ == "__main__":
    sys.exit(main())
