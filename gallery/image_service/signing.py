import asyncio
from typing import Dict, List, Optional
from starlette.concurrency import run_in_threadpool

from gallery.storage.s3 import S3Service
from gallery.image_service.models import StoredImage, StoredImageWithUrls

# Expiry is chosen by the call site: long-lived for cacheable listings,
# short for single object reads and edits.
LISTING_URL_EXPIRY = 24 * 60 * 60
SINGLE_URL_EXPIRY = 60 * 60

def thumbnail_paths(image: StoredImage) -> Dict[str, str]:
    if image.metadata is None:
        return {}
    return dict(image.metadata.thumbnails)

def with_urls(image: StoredImage, image_url: Optional[str], thumbnail_urls: Dict[str, Optional[str]]) -> StoredImageWithUrls:
    return StoredImageWithUrls(
        **image.model_dump(),
        image_url=image_url,
        thumbnail_urls={size: url for size, url in thumbnail_urls.items() if url},
    )

def sign_image(s3: S3Service, image: StoredImage, expires_in: int) -> StoredImageWithUrls:
    """Signs the original and every thumbnail of one image."""
    image_url = s3.generate_presigned_url(image.image_path, expires_in)
    thumbnail_urls = {
        size: s3.generate_presigned_url(path, expires_in)
        for size, path in thumbnail_paths(image).items()
    }
    return with_urls(image, image_url, thumbnail_urls)

async def sign_images(s3: S3Service, images: List[StoredImage], expires_in: int) -> List[StoredImageWithUrls]:
    """Signs many images with one concurrent call per stored object.

    The result keeps the order of images. A failed signature leaves that one
    URL empty instead of failing the batch.
    """
    jobs = []
    for image in images:
        jobs.append(run_in_threadpool(s3.generate_presigned_url, image.image_path, expires_in))
        for path in thumbnail_paths(image).values():
            jobs.append(run_in_threadpool(s3.generate_presigned_url, path, expires_in))
    results = await asyncio.gather(*jobs, return_exceptions=True)
    urls = iter(url if isinstance(url, str) else None for url in results)

    signed = []
    for image in images:
        image_url = next(urls)
        thumbnail_urls = {size: next(urls) for size in thumbnail_paths(image)}
        signed.append(with_urls(image, image_url, thumbnail_urls))
    return signed
