"""HTTP access to the gallery API for the upload client."""

from typing import List, Optional
from urllib.parse import quote

import httpx

from gallery.client.errors import HttpError, NetworkError
from gallery.client.settings import ClientSettings


def create_http_client(settings: ClientSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """AsyncClient bound to the API base URL, carrying the bearer token when one is set."""
    headers = {}
    if settings.access_token:
        headers["Authorization"] = f"Bearer {settings.access_token}"
    return httpx.AsyncClient(
        base_url=settings.base_url,
        headers=headers,
        timeout=settings.request_timeout,
        transport=transport,
    )


class GalleryAPI:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _request(self, method: str, url: str, **kwargs):
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(str(e) or type(e).__name__) from e
        if not response.is_success:
            try:
                detail = response.json().get("detail", "")
            except (ValueError, AttributeError):
                detail = ""
            raise HttpError(response.status_code, detail)
        return response.json()

    async def list_images(self, tag: Optional[str] = None) -> List[dict]:
        params = {"tag": tag} if tag else None
        return await self._request("GET", "/api/images", params=params)

    async def get_image(self, image_id: str) -> dict:
        return await self._request("GET", f"/api/images/{quote(image_id, safe='')}")

    async def update_image(self, image_id: str, **changes) -> dict:
        return await self._request("PUT", f"/api/images/{quote(image_id, safe='')}", json=changes)

    async def delete_image(self, image_id: str) -> dict:
        return await self._request("DELETE", f"/api/images/{quote(image_id, safe='')}")

    async def list_tags(self, query: Optional[str] = None) -> List[dict]:
        params = {"q": query} if query else None
        return await self._request("GET", "/api/tags", params=params)
