from dataclasses import dataclass
from typing import Dict, Optional
import logging
import secrets

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewHandle:
    uri: str


class PreviewRegistry:
    """Hands out revocable in-memory preview handles for queued payloads."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    def create(self, payload: bytes) -> PreviewHandle:
        uri = f"blob:preview/{secrets.token_hex(8)}"
        self._blobs[uri] = payload
        return PreviewHandle(uri)

    def resolve(self, handle: PreviewHandle) -> Optional[bytes]:
        return self._blobs.get(handle.uri)

    def revoke(self, handle: PreviewHandle) -> bool:
        if self._blobs.pop(handle.uri, None) is None:
            log.warning("Preview %s was already revoked", handle.uri)
            return False
        return True

    @property
    def live(self) -> int:
        return len(self._blobs)
