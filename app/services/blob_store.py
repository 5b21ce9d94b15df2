import base64
import binascii
import logging
from typing import Optional

import httpx

from app.core.config import Settings, get_settings


logger = logging.getLogger(__name__)


class BlobStore:
    """Uploads booking images; any failure degrades to the placeholder image."""

    def __init__(self, upload_url: str, default_url: str, timeout_seconds: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.upload_url = upload_url
        self.default_url = default_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "BlobStore":
        return cls(settings.BLOB_UPLOAD_URL, settings.DEFAULT_BOOKING_IMAGE, settings.GATEWAY_TIMEOUT_SECONDS)

    async def upload_image(self, image_base64: Optional[str], filename: str) -> str:
        if not image_base64:
            return self.default_url
        if not self.upload_url:
            logger.info("Image upload disabled, using placeholder")
            return self.default_url
        try:
            content = base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"Image for {filename} is not valid base64, using placeholder")
            return self.default_url
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.upload_url, files={"file": (filename, content)})
                response.raise_for_status()
                url = response.json().get("secure_url") or response.json().get("url")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Image upload for {filename} failed ({e.__class__.__name__}), using placeholder")
            return self.default_url
        return url or self.default_url


def get_blob_store() -> BlobStore:
    return BlobStore.from_settings(get_settings())
