"""Image asset hosts.

An asset host durably stores uploaded images and returns the URL they can be
fetched from. Exactly one implementation is active per deployment, chosen by
ASSET_HOST_BACKEND.
"""

import asyncio
import io
import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

import config
from core.exceptions import ConfigurationError, UploadError

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    """An image received from a client.

    ``size`` is the client-declared size when the body was not read because
    it is already known to be too large; otherwise it is ``len(data)``.
    """

    filename: str
    content_type: str
    data: bytes
    size: Optional[int] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)


class AssetHost:
    """Base class for asset hosts."""

    name = "base"

    async def upload(self, image: ImageUpload) -> str:
        """Store an image and return its public URL.

        Raises:
            UploadError: If the image could not be stored.
        """
        raise NotImplementedError

    async def delete(self, url: str) -> None:
        """Remove a previously uploaded image.

        Raises:
            UploadError: If the host refused or could not be reached.
        """
        raise NotImplementedError

    async def upload_many(self, images: Sequence[ImageUpload]) -> List[str]:
        """Upload images concurrently, all or nothing.

        Returns:
            URLs in the same order as ``images``.

        Raises:
            UploadError: If any upload fails. Images that did upload are
                deleted again before raising.
        """
        if not images:
            return []

        results = await asyncio.gather(
            *(self.upload(image) for image in images), return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            return list(results)

        await self.delete_many([r for r in results if isinstance(r, str)])

        for failure in failures:
            if not isinstance(failure, Exception):
                # Cancellation and interpreter exit propagate unchanged
                raise failure
            logger.error("Image upload error: %s", failure, exc_info=failure)
        raise UploadError()

    async def delete_many(self, urls: Sequence[str]) -> None:
        """Delete images, logging failures instead of raising."""
        results = await asyncio.gather(
            *(self.delete(url) for url in urls), return_exceptions=True
        )
        for url, result in zip(urls, results):
            if isinstance(result, Exception):
                logger.error("Error deleting image %s: %s", url, result)


class CloudinaryAssetHost(AssetHost):
    """Stores images in Cloudinary through the official SDK.

    The SDK is blocking, so each call runs in a worker thread and
    ``upload_many`` still uploads concurrently.
    """

    name = "cloudinary"

    # Resize anything larger than 1200x800, let Cloudinary pick the quality
    TRANSFORMATION = [
        {"width": 1200, "height": 800, "crop": "limit"},
        {"quality": "auto"},
    ]
    FORMAT = "jpg"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the host.

        Args:
            cloud_name: Cloudinary cloud name.
            api_key: API key.
            api_secret: API secret used to sign requests.
            folder: Folder images are uploaded into; defaults to ASSET_FOLDER.
            timeout: Per-request timeout in seconds; defaults to
                ASSET_UPLOAD_TIMEOUT.
        """
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout

    def _options(self) -> dict:
        timeout = self.timeout
        if timeout is None:
            timeout = config.ASSET_UPLOAD_TIMEOUT
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "timeout": timeout,
        }

    async def upload(self, image: ImageUpload) -> str:
        stream = io.BytesIO(image.data)
        stream.name = image.filename
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                stream,
                folder=self.folder or config.ASSET_FOLDER,
                transformation=self.TRANSFORMATION,
                format=self.FORMAT,
                resource_type="image",
                **self._options(),
            )
        except (CloudinaryError, OSError) as exc:
            raise UploadError(f"Cloudinary upload failed: {exc}") from exc

        url = result.get("secure_url")
        if not url:
            raise UploadError("Cloudinary response did not include an image URL")
        logger.info("Image uploaded to Cloudinary: %s", url)
        return url

    async def delete(self, url: str) -> None:
        public_id = self.public_id_from_url(url)
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy, public_id, **self._options()
            )
        except (CloudinaryError, OSError) as exc:
            raise UploadError(f"Cloudinary destroy failed: {exc}") from exc
        if result.get("result") not in ("ok", "not found"):
            raise UploadError(f"Cloudinary destroy returned {result.get('result')!r}")

    @staticmethod
    def public_id_from_url(url: str) -> str:
        """Extract the public ID (folder path without extension) from a delivery URL.

        ``https://res.cloudinary.com/demo/image/upload/v17/voiceit/issues/abc.jpg``
        gives ``voiceit/issues/abc``.
        """
        path = urlparse(url).path
        _, sep, tail = path.partition("/upload/")
        if not sep or not tail:
            raise UploadError(f"Not a Cloudinary delivery URL: {url}")
        parts = tail.split("/")
        if re.fullmatch(r"v\d+", parts[0]):
            parts = parts[1:]
        parts[-1] = parts[-1].rsplit(".", 1)[0]
        return "/".join(parts)


class LocalAssetHost(AssetHost):
    """Stores images on the local filesystem, served by the API under /uploads."""

    name = "local"

    def __init__(self, directory: Path, base_url: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def _path_for(self, url: str) -> Path:
        filename = url.rsplit("/", 1)[-1]
        path = (self.directory / filename).resolve()
        if path.parent != self.directory.resolve():
            raise UploadError(f"Refusing to delete outside the uploads directory: {url}")
        return path

    async def upload(self, image: ImageUpload) -> str:
        suffix = mimetypes.guess_extension(image.content_type) or Path(image.filename).suffix
        filename = f"{uuid.uuid4().hex}{suffix}"
        try:
            await asyncio.to_thread((self.directory / filename).write_bytes, image.data)
        except OSError as exc:
            raise UploadError(f"Could not store image: {exc}") from exc
        return f"{self.base_url}/uploads/{filename}"

    async def delete(self, url: str) -> None:
        path = self._path_for(url)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise UploadError(f"Could not delete image: {exc}") from exc


def build_asset_host() -> AssetHost:
    """Create the asset host selected by configuration.

    Raises:
        ConfigurationError: If the backend name is unknown.
    """
    backend = config.ASSET_HOST_BACKEND
    if backend == "local":
        return LocalAssetHost(config.UPLOADS_DIR, config.PUBLIC_BASE_URL)
    if backend != "cloudinary":
        raise ConfigurationError(f"Unknown ASSET_HOST_BACKEND: {backend}")

    if not (
        config.CLOUDINARY_CLOUD_NAME
        and config.CLOUDINARY_API_KEY
        and config.CLOUDINARY_API_SECRET
    ):
        logger.warning(
            "Cloudinary credentials not configured, storing images locally in %s",
            config.UPLOADS_DIR,
        )
        return LocalAssetHost(config.UPLOADS_DIR, config.PUBLIC_BASE_URL)

    return CloudinaryAssetHost(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
    )
