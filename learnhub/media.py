"""Cloudinary uploads for video files"""

import logging
from typing import BinaryIO

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi.concurrency import run_in_threadpool

from learnhub.errors import UpstreamError
from learnhub.schemas import MediaRef

logger = logging.getLogger(__name__)


class CloudinaryMedia:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "learnhub"):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    async def upload(self, fileobj: BinaryIO, resource_type: str = "video") -> MediaRef:
        return await run_in_threadpool(self._upload, fileobj, resource_type)

    def _upload(self, fileobj: BinaryIO, resource_type: str) -> MediaRef:
        if not self.configured:
            raise UpstreamError("Cloudinary not configured on server")

        try:
            result = cloudinary.uploader.upload(
                fileobj,
                resource_type=resource_type,
                folder=self.folder,
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                secure=True,
            )
        except CloudinaryError as e:
            logger.error("Cloudinary upload failed: %s", e)
            raise UpstreamError(f"Media upload failed: {e}")

        url = result.get("secure_url") or result.get("url")
        return MediaRef(public_id=result["public_id"], url=url)
