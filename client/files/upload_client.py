"""
Upload client module.

Sends a file to the HTTP upload endpoint as a single raw-body POST, with the
original filename in the ``X-Filename`` header, and returns the URL the
server hands back.
"""

import asyncio
from pathlib import Path
from typing import Optional, Tuple

import aiohttp

from common.constants import FILENAME_HEADER, MAX_FILE_SIZE, UPLOAD_TIMEOUT
from client.utils.logger import logger


class UploadError(Exception):
    """Raised when a file could not be uploaded."""


class UploadClient:
    """Client for the file upload endpoint."""

    def __init__(self, upload_url: str, max_file_size: int = MAX_FILE_SIZE,
                 timeout: float = UPLOAD_TIMEOUT):
        self.upload_url = upload_url
        self.max_file_size = max_file_size
        self.timeout = timeout

    def read_file(self, file_path: str) -> Tuple[str, bytes]:
        """Validate and read a local file; returns (filename, data)."""
        path = Path(file_path)
        try:
            normalized_path = path.expanduser().resolve()
            if not normalized_path.exists():
                raise UploadError(f"File not found: {file_path}")
            if not normalized_path.is_file():
                raise UploadError(f"Not a file: {file_path}")

            file_size = normalized_path.stat().st_size
            if file_size == 0:
                raise UploadError(f"File is empty: {file_path}")
            if file_size > self.max_file_size:
                raise UploadError(
                    f"File too large: {file_size} bytes (max: {self.max_file_size} bytes)"
                )
            return normalized_path.name, normalized_path.read_bytes()
        except OSError as e:
            raise UploadError(f"Cannot read {file_path}: {e}") from e

    async def upload(self, file_path: str) -> Tuple[str, str]:
        """Upload a file; returns (filename, url)."""
        filename, data = self.read_file(file_path)
        logger.log_upload(filename, len(data))
        url = await self.upload_bytes(filename, data)
        return filename, url

    async def upload_bytes(self, filename: str, data: bytes) -> str:
        """POST raw bytes and return the retrievable URL."""
        headers = {
            FILENAME_HEADER: filename,
            'Content-Type': 'application/octet-stream',
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.upload_url, data=data, headers=headers) as resp:
                    if resp.status >= 400:
                        raise UploadError(f"Upload rejected with HTTP {resp.status}")
                    body = await resp.json(content_type=None)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            raise UploadError(f"Upload failed: {e}") from e
        except ValueError as e:
            raise UploadError(f"Upload response is not JSON: {e}") from e

        url = _extract_url(body)
        if not url:
            raise UploadError("Upload response has no url")
        logger.info(f"Uploaded {filename} -> {url}")
        return url


def _extract_url(body) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    url = body.get('url')
    return url if isinstance(url, str) and url else None
