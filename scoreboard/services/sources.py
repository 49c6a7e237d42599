"""Loading raw CSV text for submissions and ground truth."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

import httpx


class TableSource(Protocol):
    async def read_text(self, location: str) -> str: ...


class FileTooLargeError(Exception):
    """Raised when a file exceeds the configured size limit."""


class LocationError(Exception):
    """Raised when a location resolves outside the data root."""


class HttpOrFileSource:
    """Reads ``http(s)://`` locations over HTTP and anything else from a data root."""

    def __init__(
        self,
        data_root: str | Path,
        http_client: httpx.AsyncClient,
        max_bytes: int,
    ):
        self.data_root = Path(data_root).resolve()
        self.http = http_client
        self.max_bytes = max_bytes

    async def read_text(self, location: str) -> str:
        if location.startswith(("http://", "https://")):
            return await self._read_url(location)
        return await asyncio.to_thread(self._read_file, location)

    async def _read_url(self, url: str) -> str:
        received = bytearray()
        async with self.http.stream("GET", url) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                received.extend(chunk)
                # Stop reading as soon as the limit is crossed.
                if len(received) > self.max_bytes:
                    raise FileTooLargeError(f"{url} exceeds {self.max_bytes} bytes")
            encoding = response.charset_encoding or "utf-8-sig"
        return received.decode(encoding)

    def _read_file(self, location: str) -> str:
        path = (self.data_root / location.removeprefix("file://").lstrip("/")).resolve()
        if not path.is_relative_to(self.data_root):
            raise LocationError(f"{location} is outside the data root")
        if path.stat().st_size > self.max_bytes:
            raise FileTooLargeError(f"{location} exceeds {self.max_bytes} bytes")
        return path.read_text(encoding="utf-8-sig")
