"""Shared stream and result types for file storage backends."""

from __future__ import annotations

import io
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any


class ResponseStream(io.RawIOBase):
    """Readable stream handed to callers.

    Closing it releases whatever the producing call transferred with it, such
    as the backend response body and the client that fetched it.
    """

    def __init__(self, body: Any, cleanup: ExitStack | None = None) -> None:
        super().__init__()
        self._body = body
        self._cleanup = cleanup

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        data = self._body.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self._cleanup is not None:
                self._cleanup.close()
            elif hasattr(self._body, "close"):
                self._body.close()
        finally:
            super().close()


@dataclass(frozen=True)
class DownloadResult:
    """Stream plus the content type a transport layer should send it with."""

    stream: ResponseStream
    content_type: str


__all__ = ["DownloadResult", "ResponseStream"]
