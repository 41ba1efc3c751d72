from __future__ import annotations

import asyncio
import hashlib
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from loguru import logger

from filestore.exceptions import (
    BackendError,
    FileAlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
)
from filestore.storage.folders import content_type_for_folder, download_content_type
from filestore.storage.interfaces import DownloadResult, ResponseStream
from filestore.storage.paths import build_path, require_location
from filestore.storage.reference import FileReference, modified, not_modified

_CHUNK_SIZE = 1024 * 1024


def compute_etag(path: Path) -> str:
    """Quoted MD5 of the file body, the same shape S3 uses for single-part objects."""
    digest = hashlib.md5()
    with path.open("rb") as fp:
        for chunk in iter(lambda: fp.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return f'"{digest.hexdigest()}"'


class LocalFileStorageService:
    """Filesystem implementation of the file storage contract."""

    def __init__(self, root: Path, key_prefix: str | None = None) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.key_prefix = key_prefix

    def _path(self, folder_name: str, file_name: str) -> Path:
        key = build_path(self.key_prefix, folder_name, file_name)
        root = self.root.resolve()
        candidate = (root / Path(*key.split("/"))).resolve()
        try:
            candidate.relative_to(root)
        except ValueError as exc:
            raise InvalidArgumentError(
                f"File key resolves outside the storage root: {key}",
                {"key": key},
            ) from exc
        return candidate

    async def file_exists(self, folder_name: str, file_name: str) -> bool:
        require_location(folder_name, file_name)
        path = self._path(folder_name, file_name)
        return await asyncio.to_thread(path.is_file)

    async def get_file(self, folder_name: str, file_name: str) -> ResponseStream:
        require_location(folder_name, file_name)
        path = self._path(folder_name, file_name)
        return await asyncio.to_thread(self._open_sync, path)

    async def get_file_reference(
        self,
        folder_name: str,
        file_name: str,
        if_none_match: str | None = None,
    ) -> FileReference | None:
        require_location(folder_name, file_name)
        path = self._path(folder_name, file_name)
        return await asyncio.to_thread(self._reference_sync, path, if_none_match)

    async def create_download_result(self, folder_name: str, file_name: str) -> DownloadResult:
        stream = await self.get_file(folder_name, file_name)
        return DownloadResult(stream=stream, content_type=download_content_type(folder_name))

    async def save_file(
        self,
        folder_name: str,
        file_name: str,
        content: BinaryIO,
        overwrite: bool = True,
    ) -> None:
        require_location(folder_name, file_name)
        if content is None:
            raise InvalidArgumentError("content must not be None", {"argument": "content"})
        content_type_for_folder(folder_name)
        path = self._path(folder_name, file_name)
        await asyncio.to_thread(self._save_sync, path, content, overwrite)

    async def delete_file(self, folder_name: str, file_name: str) -> None:
        require_location(folder_name, file_name)
        path = self._path(folder_name, file_name)
        await asyncio.to_thread(self._delete_sync, path)

    async def is_available(self) -> bool:
        return self.root.is_dir() and os.access(self.root, os.R_OK | os.W_OK)

    def _open_sync(self, path: Path) -> ResponseStream:
        try:
            return ResponseStream(path.open("rb"))
        except FileNotFoundError as exc:
            raise NotFoundError(f"File '{path}' does not exist", {"path": str(path)}) from exc
        except OSError as exc:
            raise BackendError(f"Failed to open '{path}': {exc}", {"path": str(path)}) from exc

    def _reference_sync(self, path: Path, if_none_match: str | None) -> FileReference | None:
        if not path.is_file():
            return None
        try:
            etag = compute_etag(path)
        except OSError as exc:
            raise BackendError(f"Failed to read '{path}': {exc}", {"path": str(path)}) from exc
        if if_none_match and if_none_match == etag:
            return not_modified(if_none_match)
        try:
            return modified(self._open_sync(path), etag)
        except NotFoundError:
            # removed between the hash and the open
            return None

    def _save_sync(self, path: Path, content: BinaryIO, overwrite: bool) -> None:
        if not overwrite and path.exists():
            raise FileAlreadyExistsError(f"File '{path}' already exists", {"path": str(path)})
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as out:
                    shutil.copyfileobj(content, out)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise BackendError(f"Failed to write '{path}': {exc}", {"path": str(path)}) from exc
        logger.info("Saved {path}", path=str(path))

    def _delete_sync(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise BackendError(f"Failed to delete '{path}': {exc}", {"path": str(path)}) from exc
        logger.info("Deleted {path}", path=str(path))


__all__ = ["LocalFileStorageService", "compute_etag"]
