"""File storage contract and backend selection."""

from __future__ import annotations

from typing import BinaryIO, Protocol, runtime_checkable

from filestore.exceptions import ConfigurationError
from filestore.settings import Settings, StorageSettings
from filestore.storage.interfaces import DownloadResult, ResponseStream
from filestore.storage.reference import FileReference


@runtime_checkable
class FileStorageService(Protocol):
    """Reads, writes and conditionally re-fetches files addressed by folder and name.

    Every operation taking a folder and file name raises
    ``InvalidArgumentError`` when either is blank, before touching the
    backend. Streams returned to the caller belong to the caller.
    """

    async def file_exists(self, folder_name: str, file_name: str) -> bool:
        ...

    async def get_file(self, folder_name: str, file_name: str) -> ResponseStream:
        ...

    async def get_file_reference(
        self,
        folder_name: str,
        file_name: str,
        if_none_match: str | None = None,
    ) -> FileReference | None:
        ...

    async def create_download_result(self, folder_name: str, file_name: str) -> DownloadResult:
        ...

    async def save_file(
        self,
        folder_name: str,
        file_name: str,
        content: BinaryIO,
        overwrite: bool = True,
    ) -> None:
        ...

    async def delete_file(self, folder_name: str, file_name: str) -> None:
        ...

    async def is_available(self) -> bool:
        ...


def build_file_storage_service(settings: Settings | StorageSettings) -> FileStorageService:
    storage = settings.storage if isinstance(settings, Settings) else settings
    if storage.backend == "s3":
        from filestore.storage.s3 import S3FileStorageService

        return S3FileStorageService(storage)
    if storage.backend == "local":
        from filestore.storage.local import LocalFileStorageService

        return LocalFileStorageService(storage.local_root, key_prefix=storage.key_prefix)
    raise ConfigurationError(f"Unknown storage backend: {storage.backend}", {"setting": "storage.backend"})


__all__ = ["FileStorageService", "build_file_storage_service"]
