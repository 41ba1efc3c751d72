"""S3-backed implementation of the file storage contract."""

from __future__ import annotations

import asyncio
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from filestore.exceptions import (
    BackendError,
    FileAlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
)
from filestore.settings import StorageSettings
from filestore.storage.client_factory import S3ClientFactory
from filestore.storage.folders import content_type_for_folder, download_content_type
from filestore.storage.interfaces import DownloadResult, ResponseStream
from filestore.storage.paths import build_path, require_location
from filestore.storage.reference import FileReference, modified, not_modified


class BackendStatus(str, Enum):
    OK = "ok"
    NOT_MODIFIED = "not_modified"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    OTHER = "other"


def _error_fields(exc: ClientError) -> tuple[int | None, str]:
    response = getattr(exc, "response", {}) or {}
    status_code = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    error_code = str((response.get("Error") or {}).get("Code") or "")
    return status_code, error_code


def classify_client_error(exc: ClientError) -> BackendStatus:
    status_code, error_code = _error_fields(exc)
    if status_code == 304 or error_code in ("304", "NotModified"):
        return BackendStatus.NOT_MODIFIED
    if status_code == 404 or error_code in ("404", "NoSuchKey", "NotFound"):
        return BackendStatus.NOT_FOUND
    if status_code == 412 or error_code in ("412", "PreconditionFailed"):
        return BackendStatus.PRECONDITION_FAILED
    return BackendStatus.OTHER


def _backend_error(operation: str, key: str, exc: Exception) -> BackendError:
    details: dict[str, Any] = {"operation": operation, "key": key}
    if isinstance(exc, ClientError):
        status_code, error_code = _error_fields(exc)
        details["status"] = status_code
        details["code"] = error_code
    logger.error("S3 {operation} failed for {key}: {error}", operation=operation, key=key, error=str(exc))
    return BackendError(f"S3 {operation} failed for '{key}': {exc}", details)


@dataclass
class _ObjectResponse:
    status: BackendStatus
    stream: ResponseStream | None = None
    etag: str | None = None
    content_type: str | None = None


class S3FileStorageService:
    """Stores files as S3 objects keyed by ``prefix/folder/name``.

    Every operation opens its own client and closes it before returning,
    except when a stream is handed back: the client then lives until the
    caller closes that stream.
    """

    def __init__(self, settings: StorageSettings, client_factory: S3ClientFactory | None = None) -> None:
        self.settings = settings
        self.bucket = settings.require_bucket()
        self.key_prefix = settings.key_prefix
        self._clients = client_factory or S3ClientFactory(settings)

    def build_key(self, folder_name: str, file_name: str) -> str:
        return build_path(self.key_prefix, folder_name, file_name)

    # -- public contract ---------------------------------------------------

    async def file_exists(self, folder_name: str, file_name: str) -> bool:
        require_location(folder_name, file_name)
        key = self.build_key(folder_name, file_name)
        return await asyncio.to_thread(self._file_exists_sync, key)

    async def get_file(self, folder_name: str, file_name: str) -> ResponseStream:
        require_location(folder_name, file_name)
        key = self.build_key(folder_name, file_name)
        response = await asyncio.to_thread(self._get_object_sync, key)
        return self._require_stream(response, key)

    async def get_file_reference(
        self,
        folder_name: str,
        file_name: str,
        if_none_match: str | None = None,
    ) -> FileReference | None:
        require_location(folder_name, file_name)
        key = self.build_key(folder_name, file_name)
        response = await asyncio.to_thread(self._get_object_sync, key, if_none_match)

        if response.status is BackendStatus.NOT_MODIFIED:
            return not_modified(if_none_match)
        if response.status is BackendStatus.OK and response.stream is not None:
            return modified(response.stream, response.etag)
        return None

    async def create_download_result(self, folder_name: str, file_name: str) -> DownloadResult:
        require_location(folder_name, file_name)
        key = self.build_key(folder_name, file_name)
        response = await asyncio.to_thread(self._get_object_sync, key)
        stream = self._require_stream(response, key)
        content_type = response.content_type or download_content_type(folder_name)
        return DownloadResult(stream=stream, content_type=content_type)

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
        content_type = content_type_for_folder(folder_name)
        key = self.build_key(folder_name, file_name)
        await asyncio.to_thread(self._put_object_sync, key, content, content_type, overwrite)

    async def delete_file(self, folder_name: str, file_name: str) -> None:
        require_location(folder_name, file_name)
        key = self.build_key(folder_name, file_name)
        await asyncio.to_thread(self._delete_object_sync, key)

    async def is_available(self) -> bool:
        return await asyncio.to_thread(self._is_available_sync)

    # -- blocking helpers ----------------------------------------------------

    def _require_stream(self, response: _ObjectResponse, key: str) -> ResponseStream:
        if response.status is BackendStatus.OK and response.stream is not None:
            return response.stream
        if response.status is BackendStatus.NOT_FOUND:
            raise NotFoundError(f"File '{key}' does not exist", {"bucket": self.bucket, "key": key})
        raise BackendError(
            f"Unexpected S3 response for '{key}'",
            {"operation": "get_object", "key": key, "status": response.status.value},
        )

    def _file_exists_sync(self, key: str) -> bool:
        logger.debug("Checking s3://{bucket}/{key}", bucket=self.bucket, key=key)
        try:
            with self._clients.client() as client:
                client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if classify_client_error(exc) is BackendStatus.NOT_FOUND:
                return False
            raise _backend_error("head_object", key, exc) from exc
        except BotoCoreError as exc:
            raise _backend_error("head_object", key, exc) from exc
        return True

    def _get_object_sync(self, key: str, if_none_match: str | None = None) -> _ObjectResponse:
        request: dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if if_none_match:
            request["IfNoneMatch"] = if_none_match
        logger.debug("Fetching s3://{bucket}/{key}", bucket=self.bucket, key=key)

        with ExitStack() as stack:
            try:
                client = stack.enter_context(self._clients.client())
                response = client.get_object(**request)
            except ClientError as exc:
                status = classify_client_error(exc)
                if status in (BackendStatus.NOT_MODIFIED, BackendStatus.NOT_FOUND):
                    return _ObjectResponse(status=status)
                raise _backend_error("get_object", key, exc) from exc
            except BotoCoreError as exc:
                raise _backend_error("get_object", key, exc) from exc

            body = response["Body"]
            stack.callback(body.close)
            # the caller now owns the body and the client behind it
            stream = ResponseStream(body, stack.pop_all())

        return _ObjectResponse(
            status=BackendStatus.OK,
            stream=stream,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

    def _put_object_sync(self, key: str, content: BinaryIO, content_type: str, overwrite: bool) -> None:
        request: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": content,
            "ContentType": content_type,
        }
        if not overwrite:
            request["IfNoneMatch"] = "*"

        try:
            with self._clients.client() as client:
                client.put_object(**request)
        except ClientError as exc:
            if not overwrite and classify_client_error(exc) is BackendStatus.PRECONDITION_FAILED:
                raise FileAlreadyExistsError(
                    f"File '{key}' already exists",
                    {"bucket": self.bucket, "key": key},
                ) from exc
            raise _backend_error("put_object", key, exc) from exc
        except BotoCoreError as exc:
            raise _backend_error("put_object", key, exc) from exc
        logger.info("Saved s3://{bucket}/{key} ({content_type})", bucket=self.bucket, key=key, content_type=content_type)

    def _delete_object_sync(self, key: str) -> None:
        try:
            with self._clients.client() as client:
                client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if classify_client_error(exc) is not BackendStatus.NOT_FOUND:
                raise _backend_error("delete_object", key, exc) from exc
            logger.debug("s3://{bucket}/{key} was already absent", bucket=self.bucket, key=key)
            return
        except BotoCoreError as exc:
            raise _backend_error("delete_object", key, exc) from exc
        logger.info("Deleted s3://{bucket}/{key}", bucket=self.bucket, key=key)

    def _is_available_sync(self) -> bool:
        try:
            with self._clients.client() as client:
                client.head_bucket(Bucket=self.bucket)
        except Exception as exc:
            logger.warning("S3 bucket {bucket} is unavailable: {error}", bucket=self.bucket, error=str(exc))
            return False
        return True


__all__ = ["BackendStatus", "S3FileStorageService", "classify_client_error"]
