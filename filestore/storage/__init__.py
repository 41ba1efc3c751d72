"""File storage abstraction (S3 or local filesystem)."""

from .folders import (
    DOWNLOADS_FOLDER,
    OCTET_STREAM_CONTENT_TYPE,
    PACKAGE_BACKUPS_FOLDER,
    PACKAGE_CONTENT_TYPE,
    PACKAGES_FOLDER,
    UPLOADS_FOLDER,
    content_type_for_folder,
    download_content_type,
)
from .interfaces import DownloadResult, ResponseStream
from .paths import build_path, require_location
from .reference import FileReference, ModifiedReference, NotModifiedReference, modified, not_modified
from .service import FileStorageService, build_file_storage_service

__all__ = [
    "DOWNLOADS_FOLDER",
    "OCTET_STREAM_CONTENT_TYPE",
    "PACKAGE_BACKUPS_FOLDER",
    "PACKAGE_CONTENT_TYPE",
    "PACKAGES_FOLDER",
    "UPLOADS_FOLDER",
    "content_type_for_folder",
    "download_content_type",
    "DownloadResult",
    "ResponseStream",
    "build_path",
    "require_location",
    "FileReference",
    "ModifiedReference",
    "NotModifiedReference",
    "modified",
    "not_modified",
    "FileStorageService",
    "build_file_storage_service",
]
