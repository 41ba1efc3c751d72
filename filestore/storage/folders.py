"""Folder vocabulary and the content types stored objects receive."""

from __future__ import annotations

from filestore.exceptions import UnsupportedFolderError

PACKAGES_FOLDER = "packages"
PACKAGE_BACKUPS_FOLDER = "package-backups"
UPLOADS_FOLDER = "uploads"
DOWNLOADS_FOLDER = "downloads"

PACKAGE_CONTENT_TYPE = "binary/octet-stream"
OCTET_STREAM_CONTENT_TYPE = "application/octet-stream"

_CONTENT_TYPES: dict[str, str] = {
    PACKAGES_FOLDER: PACKAGE_CONTENT_TYPE,
    PACKAGE_BACKUPS_FOLDER: PACKAGE_CONTENT_TYPE,
    UPLOADS_FOLDER: PACKAGE_CONTENT_TYPE,
    DOWNLOADS_FOLDER: OCTET_STREAM_CONTENT_TYPE,
}

KNOWN_FOLDERS = frozenset(_CONTENT_TYPES)


def content_type_for_folder(folder_name: str) -> str:
    try:
        return _CONTENT_TYPES[folder_name]
    except KeyError:
        raise UnsupportedFolderError(
            f"The folder name {folder_name} is not supported.",
            {"folder_name": str(folder_name)},
        ) from None


def download_content_type(folder_name: str) -> str:
    """Content type for serving an existing file; unknown folders get a generic type."""
    return _CONTENT_TYPES.get(folder_name, OCTET_STREAM_CONTENT_TYPE)


__all__ = [
    "PACKAGES_FOLDER",
    "PACKAGE_BACKUPS_FOLDER",
    "UPLOADS_FOLDER",
    "DOWNLOADS_FOLDER",
    "PACKAGE_CONTENT_TYPE",
    "OCTET_STREAM_CONTENT_TYPE",
    "KNOWN_FOLDERS",
    "content_type_for_folder",
    "download_content_type",
]
