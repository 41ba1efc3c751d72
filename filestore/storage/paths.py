"""Key construction helpers for stored files."""

from __future__ import annotations

from filestore.exceptions import InvalidArgumentError

SEPARATOR = "/"


def _normalize_segment(segment: str | None) -> str:
    segment = (segment or "").replace("\\", SEPARATOR).strip()
    while "//" in segment:
        segment = segment.replace("//", SEPARATOR)
    return segment.strip(SEPARATOR)


def require_location(folder_name: str | None, file_name: str | None) -> None:
    """Reject folder or file names that are blank or only separators."""
    if not _normalize_segment(folder_name):
        raise InvalidArgumentError("folder_name must not be blank", {"argument": "folder_name"})
    if not _normalize_segment(file_name):
        raise InvalidArgumentError("file_name must not be blank", {"argument": "file_name"})


def build_path(base_prefix: str | None, folder_name: str, file_name: str) -> str:
    """Join prefix, folder and file name into a ``/``-separated object key.

    An empty or missing prefix yields ``folder/name``; otherwise the key is
    ``prefix/folder/name``. The result never depends on the host's path
    conventions.
    """
    parts = [_normalize_segment(base_prefix), _normalize_segment(folder_name), _normalize_segment(file_name)]
    return SEPARATOR.join(part for part in parts if part)


__all__ = ["SEPARATOR", "build_path", "require_location"]
