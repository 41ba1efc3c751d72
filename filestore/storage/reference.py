"""Conditional-read results.

A read that supplies a previously seen content id (an ETag) ends in one of
two states. :class:`NotModifiedReference` means the caller's copy is still
current and carries no content. :class:`ModifiedReference` carries a fresh
stream and the content id to remember for the next conditional read.
Ownership of that stream passes to the caller, who must close it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Union

from filestore.exceptions import InvalidStateError


@dataclass(frozen=True)
class NotModifiedReference:
    content_id: str | None

    @property
    def has_content(self) -> bool:
        return False

    def open_read(self) -> BinaryIO:
        raise InvalidStateError(
            "A not-modified file reference has no content to read",
            {"content_id": str(self.content_id)},
        )


@dataclass(frozen=True)
class ModifiedReference:
    content_id: str | None
    stream: BinaryIO = field(compare=False, repr=False)

    @property
    def has_content(self) -> bool:
        return True

    def open_read(self) -> BinaryIO:
        return self.stream


FileReference = Union[NotModifiedReference, ModifiedReference]


def not_modified(content_id: str | None) -> NotModifiedReference:
    return NotModifiedReference(content_id=content_id)


def modified(stream: BinaryIO, content_id: str | None) -> ModifiedReference:
    return ModifiedReference(content_id=content_id, stream=stream)


__all__ = [
    "FileReference",
    "ModifiedReference",
    "NotModifiedReference",
    "modified",
    "not_modified",
]
