from __future__ import annotations

import io

import pytest
from botocore.exceptions import EndpointConnectionError

from filestore.exceptions import (
    BackendError,
    ConfigurationError,
    FileAlreadyExistsError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    UnsupportedFolderError,
)
from filestore.settings import StorageSettings
from filestore.storage.client_factory import S3ClientFactory
from filestore.storage.folders import OCTET_STREAM_CONTENT_TYPE, PACKAGE_CONTENT_TYPE
from filestore.storage.reference import ModifiedReference, NotModifiedReference
from filestore.storage.s3 import BackendStatus, S3FileStorageService, classify_client_error
from tests.utils_s3 import FakeS3Backend, client_error

BUCKET = "gallery"


@pytest.fixture()
def backend() -> FakeS3Backend:
    return FakeS3Backend()


@pytest.fixture()
def make_service(backend, monkeypatch):
    monkeypatch.delenv("FILESTORE_S3_ACCESS_KEY_ID", raising=False)
    monkeypatch.delenv("FILESTORE_S3_SECRET_ACCESS_KEY", raising=False)

    def _make(key_prefix: str | None = None) -> S3FileStorageService:
        settings = StorageSettings(bucket=BUCKET, key_prefix=key_prefix)
        factory = S3ClientFactory(settings, session_factory=backend.session_factory)
        return S3FileStorageService(settings, factory)

    return _make


@pytest.fixture()
def service(make_service) -> S3FileStorageService:
    return make_service()


BLANK_LOCATIONS = [
    ("", "pkg-1.0.nupkg"),
    ("   ", "pkg-1.0.nupkg"),
    (None, "pkg-1.0.nupkg"),
    ("uploads", ""),
    ("uploads", " \t"),
    ("uploads", None),
    ("/", "pkg-1.0.nupkg"),
    ("uploads", "//"),
]

OPERATIONS = {
    "file_exists": lambda svc, folder, name: svc.file_exists(folder, name),
    "get_file": lambda svc, folder, name: svc.get_file(folder, name),
    "get_file_reference": lambda svc, folder, name: svc.get_file_reference(folder, name, '"abc"'),
    "create_download_result": lambda svc, folder, name: svc.create_download_result(folder, name),
    "save_file": lambda svc, folder, name: svc.save_file(folder, name, io.BytesIO(b"data")),
    "delete_file": lambda svc, folder, name: svc.delete_file(folder, name),
}


@pytest.mark.asyncio()
@pytest.mark.parametrize("operation", sorted(OPERATIONS))
@pytest.mark.parametrize("folder_name, file_name", BLANK_LOCATIONS)
async def test_blank_location_fails_before_backend(service, backend, operation, folder_name, file_name):
    with pytest.raises(InvalidArgumentError):
        await OPERATIONS[operation](service, folder_name, file_name)

    assert backend.sessions == []
    assert backend.calls == []


@pytest.mark.asyncio()
async def test_save_without_content_is_rejected(service, backend):
    with pytest.raises(InvalidArgumentError) as excinfo:
        await service.save_file("uploads", "pkg-1.0.nupkg", None)

    assert excinfo.value.details == {"argument": "content"}
    assert backend.calls == []


@pytest.mark.asyncio()
async def test_save_to_unknown_folder_fails_fast(service, backend):
    with pytest.raises(UnsupportedFolderError):
        await service.save_file("avatars", "me.png", io.BytesIO(b"png"))

    assert backend.sessions == []


def test_missing_bucket_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        S3FileStorageService(StorageSettings(bucket="  "))


@pytest.mark.asyncio()
async def test_save_exists_delete_exists(service, backend):
    await service.save_file("uploads", "pkg-1.0.nupkg", io.BytesIO(b"nupkg bytes"))
    assert await service.file_exists("uploads", "pkg-1.0.nupkg") is True

    await service.delete_file("uploads", "pkg-1.0.nupkg")
    assert await service.file_exists("uploads", "pkg-1.0.nupkg") is False

    assert backend.clients, "expected clients to be created"
    assert all(client.closed for client in backend.clients)


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "folder_name, expected",
    [
        ("packages", PACKAGE_CONTENT_TYPE),
        ("package-backups", PACKAGE_CONTENT_TYPE),
        ("uploads", PACKAGE_CONTENT_TYPE),
        ("downloads", OCTET_STREAM_CONTENT_TYPE),
    ],
)
async def test_save_sets_content_type_from_folder(service, backend, folder_name, expected):
    await service.save_file(folder_name, "file.bin", io.BytesIO(b"x"))

    stored = backend.objects[(BUCKET, f"{folder_name}/file.bin")]
    assert stored.content_type == expected


@pytest.mark.asyncio()
async def test_keys_are_nested_under_prefix(make_service, backend):
    svc = make_service(key_prefix="base")
    await svc.save_file("packages", "a.nupkg", io.BytesIO(b"a"))

    assert (BUCKET, "base/packages/a.nupkg") in backend.objects


@pytest.mark.asyncio()
async def test_save_without_overwrite(service, backend):
    await service.save_file("packages", "a.nupkg", io.BytesIO(b"first"), overwrite=False)
    op, params = backend.calls[-1]
    assert op == "put_object"
    assert params["IfNoneMatch"] == "*"

    with pytest.raises(FileAlreadyExistsError):
        await service.save_file("packages", "a.nupkg", io.BytesIO(b"second"), overwrite=False)

    assert backend.objects[(BUCKET, "packages/a.nupkg")].body == b"first"


@pytest.mark.asyncio()
async def test_save_overwrites_by_default(service, backend):
    await service.save_file("packages", "a.nupkg", io.BytesIO(b"first"))
    await service.save_file("packages", "a.nupkg", io.BytesIO(b"second"))

    assert backend.objects[(BUCKET, "packages/a.nupkg")].body == b"second"
    assert backend.calls[-1][1]["IfNoneMatch"] is None


@pytest.mark.asyncio()
async def test_save_backend_failure(service, backend):
    backend.failures["put_object"] = client_error("InternalError", 500, "PutObject")

    with pytest.raises(BackendError) as excinfo:
        await service.save_file("packages", "a.nupkg", io.BytesIO(b"a"))

    assert excinfo.value.details["status"] == 500
    assert excinfo.value.details["operation"] == "put_object"


@pytest.mark.asyncio()
async def test_exists_only_false_on_not_found(service, backend):
    assert await service.file_exists("packages", "missing.nupkg") is False

    backend.failures["head_object"] = client_error("AccessDenied", 403, "HeadObject")
    with pytest.raises(BackendError) as excinfo:
        await service.file_exists("packages", "missing.nupkg")

    assert excinfo.value.details["code"] == "AccessDenied"
    assert all(client.closed for client in backend.clients)


@pytest.mark.asyncio()
async def test_exists_transport_failure(service, backend):
    backend.failures["head_object"] = EndpointConnectionError(endpoint_url="https://s3.example.test")

    with pytest.raises(BackendError):
        await service.file_exists("packages", "a.nupkg")


@pytest.mark.asyncio()
async def test_get_file_hands_stream_to_caller(service, backend):
    backend.put(BUCKET, "packages/a.nupkg", b"package body")

    stream = await service.get_file("packages", "a.nupkg")
    client = backend.clients[-1]
    assert client.closed is False

    with stream:
        assert stream.read() == b"package body"

    assert client.closed is True
    assert backend.bodies[-1].closed is True


@pytest.mark.asyncio()
async def test_get_file_missing(service, backend):
    with pytest.raises(NotFoundError) as excinfo:
        await service.get_file("packages", "missing.nupkg")

    assert excinfo.value.details["key"] == "packages/missing.nupkg"
    assert backend.clients[-1].closed is True


@pytest.mark.asyncio()
async def test_get_file_other_failure(service, backend):
    backend.failures["get_object"] = client_error("InternalError", 500, "GetObject")

    with pytest.raises(BackendError):
        await service.get_file("packages", "a.nupkg")

    assert backend.clients[-1].closed is True


@pytest.mark.asyncio()
async def test_reference_not_modified_when_etag_matches(service, backend):
    etag = backend.put(BUCKET, "packages/a.nupkg", b"v1")

    reference = await service.get_file_reference("packages", "a.nupkg", etag)

    assert isinstance(reference, NotModifiedReference)
    assert reference.content_id == etag
    assert reference.has_content is False
    with pytest.raises(InvalidStateError):
        reference.open_read()
    assert backend.calls[-1][1]["IfNoneMatch"] == etag
    assert backend.clients[-1].closed is True


@pytest.mark.asyncio()
@pytest.mark.parametrize("previous", ['"stale-etag"', None])
async def test_reference_modified_when_etag_differs(service, backend, previous):
    etag = backend.put(BUCKET, "packages/a.nupkg", b"v2 content")

    reference = await service.get_file_reference("packages", "a.nupkg", previous)

    assert isinstance(reference, ModifiedReference)
    assert reference.has_content is True
    assert reference.content_id == etag
    assert reference.content_id != previous
    stream = reference.open_read()
    assert stream.read() == b"v2 content"
    assert stream.read() == b""
    stream.close()
    assert backend.clients[-1].closed is True


@pytest.mark.asyncio()
async def test_reference_absent_for_missing_object(service, backend):
    assert await service.get_file_reference("packages", "missing.nupkg", '"abc"') is None


@pytest.mark.asyncio()
async def test_reference_propagates_unexpected_failure(service, backend):
    backend.failures["get_object"] = client_error("SlowDown", 503, "GetObject")

    with pytest.raises(BackendError):
        await service.get_file_reference("packages", "a.nupkg", '"abc"')


@pytest.mark.asyncio()
async def test_download_result_uses_stored_content_type(service, backend):
    backend.put(BUCKET, "downloads/tool.exe", b"MZ", content_type="application/x-msdownload")

    result = await service.create_download_result("downloads", "tool.exe")

    assert result.content_type == "application/x-msdownload"
    with result.stream as stream:
        assert stream.read() == b"MZ"


@pytest.mark.asyncio()
async def test_download_result_falls_back_to_folder_content_type(service, backend):
    backend.put(BUCKET, "packages/a.nupkg", b"a")

    result = await service.create_download_result("packages", "a.nupkg")
    result.stream.close()

    assert result.content_type == PACKAGE_CONTENT_TYPE


@pytest.mark.asyncio()
async def test_download_result_outside_vocabulary_is_generic_binary(service, backend):
    backend.put(BUCKET, "avatars/me.png", b"png")

    result = await service.create_download_result("avatars", "me.png")

    assert result.content_type == OCTET_STREAM_CONTENT_TYPE
    with result.stream as stream:
        assert stream.read() == b"png"


@pytest.mark.asyncio()
async def test_delete_missing_object_is_not_an_error(service, backend):
    await service.delete_file("packages", "missing.nupkg")

    backend.failures["delete_object"] = client_error("NoSuchKey", 404, "DeleteObject")
    await service.delete_file("packages", "missing.nupkg")


@pytest.mark.asyncio()
async def test_delete_backend_failure(service, backend):
    backend.failures["delete_object"] = client_error("AccessDenied", 403, "DeleteObject")

    with pytest.raises(BackendError):
        await service.delete_file("packages", "a.nupkg")


@pytest.mark.asyncio()
async def test_is_available(service, backend):
    assert await service.is_available() is True

    backend.failures["head_bucket"] = client_error("NoSuchBucket", 404, "HeadBucket")
    assert await service.is_available() is False


@pytest.mark.asyncio()
async def test_is_available_when_client_cannot_be_built(monkeypatch):
    settings = StorageSettings(bucket=BUCKET)

    def broken_session(**kwargs):
        raise EndpointConnectionError(endpoint_url="https://s3.example.test")

    svc = S3FileStorageService(settings, S3ClientFactory(settings, session_factory=broken_session))

    assert await svc.is_available() is False


@pytest.mark.parametrize(
    "code, status, expected",
    [
        ("304", 304, BackendStatus.NOT_MODIFIED),
        ("NoSuchKey", 404, BackendStatus.NOT_FOUND),
        ("404", None, BackendStatus.NOT_FOUND),
        ("PreconditionFailed", 412, BackendStatus.PRECONDITION_FAILED),
        ("AccessDenied", 403, BackendStatus.OTHER),
    ],
)
def test_classify_client_error(code, status, expected):
    assert classify_client_error(client_error(code, status, "GetObject")) is expected
