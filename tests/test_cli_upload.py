import hashlib
import io
import json

import pytest

from content_service.config import settings
from content_service.schemas import HashFunc, UploadContentRequest, UploadContentResponse
from griot_cli import main as main_module
from griot_cli.command import FlagRequiredError, InvalidFlagError, MustBeAFileError, format_errors
from griot_cli.content import upload as upload_module
from griot_cli.content.upload import (
    FailedToSeekReadBytesError,
    UnknownHashFuncError,
    UploadConfig,
    UploadHandler,
    init_upload_handler,
)


class _RecordingClient:
    def __init__(self, response: UploadContentResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or UploadContentResponse(id="example-id")
        self.error = error
        self.requests: list[UploadContentRequest] = []
        self.bodies: list[bytes] = []

    async def upload_content(self, req: UploadContentRequest) -> UploadContentResponse:
        self.requests.append(req)
        self.bodies.append(req.content.read())
        if self.error is not None:
            raise self.error
        return self.response


class _BrokenSource(io.BytesIO):
    def read(self, size: int = -1) -> bytes:
        raise OSError("read failed")


class _DriftingSource(io.BytesIO):
    """Reports a rewind distance shorter than what was actually read."""

    def tell(self) -> int:
        return super().tell() - 1


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"hello griot")
    return path


def _handler(src, content, out=None, **kwargs) -> UploadHandler:
    return UploadHandler(
        hash_func=HashFunc.SHA256,
        src=src,
        content=content,
        out=out or io.StringIO(),
        **kwargs,
    )


def test_validate_reports_every_missing_flag() -> None:
    with pytest.raises(ExceptionGroup) as exc_info:
        UploadConfig(hash_func="").validate()

    errors = exc_info.value.exceptions
    assert [err.name for err in errors] == ["media-type", "source-file", "hash-func"]
    assert all(isinstance(err.cause, FlagRequiredError) for err in errors)


def test_validate_rejects_directory_and_unknown_hash(tmp_path) -> None:
    cfg = UploadConfig(media_type="text/plain", source_file=str(tmp_path), hash_func="MD5")

    with pytest.raises(ExceptionGroup) as exc_info:
        cfg.validate()

    source_err, hash_err = exc_info.value.exceptions
    assert isinstance(source_err.cause, MustBeAFileError)
    assert isinstance(hash_err.cause, UnknownHashFuncError)
    assert format_errors(exc_info.value) == [
        "invalid flag --source-file: must be a file",
        "invalid flag --hash-func: unknown hash func value: MD5",
    ]


def test_validate_single_failure_is_raised_directly(source_file) -> None:
    cfg = UploadConfig(media_type="text/plain; hello=", source_file=str(source_file))

    with pytest.raises(InvalidFlagError) as exc_info:
        cfg.validate()

    assert exc_info.value.name == "media-type"


def test_validate_missing_source_file(tmp_path) -> None:
    cfg = UploadConfig(media_type="text/plain", source_file=str(tmp_path / "absent.txt"))

    with pytest.raises(InvalidFlagError) as exc_info:
        cfg.validate()

    assert isinstance(exc_info.value.cause, FileNotFoundError)


def test_validate_accepts_complete_config(source_file) -> None:
    UploadConfig(media_type="text/plain", source_file=str(source_file)).validate()


def test_init_upload_handler_rejects_unknown_hash(source_file) -> None:
    with pytest.raises(UnknownHashFuncError):
        init_upload_handler(UploadConfig(source_file=str(source_file), hash_func="CRC32"))


def test_init_upload_handler_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        init_upload_handler(UploadConfig(source_file=str(tmp_path / "absent.txt")))


@pytest.mark.asyncio
async def test_handler_uploads_checksum_and_prints_response() -> None:
    client = _RecordingClient()
    out = io.StringIO()
    handler = _handler(io.BytesIO(b"hello griot"), client, out=out, content_name="notes", media_type="Text/Plain")

    resp = await handler.handle()

    assert resp.id == "example-id"
    assert json.loads(out.getvalue()) == {"id": "example-id"}
    [req] = client.requests
    assert req.metadata.name == "notes"
    assert req.metadata.media_type.type == "text"
    assert req.metadata.checksum.hash == hashlib.sha256(b"hello griot").digest()
    # the source was rewound before upload
    assert client.bodies == [b"hello griot"]


@pytest.mark.asyncio
async def test_handler_leaves_unset_name_and_media_type_empty() -> None:
    client = _RecordingClient()

    await _handler(io.BytesIO(b""), client).handle()

    [req] = client.requests
    assert req.metadata.name is None
    assert req.metadata.media_type is None
    assert req.metadata.checksum.hash == hashlib.sha256(b"").digest()


@pytest.mark.asyncio
async def test_handler_propagates_read_error() -> None:
    client = _RecordingClient()

    with pytest.raises(OSError, match="read failed"):
        await _handler(_BrokenSource(), client).handle()
    assert client.requests == []


@pytest.mark.asyncio
async def test_handler_rejects_mismatched_seek() -> None:
    client = _RecordingClient()

    with pytest.raises(FailedToSeekReadBytesError) as exc_info:
        await _handler(_DriftingSource(b"hello griot"), client).handle()

    assert exc_info.value.bytes_read == 11
    assert exc_info.value.bytes_seeked == 10
    assert client.requests == []


@pytest.mark.asyncio
async def test_handler_propagates_upload_error() -> None:
    boom = RuntimeError("upload refused")
    out = io.StringIO()

    with pytest.raises(RuntimeError) as exc_info:
        await _handler(io.BytesIO(b"x"), _RecordingClient(error=boom), out=out).handle()

    assert exc_info.value is boom
    assert out.getvalue() == ""


def test_main_without_command_prints_help(capsys) -> None:
    assert main_module.main([]) == 2
    assert "griot" in capsys.readouterr().err


def test_main_reports_validation_errors(capsys) -> None:
    assert main_module.main(["content", "upload"]) == 2

    err = capsys.readouterr().err
    assert "griot: invalid flag --media-type: flag is required" in err
    assert "griot: invalid flag --source-file: flag is required" in err


def test_main_runs_upload(monkeypatch, source_file) -> None:
    seen: list[UploadConfig] = []

    async def fake_upload(cfg: UploadConfig) -> UploadContentResponse:
        seen.append(cfg)
        return UploadContentResponse(id="example-id")

    monkeypatch.setattr(upload_module, "upload", fake_upload)

    code = main_module.main(
        ["content", "upload", "--media-type", "text/plain", "--source-file", str(source_file), "--name", "notes"]
    )

    assert code == 0
    assert seen == [UploadConfig(name="notes", media_type="text/plain", source_file=str(source_file))]


def test_main_returns_failure_when_upload_fails(monkeypatch, source_file) -> None:
    async def failing_upload(cfg: UploadConfig) -> UploadContentResponse:
        raise RuntimeError("connection refused")

    monkeypatch.setattr(upload_module, "upload", failing_upload)

    code = main_module.main(["content", "upload", "--media-type", "text/plain", "--source-file", str(source_file)])

    assert code == 1


@pytest.mark.asyncio
async def test_init_upload_handler_applies_timeout_on_http_client_only(source_file) -> None:
    handler = init_upload_handler(UploadConfig(media_type="text/plain", source_file=str(source_file)))
    try:
        assert handler.content._timeout_s is None
        assert handler._http.timeout.read == settings.upload_timeout_s
    finally:
        await handler.aclose()
