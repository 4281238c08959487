import argparse
import asyncio
import io
import logging
import os
import stat
import sys
from dataclasses import dataclass
from typing import BinaryIO, Protocol, TextIO

import httpx

from content_service.adapter.client.http import new_http_client
from content_service.client import ContentClient
from content_service.config import settings
from content_service.mimetype import InvalidMediaTypeError, parse_media_type
from content_service.schemas import (
    Checksum,
    HashFunc,
    UploadContentRequest,
    UploadContentResponse,
    UploadMetadata,
)
from griot_cli.command import (
    FlagRequiredError,
    InvalidFlagError,
    MustBeAFileError,
    Validator,
    format_errors,
    validate_all,
)

_HASH_CHUNK_SIZE = 64 * 1024

_logger = logging.getLogger("griot.upload")


class UnknownHashFuncError(ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"unknown hash func value: {value}")
        self.value = value


class FailedToSeekReadBytesError(Exception):
    def __init__(self, bytes_read: int, bytes_seeked: int) -> None:
        super().__init__(f"bytes read do not match bytes seeked: {bytes_read}:{bytes_seeked}")
        self.bytes_read = bytes_read
        self.bytes_seeked = bytes_seeked


def register(subparsers) -> None:
    parser = subparsers.add_parser("upload", help="Upload content")
    parser.add_argument(
        "--name",
        default="",
        help="Provide an optional name to help identify this content later.",
    )
    parser.add_argument("--media-type", default="", help="Specify the content Media Type.")
    parser.add_argument("--source-file", default="", help="Specify the content source file.")
    parser.add_argument(
        "--hash-func",
        default=HashFunc.SHA256.value,
        help=(
            "Specify hash function used for calculating content checksum. "
            f"(values {','.join(member.value for member in HashFunc)})"
        ),
    )
    parser.set_defaults(run=run)


@dataclass(frozen=True)
class UploadConfig:
    name: str = ""
    media_type: str = ""
    source_file: str = ""
    hash_func: str = HashFunc.SHA256.value

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "UploadConfig":
        return cls(
            name=args.name,
            media_type=args.media_type,
            source_file=args.source_file,
            hash_func=args.hash_func,
        )

    def validate(self) -> None:
        validate_all(
            [
                validate_media_type(self.media_type),
                validate_source_file(self.source_file),
                validate_hash_func(self.hash_func),
            ]
        )


def validate_media_type(media_type: str) -> Validator:
    def validate() -> None:
        if not media_type:
            raise InvalidFlagError("media-type", FlagRequiredError())
        try:
            parse_media_type(media_type)
        except InvalidMediaTypeError as exc:
            raise InvalidFlagError("media-type", exc) from exc

    return validate


def validate_source_file(filename: str) -> Validator:
    def validate() -> None:
        if not filename:
            raise InvalidFlagError("source-file", FlagRequiredError())
        try:
            info = os.stat(filename)
        except OSError as exc:
            raise InvalidFlagError("source-file", exc) from exc
        if stat.S_ISDIR(info.st_mode):
            raise InvalidFlagError("source-file", MustBeAFileError())

    return validate


def validate_hash_func(name: str) -> Validator:
    def validate() -> None:
        if not name:
            raise InvalidFlagError("hash-func", FlagRequiredError())
        if name not in HashFunc.__members__:
            raise InvalidFlagError("hash-func", UnknownHashFuncError(name))

    return validate


class UploadClient(Protocol):
    async def upload_content(self, req: UploadContentRequest) -> UploadContentResponse: ...


class UploadHandler:
    def __init__(
        self,
        *,
        hash_func: HashFunc,
        src: BinaryIO,
        content: UploadClient,
        content_name: str = "",
        media_type: str = "",
        out: TextIO | None = None,
        log: logging.Logger | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.hash_func = hash_func
        self.src = src
        self.content = content
        self.content_name = content_name
        self.media_type = media_type
        self.out = out or sys.stdout
        self.log = log or _logger
        self._http = http

    async def handle(self) -> UploadContentResponse:
        try:
            digest, bytes_read = self._compute_hash()
        except OSError as exc:
            self.log.error("failed to compute hash", extra={"error": str(exc)})
            raise

        try:
            position = self.src.tell()
            bytes_seeked = position - self.src.seek(0, io.SEEK_SET)
        except OSError as exc:
            self.log.error("failed to perform seek on the source file", extra={"error": str(exc)})
            raise
        if bytes_read != bytes_seeked:
            err = FailedToSeekReadBytesError(bytes_read=bytes_read, bytes_seeked=bytes_seeked)
            self.log.error("failed to seek to the start of the source file", extra={"error": str(err)})
            raise err

        req = UploadContentRequest(
            metadata=UploadMetadata(
                name=self.content_name or None,
                media_type=parse_media_type(self.media_type) if self.media_type else None,
                checksum=Checksum(hash_func=self.hash_func, hash=digest),
            ),
            content=self.src,
        )
        try:
            resp = await self.content.upload_content(req)
        except Exception as exc:
            self.log.error("failed to upload content", extra={"error": str(exc)})
            raise

        self.out.write(resp.model_dump_json() + "\n")
        return resp

    def _compute_hash(self) -> tuple[bytes, int]:
        hasher = self.hash_func.new()
        bytes_read = 0
        while True:
            chunk = self.src.read(_HASH_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
            bytes_read += len(chunk)
        return hasher.digest(), bytes_read

    async def aclose(self) -> None:
        self.src.close()
        if self._http is not None:
            await self._http.aclose()


def init_upload_handler(cfg: UploadConfig, http: httpx.AsyncClient | None = None) -> UploadHandler:
    if cfg.hash_func not in HashFunc.__members__:
        raise UnknownHashFuncError(cfg.hash_func)
    hash_func = HashFunc[cfg.hash_func]

    try:
        src = open(cfg.source_file, "rb")
    except OSError as exc:
        _logger.error("failed to open source file", extra={"error": str(exc)})
        raise

    http = http or new_http_client()
    return UploadHandler(
        hash_func=hash_func,
        src=src,
        content=ContentClient(http),
        content_name=cfg.name,
        media_type=cfg.media_type,
        http=http,
    )


async def upload(cfg: UploadConfig) -> UploadContentResponse:
    handler = init_upload_handler(cfg)
    try:
        async with asyncio.timeout(settings.upload_timeout_s):
            return await handler.handle()
    finally:
        await handler.aclose()


def run(args: argparse.Namespace) -> int:
    cfg = UploadConfig.from_args(args)
    try:
        cfg.validate()
    except (InvalidFlagError, ExceptionGroup) as exc:
        for line in format_errors(exc):
            print(f"griot: {line}", file=sys.stderr)
        return 2

    try:
        asyncio.run(upload(cfg))
    except Exception as exc:  # noqa: BLE001
        _logger.error("upload failed", extra={"error": str(exc)})
        return 1
    return 0
