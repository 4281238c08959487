import asyncio
import base64
import inspect
import secrets
from collections.abc import Callable
from typing import Protocol

from content_service import contentpb
from content_service.errors import PartialWriteError
from content_service.observability import MetricsRegistry, metrics_registry
from content_service.schemas import ContentReader, UploadMetadata

DEFAULT_CHUNK_SIZE = 32 * 1024


class AsyncWriter(Protocol):
    async def write(self, data: bytes) -> int: ...


def random_boundary() -> str:
    return secrets.token_hex(30)


def form_data_content_type(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class PartWriter:
    def __init__(self, dest: AsyncWriter) -> None:
        self._dest = dest

    async def write(self, data: bytes) -> int:
        return await self._dest.write(data)


class MultipartWriter:
    def __init__(self, dest: AsyncWriter, boundary: str | None = None) -> None:
        self._dest = dest
        self.boundary = boundary or random_boundary()
        self._has_parts = False
        self._closed = False

    async def create_part(self, headers: dict[str, str]) -> PartWriter:
        if self._closed:
            raise RuntimeError("multipart: create_part after close")
        if self._has_parts:
            delimiter = f"\r\n--{self.boundary}\r\n"
        else:
            delimiter = f"--{self.boundary}\r\n"
        lines = [delimiter]
        for key in sorted(headers):
            lines.append(f"{key}: {headers[key]}\r\n")
        lines.append("\r\n")
        await self._dest.write("".join(lines).encode("utf-8"))
        self._has_parts = True
        return PartWriter(self._dest)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._dest.write(f"\r\n--{self.boundary}--\r\n".encode("utf-8"))


class ProgressReader:
    """Counts bytes pulled from ``source`` and yields to the event loop before
    each read so a pending cancellation stops the copy."""

    def __init__(self, source: ContentReader, metrics: MetricsRegistry, direction: str = "read") -> None:
        self._source = source
        self._metrics = metrics
        self._direction = direction
        self.bytes_read = 0

    async def read(self, size: int = -1) -> bytes:
        await asyncio.sleep(0)
        if inspect.iscoroutinefunction(self._source.read):
            result = await self._source.read(size)
        else:
            # blocking file reads stay off the loop that drives the transport
            result = await asyncio.to_thread(self._source.read, size)
        n = len(result)
        self.bytes_read += n
        self._metrics.record_io(self._direction, n)
        return result


class UploadRequestEncoder:
    def __init__(
        self,
        marshal: Callable = contentpb.marshal,
        metrics: MetricsRegistry | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.marshal = marshal
        self._metrics = metrics or metrics_registry
        self._chunk_size = chunk_size

    async def write_upload_request(
        self,
        dest: AsyncWriter,
        metadata: UploadMetadata,
        content: ContentReader,
        boundary: str | None = None,
    ) -> int:
        """Write the metadata part, then the content part, then the closing
        delimiter. Returns the number of content bytes read from ``content``.
        Closing ``dest`` is left to the caller."""
        writer = MultipartWriter(dest, boundary=boundary)
        await self.write_metadata(writer, metadata)
        n = await self.write_content(writer, metadata.checksum.hash, content)
        await writer.close()
        return n

    async def write_metadata(self, writer: MultipartWriter, metadata: UploadMetadata) -> None:
        b = self.marshal(metadata.to_proto())
        part = await writer.create_part(
            {
                "Content-Disposition": 'form-data; name="metadata"',
                "Content-Type": contentpb.PROTOBUF_CONTENT_TYPE,
            }
        )
        n = await part.write(b)
        if n != len(b):
            raise PartialWriteError(written=n, expected=len(b))

    async def write_content(self, writer: MultipartWriter, digest: bytes, content: ContentReader) -> int:
        filename = base64.b64encode(digest).decode("ascii")
        part = await writer.create_part(
            {
                "Content-Disposition": f'form-data; name="content"; filename="{_quote(filename)}"',
                "Content-Type": "application/octet-stream",
            }
        )

        reader = ProgressReader(content, self._metrics)
        while True:
            chunk = await reader.read(self._chunk_size)
            if not chunk:
                break
            await part.write(chunk)
        return reader.bytes_read
