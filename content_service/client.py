import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol

import httpx

from content_service import contentpb
from content_service.config import settings
from content_service.errors import StatusError, UnsupportedResponseContentTypeError
from content_service.multipart import UploadRequestEncoder, form_data_content_type, random_boundary
from content_service.observability import MetricsRegistry, metrics_registry
from content_service.pipe import ClosedPipeError, Pipe, PipeAbortedError, PipeReader, PipeWriter
from content_service.schemas import UploadContentRequest, UploadContentResponse

_logger = logging.getLogger("content.client")


class HttpClient(Protocol):
    async def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response: ...


class ContentClient:
    def __init__(
        self,
        http: HttpClient,
        base_url: str | None = None,
        *,
        upload_path: str | None = None,
        timeout_s: float | None = None,
        pipe_buffer_size: int | None = None,
        read_chunk_size: int | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._http = http
        base_url = settings.content_service_base_url if base_url is None else base_url
        self._upload_url = base_url.rstrip("/") + (upload_path or settings.content_upload_path)
        self._timeout_s = timeout_s
        self._pipe_buffer_size = pipe_buffer_size or settings.pipe_buffer_size
        self._metrics = metrics or metrics_registry
        self._encoder = UploadRequestEncoder(
            metrics=self._metrics,
            chunk_size=read_chunk_size or settings.read_chunk_size,
        )
        self.unmarshal: Callable = contentpb.unmarshal

    @property
    def marshal(self) -> Callable:
        return self._encoder.marshal

    @marshal.setter
    def marshal(self, fn: Callable) -> None:
        self._encoder.marshal = fn

    async def upload_content(self, req: UploadContentRequest) -> UploadContentResponse:
        start = time.perf_counter()
        try:
            resp, bytes_read = await self._upload(req)
        except BaseException as exc:
            latency_ms = (time.perf_counter() - start) * 1000.0
            self._metrics.record_upload("failed", latency_ms)
            _logger.warning(
                "upload_failed",
                extra={"error": repr(exc), "latency_ms": round(latency_ms, 2)},
            )
            raise

        latency_ms = (time.perf_counter() - start) * 1000.0
        self._metrics.record_upload("succeeded", latency_ms)
        _logger.info(
            "upload_complete",
            extra={
                "content_id": resp.id,
                "bytes_read": bytes_read,
                "latency_ms": round(latency_ms, 2),
            },
        )
        return resp

    async def _upload(self, req: UploadContentRequest) -> tuple[UploadContentResponse, int]:
        pipe = Pipe(self._pipe_buffer_size)
        boundary = random_boundary()
        handoff: asyncio.Queue[httpx.Response] = asyncio.Queue(maxsize=1)

        try:
            async with asyncio.TaskGroup() as tg:
                write_task = tg.create_task(self._write_request(pipe.writer, req, boundary))
                tg.create_task(self._do_request(pipe.reader, boundary, handoff))
        except BaseException as exc:
            await _discard_responses(handoff)
            if isinstance(exc, BaseExceptionGroup):
                raise _first_error(exc) from None
            raise

        resp = await handoff.get()
        try:
            return await self._read_response(resp), write_task.result() or 0
        finally:
            await resp.aclose()

    async def _write_request(self, writer: PipeWriter, req: UploadContentRequest, boundary: str) -> int | None:
        try:
            n = await self._encoder.write_upload_request(
                writer,
                req.metadata,
                req.content,
                boundary=boundary,
            )
        except ClosedPipeError:
            # the requester stopped reading and reports why
            writer.close()
            return None
        except BaseException as exc:
            writer.close(exc)
            raise
        writer.close()
        return n

    async def _do_request(
        self,
        reader: PipeReader,
        boundary: str,
        handoff: asyncio.Queue[httpx.Response],
    ) -> None:
        try:
            extensions = {}
            if self._timeout_s is not None:
                extensions["timeout"] = httpx.Timeout(self._timeout_s).as_dict()
            request = httpx.Request(
                "POST",
                self._upload_url,
                headers={"Content-Type": form_data_content_type(boundary)},
                content=reader,
                extensions=extensions,
            )
            try:
                resp = await self._http.send(request, stream=True)
            except PipeAbortedError:
                # the writer failed and reports its own error
                return
            await handoff.put(resp)
        finally:
            reader.close()

    async def _read_response(self, resp: httpx.Response) -> UploadContentResponse:
        content_type = resp.headers.get("Content-Type", "")
        if content_type != contentpb.PROTOBUF_CONTENT_TYPE:
            raise UnsupportedResponseContentTypeError(content_type)

        body = await resp.aread()

        if resp.status_code != httpx.codes.OK:
            status = self.unmarshal(body, contentpb.Status)
            raise StatusError.from_proto(status, http_status=resp.status_code)

        upload_v1_resp = self.unmarshal(body, contentpb.UploadContentV1Response)
        return UploadContentResponse(id=upload_v1_resp.id.value)


def _first_error(group: BaseExceptionGroup) -> BaseException:
    if len(group.exceptions) == 1:
        return group.exceptions[0]
    return group


async def _discard_responses(handoff: asyncio.Queue[httpx.Response]) -> None:
    while not handoff.empty():
        await handoff.get_nowait().aclose()
