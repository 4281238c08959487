import os

# Keep tests deterministic and offline-safe.
os.environ["CONTENT_SERVICE_BASE_URL"] = "http://testserver"
os.environ["CONTENT_UPLOAD_PATH"] = "/content/upload"
os.environ["ENABLE_METRICS"] = "true"
os.environ["LOG_JSON"] = "true"

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi import FastAPI, Request, Response  # noqa: E402

from content_service import contentpb  # noqa: E402


def parse_multipart(body: bytes, content_type: str) -> list[tuple[dict[str, str], bytes]]:
    boundary = content_type.split("boundary=", 1)[1]
    sections = body.split(b"--" + boundary.encode("ascii"))
    assert sections[0] == b""
    assert sections[-1] == b"--\r\n"

    parts: list[tuple[dict[str, str], bytes]] = []
    for section in sections[1:-1]:
        section = section.removeprefix(b"\r\n").removesuffix(b"\r\n")
        raw_headers, _, payload = section.partition(b"\r\n\r\n")
        headers = dict(line.split(": ", 1) for line in raw_headers.decode("utf-8").split("\r\n"))
        parts.append((headers, payload))
    return parts


def protobuf_response(message, status_code: int = 200) -> Response:
    return Response(
        content=contentpb.marshal(message),
        status_code=status_code,
        media_type=contentpb.PROTOBUF_CONTENT_TYPE,
    )


@pytest.fixture
def parse_form():
    return parse_multipart


@pytest.fixture
def content_app():
    """Builds a stand-in content service whose upload endpoint hands the
    parsed multipart parts to ``respond``."""

    def build(respond) -> FastAPI:
        app = FastAPI(title="Content Service Stub")
        app.state.received = []

        @app.post("/content/upload")
        async def upload_content(request: Request) -> Response:
            body = await request.body()
            parts = parse_multipart(body, request.headers["content-type"])
            app.state.received.append(parts)
            return respond(parts)

        return app

    return build


@pytest.fixture
def asgi_http():
    def build(app: FastAPI) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    return build


@pytest.fixture
def example_id_response():
    def respond(_parts) -> Response:
        return protobuf_response(
            contentpb.UploadContentV1Response(id=contentpb.ContentId(value="example-id"))
        )

    return respond


@pytest.fixture
def internal_status_response():
    def respond(_parts) -> Response:
        return protobuf_response(
            contentpb.Status(code=contentpb.Code.Value("INTERNAL"), message="boom"),
            status_code=500,
        )

    return respond
