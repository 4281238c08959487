import httpx

from content_service.config import settings


def new_http_client(timeout_s: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    timeout = settings.upload_timeout_s if timeout_s is None else timeout_s
    return httpx.AsyncClient(timeout=timeout, transport=transport)
