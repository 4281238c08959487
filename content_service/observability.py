import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock

from content_service.config import settings

_EXTRA_KEYS = (
    "content_id",
    "http_status",
    "content_type",
    "hash_func",
    "bytes_read",
    "latency_ms",
    "error",
)


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False)


def configure_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    if settings.log_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    root.setLevel(level)
    root.addHandler(handler)


@dataclass
class MetricsRegistry:
    enabled: bool = settings.enable_metrics
    content_io_bytes: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    uploads_by_outcome: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    upload_latency_ms_sum: float = 0.0
    upload_latency_ms_count: int = 0
    _lock: Lock = field(default_factory=Lock)

    def record_io(self, direction: str, n: int) -> None:
        if not self.enabled or n <= 0:
            return
        with self._lock:
            self.content_io_bytes[direction] += n

    def record_upload(self, outcome: str, latency_ms: float) -> None:
        if not self.enabled:
            return
        with self._lock:
            self.uploads_by_outcome[outcome] += 1
            self.upload_latency_ms_sum += latency_ms
            self.upload_latency_ms_count += 1

    def render_prometheus(self) -> str:
        with self._lock:
            lines = ["# TYPE content_io_bytes_total counter"]
            for direction, total in sorted(self.content_io_bytes.items()):
                lines.append(f'content_io_bytes_total{{direction="{direction}"}} {total}')
            lines.append("# TYPE content_uploads_total counter")
            for outcome, count in sorted(self.uploads_by_outcome.items()):
                lines.append(f'content_uploads_total{{outcome="{outcome}"}} {count}')
            lines.extend(
                [
                    "# TYPE content_upload_latency_ms_sum counter",
                    f"content_upload_latency_ms_sum {self.upload_latency_ms_sum}",
                    "# TYPE content_upload_latency_ms_count counter",
                    f"content_upload_latency_ms_count {self.upload_latency_ms_count}",
                ]
            )
            return "\n".join(lines) + "\n"


metrics_registry = MetricsRegistry()
