import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    content_service_base_url: str = os.getenv("CONTENT_SERVICE_BASE_URL", "http://127.0.0.1:8080")
    content_upload_path: str = os.getenv("CONTENT_UPLOAD_PATH", "/content/upload")
    upload_timeout_s: float = float(os.getenv("CONTENT_UPLOAD_TIMEOUT_S", "300"))
    pipe_buffer_size: int = int(os.getenv("CONTENT_PIPE_BUFFER_SIZE", "65536"))
    read_chunk_size: int = int(os.getenv("CONTENT_READ_CHUNK_SIZE", "32768"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"
    enable_metrics: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"


settings = Settings()
