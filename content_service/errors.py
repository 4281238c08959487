from content_service import contentpb


class ContentServiceError(Exception):
    pass


class PartialWriteError(ContentServiceError):
    def __init__(self, written: int, expected: int) -> None:
        super().__init__(f"did not write all metadata bytes: wrote {written} of {expected}")
        self.written = written
        self.expected = expected


class UnsupportedResponseContentTypeError(ContentServiceError):
    def __init__(self, content_type: str) -> None:
        super().__init__(f"received unsupported response content type: {content_type}")
        self.content_type = content_type


class StatusError(ContentServiceError):
    """Structured failure reported by the content service."""

    def __init__(self, code: int, message: str = "", http_status: int | None = None) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(self._describe())

    @classmethod
    def from_proto(cls, status, http_status: int | None = None) -> "StatusError":
        return cls(code=status.code, message=status.message, http_status=http_status)

    @property
    def code_name(self) -> str:
        try:
            return contentpb.Code.Name(self.code)
        except ValueError:
            return str(self.code)

    def _describe(self) -> str:
        if self.message:
            return f"{self.code_name}: {self.message}"
        return self.code_name
