import re

from content_service.schemas import MediaType

_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MEDIA_TYPE_RE = re.compile(rf"^\s*({_TOKEN})(?:/({_TOKEN}))?\s*$")
_PARAM_RE = re.compile(rf'^\s*({_TOKEN})\s*=\s*({_TOKEN}|"(?:[^"\\]|\\.)*")\s*$')


class InvalidMediaTypeError(ValueError):
    pass


class InvalidMediaParameterError(InvalidMediaTypeError):
    def __init__(self, param: str) -> None:
        super().__init__(f"mime: invalid media parameter: {param!r}")
        self.param = param


def parse_media_type(value: str) -> MediaType:
    head, *raw_params = value.split(";")
    match = _MEDIA_TYPE_RE.match(head)
    if not match:
        raise InvalidMediaTypeError(f"mime: no media type in {value!r}")

    parameters: dict[str, str] = {}
    for raw in raw_params:
        if not raw.strip():
            continue
        param = _PARAM_RE.match(raw)
        if not param:
            raise InvalidMediaParameterError(raw.strip())
        key = param.group(1).lower()
        if key in parameters:
            raise InvalidMediaTypeError(f"mime: duplicate parameter name {key!r}")
        parameters[key] = _unquote(param.group(2))

    subtype = match.group(2)
    return MediaType(
        type=match.group(1).lower(),
        subtype=subtype.lower() if subtype else None,
        parameters=parameters,
    )


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    return value
