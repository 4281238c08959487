import hashlib
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from content_service import contentpb


class HashFunc(Enum):
    SHA256 = "SHA256"

    @property
    def proto_value(self) -> int:
        return contentpb.HashFunc.Value(self.value)

    def new(self):
        return hashlib.new(_HASHLIB_NAMES[self])


_HASHLIB_NAMES = {
    HashFunc.SHA256: "sha256",
}


class Checksum(BaseModel):
    hash_func: HashFunc = HashFunc.SHA256
    hash: bytes = b""


class MediaType(BaseModel):
    type: str
    subtype: str | None = None
    parameters: dict[str, str] = Field(default_factory=dict)


class UploadMetadata(BaseModel):
    name: str | None = None
    media_type: MediaType | None = None
    checksum: Checksum = Field(default_factory=Checksum)

    def to_proto(self):
        meta = contentpb.Metadata()
        if self.name is not None:
            meta.name = self.name
        if self.media_type is not None:
            meta.media_type.SetInParent()
            meta.media_type.type = self.media_type.type
            if self.media_type.subtype is not None:
                meta.media_type.subtype = self.media_type.subtype
            for key, value in self.media_type.parameters.items():
                meta.media_type.parameters[key] = value
        meta.checksum.hash_func = self.checksum.hash_func.proto_value
        meta.checksum.hash = self.checksum.hash
        return meta


class ContentReader(Protocol):
    def read(self, size: int = -1) -> bytes | Awaitable[bytes]: ...


@dataclass(frozen=True)
class UploadContentRequest:
    metadata: UploadMetadata
    content: ContentReader


class UploadContentResponse(BaseModel):
    id: str
