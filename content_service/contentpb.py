"""Protocol Buffers messages exchanged with the content service.

The message types are declared from ``FileDescriptorProto`` values at import
time and registered in a private descriptor pool, so the module needs only the
``protobuf`` runtime. Field numbers are part of the wire contract: append new
fields and enum values, never renumber existing ones.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.internal import enum_type_wrapper

PROTOBUF_CONTENT_TYPE = "application/x-protobuf"

_F = descriptor_pb2.FieldDescriptorProto

_STATUS_CODES = (
    "OK",
    "CANCELLED",
    "UNKNOWN",
    "INVALID_ARGUMENT",
    "DEADLINE_EXCEEDED",
    "NOT_FOUND",
    "ALREADY_EXISTS",
    "PERMISSION_DENIED",
    "RESOURCE_EXHAUSTED",
    "FAILED_PRECONDITION",
    "ABORTED",
    "OUT_OF_RANGE",
    "UNIMPLEMENTED",
    "INTERNAL",
    "UNAVAILABLE",
    "DATA_LOSS",
    "UNAUTHENTICATED",
)


def _add_field(message, name: str, number: int, kind: int, type_name: str | None = None, repeated: bool = False):
    field = message.field.add(
        name=name,
        number=number,
        type=kind,
        label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
    )
    if type_name:
        field.type_name = type_name
    return field


def _status_file() -> descriptor_pb2.FileDescriptorProto:
    fd = descriptor_pb2.FileDescriptorProto(
        name="griot/status/status.proto",
        package="griot.status",
        syntax="proto2",
    )

    code = fd.enum_type.add(name="Code")
    for number, name in enumerate(_STATUS_CODES):
        code.value.add(name=name, number=number)

    status = fd.message_type.add(name="Status")
    _add_field(status, "code", 1, _F.TYPE_ENUM, ".griot.status.Code")
    _add_field(status, "message", 2, _F.TYPE_STRING)
    return fd


def _content_file() -> descriptor_pb2.FileDescriptorProto:
    fd = descriptor_pb2.FileDescriptorProto(
        name="griot/content/content.proto",
        package="griot.content",
        syntax="proto2",
    )

    hash_func = fd.enum_type.add(name="HashFunc")
    hash_func.value.add(name="SHA256", number=0)

    checksum = fd.message_type.add(name="Checksum")
    _add_field(checksum, "hash_func", 1, _F.TYPE_ENUM, ".griot.content.HashFunc")
    _add_field(checksum, "hash", 2, _F.TYPE_BYTES)

    media_type = fd.message_type.add(name="MediaType")
    _add_field(media_type, "type", 1, _F.TYPE_STRING)
    _add_field(media_type, "subtype", 2, _F.TYPE_STRING)
    entry = media_type.nested_type.add(name="ParametersEntry")
    entry.options.map_entry = True
    _add_field(entry, "key", 1, _F.TYPE_STRING)
    _add_field(entry, "value", 2, _F.TYPE_STRING)
    _add_field(
        media_type,
        "parameters",
        3,
        _F.TYPE_MESSAGE,
        ".griot.content.MediaType.ParametersEntry",
        repeated=True,
    )

    metadata = fd.message_type.add(name="Metadata")
    _add_field(metadata, "name", 1, _F.TYPE_STRING)
    _add_field(metadata, "media_type", 2, _F.TYPE_MESSAGE, ".griot.content.MediaType")
    _add_field(metadata, "checksum", 3, _F.TYPE_MESSAGE, ".griot.content.Checksum")

    content_id = fd.message_type.add(name="ContentId")
    _add_field(content_id, "value", 1, _F.TYPE_STRING)

    upload_response = fd.message_type.add(name="UploadContentV1Response")
    _add_field(upload_response, "id", 1, _F.TYPE_MESSAGE, ".griot.content.ContentId")
    return fd


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_status_file().SerializeToString())
_pool.AddSerializedFile(_content_file().SerializeToString())


def _message(full_name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(full_name))


Code = enum_type_wrapper.EnumTypeWrapper(_pool.FindEnumTypeByName("griot.status.Code"))
Status = _message("griot.status.Status")

HashFunc = enum_type_wrapper.EnumTypeWrapper(_pool.FindEnumTypeByName("griot.content.HashFunc"))
Checksum = _message("griot.content.Checksum")
MediaType = _message("griot.content.MediaType")
Metadata = _message("griot.content.Metadata")
ContentId = _message("griot.content.ContentId")
UploadContentV1Response = _message("griot.content.UploadContentV1Response")


def marshal(message) -> bytes:
    return message.SerializeToString()


def unmarshal(data: bytes, message_cls):
    message = message_cls()
    message.ParseFromString(data)
    return message
