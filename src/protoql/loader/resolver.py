"""Batch-scoped name resolution for descriptors and custom options.

A BatchResolver is built once per load from every file of the batch plus the
files they import. It answers two questions:

- "what is the message or enum called X?" through a fully-qualified name
  index over the raw descriptor protos (map entry detection, unresolved
  field kinds);
- "which extensions are set on this options message?" through a private
  DescriptorPool. Options arrive as descriptor_pb2 messages in which custom
  extensions are unknown fields; re-parsing their bytes with the pool's
  options classes turns them into known extension fields.

Nothing here mutates the default descriptor pool, so loading the same file
twice in one process never conflicts.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from protoql.store.models import join_id

if TYPE_CHECKING:
    from google.protobuf.message import Message

logger = structlog.get_logger()

DESCRIPTOR_PROTO_NAME = "google/protobuf/descriptor.proto"

FieldType = descriptor_pb2.FieldDescriptorProto.Type


def strip_dot(type_name: str) -> str | None:
    """Fully-qualified name without its leading dot; None for an empty reference."""
    if not type_name:
        return None
    return type_name[1:] if type_name.startswith(".") else type_name


def _builtin_descriptor_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    descriptor_pb2.DESCRIPTOR.CopyToProto(proto)
    return proto


class BatchResolver:
    """Name index and options pool for one load batch."""

    def __init__(self, files: Iterable[descriptor_pb2.FileDescriptorProto]) -> None:
        self._files: dict[str, descriptor_pb2.FileDescriptorProto] = {}
        for file in files:
            self._files.setdefault(file.name, file)

        self.messages: dict[str, descriptor_pb2.DescriptorProto] = {}
        self.enums: dict[str, descriptor_pb2.EnumDescriptorProto] = {}
        self._delimited_files: set[str] = set()
        for file in self._files.values():
            self._index_file(file)

        self.pool = descriptor_pool.DescriptorPool()
        self._pooled: list[str] = []
        self._options_classes: dict[str, type[Message]] = {}
        self._build_pool()

    @property
    def file_names(self) -> list[str]:
        return list(self._files)

    def _index_file(self, file: descriptor_pb2.FileDescriptorProto) -> None:
        if file.options.features.message_encoding == descriptor_pb2.FeatureSet.DELIMITED:
            self._delimited_files.add(file.name)
        for message in file.message_type:
            self._index_message(message, file.package)
        for enum in file.enum_type:
            self.enums[join_id(file.package, enum.name)] = enum

    def _index_message(self, message: descriptor_pb2.DescriptorProto, scope: str) -> None:
        full_name = join_id(scope, message.name)
        self.messages[full_name] = message
        for nested in message.nested_type:
            self._index_message(nested, full_name)
        for enum in message.enum_type:
            self.enums[join_id(full_name, enum.name)] = enum

    def _build_pool(self) -> None:
        available = dict(self._files)
        available.setdefault(DESCRIPTOR_PROTO_NAME, _builtin_descriptor_file())

        state: dict[str, bool] = {}

        def add(name: str) -> bool:
            if name in state:
                return state[name]
            file = available.get(name)
            if file is None:
                logger.debug("options_pool_missing_file", file=name)
                state[name] = False
                return False
            # Mark before recursing; protoc rejects import cycles upstream.
            state[name] = False
            if not all(add(dep) for dep in file.dependency):
                logger.debug("options_pool_skipped_file", file=name, reason="missing dependency")
                return False
            try:
                self.pool.AddSerializedFile(file.SerializeToString())
            except (TypeError, ValueError, KeyError) as e:
                logger.warning("options_pool_rejected_file", file=name, error=str(e))
                return False
            state[name] = True
            self._pooled.append(name)
            return True

        for name in available:
            add(name)

        if not state.get(DESCRIPTOR_PROTO_NAME):
            return
        try:
            classes = message_factory.GetMessageClassesForFiles(self._pooled, self.pool)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("options_pool_classes_failed", error=str(e))
            return
        self._options_classes = {
            name: cls for name, cls in classes.items() if name.startswith("google.protobuf.")
        }

    def find_message(self, type_name: str) -> descriptor_pb2.DescriptorProto | None:
        return self.messages.get(strip_dot(type_name))

    def find_enum(self, type_name: str) -> descriptor_pb2.EnumDescriptorProto | None:
        return self.enums.get(strip_dot(type_name))

    def kind_of(self, type_name: str) -> int | None:
        """Wire type for a referenced type name, when the field omits it."""
        if self.find_message(type_name) is not None:
            return FieldType.TYPE_MESSAGE
        if self.find_enum(type_name) is not None:
            return FieldType.TYPE_ENUM
        return None

    def is_delimited(self, field_proto: descriptor_pb2.FieldDescriptorProto, path: str | None) -> bool:
        """Whether an editions message field is encoded as a group.

        The field's own message_encoding feature wins over its file's default.
        """
        features = field_proto.options.features
        if features.HasField("message_encoding"):
            return features.message_encoding == descriptor_pb2.FeatureSet.DELIMITED
        return path in self._delimited_files

    def map_entry(self, type_name: str) -> descriptor_pb2.DescriptorProto | None:
        """The synthetic map entry message named type_name, if it is one."""
        message = self.find_message(type_name)
        if message is not None and message.options.map_entry:
            return message
        return None

    def resolve_options(self, options: Message) -> Message:
        """Re-read options so extensions known to the batch become fields.

        Falls back to the given message when the pool has no matching
        options class or the bytes cannot be re-parsed.
        """
        cls = self._options_classes.get(options.DESCRIPTOR.full_name)
        if cls is None:
            return options
        try:
            return cls.FromString(options.SerializeToString())
        except DecodeError as e:
            logger.debug(
                "options_resolve_failed",
                options_type=options.DESCRIPTOR.full_name,
                error=str(e),
            )
            return options
