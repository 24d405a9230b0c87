"""Descriptor flattening engine.

Walks compiled FileDescriptorProto trees depth first and queues one row per
file, import, message, oneof, field, enum, enum value, service, method and
extension into a ChannelGroup. The walk threads its context (root file
path, enclosing scope, parent message) through explicit parameters.

Emission order follows declaration order: for a file its row, its imports,
then messages, enums, services and extensions; for a message its row, its
oneofs, its fields, then nested messages, nested enums and nested
extensions. Identifiers depend only on names, never on positions, so
identical input always produces identical keys.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from google.protobuf import descriptor_pb2
from sqlalchemy.exc import SQLAlchemyError

from protoql.core.errors import FlushError, LoadError, MalformedDescriptorError
from protoql.core.logging import clear_batch_id, set_batch_id
from protoql.loader.channels import ChannelGroup, open_channels
from protoql.loader.options import encode_options
from protoql.loader.resolver import BatchResolver, strip_dot
from protoql.store.models import join_id

if TYPE_CHECKING:
    from protoql.store.database import Database

logger = structlog.get_logger()

FieldProto = descriptor_pb2.FieldDescriptorProto

_LABELS = {
    FieldProto.LABEL_OPTIONAL: "optional",
    FieldProto.LABEL_REQUIRED: "required",
    FieldProto.LABEL_REPEATED: "repeated",
}

_REFERENCE_KINDS = frozenset({FieldProto.TYPE_MESSAGE, FieldProto.TYPE_GROUP, FieldProto.TYPE_ENUM})


@dataclass
class LoadStats:
    """Outcome of one load_batch call."""

    files: list[str] = field(default_factory=list)
    rows: dict[str, int] = field(default_factory=dict)
    elapsed_sec: float = 0.0

    @property
    def total_rows(self) -> int:
        return sum(self.rows.values())


def syntax_of(file: descriptor_pb2.FileDescriptorProto) -> str:
    """proto2, proto3 or editions; an unset syntax means proto2."""
    if file.syntax == "editions":
        return "editions"
    if file.syntax == "proto3":
        return "proto3"
    return "proto2"


def kind_name(kind: int) -> str:
    """Lowercase wire kind, e.g. TYPE_SFIXED64 -> sfixed64."""
    return FieldProto.Type.Name(kind).removeprefix("TYPE_").lower()


def json_name_of(name: str) -> str:
    """Default JSON name: drop underscores, upper-case the letter after each."""
    parts: list[str] = []
    capitalize = False
    for ch in name:
        if ch == "_":
            capitalize = True
        elif capitalize:
            parts.append(ch.upper())
            capitalize = False
        else:
            parts.append(ch)
    return "".join(parts)


class DescriptorLoader:
    """Flattens batches of compiled descriptors into the relational store."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def load_batch(
        self,
        files: Sequence[descriptor_pb2.FileDescriptorProto],
        dependencies: Sequence[descriptor_pb2.FileDescriptorProto] = (),
        resolver: BatchResolver | None = None,
    ) -> LoadStats:
        """Load every file of the batch, or nothing at all.

        Args:
            files: Files to flatten, in the order their rows are emitted.
            dependencies: Imported files that are not loaded themselves but
                may declare option extensions used by the batch.
            resolver: Prebuilt resolver; by default one is built from
                dependencies + files and discarded afterwards.

        Raises:
            RowEmissionError: A row was rejected while queuing.
            MalformedDescriptorError: The descriptor tree is inconsistent.
            FlushError: The store rejected the batch at commit.
        """
        if not files:
            return LoadStats()

        batch_id = set_batch_id()
        start = time.perf_counter()
        names = [f.name for f in files]
        log = logger.bind(files=len(files))
        log.info("batch_load_started")

        if resolver is None:
            resolver = BatchResolver([*dependencies, *files])

        try:
            with open_channels(self.database) as channels:
                for file in files:
                    self._load_file(channels, file, resolver)
                    log.debug("file_queued", file=file.name)
                counts = channels.flush()
        except LoadError as e:
            log.error("batch_load_failed", error=e.error_name, message=e.message, **e.details)
            raise
        except SQLAlchemyError as e:
            log.error("batch_commit_failed", error=str(e))
            raise FlushError.rejected("commit", str(e), names) from e
        finally:
            clear_batch_id()

        stats = LoadStats(files=names, rows=counts, elapsed_sec=time.perf_counter() - start)
        log.info(
            "batch_load_completed",
            batch_id=batch_id,
            rows=stats.total_rows,
            tables=counts,
            elapsed_sec=round(stats.elapsed_sec, 3),
        )
        return stats

    def _load_file(
        self,
        channels: ChannelGroup,
        file: descriptor_pb2.FileDescriptorProto,
        resolver: BatchResolver,
    ) -> None:
        path = file.name
        syntax = syntax_of(file)

        channels.files.append(
            source_file=path,
            name=path,
            package=file.package,
            syntax=syntax,
            options=self._options(file, resolver),
        )

        public = set(file.public_dependency)
        weak = set(file.weak_dependency)
        for i, dependency in enumerate(file.dependency):
            channels.dependencies.append(
                source_file=path,
                file=path,
                dependency=dependency,
                is_public=i in public,
                is_weak=i in weak,
            )

        for message in file.message_type:
            self._load_message(channels, message, path, syntax, file.package, None, resolver)
        for enum in file.enum_type:
            self._load_enum(channels, enum, path, file.package, None, resolver)
        for service in file.service:
            self._load_service(channels, service, path, file.package, resolver)
        for extension in file.extension:
            self._load_extension(channels, extension, path, file.package, resolver)

    def _load_message(
        self,
        channels: ChannelGroup,
        message: descriptor_pb2.DescriptorProto,
        path: str,
        syntax: str,
        scope: str,
        parent: str | None,
        resolver: BatchResolver,
    ) -> None:
        full_name = join_id(scope, message.name)

        channels.messages.append(
            source_file=path,
            full_name=full_name,
            name=message.name,
            file=path,
            parent_message=parent,
            is_map_entry=message.options.map_entry,
            options=self._options(message, resolver),
        )

        # Synthetic oneofs only track proto3 `optional` presence
        synthetic = {
            f.oneof_index for f in message.field if f.HasField("oneof_index") and f.proto3_optional
        }
        oneof_ids: dict[int, str] = {}
        for index, oneof in enumerate(message.oneof_decl):
            if index in synthetic:
                continue
            oneof_id = join_id(full_name, oneof.name)
            oneof_ids[index] = oneof_id
            channels.oneofs.append(
                source_file=path,
                id=oneof_id,
                name=oneof.name,
                message=full_name,
                options=self._options(oneof, resolver),
            )

        for field_proto in message.field:
            self._load_field(
                channels, field_proto, message, full_name, path, syntax, oneof_ids, resolver
            )

        for nested in message.nested_type:
            self._load_message(channels, nested, path, syntax, full_name, full_name, resolver)
        for enum in message.enum_type:
            self._load_enum(channels, enum, path, full_name, full_name, resolver)
        for extension in message.extension:
            self._load_extension(channels, extension, path, full_name, resolver)

    def _load_field(
        self,
        channels: ChannelGroup,
        field_proto: descriptor_pb2.FieldDescriptorProto,
        message: descriptor_pb2.DescriptorProto,
        message_name: str,
        path: str,
        syntax: str,
        oneof_ids: dict[int, str],
        resolver: BatchResolver,
    ) -> None:
        field_id = join_id(message_name, field_proto.name)
        kind = self._kind(field_proto, resolver, path)
        label = _LABELS.get(field_proto.label)
        in_oneof = field_proto.HasField("oneof_index")

        map_key_type: str | None = None
        map_value_type: str | None = None
        entry = None
        if field_proto.label == FieldProto.LABEL_REPEATED and kind == FieldProto.TYPE_MESSAGE:
            entry = resolver.map_entry(field_proto.type_name)
        if entry is not None:
            map_key_type, map_value_type = self._map_types(entry, resolver)

        is_optional = field_proto.proto3_optional or (
            syntax == "proto2" and field_proto.label == FieldProto.LABEL_OPTIONAL and not in_oneof
        )

        channels.fields.append(
            source_file=path,
            id=field_id,
            name=field_proto.name,
            number=field_proto.number,
            message=message_name,
            type=kind_name(kind) if kind else "unknown",
            type_name=strip_dot(field_proto.type_name) if kind in _REFERENCE_KINDS else None,
            label=label,
            is_repeated=field_proto.label == FieldProto.LABEL_REPEATED,
            is_optional=is_optional,
            is_map=entry is not None,
            map_key_type=map_key_type,
            map_value_type=map_value_type,
            default_value=field_proto.default_value if field_proto.HasField("default_value") else None,
            json_name=field_proto.json_name if field_proto.HasField("json_name") else json_name_of(field_proto.name),
            options=self._options(field_proto, resolver),
        )

        if not in_oneof:
            return
        index = field_proto.oneof_index
        if not 0 <= index < len(message.oneof_decl):
            raise MalformedDescriptorError.dangling_oneof(field_id, index, path)
        oneof_id = oneof_ids.get(index)
        if oneof_id is not None:
            channels.oneof_fields.append(source_file=path, oneof_id=oneof_id, field_id=field_id)

    def _map_types(
        self, entry: descriptor_pb2.DescriptorProto, resolver: BatchResolver
    ) -> tuple[str | None, str | None]:
        by_number = {f.number: f for f in entry.field}
        key, value = by_number.get(1), by_number.get(2)
        key_type = kind_name(self._kind(key, resolver)) if key is not None else None
        value_type: str | None = None
        if value is not None:
            value_kind = self._kind(value, resolver)
            if value_kind in _REFERENCE_KINDS:
                value_type = strip_dot(value.type_name)
            elif value_kind:
                value_type = kind_name(value_kind)
        return key_type, value_type

    def _load_enum(
        self,
        channels: ChannelGroup,
        enum: descriptor_pb2.EnumDescriptorProto,
        path: str,
        scope: str,
        parent: str | None,
        resolver: BatchResolver,
    ) -> None:
        full_name = join_id(scope, enum.name)

        channels.enums.append(
            source_file=path,
            full_name=full_name,
            name=enum.name,
            file=path,
            parent_message=parent,
            options=self._options(enum, resolver),
        )

        for value in enum.value:
            channels.enum_values.append(
                source_file=path,
                id=join_id(full_name, value.name),
                name=value.name,
                number=value.number,
                enum=full_name,
                options=self._options(value, resolver),
            )

    def _load_service(
        self,
        channels: ChannelGroup,
        service: descriptor_pb2.ServiceDescriptorProto,
        path: str,
        scope: str,
        resolver: BatchResolver,
    ) -> None:
        full_name = join_id(scope, service.name)

        channels.services.append(
            source_file=path,
            full_name=full_name,
            name=service.name,
            file=path,
            options=self._options(service, resolver),
        )

        for method in service.method:
            channels.methods.append(
                source_file=path,
                full_name=join_id(full_name, method.name),
                name=method.name,
                service=full_name,
                input_type=strip_dot(method.input_type),
                output_type=strip_dot(method.output_type),
                client_streaming=method.client_streaming,
                server_streaming=method.server_streaming,
                options=self._options(method, resolver),
            )

    def _load_extension(
        self,
        channels: ChannelGroup,
        extension: descriptor_pb2.FieldDescriptorProto,
        path: str,
        scope: str,
        resolver: BatchResolver,
    ) -> None:
        kind = self._kind(extension, resolver, path)

        channels.extensions.append(
            source_file=path,
            full_name=join_id(scope, extension.name),
            name=extension.name,
            number=extension.number,
            file=path,
            extendee=strip_dot(extension.extendee),
            type=kind_name(kind) if kind else "unknown",
            type_name=strip_dot(extension.type_name) if kind in _REFERENCE_KINDS else None,
            options=self._options(extension, resolver),
        )

    @staticmethod
    def _kind(
        field_proto: descriptor_pb2.FieldDescriptorProto, resolver: BatchResolver, path: str | None = None
    ) -> int | None:
        if field_proto.HasField("type"):
            kind = field_proto.type
        elif field_proto.type_name:
            kind = resolver.kind_of(field_proto.type_name)
        else:
            return None
        if kind == FieldProto.TYPE_MESSAGE and resolver.is_delimited(field_proto, path):
            return FieldProto.TYPE_GROUP
        return kind

    @staticmethod
    def _options(descriptor: Any, resolver: BatchResolver) -> dict[str, Any] | None:
        if not descriptor.HasField("options"):
            return None
        return encode_options(descriptor.options, resolver)
