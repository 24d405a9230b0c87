"""Tests for batch name resolution."""

import pytest
from google.protobuf import descriptor_pb2, struct_pb2
from protobuilders import FieldProto, catalog_file, options_file, proto3_file

from protoql.loader import BatchResolver
from protoql.loader.resolver import DESCRIPTOR_PROTO_NAME


class TestNameIndex:
    """Lookups by fully-qualified name."""

    def test_finds_top_level_and_nested_messages(self) -> None:
        """Nested types are indexed under their parent's name."""
        resolver = BatchResolver([catalog_file()])

        assert resolver.find_message("shop.v1.Item") is not None
        assert resolver.find_message(".shop.v1.Item.AttributesEntry") is not None
        assert resolver.find_message("shop.v1.Missing") is None

    def test_finds_top_level_and_nested_enums(self) -> None:
        """Enums declared in messages are indexed under the message."""
        resolver = BatchResolver([catalog_file()])

        assert resolver.find_enum(".shop.v1.Kind") is not None
        assert resolver.find_enum("shop.v1.Item.State") is not None

    def test_kind_of(self) -> None:
        """Referenced names resolve to message or enum kinds."""
        resolver = BatchResolver([catalog_file()])

        assert resolver.kind_of(".shop.v1.Item") == FieldProto.TYPE_MESSAGE
        assert resolver.kind_of(".shop.v1.Kind") == FieldProto.TYPE_ENUM
        assert resolver.kind_of(".nowhere.Thing") is None

    def test_map_entry_only_matches_synthetic_entries(self) -> None:
        """Ordinary messages are not map entries."""
        resolver = BatchResolver([catalog_file()])

        assert resolver.map_entry(".shop.v1.Item.AttributesEntry") is not None
        assert resolver.map_entry(".shop.v1.Item") is None

    def test_duplicate_file_names_keep_first(self) -> None:
        """A file listed twice is indexed once."""
        first = proto3_file("same.proto", package="first")
        second = proto3_file("same.proto", package="second")

        resolver = BatchResolver([first, second])

        assert resolver.file_names == ["same.proto"]


class TestOptionsPool:
    """Re-reading options with batch extensions."""

    def test_pool_contains_descriptor_proto(self) -> None:
        """The builtin descriptor.proto is always available."""
        resolver = BatchResolver([])

        assert resolver.pool.FindFileByName(DESCRIPTOR_PROTO_NAME) is not None

    def test_file_with_missing_import_is_skipped(self) -> None:
        """Files whose imports are absent stay out of the pool."""
        resolver = BatchResolver([catalog_file(), options_file()])

        assert resolver.pool.FindFileByName("acme/options.proto") is not None
        with pytest.raises(KeyError):
            resolver.pool.FindFileByName("catalog.proto")
        assert resolver.find_message("shop.v1.Item") is not None

    def test_resolve_options_without_matching_class_returns_input(self) -> None:
        """Options types outside the pool come back unchanged."""
        resolver = BatchResolver([])
        options = struct_pb2.Struct()

        assert resolver.resolve_options(options) is options

    def test_resolve_options_returns_pool_class(self) -> None:
        """Known options types are re-parsed with the pool's class."""
        resolver = BatchResolver([options_file()])
        options = descriptor_pb2.MessageOptions(deprecated=True)

        resolved = resolver.resolve_options(options)

        assert resolved is not options
        assert resolved.DESCRIPTOR.full_name == "google.protobuf.MessageOptions"
        assert resolved.deprecated is True
