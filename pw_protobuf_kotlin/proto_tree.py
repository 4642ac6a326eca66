# Copyright 2024 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""This module defines data structures for protobuf entities."""

import abc
import collections
import enum
from typing import Callable, Iterator, TypeVar
from typing import cast

from google.protobuf import descriptor_pb2

from pw_protobuf_kotlin.edition_constants import EnumType
from pw_protobuf_kotlin import edition_constants

T = TypeVar('T')  # pylint: disable=invalid-name

# Field numbers used to build descriptor paths for code annotations.
_FILE_MESSAGE_TYPE = 4
_FILE_ENUM_TYPE = 5
_MESSAGE_FIELD = 2
_MESSAGE_NESTED_TYPE = 3
_MESSAGE_ENUM_TYPE = 4
_MESSAGE_ONEOF_DECL = 8
_ENUM_VALUE = 2

_MESSAGE_TYPES = frozenset(
    (
        descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE,
        descriptor_pb2.FieldDescriptorProto.TYPE_GROUP,
    )
)


class ProtoNode(abc.ABC):
    """A ProtoNode represents an entity in a .proto file.

    Nodes form a tree beginning at a top-level (global) scope, descending into a
    hierarchy of .proto packages and the messages and enums defined within them.
    The tree is read-only once build_node_tree() returns.
    """

    class Type(enum.Enum):
        """The type of a ProtoNode.

        PACKAGE maps to a Kotlin package.
        MESSAGE maps to a Kotlin class with a nested Builder.
        ENUM maps to a Kotlin enum class.
        """

        PACKAGE = 1
        MESSAGE = 2
        ENUM = 3

    def __init__(
        self,
        name: str,
        index: int = 0,
        source_path: tuple[int, ...] = (),
    ):
        self._name: str = name
        self._index: int = index
        self._source_path: tuple[int, ...] = source_path
        self._children: dict[str, 'ProtoNode'] = collections.OrderedDict()
        self._parent: 'ProtoNode | None' = None

    @abc.abstractmethod
    def type(self) -> 'ProtoNode.Type':
        """The type of the node."""

    def children(self) -> list['ProtoNode']:
        return list(self._children.values())

    def name(self) -> str:
        return self._name

    def index(self) -> int:
        """Position of the node in its parent's list of the same kind."""
        return self._index

    def source_path(self) -> tuple[int, ...]:
        """Path of the node's descriptor within its FileDescriptorProto."""
        return self._source_path

    def proto_path(self) -> str:
        """Fully-qualified package path of the node."""
        path = '.'.join(self._attr_hierarchy(lambda node: node.name(), None))
        return path.lstrip('.')

    def containing_message(self) -> 'ProtoMessage | None':
        """Returns the message this node is nested in, if any."""
        parent = self._parent
        if parent is not None and parent.type() == ProtoNode.Type.MESSAGE:
            return cast(ProtoMessage, parent)
        return None

    def add_child(self, child: 'ProtoNode') -> None:
        """Inserts a new node into the tree as a child of this node.

        Args:
          child: The node to insert.

        Raises:
          ValueError: This node does not allow nesting the given type of child.
        """
        if not self._supports_child(child):
            raise ValueError(
                'Invalid child %s for node of type %s'
                % (child.type(), self.type())
            )

        # pylint: disable=protected-access
        if child._parent is not None:
            del child._parent._children[child.name()]

        child._parent = self
        self._children[child.name()] = child
        # pylint: enable=protected-access

    def find(self, path: str) -> 'ProtoNode | None':
        """Finds a node within this node's subtree."""
        node = self

        # pylint: disable=protected-access
        for section in path.split('.'):
            child = node._children.get(section)
            if child is None:
                return None
            node = child
        # pylint: enable=protected-access

        return node

    def parent(self) -> 'ProtoNode | None':
        return self._parent

    def _attr_hierarchy(
        self,
        attr_accessor: Callable[['ProtoNode'], T],
        root: 'ProtoNode | None',
    ) -> Iterator[T]:
        """Fetches node attributes at each level of the tree from the root.

        Args:
          attr_accessor: Function which extracts attributes from a ProtoNode.
          root: The node at which to terminate.

        Returns:
          An iterator to a list of the selected attributes from the root to the
          current node.
        """
        hierarchy = []
        node: 'ProtoNode | None' = self
        while node is not None and node != root:
            hierarchy.append(attr_accessor(node))
            node = node.parent()
        return reversed(hierarchy)

    @abc.abstractmethod
    def _supports_child(self, child: 'ProtoNode') -> bool:
        """Returns True if child is a valid child type for the current node."""


class ProtoPackage(ProtoNode):
    """A protobuf package."""

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.PACKAGE

    def _supports_child(self, child: ProtoNode) -> bool:
        return True


class ProtoEnumValue:
    """A single declared value of a protobuf enum."""

    def __init__(
        self,
        name: str,
        number: int,
        index: int,
        deprecated: bool = False,
        source_path: tuple[int, ...] = (),
    ):
        self._name = name
        self._number = number
        self._index = index
        self._deprecated = deprecated
        self._source_path = source_path

    def name(self) -> str:
        return self._name

    def number(self) -> int:
        return self._number

    def index(self) -> int:
        """Declaration index of the value within its enum."""
        return self._index

    def deprecated(self) -> bool:
        return self._deprecated

    def source_path(self) -> tuple[int, ...]:
        return self._source_path

    def __repr__(self) -> str:
        return f'ProtoEnumValue({self._name}={self._number}, #{self._index})'


class ProtoEnum(ProtoNode):
    """Representation of an enum in a .proto file."""

    def __init__(
        self,
        name: str,
        index: int = 0,
        source_path: tuple[int, ...] = (),
        is_open: bool = False,
        deprecated: bool = False,
    ):
        super().__init__(name, index, source_path)
        self._values: list[ProtoEnumValue] = []
        self._is_open = is_open
        self._deprecated = deprecated

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.ENUM

    def values(self) -> list[ProtoEnumValue]:
        return list(self._values)

    def add_value(
        self, name: str, number: int, deprecated: bool = False
    ) -> ProtoEnumValue:
        index = len(self._values)
        value = ProtoEnumValue(
            name,
            number,
            index,
            deprecated,
            self.source_path() + (_ENUM_VALUE, index),
        )
        self._values.append(value)
        return value

    def is_open(self) -> bool:
        """True if unknown numbers must round-trip through UNRECOGNIZED."""
        return self._is_open

    def deprecated(self) -> bool:
        return self._deprecated

    def _supports_child(self, child: ProtoNode) -> bool:
        # Enums cannot have nested children.
        return False


class ProtoOneof:
    """A oneof group declared in a message."""

    def __init__(self, name: str, source_path: tuple[int, ...]):
        self._name = name
        self._source_path = source_path

    def name(self) -> str:
        return self._name

    def source_path(self) -> tuple[int, ...]:
        return self._source_path

    def storage_name(self) -> str:
        """Name of the oneof's value slot, e.g. value_."""
        return ProtoMessageField.lower_camel_case(self._name) + '_'

    def case_name(self) -> str:
        """Name of the oneof's discriminator, e.g. valueCase_."""
        return ProtoMessageField.lower_camel_case(self._name) + 'Case_'

    def capitalized_name(self) -> str:
        return ProtoMessageField.upper_camel_case(self._name)


class ProtoMessage(ProtoNode):
    """Representation of a message in a .proto file."""

    def __init__(
        self,
        name: str,
        index: int = 0,
        source_path: tuple[int, ...] = (),
        no_standard_descriptor_accessor: bool = False,
    ):
        super().__init__(name, index, source_path)
        self._fields: list['ProtoMessageField'] = []
        self._oneofs: list[ProtoOneof] = []
        self._no_standard_descriptor_accessor = no_standard_descriptor_accessor

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.MESSAGE

    def fields(self) -> list['ProtoMessageField']:
        return list(self._fields)

    def add_field(self, field: 'ProtoMessageField') -> None:
        # pylint: disable=protected-access
        field._message = self
        # pylint: enable=protected-access
        self._fields.append(field)

    def oneofs(self) -> list[ProtoOneof]:
        """Real (non-synthetic) oneofs, in declaration order."""
        return list(self._oneofs)

    def add_oneof(self, oneof: ProtoOneof) -> None:
        self._oneofs.append(oneof)

    def no_standard_descriptor_accessor(self) -> bool:
        return self._no_standard_descriptor_accessor

    def _supports_child(self, child: ProtoNode) -> bool:
        return (
            child.type() == self.Type.ENUM or child.type() == self.Type.MESSAGE
        )


# This class is not a node and does not appear in the proto tree.
# Fields belong to proto messages and are processed separately.
class ProtoMessageField:
    """Representation of a field within a protobuf message."""

    def __init__(
        self,
        field_name: str,
        field_number: int,
        field_type: int,
        repeated: bool = False,
        oneof: ProtoOneof | None = None,
        index: int = 0,
        type_name: str = '',
        source_path: tuple[int, ...] = (),
        deprecated: bool = False,
    ):
        self._field_name = field_name
        self._number: int = field_number
        self._type: int = field_type
        self._repeated: bool = repeated
        self._oneof: ProtoOneof | None = oneof
        self._index: int = index
        self._type_name: str = type_name
        self._source_path: tuple[int, ...] = source_path
        self._deprecated: bool = deprecated
        self._message: ProtoMessage | None = None

    def field_name(self) -> str:
        """The field's name as declared in the .proto file."""
        return self._field_name

    def name(self) -> str:
        return self.lower_camel_case(self._field_name)

    def capitalized_name(self) -> str:
        return self.upper_camel_case(self._field_name)

    def enum_name(self) -> str:
        return self.upper_snake_case(self._field_name)

    def number(self) -> int:
        return self._number

    def type(self) -> int:
        return self._type

    def type_name(self) -> str:
        """Fully-qualified proto name of the field's type, e.g. .pkg.Msg."""
        return self._type_name

    def is_repeated(self) -> bool:
        return self._repeated

    def is_message(self) -> bool:
        return self._type in _MESSAGE_TYPES

    def is_group(self) -> bool:
        return self._type == descriptor_pb2.FieldDescriptorProto.TYPE_GROUP

    def oneof(self) -> ProtoOneof | None:
        return self._oneof

    def deprecated(self) -> bool:
        return self._deprecated

    def message(self) -> ProtoMessage | None:
        """The message declaring this field."""
        return self._message

    def index(self) -> int:
        return self._index

    def source_path(self) -> tuple[int, ...]:
        return self._source_path

    @staticmethod
    def lower_camel_case(field_name: str) -> str:
        """Converts a field name to lowerCamelCase."""
        return ProtoMessageField._underscores_to_camel_case(field_name, False)

    @staticmethod
    def upper_camel_case(field_name: str) -> str:
        """Converts a field name to UpperCamelCase."""
        return ProtoMessageField._underscores_to_camel_case(field_name, True)

    @staticmethod
    def upper_snake_case(field_name: str) -> str:
        """Converts a field name to UPPER_SNAKE_CASE."""
        return field_name.upper()

    @staticmethod
    def _underscores_to_camel_case(name: str, capitalize_first: bool) -> str:
        # Letters following an underscore or a digit are capitalized; the
        # underscores themselves are dropped.
        result = []
        capitalize_next = capitalize_first
        for i, char in enumerate(name):
            if 'a' <= char <= 'z':
                result.append(char.upper() if capitalize_next else char)
                capitalize_next = False
            elif 'A' <= char <= 'Z':
                if i == 0 and not capitalize_first:
                    result.append(char.lower())
                else:
                    result.append(char)
                capitalize_next = False
            elif '0' <= char <= '9':
                result.append(char)
                capitalize_next = True
            else:
                capitalize_next = True
        return ''.join(result)


def _features_enum_type(options, inherited: EnumType) -> EnumType:
    """Applies an enum_type feature override from an options message."""
    if options.HasField('features') and options.features.HasField(
        'enum_type'
    ):
        return EnumType(options.features.enum_type)
    return inherited


def _file_enum_type(proto_file) -> EnumType:
    """Resolves the enum_type feature at file scope."""
    if proto_file.syntax == 'proto3':
        return EnumType.OPEN
    if proto_file.syntax == 'editions':
        default = edition_constants.default_enum_type(proto_file.edition)
        return _features_enum_type(proto_file.options, default)
    return EnumType.CLOSED


def _add_enum_values(enum_node: ProtoNode, proto_enum) -> None:
    """Adds values from a protobuf enum descriptor to an enum node."""
    assert enum_node.type() == ProtoNode.Type.ENUM
    enum_node = cast(ProtoEnum, enum_node)

    for value in proto_enum.value:
        enum_node.add_value(value.name, value.number, value.options.deprecated)


def _add_message_fields(message: ProtoNode, proto_message) -> None:
    """Adds fields and oneofs from a message descriptor to a message node."""
    assert message.type() == ProtoNode.Type.MESSAGE
    message = cast(ProtoMessage, message)

    # proto3 optional fields live in synthetic oneofs, which are not real
    # unions and are presented as plain singular fields.
    synthetic = {
        field.oneof_index
        for field in proto_message.field
        if field.proto3_optional and field.HasField('oneof_index')
    }

    oneofs: dict[int, ProtoOneof] = {}
    for index, proto_oneof in enumerate(proto_message.oneof_decl):
        if index in synthetic:
            continue
        oneof = ProtoOneof(
            proto_oneof.name,
            message.source_path() + (_MESSAGE_ONEOF_DECL, index),
        )
        oneofs[index] = oneof
        message.add_oneof(oneof)

    for index, field in enumerate(proto_message.field):
        oneof = None
        if field.HasField('oneof_index'):
            oneof = oneofs.get(field.oneof_index)

        repeated = (
            field.label == descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED
        )
        message.add_field(
            ProtoMessageField(
                field.name,
                field.number,
                field.type,
                repeated,
                oneof,
                index,
                field.type_name,
                message.source_path() + (_MESSAGE_FIELD, index),
                field.options.deprecated,
            )
        )


def _populate_fields(proto_file, package_root: ProtoNode) -> None:
    """Traverses a proto file, adding all message and enum fields to a tree."""

    def populate_message(node, message):
        """Recursively populates nested messages and enums."""
        _add_message_fields(node, message)

        for proto_enum in message.enum_type:
            _add_enum_values(node.find(proto_enum.name), proto_enum)
        for msg in message.nested_type:
            populate_message(node.find(msg.name), msg)

    # Iterate through the proto file, populating top-level objects.
    for proto_enum in proto_file.enum_type:
        enum_node = package_root.find(proto_enum.name)
        assert enum_node is not None
        _add_enum_values(enum_node, proto_enum)

    for message in proto_file.message_type:
        populate_message(package_root.find(message.name), message)


def _build_hierarchy(proto_file):
    """Creates a ProtoNode hierarchy from a proto file descriptor."""

    package_root = ProtoPackage('')

    if proto_file.package:
        for part in proto_file.package.split('.'):
            package = ProtoPackage(part)
            package_root.add_child(package)
            package_root = package

    def build_enum(proto_enum, index, path, enum_type):
        enum_type = _features_enum_type(proto_enum.options, enum_type)
        return ProtoEnum(
            proto_enum.name,
            index,
            path,
            is_open=enum_type == EnumType.OPEN,
            deprecated=proto_enum.options.deprecated,
        )

    def build_message_subtree(proto_message, index, path, enum_type):
        node = ProtoMessage(
            proto_message.name,
            index,
            path,
            proto_message.options.no_standard_descriptor_accessor,
        )
        enum_type = _features_enum_type(proto_message.options, enum_type)
        for i, proto_enum in enumerate(proto_message.enum_type):
            node.add_child(
                build_enum(
                    proto_enum, i, path + (_MESSAGE_ENUM_TYPE, i), enum_type
                )
            )
        for i, submessage in enumerate(proto_message.nested_type):
            node.add_child(
                build_message_subtree(
                    submessage, i, path + (_MESSAGE_NESTED_TYPE, i), enum_type
                )
            )

        return node

    file_enum_type = _file_enum_type(proto_file)

    for i, proto_enum in enumerate(proto_file.enum_type):
        package_root.add_child(
            build_enum(proto_enum, i, (_FILE_ENUM_TYPE, i), file_enum_type)
        )

    for i, message in enumerate(proto_file.message_type):
        package_root.add_child(
            build_message_subtree(
                message, i, (_FILE_MESSAGE_TYPE, i), file_enum_type
            )
        )

    return package_root


def build_node_tree(file_descriptor_proto) -> ProtoNode:
    """Constructs a tree of proto nodes from a file descriptor.

    Returns the node representing the file's package. Field types are kept as
    fully-qualified names and resolved across files by ClassNameResolver.
    """
    package_root = _build_hierarchy(file_descriptor_proto)
    _populate_fields(file_descriptor_proto, package_root)
    return package_root
