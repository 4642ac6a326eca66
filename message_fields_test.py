#!/usr/bin/env python3
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
"""Tests for the message-typed field generators."""

from typing import Callable, cast
import unittest

from google.protobuf import descriptor_pb2, text_format

from pw_protobuf_kotlin import message_fields
from pw_protobuf_kotlin.context import CodegenError, Context, GeneratorOptions
from pw_protobuf_kotlin.message_fields import (
    FieldGenerator,
    MessageFieldGenerator,
    MessageOneofFieldGenerator,
    RepeatedMessageFieldGenerator,
)
from pw_protobuf_kotlin.name_resolver import ClassNameResolver
from pw_protobuf_kotlin.output_file import OutputFile
from pw_protobuf_kotlin.presence import PresenceBits
from pw_protobuf_kotlin.proto_tree import (
    ProtoMessage,
    ProtoMessageField,
    build_node_tree,
)

_GARDEN_PROTO = text_format.Parse(
    """
    name: "pw/garden/garden.proto"
    package: "pw.garden"
    syntax: "proto3"
    message_type {
      name: "Plant"
      field {
        name: "soil_type"
        number: 1
        label: LABEL_OPTIONAL
        type: TYPE_MESSAGE
        type_name: ".pw.soil.Soil"
      }
      field {
        name: "leaves"
        number: 2
        label: LABEL_REPEATED
        type: TYPE_MESSAGE
        type_name: ".pw.garden.Plant.Leaf"
      }
      field {
        name: "seed"
        number: 3
        label: LABEL_OPTIONAL
        type: TYPE_MESSAGE
        type_name: ".pw.garden.Plant.Leaf"
        oneof_index: 0
      }
      field {
        name: "height"
        number: 4
        label: LABEL_OPTIONAL
        type: TYPE_UINT32
      }
      field {
        name: "pot"
        number: 5
        label: LABEL_OPTIONAL
        type: TYPE_MESSAGE
        type_name: ".pw.garden.Plant.Leaf"
        options { deprecated: true }
      }
      nested_type { name: "Leaf" }
      oneof_decl { name: "origin" }
    }
    """,
    descriptor_pb2.FileDescriptorProto(),
)


def _render(write: Callable[[OutputFile], None]) -> str:
    output = OutputFile('pw/garden/Garden.kt', _GARDEN_PROTO.name)
    write(output)
    return output.content()


def _function(content: str, name: str) -> str:
    """Extracts a top-level Kotlin function from generated text."""
    start = content.index(f'fun {name}(')
    start = content.rindex('\n', 0, start) + 1
    return content[start : content.index('\n}\n', start) + 3]


class MessageFieldTestBase(unittest.TestCase):
    def setUp(self) -> None:
        package = build_node_tree(_GARDEN_PROTO)
        self._plant = cast(ProtoMessage, package.find('Plant'))
        self._context = Context(
            _GARDEN_PROTO,
            ClassNameResolver([_GARDEN_PROTO]),
            GeneratorOptions(),
        )

    def _field(self, name: str) -> ProtoMessageField:
        for field in self._plant.fields():
            if field.field_name() == name:
                return field
        raise KeyError(name)

    def _generator(
        self, name: str, bits: PresenceBits = PresenceBits(0, 0)
    ) -> FieldGenerator:
        return message_fields.create_field_generator(
            self._field(name), bits, self._context
        )


class CreateFieldGeneratorTest(MessageFieldTestBase):
    """Tests selecting a generator by field shape."""

    def test_shapes(self) -> None:
        self.assertIsInstance(
            self._generator('soil_type'), MessageFieldGenerator
        )
        self.assertIsInstance(
            self._generator('leaves'), RepeatedMessageFieldGenerator
        )
        self.assertIsInstance(
            self._generator('seed'), MessageOneofFieldGenerator
        )

    def test_presence_bit_consumption(self) -> None:
        consumed = {
            name: (
                self._generator(name).num_bits_for_message(),
                self._generator(name).num_bits_for_builder(),
            )
            for name in ('soil_type', 'leaves', 'seed')
        }
        self.assertEqual(
            consumed, {'soil_type': (1, 1), 'leaves': (0, 0), 'seed': (0, 0)}
        )

    def test_non_message_field(self) -> None:
        with self.assertRaises(CodegenError) as context:
            self._generator('height')

        message = context.exception.formatted_message()
        self.assertIn('at pw.garden.Plant', message)
        self.assertIn('in field height', message)

    def test_oneof_generator_requires_oneof(self) -> None:
        with self.assertRaises(CodegenError):
            MessageOneofFieldGenerator(
                self._field('soil_type'), PresenceBits(0, 0), self._context
            )

    def test_wire_tag(self) -> None:
        self.assertEqual(self._generator('soil_type').tag(), (1 << 3) | 2)

        group = ProtoMessageField(
            'result',
            6,
            descriptor_pb2.FieldDescriptorProto.TYPE_GROUP,
            type_name='.pw.garden.Plant.Leaf',
        )
        self.assertEqual(message_fields.wire_tag(group), (6 << 3) | 3)


class SingularMessageFieldTest(MessageFieldTestBase):
    """Tests for fields with an explicit presence bit."""

    def test_types_resolve_through_file_packages(self) -> None:
        content = _render(self._generator('soil_type').generate_members)

        self.assertIn('private var soilType_: pw.soil.Soil? = null\n', content)
        self.assertIn(
            '  return soilType_ ?: pw.soil.Soil.getDefaultInstance()\n',
            content,
        )

    def test_has_uses_message_bit(self) -> None:
        content = _render(
            self._generator('soil_type', PresenceBits(33, 0)).generate_members
        )
        self.assertIn(
            '  return ((bitField1_ and 0x00000002) != 0)\n',
            _function(content, 'hasSoilType'),
        )

    def test_merge_combines_only_present_values(self) -> None:
        content = _render(
            self._generator(
                'soil_type', PresenceBits(3, 5)
            ).generate_builder_members
        )
        merge = _function(content, 'mergeSoilType')

        self.assertIn(
            '    if (((bitField0_ and 0x00000020) != 0) &&\n'
            '        current != null &&\n'
            '        current != pw.soil.Soil.getDefaultInstance()) {\n',
            merge,
        )
        self.assertIn('    nestedBuilder.mergeFrom(value)\n', merge)
        self.assertIn(
            '  bitField0_ = bitField0_ or 0x00000020\n  return this\n', merge
        )

    def test_clear(self) -> None:
        generator = self._generator('soil_type', PresenceBits(3, 5))
        self.assertEqual(
            _render(generator.generate_builder_clear_code),
            'soilType_ = null\n'
            'soilTypeBuilder_?.clear()\n'
            'bitField0_ = bitField0_ and 0x00000020.inv()\n',
        )

    def test_merging_code(self) -> None:
        self.assertEqual(
            _render(self._generator('soil_type').generate_merging_code),
            'if (other.hasSoilType()) {\n'
            '  mergeSoilType(other.getSoilType())\n'
            '}\n',
        )

    def test_building_code_moves_builder_bit_to_message_bit(self) -> None:
        generator = self._generator('soil_type', PresenceBits(3, 5))
        self.assertEqual(
            _render(generator.generate_building_code),
            'if (((from_bitField0_ and 0x00000020) != 0)) {\n'
            '  result.soilType_ = soilTypeBuilder_?.build() ?: soilType_\n'
            '  to_bitField0_ = to_bitField0_ or 0x00000008\n'
            '}\n',
        )

    def test_serialization_is_gated_on_presence(self) -> None:
        generator = self._generator('soil_type')
        content = _render(generator.generate_serialization_code)
        self.assertEqual(
            content,
            'if (((bitField0_ and 0x00000001) != 0)) {\n'
            '  output.writeMessage(1, getSoilType())\n'
            '}\n',
        )

    def test_group_parsing(self) -> None:
        group = ProtoMessageField(
            'result',
            6,
            descriptor_pb2.FieldDescriptorProto.TYPE_GROUP,
            type_name='.pw.garden.Plant.Leaf',
        )
        generator = MessageFieldGenerator(
            group, PresenceBits(0, 0), self._context
        )

        self.assertIn(
            'val parsed = input.readGroup(6, pw.garden.Plant.Leaf.parser(), '
            'extensionRegistry)\n',
            _render(generator.generate_parsing_code),
        )
        self.assertIn(
            '  output.writeGroup(6, getResult())\n',
            _render(generator.generate_serialization_code),
        )

    def test_parsing_merges_repeated_occurrences(self) -> None:
        self.assertEqual(
            _render(self._generator('soil_type').generate_parsing_code),
            'val subBuilder =\n'
            '    if (((bitField0_ and 0x00000001) != 0)) '
            'soilType_?.toBuilder() else null\n'
            'val parsed = input.readMessage(pw.soil.Soil.parser(), '
            'extensionRegistry)\n'
            'if (subBuilder != null) {\n'
            '  subBuilder.mergeFrom(parsed)\n'
            '  soilType_ = subBuilder.buildPartial()\n'
            '} else {\n'
            '  soilType_ = parsed\n'
            '}\n'
            'bitField0_ = bitField0_ or 0x00000001\n',
        )

    def test_equality_compares_presence_first(self) -> None:
        self.assertEqual(
            _render(self._generator('soil_type').generate_equals_code),
            'if (hasSoilType() != other.hasSoilType()) return false\n'
            'if (hasSoilType()) {\n'
            '  if (getSoilType() != other.getSoilType()) return false\n'
            '}\n',
        )

    def test_builder_set_and_clear(self) -> None:
        content = _render(
            self._generator(
                'soil_type', PresenceBits(3, 5)
            ).generate_builder_members
        )

        self.assertIn(
            '  return ((bitField0_ and 0x00000020) != 0)\n',
            _function(content, 'hasSoilType'),
        )
        self.assertIn(
            '    return soilType_ ?: pw.soil.Soil.getDefaultInstance()\n',
            _function(content, 'getSoilType'),
        )
        self.assertEqual(
            _function(content, 'setSoilType'),
            'fun setSoilType(value: pw.soil.Soil): Builder {\n'
            '  val nestedBuilder = soilTypeBuilder_\n'
            '  if (nestedBuilder == null) {\n'
            '    soilType_ = value\n'
            '    onChanged()\n'
            '  } else {\n'
            '    nestedBuilder.setMessage(value)\n'
            '  }\n'
            '  bitField0_ = bitField0_ or 0x00000020\n'
            '  return this\n'
            '}\n',
        )
        self.assertEqual(
            _function(content, 'clearSoilType'),
            'fun clearSoilType(): Builder {\n'
            '  val nestedBuilder = soilTypeBuilder_\n'
            '  if (nestedBuilder == null) {\n'
            '    soilType_ = null\n'
            '    onChanged()\n'
            '  } else {\n'
            '    nestedBuilder.clear()\n'
            '  }\n'
            '  bitField0_ = bitField0_ and 0x00000020.inv()\n'
            '  return this\n'
            '}\n',
        )

    def test_is_initialized(self) -> None:
        generator = self._generator('soil_type')

        self.assertEqual(
            _render(generator.generate_is_initialized_code),
            'if (hasSoilType()) {\n'
            '  if (!getSoilType().isInitialized()) {\n'
            '    memoizedIsInitialized = 0\n'
            '    return false\n'
            '  }\n'
            '}\n',
        )
        output = OutputFile('pw/garden/Garden.kt', _GARDEN_PROTO.name)
        generator.generate_is_initialized_code(output, builder=True)
        self.assertEqual(
            output.content(),
            'if (hasSoilType()) {\n'
            '  if (!getSoilType().isInitialized()) {\n'
            '    return false\n'
            '  }\n'
            '}\n',
        )

    def test_deprecated_accessors(self) -> None:
        content = _render(self._generator('pot').generate_interface_members)
        self.assertIn(
            '@kotlin.Deprecated(message = "field is deprecated") '
            'fun hasPot(): Boolean\n',
            content,
        )

    def test_accessors_are_annotated(self) -> None:
        output = OutputFile('pw/garden/Garden.kt', _GARDEN_PROTO.name)
        self._generator('soil_type').generate_interface_members(output)
        content = output.content()

        self.assertEqual(
            [
                (tuple(a.path), content[a.begin : a.end])
                for a in output.generated_code_info().annotation
            ],
            [
                ((4, 0, 2, 0), 'hasSoilType'),
                ((4, 0, 2, 0), 'getSoilType'),
                ((4, 0, 2, 0), 'getSoilTypeOrBuilder'),
            ],
        )


class OneofMessageFieldTest(MessageFieldTestBase):
    """Tests for message-typed members of a oneof."""

    def test_presence_is_the_case(self) -> None:
        content = _render(self._generator('seed').generate_members)

        self.assertIn('  return originCase_ == 3\n', content)
        self.assertIn(
            '  if (originCase_ == 3) {\n'
            '    return origin_ as pw.garden.Plant.Leaf\n'
            '  }\n'
            '  return pw.garden.Plant.Leaf.getDefaultInstance()\n',
            content,
        )

    def test_merge_overwrites_inactive_member(self) -> None:
        merge = _function(
            _render(self._generator('seed').generate_builder_members),
            'mergeSeed',
        )

        self.assertEqual(
            merge,
            'fun mergeSeed(value: pw.garden.Plant.Leaf): Builder {\n'
            '  val nestedBuilder = seedBuilder_\n'
            '  if (nestedBuilder == null) {\n'
            '    if (originCase_ == 3 &&\n'
            '        origin_ != pw.garden.Plant.Leaf.getDefaultInstance()) {\n'
            '      origin_ = pw.garden.Plant.Leaf.newBuilder('
            'origin_ as pw.garden.Plant.Leaf)\n'
            '          .mergeFrom(value)\n'
            '          .buildPartial()\n'
            '    } else {\n'
            '      origin_ = value\n'
            '    }\n'
            '    onChanged()\n'
            '  } else {\n'
            '    if (originCase_ == 3) {\n'
            '      nestedBuilder.mergeFrom(value)\n'
            '    } else {\n'
            '      nestedBuilder.setMessage(value)\n'
            '    }\n'
            '  }\n'
            '  originCase_ = 3\n'
            '  return this\n'
            '}\n',
        )

    def test_merging_code_defers_to_message_dispatch(self) -> None:
        self.assertEqual(
            _render(self._generator('seed').generate_merging_code),
            'mergeSeed(other.getSeed())\n',
        )

    def test_clear_only_touches_active_member(self) -> None:
        clear = _function(
            _render(self._generator('seed').generate_builder_members),
            'clearSeed',
        )
        self.assertIn(
            '    if (originCase_ == 3) {\n'
            '      originCase_ = 0\n'
            '      origin_ = null\n'
            '      onChanged()\n'
            '    }\n',
            clear,
        )

    def test_no_field_builder_initialization(self) -> None:
        generator = self._generator('seed')
        self.assertEqual(
            _render(generator.generate_field_builder_initialization_code), ''
        )

    def test_parsing_merges_into_active_member(self) -> None:
        content = _render(self._generator('seed').generate_parsing_code)

        self.assertIn(
            '    if (originCase_ == 3) '
            '(origin_ as pw.garden.Plant.Leaf).toBuilder() else null\n',
            content,
        )
        self.assertTrue(content.endswith('originCase_ = 3\n'))


class RepeatedMessageFieldTest(MessageFieldTestBase):
    """Tests for repeated message-typed fields."""

    def test_merge_appends(self) -> None:
        content = _render(self._generator('leaves').generate_merging_code)

        self.assertTrue(content.startswith('if (other.leaves_.isNotEmpty()) {'))
        self.assertIn('    leaves_.addAll(other.leaves_)\n', content)
        self.assertIn(
            '    nestedBuilder.addAllMessages(other.leaves_)\n', content
        )

    def test_message_starts_empty(self) -> None:
        self.assertEqual(
            _render(self._generator('leaves').generate_initialization_code),
            'leaves_ = java.util.Collections.emptyList()\n',
        )

    def test_built_list_is_unmodifiable(self) -> None:
        self.assertEqual(
            _render(self._generator('leaves').generate_building_code),
            'result.leaves_ = leavesBuilder_?.build()\n'
            '    ?: java.util.Collections.unmodifiableList(\n'
            '        java.util.ArrayList(leaves_))\n',
        )
        self.assertEqual(
            _render(self._generator('leaves').generate_parsing_done_code),
            'leaves_ = java.util.Collections.unmodifiableList(leaves_)\n',
        )

    def test_serialization_writes_every_element(self) -> None:
        self.assertEqual(
            _render(self._generator('leaves').generate_serialization_code),
            'for (element in leaves_) {\n'
            '  output.writeMessage(2, element)\n'
            '}\n',
        )

    def test_builder_accessors(self) -> None:
        content = _render(self._generator('leaves').generate_builder_members)

        for name in (
            'getLeavesList',
            'getLeavesCount',
            'getLeaves',
            'setLeaves',
            'addLeaves',
            'addAllLeaves',
            'clearLeaves',
            'removeLeaves',
            'getLeavesBuilder',
            'getLeavesOrBuilder',
            'getLeavesOrBuilderList',
            'addLeavesBuilder',
            'getLeavesBuilderList',
            'getLeavesFieldBuilder',
        ):
            self.assertIn(f'fun {name}(', content)

    def test_add_all_keeps_order(self) -> None:
        content = _render(self._generator('leaves').generate_builder_members)

        self.assertEqual(
            _function(content, 'addAllLeaves'),
            'fun addAllLeaves(\n'
            '    values: kotlin.collections.Iterable<pw.garden.Plant.Leaf>): '
            'Builder {\n'
            '  val nestedBuilder = leavesBuilder_\n'
            '  if (nestedBuilder == null) {\n'
            '    for (value in values) {\n'
            '      leaves_.add(value)\n'
            '    }\n'
            '    onChanged()\n'
            '  } else {\n'
            '    nestedBuilder.addAllMessages(values)\n'
            '  }\n'
            '  return this\n'
            '}\n',
        )

    def test_clear_leaves_an_empty_list(self) -> None:
        generator = self._generator('leaves')
        content = _render(generator.generate_builder_members)

        self.assertIn(
            'private var leaves_: java.util.ArrayList<pw.garden.Plant.Leaf> = '
            'java.util.ArrayList()\n',
            content,
        )
        self.assertIn(
            '    leaves_ = java.util.ArrayList()\n    onChanged()\n',
            _function(content, 'clearLeaves'),
        )
        self.assertEqual(
            _render(generator.generate_builder_clear_code),
            'leaves_ = java.util.ArrayList()\nleavesBuilder_?.clear()\n',
        )

    def test_hash_skips_empty_list(self) -> None:
        self.assertEqual(
            _render(self._generator('leaves').generate_hash_code),
            'if (getLeavesCount() > 0) {\n'
            '  hash = (37 * hash) + LEAVES_FIELD_NUMBER\n'
            '  hash = (53 * hash) + getLeavesList().hashCode()\n'
            '}\n',
        )


if __name__ == '__main__':
    unittest.main()
