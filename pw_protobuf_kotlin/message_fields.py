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
"""Code generators for message-typed fields of protobuf messages.

A message class is assembled from sections (builder members, parsing loop,
serialization, ...). Each field of the message is handled by a FieldGenerator,
which writes that field's part of every section. Three shapes of
message-typed field exist:

  singular  hasFoo() tracks an explicit presence bit.
  repeated  an ordered list; merging appends.
  oneof     one member of a union; presence is the union's case equalling
            the field number.
"""

import abc

from pw_protobuf_kotlin import presence
from pw_protobuf_kotlin.context import CodegenError, Context
from pw_protobuf_kotlin.output_file import OutputFile
from pw_protobuf_kotlin.presence import PresenceBits
from pw_protobuf_kotlin.proto_tree import ProtoMessageField

_CODED_OUTPUT_STREAM = 'com.google.protobuf.CodedOutputStream'
_SINGLE_FIELD_BUILDER = 'com.google.protobuf.SingleFieldBuilderV3'
_REPEATED_FIELD_BUILDER = 'com.google.protobuf.RepeatedFieldBuilderV3'

_WIRETYPE_LENGTH_DELIMITED = 2
_WIRETYPE_START_GROUP = 3


def wire_tag(field: ProtoMessageField) -> int:
    """The tag preceding an encoded value of a message or group field."""
    wire_type = (
        _WIRETYPE_START_GROUP
        if field.is_group()
        else _WIRETYPE_LENGTH_DELIMITED
    )
    return (field.number() << 3) | wire_type


class FieldGenerator(abc.ABC):
    """Writes the code for one field into each section of its message.

    Every section method is called exactly once per field, in field
    declaration order, while the enclosing message writes that section.
    """

    def __init__(
        self, field: ProtoMessageField, bits: PresenceBits, context: Context
    ):
        self._field = field
        self._bits = bits
        self._context = context

    def field(self) -> ProtoMessageField:
        return self._field

    def tag(self) -> int:
        return wire_tag(self._field)

    @abc.abstractmethod
    def num_bits_for_message(self) -> int:
        """Presence bits this field consumes in the message's bitmap."""

    @abc.abstractmethod
    def num_bits_for_builder(self) -> int:
        """Presence bits this field consumes in the builder's bitmap."""

    @abc.abstractmethod
    def generate_interface_members(self, output: OutputFile) -> None:
        """Accessor declarations of the <Message>OrBuilder interface."""

    @abc.abstractmethod
    def generate_members(self, output: OutputFile) -> None:
        """Storage and accessors of the immutable message class."""

    @abc.abstractmethod
    def generate_builder_members(self, output: OutputFile) -> None:
        """Storage, accessors and mutators of the Builder."""

    @abc.abstractmethod
    def generate_initialization_code(self, output: OutputFile) -> None:
        """Statements run by the message's default constructor."""

    @abc.abstractmethod
    def generate_builder_clear_code(self, output: OutputFile) -> None:
        """Statements in Builder.clear()."""

    @abc.abstractmethod
    def generate_merging_code(self, output: OutputFile) -> None:
        """Statements in Builder.mergeFrom(other)."""

    @abc.abstractmethod
    def generate_building_code(self, output: OutputFile) -> None:
        """Statements in Builder.buildPartial()."""

    @abc.abstractmethod
    def generate_is_initialized_code(
        self, output: OutputFile, builder: bool = False
    ) -> None:
        """Statements in isInitialized() of the message or its Builder.

        The Builder has no memoized result, so it only returns false.
        """

    @abc.abstractmethod
    def generate_parsing_code(self, output: OutputFile) -> None:
        """Body of the field's branch in the parsing constructor."""

    @abc.abstractmethod
    def generate_parsing_done_code(self, output: OutputFile) -> None:
        """Statements in the parsing constructor's finally block."""

    @abc.abstractmethod
    def generate_serialization_code(self, output: OutputFile) -> None:
        """Statements in writeTo(output)."""

    @abc.abstractmethod
    def generate_serialized_size_code(self, output: OutputFile) -> None:
        """Statements in getSerializedSize()."""

    @abc.abstractmethod
    def generate_field_builder_initialization_code(
        self, output: OutputFile
    ) -> None:
        """Statements in Builder.maybeForceBuilderInitialization()."""

    @abc.abstractmethod
    def generate_equals_code(self, output: OutputFile) -> None:
        """Statements in equals(other)."""

    @abc.abstractmethod
    def generate_hash_code(self, output: OutputFile) -> None:
        """Statements in hashCode()."""


def _message_field_variables(
    field: ProtoMessageField, context: Context
) -> dict[str, object]:
    """Template variables shared by every message-typed field shape."""
    kotlin_type = context.resolver().class_name(field.type_name())

    if field.is_group():
        read_message = (
            f'input.readGroup({field.number()}, {kotlin_type}.parser(), '
            'extensionRegistry)'
        )
    else:
        read_message = (
            f'input.readMessage({kotlin_type}.parser(), extensionRegistry)'
        )

    declaration = f'{field.type_name().lstrip(".")} {field.field_name()}'
    if field.is_repeated():
        declaration = 'repeated ' + declaration

    return {
        'name': field.name(),
        'capitalized_name': field.capitalized_name(),
        'number': field.number(),
        'constant_name': f'{field.enum_name()}_FIELD_NUMBER',
        'type': kotlin_type,
        'or_builder_type': f'{kotlin_type}OrBuilder',
        'group_or_message': 'Group' if field.is_group() else 'Message',
        'read_message': read_message,
        'coded_output_stream': _CODED_OUTPUT_STREAM,
        'single_field_builder': _SINGLE_FIELD_BUILDER,
        'repeated_field_builder': _REPEATED_FIELD_BUILDER,
        'declaration': f'{declaration} = {field.number()};',
        'deprecation': (
            '@kotlin.Deprecated(message = "field is deprecated") '
            if field.deprecated()
            else ''
        ),
    }


def _require_message_field(field: ProtoMessageField) -> None:
    if not field.is_message():
        raise CodegenError(
            'message field generator given a non-message field',
            field.message(),
            field,
        )


def _not_initialized(builder: bool) -> str:
    """Statements that make isInitialized() return false."""
    if builder:
        return '    return false\n'
    return '    memoizedIsInitialized = 0\n    return false\n'


class MessageFieldGenerator(FieldGenerator):
    """Generates a singular message-typed field with explicit presence."""

    def __init__(
        self, field: ProtoMessageField, bits: PresenceBits, context: Context
    ):
        _require_message_field(field)
        super().__init__(field, bits, context)

        self._variables = _message_field_variables(field, context)
        self._variables.update(
            get_has_field_bit_message=presence.get_bit(bits.message_bit),
            set_has_field_bit_message=presence.set_bit(bits.message_bit),
            get_has_field_bit_builder=presence.get_bit(bits.builder_bit),
            set_has_field_bit_builder=presence.set_bit(bits.builder_bit),
            clear_has_field_bit_builder=presence.clear_bit(bits.builder_bit),
            get_has_field_bit_from_local=presence.get_bit_from_local(
                bits.builder_bit
            ),
            set_has_field_bit_to_local=presence.set_bit_to_local(
                bits.message_bit
            ),
        )

    def num_bits_for_message(self) -> int:
        return 1

    def num_bits_for_builder(self) -> int:
        return 1

    def _print(self, output: OutputFile, template: str) -> None:
        output.print(template, self._variables)

    def _print_annotated(self, output: OutputFile, template: str) -> None:
        """Prints a template whose ${$ ... $}$ span names this field."""
        output.print(template, self._variables)
        output.annotate('{', self._field.source_path(), '}')

    def _print_doc(self, output: OutputFile) -> None:
        self._print(output, '/**\n * `$declaration$`\n */\n')

    def _print_nested_builder_condition(
        self, output: OutputFile, regular_case: str, nested_builder_case: str
    ) -> None:
        """Branches on whether the field's nested builder has been created."""
        self._print(
            output,
            'val nestedBuilder = $name$Builder_\n'
            'if (nestedBuilder == null) {\n',
        )
        with output.indent():
            self._print(output, regular_case)
        output.write_line('} else {')
        with output.indent():
            self._print(output, nested_builder_case)
        output.write_line('}')

    def _print_nested_builder_function(
        self,
        output: OutputFile,
        method_prototype: str,
        regular_case: str,
        nested_builder_case: str,
        trailing_code: str | None = None,
    ) -> None:
        self._print_doc(output)
        self._print_annotated(output, method_prototype + ' {\n')
        with output.indent():
            self._print_nested_builder_condition(
                output, regular_case, nested_builder_case
            )
            if trailing_code is not None:
                self._print(output, trailing_code)
        output.write_line('}')
        output.write_line()

    def generate_interface_members(self, output: OutputFile) -> None:
        self._print_doc(output)
        self._print_annotated(
            output, '$deprecation$fun ${$has$capitalized_name$$}$(): Boolean\n'
        )
        output.write_line()
        self._print_doc(output)
        self._print_annotated(
            output, '$deprecation$fun ${$get$capitalized_name$$}$(): $type$\n'
        )
        output.write_line()
        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$OrBuilder$}$(): '
            '$or_builder_type$\n',
        )
        output.write_line()

    def generate_members(self, output: OutputFile) -> None:
        self._print(output, 'private var $name$_: $type$? = null\n\n')

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$has$capitalized_name$$}$(): '
            'Boolean {\n',
        )
        self._print(
            output,
            '  return $get_has_field_bit_message$\n'
            '}\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$$}$(): '
            '$type$ {\n',
        )
        self._print(
            output,
            '  return $name$_ ?: $type$.getDefaultInstance()\n'
            '}\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$OrBuilder$}$(): '
            '$or_builder_type$ {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$()\n'
            '}\n'
            '\n',
        )

    def generate_builder_members(self, output: OutputFile) -> None:
        # When the field builder exists it owns the value and $name$_ is
        # unused; every accessor below branches on that.
        self._print(
            output,
            'private var $name$_: $type$? = null\n'
            'private var $name$Builder_: $single_field_builder$<\n'
            '    $type$, $type$.Builder, $or_builder_type$>? = null\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$has$capitalized_name$$}$(): '
            'Boolean {\n',
        )
        self._print(
            output,
            '  return $get_has_field_bit_builder$\n'
            '}\n'
            '\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$override fun ${$get$capitalized_name$$}$(): $type$',
            'return $name$_ ?: $type$.getDefaultInstance()\n',
            'return nestedBuilder.getMessage()\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$set$capitalized_name$$}$(value: $type$): '
            'Builder',
            '$name$_ = value\nonChanged()\n',
            'nestedBuilder.setMessage(value)\n',
            '$set_has_field_bit_builder$\nreturn this\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$set$capitalized_name$$}$(\n'
            '    builderForValue: $type$.Builder): Builder',
            '$name$_ = builderForValue.build()\nonChanged()\n',
            'nestedBuilder.setMessage(builderForValue.build())\n',
            '$set_has_field_bit_builder$\nreturn this\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$merge$capitalized_name$$}$(value: $type$): '
            'Builder',
            'val current = $name$_\n'
            'if ($get_has_field_bit_builder$ &&\n'
            '    current != null &&\n'
            '    current != $type$.getDefaultInstance()) {\n'
            '  $name$_ =\n'
            '      $type$.newBuilder(current).mergeFrom(value).buildPartial()\n'
            '} else {\n'
            '  $name$_ = value\n'
            '}\n'
            'onChanged()\n',
            'nestedBuilder.mergeFrom(value)\n',
            '$set_has_field_bit_builder$\nreturn this\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$clear$capitalized_name$$}$(): Builder',
            '$name$_ = null\nonChanged()\n',
            'nestedBuilder.clear()\n',
            '$clear_has_field_bit_builder$\nreturn this\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$Builder$}$(): '
            '$type$.Builder {\n',
        )
        self._print(
            output,
            '  $set_has_field_bit_builder$\n'
            '  onChanged()\n'
            '  return get$capitalized_name$FieldBuilder().getBuilder()\n'
            '}\n'
            '\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$override fun '
            '${$get$capitalized_name$OrBuilder$}$(): $or_builder_type$',
            'return $name$_ ?: $type$.getDefaultInstance()\n',
            'return nestedBuilder.getMessageOrBuilder()\n',
        )

        self._print(
            output,
            'private fun get$capitalized_name$FieldBuilder():\n'
            '    $single_field_builder$<\n'
            '        $type$, $type$.Builder, $or_builder_type$> {\n'
            '  var nestedBuilder = $name$Builder_\n'
            '  if (nestedBuilder == null) {\n'
            '    nestedBuilder = $single_field_builder$(\n'
            '        get$capitalized_name$(), getParentForChildren(), '
            'isClean())\n'
            '    $name$Builder_ = nestedBuilder\n'
            '    $name$_ = null\n'
            '  }\n'
            '  return nestedBuilder\n'
            '}\n'
            '\n',
        )

    def generate_initialization_code(self, output: OutputFile) -> None:
        # The null default already reads as the default instance.
        pass

    def generate_builder_clear_code(self, output: OutputFile) -> None:
        self._print(
            output,
            '$name$_ = null\n'
            '$name$Builder_?.clear()\n'
            '$clear_has_field_bit_builder$\n',
        )

    def generate_merging_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (other.has$capitalized_name$()) {\n'
            '  merge$capitalized_name$(other.get$capitalized_name$())\n'
            '}\n',
        )

    def generate_building_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if ($get_has_field_bit_from_local$) {\n'
            '  result.$name$_ = $name$Builder_?.build() ?: $name$_\n'
            '  $set_has_field_bit_to_local$\n'
            '}\n',
        )

    def generate_is_initialized_code(
        self, output: OutputFile, builder: bool = False
    ) -> None:
        self._print(
            output,
            'if (has$capitalized_name$()) {\n'
            '  if (!get$capitalized_name$().isInitialized()) {\n'
            + _not_initialized(builder)
            + '  }\n'
            '}\n',
        )

    def generate_parsing_code(self, output: OutputFile) -> None:
        # A repeated occurrence of a singular message merges into the value
        # parsed so far.
        self._print(
            output,
            'val subBuilder =\n'
            '    if ($get_has_field_bit_message$) $name$_?.toBuilder() '
            'else null\n'
            'val parsed = $read_message$\n'
            'if (subBuilder != null) {\n'
            '  subBuilder.mergeFrom(parsed)\n'
            '  $name$_ = subBuilder.buildPartial()\n'
            '} else {\n'
            '  $name$_ = parsed\n'
            '}\n'
            '$set_has_field_bit_message$\n',
        )

    def generate_parsing_done_code(self, output: OutputFile) -> None:
        pass

    def generate_serialization_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if ($get_has_field_bit_message$) {\n'
            '  output.write$group_or_message$($number$, '
            'get$capitalized_name$())\n'
            '}\n',
        )

    def generate_serialized_size_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if ($get_has_field_bit_message$) {\n'
            '  size += $coded_output_stream$.compute$group_or_message$Size(\n'
            '      $number$, get$capitalized_name$())\n'
            '}\n',
        )

    def generate_field_builder_initialization_code(
        self, output: OutputFile
    ) -> None:
        self._print(output, 'get$capitalized_name$FieldBuilder()\n')

    def generate_equals_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (has$capitalized_name$() != other.has$capitalized_name$()) '
            'return false\n'
            'if (has$capitalized_name$()) {\n'
            '  if (get$capitalized_name$() != other.get$capitalized_name$()) '
            'return false\n'
            '}\n',
        )

    def generate_hash_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (has$capitalized_name$()) {\n'
            '  hash = (37 * hash) + $constant_name$\n'
            '  hash = (53 * hash) + get$capitalized_name$().hashCode()\n'
            '}\n',
        )


class MessageOneofFieldGenerator(MessageFieldGenerator):
    """Generates a message-typed member of a oneof.

    The oneof's case slot is the field's presence: the field is set exactly
    when <oneof>Case_ equals its number, and its value lives in the shared
    <oneof>_ slot. The enclosing message dispatches merging, equality and
    hashing on the case, so those sections assume the field is active.
    """

    def __init__(
        self, field: ProtoMessageField, bits: PresenceBits, context: Context
    ):
        super().__init__(field, bits, context)

        oneof = field.oneof()
        if oneof is None:
            raise CodegenError(
                'oneof field generator given a field outside any oneof',
                field.message(),
                field,
            )

        self._variables.update(
            oneof_name=oneof.storage_name(),
            oneof_case=oneof.case_name(),
        )

    def num_bits_for_message(self) -> int:
        return 0

    def num_bits_for_builder(self) -> int:
        return 0

    def generate_members(self, output: OutputFile) -> None:
        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$has$capitalized_name$$}$(): '
            'Boolean {\n',
        )
        self._print(
            output,
            '  return $oneof_case$ == $number$\n'
            '}\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$$}$(): '
            '$type$ {\n',
        )
        self._print(
            output,
            '  if ($oneof_case$ == $number$) {\n'
            '    return $oneof_name$ as $type$\n'
            '  }\n'
            '  return $type$.getDefaultInstance()\n'
            '}\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$OrBuilder$}$(): '
            '$or_builder_type$ {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$()\n'
            '}\n'
            '\n',
        )

    def generate_builder_members(self, output: OutputFile) -> None:
        self._print(
            output,
            'private var $name$Builder_: $single_field_builder$<\n'
            '    $type$, $type$.Builder, $or_builder_type$>? = null\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun ${$has$capitalized_name$$}$(): '
            'Boolean {\n',
        )
        self._print(
            output,
            '  return $oneof_case$ == $number$\n'
            '}\n'
            '\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$override fun ${$get$capitalized_name$$}$(): $type$',
            'if ($oneof_case$ == $number$) {\n'
            '  return $oneof_name$ as $type$\n'
            '}\n'
            'return $type$.getDefaultInstance()\n',
            'if ($oneof_case$ == $number$) {\n'
            '  return nestedBuilder.getMessage()\n'
            '}\n'
            'return $type$.getDefaultInstance()\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$set$capitalized_name$$}$(value: $type$): '
            'Builder',
            '$oneof_name$ = value\nonChanged()\n',
            'nestedBuilder.setMessage(value)\n',
            '$oneof_case$ = $number$\nreturn this\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$set$capitalized_name$$}$(\n'
            '    builderForValue: $type$.Builder): Builder',
            '$oneof_name$ = builderForValue.build()\nonChanged()\n',
            'nestedBuilder.setMessage(builderForValue.build())\n',
            '$oneof_case$ = $number$\nreturn this\n',
        )

        # Merging only combines values when this member is already the
        # active one; otherwise the incoming value replaces the union.
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$merge$capitalized_name$$}$(value: $type$): '
            'Builder',
            'if ($oneof_case$ == $number$ &&\n'
            '    $oneof_name$ != $type$.getDefaultInstance()) {\n'
            '  $oneof_name$ = $type$.newBuilder($oneof_name$ as $type$)\n'
            '      .mergeFrom(value)\n'
            '      .buildPartial()\n'
            '} else {\n'
            '  $oneof_name$ = value\n'
            '}\n'
            'onChanged()\n',
            'if ($oneof_case$ == $number$) {\n'
            '  nestedBuilder.mergeFrom(value)\n'
            '} else {\n'
            '  nestedBuilder.setMessage(value)\n'
            '}\n',
            '$oneof_case$ = $number$\nreturn this\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$clear$capitalized_name$$}$(): Builder',
            'if ($oneof_case$ == $number$) {\n'
            '  $oneof_case$ = 0\n'
            '  $oneof_name$ = null\n'
            '  onChanged()\n'
            '}\n',
            'if ($oneof_case$ == $number$) {\n'
            '  $oneof_case$ = 0\n'
            '  $oneof_name$ = null\n'
            '}\n'
            'nestedBuilder.clear()\n',
            'return this\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$Builder$}$(): '
            '$type$.Builder {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$FieldBuilder().getBuilder()\n'
            '}\n'
            '\n',
        )

        self._print_doc(output)
        self._print_annotated(
            output,
            '$deprecation$override fun '
            '${$get$capitalized_name$OrBuilder$}$(): $or_builder_type$ {\n',
        )
        self._print(
            output,
            '  val nestedBuilder = $name$Builder_\n'
            '  if ($oneof_case$ == $number$ && nestedBuilder != null) {\n'
            '    return nestedBuilder.getMessageOrBuilder()\n'
            '  }\n'
            '  if ($oneof_case$ == $number$) {\n'
            '    return $oneof_name$ as $type$\n'
            '  }\n'
            '  return $type$.getDefaultInstance()\n'
            '}\n'
            '\n',
        )

        # Creating the field builder activates this member of the oneof.
        self._print(
            output,
            'private fun get$capitalized_name$FieldBuilder():\n'
            '    $single_field_builder$<\n'
            '        $type$, $type$.Builder, $or_builder_type$> {\n'
            '  var nestedBuilder = $name$Builder_\n'
            '  if (nestedBuilder == null) {\n'
            '    if ($oneof_case$ != $number$) {\n'
            '      $oneof_name$ = $type$.getDefaultInstance()\n'
            '    }\n'
            '    nestedBuilder = $single_field_builder$(\n'
            '        $oneof_name$ as $type$, getParentForChildren(), '
            'isClean())\n'
            '    $name$Builder_ = nestedBuilder\n'
            '    $oneof_name$ = null\n'
            '  }\n'
            '  $oneof_case$ = $number$\n'
            '  onChanged()\n'
            '  return nestedBuilder\n'
            '}\n'
            '\n',
        )

    def generate_builder_clear_code(self, output: OutputFile) -> None:
        # The enclosing message resets the case and value slots.
        self._print(output, '$name$Builder_?.clear()\n')

    def generate_merging_code(self, output: OutputFile) -> None:
        self._print(
            output, 'merge$capitalized_name$(other.get$capitalized_name$())\n'
        )

    def generate_building_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if ($oneof_case$ == $number$) {\n'
            '  result.$oneof_name$ = $name$Builder_?.build() ?: $oneof_name$\n'
            '}\n',
        )

    def generate_parsing_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'val subBuilder =\n'
            '    if ($oneof_case$ == $number$) '
            '($oneof_name$ as $type$).toBuilder() else null\n'
            'val parsed = $read_message$\n'
            'if (subBuilder != null) {\n'
            '  subBuilder.mergeFrom(parsed)\n'
            '  $oneof_name$ = subBuilder.buildPartial()\n'
            '} else {\n'
            '  $oneof_name$ = parsed\n'
            '}\n'
            '$oneof_case$ = $number$\n',
        )

    def generate_serialization_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if ($oneof_case$ == $number$) {\n'
            '  output.write$group_or_message$(\n'
            '      $number$, $oneof_name$ as $type$)\n'
            '}\n',
        )

    def generate_serialized_size_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if ($oneof_case$ == $number$) {\n'
            '  size += $coded_output_stream$.compute$group_or_message$Size(\n'
            '      $number$, $oneof_name$ as $type$)\n'
            '}\n',
        )

    def generate_field_builder_initialization_code(
        self, output: OutputFile
    ) -> None:
        # Forcing the field builder would select this member of the oneof.
        pass

    def generate_equals_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (get$capitalized_name$() != other.get$capitalized_name$()) '
            'return false\n',
        )

    def generate_hash_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'hash = (37 * hash) + $constant_name$\n'
            'hash = (53 * hash) + get$capitalized_name$().hashCode()\n',
        )


class RepeatedMessageFieldGenerator(FieldGenerator):
    """Generates a repeated message-typed field.

    The builder keeps a mutable ArrayList until a field builder is requested;
    built messages hold an unmodifiable list. Merging appends the other
    message's elements after the existing ones.
    """

    def __init__(
        self, field: ProtoMessageField, bits: PresenceBits, context: Context
    ):
        _require_message_field(field)
        super().__init__(field, bits, context)
        self._variables = _message_field_variables(field, context)

    def num_bits_for_message(self) -> int:
        return 0

    def num_bits_for_builder(self) -> int:
        return 0

    def _print(self, output: OutputFile, template: str) -> None:
        output.print(template, self._variables)

    def _print_annotated(self, output: OutputFile, template: str) -> None:
        output.print(template, self._variables)
        output.annotate('{', self._field.source_path(), '}')

    def _print_nested_builder_function(
        self,
        output: OutputFile,
        method_prototype: str,
        regular_case: str,
        nested_builder_case: str,
        trailing_code: str | None = None,
    ) -> None:
        self._print_annotated(output, method_prototype + ' {\n')
        with output.indent():
            self._print(
                output,
                'val nestedBuilder = $name$Builder_\n'
                'if (nestedBuilder == null) {\n',
            )
            with output.indent():
                self._print(output, regular_case)
            output.write_line('} else {')
            with output.indent():
                self._print(output, nested_builder_case)
            output.write_line('}')
            if trailing_code is not None:
                self._print(output, trailing_code)
        output.write_line('}')
        output.write_line()

    def generate_interface_members(self, output: OutputFile) -> None:
        self._print(output, '/**\n * `$declaration$`\n */\n')
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$List$}$(): '
            'kotlin.collections.List<$type$>\n',
        )
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$$}$(index: Int): '
            '$type$\n',
        )
        self._print_annotated(
            output, '$deprecation$fun ${$get$capitalized_name$Count$}$(): Int\n'
        )
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$OrBuilderList$}$():\n'
            '    kotlin.collections.List<out $or_builder_type$>\n',
        )
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$OrBuilder$}$(\n'
            '    index: Int): $or_builder_type$\n',
        )
        output.write_line()

    def generate_members(self, output: OutputFile) -> None:
        self._print(
            output,
            'private lateinit var $name$_: kotlin.collections.List<$type$>\n'
            '\n',
        )
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$List$}$(): '
            'kotlin.collections.List<$type$> {\n',
        )
        self._print(output, '  return $name$_\n}\n\n')
        self._print_annotated(
            output,
            '$deprecation$override fun '
            '${$get$capitalized_name$OrBuilderList$}$():\n'
            '    kotlin.collections.List<out $or_builder_type$> {\n',
        )
        self._print(output, '  return $name$_\n}\n\n')
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$Count$}$(): '
            'Int {\n',
        )
        self._print(output, '  return $name$_.size\n}\n\n')
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$$}$('
            'index: Int): $type$ {\n',
        )
        self._print(output, '  return $name$_[index]\n}\n\n')
        self._print_annotated(
            output,
            '$deprecation$override fun ${$get$capitalized_name$OrBuilder$}$(\n'
            '    index: Int): $or_builder_type$ {\n',
        )
        self._print(output, '  return $name$_[index]\n}\n\n')

    def generate_builder_members(self, output: OutputFile) -> None:
        self._print(
            output,
            'private var $name$_: java.util.ArrayList<$type$> = '
            'java.util.ArrayList()\n'
            'private var $name$Builder_: $repeated_field_builder$<\n'
            '    $type$, $type$.Builder, $or_builder_type$>? = null\n'
            '\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$override fun ${$get$capitalized_name$List$}$(): '
            'kotlin.collections.List<$type$>',
            'return java.util.Collections.unmodifiableList($name$_)\n',
            'return nestedBuilder.getMessageList()\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$override fun ${$get$capitalized_name$Count$}$(): Int',
            'return $name$_.size\n',
            'return nestedBuilder.getCount()\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$override fun ${$get$capitalized_name$$}$('
            'index: Int): $type$',
            'return $name$_[index]\n',
            'return nestedBuilder.getMessage(index)\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$set$capitalized_name$$}$('
            'index: Int, value: $type$): Builder',
            '$name$_[index] = value\nonChanged()\n',
            'nestedBuilder.setMessage(index, value)\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$set$capitalized_name$$}$(\n'
            '    index: Int, builderForValue: $type$.Builder): Builder',
            '$name$_[index] = builderForValue.build()\nonChanged()\n',
            'nestedBuilder.setMessage(index, builderForValue.build())\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$add$capitalized_name$$}$(value: $type$): '
            'Builder',
            '$name$_.add(value)\nonChanged()\n',
            'nestedBuilder.addMessage(value)\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$add$capitalized_name$$}$('
            'index: Int, value: $type$): Builder',
            '$name$_.add(index, value)\nonChanged()\n',
            'nestedBuilder.addMessage(index, value)\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$add$capitalized_name$$}$(\n'
            '    builderForValue: $type$.Builder): Builder',
            '$name$_.add(builderForValue.build())\nonChanged()\n',
            'nestedBuilder.addMessage(builderForValue.build())\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$add$capitalized_name$$}$(\n'
            '    index: Int, builderForValue: $type$.Builder): Builder',
            '$name$_.add(index, builderForValue.build())\nonChanged()\n',
            'nestedBuilder.addMessage(index, builderForValue.build())\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$addAll$capitalized_name$$}$(\n'
            '    values: kotlin.collections.Iterable<$type$>): Builder',
            'for (value in values) {\n'
            '  $name$_.add(value)\n'
            '}\n'
            'onChanged()\n',
            'nestedBuilder.addAllMessages(values)\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$clear$capitalized_name$$}$(): Builder',
            '$name$_ = java.util.ArrayList()\nonChanged()\n',
            'nestedBuilder.clear()\n',
            'return this\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$fun ${$remove$capitalized_name$$}$(index: Int): '
            'Builder',
            '$name$_.removeAt(index)\nonChanged()\n',
            'nestedBuilder.remove(index)\n',
            'return this\n',
        )

        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$Builder$}$(index: Int): '
            '$type$.Builder {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$FieldBuilder().getBuilder(index)\n'
            '}\n'
            '\n',
        )

        self._print_nested_builder_function(
            output,
            '$deprecation$override fun ${$get$capitalized_name$OrBuilder$}$(\n'
            '    index: Int): $or_builder_type$',
            'return $name$_[index]\n',
            'return nestedBuilder.getMessageOrBuilder(index)\n',
        )
        self._print_nested_builder_function(
            output,
            '$deprecation$override fun '
            '${$get$capitalized_name$OrBuilderList$}$():\n'
            '    kotlin.collections.List<out $or_builder_type$>',
            'return java.util.Collections.unmodifiableList($name$_)\n',
            'return nestedBuilder.getMessageOrBuilderList()\n',
        )

        self._print_annotated(
            output,
            '$deprecation$fun ${$add$capitalized_name$Builder$}$(): '
            '$type$.Builder {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$FieldBuilder()\n'
            '      .addBuilder($type$.getDefaultInstance())\n'
            '}\n'
            '\n',
        )
        self._print_annotated(
            output,
            '$deprecation$fun ${$add$capitalized_name$Builder$}$(index: Int): '
            '$type$.Builder {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$FieldBuilder()\n'
            '      .addBuilder(index, $type$.getDefaultInstance())\n'
            '}\n'
            '\n',
        )
        self._print_annotated(
            output,
            '$deprecation$fun ${$get$capitalized_name$BuilderList$}$():\n'
            '    kotlin.collections.List<$type$.Builder> {\n',
        )
        self._print(
            output,
            '  return get$capitalized_name$FieldBuilder().getBuilderList()\n'
            '}\n'
            '\n',
        )

        self._print(
            output,
            'private fun get$capitalized_name$FieldBuilder():\n'
            '    $repeated_field_builder$<\n'
            '        $type$, $type$.Builder, $or_builder_type$> {\n'
            '  var nestedBuilder = $name$Builder_\n'
            '  if (nestedBuilder == null) {\n'
            '    nestedBuilder = $repeated_field_builder$(\n'
            '        $name$_, true, getParentForChildren(), isClean())\n'
            '    $name$Builder_ = nestedBuilder\n'
            '    $name$_ = java.util.ArrayList()\n'
            '  }\n'
            '  return nestedBuilder\n'
            '}\n'
            '\n',
        )

    def generate_initialization_code(self, output: OutputFile) -> None:
        self._print(output, '$name$_ = java.util.Collections.emptyList()\n')

    def generate_builder_clear_code(self, output: OutputFile) -> None:
        self._print(
            output,
            '$name$_ = java.util.ArrayList()\n'
            '$name$Builder_?.clear()\n',
        )

    def generate_merging_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (other.$name$_.isNotEmpty()) {\n'
            '  val nestedBuilder = $name$Builder_\n'
            '  if (nestedBuilder == null) {\n'
            '    $name$_.addAll(other.$name$_)\n'
            '    onChanged()\n'
            '  } else {\n'
            '    nestedBuilder.addAllMessages(other.$name$_)\n'
            '  }\n'
            '}\n',
        )

    def generate_building_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'result.$name$_ = $name$Builder_?.build()\n'
            '    ?: java.util.Collections.unmodifiableList(\n'
            '        java.util.ArrayList($name$_))\n',
        )

    def generate_is_initialized_code(
        self, output: OutputFile, builder: bool = False
    ) -> None:
        self._print(
            output,
            'for (i in 0 until get$capitalized_name$Count()) {\n'
            '  if (!get$capitalized_name$(i).isInitialized()) {\n'
            + _not_initialized(builder)
            + '  }\n'
            '}\n',
        )

    def generate_parsing_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'val list = $name$_ as? java.util.ArrayList<$type$>\n'
            '    ?: java.util.ArrayList($name$_).also { $name$_ = it }\n'
            'list.add($read_message$)\n',
        )

    def generate_parsing_done_code(self, output: OutputFile) -> None:
        self._print(
            output,
            '$name$_ = java.util.Collections.unmodifiableList($name$_)\n',
        )

    def generate_serialization_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'for (element in $name$_) {\n'
            '  output.write$group_or_message$($number$, element)\n'
            '}\n',
        )

    def generate_serialized_size_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'for (element in $name$_) {\n'
            '  size += $coded_output_stream$.compute$group_or_message$Size('
            '$number$, element)\n'
            '}\n',
        )

    def generate_field_builder_initialization_code(
        self, output: OutputFile
    ) -> None:
        self._print(output, 'get$capitalized_name$FieldBuilder()\n')

    def generate_equals_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (get$capitalized_name$List() != '
            'other.get$capitalized_name$List()) return false\n',
        )

    def generate_hash_code(self, output: OutputFile) -> None:
        self._print(
            output,
            'if (get$capitalized_name$Count() > 0) {\n'
            '  hash = (37 * hash) + $constant_name$\n'
            '  hash = (53 * hash) + get$capitalized_name$List().hashCode()\n'
            '}\n',
        )


def create_field_generator(
    field: ProtoMessageField, bits: PresenceBits, context: Context
) -> FieldGenerator:
    """Selects the generator for a message-typed field by its shape."""
    if field.is_repeated():
        return RepeatedMessageFieldGenerator(field, bits, context)
    if field.oneof() is not None:
        return MessageOneofFieldGenerator(field, bits, context)
    return MessageFieldGenerator(field, bits, context)
