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
"""Generates Kotlin enum classes for protobuf enums.

Several declared values of a protobuf enum may share a number. Only the first
value declared with a given number becomes a Kotlin enum entry (the canonical
value); every later value with that number is emitted as a companion object
property referring to its canonical entry (an alias).
"""

from typing import NamedTuple, Sequence

from pw_protobuf_kotlin.context import CodegenError, Context, PLUGIN_NAME
from pw_protobuf_kotlin.output_file import OutputFile
from pw_protobuf_kotlin.proto_tree import ProtoEnum, ProtoEnumValue

UNRECOGNIZED_NUMBER = -1

_DESCRIPTORS = 'com.google.protobuf.Descriptors'
_ENUM_LITE_MAP = 'com.google.protobuf.Internal.EnumLiteMap'


class EnumAlias(NamedTuple):
    value: ProtoEnumValue
    canonical_value: ProtoEnumValue


class EnumValuePartition(NamedTuple):
    """An enum's values split into canonical entries and aliases."""

    canonical_values: list[ProtoEnumValue]
    aliases: list[EnumAlias]


def partition_enum_values(
    values: Sequence[ProtoEnumValue],
) -> EnumValuePartition:
    """Splits enum values into canonical values and aliases.

    The first value declared with a number is canonical for that number. Both
    returned lists keep declaration order; values are never sorted by number.
    """
    first_by_number: dict[int, ProtoEnumValue] = {}
    for value in values:
        first_by_number.setdefault(value.number(), value)

    canonical_values: list[ProtoEnumValue] = []
    aliases: list[EnumAlias] = []

    for value in values:
        canonical_value = first_by_number[value.number()]
        if value is canonical_value:
            canonical_values.append(value)
        else:
            aliases.append(EnumAlias(value, canonical_value))

    return EnumValuePartition(canonical_values, aliases)


def ordinal_is_index(canonical_values: Sequence[ProtoEnumValue]) -> bool:
    """Whether Kotlin's ordinal can stand in for the descriptor index.

    This holds when every canonical value's declaration index equals its
    position among the canonical values, i.e. no alias is declared before a
    canonical value. Otherwise each entry carries an explicit index.
    """
    for position, value in enumerate(canonical_values):
        if value.index() != position:
            return False
    return True


def can_use_enum_values(
    values: Sequence[ProtoEnumValue],
    canonical_values: Sequence[ProtoEnumValue],
) -> bool:
    """Whether values() lists exactly the declared values, in order."""
    if len(values) != len(canonical_values):
        return False
    return all(
        value.name() == canonical.name()
        for value, canonical in zip(values, canonical_values)
    )


def _write_doc_comment(output: OutputFile, text: str) -> None:
    output.write_line('/**')
    output.write_line(f' * {text}')
    output.write_line(' */')


class EnumGenerator:
    """Emits the Kotlin enum class for one protobuf enum."""

    def __init__(self, proto_enum: ProtoEnum, context: Context):
        """Partitions the enum's values and selects its index strategy.

        Raises:
          CodegenError: The enum declares no values.
        """
        values = proto_enum.values()
        if not values:
            raise CodegenError('enum declares no values', proto_enum)

        self._enum = proto_enum
        self._context = context
        self._values = values
        self._partition = partition_enum_values(values)
        self._ordinal_is_index = ordinal_is_index(
            self._partition.canonical_values
        )

    def canonical_values(self) -> list[ProtoEnumValue]:
        return list(self._partition.canonical_values)

    def aliases(self) -> list[EnumAlias]:
        return list(self._partition.aliases)

    def ordinal_is_index(self) -> bool:
        return self._ordinal_is_index

    def can_use_enum_values(self) -> bool:
        return can_use_enum_values(
            self._values, self._partition.canonical_values
        )

    def generate(self, output: OutputFile) -> None:
        """Writes the enum class to the output."""
        classname = self._enum.name()
        has_descriptors = self._context.has_descriptor_methods()

        _write_doc_comment(output, f'Protobuf enum `{self._enum.proto_path()}`')
        if (
            self._context.options().annotate_code
            and self._enum.containing_message() is None
        ):
            output.write_line(
                f'@javax.annotation.Generated("by {PLUGIN_NAME}")'
            )
        if self._enum.deprecated():
            output.write_line(
                '@kotlin.Deprecated(message = "enum is deprecated")'
            )

        base = (
            'com.google.protobuf.ProtocolMessageEnum'
            if has_descriptors
            else 'com.google.protobuf.Internal.EnumLite'
        )
        parameters = (
            'val value: Int'
            if self._ordinal_is_index
            else 'val index: Int, val value: Int'
        )
        output.print(
            'enum class $classname$($parameters$) : $base$ {\n',
            classname=classname,
            parameters=parameters,
            base=base,
        )
        output.annotate('classname', self._enum.source_path())

        with output.indent():
            self._generate_entries(output)
            output.write_line()
            self._generate_get_number(output)
            output.write_line()

            output.write_line('companion object {')
            with output.indent():
                self._generate_companion(output, has_descriptors)
            output.write_line('}')

            if has_descriptors:
                output.write_line()
                self._generate_reflection(output)

            output.write_line()
            output.write_line(
                '// @@protoc_insertion_point(enum_scope:'
                f'{self._enum.proto_path()})'
            )

        output.write_line('}')

    def _generate_entries(self, output: OutputFile) -> None:
        for value in self._partition.canonical_values:
            _write_doc_comment(output, f'`{value.name()} = {value.number()};`')
            if value.deprecated():
                output.write_line(
                    '@kotlin.Deprecated(message = "enum entry is deprecated")'
                )

            if self._ordinal_is_index:
                output.print(
                    '$name$($number$),\n',
                    name=value.name(),
                    number=value.number(),
                )
            else:
                output.print(
                    '$name$($index$, $number$),\n',
                    name=value.name(),
                    index=value.index(),
                    number=value.number(),
                )
            output.annotate('name', value.source_path())

        if self._enum.is_open():
            if self._ordinal_is_index:
                output.print(
                    '${$UNRECOGNIZED$}$($number$),\n',
                    number=UNRECOGNIZED_NUMBER,
                )
            else:
                output.print(
                    '${$UNRECOGNIZED$}$($number$, $number$),\n',
                    number=UNRECOGNIZED_NUMBER,
                )
            output.annotate('{', self._enum.source_path(), '}')

        output.write_line(';')

    def _generate_get_number(self, output: OutputFile) -> None:
        output.write_line('override fun getNumber(): Int {')
        with output.indent():
            if self._enum.is_open():
                if self._ordinal_is_index:
                    output.write_line('if (this == UNRECOGNIZED) {')
                else:
                    output.write_line(f'if (index == {UNRECOGNIZED_NUMBER}) {{')
                output.print(
                    '  throw kotlin.IllegalArgumentException(\n'
                    '      "Can\'t get the number of an unknown enum value.")\n'
                    '}\n'
                )
            output.write_line('return value')
        output.write_line('}')

    def _generate_companion(
        self, output: OutputFile, has_descriptors: bool
    ) -> None:
        classname = self._enum.name()

        for alias in self._partition.aliases:
            _write_doc_comment(
                output,
                f'`{alias.value.name()} = {alias.value.number()};`',
            )
            output.print(
                'val $name$: $classname$ = $canonical_name$\n',
                name=alias.value.name(),
                classname=classname,
                canonical_name=alias.canonical_value.name(),
            )
            output.annotate('name', alias.value.source_path())

        for value in self._values:
            output.print(
                'const val ${$$name$_VALUE$}$: Int = $number$\n',
                name=value.name(),
                number=value.number(),
            )
            output.annotate('{', value.source_path(), '}')

        output.write_line()
        output.print(
            '/**\n'
            ' * @deprecated Use [forNumber] instead.\n'
            ' */\n'
            '@kotlin.Deprecated(message = "use forNumber instead")\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun valueOf(value: Int): $classname$? {\n'
            '  return forNumber(value)\n'
            '}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun forNumber(value: Int): $classname$? =\n'
            '    when (value) {\n',
            classname=classname,
        )
        with output.indent(6):
            for value in self._partition.canonical_values:
                output.write_line(f'{value.number()} -> {value.name()}')
            output.write_line('else -> null')
        output.write_line('    }')

        output.write_line()
        output.print(
            '@kotlin.jvm.JvmStatic\n'
            'fun internalGetValueMap(): $map$<$classname$> {\n'
            '  return internalValueMap\n'
            '}\n'
            '\n'
            'private val internalValueMap: $map$<$classname$> =\n'
            '    object : $map$<$classname$> {\n'
            '      override fun findValueByNumber(\n'
            '          number: Int): $classname$? =\n'
            '          forNumber(number)\n'
            '    }\n',
            map=_ENUM_LITE_MAP,
            classname=classname,
        )

        if has_descriptors:
            output.write_line()
            self._generate_descriptor_accessors(output)

    def _generate_descriptor_accessors(self, output: OutputFile) -> None:
        classname = self._enum.name()

        output.write_line('@kotlin.jvm.JvmStatic')
        output.write_line(
            f'fun getDescriptor(): {_DESCRIPTORS}.EnumDescriptor {{'
        )
        with output.indent():
            output.write_line(
                f'return {self._descriptor_scope()}'
                f'.getEnumTypes().get({self._enum.index()})'
            )
        output.write_line('}')
        output.write_line()

        if self.can_use_enum_values():
            # The entries are exactly the declared values in order, so the
            # compiler-provided listing can serve as the value table.
            values = 'values()'
        else:
            names = ', '.join(value.name() for value in self._values)
            values = f'arrayOf({names})'
        output.write_line(
            f'private val VALUES: Array<{classname}> = {values}'
        )
        output.write_line()

        output.print(
            '@kotlin.jvm.JvmStatic\n'
            'fun valueOf(\n'
            '    desc: $descriptors$.EnumValueDescriptor): $classname$ {\n'
            '  if (desc.getType() != getDescriptor()) {\n'
            '    throw kotlin.IllegalArgumentException(\n'
            '        "EnumValueDescriptor is not for this type.")\n'
            '  }\n',
            descriptors=_DESCRIPTORS,
            classname=classname,
        )
        if self._enum.is_open():
            output.print(
                '  if (desc.getIndex() == $number$) {\n'
                '    return UNRECOGNIZED\n'
                '  }\n',
                number=UNRECOGNIZED_NUMBER,
            )
        output.write_line('  return VALUES[desc.getIndex()]')
        output.write_line('}')

    def _descriptor_scope(self) -> str:
        """Expression yielding the descriptor that declares this enum."""
        parent = self._enum.containing_message()
        if parent is None:
            return f'{self._context.file_class_name()}.getDescriptor()'

        parent_class = self._context.resolver().class_name_for_node(parent)
        if parent.no_standard_descriptor_accessor():
            return (
                f'{parent_class}.getDefaultInstance().getDescriptorForType()'
            )
        return f'{parent_class}.getDescriptor()'

    def _generate_reflection(self, output: OutputFile) -> None:
        index_text = 'ordinal' if self._ordinal_is_index else 'index'
        output.print(
            'override fun getValueDescriptor(): '
            '$descriptors$.EnumValueDescriptor {\n'
            '  return getDescriptor().getValues().get($index_text$)\n'
            '}\n'
            '\n'
            'override fun getDescriptorForType(): '
            '$descriptors$.EnumDescriptor {\n'
            '  return getDescriptor()\n'
            '}\n',
            descriptors=_DESCRIPTORS,
            index_text=index_text,
        )


def generate_enum(
    proto_enum: ProtoEnum, context: Context, output: OutputFile
) -> None:
    """Creates a Kotlin enum class for a proto enum."""
    EnumGenerator(proto_enum, context).generate(output)
