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
"""This module defines the generated code for Kotlin protobuf classes."""

import logging
import os
from typing import Iterable, cast

from google.protobuf import descriptor_pb2

from pw_protobuf_kotlin import presence
from pw_protobuf_kotlin.context import (
    CodegenError,
    Context,
    GeneratorOptions,
    PLUGIN_NAME,
    PLUGIN_VERSION,
)
from pw_protobuf_kotlin.enums import generate_enum
from pw_protobuf_kotlin.message_fields import (
    FieldGenerator,
    create_field_generator,
)
from pw_protobuf_kotlin.name_resolver import ClassNameResolver
from pw_protobuf_kotlin.output_file import OutputFile
from pw_protobuf_kotlin.presence import PresenceBitAllocator
from pw_protobuf_kotlin.proto_tree import (
    ProtoEnum,
    ProtoMessage,
    ProtoNode,
    ProtoOneof,
    build_node_tree,
)

__all__ = [
    'CodegenError',
    'GeneratorOptions',
    'MessageFieldGenerators',
    'generate_file',
    'generate_message',
    'process_proto_file',
]

_LOG = logging.getLogger(__name__)

KOTLIN_EXTENSION = '.kt'

_PROTOBUF = 'com.google.protobuf'
_GENERATED_MESSAGE = f'{_PROTOBUF}.GeneratedMessageV3'

# Bytes of serialized descriptor per string literal in the file object.
_DESCRIPTOR_BYTES_PER_LINE = 40


class MessageFieldGenerators:
    """The field generators of one message, with presence bits assigned.

    Only message-typed fields are generated. Other fields are left out of the
    class; their values are preserved as unknown fields when parsing.
    """

    def __init__(self, message: ProtoMessage, context: Context):
        allocator = PresenceBitAllocator()
        self._generators: list[FieldGenerator] = []

        for field in message.fields():
            if not field.is_message():
                _LOG.debug(
                    'Skipping non-message field %s.%s',
                    message.proto_path(),
                    field.field_name(),
                )
                continue

            generator = create_field_generator(
                field, allocator.next_bits(), context
            )
            allocator.allocate(
                generator.num_bits_for_message(),
                generator.num_bits_for_builder(),
            )
            self._generators.append(generator)

        self._message_words = presence.word_count(
            allocator.total_message_bits()
        )
        self._builder_words = presence.word_count(
            allocator.total_builder_bits()
        )

    def __iter__(self):
        return iter(self._generators)

    def outside_oneofs(self) -> list[FieldGenerator]:
        return [g for g in self._generators if g.field().oneof() is None]

    def in_oneof(self, oneof: ProtoOneof) -> list[FieldGenerator]:
        return [g for g in self._generators if g.field().oneof() is oneof]

    def message_words(self) -> int:
        """Number of bitFieldN_ words in the message class."""
        return self._message_words

    def builder_words(self) -> int:
        """Number of bitFieldN_ words in the builder."""
        return self._builder_words


def _write_doc(output: OutputFile, message: ProtoMessage) -> None:
    output.write_line('/**')
    output.write_line(f' * Protobuf type `{message.proto_path()}`')
    output.write_line(' */')


def _descriptor_expression(message: ProtoMessage, context: Context) -> str:
    parent = message.containing_message()
    if parent is None:
        return (
            f'{context.file_class_name()}.getDescriptor()'
            f'.getMessageTypes().get({message.index()})'
        )

    parent_class = context.resolver().class_name_for_node(parent)
    return (
        f'{parent_class}.getDescriptor()'
        f'.getNestedTypes().get({message.index()})'
    )


def _generate_interface(
    message: ProtoMessage,
    generators: MessageFieldGenerators,
    output: OutputFile,
) -> None:
    _write_doc(output, message)
    output.write_line(
        f'interface {message.name()}OrBuilder : {_PROTOBUF}.MessageOrBuilder {{'
    )
    with output.indent():
        for generator in generators:
            generator.generate_interface_members(output)
        for oneof in message.oneofs():
            output.write_line(
                f'fun get{oneof.capitalized_name()}Case(): '
                f'{message.name()}.{oneof.capitalized_name()}Case'
            )
    output.write_line('}')


def _generate_oneof_case_enum(
    message: ProtoMessage, oneof: ProtoOneof, output: OutputFile
) -> None:
    case_class = f'{oneof.capitalized_name()}Case'
    members = [field for field in message.fields() if field.oneof() is oneof]
    not_set = f'{oneof.name().upper()}_NOT_SET'

    output.write_line(
        f'enum class {case_class}(private val value: Int) : '
        f'{_PROTOBUF}.Internal.EnumLite {{'
    )
    with output.indent():
        for field in members:
            output.write_line(f'{field.enum_name()}({field.number()}),')
        output.write_line(f'{not_set}(0);')
        output.write_line()
        output.write_line('override fun getNumber(): Int = value')
        output.write_line()
        output.write_line('companion object {')
        with output.indent():
            output.write_line('@kotlin.jvm.JvmStatic')
            output.write_line(f'fun forNumber(value: Int): {case_class}? =')
            output.write_line('    when (value) {')
            with output.indent(6):
                for field in members:
                    output.write_line(
                        f'{field.number()} -> {field.enum_name()}'
                    )
                output.write_line(f'0 -> {not_set}')
                output.write_line('else -> null')
            output.write_line('    }')
        output.write_line('}')
    output.write_line('}')
    output.write_line()


def _generate_oneof_when(
    generators: Iterable[FieldGenerator],
    subject: str,
    output: OutputFile,
    method: str,
) -> None:
    """Dispatches a section over the active member of a oneof.

    Args:
      subject: Kotlin expression yielding the case number being dispatched on.
      method: Name of the FieldGenerator section method to call per member.
    """
    output.write_line(f'when ({subject}) {{')
    with output.indent():
        for generator in generators:
            output.write_line(f'{generator.field().number()} -> {{')
            with output.indent():
                getattr(generator, method)(output)
            output.write_line('}')
        output.write_line('else -> {}')
    output.write_line('}')


def _generate_parsing_constructor(
    generators: MessageFieldGenerators, output: OutputFile
) -> None:
    output.print(
        'private constructor(\n'
        '    input: $protobuf$.CodedInputStream,\n'
        '    extensionRegistry: $protobuf$.ExtensionRegistryLite) : this() {\n'
        '  val unknownFields = $protobuf$.UnknownFieldSet.newBuilder()\n'
        '  try {\n'
        '    var done = false\n'
        '    while (!done) {\n'
        '      val tag = input.readTag()\n'
        '      when (tag) {\n'
        '        0 -> done = true\n',
        protobuf=_PROTOBUF,
    )
    with output.indent(8):
        for generator in generators:
            output.write_line(f'{generator.tag()} -> {{')
            with output.indent():
                generator.generate_parsing_code(output)
            output.write_line('}')
    output.print(
        '        else -> {\n'
        '          if (!parseUnknownField(\n'
        '              input, unknownFields, extensionRegistry, tag)) {\n'
        '            done = true\n'
        '          }\n'
        '        }\n'
        '      }\n'
        '    }\n'
        '  } catch (e: $protobuf$.InvalidProtocolBufferException) {\n'
        '    throw e.setUnfinishedMessage(this)\n'
        '  } catch (e: java.io.IOException) {\n'
        '    throw $protobuf$.InvalidProtocolBufferException(e)\n'
        '        .setUnfinishedMessage(this)\n'
        '  } finally {\n',
        protobuf=_PROTOBUF,
    )
    with output.indent(4):
        for generator in generators:
            generator.generate_parsing_done_code(output)
        output.write_line('this.unknownFields = unknownFields.build()')
        output.write_line('makeExtensionsImmutable()')
    output.write_line('  }')
    output.write_line('}')


def _generate_is_initialized(
    generators: MessageFieldGenerators, output: OutputFile
) -> None:
    output.print(
        'private var memoizedIsInitialized: Byte = -1\n'
        '\n'
        'override fun isInitialized(): Boolean {\n'
        '  val isInitialized = memoizedIsInitialized\n'
        '  if (isInitialized == 1.toByte()) return true\n'
        '  if (isInitialized == 0.toByte()) return false\n'
        '\n'
    )
    with output.indent():
        for generator in generators:
            generator.generate_is_initialized_code(output)
        output.write_line('memoizedIsInitialized = 1')
        output.write_line('return true')
    output.write_line('}')


def _generate_serialization(
    generators: MessageFieldGenerators, output: OutputFile
) -> None:
    output.write_line(
        f'override fun writeTo(output: {_PROTOBUF}.CodedOutputStream) {{'
    )
    with output.indent():
        for generator in generators:
            generator.generate_serialization_code(output)
        output.write_line('getUnknownFields().writeTo(output)')
    output.write_line('}')
    output.write_line()

    output.print(
        'override fun getSerializedSize(): Int {\n'
        '  var size = memoizedSize\n'
        '  if (size != -1) return size\n'
        '\n'
        '  size = 0\n'
    )
    with output.indent():
        for generator in generators:
            generator.generate_serialized_size_code(output)
        output.write_line('size += getUnknownFields().getSerializedSize()')
        output.write_line('memoizedSize = size')
        output.write_line('return size')
    output.write_line('}')


def _generate_equals_and_hash_code(
    message: ProtoMessage,
    generators: MessageFieldGenerators,
    output: OutputFile,
) -> None:
    output.print(
        'override fun equals(other: Any?): Boolean {\n'
        '  if (other === this) {\n'
        '    return true\n'
        '  }\n'
        '  if (other !is $classname$) {\n'
        '    return super.equals(other)\n'
        '  }\n'
        '\n',
        classname=message.name(),
    )
    with output.indent():
        for generator in generators.outside_oneofs():
            generator.generate_equals_code(output)
        for oneof in message.oneofs():
            case_getter = f'get{oneof.capitalized_name()}Case()'
            output.write_line(
                f'if ({case_getter} != other.{case_getter}) return false'
            )
            _generate_oneof_when(
                generators.in_oneof(oneof),
                oneof.case_name(),
                output,
                'generate_equals_code',
            )
        output.write_line(
            'if (getUnknownFields() != other.getUnknownFields()) return false'
        )
        output.write_line('return true')
    output.write_line('}')
    output.write_line()

    output.print(
        'override fun hashCode(): Int {\n'
        '  if (memoizedHashCode != 0) {\n'
        '    return memoizedHashCode\n'
        '  }\n'
        '  var hash = 41\n'
        '  hash = (19 * hash) + getDescriptor().hashCode()\n'
    )
    with output.indent():
        for generator in generators.outside_oneofs():
            generator.generate_hash_code(output)
        for oneof in message.oneofs():
            _generate_oneof_when(
                generators.in_oneof(oneof),
                oneof.case_name(),
                output,
                'generate_hash_code',
            )
        output.write_line('hash = (29 * hash) + getUnknownFields().hashCode()')
        output.write_line('memoizedHashCode = hash')
        output.write_line('return hash')
    output.write_line('}')


def _generate_builder(
    message: ProtoMessage,
    generators: MessageFieldGenerators,
    output: OutputFile,
) -> None:
    variables = {
        'classname': message.name(),
        'protobuf': _PROTOBUF,
        'generated_message': _GENERATED_MESSAGE,
    }

    _write_doc(output, message)
    output.print(
        'class Builder :\n'
        '    $generated_message$.Builder<Builder>,\n'
        '    $classname$OrBuilder {\n',
        variables,
    )

    with output.indent():
        for word in range(generators.builder_words()):
            output.write_line(
                f'private var {presence.bit_field_name(word)}: Int = 0'
            )
        for oneof in message.oneofs():
            output.write_line(f'private var {oneof.case_name()}: Int = 0')
            output.write_line(
                f'private var {oneof.storage_name()}: Any? = null'
            )
        output.write_line()

        output.print(
            'internal constructor() : super() {\n'
            '  maybeForceBuilderInitialization()\n'
            '}\n'
            '\n'
            'internal constructor(\n'
            '    parent: $generated_message$.BuilderParent) : super(parent) {\n'
            '  maybeForceBuilderInitialization()\n'
            '}\n'
            '\n'
            'private fun maybeForceBuilderInitialization() {\n'
            '  if ($generated_message$.alwaysUseFieldBuilders) {\n',
            variables,
        )
        with output.indent(4):
            for generator in generators.outside_oneofs():
                generator.generate_field_builder_initialization_code(output)
        output.print(
            '  }\n'
            '}\n'
            '\n'
            'override fun internalGetFieldAccessorTable():\n'
            '    $generated_message$.FieldAccessorTable {\n'
            '  return internal_fieldAccessorTable\n'
            '      .ensureFieldAccessorsInitialized(\n'
            '          $classname$::class.java, Builder::class.java)\n'
            '}\n'
            '\n'
            'override fun getDescriptorForType(): '
            '$protobuf$.Descriptors.Descriptor {\n'
            '  return getDescriptor()\n'
            '}\n'
            '\n'
            'override fun getDefaultInstanceForType(): $classname$ {\n'
            '  return getDefaultInstance()\n'
            '}\n'
            '\n'
            'override fun clear(): Builder {\n'
            '  super.clear()\n',
            variables,
        )
        with output.indent():
            for generator in generators:
                generator.generate_builder_clear_code(output)
            for word in range(generators.builder_words()):
                output.write_line(f'{presence.bit_field_name(word)} = 0')
            for oneof in message.oneofs():
                output.write_line(f'{oneof.case_name()} = 0')
                output.write_line(f'{oneof.storage_name()} = null')
            output.write_line('return this')
        output.print(
            '}\n'
            '\n'
            'override fun build(): $classname$ {\n'
            '  val result = buildPartial()\n'
            '  if (!result.isInitialized()) {\n'
            '    throw newUninitializedMessageException(result)\n'
            '  }\n'
            '  return result\n'
            '}\n'
            '\n'
            'override fun buildPartial(): $classname$ {\n'
            '  val result = $classname$(this)\n',
            variables,
        )
        with output.indent():
            for word in range(generators.builder_words()):
                name = presence.bit_field_name(word)
                output.write_line(f'val from_{name} = {name}')
            for word in range(generators.message_words()):
                name = presence.bit_field_name(word)
                output.write_line(f'var to_{name} = 0')
            for generator in generators:
                generator.generate_building_code(output)
            for word in range(generators.message_words()):
                name = presence.bit_field_name(word)
                output.write_line(f'result.{name} = to_{name}')
            for oneof in message.oneofs():
                output.write_line(
                    f'result.{oneof.case_name()} = {oneof.case_name()}'
                )
            output.write_line('onBuilt()')
            output.write_line('return result')
        output.print(
            '}\n'
            '\n'
            'override fun mergeFrom(other: $protobuf$.Message): Builder {\n'
            '  if (other is $classname$) {\n'
            '    return mergeFrom(other)\n'
            '  }\n'
            '  super.mergeFrom(other)\n'
            '  return this\n'
            '}\n'
            '\n'
            'fun mergeFrom(other: $classname$): Builder {\n'
            '  if (other === getDefaultInstance()) return this\n',
            variables,
        )
        with output.indent():
            for generator in generators.outside_oneofs():
                generator.generate_merging_code(output)
            # The source message's active case selects the member to merge.
            for oneof in message.oneofs():
                _generate_oneof_when(
                    generators.in_oneof(oneof),
                    f'other.{oneof.case_name()}',
                    output,
                    'generate_merging_code',
                )
            output.write_line('mergeUnknownFields(other.getUnknownFields())')
            output.write_line('onChanged()')
            output.write_line('return this')
        output.write_line('}')
        output.write_line()

        output.write_line('override fun isInitialized(): Boolean {')
        with output.indent():
            for generator in generators:
                generator.generate_is_initialized_code(output, builder=True)
            output.write_line('return true')
        output.print(
            '}\n'
            '\n'
            'override fun mergeFrom(\n'
            '    input: $protobuf$.CodedInputStream,\n'
            '    extensionRegistry: $protobuf$.ExtensionRegistryLite): '
            'Builder {\n'
            '  var parsedMessage: $classname$? = null\n'
            '  try {\n'
            '    parsedMessage = PARSER.parsePartialFrom(input, '
            'extensionRegistry)\n'
            '  } catch (e: $protobuf$.InvalidProtocolBufferException) {\n'
            '    parsedMessage = e.getUnfinishedMessage() as $classname$?\n'
            '    throw e.unwrapIOException()\n'
            '  } finally {\n'
            '    if (parsedMessage != null) {\n'
            '      mergeFrom(parsedMessage)\n'
            '    }\n'
            '  }\n'
            '  return this\n'
            '}\n'
            '\n',
            variables,
        )

        for oneof in message.oneofs():
            output.print(
                'override fun ${$get$oneof$Case$}$(): $oneof$Case {\n'
                '  return $oneof$Case.forNumber($case$)!!\n'
                '}\n'
                '\n'
                'fun clear$oneof$(): Builder {\n'
                '  $case$ = 0\n'
                '  $storage$ = null\n'
                '  onChanged()\n'
                '  return this\n'
                '}\n'
                '\n',
                oneof=oneof.capitalized_name(),
                case=oneof.case_name(),
                storage=oneof.storage_name(),
            )
            output.annotate('{', oneof.source_path(), '}')

        for generator in generators:
            generator.generate_builder_members(output)

        output.write_line(
            f'// @@protoc_insertion_point(builder_scope:{message.proto_path()})'
        )
    output.write_line('}')


def _generate_companion(
    message: ProtoMessage, context: Context, output: OutputFile
) -> None:
    variables = {
        'classname': message.name(),
        'protobuf': _PROTOBUF,
        'generated_message': _GENERATED_MESSAGE,
        'descriptor': _descriptor_expression(message, context),
    }

    accessor_names = [field.capitalized_name() for field in message.fields()]
    accessor_names.extend(
        oneof.capitalized_name() for oneof in message.oneofs()
    )
    variables['accessor_names'] = ', '.join(f'"{n}"' for n in accessor_names)

    output.write_line('companion object {')
    with output.indent():
        for field in message.fields():
            output.write_line(
                f'const val {field.enum_name()}_FIELD_NUMBER: Int = '
                f'{field.number()}'
            )
        if message.fields():
            output.write_line()

        output.print(
            'private val DEFAULT_INSTANCE: $classname$ = $classname$()\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun getDefaultInstance(): $classname$ {\n'
            '  return DEFAULT_INSTANCE\n'
            '}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun getDescriptor(): $protobuf$.Descriptors.Descriptor {\n'
            '  return $descriptor$\n'
            '}\n'
            '\n'
            'private val internal_fieldAccessorTable:\n'
            '    $generated_message$.FieldAccessorTable by lazy {\n'
            '  $generated_message$.FieldAccessorTable(\n'
            '      getDescriptor(), arrayOf($accessor_names$))\n'
            '}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun newBuilder(): Builder {\n'
            '  return DEFAULT_INSTANCE.toBuilder()\n'
            '}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun newBuilder(prototype: $classname$): Builder {\n'
            '  return DEFAULT_INSTANCE.toBuilder().mergeFrom(prototype)\n'
            '}\n'
            '\n'
            'private val PARSER: $protobuf$.Parser<$classname$> =\n'
            '    object : $protobuf$.AbstractParser<$classname$>() {\n'
            '      override fun parsePartialFrom(\n'
            '          input: $protobuf$.CodedInputStream,\n'
            '          extensionRegistry: $protobuf$.ExtensionRegistryLite\n'
            '      ): $classname$ {\n'
            '        return $classname$(input, extensionRegistry)\n'
            '      }\n'
            '    }\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun parser(): $protobuf$.Parser<$classname$> {\n'
            '  return PARSER\n'
            '}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun parseFrom(data: kotlin.ByteArray): $classname$ {\n'
            '  return PARSER.parseFrom(data)\n'
            '}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun parseFrom(data: $protobuf$.ByteString): $classname$ {\n'
            '  return PARSER.parseFrom(data)\n'
            '}\n',
            variables,
        )
    output.write_line('}')


def generate_message(
    message: ProtoMessage, context: Context, output: OutputFile
) -> None:
    """Writes the OrBuilder interface and class for a message.

    Nested enums and messages are written inside the class.

    Raises:
      CodegenError: The message cannot be generated for the target runtime.
    """
    if not context.has_descriptor_methods():
        raise CodegenError(
            'messages require the full protobuf runtime; '
            'lite runtime classes are not generated',
            message,
        )

    _LOG.debug('Generating message %s', message.proto_path())
    generators = MessageFieldGenerators(message, context)

    _generate_interface(message, generators, output)
    output.write_line()

    variables = {
        'classname': message.name(),
        'protobuf': _PROTOBUF,
        'generated_message': _GENERATED_MESSAGE,
    }

    _write_doc(output, message)
    if (
        context.options().annotate_code
        and message.containing_message() is None
    ):
        output.write_line(f'@javax.annotation.Generated("by {PLUGIN_NAME}")')
    output.print('class $classname$ :\n', variables)
    output.annotate('classname', message.source_path())
    output.print(
        '    $generated_message$,\n'
        '    $classname$OrBuilder {\n',
        variables,
    )

    with output.indent():
        for word in range(generators.message_words()):
            output.write_line(
                f'private var {presence.bit_field_name(word)}: Int = 0'
            )
        for oneof in message.oneofs():
            output.write_line(f'private var {oneof.case_name()}: Int = 0')
            output.write_line(
                f'private var {oneof.storage_name()}: Any? = null'
            )
        output.write_line()

        output.print(
            'private constructor(\n'
            '    builder: $generated_message$.Builder<*>) : super(builder)\n'
            '\n'
            'private constructor() : super() {\n',
            variables,
        )
        with output.indent():
            for generator in generators:
                generator.generate_initialization_code(output)
        output.write_line('}')
        output.write_line()

        _generate_parsing_constructor(generators, output)
        output.write_line()

        output.print(
            'override fun newInstance(\n'
            '    unused: $generated_message$.UnusedPrivateParameter): Any {\n'
            '  return $classname$()\n'
            '}\n'
            '\n'
            'override fun getUnknownFields(): $protobuf$.UnknownFieldSet {\n'
            '  return this.unknownFields\n'
            '}\n'
            '\n'
            'override fun internalGetFieldAccessorTable():\n'
            '    $generated_message$.FieldAccessorTable {\n'
            '  return internal_fieldAccessorTable\n'
            '      .ensureFieldAccessorsInitialized(\n'
            '          $classname$::class.java, Builder::class.java)\n'
            '}\n'
            '\n',
            variables,
        )

        for oneof in message.oneofs():
            _generate_oneof_case_enum(message, oneof, output)
            output.print(
                'override fun ${$get$oneof$Case$}$(): $oneof$Case {\n'
                '  return $oneof$Case.forNumber($case$)!!\n'
                '}\n'
                '\n',
                oneof=oneof.capitalized_name(),
                case=oneof.case_name(),
            )
            output.annotate('{', oneof.source_path(), '}')

        for generator in generators:
            generator.generate_members(output)

        _generate_is_initialized(generators, output)
        output.write_line()
        _generate_serialization(generators, output)
        output.write_line()
        _generate_equals_and_hash_code(message, generators, output)
        output.write_line()

        output.print(
            'override fun newBuilderForType(): Builder {\n'
            '  return newBuilder()\n'
            '}\n'
            '\n'
            'override fun newBuilderForType(\n'
            '    parent: $generated_message$.BuilderParent): Builder {\n'
            '  return Builder(parent)\n'
            '}\n'
            '\n'
            'override fun toBuilder(): Builder {\n'
            '  return if (this === DEFAULT_INSTANCE) Builder() '
            'else Builder().mergeFrom(this)\n'
            '}\n'
            '\n'
            'override fun getDefaultInstanceForType(): $classname$ {\n'
            '  return DEFAULT_INSTANCE\n'
            '}\n'
            '\n'
            'override fun getParserForType():\n'
            '    $protobuf$.Parser<$classname$> {\n'
            '  return PARSER\n'
            '}\n'
            '\n',
            variables,
        )

        _generate_builder(message, generators, output)

        for child in message.children():
            output.write_line()
            _generate_node(child, context, output)

        output.write_line()
        output.write_line(
            f'// @@protoc_insertion_point(class_scope:{message.proto_path()})'
        )
        output.write_line()
        _generate_companion(message, context, output)

    output.write_line('}')


def _generate_node(node: ProtoNode, context: Context, output: OutputFile):
    if node.type() == ProtoNode.Type.ENUM:
        generate_enum(cast(ProtoEnum, node), context, output)
    elif node.type() == ProtoNode.Type.MESSAGE:
        generate_message(cast(ProtoMessage, node), context, output)


def _kotlin_string_literal(data: bytes) -> str:
    """Encodes bytes as a Kotlin string literal of one char per byte."""
    chars = []
    for byte in data:
        if 0x20 <= byte < 0x7F and chr(byte) not in '"\\$':
            chars.append(chr(byte))
        else:
            chars.append(f'\\u{byte:04x}')
    return '"' + ''.join(chars) + '"'


def _generate_file_object(
    proto_file: descriptor_pb2.FileDescriptorProto,
    context: Context,
    output: OutputFile,
) -> None:
    """Writes the object embedding the file's serialized descriptor."""
    stripped = descriptor_pb2.FileDescriptorProto()
    stripped.CopyFrom(proto_file)
    stripped.ClearField('source_code_info')
    data = stripped.SerializeToString(deterministic=True)

    resolver = context.resolver()
    outer_class = resolver.outer_class_name(proto_file.name)

    output.write_line(f'object {outer_class} {{')
    with output.indent():
        output.print(
            '@kotlin.jvm.JvmStatic\n'
            'fun registerAllExtensions(\n'
            '    registry: $protobuf$.ExtensionRegistryLite) {}\n'
            '\n'
            '@kotlin.jvm.JvmStatic\n'
            'fun getDescriptor(): $protobuf$.Descriptors.FileDescriptor {\n'
            '  return descriptor\n'
            '}\n'
            '\n'
            'private val descriptor: $protobuf$.Descriptors.FileDescriptor =\n'
            '    $protobuf$.Descriptors.FileDescriptor\n'
            '        .internalBuildGeneratedFileFrom(\n'
            '            arrayOf(\n',
            protobuf=_PROTOBUF,
        )
        with output.indent(14):
            parts = [
                _kotlin_string_literal(data[i : i + _DESCRIPTOR_BYTES_PER_LINE])
                for i in range(0, len(data), _DESCRIPTOR_BYTES_PER_LINE)
            ] or ['""']
            for i, part in enumerate(parts):
                output.write_line(part + (',' if i < len(parts) - 1 else '),'))
        output.write_line('            arrayOf(')
        with output.indent(14):
            dependencies = [
                f'{resolver.file_class_name(dependency)}.getDescriptor()'
                for dependency in proto_file.dependency
            ]
            for i, dependency in enumerate(dependencies):
                separator = ',' if i < len(dependencies) - 1 else ''
                output.write_line(dependency + separator)
        output.write_line('            ))')
    output.write_line('}')


def generate_file(
    proto_file: descriptor_pb2.FileDescriptorProto,
    package: ProtoNode,
    context: Context,
    output: OutputFile,
) -> None:
    """Generates the Kotlin source file corresponding to a .proto file."""
    assert package.type() == ProtoNode.Type.PACKAGE

    output.write_line(
        f'// {os.path.basename(output.name())} automatically generated by '
        f'{PLUGIN_NAME} {PLUGIN_VERSION}. DO NOT EDIT!'
    )
    output.write_line(f'// source: {proto_file.name}')
    output.write_line()
    output.write_line('@file:Suppress("DEPRECATION", "UNCHECKED_CAST")')
    output.write_line()

    kotlin_package = context.resolver().package(proto_file.name)
    if kotlin_package:
        output.write_line(f'package {kotlin_package}')
        output.write_line()

    if context.has_descriptor_methods():
        _generate_file_object(proto_file, context, output)

    # Top-level enums, then messages, each in declaration order.
    for node in package.children():
        if node.type() == ProtoNode.Type.ENUM:
            output.write_line()
            _generate_node(node, context, output)

    for node in package.children():
        if node.type() == ProtoNode.Type.MESSAGE:
            output.write_line()
            _generate_node(node, context, output)

    output.write_line()
    output.write_line(
        f'// @@protoc_insertion_point(outer_class_scope:{proto_file.name})'
    )


def _proto_filename_to_generated_source(
    proto_file: descriptor_pb2.FileDescriptorProto,
    resolver: ClassNameResolver,
) -> str:
    """Returns the generated Kotlin source path for a .proto file."""
    directory = resolver.package(proto_file.name).replace('.', '/')
    filename = resolver.outer_class_name(proto_file.name) + KOTLIN_EXTENSION
    return f'{directory}/{filename}' if directory else filename


def process_proto_file(
    proto_file: descriptor_pb2.FileDescriptorProto,
    resolver: ClassNameResolver,
    options: GeneratorOptions,
) -> OutputFile:
    """Generates code for a single .proto file.

    Raises:
      CodegenError: The file contains a construct that cannot be generated.
    """

    package_root = build_node_tree(proto_file)

    output = OutputFile(
        _proto_filename_to_generated_source(proto_file, resolver),
        proto_file.name,
    )
    context = Context(proto_file, resolver, options)

    _LOG.debug('Generating %s from %s', output.name(), proto_file.name)
    generate_file(proto_file, package_root, context, output)
    return output
