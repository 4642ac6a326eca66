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
"""State shared by the generators of a single .proto file."""

from dataclasses import dataclass

from google.protobuf import descriptor_pb2

from pw_protobuf_kotlin.name_resolver import ClassNameResolver
from pw_protobuf_kotlin.proto_tree import ProtoMessageField, ProtoNode

PLUGIN_NAME = 'pw_protobuf_kotlin'
PLUGIN_VERSION = '0.1.0'


@dataclass
class GeneratorOptions:
    lite: bool = False
    annotate_code: bool = False


class CodegenError(Exception):
    """A schema construct the generators cannot, or must not, handle."""

    def __init__(
        self,
        error_message: str,
        node: ProtoNode | None,
        field: ProtoMessageField | None = None,
    ):
        super().__init__(f'{PLUGIN_NAME} codegen error: {error_message}')
        self.error_message = error_message
        self.node = node
        self.field = field

    def formatted_message(self) -> str:
        lines = [f'{PLUGIN_NAME} codegen error: {self.error_message}']

        if self.node is not None:
            lines.append(f'    at {self.node.proto_path()}')

        if self.field is not None:
            lines.append(f'    in field {self.field.field_name()}')

        return '\n'.join(lines)


class Context:
    """Per-file generation context handed to every generator."""

    def __init__(
        self,
        proto_file: descriptor_pb2.FileDescriptorProto,
        resolver: ClassNameResolver,
        options: GeneratorOptions,
    ):
        self._proto_file = proto_file
        self._resolver = resolver
        self._options = options

    def options(self) -> GeneratorOptions:
        return self._options

    def resolver(self) -> ClassNameResolver:
        return self._resolver

    def file_name(self) -> str:
        return self._proto_file.name

    def file_class_name(self) -> str:
        return self._resolver.file_class_name(self._proto_file.name)

    def has_descriptor_methods(self) -> bool:
        """Whether full-runtime reflection members are generated."""
        if self._options.lite:
            return False
        return (
            self._proto_file.options.optimize_for
            != descriptor_pb2.FileOptions.LITE_RUNTIME
        )
