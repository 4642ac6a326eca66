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
"""Maps protobuf type and file names to generated Kotlin class names."""

import logging
import os
from typing import Iterable

from pw_protobuf_kotlin.proto_tree import ProtoMessageField, ProtoNode

_LOG = logging.getLogger(__name__)

_OUTER_CLASS_SUFFIX = 'OuterClass'


class ClassNameResolver:
    """Resolves generated class names across every file of a request.

    Top-level messages and enums are emitted directly in the file's Kotlin
    package; nested types are nested classes of their containing message.
    Each file additionally gets an outer object holding its descriptor.
    """

    def __init__(self, proto_files: Iterable = ()):
        self._packages: dict[str, str] = {}
        self._outer_classes: dict[str, str] = {}
        self._types: dict[str, str] = {}

        for proto_file in proto_files:
            self.add_file(proto_file)

    def add_file(self, proto_file) -> None:
        """Indexes the types declared in a FileDescriptorProto."""
        package = proto_file.options.java_package or proto_file.package
        self._packages[proto_file.name] = package
        self._outer_classes[proto_file.name] = _outer_class_name(proto_file)

        proto_prefix = f'.{proto_file.package}' if proto_file.package else ''

        def add_message(message, proto_scope: str, kotlin_scope: str) -> None:
            proto_name = f'{proto_scope}.{message.name}'
            kotlin_name = _join(kotlin_scope, message.name)
            self._types[proto_name] = kotlin_name

            for proto_enum in message.enum_type:
                self._types[f'{proto_name}.{proto_enum.name}'] = _join(
                    kotlin_name, proto_enum.name
                )
            for nested in message.nested_type:
                add_message(nested, proto_name, kotlin_name)

        for proto_enum in proto_file.enum_type:
            self._types[f'{proto_prefix}.{proto_enum.name}'] = _join(
                package, proto_enum.name
            )
        for message in proto_file.message_type:
            add_message(message, proto_prefix, package)

    def package(self, file_name: str) -> str:
        return self._packages.get(file_name, '')

    def outer_class_name(self, file_name: str) -> str:
        """Unqualified name of the object holding the file's descriptor."""
        if file_name not in self._outer_classes:
            return _camel_case_file_name(file_name)
        return self._outer_classes[file_name]

    def file_class_name(self, file_name: str) -> str:
        """Fully-qualified name of the object holding the file's descriptor."""
        return _join(self.package(file_name), self.outer_class_name(file_name))

    def class_name(self, type_name: str) -> str:
        """Returns the Kotlin class for a fully-qualified proto type name."""
        if not type_name.startswith('.'):
            type_name = '.' + type_name

        kotlin_name = self._types.get(type_name)
        if kotlin_name is None:
            # Types from files missing from the request keep their proto path.
            _LOG.debug('No Kotlin class known for %s', type_name)
            return type_name[1:]
        return kotlin_name

    def class_name_for_node(self, node: ProtoNode) -> str:
        return self.class_name(node.proto_path())


def _join(scope: str, name: str) -> str:
    return f'{scope}.{name}' if scope else name


def _camel_case_file_name(file_name: str) -> str:
    base = os.path.splitext(os.path.basename(file_name))[0]
    return ProtoMessageField.upper_camel_case(base.replace('-', '_'))


def _outer_class_name(proto_file) -> str:
    if proto_file.options.java_outer_classname:
        return proto_file.options.java_outer_classname

    name = _camel_case_file_name(proto_file.name)
    top_level_names = {message.name for message in proto_file.message_type}
    top_level_names.update(enum.name for enum in proto_file.enum_type)
    top_level_names.update(service.name for service in proto_file.service)

    if name in top_level_names:
        name += _OUTER_CLASS_SUFFIX
    return name
