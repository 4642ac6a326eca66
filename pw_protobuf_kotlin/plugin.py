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
"""pw_protobuf_kotlin compiler plugin.

This file implements a protobuf compiler plugin which generates Kotlin classes
for protobuf enums and messages, targeting the protobuf-java runtime.
"""

import logging
import sys
from argparse import ArgumentParser, Namespace
from shlex import shlex

from google.protobuf.compiler import plugin_pb2

from pw_protobuf_kotlin import codegen_kotlin, edition_constants
from pw_protobuf_kotlin.context import CodegenError, GeneratorOptions
from pw_protobuf_kotlin.name_resolver import ClassNameResolver

_LOG = logging.getLogger(__name__)


def parse_parameter_options(parameter: str) -> Namespace:
    """Parses parameters passed through from protoc.

    These parameters come in via passing `--${NAME}_opt` parameters to protoc,
    where protoc-gen-${NAME} is the supplied name of the plugin.
    """
    parser = ArgumentParser()
    parser.add_argument(
        '--lite',
        dest='lite',
        action='store_true',
        help='Omit descriptor-based reflection members from generated enums',
    )
    parser.add_argument(
        '--annotate-code',
        dest='annotate_code',
        action='store_true',
        help='Attach GeneratedCodeInfo annotations to the generated files',
    )
    parser.add_argument(
        '--verbose',
        dest='verbose',
        action='store_true',
        help='Log generation progress to stderr',
    )

    # protoc passes the custom arguments in shell quoted form, separated by
    # commas. Use shlex to split them, correctly handling quoted sections, with
    # equivalent options to IFS=","
    lex = shlex(parameter)
    lex.whitespace_split = True
    lex.whitespace = ','
    lex.commenters = ''
    args = list(lex)

    return parser.parse_args(args)


def process_proto_request(
    req: plugin_pb2.CodeGeneratorRequest, res: plugin_pb2.CodeGeneratorResponse
) -> bool:
    """Handles a protoc CodeGeneratorRequest message.

    Generates code for the files in the request and writes the output to the
    specified CodeGeneratorResponse message. If any file fails to generate, the
    response carries the error and no files.

    Args:
      req: A CodeGeneratorRequest for a proto compilation.
      res: A CodeGeneratorResponse to populate with the plugin's output.
    """
    args = parse_parameter_options(req.parameter)
    codegen_options = GeneratorOptions(
        lite=args.lite,
        annotate_code=args.annotate_code,
    )

    # Every file in the request, generated or imported, can name types.
    resolver = ClassNameResolver(req.proto_file)
    files_to_generate = set(req.file_to_generate)

    output_files = []
    try:
        for proto_file in req.proto_file:
            if proto_file.name not in files_to_generate:
                continue
            output_files.append(
                codegen_kotlin.process_proto_file(
                    proto_file, resolver, codegen_options
                )
            )
    except CodegenError as e:
        _LOG.error('%s', e.formatted_message())
        res.error = e.formatted_message()
        return False

    for output_file in output_files:
        fd = res.file.add()
        fd.name = output_file.name()
        fd.content = output_file.content()
        if codegen_options.annotate_code:
            fd.generated_code_info.CopyFrom(output_file.generated_code_info())

    return True


def main() -> int:
    """Protobuf compiler plugin entrypoint.

    Reads a CodeGeneratorRequest proto from stdin and writes a
    CodeGeneratorResponse to stdout.
    """
    data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest.FromString(data)
    response = plugin_pb2.CodeGeneratorResponse()

    # protoc reads the response from stdout, so logs go to stderr.
    logging.basicConfig(
        stream=sys.stderr,
        level=(
            logging.DEBUG
            if parse_parameter_options(request.parameter).verbose
            else logging.WARNING
        ),
        format='%(levelname)s %(name)s: %(message)s',
    )

    # Declare that this plugin supports optional fields in proto3.
    response.supported_features |= (  # type: ignore[attr-defined]
        response.FEATURE_PROTO3_OPTIONAL
    )  # type: ignore[attr-defined]

    response.supported_features |= edition_constants.FEATURE_SUPPORTS_EDITIONS

    if hasattr(response, 'minimum_edition'):
        response.minimum_edition = (  # type: ignore[attr-defined]
            edition_constants.Edition.EDITION_PROTO2.value
        )
        response.maximum_edition = (  # type: ignore[attr-defined]
            edition_constants.Edition.EDITION_2023.value
        )

    success = process_proto_request(request, response)

    # A failed request is still answered so protoc can report the error.
    sys.stdout.buffer.write(response.SerializeToString())
    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
