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
"""Defines a class to represent a generated Kotlin source file."""

import re
from typing import Mapping, Sequence

from google.protobuf import descriptor_pb2

# Matches $name$ placeholders, the $$ escape and the ${$ / $}$ span markers.
_PLACEHOLDER = re.compile(r'\$([A-Za-z_][A-Za-z0-9_]*|\{|\}|)\$')


class OutputFile:
    """A buffer to which data is written.

    Example:

    ```
    output = OutputFile("Hello.kt")
    output.write_line('fun main() {')
    with output.indent():
        output.print('println("$greeting$")\n', greeting='Hello, world')
    output.write_line('}')

    print(output.content())
    ```

    Produces:
    ```
    fun main() {
      println("Hello, world")
    }
    ```

    Text written through print() may be annotated with the descriptor it was
    generated from, producing GeneratedCodeInfo for IDE tooling.
    """

    INDENT_WIDTH = 2

    def __init__(self, filename: str, source_file: str = ''):
        self._filename: str = filename
        self._source_file: str = source_file
        self._content: list[str] = []
        self._length: int = 0
        self._indentation: int = 0
        self._spans: dict[str, tuple[int, int]] = {}
        self._annotations: list[
            descriptor_pb2.GeneratedCodeInfo.Annotation
        ] = []

    def write_line(self, line: str = '') -> None:
        if line:
            self._append(' ' * self._indentation)
            self._append(line)
        self._append('\n')

    def print(
        self,
        template: str,
        variables: Mapping[str, object] | None = None,
        **kwargs: object,
    ) -> None:
        """Writes one or more lines, substituting $name$ placeholders.

        Every line of the template is written with the current indentation. A
        trailing newline ends the last line; it does not add an empty one.

        Raises:
          ValueError: The template references an undefined variable.
        """
        values = dict(variables or {})
        values.update(kwargs)

        lines = template.split('\n')
        if template.endswith('\n'):
            lines.pop()

        for line in lines:
            self._print_line(line, values)

    def indent(
        self, amount: int = INDENT_WIDTH
    ) -> 'OutputFile._IndentationContext':
        """Increases the indentation level of the output."""
        return self._IndentationContext(self, amount)

    def annotate(
        self,
        begin_variable: str,
        path: Sequence[int],
        end_variable: str | None = None,
    ) -> None:
        """Ties the text of the last printed variable(s) to a descriptor path.

        Args:
          begin_variable: Variable whose last substitution starts the span.
          path: Path of the originating descriptor within its
              FileDescriptorProto.
          end_variable: Variable whose last substitution ends the span;
              defaults to begin_variable.

        Raises:
          ValueError: One of the variables has not been printed.
        """
        if end_variable is None:
            end_variable = begin_variable

        for variable in (begin_variable, end_variable):
            if variable not in self._spans:
                raise ValueError(
                    f'Cannot annotate "{variable}": variable was not printed'
                )

        annotation = descriptor_pb2.GeneratedCodeInfo.Annotation(
            path=list(path),
            source_file=self._source_file,
            begin=self._spans[begin_variable][0],
            end=self._spans[end_variable][1],
        )
        self._annotations.append(annotation)

    def name(self) -> str:
        return self._filename

    def content(self) -> str:
        return ''.join(self._content)

    def generated_code_info(self) -> descriptor_pb2.GeneratedCodeInfo:
        return descriptor_pb2.GeneratedCodeInfo(annotation=self._annotations)

    def _append(self, text: str) -> None:
        self._content.append(text)
        self._length += len(text)

    def _print_line(self, line: str, values: Mapping[str, object]) -> None:
        pieces: list[str] = []
        spans: dict[str, tuple[int, int]] = {}
        offset = 0
        position = 0

        for match in _PLACEHOLDER.finditer(line):
            literal = line[position : match.start()]
            pieces.append(literal)
            offset += len(literal)
            position = match.end()

            name = match.group(1)
            if not name:
                pieces.append('$')
                offset += 1
                continue

            if name in ('{', '}'):
                spans[name] = (offset, offset)
                continue

            if name not in values:
                raise ValueError(f'Undefined template variable "{name}"')

            text = str(values[name])
            spans[name] = (offset, offset + len(text))
            pieces.append(text)
            offset += len(text)

        pieces.append(line[position:])
        text = ''.join(pieces)

        base = self._length + (self._indentation if text else 0)
        for name, (begin, end) in spans.items():
            self._spans[name] = (base + begin, base + end)

        self.write_line(text)

    class _IndentationContext:
        """Context that increases the output's indentation when it is active."""

        def __init__(self, output: 'OutputFile', amount: int):
            self._output = output
            self._amount = amount

        def __enter__(self):
            self._output._indentation += self._amount

        def __exit__(self, typ, value, traceback):
            self._output._indentation -= self._amount
