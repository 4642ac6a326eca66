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
"""Tests for the generated source file buffer."""

import unittest

from pw_protobuf_kotlin.output_file import OutputFile


class OutputFileTest(unittest.TestCase):
    """Tests writing, substitution and annotation."""

    def setUp(self) -> None:
        self._output = OutputFile('pkg/Test.kt', 'test.proto')

    def test_write_line_indents(self) -> None:
        self._output.write_line('object A {')
        with self._output.indent():
            self._output.write_line('val b = 1')
            self._output.write_line()
        self._output.write_line('}')

        self.assertEqual(
            self._output.content(), 'object A {\n  val b = 1\n\n}\n'
        )

    def test_indent_restored_after_exception(self) -> None:
        with self.assertRaises(RuntimeError):
            with self._output.indent():
                raise RuntimeError()

        self._output.write_line('x')
        self.assertEqual(self._output.content(), 'x\n')

    def test_print_substitutes_variables(self) -> None:
        self._output.print(
            'fun get$name$(): $type$\n', {'name': 'Foo'}, type='Bar'
        )
        self.assertEqual(self._output.content(), 'fun getFoo(): Bar\n')

    def test_print_multiple_lines_keeps_indentation(self) -> None:
        with self._output.indent(4):
            self._output.print('a\nb\n')
        self.assertEqual(self._output.content(), '    a\n    b\n')

    def test_print_dollar_escape(self) -> None:
        self._output.print('val s = "$$x"\n')
        self.assertEqual(self._output.content(), 'val s = "$x"\n')

    def test_print_undefined_variable(self) -> None:
        with self.assertRaises(ValueError):
            self._output.print('$missing$\n')

    def test_annotate_variable(self) -> None:
        self._output.write_line('// header')
        with self._output.indent():
            self._output.print('class $classname$ {\n', classname='Color')
        self._output.annotate('classname', (5, 0))

        info = self._output.generated_code_info()
        self.assertEqual(len(info.annotation), 1)

        annotation = info.annotation[0]
        self.assertEqual(list(annotation.path), [5, 0])
        self.assertEqual(annotation.source_file, 'test.proto')
        self.assertEqual(
            self._output.content()[annotation.begin : annotation.end], 'Color'
        )

    def test_annotate_span_markers(self) -> None:
        self._output.print('fun ${$get$name$$}$(): Int\n', name='Value')
        self._output.annotate('{', (4, 0, 2, 1), '}')

        annotation = self._output.generated_code_info().annotation[0]
        self.assertEqual(
            self._output.content()[annotation.begin : annotation.end],
            'getValue',
        )

    def test_annotate_unprinted_variable(self) -> None:
        with self.assertRaises(ValueError):
            self._output.annotate('name', (4, 0))


if __name__ == '__main__':
    unittest.main()
