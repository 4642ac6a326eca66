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
"""Tests mapping proto names to Kotlin class names."""

import unittest

from google.protobuf import descriptor_pb2, text_format

from pw_protobuf_kotlin.name_resolver import ClassNameResolver


def _parse(text: str) -> descriptor_pb2.FileDescriptorProto:
    return text_format.Parse(text, descriptor_pb2.FileDescriptorProto())


_WEATHER_PROTO = _parse(
    """
    name: "pw/weather/forecast_data.proto"
    package: "pw.weather"
    options { java_package: "com.example.weather" }
    message_type {
      name: "Forecast"
      nested_type { name: "Hour" }
      enum_type { name: "Sky" value { name: "CLEAR" number: 0 } }
    }
    enum_type { name: "Unit" value { name: "CELSIUS" number: 0 } }
    """
)

_CLASHING_PROTO = _parse(
    """
    name: "status.proto"
    package: "pw"
    message_type { name: "Status" }
    """
)

_NAMED_PROTO = _parse(
    """
    name: "named.proto"
    options { java_outer_classname: "NamedProtos" }
    """
)


class ClassNameResolverTest(unittest.TestCase):
    """Tests for ClassNameResolver."""

    def setUp(self) -> None:
        self._resolver = ClassNameResolver(
            [_WEATHER_PROTO, _CLASHING_PROTO, _NAMED_PROTO]
        )

    def test_java_package_overrides_proto_package(self) -> None:
        self.assertEqual(
            self._resolver.package(_WEATHER_PROTO.name), 'com.example.weather'
        )
        self.assertEqual(self._resolver.package(_CLASHING_PROTO.name), 'pw')
        self.assertEqual(self._resolver.package(_NAMED_PROTO.name), '')

    def test_outer_class_from_file_name(self) -> None:
        self.assertEqual(
            self._resolver.file_class_name(_WEATHER_PROTO.name),
            'com.example.weather.ForecastData',
        )

    def test_outer_class_clash_gets_suffix(self) -> None:
        self.assertEqual(
            self._resolver.outer_class_name(_CLASHING_PROTO.name),
            'StatusOuterClass',
        )

    def test_explicit_outer_class(self) -> None:
        self.assertEqual(
            self._resolver.file_class_name(_NAMED_PROTO.name), 'NamedProtos'
        )

    def test_class_names(self) -> None:
        self.assertEqual(
            self._resolver.class_name('.pw.weather.Forecast'),
            'com.example.weather.Forecast',
        )
        self.assertEqual(
            self._resolver.class_name('.pw.weather.Forecast.Hour'),
            'com.example.weather.Forecast.Hour',
        )
        self.assertEqual(
            self._resolver.class_name('pw.weather.Forecast.Sky'),
            'com.example.weather.Forecast.Sky',
        )
        self.assertEqual(
            self._resolver.class_name('.pw.weather.Unit'),
            'com.example.weather.Unit',
        )

    def test_unknown_type_keeps_proto_path(self) -> None:
        self.assertEqual(
            self._resolver.class_name('.other.Thing'), 'other.Thing'
        )


if __name__ == '__main__':
    unittest.main()
