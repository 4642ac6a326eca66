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
"""Protobuf editions constants used when resolving enum openness."""

import enum

# From the CodeGeneratorResponse message, indicating that a generator plugin
# supports Protobuf editions.
FEATURE_SUPPORTS_EDITIONS = 2


# Enum type enum from the FeatureSet message.
class EnumType(enum.Enum):
    ENUM_TYPE_UNKNOWN = 0
    OPEN = 1
    CLOSED = 2


# Edition enum from the descriptor proto.
class Edition(enum.Enum):
    EDITION_UNKNOWN = 0
    EDITION_LEGACY = 900
    EDITION_PROTO2 = 998
    EDITION_PROTO3 = 999
    EDITION_2023 = 1000


def default_enum_type(edition: int) -> EnumType:
    """Returns the enum_type feature default for an edition number."""
    if edition >= Edition.EDITION_PROTO3.value:
        return EnumType.OPEN
    return EnumType.CLOSED
