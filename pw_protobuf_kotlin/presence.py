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
"""Presence bit allocation and the Kotlin expressions that address bits.

Messages and builders track explicitly set fields in bitmaps stored as a run
of Int words named bitField0_, bitField1_, ... Each field is handed a pair of
bit indices, one into the message's bitmap and one into the builder's, when its
generator is constructed. The two numbering spaces are independent.
"""

from typing import NamedTuple

BITS_PER_WORD = 32


class PresenceBits(NamedTuple):
    """The presence bit indices assigned to one field."""

    message_bit: int
    builder_bit: int


class PresenceBitAllocator:
    """Hands out presence bits for the fields of a single message.

    Fields are allocated in declaration order. A field that consumes no bits
    still receives the current indices; they are simply not advanced.
    """

    def __init__(self) -> None:
        self._message_bits = 0
        self._builder_bits = 0

    def next_bits(self) -> PresenceBits:
        """The indices the next allocation will return."""
        return PresenceBits(self._message_bits, self._builder_bits)

    def allocate(self, message_bits: int, builder_bits: int) -> PresenceBits:
        """Returns the next indices and reserves the requested bit counts."""
        if message_bits < 0 or builder_bits < 0:
            raise ValueError('Bit counts must not be negative')

        bits = self.next_bits()
        self._message_bits += message_bits
        self._builder_bits += builder_bits
        return bits

    def total_message_bits(self) -> int:
        return self._message_bits

    def total_builder_bits(self) -> int:
        return self._builder_bits


def word_count(total_bits: int) -> int:
    """Number of Int words needed to hold a bitmap."""
    return (total_bits + BITS_PER_WORD - 1) // BITS_PER_WORD


def bit_field_name(word: int) -> str:
    return f'bitField{word}_'


def _word_and_mask(bit_index: int) -> tuple[int, str]:
    word, bit = divmod(bit_index, BITS_PER_WORD)
    mask = f'0x{1 << bit:08x}'
    # Kotlin types literals above Int.MAX_VALUE as Long.
    if bit == BITS_PER_WORD - 1:
        mask += '.toInt()'
    return word, mask


def get_bit(bit_index: int, prefix: str = '') -> str:
    """Expression that is true when the bit is set, e.g.

    ((bitField0_ and 0x00000001) != 0)
    """
    word, mask = _word_and_mask(bit_index)
    return f'(({prefix}{bit_field_name(word)} and {mask}) != 0)'


def set_bit(bit_index: int, prefix: str = '') -> str:
    word, mask = _word_and_mask(bit_index)
    name = prefix + bit_field_name(word)
    return f'{name} = {name} or {mask}'


def clear_bit(bit_index: int, prefix: str = '') -> str:
    word, mask = _word_and_mask(bit_index)
    name = prefix + bit_field_name(word)
    return f'{name} = {name} and {mask}.inv()'


def get_bit_from_local(bit_index: int) -> str:
    """Reads a bit from the from_bitFieldN_ copies made in buildPartial()."""
    return get_bit(bit_index, prefix='from_')


def set_bit_to_local(bit_index: int) -> str:
    """Sets a bit in the to_bitFieldN_ words assembled in buildPartial()."""
    return set_bit(bit_index, prefix='to_')
