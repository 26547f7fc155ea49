# amqpcodec: type-directed AMQP 1.0 described-type serialization.
# Copyright 2018-eternity Tyler Goodlet.

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.

# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

'''
AMQP 1.0 primitive type format codes, see section 1.6 of the core
types standard,
http://docs.oasis-open.org/amqp/core/v1.0/os/amqp-core-types-v1.0-os.html

'''
from enum import IntEnum


class FormatCode(IntEnum):

    DESCRIBED = 0x00

    NULL = 0x40

    BOOLEAN = 0x56
    BOOLEAN_TRUE = 0x41
    BOOLEAN_FALSE = 0x42

    UBYTE = 0x50
    USHORT = 0x60
    UINT = 0x70
    SMALL_UINT = 0x52
    UINT0 = 0x43
    ULONG = 0x80
    SMALL_ULONG = 0x53
    ULONG0 = 0x44

    BYTE = 0x51
    SHORT = 0x61
    INT = 0x71
    SMALL_INT = 0x54
    LONG = 0x81
    SMALL_LONG = 0x55

    FLOAT = 0x72
    DOUBLE = 0x82

    CHAR = 0x73
    TIMESTAMP = 0x83
    UUID = 0x98

    BINARY8 = 0xa0
    BINARY32 = 0xb0
    STRING8 = 0xa1
    STRING32 = 0xb1
    SYMBOL8 = 0xa3
    SYMBOL32 = 0xb3

    LIST0 = 0x45
    LIST8 = 0xc0
    LIST32 = 0xd0
    MAP8 = 0xc1
    MAP32 = 0xd1


# compound framing families
LIST_CODES: frozenset[int] = frozenset((
    FormatCode.LIST0,
    FormatCode.LIST8,
    FormatCode.LIST32,
))
MAP_CODES: frozenset[int] = frozenset((
    FormatCode.MAP8,
    FormatCode.MAP32,
))
