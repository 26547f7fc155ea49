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
Low-level AMQP 1.0 primitive type system: format codes, width
tagged scalars and the primitive codec registry.

'''
from ._codes import (
    FormatCode as FormatCode,
    LIST_CODES as LIST_CODES,
    MAP_CODES as MAP_CODES,
)
from ._types import (
    UByte as UByte,
    UShort as UShort,
    UInt as UInt,
    ULong as ULong,
    Byte as Byte,
    Short as Short,
    Int as Int,
    Float as Float,
    Char as Char,
    Symbol as Symbol,
    Described as Described,
)
from ._encoder import (
    Encoder as Encoder,
    TypeCodec as TypeCodec,
    default_encoder as default_encoder,

    read_list_header as read_list_header,
    read_map_header as read_map_header,
    write_descriptor as write_descriptor,
    write_list_frame as write_list_frame,
    write_map_frame as write_map_frame,
    write_null as write_null,
)
