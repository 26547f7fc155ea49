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
Width-tagged python scalars for AMQP primitive types which have no
native python equivalent.

Plain `int` is encoded as an AMQP `long`, `float` as `double` and
`str` as `string`; use these subtypes to pick any other wire type.

'''
from __future__ import annotations
from typing import Any


class _RangedInt(int):
    '''
    An `int` which refuses values outside its wire width.

    '''
    _min: int
    _max: int

    def __new__(cls, value: int = 0):
        inst = super().__new__(cls, value)
        if not (cls._min <= inst <= cls._max):
            raise OverflowError(
                f'{cls.__name__} out of range [{cls._min}, {cls._max}]: {value}'
            )
        return inst

    def __repr__(self) -> str:
        return f'{type(self).__name__}({int(self)})'


class UByte(_RangedInt):
    _min, _max = 0, 0xff


class UShort(_RangedInt):
    _min, _max = 0, 0xffff


class UInt(_RangedInt):
    _min, _max = 0, 0xffffffff


class ULong(_RangedInt):
    _min, _max = 0, 0xffffffffffffffff


class Byte(_RangedInt):
    _min, _max = -0x80, 0x7f


class Short(_RangedInt):
    _min, _max = -0x8000, 0x7fff


class Int(_RangedInt):
    _min, _max = -0x80000000, 0x7fffffff


class Float(float):
    '''
    Single precision (32 bit) IEEE 754 float.

    '''
    def __repr__(self) -> str:
        return f'Float({float(self)})'


class Char(str):
    '''
    A single unicode code point (UTF-32 on the wire).

    '''
    def __new__(cls, value: str = '\x00'):
        if len(value) != 1:
            raise ValueError(f'Char must be a single code point: {value!r}')
        return super().__new__(cls, value)


class Symbol(str):
    '''
    An ASCII symbolic value, normally used for descriptor names,
    map keys and other "constant" identifiers.

    '''
    def __repr__(self) -> str:
        return f'Symbol({str(self)!r})'


class Described:
    '''
    A value prefixed by a descriptor (a `Symbol` name or `ULong`
    code) on the wire.

    Used for both already-described app values and for the generic
    decode of any described type the reader doesn't know about.

    '''
    __slots__ = ('descriptor', 'value')

    def __init__(
        self,
        descriptor: Symbol|ULong|int|str,
        value: Any,
    ) -> None:
        if (
            isinstance(descriptor, str)
            and not isinstance(descriptor, Symbol)
        ):
            descriptor = Symbol(descriptor)
        elif (
            isinstance(descriptor, int)
            and not isinstance(descriptor, ULong)
        ):
            descriptor = ULong(descriptor)

        self.descriptor: Symbol|ULong = descriptor
        self.value: Any = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Described):
            return NotImplemented
        return (
            self.descriptor == other.descriptor
            and
            self.value == other.value
        )

    def __hash__(self) -> int:
        return hash(self.descriptor)

    def __repr__(self) -> str:
        return (
            f'{type(self).__name__}('
            f'descriptor={self.descriptor!r}, '
            f'value={self.value!r})'
        )
