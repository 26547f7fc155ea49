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
Our classy exception set.

Compile-time errors (raised while building a `SerializableType`)
never leave a type-cache entry behind; decode-time errors abort
the single read call.

'''
from __future__ import annotations
import textwrap
from typing import (
    Any,
)


def pformat_type(type_: Any) -> str:
    '''
    Render a (maybe generic-alias) type as its fully qualified name.

    '''
    if isinstance(type_, type):
        return f'{type_.__module__}.{type_.__qualname__}'

    return repr(type_)


class AmqpSerializationError(Exception):
    '''
    Base for every error raised by the codec compiler, the compiled
    type descriptors and the wire layer.

    '''
    def __init__(
        self,
        message: str,
        type_: Any|None = None,
        **fields,
    ) -> None:
        self.type_: Any|None = type_
        self.fields: dict[str, Any] = fields

        body: str = ''
        if type_ is not None:
            body += f'type_: {pformat_type(type_)}\n'
        for key, val in fields.items():
            body += f'{key}: {val!r}\n'

        if body:
            message: str = (
                f'{message}\n'
                +
                textwrap.indent(body, prefix=' |_')
            )

        super().__init__(message)


class UnsupportedType(AmqpSerializationError, TypeError):
    '''
    No compilation rule applies to the type: it carries no contract
    metadata and is not a primitive, enum, optional, `object`,
    self-describing or container type.

    '''


class IncompatibleEncoding(AmqpSerializationError):
    '''
    A contract type declares a different `EncodingType` then its
    (contract) ancestor.

    '''


class DuplicateMemberOrder(AmqpSerializationError):
    '''
    Two (merged ancestor + own) members of a list-encoded contract
    resolve to the same order.

    '''


class IllegalProvidesOnSimpleEncoding(AmqpSerializationError):
    '''
    Provided subtypes declared on a simple (descriptor-less) encoding
    which can never disambiguate the decoded concrete type.

    '''


class MalformedWireData(AmqpSerializationError, ValueError):
    '''
    Decoded wire data does not match the shape expected by the
    resolved type descriptor (or is simply garbage).

    '''


class InsufficientData(MalformedWireData):
    '''
    A read on a `ByteBuffer` requested more bytes then are left.

    '''


class ValueOutOfRange(AmqpSerializationError, ValueError):
    '''
    A value does not fit the fixed width wire encoding its type maps
    to, eg. an `int` beyond 64 bits.

    '''


class InvalidCast(AmqpSerializationError, TypeError):
    '''
    The decoded value is not an instance of the requested result type.

    '''
