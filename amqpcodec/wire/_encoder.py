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
Primitive (scalar and generic compound) AMQP 1.0 type codecs and
the per-python-type codec registry used by the serializer.

Every encode fn writes the format code followed by the payload,
every decode fn is handed the (already consumed) format code and
reads only the payload.

'''
from __future__ import annotations
from datetime import (
    datetime,
    timedelta,
    timezone,
)
import textwrap
from typing import (
    Any,
    Callable,
    Iterable,
    Type,
)
import uuid

from amqpcodec._exceptions import (
    MalformedWireData,
    UnsupportedType,
)
from amqpcodec.buffer import ByteBuffer
from amqpcodec.log import get_logger
from ._codes import (
    FormatCode as FC,
    LIST_CODES,
    MAP_CODES,
)
from ._types import (
    Byte,
    Char,
    Described,
    Float,
    Int,
    Short,
    Symbol,
    UByte,
    UInt,
    ULong,
    UShort,
)

log = get_logger(__name__)

Encode = Callable[[ByteBuffer, Any], None]
Decode = Callable[[ByteBuffer, int], Any]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def expect_code(
    code: int,
    allowed: Iterable[int],
    type_name: str,
) -> None:
    if code not in allowed:
        raise MalformedWireData(
            f'Unexpected format code for an AMQP {type_name}',
            format_code=hex(code),
        )


'''
Scalars

'''


def write_null(buffer: ByteBuffer, value: None = None) -> None:
    buffer.write_byte(FC.NULL)


def read_null(buffer: ByteBuffer, code: int) -> None:
    expect_code(code, (FC.NULL,), 'null')
    return None


def write_boolean(buffer: ByteBuffer, value: bool) -> None:
    buffer.write_byte(
        FC.BOOLEAN_TRUE if value else FC.BOOLEAN_FALSE
    )


def read_boolean(buffer: ByteBuffer, code: int) -> bool:
    match code:
        case FC.BOOLEAN_TRUE:
            return True
        case FC.BOOLEAN_FALSE:
            return False
        case FC.BOOLEAN:
            return buffer.read_byte() != 0

    expect_code(code, (), 'boolean')


def write_ubyte(buffer: ByteBuffer, value: int) -> None:
    buffer.write_byte(FC.UBYTE)
    buffer.write_fmt('B', value)


def read_ubyte(buffer: ByteBuffer, code: int) -> UByte:
    expect_code(code, (FC.UBYTE,), 'ubyte')
    return UByte(buffer.read_fmt('B')[0])


def write_ushort(buffer: ByteBuffer, value: int) -> None:
    buffer.write_byte(FC.USHORT)
    buffer.write_fmt('H', value)


def read_ushort(buffer: ByteBuffer, code: int) -> UShort:
    expect_code(code, (FC.USHORT,), 'ushort')
    return UShort(buffer.read_fmt('H')[0])


def write_uint(buffer: ByteBuffer, value: int) -> None:
    if value == 0:
        buffer.write_byte(FC.UINT0)
    elif value <= 0xff:
        buffer.write_byte(FC.SMALL_UINT)
        buffer.write_fmt('B', value)
    else:
        buffer.write_byte(FC.UINT)
        buffer.write_fmt('I', value)


def read_uint(buffer: ByteBuffer, code: int) -> UInt:
    match code:
        case FC.UINT0:
            return UInt(0)
        case FC.SMALL_UINT:
            return UInt(buffer.read_fmt('B')[0])
        case FC.UINT:
            return UInt(buffer.read_fmt('I')[0])

    expect_code(code, (), 'uint')


def write_ulong(buffer: ByteBuffer, value: int) -> None:
    if value == 0:
        buffer.write_byte(FC.ULONG0)
    elif value <= 0xff:
        buffer.write_byte(FC.SMALL_ULONG)
        buffer.write_fmt('B', value)
    else:
        buffer.write_byte(FC.ULONG)
        buffer.write_fmt('Q', value)


def read_ulong(buffer: ByteBuffer, code: int) -> ULong:
    match code:
        case FC.ULONG0:
            return ULong(0)
        case FC.SMALL_ULONG:
            return ULong(buffer.read_fmt('B')[0])
        case FC.ULONG:
            return ULong(buffer.read_fmt('Q')[0])

    expect_code(code, (), 'ulong')


def write_byte(buffer: ByteBuffer, value: int) -> None:
    buffer.write_byte(FC.BYTE)
    buffer.write_fmt('b', value)


def read_byte(buffer: ByteBuffer, code: int) -> Byte:
    expect_code(code, (FC.BYTE,), 'byte')
    return Byte(buffer.read_fmt('b')[0])


def write_short(buffer: ByteBuffer, value: int) -> None:
    buffer.write_byte(FC.SHORT)
    buffer.write_fmt('h', value)


def read_short(buffer: ByteBuffer, code: int) -> Short:
    expect_code(code, (FC.SHORT,), 'short')
    return Short(buffer.read_fmt('h')[0])


def write_int(buffer: ByteBuffer, value: int) -> None:
    if -0x80 <= value <= 0x7f:
        buffer.write_byte(FC.SMALL_INT)
        buffer.write_fmt('b', value)
    else:
        buffer.write_byte(FC.INT)
        buffer.write_fmt('i', value)


def read_int(buffer: ByteBuffer, code: int) -> Int:
    match code:
        case FC.SMALL_INT:
            return Int(buffer.read_fmt('b')[0])
        case FC.INT:
            return Int(buffer.read_fmt('i')[0])

    expect_code(code, (), 'int')


def write_long(buffer: ByteBuffer, value: int) -> None:
    if -0x80 <= value <= 0x7f:
        buffer.write_byte(FC.SMALL_LONG)
        buffer.write_fmt('b', value)
    else:
        buffer.write_byte(FC.LONG)
        buffer.write_fmt('q', value)


def read_long(buffer: ByteBuffer, code: int) -> int:
    match code:
        case FC.SMALL_LONG:
            return buffer.read_fmt('b')[0]
        case FC.LONG:
            return buffer.read_fmt('q')[0]

    expect_code(code, (), 'long')


def write_float(buffer: ByteBuffer, value: float) -> None:
    buffer.write_byte(FC.FLOAT)
    buffer.write_fmt('f', value)


def read_float(buffer: ByteBuffer, code: int) -> Float:
    expect_code(code, (FC.FLOAT,), 'float')
    return Float(buffer.read_fmt('f')[0])


def write_double(buffer: ByteBuffer, value: float) -> None:
    buffer.write_byte(FC.DOUBLE)
    buffer.write_fmt('d', value)


def read_double(buffer: ByteBuffer, code: int) -> float:
    expect_code(code, (FC.DOUBLE,), 'double')
    return buffer.read_fmt('d')[0]


def write_char(buffer: ByteBuffer, value: str) -> None:
    buffer.write_byte(FC.CHAR)
    buffer.write_fmt('I', ord(value))


def read_char(buffer: ByteBuffer, code: int) -> Char:
    expect_code(code, (FC.CHAR,), 'char')
    return Char(chr(buffer.read_fmt('I')[0]))


def write_timestamp(buffer: ByteBuffer, value: datetime) -> None:
    '''
    Write a `timestamp`: signed milliseconds since the unix epoch.

    The wire type is lossy for `datetime`; sub-millisecond precision
    is truncated and a naive value is taken to be UTC, so it always
    decodes as a tz-aware UTC `datetime` which does not compare equal
    to the naive original.

    '''
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    buffer.write_byte(FC.TIMESTAMP)
    buffer.write_fmt('q', (value - EPOCH) // _ONE_MS)


def read_timestamp(buffer: ByteBuffer, code: int) -> datetime:
    expect_code(code, (FC.TIMESTAMP,), 'timestamp')
    return EPOCH + timedelta(milliseconds=buffer.read_fmt('q')[0])


def write_uuid(buffer: ByteBuffer, value: uuid.UUID) -> None:
    buffer.write_byte(FC.UUID)
    buffer.write(value.bytes)


def read_uuid(buffer: ByteBuffer, code: int) -> uuid.UUID:
    expect_code(code, (FC.UUID,), 'uuid')
    return uuid.UUID(bytes=buffer.read(16))


def _write_variable(
    buffer: ByteBuffer,
    data: bytes,
    code8: int,
    code32: int,
) -> None:
    if len(data) <= 0xff:
        buffer.write_byte(code8)
        buffer.write_fmt('B', len(data))
    else:
        buffer.write_byte(code32)
        buffer.write_fmt('I', len(data))

    buffer.write(data)


def _read_variable(
    buffer: ByteBuffer,
    code: int,
    code8: int,
    code32: int,
    type_name: str,
) -> bytes:
    expect_code(code, (code8, code32), type_name)
    size: int = buffer.read_fmt(
        'B' if code == code8 else 'I'
    )[0]
    return buffer.read(size)


def write_binary(buffer: ByteBuffer, value: bytes) -> None:
    _write_variable(buffer, bytes(value), FC.BINARY8, FC.BINARY32)


def read_binary(buffer: ByteBuffer, code: int) -> bytes:
    return _read_variable(
        buffer, code, FC.BINARY8, FC.BINARY32, 'binary'
    )


def write_string(buffer: ByteBuffer, value: str) -> None:
    _write_variable(
        buffer,
        value.encode('utf-8'),
        FC.STRING8,
        FC.STRING32,
    )


def read_string(buffer: ByteBuffer, code: int) -> str:
    data: bytes = _read_variable(
        buffer, code, FC.STRING8, FC.STRING32, 'string'
    )
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as ude:
        raise MalformedWireData(
            'Invalid utf-8 in AMQP string',
        ) from ude


def write_symbol(buffer: ByteBuffer, value: str) -> None:
    try:
        data: bytes = value.encode('ascii')
    except UnicodeEncodeError as uee:
        raise UnsupportedType(
            'AMQP symbols must be ascii only',
            type_=Symbol,
            value=value,
        ) from uee

    _write_variable(buffer, data, FC.SYMBOL8, FC.SYMBOL32)


def read_symbol(buffer: ByteBuffer, code: int) -> Symbol:
    data: bytes = _read_variable(
        buffer, code, FC.SYMBOL8, FC.SYMBOL32, 'symbol'
    )
    try:
        return Symbol(data.decode('ascii'))
    except UnicodeDecodeError as ude:
        raise MalformedWireData(
            'Non-ascii bytes in AMQP symbol',
        ) from ude


'''
Compound framing

Shared by the generic `list`/`dict` codecs here and the
described/simple list and map types compiled by the serializer.

'''


def write_list_frame(
    buffer: ByteBuffer,
    count: int,
    payload: bytes,
) -> None:
    if count == 0:
        buffer.write_byte(FC.LIST0)

    # size covers the count field as well
    elif (
        len(payload) + 1 <= 0xff
        and
        count <= 0xff
    ):
        buffer.write_byte(FC.LIST8)
        buffer.write_fmt('BB', len(payload) + 1, count)
        buffer.write(payload)

    else:
        buffer.write_byte(FC.LIST32)
        buffer.write_fmt('II', len(payload) + 4, count)
        buffer.write(payload)


def read_list_header(
    buffer: ByteBuffer,
    code: int,
) -> int:
    '''
    Consume a list (size and count) header and return the element
    count.

    '''
    match code:
        case FC.LIST0:
            return 0
        case FC.LIST8:
            _size, count = buffer.read_fmt('BB')
            return count
        case FC.LIST32:
            _size, count = buffer.read_fmt('II')
            return count

    expect_code(code, LIST_CODES, 'list')


def write_map_frame(
    buffer: ByteBuffer,
    count: int,
    payload: bytes,
) -> None:
    '''
    Write a map header where `count` is the number of keys **and**
    values, i.e. twice the number of pairs.

    '''
    if (
        len(payload) + 1 <= 0xff
        and
        count <= 0xff
    ):
        buffer.write_byte(FC.MAP8)
        buffer.write_fmt('BB', len(payload) + 1, count)
    else:
        buffer.write_byte(FC.MAP32)
        buffer.write_fmt('II', len(payload) + 4, count)

    buffer.write(payload)


def read_map_header(
    buffer: ByteBuffer,
    code: int,
) -> int:
    '''
    Consume a map header and return the number of key-value pairs.

    '''
    expect_code(code, MAP_CODES, 'map')
    if code == FC.MAP8:
        _size, count = buffer.read_fmt('BB')
    else:
        _size, count = buffer.read_fmt('II')

    if count % 2:
        raise MalformedWireData(
            'AMQP map must have an even element count',
            count=count,
        )
    return count // 2


def write_descriptor(
    buffer: ByteBuffer,
    name: str|None,
    code: int|None,
) -> None:
    '''
    Write the described-type constructor prefix, preferring the
    numeric code when one is set.

    '''
    buffer.write_byte(FC.DESCRIBED)
    if code is not None:
        write_ulong(buffer, code)
    else:
        write_symbol(buffer, name)


class TypeCodec:
    '''
    Describes how a single python (scalar) type is mapped to and
    from its AMQP wire encoding(s).

    '''
    def __init__(
        self,
        py_type: Type,
        encode: Encode,
        decode: Decode,
        format_codes: Iterable[int],
    ):
        self._py_type: Type = py_type
        self._encode: Encode = encode
        self._decode: Decode = decode
        self._format_codes: frozenset[int] = frozenset(format_codes)

    def __repr__(self) -> str:
        codes: str = ','.join(
            hex(code) for code in sorted(self._format_codes)
        )
        return (
            f'<{type(self).__name__}('
            f'{self._py_type.__name__}, codes=[{codes}])>'
        )

    @property
    def py_type(self) -> Type:
        return self._py_type

    @property
    def format_codes(self) -> frozenset[int]:
        return self._format_codes

    @property
    def encode(self) -> Encode:
        return self._encode

    @property
    def decode(self) -> Decode:
        return self._decode


def mk_scalar_codecs() -> list[TypeCodec]:
    '''
    The built-in scalar codec set.

    '''
    return [
        TypeCodec(type(None), write_null, read_null, (FC.NULL,)),
        TypeCodec(
            bool,
            write_boolean,
            read_boolean,
            (FC.BOOLEAN, FC.BOOLEAN_TRUE, FC.BOOLEAN_FALSE),
        ),
        TypeCodec(UByte, write_ubyte, read_ubyte, (FC.UBYTE,)),
        TypeCodec(UShort, write_ushort, read_ushort, (FC.USHORT,)),
        TypeCodec(
            UInt,
            write_uint,
            read_uint,
            (FC.UINT, FC.SMALL_UINT, FC.UINT0),
        ),
        TypeCodec(
            ULong,
            write_ulong,
            read_ulong,
            (FC.ULONG, FC.SMALL_ULONG, FC.ULONG0),
        ),
        TypeCodec(Byte, write_byte, read_byte, (FC.BYTE,)),
        TypeCodec(Short, write_short, read_short, (FC.SHORT,)),
        TypeCodec(Int, write_int, read_int, (FC.INT, FC.SMALL_INT)),
        TypeCodec(int, write_long, read_long, (FC.LONG, FC.SMALL_LONG)),
        TypeCodec(Float, write_float, read_float, (FC.FLOAT,)),
        TypeCodec(float, write_double, read_double, (FC.DOUBLE,)),
        TypeCodec(Char, write_char, read_char, (FC.CHAR,)),
        TypeCodec(datetime, write_timestamp, read_timestamp, (FC.TIMESTAMP,)),
        TypeCodec(uuid.UUID, write_uuid, read_uuid, (FC.UUID,)),
        TypeCodec(
            bytes,
            write_binary,
            read_binary,
            (FC.BINARY8, FC.BINARY32),
        ),
        TypeCodec(
            str,
            write_string,
            read_string,
            (FC.STRING8, FC.STRING32),
        ),
        TypeCodec(
            Symbol,
            write_symbol,
            read_symbol,
            (FC.SYMBOL8, FC.SYMBOL32),
        ),
    ]


class Encoder:
    '''
    A primitive codec registry: maps python types to `TypeCodec`s
    for encoding and AMQP format codes to the same for decoding.

    Generic (untyped) AMQP `list` and `map` values are supported as
    python `list` and `dict` with arbitrary (registered) element
    types as well as `Described` values.

    '''
    def __init__(self) -> None:
        self._codecs: dict[Type, TypeCodec] = {}
        self._readers: dict[int, TypeCodec] = {}

        for codec in mk_scalar_codecs():
            self.add_codec(codec)

        # generic compound codecs recurse through this registry
        self.add_codec(TypeCodec(
            list,
            self.write_list,
            self.read_list,
            LIST_CODES,
        ))
        self.add_codec(TypeCodec(
            dict,
            self.write_map,
            self.read_map,
            MAP_CODES,
        ))

    def __repr__(self) -> str:
        types: str = textwrap.indent(
            '\n'.join(
                f'|_{codec!r}' for codec in self._codecs.values()
            ),
            prefix=' '*2,
        )
        return (
            f'<{type(self).__name__}(\n'
            f'{types}\n'
            ')>'
        )

    def add_codec(
        self,
        codec: TypeCodec,
    ) -> TypeCodec:
        for code in codec.format_codes:
            if (
                (other := self._readers.get(code))
                and
                other.py_type is not codec.py_type
            ):
                raise ValueError(
                    f'Format code {hex(code)} already handled by {other!r}'
                )
            self._readers[code] = codec

        self._codecs[codec.py_type] = codec
        return codec

    def register_codec(
        self,
        py_type: Type,
        encode: Encode,
        decode: Decode,
        format_codes: Iterable[int],
    ) -> TypeCodec:
        '''
        Register (or override) the wire codec for a python type.

        '''
        codec = TypeCodec(
            py_type,
            encode,
            decode,
            format_codes,
        )
        log.runtime(f'Registering primitive codec\n{codec!r}\n')
        return self.add_codec(codec)

    def try_get_codec(
        self,
        type_: Any,
    ) -> TypeCodec|None:
        '''
        Exact type lookup, the compiler's primitive rule.

        '''
        try:
            return self._codecs.get(type_)
        except TypeError:
            # unhashable typing constructs
            return None

    def get_codec_for_value(
        self,
        value: Any,
    ) -> TypeCodec|None:
        '''
        Find a codec for a value by walking its type's MRO so that
        subtypes (like `IntEnum` members) use their nearest
        registered ancestor's codec.

        '''
        for typ in type(value).__mro__:
            if typ is object:
                break
            if codec := self._codecs.get(typ):
                return codec

        return None

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        '''
        Write any registered value, inferring the wire type from the
        value's runtime type.

        '''
        if value is None:
            write_null(buffer)
            return

        if isinstance(value, Described):
            self.write_described(buffer, value)
            return

        codec: TypeCodec|None = self.get_codec_for_value(value)
        if codec is None:
            raise UnsupportedType(
                'No primitive AMQP encoding for value',
                type_=type(value),
            )

        codec.encode(buffer, value)

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        '''
        Read the next value inferring its python type from the
        format code.

        '''
        return self.read_value(buffer, buffer.read_byte())

    def read_value(
        self,
        buffer: ByteBuffer,
        code: int,
    ) -> Any:
        if code == FC.DESCRIBED:
            descriptor: Any = self.read_object(buffer)
            return Described(
                descriptor,
                self.read_object(buffer),
            )

        codec: TypeCodec|None = self._readers.get(code)
        if codec is None:
            log.transport(f'Unknown format code {hex(code)} in {buffer!r}')
            raise MalformedWireData(
                'Unknown AMQP format code',
                format_code=hex(code),
            )

        return codec.decode(buffer, code)

    def write_described(
        self,
        buffer: ByteBuffer,
        value: Described,
    ) -> None:
        buffer.write_byte(FC.DESCRIBED)
        self.write_object(buffer, value.descriptor)
        self.write_object(buffer, value.value)

    def write_list(
        self,
        buffer: ByteBuffer,
        value: list,
    ) -> None:
        body = ByteBuffer()
        for item in value:
            self.write_object(body, item)

        write_list_frame(buffer, len(value), body.getvalue())

    def read_list(
        self,
        buffer: ByteBuffer,
        code: int,
    ) -> list:
        count: int = read_list_header(buffer, code)
        return [
            self.read_object(buffer)
            for _ in range(count)
        ]

    def write_map(
        self,
        buffer: ByteBuffer,
        value: dict,
    ) -> None:
        body = ByteBuffer()
        for key, val in value.items():
            self.write_object(body, key)
            self.write_object(body, val)

        write_map_frame(buffer, len(value) * 2, body.getvalue())

    def read_map(
        self,
        buffer: ByteBuffer,
        code: int,
    ) -> dict:
        pairs: int = read_map_header(buffer, code)
        result: dict = {}
        for _ in range(pairs):
            key: Any = self.read_object(buffer)
            result[key] = self.read_object(buffer)

        return result


# the default (process wide) registry
_def_encoder: Encoder = Encoder()


def default_encoder() -> Encoder:
    return _def_encoder
