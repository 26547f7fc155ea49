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
A sequential write / cursor read byte buffer.

All multi-byte values are network (big-endian) order as required
by the AMQP 1.0 type system.

'''
from __future__ import annotations
import struct

from ._exceptions import (
    InsufficientData,
    ValueOutOfRange,
)


class ByteBuffer:
    '''
    Growable byte array with a write offset (the end of valid data)
    and a read offset (the decode cursor).

    Not thread safe; a buffer is owned by a single caller for the
    duration of any encode/decode call.

    '''
    def __init__(
        self,
        data: bytes|bytearray|memoryview|None = None,
    ) -> None:
        self._buf = bytearray(data or b'')
        self._read: int = 0

    def __repr__(self) -> str:
        return (
            f'<{type(self).__name__}('
            f'read={self._read}, '
            f'length={self.length}, '
            f'size={len(self._buf)})>'
        )

    @property
    def length(self) -> int:
        '''
        Number of unread bytes.

        '''
        return len(self._buf) - self._read

    @property
    def offset(self) -> int:
        return self._read

    @property
    def write_offset(self) -> int:
        return len(self._buf)

    def getvalue(self) -> bytes:
        '''
        The unread bytes (everything written when nothing was read).

        '''
        return bytes(self._buf[self._read:])

    def reset(self) -> None:
        self._buf.clear()
        self._read = 0

    # writes
    def write(self, data: bytes|bytearray) -> None:
        self._buf += data

    def write_byte(self, value: int) -> None:
        self._buf.append(value & 0xff)

    def write_fmt(self, fmt: str, *values) -> None:
        try:
            self._buf += struct.pack('>' + fmt, *values)
        except struct.error as serr:
            raise ValueOutOfRange(
                f'Can not pack {values!r} as {fmt!r}',
                fmt=fmt,
            ) from serr

    def truncate(self, write_offset: int) -> None:
        '''
        Drop everything written past `write_offset`.

        '''
        del self._buf[max(write_offset, self._read):]

    # reads
    def _take(self, size: int) -> bytes:
        if size > self.length:
            raise InsufficientData(
                'Not enough bytes left in buffer',
                requested=size,
                available=self.length,
            )

        start: int = self._read
        self._read += size
        return bytes(self._buf[start:self._read])

    def read(self, size: int) -> bytes:
        return self._take(size)

    def read_byte(self) -> int:
        return self._take(1)[0]

    def peek_byte(self) -> int:
        if not self.length:
            raise InsufficientData(
                'Can not peek an empty buffer',
                requested=1,
                available=0,
            )
        return self._buf[self._read]

    def read_fmt(self, fmt: str) -> tuple:
        size: int = struct.calcsize('>' + fmt)
        return struct.unpack('>' + fmt, self._take(size))

    def skip(self, size: int) -> None:
        self._take(size)
