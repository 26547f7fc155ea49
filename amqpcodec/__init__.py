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

"""
amqpcodec: compile python classes into AMQP 1.0 described-type codecs.

"""
from ._exceptions import (
    AmqpSerializationError as AmqpSerializationError,
    UnsupportedType as UnsupportedType,
    IncompatibleEncoding as IncompatibleEncoding,
    DuplicateMemberOrder as DuplicateMemberOrder,
    IllegalProvidesOnSimpleEncoding as IllegalProvidesOnSimpleEncoding,
    MalformedWireData as MalformedWireData,
    InsufficientData as InsufficientData,
    InvalidCast as InvalidCast,
    ValueOutOfRange as ValueOutOfRange,
)
from .buffer import (
    ByteBuffer as ByteBuffer,
)
from . import wire as wire
from .wire import (
    Described as Described,
    Symbol as Symbol,
)
from .serialization import (
    AmqpSerializable as AmqpSerializable,
    AmqpSerializer as AmqpSerializer,
    EncodingType as EncodingType,

    amqp_contract as amqp_contract,
    amqp_member as amqp_member,
    amqp_provides as amqp_provides,
    on_serializing as on_serializing,
    on_serialized as on_serialized,
    on_deserializing as on_deserializing,
    on_deserialized as on_deserialized,

    apply_serializer as apply_serializer,
    current_serializer as current_serializer,
    serialize as serialize,
    deserialize as deserialize,
)
from . import log as log
