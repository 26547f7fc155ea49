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
Compiled type descriptors: the immutable encode/decode "plans"
produced by the `AmqpSerializer` compiler, one per runtime type.

Every descriptor decodes the AMQP null constructor as `None` and
encodes `None` as the same.

'''
from __future__ import annotations
import textwrap
from typing import (
    Any,
    Iterable,
    Type,
    TYPE_CHECKING,
)

from amqpcodec._exceptions import (
    MalformedWireData,
    UnsupportedType,
)
from amqpcodec.buffer import ByteBuffer
from amqpcodec.log import get_logger
from amqpcodec.wire import (
    Described,
    FormatCode,
    Symbol,
    TypeCodec,
    read_list_header,
    read_map_header,
    write_descriptor,
    write_list_frame,
    write_map_frame,
    write_null,
)
from ._accessors import MethodAccessor
from ._contract import (
    EncodingType,
    SerializationCallback,
    get_contract,
    resolve_provided,
)
from .pretty_struct import Struct

if TYPE_CHECKING:
    from ._serializer import AmqpSerializer

log = get_logger(__name__)


def read_format_code(buffer: ByteBuffer) -> int|None:
    '''
    Consume the next constructor byte returning `None` for the
    AMQP null.

    '''
    code: int = buffer.read_byte()
    if code == FormatCode.NULL:
        return None
    return code


class SerializableMember(
    Struct,
    frozen=True,
):
    '''
    A compiled contract member: its logical (wire) name, resolved
    order, instance accessor and (recursively compiled) type.

    '''
    name: str
    order: int
    accessor: Any  # MemberAccessor
    type: Any  # SerializableType|DeferredType


class SerializableType:
    '''
    Base for all compiled type descriptors.

    '''
    encoding: EncodingType|None = None

    def __init__(
        self,
        serializer: AmqpSerializer,
        type_: Any,
    ) -> None:
        self._serializer: AmqpSerializer = serializer
        self._type: Any = type_

    def __repr__(self) -> str:
        return (
            f'<{type(self).__name__}({self._type!r})>'
        )

    @property
    def type_(self) -> Any:
        return self._type

    @property
    def members(self) -> tuple[SerializableMember, ...]:
        return ()

    def resolve(self) -> SerializableType:
        return self

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        raise NotImplementedError

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        raise NotImplementedError

    def new_instance(self, cls: Type|None = None) -> Any:
        cls = cls or self._type
        try:
            return cls()
        except TypeError as terr:
            raise UnsupportedType(
                'Decoded types must be constructible with no arguments',
                type_=cls,
            ) from terr


class DeferredType(SerializableType):
    '''
    Placeholder for a type whose compilation is in progress higher
    up the (same thread's) stack, i.e. a self/mutually referential
    member type. Resolved from the type cache on first use.

    '''
    _target: SerializableType|None = None

    def resolve(self) -> SerializableType:
        if (target := self._target) is None:
            target = self._target = self._serializer.get_type(self._type)
        return target

    @property
    def encoding(self) -> EncodingType|None:
        return self.resolve().encoding

    @property
    def members(self) -> tuple[SerializableMember, ...]:
        return self.resolve().members

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        self.resolve().write_object(buffer, value)

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        return self.resolve().read_object(buffer)


class PrimitiveType(SerializableType):
    '''
    Delegates verbatim to a scalar (or generic compound) codec from
    the primitive codec registry.

    '''
    def __init__(
        self,
        serializer: AmqpSerializer,
        type_: Type,
        codec: TypeCodec,
    ) -> None:
        super().__init__(serializer, type_)
        self._codec = codec

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        if value is None:
            write_null(buffer)
        else:
            self._codec.encode(buffer, value)

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        code: int|None = read_format_code(buffer)
        if code is None:
            return None

        return self._codec.decode(buffer, code)


class ObjectType(SerializableType):
    '''
    Opaque pass-through: write any supported value by its runtime
    type, read by inferring the type from the wire.

    '''
    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        encoder = self._serializer.encoder
        if (
            value is None
            or
            isinstance(value, Described)
            or
            encoder.get_codec_for_value(value)
        ):
            encoder.write_object(buffer, value)
        else:
            # contract (or other compiled) values stored under an
            # `object`/`Any` member
            self._serializer.get_type(
                type(value)
            ).write_object(buffer, value)

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        return self._serializer.encoder.read_object(buffer)


class EnumType(SerializableType):
    '''
    Encode an `Enum` member by its underlying (primitive) value.

    '''
    def __init__(
        self,
        serializer: AmqpSerializer,
        type_: Type,
        underlying: SerializableType,
    ) -> None:
        super().__init__(serializer, type_)
        self._underlying = underlying

    @property
    def underlying(self) -> SerializableType:
        return self._underlying

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        self._underlying.write_object(
            buffer,
            getattr(value, 'value', value),
        )

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        raw: Any = self._underlying.read_object(buffer)
        if raw is None:
            return None

        try:
            return self._type(raw)
        except ValueError as verr:
            raise MalformedWireData(
                'Unknown enum value',
                type_=self._type,
                value=raw,
            ) from verr


class AmqpSerializableType(SerializableType):
    '''
    Delegate entirely to a self-describing type's own
    `.encode()`/`.decode()`.

    '''
    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        if value is None:
            write_null(buffer)
        else:
            value.encode(buffer)

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        if buffer.peek_byte() == FormatCode.NULL:
            buffer.skip(1)
            return None

        inst: Any = self.new_instance()
        inst.decode(buffer)
        return inst


def write_member_value(
    serializer: AmqpSerializer,
    buffer: ByteBuffer,
    declared: SerializableType,
    value: Any,
) -> None:
    '''
    Write a member (or container element) value through its declared
    descriptor unless the value is a contract subtype instance in
    which case its own (most-derived) descriptor is used.

    '''
    if value is None:
        write_null(buffer)
        return

    declared = declared.resolve()
    if (
        isinstance(declared, DescribedCompoundType)
        and
        type(value) is not declared.type_
    ):
        declared = serializer.get_type(type(value))

    declared.write_object(buffer, value)


class GenericListType(SerializableType):
    '''
    A list-like container (has `__iter__()` and `.append()`) encoded
    as an AMQP list of elements of a single compiled item type.

    '''
    def __init__(
        self,
        serializer: AmqpSerializer,
        type_: Any,
        container: Type,
        item_type: SerializableType,
        add: MethodAccessor,
    ) -> None:
        super().__init__(serializer, type_)
        self._container = container
        self._item_type = item_type
        self._add = add

    @property
    def item_type(self) -> SerializableType:
        return self._item_type

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        if value is None:
            write_null(buffer)
            return

        body = ByteBuffer()
        count: int = 0
        for item in value:
            write_member_value(
                self._serializer,
                body,
                self._item_type,
                item,
            )
            count += 1

        write_list_frame(buffer, count, body.getvalue())

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        code: int|None = read_format_code(buffer)
        if code is None:
            return None

        count: int = read_list_header(buffer, code)
        container: Any = self.new_instance(self._container)
        for _ in range(count):
            self._add.invoke(
                container,
                self._item_type.read_object(buffer),
            )

        return container


class GenericMapType(SerializableType):
    '''
    A map-like container (has `.items()` and `__setitem__()`)
    encoded as an AMQP map with compiled key and value types.

    '''
    def __init__(
        self,
        serializer: AmqpSerializer,
        type_: Any,
        container: Type,
        key_type: SerializableType,
        value_type: SerializableType,
        add: MethodAccessor,
    ) -> None:
        super().__init__(serializer, type_)
        self._container = container
        self._key_type = key_type
        self._value_type = value_type
        self._add = add

    @property
    def key_type(self) -> SerializableType:
        return self._key_type

    @property
    def value_type(self) -> SerializableType:
        return self._value_type

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        if value is None:
            write_null(buffer)
            return

        body = ByteBuffer()
        pairs: int = 0
        for key, val in value.items():
            write_member_value(self._serializer, body, self._key_type, key)
            write_member_value(self._serializer, body, self._value_type, val)
            pairs += 1

        write_map_frame(buffer, pairs * 2, body.getvalue())

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        code: int|None = read_format_code(buffer)
        if code is None:
            return None

        pairs: int = read_map_header(buffer, code)
        container: Any = self.new_instance(self._container)
        for _ in range(pairs):
            key: Any = self._key_type.read_object(buffer)
            self._add.invoke(
                container,
                key,
                self._value_type.read_object(buffer),
            )

        return container


class DescribedCompoundType(SerializableType):
    '''
    A contract type: a (maybe described) list or map of members
    with lifecycle callbacks and (lazily compiled) provided subtypes.

    '''
    def __init__(
        self,
        serializer: AmqpSerializer,
        type_: Type,
        base_type: DescribedCompoundType|None,
        descriptor_name: str|None,
        descriptor_code: int|None,
        members: Iterable[SerializableMember],
        known_types: Iterable[Type|str],
        callbacks: tuple[MethodAccessor|None, ...],
    ) -> None:
        super().__init__(serializer, type_)
        self._base_type = base_type
        self._descriptor_name = descriptor_name
        self._descriptor_code = descriptor_code
        self._members: tuple[SerializableMember, ...] = tuple(members)

        # provided subtype refs are recorded now but compiled on
        # first decode that needs them, see `.get_known_type()`.
        self._known_refs: tuple[Type|str, ...] = tuple(known_types)
        self._known_types: dict[Type, SerializableType] = {}
        self._callbacks = callbacks

    def __repr__(self) -> str:
        lines: str = textwrap.indent(
            ''.join(
                f'|_{m.order}: {m.name} -> {m.type!r}\n'
                for m in self._members
            ),
            prefix=' '*2,
        )
        return (
            f'<{type(self).__name__}({self._type.__qualname__}\n'
            f'  descriptor: {self.descriptor!r}\n'
            f'{lines}'
            ')>'
        )

    @property
    def members(self) -> tuple[SerializableMember, ...]:
        return self._members

    @property
    def base_type(self) -> DescribedCompoundType|None:
        return self._base_type

    @property
    def descriptor(self) -> tuple[str|None, int|None]:
        return (
            self._descriptor_name,
            self._descriptor_code,
        )

    @property
    def known_types(self) -> tuple[Type|str, ...]:
        return self._known_refs

    def has_descriptor(self, descriptor: Any) -> bool:
        if isinstance(descriptor, str):
            return descriptor == self._descriptor_name
        if isinstance(descriptor, int):
            return descriptor == self._descriptor_code
        return False

    def get_known_type(
        self,
        descriptor: Any,
        _seen: set[int]|None = None,
    ) -> DescribedCompoundType|None:
        '''
        Find the provided subtype (transitively) whose descriptor
        matches, compiling (and memoizing) each candidate on first
        need.

        '''
        seen: set[int] = _seen if _seen is not None else set()
        seen.add(id(self))

        for ref in self._known_refs:
            subtype: Type = resolve_provided(self._type, ref)
            if (known := self._known_types.get(subtype)) is None:
                if get_contract(subtype) is None:
                    continue

                known = self._known_types.setdefault(
                    subtype,
                    self._serializer.get_type(subtype),
                )
                log.runtime(
                    f'Compiled provided subtype of {self._type.__qualname__}\n'
                    f'{known!r}\n'
                )

            if not isinstance(known, DescribedCompoundType):
                continue

            if known.has_descriptor(descriptor):
                return known

            if id(known) not in seen:
                deeper = known.get_known_type(descriptor, seen)
                if deeper is not None:
                    return deeper

        return None

    def invoke_callback(
        self,
        role: SerializationCallback,
        inst: Any,
    ) -> None:
        if (cb := self._callbacks[role]) is not None:
            cb.invoke(inst)

    def write_object(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        if value is None:
            write_null(buffer)
            return

        self.invoke_callback(SerializationCallback.ON_SERIALIZING, value)

        if self.encoding.is_described:
            write_descriptor(
                buffer,
                self._descriptor_name,
                self._descriptor_code,
            )

        self.write_members(buffer, value)
        self.invoke_callback(SerializationCallback.ON_SERIALIZED, value)

    def read_object(
        self,
        buffer: ByteBuffer,
    ) -> Any:
        code: int|None = read_format_code(buffer)
        if code is None:
            return None

        effective: DescribedCompoundType = self
        if self.encoding.is_described:
            if code != FormatCode.DESCRIBED:
                raise MalformedWireData(
                    'Expected a described type constructor',
                    type_=self._type,
                    format_code=hex(code),
                )

            descriptor: Any = self._serializer.encoder.read_object(buffer)
            if not self.has_descriptor(descriptor):
                effective = self.get_known_type(descriptor)
                if effective is None:
                    raise MalformedWireData(
                        'Unknown descriptor for type',
                        type_=self._type,
                        descriptor=descriptor,
                    )

            code = buffer.read_byte()

        return effective.read_body(buffer, code)

    def read_body(
        self,
        buffer: ByteBuffer,
        code: int,
    ) -> Any:
        '''
        Construct an instance and fill it from the (descriptor-less)
        compound value whose constructor `code` was just consumed.

        '''
        container: Any = self.new_instance()
        self.invoke_callback(SerializationCallback.ON_DESERIALIZING, container)
        self.read_members(buffer, code, container)
        self.invoke_callback(SerializationCallback.ON_DESERIALIZED, container)
        return container

    def write_members(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        raise NotImplementedError

    def read_members(
        self,
        buffer: ByteBuffer,
        code: int,
        container: Any,
    ) -> None:
        raise NotImplementedError


class DescribedListType(DescribedCompoundType):
    '''
    Members written positionally (by resolved order) as an AMQP
    list; the trailing run of absent (`None`) members is omitted.

    '''
    encoding = EncodingType.LIST

    def write_members(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        values: list[Any] = [
            member.accessor.get(value)
            for member in self._members
        ]

        # only a contiguous absent suffix can be dropped, any
        # interior absent member stays as an explicit null.
        count: int = len(values)
        while (
            count
            and
            values[count - 1] is None
        ):
            count -= 1

        body = ByteBuffer()
        for member, val in zip(
            self._members[:count],
            values[:count],
        ):
            write_member_value(
                self._serializer,
                body,
                member.type,
                val,
            )

        write_list_frame(buffer, count, body.getvalue())

    def read_members(
        self,
        buffer: ByteBuffer,
        code: int,
        container: Any,
    ) -> None:
        count: int = read_list_header(buffer, code)
        for i in range(count):
            if i < len(self._members):
                member: SerializableMember = self._members[i]
                member.accessor.set(
                    container,
                    member.type.read_object(buffer),
                )
            else:
                # newer peer, unknown trailing member
                self._serializer.encoder.read_object(buffer)


class DescribedMapType(DescribedCompoundType):
    '''
    Members written as an AMQP map keyed by their (symbol) names,
    absent (`None`) members are omitted entirely.

    '''
    encoding = EncodingType.MAP

    # wire type of the member-name keys
    key_type: Type = Symbol

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._members_by_name: dict[str, SerializableMember] = {
            member.name: member
            for member in self._members
        }

    def write_members(
        self,
        buffer: ByteBuffer,
        value: Any,
    ) -> None:
        encoder = self._serializer.encoder
        body = ByteBuffer()
        pairs: int = 0
        for member in self._members:
            val: Any = member.accessor.get(value)
            if val is None:
                continue

            encoder.write_object(body, self.key_type(member.name))
            write_member_value(
                self._serializer,
                body,
                member.type,
                val,
            )
            pairs += 1

        write_map_frame(buffer, pairs * 2, body.getvalue())

    def read_members(
        self,
        buffer: ByteBuffer,
        code: int,
        container: Any,
    ) -> None:
        encoder = self._serializer.encoder
        pairs: int = read_map_header(buffer, code)
        for _ in range(pairs):
            key: Any = encoder.read_object(buffer)
            member: SerializableMember|None = (
                self._members_by_name.get(key)
                if isinstance(key, str)
                else None
            )
            if member is None:
                # unknown member, skip its value
                encoder.read_object(buffer)
                continue

            member.accessor.set(
                container,
                member.type.read_object(buffer),
            )


class SimpleListType(DescribedListType):
    '''
    Same as `DescribedListType` without the descriptor prefix.

    '''
    encoding = EncodingType.SIMPLE_LIST


class SimpleMapType(DescribedMapType):
    '''
    Same as `DescribedMapType` without the descriptor prefix and
    with (utf-8) string member keys.

    '''
    encoding = EncodingType.SIMPLE_MAP
    key_type = str


_compound_types: dict[EncodingType, Type[DescribedCompoundType]] = {
    EncodingType.LIST: DescribedListType,
    EncodingType.MAP: DescribedMapType,
    EncodingType.SIMPLE_LIST: SimpleListType,
    EncodingType.SIMPLE_MAP: SimpleMapType,
}


def mk_compound_type(
    encoding: EncodingType,
    *args,
    **kwargs,
) -> DescribedCompoundType:
    '''
    Construct the compound descriptor variant for a contract's
    encoding kind.

    '''
    return _compound_types[encoding](*args, **kwargs)
