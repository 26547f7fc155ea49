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
The type-directed codec compiler and its runtime dispatcher.

An `AmqpSerializer` compiles (once) and caches a `SerializableType`
per runtime type; descriptor names and codes are scoped to (and
must be unique within) a single serializer instance.

'''
from __future__ import annotations
from contextlib import (
    contextmanager as cm,
)
from contextvars import (
    ContextVar,
    Token,
)
from enum import Enum
import threading
import types
import typing
from typing import (
    Annotated,
    Any,
    Type,
    Union,
)

from amqpcodec._exceptions import (
    DuplicateMemberOrder,
    IllegalProvidesOnSimpleEncoding,
    IncompatibleEncoding,
    InvalidCast,
    UnsupportedType,
    pformat_type,
)
from amqpcodec.buffer import ByteBuffer
from amqpcodec.log import get_logger
from amqpcodec.wire import (
    Described,
    Encoder,
    TypeCodec,
    default_encoder,
    write_null,
)
from ._accessors import (
    MemberAccessor,
    MethodAccessor,
)
from ._collections import compile_collection_type
from ._contract import (
    AmqpSerializable,
    ContractInfo,
    EncodingType,
    SerializationCallback,
    get_contract,
    get_provides,
    iter_callbacks,
    iter_members,
)
from ._types import (
    AmqpSerializableType,
    DeferredType,
    DescribedCompoundType,
    EnumType,
    ObjectType,
    PrimitiveType,
    SerializableMember,
    SerializableType,
    mk_compound_type,
)

log = get_logger(__name__)


def is_optional(type_: Any) -> bool:
    return (
        typing.get_origin(type_) in (Union, types.UnionType)
        and
        type(None) in typing.get_args(type_)
    )


def is_enum(type_: Any) -> bool:
    return (
        isinstance(type_, type)
        and
        issubclass(type_, Enum)
    )


def is_instance_of(
    value: Any,
    type_: Any,
) -> bool:
    '''
    `isinstance()` which also understands `Any`, optionals/unions,
    `Annotated` and parameterized generic aliases (by origin).

    '''
    if type_ in (Any, object):
        return True

    origin: Any = typing.get_origin(type_)
    if origin is Annotated:
        return is_instance_of(value, type_.__origin__)

    if origin in (Union, types.UnionType):
        return any(
            is_instance_of(value, arg)
            for arg in typing.get_args(type_)
        )

    if type_ is type(None):
        return value is None

    cls: Any = origin or type_
    if not isinstance(cls, type):
        return False

    return isinstance(value, cls)


class AmqpSerializer:
    '''
    Serializes and deserializes instances of AMQP contract types
    (and anything else the compiler supports) to and from
    `ByteBuffer`s.

    '''
    def __init__(
        self,
        encoder: Encoder|None = None,
    ) -> None:
        self._encoder: Encoder = encoder or default_encoder()

        # never locked: publication is a `.setdefault()` and a failed
        # compile only pops the entries it published itself.
        self._type_cache: dict[Any, SerializableType] = {}

        # per-thread set of types currently being compiled on this
        # thread's stack (for self-referential member types) and the
        # entries published while doing so.
        self._compiling = threading.local()

    def __repr__(self) -> str:
        return (
            f'<{type(self).__name__}('
            f'cached_types={len(self._type_cache)})>'
        )

    @property
    def encoder(self) -> Encoder:
        return self._encoder

    def write_object(
        self,
        buffer: ByteBuffer,
        graph: Any,
    ) -> None:
        '''
        Write an object graph using the descriptor of its runtime
        (most-derived) type. On failure nothing of `graph` is left in
        `buffer`.

        '''
        if graph is None:
            write_null(buffer)
            return

        start: int = buffer.write_offset
        try:
            self.get_type(type(graph)).write_object(buffer, graph)
        except BaseException:
            buffer.truncate(start)
            raise

    def read_object(
        self,
        buffer: ByteBuffer,
        type_: Any,
        as_type: Any|None = None,
    ) -> Any:
        '''
        Read an object graph using the descriptor of the requested
        (statically declared) `type_`, polymorphically decoding any
        of its provided subtypes, and verify it as `as_type`
        (defaulting to `type_`).

        '''
        value: Any = self.get_type(type_).read_object(buffer)
        if as_type is None:
            as_type = type_

        if (
            value is not None
            and
            not is_instance_of(value, as_type)
        ):
            raise InvalidCast(
                f'Decoded {type(value).__qualname__} is not an instance '
                f'of the requested type',
                type_=as_type,
                requested=pformat_type(type_),
            )

        return value

    def get_type(
        self,
        type_: Any,
    ) -> SerializableType:
        '''
        Resolve (cache hit) or compile the descriptor for `type_`.

        '''
        if (cached := self._cache_get(type_)) is not None:
            return cached

        if type_ in self._in_progress():
            return DeferredType(self, type_)

        compiled: SerializableType|None = self._compile_type(type_)
        if compiled is None:
            raise UnsupportedType(
                'No AMQP serialization rule applies to type',
                type_=type_,
            )

        return self._publish(type_, compiled)

    def _in_progress(self) -> set:
        try:
            return self._compiling.types
        except AttributeError:
            compiling: set = set()
            self._compiling.types = compiling
            return compiling

    def _published_here(self) -> list[tuple[Any, SerializableType]]:
        try:
            return self._compiling.published
        except AttributeError:
            published: list = []
            self._compiling.published = published
            return published

    def _rollback(self) -> None:
        '''
        Drop every cache entry published by this thread during a
        (now failed) contract compile; any of them may hold a
        `DeferredType` to a type which never got compiled.

        '''
        published: list = self._published_here()
        while published:
            type_, compiled = published.pop()
            if self._type_cache.get(type_) is compiled:
                self._type_cache.pop(type_, None)
                log.runtime(
                    f'Dropped cached type of failed compile\n'
                    f'{compiled!r}\n'
                )

    def _cache_get(self, type_: Any) -> SerializableType|None:
        try:
            return self._type_cache.get(type_)
        except TypeError as terr:
            raise UnsupportedType(
                'Unhashable type',
                type_=type_,
            ) from terr

    def _publish(
        self,
        type_: Any,
        compiled: SerializableType,
    ) -> SerializableType:
        # first-publish wins, any racing compile result is dropped
        published: SerializableType = self._type_cache.setdefault(
            type_,
            compiled,
        )
        if published is not compiled:
            log.debug(
                f'Lost publish race for {pformat_type(type_)}, '
                'using already cached descriptor\n'
            )
        else:
            if self._in_progress():
                self._published_here().append((type_, compiled))

            log.runtime(
                f'Compiled and cached type\n'
                f'{published!r}\n'
            )
        return published

    def _compile_type(
        self,
        type_: Any,
    ) -> SerializableType|None:
        contract: ContractInfo|None = get_contract(type_)
        if contract is None:
            return self._compile_non_contract_type(type_)

        # an ancestor may be (re)compiled from inside one of its own
        # member compiles, only its first frame unmarks it. The first
        # contract frame on this thread owns whatever got published
        # below it.
        in_progress: set = self._in_progress()
        outermost: bool = not in_progress
        nested: bool = type_ in in_progress
        in_progress.add(type_)
        try:
            return self._compile_contract_type(type_, contract)
        except BaseException:
            if outermost:
                self._rollback()
            raise
        finally:
            if not nested:
                in_progress.discard(type_)
            if outermost:
                self._published_here().clear()

    def _compile_contract_type(
        self,
        type_: Type,
        contract: ContractInfo,
    ) -> DescribedCompoundType:
        # the (contract) ancestor provides inherited members and
        # must agree on the encoding kind.
        base_type: DescribedCompoundType|None = None
        base: Type = type_.__mro__[1]
        if get_contract(base) is not None:
            base_type = self._cache_get(base)
            if base_type is None:
                base_type = self._publish(
                    base,
                    self._compile_type(base),
                )

            if base_type.encoding != contract.encoding:
                raise IncompatibleEncoding(
                    f'{type_.__name__}.encoding ({contract.encoding.name}) '
                    f'is different from {base.__name__}.encoding '
                    f'({base_type.encoding.name})',
                    type_=type_,
                )

        descriptor_name: str|None = contract.name
        descriptor_code: int|None = contract.code
        if (
            descriptor_name is None
            and
            descriptor_code is None
        ):
            descriptor_name = pformat_type(type_)

        members: list[SerializableMember] = []
        if base_type is not None:
            members.extend(base_type.members)

        last_order: int = max(
            (m.order for m in members),
            default=0,
        )
        for (
            attr,
            member_type,
            info,
            prop,
        ) in iter_members(type_):
            if info.order is None:
                last_order += 1
                order: int = last_order
            else:
                order: int = info.order
                last_order = max(last_order, order)

            members.append(SerializableMember(
                name=info.name or attr,
                order=order,
                accessor=MemberAccessor.create(type_, attr, prop),
                # recursively resolve member types
                type=self.get_type(member_type),
            ))

        if contract.encoding is EncodingType.LIST:
            members.sort(key=lambda m: m.order)
            prev: SerializableMember|None = None
            for member in members:
                if (
                    prev is not None
                    and
                    member.order == prev.order
                ):
                    raise DuplicateMemberOrder(
                        f'Duplicate order {member.order} detected in '
                        f'{type_.__name__}',
                        type_=type_,
                        members=(prev.name, member.name),
                    )
                prev = member

        provides: tuple = get_provides(type_)
        if (
            provides
            and
            not contract.encoding.is_described
        ):
            raise IllegalProvidesOnSimpleEncoding(
                f'{type_.__name__}: {contract.encoding.name} encoding does '
                'not include descriptors so it can not provide subtypes',
                type_=type_,
            )

        # provided subtype compilation is delayed (until a decode
        # needs it) and non-recursive to avoid circular references;
        # only refs to (known) contract types are kept.
        known_types: list[Type|str] = [
            ref for ref in provides
            if (
                isinstance(ref, str)
                or
                get_contract(ref) is not None
            )
        ]

        callbacks: list[MethodAccessor|None] = (
            list(base_type._callbacks)
            if base_type is not None
            else [None] * len(SerializationCallback)
        )
        own_roles: set[SerializationCallback] = set()
        for role, fn in iter_callbacks(type_):
            # first declared wins, later duplicates are ignored
            if role in own_roles:
                continue
            own_roles.add(role)
            callbacks[role] = MethodAccessor(fn)

        return mk_compound_type(
            contract.encoding,
            self,
            type_,
            base_type,
            descriptor_name,
            descriptor_code,
            members,
            known_types,
            tuple(callbacks),
        )

    def _compile_non_contract_type(
        self,
        type_: Any,
    ) -> SerializableType|None:
        if typing.get_origin(type_) is Annotated:
            return self.get_type(type_.__origin__)

        # built-in type
        codec: TypeCodec|None = self._encoder.try_get_codec(type_)
        if codec is not None:
            return PrimitiveType(self, type_, codec)

        if type_ in (object, Any):
            return ObjectType(self, type_)

        if isinstance(type_, type):
            if issubclass(type_, Described):
                return ObjectType(self, type_)

            if issubclass(type_, AmqpSerializable):
                return AmqpSerializableType(self, type_)

        if is_optional(type_):
            args: tuple = tuple(
                arg for arg in typing.get_args(type_)
                if arg is not type(None)
            )
            if len(args) == 1:
                (arg,) = args
                if is_enum(arg):
                    return self._compile_enum_type(arg)

                # every python reference is nullable so optional
                # compound types resolve to their inner type.
                if (
                    get_contract(arg) is not None
                    or
                    (
                        self._encoder.try_get_codec(arg) is None
                        and
                        arg not in (object, Any)
                    )
                ):
                    return self.get_type(arg)

            return ObjectType(self, type_)

        if is_enum(type_):
            return self._compile_enum_type(type_)

        return compile_collection_type(self, type_)

    def _compile_enum_type(
        self,
        type_: Type[Enum],
    ) -> EnumType:
        '''
        Compile an enum using its first primitive (mixin) base as
        the underlying type, eg. `int` for an `IntEnum`, falling back
        to the type of its members' values for a plain `Enum`.

        '''
        underlying: Any = None
        for base in type_.__mro__[1:]:
            if issubclass(base, Enum):
                continue
            if self._encoder.try_get_codec(base) is not None:
                underlying = base
                break

        if underlying is None:
            value_types: set[Type] = {
                type(member.value) for member in type_
            }
            if len(value_types) != 1:
                raise UnsupportedType(
                    'Enum members must share a single value type',
                    type_=type_,
                    value_types=value_types,
                )
            (underlying,) = value_types

        return EnumType(
            self,
            type_,
            self.get_type(underlying),
        )


# the process-wide default instance
_def_serializer: AmqpSerializer = AmqpSerializer()

_ctxvar_AmqpSerializer: ContextVar[AmqpSerializer] = ContextVar(
    'amqp_serializer',
    default=_def_serializer,
)


def current_serializer() -> AmqpSerializer:
    '''
    Return the serializer used by the module level `serialize()`
    and `deserialize()` in the current (task/thread) context.

    '''
    return _ctxvar_AmqpSerializer.get()


@cm
def apply_serializer(
    serializer: AmqpSerializer,
) -> AmqpSerializer:
    '''
    Scope a (non-default) serializer, and thus its isolated contract
    namespace and type cache, to the current context for all
    `serialize()`/`deserialize()` calls made inside the block.

    '''
    orig: AmqpSerializer = _ctxvar_AmqpSerializer.get()
    log.runtime(
        f'Applying serializer {serializer!r}\n'
        f'|_prior: {orig!r}\n'
    )
    token: Token = _ctxvar_AmqpSerializer.set(serializer)
    try:
        yield serializer
    finally:
        _ctxvar_AmqpSerializer.reset(token)
        log.runtime(f'Reverted to serializer {orig!r}\n')


def serialize(
    buffer: ByteBuffer,
    graph: Any,
) -> None:
    '''
    Serialize an object graph into `buffer` using the current
    (default unless applied) serializer.

    '''
    current_serializer().write_object(buffer, graph)


def deserialize(
    buffer: ByteBuffer,
    type_: Any,
    as_type: Any|None = None,
) -> Any:
    '''
    Deserialize an instance of `type_` (checked as `as_type` when
    provided) from `buffer` using the current serializer.

    '''
    return current_serializer().read_object(
        buffer,
        type_,
        as_type=as_type,
    )
