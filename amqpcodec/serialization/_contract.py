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
Wire-contract metadata: the decorators app code uses to declare
how a class maps onto an AMQP described type, and the capability
queries the compiler uses to read those declarations back.

Declaring a contract looks like,

    @amqp_contract(encoding=EncodingType.LIST, code=0x0000_beef_0000_0001)
    @amqp_provides(Circle, Square)
    class Shape:
        name: Annotated[str|None, amqp_member(order=1)] = None

        @on_deserialized
        def _loaded(self) -> None:
            ...

All metadata is stored on (and only read from) the decorated class'
own `__dict__`, it is never inherited by subclasses.

'''
from __future__ import annotations
from enum import (
    Enum,
    IntEnum,
)
import inspect
import sys
import typing
from typing import (
    Annotated,
    Any,
    Callable,
    Iterator,
    Protocol,
    Type,
    runtime_checkable,
)

from amqpcodec._exceptions import UnsupportedType
from amqpcodec.buffer import ByteBuffer
from .pretty_struct import Struct


class EncodingType(Enum):
    '''
    How a contract's members are laid out on the wire.

    '''
    # described list, members by order
    LIST = 'list'

    # described map, members keyed by (symbol) name
    MAP = 'map'

    # plain (descriptor-less) map keyed by (string) name
    SIMPLE_MAP = 'simple_map'

    # plain (descriptor-less) list, members by order
    SIMPLE_LIST = 'simple_list'

    @property
    def is_described(self) -> bool:
        return self in (
            EncodingType.LIST,
            EncodingType.MAP,
        )


class SerializationCallback(IntEnum):
    ON_SERIALIZING = 0
    ON_SERIALIZED = 1
    ON_DESERIALIZING = 2
    ON_DESERIALIZED = 3


class ContractInfo(
    Struct,
    frozen=True,
):
    '''
    Type level contract declaration.

    '''
    encoding: EncodingType = EncodingType.LIST
    name: str|None = None
    code: int|None = None


class MemberInfo(
    Struct,
    frozen=True,
):
    '''
    Per field/property member declaration.

    Put an instance in an `Annotated[T, amqp_member()]` field
    annotation or use it as a decorator on a `property`.

    '''
    name: str|None = None
    order: int|None = None

    def __call__(
        self,
        target: property|Callable,
    ) -> property|Callable:
        # metadata always lives on the getter so that
        # `@prop.setter` (which makes a new `property`) keeps it.
        fget: Callable = (
            target.fget
            if isinstance(target, property)
            else target
        )
        fget.__amqp_member__ = self
        return target


class ProvidesInfo(
    Struct,
    frozen=True,
):
    '''
    Concrete subtypes which may appear on the wire wherever the
    declaring contract type is expected.

    Entries are classes or (maybe dotted) name `str`s resolved
    lazily, relative to the declaring class' module.

    '''
    types: tuple[Any, ...] = ()


@runtime_checkable
class AmqpSerializable(Protocol):
    '''
    The self-describing capability: a type which encodes and
    decodes itself entirely, bypassing the compiler's member
    walking.

    Must be constructible with no arguments.

    '''
    def encode(self, buffer: ByteBuffer) -> None:
        ...

    def decode(self, buffer: ByteBuffer) -> None:
        ...


def amqp_contract(
    encoding: EncodingType = EncodingType.LIST,
    name: str|None = None,
    code: int|None = None,

) -> Callable[[Type], Type]:
    '''
    Class decorator declaring the AMQP wire contract for a type.

    When neither a descriptor `name` nor `code` is provided the
    descriptor name defaults to the class' fully qualified name.

    '''
    if (
        code is not None
        and
        not (0 <= code <= 0xffffffffffffffff)
    ):
        raise ValueError(
            f'Descriptor code must be an unsigned 64-bit int: {code!r}'
        )

    info = ContractInfo(
        encoding=EncodingType(encoding),
        name=name,
        code=code,
    )

    def decorate(cls: Type) -> Type:
        if not isinstance(cls, type):
            raise TypeError(
                f'`@amqp_contract` only decorates classes, not {cls!r}'
            )
        cls.__amqp_contract__ = info
        return cls

    return decorate


def amqp_member(
    name: str|None = None,
    order: int|None = None,
) -> MemberInfo:
    return MemberInfo(
        name=name,
        order=order,
    )


def amqp_provides(
    *types: Type|str,
) -> Callable[[Type], Type]:
    '''
    Class decorator declaring provided (polymorphic) subtypes,
    stackable.

    '''
    def decorate(cls: Type) -> Type:
        prior: ProvidesInfo|None = vars(cls).get('__amqp_provides__')
        # decorators apply bottom-up, keep top-down declared order
        cls.__amqp_provides__ = ProvidesInfo(
            types=(
                tuple(types)
                +
                (prior.types if prior else ())
            )
        )
        return cls

    return decorate


def _mk_callback_marker(
    role: SerializationCallback,
) -> Callable[[Callable], Callable]:

    def mark(fn: Callable) -> Callable:
        fn.__amqp_callback__ = role
        return fn

    mark.__name__ = role.name.lower()
    return mark


on_serializing = _mk_callback_marker(SerializationCallback.ON_SERIALIZING)
on_serialized = _mk_callback_marker(SerializationCallback.ON_SERIALIZED)
on_deserializing = _mk_callback_marker(SerializationCallback.ON_DESERIALIZING)
on_deserialized = _mk_callback_marker(SerializationCallback.ON_DESERIALIZED)


'''
Capability queries

'''


def get_contract(type_: Any) -> ContractInfo|None:
    if not isinstance(type_, type):
        return None

    return vars(type_).get('__amqp_contract__')


def get_provides(type_: Type) -> tuple[Any, ...]:
    info: ProvidesInfo|None = vars(type_).get('__amqp_provides__')
    if info is None:
        return ()
    return info.types


def resolve_provided(
    owner: Type,
    ref: Type|str,
) -> Type:
    '''
    Resolve a provided-subtype reference declared on `owner`.

    '''
    if not isinstance(ref, str):
        return ref

    modname, _, attr = ref.rpartition('.')
    mod = sys.modules.get(modname or owner.__module__)
    target: Any = getattr(mod, attr, None) if mod else None
    if not isinstance(target, type):
        raise UnsupportedType(
            'Unable to resolve provided subtype reference',
            type_=owner,
            ref=ref,
        )
    return target


def iter_members(
    type_: Type,
) -> Iterator[tuple[str, Any, MemberInfo, property|None]]:
    '''
    Yield `(attr_name, member_type, member_info, maybe_property)`
    for every member declared on `type_` itself (not inherited),
    annotated fields first (in declaration order) then properties.

    '''
    own_annots: dict[str, Any] = inspect.get_annotations(type_)
    if own_annots:
        try:
            hints: dict[str, Any] = typing.get_type_hints(
                type_,
                include_extras=True,
            )
        except (NameError, TypeError) as err:
            raise UnsupportedType(
                'Unable to evaluate member type annotations',
                type_=type_,
            ) from err

        for attr in own_annots:
            hint: Any = hints.get(attr)
            if typing.get_origin(hint) is not Annotated:
                continue

            info: MemberInfo|None = next(
                (
                    meta for meta in hint.__metadata__
                    if isinstance(meta, MemberInfo)
                ),
                None,
            )
            if info is None:
                continue

            yield (
                attr,
                hint.__origin__,
                info,
                None,
            )

    for attr, val in vars(type_).items():
        if not isinstance(val, property):
            continue

        info: MemberInfo|None = getattr(
            val.fget,
            '__amqp_member__',
            None,
        )
        if info is None:
            continue

        try:
            ret: Any = typing.get_type_hints(val.fget).get(
                'return',
                Any,
            )
        except (NameError, TypeError) as err:
            raise UnsupportedType(
                'Unable to evaluate member property return annotation',
                type_=type_,
                member=attr,
            ) from err

        yield (
            attr,
            ret,
            info,
            val,
        )


def iter_callbacks(
    type_: Type,
) -> Iterator[tuple[SerializationCallback, Callable]]:
    '''
    Yield `(role, func)` for every lifecycle-callback marked method
    declared on `type_` itself, in declaration order.

    Ancestor hooks are NOT yielded here; the compiler seeds a derived
    type's callbacks from its compiled (contract) ancestor so a role
    the subtype does not declare keeps invoking the ancestor's hook.

    '''
    for val in vars(type_).values():
        role: SerializationCallback|None = getattr(
            val,
            '__amqp_callback__',
            None,
        )
        if (
            role is not None
            and
            callable(val)
        ):
            yield role, val
