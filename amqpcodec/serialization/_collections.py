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
Collection shape detection for container types which carry no
contract metadata.

The shape is decided by the container class' capability surface,
not its ancestry:

- map-like: `.items()` enumeration + `__setitem__(key, value)`
- list-like: `__iter__()` enumeration + `.append(item)`

'''
from __future__ import annotations
import inspect
import typing
from typing import (
    Any,
    Type,
    TYPE_CHECKING,
)

from ._accessors import MethodAccessor
from ._types import (
    GenericListType,
    GenericMapType,
    SerializableType,
)

if TYPE_CHECKING:
    from ._serializer import AmqpSerializer


def is_map_like(cls: Type) -> bool:
    return (
        callable(getattr(cls, 'items', None))
        and
        callable(getattr(cls, '__setitem__', None))
    )


def is_list_like(cls: Type) -> bool:
    return (
        callable(getattr(cls, '__iter__', None))
        and
        callable(getattr(cls, 'append', None))
    )


def find_type_args(
    type_: Any,
    origin: Type,
    nargs: int,
) -> tuple[Any, ...]:
    '''
    Resolve a container's element type parameters.

    Either directly from a parameterized alias (`dict[str, int]`) or
    from the first parameterized ancestor of a container subclass
    (`class Bag(dict[str, int])`), defaulting to `object`s.

    '''
    if (args := typing.get_args(type_)):
        if len(args) == nargs:
            return args

    for cls in origin.__mro__:
        for base in getattr(cls, '__orig_bases__', ()):
            args = typing.get_args(base)
            if len(args) == nargs:
                return args

    return (object,) * nargs


def get_container_class(
    type_: Any,
    origin: Type,
    concrete: Type,
) -> Type:
    '''
    The class to construct on decode: `origin` unless it is an
    (uninstantiable) ABC like `collections.abc.MutableMapping`.

    '''
    if inspect.isabstract(origin):
        return concrete
    return origin


def compile_collection_type(
    serializer: AmqpSerializer,
    type_: Any,
) -> SerializableType|None:
    '''
    Compile a `GenericMapType` or `GenericListType` for `type_`, map
    shape checked first, or return `None` when it isn't
    a collection so the caller can keep looking.

    '''
    origin: Any = typing.get_origin(type_) or type_
    if not isinstance(origin, type):
        return None

    if is_map_like(origin):
        container: Type = get_container_class(type_, origin, dict)
        key_t, val_t = find_type_args(type_, origin, 2)
        return GenericMapType(
            serializer,
            type_,
            container,
            key_type=serializer.get_type(key_t),
            value_type=serializer.get_type(val_t),
            add=MethodAccessor.create(container, '__setitem__'),
        )

    if is_list_like(origin):
        container: Type = get_container_class(type_, origin, list)
        (item_t,) = find_type_args(type_, origin, 1)
        return GenericListType(
            serializer,
            type_,
            container,
            item_type=serializer.get_type(item_t),
            add=MethodAccessor.create(container, 'append'),
        )

    return None
