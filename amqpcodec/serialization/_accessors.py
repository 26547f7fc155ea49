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
Attribute and method "handles" bound at compile time and invoked
per instance at encode/decode time.

'''
from __future__ import annotations
from typing import (
    Any,
    Callable,
    Type,
)

from amqpcodec._exceptions import UnsupportedType


class MemberAccessor:
    '''
    Get/set a single field or property of an instance.

    '''
    __slots__ = (
        '_attr',
        '_prop',
    )

    def __init__(
        self,
        attr: str,
        prop: property|None = None,
    ) -> None:
        self._attr: str = attr
        self._prop: property|None = prop

    def __repr__(self) -> str:
        kind: str = 'property' if self._prop else 'field'
        return f'<{type(self).__name__}({kind} {self._attr!r})>'

    @property
    def attr(self) -> str:
        return self._attr

    @classmethod
    def create(
        cls,
        owner: Type,
        attr: str,
        prop: property|None = None,

        requires_setter: bool = True,

    ) -> MemberAccessor:
        '''
        Make an accessor failing at compile time (rather then at
        first decode) when a property member can't be written.

        '''
        if (
            prop is not None
            and prop.fset is None
            and requires_setter
        ):
            raise UnsupportedType(
                'Property member has no setter',
                type_=owner,
                member=attr,
            )

        return cls(attr, prop)

    def get(self, obj: Any) -> Any:
        if self._prop is not None:
            return self._prop.fget(obj)

        # unset fields without a (class) default are absent
        return getattr(obj, self._attr, None)

    def set(
        self,
        obj: Any,
        value: Any,
    ) -> None:
        if self._prop is not None:
            self._prop.fset(obj, value)
        else:
            setattr(obj, self._attr, value)


class MethodAccessor:
    '''
    Invoke a method of an instance by a compile-time resolved
    (unbound) function handle.

    '''
    __slots__ = (
        '_fn',
    )

    def __init__(
        self,
        fn: Callable,
    ) -> None:
        self._fn: Callable = fn

    def __repr__(self) -> str:
        name: str = getattr(
            self._fn,
            '__qualname__',
            repr(self._fn),
        )
        return f'<{type(self).__name__}({name})>'

    @classmethod
    def create(
        cls,
        owner: Type,
        name: str,
    ) -> MethodAccessor:
        fn: Callable|None = getattr(owner, name, None)
        if not callable(fn):
            raise UnsupportedType(
                f'Type has no {name!r} method',
                type_=owner,
            )

        return cls(fn)

    def invoke(
        self,
        obj: Any,
        *args,
    ) -> Any:
        return self._fn(obj, *args)
