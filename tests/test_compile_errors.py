'''
Illegal contract declarations fail compilation, loudly and without
leaving anything behind in the type cache.

'''
from __future__ import annotations
from dataclasses import dataclass
from typing import Annotated

import pytest

from amqpcodec import (
    AmqpSerializationError,
    AmqpSerializer,
    ByteBuffer,
    DuplicateMemberOrder,
    EncodingType,
    IllegalProvidesOnSimpleEncoding,
    IncompatibleEncoding,
    UnsupportedType,
    ValueOutOfRange,
    amqp_contract,
    amqp_member,
    amqp_provides,
)


@amqp_contract(code=0x40)
@dataclass
class DupOrders:
    a: Annotated[int|None, amqp_member(order=1)] = None
    b: Annotated[int|None, amqp_member(order=3)] = None
    c: Annotated[int|None, amqp_member(order=3)] = None


@amqp_contract(code=0x41)
@dataclass
class OrderedBase:
    a: Annotated[int|None, amqp_member(order=1)] = None


# collides with an inherited member's order
@amqp_contract(code=0x42)
@dataclass
class OrderClash(OrderedBase):
    b: Annotated[int|None, amqp_member(order=1)] = None


# map encodings are keyed by name so orders don't matter
@amqp_contract(encoding=EncodingType.MAP, code=0x43)
@dataclass
class MapSameOrders:
    a: Annotated[int|None, amqp_member(order=1)] = None
    b: Annotated[int|None, amqp_member(order=1)] = None


@amqp_contract(encoding=EncodingType.MAP, code=0x44)
@dataclass
class MapFromList(OrderedBase):
    b: Annotated[int|None, amqp_member()] = None


@amqp_contract(encoding=EncodingType.SIMPLE_MAP)
@amqp_provides('MapSameOrders')
@dataclass
class SimpleWithProvides:
    a: Annotated[int|None, amqp_member()] = None


@amqp_contract(encoding=EncodingType.SIMPLE_LIST)
@amqp_provides('DupOrders')
@dataclass
class SimpleListWithProvides:
    a: Annotated[int|None, amqp_member()] = None


# self-referential member types get compiled (and published) before
# the order clash is found
@amqp_contract(code=0x49)
@dataclass
class BadNode:
    a: Annotated[int|None, amqp_member(order=1)] = None
    nxt: Annotated[BadNode|None, amqp_member(order=1)] = None
    kids: Annotated[list[BadNode]|None, amqp_member(order=2)] = None


@amqp_contract(code=0x4a)
@dataclass
class HoldsBadNode:
    node: Annotated[BadNode|None, amqp_member()] = None


@amqp_contract(code=0x4b)
@dataclass
class Big:
    tag: Annotated[str|None, amqp_member()] = None
    v: Annotated[int|None, amqp_member()] = None


@amqp_contract(code=0x45)
@dataclass
class ComplexMember:
    z: Annotated[complex|None, amqp_member()] = None


@amqp_contract(code=0x46)
@dataclass
class UnionMember:
    v: Annotated[int|str, amqp_member()] = 0


@amqp_contract(code=0x47)
class ReadOnlyProp:

    @amqp_member()
    @property
    def value(self) -> int:
        return 1


@amqp_contract(code=0x48)
class NeedsArgs:
    v: Annotated[int|None, amqp_member()] = None

    def __init__(self, v: int) -> None:
        self.v = v


class Opaque:
    pass


@pytest.mark.parametrize(
    'typ, err',
    [
        (DupOrders, DuplicateMemberOrder),
        (OrderClash, DuplicateMemberOrder),
        (MapFromList, IncompatibleEncoding),
        (SimpleWithProvides, IllegalProvidesOnSimpleEncoding),
        (SimpleListWithProvides, IllegalProvidesOnSimpleEncoding),
        (BadNode, DuplicateMemberOrder),
        (ComplexMember, UnsupportedType),
        (UnionMember, UnsupportedType),
        (ReadOnlyProp, UnsupportedType),
        (Opaque, UnsupportedType),
    ],
    ids=lambda v: getattr(v, '__name__', None),
)
def test_compile_fails_without_caching(
    serializer: AmqpSerializer,
    typ: type,
    err: type[AmqpSerializationError],
):
    with pytest.raises(err) as excinfo:
        serializer.get_type(typ)

    assert isinstance(excinfo.value, AmqpSerializationError)
    assert typ not in serializer._type_cache

    # and the failure is repeatable
    with pytest.raises(err):
        serializer.get_type(typ)


def test_failed_compile_drops_dependent_types(
    serializer: AmqpSerializer,
):
    with pytest.raises(DuplicateMemberOrder):
        serializer.get_type(BadNode)

    # nothing which (lazily) refers to the failed type survives
    assert not serializer._type_cache
    for dependent in (
        BadNode|None,
        list[BadNode],
        list[BadNode]|None,
        HoldsBadNode,
    ):
        with pytest.raises(DuplicateMemberOrder):
            serializer.get_type(dependent)

        assert dependent not in serializer._type_cache

    # successful compiles still publish their dependents
    serializer.get_type(MapSameOrders)
    assert MapSameOrders in serializer._type_cache


def test_error_detail(
    serializer: AmqpSerializer,
):
    with pytest.raises(DuplicateMemberOrder) as excinfo:
        serializer.get_type(DupOrders)

    dup = excinfo.value
    assert dup.type_ is DupOrders
    assert dup.fields['members'] == ('b', 'c')
    assert 'DupOrders' in str(dup)
    assert '|_members' in str(dup)


def test_encode_of_unsupported_value(
    serializer: AmqpSerializer,
):
    with pytest.raises(UnsupportedType):
        serializer.write_object(ByteBuffer(), Opaque())

    # plain (untyped) containers only hold primitive values
    with pytest.raises(UnsupportedType):
        serializer.write_object(ByteBuffer(), [Opaque()])


def test_encode_of_out_of_range_value(
    serializer: AmqpSerializer,
):
    buf = ByteBuffer()
    serializer.write_object(buf, Big(tag='ok', v=1))
    before: bytes = buf.getvalue()

    with pytest.raises(ValueOutOfRange):
        serializer.write_object(buf, Big(tag='big', v=2**64))

    # the failed graph left nothing (not even its descriptor) behind
    assert buf.getvalue() == before
    assert serializer.read_object(buf, Big) == Big(tag='ok', v=1)
    assert buf.length == 0


def test_duplicate_orders_allowed_for_maps(
    serializer: AmqpSerializer,
):
    buf = ByteBuffer()
    serializer.write_object(buf, MapSameOrders(a=1, b=2))
    assert serializer.read_object(buf, MapSameOrders) == MapSameOrders(1, 2)


def test_decode_needs_default_constructor(
    serializer: AmqpSerializer,
):
    buf = ByteBuffer()

    # encoding is fine
    serializer.write_object(buf, NeedsArgs(1))

    with pytest.raises(UnsupportedType):
        serializer.read_object(buf, NeedsArgs)
