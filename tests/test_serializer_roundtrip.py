'''
Compiled contract codecs: exact wire layouts for every encoding
kind, trailing member omission, lifecycle hooks, version skew
tolerance and self/mutually referential types.

'''
from __future__ import annotations
from collections.abc import (
    MutableMapping,
    MutableSequence,
)
from dataclasses import (
    dataclass,
    field,
)
from enum import (
    Enum,
    IntEnum,
)
from typing import (
    Annotated,
    Any,
)

import pytest

from amqpcodec import (
    AmqpSerializer,
    ByteBuffer,
    Described,
    EncodingType,
    InvalidCast,
    Symbol,
    amqp_contract,
    amqp_member,
    apply_serializer,
    current_serializer,
    deserialize,
    on_deserialized,
    on_deserializing,
    on_serialized,
    on_serializing,
    serialize,
)
from amqpcodec.serialization import (
    _def_serializer,
    DescribedListType,
    EnumType,
    GenericListType,
    GenericMapType,
    ObjectType,
    PrimitiveType,
)
from amqpcodec.wire import (
    Encoder,
    UInt,
    ULong,
)


@amqp_contract(code=0x1)
@dataclass
class Point:
    x: Annotated[int|None, amqp_member(order=1)] = None
    y: Annotated[int|None, amqp_member(order=2)] = None


# a "newer" version of `Point` as sent by some other peer
@amqp_contract(code=0x1)
@dataclass
class PointV2:
    x: Annotated[int|None, amqp_member(order=1)] = None
    y: Annotated[int|None, amqp_member(order=2)] = None
    z: Annotated[str|None, amqp_member(order=3)] = None


@amqp_contract(encoding=EncodingType.MAP, name='test:tag')
@dataclass
class Tag:
    label: Annotated[str|None, amqp_member()] = None
    weight: Annotated[float|None, amqp_member(name='w')] = None


@amqp_contract(encoding=EncodingType.SIMPLE_LIST)
@dataclass
class Pair:
    a: Annotated[str|None, amqp_member(order=1)] = None
    b: Annotated[bool|None, amqp_member(order=2)] = None


@amqp_contract(encoding=EncodingType.SIMPLE_MAP)
@dataclass
class Settings:
    retries: Annotated[int|None, amqp_member()] = None
    name: Annotated[str|None, amqp_member()] = None


# no descriptor name or code, defaults to the qualified class name
@amqp_contract()
@dataclass
class Anonymous:
    flag: Annotated[bool|None, amqp_member()] = None


class Color(IntEnum):
    RED = 1
    GREEN = 2


class Mood(Enum):
    HAPPY = 'happy'
    SAD = 'sad'


class Bag(dict[str, int]):
    pass


@amqp_contract(code=0x2)
@dataclass
class Inventory:
    points: Annotated[list[Point]|None, amqp_member(order=1)] = None
    by_name: Annotated[dict[str, Point]|None, amqp_member(order=2)] = None
    raw: Annotated[list|None, amqp_member(order=3)] = None
    bag: Annotated[Bag|None, amqp_member(order=4)] = None
    counts: Annotated[
        MutableMapping[str, UInt]|None,
        amqp_member(order=5),
    ] = None
    colors: Annotated[MutableSequence[Color]|None, amqp_member(order=6)] = None
    color: Annotated[Color|None, amqp_member(order=7)] = None
    mood: Annotated[Mood|None, amqp_member(order=8)] = None


class Money:
    '''
    Self-describing: writes itself as an AMQP long of cents.

    '''
    def __init__(self) -> None:
        self.cents: int = 0

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Money)
            and
            other.cents == self.cents
        )

    def encode(self, buffer: ByteBuffer) -> None:
        buffer.write_byte(0x81)
        buffer.write_fmt('q', self.cents)

    def decode(self, buffer: ByteBuffer) -> None:
        assert buffer.read_byte() == 0x81
        self.cents = buffer.read_fmt('q')[0]


@amqp_contract(code=0x3)
class Invoice:
    '''
    Plain (non-dataclass) contract with a property member.

    '''
    total: Annotated[Money|None, amqp_member(order=1)] = None

    def __init__(self) -> None:
        self._memo: str|None = None

    @amqp_member(name='memo', order=2)
    @property
    def memo(self) -> str|None:
        return self._memo

    @memo.setter
    def memo(self, value: str|None) -> None:
        self._memo = value


@amqp_contract(code=0x4)
@dataclass
class Node:
    value: Annotated[int|None, amqp_member(order=1)] = None
    next: Annotated[Node|None, amqp_member(order=2)] = None
    children: Annotated[list[Node]|None, amqp_member(order=3)] = None


@amqp_contract(code=0x5)
@dataclass
class Parent:
    name: Annotated[str|None, amqp_member(order=1)] = None
    kids: Annotated[list[Child]|None, amqp_member(order=2)] = None


@amqp_contract(code=0x6)
@dataclass
class Child:
    name: Annotated[str|None, amqp_member(order=1)] = None
    guardian: Annotated[Parent|None, amqp_member(order=2)] = None


@amqp_contract(code=0x7)
@dataclass
class Envelope:
    body: Annotated[Any, amqp_member(order=1)] = None


@amqp_contract(code=0x8)
@dataclass
class Audited:
    value: Annotated[int|None, amqp_member(order=1)] = None
    events: list[tuple[str, Any]] = field(default_factory=list)

    @on_serializing
    def _before_encode(self) -> None:
        self.events.append(('serializing', self.value))

    @on_serialized
    def _after_encode(self) -> None:
        self.events.append(('serialized', self.value))

    # only the first hook per role is used
    @on_serialized
    def _after_encode_again(self) -> None:
        self.events.append(('ignored', self.value))

    @on_deserializing
    def _before_decode(self) -> None:
        self.events.append(('deserializing', self.value))

    @on_deserialized
    def _after_decode(self) -> None:
        self.events.append(('deserialized', self.value))


# hooks are inherited from the (contract) base
@amqp_contract(code=0x9)
@dataclass
class AuditedChild(Audited):
    extra: Annotated[str|None, amqp_member(order=2)] = None


def encode(
    serializer: AmqpSerializer,
    graph: Any,
) -> ByteBuffer:
    buf = ByteBuffer()
    serializer.write_object(buf, graph)
    return buf


@pytest.mark.parametrize(
    'point, hexed',
    [
        (Point(1, 2), '00' '5301' 'c00502' '5501' '5502'),

        # trailing absent member is dropped
        (Point(1, None), '00' '5301' 'c00301' '5501'),

        # interior absent member is an explicit null
        (Point(None, 2), '00' '5301' 'c00402' '40' '5502'),

        # all absent, empty list
        (Point(), '00' '5301' '45'),
    ],
    ids=[
        'full',
        'trailing_none_omitted',
        'interior_none_is_null',
        'all_none_is_list0',
    ],
)
def test_described_list_layout(
    serializer: AmqpSerializer,
    point: Point,
    hexed: str,
):
    buf = encode(serializer, point)
    assert buf.getvalue().hex() == hexed
    assert serializer.read_object(buf, Point) == point
    assert buf.length == 0


def test_trailing_absent_run_omitted(
    serializer: AmqpSerializer,
):
    buf = encode(serializer, PointV2(x=1))
    assert buf.getvalue().hex() == '00' '5301' 'c00301' '5501'
    assert serializer.read_object(buf, PointV2) == PointV2(1, None, None)

    # only the absent suffix is dropped
    buf = encode(serializer, PointV2(z='z'))
    assert buf.getvalue().hex() == '00' '5301' 'c00603' '40' '40' 'a1017a'
    assert serializer.read_object(buf, PointV2) == PointV2(z='z')


def test_unknown_trailing_members_are_skipped(
    serializer: AmqpSerializer,
):
    '''
    An older reader decodes a newer writer's payload, ignoring the
    members it doesn't know about.

    '''
    newer = AmqpSerializer(encoder=Encoder())
    buf = encode(newer, PointV2(1, 2, 'extra'))
    assert serializer.read_object(buf, Point) == Point(1, 2)
    assert buf.length == 0

    # and the other way, missing trailing members keep defaults
    buf = encode(serializer, Point(1, 2))
    assert newer.read_object(buf, PointV2) == PointV2(1, 2, None)


def test_described_map_layout(
    serializer: AmqpSerializer,
):
    buf = encode(serializer, Tag(label='x'))
    assert buf.getvalue().hex() == (
        '00' 'a308' + b'test:tag'.hex()
        + 'c10b02'
        + 'a305' + b'label'.hex()
        + 'a10178'
    )
    assert serializer.read_object(buf, Tag) == Tag(label='x')

    # member names are the wire keys
    tag = Tag(label='y', weight=0.5)
    generic = serializer.encoder.read_object(encode(serializer, tag))
    assert generic == Described(
        'test:tag',
        {Symbol('label'): 'y', Symbol('w'): 0.5},
    )
    assert serializer.read_object(encode(serializer, tag), Tag) == tag


def test_described_map_skips_unknown_keys(
    serializer: AmqpSerializer,
):
    buf = ByteBuffer()
    serializer.encoder.write_object(
        buf,
        Described(
            'test:tag',
            {
                Symbol('nope'): [1, 2, 3],
                Symbol('label'): 'x',
                Symbol('also_nope'): {'a': None},
            },
        ),
    )
    assert serializer.read_object(buf, Tag) == Tag(label='x')
    assert buf.length == 0


def test_simple_encodings_have_no_descriptor(
    serializer: AmqpSerializer,
):
    buf = encode(serializer, Pair('x', True))
    assert buf.getvalue().hex() == 'c00502' 'a10178' '41'
    assert serializer.read_object(buf, Pair) == Pair('x', True)

    buf = encode(serializer, Settings(retries=3))
    assert buf.getvalue().hex() == (
        'c10c02'
        + 'a107' + b'retries'.hex()
        + '5503'
    )
    assert serializer.read_object(buf, Settings) == Settings(retries=3)


def test_default_descriptor_is_qualified_name(
    serializer: AmqpSerializer,
):
    buf = encode(serializer, Anonymous(flag=True))
    generic = serializer.encoder.read_object(buf)
    assert generic == Described(
        f'{__name__}.Anonymous',
        [True],
    )


def test_null_graph(
    serializer: AmqpSerializer,
):
    buf = encode(serializer, None)
    assert buf.getvalue() == b'\x40'
    assert serializer.read_object(buf, Point) is None


def test_collections_and_enums(
    serializer: AmqpSerializer,
):
    inv = Inventory(
        points=[Point(1, 2), Point(None, 3)],
        by_name={'origin': Point(0, 0)},
        raw=[1, 'two', [3.0], {'four': None}],
        bag=Bag(a=1, b=2),
        counts={'x': UInt(7)},
        colors=[Color.GREEN, Color.RED],
        color=Color.GREEN,
        mood=Mood.SAD,
    )
    buf = encode(serializer, inv)
    decoded: Inventory = serializer.read_object(buf, Inventory)
    assert decoded == inv
    assert type(decoded.bag) is Bag
    assert type(decoded.counts) is dict
    assert type(decoded.colors) is list
    assert decoded.color is Color.GREEN
    assert decoded.mood is Mood.SAD

    # compiled descriptor variants per member shape
    assert [
        type(m.type)
        for m in serializer.get_type(Inventory).members
    ] == [
        GenericListType,
        GenericMapType,
        ObjectType,
        GenericMapType,
        GenericMapType,
        GenericListType,
        EnumType,
        EnumType,
    ]
    assert isinstance(serializer.get_type(int), PrimitiveType)
    assert isinstance(serializer.get_type(Any), ObjectType)


def test_self_describing_and_property_members(
    serializer: AmqpSerializer,
):
    inv = Invoice()
    inv.total = Money()
    inv.total.cents = 1234
    inv.memo = 'thanks'

    buf = encode(serializer, inv)
    decoded: Invoice = serializer.read_object(buf, Invoice)
    assert decoded.total == inv.total
    assert decoded.memo == 'thanks'

    # absent self-describing member
    inv.total = None
    decoded = serializer.read_object(encode(serializer, inv), Invoice)
    assert decoded.total is None
    assert decoded.memo == 'thanks'


def test_self_referential_type(
    serializer: AmqpSerializer,
):
    tree = Node(
        value=1,
        next=Node(value=2),
        children=[
            Node(value=3),
            Node(value=4, children=[Node(value=5)]),
        ],
    )
    buf = encode(serializer, tree)
    assert serializer.read_object(buf, Node) == tree

    compiled = serializer.get_type(Node)
    assert isinstance(compiled, DescribedListType)

    # the member's deferred ref resolves to the cached descriptor
    assert compiled.members[1].type.resolve() is compiled


def test_mutually_referential_types(
    serializer: AmqpSerializer,
):
    mom = Parent(
        name='mom',
        kids=[
            Child(name='a'),
            Child(name='b', guardian=Parent(name='gran')),
        ],
    )
    assert serializer.read_object(
        encode(serializer, mom),
        Parent,
    ) == mom

    assert serializer.read_object(
        encode(serializer, Child(name='c', guardian=mom)),
        Child,
    ) == Child(name='c', guardian=mom)


def test_object_members(
    serializer: AmqpSerializer,
):
    for body in (
        None,
        7,
        'text',
        [1, [2, {'three': 3.0}]],
        Described('app:thing', [1]),
    ):
        out = serializer.read_object(
            encode(serializer, Envelope(body=body)),
            Envelope,
        )
        assert out.body == body

    # contract values are written through their own descriptor but
    # (lacking a declared type) are decoded generically.
    out = serializer.read_object(
        encode(serializer, Envelope(body=Point(1, 2))),
        Envelope,
    )
    assert out.body == Described(ULong(0x1), [1, 2])


def test_lifecycle_hook_order(
    serializer: AmqpSerializer,
):
    audited = Audited(value=1)
    buf = encode(serializer, audited)
    assert audited.events == [
        ('serializing', 1),
        ('serialized', 1),
    ]

    decoded: Audited = serializer.read_object(buf, Audited)
    assert decoded.events == [
        ('deserializing', None),
        ('deserialized', 1),
    ]


def test_lifecycle_hooks_are_inherited(
    serializer: AmqpSerializer,
):
    child = AuditedChild(value=2, extra='x')
    buf = encode(serializer, child)
    assert [ev for ev, _ in child.events] == ['serializing', 'serialized']

    decoded: AuditedChild = serializer.read_object(buf, AuditedChild)
    assert decoded.extra == 'x'
    assert decoded.events == [
        ('deserializing', None),
        ('deserialized', 2),
    ]


def test_as_type_mismatch_raises(
    serializer: AmqpSerializer,
):
    buf = encode(serializer, Point(1, 2))
    with pytest.raises(InvalidCast) as excinfo:
        serializer.read_object(buf, Point, as_type=Tag)
    assert excinfo.value.type_ is Tag

    buf = encode(serializer, 7)
    with pytest.raises(InvalidCast):
        serializer.read_object(buf, object, as_type=str)

    buf = encode(serializer, 7)
    assert serializer.read_object(buf, object, as_type=int|str) == 7


def test_serializers_are_isolated():
    '''
    Each serializer compiles (and caches) its own descriptors and the
    module level API uses whichever one is currently applied.

    '''
    ser_a = AmqpSerializer(encoder=Encoder())
    ser_b = AmqpSerializer(encoder=Encoder())
    assert ser_a.get_type(Point) is not ser_b.get_type(Point)
    assert ser_a.get_type(Point) is ser_a.get_type(Point)

    assert current_serializer() is _def_serializer
    with apply_serializer(ser_b) as applied:
        assert applied is ser_b
        assert current_serializer() is ser_b

        buf = ByteBuffer()
        serialize(buf, Settings(name='scoped'))
        assert Settings in ser_b._type_cache
        assert Settings not in ser_a._type_cache
        assert deserialize(buf, Settings) == Settings(name='scoped')

    assert current_serializer() is _def_serializer

    buf = ByteBuffer()
    serialize(buf, Point(3, 4))
    assert Point in _def_serializer._type_cache
    assert deserialize(buf, Point) == Point(3, 4)
