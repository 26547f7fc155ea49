'''
Contract declaration decorators and the capability queries the
compiler reads them back with.

'''
from __future__ import annotations
from dataclasses import dataclass
from typing import Annotated

import pytest

from amqpcodec import (
    EncodingType,
    UnsupportedType,
    amqp_contract,
    amqp_member,
    amqp_provides,
    on_deserialized,
    on_serializing,
)
from amqpcodec.serialization import (
    ContractInfo,
    MemberInfo,
    SerializationCallback,
    get_contract,
    get_provides,
)
from amqpcodec.serialization._contract import (
    iter_callbacks,
    iter_members,
    resolve_provided,
)


@amqp_contract(encoding=EncodingType.MAP, name='test:account')
@amqp_provides('Savings')
@amqp_provides('Checking')
@dataclass
class Account:
    owner: Annotated[str|None, amqp_member(order=2)] = None
    number: Annotated[int|None, amqp_member(name='no', order=1)] = None

    # not a member, no `amqp_member()` metadata
    note: str|None = None

    @amqp_member(order=3)
    @property
    def balance(self) -> float|None:
        return getattr(self, '_balance', None)

    @balance.setter
    def balance(self, value: float|None) -> None:
        self._balance = value

    @on_serializing
    def _check(self) -> None:
        pass

    @on_deserialized
    def _loaded(self) -> None:
        pass


@dataclass
class Savings(Account):
    rate: Annotated[float|None, amqp_member()] = None


def test_contract_info_is_not_inherited():
    info: ContractInfo = get_contract(Account)
    assert info == ContractInfo(
        encoding=EncodingType.MAP,
        name='test:account',
        code=None,
    )
    assert get_contract(Savings) is None
    assert get_contract(int) is None
    assert get_contract(list[int]) is None


def test_provides_keeps_declared_order():
    # top-down, as written above the class
    assert get_provides(Account) == ('Savings', 'Checking')
    assert get_provides(Savings) == ()


def test_resolve_provided_by_name():
    assert resolve_provided(Account, 'Savings') is Savings
    assert resolve_provided(Account, f'{__name__}.Savings') is Savings
    assert resolve_provided(Account, Savings) is Savings

    with pytest.raises(UnsupportedType):
        resolve_provided(Account, 'Checking')


@pytest.mark.parametrize(
    'code',
    [-1, 1 << 64],
)
def test_descriptor_code_must_be_u64(code: int):
    with pytest.raises(ValueError):
        amqp_contract(code=code)


def test_contract_decorates_only_classes():
    with pytest.raises(TypeError):
        amqp_contract()(lambda: None)


def test_iter_members_own_only():
    members = list(iter_members(Account))
    assert [
        (attr, info, prop is not None)
        for attr, _typ, info, prop in members
    ] == [
        ('owner', MemberInfo(order=2), False),
        ('number', MemberInfo(name='no', order=1), False),
        ('balance', MemberInfo(order=3), True),
    ]

    # the annotation wrapper is unwrapped to the member's type
    assert members[0][1] == str|None
    assert members[2][1] == float|None

    # inherited members are not yielded for the subtype
    assert [m[0] for m in iter_members(Savings)] == ['rate']


def test_iter_callbacks():
    assert [
        (role, fn.__name__)
        for role, fn in iter_callbacks(Account)
    ] == [
        (SerializationCallback.ON_SERIALIZING, '_check'),
        (SerializationCallback.ON_DESERIALIZED, '_loaded'),
    ]
    assert not list(iter_callbacks(Savings))


def test_metadata_pformats():
    text: str = repr(get_contract(Account))
    assert text.startswith('ContractInfo(')
    assert 'test:account' in text
    assert 'encoding' in text
