"""
Top level of the testing suites!

"""
from __future__ import annotations

import pytest
import amqpcodec
from amqpcodec import (
    AmqpSerializer,
    ByteBuffer,
)
from amqpcodec.wire import Encoder


def pytest_addoption(
    parser: pytest.Parser,
):
    parser.addoption(
        "--ll",
        action="store",
        dest='loglevel',
        default='ERROR', help="logging level to set when testing"
    )


@pytest.fixture(scope='session', autouse=True)
def loglevel(request):
    orig = amqpcodec.log._default_loglevel
    level = amqpcodec.log._default_loglevel = request.config.option.loglevel
    amqpcodec.log.get_console_log(level)
    yield level
    amqpcodec.log._default_loglevel = orig


@pytest.fixture
def serializer() -> AmqpSerializer:
    '''
    A fresh serializer (with its own primitive codec registry) so
    that each test compiles from an empty type cache.

    '''
    return AmqpSerializer(encoder=Encoder())


@pytest.fixture
def buf() -> ByteBuffer:
    return ByteBuffer()
