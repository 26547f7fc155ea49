#!/usr/bin/env python
#
# amqpcodec: type-directed AMQP 1.0 described-type serialization.
#
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

from setuptools import setup

with open('docs/README.rst', encoding='utf-8') as f:
    readme = f.read()


setup(
    name="amqpcodec",
    version='0.1.0a1dev0',  # alpha zone
    description='type-directed AMQP 1.0 described-type serialization',
    long_description=readme,
    license='AGPLv3',
    author='Tyler Goodlet',
    maintainer='Tyler Goodlet',
    maintainer_email='goodboy_foss@protonmail.com',
    platforms=['linux', 'windows'],
    packages=[
        'amqpcodec',
        'amqpcodec.wire',  # lowlevel primitive types
        'amqpcodec.serialization',  # contract compiler
    ],
    install_requires=[

        # console logging
        'colorlog',

        # contract metadata structs
        'msgspec',

        # task-aware log headers
        # proper range specifier:
        # https://packaging.python.org/en/latest/discussions/install-requires-vs-requirements/#id5
        'trio >= 0.24',

    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    tests_require=['pytest'],
    python_requires=">=3.11",
    keywords=[
        'amqp',
        'amqp 1.0',
        'serialization',
        'codec',
        'described types',
    ],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Operating System :: POSIX :: Linux",
        "Operating System :: Microsoft :: Windows",
        "License :: OSI Approved :: GNU Affero General Public License v3 or later (AGPLv3+)",
        "Programming Language :: Python :: Implementation :: CPython",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.11",
        "Intended Audience :: Developers",
        "Topic :: System :: Networking",
    ],
)
