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
Type-directed AMQP 1.0 described-type contract serialization:
declare, compile (once) and (de)serialize application types.

'''
from ._contract import (
    AmqpSerializable as AmqpSerializable,
    ContractInfo as ContractInfo,
    EncodingType as EncodingType,
    MemberInfo as MemberInfo,
    ProvidesInfo as ProvidesInfo,
    SerializationCallback as SerializationCallback,

    amqp_contract as amqp_contract,
    amqp_member as amqp_member,
    amqp_provides as amqp_provides,
    on_serializing as on_serializing,
    on_serialized as on_serialized,
    on_deserializing as on_deserializing,
    on_deserialized as on_deserialized,

    get_contract as get_contract,
    get_provides as get_provides,
)
from ._types import (
    SerializableMember as SerializableMember,
    SerializableType as SerializableType,
    DeferredType as DeferredType,
    PrimitiveType as PrimitiveType,
    ObjectType as ObjectType,
    EnumType as EnumType,
    AmqpSerializableType as AmqpSerializableType,
    GenericListType as GenericListType,
    GenericMapType as GenericMapType,
    DescribedCompoundType as DescribedCompoundType,
    DescribedListType as DescribedListType,
    DescribedMapType as DescribedMapType,
    SimpleListType as SimpleListType,
    SimpleMapType as SimpleMapType,
)
from ._collections import (
    compile_collection_type as compile_collection_type,
)
from ._serializer import (
    _def_serializer as _def_serializer,
    _ctxvar_AmqpSerializer as _ctxvar_AmqpSerializer,

    AmqpSerializer as AmqpSerializer,
    apply_serializer as apply_serializer,
    current_serializer as current_serializer,
    serialize as serialize,
    deserialize as deserialize,
)
