"""Default mappers between records and Redis JSON documents or hash sets.

In both storage types the record key lives in the Redis key name only and is
never written into the stored value.
"""

import struct
from typing import Any, Dict, List, Mapping, Tuple, Union

from pydantic import BaseModel

from ..abc import RecordMapper
from ..exceptions import MappingError
from ..schema import RecordSchema, StorageToRecordOptions
from ..utils import allows_none, unwrap_optional
from . import build_record, data_from_storage, data_to_storage, vectors_from_storage

RedisJsonStorage = Tuple[str, Dict[str, Any]]
RedisHashStorage = Tuple[str, Dict[str, Union[str, int, float, bytes]]]


def pack_vector(vector: List[float]) -> bytes:
    """Pack a vector as little-endian float64, matching a FLOAT64 RediSearch vector field."""
    return struct.pack(f"<{len(vector)}d", *vector)


def unpack_vector(data: bytes) -> List[float]:
    if len(data) % 8:
        raise MappingError("Stored vector byte length is not a multiple of 8", length=len(data))
    return list(struct.unpack(f"<{len(data) // 8}d", data))


class RedisJsonRecordMapper(RecordMapper[BaseModel, RedisJsonStorage]):
    def __init__(self, schema: RecordSchema) -> None:
        self.schema = schema

    def to_storage(self, record: BaseModel) -> RedisJsonStorage:
        document = data_to_storage(self.schema, record)
        for v in self.schema.vector_properties:
            vector = getattr(record, v.name)
            if vector is not None:
                document[v.storage_property_name] = [float(x) for x in vector]
        return self.schema.key_of(record), document

    def from_storage(self, storage: RedisJsonStorage, options: StorageToRecordOptions) -> BaseModel:
        key, document = storage
        key_field = self.schema.key_property.storage_property_name
        if key_field in document:
            raise MappingError(
                "Stored JSON document unexpectedly contains the key field",
                key=key,
                key_field=key_field,
            )
        values: Dict[str, Any] = {self.schema.key_property.name: key}
        values.update(data_from_storage(self.schema, document))
        values.update(vectors_from_storage(self.schema, document, options))
        return build_record(self.schema.record_type, values)


class RedisHashSetRecordMapper(RecordMapper[BaseModel, RedisHashStorage]):
    """Maps records to flat hash fields; vectors are stored as float64 byte strings.

    Null data values are left out of the hash, since a hash field cannot hold null.
    """

    def __init__(self, schema: RecordSchema) -> None:
        self.schema = schema

    def to_storage(self, record: BaseModel) -> RedisHashStorage:
        mapping: Dict[str, Any] = {k: v for k, v in data_to_storage(self.schema, record).items() if v is not None}
        for v in self.schema.vector_properties:
            vector = getattr(record, v.name)
            if vector is not None:
                mapping[v.storage_property_name] = pack_vector([float(x) for x in vector])
        return self.schema.key_of(record), mapping

    def _decode_scalar(self, raw: Any, target: Any, property_name: str) -> Any:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
        target = unwrap_optional(target)
        try:
            if target is int:
                return int(text)
            if target is float:
                return float(text)
        except ValueError as e:
            raise MappingError(
                "Stored hash value does not match the declared property type",
                property_name=property_name,
                expected=target.__name__,
                value=text,
            ) from e
        return text

    def from_storage(self, storage: RedisHashStorage, options: StorageToRecordOptions) -> BaseModel:
        key, raw_mapping = storage
        mapping: Mapping[str, Any] = {
            (k.decode("utf-8") if isinstance(k, bytes) else k): v for k, v in raw_mapping.items()
        }

        decoded: Dict[str, Any] = {}
        for p in self.schema.data_properties:
            if p.storage_property_name in mapping:
                decoded[p.storage_property_name] = self._decode_scalar(
                    mapping[p.storage_property_name], p.property_type, p.name
                )
            elif allows_none(p.property_type):
                # None values are never written to the hash
                decoded[p.storage_property_name] = None
        if options.include_vectors:
            for v in self.schema.vector_properties:
                raw = mapping.get(v.storage_property_name)
                if raw is not None:
                    if not isinstance(raw, bytes):
                        raise MappingError("Stored vector is not a byte string", property_name=v.name)
                    decoded[v.storage_property_name] = unpack_vector(raw)

        values: Dict[str, Any] = {self.schema.key_property.name: key}
        values.update(data_from_storage(self.schema, decoded))
        values.update(vectors_from_storage(self.schema, decoded, options))
        return build_record(self.schema.record_type, values)
