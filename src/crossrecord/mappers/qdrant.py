"""Default mapper between records and Qdrant points."""

from typing import Any, Dict, List, Union
from uuid import UUID

from pydantic import BaseModel
from qdrant_client.models import PointStruct

from ..abc import RecordMapper
from ..exceptions import MappingError
from ..schema import RecordSchema, StorageToRecordOptions
from ..utils import convert_from_storage, unwrap_optional
from . import build_record, data_from_storage, data_to_storage

PointId = Union[int, str]


def to_point_id(key: Any) -> PointId:
    """Convert a record key into a Qdrant point id.

    Raises:
        MappingError: If the key is negative or not an int or UUID
    """
    if isinstance(key, bool):
        raise MappingError("Qdrant point ids cannot be booleans", key=key)
    if isinstance(key, int):
        if key < 0:
            raise MappingError("Qdrant point ids must be unsigned integers", key=key)
        return key
    if isinstance(key, UUID):
        return str(key)
    raise MappingError("Qdrant point ids must be unsigned integers or UUIDs", key_type=type(key).__name__)


class QdrantRecordMapper(RecordMapper[BaseModel, PointStruct]):
    """Maps a record to a point: unsigned int or UUID id, payload and one or more vectors.

    ``from_storage`` accepts anything shaped like a point (``id``, ``payload``,
    ``vector``), which covers both ``PointStruct`` and the ``Record`` objects
    returned by ``retrieve``.
    """

    def __init__(self, schema: RecordSchema, has_named_vectors: bool = False) -> None:
        self.schema = schema
        self.has_named_vectors = has_named_vectors
        self._key_type = unwrap_optional(schema.key_property.property_type)

    def record_key(self, point_id: Any) -> Any:
        if self._key_type is UUID:
            return convert_from_storage(str(point_id), UUID, self.schema.key_property.name)
        return convert_from_storage(point_id, int, self.schema.key_property.name)

    def to_storage(self, record: BaseModel) -> PointStruct:
        vectors: Dict[str, List[float]] = {}
        for v in self.schema.vector_properties:
            vector = getattr(record, v.name)
            if vector is not None:
                vectors[v.storage_property_name] = [float(x) for x in vector]

        if self.has_named_vectors:
            vector_struct: Any = vectors
        else:
            # A point without its vector is sent as an empty vector map
            vector_struct = vectors.get(self.schema.vector_properties[0].storage_property_name, {})

        return PointStruct(
            id=to_point_id(self.schema.key_of(record)),
            vector=vector_struct,
            payload=data_to_storage(self.schema, record),
        )

    def from_storage(self, storage: Any, options: StorageToRecordOptions) -> BaseModel:
        values: Dict[str, Any] = {self.schema.key_property.name: self.record_key(storage.id)}
        values.update(data_from_storage(self.schema, storage.payload or {}))

        if options.include_vectors and storage.vector:
            if self.has_named_vectors:
                if not isinstance(storage.vector, dict):
                    raise MappingError("Expected named vectors on the stored point", point_id=storage.id)
                named = storage.vector
            else:
                named = {self.schema.vector_properties[0].storage_property_name: storage.vector}
            for v in self.schema.vector_properties:
                if v.storage_property_name in named:
                    values[v.name] = convert_from_storage(named[v.storage_property_name], v.property_type, v.name)

        return build_record(self.schema.record_type, values)
