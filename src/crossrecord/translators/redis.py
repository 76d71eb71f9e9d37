"""Translate a RecordSchema into a RediSearch index definition.

Key Features:
    - JSON indexes address fields as ``$.name`` paths aliased to the storage name
    - Hash indexes address fields by storage name
    - HNSW and FLAT vector fields with COSINE, IP and L2 metrics
    - Only filterable or full-text data properties and vectors are indexed
"""

from typing import Any, List

from redis.commands.search.field import NumericField, TagField, TextField, VectorField
from redis.commands.search.index_definition import IndexDefinition, IndexType

from ..constants import DEFAULT_DISTANCE_FUNCTION, DEFAULT_INDEX_KIND, DistanceFunction, IndexKind, RedisStorageType
from ..exceptions import UnsupportedConfigurationError, UnsupportedTypeError
from ..schema import DataProperty, RecordSchema, VectorProperty
from ..utils import sequence_element_type, type_name, unwrap_optional
from . import require_dimensions

DISTANCE_FUNCTION_MAP = {
    DistanceFunction.COSINE: "COSINE",
    DistanceFunction.DOT_PRODUCT: "IP",
    DistanceFunction.EUCLIDEAN: "L2",
}

INDEX_KIND_MAP = {
    IndexKind.HNSW: "HNSW",
    IndexKind.FLAT: "FLAT",
}


def key_prefix(collection_name: str) -> str:
    return f"{collection_name}:"


def resolve_distance_function(vector_property: VectorProperty) -> str:
    distance = vector_property.distance_function or DEFAULT_DISTANCE_FUNCTION
    metric = DISTANCE_FUNCTION_MAP.get(distance)
    if metric is None:
        raise UnsupportedConfigurationError(
            "Distance function is not supported by Redis",
            property_name=vector_property.name,
            value=getattr(distance, "value", distance),
        )
    return metric


def resolve_index_kind(vector_property: VectorProperty) -> str:
    kind = vector_property.index_kind or DEFAULT_INDEX_KIND
    algorithm = INDEX_KIND_MAP.get(kind)
    if algorithm is None:
        raise UnsupportedConfigurationError(
            "Index kind is not supported by Redis",
            property_name=vector_property.name,
            value=getattr(kind, "value", kind),
        )
    return algorithm


def _field_path(storage_name: str, storage_type: RedisStorageType) -> str:
    if storage_type == RedisStorageType.JSON:
        return f"$.{storage_name}"
    return storage_name


def _data_field(data_property: DataProperty, storage_type: RedisStorageType) -> Any:
    storage_name = data_property.storage_property_name
    path = _field_path(storage_name, storage_type)
    element_type = sequence_element_type(data_property.property_type)

    if element_type is not None:
        if element_type is str and storage_type == RedisStorageType.JSON:
            if data_property.is_full_text_searchable:
                return TextField(f"{path}.*", as_name=storage_name)
            return TagField(f"{path}.*", as_name=storage_name)
    else:
        base_type = unwrap_optional(data_property.property_type)
        if base_type is str:
            if data_property.is_full_text_searchable:
                return TextField(path, as_name=storage_name)
            return TagField(path, as_name=storage_name)
        if base_type in (int, float):
            return NumericField(path, as_name=storage_name)
    raise UnsupportedTypeError(
        "Filterable property type is not supported by Redis",
        property_name=data_property.name,
        property_type=type_name(data_property.property_type),
    )


def _vector_field(vector_property: VectorProperty, storage_type: RedisStorageType) -> VectorField:
    storage_name = vector_property.storage_property_name
    return VectorField(
        _field_path(storage_name, storage_type),
        resolve_index_kind(vector_property),
        {
            "TYPE": "FLOAT64",
            "DIM": require_dimensions(vector_property),
            "DISTANCE_METRIC": resolve_distance_function(vector_property),
        },
        as_name=storage_name,
    )


def build_index_fields(schema: RecordSchema, storage_type: RedisStorageType) -> List[Any]:
    """Build the FT.CREATE schema fields.

    Raises:
        SchemaError: If a vector property has no dimensions
        UnsupportedConfigurationError: If an index kind or distance function is unsupported
        UnsupportedTypeError: If a filterable property cannot be indexed
    """
    fields: List[Any] = [
        _data_field(p, storage_type)
        for p in schema.data_properties
        if p.is_filterable or p.is_full_text_searchable
    ]
    fields.extend(_vector_field(v, storage_type) for v in schema.vector_properties)
    return fields


def build_index_definition(collection_name: str, storage_type: RedisStorageType) -> IndexDefinition:
    index_type = IndexType.JSON if storage_type == RedisStorageType.JSON else IndexType.HASH
    return IndexDefinition(prefix=[key_prefix(collection_name)], index_type=index_type)
