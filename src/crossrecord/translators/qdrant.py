"""Translate a RecordSchema into Qdrant collection and payload index requests.

Key Features:
    - Single unnamed vector or a map of named vectors
    - HNSW only (Qdrant's native index); cosine, dot, euclid and manhattan distances
    - One payload index per filterable data property
"""

from datetime import datetime
from typing import Dict, List, Tuple, Union

from qdrant_client.models import Distance, PayloadSchemaType, VectorParams

from ..constants import DEFAULT_DISTANCE_FUNCTION, DEFAULT_INDEX_KIND, DistanceFunction, IndexKind
from ..exceptions import SchemaError, UnsupportedConfigurationError, UnsupportedTypeError
from ..schema import DataProperty, RecordSchema, VectorProperty
from ..utils import sequence_element_type, type_name, unwrap_optional
from . import require_dimensions

DISTANCE_FUNCTION_MAP = {
    DistanceFunction.COSINE: Distance.COSINE,
    DistanceFunction.DOT_PRODUCT: Distance.DOT,
    DistanceFunction.EUCLIDEAN: Distance.EUCLID,
    DistanceFunction.MANHATTAN: Distance.MANHATTAN,
}

PAYLOAD_SCHEMA_TYPE_MAP = {
    int: PayloadSchemaType.INTEGER,
    float: PayloadSchemaType.FLOAT,
    str: PayloadSchemaType.KEYWORD,
    bool: PayloadSchemaType.BOOL,
    datetime: PayloadSchemaType.DATETIME,
}

VectorsConfig = Union[VectorParams, Dict[str, VectorParams]]


def resolve_distance_function(vector_property: VectorProperty) -> Distance:
    distance = vector_property.distance_function or DEFAULT_DISTANCE_FUNCTION
    resolved = DISTANCE_FUNCTION_MAP.get(distance)
    if resolved is None:
        raise UnsupportedConfigurationError(
            "Distance function is not supported by Qdrant",
            property_name=vector_property.name,
            value=getattr(distance, "value", distance),
        )
    return resolved


def check_index_kind(vector_property: VectorProperty) -> None:
    kind = vector_property.index_kind or DEFAULT_INDEX_KIND
    if kind != IndexKind.HNSW:
        raise UnsupportedConfigurationError(
            "Index kind is not supported by Qdrant",
            property_name=vector_property.name,
            value=getattr(kind, "value", kind),
            supported=[IndexKind.HNSW.value],
        )


def vector_params(vector_property: VectorProperty) -> VectorParams:
    check_index_kind(vector_property)
    return VectorParams(
        size=require_dimensions(vector_property),
        distance=resolve_distance_function(vector_property),
    )


def build_vectors_config(schema: RecordSchema, has_named_vectors: bool) -> VectorsConfig:
    """Build the ``vectors_config`` argument of ``create_collection``.

    Args:
        schema: Validated record schema
        has_named_vectors: Use a name-to-params map instead of a single unnamed vector

    Raises:
        SchemaError: If single-vector mode does not have exactly one vector, or dimensions are unset
        UnsupportedConfigurationError: If an index kind or distance function is unsupported
    """
    if has_named_vectors:
        return {v.storage_property_name: vector_params(v) for v in schema.vector_properties}
    if len(schema.vector_properties) != 1:
        raise SchemaError(
            "Qdrant without named vectors needs exactly one vector property",
            vectors=[v.name for v in schema.vector_properties],
        )
    return vector_params(schema.vector_properties[0])


def resolve_payload_schema_type(data_property: DataProperty) -> PayloadSchemaType:
    """Pick the payload index type for a filterable property.

    Full-text searchable strings get a TEXT index; other strings are KEYWORD.
    List properties are indexed by their element type.

    Raises:
        UnsupportedTypeError: If Qdrant cannot index the type
    """
    element_type = sequence_element_type(data_property.property_type)
    base_type = element_type if element_type is not None else unwrap_optional(data_property.property_type)
    if base_type is str and data_property.is_full_text_searchable:
        return PayloadSchemaType.TEXT
    schema_type = PAYLOAD_SCHEMA_TYPE_MAP.get(base_type)
    if schema_type is None:
        raise UnsupportedTypeError(
            "Filterable property type is not supported by Qdrant payload indexes",
            property_name=data_property.name,
            property_type=type_name(data_property.property_type),
        )
    return schema_type


def build_payload_indexes(schema: RecordSchema) -> List[Tuple[str, PayloadSchemaType]]:
    """Return ``(field_name, field_schema)`` pairs for every indexed data property."""
    return [
        (p.storage_property_name, resolve_payload_schema_type(p))
        for p in schema.data_properties
        if p.is_filterable or p.is_full_text_searchable
    ]
