"""Schema discovery: build a validated RecordSchema from a record type.

The key, data and vector properties come either from an explicit
RecordDefinition or from ``Annotated`` markers on the pydantic model's
fields. The result is checked against what the target backend can store.
"""

from typing import Any, Dict, FrozenSet, List, Optional, Type

from pydantic import BaseModel, ConfigDict
from pydantic.fields import FieldInfo

from .exceptions import SchemaError
from .schema import (
    DataProperty,
    KeyProperty,
    RecordData,
    RecordDefinition,
    RecordKey,
    RecordProperty,
    RecordSchema,
    RecordVector,
    VectorProperty,
)
from .utils import sequence_element_type, type_name, unwrap_optional


class BackendCapabilities(BaseModel):
    """What a backend can store, used to reject schemas before any network call."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    backend: str
    supported_key_types: FrozenSet[Any]
    supported_data_types: FrozenSet[Any]
    supported_enumerable_data_types: FrozenSet[Any] = frozenset()
    supported_vector_element_types: FrozenSet[Any] = frozenset({float})
    supports_multiple_vectors: bool = True
    requires_at_least_one_vector: bool = False


def _properties_from_annotations(record_type: Type[BaseModel]) -> List[RecordProperty]:
    properties: List[RecordProperty] = []
    for name, field in record_type.model_fields.items():
        prop = _property_from_field(name, field)
        if prop is not None:
            properties.append(prop)
    return properties


def _property_from_field(name: str, field: FieldInfo) -> Optional[RecordProperty]:
    for marker in field.metadata:
        if isinstance(marker, RecordKey):
            return KeyProperty(name=name, property_type=field.annotation, storage_name=marker.storage_name)
        if isinstance(marker, RecordData):
            return DataProperty(
                name=name,
                property_type=field.annotation,
                is_filterable=marker.is_filterable,
                is_full_text_searchable=marker.is_full_text_searchable,
                storage_name=marker.storage_name,
            )
        if isinstance(marker, RecordVector):
            return VectorProperty(
                name=name,
                property_type=field.annotation,
                dimensions=marker.dimensions,
                distance_function=marker.distance_function,
                index_kind=marker.index_kind,
                data_property_name=marker.data_property_name,
                storage_name=marker.storage_name,
            )
    return None


def _properties_from_definition(record_type: Type[BaseModel], definition: RecordDefinition) -> List[RecordProperty]:
    fields: Dict[str, FieldInfo] = record_type.model_fields
    properties: List[RecordProperty] = []
    for prop in definition.properties:
        field = fields.get(prop.name)
        if field is None:
            raise SchemaError(
                "Record definition references a property missing from the record type",
                record_type=record_type.__name__,
                property_name=prop.name,
            )
        if prop.property_type is None:
            prop = prop.model_copy(update={"property_type": field.annotation})
        properties.append(prop)
    return properties


def _check_data_type(prop: DataProperty, capabilities: BackendCapabilities) -> None:
    element_type = sequence_element_type(prop.property_type)
    if element_type is not None:
        if element_type in capabilities.supported_enumerable_data_types:
            return
    elif unwrap_optional(prop.property_type) in capabilities.supported_data_types:
        return
    raise SchemaError(
        "Data property type is not supported by the backend",
        backend=capabilities.backend,
        property_name=prop.name,
        property_type=type_name(prop.property_type),
    )


def _check_vector(prop: VectorProperty, known_data: Dict[str, DataProperty], capabilities: BackendCapabilities) -> None:
    element_type = sequence_element_type(prop.property_type)
    if element_type not in capabilities.supported_vector_element_types:
        raise SchemaError(
            "Vector property must be a sequence of floats",
            backend=capabilities.backend,
            property_name=prop.name,
            property_type=type_name(prop.property_type),
        )
    if prop.dimensions is not None and prop.dimensions <= 0:
        raise SchemaError("Vector dimensions must be positive", property_name=prop.name, dimensions=prop.dimensions)
    if prop.data_property_name is not None and prop.data_property_name not in known_data:
        raise SchemaError(
            "Vector property references an unknown data property",
            property_name=prop.name,
            data_property_name=prop.data_property_name,
        )


def read_record_schema(
    record_type: Type[BaseModel],
    definition: Optional[RecordDefinition] = None,
    *,
    capabilities: BackendCapabilities,
) -> RecordSchema:
    """Discover and validate the schema of ``record_type`` for one backend.

    Args:
        record_type: Pydantic model class describing a record
        definition: Explicit definition; takes precedence over field markers
        capabilities: Types and vector layout the backend supports

    Returns:
        Immutable RecordSchema

    Raises:
        SchemaError: If the schema is invalid or the backend cannot store it
    """
    if definition is not None:
        properties = _properties_from_definition(record_type, definition)
    else:
        properties = _properties_from_annotations(record_type)

    keys = [p for p in properties if isinstance(p, KeyProperty)]
    data = [p for p in properties if isinstance(p, DataProperty)]
    vectors = [p for p in properties if isinstance(p, VectorProperty)]

    if not keys:
        raise SchemaError("Record type has no key property", record_type=record_type.__name__)
    if len(keys) > 1:
        raise SchemaError(
            "Record type has multiple key properties",
            record_type=record_type.__name__,
            keys=[k.name for k in keys],
        )
    key = keys[0]
    if unwrap_optional(key.property_type) not in capabilities.supported_key_types:
        raise SchemaError(
            "Key property type is not supported by the backend",
            backend=capabilities.backend,
            property_name=key.name,
            property_type=type_name(key.property_type),
            supported=sorted(type_name(t) for t in capabilities.supported_key_types),
        )

    if not capabilities.supports_multiple_vectors and len(vectors) > 1:
        raise SchemaError(
            "Backend supports a single vector property per record",
            backend=capabilities.backend,
            vectors=[v.name for v in vectors],
        )
    if capabilities.requires_at_least_one_vector and not vectors:
        raise SchemaError(
            "Backend requires exactly one vector property", backend=capabilities.backend, record_type=record_type.__name__
        )

    known_data = {p.name: p for p in data}
    for prop in data:
        _check_data_type(prop, capabilities)
    for prop in vectors:
        _check_vector(prop, known_data, capabilities)
        # Reads without vectors leave the field unset
        if record_type.model_fields[prop.name].is_required():
            raise SchemaError(
                "Vector property must have a default value",
                record_type=record_type.__name__,
                property_name=prop.name,
            )

    seen: Dict[str, str] = {}
    for prop in [key, *data, *vectors]:
        storage_name = prop.storage_property_name
        if storage_name in seen:
            raise SchemaError(
                "Two properties map to the same storage name",
                storage_name=storage_name,
                properties=[seen[storage_name], prop.name],
            )
        seen[storage_name] = prop.name

    return RecordSchema(record_type=record_type, key_property=key, data_properties=data, vector_properties=vectors)
