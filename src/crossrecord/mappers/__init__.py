"""Default record mappers, one per backend storage model."""

from typing import Any, Dict, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import MappingError
from ..schema import RecordSchema, StorageToRecordOptions
from ..utils import convert_from_storage, to_storage_value

TRecord = TypeVar("TRecord", bound=BaseModel)


def build_record(record_type: Type[TRecord], values: Dict[str, Any]) -> TRecord:
    """Validate ``values`` into a record, surfacing validation failures as MappingError."""
    try:
        return record_type.model_validate(values)
    except ValidationError as e:
        raise MappingError(
            "Stored values do not form a valid record",
            record_type=record_type.__name__,
            errors=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        ) from e


def data_to_storage(
    schema: RecordSchema, record: BaseModel, naive_datetimes_as_utc: bool = False
) -> Dict[str, Any]:
    """Native values of every data property, keyed by storage name."""
    return {
        p.storage_property_name: to_storage_value(getattr(record, p.name), p.name, naive_datetimes_as_utc)
        for p in schema.data_properties
    }


def data_from_storage(schema: RecordSchema, storage: Mapping[str, Any]) -> Dict[str, Any]:
    """Record values of every data property present in ``storage``, keyed by property name."""
    values: Dict[str, Any] = {}
    for p in schema.data_properties:
        if p.storage_property_name in storage:
            values[p.name] = convert_from_storage(storage[p.storage_property_name], p.property_type, p.name)
    return values


def vectors_from_storage(
    schema: RecordSchema, storage: Mapping[str, Any], options: StorageToRecordOptions
) -> Dict[str, Any]:
    """Vector values keyed by property name; empty when vectors are not requested."""
    if not options.include_vectors:
        return {}
    values: Dict[str, Any] = {}
    for v in schema.vector_properties:
        if v.storage_property_name in storage:
            values[v.name] = convert_from_storage(storage[v.storage_property_name], v.property_type, v.name)
    return values
