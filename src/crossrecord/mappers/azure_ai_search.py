"""Default mapper between records and Azure AI Search documents."""

from typing import Any, Dict

from pydantic import BaseModel

from ..abc import RecordMapper
from ..schema import RecordSchema, StorageToRecordOptions
from . import build_record, data_from_storage, data_to_storage, vectors_from_storage


class AzureAISearchRecordMapper(RecordMapper[BaseModel, Dict[str, Any]]):
    """Maps a record to a flat document with key, data and vector fields side by side."""

    def __init__(self, schema: RecordSchema) -> None:
        self.schema = schema

    def to_storage(self, record: BaseModel) -> Dict[str, Any]:
        document: Dict[str, Any] = {self.schema.key_property.storage_property_name: self.schema.key_of(record)}
        # Edm.DateTimeOffset fields reject values without an offset
        document.update(data_to_storage(self.schema, record, naive_datetimes_as_utc=True))
        for v in self.schema.vector_properties:
            vector = getattr(record, v.name)
            if vector is not None:
                document[v.storage_property_name] = [float(x) for x in vector]
        return document

    def from_storage(self, storage: Dict[str, Any], options: StorageToRecordOptions) -> BaseModel:
        key = self.schema.key_property
        values: Dict[str, Any] = {key.name: storage.get(key.storage_property_name)}
        values.update(data_from_storage(self.schema, storage))
        values.update(vectors_from_storage(self.schema, storage, options))
        return build_record(self.schema.record_type, values)
