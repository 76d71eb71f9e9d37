"""
crossrecord maps pydantic record types onto vector store collections.

Backend stores live in ``crossrecord.dbs``; this module exposes the schema
model and the backend-neutral interfaces.
"""

from .abc import RecordMapper, VectorCollectionStore, VectorRecordStore
from .constants import DistanceFunction, IndexKind, RedisStorageType
from .discovery import BackendCapabilities, read_record_schema
from .normalization import KeyNormalizingRecordStore
from .schema import (
    CustomMapper,
    DataProperty,
    DefaultMapper,
    GetRecordOptions,
    Int32,
    Int64,
    KeyProperty,
    RecordData,
    RecordDefinition,
    RecordKey,
    RecordSchema,
    RecordVector,
    StorageToRecordOptions,
    VectorProperty,
)

__version__ = "0.1.0"

__all__ = [
    "BackendCapabilities",
    "CustomMapper",
    "DataProperty",
    "DefaultMapper",
    "DistanceFunction",
    "GetRecordOptions",
    "IndexKind",
    "Int32",
    "Int64",
    "KeyNormalizingRecordStore",
    "KeyProperty",
    "RecordData",
    "RecordDefinition",
    "RecordKey",
    "RecordMapper",
    "RecordSchema",
    "RecordVector",
    "RedisStorageType",
    "StorageToRecordOptions",
    "VectorCollectionStore",
    "VectorProperty",
    "VectorRecordStore",
    "read_record_schema",
]
