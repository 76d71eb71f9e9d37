"""Pydantic schemas describing records stored in a vector store.

A record type is a plain pydantic model. Its key, data and vector fields are
marked either with ``Annotated`` markers on the model itself::

    class Hotel(BaseModel):
        hotel_id: Annotated[str, RecordKey()]
        name: Annotated[str, RecordData(is_filterable=True)]
        description: Annotated[str, RecordData(is_full_text_searchable=True)]
        embedding: Annotated[Optional[List[float]], RecordVector(dimensions=4)] = None

or with an explicit :class:`RecordDefinition`, which takes precedence over the
markers when both are present.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from .constants import DistanceFunction, IndexKind
from .exceptions import ArgumentError

Int32 = Annotated[int, Field(ge=-(2**31), le=2**31 - 1)]
Int64 = Annotated[int, Field(ge=-(2**63), le=2**63 - 1)]


# ------------------------------------------------------------------
# Annotation markers
# ------------------------------------------------------------------


@dataclass(frozen=True)
class RecordKey:
    """Marks the key field of a record type."""

    storage_name: Optional[str] = None


@dataclass(frozen=True)
class RecordData:
    """Marks a data field of a record type."""

    is_filterable: bool = False
    is_full_text_searchable: bool = False
    storage_name: Optional[str] = None


@dataclass(frozen=True)
class RecordVector:
    """Marks a vector field of a record type.

    ``distance_function`` and ``index_kind`` left as None resolve to cosine and
    HNSW when the collection is created.
    """

    dimensions: Optional[int] = None
    distance_function: Optional[DistanceFunction] = None
    index_kind: Optional[IndexKind] = None
    data_property_name: Optional[str] = None
    storage_name: Optional[str] = None


# ------------------------------------------------------------------
# Record definition
# ------------------------------------------------------------------


class _RecordProperty(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1, description="Attribute name on the record type.")
    property_type: Any = Field(None, description="Python type of the attribute; read from the model when unset.")
    storage_name: Optional[str] = Field(None, description="Native field name; defaults to the property name.")

    @property
    def storage_property_name(self) -> str:
        return self.storage_name or self.name


class KeyProperty(_RecordProperty):
    pass


class DataProperty(_RecordProperty):
    is_filterable: bool = False
    is_full_text_searchable: bool = False


class VectorProperty(_RecordProperty):
    property_type: Any = List[float]
    dimensions: Optional[int] = None
    distance_function: Optional[DistanceFunction] = None
    index_kind: Optional[IndexKind] = None
    data_property_name: Optional[str] = None


RecordProperty = Union[KeyProperty, DataProperty, VectorProperty]


class RecordDefinition(BaseModel):
    """Explicit, ordered description of a record type's properties."""

    model_config = ConfigDict(frozen=True)

    properties: List[RecordProperty] = Field(default_factory=list)


class RecordSchema(BaseModel):
    """Validated schema bound to a record type.

    Built once per store by :func:`crossrecord.discovery.read_record_schema` and
    never mutated afterwards, so a single instance can be shared by concurrent
    operations.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    record_type: Type[BaseModel]
    key_property: KeyProperty
    data_properties: List[DataProperty] = Field(default_factory=list)
    vector_properties: List[VectorProperty] = Field(default_factory=list)

    @property
    def properties(self) -> List[RecordProperty]:
        return [self.key_property, *self.data_properties, *self.vector_properties]

    @property
    def first_vector_property(self) -> Optional[VectorProperty]:
        return self.vector_properties[0] if self.vector_properties else None

    def storage_names(self) -> Dict[str, str]:
        """Map property name to native field name for every property."""
        return {p.name: p.storage_property_name for p in self.properties}

    def key_of(self, record: BaseModel) -> Any:
        return getattr(record, self.key_property.name)


# ------------------------------------------------------------------
# Mapping context
# ------------------------------------------------------------------


class GetRecordOptions(BaseModel):
    include_vectors: bool = False


class StorageToRecordOptions(BaseModel):
    include_vectors: bool = False


# ------------------------------------------------------------------
# Mapper strategy
# ------------------------------------------------------------------


@dataclass(frozen=True)
class DefaultMapper:
    """Use the backend's built-in, schema-driven mapper."""


@dataclass(frozen=True)
class CustomMapper:
    """Use a caller-supplied mapper instead of the backend default."""

    mapper: Any

    def __post_init__(self) -> None:
        if self.mapper is None:
            raise ArgumentError("CustomMapper requires a mapper instance", argument="mapper")


MapperStrategy = Union[DefaultMapper, CustomMapper]
