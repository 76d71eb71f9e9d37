"""Translate a RecordSchema into an Azure AI Search index definition.

Key Features:
    - Key field as a filterable ``Edm.String`` key
    - Full-text searchable strings as SearchableField, others as SimpleField
    - One vector profile and one algorithm configuration per vector property
    - HNSW and exhaustive KNN (flat) algorithms; cosine, dot product and euclidean metrics
"""

from datetime import datetime
from typing import Any, List

from azure.search.documents.indexes.models import (
    ExhaustiveKnnAlgorithmConfiguration,
    ExhaustiveKnnParameters,
    HnswAlgorithmConfiguration,
    HnswParameters,
    SearchableField,
    SearchField,
    SearchFieldDataType,
    SearchIndex,
    SimpleField,
    VectorSearch,
    VectorSearchAlgorithmMetric,
    VectorSearchProfile,
)

from ..constants import DEFAULT_DISTANCE_FUNCTION, DEFAULT_INDEX_KIND, DistanceFunction, IndexKind
from ..exceptions import UnsupportedConfigurationError, UnsupportedTypeError
from ..schema import DataProperty, RecordSchema, VectorProperty
from ..utils import sequence_element_type, type_name, unwrap_optional
from . import require_dimensions

DISTANCE_FUNCTION_MAP = {
    DistanceFunction.COSINE: VectorSearchAlgorithmMetric.COSINE,
    DistanceFunction.DOT_PRODUCT: VectorSearchAlgorithmMetric.DOT_PRODUCT,
    DistanceFunction.EUCLIDEAN: VectorSearchAlgorithmMetric.EUCLIDEAN,
}

EDM_TYPE_MAP = {
    str: SearchFieldDataType.String,
    bool: SearchFieldDataType.Boolean,
    int: SearchFieldDataType.Int64,
    float: SearchFieldDataType.Double,
    datetime: SearchFieldDataType.DateTimeOffset,
}


def profile_name(vector_property: VectorProperty) -> str:
    return f"{vector_property.storage_property_name}Profile"


def algorithm_configuration_name(vector_property: VectorProperty) -> str:
    return f"{vector_property.storage_property_name}AlgoConfig"


def resolve_distance_function(vector_property: VectorProperty) -> str:
    """Map the property's distance function to an Azure metric, defaulting to cosine.

    Raises:
        UnsupportedConfigurationError: For distance functions Azure AI Search lacks
    """
    distance = vector_property.distance_function or DEFAULT_DISTANCE_FUNCTION
    metric = DISTANCE_FUNCTION_MAP.get(distance)
    if metric is None:
        raise UnsupportedConfigurationError(
            "Distance function is not supported by Azure AI Search",
            property_name=vector_property.name,
            value=distance.value,
            supported=[d.value for d in DISTANCE_FUNCTION_MAP],
        )
    return metric


def resolve_algorithm_configuration(vector_property: VectorProperty) -> Any:
    """Build the algorithm configuration for the property's index kind, defaulting to HNSW.

    Raises:
        UnsupportedConfigurationError: For index kinds Azure AI Search lacks
    """
    kind = vector_property.index_kind or DEFAULT_INDEX_KIND
    metric = resolve_distance_function(vector_property)
    name = algorithm_configuration_name(vector_property)
    if kind == IndexKind.HNSW:
        return HnswAlgorithmConfiguration(name=name, parameters=HnswParameters(metric=metric))
    if kind == IndexKind.FLAT:
        return ExhaustiveKnnAlgorithmConfiguration(name=name, parameters=ExhaustiveKnnParameters(metric=metric))
    raise UnsupportedConfigurationError(
        "Index kind is not supported by Azure AI Search",
        property_name=vector_property.name,
        value=getattr(kind, "value", kind),
    )


def resolve_edm_type(data_property: DataProperty) -> str:
    """Return the Edm type of a data property, wrapping list types in ``Collection(...)``.

    Raises:
        UnsupportedTypeError: If the type has no Edm counterpart
    """
    element_type = sequence_element_type(data_property.property_type)
    if element_type is not None:
        edm = EDM_TYPE_MAP.get(element_type)
        if edm is not None:
            return SearchFieldDataType.Collection(edm)
    else:
        edm = EDM_TYPE_MAP.get(unwrap_optional(data_property.property_type))
        if edm is not None:
            return edm
    raise UnsupportedTypeError(
        "Data property type is not supported by Azure AI Search",
        property_name=data_property.name,
        property_type=type_name(data_property.property_type),
    )


def _data_field(data_property: DataProperty) -> SearchField:
    is_collection = sequence_element_type(data_property.property_type) is not None
    edm = resolve_edm_type(data_property)
    if data_property.is_full_text_searchable:
        if edm not in (SearchFieldDataType.String, SearchFieldDataType.Collection(SearchFieldDataType.String)):
            raise UnsupportedTypeError(
                "Only string properties can be full-text searchable",
                property_name=data_property.name,
                property_type=type_name(data_property.property_type),
            )
        return SearchableField(
            name=data_property.storage_property_name,
            collection=is_collection,
            filterable=data_property.is_filterable,
        )
    return SimpleField(name=data_property.storage_property_name, type=edm, filterable=data_property.is_filterable)


def _vector_field(vector_property: VectorProperty) -> SearchField:
    return SearchField(
        name=vector_property.storage_property_name,
        type=SearchFieldDataType.Collection(SearchFieldDataType.Single),
        searchable=True,
        vector_search_dimensions=vector_property.dimensions,
        vector_search_profile_name=profile_name(vector_property),
    )


def build_search_index(collection_name: str, schema: RecordSchema) -> SearchIndex:
    """Build the SearchIndex request for ``collection_name``.

    Args:
        collection_name: Index name
        schema: Validated record schema

    Returns:
        SearchIndex ready to pass to ``SearchIndexClient.create_index``

    Raises:
        SchemaError: If a vector property has no dimensions
        UnsupportedConfigurationError: If an index kind or distance function is unsupported
    """
    fields: List[Any] = [
        SimpleField(
            name=schema.key_property.storage_property_name,
            type=SearchFieldDataType.String,
            key=True,
            filterable=True,
        )
    ]
    fields.extend(_data_field(p) for p in schema.data_properties)

    profiles: List[VectorSearchProfile] = []
    algorithms: List[Any] = []
    for vector_property in schema.vector_properties:
        require_dimensions(vector_property)
        algorithms.append(resolve_algorithm_configuration(vector_property))
        profiles.append(
            VectorSearchProfile(
                name=profile_name(vector_property),
                algorithm_configuration_name=algorithm_configuration_name(vector_property),
            )
        )
        fields.append(_vector_field(vector_property))

    vector_search = VectorSearch(profiles=profiles, algorithms=algorithms) if profiles else None
    return SearchIndex(name=collection_name, fields=fields, vector_search=vector_search)
