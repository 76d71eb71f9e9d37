"""Pytest configuration and fixtures for record store tests."""

import asyncio
from datetime import datetime
from typing import Annotated, Dict, List, Optional

import pytest
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from crossrecord.abc import VectorRecordStore
from crossrecord.constants import DistanceFunction, IndexKind
from crossrecord.discovery import BackendCapabilities
from crossrecord.mappers.azure_ai_search import AzureAISearchRecordMapper
from crossrecord.schema import Int32, RecordData, RecordKey, RecordVector, StorageToRecordOptions

# Load environment variables
load_dotenv()


class Hotel(BaseModel):
    hotel_id: Annotated[str, RecordKey()]
    name: Annotated[str, RecordData(is_filterable=True)]
    description: Annotated[str, RecordData(is_full_text_searchable=True)] = ""
    rating: Annotated[float, RecordData(is_filterable=True)] = 0.0
    tags: Annotated[List[str], RecordData(is_filterable=True)] = Field(default_factory=list)
    embedding: Annotated[Optional[List[float]], RecordVector(dimensions=4)] = None


class Article(BaseModel):
    article_id: Annotated[int, RecordKey()]
    title: Annotated[str, RecordData(is_filterable=True)]
    body: Annotated[str, RecordData(is_full_text_searchable=True)] = ""
    views: Annotated[Int32, RecordData(is_filterable=True)] = 0
    published: Annotated[Optional[datetime], RecordData(is_filterable=True)] = None
    embedding: Annotated[
        Optional[List[float]],
        RecordVector(dimensions=4, distance_function=DistanceFunction.DOT_PRODUCT, index_kind=IndexKind.HNSW),
    ] = None


class MultiVectorArticle(BaseModel):
    article_id: Annotated[int, RecordKey()]
    title: Annotated[str, RecordData(is_filterable=True)]
    title_embedding: Annotated[Optional[List[float]], RecordVector(dimensions=4)] = None
    body_embedding: Annotated[
        Optional[List[float]], RecordVector(dimensions=2, distance_function=DistanceFunction.EUCLIDEAN)
    ] = None


class Product(BaseModel):
    sku: Annotated[str, RecordKey()]
    name: Annotated[str, RecordData(is_full_text_searchable=True)]
    price: Annotated[float, RecordData(is_filterable=True)] = 0.0
    stock: Annotated[int, RecordData(is_filterable=True)] = 0
    embedding: Annotated[Optional[List[float]], RecordVector(dimensions=3, index_kind=IndexKind.FLAT)] = None


MEMORY_CAPABILITIES = BackendCapabilities(
    backend="memory",
    supported_key_types=frozenset({str}),
    supported_data_types=frozenset({str, int, float, bool}),
    supported_enumerable_data_types=frozenset({str}),
)


class InMemoryRecordStore(VectorRecordStore[str, BaseModel]):
    """Dict-backed store to exercise the façade without a backend.

    ``delays`` maps a key to seconds to sleep before its get completes, so tests
    can force sub-requests to finish out of order.
    """

    backend = "memory"

    def __init__(self, record_type, *, delays: Optional[Dict[str, float]] = None, **kwargs) -> None:
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.delays = delays or {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.get_calls: List[tuple] = []
        super().__init__(record_type, **kwargs)

    def capabilities(self) -> BackendCapabilities:
        return MEMORY_CAPABILITIES

    def _create_default_mapper(self):
        return AzureAISearchRecordMapper(self.schema)

    async def _get_one(self, collection_name, key, options):
        self.get_calls.append((collection_name, key))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(key, 0))
        finally:
            self.in_flight -= 1
        document = self.collections.get(collection_name, {}).get(key)
        if document is None:
            return None
        return self.mapper.from_storage(document, StorageToRecordOptions(include_vectors=options.include_vectors))

    async def _upsert_many(self, collection_name, records):
        collection = self.collections.setdefault(collection_name, {})
        for record in records:
            collection[self.schema.key_of(record)] = self.mapper.to_storage(record)
        return [self.schema.key_of(r) for r in records]

    async def _delete_many(self, collection_name, keys):
        collection = self.collections.get(collection_name, {})
        for key in keys:
            collection.pop(key, None)


@pytest.fixture
def hotels() -> List[Hotel]:
    """Three hotels, two tagged, all with embeddings."""
    return [
        Hotel(
            hotel_id="h1",
            name="Harbor",
            description="Sea view",
            rating=4.5,
            tags=["sea", "pool"],
            embedding=[0.5, 0.25, 0.125, 1.0],
        ),
        Hotel(
            hotel_id="h2",
            name="Summit",
            description="Mountain lodge",
            rating=3.0,
            tags=["ski"],
            embedding=[1.0, 0.0, -0.5, 0.75],
        ),
        Hotel(hotel_id="h3", name="Central", rating=4.0, embedding=[0.0, 0.5, 0.5, 0.0]),
    ]


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore(Hotel, default_collection_name="hotels")
