"""Qdrant record store and collection store.

Key Features:
    - Lazy AsyncQdrantClient initialization from settings, or an injected client
    - Unsigned integer or UUID point ids
    - Single unnamed vector or named vectors per point
    - Payload indexes for filterable data properties at collection creation
"""

from datetime import datetime
from typing import Any, AsyncIterator, List, Optional, Sequence, Type, Union
from uuid import UUID

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import PointIdsList

from ..abc import RecordMapper, VectorCollectionStore, VectorRecordStore
from ..discovery import BackendCapabilities
from ..exceptions import BackendOperationError, CrossRecordError, MissingConfigError
from ..mappers.qdrant import QdrantRecordMapper, to_point_id
from ..schema import GetRecordOptions, RecordDefinition, StorageToRecordOptions
from ..settings import settings as api_settings
from ..translators.qdrant import build_payload_indexes, build_vectors_config

BACKEND = "qdrant"

QdrantKey = Union[int, UUID]

_SCALARS = frozenset({str, int, float, bool, datetime})


def qdrant_capabilities(has_named_vectors: bool) -> BackendCapabilities:
    """Without named vectors a point carries exactly one vector."""
    return BackendCapabilities(
        backend=BACKEND,
        supported_key_types=frozenset({int, UUID}),
        supported_data_types=_SCALARS,
        supported_enumerable_data_types=_SCALARS,
        supports_multiple_vectors=has_named_vectors,
        requires_at_least_one_vector=not has_named_vectors,
    )


def create_client() -> AsyncQdrantClient:
    """Build an AsyncQdrantClient from QDRANT_* settings.

    Raises:
        MissingConfigError: If QDRANT_URL is not configured
    """
    url = api_settings.QDRANT_URL
    if not url:
        raise MissingConfigError(
            "QDRANT_URL is not set. Please configure it in your .env file.",
            config_key="QDRANT_URL",
            env_file=".env",
        )
    return AsyncQdrantClient(url=url, api_key=api_settings.QDRANT_API_KEY)


class QdrantRecordStore(VectorRecordStore[QdrantKey, BaseModel]):
    """Record store over Qdrant collections.

    Attributes:
        has_named_vectors: Whether points carry a name-to-vector map
    """

    backend = BACKEND

    def __init__(
        self,
        record_type: Type[BaseModel],
        *,
        client: Optional[AsyncQdrantClient] = None,
        has_named_vectors: Optional[bool] = None,
        **kwargs: Any,
    ) -> None:
        self._client = client
        self.has_named_vectors = (
            api_settings.QDRANT_HAS_NAMED_VECTORS if has_named_vectors is None else has_named_vectors
        )
        super().__init__(record_type, **kwargs)

    def capabilities(self) -> BackendCapabilities:
        return qdrant_capabilities(self.has_named_vectors)

    def _create_default_mapper(self) -> RecordMapper:
        return QdrantRecordMapper(self.schema, has_named_vectors=self.has_named_vectors)

    @property
    def client(self) -> AsyncQdrantClient:
        if self._client is None:
            self._client = create_client()
            self.logger.message("AsyncQdrantClient initialized with url=%s", api_settings.QDRANT_URL)
        return self._client

    # ------------------------------------------------------------------
    # CRUD Operations
    # ------------------------------------------------------------------

    async def _get_one(self, collection_name: str, key: QdrantKey, options: GetRecordOptions) -> Optional[BaseModel]:
        point_id = to_point_id(key)
        try:
            points = await self.client.retrieve(
                collection_name=collection_name,
                ids=[point_id],
                with_payload=True,
                with_vectors=options.include_vectors,
            )
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to retrieve point", backend=BACKEND, collection_name=collection_name, key=str(key)
            ) from e
        if not points:
            return None
        return self.mapper.from_storage(points[0], StorageToRecordOptions(include_vectors=options.include_vectors))

    async def _upsert_many(self, collection_name: str, records: Sequence[BaseModel]) -> List[QdrantKey]:
        points = [self.mapper.to_storage(r) for r in records]
        try:
            await self.client.upsert(collection_name=collection_name, points=points, wait=True)
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to upsert points", backend=BACKEND, collection_name=collection_name, count=len(points)
            ) from e
        return [self.schema.key_of(r) for r in records]

    async def _delete_many(self, collection_name: str, keys: Sequence[QdrantKey]) -> None:
        point_ids = [to_point_id(k) for k in keys]
        try:
            await self.client.delete(
                collection_name=collection_name,
                points_selector=PointIdsList(points=point_ids),
                wait=True,
            )
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to delete points", backend=BACKEND, collection_name=collection_name, count=len(point_ids)
            ) from e


class QdrantCollectionStore(VectorCollectionStore):
    """Creates and manages Qdrant collections for one record schema."""

    backend = BACKEND

    def __init__(
        self,
        record_type: Type[BaseModel],
        *,
        definition: Optional[RecordDefinition] = None,
        client: Optional[AsyncQdrantClient] = None,
        has_named_vectors: Optional[bool] = None,
    ) -> None:
        self._client = client
        self.has_named_vectors = (
            api_settings.QDRANT_HAS_NAMED_VECTORS if has_named_vectors is None else has_named_vectors
        )
        super().__init__(record_type, definition=definition)

    def capabilities(self) -> BackendCapabilities:
        return qdrant_capabilities(self.has_named_vectors)

    @property
    def client(self) -> AsyncQdrantClient:
        if self._client is None:
            self._client = create_client()
        return self._client

    # ------------------------------------------------------------------
    # Collection Management
    # ------------------------------------------------------------------

    async def create_collection(self, name: str) -> None:
        vectors_config = build_vectors_config(self.schema, self.has_named_vectors)
        payload_indexes = build_payload_indexes(self.schema)
        try:
            await self.client.create_collection(collection_name=name, vectors_config=vectors_config)
            for field_name, field_schema in payload_indexes:
                await self.client.create_payload_index(
                    collection_name=name,
                    field_name=field_name,
                    field_schema=field_schema,
                    wait=True,
                )
        except Exception as e:
            raise BackendOperationError("Failed to create collection", backend=BACKEND, collection_name=name) from e
        self.logger.message("Created collection %s with %d payload indexes", name, len(payload_indexes))

    async def collection_exists(self, name: str) -> bool:
        try:
            return await self.client.collection_exists(collection_name=name)
        except Exception as e:
            raise BackendOperationError("Failed to look up collection", backend=BACKEND, collection_name=name) from e

    async def delete_collection(self, name: str) -> None:
        try:
            await self.client.delete_collection(collection_name=name)
        except Exception as e:
            raise BackendOperationError("Failed to delete collection", backend=BACKEND, collection_name=name) from e
        self.logger.message("Deleted collection %s", name)

    async def list_collection_names(self) -> AsyncIterator[str]:
        try:
            response = await self.client.get_collections()
        except Exception as e:
            raise BackendOperationError("Failed to list collections", backend=BACKEND) from e
        for collection in response.collections:
            yield collection.name
