"""Azure AI Search record store and collection store.

Key Features:
    - Lazy SearchIndexClient initialization from settings, or an injected client
    - Per-store cache of SearchClient instances keyed by index name
    - Vector fields left out of the selected fields when vectors are not requested
    - Single-call batch upload and delete
"""

from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Type

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import ResourceNotFoundError
from azure.search.documents.aio import SearchClient
from azure.search.documents.indexes.aio import SearchIndexClient
from pydantic import BaseModel

from ..abc import RecordMapper, VectorCollectionStore, VectorRecordStore
from ..discovery import BackendCapabilities
from ..exceptions import BackendOperationError, CrossRecordError, MissingConfigError
from ..mappers.azure_ai_search import AzureAISearchRecordMapper
from ..schema import GetRecordOptions, RecordDefinition, StorageToRecordOptions
from ..settings import settings as api_settings
from ..translators.azure_ai_search import build_search_index

BACKEND = "azure_ai_search"

_SCALARS = frozenset({str, int, float, bool, datetime})

CAPABILITIES = BackendCapabilities(
    backend=BACKEND,
    supported_key_types=frozenset({str}),
    supported_data_types=_SCALARS,
    supported_enumerable_data_types=_SCALARS,
    supports_multiple_vectors=True,
)


def create_index_client() -> SearchIndexClient:
    """Build a SearchIndexClient from AZURE_AI_SEARCH_* settings.

    Raises:
        MissingConfigError: If the endpoint or API key is not configured
    """
    endpoint = api_settings.AZURE_AI_SEARCH_ENDPOINT
    api_key = api_settings.AZURE_AI_SEARCH_API_KEY
    if not endpoint:
        raise MissingConfigError(
            "AZURE_AI_SEARCH_ENDPOINT is not set. Please configure it in your .env file.",
            config_key="AZURE_AI_SEARCH_ENDPOINT",
            env_file=".env",
        )
    if not api_key:
        raise MissingConfigError(
            "AZURE_AI_SEARCH_API_KEY is not set. Please configure it in your .env file.",
            config_key="AZURE_AI_SEARCH_API_KEY",
            env_file=".env",
        )
    return SearchIndexClient(endpoint=endpoint, credential=AzureKeyCredential(api_key))


class AzureAISearchRecordStore(VectorRecordStore[str, BaseModel]):
    """Record store over Azure AI Search indexes.

    Attributes:
        schema: Validated record schema
        default_collection_name: Index used when a call names none
    """

    backend = BACKEND

    def __init__(
        self,
        record_type: Type[BaseModel],
        *,
        index_client: Optional[SearchIndexClient] = None,
        **kwargs: Any,
    ) -> None:
        self._index_client = index_client
        self._search_clients: Dict[str, SearchClient] = {}
        super().__init__(record_type, **kwargs)

    def capabilities(self) -> BackendCapabilities:
        return CAPABILITIES

    def _create_default_mapper(self) -> RecordMapper:
        return AzureAISearchRecordMapper(self.schema)

    @property
    def index_client(self) -> SearchIndexClient:
        if self._index_client is None:
            self._index_client = create_index_client()
            self.logger.message("SearchIndexClient initialized")
        return self._index_client

    def search_client(self, collection_name: str) -> SearchClient:
        """Return the cached SearchClient for an index, creating it on first use."""
        client = self._search_clients.get(collection_name)
        if client is None:
            client = self.index_client.get_search_client(collection_name)
            self._search_clients[collection_name] = client
        return client

    def _selected_fields(self, include_vectors: bool) -> Optional[List[str]]:
        if include_vectors:
            return None
        return [self.schema.key_property.storage_property_name] + [
            p.storage_property_name for p in self.schema.data_properties
        ]

    # ------------------------------------------------------------------
    # CRUD Operations
    # ------------------------------------------------------------------

    async def _get_one(self, collection_name: str, key: str, options: GetRecordOptions) -> Optional[BaseModel]:
        client = self.search_client(collection_name)
        try:
            document = await client.get_document(
                key=key, selected_fields=self._selected_fields(options.include_vectors)
            )
        except ResourceNotFoundError:
            return None
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to get document", backend=BACKEND, collection_name=collection_name, key=key
            ) from e
        return self.mapper.from_storage(document, StorageToRecordOptions(include_vectors=options.include_vectors))

    async def _upsert_many(self, collection_name: str, records: Sequence[BaseModel]) -> List[str]:
        documents = [self.mapper.to_storage(r) for r in records]
        client = self.search_client(collection_name)
        try:
            results = await client.upload_documents(documents=documents)
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to upload documents", backend=BACKEND, collection_name=collection_name, count=len(documents)
            ) from e
        failed = [r.key for r in results if not r.succeeded]
        if failed:
            raise BackendOperationError(
                "Azure AI Search rejected some documents",
                backend=BACKEND,
                collection_name=collection_name,
                failed_keys=failed,
            )
        return [self.schema.key_of(r) for r in records]

    async def _delete_many(self, collection_name: str, keys: Sequence[str]) -> None:
        key_field = self.schema.key_property.storage_property_name
        client = self.search_client(collection_name)
        try:
            await client.delete_documents(documents=[{key_field: k} for k in keys])
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to delete documents", backend=BACKEND, collection_name=collection_name, count=len(keys)
            ) from e


class AzureAISearchCollectionStore(VectorCollectionStore):
    """Creates and manages Azure AI Search indexes for one record schema."""

    backend = BACKEND

    def __init__(
        self,
        record_type: Type[BaseModel],
        *,
        definition: Optional[RecordDefinition] = None,
        index_client: Optional[SearchIndexClient] = None,
    ) -> None:
        self._index_client = index_client
        super().__init__(record_type, definition=definition)

    def capabilities(self) -> BackendCapabilities:
        return CAPABILITIES

    @property
    def index_client(self) -> SearchIndexClient:
        if self._index_client is None:
            self._index_client = create_index_client()
        return self._index_client

    # ------------------------------------------------------------------
    # Collection Management
    # ------------------------------------------------------------------

    async def create_collection(self, name: str) -> None:
        index = build_search_index(name, self.schema)
        try:
            await self.index_client.create_index(index)
        except Exception as e:
            raise BackendOperationError("Failed to create index", backend=BACKEND, collection_name=name) from e
        self.logger.message("Created index %s with %d fields", name, len(index.fields))

    async def collection_exists(self, name: str) -> bool:
        try:
            await self.index_client.get_index(name)
        except ResourceNotFoundError:
            return False
        except Exception as e:
            raise BackendOperationError("Failed to look up index", backend=BACKEND, collection_name=name) from e
        return True

    async def delete_collection(self, name: str) -> None:
        try:
            await self.index_client.delete_index(name)
        except Exception as e:
            raise BackendOperationError("Failed to delete index", backend=BACKEND, collection_name=name) from e
        self.logger.message("Deleted index %s", name)

    async def list_collection_names(self) -> AsyncIterator[str]:
        try:
            async for name in self.index_client.list_index_names():
                yield name
        except Exception as e:
            raise BackendOperationError("Failed to list indexes", backend=BACKEND) from e
