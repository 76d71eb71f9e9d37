"""Redis record stores (JSON and hash set) and collection store.

Key Features:
    - Lazy ``redis.asyncio`` client initialization from settings, or an injected client
    - Records keyed by the Redis key name; optional ``{collection}:`` key prefix
    - JSON documents via RedisJSON, or hash sets with float64 byte vectors
    - RediSearch index management (FT.CREATE, FT.INFO, FT.DROPINDEX, FT._LIST)
"""

from datetime import datetime
from typing import Any, AsyncIterator, List, Optional, Sequence, Type

from pydantic import BaseModel
from redis.asyncio import Redis
from redis.exceptions import ResponseError

from ..abc import RecordMapper, VectorCollectionStore, VectorRecordStore
from ..constants import RedisStorageType
from ..discovery import BackendCapabilities
from ..exceptions import BackendOperationError, CrossRecordError, MissingConfigError
from ..mappers.redis import RedisHashSetRecordMapper, RedisJsonRecordMapper
from ..schema import GetRecordOptions, RecordDefinition, StorageToRecordOptions
from ..settings import settings as api_settings
from ..translators.redis import build_index_definition, build_index_fields, key_prefix

BACKEND = "redis"

JSON_CAPABILITIES = BackendCapabilities(
    backend=BACKEND,
    supported_key_types=frozenset({str}),
    supported_data_types=frozenset({str, int, float, bool, datetime}),
    supported_enumerable_data_types=frozenset({str, int, float, bool}),
    supports_multiple_vectors=True,
)

HASH_SET_CAPABILITIES = BackendCapabilities(
    backend=BACKEND,
    supported_key_types=frozenset({str}),
    supported_data_types=frozenset({str, int, float}),
    supports_multiple_vectors=True,
)


def _is_missing_index(error: ResponseError) -> bool:
    # RediSearch reports "Unknown index name" (older) or "no such index" (newer)
    text = str(error).lower()
    return "unknown index name" in text or "no such index" in text


def redis_capabilities(storage_type: RedisStorageType) -> BackendCapabilities:
    if storage_type == RedisStorageType.JSON:
        return JSON_CAPABILITIES
    return HASH_SET_CAPABILITIES


def create_client() -> Redis:
    """Build a ``redis.asyncio.Redis`` client from REDIS_URL.

    Raises:
        MissingConfigError: If REDIS_URL is not configured
    """
    url = api_settings.REDIS_URL
    if not url:
        raise MissingConfigError(
            "REDIS_URL is not set. Please configure it in your .env file.",
            config_key="REDIS_URL",
            env_file=".env",
        )
    # Hash vectors are raw bytes; responses must not be decoded
    return Redis.from_url(url, decode_responses=False)


class _RedisRecordStore(VectorRecordStore[str, BaseModel]):
    """Shared key handling and deletes for both Redis storage types."""

    backend = BACKEND
    storage_type: RedisStorageType = RedisStorageType.JSON

    def __init__(
        self,
        record_type: Type[BaseModel],
        *,
        client: Optional[Redis] = None,
        prefix_collection_name_to_key_names: Optional[bool] = None,
        **kwargs: Any,
    ) -> None:
        self._client = client
        if prefix_collection_name_to_key_names is None:
            prefix_collection_name_to_key_names = api_settings.REDIS_PREFIX_COLLECTION_NAME_TO_KEY_NAMES
        self.prefix_collection_name_to_key_names = prefix_collection_name_to_key_names
        super().__init__(record_type, **kwargs)

    def capabilities(self) -> BackendCapabilities:
        return redis_capabilities(self.storage_type)

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = create_client()
            self.logger.message("Redis client initialized")
        return self._client

    def native_key(self, collection_name: str, key: str) -> str:
        if self.prefix_collection_name_to_key_names:
            return f"{key_prefix(collection_name)}{key}"
        return key

    async def _delete_many(self, collection_name: str, keys: Sequence[str]) -> None:
        native_keys = [self.native_key(collection_name, k) for k in keys]
        try:
            await self.client.delete(*native_keys)
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to delete keys", backend=BACKEND, collection_name=collection_name, count=len(native_keys)
            ) from e


class RedisJsonRecordStore(_RedisRecordStore):
    """Record store keeping each record as a RedisJSON document."""

    storage_type = RedisStorageType.JSON

    def _create_default_mapper(self) -> RecordMapper:
        return RedisJsonRecordMapper(self.schema)

    async def _get_one(self, collection_name: str, key: str, options: GetRecordOptions) -> Optional[BaseModel]:
        native_key = self.native_key(collection_name, key)
        try:
            document = await self.client.json().get(native_key)
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to get JSON document", backend=BACKEND, collection_name=collection_name, key=native_key
            ) from e
        if document is None:
            return None
        return self.mapper.from_storage(
            (key, document), StorageToRecordOptions(include_vectors=options.include_vectors)
        )

    async def _upsert_many(self, collection_name: str, records: Sequence[BaseModel]) -> List[str]:
        triplets = []
        for record in records:
            key, document = self.mapper.to_storage(record)
            triplets.append((self.native_key(collection_name, key), "$", document))
        try:
            await self.client.json().mset(triplets)
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to set JSON documents", backend=BACKEND, collection_name=collection_name, count=len(triplets)
            ) from e
        return [self.schema.key_of(r) for r in records]


class RedisHashSetRecordStore(_RedisRecordStore):
    """Record store keeping each record as a hash set."""

    storage_type = RedisStorageType.HASH_SET

    def _create_default_mapper(self) -> RecordMapper:
        return RedisHashSetRecordMapper(self.schema)

    async def _get_one(self, collection_name: str, key: str, options: GetRecordOptions) -> Optional[BaseModel]:
        native_key = self.native_key(collection_name, key)
        try:
            mapping = await self.client.hgetall(native_key)
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to get hash", backend=BACKEND, collection_name=collection_name, key=native_key
            ) from e
        if not mapping:
            return None
        return self.mapper.from_storage((key, mapping), StorageToRecordOptions(include_vectors=options.include_vectors))

    async def _upsert_many(self, collection_name: str, records: Sequence[BaseModel]) -> List[str]:
        entries = [self.mapper.to_storage(r) for r in records]
        try:
            pipe = self.client.pipeline(transaction=False)
            for key, mapping in entries:
                pipe.hset(self.native_key(collection_name, key), mapping=mapping)
            await pipe.execute()
        except CrossRecordError:
            raise
        except Exception as e:
            raise BackendOperationError(
                "Failed to set hashes", backend=BACKEND, collection_name=collection_name, count=len(entries)
            ) from e
        return [self.schema.key_of(r) for r in records]


class RedisCollectionStore(VectorCollectionStore):
    """Creates and manages RediSearch indexes for one record schema."""

    backend = BACKEND

    def __init__(
        self,
        record_type: Type[BaseModel],
        *,
        definition: Optional[RecordDefinition] = None,
        client: Optional[Redis] = None,
        storage_type: Optional[RedisStorageType] = None,
    ) -> None:
        self._client = client
        self.storage_type = RedisStorageType(storage_type or api_settings.REDIS_STORAGE_TYPE)
        super().__init__(record_type, definition=definition)

    def capabilities(self) -> BackendCapabilities:
        return redis_capabilities(self.storage_type)

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = create_client()
        return self._client

    # ------------------------------------------------------------------
    # Collection Management
    # ------------------------------------------------------------------

    async def create_collection(self, name: str) -> None:
        fields = build_index_fields(self.schema, self.storage_type)
        definition = build_index_definition(name, self.storage_type)
        try:
            await self.client.ft(name).create_index(fields, definition=definition)
        except Exception as e:
            raise BackendOperationError("Failed to create index", backend=BACKEND, collection_name=name) from e
        self.logger.message("Created %s index %s with %d fields", self.storage_type.value, name, len(fields))

    async def collection_exists(self, name: str) -> bool:
        try:
            await self.client.ft(name).info()
        except Exception as e:
            if isinstance(e, ResponseError) and _is_missing_index(e):
                return False
            raise BackendOperationError("Failed to look up index", backend=BACKEND, collection_name=name) from e
        return True

    async def delete_collection(self, name: str) -> None:
        try:
            await self.client.ft(name).dropindex(delete_documents=False)
        except Exception as e:
            raise BackendOperationError("Failed to drop index", backend=BACKEND, collection_name=name) from e
        self.logger.message("Dropped index %s", name)

    async def list_collection_names(self) -> AsyncIterator[str]:
        try:
            names = await self.client.execute_command("FT._LIST")
        except Exception as e:
            raise BackendOperationError("Failed to list indexes", backend=BACKEND) from e
        for name in names:
            yield name.decode("utf-8") if isinstance(name, bytes) else name
