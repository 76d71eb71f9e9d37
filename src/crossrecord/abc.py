"""Abstract base classes for record mappers, record stores and collection stores."""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Generic, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from .discovery import BackendCapabilities, read_record_schema
from .exceptions import ArgumentError, NotFoundError
from .logger import Logger
from .schema import (
    CustomMapper,
    DefaultMapper,
    GetRecordOptions,
    MapperStrategy,
    RecordDefinition,
    RecordSchema,
    StorageToRecordOptions,
)
from .settings import settings as api_settings
from .utils import gather_bounded

TKey = TypeVar("TKey")
TRecord = TypeVar("TRecord", bound=BaseModel)
TStorage = TypeVar("TStorage")


class RecordMapper(ABC, Generic[TRecord, TStorage]):
    """Converts records to and from a backend's native representation."""

    @abstractmethod
    def to_storage(self, record: TRecord) -> TStorage:
        """Convert a record into the native storage model.

        Raises:
            MappingError: If a value cannot be converted
        """

    @abstractmethod
    def from_storage(self, storage: TStorage, options: StorageToRecordOptions) -> TRecord:
        """Build a record from the native storage model.

        Raises:
            MappingError: If a value cannot be converted or the record fails validation
        """


class VectorRecordStore(ABC, Generic[TKey, TRecord]):
    """Backend-neutral CRUD façade over a single record type.

    Subclasses supply the backend capabilities, the default mapper and the
    single-item native calls. Collection fallback, bounded batch fan-out and
    not-found handling live here.
    """

    backend: str = ""

    def __init__(
        self,
        record_type: Type[TRecord],
        *,
        definition: Optional[RecordDefinition] = None,
        default_collection_name: Optional[str] = None,
        mapper: Optional[MapperStrategy] = None,
        max_degree_of_get_parallelism: Optional[int] = None,
    ) -> None:
        """Validate the record schema and pick a mapper.

        Args:
            record_type: Pydantic model class of the records
            definition: Explicit record definition; takes precedence over field markers
            default_collection_name: Collection used when a call passes none
            mapper: DefaultMapper() or CustomMapper(mapper=...)
            max_degree_of_get_parallelism: Upper bound on concurrent gets in get_batch

        Raises:
            SchemaError: If the record type cannot be stored by this backend
            ArgumentError: If max_degree_of_get_parallelism is below 1
        """
        self.logger = Logger(self.__class__.__name__)
        self.record_type = record_type
        self.schema: RecordSchema = read_record_schema(record_type, definition, capabilities=self.capabilities())
        self.default_collection_name = default_collection_name or api_settings.DEFAULT_COLLECTION_NAME

        degree = max_degree_of_get_parallelism
        if degree is None:
            degree = api_settings.MAX_DEGREE_OF_GET_PARALLELISM
        if degree < 1:
            raise ArgumentError(
                "max_degree_of_get_parallelism must be at least 1",
                argument="max_degree_of_get_parallelism",
                value=degree,
            )
        self.max_degree_of_get_parallelism = degree

        strategy = mapper if mapper is not None else DefaultMapper()
        if isinstance(strategy, CustomMapper):
            self.mapper: RecordMapper = strategy.mapper
        elif isinstance(strategy, DefaultMapper):
            self.mapper = self._create_default_mapper()
        else:
            raise ArgumentError("mapper must be DefaultMapper or CustomMapper", argument="mapper")

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def capabilities(self) -> BackendCapabilities:
        """Return the key, data and vector types this backend can store."""

    @abstractmethod
    def _create_default_mapper(self) -> RecordMapper:
        """Return the schema-driven mapper used when no custom mapper is given."""

    @abstractmethod
    async def _get_one(self, collection_name: str, key: TKey, options: GetRecordOptions) -> Optional[TRecord]:
        """Fetch one record, returning None when the key does not exist."""

    @abstractmethod
    async def _upsert_many(self, collection_name: str, records: Sequence[TRecord]) -> List[TKey]:
        """Write all records in one native batch call and return their keys in order."""

    @abstractmethod
    async def _delete_many(self, collection_name: str, keys: Sequence[TKey]) -> None:
        """Delete all keys in one native batch call. Missing keys are ignored."""

    # ------------------------------------------------------------------
    # CRUD Operations
    # ------------------------------------------------------------------

    def _resolve_collection_name(self, collection_name: Optional[str]) -> str:
        name = collection_name or self.default_collection_name
        if not name:
            raise ArgumentError(
                "No collection name given and no default collection name configured",
                argument="collection_name",
            )
        return name

    async def get(
        self,
        key: TKey,
        *,
        collection_name: Optional[str] = None,
        options: Optional[GetRecordOptions] = None,
    ) -> TRecord:
        """Get a single record by key.

        Raises:
            NotFoundError: If the key does not exist
            ArgumentError: If no collection name can be resolved
        """
        name = self._resolve_collection_name(collection_name)
        record = await self._get_one(name, key, options or GetRecordOptions())
        if record is None:
            raise NotFoundError("Record not found", collection_name=name, key=key)
        return record

    async def get_batch(
        self,
        keys: Iterable[TKey],
        *,
        collection_name: Optional[str] = None,
        options: Optional[GetRecordOptions] = None,
    ) -> List[TRecord]:
        """Get several records, one native get per key, in input order.

        Raises:
            NotFoundError: If any key is missing; no partial results are returned
        """
        name = self._resolve_collection_name(collection_name)
        opts = options or GetRecordOptions()
        keys = list(keys)

        async def _fetch(key: TKey) -> Optional[TRecord]:
            return await self._get_one(name, key, opts)

        results = await gather_bounded(_fetch, keys, self.max_degree_of_get_parallelism)
        missing = sum(1 for r in results if r is None)
        if missing:
            raise NotFoundError(
                "One or more requested records were not found",
                collection_name=name,
                requested=len(keys),
                found=len(keys) - missing,
            )
        return results

    async def upsert(self, record: TRecord, *, collection_name: Optional[str] = None) -> TKey:
        name = self._resolve_collection_name(collection_name)
        keys = await self._upsert_many(name, [record])
        return keys[0]

    async def upsert_batch(self, records: Iterable[TRecord], *, collection_name: Optional[str] = None) -> List[TKey]:
        """Upsert records with one native batch call.

        Returns:
            Keys in the same order as the input records
        """
        name = self._resolve_collection_name(collection_name)
        records = list(records)
        if not records:
            return []
        keys = await self._upsert_many(name, records)
        self.logger.message("Upsert collection=%s count=%d", name, len(keys))
        return keys

    async def delete(self, key: TKey, *, collection_name: Optional[str] = None) -> None:
        name = self._resolve_collection_name(collection_name)
        await self._delete_many(name, [key])

    async def delete_batch(self, keys: Iterable[TKey], *, collection_name: Optional[str] = None) -> None:
        name = self._resolve_collection_name(collection_name)
        keys = list(keys)
        if not keys:
            return
        await self._delete_many(name, keys)
        self.logger.message("Delete collection=%s count=%d", name, len(keys))


class VectorCollectionStore(ABC):
    """Creates, inspects and drops collections for one record schema."""

    backend: str = ""

    def __init__(self, record_type: Type[BaseModel], *, definition: Optional[RecordDefinition] = None) -> None:
        self.logger = Logger(self.__class__.__name__)
        self.schema: RecordSchema = read_record_schema(record_type, definition, capabilities=self.capabilities())

    @abstractmethod
    def capabilities(self) -> BackendCapabilities:
        """Return the key, data and vector types this backend can store."""

    @abstractmethod
    async def create_collection(self, name: str) -> None:
        """Create the collection. Fails if it already exists.

        Raises:
            SchemaError: If a vector property has no dimensions
            UnsupportedConfigurationError: If an index kind, distance or filter type is unsupported
            BackendOperationError: If the backend rejects the request
        """

    async def create_collection_if_not_exists(self, name: str) -> None:
        if not await self.collection_exists(name):
            await self.create_collection(name)

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Return True if the collection exists."""

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Drop the collection. Records in it become unreachable."""

    @abstractmethod
    def list_collection_names(self) -> AsyncIterator[str]:
        """Lazily iterate over collection names, one native page at a time."""

