"""Record store decorator that encodes keys and collection names for a backend.

Some backends restrict key or index name characters. KeyNormalizingRecordStore
wraps any VectorRecordStore, encodes logical keys and collection name
overrides on the way in, and decodes keys on every record and key it returns.
"""

from typing import Callable, Generic, Iterable, List, Optional, Sequence

from .abc import TKey, TRecord, VectorRecordStore
from .exceptions import ArgumentError
from .schema import GetRecordOptions

KeyCodec = Callable[[TKey], TKey]
NameCodec = Callable[[str], str]


def _identity(value):
    return value


class KeyNormalizingRecordStore(Generic[TKey, TRecord]):
    """Forwards CRUD calls to ``inner`` with keys and collection names translated.

    Outgoing records are copied with the encoded key; the caller's record is
    never modified. The inner store's own default collection name is assumed
    to be native already, so only explicit ``collection_name`` arguments are
    encoded.

    Args:
        inner: Store to forward to
        record_key_encoder: Logical key to native key
        record_key_decoder: Native key to logical key
        collection_name_encoder: Logical collection name to native name
        probe_keys: Sample keys used to check encoder and decoder are inverses

    Raises:
        ArgumentError: If only one of the key codecs is given, or a probe key
            does not survive an encode/decode round trip
    """

    def __init__(
        self,
        inner: VectorRecordStore[TKey, TRecord],
        *,
        record_key_encoder: Optional[KeyCodec] = None,
        record_key_decoder: Optional[KeyCodec] = None,
        collection_name_encoder: Optional[NameCodec] = None,
        probe_keys: Sequence[TKey] = (),
    ) -> None:
        if (record_key_encoder is None) != (record_key_decoder is None):
            raise ArgumentError(
                "record_key_encoder and record_key_decoder must be given together",
                argument="record_key_decoder" if record_key_decoder is None else "record_key_encoder",
            )
        self.inner = inner
        self.encode_key: KeyCodec = record_key_encoder or _identity
        self.decode_key: KeyCodec = record_key_decoder or _identity
        self.encode_collection_name: NameCodec = collection_name_encoder or _identity
        self.key_field = inner.schema.key_property.name
        for key in probe_keys:
            if self.decode_key(self.encode_key(key)) != key:
                raise ArgumentError("Key encoder and decoder are not inverses", argument="probe_keys", key=key)

    @property
    def schema(self):
        return self.inner.schema

    def _collection(self, collection_name: Optional[str]) -> Optional[str]:
        if collection_name is None:
            return None
        return self.encode_collection_name(collection_name)

    def _encode_record(self, record: TRecord) -> TRecord:
        key = getattr(record, self.key_field)
        return record.model_copy(update={self.key_field: self.encode_key(key)})

    def _decode_record(self, record: TRecord) -> TRecord:
        key = getattr(record, self.key_field)
        return record.model_copy(update={self.key_field: self.decode_key(key)})

    # ------------------------------------------------------------------
    # CRUD Operations
    # ------------------------------------------------------------------

    async def get(
        self, key: TKey, *, collection_name: Optional[str] = None, options: Optional[GetRecordOptions] = None
    ) -> TRecord:
        record = await self.inner.get(
            self.encode_key(key), collection_name=self._collection(collection_name), options=options
        )
        return self._decode_record(record)

    async def get_batch(
        self,
        keys: Iterable[TKey],
        *,
        collection_name: Optional[str] = None,
        options: Optional[GetRecordOptions] = None,
    ) -> List[TRecord]:
        records = await self.inner.get_batch(
            [self.encode_key(k) for k in keys], collection_name=self._collection(collection_name), options=options
        )
        return [self._decode_record(r) for r in records]

    async def upsert(self, record: TRecord, *, collection_name: Optional[str] = None) -> TKey:
        key = await self.inner.upsert(self._encode_record(record), collection_name=self._collection(collection_name))
        return self.decode_key(key)

    async def upsert_batch(self, records: Iterable[TRecord], *, collection_name: Optional[str] = None) -> List[TKey]:
        keys = await self.inner.upsert_batch(
            [self._encode_record(r) for r in records], collection_name=self._collection(collection_name)
        )
        return [self.decode_key(k) for k in keys]

    async def delete(self, key: TKey, *, collection_name: Optional[str] = None) -> None:
        await self.inner.delete(self.encode_key(key), collection_name=self._collection(collection_name))

    async def delete_batch(self, keys: Iterable[TKey], *, collection_name: Optional[str] = None) -> None:
        await self.inner.delete_batch(
            [self.encode_key(k) for k in keys], collection_name=self._collection(collection_name)
        )
