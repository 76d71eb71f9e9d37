"""Tests for KeyNormalizingRecordStore."""

import pytest
from conftest import Hotel, InMemoryRecordStore

from crossrecord.exceptions import ArgumentError, NotFoundError
from crossrecord.normalization import KeyNormalizingRecordStore
from crossrecord.schema import GetRecordOptions


def encode(key: str) -> str:
    return key.replace("/", "__")


def decode(key: str) -> str:
    return key.replace("__", "/")


@pytest.fixture
def inner():
    return InMemoryRecordStore(Hotel, default_collection_name="hotels")


@pytest.fixture
def normalized(inner):
    return KeyNormalizingRecordStore(
        inner,
        record_key_encoder=encode,
        record_key_decoder=decode,
        collection_name_encoder=str.lower,
    )


class TestConstruction:
    def test_one_sided_codec_rejected(self, inner):
        with pytest.raises(ArgumentError, match="given together"):
            KeyNormalizingRecordStore(inner, record_key_encoder=encode)
        with pytest.raises(ArgumentError, match="given together"):
            KeyNormalizingRecordStore(inner, record_key_decoder=decode)

    def test_probe_keys_must_round_trip(self, inner):
        with pytest.raises(ArgumentError, match="not inverses"):
            KeyNormalizingRecordStore(
                inner, record_key_encoder=str.upper, record_key_decoder=str.upper, probe_keys=["abc"]
            )

    def test_probe_keys_accepted(self, inner):
        store = KeyNormalizingRecordStore(
            inner, record_key_encoder=encode, record_key_decoder=decode, probe_keys=["a/b", "plain"]
        )
        assert store.schema is inner.schema


class TestForwarding:
    @pytest.mark.asyncio
    async def test_identity_is_transparent(self, inner, hotels):
        store = KeyNormalizingRecordStore(inner)
        assert await store.upsert_batch(hotels) == ["h1", "h2", "h3"]
        records = await store.get_batch(["h2", "h1"], options=GetRecordOptions(include_vectors=True))
        assert [r.model_dump() for r in records] == [hotels[1].model_dump(), hotels[0].model_dump()]

    @pytest.mark.asyncio
    async def test_native_store_sees_encoded_keys(self, normalized, inner):
        key = await normalized.upsert(Hotel(hotel_id="eu/h1", name="Harbor"))
        assert key == "eu/h1"
        assert list(inner.collections["hotels"]) == ["eu__h1"]

    @pytest.mark.asyncio
    async def test_caller_record_not_modified(self, normalized):
        hotel = Hotel(hotel_id="eu/h1", name="Harbor")
        await normalized.upsert(hotel)
        assert hotel.hotel_id == "eu/h1"

    @pytest.mark.asyncio
    async def test_returned_records_carry_logical_keys(self, normalized):
        await normalized.upsert_batch([Hotel(hotel_id="eu/h1", name="A"), Hotel(hotel_id="us/h2", name="B")])
        assert (await normalized.get("eu/h1")).hotel_id == "eu/h1"
        records = await normalized.get_batch(["us/h2", "eu/h1"])
        assert [r.hotel_id for r in records] == ["us/h2", "eu/h1"]

    @pytest.mark.asyncio
    async def test_batch_upsert_returns_logical_keys(self, normalized):
        keys = await normalized.upsert_batch([Hotel(hotel_id="a/b", name="A"), Hotel(hotel_id="c", name="C")])
        assert keys == ["a/b", "c"]

    @pytest.mark.asyncio
    async def test_collection_override_encoded(self, normalized, inner):
        await normalized.upsert(Hotel(hotel_id="h1", name="Harbor"), collection_name="Hotels-EU")
        assert "hotels-eu" in inner.collections
        assert (await normalized.get("h1", collection_name="Hotels-EU")).name == "Harbor"

    @pytest.mark.asyncio
    async def test_default_collection_not_encoded(self):
        inner = InMemoryRecordStore(Hotel, default_collection_name="Hotels")
        store = KeyNormalizingRecordStore(inner, collection_name_encoder=str.lower)
        await store.upsert(Hotel(hotel_id="h1", name="Harbor"))
        assert list(inner.collections) == ["Hotels"]

    @pytest.mark.asyncio
    async def test_delete_uses_encoded_keys(self, normalized, inner):
        await normalized.upsert_batch([Hotel(hotel_id="a/1", name="A"), Hotel(hotel_id="a/2", name="B")])
        await normalized.delete("a/1")
        assert list(inner.collections["hotels"]) == ["a__2"]
        await normalized.delete_batch(["a/2"])
        assert inner.collections["hotels"] == {}
        with pytest.raises(NotFoundError):
            await normalized.get("a/1")
