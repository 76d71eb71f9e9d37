"""Tests for the Azure AI Search record and collection stores with mocked clients."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.search.documents.indexes.models import SearchIndex
from conftest import Hotel

from crossrecord.dbs.azure_ai_search import AzureAISearchCollectionStore, AzureAISearchRecordStore
from crossrecord.exceptions import BackendOperationError, MissingConfigError, NotFoundError
from crossrecord.schema import GetRecordOptions
from crossrecord.settings import settings


def _result(key, succeeded=True):
    result = MagicMock()
    result.key = key
    result.succeeded = succeeded
    return result


@pytest.fixture
def search_client():
    client = MagicMock()
    client.get_document = AsyncMock()
    client.upload_documents = AsyncMock()
    client.delete_documents = AsyncMock()
    return client


@pytest.fixture
def index_client(search_client):
    client = MagicMock()
    client.get_search_client.return_value = search_client
    client.create_index = AsyncMock()
    client.get_index = AsyncMock()
    client.delete_index = AsyncMock()
    return client


@pytest.fixture
def store(index_client):
    return AzureAISearchRecordStore(Hotel, index_client=index_client, default_collection_name="hotels")


class TestRecordStore:
    """CRUD against a mocked SearchClient."""

    @pytest.mark.asyncio
    async def test_get_selects_non_vector_fields(self, store, search_client):
        search_client.get_document.return_value = {"hotel_id": "h1", "name": "Harbor", "rating": 4.5}
        record = await store.get("h1")
        assert record.hotel_id == "h1"
        assert record.rating == 4.5
        search_client.get_document.assert_awaited_once_with(
            key="h1", selected_fields=["hotel_id", "name", "description", "rating", "tags"]
        )

    @pytest.mark.asyncio
    async def test_get_with_vectors_selects_everything(self, store, search_client):
        search_client.get_document.return_value = {"hotel_id": "h1", "name": "Harbor", "embedding": [0.5, 0.5, 0.0, 1.0]}
        record = await store.get("h1", options=GetRecordOptions(include_vectors=True))
        assert record.embedding == [0.5, 0.5, 0.0, 1.0]
        assert search_client.get_document.await_args.kwargs["selected_fields"] is None

    @pytest.mark.asyncio
    async def test_get_missing(self, store, search_client):
        search_client.get_document.side_effect = ResourceNotFoundError("No document")
        with pytest.raises(NotFoundError):
            await store.get("h9")

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, store, search_client):
        search_client.get_document.side_effect = HttpResponseError("Service unavailable")
        with pytest.raises(BackendOperationError) as exc_info:
            await store.get("h1")
        assert isinstance(exc_info.value.__cause__, HttpResponseError)
        assert exc_info.value.details["backend"] == "azure_ai_search"

    @pytest.mark.asyncio
    async def test_get_batch_partial_miss(self, store, search_client):
        async def get_document(key, selected_fields=None):
            if key == "h2":
                raise ResourceNotFoundError("No document")
            return {"hotel_id": key, "name": key.upper()}

        search_client.get_document.side_effect = get_document
        with pytest.raises(NotFoundError):
            await store.get_batch(["h1", "h2", "h3"])
        assert search_client.get_document.await_count == 3

    @pytest.mark.asyncio
    async def test_search_client_cached_per_collection(self, store, index_client, search_client):
        search_client.get_document.return_value = {"hotel_id": "h1", "name": "Harbor"}
        await store.get("h1")
        await store.get("h1")
        await store.get("h1", collection_name="hotels-eu")
        assert [c.args for c in index_client.get_search_client.call_args_list] == [("hotels",), ("hotels-eu",)]

    @pytest.mark.asyncio
    async def test_upsert_batch(self, store, search_client, hotels):
        search_client.upload_documents.return_value = [_result("h1"), _result("h2"), _result("h3")]
        keys = await store.upsert_batch(hotels)
        assert keys == ["h1", "h2", "h3"]
        documents = search_client.upload_documents.await_args.kwargs["documents"]
        assert [d["hotel_id"] for d in documents] == ["h1", "h2", "h3"]
        assert search_client.upload_documents.await_count == 1

    @pytest.mark.asyncio
    async def test_upsert_rejected_documents(self, store, search_client, hotels):
        search_client.upload_documents.return_value = [_result("h1"), _result("h2", succeeded=False)]
        with pytest.raises(BackendOperationError) as exc_info:
            await store.upsert_batch(hotels[:2])
        assert exc_info.value.details["failed_keys"] == ["h2"]

    @pytest.mark.asyncio
    async def test_delete_batch(self, store, search_client):
        await store.delete_batch(["h1", "h2"])
        search_client.delete_documents.assert_awaited_once_with(documents=[{"hotel_id": "h1"}, {"hotel_id": "h2"}])

    def test_missing_endpoint(self, monkeypatch):
        monkeypatch.setattr(settings, "AZURE_AI_SEARCH_ENDPOINT", None)
        store = AzureAISearchRecordStore(Hotel, default_collection_name="hotels")
        with pytest.raises(MissingConfigError, match="AZURE_AI_SEARCH_ENDPOINT"):
            _ = store.index_client

    def test_client_built_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "AZURE_AI_SEARCH_ENDPOINT", "https://search.example.net")
        monkeypatch.setattr(settings, "AZURE_AI_SEARCH_API_KEY", "secret")
        with patch("crossrecord.dbs.azure_ai_search.SearchIndexClient") as client_cls:
            store = AzureAISearchRecordStore(Hotel, default_collection_name="hotels")
            assert store.index_client is client_cls.return_value
            assert client_cls.call_args.kwargs["endpoint"] == "https://search.example.net"


class TestCollectionStore:
    """Index management against a mocked SearchIndexClient."""

    @pytest.fixture
    def collections(self, index_client):
        return AzureAISearchCollectionStore(Hotel, index_client=index_client)

    @pytest.mark.asyncio
    async def test_create_collection(self, collections, index_client):
        await collections.create_collection("hotels")
        index = index_client.create_index.await_args.args[0]
        assert isinstance(index, SearchIndex)
        assert index.name == "hotels"
        assert [f.name for f in index.fields] == ["hotel_id", "name", "description", "rating", "tags", "embedding"]

    @pytest.mark.asyncio
    async def test_create_existing_collection_fails(self, collections, index_client):
        index_client.create_index.side_effect = HttpResponseError("Index already exists")
        with pytest.raises(BackendOperationError, match="Failed to create index"):
            await collections.create_collection("hotels")

    @pytest.mark.asyncio
    async def test_collection_exists(self, collections, index_client):
        assert await collections.collection_exists("hotels") is True
        index_client.get_index.side_effect = ResourceNotFoundError("missing")
        assert await collections.collection_exists("nope") is False

    @pytest.mark.asyncio
    async def test_create_if_not_exists_skips_existing(self, collections, index_client):
        await collections.create_collection_if_not_exists("hotels")
        index_client.create_index.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_collection(self, collections, index_client):
        await collections.delete_collection("hotels")
        index_client.delete_index.assert_awaited_once_with("hotels")

    @pytest.mark.asyncio
    async def test_list_collection_names(self, collections, index_client):
        async def names():
            for name in ("hotels", "products"):
                yield name

        index_client.list_index_names = MagicMock(return_value=names())
        assert [n async for n in collections.list_collection_names()] == ["hotels", "products"]
