"""
Unit tests for the repository service routes and response cache middleware.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi import Response
from fastapi.testclient import TestClient

from service_repository.app.adapters.catalog_client import CatalogClient
from service_repository.app.caching.redis_store import RedisStore
from service_repository.app.main import RepositoryService
from shared.config import get_config
from shared.errors import CacheBackendError
from shared.test_helpers import TestDataFactory

JSON_HEADERS = {"Accept": "application/json"}
XML_HEADERS = {"Accept": "application/xml"}


def make_service(catalog, **overrides):
    config = get_config("repository", env="test", **overrides)
    return RepositoryService(config=config, catalog=catalog)


def spy(target, name):
    """Wrap an async catalog method so its calls can be counted."""
    return patch.object(target, name, new=AsyncMock(wraps=getattr(target, name)))


class TestResponseCache:
    """Cache behaviour observed through the HTTP surface."""

    @pytest.fixture
    def catalog(self):
        return CatalogClient(TestDataFactory.create_test_catalog())

    @pytest.fixture
    def service(self, catalog, tmp_path):
        return make_service(catalog, cache="100:1h", assets_dir=str(tmp_path))

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    def test_repeat_request_is_served_from_cache(self, client, catalog):
        with spy(catalog, "list_items") as list_items:
            first = client.get("/items", headers=JSON_HEADERS)
            second = client.get("/items", headers=JSON_HEADERS)
            third = client.get("/items", headers=JSON_HEADERS)

        assert first.status_code == 200
        assert second.content == first.content
        assert third.content == first.content
        assert second.headers["content-type"] == "application/json"
        assert list_items.await_count == 1

    def test_json_and_xml_are_cached_separately(self, client, catalog):
        with spy(catalog, "get_item") as get_item:
            json_first = client.get("/items/100", headers=JSON_HEADERS)
            xml_first = client.get("/items/100", headers=XML_HEADERS)
            json_again = client.get("/items/100", headers=JSON_HEADERS)
            xml_again = client.get("/items/100", headers=XML_HEADERS)

        assert get_item.await_count == 2
        assert json_first.json()["id"] == 100
        assert xml_first.text.startswith("<?xml")
        assert json_again.content == json_first.content
        assert xml_again.content == xml_first.content
        assert xml_again.headers["content-type"] == "application/xml"

        status = client.get("/cache", headers=JSON_HEADERS).json()
        assert status["entries"] == 2

    def test_query_string_is_part_of_the_key(self, client, catalog):
        with spy(catalog, "list_collections") as list_collections:
            client.get("/collections")
            client.get("/collections?expand=all")
            client.get("/collections?expand=all")

        assert list_collections.await_count == 2

    def test_streamed_and_service_paths_are_never_cached(self, client, tmp_path):
        content = tmp_path / "12" / "34" / "1000"
        content.parent.mkdir(parents=True)
        content.write_bytes(b"hello world")

        for _ in range(3):
            retrieved = client.get("/bitstreams/1000/retrieve")
            assert retrieved.status_code == 200
            assert retrieved.content == b"hello world"
            assert client.get("/ping").text == "pong"
            assert client.get("/health").status_code == 200

        status = client.get("/cache").json()
        assert status == {"entries": 0, "size": 0}

    def test_error_responses_are_not_cached(self, client, catalog):
        with spy(catalog, "get_item") as get_item:
            assert client.get("/items/999").status_code == 404
            assert client.get("/items/999").status_code == 404

        assert get_item.await_count == 2
        assert client.get("/cache").json()["entries"] == 0

    def test_flush_empties_the_cache(self, client):
        client.get("/communities")
        client.get("/collections", headers=XML_HEADERS)
        before = client.get("/cache").json()
        assert before["entries"] == 2
        assert before["size"] > 0

        response = client.post("/cache", params={"command": "flush"})

        assert response.status_code == 202
        assert response.text == "Cache command received"
        assert client.get("/cache").json() == {"entries": 0, "size": 0}

    def test_unknown_command_is_received_but_ignored(self, client):
        client.get("/communities")

        response = client.post("/cache", params={"command": "compact"})

        assert response.status_code == 202
        assert client.get("/cache").json()["entries"] == 1

    def test_cache_status_negotiates_xml(self, client):
        client.get("/communities")

        response = client.get("/cache", headers=XML_HEADERS)

        assert response.headers["content-type"] == "application/xml"
        assert "<cacheStatus>" in response.text
        assert "<entries>1</entries>" in response.text

    def test_capacity_evicts_least_recently_accessed(self, catalog):
        client = TestClient(make_service(catalog, cache="2:").app)

        with spy(catalog, "get_item") as get_item, spy(catalog, "get_collection") as get_collection:
            client.get("/items/100")
            client.get("/items/101")
            client.get("/items/100")
            client.get("/collections/10")
            client.get("/items/101")
            client.get("/items/100")

        # /items/101 was evicted by /collections/10 and fetched again, which in
        # turn evicted /items/100.
        assert get_item.await_count == 4
        assert get_collection.await_count == 1

    def test_miss_keeps_repeated_response_headers(self, service, client):
        async def preferences():
            response = Response("[]", media_type="application/json")
            response.set_cookie("layout", "list")
            response.set_cookie("sort", "title")
            return response

        service.app.add_api_route("/items/preferences", preferences)
        # Ahead of /items/{item_id} and the fallback route.
        service.app.router.routes.insert(0, service.app.router.routes.pop())

        response = client.get("/items/preferences")

        assert response.status_code == 200
        assert len(response.headers.get_list("set-cookie")) == 2
        assert response.headers["content-type"] == "application/json"
        assert response.content == b"[]"

    def test_backend_read_failure_falls_through_to_handler(self, client, service, catalog):
        client.get("/communities")

        with patch.object(service.cache_manager.backend, "get",
                          new=AsyncMock(side_effect=CacheBackendError("local", "boom"))), \
             spy(catalog, "list_communities") as list_communities:
            response = client.get("/communities")

        assert response.status_code == 200
        assert list_communities.await_count == 1

    def test_backend_write_failure_does_not_fail_request(self, client, service):
        with patch.object(service.cache_manager.backend, "put",
                          new=AsyncMock(side_effect=CacheBackendError("local", "full"))):
            response = client.get("/collections/10")

        assert response.status_code == 200
        assert response.json()["name"] == "Theses"

    def test_status_failure_reports_service_unavailable(self, client, service):
        with patch.object(service.cache_manager.backend, "status",
                          new=AsyncMock(side_effect=CacheBackendError("local", "unavailable"))):
            response = client.get("/cache")

        assert response.status_code == 503
        assert response.json()["code"] == "CACHE_BACKEND_ERROR"

    def test_cache_metrics_are_exported(self, client):
        client.get("/items")
        client.get("/items")

        body = client.get("/metrics").text

        assert 'cache_lookups_total{backend="local",result="hit"} 1.0' in body
        assert 'cache_writes_total{backend="local",result="stored"} 1.0' in body


class TestCacheDisabled:
    """Service behaviour without a cache."""

    @pytest.fixture
    def catalog(self):
        return CatalogClient(TestDataFactory.create_test_catalog())

    def test_status_reports_not_active(self, catalog):
        client = TestClient(make_service(catalog, cache=None).app)

        response = client.get("/cache")

        assert response.status_code == 404
        assert response.text == "Cache not active"

    def test_control_reports_not_active(self, catalog):
        client = TestClient(make_service(catalog, cache=None).app)

        response = client.post("/cache", params={"command": "flush"})

        assert response.status_code == 404

    def test_every_request_reaches_the_handler(self, catalog):
        client = TestClient(make_service(catalog, cache=None).app)

        with spy(catalog, "list_items") as list_items:
            client.get("/items")
            client.get("/items")

        assert list_items.await_count == 2

    def test_unreachable_redis_disables_caching(self, catalog):
        service = make_service(catalog, cache="100:1h", redis_host="nowhere.invalid")

        with patch.object(RedisStore, "open", new=AsyncMock(side_effect=CacheBackendError("redis", "unreachable"))):
            with TestClient(service.app) as client:
                assert client.get("/items").status_code == 200
                response = client.get("/cache")
                health = client.get("/health").json()

        assert response.status_code == 404
        assert health["dependencies"]["cache"] == "disabled"


class TestRepositoryRoutes:
    """Catalog routes and negotiation."""

    @pytest.fixture
    def client(self):
        catalog = CatalogClient(TestDataFactory.create_test_catalog())
        return TestClient(make_service(catalog, cache=None).app)

    def test_top_communities(self, client):
        communities = client.get("/communities/top-communities").json()

        assert [c["id"] for c in communities] == [1]

    def test_sub_communities_and_collections(self, client):
        assert [c["id"] for c in client.get("/communities/1/communities").json()] == [2]
        assert [c["id"] for c in client.get("/communities/2/collections").json()] == [10]

    def test_collection_items(self, client):
        items = client.get("/collections/10/items").json()

        assert [i["handle"] for i in items] == ["1721.1/100"]
        assert items[0]["link"] == "/items/100"

    def test_item_metadata_and_bitstreams(self, client):
        metadata = client.get("/items/100/metadata").json()
        bitstreams = client.get("/items/100/bitstreams").json()

        assert metadata[0]["key"] == "dc.title"
        assert bitstreams[0]["retrieveLink"] == "/bitstreams/1000/retrieve"
        assert "path" not in bitstreams[0]

    def test_bitstream_policy_as_xml(self, client):
        response = client.get("/bitstreams/1000/policy", headers=XML_HEADERS)

        assert "<policies>" in response.text
        assert "<resourcepolicy>" in response.text

    def test_handle_resolution(self, client):
        collection = client.get("/handle/1721.1/11").json()

        assert collection["type"] == "collection"
        assert collection["name"] == "Working Papers"

    def test_unknown_handle(self, client):
        response = client.get("/handle/1721.1/404")

        assert response.status_code == 404
        assert response.text == "No such handle: 1721.1/404"

    def test_retrieve_without_assets_is_forbidden(self, client):
        response = client.get("/bitstreams/1000/retrieve")

        assert response.status_code == 403

    def test_unknown_path(self, client):
        response = client.get("/mama")

        assert response.status_code == 404
        assert response.text == "No such page"
