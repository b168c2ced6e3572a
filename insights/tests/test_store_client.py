"""Tests for the Supabase PostgREST client."""

import httpx
import pytest

from insights.common.store_client import StoreError, SupabaseRestClient, create_store_client


class TestSelect:
    @pytest.mark.asyncio
    async def test_select_builds_path_headers_and_params(self, make_store):
        store = make_store([{"id": 1}])
        client = store.client()

        rows = await client.select(
            "interview_messages",
            [("created_at", "gte.2024-01-01"), ("created_at", "lte.2024-12-31"), ("limit", 5)],
        )
        await client.close()

        assert rows == [{"id": 1}]
        request = store.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/interview_messages"
        assert request.url.params["select"] == "*"
        assert request.url.params.get_list("created_at") == ["gte.2024-01-01", "lte.2024-12-31"]
        assert request.url.params["limit"] == "5"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    async def test_select_accepts_dict_params(self, make_store):
        store = make_store([])
        client = store.client()
        await client.select("experts", {"id": "eq.42"}, columns="id,full_name")
        assert store.requests[0].url.params["id"] == "eq.42"
        assert store.requests[0].url.params["select"] == "id,full_name"

    @pytest.mark.asyncio
    async def test_object_payload_is_wrapped_and_null_is_empty(self, make_store):
        store = make_store({"id": 7}, None)
        client = store.client()
        assert await client.select("experts", {}) == [{"id": 7}]
        assert await client.select("experts", {}) == []


class TestRpc:
    @pytest.mark.asyncio
    async def test_rpc_posts_json_arguments(self, make_store):
        store = make_store([{"id": "e1"}])
        client = store.client()

        rows = await client.rpc("search_experts_company_role", {"p_companies": ["CDW"], "p_limit": 3})

        request = store.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/v1/rpc/search_experts_company_role"
        assert store.bodies[0] == {"p_companies": ["CDW"], "p_limit": 3}
        assert rows == [{"id": "e1"}]


class TestErrors:
    @pytest.mark.asyncio
    async def test_http_error_status_raises_store_error(self, make_store):
        store = make_store(httpx.Response(400, json={"message": "function does not exist", "code": "42883"}))
        client = store.client()

        with pytest.raises(StoreError) as exc_info:
            await client.rpc("missing_fn", {})

        err = exc_info.value
        assert err.status_code == 400
        assert err.operation == "rpc missing_fn"
        assert "function does not exist" in err.message

    @pytest.mark.asyncio
    async def test_connection_error_raises_store_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = SupabaseRestClient("https://store.test", "k", transport=httpx.MockTransport(handler))
        with pytest.raises(StoreError, match="connection refused"):
            await client.select("interview_messages", {})

    @pytest.mark.asyncio
    async def test_non_json_body_raises_store_error(self, make_store):
        store = make_store(httpx.Response(200, text="<html>gateway</html>"))
        client = store.client()
        with pytest.raises(StoreError, match="invalid JSON"):
            await client.select("interview_messages", {})

    @pytest.mark.asyncio
    async def test_unexpected_payload_type(self, make_store):
        store = make_store(httpx.Response(200, json=42))
        client = store.client()
        with pytest.raises(StoreError, match="unexpected payload"):
            await client.select("interview_messages", {})


class TestHealthAndFactory:
    @pytest.mark.asyncio
    async def test_health_check(self, make_store):
        assert await make_store({}).client().health_check() is True
        assert await make_store(httpx.Response(503, text="down")).client().health_check() is False

    def test_factory_requires_url_and_key(self):
        assert create_store_client("", "key") is None
        assert create_store_client("https://x.supabase.co", None) is None
        client = create_store_client("https://x.supabase.co/", "key", timeout=5)
        assert client.rest_url == "https://x.supabase.co/rest/v1"
        assert client.timeout == 5
