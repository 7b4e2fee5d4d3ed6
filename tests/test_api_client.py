import json

import httpx
import pytest

from core.settings import BackendSettings
from services.api_client import ApiError, SupabaseRestClient


SETTINGS = BackendSettings(supabase_url="https://demo.supabase.co", anon_key="anon-key", retry_attempts=3)


def make_client(handler, **kwargs):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    client = SupabaseRestClient(
        SETTINGS,
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        **kwargs,
    )
    return client, delays


@pytest.mark.asyncio
async def test_create_posts_json_to_table_endpoint():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json=[{"id": 1, "name": "A"}])

    client, _ = make_client(handler)
    result = await client.create("bookings", {"name": "A"})

    assert result == [{"id": 1, "name": "A"}]
    [request] = seen
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/bookings"
    assert json.loads(request.content) == {"name": "A"}
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_update_and_delete_filter_by_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    client, _ = make_client(handler, access_token=lambda: "user-jwt")
    assert await client.update("fleet", 7, {"status": "service"}) is None
    await client.delete("fleet", 7)

    assert [r.method for r in seen] == ["PATCH", "DELETE"]
    assert all(r.url.params["id"] == "eq.7" for r in seen)
    assert seen[0].headers["Authorization"] == "Bearer user-jwt"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, json={"message": "relation \"unicorns\" does not exist"})

    client, delays = make_client(handler)
    with pytest.raises(ApiError) as excinfo:
        await client.create("unicorns", {})

    assert excinfo.value.code == "NOT_FOUND"
    assert excinfo.value.status == 404
    assert "unicorns" in excinfo.value.message
    assert len(calls) == 1
    assert delays == []


@pytest.mark.asyncio
async def test_server_errors_back_off_and_retry():
    responses = [httpx.Response(503), httpx.Response(429), httpx.Response(201, json={"id": 5})]

    def handler(request):
        return responses.pop(0)

    client, delays = make_client(handler)
    assert await client.create("transactions", {"amount": 10}) == {"id": 5}
    assert delays == [2, 4]


@pytest.mark.asyncio
async def test_network_errors_surface_after_last_attempt():
    def handler(request):
        raise httpx.ConnectError("no route to host", request=request)

    client, delays = make_client(handler)
    with pytest.raises(ApiError) as excinfo:
        await client.delete("bookings", 3)

    assert excinfo.value.code == "NETWORK_ERROR"
    assert delays == [2, 4]


@pytest.mark.asyncio
async def test_unauthorized_uses_default_message_without_body():
    client, _ = make_client(lambda request: httpx.Response(401, text=""))
    with pytest.raises(ApiError) as excinfo:
        await client.get("bookings")
    assert excinfo.value.code == "UNAUTHORIZED"
    assert excinfo.value.message == "Authentication required"
