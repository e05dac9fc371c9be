"""Tests for the Slack Web API client."""
import httpx
import pytest
import respx

from app.slack.client import ChannelInfo, SlackWebClient, TTLCache

BASE_URL = "https://slack.test/api"


@pytest.mark.asyncio
async def test_resolve_channel_name_is_cached():
    async with respx.mock(base_url=BASE_URL) as respx_mock:
        route = respx_mock.get("/conversations.info").mock(
            return_value=httpx.Response(
                200,
                json={
                    "ok": True,
                    "channel": {
                        "id": "C1",
                        "name": "eng",
                        "is_channel": True,
                        "topic": {"value": "Deploys"},
                        "purpose": {"value": ""},
                    },
                },
            )
        )
        client = SlackWebClient("xoxb-test", base_url=BASE_URL)

        first = await client.resolve_channel_name("C1")
        second = await client.resolve_channel_name("C1")

        assert first == ChannelInfo(name="eng", type="channel", topic="Deploys", purpose=None)
        assert second is first
        assert route.call_count == 1
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer xoxb-test"
        assert request.url.params["channel"] == "C1"


@pytest.mark.asyncio
async def test_channel_types():
    async with respx.mock(base_url=BASE_URL) as respx_mock:
        respx_mock.get("/conversations.info", params={"channel": "D1"}).mock(
            return_value=httpx.Response(200, json={"ok": True, "channel": {"is_im": True}})
        )
        respx_mock.get("/conversations.info", params={"channel": "G1"}).mock(
            return_value=httpx.Response(
                200, json={"ok": True, "channel": {"is_mpim": True, "is_private": True}}
            )
        )
        respx_mock.get("/conversations.info", params={"channel": "P1"}).mock(
            return_value=httpx.Response(
                200, json={"ok": True, "channel": {"is_channel": True, "is_private": True}}
            )
        )
        client = SlackWebClient("xoxb-test", base_url=BASE_URL)

        assert (await client.resolve_channel_name("D1")).type == "im"
        assert (await client.resolve_channel_name("G1")).type == "mpim"
        assert (await client.resolve_channel_name("P1")).type == "group"


@pytest.mark.asyncio
async def test_lookup_errors_return_none():
    async with respx.mock(base_url=BASE_URL) as respx_mock:
        respx_mock.get("/conversations.info").mock(
            return_value=httpx.Response(200, json={"ok": False, "error": "channel_not_found"})
        )
        respx_mock.get("/users.info").mock(return_value=httpx.Response(500))
        client = SlackWebClient("xoxb-test", base_url=BASE_URL)

        assert await client.resolve_channel_name("C404") is None
        assert await client.resolve_user_name("U404") is None


@pytest.mark.asyncio
async def test_resolve_user_name_prefers_display_name():
    async with respx.mock(base_url=BASE_URL) as respx_mock:
        respx_mock.get("/users.info", params={"user": "U1"}).mock(
            return_value=httpx.Response(
                200,
                json={
                    "ok": True,
                    "user": {
                        "name": "alice.smith",
                        "real_name": "Alice Smith",
                        "profile": {"display_name": "alice"},
                    },
                },
            )
        )
        respx_mock.get("/users.info", params={"user": "U2"}).mock(
            return_value=httpx.Response(
                200,
                json={"ok": True, "user": {"name": "bob", "profile": {"display_name": ""}}},
            )
        )
        client = SlackWebClient("xoxb-test", base_url=BASE_URL)

        assert (await client.resolve_user_name("U1")).name == "alice"
        assert (await client.resolve_user_name("U2")).name == "bob"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires_and_evicts_least_recently_used():
    clock = FakeClock()
    cache = TTLCache(maxsize=2, ttl_seconds=60, clock=clock)

    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert len(cache) == 2

    clock.now += 60
    assert cache.get("a") is None
    assert cache.get("c") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_expired_channel_lookup_is_refetched():
    clock = FakeClock()
    async with respx.mock(base_url=BASE_URL) as respx_mock:
        route = respx_mock.get("/conversations.info").mock(
            return_value=httpx.Response(
                200, json={"ok": True, "channel": {"name": "eng", "is_channel": True}}
            )
        )
        client = SlackWebClient(
            "xoxb-test", base_url=BASE_URL, cache_ttl_seconds=300, clock=clock
        )

        await client.resolve_channel_name("C1")
        clock.now += 299
        await client.resolve_channel_name("C1")
        assert route.call_count == 1

        clock.now += 1
        info = await client.resolve_channel_name("C1")
        assert route.call_count == 2
        assert info.name == "eng"


@pytest.mark.asyncio
async def test_user_lookup_cache_is_bounded():
    async with respx.mock(base_url=BASE_URL) as respx_mock:
        route = respx_mock.get("/users.info").mock(
            return_value=httpx.Response(200, json={"ok": True, "user": {"name": "someone"}})
        )
        client = SlackWebClient("xoxb-test", base_url=BASE_URL, cache_maxsize=2)

        for user_id in ("U1", "U2", "U3"):
            await client.resolve_user_name(user_id)
        assert route.call_count == 3

        await client.resolve_user_name("U3")
        assert route.call_count == 3

        await client.resolve_user_name("U1")
        assert route.call_count == 4
