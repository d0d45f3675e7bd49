"""Tests for the opencode HTTP client, retry helper and event stream."""

from __future__ import annotations

import asyncio
import importlib
import json

import httpx
import pytest

from orch.errors import HeadlessRequestError, OperationCancelledError, SessionNotFoundError
from orch.headless.client import OpenCodeClient
from orch.headless.models import ModelRef, PromptRequest, parse_model, parse_session_status
from orch.headless.retry import retry
from orch.runtime.cancellation import CancellationToken

retry_mod = importlib.import_module("orch.headless.retry")


@pytest.fixture(autouse=True)
def fast_backoff(monkeypatch):
    monkeypatch.setattr(retry_mod, "DEFAULT_INITIAL_DELAY", 0.0)


def _client(handler) -> OpenCodeClient:
    return OpenCodeClient(4096, transport=httpx.MockTransport(handler))


class Flaky:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise HeadlessRequestError(f"boom {self.calls}")
        return "ok"


# -- retry -------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("k", [1, 2, 5])
async def test_retry_succeeds_on_kth_attempt(k):
    fn = Flaky(failures=k - 1)
    delays: list[float] = []

    async def sleep(d: float) -> None:
        delays.append(d)

    assert await retry(fn, attempts=5, initial_delay=0.5, sleep=sleep) == "ok"
    assert fn.calls == k
    assert delays == [0.5, 1.0, 2.0, 4.0][: k - 1]


@pytest.mark.asyncio
async def test_retry_exhausts_and_raises_last_error():
    fn = Flaky(failures=100)

    async def sleep(d: float) -> None:
        return None

    with pytest.raises(HeadlessRequestError, match="boom 3"):
        await retry(fn, attempts=3, sleep=sleep)
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_retry_backoff_is_capped():
    fn = Flaky(failures=100)
    delays: list[float] = []

    async def sleep(d: float) -> None:
        delays.append(d)

    with pytest.raises(HeadlessRequestError):
        await retry(fn, attempts=8, initial_delay=0.5, max_delay=10.0, sleep=sleep)
    assert delays == [0.5, 1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


@pytest.mark.asyncio
async def test_retry_cancelled_token_makes_no_attempt():
    fn = Flaky(failures=0)
    token = CancellationToken()
    token.cancel("shutdown")
    with pytest.raises(OperationCancelledError, match="shutdown"):
        await retry(fn, attempts=3, cancel=token)
    assert fn.calls == 0


@pytest.mark.asyncio
async def test_retry_never_sleeps_past_deadline():
    fn = Flaky(failures=100)
    token = CancellationToken.with_timeout(0.05)
    delays: list[float] = []

    async def sleep(d: float) -> None:
        delays.append(d)
        await asyncio.sleep(d)

    with pytest.raises(OperationCancelledError):
        await retry(fn, attempts=5, initial_delay=5.0, cancel=token, sleep=sleep)
    assert delays and all(d <= 0.05 for d in delays)
    assert fn.calls == 1


# -- models ------------------------------------------------------------------


def test_parse_model():
    assert parse_model("anthropic/claude-opus-4-5") == ModelRef("anthropic", "claude-opus-4-5")
    assert parse_model("openrouter/meta/llama") == ModelRef("openrouter", "meta/llama")
    assert parse_model("opus") is None
    assert parse_model("") is None


def test_prompt_payload_omits_unset_model_and_variant():
    assert PromptRequest.text("hi").to_payload() == {"parts": [{"type": "text", "text": "hi"}]}


def test_prompt_payload_variant_is_top_level():
    payload = PromptRequest.text("hi", model=ModelRef("openai", "gpt-5"), variant="high").to_payload()
    assert payload["model"] == {"providerID": "openai", "modelID": "gpt-5"}
    assert payload["variant"] == "high"
    assert "variant" not in payload["model"]


def test_parse_session_status_accepts_both_shapes():
    assert parse_session_status('{"a": "busy", "b": "idle"}') == {"a": "busy", "b": "idle"}
    assert parse_session_status({"a": {"type": "retry", "attempt": 2}}) == {"a": "retry"}
    with pytest.raises(ValueError):
        parse_session_status("[1, 2]")


# -- client ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health_and_server_running():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/global/health"
        return httpx.Response(200, json={"healthy": True, "version": "1.2.3"})

    client = _client(handler)
    health = await client.health()
    assert health.healthy and health.version == "1.2.3"
    assert await client.is_server_running()


@pytest.mark.asyncio
async def test_server_not_running_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert not await _client(handler).is_server_running()


@pytest.mark.asyncio
async def test_server_running_for_worktree():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/global/health":
            return httpx.Response(200, json={"healthy": True})
        return httpx.Response(200, json={"id": "p1", "worktree": "/work/a"})

    client = _client(handler)
    assert await client.is_server_running_for_worktree("/work/a")
    assert not await client.is_server_running_for_worktree("/work/b")


@pytest.mark.asyncio
async def test_create_session_sends_directory_header_and_retries():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if len(seen) < 3:
            return httpx.Response(503, text="starting")
        return httpx.Response(201, json={"id": "ses_1", "title": "ISSUE-1#r1"})

    session = await _client(handler).create_session("ISSUE-1#r1", directory="/work/tree")
    assert session.id == "ses_1"
    assert len(seen) == 3
    assert all(r.headers["X-OpenCode-Directory"] == "/work/tree" for r in seen)
    assert json.loads(seen[0].content) == {"title": "ISSUE-1#r1"}


@pytest.mark.asyncio
async def test_create_session_gives_up_after_five_attempts():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(500, text="nope")

    with pytest.raises(HeadlessRequestError) as excinfo:
        await _client(handler).create_session("t")
    assert calls == 5
    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "nope"


@pytest.mark.asyncio
async def test_send_message_async_payload_and_attempts():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/session/ses_1/prompt_async"
        bodies.append(json.loads(request.content))
        return httpx.Response(500) if len(bodies) < 3 else httpx.Response(204)

    await _client(handler).send_message_async(
        "ses_1", "do it", directory="/w", model=parse_model("anthropic/claude-opus-4-5"), variant="max"
    )
    assert len(bodies) == 3
    assert bodies[0] == {
        "parts": [{"type": "text", "text": "do it"}],
        "model": {"providerID": "anthropic", "modelID": "claude-opus-4-5"},
        "variant": "max",
    }


@pytest.mark.asyncio
async def test_send_message_async_stops_after_three_attempts():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(502)

    with pytest.raises(HeadlessRequestError):
        await _client(handler).send_message_async("ses_1", "x")
    assert calls == 3


@pytest.mark.asyncio
async def test_send_message_prompt_queues_without_model():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        assert request.headers["X-OpenCode-Directory"] == "/w"
        return httpx.Response(204)

    await _client(handler).send_message_prompt("ses_1", "follow up", directory="/w")
    assert bodies == [{"parts": [{"type": "text", "text": "follow up"}]}]


@pytest.mark.asyncio
async def test_send_message_waits_for_reply():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/session/ses_1/message"
        return httpx.Response(
            200,
            json={"info": {"id": "m2", "role": "assistant"}, "parts": [{"type": "text", "text": "done"}]},
        )

    message = await _client(handler).send_message("ses_1", "hello")
    assert message.info.role == "assistant"
    assert message.parts[0].text == "done"


@pytest.mark.asyncio
async def test_get_session_404_is_session_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="missing")

    with pytest.raises(SessionNotFoundError):
        await _client(handler).get_session("ses_x")


@pytest.mark.asyncio
async def test_session_ids_and_messages():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/session":
            return httpx.Response(200, json=[{"id": "a"}, {"id": "b", "parentID": "a"}])
        return httpx.Response(
            200,
            json=[{"info": {"role": "user"}, "parts": [{"type": "text", "text": "hi"}]}],
        )

    client = _client(handler)
    assert await client.get_session_ids() == {"a", "b"}
    messages = await client.get_messages("a")
    assert messages[0].info.role == "user"


@pytest.mark.asyncio
async def test_single_session_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ses_1": {"type": "busy"}})

    client = _client(handler)
    assert await client.get_single_session_status("ses_1") == ("busy", True)
    assert await client.get_single_session_status("ses_2") == ("idle", False)


@pytest.mark.asyncio
async def test_unparseable_status_raises_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not json")

    with pytest.raises(HeadlessRequestError):
        await _client(handler).get_session_status()


@pytest.mark.asyncio
async def test_abort_non_success_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        return httpx.Response(409, text="not running")

    with pytest.raises(HeadlessRequestError, match="409"):
        await _client(handler).abort("ses_1")


@pytest.mark.asyncio
async def test_providers_and_agent_model():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/provider":
            return httpx.Response(
                200,
                json={
                    "all": [{"id": "anthropic", "name": "Anthropic", "models": [{"id": "claude-opus-4-5", "variants": ["high", "max"]}]}],
                    "thinking": [],
                },
            )
        return httpx.Response(200, json={"model": "openai/gpt-5", "agent": {"build": {"model": "anthropic/claude-opus-4-5", "variant": "high"}}})

    client = _client(handler)
    providers = await client.get_providers()
    assert providers.all[0].models[0].variants == ["high", "max"]
    assert await client.get_agent_model() == ("anthropic/claude-opus-4-5", "high")
    assert await client.get_agent_model("plan") == ("openai/gpt-5", "")


# -- events ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_event_stream_skips_malformed_records():
    body = (
        'data: {"type": "session.updated", "properties": {"id": "a"}}\n\n'
        "data: {not json\n\n"
        ": keepalive\n\n"
        'data: {"type": "message.part.updated", "properties": {}}\n\n'
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/event"
        assert request.headers["Accept"] == "text/event-stream"
        return httpx.Response(200, content=body.encode(), headers={"Content-Type": "text/event-stream"})

    async with await _client(handler).subscribe_events() as events:
        received = [event.type async for event in events]
    assert received == ["session.updated", "message.part.updated"]


@pytest.mark.asyncio
async def test_event_subscription_rejects_non_200():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(HeadlessRequestError):
        await _client(handler).subscribe_events()


@pytest.mark.asyncio
async def test_event_subscription_closes_on_cancel():
    class Endless(httpx.AsyncByteStream):
        async def __aiter__(self):
            while True:
                yield b'data: {"type": "tick"}\n\n'
                await asyncio.sleep(0.01)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=Endless())

    token = CancellationToken()
    subscription = await _client(handler).subscribe_events(cancel=token)
    first = await subscription.__anext__()
    assert first.type == "tick"
    token.cancel()
    await asyncio.wait_for(_drain(subscription), timeout=2.0)
    assert subscription.closed


async def _drain(subscription) -> None:
    async for _ in subscription:
        pass


@pytest.mark.asyncio
async def test_event_stream_ends_after_full_queue_drains():
    body = "".join(f'data: {{"type": "tick", "properties": {{"n": {i}}}}}\n\n' for i in range(100))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body.encode())

    subscription = await _client(handler).subscribe_events()
    # let the reader fill the queue before anyone consumes
    await asyncio.sleep(0.2)

    async def collect() -> list[int]:
        return [event.properties["n"] async for event in subscription]

    received = await asyncio.wait_for(collect(), timeout=2.0)
    assert received == list(range(100))
    assert subscription.closed
    assert subscription._client.is_closed
    await subscription.close()
