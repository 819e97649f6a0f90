import httpx
import openai
import pytest

from services.realtime.credential_pool import CredentialPool
from services.realtime.errors import InferenceError, QuotaExhaustedError, ThrottledError
from services.realtime.inference_client import FailureKind, InferenceClient, build_inputs, classify_failure

MARKER = "daily_quota_exhausted"


def _rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    response = httpx.Response(429, request=request)
    return openai.RateLimitError("Rate limit reached for requests", response=response, body=None)


def test_pool_requires_a_key():
    with pytest.raises(ValueError):
        CredentialPool([])


def test_pool_rotation_wraps(scripted):
    pool = CredentialPool(["a", "b", "c"], scripted().factory)
    assert pool.current() == "a"
    assert [pool.rotate() for _ in range(4)] == ["b", "c", "a", "b"]
    assert pool.cursor == 1


def test_pool_caches_one_client_per_key(scripted):
    model = scripted()
    pool = CredentialPool(["a", "b"], model.factory)
    assert pool.client_for("a") is pool.client_for("a")
    pool.client_for("b")
    assert model.created == ["a", "b"]


@pytest.mark.asyncio
async def test_pool_aclose_closes_clients(scripted):
    pool = CredentialPool(["a"], scripted().factory)
    client = pool.client_for("a")
    await pool.aclose()
    assert client.closed is True


def test_classify_failure():
    assert classify_failure(_rate_limit_error(), MARKER) is FailureKind.SOFT_LIMIT
    assert classify_failure(RuntimeError("429 Too Many Requests"), MARKER) is FailureKind.SOFT_LIMIT
    assert classify_failure(RuntimeError("Resource has been exhausted"), MARKER) is FailureKind.SOFT_LIMIT
    assert classify_failure(RuntimeError("DAILY_QUOTA_EXHAUSTED: quota spent"), MARKER) is FailureKind.FATAL_QUOTA
    assert classify_failure(ValueError("bad request"), MARKER) is FailureKind.OTHER


def test_build_inputs_orders_prompt_then_frames():
    inputs = build_inputs("prompt", ["AAA", "BBB"])
    content = inputs[0]["content"]
    assert content[0] == {"type": "input_text", "text": "prompt"}
    assert [part["image_url"] for part in content[1:]] == [
        "data:image/jpeg;base64,AAA",
        "data:image/jpeg;base64,BBB",
    ]


@pytest.mark.asyncio
async def test_generate_returns_text_with_current_key(scripted):
    model = scripted("ok")
    pool = CredentialPool(["a", "b"], model.factory)
    client = InferenceClient(pool, model="test-model", daily_quota_marker=MARKER)

    assert await client.generate("prompt", ["AAA"]) == "ok"
    assert model.keys_used == ["a"]
    assert model.calls[0][1]["model"] == "test-model"
    assert pool.cursor == 0


@pytest.mark.asyncio
async def test_soft_limit_rotates_and_retries(scripted):
    model = scripted(_rate_limit_error(), "ok")
    pool = CredentialPool(["a", "b", "c"], model.factory)
    client = InferenceClient(pool, model="m", daily_quota_marker=MARKER)

    assert await client.generate("prompt", []) == "ok"
    assert model.keys_used == ["a", "b"]
    assert pool.cursor == 1


@pytest.mark.asyncio
async def test_gives_up_after_pool_size_attempts(scripted):
    model = scripted(*[RuntimeError("429 rate limit") for _ in range(4)])
    pool = CredentialPool(["a", "b", "c"], model.factory)
    client = InferenceClient(pool, model="m", daily_quota_marker=MARKER)

    with pytest.raises(ThrottledError):
        await client.generate("prompt", [])
    assert model.keys_used == ["a", "b", "c"]
    # one step per error, wrapped back to the start
    assert pool.cursor == 0
    assert len(model.script) == 1


@pytest.mark.asyncio
async def test_daily_quota_is_fatal_and_not_retried(scripted):
    model = scripted(RuntimeError("daily_quota_exhausted for this project"), "unused")
    pool = CredentialPool(["a", "b"], model.factory)
    client = InferenceClient(pool, model="m", daily_quota_marker=MARKER)

    with pytest.raises(QuotaExhaustedError):
        await client.generate("prompt", [])
    assert model.keys_used == ["a"]
    assert pool.cursor == 0


@pytest.mark.asyncio
async def test_other_errors_propagate_without_retry(scripted):
    model = scripted(ValueError("invalid image"), "unused")
    pool = CredentialPool(["a", "b"], model.factory)
    client = InferenceClient(pool, model="m", daily_quota_marker=MARKER)

    with pytest.raises(InferenceError) as info:
        await client.generate("prompt", [])
    assert not isinstance(info.value, (ThrottledError, QuotaExhaustedError))
    assert len(model.calls) == 1


def test_status_digits_in_message_are_not_a_rate_limit():
    error = ValueError("invalid image: payload of 4290 bytes could not be decoded")
    assert classify_failure(error, MARKER) is FailureKind.OTHER
    assert classify_failure(RuntimeError("Error code: 429 - slow down"), MARKER) is FailureKind.SOFT_LIMIT


@pytest.mark.asyncio
async def test_rotation_is_shared_between_clients_on_one_pool(scripted):
    model = scripted(_rate_limit_error(), "first", "second")
    pool = CredentialPool(["a", "b", "c"], model.factory)
    first = InferenceClient(pool, model="m", daily_quota_marker=MARKER)
    second = InferenceClient(pool, model="m", daily_quota_marker=MARKER)

    assert await first.generate("prompt", []) == "first"
    assert await second.generate("prompt", []) == "second"

    assert model.keys_used == ["a", "b", "b"]
    assert model.created == ["a", "b"]
    assert pool.cursor == 1
