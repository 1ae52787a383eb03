"""Tests for the shared retry policy and HTTP plumbing."""
import httpx
import pytest

from petflix.api.base import BaseApiClient, RetryPolicy, parse_retry_after
from petflix.core.config import RetryConfig


URL = "https://api.test/thing"


def make_client(router, clock, **policy):
    policy.setdefault("jitter", 0.0)
    return BaseApiClient(
        api_key="key",
        base_url="https://api.test",
        retry_policy=RetryPolicy(**policy),
        transport=router.transport(),
        sleep=clock.sleep,
    )


class TestRetryPolicy:
    def test_exponential_backoff(self):
        policy = RetryPolicy(base_delay=2.0, multiplier=2.0, max_delay=30.0, jitter=0.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        policy = RetryPolicy(base_delay=2.0, multiplier=10.0, max_delay=5.0, jitter=0.0)
        assert policy.delay_for(3) == 5.0

    def test_jitter_bounded(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.5)
        for _ in range(20):
            assert 1.0 <= policy.delay_for(1) <= 1.5

    def test_retry_after_wins(self):
        policy = RetryPolicy(max_delay=30.0)
        assert policy.delay_for(1, retry_after=7.0) == 7.0
        assert policy.delay_for(1, retry_after=120.0) == 30.0

    def test_from_config(self):
        policy = RetryPolicy.from_config(RetryConfig(max_attempts=5, base_delay=1.0))
        assert policy.max_attempts == 5
        assert policy.base_delay == 1.0

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_idempotent_statuses(self, status):
        assert RetryPolicy().is_retryable_status(status, idempotent=True)

    @pytest.mark.parametrize("status,expected", [(429, True), (500, False), (503, False), (400, False)])
    def test_non_idempotent_only_retries_429(self, status, expected):
        assert RetryPolicy().is_retryable_status(status, idempotent=False) is expected

    def test_connect_errors_always_retryable(self):
        policy = RetryPolicy()
        assert policy.is_retryable_exception(httpx.ConnectError("refused"), idempotent=False)
        assert policy.is_retryable_exception(httpx.ConnectTimeout("slow"), idempotent=False)

    def test_read_timeout_only_for_idempotent(self):
        policy = RetryPolicy()
        assert policy.is_retryable_exception(httpx.ReadTimeout("slow"), idempotent=True)
        assert not policy.is_retryable_exception(httpx.ReadTimeout("slow"), idempotent=False)


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("12") == 12.0

    def test_missing_or_garbage(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("soon") is None

    def test_past_http_date(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0


class TestRequest:
    async def test_retries_server_errors(self, router, clock):
        router.add("GET", "/thing", httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"ok": 1}))
        client = make_client(router, clock)

        response = await client._request("GET", URL, idempotent=True)

        assert response.status_code == 200
        assert len(router.calls("GET", "/thing")) == 3
        assert clock.sleeps == [2.0, 4.0]

    async def test_returns_last_error_when_exhausted(self, router, clock):
        router.add("GET", "/thing", httpx.Response(500))
        client = make_client(router, clock, max_attempts=2)

        response = await client._request("GET", URL, idempotent=True)

        assert response.status_code == 500
        assert len(router.calls("GET", "/thing")) == 2

    async def test_client_errors_not_retried(self, router, clock):
        router.add("GET", "/thing", httpx.Response(401))
        response = await make_client(router, clock)._request("GET", URL, idempotent=True)
        assert response.status_code == 401
        assert len(router.requests) == 1

    async def test_honors_retry_after(self, router, clock):
        router.add("POST", "/thing", httpx.Response(429, headers={"Retry-After": "9"}), httpx.Response(200))
        response = await make_client(router, clock)._request("POST", URL, idempotent=False)
        assert response.status_code == 200
        assert clock.sleeps == [9.0]

    async def test_non_idempotent_5xx_not_retried(self, router, clock):
        router.add("POST", "/thing", httpx.Response(502), httpx.Response(200))
        response = await make_client(router, clock)._request("POST", URL, idempotent=False)
        assert response.status_code == 502
        assert len(router.requests) == 1

    async def test_non_idempotent_read_timeout_raises(self, router, clock):
        router.add("POST", "/thing", httpx.ReadTimeout("no answer"), httpx.Response(200))
        with pytest.raises(httpx.ReadTimeout):
            await make_client(router, clock)._request("POST", URL, idempotent=False)
        assert len(router.requests) == 1

    async def test_non_idempotent_connect_error_retried(self, router, clock):
        router.add("POST", "/thing", httpx.ConnectError("refused"), httpx.Response(200))
        response = await make_client(router, clock)._request("POST", URL, idempotent=False)
        assert response.status_code == 200

    async def test_transport_error_after_last_attempt(self, router, clock):
        router.add("GET", "/thing", httpx.ReadError("reset"))
        with pytest.raises(httpx.ReadError):
            await make_client(router, clock)._request("GET", URL, idempotent=True)
        assert len(router.requests) == 3

    async def test_retry_disabled(self, router, clock):
        router.add("GET", "/thing", httpx.Response(503), httpx.Response(200))
        response = await make_client(router, clock)._request("GET", URL, idempotent=True, retry=False)
        assert response.status_code == 503
        assert clock.sleeps == []


class TestClientLifecycle:
    async def test_context_manager_closes(self, router, clock):
        router.add("GET", "/thing", httpx.Response(200))
        async with make_client(router, clock) as client:
            await client._request("GET", URL, idempotent=True)
            assert client._client is not None
        assert client._client is None

    def test_is_configured(self):
        assert BaseApiClient(api_key="k").is_configured
        assert not BaseApiClient().is_configured

    def test_error_body_redacted(self):
        client = BaseApiClient(api_key="vda_secret")
        response = httpx.Response(400, text="bad key vda_secret123")
        error = client._error_from_response(response, "create")
        assert "vda_secret123" not in error.details["response_body"]
        assert error.status_code == 400
        assert not error.recoverable
