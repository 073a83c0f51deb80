from __future__ import annotations

import asyncio

import anyio
import httpx
import jwt
import pytest

from app.api.errors import AuthError, ConfigurationError, MalformedResponseError, UpstreamError
from app.enums import StoreEnvironment
from app.storekit.client import (
    FetchAttempt,
    sandbox_fallback_reason,
    signal_bad_request_sandbox_message,
    signal_conflict_sandbox_code,
    signal_environment_hint,
    signal_not_found,
    signal_status_21007,
)
from tests.utils import PROD_URL, SANDBOX_URL, status_body

OK_BODY = status_body(({"productId": "p1", "expiresDate": 1}, None))


class _Recorder:
    """MockTransport handler that answers per host and records every request."""

    def __init__(self, production, sandbox=None) -> None:
        self.responses = {"prod.storekit.test": production, "sandbox.storekit.test": sandbox}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses[request.url.host]
        if response is None:
            raise AssertionError(f"unexpected request to {request.url}")
        return response

    @property
    def hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]


def _fetch(client, original_transaction_id: str = "1000"):
    return asyncio.run(client.get_all_subscription_statuses(original_transaction_id))


def test_production_success(make_client):
    handler = _Recorder(httpx.Response(200, json=OK_BODY))

    result = _fetch(make_client(handler))

    assert result.environment == StoreEnvironment.production
    assert result.fallback_reason is None
    assert result.payload == OK_BODY
    assert handler.hosts == ["prod.storekit.test"]
    request = handler.requests[0]
    assert str(request.url) == f"{PROD_URL}/inApps/v1/subscriptions/1000"
    token = request.headers["Authorization"].removeprefix("Bearer ")
    assert jwt.get_unverified_header(token)["alg"] == "ES256"


def test_transaction_id_is_path_escaped(make_client):
    handler = _Recorder(httpx.Response(200, json=OK_BODY))

    _fetch(make_client(handler), "a/b c")

    assert handler.requests[0].url.raw_path == b"/inApps/v1/subscriptions/a%2Fb%20c"


def test_production_404_falls_back_to_sandbox(make_client):
    handler = _Recorder(
        httpx.Response(404, json={"errorCode": 4040010, "errorMessage": "Transaction id not found."}),
        httpx.Response(200, json=OK_BODY),
    )

    result = _fetch(make_client(handler))

    assert result.environment == StoreEnvironment.sandbox
    assert result.fallback_reason == "4040010"
    assert result.payload == OK_BODY
    assert handler.hosts == ["prod.storekit.test", "sandbox.storekit.test"]
    assert str(handler.requests[1].url).startswith(SANDBOX_URL)


def test_empty_404_reason_is_not_found(make_client):
    handler = _Recorder(httpx.Response(404), httpx.Response(200, json=OK_BODY))

    assert _fetch(make_client(handler)).fallback_reason == "not_found"


@pytest.mark.parametrize(
    ("status_code", "body", "reason"),
    [
        (200, {"status": 21007}, "status_21007"),
        (400, {"status": "21007"}, "status_21007"),
        (200, {"data": [{"lastTransactions": [{"environment": "Sandbox"}]}]}, "env_hint"),
        (409, {"errorCode": "SandboxTransaction"}, "SandboxTransaction"),
        (400, {"errorMessage": "Use the sandbox environment"}, "bad_request_sandbox_hint"),
        (400, {"errorCodeString": "SANDBOX_ONLY"}, "bad_request_sandbox_hint"),
    ],
)
def test_sandbox_signals_trigger_fallback(make_client, status_code, body, reason):
    handler = _Recorder(httpx.Response(status_code, json=body), httpx.Response(200, json=OK_BODY))

    result = _fetch(make_client(handler))

    assert result.environment == StoreEnvironment.sandbox
    assert result.fallback_reason == reason


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_credentials_never_fall_back(make_client, status_code):
    # Even with a sandbox hint in the body.
    handler = _Recorder(httpx.Response(status_code, json={"environment": "Sandbox"}))

    with pytest.raises(AuthError) as exc:
        _fetch(make_client(handler))

    assert exc.value.error == "APPLE_AUTH_FAILED"
    assert exc.value.status_code == 500
    assert handler.hosts == ["prod.storekit.test"]


def test_rejected_credentials_drop_cached_token(make_client):
    client = make_client(_Recorder(httpx.Response(401)))
    first = client.signer.token()

    with pytest.raises(AuthError):
        _fetch(client)

    assert client.signer._token is None
    assert client.signer.token() != first


def test_both_environments_fail(make_client):
    handler = _Recorder(
        httpx.Response(404, json={"errorCode": 4040010}),
        httpx.Response(500, text="sandbox exploded"),
    )

    with pytest.raises(UpstreamError) as exc:
        _fetch(make_client(handler))

    assert exc.value.error == "UPSTREAM_ERROR"
    assert [a[:2] for a in exc.value.attempts] == [("production", 404), ("sandbox", 500)]
    assert exc.value.attempts[1][2] == "sandbox exploded"


def test_production_error_without_signal(make_client):
    handler = _Recorder(httpx.Response(500, text="x" * 2000))

    with pytest.raises(UpstreamError) as exc:
        _fetch(make_client(handler))

    assert handler.hosts == ["prod.storekit.test"]
    assert len(exc.value.attempts[0][2]) == 500


def test_sandbox_only_skips_production(make_client):
    handler = _Recorder(None, httpx.Response(200, json=OK_BODY))

    result = _fetch(make_client(handler, sandbox_only=True))

    assert result.environment == StoreEnvironment.sandbox
    assert result.fallback_reason == "configured"
    assert handler.hosts == ["sandbox.storekit.test"]


def test_non_json_success_is_malformed(make_client):
    handler = _Recorder(httpx.Response(200, text="<html>"))

    with pytest.raises(MalformedResponseError):
        _fetch(make_client(handler))


def test_request_timeout(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamError) as exc:
        _fetch(make_client(handler))

    assert exc.value.error == "UPSTREAM_TIMEOUT"


def test_connection_error(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamError) as exc:
        _fetch(make_client(handler))

    assert exc.value.error == "UPSTREAM_ERROR"


def test_overall_deadline(make_client):
    async def handler(request: httpx.Request) -> httpx.Response:
        await anyio.sleep(5)
        return httpx.Response(200, json=OK_BODY)

    with pytest.raises(UpstreamError) as exc:
        _fetch(make_client(handler, deadline_seconds=0.05))

    assert exc.value.error == "UPSTREAM_TIMEOUT"


def test_missing_credentials_make_no_request(make_client):
    handler = _Recorder(None)

    with pytest.raises(ConfigurationError):
        _fetch(make_client(handler, key_id=None))

    assert handler.requests == []


# ============================================================
# Individual signals
# ============================================================


def _attempt(status_code: int, body=None) -> FetchAttempt:
    return FetchAttempt(environment=StoreEnvironment.production, status_code=status_code, body=body)


def test_signal_status_21007():
    assert signal_status_21007(_attempt(200, {"status": 21007})) == "status_21007"
    assert signal_status_21007(_attempt(200, {"status": 0})) is None
    assert signal_status_21007(_attempt(200, {"status": "abc"})) is None
    assert signal_status_21007(_attempt(200, None)) is None


def test_signal_environment_hint_searches_nested_keys():
    body = {"data": [{"lastTransactions": [{"meta": {"environment": "Sandbox"}}]}]}

    assert signal_environment_hint(_attempt(400, body)) == "env_hint"
    assert signal_environment_hint(_attempt(200, {"environment": "Production"})) is None
    assert signal_environment_hint(_attempt(200, {"note": "sandbox"})) is None


def test_signal_not_found():
    assert signal_not_found(_attempt(404, {"errorCode": 4040010})) == "4040010"
    assert signal_not_found(_attempt(404, "not json")) == "not_found"
    assert signal_not_found(_attempt(400, {"errorCode": 4040010})) is None


def test_signal_conflict_sandbox_code():
    assert signal_conflict_sandbox_code(_attempt(409, {"errorCode": "SandboxOnly"})) == "SandboxOnly"
    assert signal_conflict_sandbox_code(_attempt(409, {"errorCode": "Conflict"})) is None
    assert signal_conflict_sandbox_code(_attempt(400, {"errorCode": "SandboxOnly"})) is None


def test_signal_bad_request_sandbox_message():
    hit = _attempt(400, {"message": "receipt is from the Sandbox"})
    assert signal_bad_request_sandbox_message(hit) == "bad_request_sandbox_hint"
    assert signal_bad_request_sandbox_message(_attempt(400, {"errorMessage": "bad id"})) is None


def test_signal_priority_order():
    # 21007 wins over the 404 signal.
    attempt = _attempt(404, {"status": 21007, "errorCode": 4040010})

    assert sandbox_fallback_reason(attempt) == "status_21007"


def test_no_signal_on_plain_server_error():
    assert sandbox_fallback_reason(_attempt(500, {"errorMessage": "boom"})) is None


@pytest.mark.parametrize("status_code", [401, 403])
def test_sandbox_rejected_credentials_are_auth_failure(make_client, status_code):
    client = make_client(
        _Recorder(httpx.Response(404, json={"errorCode": 4040010}), httpx.Response(status_code))
    )
    first = client.signer.token()

    with pytest.raises(AuthError) as exc:
        _fetch(client)

    assert exc.value.error == "APPLE_AUTH_FAILED"
    assert exc.value.status_code == 500
    assert client.signer._token is None
    assert client.signer.token() != first
