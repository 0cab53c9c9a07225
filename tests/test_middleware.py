import pytest
import requests

from fluxcore.middleware import (
    RateLimitedTransport,
    RateLimiter,
    RateLimiterConfig,
    WWWAuthenticateFixer,
    limiter_for,
    replace_unquoted,
)

UNQUOTED = 'Bearer realm="https://quay.io/v2/auth",service="quay.io",scope=repository:foo/bar:pull'
QUOTED = 'Bearer realm="https://quay.io/v2/auth",service="quay.io",scope="repository:foo/bar:pull"'


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class _Recorder:
    def __init__(self, response=None):
        self.calls = []
        self.response = response

    def round_trip(self, request):
        self.calls.append(request)
        return self.response


def _response(auth_header):
    response = requests.Response()
    response.status_code = 401
    response.headers["WWW-Authenticate"] = auth_header
    return response


def _request(headers=None):
    return requests.Request("GET", "https://quay.io/v2/", headers=headers or {}).prepare()


def test_replace_unquoted_scope():
    assert replace_unquoted(UNQUOTED) == QUOTED


def test_replace_leaves_quoted_scope():
    assert replace_unquoted(QUOTED) == QUOTED


def test_fixer_quotes_bearer_header():
    fixer = WWWAuthenticateFixer(_Recorder(_response(UNQUOTED)))
    response = fixer.round_trip(_request())
    assert response.headers["WWW-Authenticate"] == QUOTED


def test_fixer_leaves_basic_header():
    header = 'Basic realm="registry",scope=x:y'
    fixer = WWWAuthenticateFixer(_Recorder(_response(header)))
    assert fixer.round_trip(_request()).headers["WWW-Authenticate"] == header


def test_fixer_remembers_bearer_token():
    recorder = _Recorder(_response(QUOTED))
    fixer = WWWAuthenticateFixer(recorder)
    fixer.round_trip(_request({"Authorization": "Bearer token"}))
    later = _request()
    fixer.round_trip(later)
    assert later.headers["Authorization"] == "Bearer token"


def test_fixer_adds_nothing_without_token():
    fixer = WWWAuthenticateFixer(_Recorder(_response(QUOTED)))
    request = _request()
    fixer.round_trip(request)
    assert "Authorization" not in request.headers


def test_rate_limit_spacing():
    clock = _FakeClock()
    limiter = RateLimiter(100, 1, clock=clock.time, sleep=clock.sleep)
    for _ in range(50):
        limiter.wait()
    assert clock.now == pytest.approx(0.49)


def test_burst_allows_immediate_requests():
    clock = _FakeClock()
    limiter = RateLimiter(100, 5, clock=clock.time, sleep=clock.sleep)
    delays = [limiter.wait() for _ in range(5)]
    assert delays == [0.0] * 5
    assert limiter.wait() > 0


def test_wait_beyond_timeout_raises_and_keeps_tokens():
    clock = _FakeClock()
    limiter = RateLimiter(100, 1, clock=clock.time, sleep=clock.sleep)
    limiter.wait()
    with pytest.raises(TimeoutError):
        limiter.wait(timeout=0.001)
    assert limiter.wait(timeout=0.02) == pytest.approx(0.01)


def test_zero_burst_is_an_error():
    with pytest.raises(ValueError):
        RateLimiter(100, 0).wait()


def test_zero_rate_runs_dry():
    clock = _FakeClock()
    limiter = RateLimiter(0, 1, clock=clock.time, sleep=clock.sleep)
    assert limiter.wait() == 0.0
    with pytest.raises(TimeoutError):
        limiter.wait()


def test_limiter_shared_per_host():
    first = limiter_for("shared.example.com", RateLimiterConfig(100, 1))
    second = limiter_for("shared.example.com", RateLimiterConfig(5, 9))
    assert first is second
    assert second.rate == 100


def test_transports_for_same_host_share_limiter():
    config = RateLimiterConfig(rps=100, burst=1)
    a = RateLimitedTransport(_Recorder(), config, "context.example.com")
    b = RateLimitedTransport(_Recorder(), config, "context.example.com")
    assert a.limiter is b.limiter


def test_transport_passes_request_on():
    recorder = _Recorder(response="ok")
    transport = RateLimitedTransport(recorder, RateLimiterConfig(1000, 5), "pass.example.com")
    assert transport.round_trip("request") == "ok"
    assert recorder.calls == ["request"]


def test_transport_rate_limited_error():
    recorder = _Recorder(response="ok")
    transport = RateLimitedTransport(recorder, RateLimiterConfig(), "invalid.example.com")
    with pytest.raises(RuntimeError, match="rate limited"):
        transport.round_trip("request")
    assert recorder.calls == []