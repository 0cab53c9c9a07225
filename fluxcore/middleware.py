"""Request middleware for registry access: auth header fixes and rate limits."""

from __future__ import annotations

import math
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests

_SCOPE_RE = re.compile(r',scope=([^"].*[^"])$')


def replace_unquoted(header: str) -> str:
    """Quote an unquoted scope parameter in a WWW-Authenticate header."""
    return _SCOPE_RE.sub(r',scope="\1"', header)


class _SessionTransport:
    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout

    def round_trip(self, request: requests.PreparedRequest) -> requests.Response:
        return self._session.send(request, timeout=self._timeout)


class WWWAuthenticateFixer:
    """Quotes bad scope values in responses and reuses a bearer token.

    The remembered token is reused for later requests, so one instance
    should only serve requests about a single repository.
    """

    def __init__(self, transport: Any = None) -> None:
        self.transport = transport or _SessionTransport()
        self._token_header = ""
        self._lock = threading.Lock()

    def round_trip(self, request: Any) -> Any:
        self._maybe_add_token(request)
        response = self.transport.round_trip(request)
        header = response.headers.get("WWW-Authenticate")
        if header is not None and header.startswith("Bearer "):
            response.headers["WWW-Authenticate"] = replace_unquoted(header)
        return response

    def _maybe_add_token(self, request: Any) -> None:
        auth = request.headers.get("Authorization") or ""
        with self._lock:
            if auth[:7].lower() == "bearer ":
                if not self._token_header:
                    self._token_header = auth
                return
            if self._token_header:
                request.headers["Authorization"] = self._token_header


@dataclass(frozen=True)
class RateLimiterConfig:
    rps: float = 0
    burst: int = 0


class RateLimiter:
    """A token bucket allowing `rate` events per second with bursts of `burst`."""

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rate = float(rate)
        self.burst = int(burst)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.burst)
        self._last = clock()
        self._lock = threading.Lock()

    def wait(self, timeout: Optional[float] = None) -> float:
        """Block until one event is allowed; return how long it waited.

        Raises ValueError if the burst is below one, and TimeoutError if the
        wait would be longer than timeout seconds.
        """
        if math.isinf(self.rate):
            return 0.0
        if self.burst < 1:
            raise ValueError(f"wait(n=1) exceeds limiter's burst {self.burst}")
        with self._lock:
            now = self._clock()
            if self.rate > 0:
                elapsed = max(0.0, now - self._last)
                self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            self._last = now
            tokens = self._tokens - 1
            if tokens >= 0:
                delay = 0.0
            elif self.rate <= 0:
                raise TimeoutError("rate: no tokens will become available")
            else:
                delay = -tokens / self.rate
            if timeout is not None and delay > timeout:
                raise TimeoutError(f"rate: wait(n=1) would exceed deadline")
            self._tokens = tokens
        if delay > 0:
            self._sleep(delay)
        return delay


_limiters: dict[str, RateLimiter] = {}
_limiters_lock = threading.Lock()


def limiter_for(host: str, config: RateLimiterConfig) -> RateLimiter:
    """The shared limiter for a host, created from config on first use."""
    with _limiters_lock:
        limiter = _limiters.get(host)
        if limiter is None:
            limiter = RateLimiter(config.rps, config.burst)
            _limiters[host] = limiter
        return limiter


class RateLimitedTransport:
    """Waits on the host's shared limiter before passing a request on."""

    def __init__(
        self,
        transport: Any,
        config: RateLimiterConfig,
        host: str,
        timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.limiter = limiter_for(host, config)
        self.timeout = timeout

    def round_trip(self, request: Any) -> Any:
        try:
            self.limiter.wait(self.timeout)
        except (TimeoutError, ValueError) as exc:
            raise RuntimeError(f"rate limited: {exc}") from exc
        return self.transport.round_trip(request)