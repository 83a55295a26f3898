"""
HTTP middleware: body size limit, security headers, origin allow-list and a
per-client sliding-window rate limiter. /healthz bypasses the origin and
rate-limit checks.
"""
from collections import deque
from typing import Callable, Dict, Deque, Optional, Tuple
import logging
import math
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024  # 1 MiB
EXEMPT_PATHS = {'/healthz'}

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'SAMEORIGIN',
    'Referrer-Policy': 'no-referrer',
    'X-DNS-Prefetch-Control': 'off',
    'Cross-Origin-Resource-Policy': 'same-origin',
}


class SlidingWindowLimiter:
    """Counts hits per key over the trailing `window` seconds."""

    SWEEP_EVERY = 1000

    def __init__(self, max_hits: int, window: float, clock: Optional[Callable[[], float]] = None):
        self.max_hits = max_hits
        self.window = window
        self.clock = clock or time.monotonic
        self.hits: Dict[str, Deque[float]] = {}
        self._calls = 0

    def _prune(self, key: str, now: float) -> Deque[float]:
        q = self.hits.get(key)
        if q is None:
            q = self.hits[key] = deque()
        cutoff = now - self.window
        while q and q[0] <= cutoff:
            q.popleft()
        return q

    def hit(self, key: str) -> Tuple[bool, int, int]:
        """Record a hit. Returns (allowed, remaining, seconds until a slot frees up)."""
        self._calls += 1
        if self._calls % self.SWEEP_EVERY == 0:
            self.clear_expired()
        now = self.clock()
        q = self._prune(key, now)
        if len(q) >= self.max_hits:
            reset = max(1, math.ceil(q[0] + self.window - now))
            return False, 0, reset
        q.append(now)
        reset = max(1, math.ceil(q[0] + self.window - now))
        return True, self.max_hits - len(q), reset

    def clear_expired(self):
        now = self.clock()
        for key in list(self.hits):
            if not self._prune(key, now):
                del self.hits[key]


def client_key(request: Request) -> str:
    return request.client.host if request.client else 'unknown'


def install_middleware(app: FastAPI, settings: Settings, limiter: Optional[SlidingWindowLimiter] = None):
    """Registers the middleware stack. The last one registered runs first."""
    limiter = limiter or SlidingWindowLimiter(settings.rate_limit_max, settings.rate_limit_window_seconds)
    app.state.rate_limiter = limiter

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)
        allowed, remaining, reset = limiter.hit(client_key(request))
        headers = {
            'RateLimit-Limit': str(limiter.max_hits),
            'RateLimit-Remaining': str(remaining),
            'RateLimit-Reset': str(reset),
        }
        if not allowed:
            logger.warning('Rate limit exceeded for %s on %s', client_key(request), request.url.path)
            headers['Retry-After'] = str(reset)
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests, please try again later."},
                headers=headers,
            )
        response = await call_next(request)
        response.headers.update(headers)
        return response

    @app.middleware("http")
    async def origin_check_middleware(request: Request, call_next):
        # requests without an Origin header (curl, server-to-server) are allowed
        origin = request.headers.get('origin')
        if origin and request.url.path not in EXEMPT_PATHS and origin != settings.allowed_origin:
            logger.warning('CORS blocked request from origin %s to %s', origin, request.url.path)
            return JSONResponse(status_code=403, content={"error": "Not allowed by CORS"})
        return await call_next(request)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)
        for k, v in SECURITY_HEADERS.items():
            response.headers.setdefault(k, v)
        return response

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=MAX_BODY_BYTES)


class BodySizeLimitMiddleware:
    """
    Rejects request bodies over `max_bytes` with 413. The body is read and
    counted before the app runs, so chunked uploads without Content-Length
    are capped too. Accepted bodies are replayed to the app unchanged.
    """

    def __init__(self, app, max_bytes: int = MAX_BODY_BYTES):
        self.app = app
        self.max_bytes = max_bytes

    async def reject(self, scope, receive, send):
        response = JSONResponse(
            status_code=413,
            content={"error": "Request body too large"},
            headers=SECURITY_HEADERS,
        )
        await response(scope, receive, send)

    async def __call__(self, scope, receive, send):
        if scope['type'] != 'http':
            await self.app(scope, receive, send)
            return

        length = dict(scope['headers']).get(b'content-length', b'')
        if length.isdigit() and int(length) > self.max_bytes:
            await self.reject(scope, receive, send)
            return

        messages = []
        size = 0
        while True:
            message = await receive()
            messages.append(message)
            if message['type'] != 'http.request':
                break
            size += len(message.get('body', b''))
            if size > self.max_bytes:
                logger.warning('Request body over %s bytes rejected on %s', self.max_bytes, scope.get('path'))
                await self.reject(scope, receive, send)
                return
            if not message.get('more_body', False):
                break

        async def replay():
            if messages:
                return messages.pop(0)
            return await receive()

        await self.app(scope, replay, send)
