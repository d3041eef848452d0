"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address. Only the analysis endpoints are
limited: they may fan out to the insight generator.

Usage in routes:
    from fastapi import Request
    from civicwatch.core.rate_limit import limiter

    @router.post("/some-endpoint")
    @limiter.limit("20/minute")
    async def my_endpoint(request: Request, payload: MyRequest):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
