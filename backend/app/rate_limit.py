import os

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from .config import SCORING_RATE_LIMIT
from .exceptions import ProblemDetail


def _rate_limits_disabled() -> bool:
    return (os.getenv("DISABLE_RATE_LIMITS") or "").lower() == "true"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        parts = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
        if parts:
            return parts[-1]
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


def scoring_rate_limit() -> str:
    return SCORING_RATE_LIMIT


limiter = Limiter(key_func=client_ip, enabled=not _rate_limits_disabled())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else ""
    message = f"rate limit exceeded: {detail}" if detail else "rate limit exceeded"
    problem = ProblemDetail(
        title="Too Many Requests",
        detail=message,
        status=429,
        code="rate_limit_exceeded",
    )
    return JSONResponse(
        status_code=429,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )
