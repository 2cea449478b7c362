"""Dependency injection for FastAPI endpoints"""

from fastapi import Header, HTTPException, Request

from treasury_engine.api.rate_limit import RateLimiter


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_workspace_id(x_workspace_id: str = Header(..., min_length=1)) -> str:
    """Opaque workspace scope; identity is resolved upstream"""
    return x_workspace_id


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(request: Request, x_actor_id: str = Header("anonymous")) -> None:
    """Guard write endpoints per actor"""
    limiter = get_rate_limiter(request)
    if not limiter.allow(x_actor_id):
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(limiter.retry_after(x_actor_id))},
        )
