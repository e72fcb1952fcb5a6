import hashlib
import os
import time
from typing import Any, Dict

from fastapi import HTTPException, Request

from storefront.utils.security import COOKIE_NAME


def _client_key(req: Request) -> str:
    # Priorité: session utilisateur (hashée), puis session panier, puis IP
    path = req.url.path
    token = req.cookies.get(COOKIE_NAME)
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    cart_session = None
    if "session" in req.scope:
        cart_session = req.session.get("cart_session")
    if cart_session:
        return f"cart:{cart_session}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request):
        # Fallback mémoire forcé (dev/tests)
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request)
            store = getattr(request.app.state, "_rl_store", None)
            if store is None:
                store = request.app.state._rl_store = {}
            # Clés dont la fenêtre est écoulée: purgées
            for stale in [k for k, (window, hits) in store.items() if now - hits[-1] >= window]:
                del store[stale]
            _, hits = store.get(key, (seconds, []))
            hits = [t for t in hits if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Trop de requêtes")
            hits.append(now)
            store[key] = (seconds, hits)
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter import FastAPILimiter
        if getattr(FastAPILimiter, "redis", None) is None:
            return
        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)
        return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request)
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    from fastapi_limiter import FastAPILimiter

    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }
