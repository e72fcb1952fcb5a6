from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storefront.health import service as health_service
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root(request: Request):
    return {"ok": True, "cart_sessions": len(request.app.state.cart_sessions)}


@router.get("/supabase")
def health_supabase():
    return JSONResponse(health_service.health_supabase_info())


@router.get("/integrations")
def health_integrations(request: Request):
    info = health_service.health_integrations_info()
    info["rate_limit"] = rate_limit_health_info(request)
    return info
