"""
Gestionnaires d'exceptions.
- StorefrontError (métier): JSON {"detail"} avec le code porté par la classe d'erreur.
- HTTPException 401 sur une page web (Accept: text/html, hors /api/*): redirection vers l'accueil avec message.
"""
import logging
import urllib.parse

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from storefront.errors import StorefrontError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        logger.warning("%s sur %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message or type(exc).__name__})

    @app.exception_handler(HTTPException)
    async def html_redirect_on_auth_errors(request: Request, exc: HTTPException):
        if exc.status_code == 401:
            accept = (request.headers.get("accept") or "").lower()
            is_api = request.url.path.startswith("/api/")
            if "text/html" in accept and not is_api:
                msg = urllib.parse.quote_plus(str(exc.detail or "Veuillez vous connecter"))
                return RedirectResponse(url=f"/?error={msg}", status_code=HTTP_303_SEE_OTHER)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)
