import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

from storefront.infra import supabase_client

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"


def _token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)


def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token) en {id, email, metadata, token}."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    raw = getattr(res, "user", None)
    if raw is None:
        return {}
    metadata = getattr(raw, "user_metadata", None) or {}
    return {"id": getattr(raw, "id", None), "email": getattr(raw, "email", None), "metadata": metadata, "token": access_token}


def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Utilisateur courant ou None (visiteur anonyme).
    Un jeton invalide/expiré n'est pas une erreur ici: le panier reste utilisable en local.
    """
    token = _token_from_request(request)
    if not token:
        return None
    try:
        user = get_user_from_token(token)
    except Exception:
        logger.warning("Jeton utilisateur non vérifiable, poursuite en anonyme", exc_info=True)
        return None
    return user if user.get("id") else None


def require_user(user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> Dict[str, Any]:
    if not user:
        raise HTTPException(status_code=401, detail="Non authentifié")
    return user
