"""
Factory d'application pour les entrypoints (storefront.asgi) et les tests.
Racine de composition: le registre des sessions panier et le flux de checkout sont créés ici
et portés par app.state, jamais par des globals de module.
"""
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from storefront import config
from storefront.cart.sessions import CartSessions
from storefront.payments.checkout import CheckoutFlow
from .exceptions import register_exception_handlers
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_no_cache_middleware, register_security_middleware
from .routers import register_routers

logger = logging.getLogger(__name__)


def create_app(
    cart_storage_dir: Optional[Path] = config.CART_STORAGE_DIR,
    cart_sessions: Optional[CartSessions] = None,
    checkout_flow: Optional[CheckoutFlow] = None,
) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares (session, CORS, hôtes, sécurité, no-cache)
      - gestionnaires d'exceptions
      - tous les routers (web, API, health)
    cart_storage_dir=None: paniers en mémoire uniquement.
    """
    app = FastAPI(title="Storefront", lifespan=lifespan)
    app.state.cart_sessions = cart_sessions or CartSessions(cart_storage_dir)
    app.state.checkout_flow = checkout_flow or CheckoutFlow()
    app.state.rate_limit_enabled = False
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    logger.info("Application initialisée (paniers: %s)", cart_storage_dir or "mémoire")
    return app
