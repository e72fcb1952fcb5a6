"""
Registre central des routers.
- Web: checkout et retours de paiement
- API v1: panier, liste de souhaits, commandes, paiements
- Health
"""
from fastapi import FastAPI

from storefront.cart import views as cart_views
from storefront.health.router import router as health_router
from storefront.orders import views as orders_views
from storefront.payments import views as payments_views


def register_routers(app: FastAPI) -> None:
    # Pages web (HTML)
    app.include_router(payments_views.web_router)
    # API v1
    app.include_router(cart_views.router)
    app.include_router(cart_views.wishlist_router)
    app.include_router(orders_views.router)
    app.include_router(payments_views.api_router)
    # Health & monitoring
    app.include_router(health_router)
