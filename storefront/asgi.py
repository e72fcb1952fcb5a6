"""
ASGI entrypoint: expose `app` pour les process managers.

- En production: `uvicorn storefront.asgi:app` (ou gunicorn -k uvicorn.workers.UvicornWorker).
- Toute la configuration (routes, middlewares, sessions panier) est centralisée dans storefront.app_setup.factory.
"""
import logging
import os

from storefront.app_setup.factory import create_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "info").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
