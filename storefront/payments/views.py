# module storefront.payments.views
"""
Pages et API de paiement.
Web:
- GET/POST /checkout: formulaire de livraison, puis redirection 303 vers la page de paiement passerelle
- GET /payment-success: vérification ponctuelle de la transaction, vidage du panier si complétée
- GET /payment-failed: retour d'annulation
API:
- POST /api/v1/payments/checkout: variante JSON du checkout ({reference, url})
- POST /api/v1/payments/notification: notification serveur-à-serveur de la passerelle
- GET /api/v1/payments/verify: statut d'une transaction
"""
import logging
from typing import Any, Dict, List
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.status import HTTP_303_SEE_OTHER

from storefront.cart.dependencies import CartContext, get_cart_context
from storefront.cart.state import cart_total, format_price
from storefront.errors import CheckoutInProgressError, EmptyCartError
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.templates import templates
from . import makecommerce_client
from .checkout import CheckoutFlow, CheckoutForm, CheckoutPhase
from .confirmation import ConfirmationStatus, apply_gateway_notification, confirm_payment
from .metadata import FAILED_PATH

logger = logging.getLogger(__name__)
web_router = APIRouter(tags=["Payment Pages"])
api_router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

FORM_FIELDS = ("first_name", "last_name", "email", "phone", "address", "city", "postal_code", "delivery_method")


def get_checkout_flow(request: Request) -> CheckoutFlow:
    return request.app.state.checkout_flow


def _validation_messages(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc") or ())
        msg = str(err.get("msg") or "").removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def _render_checkout(request: Request, ctx: CartContext, form: Dict[str, Any], errors: List[str] = None,
                     in_flight: bool = False, status_code: int = 200) -> HTMLResponse:
    state = ctx.store.state
    total = cart_total(state, apply_discount=ctx.is_member)
    return templates.TemplateResponse(
        request,
        "checkout.html",
        {
            "items": state.items,
            "empty": not state.items,
            "total": format_price(total),
            "member_discount": ctx.is_member,
            "form": form,
            "errors": errors or [],
            "in_flight": in_flight,
        },
        status_code=status_code,
    )


@web_router.get("/checkout", response_class=HTMLResponse)
def checkout_page(request: Request, ctx: CartContext = Depends(get_cart_context)):
    """Panier vide: état vide sans formulaire. Sinon formulaire pré-rempli avec l'email du membre."""
    form = {"email": (ctx.user or {}).get("email") or "", "delivery_method": "shipping"}
    return _render_checkout(request, ctx, form)


@web_router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def checkout_submit(
    request: Request,
    ctx: CartContext = Depends(get_cart_context),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """
    Soumission du formulaire:
    - invalide: 422, formulaire ré-affiché avec les valeurs saisies
    - soumission déjà en vol pour ce panier: 409
    - échec commande/passerelle: 502 avec message générique, valeurs conservées
    - succès: 303 vers l'URL de paiement
    """
    raw = await request.form()
    values = {name: str(raw.get(name) or "") for name in FORM_FIELDS}
    values["delivery_method"] = values["delivery_method"] or "shipping"
    try:
        form = CheckoutForm(**values)
    except ValidationError as e:
        return _render_checkout(request, ctx, values, errors=_validation_messages(e), status_code=422)
    try:
        attempt = await run_in_threadpool(flow.submit, ctx.session_id, ctx.store, form, user=ctx.user)
    except EmptyCartError:
        return _render_checkout(request, ctx, values)
    except CheckoutInProgressError as e:
        return _render_checkout(request, ctx, values, errors=[e.message], in_flight=True, status_code=409)
    if attempt.phase is CheckoutPhase.REDIRECTING:
        return RedirectResponse(url=attempt.payment_url, status_code=HTTP_303_SEE_OTHER)
    return _render_checkout(request, ctx, values, errors=[attempt.error], status_code=502)


@web_router.get("/payment-success")
def payment_success_page(request: Request, ctx: CartContext = Depends(get_cart_context)):
    """Paiement non complété: redirection vers la page d'échec dédiée (panier conservé)."""
    result = confirm_payment(request.query_params, ctx.store, user_id=ctx.user_id)
    if result.status is ConfirmationStatus.FAILED:
        query = urlencode({"reference": request.query_params.get("reference") or ""})
        return RedirectResponse(url=f"{FAILED_PATH}?{query}", status_code=HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(
        request,
        "payment_success.html",
        {"result": result, "status": result.status.value, "details": result.details},
    )


@web_router.get("/payment-failed", response_class=HTMLResponse)
def payment_failed_page(request: Request):
    return templates.TemplateResponse(
        request,
        "payment_failed.html",
        {"reference": request.query_params.get("reference") or ""},
    )


@api_router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def checkout_api(
    body: CheckoutForm,
    ctx: CartContext = Depends(get_cart_context),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """
    Variante JSON: mêmes gardes que le formulaire.
    Erreurs: 400 panier vide, 409 soumission en vol, 502 échec commande/passerelle.
    """
    attempt = flow.submit(ctx.session_id, ctx.store, body, user=ctx.user)
    if attempt.phase is not CheckoutPhase.REDIRECTING:
        raise HTTPException(status_code=502, detail=attempt.error)
    return {"reference": attempt.reference, "url": attempt.payment_url}


@api_router.post("/notification", include_in_schema=False,
                 dependencies=[Depends(optional_rate_limit(times=60, seconds=60))])
async def gateway_notification(request: Request):
    """
    Notification passerelle (form-urlencoded 'json' ou JSON brut).
    Le statut est relu côté passerelle avant toute mise à jour de commande.
    """
    ctype = request.headers.get("content-type", "")
    if ctype.startswith("application/json"):
        payload = await request.json()
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Notification invalide")
    else:
        payload = dict(await request.form())
    status = await run_in_threadpool(apply_gateway_notification, payload)
    logger.info("payments.notification order_status=%s", status.value if status else None)
    return {"status": "ok", "order_status": status.value if status else None}


@api_router.get("/verify")
def verify_transaction(transaction_id: str):
    verified = makecommerce_client.verify_payment(transaction_id)
    return {"transaction_id": transaction_id, "verified": verified}
