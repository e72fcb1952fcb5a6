from urllib.parse import urlparse
import socket

from storefront import config
from storefront.infra import supabase_client

TABLES = ("carts", "orders")


def _check_table(client, name: str):
    try:
        res = client.table(name).select("*").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}


def health_supabase_info():
    parsed = urlparse(config.SUPABASE_URL) if config.SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except OSError as e:
            dns_ok = False
            dns_error = str(e)

    info = {
        "supabase_url": config.SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = supabase_client.get_service_supabase()
        for t in TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info


def health_integrations_info():
    """Présence de la configuration des intégrations externes (sans appel réseau)."""
    return {
        "payment_gateway": {
            "api_url": config.MAKECOMMERCE_API_URL,
            "configured": bool(config.MAKECOMMERCE_STORE_ID and config.MAKECOMMERCE_SECRET_KEY),
        },
        "automation_webhook": {"configured": bool(config.AUTOMATION_WEBHOOK_URL)},
    }
