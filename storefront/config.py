# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, passerelle MakeCommerce, webhook d'automatisation)
- Fournit l'URL publique de l'application (retours de paiement) et le stockage local des paniers
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Passerelle de paiement (MakeCommerce): identifiants boutique, chargés une seule fois
MAKECOMMERCE_STORE_ID = _clean_env(os.getenv("MAKECOMMERCE_STORE_ID") or "")
MAKECOMMERCE_SECRET_KEY = _clean_env(os.getenv("MAKECOMMERCE_SECRET_KEY") or "")
MAKECOMMERCE_API_URL = _clean_env(os.getenv("MAKECOMMERCE_API_URL") or "https://api.maksekeskus.ee/v1").rstrip("/")

# Service d'écho IP exigé par les contrôles anti-fraude de la passerelle
IP_LOOKUP_URL = _clean_env(os.getenv("IP_LOOKUP_URL") or "https://api64.ipify.org?format=json")

# Webhook d'automatisation (best-effort, jamais bloquant)
AUTOMATION_WEBHOOK_URL = _clean_env(os.getenv("AUTOMATION_WEBHOOK_URL") or "")

# Timeout appliqué à tous les appels sortants (secondes)
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

# URL publique de l'application (construction des URLs de retour passerelle)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")

# Stockage local des paniers (un fichier JSON par session panier)
CART_STORAGE_DIR = Path(_clean_env(os.getenv("CART_STORAGE_DIR") or str(BASE_DIR / "var" / "carts")))
# Sessions panier en mémoire: éviction après inactivité (secondes) et au-delà d'un plafond
CART_SESSION_IDLE_TTL = float(os.getenv("CART_SESSION_IDLE_TTL", "3600"))
CART_SESSIONS_MAX = int(os.getenv("CART_SESSIONS_MAX", "10000"))

# Cookies/ Sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY", "replace_me_with_a_long_random_secret")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
