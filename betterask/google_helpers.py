# betterask/google_helpers.py
import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger("betterask_backend")

# --- Configuration ---
GEMINI_API_KEY      = (os.getenv("GEMINI_API_KEY") or "").strip()
LLM_PROVIDER        = os.getenv("LLM_PROVIDER", "genai").strip().lower()
GEMINI_MODEL        = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
PROJECT_ID          = os.getenv("GOOGLE_CLOUD_PROJECT", "")
REGION              = os.getenv("GOOGLE_CLOUD_REGION", "us-central1")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))

TAG_CACHE_TTL_SECONDS = int(os.getenv("TAG_CACHE_TTL_SECONDS", "600"))
CORS_ALLOW_ORIGINS    = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]
PORT                  = int(os.getenv("PORT", "3000"))


def is_gemini_configured(provider: str = None, api_key: str = None, project_id: str = None) -> bool:
    """
    True when the selected provider has what it needs to make a call.
    - genai: an API key
    - vertex: a Google Cloud project (credentials come from ADC)
    Never raises: a missing credential just disables AI features.
    """
    provider = (provider or LLM_PROVIDER).lower()
    if provider == "vertex":
        return bool(project_id if project_id is not None else PROJECT_ID)
    return bool(api_key if api_key is not None else GEMINI_API_KEY)


if not is_gemini_configured():
    logger.warning(
        f"Gemini is not configured for provider '{LLM_PROVIDER}'. "
        "Tag generation will serve static fallbacks and prompt analysis will fail."
    )
